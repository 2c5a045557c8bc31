from unittest.mock import patch

import pytest

from grounded_notes_assistant import cli


@pytest.fixture(autouse=True)
def no_api_keys(monkeypatch):
    monkeypatch.delenv("GROQ_API_KEY", raising=False)
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)


def test_ask_greeting(tmp_path, capsys):
    cli.main(["ask", "hello", "--config", str(tmp_path / "config.yaml")])
    out = capsys.readouterr().out
    assert "Answer" in out
    assert "Pownin" in out


def test_ask_without_credentials_reports_error(tmp_path, capsys):
    notes = tmp_path / "notes"
    notes.mkdir()
    (notes / "billing.txt").write_text("Invoice from ACME.", encoding="utf-8")
    config = tmp_path / "config.yaml"
    config.write_text(f"notes_dir: {notes.as_posix()}\n", encoding="utf-8")

    cli.main(["ask", "find my invoice", "--config", str(config)])
    out = capsys.readouterr().out
    assert "Missing API key" in out
    assert "billing" in out


def test_chat_loop_exits(tmp_path, capsys):
    with patch.object(cli.console, "input", side_effect=["thanks", "exit"]) as prompt:
        cli.main(["chat", "--config", str(tmp_path / "config.yaml")])
    assert prompt.call_count == 2
    assert "ready" in capsys.readouterr().out


def test_command_is_required():
    with pytest.raises(SystemExit):
        cli.main([])
