from pathlib import Path

import pytest

from grounded_notes_assistant.config import AppConfig, load_config


class TestLoadConfig:
    def test_missing_file_gives_defaults(self, tmp_path):
        cfg = load_config(tmp_path / "missing.yaml")
        assert cfg == AppConfig()
        assert cfg.llm.model == "llama-3.3-70b-versatile"
        assert cfg.retrieval.tier1_size == 10
        assert cfg.context.max_context_tokens == 4000
        assert cfg.reflection.score_threshold == 85

    def test_yaml_overrides(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "notes_dir: my_notes\n"
            "include_private: true\n"
            "llm:\n"
            "  model: gpt-4o-mini\n"
            "  base_url: null\n"
            "ranking:\n"
            "  vector_weight: 5\n"
            "grounding:\n"
            "  fallback_to_quote: false\n",
            encoding="utf-8",
        )
        cfg = load_config(path)
        assert cfg.notes_dir == Path("my_notes")
        assert cfg.include_private
        assert cfg.llm.model == "gpt-4o-mini"
        assert cfg.llm.base_url is None
        assert cfg.ranking.vector_weight == 5.0
        assert cfg.ranking.tag_boost == 3.0
        assert not cfg.grounding.fallback_to_quote

    def test_empty_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("", encoding="utf-8")
        assert load_config(path) == AppConfig()

    def test_invalid_values_exit(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("reflection:\n  score_threshold: 150\n", encoding="utf-8")
        with pytest.raises(SystemExit, match="Invalid configuration"):
            load_config(path)

    def test_notes_dir_resolved_is_absolute(self):
        assert AppConfig(notes_dir=Path("notes")).notes_dir_resolved.is_absolute()
