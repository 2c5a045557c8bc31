from __future__ import annotations

import argparse
import logging
from pathlib import Path
from textwrap import shorten
from typing import List, Optional, Sequence

from rich.console import Console
from rich.logging import RichHandler
from rich.markdown import Markdown
from rich.panel import Panel

from .config import AppConfig, load_config
from .ingest import DirectoryCorpus
from .models import ChatTurn
from .query import AssistantAnswer, NotesAssistant

console = Console()

EXIT_WORDS = {"exit", "quit", ":q"}


def setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
    )


def render_answer(answer: AssistantAnswer, show_notes: bool = True, limit: int = 5) -> None:
    console.rule("[bold green]Answer[/bold green]")
    console.print(Markdown(answer.text))

    if answer.corrections:
        console.print(f"[yellow]Applied {len(answer.corrections)} correction(s):[/yellow]")
        for correction in answer.corrections:
            console.print(f"  - {correction}")

    if not show_notes or not answer.ranked:
        return

    console.rule("[bold blue]Retrieved Notes[/bold blue]")
    for ranked in answer.ranked[:limit]:
        preview = shorten(ranked.note.content.replace("\n", " "), width=180, placeholder="...")
        console.print(
            Panel(
                preview or "[dim](empty)[/dim]",
                title=ranked.note.title or "Untitled",
                subtitle=f"score={ranked.score:.3f}",
                expand=False,
            )
        )


def _build_assistant(cfg: AppConfig) -> NotesAssistant:
    corpus = DirectoryCorpus.from_config(cfg)
    return NotesAssistant(corpus, cfg=cfg)


def run_chat(assistant: NotesAssistant, include_private: bool, validate: bool) -> None:
    history: List[ChatTurn] = []
    console.print(f"[bold green]{assistant.cfg.assistant_name}[/bold green] is ready. Type 'exit' to quit.")
    while True:
        try:
            question = console.input("[bold cyan]You:[/bold cyan] ").strip()
        except (EOFError, KeyboardInterrupt):
            console.print()
            break
        if not question:
            continue
        if question.lower() in EXIT_WORDS:
            break

        answer = assistant.answer(question, history, include_private=include_private, validate=validate)
        render_answer(answer, show_notes=False)
        history.append(ChatTurn("user", question))
        history.append(ChatTurn("assistant", answer.text))


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = argparse.ArgumentParser(
        description="Grounded Notes Assistant - ask questions about your notes, with answers checked against them."
    )

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        type=str,
        default="config.yaml",
        help="Path to a config YAML file (default: config.yaml).",
    )
    common.add_argument(
        "--include-private",
        action="store_true",
        help="Include notes marked private.",
    )
    common.add_argument(
        "--no-validate",
        action="store_true",
        help="Skip grounding validation of the answer.",
    )
    common.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")

    subparsers = parser.add_subparsers(dest="command", required=True)

    ask_parser = subparsers.add_parser(
        "ask",
        parents=[common],
        help="Ask a single question about your notes.",
    )
    ask_parser.add_argument("question", type=str, help="Question to ask about your notes.")

    subparsers.add_parser(
        "chat",
        parents=[common],
        help="Start an interactive chat that keeps conversation history.",
    )

    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    cfg = load_config(Path(args.config))
    include_private = args.include_private or cfg.include_private
    validate = cfg.grounding.enabled and not args.no_validate
    assistant = _build_assistant(cfg)

    if args.command == "ask":
        answer = assistant.answer(args.question, include_private=include_private, validate=validate)
        render_answer(answer)
    elif args.command == "chat":
        run_chat(assistant, include_private, validate)
    else:  # pragma: no cover - defensive
        parser.print_help()


if __name__ == "__main__":
    main()
