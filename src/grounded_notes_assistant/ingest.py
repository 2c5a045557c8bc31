from __future__ import annotations

import logging
import re
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

import yaml
from pypdf import PdfReader

from .config import AppConfig
from .embedding import DEFAULT_DIM, initialize_embeddings
from .models import Note

logger = logging.getLogger(__name__)

NOTE_SUFFIXES = {".md", ".txt", ".pdf"}

_FRONT_MATTER_RE = re.compile(r"\A---\s*\n(.*?)\n---\s*(?:\n|\Z)", re.DOTALL)
_HEADING_RE = re.compile(r"^#\s+(.+)$", re.MULTILINE)


def split_front_matter(text: str) -> Tuple[Dict[str, Any], str]:
    """YAML front matter and the remaining body. Invalid front matter is kept as body."""
    match = _FRONT_MATTER_RE.match(text)
    if not match:
        return {}, text
    try:
        meta = yaml.safe_load(match.group(1)) or {}
    except yaml.YAMLError as e:
        logger.warning("Ignoring invalid front matter: %s", e)
        return {}, text
    if not isinstance(meta, dict):
        return {}, text
    return meta, text[match.end():]


def _parse_tags(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [t.strip().lstrip("#") for t in value.split(",") if t.strip()]
    if not isinstance(value, (list, tuple, set)):
        value = [value]
    return [str(t).strip().lstrip("#") for t in value if t is not None and str(t).strip()]


def _parse_flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"true", "yes", "on", "1"}
    return bool(value)


def _parse_updated(value: Any, fallback: datetime) -> datetime:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            logger.warning("Unrecognised updated date %r, using file mtime", value)
            return fallback
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return fallback


def load_pdf(path: Path) -> str:
    reader = PdfReader(str(path))
    pages = []
    for page in reader.pages:
        try:
            pages.append(page.extract_text() or "")
        except Exception as exc:
            logger.warning("Could not extract a page of %s: %s", path, exc)
            pages.append("")
    return "\n\n".join(p for p in pages if p.strip())


def iter_note_files(notes_dir: Path) -> Iterable[Path]:
    for path in sorted(notes_dir.rglob("*")):
        if path.is_file() and path.suffix.lower() in NOTE_SUFFIXES:
            yield path


def load_note(path: Path, root: Path) -> Optional[Note]:
    """One note per file; the id is the path relative to ``root``."""
    mtime = datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)
    suffix = path.suffix.lower()

    if suffix == ".pdf":
        meta, body = {}, load_pdf(path)
    else:
        text = path.read_text(encoding="utf-8")
        meta, body = split_front_matter(text) if suffix == ".md" else ({}, text)

    body = body.strip()
    title = meta.get("title")
    if not title and suffix == ".md":
        heading = _HEADING_RE.search(body)
        title = heading.group(1).strip() if heading else None
    title = str(title or path.stem)

    if not body and not meta:
        return None

    return Note(
        id=path.relative_to(root).as_posix(),
        title=title,
        content=body,
        tags=_parse_tags(meta.get("tags")),
        is_private=_parse_flag(meta.get("private", False)),
        updated_at=_parse_updated(meta.get("updated"), mtime),
    )


def load_notes(notes_dir: Path, dim: int = DEFAULT_DIM) -> List[Note]:
    if not notes_dir.exists():
        logger.warning("Notes directory not found: %s", notes_dir)
        return []

    notes: List[Note] = []
    for path in iter_note_files(notes_dir):
        try:
            note = load_note(path, notes_dir)
        except Exception as exc:
            logger.warning("Failed to process %s: %s", path, exc)
            continue
        if note is not None:
            notes.append(note)

    logger.debug("Loaded %d notes from %s", len(notes), notes_dir)
    return initialize_embeddings(notes, dim)


class DirectoryCorpus:
    """Corpus accessor over a directory of Markdown, text and PDF files.

    Files are re-read on every call so edits show up on the next question.
    """

    def __init__(self, notes_dir: Path, dim: int = DEFAULT_DIM) -> None:
        self.notes_dir = notes_dir
        self.dim = dim

    @classmethod
    def from_config(cls, cfg: AppConfig) -> "DirectoryCorpus":
        return cls(cfg.notes_dir_resolved, cfg.embedding_dim)

    def __call__(self) -> List[Note]:
        return load_notes(self.notes_dir, self.dim)


__all__ = [
    "DirectoryCorpus",
    "iter_note_files",
    "load_note",
    "load_notes",
    "load_pdf",
    "split_front_matter",
]
