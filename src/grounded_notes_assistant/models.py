from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set

import numpy as np

_FILE_TAG_RE = re.compile(r"^file[a-zA-Z0-9\-_]+$")


def is_file_tag(tag: str) -> bool:
    """File tags (``fileWork``) mark folder membership."""
    return bool(_FILE_TAG_RE.match(tag))


def file_tag_display_name(tag: str) -> str:
    return tag[4:] if is_file_tag(tag) else tag


@dataclass
class Note:
    id: str
    title: str
    content: str
    tags: List[str] = field(default_factory=list)
    is_private: bool = False
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    embedding: Optional[np.ndarray] = field(default=None, repr=False, compare=False)

    def embedding_text(self) -> str:
        tag_text = " ".join(
            f"{t} {file_tag_display_name(t)}" if is_file_tag(t) else t for t in self.tags
        )
        return f"{self.title or ''} {self.content or ''} {tag_text}"

    def display_tags(self) -> List[str]:
        return [file_tag_display_name(t) for t in self.tags]

    @property
    def has_folder(self) -> bool:
        return any(is_file_tag(t) for t in self.tags)


@dataclass
class ChatTurn:
    role: str
    content: str

    def __post_init__(self) -> None:
        if self.role == "ai":
            self.role = "assistant"
        if self.role not in ("user", "assistant"):
            raise ValueError(f"Unsupported chat role: {self.role!r}")

    @classmethod
    def from_mapping(cls, data: Mapping[str, str]) -> "ChatTurn":
        return cls(role=data["role"], content=data["content"])

    def to_message(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


def coerce_history(history: Optional[Iterable[ChatTurn | Mapping[str, str]]]) -> List[ChatTurn]:
    turns: List[ChatTurn] = []
    for item in history or []:
        turns.append(item if isinstance(item, ChatTurn) else ChatTurn.from_mapping(item))
    return turns


class TagColor(str, Enum):
    BLUE = "blue"
    GREEN = "green"
    GREY = "grey"

    @property
    def label(self) -> str:
        return {
            TagColor.BLUE: "Blue Folder",
            TagColor.GREEN: "Green Tag",
            TagColor.GREY: "Grey Tag",
        }[self]


@dataclass
class TagTaxonomy:
    """Corpus-wide tag structure: folders, folder-scoped tags and standalone tags."""

    folders: List[str] = field(default_factory=list)
    folder_tags: List[str] = field(default_factory=list)
    standalone_tags: List[str] = field(default_factory=list)

    @classmethod
    def from_notes(cls, notes: Sequence[Note]) -> "TagTaxonomy":
        folders: Dict[str, None] = {}
        folder_tags: Dict[str, None] = {}
        standalone: Dict[str, None] = {}
        for note in notes:
            in_folder = note.has_folder
            for tag in note.tags:
                if is_file_tag(tag):
                    folders[file_tag_display_name(tag)] = None
                elif in_folder:
                    folder_tags[tag] = None
                else:
                    standalone[tag] = None
        return cls(list(folders), list(folder_tags), list(standalone))

    @property
    def known_tags(self) -> Set[str]:
        return set(self.folders) | set(self.folder_tags) | set(self.standalone_tags)

    def color_of(self, tag: str) -> TagColor:
        if is_file_tag(tag):
            return TagColor.BLUE
        if tag in self.folder_tags:
            return TagColor.GREEN
        return TagColor.GREY

    def annotate(self, tags: Sequence[str]) -> str:
        if not tags:
            return "None"
        return ", ".join(
            f"{file_tag_display_name(t)} ({self.color_of(t).label})" for t in tags
        )

    def summary(self) -> str:
        return (
            "Global Tag Structure:\n"
            f"- **Folders (Blue)**: {', '.join(self.folders) or 'None'}\n"
            f"- **Folder Tags (Green)**: {', '.join(self.folder_tags) or 'None'}\n"
            f"- **Standalone Tags (Grey)**: {', '.join(self.standalone_tags) or 'None'}"
        )


__all__ = [
    "ChatTurn",
    "Note",
    "TagColor",
    "TagTaxonomy",
    "coerce_history",
    "file_tag_display_name",
    "is_file_tag",
]
