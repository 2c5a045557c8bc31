"""Ordinal and numbered-item questions ("3rd step of X", "step 5", "what is the second point")."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from .models import Note

ORDINAL_WORDS = {
    "first": 1, "second": 2, "third": 3, "fourth": 4, "fifth": 5, "sixth": 6,
    "seventh": 7, "eighth": 8, "ninth": 9, "tenth": 10, "eleventh": 11, "twelfth": 12,
}

_ITEM_NOUNS = (
    "method|step|point|item|way|technique|rule|principle|type|kind|example|part|section"
    "|chapter|element|component|feature|tip|trick|hack|strategy|approach|phase|stage"
)
_SHORT_NOUNS = "one|item|method|step|point"
_LINK = r"(?:\s+(?:of|in|from|for))?\s*(.+)?"
_ASK = r"(?:give|show|tell|what(?:'s|\s+is)?|get)\s+(?:me\s+)?(?:the\s+)?"

_PATTERNS = [
    re.compile(rf"(\d+)(?:st|nd|rd|th)\s+(?:{_ITEM_NOUNS}){_LINK}", re.IGNORECASE),
    re.compile(rf"(?:{_ITEM_NOUNS})\s*#?\s*(\d+){_LINK}", re.IGNORECASE),
    re.compile(rf"\b({'|'.join(ORDINAL_WORDS)})\s+(?:{_ITEM_NOUNS}){_LINK}", re.IGNORECASE),
    re.compile(rf"{_ASK}(\d+)(?:st|nd|rd|th)(?:\s+(?:{_SHORT_NOUNS}))?{_LINK}", re.IGNORECASE),
    re.compile(rf"{_ASK}({'|'.join(ORDINAL_WORDS)})(?:\s+(?:{_SHORT_NOUNS}))?{_LINK}", re.IGNORECASE),
]

_NUMBERED_RE = re.compile(r"^(\d+)[.):]\s*(.+)")
_STEP_RE = re.compile(r"^step\s*(\d+)\s*[-\u2014:]\s*(.+)", re.IGNORECASE)
_BULLET_RE = re.compile(r"^[-*•]\s+(.+)")
_LIST_START_RE = re.compile(r"^[\d\-*•]")


@dataclass
class PositionalQuery:
    position: int
    topic: Optional[str] = None


@dataclass
class ListItem:
    position: int
    content: str
    raw_line: str


@dataclass
class ParsedList:
    items: List[ListItem]
    list_type: str


@dataclass
class PositionalResult:
    position: int
    topic: Optional[str] = None
    item: Optional[str] = None
    source_title: Optional[str] = None
    lists: List[ParsedList] = field(default_factory=list)


def _to_position(token: str) -> int:
    return int(token) if token.isdigit() else ORDINAL_WORDS[token.lower()]


def detect_positional_query(question: str) -> Optional[PositionalQuery]:
    q = question.lower().strip()
    for pattern in _PATTERNS:
        match = pattern.search(q)
        if match:
            topic = (match.group(2) or "").strip() or None
            return PositionalQuery(position=_to_position(match.group(1)), topic=topic)
    return None


def parse_numbered_lists(content: str) -> List[ParsedList]:
    lists: List[ParsedList] = []
    current: List[ListItem] = []
    current_type = "numbered"
    in_list = False

    def flush() -> None:
        if len(current) >= 2:
            lists.append(ParsedList(items=list(current), list_type=current_type))

    for raw in (content or "").splitlines():
        line = raw.strip()
        if not line:
            flush()
            current = []
            in_list = False
            continue

        numbered = _NUMBERED_RE.match(line)
        if numbered:
            current.append(ListItem(int(numbered.group(1)), numbered.group(2).strip(), line))
            current_type, in_list = "numbered", True
            continue

        step = _STEP_RE.match(line)
        if step:
            current.append(ListItem(int(step.group(1)), step.group(2).strip(), line))
            current_type, in_list = "step", True
            continue

        bullet = _BULLET_RE.match(line)
        if bullet and (not in_list or current_type == "bullet"):
            current.append(ListItem(len(current) + 1, bullet.group(1).strip(), line))
            current_type, in_list = "bullet", True
            continue

        # Wrapped text continues the previous item.
        if in_list and current and not _LIST_START_RE.match(line):
            current[-1].content += " " + line

    flush()
    return lists


def extract_positional_item(lists: Sequence[ParsedList], position: int) -> Optional[ListItem]:
    for parsed in lists:
        for item in parsed.items:
            if item.position == position:
                return item
    return None


def handle_positional_query(question: str, notes: Sequence[Note]) -> Optional[PositionalResult]:
    """None for ordinary questions; otherwise the best matching list item, if any."""
    query = detect_positional_query(question)
    if query is None:
        return None

    result = PositionalResult(position=query.position, topic=query.topic)
    best_score = 0.0
    topic_words = [w for w in (query.topic or "").lower().split() if len(w) > 2]

    for note in notes:
        lists = parse_numbered_lists(note.content)
        if not lists:
            continue
        item = extract_positional_item(lists, query.position)
        if item is None:
            continue

        text = f"{note.title} {note.content}".lower()
        score = 1.0 + 2.0 * sum(1 for w in topic_words if w in text)
        score += 0.1 * sum(len(l.items) for l in lists)

        if score > best_score:
            best_score = score
            result.item = item.content
            result.source_title = note.title
            result.lists = lists

    return result


def positional_context(result: Optional[PositionalResult]) -> str:
    if result is None or not result.item:
        return ""

    listing = []
    for parsed in result.lists:
        listing.append(f"[{parsed.list_type.upper()} LIST - {len(parsed.items)} items]")
        listing.extend(f"  {item.position}. {item.content}" for item in parsed.items)
        listing.append("")

    return (
        "*** POSITIONAL DATA (use this exact answer) ***\n"
        f"User is asking for: Item #{result.position}\n"
        f'EXACT ANSWER FROM NOTE: "{result.item}"\n'
        f'SOURCE NOTE: "{result.source_title}"\n\n'
        "FULL LIST FOR CONTEXT:\n"
        + "\n".join(listing)
        + "\n*** Do not pick a different item. ***"
    )


__all__ = [
    "ListItem",
    "ParsedList",
    "PositionalQuery",
    "PositionalResult",
    "detect_positional_query",
    "extract_positional_item",
    "handle_positional_query",
    "parse_numbered_lists",
    "positional_context",
]
