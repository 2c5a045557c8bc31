"""Shared fixtures: a scripted completion client and small note corpora."""

from __future__ import annotations

import json
import threading
from datetime import datetime, timedelta, timezone
from typing import Dict, List

import pytest

from grounded_notes_assistant.config import AppConfig
from grounded_notes_assistant.embedding import initialize_embeddings
from grounded_notes_assistant.errors import LLMServiceError
from grounded_notes_assistant.llm import CompletionClient
from grounded_notes_assistant.models import Note

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


class FakeClient(CompletionClient):
    """Replies per call site (``purpose``); unscripted call sites fail like a dead service.

    A scripted value may be a string, a dict/list (sent back as JSON), an
    exception instance (raised) or a list of such values consumed in order
    when wrapped in ``FakeClient.sequence``.
    """

    def __init__(self, responses: Dict[str, object] | None = None) -> None:
        self.responses: Dict[str, object] = dict(responses or {})
        self.calls: List[dict] = []
        self._lock = threading.Lock()

    @staticmethod
    def sequence(*values: object) -> "_Sequence":
        return _Sequence(values)

    def purposes(self) -> List[str]:
        return [c["purpose"] for c in self.calls]

    def messages_for(self, purpose: str) -> List[dict]:
        return next(c["messages"] for c in self.calls if c["purpose"] == purpose)

    def _chat(self, messages, json_mode, purpose):
        with self._lock:
            self.calls.append({"purpose": purpose, "messages": list(messages), "json_mode": json_mode})
            reply = self.responses.get(purpose)
            if isinstance(reply, _Sequence):
                reply = reply.next()

        if reply is None:
            raise LLMServiceError(f"no scripted reply for {purpose}")
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, (dict, list)):
            return json.dumps(reply)
        return str(reply)


class _Sequence:
    def __init__(self, values) -> None:
        self.values = list(values)

    def next(self):
        return self.values.pop(0) if self.values else None


@pytest.fixture
def cfg() -> AppConfig:
    return AppConfig()


@pytest.fixture
def fake_client() -> FakeClient:
    return FakeClient()


def make_note(note_id: str, title: str, content: str, tags=None, days_old: float = 60, private: bool = False) -> Note:
    return Note(
        id=note_id,
        title=title,
        content=content,
        tags=list(tags or []),
        is_private=private,
        updated_at=NOW - timedelta(days=days_old),
    )


@pytest.fixture
def invoice_notes() -> List[Note]:
    notes = [
        make_note("1", "Grocery list", "Milk, eggs, bread and coffee beans for the week."),
        make_note(
            "2",
            "Billing",
            "Invoice from ACME for the March consulting work. Total due: 420 EUR by April 15.",
            tags=["fileWork", "finance"],
        ),
        make_note("3", "Trip ideas", "Lisbon in spring, hiking in the Dolomites, a weekend in Porto."),
    ]
    return initialize_embeddings(notes)
