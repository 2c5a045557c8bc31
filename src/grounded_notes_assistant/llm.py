"""Chat-completion client shared by every LLM call site.

All six call sites (planning, expansion, reranking, generation, critique and
rewrite) go through :class:`CompletionClient`. Structured calls name a pydantic
schema and get back a validated instance or an :class:`LLMParseError`, so the
JSON handling lives here rather than at each call site.
"""

from __future__ import annotations

import json
import logging
import re
import time
from typing import Dict, List, Optional, Sequence, Type, TypeVar

from openai import APIError, OpenAI
from pydantic import BaseModel, ValidationError

from .config import LLMSettings
from .errors import LLMParseError, LLMServiceError, MissingCredentialsError

logger = logging.getLogger(__name__)

Message = Dict[str, str]
SchemaT = TypeVar("SchemaT", bound=BaseModel)

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def extract_json(content: str) -> object:
    """Parse a JSON payload, tolerating code fences and surrounding prose."""
    text = _FENCE_RE.sub("", content.strip())
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    start, end = text.find("{"), text.rfind("}")
    if start != -1 and end > start:
        try:
            return json.loads(text[start:end + 1])
        except json.JSONDecodeError as e:
            raise LLMParseError(f"Malformed JSON in completion: {e}", raw=content) from e
    raise LLMParseError("Completion did not contain a JSON object", raw=content)


class CompletionClient:
    """Base client. Subclasses implement :meth:`_chat`."""

    def _chat(self, messages: Sequence[Message], json_mode: bool, purpose: str) -> str:
        raise NotImplementedError

    def complete(self, messages: Sequence[Message], purpose: str = "completion") -> str:
        start = time.time()
        content = self._chat(messages, json_mode=False, purpose=purpose)
        logger.debug("%s completion in %.0f ms", purpose, (time.time() - start) * 1000)
        return content

    def complete_structured(
        self,
        messages: Sequence[Message],
        schema: Type[SchemaT],
        purpose: str = "structured",
    ) -> SchemaT:
        start = time.time()
        content = self._chat(messages, json_mode=True, purpose=purpose)
        logger.debug("%s completion in %.0f ms", purpose, (time.time() - start) * 1000)

        payload = extract_json(content)
        try:
            return schema.model_validate(payload)
        except ValidationError as e:
            raise LLMParseError(
                f"{purpose} response does not match {schema.__name__}: {e}", raw=content
            ) from e


class OpenAIChatClient(CompletionClient):
    """OpenAI-compatible chat completions (Groq by default)."""

    def __init__(self, settings: Optional[LLMSettings] = None, api_key: Optional[str] = None) -> None:
        self.settings = settings or LLMSettings()
        self._api_key = api_key or self.settings.resolve_api_key()
        self._client: Optional[OpenAI] = None

    @property
    def has_credentials(self) -> bool:
        return bool(self._api_key)

    def _get_client(self) -> OpenAI:
        if not self._api_key:
            names = " or ".join(self.settings.api_key_env)
            raise MissingCredentialsError(f"Missing API key (set {names})")
        if self._client is None:
            self._client = OpenAI(
                api_key=self._api_key,
                base_url=self.settings.base_url,
                timeout=self.settings.timeout_seconds,
                max_retries=self.settings.max_retries,
            )
        return self._client

    def _chat(self, messages: Sequence[Message], json_mode: bool, purpose: str) -> str:
        client = self._get_client()
        kwargs = {}
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}
        try:
            response = client.chat.completions.create(
                model=self.settings.model,
                messages=list(messages),
                temperature=self.settings.temperature,
                **kwargs,
            )
        except APIError as e:
            logger.error("LLM %s call failed: %s", purpose, e)
            raise LLMServiceError(str(getattr(e, "message", None) or e)) from e

        if not response.choices:
            raise LLMServiceError(f"No choices returned for {purpose}")
        return response.choices[0].message.content or ""


def create_client(settings: Optional[LLMSettings] = None) -> OpenAIChatClient:
    return OpenAIChatClient(settings)


def history_messages(turns: Sequence, limit: int) -> List[Message]:
    if limit <= 0:
        return []
    return [t.to_message() for t in list(turns)[-limit:]]


__all__ = [
    "CompletionClient",
    "Message",
    "OpenAIChatClient",
    "create_client",
    "extract_json",
    "history_messages",
]
