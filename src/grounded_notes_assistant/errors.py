from __future__ import annotations


class AssistantError(Exception):
    """Base class for errors raised by the notes assistant."""


class LLMServiceError(AssistantError):
    """Transport failure or non-success response from the completion service."""


class MissingCredentialsError(LLMServiceError):
    """No API key is configured for the completion service."""


class LLMParseError(AssistantError):
    """Structured output was malformed or did not match the expected schema."""

    def __init__(self, message: str, raw: str = "") -> None:
        super().__init__(message)
        self.raw = raw


__all__ = [
    "AssistantError",
    "LLMParseError",
    "LLMServiceError",
    "MissingCredentialsError",
]
