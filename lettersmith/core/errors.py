from __future__ import annotations

from typing import Optional

EXCERPT_CHARS = 500


def excerpt(text: Optional[str], limit: int = EXCERPT_CHARS) -> str:
    if not text:
        return ""
    return text[:limit]


class LetterError(RuntimeError):
    """Base class for every failure surfaced by letter generation."""

    retryable = False


class ConfigurationError(LetterError):
    pass


class TemplateError(LetterError):
    pass


class TransportError(LetterError):
    retryable = True

    def __init__(self, message: str, *, timeout: bool = False) -> None:
        super().__init__(message)
        self.timeout = timeout


class ProviderError(LetterError):
    def __init__(self, message: str, *, status_code: Optional[int] = None, body: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class RateLimitError(ProviderError):
    retryable = True


class ParseError(LetterError):
    def __init__(self, message: str, *, excerpt: str = "") -> None:
        super().__init__(message)
        self.excerpt = excerpt


class ValidationError(LetterError):
    UNKNOWN_ID = "unknown_id"
    EMPTY_BODY = "empty_body"
    NAME_MISMATCH = "name_mismatch"
    CONFLICTING_MARKERS = "conflicting_markers"

    def __init__(self, message: str, *, reason: str, representative_id: Optional[int] = None) -> None:
        super().__init__(message)
        self.reason = reason
        self.representative_id = representative_id


class GenerationCancelled(LetterError):
    pass
