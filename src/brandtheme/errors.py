"""Error taxonomy surfaced to callers of the extraction pipeline."""

from __future__ import annotations


class ThemeError(Exception):
    """Base class for failures reported to the caller.

    ``message`` is safe to show to an end user. ``retryable`` tells the caller
    whether repeating the same request may succeed.
    """

    code = "THEME_ERROR"
    retryable = False
    suggestion = ""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "error": self.message,
            "code": self.code,
            "retryable": self.retryable,
        }
        if self.suggestion:
            payload["suggestion"] = self.suggestion
        return payload


class InvalidInput(ThemeError):
    """Malformed URL, non-image data or oversized payload."""

    code = "INVALID_INPUT"
    suggestion = "Please use a valid JPEG, PNG, GIF, or WebP image or an http(s) URL"


class SecurityBlocked(ThemeError):
    """The target was rejected by the network guard."""

    code = "SSRF_BLOCKED"
    suggestion = "Please use a publicly accessible URL"


class ExtractionTimeout(ThemeError):
    """DNS, navigation or capture deadline exceeded."""

    code = "EXTRACTION_TIMEOUT"
    retryable = True
    suggestion = "Try again or use a smaller image"


class ExtractionFailed(ThemeError):
    """Decoding or clustering produced no usable color signal."""

    code = "EXTRACTION_FAILED"
    retryable = True
    suggestion = "Try a different image"


class RateLimited(ThemeError):
    """The caller exceeded its extraction quota."""

    code = "RATE_LIMITED"
    retryable = True
    suggestion = "Wait a moment and try again"

    def __init__(self, retry_after: int, message: str = "Too many requests. Please try again later.") -> None:
        super().__init__(message)
        self.retry_after = retry_after

    def to_dict(self) -> dict[str, object]:
        payload = super().to_dict()
        payload["retryAfter"] = self.retry_after
        return payload
