"""Typed error taxonomy and provider failure translation."""

from typing import Any

from google.genai import errors as genai_errors


class GeminiMCPError(Exception):
    """Base class for every error surfaced to the tool layer."""

    def __str__(self) -> str:
        return f"{type(self).__name__}: {super().__str__()}"


class ConfigurationError(GeminiMCPError):
    """A required setting (API key, model name) could not be resolved."""


class InvalidRequestError(GeminiMCPError):
    """Arguments were rejected before any provider call was made."""


class NotFoundError(GeminiMCPError):
    """A chat session or remote resource does not exist."""

    def __init__(self, message: str, resource_id: str | None = None):
        super().__init__(message)
        self.resource_id = resource_id


class SafetyError(GeminiMCPError):
    """Content was blocked or stopped by the provider's safety policy."""

    def __init__(
        self,
        message: str,
        reason: str | None = None,
        safety_ratings: list[dict[str, Any]] | None = None,
    ):
        super().__init__(message)
        self.reason = reason
        self.safety_ratings = safety_ratings or []


class TransportError(GeminiMCPError):
    """Network or SDK level failure. The whole call may be retried."""

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(message)
        self.cause = cause


class UnexpectedResponseShape(GeminiMCPError):
    """The provider returned something the normalizer cannot interpret."""

    def __init__(self, message: str, response: Any = None):
        super().__init__(message)
        self.response = response


def _is_not_found(exc: BaseException) -> bool:
    if isinstance(exc, genai_errors.APIError):
        if exc.code == 404 or exc.status == "NOT_FOUND":
            return True
    # Fallback for transports that only report a message
    return "not found" in str(exc).lower()


def translate_error(exc: BaseException, resource_id: str | None = None) -> GeminiMCPError:
    """Map a raw failure into the typed taxonomy.

    Already-typed errors are returned unchanged. Provider 404s, or messages
    mentioning "not found" when no structured code is available, become
    ``NotFoundError``; everything else becomes ``TransportError``.
    """
    if isinstance(exc, GeminiMCPError):
        return exc
    message = getattr(exc, "message", None) or str(exc) or type(exc).__name__
    if _is_not_found(exc):
        return NotFoundError(message, resource_id=resource_id)
    return TransportError(message, cause=exc)
