"""
Custom exception classes for the pipeline.

Every error carries a machine-readable code, an HTTP status mapping for
the operator endpoints, and a ``retriable`` flag. The flag is set where
the error is raised; the channel consumer acknowledges or re-delivers a
message based on it alone.
"""

from typing import Any


class AppException(Exception):
    """
    Base exception for all application errors.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code for client handling
        status_code: HTTP status code to return
        details: Additional error context
        retriable: Whether re-delivering the message may succeed
    """

    retriable: bool = True

    def __init__(
        self,
        message: str,
        error_code: str = "APP_ERROR",
        status_code: int = 500,
        details: dict[str, Any] | None = None,
        retriable: bool | None = None,
    ) -> None:
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        if retriable is not None:
            self.retriable = retriable
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API response."""
        return {
            "error": {
                "code": self.error_code,
                "message": self.message,
                "details": self.details,
            }
        }


# Permanent failures: the message is acknowledged and dropped.
class PermanentError(AppException):
    """Base class for failures that re-delivery cannot fix."""

    retriable = False


class MalformedMessageError(PermanentError):
    """Raised when a channel message body cannot be parsed."""

    def __init__(self, message: str = "Malformed message", details: dict[str, Any] | None = None) -> None:
        super().__init__(message, "MALFORMED_MESSAGE", 422, details)


class SchemaValidationError(PermanentError):
    """Raised when a competition record fails the schema gate."""

    def __init__(
        self,
        message: str = "Validation failed",
        field_errors: dict[str, list[str]] | None = None,
    ) -> None:
        super().__init__(message, "VALIDATION_ERROR", 422, {"field_errors": field_errors or {}})


class NotLiveError(PermanentError):
    """Raised when enrichment reports the listing is no longer running."""

    def __init__(self, competition_id: str, source_url: str | None = None) -> None:
        super().__init__(
            f"Competition '{competition_id}' is not live",
            "NOT_LIVE",
            422,
            {"competition_id": competition_id, "source_url": source_url},
        )


class StoreWriteError(PermanentError):
    """Raised when the store rejects a write for a non-connectivity reason."""

    def __init__(self, message: str = "Store write failed", details: dict[str, Any] | None = None) -> None:
        super().__init__(message, "STORE_WRITE_ERROR", 500, details)


# Transient failures: the message is returned to the channel.
class TransientError(AppException):
    """Base class for failures that may succeed on re-delivery."""

    retriable = True


class FetchError(TransientError):
    """Raised when an HTTP fetch fails or returns a non-2xx status."""

    def __init__(self, url: str, reason: str, status: int | None = None) -> None:
        details: dict[str, Any] = {"url": url, "reason": reason}
        if status is not None:
            details["status"] = status
        super().__init__(f"Failed to fetch {url}: {reason}", "FETCH_ERROR", 502, details)
        self.url = url
        self.status = status


class LLMServiceError(TransientError):
    """Raised when the generative text service call fails."""

    def __init__(self, message: str = "Generative text call failed", details: dict[str, Any] | None = None) -> None:
        super().__init__(f"LLM: {message}", "LLM_SERVICE_ERROR", 503, {"service": "llm", **(details or {})})


class LLMUnavailableError(LLMServiceError):
    """Raised when no API key is configured for the generative text service."""

    def __init__(self) -> None:
        super().__init__("API key not configured")


class StoreUnavailableError(TransientError):
    """Raised when the store cannot be reached or times out."""

    def __init__(self, message: str = "Store unavailable", details: dict[str, Any] | None = None) -> None:
        super().__init__(message, "STORE_UNAVAILABLE", 503, details)


class PublishError(TransientError):
    """Raised when a message cannot be published to a topic."""

    def __init__(self, topic: str, reason: str) -> None:
        super().__init__(
            f"Failed to publish to {topic}: {reason}",
            "PUBLISH_ERROR",
            503,
            {"topic": topic},
        )


def is_retriable(exc: BaseException) -> bool:
    """
    Decide whether a failed message should be re-delivered.

    Untagged exceptions are unexpected and are treated as transient.
    """
    if isinstance(exc, AppException):
        return exc.retriable
    return True
