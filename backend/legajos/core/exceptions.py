"""
Legajos Toolkit Exceptions

Error taxonomy for remote data loading.
Transient errors are retried, terminal and cancellation errors are not.
"""

from typing import Optional, Any, Dict


class LegajosError(Exception):
    """Base exception for toolkit errors.

    Carries a stable error code and structured details so callers can
    branch and log without parsing the message.
    """

    name = "LegajosError"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class RemoteError(LegajosError):
    """Raised when a remote fetch fails."""

    name = "RemoteError"

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        url: Optional[str] = None,
        error_code: str = "REMOTE_ERROR",
        original_error: Optional[BaseException] = None,
    ):
        details: Dict[str, Any] = {}
        if status is not None:
            details["status"] = status
        if url:
            details["url"] = url
        if original_error is not None:
            details["original_error"] = str(original_error)
            details["original_error_type"] = type(original_error).__name__

        super().__init__(message=message, error_code=error_code, details=details)
        self.status = status
        self.url = url
        if original_error is not None:
            self.__cause__ = original_error


class TransientRemoteError(RemoteError):
    """Network, timeout, rate limit or 5xx failure. Safe to retry."""

    name = "TransientRemoteError"

    def __init__(
        self,
        message: str = "Transient remote failure",
        status: Optional[int] = None,
        url: Optional[str] = None,
        original_error: Optional[BaseException] = None,
    ):
        super().__init__(
            message=message,
            status=status,
            url=url,
            error_code="REMOTE_TRANSIENT_ERROR",
            original_error=original_error,
        )


class TerminalRemoteError(RemoteError):
    """4xx or malformed response. Retrying will not help."""

    name = "TerminalRemoteError"

    def __init__(
        self,
        message: str = "Remote request rejected",
        status: Optional[int] = None,
        url: Optional[str] = None,
        original_error: Optional[BaseException] = None,
    ):
        super().__init__(
            message=message,
            status=status,
            url=url,
            error_code="REMOTE_TERMINAL_ERROR",
            original_error=original_error,
        )


class RemoteNotFoundError(TerminalRemoteError):
    """HTTP 404 on a sub-resource.

    The coordinator treats this as an empty result, not a failure.
    """

    name = "RemoteNotFoundError"

    def __init__(self, url: Optional[str] = None):
        super().__init__(message="Resource not found", status=404, url=url)
        self.error_code = "REMOTE_NOT_FOUND"


class CancellationError(LegajosError):
    """Raised when an in-flight operation is aborted.

    Never retried, regardless of the retry predicate.
    """

    name = "AbortError"

    def __init__(
        self, message: str = "Operation aborted", reason: Optional[str] = None
    ):
        details = {"reason": reason} if reason else {}
        super().__init__(message=message, error_code="ABORTED", details=details)
        self.reason = reason


def is_abort_error(error: BaseException) -> bool:
    """Check whether an error is abort-class (by type or by name)."""
    return isinstance(error, CancellationError) or (
        getattr(error, "name", None) == "AbortError"
    )
