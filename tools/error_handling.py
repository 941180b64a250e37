"""
Error handling utilities for the Code Smell Detector & Refactorer.

This module provides:
- The ErrorKind taxonomy shared by every component
- SmellDetectorError, the typed exception carrying an ErrorKind
- HTTP status classification for the completion endpoint
- Result, the tagged success/failure value returned by the coordinator
"""

from enum import Enum
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict

T = TypeVar('T')


class ErrorKind(str, Enum):
    """Every recoverable failure the core can report."""
    MISSING_CREDENTIAL = "missing_credential"
    BUSY = "busy"
    NETWORK_ERROR = "network_error"
    TIMEOUT = "timeout"
    UNAUTHORIZED = "unauthorized"
    BAD_CREDENTIAL = "bad_credential"
    RATE_LIMITED = "rate_limited"
    ENDPOINT_ERROR = "endpoint_error"
    MALFORMED_ENVELOPE = "malformed_envelope"
    PARSE_ERROR = "parse_error"
    NO_ANALYSIS_YET = "no_analysis_yet"


ERROR_MESSAGES = {
    ErrorKind.MISSING_CREDENTIAL: (
        "Invalid or missing API key. Set GEMINI_API_KEY or add it to config.json."
    ),
    ErrorKind.BUSY: "A request is already in progress. Please wait for it to finish.",
    ErrorKind.NETWORK_ERROR: "Network error. Please check your connection.",
    ErrorKind.TIMEOUT: "Request timed out. Please try again.",
    ErrorKind.BAD_CREDENTIAL: "Invalid or missing API key.",
    ErrorKind.UNAUTHORIZED: "API key is unauthorised. Check that your key is valid and active.",
    ErrorKind.RATE_LIMITED: "API rate limit exceeded. Please wait a moment and try again.",
    ErrorKind.ENDPOINT_ERROR: "Completion endpoint error (HTTP {status_code}). Please try again.",
    ErrorKind.MALFORMED_ENVELOPE: (
        "Malformed response from the completion endpoint — no content returned."
    ),
    ErrorKind.PARSE_ERROR: "Malformed response. Could not parse the analysis result.",
    ErrorKind.NO_ANALYSIS_YET: "Analyze some code before asking follow-up questions.",
}


class SmellDetectorError(Exception):
    """
    Raised for every recoverable failure of the core.

    The human-readable message is derived from the kind, so callers can show
    ``str(error)`` directly. ``detail`` carries diagnostic context for logs and
    is never shown to users.
    """

    def __init__(
        self,
        kind: ErrorKind,
        status_code: Optional[int] = None,
        detail: Optional[str] = None
    ):
        """
        Initialize the error.

        Args:
            kind: Error classification
            status_code: HTTP status code (EndpointError only)
            detail: Optional diagnostic detail
        """
        self.kind = kind
        self.status_code = status_code
        self.detail = detail
        super().__init__(self.message)

    @property
    def message(self) -> str:
        """Human-readable message for this error."""
        return ERROR_MESSAGES[self.kind].format(status_code=self.status_code)

    def __repr__(self) -> str:
        return f"SmellDetectorError(kind={self.kind.value!r}, status_code={self.status_code!r})"


class ConfigurationError(Exception):
    """Raised when the configuration file cannot be read or parsed."""
    pass


class InvalidTransition(Exception):
    """Raised when the session state machine receives an event its phase does not accept."""

    def __init__(self, phase: Any, event: str):
        super().__init__(f"Event '{event}' is not allowed in phase '{phase}'")
        self.phase = phase
        self.event = event


def classify_status(status_code: int) -> Optional[SmellDetectorError]:
    """
    Classify an HTTP status code returned by the completion endpoint.

    Args:
        status_code: HTTP status code

    Returns:
        The matching error, or None for 2xx statuses
    """
    if 200 <= status_code < 300:
        return None
    if status_code == 400:
        return SmellDetectorError(ErrorKind.BAD_CREDENTIAL, status_code=status_code)
    if status_code in (401, 403):
        return SmellDetectorError(ErrorKind.UNAUTHORIZED, status_code=status_code)
    if status_code == 429:
        return SmellDetectorError(ErrorKind.RATE_LIMITED, status_code=status_code)
    return SmellDetectorError(ErrorKind.ENDPOINT_ERROR, status_code=status_code)


class Result(BaseModel, Generic[T]):
    """Tagged outcome of a coordinator operation."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    value: Optional[T] = None
    error: Optional[SmellDetectorError] = None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: SmellDetectorError) -> "Result[T]":
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def error_kind(self) -> Optional[ErrorKind]:
        return self.error.kind if self.error is not None else None

    def unwrap(self) -> T:
        """
        Return the success value.

        Raises:
            SmellDetectorError: If the result is a failure
        """
        if self.error is not None:
            raise self.error
        return self.value
