"""
Error codes and exceptions for voice-cache.

Every failure that can reach a caller is a VoiceCacheError carrying a
stable code, a human-readable message and optional details. The HTTP
layer maps codes to status codes; the regeneration engine records the
code on failed outcomes instead of raising.

Hierarchy:
    VoiceCacheError
    ├── GenerationFailed          provider did not produce audio
    │   ├── ProviderError         provider rejected or errored
    │   ├── InvalidInputError     request can never succeed as sent
    │   └── SynthesisTimeoutError provider call exceeded the bound
    ├── InvalidArgumentError      bad admin or maintenance argument
    ├── StorageError              store I/O failed
    └── OwnerNotFoundError        directory has no such owner
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class ErrorCode:
    """Stable codes returned in API error bodies and failed outcomes."""
    PROVIDER_ERROR = "PROVIDER_ERROR"     # Provider failed or rejected
    INVALID_INPUT = "INVALID_INPUT"       # Bad text, voice config or argument
    TIMEOUT = "TIMEOUT"                   # Synthesis exceeded its bound
    STORAGE_ERROR = "STORAGE_ERROR"       # Store read/write failure
    NOT_FOUND = "NOT_FOUND"               # Unknown owner or entry
    INTERNAL_ERROR = "INTERNAL_ERROR"     # Unexpected error


class VoiceCacheError(Exception):
    """
    Base exception for voice-cache errors.

    Attributes:
        message: Human-readable error message.
        code: Error code from ErrorCode.
        details: Optional dictionary with additional context.
    """
    def __init__(self, message: str, code: str = ErrorCode.INTERNAL_ERROR, details: Optional[Dict] = None):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the standard error response body."""
        result = {
            "ok": False,
            "error": self.code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


class GenerationFailed(VoiceCacheError):
    """Synthesis did not produce audio. Nothing was written."""
    def __init__(self, message: str, code: str = ErrorCode.PROVIDER_ERROR, details: Optional[Dict] = None):
        super().__init__(message, code, details)


class ProviderError(GenerationFailed):
    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.PROVIDER_ERROR, details)


class InvalidInputError(GenerationFailed):
    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.INVALID_INPUT, details)


class SynthesisTimeoutError(GenerationFailed):
    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.TIMEOUT, details)


class InvalidArgumentError(VoiceCacheError):
    """
    A maintenance or admin argument is out of range.

    Shares the INVALID_INPUT code with InvalidInputError but is not a
    GenerationFailed: no synthesis was attempted.
    """
    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.INVALID_INPUT, details)


class StorageError(VoiceCacheError):
    """Raised when the store cannot read or write durably."""
    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.STORAGE_ERROR, details)


class OwnerNotFoundError(VoiceCacheError):
    def __init__(self, owner_id: str):
        super().__init__(f"unknown owner: {owner_id}", ErrorCode.NOT_FOUND, {"owner_id": owner_id})


# HTTP status for each error code, used by the API layer.
HTTP_STATUS = {
    ErrorCode.INVALID_INPUT: 400,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.TIMEOUT: 504,
    ErrorCode.PROVIDER_ERROR: 502,
    ErrorCode.STORAGE_ERROR: 500,
    ErrorCode.INTERNAL_ERROR: 500,
}
