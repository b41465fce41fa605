"""Error taxonomy for the chat completion provider.

Every failure the client can observe is folded into a ``CompletionError``
carrying a semantic code, the HTTP-style status it came from and optional
details. Callers decide what to do from ``is_retryable()`` rather than from
the exception type.
"""

from __future__ import annotations

import enum
from typing import Any, Optional


class CompletionErrorCode(str, enum.Enum):
    MISSING_API_KEY = "MISSING_API_KEY"
    INVALID_REQUEST = "INVALID_REQUEST"
    AUTHENTICATION_ERROR = "AUTHENTICATION_ERROR"
    INSUFFICIENT_CREDITS = "INSUFFICIENT_CREDITS"
    NOT_FOUND = "NOT_FOUND"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    SERVER_ERROR = "SERVER_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    TIMEOUT_ERROR = "TIMEOUT_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"
    PARSE_ERROR = "PARSE_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    API_ERROR = "API_ERROR"


STATUS_CODE_MAP: dict[int, CompletionErrorCode] = {
    400: CompletionErrorCode.INVALID_REQUEST,
    401: CompletionErrorCode.AUTHENTICATION_ERROR,
    402: CompletionErrorCode.INSUFFICIENT_CREDITS,
    403: CompletionErrorCode.AUTHENTICATION_ERROR,
    404: CompletionErrorCode.NOT_FOUND,
    429: CompletionErrorCode.RATE_LIMIT_EXCEEDED,
    500: CompletionErrorCode.SERVER_ERROR,
    502: CompletionErrorCode.SERVER_ERROR,
    503: CompletionErrorCode.SERVICE_UNAVAILABLE,
    504: CompletionErrorCode.TIMEOUT_ERROR,
}

RETRYABLE_CODES = frozenset(
    {
        CompletionErrorCode.TIMEOUT_ERROR,
        CompletionErrorCode.RATE_LIMIT_EXCEEDED,
        CompletionErrorCode.SERVER_ERROR,
        CompletionErrorCode.SERVICE_UNAVAILABLE,
        CompletionErrorCode.NETWORK_ERROR,
    }
)

USER_MESSAGES: dict[CompletionErrorCode, str] = {
    CompletionErrorCode.MISSING_API_KEY: "Service configuration error. Please contact support.",
    CompletionErrorCode.INVALID_REQUEST: "Invalid request. Please check your input.",
    CompletionErrorCode.AUTHENTICATION_ERROR: "Authentication failed. Please try again.",
    CompletionErrorCode.INSUFFICIENT_CREDITS: "Insufficient credits. Please check your account.",
    CompletionErrorCode.NOT_FOUND: "The requested resource was not found.",
    CompletionErrorCode.RATE_LIMIT_EXCEEDED: "Too many requests. Please try again later.",
    CompletionErrorCode.SERVER_ERROR: "Server error occurred. Please try again.",
    CompletionErrorCode.SERVICE_UNAVAILABLE: "Service is temporarily unavailable. Please try again later.",
    CompletionErrorCode.TIMEOUT_ERROR: "Request timed out. Please try again.",
    CompletionErrorCode.NETWORK_ERROR: "Network error occurred. Please check your connection.",
    CompletionErrorCode.PARSE_ERROR: "Failed to process response. Please try again.",
    CompletionErrorCode.VALIDATION_ERROR: "Response validation failed. Please try again.",
    CompletionErrorCode.API_ERROR: "An unexpected error occurred. Please try again.",
}


def code_for_status(status_code: int) -> CompletionErrorCode:
    return STATUS_CODE_MAP.get(status_code, CompletionErrorCode.API_ERROR)


class CompletionError(Exception):
    """Classified provider failure.

    Normally travels inside a ``CompletionResult``; it only gets raised where
    a caller explicitly asks for it (see ``CompletionResult.unwrap``).
    """

    def __init__(
        self,
        code: CompletionErrorCode,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}

    def is_retryable(self) -> bool:
        return self.code in RETRYABLE_CODES

    def user_message(self) -> str:
        return USER_MESSAGES.get(self.code, "An unexpected error occurred.")

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code.value,
            "message": self.message,
            "status_code": self.status_code,
            "details": self.details,
            "retryable": self.is_retryable(),
        }

    def __repr__(self) -> str:
        return f"CompletionError(code={self.code.value!r}, status_code={self.status_code}, message={self.message!r})"


__all__ = [
    "CompletionErrorCode",
    "CompletionError",
    "STATUS_CODE_MAP",
    "RETRYABLE_CODES",
    "code_for_status",
]
