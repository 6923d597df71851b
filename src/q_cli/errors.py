#!/usr/bin/env python

"""Error types raised by q.

Query failures are tagged with an ``ErrorKind`` and a ``retryable`` flag so
the retry controller can decide what to do without inspecting messages.
"""

import json
from enum import Enum
from typing import Optional


class ErrorKind(Enum):
    NETWORK = "network"
    RATE_LIMIT = "rate_limit"
    INVALID_KEY = "invalid_key"
    STREAM = "stream"
    OTHER = "other"


class QError(Exception):
    """Base class for every error q reports to the user"""


class ConfigError(QError):
    """Configuration could not be read, written or validated"""


class ContextError(QError):
    """Local context (history, directory, file) could not be gathered"""


class ContextNotFoundError(ContextError):
    pass


class ContextPermissionError(ContextError):
    pass


class ContextTooLargeError(ContextError):
    pass


class CacheError(QError):
    """The response cache could not be used"""


class QueryError(QError):
    """A backend call failed"""

    kind = ErrorKind.OTHER
    retryable = False


class NetworkError(QueryError):
    kind = ErrorKind.NETWORK
    retryable = True


class RateLimitError(QueryError):
    kind = ErrorKind.RATE_LIMIT
    retryable = True

    def __init__(self, message: str = "Rate limit exceeded"):
        super().__init__(message)


class InvalidKeyError(QueryError):
    kind = ErrorKind.INVALID_KEY

    def __init__(self, message: str = "Invalid API key"):
        super().__init__(message)


class StreamError(QueryError):
    # Malformed frames and in-band error payloads repeat on every attempt;
    # transport drops mid-stream surface as NetworkError instead
    kind = ErrorKind.STREAM


class ApiError(QueryError):
    """Any other non-success status or unparseable response"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RetryError(QueryError):
    """The last failure of a retried operation, with the attempt count"""

    def __init__(self, last_error: QueryError, attempts: int, reason: Optional[str] = None):
        self.last_error = last_error
        self.attempts = attempts
        suffix = f" ({reason})" if reason else ""
        noun = "attempt" if attempts == 1 else "attempts"
        super().__init__(f"Operation failed after {attempts} {noun}{suffix}: {last_error}")

    @property
    def kind(self) -> ErrorKind:
        return self.last_error.kind


def extract_error_message(body: str) -> str:
    """Pull ``error.message`` out of a vendor JSON error body, else return the body."""
    try:
        payload = json.loads(body)
    except ValueError:
        return body
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str):
            return error
    return body


def error_for_status(status_code: int, body: str = "") -> QueryError:
    """Map a non-2xx HTTP status to a query error"""
    message = extract_error_message(body)
    if status_code == 401:
        return InvalidKeyError(f"Invalid API key: {message}" if message else "Invalid API key")
    if status_code == 429:
        return RateLimitError(f"Rate limit exceeded: {message}" if message else "Rate limit exceeded")
    return ApiError(message or f"HTTP {status_code}", status_code=status_code)
