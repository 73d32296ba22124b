#!/usr/bin/env python3
# MIT License
#
# Copyright (c) 2025 Bolt Forge Contributors
#
# Permission is hereby granted, free of charge, to any person obtaining a copy
# of this software and associated documentation files (the "Software"), to deal
# in the Software without restriction, including without limitation the rights
# to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
# copies of the Software, and to permit persons to whom the Software is
# furnished to do so, subject to the following conditions:
#
# The above copyright notice and this permission notice shall be included in all
# copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
# IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
# FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
# AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
# LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
# OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
# SOFTWARE.


"""
Error taxonomy for the auth session manager.
Typed errors are raised by the provider adapters so callers can branch on
``kind``; the string heuristics below only cover foreign exceptions.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

logger = logging.getLogger(__name__)

NETWORK_ERROR_MESSAGE = "Network connection error. Please check your internet connection."

# Lower-cased fragments that identify connectivity failures
NETWORK_ERROR_PATTERNS = (
    "failed to fetch",
    "network error",
    "network request failed",
    "connection",
    "offline",
)

CREDENTIAL_ERROR_PATTERNS = (
    "invalid credentials",
    "invalid email or password",
    "user_invalid_credentials",
    "wrong password",
)


class ErrorKind(str, Enum):
    """Categories used to decide retry, rate limiting and user messaging."""

    NETWORK = "network"
    UNAUTHENTICATED = "unauthenticated"
    CREDENTIALS = "credentials"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    SERVER = "server"
    OAUTH = "oauth"
    VALIDATION = "validation"
    RATE_LIMITED = "rate_limited"
    UNKNOWN = "unknown"


class AuthError(Exception):
    """Base class for every error surfaced by the auth layer."""

    kind = ErrorKind.UNKNOWN
    default_message = "Authentication operation failed"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        code: Optional[int] = None,
        error_type: Optional[str] = None,
    ):
        self.message = message or self.default_message
        self.code = code
        self.error_type = error_type
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "code": self.code,
            "type": self.error_type,
        }


class NetworkError(AuthError):
    kind = ErrorKind.NETWORK
    default_message = NETWORK_ERROR_MESSAGE


class UnauthenticatedError(AuthError):
    kind = ErrorKind.UNAUTHENTICATED
    default_message = "Authentication required"


class InvalidCredentialsError(AuthError):
    kind = ErrorKind.CREDENTIALS
    default_message = "Invalid credentials. Please check the email and password."


class ConflictError(AuthError):
    kind = ErrorKind.CONFLICT
    default_message = "A record with this information already exists"


class NotFoundError(AuthError):
    kind = ErrorKind.NOT_FOUND
    default_message = "Record not found"


class ServerError(AuthError):
    kind = ErrorKind.SERVER
    default_message = "Server error. Please try again later"


class OAuthError(AuthError):
    kind = ErrorKind.OAUTH
    default_message = "OAuth sign in failed"


class AuthValidationError(AuthError):
    """Local or remote validation rejection with optional per-field messages."""

    kind = ErrorKind.VALIDATION
    default_message = "Invalid request data"

    def __init__(self, message: Optional[str] = None, *, fields: Optional[dict[str, str]] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.fields = dict(fields or {})

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["fields"] = self.fields
        return data


class RateLimitExceededError(AuthError):
    """Raised by the form layer while a lockout is active."""

    kind = ErrorKind.RATE_LIMITED
    default_message = "Too many attempts"

    def __init__(self, remaining_time: int, attempts_remaining: int = 0, message: Optional[str] = None):
        super().__init__(
            message or f"Too many attempts. Please wait {remaining_time} seconds before trying again."
        )
        self.remaining_time = remaining_time
        self.attempts_remaining = attempts_remaining

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update(
            {"remaining_time": self.remaining_time, "attempts_remaining": self.attempts_remaining}
        )
        return data


_ERRORS_BY_KIND: dict[ErrorKind, type[AuthError]] = {
    ErrorKind.NETWORK: NetworkError,
    ErrorKind.UNAUTHENTICATED: UnauthenticatedError,
    ErrorKind.CREDENTIALS: InvalidCredentialsError,
    ErrorKind.CONFLICT: ConflictError,
    ErrorKind.NOT_FOUND: NotFoundError,
    ErrorKind.SERVER: ServerError,
    ErrorKind.OAUTH: OAuthError,
    ErrorKind.VALIDATION: AuthValidationError,
    ErrorKind.UNKNOWN: AuthError,
}


def is_network_error(error: Optional[BaseException]) -> bool:
    """
    Decide whether a failure is a transient connectivity problem.

    Typed errors answer by kind. Anything else falls back to the
    heuristics a browser client relied on: connectivity phrases in the
    message, a zero status code, and generic ``TypeError`` which usually
    means the request could not even be built.
    """
    if error is None:
        return False

    if isinstance(error, AuthError):
        return error.kind is ErrorKind.NETWORK

    if isinstance(error, (ConnectionError, TimeoutError, asyncio.TimeoutError, TypeError)):
        return True

    if getattr(error, "code", None) == 0:
        return True

    message = str(error).lower()
    return any(pattern in message for pattern in NETWORK_ERROR_PATTERNS)


def classify_error(error: BaseException) -> ErrorKind:
    """Map any exception onto the error taxonomy."""
    if isinstance(error, AuthError):
        return error.kind

    if is_network_error(error):
        return ErrorKind.NETWORK

    code = getattr(error, "code", None)
    if isinstance(code, int):
        if code == 400:
            return ErrorKind.VALIDATION
        if code in (401, 403):
            return ErrorKind.UNAUTHENTICATED
        if code == 404:
            return ErrorKind.NOT_FOUND
        if code == 409:
            return ErrorKind.CONFLICT
        if code == 429 or code >= 500:
            return ErrorKind.SERVER

    message = str(error).lower()
    if any(pattern in message for pattern in CREDENTIAL_ERROR_PATTERNS):
        return ErrorKind.CREDENTIALS
    if "oauth" in message:
        return ErrorKind.OAUTH

    return ErrorKind.UNKNOWN


def to_auth_error(error: BaseException) -> AuthError:
    """Return ``error`` unchanged if typed, else wrap it in the matching subclass."""
    if isinstance(error, AuthError):
        return error

    kind = classify_error(error)
    error_cls = _ERRORS_BY_KIND[kind]
    message = NETWORK_ERROR_MESSAGE if kind is ErrorKind.NETWORK else (str(error) or None)
    wrapped = error_cls(message, code=getattr(error, "code", None))
    wrapped.__cause__ = error
    return wrapped


@dataclass(frozen=True)
class ErrorDescriptor:
    """User-facing error stored in the auth state."""

    kind: ErrorKind
    message: str

    @property
    def is_network(self) -> bool:
        return self.kind is ErrorKind.NETWORK

    def to_dict(self) -> dict[str, str]:
        return {"kind": self.kind.value, "message": self.message}


def describe_error(error: BaseException, fallback: str = "Authentication operation failed") -> ErrorDescriptor:
    """
    Build the descriptor shown to users for a failure.

    Args:
        error: The exception that occurred
        fallback: Message used when the error carries none

    Returns:
        ErrorDescriptor with the classified kind and a readable message
    """
    kind = classify_error(error)

    if kind is ErrorKind.NETWORK:
        # Connectivity problems must never read like a credential failure
        return ErrorDescriptor(kind, NETWORK_ERROR_MESSAGE)

    if isinstance(error, AuthError):
        message = error.message
    else:
        message = str(error)

    return ErrorDescriptor(kind, message or fallback)
