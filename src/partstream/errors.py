"""Failure causes raised by the engine and the user-facing error taxonomy.

Internal stages raise the low-level causes defined at the top of this module
(or let transport exceptions propagate). :func:`classify_error` is the single
place where those causes become one of the closed :class:`ErrorKind` values.
"""

from __future__ import annotations

import asyncio
import enum
import json
import re
from typing import Any, Mapping

import httpx
from google.genai import errors as genai_errors


class UpstreamError(Exception):
    """Wrap non-success responses returned by a generation backend."""

    def __init__(
        self,
        status_code: int | None,
        detail: Any,
        *,
        status: str | None = None,
    ):
        super().__init__(str(detail))
        self.status_code = status_code
        self.detail = detail
        self.status = status


class ResponseFormatError(ValueError):
    """Raised when a response body matches none of the known wire shapes."""

    def __init__(self, message: str, *, sample: str | None = None):
        super().__init__(message)
        self.sample = sample


class ContentBlockedError(Exception):
    """Raised when the backend refuses to produce content for safety reasons."""

    def __init__(self, reason: str):
        super().__init__(f"Content blocked: {reason}")
        self.reason = reason


class ErrorKind(str, enum.Enum):
    AUTHENTICATION = "authentication"
    PERMISSION = "permission"
    INVALID_REQUEST = "invalid_request"
    RATE_LIMITED = "rate_limited"
    SERVICE_UNAVAILABLE = "service_unavailable"
    SERVER = "server"
    NETWORK = "network"
    CONTENT_POLICY = "content_policy"
    UNSUPPORTED_FEATURE = "unsupported_feature"
    PARSE = "parse"
    NOT_FOUND = "not_found"
    CANCELLED = "cancelled"


class EngineError(Exception):
    """Base for everything :func:`classify_error` can return."""

    kind: ErrorKind
    default_message = "The request failed."

    def __init__(self, message: str | None = None, *, cause: BaseException | None = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.cause = cause

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(kind={self.kind.value!r}, message={self.message!r})"


class GenerationError(EngineError):
    """A request that broke. Never used for deliberate cancellation."""

    kind = ErrorKind.SERVER


class AuthenticationError(GenerationError):
    kind = ErrorKind.AUTHENTICATION
    default_message = "The API key is invalid or has expired. Check your settings."


class PermissionDeniedError(GenerationError):
    kind = ErrorKind.PERMISSION
    default_message = (
        "Access was denied. Check your network route or the API key permissions."
    )


class InvalidRequestError(GenerationError):
    kind = ErrorKind.INVALID_REQUEST
    default_message = "The request parameters are invalid. Check your settings or prompt."


class RateLimitedError(GenerationError):
    kind = ErrorKind.RATE_LIMITED
    default_message = "Too many requests. Please wait a moment and try again."


class ServiceUnavailableError(GenerationError):
    kind = ErrorKind.SERVICE_UNAVAILABLE
    default_message = "The service is temporarily unavailable. Please try again later."


class ServerError(GenerationError):
    kind = ErrorKind.SERVER
    default_message = "The server hit an internal error. Please try again later."


class NetworkError(GenerationError):
    kind = ErrorKind.NETWORK
    default_message = (
        "The network request failed. The connection may be down or the request "
        "too large (big images or a long history)."
    )


class ContentPolicyError(GenerationError):
    kind = ErrorKind.CONTENT_POLICY
    default_message = "The content was blocked by the safety policy. Try rewording the prompt."


class UnsupportedFeatureError(GenerationError):
    kind = ErrorKind.UNSUPPORTED_FEATURE
    default_message = (
        "The selected model does not support streaming its thoughts. Disable "
        "thought streaming or switch to a thinking model."
    )


class ParseError(GenerationError):
    kind = ErrorKind.PARSE
    default_message = "The response format was not recognised."


class NotFoundError(GenerationError):
    kind = ErrorKind.NOT_FOUND
    default_message = "The requested model or path does not exist."


class GenerationCancelled(EngineError):
    """A deliberate stop requested by the caller."""

    kind = ErrorKind.CANCELLED
    default_message = "Generation was cancelled."


_STATUS_ERRORS: dict[int, type[GenerationError]] = {
    400: InvalidRequestError,
    401: AuthenticationError,
    403: PermissionDeniedError,
    404: NotFoundError,
    429: RateLimitedError,
    503: ServiceUnavailableError,
}

_STATUS_NAME_ERRORS: dict[str, type[GenerationError]] = {
    "INVALID_ARGUMENT": InvalidRequestError,
    "FAILED_PRECONDITION": InvalidRequestError,
    "UNAUTHENTICATED": AuthenticationError,
    "PERMISSION_DENIED": PermissionDeniedError,
    "NOT_FOUND": NotFoundError,
    "RESOURCE_EXHAUSTED": RateLimitedError,
    "UNAVAILABLE": ServiceUnavailableError,
    "INTERNAL": ServerError,
}

_THINKING_HINTS = ("thinking_config.include_thoughts", "thinking is enabled")
_INVALID_KEY_HINTS = ("api key not valid", "api_key_invalid")
_SAFETY_HINTS = ("safety", "prohibited_content", "blocked")

# Unstructured error text only; consulted after status codes are exhausted.
_FALLBACK_CODE_PATTERN = re.compile(r"\b(400|401|403|404|429|500|503)\b")
_NETWORK_HINTS = ("failed to fetch", "networkerror", "connection", "timed out")


def _detail_text(detail: Any) -> str:
    if detail is None:
        return ""
    if isinstance(detail, Mapping):
        fragments = [
            str(value) for value in detail.values() if isinstance(value, (str, int))
        ]
        nested = detail.get("details")
        if isinstance(nested, list):
            fragments.append(json.dumps(nested, default=str))
        return " ".join(fragments)
    return str(detail)


def _refine_by_message(
    error_cls: type[GenerationError] | None, message: str
) -> type[GenerationError] | None:
    lowered = message.lower()
    if any(hint in lowered for hint in _THINKING_HINTS):
        return UnsupportedFeatureError
    if any(hint in lowered for hint in _INVALID_KEY_HINTS):
        return AuthenticationError
    if error_cls in (None, InvalidRequestError) and "safety" in lowered:
        return ContentPolicyError
    return error_cls


def _class_for_status(status_code: int | None, status_name: str | None) -> type[GenerationError] | None:
    if status_code is not None:
        error_cls = _STATUS_ERRORS.get(status_code)
        if error_cls is not None:
            return error_cls
        if 500 <= status_code < 600:
            return ServerError
        if 400 <= status_code < 500:
            return InvalidRequestError
    if status_name:
        return _STATUS_NAME_ERRORS.get(status_name.upper())
    return None


def _from_structured(
    exc: BaseException,
    status_code: int | None,
    status_name: str | None,
    message: str,
) -> GenerationError | None:
    error_cls = _refine_by_message(_class_for_status(status_code, status_name), message)
    if error_cls is None:
        return None
    suffix = f" ({status_code})" if status_code else ""
    return error_cls(f"{error_cls.default_message}{suffix}", cause=exc)


def _from_message(exc: BaseException, message: str) -> GenerationError:
    lowered = message.lower()
    if any(hint in lowered for hint in _THINKING_HINTS):
        return UnsupportedFeatureError(cause=exc)
    if any(hint in lowered for hint in _INVALID_KEY_HINTS):
        return AuthenticationError(cause=exc)
    match = _FALLBACK_CODE_PATTERN.search(message)
    if match:
        error_cls = _class_for_status(int(match.group(1)), None) or ServerError
        return error_cls(cause=exc)
    if any(hint in lowered for hint in _NETWORK_HINTS):
        return NetworkError(cause=exc)
    if any(hint in lowered for hint in _SAFETY_HINTS):
        return ContentPolicyError(cause=exc)
    return ServerError(f"The request failed: {message}" if message else None, cause=exc)


def classify_error(exc: BaseException) -> EngineError:
    """Map any failure raised while generating onto the closed taxonomy.

    The returned error keeps the original exception in ``cause``. This
    function has no side effects; callers decide whether to raise it.
    """

    if isinstance(exc, EngineError):
        return exc
    if isinstance(exc, asyncio.CancelledError):
        return GenerationCancelled(cause=exc)

    if isinstance(exc, UpstreamError):
        message = _detail_text(exc.detail)
        classified = _from_structured(exc, exc.status_code, exc.status, message)
        if classified is not None:
            return classified
        return _from_message(exc, message)

    if isinstance(exc, genai_errors.APIError):
        message = " ".join(
            str(value) for value in (exc.status, exc.message) if value
        )
        classified = _from_structured(exc, exc.code, exc.status, message)
        if classified is not None:
            return classified
        return _from_message(exc, message)

    if isinstance(exc, httpx.HTTPStatusError):
        classified = _from_structured(
            exc, exc.response.status_code, None, exc.response.text
        )
        if classified is not None:
            return classified

    if isinstance(exc, (httpx.TransportError, ConnectionError, TimeoutError)):
        return NetworkError(cause=exc)

    if isinstance(exc, ContentBlockedError):
        return ContentPolicyError(
            f"{ContentPolicyError.default_message} ({exc.reason})", cause=exc
        )

    if isinstance(exc, (ResponseFormatError, json.JSONDecodeError)):
        return ParseError(cause=exc)

    return _from_message(exc, str(exc))


def raise_classified(exc: BaseException) -> None:
    """Raise the classified form of ``exc`` chained to the original."""

    classified = classify_error(exc)
    if classified is exc:
        raise exc
    raise classified from exc


__all__ = [
    "AuthenticationError",
    "ContentBlockedError",
    "ContentPolicyError",
    "EngineError",
    "ErrorKind",
    "GenerationCancelled",
    "GenerationError",
    "InvalidRequestError",
    "NetworkError",
    "NotFoundError",
    "ParseError",
    "PermissionDeniedError",
    "RateLimitedError",
    "ResponseFormatError",
    "ServerError",
    "ServiceUnavailableError",
    "UnsupportedFeatureError",
    "UpstreamError",
    "classify_error",
    "raise_classified",
]
