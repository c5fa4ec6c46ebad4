"""Tests for the error taxonomy and classifier."""

import asyncio
import json

import httpx
import pytest
from google.genai import errors as genai_errors

from partstream.errors import (
    AuthenticationError,
    ContentBlockedError,
    ContentPolicyError,
    ErrorKind,
    GenerationCancelled,
    GenerationError,
    InvalidRequestError,
    NetworkError,
    NotFoundError,
    ParseError,
    PermissionDeniedError,
    RateLimitedError,
    ResponseFormatError,
    ServerError,
    ServiceUnavailableError,
    UnsupportedFeatureError,
    UpstreamError,
    classify_error,
    raise_classified,
)


@pytest.mark.parametrize(
    ("status_code", "expected"),
    [
        (400, InvalidRequestError),
        (401, AuthenticationError),
        (403, PermissionDeniedError),
        (404, NotFoundError),
        (429, RateLimitedError),
        (500, ServerError),
        (502, ServerError),
        (503, ServiceUnavailableError),
        (418, InvalidRequestError),
    ],
)
def test_status_codes_map_to_kinds(status_code, expected):
    error = classify_error(UpstreamError(status_code, "boom"))

    assert type(error) is expected
    assert str(status_code) in error.message


def test_status_name_used_when_code_missing():
    error = classify_error(UpstreamError(None, "quota", status="RESOURCE_EXHAUSTED"))

    assert isinstance(error, RateLimitedError)


def test_thinking_hint_wins_over_status():
    detail = {"message": "thinking_config.include_thoughts is only enabled when thinking is enabled"}

    error = classify_error(UpstreamError(400, detail))

    assert isinstance(error, UnsupportedFeatureError)
    assert error.kind is ErrorKind.UNSUPPORTED_FEATURE


def test_invalid_key_message_is_authentication():
    error = classify_error(UpstreamError(400, {"message": "API key not valid. Please pass a valid API key."}))

    assert isinstance(error, AuthenticationError)


def test_safety_bad_request_is_content_policy():
    error = classify_error(UpstreamError(400, "Request blocked by safety filters"))

    assert isinstance(error, ContentPolicyError)


def test_sdk_api_error_is_classified():
    exc = genai_errors.APIError(
        429, {"error": {"code": 429, "message": "quota", "status": "RESOURCE_EXHAUSTED"}}
    )

    error = classify_error(exc)

    assert isinstance(error, RateLimitedError)
    assert error.cause is exc


def test_httpx_status_error_is_classified():
    request = httpx.Request("POST", "https://example.test/v1beta/models/m:generateContent")
    response = httpx.Response(404, request=request, text="not here")
    exc = httpx.HTTPStatusError("404", request=request, response=response)

    assert isinstance(classify_error(exc), NotFoundError)


def test_transport_errors_are_network_errors():
    request = httpx.Request("GET", "https://example.test")

    assert isinstance(classify_error(httpx.ConnectError("refused", request=request)), NetworkError)
    assert isinstance(classify_error(TimeoutError()), NetworkError)


def test_blocked_content_keeps_reason():
    error = classify_error(ContentBlockedError("IMAGE_SAFETY"))

    assert isinstance(error, ContentPolicyError)
    assert "IMAGE_SAFETY" in error.message


def test_parse_failures():
    assert isinstance(classify_error(ResponseFormatError("bad")), ParseError)
    with pytest.raises(json.JSONDecodeError) as excinfo:
        json.loads("{")
    assert isinstance(classify_error(excinfo.value), ParseError)


def test_cancellation_is_not_a_generation_error():
    error = classify_error(asyncio.CancelledError())

    assert isinstance(error, GenerationCancelled)
    assert not isinstance(error, GenerationError)
    assert error.kind is ErrorKind.CANCELLED


def test_message_fallback():
    assert isinstance(classify_error(RuntimeError("upstream said 503")), ServiceUnavailableError)
    assert isinstance(classify_error(RuntimeError("Failed to fetch")), NetworkError)

    error = classify_error(RuntimeError("something odd"))
    assert isinstance(error, ServerError)
    assert "something odd" in error.message


def test_engine_errors_pass_through():
    original = RateLimitedError()

    assert classify_error(original) is original


def test_raise_classified_chains_cause():
    cause = UpstreamError(401, "nope")

    with pytest.raises(AuthenticationError) as excinfo:
        raise_classified(cause)

    assert excinfo.value.__cause__ is cause
    assert excinfo.value.cause is cause
