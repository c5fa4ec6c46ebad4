"""Detect which wire shape a backend response uses."""

from __future__ import annotations

import enum
import json
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from ..errors import ResponseFormatError
from .markdown_images import contains_markdown_image
from .sse import looks_like_sse


logger = logging.getLogger(__name__)

_SAMPLE_CHARS = 200


class ResponseFormat(str, enum.Enum):
    OFFICIAL = "official"
    SSE_TEXT = "sse_text"
    CUSTOM_JSON = "custom_json"
    MARKDOWN_TEXT = "markdown_text"


@dataclass(frozen=True)
class ClassifiedResponse:
    """A response tagged with its format and the payload that matched."""

    format: ResponseFormat
    text: Optional[str] = None
    document: Optional[Mapping[str, Any]] = None


def is_custom_json(document: Any) -> bool:
    if not isinstance(document, Mapping):
        return False
    body = document.get("body")
    if isinstance(body, Mapping) and isinstance(body.get("content"), str):
        return True
    output = document.get("modelOutput")
    return isinstance(output, Mapping) and isinstance(output.get("text"), str)


def is_official_response(document: Any) -> bool:
    if not isinstance(document, Mapping):
        return False
    candidates = document.get("candidates")
    if not isinstance(candidates, list) or not candidates:
        return False
    first = candidates[0]
    if not isinstance(first, Mapping):
        return False
    content = first.get("content")
    return isinstance(content, Mapping) and isinstance(content.get("parts"), list)


def _classify_document(
    document: Any, text: Optional[str]
) -> Optional[ClassifiedResponse]:
    if is_custom_json(document):
        return ClassifiedResponse(ResponseFormat.CUSTOM_JSON, text=text, document=document)
    if is_official_response(document):
        return ClassifiedResponse(ResponseFormat.OFFICIAL, text=text, document=document)
    serialized = json.dumps(document, ensure_ascii=False, default=str)
    if contains_markdown_image(serialized):
        logger.debug("JSON response matched no known shape; using embedded image links")
        return ClassifiedResponse(ResponseFormat.MARKDOWN_TEXT, text=serialized)
    return None


def classify_response(
    raw: str | bytes | None = None,
    document: Any = None,
) -> ClassifiedResponse:
    """Classify a raw body and/or an already-parsed JSON document.

    SSE detection runs before any JSON parsing because an event stream is not
    valid JSON as a whole. Raises :class:`ResponseFormatError` when nothing
    matches.
    """

    if document is not None:
        classified = _classify_document(document, None)
        if classified is None:
            raise ResponseFormatError(
                "Unrecognised response document",
                sample=json.dumps(document, default=str)[:_SAMPLE_CHARS],
            )
        return classified

    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    text = raw or ""

    if looks_like_sse(text):
        return ClassifiedResponse(ResponseFormat.SSE_TEXT, text=text)

    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        if contains_markdown_image(text):
            return ClassifiedResponse(ResponseFormat.MARKDOWN_TEXT, text=text)
        raise ResponseFormatError(
            f"Unable to parse response: {text[:_SAMPLE_CHARS]}",
            sample=text[:_SAMPLE_CHARS],
        ) from None

    classified = _classify_document(parsed, text)
    if classified is None:
        raise ResponseFormatError(
            "Unrecognised response format", sample=text[:_SAMPLE_CHARS]
        )
    return classified


__all__ = [
    "ClassifiedResponse",
    "ResponseFormat",
    "classify_response",
    "is_custom_json",
    "is_official_response",
]
