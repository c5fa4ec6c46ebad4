"""Convert backend-native fragments into canonical :class:`Part` objects."""

from __future__ import annotations

import base64
import logging
from typing import Any, Iterable, Mapping, Optional

from ..errors import ContentBlockedError
from .format_classifier import ClassifiedResponse, ResponseFormat
from .markdown_images import contains_markdown_image, extract_markdown_images
from .sse import iter_sse_payloads, to_stream_event
from .types import DEFAULT_IMAGE_MIME_TYPE, InlineImage, Part


logger = logging.getLogger(__name__)


SAFETY_FINISH_REASONS = {
    "SAFETY",
    "PROHIBITED_CONTENT",
    "IMAGE_SAFETY",
    "BLOCKLIST",
    "SPII",
}


def _field(source: Any, *names: str) -> Any:
    """Read the first present field from a dict or an SDK object."""

    for name in names:
        if isinstance(source, Mapping):
            value = source.get(name)
        else:
            value = getattr(source, name, None)
        if value is not None:
            return value
    return None


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(bytes(value)).decode("ascii")
    return str(value)


def normalize_fragment(fragment: Any) -> list[Part]:
    """Normalize a single REST dict or google-genai ``Part`` object."""

    is_thought = bool(_field(fragment, "thought"))
    token = _as_text(_field(fragment, "thoughtSignature", "thought_signature"))

    text = _field(fragment, "text")
    if text is not None:
        text = str(text)
        if not contains_markdown_image(text):
            return [Part(text=text, is_thought=is_thought, continuation_token=token)]
        children = extract_markdown_images(text)
        for child in children:
            child.is_thought = is_thought
        if children and token:
            children[-1].continuation_token = token
        return children

    inline = _field(fragment, "inlineData", "inline_data")
    if inline is not None:
        mime_type = _field(inline, "mimeType", "mime_type") or DEFAULT_IMAGE_MIME_TYPE
        data = _as_text(_field(inline, "data")) or ""
        return [
            Part(
                inline_image=InlineImage(mime_type=str(mime_type), data=data),
                is_thought=is_thought,
                continuation_token=token,
            )
        ]

    logger.debug("Ignoring fragment without text or inline data: %r", fragment)
    return []


def normalize_fragments(fragments: Iterable[Any] | None) -> list[Part]:
    parts: list[Part] = []
    for fragment in fragments or ():
        parts.extend(normalize_fragment(fragment))
    return parts


def normalize_custom_json(document: Mapping[str, Any]) -> list[Part]:
    """Normalize ``{body:{content}}`` / ``{modelOutput:{text}}`` envelopes.

    ``body.content`` takes priority; an empty result is not an error.
    """

    body = document.get("body")
    output = document.get("modelOutput")
    content = (body.get("content") if isinstance(body, Mapping) else None) or (
        output.get("text") if isinstance(output, Mapping) else None
    )
    if not content:
        return []
    if contains_markdown_image(content):
        return extract_markdown_images(content)
    return [Part(text=content)]


def check_blocked(document: Any) -> None:
    """Raise :class:`ContentBlockedError` for prompt or candidate safety blocks."""

    feedback = _field(document, "promptFeedback", "prompt_feedback")
    block_reason = _field(feedback, "blockReason", "block_reason") if feedback else None
    if block_reason:
        raise ContentBlockedError(str(getattr(block_reason, "value", block_reason)))

    candidates = _field(document, "candidates") or []
    if not candidates:
        return
    candidate = candidates[0]
    reason = _field(candidate, "finishReason", "finish_reason")
    reason = str(getattr(reason, "value", reason)) if reason is not None else ""
    content = _field(candidate, "content")
    parts = _field(content, "parts") if content is not None else None
    if reason in SAFETY_FINISH_REASONS and not parts:
        raise ContentBlockedError(reason)


def normalize_official_response(document: Any) -> list[Part]:
    """Normalize the first candidate of a ``GenerateContentResponse``."""

    check_blocked(document)
    candidates = _field(document, "candidates") or []
    if not candidates:
        return []
    content = _field(candidates[0], "content")
    if content is None:
        return []
    return normalize_fragments(_field(content, "parts"))


def normalize_classified(classified: ClassifiedResponse) -> list[Part]:
    """Produce parts for a response according to its classified format."""

    if classified.format is ResponseFormat.SSE_TEXT:
        parts: list[Part] = []
        for payload in iter_sse_payloads(classified.text or ""):
            check_blocked(payload)
            parts.extend(normalize_fragments(to_stream_event(payload).fragments))
        return parts
    if classified.format is ResponseFormat.CUSTOM_JSON:
        return normalize_custom_json(classified.document or {})
    if classified.format is ResponseFormat.OFFICIAL:
        return normalize_official_response(classified.document or {})
    return extract_markdown_images(classified.text)


__all__ = [
    "SAFETY_FINISH_REASONS",
    "check_blocked",
    "normalize_classified",
    "normalize_custom_json",
    "normalize_fragment",
    "normalize_fragments",
    "normalize_official_response",
]
