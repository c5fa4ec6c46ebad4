"""Prepare conversation context and request payloads for the backend."""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Any, Iterable, Sequence

from ..parsing.types import InlineImage, Part, Turn
from ..schemas.generation import Attachment, GenerationOptions


logger = logging.getLogger(__name__)


RESPONSE_MODALITIES = ["TEXT", "IMAGE"]


def build_user_turn(prompt: str, attachments: Iterable[Attachment] = ()) -> Turn:
    """Attachments first, then the prompt text when it is not blank."""

    parts = [
        Part(inline_image=InlineImage(mime_type=item.mime_type, data=item.data))
        for item in attachments
    ]
    if prompt.strip():
        parts.append(Part(text=prompt))
    return Turn(role="user", parts=tuple(parts))


def _context_part(part: Part, *, keep_signatures: bool) -> Part:
    if part.image_reference is not None:
        # Backends cannot fetch arbitrary URLs as inline data; replay as a link.
        return Part(text=f"![image]({part.image_reference.url})")
    return Part(
        text=part.text,
        inline_image=part.inline_image,
        continuation_token=part.continuation_token if keep_signatures else None,
    )


def prepare_history(
    history: Sequence[Turn], *, keep_signatures: bool = True
) -> list[Turn]:
    """Return the history to replay as context.

    Thought parts of model turns are dropped, whatever their payload, and turns
    left empty are removed. The input turns are never modified.
    """

    prepared: list[Turn] = []
    for turn in history:
        if turn.role == "model":
            parts = tuple(
                _context_part(part, keep_signatures=keep_signatures)
                for part in turn.parts
                if not part.is_thought
            )
        else:
            parts = tuple(
                _context_part(part, keep_signatures=keep_signatures)
                for part in turn.parts
            )
        if parts:
            prepared.append(Turn(role=turn.role, parts=parts))
    return prepared


def build_contents(history: Sequence[Turn], user_turn: Turn) -> list[dict[str, Any]]:
    return [turn.to_payload() for turn in (*history, user_turn)]


def build_request_payload(
    contents: list[dict[str, Any]], options: GenerationOptions
) -> dict[str, Any]:
    """Build the REST body for ``generateContent``-style endpoints."""

    generation_config: dict[str, Any] = {
        "responseModalities": list(RESPONSE_MODALITIES),
        "imageConfig": _image_config(options, camel_case=True),
    }
    if options.enable_thought_streaming:
        generation_config["thinkingConfig"] = {"includeThoughts": True}

    payload: dict[str, Any] = {
        "contents": contents,
        "generationConfig": generation_config,
    }
    if options.use_search_grounding:
        payload["tools"] = [{"googleSearch": {}}]
    return payload


def _image_config(options: GenerationOptions, *, camel_case: bool) -> dict[str, Any]:
    size_key, ratio_key = (
        ("imageSize", "aspectRatio") if camel_case else ("image_size", "aspect_ratio")
    )
    config: dict[str, Any] = {size_key: options.image_resolution}
    if options.aspect_ratio != "Auto":
        config[ratio_key] = options.aspect_ratio
    return config


def build_sdk_config(options: GenerationOptions) -> dict[str, Any]:
    """Build a ``GenerateContentConfig`` dict for the google-genai SDK."""

    config: dict[str, Any] = {
        "response_modalities": list(RESPONSE_MODALITIES),
        "image_config": _image_config(options, camel_case=False),
    }
    if options.use_search_grounding:
        config["tools"] = [{"google_search": {}}]
    if options.enable_thought_streaming:
        config["thinking_config"] = {"include_thoughts": True}
    return config


def _decode_base64(value: str) -> bytes:
    try:
        return base64.b64decode(value, validate=False)
    except (binascii.Error, ValueError):
        logger.warning("Sending undecodable base64 payload as raw bytes")
        return value.encode("utf-8")


def _sdk_part(part: Part) -> dict[str, Any]:
    sdk_part: dict[str, Any] = {}
    if part.inline_image is not None:
        sdk_part["inline_data"] = {
            "mime_type": part.inline_image.mime_type,
            "data": _decode_base64(part.inline_image.data),
        }
    else:
        sdk_part["text"] = part.text or ""
    if part.continuation_token:
        sdk_part["thought_signature"] = _decode_base64(part.continuation_token)
    return sdk_part


def build_sdk_contents(
    history: Sequence[Turn], user_turn: Turn
) -> list[dict[str, Any]]:
    """Contents for the SDK, which expects raw bytes rather than base64."""

    return [
        {"role": turn.role, "parts": [_sdk_part(part) for part in turn.parts]}
        for turn in (*history, user_turn)
    ]


__all__ = [
    "RESPONSE_MODALITIES",
    "build_contents",
    "build_request_payload",
    "build_sdk_config",
    "build_sdk_contents",
    "build_user_turn",
    "prepare_history",
]
