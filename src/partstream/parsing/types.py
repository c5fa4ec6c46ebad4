"""Canonical content model shared by the parsing and streaming layers."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Literal, Optional

if TYPE_CHECKING:
    from ..errors import EngineError


DEFAULT_IMAGE_MIME_TYPE = "image/png"

Role = Literal["user", "model"]


@dataclass(frozen=True)
class InlineImage:
    """Image bytes carried inline as a base64 string."""

    mime_type: str
    data: str


@dataclass(frozen=True)
class ImageReference:
    """Image addressed by URL (usually extracted from Markdown)."""

    url: str


@dataclass
class Part:
    """One typed fragment of user or model content.

    Exactly one payload is set. Text parts may be extended in place while a
    stream is being accumulated; everything else is treated as immutable.
    """

    text: Optional[str] = None
    inline_image: Optional[InlineImage] = None
    image_reference: Optional[ImageReference] = None
    is_thought: bool = False
    continuation_token: Optional[str] = None

    def __post_init__(self) -> None:
        payloads = sum(
            value is not None
            for value in (self.text, self.inline_image, self.image_reference)
        )
        if payloads != 1:
            raise ValueError(
                f"Part requires exactly one payload, got {payloads}"
            )

    @property
    def is_text(self) -> bool:
        return self.text is not None

    @property
    def is_image(self) -> bool:
        return self.inline_image is not None or self.image_reference is not None

    def content(self) -> tuple[str, Any]:
        """Return the payload alone, for comparisons that ignore metadata."""

        if self.text is not None:
            return ("text", self.text)
        if self.inline_image is not None:
            return ("inline_image", self.inline_image)
        return ("image_reference", self.image_reference)

    def to_payload(self, *, include_metadata: bool = True) -> dict[str, Any]:
        """Serialize to the camelCase REST shape used by Gemini."""

        payload: dict[str, Any] = {}
        if self.text is not None:
            payload["text"] = self.text
        elif self.inline_image is not None:
            payload["inlineData"] = {
                "mimeType": self.inline_image.mime_type,
                "data": self.inline_image.data,
            }
        elif self.image_reference is not None:
            payload["imageUrl"] = self.image_reference.url
        if include_metadata:
            if self.is_thought:
                payload["thought"] = True
            if self.continuation_token:
                payload["thoughtSignature"] = self.continuation_token
        return payload


@dataclass(frozen=True)
class Turn:
    role: Role
    parts: tuple[Part, ...] = ()

    def to_payload(self) -> dict[str, Any]:
        return {"role": self.role, "parts": [part.to_payload() for part in self.parts]}


@dataclass(frozen=True)
class StreamEvent:
    """One decoded unit of a response stream.

    ``fragments`` holds backend-native parts (REST dicts or SDK objects) that
    still have to go through the normalizer.
    """

    fragments: tuple[Any, ...] = ()
    done: bool = False
    finish_reason: Optional[str] = None


class GenerationState(str, enum.Enum):
    IDLE = "idle"
    REQUESTING = "requesting"
    STREAMING = "streaming"
    COMPLETED = "completed"
    ERRORED = "errored"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class GenerationResult:
    """Snapshot handed to the caller: the user turn plus model parts so far."""

    user_turn: Turn
    model_parts: tuple[Part, ...] = ()
    state: GenerationState = GenerationState.COMPLETED
    error: Optional["EngineError"] = field(default=None, compare=False)

    @property
    def cancelled(self) -> bool:
        return self.state is GenerationState.CANCELLED

    def as_model_turn(self) -> Turn:
        return Turn(role="model", parts=self.model_parts)


__all__ = [
    "DEFAULT_IMAGE_MIME_TYPE",
    "GenerationResult",
    "GenerationState",
    "ImageReference",
    "InlineImage",
    "Part",
    "Role",
    "StreamEvent",
    "Turn",
]
