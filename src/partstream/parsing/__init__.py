"""Response parsing: format detection, SSE decoding and part normalization."""

from .format_classifier import ClassifiedResponse, ResponseFormat, classify_response
from .markdown_images import contains_markdown_image, extract_markdown_images
from .normalizer import (
    normalize_classified,
    normalize_custom_json,
    normalize_fragments,
    normalize_official_response,
)
from .sse import SSELineDecoder, iter_sse_events, iter_sse_payloads, to_stream_event
from .types import (
    GenerationResult,
    GenerationState,
    ImageReference,
    InlineImage,
    Part,
    StreamEvent,
    Turn,
)

__all__ = [
    "ClassifiedResponse",
    "GenerationResult",
    "GenerationState",
    "ImageReference",
    "InlineImage",
    "Part",
    "ResponseFormat",
    "SSELineDecoder",
    "StreamEvent",
    "Turn",
    "classify_response",
    "contains_markdown_image",
    "extract_markdown_images",
    "iter_sse_events",
    "iter_sse_payloads",
    "normalize_classified",
    "normalize_custom_json",
    "normalize_fragments",
    "normalize_official_response",
    "to_stream_event",
]
