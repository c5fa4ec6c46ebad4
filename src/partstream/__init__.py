"""Normalize generative-AI backend responses into ordered content parts."""

from .chat import GenerationService, PartAccumulator, merge_part
from .config import Settings, get_settings
from .errors import EngineError, ErrorKind, GenerationCancelled, GenerationError, classify_error
from .gemini import GeminiClient
from .parsing import (
    GenerationResult,
    GenerationState,
    ImageReference,
    InlineImage,
    Part,
    Turn,
)
from .schemas import Attachment, GenerationOptions

__all__ = [
    "Attachment",
    "EngineError",
    "ErrorKind",
    "GeminiClient",
    "GenerationCancelled",
    "GenerationError",
    "GenerationOptions",
    "GenerationResult",
    "GenerationService",
    "GenerationState",
    "ImageReference",
    "InlineImage",
    "Part",
    "PartAccumulator",
    "Settings",
    "Turn",
    "classify_error",
    "get_settings",
    "merge_part",
]
