"""Generation orchestration and streaming accumulation."""

from .accumulator import PartAccumulator, merge_part, merge_parts
from .service import GenerationService

__all__ = ["GenerationService", "PartAccumulator", "merge_part", "merge_parts"]
