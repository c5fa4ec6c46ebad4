"""Request schemas."""

from .generation import AspectRatio, Attachment, GenerationOptions, ImageResolution

__all__ = ["AspectRatio", "Attachment", "GenerationOptions", "ImageResolution"]
