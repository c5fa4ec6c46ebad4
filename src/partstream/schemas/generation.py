"""Pydantic models describing a generation request."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


ImageResolution = Literal["1K", "2K", "4K"]
AspectRatio = Literal["Auto", "1:1", "3:4", "4:3", "9:16", "16:9"]


class GenerationOptions(BaseModel):
    """Per-request options supplied by the UI layer."""

    endpoint_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("endpointUrl", "endpoint_url"),
    )
    model_identifier: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("modelIdentifier", "model_identifier"),
    )
    use_search_grounding: bool = Field(
        default=False,
        validation_alias=AliasChoices("useSearchGrounding", "use_search_grounding"),
    )
    enable_thought_streaming: bool = Field(
        default=False,
        validation_alias=AliasChoices(
            "enableThoughtStreaming", "enable_thought_streaming"
        ),
    )
    image_resolution: ImageResolution = Field(
        default="1K",
        validation_alias=AliasChoices("imageResolution", "image_resolution"),
    )
    aspect_ratio: AspectRatio = Field(
        default="Auto",
        validation_alias=AliasChoices("aspectRatio", "aspect_ratio"),
    )

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class Attachment(BaseModel):
    """Inline file sent with the new user turn (base64 payload)."""

    mime_type: str = Field(validation_alias=AliasChoices("mimeType", "mime_type"))
    data: str = Field(validation_alias=AliasChoices("base64Data", "data"))

    model_config = ConfigDict(populate_by_name=True)


__all__ = ["AspectRatio", "Attachment", "GenerationOptions", "ImageResolution"]
