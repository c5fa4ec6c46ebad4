"""Split free text into text and Markdown image-link parts."""

from __future__ import annotations

import re

from .types import ImageReference, Part


MARKDOWN_IMAGE_PATTERN = re.compile(r"!\[([^\]]*)\]\(([^)]+)\)")


def contains_markdown_image(text: str | None) -> bool:
    if not text:
        return False
    return MARKDOWN_IMAGE_PATTERN.search(text) is not None


def extract_markdown_images(text: str | None) -> list[Part]:
    """Return text and image-reference parts in left-to-right order.

    Text around each ``![alt](url)`` link is trimmed and dropped when empty,
    so adjacent links never produce an empty text part between them.
    """

    if not text:
        return []

    parts: list[Part] = []
    cursor = 0
    for match in MARKDOWN_IMAGE_PATTERN.finditer(text):
        start, end = match.span()
        before = text[cursor:start].strip()
        if before:
            parts.append(Part(text=before))
        parts.append(Part(image_reference=ImageReference(url=match.group(2).strip())))
        cursor = end

    remainder = text[cursor:].strip()
    if remainder:
        parts.append(Part(text=remainder))

    return parts


__all__ = [
    "MARKDOWN_IMAGE_PATTERN",
    "contains_markdown_image",
    "extract_markdown_images",
]
