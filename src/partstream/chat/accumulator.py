"""Merge streamed parts into a growing, ordered part sequence."""

from __future__ import annotations

from dataclasses import replace
from typing import Iterable

from ..parsing.markdown_images import contains_markdown_image, extract_markdown_images
from ..parsing.types import Part


def _extends(last: Part, part: Part) -> bool:
    return last.is_text and part.is_text and last.is_thought == part.is_thought


def _combined(last: Part, part: Part) -> Part:
    return replace(
        last,
        text=(last.text or "") + (part.text or ""),
        continuation_token=part.continuation_token or last.continuation_token,
    )


def merge_part(state: tuple[Part, ...], part: Part) -> tuple[Part, ...]:
    """Return ``state`` with ``part`` merged in, leaving ``state`` untouched.

    Images always start a new part. Text extends the trailing part only when
    that part is text with the same thought flag; the newest continuation
    token wins.
    """

    if state and _extends(state[-1], part):
        return state[:-1] + (_combined(state[-1], part),)
    return state + (replace(part),)


def merge_parts(state: tuple[Part, ...], parts: Iterable[Part]) -> tuple[Part, ...]:
    for part in parts:
        state = merge_part(state, part)
    return state


class PartAccumulator:
    """Owned buffer applying :func:`merge_part` in place for one request."""

    __slots__ = ("_parts",)

    def __init__(self) -> None:
        self._parts: list[Part] = []

    def __len__(self) -> int:
        return len(self._parts)

    def add(self, part: Part) -> None:
        if self._parts and _extends(self._parts[-1], part):
            last = self._parts[-1]
            last.text = (last.text or "") + (part.text or "")
            if part.continuation_token:
                last.continuation_token = part.continuation_token
            return
        self._parts.append(replace(part))

    def extend(self, parts: Iterable[Part]) -> None:
        for part in parts:
            self.add(part)

    def snapshot(self) -> tuple[Part, ...]:
        """Copy the current parts so later merges do not leak into it."""

        return tuple(replace(part) for part in self._parts)

    def finalize(self) -> tuple[Part, ...]:
        """Expand image links that only became complete after merging.

        A link split across two chunks is invisible to the per-fragment
        normalizer, so merged text is scanned once more when the stream ends.
        """

        expanded: list[Part] = []
        for part in self._parts:
            if not part.is_text or not contains_markdown_image(part.text):
                expanded.append(part)
                continue
            children = extract_markdown_images(part.text)
            for child in children:
                child.is_thought = part.is_thought
            if children and part.continuation_token:
                children[-1].continuation_token = part.continuation_token
            expanded.extend(children)
        self._parts = expanded
        return self.snapshot()


__all__ = ["PartAccumulator", "merge_part", "merge_parts"]
