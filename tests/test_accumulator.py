"""Tests for merging streamed parts."""

from partstream.chat.accumulator import PartAccumulator, merge_part, merge_parts
from partstream.parsing.types import ImageReference, InlineImage, Part


def _image(data: str = "AA==") -> Part:
    return Part(inline_image=InlineImage(mime_type="image/png", data=data))


def test_adjacent_text_concatenates():
    state = merge_parts((), [Part(text="Hel"), Part(text="lo")])

    assert state == (Part(text="Hello"),)


def test_thought_boundary_starts_new_part():
    state = merge_parts(
        (),
        [
            Part(text="Let me ", is_thought=True),
            Part(text="think", is_thought=True),
            Part(text="Answer"),
        ],
    )

    assert state == (
        Part(text="Let me think", is_thought=True),
        Part(text="Answer"),
    )


def test_images_never_merge():
    state = merge_parts((), [Part(text="a"), _image(), Part(text="b"), _image("BB==")])

    assert [part.content()[0] for part in state] == [
        "text",
        "inline_image",
        "text",
        "inline_image",
    ]


def test_latest_continuation_token_wins():
    state = merge_parts(
        (),
        [
            Part(text="a", continuation_token="first"),
            Part(text="b"),
            Part(text="c", continuation_token="second"),
        ],
    )

    assert state == (Part(text="abc", continuation_token="second"),)


def test_merge_part_does_not_touch_input_state():
    original = (Part(text="Hel"),)

    merged = merge_part(original, Part(text="lo"))

    assert original == (Part(text="Hel"),)
    assert merged == (Part(text="Hello"),)


def test_accumulator_matches_pure_merge():
    parts = [
        Part(text="x", is_thought=True),
        Part(text="y", is_thought=True, continuation_token="t"),
        _image(),
        Part(text="z"),
    ]
    accumulator = PartAccumulator()
    accumulator.extend(parts)

    assert accumulator.snapshot() == merge_parts((), parts)
    assert len(accumulator) == 3


def test_snapshot_is_isolated_from_later_merges():
    accumulator = PartAccumulator()
    accumulator.add(Part(text="Hel"))
    first = accumulator.snapshot()

    accumulator.add(Part(text="lo"))

    assert first == (Part(text="Hel"),)
    assert accumulator.snapshot() == (Part(text="Hello"),)


def test_added_parts_are_copied():
    incoming = Part(text="Hel")
    accumulator = PartAccumulator()

    accumulator.add(incoming)
    accumulator.add(Part(text="lo"))

    assert incoming.text == "Hel"


def test_finalize_expands_link_split_across_chunks():
    accumulator = PartAccumulator()
    accumulator.extend(
        [
            Part(text="See ![cat](http://x/c"),
            Part(text="at.png) done", continuation_token="sig"),
        ]
    )

    final = accumulator.finalize()

    assert final == (
        Part(text="See"),
        Part(image_reference=ImageReference(url="http://x/cat.png")),
        Part(text="done", continuation_token="sig"),
    )


def test_finalize_leaves_plain_parts_alone():
    accumulator = PartAccumulator()
    accumulator.extend([Part(text="plain"), _image()])

    assert accumulator.finalize() == (Part(text="plain"), _image())
