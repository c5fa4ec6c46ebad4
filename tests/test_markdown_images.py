"""Tests for Markdown image-link extraction."""

from partstream.parsing.markdown_images import (
    contains_markdown_image,
    extract_markdown_images,
)
from partstream.parsing.types import ImageReference, Part


def test_text_around_single_image():
    parts = extract_markdown_images("Here: ![a cat](http://x/cat.png) nice")

    assert parts == [
        Part(text="Here:"),
        Part(image_reference=ImageReference(url="http://x/cat.png")),
        Part(text="nice"),
    ]


def test_plain_text_returns_single_trimmed_part():
    assert extract_markdown_images("  just words \n") == [Part(text="just words")]


def test_whitespace_only_returns_nothing():
    assert extract_markdown_images("   \n\t") == []
    assert extract_markdown_images("") == []


def test_adjacent_images_have_no_empty_text_between():
    parts = extract_markdown_images("![one](http://x/1.png)  ![two](http://x/2.png)")

    assert [part.content() for part in parts] == [
        ("image_reference", ImageReference(url="http://x/1.png")),
        ("image_reference", ImageReference(url="http://x/2.png")),
    ]


def test_images_stay_in_left_to_right_order():
    text = "a ![](http://x/1.png) b ![x](http://x/2.png) c ![y](http://x/3.png)"

    parts = extract_markdown_images(text)

    urls = [part.image_reference.url for part in parts if part.image_reference]
    texts = [part.text for part in parts if part.text is not None]
    assert urls == ["http://x/1.png", "http://x/2.png", "http://x/3.png"]
    assert texts == ["a", "b", "c"]
    assert [part.is_image for part in parts] == [False, True, False, True, False, True]


def test_repeated_calls_do_not_share_match_state():
    text = "![a](http://x/a.png)"

    assert contains_markdown_image(text)
    assert len(extract_markdown_images(text)) == 1
    assert len(extract_markdown_images(text)) == 1
    assert contains_markdown_image(text)


def test_plain_links_are_not_images():
    assert not contains_markdown_image("see [docs](http://x/docs)")
    assert not contains_markdown_image(None)
