"""Tests for converting backend fragments into canonical parts."""

import base64
import json
from types import SimpleNamespace

import pytest

from partstream.errors import ContentBlockedError
from partstream.parsing.format_classifier import classify_response
from partstream.parsing.normalizer import (
    check_blocked,
    normalize_classified,
    normalize_custom_json,
    normalize_fragments,
    normalize_official_response,
)
from partstream.parsing.types import ImageReference, InlineImage, Part


def test_text_fragment_with_thought_and_signature():
    parts = normalize_fragments(
        [{"text": "pondering", "thought": True, "thoughtSignature": "sig-1"}]
    )

    assert parts == [Part(text="pondering", is_thought=True, continuation_token="sig-1")]


def test_markdown_children_inherit_thought_flag():
    parts = normalize_fragments(
        [{"text": "draft ![x](http://x/1.png) more", "thought": True}]
    )

    assert [part.is_thought for part in parts] == [True, True, True]
    assert parts[1].image_reference == ImageReference(url="http://x/1.png")


def test_inline_image_defaults_mime_type():
    parts = normalize_fragments([{"inlineData": {"data": "aGk="}}])

    assert parts == [Part(inline_image=InlineImage(mime_type="image/png", data="aGk="))]


def test_snake_case_fragments_are_accepted():
    parts = normalize_fragments(
        [{"inline_data": {"mime_type": "image/webp", "data": "AA=="}, "thought_signature": "s"}]
    )

    assert parts[0].inline_image == InlineImage(mime_type="image/webp", data="AA==")
    assert parts[0].continuation_token == "s"


def test_sdk_objects_with_bytes_are_base64_encoded():
    fragment = SimpleNamespace(
        text=None,
        thought=None,
        thought_signature=b"\x01\x02",
        inline_data=SimpleNamespace(mime_type="image/jpeg", data=b"img"),
    )

    parts = normalize_fragments([fragment])

    assert parts[0].inline_image == InlineImage(
        mime_type="image/jpeg", data=base64.b64encode(b"img").decode("ascii")
    )
    assert parts[0].continuation_token == base64.b64encode(b"\x01\x02").decode("ascii")


def test_fragments_without_payload_are_dropped():
    assert normalize_fragments([{"functionCall": {"name": "x"}}, {}]) == []
    assert normalize_fragments(None) == []


def test_custom_json_body_content_wins():
    document = {"body": {"content": "from body"}, "modelOutput": {"text": "from output"}}

    assert normalize_custom_json(document) == [Part(text="from body")]


def test_custom_json_falls_back_to_model_output():
    document = {"body": {"content": ""}, "modelOutput": {"text": "from output"}}

    assert normalize_custom_json(document) == [Part(text="from output")]


def test_custom_json_empty_is_not_an_error():
    assert normalize_custom_json({"body": {"content": ""}}) == []


def test_custom_json_hello_scenario():
    parts = normalize_classified(classify_response('{"body":{"content":"Hello"}}'))

    assert parts == [Part(text="Hello")]


def test_official_and_custom_json_match_by_content():
    text = "Look ![cat](http://x/cat.png) there"
    official = {
        "candidates": [
            {"content": {"parts": [{"text": text, "thoughtSignature": "abc"}]}}
        ]
    }
    custom = {"body": {"content": text}}

    official_parts = normalize_classified(classify_response(json.dumps(official)))
    custom_parts = normalize_classified(classify_response(json.dumps(custom)))

    assert [p.content() for p in official_parts] == [p.content() for p in custom_parts]


def test_sse_text_with_one_corrupted_event():
    lines = [
        "data: "
        + json.dumps({"candidates": [{"content": {"parts": [{"text": f"chunk{i} "}]}}]})
        for i in range(4)
    ]
    lines.insert(1, "data: {broken")
    lines.append("data: [DONE]")

    parts = normalize_classified(classify_response("\n".join(lines)))

    assert [part.text for part in parts] == ["chunk0 ", "chunk1 ", "chunk2 ", "chunk3 "]


def test_markdown_plain_text():
    parts = normalize_classified(
        classify_response("Here: ![a cat](http://x/cat.png) nice")
    )

    assert [part.content() for part in parts] == [
        ("text", "Here:"),
        ("image_reference", ImageReference(url="http://x/cat.png")),
        ("text", "nice"),
    ]


def test_prompt_block_raises():
    with pytest.raises(ContentBlockedError) as excinfo:
        check_blocked({"promptFeedback": {"blockReason": "SAFETY"}})

    assert excinfo.value.reason == "SAFETY"


def test_safety_finish_without_parts_raises():
    document = {"candidates": [{"content": {"parts": []}, "finishReason": "IMAGE_SAFETY"}]}

    with pytest.raises(ContentBlockedError):
        normalize_official_response(document)


def test_official_response_without_candidates_is_empty():
    assert normalize_official_response({"candidates": None}) == []
