import base64
from pathlib import Path

from partstream.__main__ import _describe, _save_images, main
from partstream.parsing.types import ImageReference, InlineImage, Part


def test_describe_each_payload_kind() -> None:
    assert _describe(Part(text="hi", is_thought=True)) == "[thought] hi"
    assert _describe(Part(image_reference=ImageReference(url="http://x/a.png"))) == (
        "<image http://x/a.png>"
    )
    assert _describe(
        Part(inline_image=InlineImage(mime_type="image/webp", data="AAAA"))
    ) == "<inline image/webp, 4 b64 chars>"


def test_save_images_skips_thought_images(tmp_path: Path) -> None:
    data = base64.b64encode(b"png-bytes").decode("ascii")
    parts = [
        Part(inline_image=InlineImage(mime_type="image/png", data=data), is_thought=True),
        Part(text="done"),
        Part(inline_image=InlineImage(mime_type="image/png", data=data)),
    ]

    saved = _save_images(parts, tmp_path)

    assert saved == [tmp_path / "partstream-image-2.png"]
    assert saved[0].read_bytes() == b"png-bytes"


def test_main_requires_prompt_or_image(monkeypatch, capsys) -> None:
    monkeypatch.setattr("partstream.__main__.configure_logging", lambda *args: None)

    assert main([]) == 2
    assert "prompt or an image" in capsys.readouterr().err
