"""Send one prompt and print the normalized parts.

Usage:
    python -m partstream "draw a cute cat"
    python -m partstream "a sunset" --endpoint https://relay.example.com -r 2K -a 16:9
    python -m partstream --list-models
"""

from __future__ import annotations

import argparse
import asyncio
import base64
import logging
import sys
from pathlib import Path
from typing import Sequence

from .chat.service import GenerationService
from .config import get_settings
from .errors import GenerationError
from .gemini import GeminiClient, UpstreamError
from .logging_settings import configure_logging
from .parsing.types import Part
from .schemas.generation import Attachment, GenerationOptions

logger = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="partstream", description=__doc__.splitlines()[0])
    parser.add_argument("prompt", nargs="?", default="", help="Prompt text")
    parser.add_argument("--endpoint", help="Override the endpoint URL")
    parser.add_argument("-m", "--model", help="Override the model identifier")
    parser.add_argument("-r", "--resolution", choices=["1K", "2K", "4K"], default="1K")
    parser.add_argument(
        "-a",
        "--aspect-ratio",
        choices=["Auto", "1:1", "3:4", "4:3", "9:16", "16:9"],
        default="Auto",
    )
    parser.add_argument("--grounding", action="store_true", help="Enable search grounding")
    parser.add_argument("--thoughts", action="store_true", help="Stream thought parts")
    parser.add_argument("--no-stream", action="store_true", help="Use a single request")
    parser.add_argument("-i", "--image", action="append", default=[], type=Path)
    parser.add_argument("-o", "--output-dir", type=Path, default=Path("."))
    parser.add_argument("--list-models", action="store_true")
    return parser.parse_args(argv)


def _describe(part: Part) -> str:
    marker = "[thought] " if part.is_thought else ""
    kind, value = part.content()
    if kind == "text":
        return f"{marker}{value}"
    if kind == "inline_image":
        return f"{marker}<inline {value.mime_type}, {len(value.data)} b64 chars>"
    return f"{marker}<image {value.url}>"


def _save_images(parts: Sequence[Part], output_dir: Path) -> list[Path]:
    saved: list[Path] = []
    output_dir.mkdir(parents=True, exist_ok=True)
    for index, part in enumerate(parts):
        if part.inline_image is None or part.is_thought:
            continue
        extension = part.inline_image.mime_type.split("/")[-1] or "png"
        path = output_dir / f"partstream-image-{index}.{extension}"
        path.write_bytes(base64.b64decode(part.inline_image.data))
        saved.append(path)
    return saved


def _load_attachment(path: Path) -> Attachment:
    suffix = path.suffix.lower().lstrip(".") or "png"
    mime_type = "image/jpeg" if suffix in {"jpg", "jpeg"} else f"image/{suffix}"
    return Attachment(
        mime_type=mime_type, data=base64.b64encode(path.read_bytes()).decode("ascii")
    )


async def _run(args: argparse.Namespace) -> int:
    settings = get_settings()
    client = GeminiClient(settings)
    try:
        if args.list_models:
            for model in await client.list_models(args.endpoint):
                print(f"{model.id}\t{model.name}")
            return 0

        service = GenerationService(client, settings)
        options = GenerationOptions(
            endpoint_url=args.endpoint,
            model_identifier=args.model,
            use_search_grounding=args.grounding,
            enable_thought_streaming=args.thoughts,
            image_resolution=args.resolution,
            aspect_ratio=args.aspect_ratio,
        )
        attachments = [_load_attachment(path) for path in args.image]

        if args.no_stream:
            result = await service.generate([], args.prompt, attachments, options)
        else:
            result = None
            async for result in service.stream_generate([], args.prompt, attachments, options):
                logger.debug("Snapshot with %d parts", len(result.model_parts))
        if result is None:
            return 1

        for part in result.model_parts:
            print(_describe(part))
        for path in _save_images(result.model_parts, args.output_dir):
            print(f"saved {path}")
        return 0
    except (GenerationError, UpstreamError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    finally:
        await client.aclose()


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_file)
    if not args.prompt and not args.image and not args.list_models:
        print("error: a prompt or an image is required", file=sys.stderr)
        return 2
    return asyncio.run(_run(args))


if __name__ == "__main__":
    sys.exit(main())
