"""Server-Sent Events decoding for generation streams."""

from __future__ import annotations

import json
import logging
from typing import Any, Iterable, Iterator, Optional

from ..errors import UpstreamError
from .types import StreamEvent


logger = logging.getLogger(__name__)


DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"

# finishReason values that do not mean the candidate stopped
_UNFINISHED_REASONS = {"", "FINISH_REASON_UNSPECIFIED"}


# non-data fields an event stream may carry before or between events
FIELD_PREFIXES = (":", "event:", "id:", "retry:")


def is_sse_field_line(line: str) -> bool:
    return line.strip().startswith(FIELD_PREFIXES)


def looks_like_sse(text: str) -> bool:
    """True when the first line that is not blank or a non-data field is ``data:``."""

    for line in text.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith(FIELD_PREFIXES):
            continue
        return stripped.startswith(DATA_PREFIX)
    return False


class SSELineDecoder:
    """Decode event-stream lines one at a time.

    Only ``data:`` lines are considered. A malformed JSON payload is logged
    and skipped so one corrupted event does not sink the rest of the stream.
    """

    __slots__ = ("done", "skipped")

    def __init__(self) -> None:
        self.done = False
        self.skipped = 0

    def feed(self, line: str) -> Optional[dict[str, Any]]:
        stripped = line.strip()
        if not stripped.startswith(DATA_PREFIX):
            return None
        data = stripped[len(DATA_PREFIX):].strip()
        if not data:
            return None
        if data == DONE_SENTINEL:
            self.done = True
            return None
        try:
            payload = json.loads(data)
        except json.JSONDecodeError as exc:
            self.skipped += 1
            logger.warning(
                "Skipping malformed SSE event (%s at column %d): %.100s",
                exc.msg,
                exc.colno,
                data,
            )
            return None
        if not isinstance(payload, dict):
            self.skipped += 1
            logger.warning("Skipping non-object SSE event: %.100s", data)
            return None
        return payload


def iter_sse_payloads(source: str | bytes | Iterable[str]) -> Iterator[dict[str, Any]]:
    """Yield the JSON object carried by each ``data:`` line of ``source``."""

    if isinstance(source, bytes):
        source = source.decode("utf-8", errors="replace")
    lines = source.splitlines() if isinstance(source, str) else source

    decoder = SSELineDecoder()
    for line in lines:
        payload = decoder.feed(line)
        if payload is not None:
            yield payload


def extract_event_error(payload: dict[str, Any]) -> Optional[UpstreamError]:
    """Return an error embedded in a stream payload, if any."""

    error = payload.get("error")
    if error is None:
        return None
    if isinstance(error, dict):
        code = error.get("code")
        return UpstreamError(
            code if isinstance(code, int) else None,
            error,
            status=error.get("status") if isinstance(error.get("status"), str) else None,
        )
    return UpstreamError(None, str(error))


def to_stream_event(payload: dict[str, Any]) -> StreamEvent:
    """Flatten the first candidate's parts into a :class:`StreamEvent`."""

    error = extract_event_error(payload)
    if error is not None:
        raise error

    candidates = payload.get("candidates")
    if not isinstance(candidates, list) or not candidates:
        return StreamEvent()

    candidate = candidates[0] if isinstance(candidates[0], dict) else {}
    content = candidate.get("content")
    parts = content.get("parts") if isinstance(content, dict) else None
    fragments = tuple(parts) if isinstance(parts, list) else ()

    finish_reason = candidate.get("finishReason")
    reason = str(finish_reason) if finish_reason is not None else None
    return StreamEvent(
        fragments=fragments,
        done=reason is not None and reason not in _UNFINISHED_REASONS,
        finish_reason=reason,
    )


def iter_sse_events(source: str | bytes | Iterable[str]) -> Iterator[StreamEvent]:
    for payload in iter_sse_payloads(source):
        yield to_stream_event(payload)


__all__ = [
    "DATA_PREFIX",
    "DONE_SENTINEL",
    "FIELD_PREFIXES",
    "SSELineDecoder",
    "extract_event_error",
    "is_sse_field_line",
    "iter_sse_events",
    "iter_sse_payloads",
    "looks_like_sse",
    "to_stream_event",
]
