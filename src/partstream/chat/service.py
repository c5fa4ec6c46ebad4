"""Generation orchestration: route, decode, normalize and accumulate."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncGenerator, AsyncIterator, Awaitable, Iterable, Sequence

from ..config import Settings
from ..errors import GenerationCancelled, ResponseFormatError, raise_classified
from ..gemini import GeminiClient, is_official_endpoint
from ..parsing.format_classifier import classify_response
from ..parsing.normalizer import (
    check_blocked,
    normalize_classified,
    normalize_fragments,
    normalize_official_response,
)
from ..parsing.sse import (
    SSELineDecoder,
    is_sse_field_line,
    looks_like_sse,
    to_stream_event,
)
from ..parsing.types import GenerationResult, GenerationState, Part, Turn
from ..schemas.generation import Attachment, GenerationOptions
from .accumulator import PartAccumulator
from .history import (
    build_contents,
    build_request_payload,
    build_sdk_config,
    build_sdk_contents,
    build_user_turn,
    prepare_history,
)


logger = logging.getLogger(__name__)


_ALLOWED_TRANSITIONS: dict[GenerationState, set[GenerationState]] = {
    GenerationState.IDLE: {GenerationState.REQUESTING, GenerationState.CANCELLED},
    GenerationState.REQUESTING: {
        GenerationState.STREAMING,
        GenerationState.COMPLETED,
        GenerationState.ERRORED,
        GenerationState.CANCELLED,
    },
    GenerationState.STREAMING: {
        GenerationState.STREAMING,
        GenerationState.COMPLETED,
        GenerationState.ERRORED,
        GenerationState.CANCELLED,
    },
}


class _CancelRequested(Exception):
    """Internal signal: the caller set the cancellation event."""


def _transition(current: GenerationState, target: GenerationState) -> GenerationState:
    if target not in _ALLOWED_TRANSITIONS.get(current, set()):
        raise RuntimeError(f"Invalid generation state change {current.value} -> {target.value}")
    if target is not current:
        logger.debug("Generation state %s -> %s", current.value, target.value)
    return target


async def _await_or_cancel(
    awaitable: Awaitable[Any], cancel_event: asyncio.Event | None
) -> Any:
    """Await ``awaitable`` unless ``cancel_event`` fires first.

    Raises :class:`_CancelRequested` when the event wins; the pending work is
    cancelled and awaited before returning control.
    """

    if cancel_event is None:
        return await awaitable
    if cancel_event.is_set():
        if asyncio.iscoroutine(awaitable):
            awaitable.close()
        raise _CancelRequested

    work = asyncio.ensure_future(awaitable)
    waiter = asyncio.ensure_future(cancel_event.wait())
    try:
        done, _ = await asyncio.wait(
            {work, waiter}, return_when=asyncio.FIRST_COMPLETED
        )
    finally:
        waiter.cancel()
        if not work.done():
            work.cancel()

    if work in done:
        return work.result()

    try:
        await work
    except asyncio.CancelledError:
        pass
    except Exception as exc:  # pragma: no cover - teardown after a deliberate stop
        logger.debug("Ignoring error raised while stopping generation: %s", exc)
    raise _CancelRequested


async def _next_batch(
    batches: AsyncIterator[list[Part]],
) -> list[Part] | None:
    """Return the next batch, or ``None`` once the source is exhausted."""

    try:
        return await batches.__anext__()
    except StopAsyncIteration:
        return None


class GenerationService:
    """Turn (history, new user turn, options) into normalized model parts."""

    def __init__(self, client: GeminiClient, settings: Settings) -> None:
        self._client = client
        self._settings = settings

    async def generate(
        self,
        history: Sequence[Turn],
        prompt: str,
        attachments: Iterable[Attachment] = (),
        options: GenerationOptions | None = None,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> GenerationResult:
        """Run a non-streaming request and return the finished result.

        A cancelled request returns whatever was received with
        ``state == cancelled`` instead of raising.
        """

        user_turn = build_user_turn(prompt, attachments)
        result = GenerationResult(user_turn=user_turn, state=GenerationState.IDLE)
        async for result in self._run(
            history, user_turn, options or GenerationOptions(), cancel_event, stream=False
        ):
            pass
        return result

    async def stream_generate(
        self,
        history: Sequence[Turn],
        prompt: str,
        attachments: Iterable[Attachment] = (),
        options: GenerationOptions | None = None,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> AsyncGenerator[GenerationResult, None]:
        """Yield progressively complete snapshots as the response streams in.

        The final snapshot has state ``completed`` or ``cancelled``. Failures
        raise a :class:`~partstream.errors.GenerationError` subclass.
        """

        user_turn = build_user_turn(prompt, attachments)
        async for snapshot in self._run(
            history, user_turn, options or GenerationOptions(), cancel_event, stream=True
        ):
            yield snapshot

    async def _run(
        self,
        history: Sequence[Turn],
        user_turn: Turn,
        options: GenerationOptions,
        cancel_event: asyncio.Event | None,
        *,
        stream: bool,
    ) -> AsyncGenerator[GenerationResult, None]:
        accumulator = PartAccumulator()
        state = GenerationState.IDLE

        if cancel_event is not None and cancel_event.is_set():
            state = _transition(state, GenerationState.CANCELLED)
            yield GenerationResult(user_turn, (), state, GenerationCancelled())
            return

        batches = self._batches(history, user_turn, options, stream=stream)
        state = _transition(state, GenerationState.REQUESTING)
        try:
            while True:
                batch = await _await_or_cancel(_next_batch(batches), cancel_event)
                if batch is None:
                    break
                state = _transition(state, GenerationState.STREAMING)
                if not batch:
                    continue
                accumulator.extend(batch)
                yield GenerationResult(user_turn, accumulator.snapshot(), state)
        except _CancelRequested:
            state = _transition(state, GenerationState.CANCELLED)
            logger.info("Generation cancelled after %d parts", len(accumulator))
            yield GenerationResult(
                user_turn, accumulator.snapshot(), state, GenerationCancelled()
            )
            return
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            state = _transition(state, GenerationState.ERRORED)
            logger.error("Generation failed: %s", exc)
            raise_classified(exc)
        finally:
            await batches.aclose()

        state = _transition(state, GenerationState.COMPLETED)
        yield GenerationResult(user_turn, accumulator.finalize(), state)

    async def _batches(
        self,
        history: Sequence[Turn],
        user_turn: Turn,
        options: GenerationOptions,
        *,
        stream: bool,
    ) -> AsyncGenerator[list[Part], None]:
        endpoint = options.endpoint_url or self._settings.endpoint_url
        model = options.model_identifier or self._settings.default_model
        official = is_official_endpoint(endpoint)
        context = prepare_history(history, keep_signatures=official)
        logger.debug(
            "Dispatching %s request to %s (model=%s, official=%s)",
            "streaming" if stream else "direct",
            endpoint,
            model,
            official,
        )

        if official:
            contents = build_sdk_contents(context, user_turn)
            config = build_sdk_config(options)
            if stream:
                chunks: AsyncIterator[Any] = await self._client.sdk_stream(
                    contents, config, model=model, endpoint=endpoint
                )
                try:
                    async for chunk in chunks:
                        yield normalize_official_response(chunk)
                finally:
                    close = getattr(chunks, "aclose", None)
                    if close is not None:
                        await close()
                return

            response = await self._client.sdk_generate(
                contents, config, model=model, endpoint=endpoint
            )
            parts = normalize_official_response(response)
            if not parts and not getattr(response, "candidates", None):
                raise ResponseFormatError("No content generated")
            yield parts
            return

        payload = build_request_payload(build_contents(context, user_turn), options)
        if not stream:
            text = await self._client.generate_raw(payload, model=model, endpoint=endpoint)
            yield normalize_classified(classify_response(text))
            return

        async for batch in self._stream_custom(payload, model=model, endpoint=endpoint):
            yield batch

    async def _stream_custom(
        self, payload: dict[str, Any], *, model: str, endpoint: str
    ) -> AsyncGenerator[list[Part], None]:
        """Decode SSE incrementally, or buffer a body that turns out not to be SSE."""

        lines = self._client.stream_raw(payload, model=model, endpoint=endpoint)
        decoder = SSELineDecoder()
        buffered: list[str] | None = None
        sniffed = False
        try:
            async for line in lines:
                if buffered is not None:
                    buffered.append(line)
                    continue
                if not sniffed:
                    if not line.strip() or is_sse_field_line(line):
                        continue
                    sniffed = True
                    if not looks_like_sse(line):
                        logger.info("Streaming response is not SSE; buffering full body")
                        buffered = [line]
                        continue

                event_payload = decoder.feed(line)
                if event_payload is None:
                    if decoder.done:
                        break
                    continue
                check_blocked(event_payload)
                parts = normalize_fragments(to_stream_event(event_payload).fragments)
                if parts:
                    yield parts
        finally:
            await lines.aclose()

        if decoder.skipped:
            logger.warning("Skipped %d malformed stream events", decoder.skipped)
        if buffered is not None:
            yield normalize_classified(classify_response("\n".join(buffered)))


__all__ = ["GenerationService"]
