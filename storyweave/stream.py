"""Response stream decoding.

Turns the byte stream from the generation service back into the full
response text. The decoder is picked by the response's framing:

    EventStreamDecoder  "event-stream": newline-delimited `data: ` lines, each
                        `[DONE]` or a JSON chat-completion delta. Content
                        fragments are concatenated. Malformed fragments are
                        logged and skipped. The stream must end with `[DONE]`
                        or finish_reason "stop"; closing without one raises
                        StreamIncompleteError.
    SingleShotDecoder   "single-shot": the first chunk is the whole text.

While an event stream is still arriving, EventStreamDecoder re-parses the
text received so far and reports interim choice previews once a choices
header and at least two numbered lines are visible. Each preview has at
least as many choices as the previous one.

Every decoder closes the stream on the way out, however it exits.
"""

from __future__ import annotations

import codecs
import json
import logging
from contextlib import aclosing
from typing import Callable, Protocol

from storyweave.errors import MalformedFragmentError, NetworkError, StreamIncompleteError
from storyweave.llm import ByteStream, GenerationResponse, single_chunk_stream
from storyweave.models import Choice
from storyweave.parser import parse_choices, split_response

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE = "[DONE]"
MIN_PREVIEW_CHOICES = 2

PreviewCallback = Callable[[list[Choice]], None]


class StreamDecoder(Protocol):
    async def decode(self, stream: ByteStream) -> str: ...


def _parse_fragment(payload: str) -> tuple[str | None, str | None]:
    """Return (content delta, finish_reason) from one event payload."""
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as e:
        raise MalformedFragmentError(f"not JSON: {payload[:80]!r}") from e
    if not isinstance(data, dict):
        raise MalformedFragmentError(f"expected an object, got {type(data).__name__}")

    choices = data.get("choices")
    if choices is not None and not isinstance(choices, list):
        raise MalformedFragmentError(f"choices is {type(choices).__name__}, not a list")
    if not choices or not isinstance(choices[0], dict):
        return None, None
    first = choices[0]
    delta = first.get("delta") or {}
    content = delta.get("content") if isinstance(delta, dict) else None
    if not isinstance(content, str):
        content = None
    return content, first.get("finish_reason")


class _PreviewTracker:
    """Reports refined choice previews, never fewer choices than last time."""

    def __init__(self, callback: PreviewCallback | None) -> None:
        self._callback = callback
        self._last: list[Choice] = []

    def update(self, text: str) -> None:
        if self._callback is None:
            return
        _, block = split_response(text)
        choices = parse_choices(block)
        if len(choices) < MIN_PREVIEW_CHOICES or len(choices) < len(self._last):
            return
        if choices == self._last:
            return
        self._last = choices
        logger.debug("interim preview with %d choices", len(choices))
        self._callback(choices)


class EventStreamDecoder:
    def __init__(self, on_preview: PreviewCallback | None = None) -> None:
        self._on_preview = on_preview

    def _read_line(self, line: str, parts: list[str]) -> bool:
        """Consume one line; return True when it is a terminal event."""
        line = line.rstrip("\r")
        if not line.startswith(DATA_PREFIX):
            return False
        payload = line[len(DATA_PREFIX):].strip()
        if payload == DONE:
            return True
        try:
            content, finish_reason = _parse_fragment(payload)
        except MalformedFragmentError as e:
            logger.warning("Skipping event-stream fragment: %s", e)
            return False
        if content:
            parts.append(content)
        return finish_reason == "stop"

    async def decode(self, stream: ByteStream) -> str:
        utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")
        preview = _PreviewTracker(self._on_preview)
        parts: list[str] = []
        pending = ""
        finished = False

        async with aclosing(stream):
            async for chunk in stream:
                pending += utf8.decode(chunk)
                *lines, pending = pending.split("\n")
                received = len(parts)
                for line in lines:
                    if self._read_line(line, parts):
                        finished = True
                        break
                if len(parts) > received:
                    preview.update("".join(parts))
                if finished:
                    break
            else:
                pending += utf8.decode(b"", final=True)
                if pending and self._read_line(pending, parts):
                    finished = True

        text = "".join(parts)
        if not finished:
            raise StreamIncompleteError(
                f"Stream ended without a terminal marker after {len(text)} characters"
            )
        logger.debug("event stream decoded len=%d", len(text))
        return text


class SingleShotDecoder:
    async def decode(self, stream: ByteStream) -> str:
        async with aclosing(stream):
            async for chunk in stream:
                return chunk.decode("utf-8", errors="replace")
        return ""


def decoder_for(
    response: GenerationResponse, on_preview: PreviewCallback | None = None
) -> StreamDecoder:
    if response.framing == "single-shot":
        return SingleShotDecoder()
    return EventStreamDecoder(on_preview)


async def decode_response(
    response: GenerationResponse, on_preview: PreviewCallback | None = None
) -> str:
    """Full response text from either response shape.

    Raises NetworkError when the service flagged failure or sent no stream.
    """
    if response.content is not None:
        return await SingleShotDecoder().decode(single_chunk_stream(response.content))
    if not response.ok:
        raise NetworkError("Generation service rejected the request")
    if response.stream is None:
        raise NetworkError("Generation service returned no stream")
    return await decoder_for(response, on_preview).decode(response.stream)
