"""Generation-service client.

The pipeline injects a generator callable matching the protocol:

    async def __call__(self, request: GenerationRequest) -> GenerationResponse: ...

A response carries either the whole text (`content`) or a byte stream plus an
`ok` flag. Streams are framed one of two ways, recorded on the response:

    "event-stream"  server-sent events, one `data: {...}` JSON delta per line,
                    ending with `data: [DONE]` or finish_reason "stop"
    "single-shot"   the first chunk is the entire response

Two implementations are provided:

    HttpStoryGenerator  real HTTP client for OpenAI-compatible chat
                        completions (streamed or not) and Gemini
                        generateContent. Selected by provider_format.
    StaticGenerator     returns a fixed text. Used by the demo data and for
                        running the app without a model.
"""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack
from dataclasses import dataclass
from typing import AsyncIterator, Literal, Protocol

import httpx

from storyweave.errors import EmptyContentError, NetworkError
from storyweave.models import GenerationRequest
from storyweave.prompts import SYSTEM_PROMPT, build_full_prompt, build_user_prompt

logger = logging.getLogger(__name__)

Framing = Literal["event-stream", "single-shot"]
ProviderFormat = Literal["openai", "gemini"]


# ---------------------------------------------------------------------------
# Response shape
# ---------------------------------------------------------------------------

class ByteStream(Protocol):
    """A readable stream of UTF-8 chunks that must be closed after use."""

    def __aiter__(self) -> AsyncIterator[bytes]: ...

    async def aclose(self) -> None: ...


@dataclass
class GenerationResponse:
    content: str | None = None
    stream: ByteStream | None = None
    ok: bool = True
    framing: Framing = "event-stream"


async def single_chunk_stream(text: str) -> AsyncIterator[bytes]:
    """A stream that yields the whole text once, then closes."""
    yield text.encode("utf-8")


class StoryGenerator(Protocol):
    async def __call__(self, request: GenerationRequest) -> GenerationResponse: ...


# ---------------------------------------------------------------------------
# ResponseStream: an open httpx response exposed as a ByteStream
# ---------------------------------------------------------------------------

class ResponseStream:
    """Owns the client and response of a streamed request.

    `aclose()` releases both; the decoder calls it on every exit path.
    """

    def __init__(self, response: httpx.Response, stack: AsyncExitStack) -> None:
        self._response = response
        self._stack = stack

    async def __aiter__(self) -> AsyncIterator[bytes]:
        try:
            async for chunk in self._response.aiter_bytes():
                yield chunk
        except httpx.TimeoutException as e:
            raise NetworkError("Generation stream timed out") from e
        except httpx.HTTPError as e:
            raise NetworkError(f"Generation stream failed: {e}") from e

    async def aclose(self) -> None:
        await self._stack.aclose()


# ---------------------------------------------------------------------------
# HttpStoryGenerator: connects to a real backend
# ---------------------------------------------------------------------------

class HttpStoryGenerator:
    """Async HTTP client for the generation service.

    Supported formats:
      "openai"  POST /v1/chat/completions {"model", "messages", "stream", ...}
                  Streamed: text/event-stream of chat-completion deltas.
                  Otherwise: {"choices": [{"message": {"content": "..."}}]}
      "gemini"  POST /v1beta/models/{model}:generateContent?key=...
                  Response: {"candidates": [{"content": {"parts": [{"text": "..."}]}}]}
                  Always single-shot.

    Args:
        provider_url:    Base URL, e.g. "https://openrouter.ai/api".
        api_key:         Bearer token (openai) or API key (gemini).
        provider_format: Wire format to use. Defaults to "openai".
        model:           Model identifier.
        timeout:         Upper bound in seconds for the request. Defaults to 10.
        stream:          Ask for a streamed response (openai only).
    """

    def __init__(
        self,
        provider_url: str,
        api_key: str = "",
        provider_format: ProviderFormat = "openai",
        model: str = "",
        timeout: float = 10.0,
        stream: bool = True,
        temperature: float = 0.7,
        max_tokens: int = 1000,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = provider_url.rstrip("/")
        self._api_key = api_key
        self._format = provider_format
        self._model = model
        self._timeout = timeout
        self._stream = stream and provider_format == "openai"
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout, transport=self._transport)

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self._api_key and self._format == "openai":
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _build_request(self, request: GenerationRequest) -> tuple[str, dict]:
        """Return (url, body) for the configured format."""
        if self._format == "gemini":
            url = f"{self._base_url}/v1beta/models/{self._model}:generateContent"
            if self._api_key:
                url += f"?key={self._api_key}"
            body: dict = {
                "contents": [{"parts": [{"text": build_full_prompt(request)}]}],
                "generationConfig": {
                    "temperature": self._temperature,
                    "maxOutputTokens": self._max_tokens,
                },
            }
            return url, body

        url = f"{self._base_url}/v1/chat/completions"
        body = {
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_user_prompt(request)},
            ],
            "temperature": self._temperature,
            "max_tokens": self._max_tokens,
            "stream": self._stream,
        }
        if self._model:
            body["model"] = self._model
        return url, body

    def _parse_response(self, data: dict) -> str:
        """Extract the text from a non-streamed response body."""
        try:
            if self._format == "gemini":
                text = data["candidates"][0]["content"]["parts"][0]["text"]
            else:
                text = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise EmptyContentError(
                f"Unexpected response format from {self._format} backend"
            ) from e
        if not isinstance(text, str):
            raise EmptyContentError(f"Unexpected response format from {self._format} backend")
        return text

    async def __call__(self, request: GenerationRequest) -> GenerationResponse:
        url, body = self._build_request(request)
        logger.debug(
            "generation request character=%s stream=%s url=%s",
            request.character.name, self._stream, self._base_url,
        )
        if self._stream:
            return await self._open_stream(url, body)

        try:
            async with self._client() as client:
                resp = await client.post(url, json=body, headers=self._headers())
                resp.raise_for_status()
        except httpx.ConnectError as e:
            raise NetworkError(f"Cannot connect to generation service at {self._base_url}") from e
        except httpx.HTTPStatusError as e:
            raise NetworkError(
                f"Generation service returned HTTP {e.response.status_code}"
            ) from e
        except httpx.TimeoutException as e:
            raise NetworkError(f"Generation service timed out after {self._timeout}s") from e
        except httpx.HTTPError as e:
            raise NetworkError(f"Generation request failed: {e}") from e

        try:
            data = resp.json()
        except ValueError as e:
            raise EmptyContentError(
                f"Generation service returned a non-JSON body from {self._format} backend"
            ) from e
        text = self._parse_response(data)
        logger.debug("generation response len=%d", len(text))
        return GenerationResponse(content=text, framing="single-shot")

    async def _open_stream(self, url: str, body: dict) -> GenerationResponse:
        stack = AsyncExitStack()
        try:
            client = await stack.enter_async_context(self._client())
            resp = await stack.enter_async_context(
                client.stream("POST", url, json=body, headers=self._headers())
            )
        except httpx.HTTPError as e:
            await stack.aclose()
            if isinstance(e, httpx.TimeoutException):
                raise NetworkError(f"Generation service timed out after {self._timeout}s") from e
            raise NetworkError(f"Cannot connect to generation service at {self._base_url}") from e

        if not resp.is_success:
            logger.debug("generation stream refused status=%d", resp.status_code)
            await stack.aclose()
            return GenerationResponse(ok=False, framing="event-stream")
        return GenerationResponse(stream=ResponseStream(resp, stack), framing="event-stream")


# ---------------------------------------------------------------------------
# StaticGenerator: fixed text, no network calls
# ---------------------------------------------------------------------------

class StaticGenerator:
    """Returns the same text for every request, as a single-shot stream.

    Lets the app and the demo data run end-to-end without a model.
    """

    def __init__(self, text: str) -> None:
        self._text = text

    async def __call__(self, request: GenerationRequest) -> GenerationResponse:
        logger.debug("StaticGenerator character=%s", request.character.name)
        return GenerationResponse(
            stream=single_chunk_stream(self._text), framing="single-shot"
        )
