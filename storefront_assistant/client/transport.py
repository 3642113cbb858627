"""HTTP client for the assistant endpoints."""

import codecs
import json
from typing import AsyncIterable, AsyncIterator, Dict, List, Optional

import httpx

from storefront_assistant.analytics.logger import logger
from storefront_assistant.client.models import AskResult, ProductStub


class TransportError(Exception):
    """An assistant exchange failed on the wire or was rejected."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class ServiceUnavailableError(TransportError):
    """The server has no language-model provider configured (HTTP 503)."""


async def iter_text_fragments(byte_chunks: AsyncIterable[bytes]) -> AsyncIterator[str]:
    """Decode a byte stream into text fragments.

    A multi-byte character split across two chunks is held back until its
    remaining bytes arrive, so concatenating the fragments always equals
    decoding the whole body at once.
    """
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    async for chunk in byte_chunks:
        text = decoder.decode(chunk)
        if text:
            yield text
    tail = decoder.decode(b"", final=True)
    if tail:
        yield tail


def _error_from_response(response: httpx.Response, body: bytes) -> TransportError:
    message = f"Assistant request failed with HTTP {response.status_code}"
    try:
        detail = json.loads(body.decode("utf-8")).get("error")
        if detail:
            message = f"{message}: {detail}"
    except (ValueError, AttributeError):
        logger.debug(f"Error response without JSON body (HTTP {response.status_code})")
    if response.status_code == 503:
        return ServiceUnavailableError(message, response.status_code)
    return TransportError(message, response.status_code)


class AssistantClient:
    """Talks to ``/assistant/stream`` and ``/assistant/ask``."""

    def __init__(
        self,
        base_url: str = "http://localhost:3565",
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 60.0,
    ):
        self._owns_client = http_client is None
        self.http = http_client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def stream_reply(self, messages: List[Dict[str, str]]) -> AsyncIterator[str]:
        """Yield decoded reply fragments in arrival order.

        Raises TransportError (ServiceUnavailableError on 503) for a non-2xx
        status or a failure while reading the body.
        """
        try:
            async with self.http.stream("POST", "/assistant/stream", json={"messages": messages}) as response:
                if response.status_code >= 400:
                    body = await response.aread()
                    raise _error_from_response(response, body)
                async for fragment in iter_text_fragments(response.aiter_bytes()):
                    yield fragment
        except httpx.HTTPError as e:
            logger.warning(f"Streaming exchange failed: {e}")
            raise TransportError(f"Streaming exchange failed: {type(e).__name__}") from e

    async def ask(self, question: str) -> AskResult:
        """Send one structured question; anything but ``success: true`` is an error."""
        try:
            response = await self.http.post("/assistant/ask", json={"question": question})
        except httpx.HTTPError as e:
            logger.warning(f"Structured exchange failed: {e}")
            raise TransportError(f"Structured exchange failed: {type(e).__name__}") from e

        if response.status_code == 503:
            raise ServiceUnavailableError("Assistant unavailable", response.status_code)

        try:
            payload = response.json()
        except ValueError as e:
            raise TransportError("Malformed assistant response", response.status_code) from e

        if not isinstance(payload, dict) or payload.get("success") is not True:
            raise TransportError("Assistant did not answer", response.status_code)

        try:
            products = [ProductStub.from_dict(item) for item in payload.get("products") or []]
        except (KeyError, TypeError, ValueError) as e:
            raise TransportError("Malformed product reference", response.status_code) from e

        suggestions = [s for s in payload.get("suggestions") or [] if isinstance(s, str) and s.strip()]
        return AskResult(answer=payload.get("answer") or "", products=products, suggestions=suggestions)

    async def aclose(self):
        if self._owns_client:
            await self.http.aclose()
