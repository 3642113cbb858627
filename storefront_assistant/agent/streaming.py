"""Server half of the streaming assistant transport.

An exchange is opened by awaiting the first fragment from the provider, so
every failure that happens before any byte is sent can still be reported as
an HTTP error status. After that the remaining fragments are relayed as they
arrive; a later failure or the duration cap simply ends the body.
"""

import asyncio
from typing import AsyncIterator, Dict, List, Optional

from storefront_assistant.agent.context_builder import ContextBuilder
from storefront_assistant.agent.llm_provider import LLMProvider, ProviderError
from storefront_assistant.analytics.error_tracker import error_tracker
from storefront_assistant.analytics.logger import logger
from storefront_assistant.services.catalog_service import CatalogService
from storefront_assistant.utils.config import settings


class StreamTimeoutError(Exception):
    """The exchange exceeded its maximum duration."""


def trim_history(messages: List[Dict[str, str]], max_messages: int) -> List[Dict[str, str]]:
    """Keep the most recent messages, starting the window on a user turn."""
    if max_messages > 0:
        messages = messages[-max_messages:]
    start = 0
    while start < len(messages) and messages[start]["role"] != "user":
        start += 1
    return messages[start:]


class StreamingAssistant:
    """Relays provider fragments for one conversation at a time."""

    def __init__(
        self,
        provider: LLMProvider,
        context_builder: ContextBuilder,
        max_duration: float = settings.stream_max_duration_seconds,
        max_history: int = settings.max_history_messages,
    ):
        self.provider = provider
        self.context_builder = context_builder
        self.max_duration = max_duration
        self.max_history = max_history

    async def open_stream(
        self, messages: List[Dict[str, str]], catalog: Optional[CatalogService] = None
    ) -> AsyncIterator[str]:
        """Start an exchange and return the fragment iterator.

        Raises ProviderNotConfiguredError, ProviderError or StreamTimeoutError
        when the exchange fails before its first fragment.
        """
        self.provider.ensure_configured()

        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.max_duration

        instruction = self.context_builder.build_instruction(catalog)
        history = trim_history(messages, self.max_history)
        if not history:
            raise ValueError("Conversation has no user message")

        fragments = self.provider.stream(instruction, history)
        try:
            first = await self._next_fragment(fragments, deadline)
        except BaseException:
            await fragments.aclose()
            raise

        logger.info(f"Streaming reply started ({len(history)} messages in context)")
        return self._relay(first, fragments, deadline)

    async def _next_fragment(self, fragments: AsyncIterator[str], deadline: float) -> Optional[str]:
        """Await the next fragment within the exchange deadline; None at end."""
        remaining = deadline - asyncio.get_running_loop().time()
        if remaining <= 0:
            raise StreamTimeoutError(f"Stream exceeded {self.max_duration}s")
        try:
            return await asyncio.wait_for(fragments.__anext__(), timeout=remaining)
        except StopAsyncIteration:
            return None
        except asyncio.TimeoutError:
            raise StreamTimeoutError(f"Stream exceeded {self.max_duration}s")

    async def _relay(
        self, first: Optional[str], fragments: AsyncIterator[str], deadline: float
    ) -> AsyncIterator[str]:
        sent = 0
        try:
            fragment = first
            while fragment is not None:
                sent += len(fragment)
                yield fragment
                try:
                    fragment = await self._next_fragment(fragments, deadline)
                except StreamTimeoutError as e:
                    logger.warning(f"Streaming reply truncated after {sent} chars: {e}")
                    error_tracker.record_error("timeout", str(e), {"chars_sent": sent})
                    break
                except ProviderError as e:
                    logger.error(f"Provider failed mid-stream after {sent} chars: {e.__cause__ or e}")
                    error_tracker.record_error("llm_error", str(e), {"chars_sent": sent})
                    break
            else:
                logger.info(f"Streaming reply finished ({sent} chars)")
        finally:
            await fragments.aclose()
