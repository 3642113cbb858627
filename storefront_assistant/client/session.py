"""Conversation state for one embedded assistant widget.

``ConversationSession`` owns the message list and the in-flight guard and
folds both delivery shapes into the same timeline: streamed replies grow a
placeholder message fragment by fragment, structured replies are appended
in one step. At most one exchange runs per session; a submission while one
is pending is dropped.

Typical use::

    session = ConversationSession(AssistantClient("http://localhost:3565"))
    session.subscribe(renderer)
    session.open()
    await session.submit_stream("Milyen telefont ajánlasz?")
"""

import asyncio
import dataclasses
from typing import Awaitable, Callable, List, Optional

from storefront_assistant.analytics.logger import logger
from storefront_assistant.client.models import Message
from storefront_assistant.client.transport import AssistantClient, ServiceUnavailableError

GREETING_ID = "welcome"
GREETING = (
    "Szia! 👋 Én a NEXU Store AI értékesítési asszisztense vagyok. "
    "Segítek megtalálni a tökéletes terméket!\n\n"
    "Kérdezz bátran termékekről, vagy mondd el mire van szükséged! 🛍️"
)
STREAM_ERROR_MESSAGE = "Elnézést, technikai hiba történt. Kérlek próbáld újra!"
ASK_ERROR_MESSAGE = "Hiba történt, kérlek próbáld újra."
UNAVAILABLE_MESSAGE = "Az AI asszisztens jelenleg nem elérhető. Kérlek próbáld újra később!"
EMPTY_ANSWER_MESSAGE = "Sajnálom, nem tudok segíteni ebben."
ERROR_LINE = "Hiba történt a chat során"

IDLE = "idle"
SUBMITTING = "submitting"

Listener = Callable[[str, "ConversationSession"], None]


# Reducers: pure functions from one message list to the next

def append_message(messages: List[Message], message: Message) -> List[Message]:
    return [*messages, message]


def append_fragment(messages: List[Message], message_id: str, fragment: str) -> List[Message]:
    """Append ``fragment`` to the content of the addressed message."""
    return [
        dataclasses.replace(message, content=message.content + fragment)
        if message.id == message_id else message
        for message in messages
    ]


def replace_message(messages: List[Message], message_id: str, **changes) -> List[Message]:
    return [
        dataclasses.replace(message, **changes) if message.id == message_id else message
        for message in messages
    ]


class ConversationSession:
    """Message list, request guard and UI state of one widget instance."""

    def __init__(self, client: AssistantClient, greeting: str = GREETING):
        self.client = client
        self.greeting = greeting
        self.messages: List[Message] = []
        self.input = ""
        self.error: Optional[str] = None
        self.is_loading = False
        self.pending: Optional[str] = None  # "stream" or "ask" while submitting
        self.is_open = False
        self._listeners: List[Listener] = []
        self._task: Optional[asyncio.Task] = None
        self._generation = 0

    @property
    def state(self) -> str:
        return SUBMITTING if self.is_loading else IDLE

    # Rendering hooks

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener(event, session)``; returns an unsubscribe callable.

        Events: ``render`` and ``scroll`` after every message list change,
        ``state`` when the guard flips, ``focus`` when the widget opens.
        """
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, event: str):
        for listener in list(self._listeners):
            try:
                listener(event, self)
            except Exception as e:
                logger.error(f"Conversation listener failed on '{event}': {e}", exc_info=True)

    def _set_messages(self, messages: List[Message]):
        self.messages = messages
        self._emit("render")
        self._emit("scroll")

    # Widget lifecycle

    def open(self):
        """Show the widget; the first open seeds the greeting without a request."""
        self.is_open = True
        if not self.messages:
            self._set_messages([Message(role="assistant", content=self.greeting, id=GREETING_ID)])
        self._emit("focus")

    def close(self):
        """Discard the conversation and cancel any in-flight exchange."""
        self._generation += 1
        if self._task is not None and not self._task.done():
            logger.info("Cancelling in-flight assistant exchange on close")
            self._task.cancel()
        self._task = None
        self.is_open = False
        self.input = ""
        self.error = None
        self._set_guard(False)
        self._set_messages([Message(role="assistant", content=self.greeting, id=GREETING_ID)])

    async def aclose(self):
        self.close()
        await self.client.aclose()

    def set_input(self, text: str):
        self.input = text

    # Submissions

    async def submit_stream(self, text: Optional[str] = None) -> bool:
        """Send the conversation to the streaming endpoint.

        Returns False when the submission was dropped (blank text or an
        exchange already in flight).
        """
        content = self._begin(text, "stream")
        if content is None:
            return False

        history = self._history()
        placeholder = Message(role="assistant")
        self._set_messages(append_message(self.messages, placeholder))
        return await self._run(lambda generation: self._stream_exchange(history, placeholder.id, generation))

    async def submit_ask(self, text: Optional[str] = None) -> bool:
        """Send one question to the structured endpoint."""
        content = self._begin(text, "ask")
        if content is None:
            return False
        return await self._run(lambda generation: self._ask_exchange(content, generation))

    async def click_suggestion(self, suggestion: str) -> bool:
        """A suggestion chip is a regular structured submission."""
        return await self.submit_ask(suggestion)

    def _begin(self, text: Optional[str], kind: str) -> Optional[str]:
        # Runs before the first await so two submissions in one tick see the guard
        content = (self.input if text is None else text).strip()
        if not content or self.is_loading:
            return None
        self.error = None
        self.pending = kind
        self._set_guard(True)
        self.input = ""
        self._set_messages(append_message(self.messages, Message(role="user", content=content)))
        return content

    def _set_guard(self, value: bool):
        if not value:
            self.pending = None
        if self.is_loading != value:
            self.is_loading = value
            self._emit("state")

    def _history(self):
        return [
            message.to_history()
            for message in self.messages
            if message.id != GREETING_ID and message.content and not message.is_error
        ]

    async def _run(self, make_exchange: Callable[[int], Awaitable[None]]) -> bool:
        generation = self._generation
        task = asyncio.ensure_future(make_exchange(generation))
        self._task = task
        try:
            await task
        except asyncio.CancelledError:
            if generation != self._generation:
                # Conversation was discarded by close(); nothing left to update
                return False
            raise
        finally:
            if generation == self._generation:
                self._task = None
                self._set_guard(False)
        return True

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    async def _stream_exchange(self, history, message_id: str, generation: int):
        try:
            async for fragment in self.client.stream_reply(history):
                if not self._is_current(generation):
                    return
                self._set_messages(append_fragment(self.messages, message_id, fragment))
        except ServiceUnavailableError as e:
            self._fail(generation, UNAVAILABLE_MESSAGE, e, placeholder_id=message_id)
        except Exception as e:
            self._fail(generation, STREAM_ERROR_MESSAGE, e, placeholder_id=message_id)

    async def _ask_exchange(self, question: str, generation: int):
        try:
            result = await self.client.ask(question)
        except ServiceUnavailableError as e:
            self._fail(generation, UNAVAILABLE_MESSAGE, e)
            return
        except Exception as e:
            self._fail(generation, ASK_ERROR_MESSAGE, e)
            return

        if not self._is_current(generation):
            return
        # The reply replaces the thinking indicator in the same render
        self.pending = None
        reply = Message(
            role="assistant",
            content=result.answer or EMPTY_ANSWER_MESSAGE,
            products=list(result.products) or None,
            suggestions=list(result.suggestions) or None,
        )
        self._set_messages(append_message(self.messages, reply))

    def _fail(self, generation: int, text: str, exc: Exception, placeholder_id: Optional[str] = None):
        """Show one error bubble; an untouched placeholder becomes that bubble."""
        logger.warning(f"Assistant exchange failed: {type(exc).__name__}: {exc}")
        if not self._is_current(generation):
            return
        self.error = ERROR_LINE
        self.pending = None

        placeholder = next((m for m in self.messages if m.id == placeholder_id), None)
        if placeholder is not None and not placeholder.content:
            messages = replace_message(self.messages, placeholder_id, content=text, is_error=True)
        else:
            messages = append_message(self.messages, Message(role="assistant", content=text, is_error=True))
        self._set_messages(messages)
