"""Tests for the client conversation state machine."""
import asyncio
from typing import List, Optional

import httpx
import pytest
import pytest_asyncio

from conftest import FakeProvider
from storefront_assistant.agent.llm_provider import AssistantAnswer
from storefront_assistant.api.dependencies import get_llm_provider
from storefront_assistant.api.main import app
from storefront_assistant.client.models import AskResult, ProductStub
from storefront_assistant.client.render import THINKING_INDICATOR, TextRenderer
from storefront_assistant.client.session import (
    ASK_ERROR_MESSAGE,
    EMPTY_ANSWER_MESSAGE,
    ERROR_LINE,
    GREETING,
    GREETING_ID,
    IDLE,
    STREAM_ERROR_MESSAGE,
    SUBMITTING,
    UNAVAILABLE_MESSAGE,
    ConversationSession,
)
from storefront_assistant.client.transport import AssistantClient, ServiceUnavailableError, TransportError

AIRPODS = ProductStub(id=42, name="AirPods Pro", slug="airpods-pro", price=89990)


class FakeAssistantClient:
    """Scripted stand-in for AssistantClient."""

    def __init__(
        self,
        fragments: Optional[List[str]] = None,
        error: Optional[Exception] = None,
        ask_result: Optional[AskResult] = None,
        gate: Optional[asyncio.Event] = None,
    ):
        self.fragments = fragments if fragments is not None else ["Az ", "iPhone 15", " ajánlott."]
        self.error = error
        self.ask_result = ask_result or AskResult(answer="Szívesen segítek!")
        self.gate = gate
        self.stream_calls = []
        self.ask_calls = []
        self.cancelled = False
        self.closed = False

    async def _wait(self):
        if self.gate is not None:
            try:
                await self.gate.wait()
            except asyncio.CancelledError:
                self.cancelled = True
                raise

    async def stream_reply(self, messages):
        self.stream_calls.append(messages)
        await self._wait()
        for fragment in self.fragments:
            yield fragment
        if self.error is not None:
            raise self.error

    async def ask(self, question):
        self.ask_calls.append(question)
        await self._wait()
        if self.error is not None:
            raise self.error
        return self.ask_result

    async def aclose(self):
        self.closed = True


def opened(client) -> ConversationSession:
    session = ConversationSession(client)
    session.open()
    return session


def error_messages(session):
    return [message for message in session.messages if message.is_error]


async def settle():
    for _ in range(5):
        await asyncio.sleep(0)


# Greeting and lifecycle

def test_open_seeds_greeting_without_request():
    client = FakeAssistantClient()
    session = ConversationSession(client)
    events = []
    session.subscribe(lambda event, s: events.append(event))

    session.open()
    session.open()

    assert [m.id for m in session.messages] == [GREETING_ID]
    assert session.messages[0].content == GREETING
    assert client.stream_calls == [] and client.ask_calls == []
    assert events.count("focus") == 2
    assert session.state == IDLE


def test_unsubscribe_stops_events():
    session = ConversationSession(FakeAssistantClient())
    events = []
    unsubscribe = session.subscribe(lambda event, s: events.append(event))
    unsubscribe()

    session.open()

    assert events == []


# Streaming submissions

@pytest.mark.asyncio
async def test_stream_reply_grows_one_message():
    client = FakeAssistantClient()
    session = opened(client)
    contents = []

    def record(event, s):
        if event == "render":
            contents.append(s.messages[-1].content)

    session.subscribe(record)

    assert await session.submit_stream("Milyen telefont ajánlasz?") is True

    assert [m.role for m in session.messages] == ["assistant", "user", "assistant"]
    assert session.messages[-1].content == "Az iPhone 15 ajánlott."
    assert client.stream_calls == [[{"role": "user", "content": "Milyen telefont ajánlasz?"}]]
    # placeholder first, then only ever longer
    assert contents[1:] == ["", "Az ", "Az iPhone 15", "Az iPhone 15 ajánlott."]
    assert session.state == IDLE
    assert session.error is None


@pytest.mark.asyncio
async def test_placeholder_exists_before_first_byte():
    gate = asyncio.Event()
    client = FakeAssistantClient(gate=gate)
    session = opened(client)

    task = asyncio.create_task(session.submit_stream("Szia"))
    await settle()

    assert session.state == SUBMITTING
    assert session.messages[-1].role == "assistant"
    assert session.messages[-1].content == ""

    gate.set()
    await task
    assert session.messages[-1].content == "Az iPhone 15 ajánlott."


@pytest.mark.asyncio
async def test_only_one_request_in_flight():
    client = FakeAssistantClient()
    session = opened(client)

    results = await asyncio.gather(
        session.submit_stream("első"),
        session.submit_stream("második"),
        session.submit_ask("harmadik"),
    )

    assert results == [True, False, False]
    assert len(client.stream_calls) == 1
    assert client.ask_calls == []
    assert [m.content for m in session.messages if m.role == "user"] == ["első"]


@pytest.mark.asyncio
async def test_blank_input_is_ignored():
    client = FakeAssistantClient()
    session = opened(client)

    assert await session.submit_stream("   ") is False
    assert await session.submit_ask("") is False

    assert len(session.messages) == 1
    assert client.stream_calls == [] and client.ask_calls == []


@pytest.mark.asyncio
async def test_submit_uses_and_clears_input():
    client = FakeAssistantClient()
    session = opened(client)
    session.set_input("  Szia  ")

    await session.submit_stream()

    assert session.input == ""
    assert session.messages[1].content == "Szia"


@pytest.mark.asyncio
async def test_history_excludes_greeting_and_errors():
    client = FakeAssistantClient(error=TransportError("boom"), fragments=[])
    session = opened(client)
    await session.submit_stream("első")

    client.error = None
    client.fragments = ["Rendben."]
    await session.submit_stream("második")

    assert client.stream_calls[1] == [
        {"role": "user", "content": "első"},
        {"role": "user", "content": "második"},
    ]


# Failure isolation

@pytest.mark.asyncio
async def test_failure_before_first_byte_replaces_placeholder():
    client = FakeAssistantClient(fragments=[], error=TransportError("HTTP 500", 500))
    session = opened(client)

    assert await session.submit_stream("Szia") is True

    assert [m.content for m in session.messages[1:]] == ["Szia", STREAM_ERROR_MESSAGE]
    assert len(error_messages(session)) == 1
    assert session.error == ERROR_LINE
    assert session.state == IDLE


@pytest.mark.asyncio
async def test_failure_mid_stream_keeps_partial_text():
    client = FakeAssistantClient(fragments=["Az "], error=TransportError("connection reset"))
    session = opened(client)

    await session.submit_stream("Szia")

    assert [m.content for m in session.messages[1:]] == ["Szia", "Az ", STREAM_ERROR_MESSAGE]
    assert len(error_messages(session)) == 1


@pytest.mark.asyncio
async def test_service_unavailable_shows_one_message():
    client = FakeAssistantClient(fragments=[], error=ServiceUnavailableError("HTTP 503", 503))
    session = opened(client)

    await session.submit_stream("Szia")

    assert [m.content for m in error_messages(session)] == [UNAVAILABLE_MESSAGE]
    assert session.messages[-1].content == UNAVAILABLE_MESSAGE


@pytest.mark.asyncio
async def test_error_clears_on_next_submission():
    client = FakeAssistantClient(fragments=[], error=TransportError("boom"))
    session = opened(client)
    await session.submit_stream("Szia")
    assert session.error == ERROR_LINE

    client.error = None
    client.fragments = ["Szia!"]
    await session.submit_stream("Újra")

    assert session.error is None
    assert session.messages[-1].content == "Szia!"


# Structured submissions

@pytest.mark.asyncio
async def test_ask_appends_reply_with_products_and_suggestions():
    result = AskResult(answer="Az AirPods Pro jó választás.", products=[AIRPODS], suggestions=["Van olcsóbb?"])
    client = FakeAssistantClient(ask_result=result)
    session = opened(client)

    assert await session.submit_ask("Milyen fülhallgatót ajánlasz?") is True

    reply = session.messages[-1]
    assert reply.content == "Az AirPods Pro jó választás."
    assert reply.products == [AIRPODS]
    assert reply.suggestions == ["Van olcsóbb?"]
    assert session.pending is None


@pytest.mark.asyncio
async def test_ask_pending_while_in_flight():
    gate = asyncio.Event()
    session = opened(FakeAssistantClient(gate=gate))

    task = asyncio.create_task(session.submit_ask("Szia"))
    await settle()

    assert session.pending == "ask"
    # no placeholder for structured replies
    assert session.messages[-1].role == "user"

    gate.set()
    await task
    assert session.pending is None


@pytest.mark.asyncio
async def test_suggestion_click_sends_question():
    client = FakeAssistantClient()
    session = opened(client)

    await session.click_suggestion("Mutass még fülhallgatót")

    assert client.ask_calls == ["Mutass még fülhallgatót"]
    assert session.messages[1].role == "user"
    assert session.messages[1].content == "Mutass még fülhallgatót"


@pytest.mark.asyncio
async def test_ask_failure_appends_error():
    session = opened(FakeAssistantClient(error=TransportError("Assistant did not answer")))

    await session.submit_ask("Szia")

    assert [m.content for m in session.messages[1:]] == ["Szia", ASK_ERROR_MESSAGE]
    assert session.error == ERROR_LINE


@pytest.mark.asyncio
async def test_ask_empty_answer_uses_fallback_text():
    session = opened(FakeAssistantClient(ask_result=AskResult(answer="")))

    await session.submit_ask("Szia")

    assert session.messages[-1].content == EMPTY_ANSWER_MESSAGE


@pytest.mark.asyncio
async def test_thinking_indicator_replaced_by_reply():
    result = AskResult(answer="Az AirPods Pro jó.", products=[AIRPODS])
    session = opened(FakeAssistantClient(ask_result=result))
    renderer = TextRenderer()
    session.subscribe(renderer)

    await session.submit_ask("ajándék ötlet")

    assert any(THINKING_INDICATOR in frame for frame in renderer.frames)
    assert THINKING_INDICATOR not in renderer.last_frame
    assert renderer.last_frame.splitlines()[-2:] == [
        "AI: Az AirPods Pro jó.",
        "  ▸ AirPods Pro | 89 990 Ft | /shop/airpods-pro",
    ]


@pytest.mark.asyncio
async def test_thinking_indicator_replaced_by_error():
    session = opened(FakeAssistantClient(error=TransportError("Assistant did not answer")))
    renderer = TextRenderer()
    session.subscribe(renderer)

    await session.submit_ask("Szia")

    assert THINKING_INDICATOR not in renderer.last_frame
    assert renderer.last_frame.splitlines()[-2:] == [f"AI: {ASK_ERROR_MESSAGE}", f"! {ERROR_LINE}"]


# Cancellation

@pytest.mark.asyncio
async def test_close_cancels_in_flight_exchange():
    gate = asyncio.Event()
    client = FakeAssistantClient(gate=gate)
    session = opened(client)

    task = asyncio.create_task(session.submit_stream("Szia"))
    await settle()
    session.close()

    assert await task is False
    assert client.cancelled
    assert [m.id for m in session.messages] == [GREETING_ID]
    assert session.state == IDLE
    assert session.is_open is False

    # the widget is usable again right away
    gate.set()
    session.open()
    assert await session.submit_stream("Újra") is True
    assert session.messages[-1].content == "Az iPhone 15 ajánlott."


@pytest.mark.asyncio
async def test_aclose_closes_client():
    client = FakeAssistantClient()
    session = opened(client)

    await session.aclose()

    assert client.closed


# Against the real application

@pytest_asyncio.fixture
async def live_client(db_session):
    provider = FakeProvider()
    app.dependency_overrides[get_llm_provider] = lambda: provider
    http = httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://assistant.test")
    try:
        yield AssistantClient(http_client=http), provider
    finally:
        await http.aclose()
        app.dependency_overrides.clear()


@pytest.mark.asyncio
async def test_conversation_against_app(live_client):
    client, provider = live_client
    provider.answer = AssistantAnswer(
        answer="Az AirPods Pro kiváló választás.",
        product_ids=[42],
        suggestions=["Mutass még fülhallgatót"],
    )
    session = opened(client)

    await session.submit_stream("Milyen telefont ajánlasz?")
    await session.submit_ask("Milyen fülhallgatót ajánlasz?")

    streamed, answered = session.messages[2], session.messages[4]
    assert streamed.content == "Az iPhone 15 ajánlott."
    assert answered.products == [AIRPODS]
    assert answered.suggestions == ["Mutass még fülhallgatót"]
    assert session.error is None


@pytest.mark.asyncio
async def test_unconfigured_app_shows_unavailable(live_client):
    client, provider = live_client
    provider.configured = False
    session = opened(client)

    await session.submit_stream("Szia")

    assert [m.content for m in error_messages(session)] == [UNAVAILABLE_MESSAGE]
