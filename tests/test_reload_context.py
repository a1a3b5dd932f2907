import asyncio
from typing import Dict
from unittest.mock import AsyncMock, MagicMock

import pytest

from Kontour.core.event_bus import Event, EventBus
from Kontour.core.events import ClientFailed, ClientReady, ContextSelectionChanged
from Kontour.core.exceptions import KubeconfigNotFoundError
from Kontour.core.reload_context import ReloadContext


class GatedFactory:
    """Hands out fake clients once the test opens the gate for a selector."""

    def __init__(self) -> None:
        self.gates: Dict[str, asyncio.Event] = {}
        self.clients: Dict[str, MagicMock] = {}

    def gate(self, selector: str) -> asyncio.Event:
        return self.gates.setdefault(selector, asyncio.Event())

    async def resolve_and_connect(self, selector: str):
        await self.gate(selector).wait()
        if selector.startswith("missing"):
            raise KubeconfigNotFoundError(selector)
        api_client = MagicMock(name=f"client-{selector}")
        api_client.selector = selector
        api_client.close = AsyncMock()
        self.clients.setdefault(selector, api_client)
        return api_client


@pytest.fixture
def factory():
    return GatedFactory()


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def recorded(bus):
    events = []

    async def record(event):
        events.append(event)

    for event_type in (ContextSelectionChanged, ClientReady, ClientFailed):
        bus.subscribe(event_type, record)
    return events


async def test_select_publishes_and_applies(factory, bus, recorded):
    context = ReloadContext(factory, bus)
    factory.gate("dev").set()

    generation = await context.select("dev")
    await context.wait()

    assert generation == 1
    assert context.selector == "dev"
    assert context.client is factory.clients["dev"]
    assert context.last_error is None
    assert [type(e) for e in recorded] == [ContextSelectionChanged, ClientReady]
    assert recorded[1].generation == 1


async def test_latest_selection_wins(factory, bus, recorded):
    context = ReloadContext(factory, bus)

    await context.select("slow")
    await context.select("fast")
    factory.gate("fast").set()
    await context.wait()
    assert context.client is factory.clients["fast"]

    # The stale resolution completes after the newer one and is discarded.
    factory.gate("slow").set()
    await context.aclose()

    factory.clients["slow"].close.assert_awaited_once()
    ready = [e for e in recorded if isinstance(e, ClientReady)]
    assert [e.selector for e in ready] == ["fast"]


async def test_failure_keeps_previous_client(factory, bus, recorded):
    context = ReloadContext(factory, bus)
    factory.gate("dev").set()
    await context.select("dev")
    await context.wait()

    factory.gate("missing-one").set()
    await context.select("missing-one")
    await context.wait()

    assert context.client is factory.clients["dev"]
    assert isinstance(context.last_error, KubeconfigNotFoundError)
    failed = [e for e in recorded if isinstance(e, ClientFailed)]
    assert len(failed) == 1
    assert failed[0].selector == "missing-one"


async def test_stale_failure_is_ignored(factory, bus, recorded):
    context = ReloadContext(factory, bus)
    await context.select("missing-old")
    factory.gate("dev").set()
    await context.select("dev")
    await context.wait()

    factory.gate("missing-old").set()
    await asyncio.sleep(0)
    await context.aclose()

    assert context.last_error is None
    assert not [e for e in recorded if isinstance(e, ClientFailed)]


async def test_reload_rebuilds_and_retires(factory, bus):
    context = ReloadContext(factory, bus, selector="dev")
    factory.gate("dev").set()

    await context.reload()
    await context.wait()
    first = context.client
    factory.clients.clear()

    await context.reload()
    await context.wait()
    second = context.client

    assert context.generation == 2
    assert second is not first
    first.close.assert_not_awaited()

    await context.aclose()
    first.close.assert_awaited_once()
    second.close.assert_awaited_once()
    assert context.client is None


async def test_wait_without_selection_returns(factory):
    context = ReloadContext(factory)
    await context.wait()
    assert context.client is None


class TestEventBus:
    async def test_handlers_receive_their_event_type(self, bus):
        seen = []

        async def on_ready(event):
            seen.append(("ready", event.selector))

        async def on_failed(event):
            seen.append(("failed", event.selector))

        bus.subscribe(ClientReady, on_ready)
        bus.subscribe(ClientFailed, on_failed)
        await bus.publish(ClientReady(selector="a", generation=1, client=None))

        assert seen == [("ready", "a")]

    async def test_unsubscribe_and_unhandled(self, bus):
        handler = AsyncMock()
        bus.subscribe(ContextSelectionChanged, handler)
        bus.unsubscribe(ContextSelectionChanged, handler)

        await bus.publish(ContextSelectionChanged(selector="a", generation=1))
        await bus.publish(Event(note="nobody listens"))

        handler.assert_not_awaited()

    def test_event_to_dict(self):
        event = ContextSelectionChanged(selector="prod", generation=3)
        assert event.to_dict() == {"selector": "prod", "generation": 3}
        assert Event(a=1).a == 1
        assert "generation=3" in repr(event)
