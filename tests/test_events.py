"""Event hub, outbox and observer session tests."""

import asyncio
import json
from collections.abc import Callable
from typing import Any

import pytest
from starlette.websockets import WebSocketDisconnect

from drive.events import EventHub, Notification, Observer, ObserverSession, Outbox
from drive.events.types import FileCreated, FileDeleted, FileRenamed, Pong


def _created(path: str = "a.txt") -> FileCreated:
    return FileCreated(path=path, size=1, modified_at=0, etag='"x"')


async def _eventually(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    """Wait until a predicate holds or fail after a timeout."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


async def _next(observer: Observer) -> Notification:
    notification = await asyncio.wait_for(observer.outbox.get(), timeout=1.0)
    assert notification is not None
    return notification


class FakeConnection:
    """In-memory stand-in for an accepted WebSocket."""

    def __init__(self) -> None:
        self.inbound: asyncio.Queue[str | None] = asyncio.Queue()
        self.sent: list[dict[str, Any]] = []
        self.closed = False

    async def receive_text(self) -> str:
        message = await self.inbound.get()
        if message is None:
            raise WebSocketDisconnect(code=1000)
        return message

    async def send_json(self, data: Any, mode: str = "text") -> None:
        self.sent.append(data)

    async def close(self, code: int = 1000, reason: str | None = None) -> None:
        self.closed = True


class TestOutbox:
    @pytest.mark.asyncio
    async def test_rejects_when_full(self) -> None:
        outbox = Outbox(maxsize=2)

        assert outbox.offer(Notification(event=Pong()))
        assert outbox.offer(Notification(event=Pong()))
        assert not outbox.offer(Notification(event=Pong()))
        assert len(outbox) == 2

    @pytest.mark.asyncio
    async def test_drains_then_returns_none_after_close(self) -> None:
        outbox = Outbox()
        outbox.offer(Notification(event=_created()))
        outbox.close()

        assert not outbox.offer(Notification(event=Pong()))
        first = await outbox.get()
        assert first is not None and first.event_type.value == "file_created"
        assert await outbox.get() is None

    @pytest.mark.asyncio
    async def test_close_wakes_waiting_reader(self) -> None:
        outbox = Outbox()
        reader = asyncio.create_task(outbox.get())
        await asyncio.sleep(0)

        outbox.close()

        assert await asyncio.wait_for(reader, timeout=1.0) is None


class TestObserver:
    @pytest.mark.asyncio
    async def test_prefix_matching(self) -> None:
        observer = Observer()
        await observer.subscribe(["/docs/"])

        assert observer.wants(Notification(event=_created("docs/a.txt")))
        assert observer.wants(Notification(event=_created("docs")))
        assert not observer.wants(Notification(event=_created("docsx/a.txt")))
        assert observer.wants(Notification(event=Pong()))

        await observer.unsubscribe(["docs"])
        assert observer.wants(Notification(event=_created("other.txt")))

    def test_rename_matches_either_path(self) -> None:
        observer = Observer()
        observer.subscriptions.add("archive")
        event = FileRenamed(old_path="inbox/a.txt", new_path="archive/a.txt", timestamp=0)
        assert observer.wants(Notification(event=event))


class TestEventHub:
    @pytest.mark.asyncio
    async def test_fan_out_to_every_observer(self) -> None:
        hub = EventHub()
        hub.start()
        first, second = Observer(), Observer()
        await hub.register(first)
        await hub.register(second)

        assert hub.broadcast(_created())

        for observer in (first, second):
            assert (await _next(observer)).event_type.value == "connection_established"
            assert (await _next(observer)).to_wire()["data"]["path"] == "a.txt"
        await hub.stop()

    @pytest.mark.asyncio
    async def test_greeting_precedes_broadcast_in_same_round(self) -> None:
        hub = EventHub()
        hub.start()
        observer = Observer()
        registering = asyncio.create_task(hub.register(observer))
        await asyncio.sleep(0)

        hub.broadcast(_created("raced.txt"))
        await asyncio.wait_for(registering, timeout=1.0)
        await _eventually(lambda: len(observer.outbox) == 2)

        first, second = await _next(observer), await _next(observer)
        assert first.event_type.value == "connection_established"
        assert first.to_wire()["data"]["client_id"] == observer.id
        assert second.event_type.value == "file_created"
        await hub.stop()

    @pytest.mark.asyncio
    async def test_pending_register_fails_when_hub_stops(self) -> None:
        hub = EventHub()
        hub.start()
        registering = asyncio.create_task(hub.register(Observer()))
        await asyncio.sleep(0)

        await hub.stop()
        done, _ = await asyncio.wait({registering}, timeout=0.5)

        assert registering in done
        with pytest.raises(RuntimeError, match="not running"):
            registering.result()

    @pytest.mark.asyncio
    async def test_register_after_stop_is_refused(self) -> None:
        hub = EventHub()
        hub.start()
        await hub.stop()

        with pytest.raises(RuntimeError):
            await hub.register(Observer())

    @pytest.mark.asyncio
    async def test_broadcast_without_running_hub_is_dropped(self) -> None:
        hub = EventHub()
        assert hub.broadcast(_created()) is False
        assert hub.dropped_broadcasts == 1

    @pytest.mark.asyncio
    async def test_register_requires_running_hub(self) -> None:
        with pytest.raises(RuntimeError):
            await EventHub().register(Observer())

    @pytest.mark.asyncio
    async def test_full_mailbox_drops_without_blocking(self) -> None:
        hub = EventHub(broadcast_queue_size=1)
        hub.start()

        for _ in range(5):
            hub.broadcast(_created())

        assert hub.dropped_broadcasts == 4
        await hub.stop()

    @pytest.mark.asyncio
    async def test_slow_observer_loses_events_others_keep_them(self) -> None:
        hub = EventHub()
        hub.start()
        slow = Observer(queue_size=2)
        fast = Observer(queue_size=10)
        await hub.register(slow)
        await hub.register(fast)

        for i in range(3):
            hub.broadcast(_created(f"{i}.txt"))
        await _eventually(lambda: len(fast.outbox) == 4)

        assert len(slow.outbox) == 2
        assert hub.dropped_deliveries == 2
        await hub.stop()

    @pytest.mark.asyncio
    async def test_unregister_closes_outbox(self) -> None:
        hub = EventHub()
        hub.start()
        observer = Observer()
        await hub.register(observer)

        hub.unregister(observer)
        await _eventually(lambda: hub.observer_count == 0)

        assert observer.outbox.closed
        await hub.stop()

    @pytest.mark.asyncio
    async def test_stop_closes_remaining_outboxes(self) -> None:
        hub = EventHub()
        hub.start()
        observer = Observer()
        await hub.register(observer)

        await hub.stop()

        assert observer.outbox.closed
        assert hub.observer_count == 0
        assert not hub.is_running

    @pytest.mark.asyncio
    async def test_subscription_filtering(self) -> None:
        hub = EventHub(filter_subscriptions=True)
        hub.start()
        observer = Observer()
        await observer.subscribe(["docs"])
        await hub.register(observer)

        hub.broadcast(_created("other/a.txt"))
        hub.broadcast(FileDeleted(path="docs/b.txt", deleted_at=0))

        assert (await _next(observer)).event_type.value == "connection_established"
        assert (await _next(observer)).event_type.value == "file_deleted"
        assert len(observer.outbox) == 0
        await hub.stop()

    @pytest.mark.asyncio
    async def test_broadcast_from_worker_thread(self) -> None:
        hub = EventHub()
        hub.start()
        observer = Observer()
        await hub.register(observer)

        await _next(observer)

        assert await asyncio.to_thread(hub.broadcast, _created())

        assert (await _next(observer)).event_type.value == "file_created"
        await hub.stop()


class TestObserverSession:
    @pytest.mark.asyncio
    async def test_greeting_ping_and_disconnect(self) -> None:
        hub = EventHub()
        hub.start()
        connection = FakeConnection()
        session = ObserverSession(hub)
        task = asyncio.create_task(session.run(connection))

        await _eventually(lambda: len(connection.sent) == 1)
        greeting = connection.sent[0]
        assert greeting["event_type"] == "connection_established"
        assert greeting["data"]["client_id"] == session.observer.id

        await connection.inbound.put(json.dumps({"event_type": "ping"}))
        await _eventually(lambda: len(connection.sent) == 2)
        assert connection.sent[1]["event_type"] == "pong"

        await connection.inbound.put(None)
        await asyncio.wait_for(task, timeout=1.0)

        assert connection.closed
        await _eventually(lambda: hub.observer_count == 0)
        await hub.stop()

    @pytest.mark.asyncio
    async def test_receives_broadcasts(self) -> None:
        hub = EventHub()
        hub.start()
        connection = FakeConnection()
        task = asyncio.create_task(ObserverSession(hub).run(connection))
        await _eventually(lambda: hub.observer_count == 1)

        hub.broadcast(_created("docs/a.txt"))
        await _eventually(lambda: len(connection.sent) == 2)

        message = connection.sent[1]
        assert message["event_type"] == "file_created"
        assert message["data"]["path"] == "docs/a.txt"
        assert isinstance(message["timestamp"], int)

        await connection.inbound.put(None)
        await asyncio.wait_for(task, timeout=1.0)
        await hub.stop()

    @pytest.mark.asyncio
    async def test_subscribe_updates_prefixes(self) -> None:
        hub = EventHub()
        hub.start()
        connection = FakeConnection()
        session = ObserverSession(hub)
        task = asyncio.create_task(session.run(connection))

        await connection.inbound.put(
            json.dumps({"event_type": "subscribe", "data": {"paths": ["docs", "/img/"]}})
        )
        await connection.inbound.put(json.dumps({"event_type": "unknown"}))
        await _eventually(lambda: session.observer.subscriptions == {"docs", "img"})

        await connection.inbound.put(
            json.dumps({"event_type": "unsubscribe", "data": {"paths": ["docs"]}})
        )
        await _eventually(lambda: session.observer.subscriptions == {"img"})

        await connection.inbound.put(None)
        await asyncio.wait_for(task, timeout=1.0)
        await hub.stop()

    @pytest.mark.asyncio
    async def test_malformed_message_ends_session(self) -> None:
        hub = EventHub()
        hub.start()
        connection = FakeConnection()
        task = asyncio.create_task(ObserverSession(hub).run(connection))

        await connection.inbound.put("not json")
        await asyncio.wait_for(task, timeout=1.0)

        assert connection.closed
        await _eventually(lambda: hub.observer_count == 0)
        await hub.stop()

    @pytest.mark.asyncio
    async def test_stopped_hub_closes_connection(self) -> None:
        hub = EventHub()
        connection = FakeConnection()

        await asyncio.wait_for(ObserverSession(hub).run(connection), timeout=1.0)

        assert connection.closed
        assert connection.sent == []
