"""Observer session: concurrent reader and writer over one connection."""

import asyncio
import contextlib
from typing import Any, Protocol

import structlog
from pydantic import ValidationError
from starlette.websockets import WebSocketDisconnect

from drive.events.hub import EventHub
from drive.events.observer import Observer
from drive.events.types import (
    InboundMessage,
    Notification,
    PathsData,
    Pong,
)

logger = structlog.get_logger()


class Connection(Protocol):
    """The subset of a WebSocket the session relies on."""

    async def receive_text(self) -> str: ...

    async def send_json(self, data: Any, mode: str = "text") -> None: ...

    async def close(self, code: int = 1000, reason: str | None = None) -> None: ...


class ObserverSession:
    """Runs one observer for the lifetime of its connection.

    The session registers with the hub, which queues the greeting, then
    runs the inbound reader in the calling task and the outbound writer as a
    separate task. When the reader stops the observer is unregistered,
    the writer drains its closed outbox and the connection is closed.

    Attributes:
        observer: Observer state owned by this session.
    """

    def __init__(self, hub: EventHub, queue_size: int = 10) -> None:
        """Initialize observer session.

        Args:
            hub: Hub the observer registers with.
            queue_size: Capacity of the observer's outbox.
        """
        self._hub = hub
        self.observer = Observer(queue_size=queue_size)

    async def run(self, connection: Connection) -> None:
        """Serve the connection until it closes or fails.

        Args:
            connection: Accepted WebSocket-like connection.
        """
        observer = self.observer
        try:
            await self._hub.register(observer)
        except RuntimeError as e:
            logger.info("observer_rejected", observer_id=observer.id, error=str(e))
            with contextlib.suppress(RuntimeError, OSError, WebSocketDisconnect):
                await connection.close(code=1001)
            return

        # The hub queued the connection_established greeting on registration.
        logger.info("observer_connected", observer_id=observer.id)

        writer = asyncio.create_task(self._write_pump(connection))
        try:
            await self._read_pump(connection)
        finally:
            self._hub.unregister(observer)
            # The hub closes the outbox; close it here too in case the hub
            # loop is already gone.
            observer.outbox.close()
            with contextlib.suppress(asyncio.CancelledError):
                await writer
            with contextlib.suppress(RuntimeError, OSError, WebSocketDisconnect):
                await connection.close()
            logger.info("observer_disconnected", observer_id=observer.id)

    async def _read_pump(self, connection: Connection) -> None:
        observer = self.observer
        while True:
            try:
                raw = await connection.receive_text()
                message = InboundMessage.model_validate_json(raw)
            except WebSocketDisconnect:
                return
            except ValidationError as e:
                logger.info("observer_decode_error", observer_id=observer.id, error=str(e))
                return
            except (KeyError, RuntimeError) as e:
                logger.info("observer_read_error", observer_id=observer.id, error=str(e))
                return

            await self._handle(message)

    async def _handle(self, message: InboundMessage) -> None:
        observer = self.observer
        if message.event_type == "ping":
            if not observer.outbox.offer(Notification(event=Pong())):
                logger.debug("pong_dropped", observer_id=observer.id)
            return

        if message.event_type not in ("subscribe", "unsubscribe"):
            return

        try:
            paths = PathsData.model_validate(message.data).paths
        except ValidationError:
            return

        if message.event_type == "subscribe":
            await observer.subscribe(paths)
        else:
            await observer.unsubscribe(paths)
        logger.debug(
            "observer_subscriptions_changed",
            observer_id=observer.id,
            subscriptions=sorted(observer.subscriptions),
        )

    async def _write_pump(self, connection: Connection) -> None:
        outbox = self.observer.outbox
        while (notification := await outbox.get()) is not None:
            try:
                await connection.send_json(notification.to_wire())
            except (WebSocketDisconnect, RuntimeError, OSError) as e:
                logger.info("observer_write_error", observer_id=self.observer.id, error=str(e))
                return
