"""Broadcast hub fanning out store notifications to live observers."""

import asyncio
import contextlib
import time
from dataclasses import dataclass, field

import structlog

from drive.events.observer import Observer
from drive.events.types import ConnectionEstablished, Event, Notification

logger = structlog.get_logger()


@dataclass
class _Register:
    observer: Observer
    accepted: asyncio.Future[None] = field(repr=False)


@dataclass
class _Unregister:
    observer: Observer


class EventHub:
    """Single-writer actor owning the registry of live observers.

    One long-lived task consumes a control mailbox (register/unregister)
    and a bounded broadcast mailbox. Only that task mutates the registry,
    so registry access needs no lock. Submitting a broadcast never blocks:
    when the mailbox is full the notification is dropped.

    Attributes:
        broadcast_queue_size: Capacity of the broadcast mailbox.
        filter_subscriptions: Deliver only events matching an observer's
            subscribed prefixes when it has any.
    """

    def __init__(
        self,
        broadcast_queue_size: int = 100,
        filter_subscriptions: bool = False,
    ) -> None:
        """Initialize event hub.

        Args:
            broadcast_queue_size: Capacity of the broadcast mailbox.
            filter_subscriptions: Enable per-observer prefix filtering.
        """
        self.broadcast_queue_size = broadcast_queue_size
        self.filter_subscriptions = filter_subscriptions
        self._observers: dict[str, Observer] = {}
        self._control: asyncio.Queue[_Register | _Unregister] = asyncio.Queue()
        self._broadcasts: asyncio.Queue[Notification] = asyncio.Queue(
            maxsize=broadcast_queue_size,
        )
        self._loop: asyncio.AbstractEventLoop | None = None
        self._task: asyncio.Task[None] | None = None
        self._dropped_broadcasts = 0
        self._dropped_deliveries = 0

    @property
    def observer_count(self) -> int:
        """Number of registered observers."""
        return len(self._observers)

    @property
    def dropped_broadcasts(self) -> int:
        """Broadcasts dropped because the mailbox was full or the hub idle."""
        return self._dropped_broadcasts

    @property
    def dropped_deliveries(self) -> int:
        """Per-observer deliveries dropped because an outbox was full."""
        return self._dropped_deliveries

    @property
    def is_running(self) -> bool:
        """Whether the hub loop task is alive."""
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the hub loop on the running event loop."""
        if self.is_running:
            return
        self._loop = asyncio.get_running_loop()
        self._task = self._loop.create_task(self.run(), name="event-hub")
        logger.info("event_hub_started", broadcast_queue_size=self.broadcast_queue_size)

    async def stop(self) -> None:
        """Stop the hub loop and close every observer outbox."""
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None

        while not self._control.empty():
            self._reject(self._control.get_nowait())

        for observer in self._observers.values():
            observer.outbox.close()
        count = len(self._observers)
        self._observers.clear()
        self._loop = None

        logger.info(
            "event_hub_stopped",
            closed_observers=count,
            dropped_broadcasts=self._dropped_broadcasts,
            dropped_deliveries=self._dropped_deliveries,
        )

    async def register(self, observer: Observer) -> None:
        """Add an observer, returning once the hub loop accepted it.

        Args:
            observer: Observer to register.

        Raises:
            RuntimeError: If the hub loop is not running.
        """
        if not self.is_running:
            raise RuntimeError("Event hub is not running")
        accepted: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        await self._control.put(_Register(observer, accepted))
        await accepted

    def unregister(self, observer: Observer) -> None:
        """Request removal of an observer; its outbox is closed by the loop.

        Args:
            observer: Observer to remove.
        """
        self._control.put_nowait(_Unregister(observer))

    def broadcast(self, event: Event) -> bool:
        """Submit an event for fan-out without blocking.

        Safe to call from any thread. Calls from outside the hub's event
        loop are handed over with call_soon_threadsafe.

        Args:
            event: Typed event to deliver to observers.

        Returns:
            False if the hub is not running and the event was dropped,
            True if it was handed to the hub (it may still be dropped on
            a full mailbox).
        """
        loop = self._loop
        if loop is None or loop.is_closed():
            self._dropped_broadcasts += 1
            logger.debug("broadcast_dropped", reason="hub_not_running", event_type=event.event_type.value)
            return False

        notification = Notification(event=event)
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is loop:
            self._submit(notification)
        else:
            loop.call_soon_threadsafe(self._submit, notification)
        return True

    def _submit(self, notification: Notification) -> None:
        try:
            self._broadcasts.put_nowait(notification)
        except asyncio.QueueFull:
            self._dropped_broadcasts += 1
            logger.debug(
                "broadcast_dropped",
                reason="mailbox_full",
                event_type=notification.event_type.value,
            )

    async def run(self) -> None:
        """Consume the control and broadcast mailboxes until cancelled."""
        control_get = asyncio.ensure_future(self._control.get())
        broadcast_get = asyncio.ensure_future(self._broadcasts.get())
        try:
            while True:
                done, _ = await asyncio.wait(
                    {control_get, broadcast_get},
                    return_when=asyncio.FIRST_COMPLETED,
                )
                if control_get in done:
                    self._apply(control_get.result())
                    control_get = asyncio.ensure_future(self._control.get())
                if broadcast_get in done:
                    self._fan_out(broadcast_get.result())
                    broadcast_get = asyncio.ensure_future(self._broadcasts.get())
        finally:
            if control_get.done() and not control_get.cancelled():
                self._reject(control_get.result())
            control_get.cancel()
            broadcast_get.cancel()

    def _apply(self, command: _Register | _Unregister) -> None:
        if isinstance(command, _Register):
            self._observers[command.observer.id] = command.observer
            # Greet before any broadcast can reach the new outbox.
            now = int(time.time())
            command.observer.outbox.offer(
                Notification(
                    event=ConnectionEstablished(client_id=command.observer.id, timestamp=now),
                    timestamp=now,
                )
            )
            if not command.accepted.done():
                command.accepted.set_result(None)
            logger.info(
                "observer_registered",
                observer_id=command.observer.id,
                observers=len(self._observers),
            )
            return

        observer = self._observers.pop(command.observer.id, None)
        if observer is not None:
            observer.outbox.close()
            logger.info(
                "observer_unregistered",
                observer_id=observer.id,
                observers=len(self._observers),
            )

    def _reject(self, command: _Register | _Unregister) -> None:
        if isinstance(command, _Register):
            if not command.accepted.done():
                command.accepted.set_exception(RuntimeError("Event hub is not running"))
            return
        command.observer.outbox.close()

    def _fan_out(self, notification: Notification) -> None:
        delivered = 0
        for observer in self._observers.values():
            if self.filter_subscriptions and not observer.wants(notification):
                continue
            if observer.outbox.offer(notification):
                delivered += 1
            else:
                self._dropped_deliveries += 1

        logger.debug(
            "notification_broadcast",
            event_type=notification.event_type.value,
            delivered_to=delivered,
        )
