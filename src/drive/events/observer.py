"""Per-connection observer state: bounded outbox and subscriptions."""

import asyncio
import uuid
from collections import deque

from drive.events.types import Notification


class Outbox:
    """Bounded FIFO of notifications that can be closed.

    Offers never block: a full or closed outbox rejects the item. Once
    closed, readers drain what is left and then receive None.

    Attributes:
        maxsize: Maximum number of queued notifications.
    """

    def __init__(self, maxsize: int = 10) -> None:
        """Initialize outbox.

        Args:
            maxsize: Maximum number of queued notifications.
        """
        self.maxsize = maxsize
        self._items: deque[Notification] = deque()
        self._ready = asyncio.Event()
        self._closed = False

    def __len__(self) -> int:
        return len(self._items)

    @property
    def closed(self) -> bool:
        """Whether close() has been called."""
        return self._closed

    def offer(self, item: Notification) -> bool:
        """Enqueue without waiting.

        Args:
            item: Notification to enqueue.

        Returns:
            True if queued, False if the outbox is full or closed.
        """
        if self._closed or len(self._items) >= self.maxsize:
            return False
        self._items.append(item)
        self._ready.set()
        return True

    def close(self) -> None:
        """Stop accepting items and wake any waiting reader."""
        self._closed = True
        self._ready.set()

    async def get(self) -> Notification | None:
        """Wait for the next notification.

        Returns:
            The oldest queued notification, or None once the outbox is
            closed and fully drained.
        """
        while not self._items:
            if self._closed:
                return None
            self._ready.clear()
            await self._ready.wait()
        return self._items.popleft()


class Observer:
    """A connected party receiving live notifications.

    Attributes:
        id: Unique observer identifier (UUID).
        outbox: Outbound notification queue drained by the writer.
        subscriptions: Path prefixes the observer opted into.
    """

    def __init__(self, queue_size: int = 10) -> None:
        """Initialize observer.

        Args:
            queue_size: Capacity of the outbound queue.
        """
        self.id = str(uuid.uuid4())
        self.outbox = Outbox(maxsize=queue_size)
        self.subscriptions: set[str] = set()
        self._lock = asyncio.Lock()

    async def subscribe(self, paths: list[str]) -> None:
        """Add path prefixes to the subscription set."""
        async with self._lock:
            self.subscriptions.update(_clean_prefix(p) for p in paths)

    async def unsubscribe(self, paths: list[str]) -> None:
        """Remove path prefixes from the subscription set."""
        async with self._lock:
            self.subscriptions.difference_update(_clean_prefix(p) for p in paths)

    def wants(self, notification: Notification) -> bool:
        """Check whether a notification matches the subscription set.

        An observer without subscriptions wants everything.

        Args:
            notification: Candidate notification.

        Returns:
            True if the notification should be delivered.
        """
        if not self.subscriptions:
            return True
        paths = notification.paths()
        if not paths:
            return True
        return any(
            prefix == "" or path == prefix or path.startswith(prefix + "/")
            for path in paths
            for prefix in self.subscriptions
        )


def _clean_prefix(path: str) -> str:
    return path.replace("\\", "/").strip("/")
