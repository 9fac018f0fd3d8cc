"""
In-process realtime change bus.

Services publish a ``ChangeEvent`` after their transaction commits;
WebSocket handlers subscribe to a table with an equality filter and relay
matching events to the client. Events are best-effort: a client that falls
too far behind has its subscription closed and must re-subscribe and
re-fetch, which is also what it does on reconnect.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional, Set

from licitadesk.core.config import settings
from .event_models import ChangeAction, ChangeEvent
from .event_publisher import RedisStreamsPublisher

logger = logging.getLogger(__name__)

_CLOSED = object()


class Subscription:
    """A filtered view of one table; iterate it to receive events."""

    def __init__(self, bus: "RealtimeBus", table: str, filters: Dict[str, Any], queue_size: int):
        self.bus = bus
        self.table = table
        self.filters = {key: str(value) for key, value in filters.items()}
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self.closed = False
        self.overflowed = False

    def matches(self, record: Dict[str, Any]) -> bool:
        return all(str(record.get(key)) == value for key, value in self.filters.items())

    def _offer(self, event: ChangeEvent) -> bool:
        try:
            self._queue.put_nowait(event)
            return True
        except asyncio.QueueFull:
            return False

    def _terminate(self, overflowed: bool = False) -> None:
        if self.closed:
            return
        self.closed = True
        self.overflowed = overflowed
        if overflowed:
            # The client re-fetches anyway; drop the backlog to make room for the sentinel
            while not self._queue.empty():
                self._queue.get_nowait()
        try:
            self._queue.put_nowait(_CLOSED)
        except asyncio.QueueFull:
            self._queue.get_nowait()
            self._queue.put_nowait(_CLOSED)

    async def get(self, timeout: Optional[float] = None) -> Optional[ChangeEvent]:
        """Next event, or None when closed (or when ``timeout`` elapses)."""
        if self.closed and self._queue.empty():
            return None
        try:
            item = await asyncio.wait_for(self._queue.get(), timeout)
        except asyncio.TimeoutError:
            return None
        return None if item is _CLOSED else item

    def close(self) -> None:
        self.bus.unsubscribe(self)

    def __aiter__(self):
        return self

    async def __anext__(self) -> ChangeEvent:
        event = await self.get()
        if event is None:
            raise StopAsyncIteration
        return event


@dataclass
class _ChannelLock:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


class RealtimeBus:
    def __init__(
        self,
        queue_size: Optional[int] = None,
        mirror: Optional[RedisStreamsPublisher] = None,
    ):
        self.queue_size = queue_size or settings.realtime.subscriber_queue_size
        self.mirror = mirror
        self._subscriptions: Dict[str, Set[Subscription]] = {}
        self._locks: Dict[str, _ChannelLock] = {}

    def subscribe(self, table: str, filters: Optional[Dict[str, Any]] = None) -> Subscription:
        subscription = Subscription(self, table, filters or {}, self.queue_size)
        self._subscriptions.setdefault(table, set()).add(subscription)
        logger.debug(f"RealtimeBus: subscribed to {table} with {subscription.filters}")
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        subscribers = self._subscriptions.get(subscription.table)
        if subscribers is not None:
            subscribers.discard(subscription)
            if not subscribers:
                del self._subscriptions[subscription.table]
        subscription._terminate()

    def subscriber_count(self, table: Optional[str] = None) -> int:
        if table is not None:
            return len(self._subscriptions.get(table, ()))
        return sum(len(subs) for subs in self._subscriptions.values())

    @asynccontextmanager
    async def channel_lock(self, key: str) -> AsyncIterator[None]:
        """Serialize writers of one channel so delivery follows commit order.

        The lock exists only while someone holds or waits for it.
        """
        entry = self._locks.get(key)
        if entry is None:
            entry = self._locks[key] = _ChannelLock()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0 and self._locks.get(key) is entry:
                del self._locks[key]

    def channel_lock_count(self) -> int:
        return len(self._locks)

    async def publish(
        self, table: str, action: ChangeAction, record: Dict[str, Any]
    ) -> int:
        """Deliver to every matching subscriber; returns the delivery count."""
        event = ChangeEvent(table=table, action=action, record=record)
        delivered = 0
        overflowed: List[Subscription] = []

        for subscription in list(self._subscriptions.get(table, ())):
            if not subscription.matches(record):
                continue
            if subscription._offer(event):
                delivered += 1
            else:
                overflowed.append(subscription)

        for subscription in overflowed:
            logger.warning(
                f"RealtimeBus: subscriber on {table} fell behind, closing subscription "
                f"{subscription.filters}"
            )
            self._subscriptions.get(table, set()).discard(subscription)
            subscription._terminate(overflowed=True)

        if self.mirror is not None:
            await self.mirror.publish(event)

        return delivered

    async def close(self) -> None:
        for subscribers in list(self._subscriptions.values()):
            for subscription in list(subscribers):
                subscription._terminate()
        self._subscriptions.clear()
        if self.mirror is not None:
            await self.mirror.close()
