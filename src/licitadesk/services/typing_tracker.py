"""
Ephemeral "is typing" state per room.

Nothing is persisted. A user stays in the typing set for a short window
after their last keystroke signal; a stop signal, a sent message or the
window lapsing removes them, and each change is broadcast on the bus.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Set, Tuple
from uuid import UUID

from licitadesk.core.config import settings
from .event_models import TYPING, ChangeAction
from .realtime_bus import RealtimeBus

logger = logging.getLogger(__name__)


@dataclass
class _TypingEntry:
    display_name: Optional[str]
    expires_at: float
    handle: Optional[asyncio.TimerHandle] = None


class TypingTracker:
    def __init__(
        self,
        bus: RealtimeBus,
        window_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.bus = bus
        self.window = window_seconds if window_seconds is not None else settings.realtime.typing_window_seconds
        self.clock = clock
        self._rooms: Dict[str, Dict[str, _TypingEntry]] = {}
        self._pending: Set[asyncio.Task] = set()

    async def start(self, room_id: UUID, user_id: UUID, display_name: Optional[str] = None) -> None:
        """Record a keystroke signal; only the first one of a burst is broadcast."""
        room_key, user_key = str(room_id), str(user_id)
        entries = self._rooms.setdefault(room_key, {})
        entry = entries.get(user_key)
        is_new = entry is None or entry.expires_at <= self.clock()

        if entry is not None and entry.handle is not None:
            entry.handle.cancel()
        entry = _TypingEntry(display_name=display_name, expires_at=self.clock() + self.window)
        entry.handle = asyncio.get_running_loop().call_later(
            self.window, self._schedule_expiry, room_key, user_key
        )
        entries[user_key] = entry

        if is_new:
            await self.bus.publish(
                TYPING,
                ChangeAction.TYPING_START,
                {"room_id": room_key, "user_id": user_key, "display_name": display_name},
            )

    async def stop(self, room_id: UUID, user_id: UUID) -> bool:
        room_key, user_key = str(room_id), str(user_id)
        entries = self._rooms.get(room_key)
        entry = entries.pop(user_key, None) if entries is not None else None
        if entry is None:
            return False
        if entry.handle is not None:
            entry.handle.cancel()
        if not entries:
            self._rooms.pop(room_key, None)
        await self.bus.publish(
            TYPING,
            ChangeAction.TYPING_STOP,
            {"room_id": room_key, "user_id": user_key, "display_name": entry.display_name},
        )
        return True

    def _schedule_expiry(self, room_key: str, user_key: str) -> None:
        task = asyncio.ensure_future(self.stop(room_key, user_key))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def typing_users(self, room_id: UUID) -> List[Tuple[str, Optional[str]]]:
        """(user_id, display_name) pairs still inside their window.

        Entries found expired here are stopped and broadcast like a lapse.
        """
        room_key = str(room_id)
        now = self.clock()
        expired = [key for key, entry in self._rooms.get(room_key, {}).items() if entry.expires_at <= now]
        for user_key in expired:
            await self.stop(room_key, user_key)
        entries = self._rooms.get(room_key, {})
        return [(user_key, entry.display_name) for user_key, entry in entries.items()]

    def clear(self) -> None:
        for entries in self._rooms.values():
            for entry in entries.values():
                if entry.handle is not None:
                    entry.handle.cancel()
        self._rooms.clear()
