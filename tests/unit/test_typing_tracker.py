"""
Unit tests for the ephemeral typing tracker.
"""

import asyncio
from uuid import uuid4

import pytest

from licitadesk.services.event_models import TYPING, ChangeAction
from licitadesk.services.realtime_bus import RealtimeBus
from licitadesk.services.typing_tracker import TypingTracker


class FakeClock:
    def __init__(self):
        self.value = 1000.0

    def __call__(self) -> float:
        return self.value


class TestTypingTracker:
    @pytest.mark.asyncio
    async def test_first_signal_is_broadcast_once(self):
        bus = RealtimeBus(queue_size=10)
        tracker = TypingTracker(bus, window_seconds=5)
        room, user = uuid4(), uuid4()
        subscription = bus.subscribe(TYPING, {"room_id": room})

        await tracker.start(room, user, "Ana")
        await tracker.start(room, user, "Ana")

        event = await subscription.get(timeout=0.1)
        assert event.action == ChangeAction.TYPING_START
        assert event.record["display_name"] == "Ana"
        assert await subscription.get(timeout=0.01) is None
        tracker.clear()

    @pytest.mark.asyncio
    async def test_stop_broadcasts_and_removes(self):
        bus = RealtimeBus(queue_size=10)
        tracker = TypingTracker(bus, window_seconds=5)
        room, user = uuid4(), uuid4()
        await tracker.start(room, user, "Ana")
        subscription = bus.subscribe(TYPING, {"room_id": room})

        assert await tracker.stop(room, user) is True
        event = await subscription.get(timeout=0.1)
        assert event.action == ChangeAction.TYPING_STOP
        assert await tracker.typing_users(room) == []
        assert await tracker.stop(room, user) is False

    @pytest.mark.asyncio
    async def test_window_lapses_without_signal(self):
        bus = RealtimeBus(queue_size=10)
        tracker = TypingTracker(bus, window_seconds=0.05)
        room, user = uuid4(), uuid4()
        subscription = bus.subscribe(TYPING, {"room_id": room})

        await tracker.start(room, user, "Ana")
        assert (await subscription.get(timeout=0.1)).action == ChangeAction.TYPING_START

        event = await subscription.get(timeout=1.0)
        assert event.action == ChangeAction.TYPING_STOP
        assert await tracker.typing_users(room) == []

    @pytest.mark.asyncio
    async def test_typing_users_drops_expired_entries(self):
        clock = FakeClock()
        bus = RealtimeBus(queue_size=10)
        tracker = TypingTracker(bus, window_seconds=5, clock=clock)
        room, ana, bruno = uuid4(), uuid4(), uuid4()

        await tracker.start(room, ana, "Ana")
        clock.value += 3
        await tracker.start(room, bruno, "Bruno")
        assert sorted(name for _, name in await tracker.typing_users(room)) == ["Ana", "Bruno"]

        subscription = bus.subscribe(TYPING, {"room_id": room})
        clock.value += 2.5
        assert await tracker.typing_users(room) == [(str(bruno), "Bruno")]

        event = await subscription.get(timeout=0.1)
        assert event.action == ChangeAction.TYPING_STOP
        assert event.record["user_id"] == str(ana)
        assert await subscription.get(timeout=0.01) is None
        tracker.clear()

    @pytest.mark.asyncio
    async def test_rooms_are_independent(self):
        tracker = TypingTracker(RealtimeBus(queue_size=10), window_seconds=5)
        room_a, room_b, user = uuid4(), uuid4(), uuid4()
        await tracker.start(room_a, user, "Ana")
        assert await tracker.typing_users(room_b) == []
        assert len(await tracker.typing_users(room_a)) == 1
        tracker.clear()
        await asyncio.sleep(0)
