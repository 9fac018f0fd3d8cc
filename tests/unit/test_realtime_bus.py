"""
Unit tests for the in-process realtime bus.
"""

import asyncio

import pytest

from licitadesk.services.event_models import CHAT_MESSAGES, ChangeAction, ChangeEvent
from licitadesk.services.realtime_bus import RealtimeBus


class TestRealtimeBus:
    @pytest.mark.asyncio
    async def test_filtered_delivery(self):
        bus = RealtimeBus(queue_size=10)
        room_a = bus.subscribe(CHAT_MESSAGES, {"room_id": "a"})
        room_b = bus.subscribe(CHAT_MESSAGES, {"room_id": "b"})

        delivered = await bus.publish(CHAT_MESSAGES, ChangeAction.INSERT, {"room_id": "a", "message": "oi"})

        assert delivered == 1
        event = await room_a.get(timeout=0.1)
        assert event.record["message"] == "oi"
        assert await room_b.get(timeout=0.01) is None

    @pytest.mark.asyncio
    async def test_filter_compares_as_strings(self):
        bus = RealtimeBus(queue_size=10)
        subscription = bus.subscribe("tickets", {"id": 42})
        assert await bus.publish("tickets", ChangeAction.UPDATE, {"id": "42"}) == 1
        assert subscription.matches({"id": 42})

    @pytest.mark.asyncio
    async def test_events_arrive_in_publish_order(self):
        bus = RealtimeBus(queue_size=10)
        subscription = bus.subscribe(CHAT_MESSAGES, {"room_id": "a"})
        for sequence in range(1, 4):
            await bus.publish(CHAT_MESSAGES, ChangeAction.INSERT, {"room_id": "a", "sequence": sequence})

        received = [(await subscription.get(timeout=0.1)).record["sequence"] for _ in range(3)]
        assert received == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_slow_subscriber_is_closed(self):
        bus = RealtimeBus(queue_size=2)
        slow = bus.subscribe(CHAT_MESSAGES)
        for index in range(3):
            await bus.publish(CHAT_MESSAGES, ChangeAction.INSERT, {"index": index})

        assert slow.closed
        assert slow.overflowed
        assert await slow.get(timeout=0.1) is None
        assert bus.subscriber_count(CHAT_MESSAGES) == 0

    @pytest.mark.asyncio
    async def test_iteration_stops_on_unsubscribe(self):
        bus = RealtimeBus(queue_size=10)
        subscription = bus.subscribe(CHAT_MESSAGES)
        await bus.publish(CHAT_MESSAGES, ChangeAction.INSERT, {"n": 1})
        subscription.close()

        received = [event async for event in subscription]
        assert [event.record["n"] for event in received] == [1]
        assert bus.subscriber_count() == 0

    @pytest.mark.asyncio
    async def test_channel_lock_serializes_one_key(self):
        bus = RealtimeBus(queue_size=10)
        order = []

        async def writer(name):
            async with bus.channel_lock("room:a"):
                order.append(f"{name}-in")
                await asyncio.sleep(0.01)
                order.append(f"{name}-out")

        await asyncio.gather(writer("first"), writer("second"))
        assert order == ["first-in", "first-out", "second-in", "second-out"]

    @pytest.mark.asyncio
    async def test_channel_locks_are_dropped_when_idle(self):
        bus = RealtimeBus(queue_size=10)
        async with bus.channel_lock("room:a"):
            async with bus.channel_lock("room:b"):
                assert bus.channel_lock_count() == 2
        assert bus.channel_lock_count() == 0

        with pytest.raises(RuntimeError):
            async with bus.channel_lock("room:a"):
                raise RuntimeError("write failed")
        assert bus.channel_lock_count() == 0

    @pytest.mark.asyncio
    async def test_close_terminates_everyone(self):
        bus = RealtimeBus(queue_size=10)
        subscription = bus.subscribe(CHAT_MESSAGES)
        await bus.close()
        assert subscription.closed
        assert await asyncio.wait_for(subscription.get(), 0.1) is None


class TestChangeEvent:
    def test_stream_format_is_all_strings(self):
        event = ChangeEvent(table=CHAT_MESSAGES, action=ChangeAction.INSERT, record={"sequence": 3})
        data = event.to_stream_dict()
        assert all(isinstance(value, str) for value in data.values())

        restored = ChangeEvent.from_stream_dict({k.encode(): v.encode() for k, v in data.items()})
        assert restored.record == {"sequence": 3}
        assert restored.action == ChangeAction.INSERT
        assert restored.event_id == event.event_id
