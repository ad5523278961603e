"""Tests for armor.core.channel -- broadcast fault channel."""

import asyncio

import pytest

from armor.core.channel import FaultChannel
from armor.core.errors import ChannelClosedError
from armor.core.faults import InterceptedFault
from tests._support.fault_injection import fault


def record(message: str = "x") -> InterceptedFault:
    return InterceptedFault(error=fault(message), trace="t")


@pytest.fixture
def channel():
    return FaultChannel()


class TestCallbackSubscriptions:
    """Tests for synchronous broadcast delivery."""

    def test_publish_no_subscribers(self, channel):
        channel.publish(record())

    def test_broadcast_to_all(self, channel):
        first, second = [], []
        channel.subscribe(first.append)
        channel.subscribe(second.append)
        r = record()
        channel.publish(r)
        assert first == [r]
        assert second == [r]

    def test_preserves_publish_order(self, channel):
        received = []
        channel.subscribe(received.append)
        records = [record(str(i)) for i in range(5)]
        for r in records:
            channel.publish(r)
        assert received == records

    def test_late_subscriber_misses_history(self, channel):
        channel.publish(record("early"))
        received = []
        channel.subscribe(received.append)
        late = record("late")
        channel.publish(late)
        assert received == [late]

    def test_unsubscribe(self, channel):
        received = []
        sub_id = channel.subscribe(received.append)
        channel.unsubscribe(sub_id)
        channel.publish(record())
        assert received == []
        assert channel.subscription_count == 0

    def test_unsubscribe_unknown_id_is_ignored(self, channel):
        channel.unsubscribe("sub_nope")

    def test_unsubscribe_mid_publish(self, channel):
        """A handler removing another subscriber mid-publish is safe."""
        received = []
        ids = {}

        def first(r):
            received.append(("first", r))
            channel.unsubscribe(ids["second"])

        ids["first"] = channel.subscribe(first)
        ids["second"] = channel.subscribe(lambda r: received.append(("second", r)))
        r = record()
        channel.publish(r)
        assert received == [("first", r)]

    def test_handler_error_does_not_stop_delivery(self, channel):
        received = []

        def broken(r):
            raise RuntimeError("observer bug")

        channel.subscribe(broken)
        channel.subscribe(received.append)
        r = record()
        channel.publish(r)
        assert received == [r]


class TestClose:
    """Tests for channel closure."""

    def test_publish_after_close_raises(self, channel):
        channel.close()
        with pytest.raises(ChannelClosedError):
            channel.publish(record())

    def test_subscribe_after_close_raises(self, channel):
        channel.close()
        with pytest.raises(ChannelClosedError):
            channel.subscribe(lambda r: None)

    def test_close_is_idempotent(self, channel):
        channel.close()
        channel.close()
        assert channel.closed


class TestStream:
    """Tests for async stream consumption."""

    @pytest.mark.asyncio
    async def test_stream_receives_published_faults(self, channel):
        received = []

        async def consume():
            async for r in channel.stream():
                received.append(r)

        task = asyncio.create_task(consume())
        await asyncio.sleep(0)

        first, second = record("1"), record("2")
        channel.publish(first)
        channel.publish(second)
        channel.close()
        await asyncio.wait_for(task, timeout=1.0)

        assert received == [first, second]

    @pytest.mark.asyncio
    async def test_stream_on_closed_channel_ends_immediately(self, channel):
        channel.close()
        received = [r async for r in channel.stream()]
        assert received == []

    @pytest.mark.asyncio
    async def test_stream_counts_as_subscription(self, channel):
        task = asyncio.create_task(anext(channel.stream(), None))
        await asyncio.sleep(0)
        assert channel.subscription_count == 1
        channel.close()
        assert await asyncio.wait_for(task, timeout=1.0) is None
        assert channel.subscription_count == 0

    @pytest.mark.asyncio
    async def test_stream_registers_before_first_iteration(self, channel):
        """A fault published before the consumer first awaits is still delivered."""
        stream = channel.stream()
        assert channel.subscription_count == 1

        first = record("published before iteration")
        channel.publish(first)
        channel.close()

        received = [r async for r in stream]
        assert received == [first]

    def test_close_drops_unconsumed_streams(self, channel):
        channel.stream()
        channel.close()
        assert channel.subscription_count == 0
