"""Tests for ManagedTimer and ManagedSubscription."""

import asyncio

import pytest

from armor.execution.handles import ManagedSubscription, ManagedTimer


class TestManagedTimer:
    """Tests for ManagedTimer."""

    @pytest.mark.asyncio
    async def test_one_shot(self):
        fired = []
        timer = ManagedTimer(asyncio.get_running_loop(), 0.01, fired.append, key="t")
        assert timer.active

        await asyncio.sleep(0.03)

        assert fired == [timer]
        assert timer.fire_count == 1
        assert not timer.active
        assert not timer.cancelled

    @pytest.mark.asyncio
    async def test_cancel_before_fire(self):
        fired = []
        timer = ManagedTimer(asyncio.get_running_loop(), 0.01, fired.append, key="t")
        timer.cancel()
        timer.cancel()

        await asyncio.sleep(0.03)

        assert fired == []
        assert timer.cancelled
        assert not timer.active

    @pytest.mark.asyncio
    async def test_periodic_reschedules(self):
        timer = ManagedTimer(asyncio.get_running_loop(), 0.01, lambda t: None, key="p", periodic=True)
        await asyncio.sleep(0.045)
        timer.cancel()
        assert timer.fire_count >= 2

    @pytest.mark.asyncio
    async def test_callback_may_cancel_its_timer(self):
        def stop_after_two(timer):
            if timer.fire_count == 2:
                timer.cancel()

        timer = ManagedTimer(asyncio.get_running_loop(), 0.01, stop_after_two, key="p", periodic=True)
        await asyncio.sleep(0.06)

        assert timer.fire_count == 2
        assert timer.cancelled

    @pytest.mark.asyncio
    async def test_rejects_negative_delay(self):
        with pytest.raises(ValueError):
            ManagedTimer(asyncio.get_running_loop(), -0.1, lambda t: None, key="t")

    @pytest.mark.asyncio
    async def test_rejects_zero_period(self):
        with pytest.raises(ValueError):
            ManagedTimer(asyncio.get_running_loop(), 0, lambda t: None, key="t", periodic=True)

    @pytest.mark.asyncio
    async def test_repr(self):
        timer = ManagedTimer(asyncio.get_running_loop(), 1.0, lambda t: None, key="banner")
        assert repr(timer) == "ManagedTimer(key='banner', one-shot, delay=1.0, active=True)"
        timer.cancel()


class TestManagedSubscription:
    """Tests for ManagedSubscription."""

    def test_inactive_without_task(self):
        subscription = ManagedSubscription("s")
        assert not subscription.active
        subscription.cancel()

    @pytest.mark.asyncio
    async def test_cancel_task(self):
        subscription = ManagedSubscription("s")
        subscription.task = asyncio.create_task(asyncio.sleep(10))
        assert subscription.active

        subscription.cancel()
        subscription.cancel()
        with pytest.raises(asyncio.CancelledError):
            await subscription.task

        assert not subscription.active

    @pytest.mark.asyncio
    async def test_cancel_after_done_is_noop(self):
        subscription = ManagedSubscription("s")
        subscription.task = asyncio.create_task(asyncio.sleep(0))
        await subscription.task
        subscription.cancel()
        assert not subscription.task.cancelled()
