"""Cancellable handles for scope-owned deferred and streaming work.

``ManagedTimer`` wraps ``loop.call_later`` (one-shot or periodic) and
``ManagedSubscription`` wraps the task draining an async iterable.  Both
are owned by exactly one ``ProtectionScope`` and cancelling either is
idempotent, so teardown can cancel everything without checking state.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable


class ManagedTimer:
    """One-shot or periodic callback scheduled on an asyncio loop.

    A periodic timer reschedules itself *before* invoking the callback, so
    the callback may cancel the timer it runs under.
    """

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        delay: float,
        callback: Callable[[ManagedTimer], None],
        *,
        key: str,
        periodic: bool = False,
    ) -> None:
        if delay < 0:
            raise ValueError(f"timer delay must be non-negative, got {delay}")
        if periodic and delay == 0:
            raise ValueError("periodic timer requires a positive delay")

        self.key = key
        self.delay = delay
        self.periodic = periodic
        self.fire_count = 0
        self._loop = loop
        self._callback = callback
        self._cancelled = False
        self._handle: asyncio.TimerHandle | None = loop.call_later(delay, self._fire)

    @property
    def active(self) -> bool:
        """True while the timer may still fire."""
        return not self._cancelled and self._handle is not None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """Stop the timer. Safe to call repeatedly."""
        self._cancelled = True
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        if self._cancelled:
            return
        self.fire_count += 1
        if self.periodic:
            self._handle = self._loop.call_later(self.delay, self._fire)
        else:
            self._handle = None
        self._callback(self)

    def __repr__(self) -> str:
        kind = "periodic" if self.periodic else "one-shot"
        return f"ManagedTimer(key={self.key!r}, {kind}, delay={self.delay}, active={self.active})"


class ManagedSubscription:
    """Handle on the task consuming a subscribed async iterable."""

    def __init__(self, key: str) -> None:
        self.key = key
        self.task: asyncio.Task | None = None
        self.delivered = 0

    @property
    def active(self) -> bool:
        return self.task is not None and not self.task.done()

    def cancel(self) -> None:
        """Cancel the consuming task. Safe to call repeatedly."""
        if self.task is not None and not self.task.done():
            self.task.cancel()

    def __repr__(self) -> str:
        return f"ManagedSubscription(key={self.key!r}, active={self.active}, delivered={self.delivered})"


__all__ = ["ManagedTimer", "ManagedSubscription"]
