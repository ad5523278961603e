"""
Broadcast channel for intercepted faults.

Manifesto:
    Analytics, logging sinks and diagnostic UIs want to observe faults as
    they are admitted, without the interceptor knowing about any of them.
    The channel decouples the single producer (the interceptor) from any
    number of observers.

Delivery model:
    - **Broadcast:** every current subscriber receives every published fault
    - **Ordered:** faults are delivered in publish order
    - **No replay:** a late subscriber never sees earlier faults (intentional)
    - **Synchronous callbacks:** ``publish()`` calls handlers before returning
    - **Async streams:** ``stream()`` yields faults from a per-listener queue

Handler exceptions are logged and do not stop delivery to other
subscribers, and never re-enter the interceptor.  Unsubscribing from
inside a handler (mid-publish) is safe: delivery iterates over a snapshot.

Examples:
    Callback subscription::

        channel = FaultChannel()
        sub_id = channel.subscribe(lambda fault: print(fault))
        channel.publish(fault)
        channel.unsubscribe(sub_id)

    Async stream (ends when the channel closes)::

        async for fault in channel.stream():
            analytics.track(fault.to_dict())

Tags:
    events, pub-sub, broadcast, asyncio, armor-core
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass

from armor.core.errors import ChannelClosedError
from armor.core.faults import InterceptedFault
from armor.core.logging import get_logger

logger = get_logger(__name__)

FaultHandler = Callable[[InterceptedFault], None]

_CLOSED = object()


@dataclass
class Subscription:
    """Internal subscription record."""

    id: str
    handler: FaultHandler


class FaultChannel:
    """In-process broadcast channel of :class:`InterceptedFault` records."""

    def __init__(self) -> None:
        self._subscriptions: dict[str, Subscription] = {}
        self._queues: set[asyncio.Queue] = set()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def subscription_count(self) -> int:
        """Number of active callback subscriptions and open streams."""
        return len(self._subscriptions) + len(self._queues)

    def subscribe(self, handler: FaultHandler) -> str:
        """Register a callback for every future fault.

        Returns:
            Subscription ID for later :meth:`unsubscribe`

        Raises:
            ChannelClosedError: If the channel has been closed
        """
        if self._closed:
            raise ChannelClosedError("cannot subscribe to a closed fault channel")

        sub_id = f"sub_{uuid.uuid4().hex[:12]}"
        self._subscriptions[sub_id] = Subscription(id=sub_id, handler=handler)
        return sub_id

    def unsubscribe(self, subscription_id: str) -> None:
        """Remove a subscription. Unknown IDs are ignored."""
        self._subscriptions.pop(subscription_id, None)

    def publish(self, fault: InterceptedFault) -> None:
        """Deliver ``fault`` to every current subscriber, in subscription order."""
        if self._closed:
            raise ChannelClosedError("cannot publish to a closed fault channel")

        for sub in list(self._subscriptions.values()):
            if sub.id not in self._subscriptions:
                continue
            try:
                sub.handler(fault)
            except Exception as e:
                logger.warning(
                    "fault_handler_error",
                    subscription_id=sub.id,
                    error=str(e),
                    error_type=type(e).__name__,
                )

        for queue in list(self._queues):
            queue.put_nowait(fault)

    def stream(self) -> AsyncIterator[InterceptedFault]:
        """Async iterator over faults published from this call on, until the channel closes.

        The listener is registered here, not on first iteration, so a fault
        published before the consumer first awaits is still delivered.
        """
        queue: asyncio.Queue = asyncio.Queue()
        if self._closed:
            queue.put_nowait(_CLOSED)
        else:
            self._queues.add(queue)
        return self._drain(queue)

    async def _drain(self, queue: asyncio.Queue) -> AsyncIterator[InterceptedFault]:
        try:
            while True:
                item = await queue.get()
                if item is _CLOSED:
                    return
                yield item
        finally:
            self._queues.discard(queue)

    def close(self) -> None:
        """Close the channel: drop subscribers and end open streams."""
        if self._closed:
            return
        self._closed = True
        self._subscriptions.clear()
        for queue in list(self._queues):
            queue.put_nowait(_CLOSED)
        self._queues.clear()


__all__ = ["FaultChannel", "FaultHandler", "Subscription"]
