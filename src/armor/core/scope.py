"""
Protection scope -- per-component guarded execution and resource ownership.

A host component owns one ``ProtectionScope`` for its whole lifetime and
delegates risky work to it.  The scope never lets a fault cross a guard
boundary: every guarded call resolves to a value (the result, a cached
result, the fallback, or a placeholder), and the fault is forwarded to the
interceptor instead.

Manifesto:
    - **Composition, not mixins:** the host owns a scope and calls it
    - **Hard lifecycle guard:** after teardown, mutations are no-ops and
      timer/subscription callbacks never run
    - **Last good value wins:** cached successful results are preferred
      over fallbacks when an operation fails
    - **Report once:** a failure recurring at the same call site is
      forwarded once per scope, then only contained

Architecture:
    ::

        ┌──────────────────────── ProtectionScope ────────────────────────┐
        │ mounted ─── flips False once, at the start of teardown()        │
        │ cache ───── cache_key → last successful result                  │
        │ reported ── operation identities already forwarded              │
        │ timers ──── key → ManagedTimer          (cancelled at teardown) │
        │ subs ────── key → ManagedSubscription   (cancelled at teardown) │
        └───────────────┬─────────────────────────────────────────────────┘
                        │ faults
                        ▼
              FaultInterceptor.admit()

Examples:
    ::

        scope = ProtectionScope(component, context=context)
        name = scope.guard(lambda: profile["name"], fallback="Unknown", cache_key="name")
        user = await scope.guarded_async(api.fetch_user, fallback=None)
        scope.guarded_timer(5.0, hide_banner, key="banner")
        scope.teardown()

Guardrails:
    ❌ DON'T: Call teardown() from anywhere but the host's disposal hook
    ✅ DO: Use the scope as a context manager when the host has no such hook

    ❌ DON'T: Mutate host state directly from async callbacks
    ✅ DO: Route it through guarded_mutate()

Tags:
    protection-scope, error-boundary, lifecycle, cache, timers,
    subscriptions, asyncio, armor-core
"""

from __future__ import annotations

import asyncio
import time
import uuid
from collections.abc import AsyncIterable, Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Protocol, TypeVar

from armor.core.context import ArmorContext, get_context
from armor.core.logging import LogContext, get_logger
from armor.execution.handles import ManagedSubscription, ManagedTimer
from armor.execution.retry import LinearBackoff, RetryStrategy

logger = get_logger(__name__)

R = TypeVar("R")


class Component(Protocol):
    """What a scope may use from its host. Both members are optional."""

    mounted: bool

    def set_state(self, mutation: Callable[[], None]) -> None: ...


@dataclass(frozen=True)
class ProtectedPlaceholder:
    """Stand-in returned by ``guarded_render`` when no fallback was supplied."""

    message: str
    error_type: str

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True)
class ScopeStats:
    """Diagnostic snapshot of a scope."""

    cached_values: int
    reported_operations: int
    active_timers: int
    active_subscriptions: int
    mounted: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "cached_values": self.cached_values,
            "reported_operations": self.reported_operations,
            "active_timers": self.active_timers,
            "active_subscriptions": self.active_subscriptions,
            "mounted": self.mounted,
        }


def operation_identity(operation: Callable[..., Any]) -> str:
    """Stable identity of a callable's call site.

    Lambdas and functions defined at the same place share a code object, so
    a failure recurring at one call site maps to one identity.
    """
    target = getattr(operation, "func", operation)  # functools.partial
    code = getattr(target, "__code__", None)
    if code is not None:
        return f"{code.co_filename}:{code.co_firstlineno}:{code.co_name}"
    return f"{type(target).__qualname__}@{id(target):x}"


class ProtectionScope:
    """Guarded execution, result cache and owned timers/subscriptions for one component."""

    def __init__(
        self,
        host: Component,
        *,
        context: ArmorContext | None = None,
        name: str | None = None,
    ) -> None:
        self.host = host
        self.context = context if context is not None else get_context()
        self.name = name or type(host).__name__
        self._mounted = True
        self._cache: dict[str, Any] = {}
        self._reported: set[str] = set()
        self._timers: dict[str, ManagedTimer] = {}
        self._subscriptions: dict[str, ManagedSubscription] = {}

    # ── lifecycle ────────────────────────────────────────────────

    @property
    def mounted(self) -> bool:
        """False once teardown has started or the host reports itself unmounted."""
        return self._mounted and bool(getattr(self.host, "mounted", True))

    def teardown(self) -> None:
        """Unmount, then cancel every owned timer and subscription.

        Idempotent: a second call does nothing.
        """
        if not self._mounted:
            return
        self._mounted = False

        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()

        for subscription in self._subscriptions.values():
            subscription.cancel()
        self._subscriptions.clear()

        self._cache.clear()
        self._reported.clear()
        logger.debug("scope_torn_down", scope=self.name)

    def __enter__(self) -> ProtectionScope:
        return self

    def __exit__(self, *args: Any) -> None:
        self.teardown()

    async def __aenter__(self) -> ProtectionScope:
        return self

    async def __aexit__(self, *args: Any) -> None:
        self.teardown()

    # ── forwarding ───────────────────────────────────────────────

    def _report(self, error: BaseException, origin: str) -> None:
        interceptor = self.context.interceptor
        if interceptor.is_disposed:
            logger.warning(
                "fault_not_forwarded",
                reason="interceptor_disposed",
                scope=self.name,
                origin=origin,
                error_type=type(error).__name__,
            )
            return
        interceptor.admit(error, error.__traceback__, origin=f"{self.name}.{origin}")

    def _report_once(self, identity: str, error: BaseException, origin: str) -> None:
        marker = f"{identity}_error"
        if marker in self._reported:
            return
        self._reported.add(marker)
        self._report(error, origin)

    def _cached(self, cache_key: str | None, fallback: Any) -> Any:
        if cache_key is not None and cache_key in self._cache:
            logger.debug("cached_value_returned", scope=self.name, cache_key=cache_key)
            return self._cache[cache_key]
        return fallback

    # ── synchronous guards ───────────────────────────────────────

    def guard(
        self,
        operation: Callable[[], R],
        fallback: R | None = None,
        cache_key: str | None = None,
    ) -> R | None:
        """Run ``operation``; on failure return the cached value or ``fallback``.

        Successful non-None results are cached under ``cache_key``.  A
        failure is forwarded to the interceptor once per call site (or per
        ``cache_key``) for the life of the scope.
        """
        identity = cache_key if cache_key is not None else operation_identity(operation)
        return self._run_guarded(operation, fallback, cache_key, identity, origin="guard")

    def _run_guarded(
        self,
        operation: Callable[[], R],
        fallback: R | None,
        cache_key: str | None,
        identity: str,
        origin: str,
    ) -> R | None:
        try:
            result = operation()
        except Exception as e:
            self._report_once(identity, e, origin)
            return self._cached(cache_key, fallback)

        if cache_key is not None and result is not None:
            self._cache[cache_key] = result
        return result

    def guarded_mutate(self, mutation: Callable[[], None]) -> bool:
        """Apply ``mutation`` only while mounted.

        Goes through the host's ``set_state`` when it has one.  Returns
        whether the mutation was applied.
        """
        if not self.mounted:
            logger.debug("mutation_prevented_after_teardown", scope=self.name)
            return False

        set_state = getattr(self.host, "set_state", None)
        if callable(set_state):
            set_state(mutation)
        else:
            mutation()
        return True

    def guarded_render(self, builder: Callable[[], R], fallback: R | None = None) -> R | ProtectedPlaceholder:
        """Build with ``builder``; on failure return ``fallback`` or a placeholder.

        Each failing exception type is reported once per scope.
        """
        try:
            return builder()
        except Exception as e:
            self._report_once(f"{type(e).__name__}_build", e, origin="render")
            if fallback is not None:
                return fallback
            return ProtectedPlaceholder(
                message=self.context.settings.placeholder_text,
                error_type=type(e).__name__,
            )

    def guarded_performance(
        self,
        operation: Callable[[], R],
        operation_name: str | None = None,
        warning_threshold: float = 0.1,
    ) -> R | None:
        """Run ``operation`` timed; log ``slow_operation`` past the threshold (seconds)."""
        start = time.perf_counter()
        try:
            result = operation()
        except Exception as e:
            self._report(e, origin="performance")
            return None

        elapsed = time.perf_counter() - start
        if elapsed > warning_threshold:
            logger.warning(
                "slow_operation",
                scope=self.name,
                operation=operation_name or "operation",
                elapsed_ms=round(elapsed * 1000, 1),
                threshold_ms=round(warning_threshold * 1000, 1),
            )
        return result

    # ── asynchronous guards ──────────────────────────────────────

    async def guarded_async(
        self,
        operation: Callable[[], Awaitable[R]],
        fallback: R | None = None,
        on_error: Callable[[], None] | None = None,
    ) -> R | None:
        """Await ``operation``; resolve to ``fallback`` on failure or if unmounted meanwhile."""
        return await self._run_async(operation, fallback, on_error, origin="async")

    async def _run_async(
        self,
        operation: Callable[[], Awaitable[R]],
        fallback: R | None,
        on_error: Callable[[], None] | None,
        origin: str,
        **log_fields: Any,
    ) -> R | None:
        if not self.mounted:
            return fallback
        try:
            result = await operation()
        except Exception as e:
            if log_fields:
                logger.warning(
                    f"{origin}_failed",
                    scope=self.name,
                    error=str(e),
                    **log_fields,
                )
            self._report(e, origin=origin)
            if on_error is not None:
                self._run_guarded(on_error, None, None, operation_identity(on_error), origin="on_error")
            return fallback

        if not self.mounted:
            logger.debug("async_result_discarded", scope=self.name, origin=origin)
            return fallback
        return result

    async def guarded_platform_call(
        self,
        call: Callable[[], Awaitable[R]],
        fallback: R | None = None,
        method_name: str | None = None,
    ) -> R | None:
        """``guarded_async`` for host platform-channel calls, logged with the method name."""
        return await self._run_async(call, fallback, None, origin="platform_call", method=method_name)

    async def guarded_file_operation(
        self,
        operation: Callable[[], Awaitable[R]],
        fallback: R | None = None,
        operation_type: str | None = None,
    ) -> R | None:
        """``guarded_async`` for file-system work, logged with the operation type."""
        return await self._run_async(
            operation, fallback, None, origin="file_operation", operation_type=operation_type
        )

    async def guarded_retryable_call(
        self,
        operation: Callable[[], Awaitable[R]],
        fallback: R | None = None,
        max_retries: int | None = None,
        retry_delay: float | None = None,
        cache_key: str | None = None,
        *,
        strategy: RetryStrategy | None = None,
        on_retry: Callable[[int, Exception, float], None] | None = None,
    ) -> R | None:
        """Await ``operation`` with retries and linear backoff.

        Retry n waits ``retry_delay * n``.  Every failure is forwarded.  The
        call gives up with ``fallback`` as soon as the scope is unmounted;
        after the last retry it returns the value cached under ``cache_key``
        if there is one, else ``fallback``.

        Args:
            operation: Zero-argument coroutine function
            fallback: Value when nothing better is available
            max_retries: Retries after the first attempt (default from settings)
            retry_delay: Base delay in seconds (default from settings)
            cache_key: Cache successes here; serve it on exhaustion
            strategy: Replaces the linear backoff built from the two above
            on_retry: Called with (retry number, error, delay) before each wait;
                its failures are contained like ``on_error``
        """
        settings = self.context.settings
        if strategy is None:
            strategy = LinearBackoff.per_attempt(
                max_retries if max_retries is not None else settings.retry_max,
                retry_delay if retry_delay is not None else settings.retry_delay_seconds,
            )

        retries = 0
        while True:
            if not self.mounted:
                return fallback
            try:
                result = await operation()
            except Exception as e:
                self._report(e, origin="retry")
                if not strategy.should_retry(retries, e):
                    break
                delay = strategy.next_delay(retries)
                retries += 1
                if on_retry is not None:
                    self._run_guarded(
                        lambda: on_retry(retries, e, delay),
                        None,
                        None,
                        operation_identity(on_retry),
                        origin="on_retry",
                    )
                await asyncio.sleep(delay)
                if not self.mounted:
                    logger.debug("retry_abandoned", scope=self.name, retries=retries)
                    return fallback
                continue

            if not self.mounted:
                return fallback
            if cache_key is not None and result is not None:
                self._cache[cache_key] = result
            if retries:
                logger.info("retry_recovered", scope=self.name, retries=retries)
            return result

        return self._cached(cache_key, fallback)

    # ── owned resources ──────────────────────────────────────────

    def guarded_timer(
        self,
        delay: float,
        callback: Callable[[], None],
        key: str | None = None,
        periodic: bool = False,
    ) -> ManagedTimer | None:
        """Schedule ``callback`` after ``delay`` seconds (or every ``delay`` if periodic).

        Replaces any timer already registered under ``key``.  The callback
        only runs while mounted; a periodic timer cancels itself once the
        scope is unmounted.  Returns None (after reporting) if the timer
        could not be scheduled, e.g. outside a running event loop.
        """
        timer_key = key or f"timer_{uuid.uuid4().hex[:12]}"
        previous = self._timers.pop(timer_key, None)
        if previous is not None:
            previous.cancel()

        identity = operation_identity(callback)

        def fire(timer: ManagedTimer) -> None:
            if not self.mounted:
                timer.cancel()
                self._forget_timer(timer)
                return
            if not timer.periodic:
                self._forget_timer(timer)
            self._run_guarded(callback, None, None, identity, origin="timer")

        try:
            timer = ManagedTimer(
                asyncio.get_running_loop(), delay, fire, key=timer_key, periodic=periodic
            )
        except (RuntimeError, ValueError) as e:
            self._report(e, origin="timer")
            return None

        self._timers[timer_key] = timer
        return timer

    def _forget_timer(self, timer: ManagedTimer) -> None:
        if self._timers.get(timer.key) is timer:
            del self._timers[timer.key]

    def guarded_subscribe(
        self,
        source: AsyncIterable[R],
        on_data: Callable[[R], None],
        on_error: Callable[[Exception], None] | None = None,
        on_done: Callable[[], None] | None = None,
        key: str | None = None,
    ) -> ManagedSubscription | None:
        """Consume ``source`` in a task owned by this scope.

        Replaces any subscription under ``key``.  Items are delivered only
        while mounted.  An error raised by the source is forwarded, handed to
        ``on_error`` and ends the subscription; natural completion calls
        ``on_done``.  Either way the bookkeeping entry is removed.
        """
        sub_key = key or f"stream_{uuid.uuid4().hex[:12]}"
        previous = self._subscriptions.pop(sub_key, None)
        if previous is not None:
            previous.cancel()

        subscription = ManagedSubscription(sub_key)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError as e:
            self._report(e, origin="subscription")
            return None

        subscription.task = loop.create_task(
            self._consume(subscription, source, on_data, on_error, on_done),
            name=f"armor:{self.name}:{sub_key}",
        )
        self._subscriptions[sub_key] = subscription
        return subscription

    async def _consume(
        self,
        subscription: ManagedSubscription,
        source: AsyncIterable[R],
        on_data: Callable[[R], None],
        on_error: Callable[[Exception], None] | None,
        on_done: Callable[[], None] | None,
    ) -> None:
        data_identity = operation_identity(on_data)
        try:
            async with LogContext(scope=self.name, subscription=subscription.key):
                async for item in source:
                    if not self.mounted:
                        continue
                    subscription.delivered += 1
                    self._run_guarded(lambda: on_data(item), None, None, data_identity, origin="subscription")
        except Exception as e:
            self._forget_subscription(subscription)
            self._report(e, origin="subscription")
            if on_error is not None:
                self._run_guarded(
                    lambda: on_error(e), None, None, operation_identity(on_error), origin="on_error"
                )
            return

        self._forget_subscription(subscription)
        if on_done is not None:
            self._run_guarded(on_done, None, None, operation_identity(on_done), origin="on_done")

    def _forget_subscription(self, subscription: ManagedSubscription) -> None:
        if self._subscriptions.get(subscription.key) is subscription:
            del self._subscriptions[subscription.key]

    # ── diagnostics ──────────────────────────────────────────────

    def stats(self) -> ScopeStats:
        """Counts of cached values, reported operations, timers, subscriptions."""
        return ScopeStats(
            cached_values=len(self._cache),
            reported_operations=len(self._reported),
            active_timers=len(self._timers),
            active_subscriptions=len(self._subscriptions),
            mounted=self.mounted,
        )

    def clear_cache(self) -> None:
        """Empty the result cache and the reported-operations set."""
        self._cache.clear()
        self._reported.clear()

    def __repr__(self) -> str:
        return f"ProtectionScope(name={self.name!r}, mounted={self.mounted})"


__all__ = [
    "Component",
    "ProtectedPlaceholder",
    "ProtectionScope",
    "ScopeStats",
    "operation_identity",
]
