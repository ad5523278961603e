"""
Fault interceptor -- the process-wide fault intake pipeline.

Every fault that escapes application code (through the framework hook) or
is contained by a protection scope ends up in ``FaultInterceptor.admit``.

Manifesto:
    Faults that repeat every frame or tick must not flood logs, observers or
    the developer's screen, and must never feed back into the pipeline that
    is reporting them.  Admission is therefore deduplicated by fingerprint,
    healing is pure bookkeeping, and debug presentation is deferred to the
    next scheduling tick.

Architecture:
    ::

        admit(fault, trace, origin)
            │
            ├─ 1. dedup key = type name + leading trace lines
            ├─ 2. key suppressed?  ──yes──▶ drop (no log, no publish, no heal)
            ├─ 3. suppress key, schedule expiry (tracked for cancellation)
            ├─ 4. classify (ordered rules, first match) ─▶ heal ─▶ registry
            ├─ 5. append to fault log, publish on FaultChannel
            └─ 6. unhealed + debug ─▶ hooks.present(fault) on next tick

Examples:
    >>> interceptor = FaultInterceptor.initialize()
    >>> try:
    ...     raise RuntimeError("RenderFlex overflowed by 42 pixels")
    ... except RuntimeError as e:
    ...     record = interceptor.admit(e, origin="layout")
    >>> record.healed
    True
    >>> interceptor.heal_rate
    1.0

Guardrails:
    - Dispose last: ``admit`` after ``dispose()`` raises
      ``InterceptorDisposedError``; callers check ``is_disposed``
    - ``initialize()`` again replaces the singleton; history is not carried over

Tags:
    interceptor, fault-handling, deduplication, healing, singleton, armor-core
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from collections.abc import Callable, Iterable
from typing import ClassVar

from armor.core.channel import FaultChannel
from armor.core.classification import DEFAULT_RULES, HealingRule, classify
from armor.core.errors import InterceptorDisposedError, InterceptorNotInitializedError
from armor.core.faults import UNKNOWN_ORIGIN, InterceptedFault, Trace, describe_trace, fingerprint
from armor.core.hooks import FrameworkHooks, NullHooks, RuntimeHooks
from armor.core.logging import get_logger
from armor.core.registry import HealingRegistry, get_default_registry
from armor.core.settings import ArmorSettings, get_settings

logger = get_logger(__name__)


class FaultInterceptor:
    """Classifies, deduplicates, heals, records and republishes faults."""

    _instance: ClassVar[FaultInterceptor | None] = None

    def __init__(
        self,
        *,
        registry: HealingRegistry | None = None,
        settings: ArmorSettings | None = None,
        hooks: FrameworkHooks | None = None,
        rules: Iterable[HealingRule] = DEFAULT_RULES,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.registry = registry if registry is not None else HealingRegistry()
        self.settings = settings if settings is not None else get_settings()
        self.hooks: FrameworkHooks = hooks if hooks is not None else NullHooks()
        self.rules: tuple[HealingRule, ...] = tuple(rules)
        self._clock = clock

        self._faults: deque[InterceptedFault] = deque(maxlen=self.settings.max_fault_log)
        self._channel = FaultChannel()
        self._suppressed: dict[str, float] = {}
        self._expiry_handles: dict[str, asyncio.TimerHandle] = {}
        self._pending_presentations: deque[InterceptedFault] = deque()
        self._admission_depth = 0
        self._disposed = False

    # ── singleton lifecycle ──────────────────────────────────────

    @classmethod
    def initialize(
        cls,
        *,
        registry: HealingRegistry | None = None,
        settings: ArmorSettings | None = None,
        hooks: FrameworkHooks | None = None,
        rules: Iterable[HealingRule] = DEFAULT_RULES,
    ) -> FaultInterceptor:
        """Install a fresh interceptor as the process-wide default fault sink.

        Calling this again disposes the previous instance and replaces it;
        no fault history survives.  ``hooks`` defaults to :class:`RuntimeHooks`
        and ``registry`` to the process-wide registry.
        """
        previous = cls._instance
        if previous is not None and not previous.is_disposed:
            previous.dispose()

        interceptor = cls(
            registry=registry if registry is not None else get_default_registry(),
            settings=settings,
            hooks=hooks if hooks is not None else RuntimeHooks(),
            rules=rules,
        )
        interceptor.hooks.install(interceptor.handle_framework_fault)
        cls._instance = interceptor
        logger.info(
            "interceptor_initialized",
            debug=interceptor.settings.debug,
            suppression_window=interceptor.settings.suppression_window_seconds,
            rules=len(interceptor.rules),
        )
        return interceptor

    @classmethod
    def instance(cls) -> FaultInterceptor:
        """The installed interceptor.

        Raises:
            InterceptorNotInitializedError: If ``initialize()`` was never called
        """
        if cls._instance is None:
            raise InterceptorNotInitializedError()
        return cls._instance

    @classmethod
    def is_initialized(cls) -> bool:
        return cls._instance is not None

    # ── intake ───────────────────────────────────────────────────

    def handle_framework_fault(
        self, fault: BaseException, trace: Trace = None, context: str | None = None
    ) -> InterceptedFault | None:
        """Sink installed on the framework hook for uncaught faults."""
        if self._disposed:
            logger.warning("framework_fault_after_dispose", error_type=type(fault).__name__)
            return None
        return self.admit(fault, trace, origin=context or UNKNOWN_ORIGIN)

    def admit(
        self, fault: BaseException, trace: Trace = None, origin: str | None = None
    ) -> InterceptedFault | None:
        """Run ``fault`` through the intake pipeline.

        Unhealed faults are presented (debug builds only) after admission
        completes: on the next loop iteration via ``call_soon`` when an event
        loop is running, otherwise synchronously right before the outermost
        ``admit`` call returns, once the fault is logged and published.

        Args:
            fault: The exception to admit
            trace: Traceback object or rendered trace text (defaults to the
                fault's own traceback)
            origin: Free-text label for where the fault came from

        Returns:
            The admitted record, or None if the fault was a suppressed duplicate

        Raises:
            InterceptorDisposedError: If called after :meth:`dispose`
        """
        if self._disposed:
            raise InterceptorDisposedError(
                "fault admitted after interceptor disposal",
                context={"error_type": type(fault).__name__, "origin": origin},
            )

        self._prune_expired()
        trace_text = describe_trace(fault, trace)
        key = fingerprint(fault, trace_text, self.settings.trace_fingerprint_lines)

        if self._is_suppressed(key):
            logger.debug("fault_suppressed", dedup_key=key, origin=origin)
            return None
        self._suppress(key)

        record = InterceptedFault(
            error=fault,
            trace=trace_text,
            origin=origin or UNKNOWN_ORIGIN,
            dedup_key=key,
        )

        self._admission_depth += 1
        try:
            self._attempt_heal(record)
            self._faults.append(record)
            self._channel.publish(record)

            if not record.healed and self.settings.debug:
                self._schedule_presentation(record)
        finally:
            self._admission_depth -= 1

        if self._admission_depth == 0:
            self._flush_presentations()
        return record

    def _attempt_heal(self, record: InterceptedFault) -> None:
        rule = classify(record.error, self.rules)
        if rule is None:
            record.resolve(False)
            logger.warning(
                "fault_unhealed",
                error_type=type(record.error).__name__,
                error=str(record.error),
                origin=record.origin,
            )
            return

        rule.heal(self.registry, record.error)
        record.resolve(True, rule.category)
        logger.info(
            "fault_healed",
            category=rule.category.value,
            error_type=type(record.error).__name__,
            origin=record.origin,
        )

    # ── deduplication ────────────────────────────────────────────

    def _is_suppressed(self, key: str) -> bool:
        deadline = self._suppressed.get(key)
        if deadline is None:
            return False
        if self._clock() >= deadline:
            self._expire(key)
            return False
        return True

    def _prune_expired(self) -> None:
        now = self._clock()
        for key in [k for k, deadline in self._suppressed.items() if deadline <= now]:
            self._expire(key)

    def _suppress(self, key: str) -> None:
        window = self.settings.suppression_window_seconds
        self._suppressed[key] = self._clock() + window
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop: expired keys are pruned at the start of the next admission
            return
        self._expiry_handles[key] = loop.call_later(window, self._expire, key)

    def _expire(self, key: str) -> None:
        self._suppressed.pop(key, None)
        handle = self._expiry_handles.pop(key, None)
        if handle is not None:
            handle.cancel()

    def _cancel_expiries(self) -> None:
        for handle in self._expiry_handles.values():
            handle.cancel()
        self._expiry_handles.clear()
        self._suppressed.clear()

    # ── debug presentation ───────────────────────────────────────

    def _schedule_presentation(self, record: InterceptedFault) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._pending_presentations.append(record)
            return
        loop.call_soon(self._present, record)

    def _flush_presentations(self) -> None:
        while self._pending_presentations:
            self._present(self._pending_presentations.popleft())

    def _present(self, record: InterceptedFault) -> None:
        if self._disposed:
            return
        try:
            self.hooks.present(record)
        except Exception as e:
            # Presentation must never re-enter admission
            logger.error(
                "fault_presentation_failed",
                error=str(e),
                error_type=type(e).__name__,
                fault=str(record),
            )

    # ── read API ─────────────────────────────────────────────────

    @property
    def faults(self) -> tuple[InterceptedFault, ...]:
        """Admitted faults, oldest first."""
        return tuple(self._faults)

    @property
    def channel(self) -> FaultChannel:
        """Broadcast channel of admitted faults."""
        return self._channel

    @property
    def total_intercepted(self) -> int:
        """Total number of faults admitted."""
        return len(self._faults)

    @property
    def total_healed(self) -> int:
        """Total number of admitted faults that were healed."""
        return sum(1 for fault in self._faults if fault.healed)

    @property
    def heal_rate(self) -> float:
        """Healed / admitted, 0.0 when nothing was admitted."""
        total = self.total_intercepted
        if total == 0:
            return 0.0
        return self.total_healed / total

    @property
    def suppressed_keys(self) -> frozenset[str]:
        """Dedup keys currently inside their suppression window."""
        now = self._clock()
        return frozenset(key for key, deadline in self._suppressed.items() if deadline > now)

    @property
    def suppression_entries(self) -> int:
        """Dedup keys still held, including any not yet pruned after their window."""
        return len(self._suppressed)

    @property
    def pending_expiries(self) -> int:
        """Scheduled expiry handles not yet fired or cancelled."""
        return len(self._expiry_handles)

    @property
    def is_disposed(self) -> bool:
        return self._disposed

    # ── teardown ─────────────────────────────────────────────────

    def clear(self) -> None:
        """Empty the fault log and dedup keys, cancelling pending expiries."""
        self._faults.clear()
        self._pending_presentations.clear()
        self._cancel_expiries()

    def dispose(self) -> None:
        """Cancel expiries, close the channel and release the framework hook."""
        if self._disposed:
            return
        self._cancel_expiries()
        self._pending_presentations.clear()
        self._channel.close()
        self.hooks.uninstall()
        self._disposed = True
        logger.info("interceptor_disposed", total_intercepted=self.total_intercepted)

    def __repr__(self) -> str:
        return (
            f"FaultInterceptor(intercepted={self.total_intercepted}, "
            f"healed={self.total_healed}, disposed={self._disposed})"
        )


__all__ = ["FaultInterceptor"]
