"""Framework fault hooks.

The interceptor registers itself as the sink for faults nobody else caught,
and, in development builds, hands unhealed faults back to the host's
default presentation path.  ``FrameworkHooks`` is that boundary.

``RuntimeHooks`` is the stock implementation for plain Python hosts: it
takes over ``sys.excepthook``, ``threading.excepthook`` and the running
asyncio loop's exception handler, and presents faults through whatever
``sys.excepthook`` was installed before it.  UI toolkits with their own
error hook provide their own ``FrameworkHooks``.
"""

from __future__ import annotations

import asyncio
import sys
import threading
from collections.abc import Callable
from types import TracebackType
from typing import Any, Protocol, runtime_checkable

from armor.core.faults import InterceptedFault, Trace
from armor.core.logging import get_logger

logger = get_logger(__name__)

FaultSink = Callable[[BaseException, Trace, "str | None"], Any]


@runtime_checkable
class FrameworkHooks(Protocol):
    """Boundary to the host framework's global fault handling."""

    def install(self, sink: FaultSink) -> None:
        """Route uncaught framework faults to ``sink(fault, trace, context)``."""
        ...

    def uninstall(self) -> None:
        """Restore whatever handlers were in place before :meth:`install`."""
        ...

    def present(self, fault: InterceptedFault) -> None:
        """Show ``fault`` through the framework's default error presentation."""
        ...


class NullHooks:
    """Hooks that install nothing and present nothing. Used in tests and embedding."""

    def install(self, sink: FaultSink) -> None:
        pass

    def uninstall(self) -> None:
        pass

    def present(self, fault: InterceptedFault) -> None:
        pass


class RuntimeHooks:
    """Hooks onto the Python runtime's uncaught-exception handlers."""

    def __init__(self) -> None:
        self._sink: FaultSink | None = None
        self._previous_excepthook: Callable[..., Any] | None = None
        self._previous_threading_hook: Callable[..., Any] | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._previous_loop_handler: Callable[..., Any] | None = None

    @property
    def installed(self) -> bool:
        return self._sink is not None

    def install(self, sink: FaultSink) -> None:
        if self._sink is not None:
            self.uninstall()
        self._sink = sink

        self._previous_excepthook = sys.excepthook
        sys.excepthook = self._excepthook

        self._previous_threading_hook = threading.excepthook
        threading.excepthook = self._threading_hook

        try:
            self._loop = asyncio.get_running_loop()
        except RuntimeError:
            self._loop = None
        if self._loop is not None:
            self._previous_loop_handler = self._loop.get_exception_handler()
            self._loop.set_exception_handler(self._loop_handler)

        logger.debug("framework_hooks_installed", asyncio_loop=self._loop is not None)

    def uninstall(self) -> None:
        if self._sink is None:
            return
        if sys.excepthook == self._excepthook:
            sys.excepthook = self._previous_excepthook or sys.__excepthook__
        if threading.excepthook == self._threading_hook:
            threading.excepthook = self._previous_threading_hook or threading.__excepthook__
        if self._loop is not None and not self._loop.is_closed():
            if self._loop.get_exception_handler() == self._loop_handler:
                self._loop.set_exception_handler(self._previous_loop_handler)
        self._sink = None
        self._loop = None
        self._previous_loop_handler = None
        logger.debug("framework_hooks_uninstalled")

    def present(self, fault: InterceptedFault) -> None:
        error = fault.error
        hook = self._previous_excepthook or sys.__excepthook__
        hook(type(error), error, error.__traceback__)

    # ── handlers ─────────────────────────────────────────────────

    def _excepthook(
        self,
        exc_type: type[BaseException],
        exc: BaseException,
        tb: TracebackType | None,
    ) -> None:
        # Interrupts and exits are not faults
        if self._sink is None or not isinstance(exc, Exception):
            (self._previous_excepthook or sys.__excepthook__)(exc_type, exc, tb)
            return
        self._sink(exc, tb, "sys.excepthook")

    def _threading_hook(self, args: threading.ExceptHookArgs) -> None:
        if self._sink is None or not isinstance(args.exc_value, Exception):
            (self._previous_threading_hook or threading.__excepthook__)(args)
            return
        thread_name = args.thread.name if args.thread is not None else "unknown"
        self._sink(args.exc_value, args.exc_traceback, f"thread {thread_name}")

    def _loop_handler(self, loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
        exc = context.get("exception")
        if self._sink is None or not isinstance(exc, Exception):
            if self._previous_loop_handler is not None:
                self._previous_loop_handler(loop, context)
            else:
                loop.default_exception_handler(context)
            return
        self._sink(exc, exc.__traceback__, context.get("message"))


__all__ = ["FaultSink", "FrameworkHooks", "NullHooks", "RuntimeHooks"]
