"""
Structured error types for the Armor protection layer.

Armor's contract is that faults raised by *guarded* code never escape a
guard boundary.  The errors in this module are the opposite case: they are
raised by Armor itself when a caller breaks a lifecycle rule (asking for the
interceptor before it exists, admitting faults after disposal, resolving a
fault record twice).  They are programming errors in the host, not runtime
faults to be healed.

Manifesto:
    - **Single base class:** Every Armor error extends ``ArmorError``
    - **Rich context:** Errors carry a small metadata dict for logging
    - **Lifecycle, not runtime:** Nothing here is ever routed through the
      interceptor; these propagate to the caller

Architecture:
    ::

        ArmorError
        ├── InterceptorNotInitializedError   instance() before initialize()
        ├── InterceptorDisposedError         admit() after dispose()
        ├── ChannelClosedError               publish()/subscribe() after close()
        └── FaultStateError                  InterceptedFault resolved twice

Examples:
    >>> err = InterceptorDisposedError("interceptor disposed", context={"origin": "render"})
    >>> err.to_dict()
    {'error_type': 'InterceptorDisposedError', 'message': 'interceptor disposed', 'origin': 'render'}

Tags:
    error-handling, exception-hierarchy, lifecycle, armor-core

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from typing import Any


class ArmorError(Exception):
    """Base exception for all Armor lifecycle errors.

    Attributes:
        message: Human-readable description
        context: Extra metadata included in ``to_dict()``
    """

    def __init__(self, message: str, *, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.context: dict[str, Any] = dict(context or {})

    def with_context(self, **kwargs: Any) -> ArmorError:
        """Add context fields and return self for chaining."""
        self.context.update(kwargs)
        return self

    def to_dict(self) -> dict[str, Any]:
        """Serialize for structured logging."""
        result: dict[str, Any] = {
            "error_type": type(self).__name__,
            "message": self.message,
        }
        result.update(self.context)
        return result

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r})"


class InterceptorNotInitializedError(ArmorError):
    """Raised when the interceptor singleton is requested before ``initialize()``."""

    def __init__(self, message: str = "FaultInterceptor.initialize() has not been called"):
        super().__init__(message)


class InterceptorDisposedError(ArmorError):
    """Raised when a fault is admitted into a disposed interceptor."""


class ChannelClosedError(ArmorError):
    """Raised when publishing to or subscribing on a closed fault channel."""


class FaultStateError(ArmorError):
    """Raised when an intercepted fault's healed flag is resolved more than once."""


__all__ = [
    "ArmorError",
    "InterceptorNotInitializedError",
    "InterceptorDisposedError",
    "ChannelClosedError",
    "FaultStateError",
]
