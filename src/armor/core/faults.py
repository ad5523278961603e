"""Intercepted fault records and trace fingerprinting.

A trace may arrive as a traceback object (Python faults), as pre-rendered
text (faults reported by the host framework), or not at all.  All three are
normalised to a text descriptor listing the innermost frame first, so the
"leading lines" of a trace are the lines closest to where the fault was
raised.  The dedup key folds the fault's type name with those leading lines.
"""

from __future__ import annotations

import os
import traceback
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import TracebackType
from typing import Any

from armor.core.classification import HealCategory
from armor.core.errors import FaultStateError

Trace = TracebackType | str | None

UNKNOWN_ORIGIN = "Unknown"

_PACKAGE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


def utcnow() -> datetime:
    """Return timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def describe_trace(fault: BaseException, trace: Trace = None) -> str:
    """Render ``trace`` (or the fault's own traceback) innermost frame first.

    With neither available, the current stack is used instead, minus Armor's
    own frames.
    """
    if isinstance(trace, str):
        return trace

    tb = trace if trace is not None else fault.__traceback__
    if tb is not None:
        frames = traceback.extract_tb(tb)
    else:
        frames = [
            frame
            for frame in traceback.extract_stack()
            if not os.path.abspath(frame.filename).startswith(_PACKAGE_DIR)
        ]
    return "".join(traceback.format_list(list(reversed(frames))))


def fingerprint(fault: BaseException, trace_text: str, lines: int = 3) -> str:
    """Dedup key: fault type name plus the first ``lines`` lines of the trace."""
    leading = [line.strip() for line in trace_text.splitlines() if line.strip()][:lines]
    return "_".join([type(fault).__name__, *leading])


@dataclass(eq=False)
class InterceptedFault:
    """One admitted fault.

    Immutable apart from a single ``healed`` transition made through
    :meth:`resolve` right after the healing attempt.

    Attributes:
        error: The original exception
        trace: Trace descriptor, innermost frame first
        origin: Free-text label for where the fault came from
        timestamp: When the fault was admitted (UTC)
        dedup_key: Fingerprint used for duplicate suppression
        category: Healing category when healed, else None
    """

    error: BaseException
    trace: str
    origin: str = UNKNOWN_ORIGIN
    timestamp: datetime = field(default_factory=utcnow)
    dedup_key: str = ""
    category: HealCategory | None = None
    _healed: bool | None = field(default=None, init=False, repr=False)

    @property
    def healed(self) -> bool:
        return bool(self._healed)

    @property
    def resolved(self) -> bool:
        return self._healed is not None

    def resolve(self, healed: bool, category: HealCategory | None = None) -> None:
        """Record the outcome of the healing attempt. Allowed exactly once."""
        if self._healed is not None:
            raise FaultStateError(
                "healed flag already resolved",
                context={"dedup_key": self.dedup_key, "healed": self._healed},
            )
        self._healed = healed
        self.category = category if healed else None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        return {
            "error_type": type(self.error).__name__,
            "error": str(self.error),
            "origin": self.origin,
            "timestamp": self.timestamp.isoformat(),
            "healed": self.healed,
            "category": self.category.value if self.category else None,
        }

    def __str__(self) -> str:
        return f"InterceptedFault(error: {self.error!r}, healed: {self.healed}, origin: {self.origin})"


__all__ = [
    "InterceptedFault",
    "Trace",
    "UNKNOWN_ORIGIN",
    "describe_trace",
    "fingerprint",
    "utcnow",
]
