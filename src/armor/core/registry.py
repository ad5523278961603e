"""
Healing registry -- process-wide counters of healed fault categories.

Pure bookkeeping: the interceptor's healing step increments a category each
time it recognises and heals a fault.  Nothing here decides *whether* a fault
is healable; see :mod:`armor.core.classification` for that.

Invariants:
    - Counts are non-negative integers
    - Counts only grow, except through an explicit ``reset()``
    - ``snapshot()`` never exposes the internal dict

Examples:
    >>> from armor.core.registry import HealingRegistry
    >>> from armor.core.classification import HealCategory
    >>> registry = HealingRegistry()
    >>> registry.record_healing(HealCategory.NULL_CHECK)
    1
    >>> registry.total()
    1
    >>> print(registry.format_report())
    Armor Healing Statistics:
    Total healed: 1
    By type:
      Null Check: 1

Tags:
    registry, statistics, healing, armor-core
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from types import MappingProxyType

from armor.core.logging import get_logger

logger = get_logger(__name__)


def _category_name(category: Enum | str) -> str:
    return category.value if isinstance(category, Enum) else str(category)


def format_category(category: Enum | str) -> str:
    """Title-case a category tag: ``setstate_after_dispose`` -> ``Setstate After Dispose``."""
    words = _category_name(category).replace("_", " ").replace("-", " ").split(" ")
    return " ".join(word[:1].upper() + word[1:] for word in words if word)


class HealingRegistry:
    """Counts of successfully healed faults, keyed by category."""

    def __init__(self) -> None:
        self._healed: dict[Enum | str, int] = {}

    def record_healing(self, category: Enum | str) -> int:
        """Increment ``category`` (creating it at 1) and return the new count."""
        count = self._healed.get(category, 0) + 1
        self._healed[category] = count
        logger.debug("healing_recorded", category=_category_name(category), count=count)
        return count

    def snapshot(self) -> Mapping[Enum | str, int]:
        """Read-only copy of the current counts."""
        return MappingProxyType(dict(self._healed))

    @property
    def healed_faults(self) -> Mapping[Enum | str, int]:
        """Alias of :meth:`snapshot` for attribute-style access."""
        return self.snapshot()

    def count(self, category: Enum | str) -> int:
        return self._healed.get(category, 0)

    def total(self) -> int:
        """Total healed faults across all categories."""
        return sum(self._healed.values())

    def most_frequent(self) -> Enum | str | None:
        """Category with the highest count.

        Ties go to the category that was recorded first.  Returns ``None``
        when nothing has been healed.
        """
        most_common: Enum | str | None = None
        max_count = 0
        for category, count in self._healed.items():
            if count > max_count:
                max_count = count
                most_common = category
        return most_common

    def reset(self) -> None:
        """Clear all counts. Intended for test isolation and diagnostics."""
        self._healed.clear()

    def format_report(self) -> str:
        """Deterministic human-readable summary of the counts."""
        if not self._healed:
            return "No faults healed yet"

        lines = [
            "Armor Healing Statistics:",
            f"Total healed: {self.total()}",
            "By type:",
        ]
        for category, count in self._healed.items():
            lines.append(f"  {format_category(category)}: {count}")
        return "\n".join(lines)

    def __len__(self) -> int:
        return len(self._healed)

    def __repr__(self) -> str:
        return f"HealingRegistry(categories={len(self._healed)}, total={self.total()})"


# Process-wide registry
_default_registry = HealingRegistry()


def get_default_registry() -> HealingRegistry:
    """Get the process-wide healing registry."""
    return _default_registry


__all__ = ["HealingRegistry", "format_category", "get_default_registry"]
