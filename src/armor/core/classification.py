"""
Fault classification -- the ordered table of recognisable, healable faults.

Each rule is a ``(category, predicate, action)`` triple.  Rules are evaluated
in order against the fault's message and the first matching rule wins; its
action performs the healing bookkeeping.  A fault that matches no rule is
*unhealed* and only gets contained (fallback value) by the caller.

The trigger substrings are a contract with the host UI framework: they are
the messages it raises for the four fault classes Armor knows how to absorb.

    ┌───┬────────────────────────────────────────────┬─────────────────────────┐
    │ # │ Trigger substring(s)                       │ Category                │
    ├───┼────────────────────────────────────────────┼─────────────────────────┤
    │ 1 │ "Null check operator used on a null value" │ null_check              │
    │   │ "'NoneType' object"                        │                         │
    │ 2 │ "setState() called after dispose()"        │ setstate_after_dispose  │
    │   │ "set_state() called after teardown"        │                         │
    │ 3 │ "Looking up a deactivated widget"          │ deactivated_widget      │
    │ 4 │ "RenderFlex overflowed"                    │ render_overflow         │
    └───┴────────────────────────────────────────────┴─────────────────────────┘

Matching is case-sensitive substring search on ``str(fault)``.

Examples:
    >>> rule = classify(ValueError("RenderFlex overflowed by 12 pixels"))
    >>> rule.category
    <HealCategory.RENDER_OVERFLOW: 'render_overflow'>
    >>> classify(ValueError("boom")) is None
    True

Tags:
    classification, healing, dispatch-table, armor-core
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from armor.core.registry import HealingRegistry


class HealCategory(str, Enum):
    """Closed set of healed-fault categories tracked by the registry."""

    NULL_CHECK = "null_check"
    SETSTATE_AFTER_DISPOSE = "setstate_after_dispose"
    DEACTIVATED_WIDGET = "deactivated_widget"
    RENDER_OVERFLOW = "render_overflow"


FaultPredicate = Callable[[BaseException], bool]
HealingAction = Callable[["HealingRegistry", BaseException], None]


def record_category(category: HealCategory) -> HealingAction:
    """Healing action that increments ``category`` in the registry."""

    def action(registry: HealingRegistry, fault: BaseException) -> None:
        registry.record_healing(category)

    return action


def message_contains(*patterns: str) -> FaultPredicate:
    """Predicate: ``str(fault)`` contains any of ``patterns`` (case-sensitive)."""

    def predicate(fault: BaseException) -> bool:
        message = str(fault)
        return any(pattern in message for pattern in patterns)

    return predicate


@dataclass(frozen=True)
class HealingRule:
    """One row of the classification table."""

    category: HealCategory
    predicate: FaultPredicate
    action: HealingAction
    patterns: tuple[str, ...] = field(default=(), compare=False)

    @classmethod
    def substring(cls, category: HealCategory, *patterns: str) -> HealingRule:
        """Rule matching any of ``patterns`` and recording ``category`` when it heals."""
        return cls(
            category=category,
            predicate=message_contains(*patterns),
            action=record_category(category),
            patterns=patterns,
        )

    def matches(self, fault: BaseException) -> bool:
        return self.predicate(fault)

    def heal(self, registry: HealingRegistry, fault: BaseException) -> None:
        self.action(registry, fault)


DEFAULT_RULES: tuple[HealingRule, ...] = (
    HealingRule.substring(
        HealCategory.NULL_CHECK,
        "Null check operator used on a null value",
        "'NoneType' object",
    ),
    HealingRule.substring(
        HealCategory.SETSTATE_AFTER_DISPOSE,
        "setState() called after dispose()",
        "set_state() called after teardown",
    ),
    HealingRule.substring(
        HealCategory.DEACTIVATED_WIDGET,
        "Looking up a deactivated widget",
    ),
    HealingRule.substring(
        HealCategory.RENDER_OVERFLOW,
        "RenderFlex overflowed",
    ),
)


def classify(
    fault: BaseException, rules: Iterable[HealingRule] = DEFAULT_RULES
) -> HealingRule | None:
    """Return the first rule matching ``fault``, or ``None``."""
    for rule in rules:
        if rule.matches(fault):
            return rule
    return None


def rule_for(category: HealCategory, rules: Sequence[HealingRule] = DEFAULT_RULES) -> HealingRule | None:
    """Look up the rule recording ``category``."""
    for rule in rules:
        if rule.category is category:
            return rule
    return None


__all__ = [
    "HealCategory",
    "HealingRule",
    "HealingAction",
    "FaultPredicate",
    "DEFAULT_RULES",
    "classify",
    "rule_for",
    "message_contains",
    "record_category",
]
