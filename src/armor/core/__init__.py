"""Armor Core -- fault interception, healing statistics and protection scopes.

Architecture::

    Layer 1 -- Types & Errors
        errors.py          Lifecycle error hierarchy (ArmorError, ...)
        classification.py  HealCategory + ordered HealingRule table
        faults.py          InterceptedFault record, trace fingerprinting

    Layer 2 -- Bookkeeping & Delivery
        registry.py        HealingRegistry (healed-category counters)
        channel.py         FaultChannel (broadcast, no replay)
        hooks.py           FrameworkHooks boundary, RuntimeHooks

    Layer 3 -- Pipeline
        interceptor.py     FaultInterceptor singleton (dedup, heal, publish)
        context.py         ArmorContext (settings + registry + interceptor)
        scope.py           ProtectionScope (guarded execution per component)

    Cross-Cutting
        logging.py         structlog configuration
        settings.py        ArmorSettings (pydantic-settings, ARMOR_ prefix)
"""

from armor.core.channel import FaultChannel
from armor.core.classification import DEFAULT_RULES, HealCategory, HealingRule, classify
from armor.core.context import ArmorContext, get_context, set_context
from armor.core.errors import (
    ArmorError,
    ChannelClosedError,
    FaultStateError,
    InterceptorDisposedError,
    InterceptorNotInitializedError,
)
from armor.core.faults import InterceptedFault
from armor.core.hooks import FrameworkHooks, NullHooks, RuntimeHooks
from armor.core.interceptor import FaultInterceptor
from armor.core.registry import HealingRegistry, get_default_registry
from armor.core.scope import ProtectedPlaceholder, ProtectionScope, ScopeStats
from armor.core.settings import ArmorSettings, get_settings

__all__ = [
    # classification
    "DEFAULT_RULES",
    "HealCategory",
    "HealingRule",
    "classify",
    # records & delivery
    "InterceptedFault",
    "FaultChannel",
    "FrameworkHooks",
    "NullHooks",
    "RuntimeHooks",
    # pipeline
    "HealingRegistry",
    "get_default_registry",
    "FaultInterceptor",
    "ArmorContext",
    "get_context",
    "set_context",
    "ProtectionScope",
    "ProtectedPlaceholder",
    "ScopeStats",
    # config
    "ArmorSettings",
    "get_settings",
    # errors
    "ArmorError",
    "ChannelClosedError",
    "FaultStateError",
    "InterceptorDisposedError",
    "InterceptorNotInitializedError",
]
