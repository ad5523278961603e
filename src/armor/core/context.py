"""Process-wide Armor context: settings, healing registry and interceptor.

Scopes receive an ``ArmorContext`` explicitly, so tests and embedded hosts
can run against isolated instances.  Application code installs one context
at startup and lets scopes fall back to it::

    ArmorContext.initialize()          # once, before the UI starts
    scope = ProtectionScope(component)  # uses the installed context

Tests build their own::

    context = ArmorContext.isolated(ArmorSettings(debug=False))
    scope = ProtectionScope(component, context=context)
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from armor.core.classification import DEFAULT_RULES, HealingRule
from armor.core.errors import InterceptorNotInitializedError
from armor.core.hooks import FrameworkHooks, NullHooks
from armor.core.interceptor import FaultInterceptor
from armor.core.logging import get_logger
from armor.core.registry import HealingRegistry, get_default_registry
from armor.core.settings import ArmorSettings, get_settings

logger = get_logger(__name__)


@dataclass
class ArmorContext:
    """The registry, interceptor and settings shared by every scope."""

    settings: ArmorSettings
    registry: HealingRegistry
    interceptor: FaultInterceptor

    @classmethod
    def initialize(
        cls,
        settings: ArmorSettings | None = None,
        *,
        hooks: FrameworkHooks | None = None,
        rules: Iterable[HealingRule] = DEFAULT_RULES,
    ) -> ArmorContext:
        """Initialize the interceptor singleton and install this context globally.

        Re-initializing replaces both the interceptor and the installed
        context.  The process-wide registry is kept.
        """
        settings = settings if settings is not None else get_settings()
        registry = get_default_registry()
        interceptor = FaultInterceptor.initialize(
            registry=registry,
            settings=settings,
            hooks=hooks,
            rules=rules,
        )
        context = cls(settings=settings, registry=registry, interceptor=interceptor)
        set_context(context)
        return context

    @classmethod
    def isolated(
        cls,
        settings: ArmorSettings | None = None,
        *,
        hooks: FrameworkHooks | None = None,
        rules: Iterable[HealingRule] = DEFAULT_RULES,
    ) -> ArmorContext:
        """A self-contained context: own registry, uninstalled interceptor."""
        settings = settings if settings is not None else ArmorSettings()
        registry = HealingRegistry()
        interceptor = FaultInterceptor(
            registry=registry,
            settings=settings,
            hooks=hooks if hooks is not None else NullHooks(),
            rules=rules,
        )
        return cls(settings=settings, registry=registry, interceptor=interceptor)

    def reset(self) -> None:
        """Return registry and interceptor to their empty state."""
        self.registry.reset()
        self.interceptor.clear()

    def dispose(self) -> None:
        """Dispose the interceptor; uninstall this context if it is the global one."""
        self.interceptor.dispose()
        global _context
        if _context is self:
            _context = None


_context: ArmorContext | None = None


def get_context() -> ArmorContext:
    """Get the installed context.

    Raises:
        InterceptorNotInitializedError: If ``ArmorContext.initialize()`` was never called
    """
    if _context is None:
        raise InterceptorNotInitializedError(
            "ArmorContext.initialize() has not been called"
        )
    return _context


def set_context(context: ArmorContext | None) -> None:
    """Install ``context`` as the process-wide default (``None`` uninstalls)."""
    global _context
    _context = context


__all__ = ["ArmorContext", "get_context", "set_context"]
