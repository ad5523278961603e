"""
Armor - runtime fault interception and healing for component-based UIs.

Quick start::

    from armor import ArmorContext, ProtectionScope

    ArmorContext.initialize()                 # once, at startup

    class ProfileCard:
        def __init__(self):
            self.scope = ProtectionScope(self)

        def dispose(self):
            self.scope.teardown()
"""

__version__ = "0.1.0"

from armor.core import *  # noqa: F401,F403
from armor.core import __all__ as _core_all

__all__ = ["__version__", *_core_all]
