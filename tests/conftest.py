"""
Shared pytest fixtures for armor tests.

Every test gets an isolated ``ArmorContext`` (own registry, interceptor with
recording hooks) and a scope over a fake component.  Global state touched by
``FaultInterceptor.initialize()`` / ``ArmorContext.initialize()`` is reset
after each test.
"""

import sys
from pathlib import Path
from typing import Generator

import pytest

# Ensure armor package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
sys.path.insert(0, str(Path(__file__).parent.parent))

from armor.core.context import ArmorContext, set_context
from armor.core.interceptor import FaultInterceptor
from armor.core.registry import get_default_registry
from armor.core.scope import ProtectionScope
from armor.core.settings import ArmorSettings, reset_settings
from tests._support.fault_injection import FakeComponent, RecordingHooks


# =============================================================================
# Global State Cleanup
# =============================================================================


@pytest.fixture(autouse=True)
def clean_global_state_fixture() -> Generator[None, None, None]:
    """Dispose any installed interceptor and clear process-wide state."""
    yield
    installed = FaultInterceptor._instance
    if installed is not None and not installed.is_disposed:
        installed.dispose()
    FaultInterceptor._instance = None
    set_context(None)
    get_default_registry().reset()
    reset_settings()


# =============================================================================
# Context Fixtures
# =============================================================================


@pytest.fixture
def settings() -> ArmorSettings:
    return ArmorSettings(debug=False, suppression_window_seconds=5.0, retry_delay_seconds=0.01)


@pytest.fixture
def hooks() -> RecordingHooks:
    return RecordingHooks()


@pytest.fixture
def context(settings, hooks) -> Generator[ArmorContext, None, None]:
    ctx = ArmorContext.isolated(settings, hooks=hooks)
    yield ctx
    ctx.interceptor.dispose()


@pytest.fixture
def interceptor(context) -> FaultInterceptor:
    return context.interceptor


@pytest.fixture
def registry(context):
    return context.registry


@pytest.fixture
def component() -> FakeComponent:
    return FakeComponent()


@pytest.fixture
def scope(component, context) -> Generator[ProtectionScope, None, None]:
    s = ProtectionScope(component, context=context)
    yield s
    s.teardown()
