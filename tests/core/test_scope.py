"""Tests for armor.core.scope -- synchronous guards, cache and lifecycle."""

import functools
import time

import pytest

from armor.core.context import ArmorContext
from armor.core.errors import InterceptorNotInitializedError
from armor.core.hooks import NullHooks
from armor.core.scope import ProtectedPlaceholder, ProtectionScope, ScopeStats, operation_identity
from tests._support.fault_injection import FakeComponent, failing


class TestConstruction:
    def test_defaults_to_installed_context(self):
        context = ArmorContext.initialize(hooks=NullHooks())
        scope = ProtectionScope(FakeComponent())
        assert scope.context is context
        assert scope.name == "FakeComponent"

    def test_requires_context_when_none_installed(self):
        with pytest.raises(InterceptorNotInitializedError):
            ProtectionScope(FakeComponent())

    def test_host_without_mounted_attribute(self, context):
        scope = ProtectionScope(object(), context=context, name="plain")
        assert scope.mounted is True


class TestGuard:
    """Tests for guard()."""

    def test_success_returns_result(self, scope):
        assert scope.guard(lambda: 42, fallback=0) == 42

    def test_failure_returns_fallback_and_reports(self, scope, interceptor):
        result = scope.guard(failing("Test error"), fallback="fallback")
        assert result == "fallback"
        assert interceptor.total_intercepted == 1
        assert interceptor.faults[0].origin == "FakeComponent.guard"

    def test_failure_without_fallback_returns_none(self, scope):
        assert scope.guard(failing()) is None

    def test_failure_returns_cached_value(self, scope):
        assert scope.guard(lambda: "cached_value", cache_key="test_key") == "cached_value"
        assert scope.guard(failing(), fallback="fallback", cache_key="test_key") == "cached_value"

    def test_none_result_is_not_cached(self, scope):
        scope.guard(lambda: None, cache_key="k")
        assert scope.stats().cached_values == 0
        assert scope.guard(failing(), fallback="fb", cache_key="k") == "fb"

    def test_success_overwrites_cache(self, scope):
        scope.guard(lambda: 1, cache_key="k")
        scope.guard(lambda: 2, cache_key="k")
        assert scope.guard(failing(), cache_key="k") == 2

    def test_operation_runs_even_when_cached(self, scope):
        calls = []

        def op():
            calls.append(1)
            return len(calls)

        scope.guard(op, cache_key="k")
        assert scope.guard(op, cache_key="k") == 2
        assert len(calls) == 2

    def test_same_call_site_reported_once(self, scope, interceptor):
        op = failing("recurring")
        for _ in range(3):
            scope.guard(op, fallback=0)
        assert interceptor.total_intercepted == 1
        assert scope.stats().reported_operations == 1

    def test_distinct_cache_keys_reported_separately(self, scope):
        scope.guard(failing("a"), cache_key="a")
        scope.guard(failing("b"), cache_key="b")
        assert scope.stats().reported_operations == 2

    def test_non_exception_propagates(self, scope):
        def interrupt():
            raise KeyboardInterrupt

        with pytest.raises(KeyboardInterrupt):
            scope.guard(interrupt)

    def test_disposed_interceptor_still_contains_fault(self, scope, interceptor):
        interceptor.dispose()
        assert scope.guard(failing(), fallback="safe") == "safe"


class TestOperationIdentity:
    def test_same_code_object_same_identity(self):
        def make():
            return lambda: None

        assert operation_identity(make()) == operation_identity(make())

    def test_partial_unwrapped(self):
        def op(x):
            return x

        assert operation_identity(functools.partial(op, 1)) == operation_identity(op)

    def test_callable_object(self):
        class Op:
            def __call__(self):
                return None

        identity = operation_identity(Op())
        assert ".<locals>.Op@" in identity


class TestGuardedMutate:
    """Tests for guarded_mutate()."""

    def test_applies_through_set_state_when_mounted(self, scope, component):
        applied = scope.guarded_mutate(lambda: component.state.update(counter=1))
        assert applied is True
        assert component.state["counter"] == 1
        assert component.rebuilds == 1

    def test_noop_after_teardown(self, scope, component):
        scope.teardown()
        applied = scope.guarded_mutate(lambda: component.state.update(counter=1))
        assert applied is False
        assert component.state["counter"] == 0
        assert component.rebuilds == 0

    def test_noop_when_host_unmounted(self, scope, component):
        component.mounted = False
        assert scope.guarded_mutate(lambda: component.state.update(counter=1)) is False
        assert component.state["counter"] == 0

    def test_host_without_set_state(self, context):
        state = {"value": 0}
        scope = ProtectionScope(object(), context=context, name="plain")
        assert scope.guarded_mutate(lambda: state.update(value=5))
        assert state["value"] == 5


class TestGuardedRender:
    """Tests for guarded_render()."""

    def test_success(self, scope):
        assert scope.guarded_render(lambda: "widget") == "widget"

    def test_failure_with_fallback(self, scope):
        assert scope.guarded_render(failing(), fallback="fallback widget") == "fallback widget"

    def test_failure_without_fallback_returns_placeholder(self, scope, settings):
        result = scope.guarded_render(failing("bad build", ValueError))
        assert isinstance(result, ProtectedPlaceholder)
        assert result.error_type == "ValueError"
        assert str(result) == settings.placeholder_text

    def test_reported_once_per_error_type(self, scope, interceptor):
        scope.guarded_render(failing("first", ValueError))
        scope.guarded_render(failing("second", ValueError))
        scope.guarded_render(failing("third", KeyError))
        assert scope.stats().reported_operations == 2
        assert interceptor.total_intercepted == 2


class TestGuardedPerformance:
    def test_returns_result(self, scope):
        assert scope.guarded_performance(lambda: "done", operation_name="fast") == "done"

    def test_slow_operation_still_returns(self, scope):
        def slow():
            time.sleep(0.02)
            return "slow"

        assert scope.guarded_performance(slow, "slow op", warning_threshold=0.001) == "slow"

    def test_failure_returns_none_and_reports(self, scope, interceptor):
        assert scope.guarded_performance(failing("perf"), "broken") is None
        assert interceptor.faults[0].origin == "FakeComponent.performance"


class TestLifecycleAndStats:
    """Tests for teardown(), stats() and clear_cache()."""

    def test_initial_stats(self, scope):
        stats = scope.stats()
        assert isinstance(stats, ScopeStats)
        assert stats.to_dict() == {
            "cached_values": 0,
            "reported_operations": 0,
            "active_timers": 0,
            "active_subscriptions": 0,
            "mounted": True,
        }

    def test_clear_cache(self, scope):
        scope.guard(lambda: "v", cache_key="k")
        scope.guard(failing(), cache_key="other")
        scope.clear_cache()
        stats = scope.stats()
        assert stats.cached_values == 0
        assert stats.reported_operations == 0
        assert scope.guard(failing(), fallback="fb", cache_key="k") == "fb"

    def test_teardown_is_idempotent(self, scope):
        scope.guard(lambda: "v", cache_key="k")
        scope.teardown()
        scope.teardown()
        stats = scope.stats()
        assert stats.mounted is False
        assert stats.cached_values == 0

    def test_guard_still_contains_after_teardown(self, scope):
        scope.teardown()
        assert scope.guard(failing(), fallback="fb") == "fb"

    def test_context_manager_tears_down(self, context, component):
        with ProtectionScope(component, context=context) as scope:
            assert scope.mounted
        assert not scope.mounted

    def test_repr(self, scope):
        assert repr(scope) == "ProtectionScope(name='FakeComponent', mounted=True)"
