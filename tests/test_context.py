"""Tests for the active-context registry and listener registry."""

import pytest

from scoutsync.errors import NoActiveEventError
from scoutsync.models import Scope
from scoutsync.store import LocalStore
from scoutsync.sync import ActiveContext, ActiveContextRegistry, Listeners


@pytest.fixture
def store():
    """Create an in-memory LocalStore for testing."""
    store = LocalStore(":memory:")
    store.connect()
    yield store
    store.close()


@pytest.fixture
def registry(store):
    return ActiveContextRegistry(store)


class TestActiveContextRegistry:
    """Tests for reading and writing the active context."""

    def test_starts_unset(self, registry):
        assert registry.get_active() == ActiveContext()

    def test_set_active_persists(self, store, registry):
        """Test that a write survives a fresh registry over the same store."""
        registry.set_active(organization_id=3, event_code="2025miket")

        assert ActiveContextRegistry(store).get_active() == ActiveContext(3, "2025miket")

    def test_omitted_argument_keeps_value(self, registry):
        registry.set_active(organization_id=3, event_code="2025miket")

        context = registry.set_active(event_code="2025mimil")

        assert context == ActiveContext(3, "2025mimil")

    def test_none_clears_value(self, registry):
        registry.set_active(organization_id=3, event_code="2025miket")

        assert registry.set_active(event_code=None) == ActiveContext(3, None)

    def test_values_coerced(self, registry):
        context = registry.set_active(organization_id="7", event_code=" 2025miket ")

        assert context == ActiveContext(7, "2025miket")

    def test_cached_until_invalidated(self, store, registry):
        registry.get_active()
        store.save_active_context(9, "2024casj")

        assert registry.get_active() == ActiveContext()

        registry.invalidate()
        assert registry.get_active() == ActiveContext(9, "2024casj")

    def test_clear(self, store, registry):
        registry.set_active(organization_id=3, event_code="2025miket")

        registry.clear()

        assert registry.get_active() == ActiveContext()
        assert store.load_active_context() == (None, None)

    def test_require_event(self, registry):
        with pytest.raises(NoActiveEventError):
            registry.require_event()

        registry.set_active(event_code="2025miket")
        assert registry.require_event() == "2025miket"

    def test_require_scope(self, registry):
        registry.set_active(organization_id=3, event_code="2025miket")

        assert registry.require_scope() == Scope(event_code="2025miket", organization_id=3)


class TestNotifications:
    """Tests for change notification."""

    def test_listeners_notified_in_order(self, registry):
        calls = []
        registry.subscribe(lambda context: calls.append(("first", context.event_code)))
        registry.subscribe(lambda context: calls.append(("second", context.event_code)))

        registry.set_active(event_code="2025miket")

        assert calls == [("first", "2025miket"), ("second", "2025miket")]

    def test_unchanged_write_does_not_notify(self, registry):
        calls = []
        registry.set_active(event_code="2025miket")
        registry.subscribe(calls.append)

        registry.set_active(event_code="2025miket")

        assert calls == []

    def test_unsubscribe(self, registry):
        calls = []
        unsubscribe = registry.subscribe(calls.append)
        unsubscribe()

        registry.set_active(event_code="2025miket")

        assert calls == []

    def test_failing_listener_does_not_stop_delivery(self, registry, caplog):
        """Test that a raising listener is logged and later ones still run."""
        calls = []

        def broken(context):
            raise RuntimeError("listener bug")

        registry.subscribe(broken)
        registry.subscribe(calls.append)

        registry.set_active(event_code="2025miket")

        assert len(calls) == 1
        assert "listener error" in caplog.text


class TestListeners:
    def test_subscribe_is_idempotent(self):
        listeners = Listeners("test")
        callback = lambda value: None

        listeners.subscribe(callback)
        listeners.subscribe(callback)

        assert len(listeners) == 1
