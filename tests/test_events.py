"""
Tests for the ComponentDB event bus.
"""

from componentdb.runtime.events import EventBus, RegistryEventType


class TestEventBus:
    """Tests for subscribing and emitting."""

    def test_subscribe_by_kind(self):
        """Should deliver only the subscribed kind."""
        bus = EventBus()
        received = []
        bus.subscribe(RegistryEventType.REGISTERED, received.append)

        bus.emit(RegistryEventType.REGISTERED, component_id="card-1")
        bus.emit(RegistryEventType.UPDATED, component_id="card-1")

        assert len(received) == 1
        assert received[0].event_type == RegistryEventType.REGISTERED
        assert received[0].component_id == "card-1"

    def test_subscribe_all(self):
        """Should deliver every kind to wildcard subscribers."""
        bus = EventBus()
        received = []
        bus.subscribe_all(received.append)

        bus.emit(RegistryEventType.REGISTERED, component_id="a")
        bus.emit(RegistryEventType.ERROR, component_ids=["a", "b"], error="boom")

        assert [e.event_type for e in received] == [
            RegistryEventType.REGISTERED,
            RegistryEventType.ERROR,
        ]
        assert received[1].component_ids == ["a", "b"]
        assert received[1].payload == {"error": "boom"}

    def test_subscribe_by_string_kind(self):
        """Should accept the kind's string value."""
        bus = EventBus()
        received = []
        sub = bus.subscribe("version_created", received.append)

        bus.emit(RegistryEventType.VERSION_CREATED, component_id="a", version_id="v1")

        assert sub.event_type == RegistryEventType.VERSION_CREATED
        assert received[0].payload["version_id"] == "v1"

    def test_unsubscribe(self):
        """Should stop delivery after unsubscribing."""
        bus = EventBus()
        received = []
        sub = bus.subscribe(RegistryEventType.UPDATED, received.append)

        assert bus.unsubscribe(sub.id) is True
        assert bus.unsubscribe(sub.id) is False

        bus.emit(RegistryEventType.UPDATED, component_id="a")
        assert received == []
        assert bus.subscription_count() == 0

    def test_failing_subscriber_isolated(self):
        """Should keep delivering when a subscriber raises."""
        bus = EventBus()
        received = []

        def broken(event):
            raise RuntimeError("subscriber bug")

        bus.subscribe(RegistryEventType.UPDATED, broken)
        bus.subscribe(RegistryEventType.UPDATED, received.append)

        delivered = bus.emit(RegistryEventType.UPDATED, component_id="a")

        assert delivered == 1
        assert len(received) == 1

    def test_delivery_tracking(self):
        """Should count deliveries per subscription."""
        bus = EventBus()
        sub = bus.subscribe_all(lambda e: None)

        bus.emit(RegistryEventType.REGISTERED)
        bus.emit(RegistryEventType.UNREGISTERED)

        tracked = bus.get_subscription(sub.id)
        assert tracked.events_delivered == 2
        assert tracked.last_event_at is not None

    def test_unsubscribe_during_delivery(self):
        """Should allow a callback to unsubscribe itself."""
        bus = EventBus()
        calls = []

        def once(event):
            calls.append(event)
            bus.unsubscribe(sub.id)

        sub = bus.subscribe(RegistryEventType.UPDATED, once)
        bus.emit(RegistryEventType.UPDATED)
        bus.emit(RegistryEventType.UPDATED)

        assert len(calls) == 1

    def test_clear(self):
        """Should drop every subscription."""
        bus = EventBus()
        bus.subscribe(RegistryEventType.UPDATED, lambda e: None)
        bus.subscribe_all(lambda e: None)

        bus.clear()

        assert bus.subscription_count() == 0
        assert bus.emit(RegistryEventType.UPDATED) == 0
