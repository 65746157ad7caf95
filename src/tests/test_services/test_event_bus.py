"""
Tests for EventBus
"""

import logging
from unittest.mock import Mock

import pytest

from services.event_bus import EventBus


class TestEventBusSubscription:
    """Tests for subscribe/unsubscribe"""

    def test_subscribe_and_publish(self):
        bus = EventBus("test")
        received = []

        bus.subscribe(received.append)
        bus.publish({"test": "data"})

        assert received == [{"test": "data"}]

    def test_delivery_in_subscription_order(self):
        bus = EventBus("test")
        order = []

        bus.subscribe(lambda payload: order.append("first"))
        bus.subscribe(lambda payload: order.append("second"))
        bus.subscribe(lambda payload: order.append("third"))
        bus.publish()

        assert order == ["first", "second", "third"]

    def test_duplicate_registration_delivers_twice(self):
        bus = EventBus("test")
        handler = Mock()

        first = bus.subscribe(handler)
        bus.subscribe(handler)
        bus.publish("x")

        assert handler.call_count == 2

        first()
        bus.publish("y")

        assert handler.call_count == 3

    def test_unsubscribe_is_idempotent(self):
        bus = EventBus("test")
        handler = Mock()
        unsubscribe = bus.subscribe(handler)

        unsubscribe()
        unsubscribe()
        bus.publish("x")

        handler.assert_not_called()
        assert len(bus) == 0

    def test_unsubscribe_by_unknown_id(self):
        assert EventBus("test").unsubscribe(12345) is False

    def test_subscribe_requires_callable(self):
        with pytest.raises(TypeError):
            EventBus("test").subscribe("not callable")

    def test_subscriber_added_during_publish_waits_for_next_payload(self):
        bus = EventBus("test")
        late = Mock()

        bus.subscribe(lambda payload: bus.subscribe(late))
        bus.publish("first")

        late.assert_not_called()

        bus.publish("second")

        late.assert_called_once_with("second")

    def test_unsubscribe_during_publish(self):
        bus = EventBus("test")
        handler = Mock()
        handles = {}

        def remover(payload):
            handles["handler"]()

        bus.subscribe(remover)
        handles["handler"] = bus.subscribe(handler)

        bus.publish("first")
        bus.publish("second")

        # Delivery list is fixed when publish starts
        handler.assert_called_once_with("first")


class TestEventBusErrorHandling:
    """Tests for listener error isolation"""

    def test_failing_listener_does_not_stop_delivery(self, caplog):
        bus = EventBus("test")
        healthy = Mock()
        bus.subscribe(Mock(side_effect=ValueError("bad listener")))
        bus.subscribe(healthy)

        with caplog.at_level(logging.ERROR, logger="services.event_bus"):
            delivered = bus.publish("payload")

        healthy.assert_called_once_with("payload")
        assert delivered == 1
        assert "bad listener" in caplog.text

    def test_stats(self):
        bus = EventBus("test")
        bus.subscribe(Mock())
        bus.subscribe(Mock(side_effect=RuntimeError("boom")))

        bus.publish("a")
        bus.publish("b")

        stats = bus.get_stats()
        assert stats["subscriber_count"] == 2
        assert stats["events_published"] == 2
        assert stats["events_delivered"] == 2
        assert stats["errors"] == 2


class TestEventBusHousekeeping:
    def test_has_subscribers_and_clear_all(self):
        bus = EventBus("test")
        assert not bus.has_subscribers()

        bus.subscribe(Mock())
        assert bus.has_subscribers()

        bus.clear_all()
        assert not bus.has_subscribers()
        assert len(bus) == 0
