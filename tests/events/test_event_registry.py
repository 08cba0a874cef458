"""Tests for the EventRegistry."""

from datetime import datetime, UTC

import pytest

from home_rules.events import (
    AnomalyEvent,
    EventKind,
    EventRegistry,
    MotionEvent,
    TemperatureEvent,
    parse_sensor_name,
)

T0 = datetime(2025, 1, 15, 12, 0, 0, tzinfo=UTC)

FEED = {
    "living_room_temperature": {
        "pointwise": {"name": "living_room_temperature_pointwise", "detected": False},
        "trend": {"name": "living_room_temperature_trend", "detected": True},
    },
    "kitchen_humidity": {
        "seasonality": {"name": "kitchen_humidity_seasonality", "detected": False},
    },
}


@pytest.fixture
def registry():
    """Create an empty event registry."""
    return EventRegistry()


class TestRegistration:
    """Tests for register/get/unregister."""

    def test_duplicate_returns_existing(self, registry):
        """Test re-registering a name returns the first instance."""
        first = registry.register(TemperatureEvent("hall temperature", "hall"))
        second = registry.register(TemperatureEvent("hall temperature", "hall"))

        assert second is first
        assert len(registry) == 1

    def test_get_event_case_insensitive(self, registry):
        """Test lookup ignores case."""
        event = registry.register(TemperatureEvent("Living Room Temperature", "Living Room"))

        assert registry.get_event("Living Room Temperature") is event
        assert registry.get_event("living room temperature") is event
        assert registry.get("living room temperature") is None
        assert registry.get_event("bedroom temperature") is None

    def test_get_by_type_and_location(self, registry):
        """Test type and location filters."""
        temp = registry.register(TemperatureEvent("hall temperature", "Hall"))
        motion = registry.register(MotionEvent("hall motion", "Hall"))
        registry.register(TemperatureEvent("attic temperature", "Attic"))

        assert registry.get_by_type("temperature")[0] is temp
        assert len(registry.get_by_type("TEMPERATURE")) == 2
        assert registry.get_by_location("hall") == [temp, motion]

    def test_unregister_and_clear(self, registry):
        """Test removal."""
        registry.register(TemperatureEvent("a"))
        registry.register(TemperatureEvent("b"))

        assert registry.unregister("a").name == "a"
        assert registry.unregister("a") is None
        assert "a" not in registry
        assert "b" in registry

        registry.clear()
        assert registry.get_all() == []


class TestSensorNames:
    """Tests for creating events from sensor names."""

    def test_parse_sensor_name(self):
        """Test splitting names into location and kind."""
        assert parse_sensor_name("Living Room Temperature") == ("Living Room", EventKind.TEMPERATURE)
        assert parse_sensor_name("Kitchen Humidity") == ("Kitchen", EventKind.HUMIDITY)
        assert parse_sensor_name("Garage") is None
        assert parse_sensor_name("Pantry Pressure") is None
        assert parse_sensor_name("Kitchen Anomaly") is None

    def test_ingest_sensor_names(self, registry):
        """Test unparseable names are skipped."""
        events = registry.ingest_sensor_names(
            ["Living Room Temperature", "Kitchen Humidity", "Hall Motion", "Garage", "Pantry Pressure"]
        )

        assert [e.name for e in events] == [
            "Living Room Temperature",
            "Kitchen Humidity",
            "Hall Motion",
        ]
        assert isinstance(registry.get("Hall Motion"), MotionEvent)
        assert registry.get("Living Room Temperature").location == "Living Room"

    def test_ingest_twice_keeps_instances(self, registry):
        """Test ingesting the same names again reuses the events."""
        first = registry.ingest_sensor_names(["Hall Temperature"])
        second = registry.ingest_sensor_names(["Hall Temperature"])
        assert first[0] is second[0]


class TestAnomalyFeed:
    """Tests for the anomaly detector feed."""

    def test_creates_events(self, registry):
        """Test the feed creates one anomaly event per entry."""
        events = registry.ingest_anomaly_feed(FEED, now=T0)

        assert len(events) == 3
        trend = registry.get("living_room_temperature_trend")
        assert isinstance(trend, AnomalyEvent)
        assert trend.location == "living room"
        assert trend.metric_type == "temperature"
        assert trend.anomaly_type == "trend"
        assert trend.detected is True
        assert registry.get("living_room_temperature_pointwise").detected is False

    def test_updates_existing_and_fires_edge(self, registry):
        """Test a second feed updates state and fires the edge handler."""
        edges = []
        registry.set_edge_handler(lambda event, state: edges.append(event.name))
        registry.ingest_anomaly_feed(FEED, now=T0)
        assert edges == ["living_room_temperature_trend"]

        update = {
            "living_room_temperature": {
                "pointwise": {"name": "living_room_temperature_pointwise", "detected": True},
                "trend": {"name": "living_room_temperature_trend", "detected": True},
            }
        }
        registry.ingest_anomaly_feed(update, now=T0)

        assert len(registry) == 3
        assert edges == ["living_room_temperature_trend", "living_room_temperature_pointwise"]

    def test_skips_entries_without_name(self, registry):
        """Test malformed feed entries are skipped."""
        events = registry.ingest_anomaly_feed({"hall_temperature": {"trend": {"detected": True}}})
        assert events == []
        assert len(registry) == 0

    def test_edge_handler_attached_to_existing_events(self, registry):
        """Test set_edge_handler reaches events registered earlier."""
        event = registry.register(AnomalyEvent("fridge anomaly", "kitchen"))
        edges = []
        registry.set_edge_handler(lambda e, state: edges.append(e.name))

        event.update_anomaly_state(True, now=T0)
        assert edges == ["fridge anomaly"]

    def test_replacing_edge_handler(self, registry):
        """Test a new handler replaces the old one."""
        old, new = [], []
        registry.set_edge_handler(lambda e, s: old.append(e.name))
        event = registry.register(AnomalyEvent("fridge anomaly", "kitchen"))
        registry.set_edge_handler(lambda e, s: new.append(e.name))

        event.update_anomaly_state(True, now=T0)

        assert old == []
        assert new == ["fridge anomaly"]


class TestResolve:
    """Tests for resolving event names written in rules."""

    def test_exact_and_case_insensitive(self, registry):
        """Test exact names resolve first."""
        event = registry.register(TemperatureEvent("Hall Temperature", "Hall"))
        assert registry.resolve("hall temperature") is event

    def test_partial_anomaly_name(self, registry):
        """Test loosely written anomaly names."""
        registry.ingest_anomaly_feed(FEED, now=T0)

        pointwise = registry.resolve("living room temperature pointwise anomaly")
        trend = registry.resolve("Living Room Temperature Trend Anomaly")
        seasonal = registry.resolve("kitchen humidity seasonality")

        assert pointwise.name == "living_room_temperature_pointwise"
        assert trend.name == "living_room_temperature_trend"
        assert seasonal.name == "kitchen_humidity_seasonality"

    def test_partial_match_needs_anomaly_words(self, registry):
        """Test non-anomaly names never partially match."""
        registry.ingest_anomaly_feed(FEED, now=T0)
        assert registry.resolve("living room temperature") is None

    def test_partial_match_respects_location(self, registry):
        """Test a different location does not match."""
        registry.ingest_anomaly_feed(FEED, now=T0)
        assert registry.resolve("bedroom temperature pointwise anomaly") is None
