"""Tests for the ActionRegistry."""

from datetime import datetime, UTC

import pytest

from home_rules.actions import (
    ClimateAction,
    DispatchStatus,
    LightAction,
    MockDeviceGateway,
    NotificationAction,
    location_from_name,
)
from home_rules.core.context import EngineContext
from home_rules.core.dispatch import InlineDispatchExecutor
from home_rules.core.errors import ParseError

T0 = datetime(2025, 1, 15, 12, 0, 0, tzinfo=UTC)

INVENTORY = [
    {"name": "Living Room AC", "type": "ac"},
    {"name": "Bedroom Air Conditioner", "type": "climate"},
    {"name": "Kitchen Lights", "type": "lights"},
    {"name": "Owner Phone", "type": "sms"},
    {"name": "Garage Door", "type": "door"},
    {"type": "ac"},
]


@pytest.fixture
def gateway():
    gw = MockDeviceGateway()
    gw.set_current_time(T0)
    return gw


@pytest.fixture
def context(gateway):
    return EngineContext(gateway=gateway, executor=InlineDispatchExecutor())


@pytest.fixture
def registry(context):
    """Action registry loaded with a small inventory."""
    context.actions.load_inventory(INVENTORY)
    return context.actions


class TestInventory:
    """Tests for creating Actions from device records."""

    def test_location_from_name(self):
        assert location_from_name("Living Room AC") == "Living Room"
        assert location_from_name("Bedroom Air Conditioner") == "Bedroom"
        assert location_from_name("Kitchen Light") == "Kitchen"
        assert location_from_name("Hallway") == "Hallway"

    def test_load_inventory(self, registry):
        """Test bad records are skipped."""
        assert len(registry) == 4
        assert isinstance(registry.get("climate_living_room_power+temperature+mode"), ClimateAction)
        assert isinstance(registry.get("climate_bedroom_power+temperature+mode"), ClimateAction)
        assert isinstance(registry.get("light_kitchen_power"), LightAction)
        assert isinstance(registry.get("notification_any_notify"), NotificationAction)

    def test_unknown_type(self, context):
        with pytest.raises(ValueError, match="Unknown action type"):
            context.actions.create("door", "Garage Door")

    def test_duplicate_returns_existing(self, registry):
        """Test one Action per physical actuator."""
        again = registry.create("ac", "living room ac", location="Living Room")
        assert again is registry.get("climate_living_room_power+temperature+mode")
        assert len(registry) == 4

    def test_explicit_location(self, context):
        action = context.actions.create("light", "Ceiling", location="Study")
        assert action.key == "light_study_power"

    def test_type_and_location_lookup(self, registry):
        assert len(registry.get_by_type("climate")) == 2
        assert [a.name for a in registry.get_by_location("kitchen")] == ["Kitchen Lights"]


class TestRouting:
    """Tests for routing action text."""

    def test_find_for(self, registry):
        """Test chained text reaches every matching Action."""
        actions = registry.find_for("living room ac on and notify +15550100")
        assert [a.key for a in actions] == [
            "climate_living_room_power+temperature+mode",
            "notification_any_notify",
        ]
        assert registry.find_for("open the garage") == []

    def test_prepare_commands(self, registry):
        commands = registry.prepare_commands("bedroom ac on 22 heat")
        assert list(commands) == ["climate_bedroom_power+temperature+mode"]
        assert commands["climate_bedroom_power+temperature+mode"].params == {"temperature": 22, "mode": "heat"}

    def test_prepare_commands_rejects(self, registry):
        """Test a matching Action that rejects the text raises."""
        with pytest.raises(ParseError):
            registry.prepare_commands("bedroom ac on 22 blast")


class TestState:
    """Tests for exporting dispatched-state caches."""

    def test_dump_and_restore(self, registry, context, gateway):
        ac = registry.get("climate_living_room_power+temperature+mode")
        ac.dispatch({"on": True, "temperature": 21})
        state = registry.dump_state()

        ac.last_dispatched_state = {}
        registry.restore_state(state)

        assert state["version"] == 1
        assert ac.last_dispatched_state == {"on": True, "temperature": 21}
        assert ac.dispatch({"on": True, "temperature": 21}).status == DispatchStatus.NO_OP

    def test_restore_ignores_unknown(self, registry):
        registry.restore_state({"version": 1, "actions": {"climate_attic_power": {}}})
        registry.restore_state({"version": 99, "actions": {}})
        assert registry.get("climate_attic_power") is None
