"""
End-to-end scenarios through build_engine().

These mirror how a host application drives the engine: load devices and
sensors, create rules, push readings, and watch the gateway.
"""

from datetime import datetime, UTC

import pytest

from home_rules import EngineConfig, build_engine
from home_rules.actions import DispatchStatus, MockDeviceGateway
from home_rules.core.dispatch import InlineDispatchExecutor, ThreadedDispatchExecutor

T0 = datetime(2025, 1, 15, 12, 0, 0, tzinfo=UTC)

INVENTORY = [
    {"name": "Living Room AC", "type": "ac"},
    {"name": "Bedroom AC", "type": "ac"},
    {"name": "Owner Phone", "type": "sms"},
]


@pytest.fixture
def gateway():
    gw = MockDeviceGateway()
    gw.set_current_time(T0)
    return gw


@pytest.fixture
def manager(gateway):
    return build_engine(
        gateway,
        executor=InlineDispatchExecutor(),
        inventory=INVENTORY,
        sensor_names=["Living Room Temperature", "Bedroom Temperature"],
    )


class TestCoolingScenario:
    """A single threshold rule driving one AC unit."""

    def test_threshold_and_idempotency(self, manager, gateway):
        manager.create_rule("if living room temperature > 25 then living room ac on 21 cool")

        manager.update_event_value("living room temperature", 20)
        assert gateway.get_calls() == []

        manager.update_event_value("living room temperature", 30)
        assert gateway.get_calls() == [
            ("set_climate_state", ("Living Room", {"on": True, "temperature": 21, "mode": "cool"}))
        ]

        gateway.advance(60)
        manager.update_event_value("living room temperature", 31)
        assert len(gateway.get_calls()) == 1
        assert manager.get_history(limit=1)[0].status == DispatchStatus.NO_OP

    def test_deleted_rule_stops_firing(self, manager, gateway):
        rule_id = manager.create_rule("if living room temperature > 25 then living room ac on")
        manager.delete_rule(rule_id)

        manager.update_event_value("living room temperature", 30)

        assert gateway.get_calls() == []

    def test_competing_rules_do_not_flap(self, manager, gateway):
        """Two rules pulling the same unit in opposite directions."""
        manager.create_rule("if living room temperature > 25 then living room ac on")
        manager.create_rule("if bedroom temperature < 18 then living room ac off")

        manager.update_event_value("living room temperature", 30)
        gateway.advance(3)
        manager.update_event_value("bedroom temperature", 15)

        assert gateway.get_calls() == [("set_climate_state", ("Living Room", {"on": True}))]
        assert manager.get_history(limit=1)[0].status == DispatchStatus.SUPPRESSED

        gateway.advance(10)
        manager.update_event_value("bedroom temperature", 14)
        assert gateway.get_calls()[-1] == ("set_climate_state", ("Living Room", {"on": False}))

    def test_chained_action(self, manager, gateway):
        """One action text driving an AC and a notification."""
        manager.create_rule(
            "if living room temperature >= 30 then living room ac on 20 and send sms to +15550100"
        )

        manager.update_event_value("living room temperature", 32)

        assert sorted(c[0] for c in gateway.get_calls()) == ["send_notification", "set_climate_state"]
        assert ("send_notification", ("+15550100", "ALERT: living room temperature >= 30")) in gateway.get_calls()


class TestChainedLocations:
    """One action text addressing the same kind of device in two rooms."""

    def test_each_room_gets_its_own_command(self, gateway):
        manager = build_engine(
            gateway,
            executor=InlineDispatchExecutor(),
            inventory=[
                {"name": "Living Room Lights", "type": "light"},
                {"name": "Bedroom Lights", "type": "light"},
            ],
            sensor_names=["Living Room Temperature"],
        )
        manager.create_rule(
            "if living room temperature > 25 then living room lights on and bedroom lights off"
        )

        manager.update_event_value("living room temperature", 30)

        assert sorted(gateway.get_calls()) == [
            ("set_light_state", ("Bedroom", False)),
            ("set_light_state", ("Living Room", True)),
        ]

    def test_climate_units_without_arbitration(self, gateway):
        manager = build_engine(
            gateway,
            config=EngineConfig(conflict_kinds=()),
            executor=InlineDispatchExecutor(),
            inventory=INVENTORY,
            sensor_names=["Living Room Temperature"],
        )
        manager.create_rule(
            "if living room temperature > 25 then living room ac on 21 and bedroom ac off"
        )

        manager.update_event_value("living room temperature", 30)

        assert sorted(gateway.get_calls()) == [
            ("set_climate_state", ("Bedroom", {"on": False})),
            ("set_climate_state", ("Living Room", {"on": True, "temperature": 21})),
        ]


class TestAnomalyScenario:
    """Anomaly feed plus the side alert path."""

    def test_alert_address_notified_on_rising_edge(self, gateway):
        manager = build_engine(
            gateway,
            config=EngineConfig(anomaly_alert_address="+15550199"),
            executor=InlineDispatchExecutor(),
        )
        feed = {
            "kitchen_humidity": {
                "trend": {"name": "kitchen_humidity_trend", "detected": False},
            }
        }
        manager.context.events.ingest_anomaly_feed(feed, now=T0)
        assert gateway.get_calls() == []

        feed["kitchen_humidity"]["trend"]["detected"] = True
        manager.context.events.ingest_anomaly_feed(feed, now=T0)
        manager.context.events.ingest_anomaly_feed(feed, now=T0)

        assert gateway.get_calls() == [
            ("send_notification", ("+15550199", "ALERT: kitchen_humidity_trend detected"))
        ]


class TestThreadedDispatch:
    """The default executor runs dispatches off the evaluating thread."""

    def test_dispatch_completes(self, gateway):
        executor = ThreadedDispatchExecutor(max_workers=2)
        manager = build_engine(
            gateway,
            executor=executor,
            inventory=INVENTORY,
            sensor_names=["Living Room Temperature"],
        )
        manager.create_rule("if living room temperature > 25 then living room ac on")

        try:
            [evaluation] = manager.update_event_value("living room temperature", 30)
            result = evaluation.dispatches[0].result(timeout=5)
        finally:
            manager.context.shutdown()

        assert result.status == DispatchStatus.DISPATCHED
        assert gateway.get_calls() == [("set_climate_state", ("Living Room", {"on": True}))]

    def test_failure_stays_in_future(self, gateway):
        gateway.set_fail("set_climate_state", ConnectionError("unreachable"))
        manager = build_engine(
            gateway,
            executor=ThreadedDispatchExecutor(),
            inventory=INVENTORY,
            sensor_names=["Living Room Temperature"],
        )
        manager.create_rule("if living room temperature > 25 then living room ac on")

        try:
            [evaluation] = manager.update_event_value("living room temperature", 30)
            result = evaluation.dispatches[0].result(timeout=5)
        finally:
            manager.context.shutdown()

        assert result.status == DispatchStatus.FAILED
        assert result.error == "Gateway call failed: unreachable"
