#!/usr/bin/env python3
"""
Demo of anomaly-driven rules.

This example demonstrates:
1. Loading anomaly events from the detector feed
2. Writing a rule against a user-provided anomaly description
3. The side alert sent on every rising edge
4. Anti-flap suppression between competing climate rules

Run with: PYTHONPATH=src python -m examples.anomaly_demo
"""

import logging
from datetime import datetime, UTC

from home_rules import EngineConfig, MockDeviceGateway, build_engine
from home_rules.core.dispatch import InlineDispatchExecutor
from home_rules.rules import AnomalyDescription, InMemoryDescriptionLookup


def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    print("=" * 60)
    print("Anomaly Rules Demo")
    print("=" * 60)

    gateway = MockDeviceGateway()
    gateway.set_current_time(datetime(2025, 1, 15, 20, 0, 0, tzinfo=UTC))

    descriptions = InMemoryDescriptionLookup(
        [
            AnomalyDescription(
                raw_event_name="kitchen_temperature_pointwise",
                description="fridge running warm",
                location="kitchen",
                metric_type="temperature",
                anomaly_type="pointwise",
            )
        ]
    )

    manager = build_engine(
        gateway,
        config=EngineConfig(anomaly_alert_address="+15550199"),
        executor=InlineDispatchExecutor(),
        descriptions=descriptions,
        inventory=[
            {"name": "Kitchen Lights", "type": "light"},
            {"name": "Living Room AC", "type": "ac"},
            {"name": "Owner Phone", "type": "sms"},
        ],
        sensor_names=["Living Room Temperature", "Bedroom Temperature"],
    )

    print("\n1. Loading detector feed...")
    feed = {
        "kitchen_temperature": {
            "pointwise": {"name": "kitchen_temperature_pointwise", "detected": False},
            "trend": {"name": "kitchen_temperature_trend", "detected": False},
        }
    }
    for event in manager.context.events.ingest_anomaly_feed(feed):
        print(f"   ✓ {event.name} (detected={event.detected})")

    print("\n2. Creating rules...")
    manager.create_rule("if fridge running warm detected then kitchen lights on and notify +15550100")
    manager.create_rule("if kitchen temperature trend anomaly detected then notify +15550100 saying check the freezer")
    manager.create_rule("if living room temperature > 26 then living room ac on 22 cool")
    manager.create_rule("if bedroom temperature < 17 then living room ac off")
    for rule in manager.list_rules():
        print(f"   ✓ {rule.id}: {rule.parsed.to_canonical()}")

    print("\n3. Detector reports a pointwise anomaly...")
    feed["kitchen_temperature"]["pointwise"]["detected"] = True
    manager.context.events.ingest_anomaly_feed(feed)

    print("\n4. Competing climate rules...")
    manager.update_event_value("living room temperature", 29)
    gateway.advance(4)
    manager.update_event_value("bedroom temperature", 15)

    print("\n5. Gateway calls:")
    for method, args in gateway.get_calls():
        print(f"   {method}{args}")

    print("\n6. History:")
    for entry in manager.get_history():
        print(f"   {entry.action_key}: {entry.status.value} - {entry.message}")

    print("\n" + "=" * 60)
    print("Demo complete!")
    print("=" * 60)


if __name__ == "__main__":
    main()
