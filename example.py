#!/usr/bin/env python3
"""
Quick example demonstrating home-rules basic usage.

Run with: PYTHONPATH=src python3 example.py
"""

import logging
from datetime import datetime, UTC

from home_rules import MockDeviceGateway, build_engine
from home_rules.core.dispatch import InlineDispatchExecutor

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

print("=" * 60)
print("home-rules Example")
print("=" * 60)

# 1. Engine with a mock gateway
print("\n1. Building the engine...")
gateway = MockDeviceGateway()
gateway.set_current_time(datetime(2025, 1, 15, 14, 0, 0, tzinfo=UTC))
manager = build_engine(
    gateway,
    executor=InlineDispatchExecutor(),
    inventory=[
        {"name": "Living Room AC", "type": "ac"},
        {"name": "Hall Lights", "type": "light"},
        {"name": "Owner Phone", "type": "sms"},
    ],
    sensor_names=["Living Room Temperature", "Hall Motion"],
)
print(f"   ✓ Events: {[e.name for e in manager.list_events()]}")
print(f"   ✓ Actions: {[a.key for a in manager.list_actions()]}")

# 2. Rules
print("\n2. Creating rules...")
cooling = manager.create_rule("if living room temperature > 25 then living room ac on 21 cool")
lights = manager.create_rule("if hall motion detected then hall lights on")
print(f"   ✓ {cooling}: {manager.get_rule(cooling).parsed.to_canonical()}")
print(f"   ✓ {lights}: {manager.get_rule(lights).parsed.to_canonical()}")

# 3. Readings
print("\n3. Pushing sensor readings...")
for value in (22, 27, 28):
    manager.update_event_value("living room temperature", value)
    print(f"   ✓ living room temperature = {value}")
manager.update_event_value("hall motion", True)
print("   ✓ hall motion = True")

# 4. What reached the devices
print("\n4. Gateway calls...")
for method, args in gateway.get_calls():
    print(f"   ✓ {method}{args}")

# 5. Dispatch history
print("\n5. Dispatch history (newest first)...")
for entry in manager.get_history():
    print(f"   ✓ {entry.action_key}: {entry.status.value} ({entry.message})")

print("\n" + "=" * 60)
print("Example complete!")
print("=" * 60)
