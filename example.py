#!/usr/bin/env python3
"""
Quick example demonstrating home-rules basic usage.

Run with: PYTHONPATH=src python3 example.py
"""

import logging
from datetime import datetime, UTC

from home_rules.core.bus import EventBus, Event, EventFilter
from home_rules.core.geo import Coordinate
from home_rules.automation import (
    Automation,
    AutomationDriver,
    AutomationRegistry,
    DelayAction,
    ManualScheduler,
    RecordingActuatorAdapter,
    SetDeviceAction,
    StaticContextProvider,
    compile_expression,
    good_morning,
)

logging.basicConfig(level=logging.INFO, format="%(name)s: %(message)s")

print("=" * 60)
print("home-rules Example")
print("=" * 60)

# 1. Engine components
print("\n1. Creating engine components...")
bus = EventBus()
actuator = RecordingActuatorAdapter()
scheduler = ManualScheduler()
registry = AutomationRegistry(actuator, scheduler, bus=bus)
print("   ✓ Registry, EventBus and recording actuator created")

bus.subscribe(
    lambda e: print(f"   → {e.type}: {e.payload}"),
    EventFilter(event_type="automation.executed"),
)

# 2. Add automations
print("\n2. Adding automations...")
morning = good_morning(enabled=True)
registry.create(morning)
print(f"   ✓ Created: {morning.name} (id={morning.id})")

hallway = Automation(
    id="hallway-light",
    name="Hallway Light",
    conditions=compile_expression("motion = true AND lux < 30", "hallway-sensor"),
    actions=[
        SetDeviceAction("hallway-light", True),
        DelayAction(120),
        SetDeviceAction("hallway-light", False),
    ],
)
registry.create(hallway)
print(f"   ✓ Created: {hallway.name} (id={hallway.id})")

# 3. Wire a context provider and attach the driver to host events
print("\n3. Attaching driver...")
home = Coordinate(37.7749, -122.4194)
provider = StaticContextProvider(home)
provider.set_current_time(datetime(2025, 1, 15, 7, 30, tzinfo=UTC))
provider.set_occupied(True)
provider.set_sensor_value("hallway-sensor", "motion", True)
provider.set_sensor_value("hallway-sensor", "lux", 12)

driver = AutomationDriver(registry, provider)
driver.attach(bus)
print("   ✓ Driver listening for sensor and timer events")

# 4. Publish a host event
print("\n4. Publishing sensor event...")
bus.publish(Event(type="sensor.changed", source="example", device_id="hallway-sensor"))
print(f"   ✓ Requests so far: {actuator.get_requests()}")
print(f"   ✓ Hallway light running: {registry.is_running('hallway-light')}")

# 5. Let the delay elapse
print("\n5. Advancing clock by 120s...")
scheduler.advance(120)
print(f"   ✓ Requests now: {actuator.get_requests()}")

# 6. Execution history
print("\n6. Execution history...")
for entry in registry.history():
    print(
        f"   ✓ {entry.automation_name}: success={entry.success}, "
        f"actions={entry.actions_executed}"
    )

print("\n" + "=" * 60)
print("Example complete!")
print("=" * 60)
