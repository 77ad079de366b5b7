"""
home-rules: a host-agnostic home automation rule engine.

This library decides when user-defined automations should fire and runs
their actions:
- Condition trees evaluated against per-cycle home snapshots
- Ordered action execution with non-blocking delays
- Single-flight automation registry with persistence
- Bounded execution log for diagnostics
"""

from home_rules.core.bus import Event, EventBus, EventFilter
from home_rules.core.config import EngineConfig
from home_rules.core.geo import Coordinate
from home_rules.automation import (
    AutomationDriver,
    AutomationRegistry,
    Context,
)

__version__ = "0.1.0"

__all__ = [
    "Event",
    "EventBus",
    "EventFilter",
    "EngineConfig",
    "Coordinate",
    "AutomationDriver",
    "AutomationRegistry",
    "Context",
]
