"""
Core components of the home-rules engine.

This package contains:
- bus: Event Bus implementation
- geo: Coordinates and great-circle distances
- config: Engine configuration
"""

from home_rules.core.bus import Event, EventBus, EventFilter
from home_rules.core.config import EngineConfig, config_schema, default_config
from home_rules.core.geo import Coordinate, distance_meters

__all__ = [
    "Event",
    "EventBus",
    "EventFilter",
    "EngineConfig",
    "config_schema",
    "default_config",
    "Coordinate",
    "distance_meters",
]
