"""
Evaluation context for the automation engine.

A Context is an immutable snapshot of home state, built once per evaluation
cycle and discarded afterwards. Location and sensor data are time-sensitive,
so contexts are never cached across cycles.

The ContextProvider is the host's side of the seam: it answers the
questions the engine needs (time, position, sensors, devices, weather,
occupancy) and the engine assembles them into a Context.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, UTC
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

from home_rules.core.geo import Coordinate

_EMPTY: Mapping[str, Any] = MappingProxyType({})


@dataclass(frozen=True)
class Context:
    """
    Snapshot of the world for one evaluation cycle.

    Attributes:
        now: Current wall-clock time
        home: Fixed home coordinate
        location: Current user location (None if unknown)
        previous_location: Location at the previous update (None if unknown)
        sensor_values: device_id -> characteristic name -> value
        device_states: device_id -> on/off
        weather: Current weather description (None if unknown)
        occupied: Whether anyone is home
    """

    now: datetime
    home: Coordinate
    location: Optional[Coordinate] = None
    previous_location: Optional[Coordinate] = None
    sensor_values: Mapping[str, Mapping[str, Any]] = field(default_factory=lambda: _EMPTY)
    device_states: Mapping[str, bool] = field(default_factory=lambda: _EMPTY)
    weather: Optional[str] = None
    occupied: bool = False

    @classmethod
    def build(
        cls,
        *,
        now: Optional[datetime] = None,
        home: Coordinate,
        location: Optional[Coordinate] = None,
        previous_location: Optional[Coordinate] = None,
        sensor_values: Optional[Mapping[str, Mapping[str, Any]]] = None,
        device_states: Optional[Mapping[str, bool]] = None,
        weather: Optional[str] = None,
        occupied: bool = False,
    ) -> "Context":
        """
        Build a context, copying the mappings into read-only views.

        The caller's dicts may keep changing after this returns; the
        context does not see those changes.
        """
        sensors = {
            device_id: MappingProxyType(dict(values))
            for device_id, values in (sensor_values or {}).items()
        }
        return cls(
            now=now or datetime.now(UTC),
            home=home,
            location=location,
            previous_location=previous_location,
            sensor_values=MappingProxyType(sensors),
            device_states=MappingProxyType(dict(device_states or {})),
            weather=weather,
            occupied=occupied,
        )


class ContextProvider(ABC):
    """
    Abstract interface for reading home state.

    The host platform provides a concrete implementation backed by its
    device layer, location services and weather integration.
    """

    @abstractmethod
    def get_current_time(self) -> datetime:
        """Get current time (timezone-aware)."""
        pass

    @abstractmethod
    def get_home_coordinate(self) -> Coordinate:
        """Get the fixed home coordinate."""
        pass

    @abstractmethod
    def get_locations(self) -> tuple[Optional[Coordinate], Optional[Coordinate]]:
        """Get (current, previous) user locations."""
        pass

    @abstractmethod
    def get_sensor_values(self) -> Mapping[str, Mapping[str, Any]]:
        """Get a snapshot of device characteristic values."""
        pass

    @abstractmethod
    def get_device_states(self) -> Mapping[str, bool]:
        """Get a snapshot of device on/off states."""
        pass

    def get_weather(self) -> Optional[str]:
        """Get the current weather description, if known."""
        return None

    def is_occupied(self) -> bool:
        """Whether anyone is home."""
        return False

    def build_context(self) -> Context:
        """Assemble a fresh Context from the provider's current answers."""
        location, previous = self.get_locations()
        return Context.build(
            now=self.get_current_time(),
            home=self.get_home_coordinate(),
            location=location,
            previous_location=previous,
            sensor_values=self.get_sensor_values(),
            device_states=self.get_device_states(),
            weather=self.get_weather(),
            occupied=self.is_occupied(),
        )


class StaticContextProvider(ContextProvider):
    """
    Settable provider for testing and demos.

    Moving the user with set_location() shifts the old position into
    previous_location, the way a location service reports updates.
    """

    def __init__(self, home: Coordinate) -> None:
        self._home = home
        self._current_time: Optional[datetime] = None
        self._location: Optional[Coordinate] = None
        self._previous: Optional[Coordinate] = None
        self._sensors: Dict[str, Dict[str, Any]] = {}
        self._devices: Dict[str, bool] = {}
        self._weather: Optional[str] = None
        self._occupied = False

    def set_current_time(self, dt: datetime) -> None:
        self._current_time = dt

    def set_location(self, location: Optional[Coordinate]) -> None:
        self._previous = self._location
        self._location = location

    def set_sensor_value(self, device_id: str, characteristic: str, value: Any) -> None:
        self._sensors.setdefault(device_id, {})[characteristic] = value

    def set_device_state(self, device_id: str, on: bool) -> None:
        self._devices[device_id] = on

    def set_weather(self, weather: Optional[str]) -> None:
        self._weather = weather

    def set_occupied(self, occupied: bool) -> None:
        self._occupied = occupied

    # ContextProvider implementation

    def get_current_time(self) -> datetime:
        if self._current_time:
            return self._current_time
        return datetime.now(UTC)

    def get_home_coordinate(self) -> Coordinate:
        return self._home

    def get_locations(self) -> tuple[Optional[Coordinate], Optional[Coordinate]]:
        return self._location, self._previous

    def get_sensor_values(self) -> Mapping[str, Mapping[str, Any]]:
        return self._sensors

    def get_device_states(self) -> Mapping[str, bool]:
        return self._devices

    def get_weather(self) -> Optional[str]:
        return self._weather

    def is_occupied(self) -> bool:
        return self._occupied
