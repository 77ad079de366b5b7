"""
Data models for the automation engine.

Defines automations, condition trees, actions, and execution log entries.
Models are data only; the evaluator and executor interpret them.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, UTC
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)


# =============================================================================
# Enums
# =============================================================================


class LogicOperator(Enum):
    """How a condition group combines its children."""

    AND = "AND"
    OR = "OR"
    NOT = "NOT"  # Not all children true


class ConditionType(Enum):
    """Types of leaf conditions."""

    TIME_WINDOW = "time_window"
    GEOFENCE = "geofence"
    SENSOR_THRESHOLD = "sensor_threshold"
    DEVICE_STATE = "device_state"
    WEATHER = "weather"
    OCCUPANCY = "occupancy"
    UNSUPPORTED = "unsupported"


class GeofenceTrigger(Enum):
    """Which geofence transition a condition matches."""

    ARRIVING = "arriving"
    LEAVING = "leaving"
    INSIDE = "inside"


class Comparator(Enum):
    """Comparison applied by sensor threshold conditions."""

    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    GREATER_OR_EQUAL = "greater_or_equal"
    LESS_OR_EQUAL = "less_or_equal"


class ActionType(Enum):
    """Types of actions that can be executed."""

    SET_DEVICE = "set_device"
    ACTIVATE_SCENE = "activate_scene"
    DELAY = "delay"
    NOTIFY = "notify"
    CONDITIONAL = "conditional"
    UNSUPPORTED = "unsupported"


# =============================================================================
# Condition Configs
# =============================================================================


@dataclass(frozen=True)
class TimeWindowCondition:
    """Current time of day falls in [start, end); windows may span midnight."""

    start_hour: int
    start_minute: int
    end_hour: int
    end_minute: int

    @property
    def condition_type(self) -> ConditionType:
        return ConditionType.TIME_WINDOW


@dataclass(frozen=True)
class GeofenceCondition:
    """User position relative to the home coordinate."""

    radius_meters: float = 100.0
    trigger: GeofenceTrigger = GeofenceTrigger.INSIDE

    @property
    def condition_type(self) -> ConditionType:
        return ConditionType.GEOFENCE


@dataclass(frozen=True)
class SensorThresholdCondition:
    """Compare a device characteristic against a value."""

    device_id: str
    characteristic: str
    comparator: Comparator = Comparator.EQUALS
    value: Any = None

    @property
    def condition_type(self) -> ConditionType:
        return ConditionType.SENSOR_THRESHOLD


@dataclass(frozen=True)
class DeviceStateCondition:
    """Check a device's on/off state."""

    device_id: str
    expected_on: bool = False

    @property
    def condition_type(self) -> ConditionType:
        return ConditionType.DEVICE_STATE


@dataclass(frozen=True)
class WeatherCondition:
    """Case-insensitive substring match on the weather description."""

    substring: str

    @property
    def condition_type(self) -> ConditionType:
        return ConditionType.WEATHER


@dataclass(frozen=True)
class OccupancyCondition:
    """Check whether anyone is home."""

    expected_occupied: bool = True

    @property
    def condition_type(self) -> ConditionType:
        return ConditionType.OCCUPANCY


@dataclass(frozen=True)
class UnsupportedCondition:
    """Stored condition of a type this engine does not know. Never true."""

    kind: str
    data: Dict[str, Any] = field(default_factory=dict, hash=False)

    @property
    def condition_type(self) -> ConditionType:
        return ConditionType.UNSUPPORTED


Condition = (
    TimeWindowCondition
    | GeofenceCondition
    | SensorThresholdCondition
    | DeviceStateCondition
    | WeatherCondition
    | OccupancyCondition
    | UnsupportedCondition
)


@dataclass(frozen=True)
class ConditionGroup:
    """A node in the condition tree."""

    logic: LogicOperator = LogicOperator.AND
    conditions: Tuple[Condition, ...] = ()
    groups: Tuple["ConditionGroup", ...] = ()

    def __post_init__(self) -> None:
        # Accept lists from callers; store tuples so groups stay hashable
        object.__setattr__(self, "conditions", tuple(self.conditions))
        object.__setattr__(self, "groups", tuple(self.groups))

    @classmethod
    def all_of(cls, *conditions: Condition) -> "ConditionGroup":
        return cls(LogicOperator.AND, conditions)

    @classmethod
    def any_of(cls, *conditions: Condition) -> "ConditionGroup":
        return cls(LogicOperator.OR, conditions)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict for storage/transport."""
        result: Dict[str, Any] = {
            "logic": self.logic.value,
            "conditions": [serialize_condition(c) for c in self.conditions],
        }
        if self.groups:
            result["groups"] = [g.to_dict() for g in self.groups]
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConditionGroup":
        """Deserialize from dict."""
        _require_mapping(data, "condition group")
        return cls(
            logic=LogicOperator(data.get("logic", "AND")),
            conditions=tuple(parse_condition(c) for c in data.get("conditions", [])),
            groups=tuple(cls.from_dict(g) for g in data.get("groups") or []),
        )


# =============================================================================
# Action Configs
# =============================================================================


@dataclass(frozen=True)
class SetDeviceAction:
    """Request a device be switched on or off."""

    device_id: str
    on: bool

    @property
    def action_type(self) -> ActionType:
        return ActionType.SET_DEVICE


@dataclass(frozen=True)
class ActivateSceneAction:
    """Request a scene activation."""

    scene_id: str

    @property
    def action_type(self) -> ActionType:
        return ActionType.ACTIVATE_SCENE


@dataclass(frozen=True)
class DelayAction:
    """Wait before executing the next action."""

    seconds: float

    @property
    def action_type(self) -> ActionType:
        return ActionType.DELAY


@dataclass(frozen=True)
class NotifyAction:
    """Send a notification to the user."""

    message: str

    @property
    def action_type(self) -> ActionType:
        return ActionType.NOTIFY


@dataclass(frozen=True)
class ConditionalAction:
    """Run nested actions only if the nested condition holds."""

    condition: ConditionGroup
    actions: Tuple["Action", ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "actions", tuple(self.actions))

    @property
    def action_type(self) -> ActionType:
        return ActionType.CONDITIONAL


@dataclass(frozen=True)
class UnsupportedAction:
    """Stored action of a type this engine does not know. Skipped on execution."""

    kind: str
    data: Dict[str, Any] = field(default_factory=dict, hash=False)

    @property
    def action_type(self) -> ActionType:
        return ActionType.UNSUPPORTED


Action = (
    SetDeviceAction
    | ActivateSceneAction
    | DelayAction
    | NotifyAction
    | ConditionalAction
    | UnsupportedAction
)


# =============================================================================
# Serialization helpers
# =============================================================================


def serialize_condition(c: Condition) -> Dict[str, Any]:
    """Serialize a leaf condition."""
    if isinstance(c, TimeWindowCondition):
        return {
            "type": "time_window",
            "start_hour": c.start_hour,
            "start_minute": c.start_minute,
            "end_hour": c.end_hour,
            "end_minute": c.end_minute,
        }
    elif isinstance(c, GeofenceCondition):
        return {
            "type": "geofence",
            "radius_meters": c.radius_meters,
            "trigger": c.trigger.value,
        }
    elif isinstance(c, SensorThresholdCondition):
        return {
            "type": "sensor_threshold",
            "device_id": c.device_id,
            "characteristic": c.characteristic,
            "comparator": c.comparator.value,
            "value": c.value,
        }
    elif isinstance(c, DeviceStateCondition):
        return {"type": "device_state", "device_id": c.device_id, "expected_on": c.expected_on}
    elif isinstance(c, WeatherCondition):
        return {"type": "weather", "substring": c.substring}
    elif isinstance(c, OccupancyCondition):
        return {"type": "occupancy", "expected_occupied": c.expected_occupied}
    elif isinstance(c, UnsupportedCondition):
        return {**c.data, "type": c.kind}
    raise ValueError(f"Cannot serialize condition: {c!r}")


def parse_condition(data: Dict[str, Any]) -> Condition:
    """
    Parse a leaf condition from dict.

    Missing parameters are kept as None rather than rejected; the evaluator
    treats them as unmet so a malformed automation simply never fires.
    Unknown types and unparseable enum values become UnsupportedCondition
    so they survive a save unchanged.

    Raises:
        TypeError: If data is not a mapping at all
    """
    _require_mapping(data, "condition")
    try:
        return _parse_known_condition(data)
    except (KeyError, ValueError, TypeError) as e:
        logger.warning(f"Unreadable condition {data.get('type')!r}: {e}")
        return UnsupportedCondition(
            kind=str(data.get("type")),
            data={k: v for k, v in data.items() if k != "type"},
        )


def _parse_known_condition(data: Dict[str, Any]) -> Condition:
    condition_type = data.get("type")

    if condition_type == "time_window":
        return TimeWindowCondition(
            start_hour=data.get("start_hour"),
            start_minute=data.get("start_minute"),
            end_hour=data.get("end_hour"),
            end_minute=data.get("end_minute"),
        )
    elif condition_type == "geofence":
        return GeofenceCondition(
            radius_meters=data.get("radius_meters", 100.0),
            trigger=GeofenceTrigger(data.get("trigger", "inside")),
        )
    elif condition_type == "sensor_threshold":
        return SensorThresholdCondition(
            device_id=data.get("device_id"),
            characteristic=data.get("characteristic"),
            comparator=Comparator(data.get("comparator", "equals")),
            value=data.get("value"),
        )
    elif condition_type == "device_state":
        return DeviceStateCondition(
            device_id=data.get("device_id"),
            expected_on=data.get("expected_on", False),
        )
    elif condition_type == "weather":
        return WeatherCondition(substring=data.get("substring"))
    elif condition_type == "occupancy":
        return OccupancyCondition(expected_occupied=data.get("expected_occupied", True))
    else:
        raise ValueError(f"Unknown condition type: {condition_type}")


def serialize_action(a: Action) -> Dict[str, Any]:
    """Serialize an action."""
    if isinstance(a, SetDeviceAction):
        return {"type": "set_device", "device_id": a.device_id, "on": a.on}
    elif isinstance(a, ActivateSceneAction):
        return {"type": "activate_scene", "scene_id": a.scene_id}
    elif isinstance(a, DelayAction):
        return {"type": "delay", "seconds": a.seconds}
    elif isinstance(a, NotifyAction):
        return {"type": "notify", "message": a.message}
    elif isinstance(a, ConditionalAction):
        return {
            "type": "conditional",
            "condition": a.condition.to_dict(),
            "actions": [serialize_action(n) for n in a.actions],
        }
    elif isinstance(a, UnsupportedAction):
        return {**a.data, "type": a.kind}
    raise ValueError(f"Cannot serialize action: {a!r}")


def parse_action(data: Dict[str, Any]) -> Action:
    """
    Parse an action from dict.

    Unknown or incomplete actions become UnsupportedAction; the executor
    skips them and reports the run as failed.

    Raises:
        TypeError: If data is not a mapping at all
    """
    _require_mapping(data, "action")
    try:
        return _parse_known_action(data)
    except (KeyError, ValueError, TypeError) as e:
        logger.warning(f"Unreadable action {data.get('type')!r}: {e}")
        return UnsupportedAction(
            kind=str(data.get("type")),
            data={k: v for k, v in data.items() if k != "type"},
        )


def _parse_known_action(data: Dict[str, Any]) -> Action:
    action_type = data.get("type")

    if action_type == "set_device":
        on = data["on"]
        if not isinstance(on, bool):
            raise TypeError(f"set_device 'on' must be a boolean, got {on!r}")
        return SetDeviceAction(device_id=data["device_id"], on=on)
    elif action_type == "activate_scene":
        return ActivateSceneAction(scene_id=data["scene_id"])
    elif action_type == "delay":
        return DelayAction(seconds=data["seconds"])
    elif action_type == "notify":
        return NotifyAction(message=data["message"])
    elif action_type == "conditional":
        return ConditionalAction(
            condition=ConditionGroup.from_dict(data.get("condition", {})),
            actions=tuple(parse_action(n) for n in data.get("actions", [])),
        )
    else:
        raise ValueError(f"Unknown action type: {action_type}")


def _require_mapping(data: Any, what: str) -> None:
    if not isinstance(data, dict):
        raise TypeError(f"Expected a mapping for {what} record, got {type(data).__name__}")


def _utc_now() -> datetime:
    return datetime.now(UTC)


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromisoformat(value)


# =============================================================================
# Automation
# =============================================================================


@dataclass
class Automation:
    """
    A user-defined automation.

    Consists of:
    - id: Opaque unique identifier
    - name / description: User-facing text
    - conditions: Condition tree that must hold for the automation to fire
    - actions: Ordered actions to run when it fires
    - enabled: Whether the automation is evaluated at all
    - created_at / last_fired: Timestamps (last_fired written by the registry)
    """

    id: str
    name: str
    conditions: ConditionGroup
    actions: List[Action]
    description: str = ""
    enabled: bool = True
    created_at: datetime = field(default_factory=_utc_now)
    last_fired: Optional[datetime] = None

    @classmethod
    def new(
        cls,
        name: str,
        conditions: ConditionGroup,
        actions: List[Action],
        *,
        description: str = "",
        enabled: bool = True,
    ) -> "Automation":
        """Create an automation with a fresh id."""
        return cls(
            id=str(uuid.uuid4()),
            name=name,
            description=description,
            conditions=conditions,
            actions=list(actions),
            enabled=enabled,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict for storage/transport."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "conditions": self.conditions.to_dict(),
            "actions": [serialize_action(a) for a in self.actions],
            "enabled": self.enabled,
            "created_at": self.created_at.isoformat(),
            "last_fired": self.last_fired.isoformat() if self.last_fired else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Automation":
        """Deserialize from dict."""
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            description=data.get("description", ""),
            conditions=ConditionGroup.from_dict(data.get("conditions", {})),
            actions=[parse_action(a) for a in data.get("actions", [])],
            enabled=data.get("enabled", True),
            created_at=_parse_timestamp(data.get("created_at")) or _utc_now(),
            last_fired=_parse_timestamp(data.get("last_fired")),
        )


# =============================================================================
# Execution Records
# =============================================================================


@dataclass(frozen=True)
class ExecutionLogEntry:
    """Record of an automation run (for history/diagnostics)."""

    automation_id: str
    automation_name: str  # Snapshot at execution time
    timestamp: datetime
    success: bool
    actions_executed: int
    error: Optional[str] = None
    skipped: bool = False  # Fired while already running; nothing executed
    entry_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entry_id": self.entry_id,
            "automation_id": self.automation_id,
            "automation_name": self.automation_name,
            "timestamp": self.timestamp.isoformat(),
            "success": self.success,
            "actions_executed": self.actions_executed,
            "error": self.error,
            "skipped": self.skipped,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExecutionLogEntry":
        return cls(
            entry_id=data.get("entry_id") or str(uuid.uuid4()),
            automation_id=data["automation_id"],
            automation_name=data.get("automation_name", ""),
            timestamp=datetime.fromisoformat(data["timestamp"]),
            success=data.get("success", False),
            actions_executed=data.get("actions_executed", 0),
            error=data.get("error"),
            skipped=data.get("skipped", False),
        )
