"""
Automation engine for home-rules.

Evaluates user-defined automations against snapshots of home state and runs
their actions.

Features:
- Condition trees (AND / OR / NOT) over time windows, geofences, sensor
  thresholds, device states, weather and occupancy
- Text condition expressions compiled into condition trees
- Device, scene, notification, delay and conditional actions
- Non-blocking delays via a pluggable scheduler
- Single-flight execution per automation, with cancellation
- Bounded execution log for diagnostics
- Persistence as plain JSON-compatible dicts

Architecture:
    ┌─────────────────────────────────────────────┐
    │   Host (timer, location, sensors, UI)       │
    │        │ Context            ▲ requests      │
    │        ▼                    │               │
    │   AutomationRegistry ── ActionExecutor      │
    │        │                    │               │
    │   ConditionEvaluator    ActuatorAdapter     │
    └─────────────────────────────────────────────┘
"""

from .models import (
    # Enums
    LogicOperator,
    ConditionType,
    GeofenceTrigger,
    Comparator,
    ActionType,
    # Conditions
    TimeWindowCondition,
    GeofenceCondition,
    SensorThresholdCondition,
    DeviceStateCondition,
    WeatherCondition,
    OccupancyCondition,
    UnsupportedCondition,
    Condition,
    ConditionGroup,
    # Actions
    SetDeviceAction,
    ActivateSceneAction,
    DelayAction,
    NotifyAction,
    ConditionalAction,
    UnsupportedAction,
    Action,
    # Automation
    Automation,
    ExecutionLogEntry,
)
from .context import Context, ContextProvider, StaticContextProvider
from .evaluators import ConditionEvaluator
from .expressions import ExpressionError, compile_expression, parse_expression
from .adapter import ActuatorAdapter, ActuatorUnavailableError, RecordingActuatorAdapter
from .scheduler import AsyncioScheduler, ManualScheduler, ScheduledCall, Scheduler
from .executor import ActionExecutor, ExecutionResult, ExecutionRun
from .history import ExecutionLog
from .registry import AutomationRegistry, CycleResult
from .driver import AutomationDriver
from .presets import all_templates, energy_saver, good_morning, security_mode

__all__ = [
    # Registry
    "AutomationRegistry",
    "CycleResult",
    "AutomationDriver",
    # Evaluation
    "Context",
    "ContextProvider",
    "StaticContextProvider",
    "ConditionEvaluator",
    "ExpressionError",
    "compile_expression",
    "parse_expression",
    # Execution
    "ActionExecutor",
    "ExecutionResult",
    "ExecutionRun",
    "ActuatorAdapter",
    "ActuatorUnavailableError",
    "RecordingActuatorAdapter",
    "Scheduler",
    "ScheduledCall",
    "AsyncioScheduler",
    "ManualScheduler",
    "ExecutionLog",
    # Enums
    "LogicOperator",
    "ConditionType",
    "GeofenceTrigger",
    "Comparator",
    "ActionType",
    # Conditions
    "TimeWindowCondition",
    "GeofenceCondition",
    "SensorThresholdCondition",
    "DeviceStateCondition",
    "WeatherCondition",
    "OccupancyCondition",
    "UnsupportedCondition",
    "Condition",
    "ConditionGroup",
    # Actions
    "SetDeviceAction",
    "ActivateSceneAction",
    "DelayAction",
    "NotifyAction",
    "ConditionalAction",
    "UnsupportedAction",
    "Action",
    # Records
    "Automation",
    "ExecutionLogEntry",
    # Templates
    "good_morning",
    "security_mode",
    "energy_saver",
    "all_templates",
]
