"""
Condition evaluators for the automation engine.

Evaluation is pure and total: every condition answers True or False for
every context. Missing context data or malformed parameters fail closed
(False) so a mis-specified automation simply does not fire.
"""

import logging
from typing import Any, Optional

from .context import Context
from .models import (
    Comparator,
    Condition,
    ConditionGroup,
    DeviceStateCondition,
    GeofenceCondition,
    GeofenceTrigger,
    LogicOperator,
    OccupancyCondition,
    SensorThresholdCondition,
    TimeWindowCondition,
    UnsupportedCondition,
    WeatherCondition,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 16


class ConditionEvaluator:
    """
    Evaluates condition trees for automations.

    Stateless apart from the nesting limit; one instance can be shared by
    every automation and every cycle.
    """

    def __init__(self, max_depth: int = DEFAULT_MAX_DEPTH) -> None:
        self._max_depth = max_depth

    def evaluate(self, group: ConditionGroup, ctx: Context) -> bool:
        """
        Evaluate a condition group.

        Args:
            group: Root of the condition tree
            ctx: Snapshot of the current evaluation cycle

        Returns:
            True if the tree holds
        """
        return self._evaluate_group(group, ctx, depth=1)

    def _evaluate_group(self, group: ConditionGroup, ctx: Context, depth: int) -> bool:
        if depth > self._max_depth:
            logger.warning(f"Condition nesting exceeds {self._max_depth} levels; treating as unmet")
            return False

        results = (self.evaluate_condition(c, ctx) for c in group.conditions)
        nested = (self._evaluate_group(g, ctx, depth + 1) for g in group.groups)

        if group.logic == LogicOperator.AND:
            return all(results) and all(nested)
        elif group.logic == LogicOperator.OR:
            return any(results) or any(nested)
        elif group.logic == LogicOperator.NOT:
            # Not all children true; an empty NOT group has nothing to negate
            if not group.conditions and not group.groups:
                return False
            return not (all(results) and all(nested))

        logger.warning(f"Unknown logic operator: {group.logic}")
        return False

    def evaluate_condition(self, condition: Condition, ctx: Context) -> bool:
        """
        Evaluate a single leaf condition.

        Args:
            condition: The condition to evaluate
            ctx: Snapshot of the current evaluation cycle

        Returns:
            True if condition is met, False otherwise (including on error)
        """
        try:
            result = self._dispatch(condition, ctx)
        except Exception as e:
            logger.warning(f"Condition {condition!r} failed to evaluate: {e}")
            return False

        logger.debug(f"Condition {condition} -> {result}")
        return result

    def _dispatch(self, condition: Condition, ctx: Context) -> bool:
        if isinstance(condition, TimeWindowCondition):
            return self._check_time_window(condition, ctx)
        elif isinstance(condition, GeofenceCondition):
            return self._check_geofence(condition, ctx)
        elif isinstance(condition, SensorThresholdCondition):
            return self._check_sensor_threshold(condition, ctx)
        elif isinstance(condition, DeviceStateCondition):
            return self._check_device_state(condition, ctx)
        elif isinstance(condition, WeatherCondition):
            return self._check_weather(condition, ctx)
        elif isinstance(condition, OccupancyCondition):
            return ctx.occupied == condition.expected_occupied
        elif isinstance(condition, UnsupportedCondition):
            logger.warning(f"Unsupported condition type: {condition.kind}")
            return False
        else:
            logger.warning(f"Unknown condition type: {type(condition)}")
            return False

    # =========================================================================
    # Condition Implementations
    # =========================================================================

    def _check_time_window(self, condition: TimeWindowCondition, ctx: Context) -> bool:
        """Check if the current time of day is within the window."""
        start_hour = _as_int(condition.start_hour, 23)
        start_minute = _as_int(condition.start_minute, 59)
        end_hour = _as_int(condition.end_hour, 23)
        end_minute = _as_int(condition.end_minute, 59)
        if None in (start_hour, start_minute, end_hour, end_minute):
            logger.warning(f"Malformed time window: {condition}")
            return False

        current = ctx.now.hour * 60 + ctx.now.minute
        start = start_hour * 60 + start_minute
        end = end_hour * 60 + end_minute

        if start <= end:
            return start <= current < end
        # Spans midnight (e.g., 22:00 to 06:00)
        return current >= start or current <= end

    def _check_geofence(self, condition: GeofenceCondition, ctx: Context) -> bool:
        """Check user position against the home radius."""
        if ctx.location is None:
            return False

        radius = _as_number(condition.radius_meters)
        if radius is None or radius < 0:
            logger.warning(f"Malformed geofence radius: {condition.radius_meters!r}")
            return False

        inside = ctx.location.distance_to(ctx.home) <= radius
        previous = ctx.previous_location

        if condition.trigger == GeofenceTrigger.ARRIVING:
            if not inside:
                return False
            return previous is None or previous.distance_to(ctx.home) > radius
        elif condition.trigger == GeofenceTrigger.LEAVING:
            if inside or previous is None:
                return False
            return previous.distance_to(ctx.home) <= radius

        return inside

    def _check_sensor_threshold(self, condition: SensorThresholdCondition, ctx: Context) -> bool:
        """Compare a device characteristic against the configured value."""
        characteristics = ctx.sensor_values.get(condition.device_id)
        if characteristics is None or condition.characteristic not in characteristics:
            logger.debug(
                f"Sensor value unavailable: {condition.device_id}/{condition.characteristic}"
            )
            return False

        return compare(characteristics[condition.characteristic], condition.comparator, condition.value)

    def _check_device_state(self, condition: DeviceStateCondition, ctx: Context) -> bool:
        """Check a device's on/off state; unknown devices count as off."""
        current = bool(ctx.device_states.get(condition.device_id, False))
        return current == condition.expected_on

    def _check_weather(self, condition: WeatherCondition, ctx: Context) -> bool:
        """Case-insensitive substring match on the weather description."""
        if not ctx.weather or not isinstance(condition.substring, str) or not condition.substring:
            return False
        return condition.substring.casefold() in ctx.weather.casefold()


# =============================================================================
# Value helpers
# =============================================================================


def compare(actual: Any, comparator: Comparator, expected: Any) -> bool:
    """
    Apply a comparator to a sensor reading.

    Equality compares the values' text forms; ordering requires both sides
    to be numbers.
    """
    if comparator == Comparator.EQUALS:
        return as_text(actual) == as_text(expected)
    elif comparator == Comparator.NOT_EQUALS:
        return as_text(actual) != as_text(expected)

    left = _as_number(actual)
    right = _as_number(expected)
    if left is None or right is None:
        return False

    if comparator == Comparator.GREATER_THAN:
        return left > right
    elif comparator == Comparator.LESS_THAN:
        return left < right
    elif comparator == Comparator.GREATER_OR_EQUAL:
        return left >= right
    elif comparator == Comparator.LESS_OR_EQUAL:
        return left <= right
    return False


def as_text(value: Any) -> str:
    """Text form used for equality: lowercase booleans, integral floats as ints."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def _as_int(value: Any, maximum: int) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    if value < 0 or value > maximum:
        return None
    return value
