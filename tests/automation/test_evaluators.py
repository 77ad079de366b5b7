"""Tests for condition evaluators."""

import pytest
from datetime import datetime, UTC

from home_rules.core.geo import Coordinate
from home_rules.automation import (
    Comparator,
    ConditionEvaluator,
    ConditionGroup,
    Context,
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

HOME = Coordinate(latitude=37.7749, longitude=-122.4194)

TRUE = OccupancyCondition(expected_occupied=True)
FALSE = OccupancyCondition(expected_occupied=False)


def make_context(hour: int = 12, minute: int = 0, **kwargs) -> Context:
    """Helper to build a context at a given time of day."""
    kwargs.setdefault("occupied", True)
    return Context.build(
        now=datetime(2025, 1, 15, hour, minute, 0, tzinfo=UTC),
        home=HOME,
        **kwargs,
    )


@pytest.fixture
def evaluator():
    """Create a condition evaluator."""
    return ConditionEvaluator()


class TestLogicOperators:
    """Tests for AND / OR / NOT groups."""

    @pytest.mark.parametrize(
        "logic, children, expected",
        [
            (LogicOperator.AND, (TRUE, TRUE), True),
            (LogicOperator.AND, (TRUE, FALSE), False),
            (LogicOperator.OR, (FALSE, FALSE), False),
            (LogicOperator.OR, (FALSE, TRUE), True),
            (LogicOperator.NOT, (TRUE, TRUE), False),
            (LogicOperator.NOT, (TRUE, FALSE), True),
            (LogicOperator.NOT, (FALSE, FALSE), True),
        ],
    )
    def test_truth_table(self, evaluator, logic, children, expected):
        """Test each operator over two leaves (occupied context)."""
        group = ConditionGroup(logic, children)
        assert evaluator.evaluate(group, make_context()) is expected

    def test_empty_groups(self, evaluator):
        """Test empty AND holds, empty OR and NOT do not."""
        ctx = make_context()
        assert evaluator.evaluate(ConditionGroup(LogicOperator.AND), ctx) is True
        assert evaluator.evaluate(ConditionGroup(LogicOperator.OR), ctx) is False
        assert evaluator.evaluate(ConditionGroup(LogicOperator.NOT), ctx) is False

    def test_nested_groups(self, evaluator):
        """Test leaves and nested groups combine."""
        inner = ConditionGroup(LogicOperator.OR, (FALSE, TRUE))
        group = ConditionGroup(LogicOperator.AND, (TRUE,), groups=(inner,))
        assert evaluator.evaluate(group, make_context()) is True

        failing_inner = ConditionGroup(LogicOperator.OR, (FALSE,))
        group = ConditionGroup(LogicOperator.AND, (TRUE,), groups=(failing_inner,))
        assert evaluator.evaluate(group, make_context()) is False

    def test_not_covers_nested_groups(self, evaluator):
        """Test NOT negates the conjunction of leaves and groups."""
        group = ConditionGroup(
            LogicOperator.NOT,
            (TRUE,),
            groups=(ConditionGroup(LogicOperator.AND, (FALSE,)),),
        )
        assert evaluator.evaluate(group, make_context()) is True

    def test_depth_limit_fails_closed(self):
        """Test nesting beyond the limit evaluates false."""
        evaluator = ConditionEvaluator(max_depth=3)
        group = ConditionGroup(LogicOperator.AND, (TRUE,))
        for _ in range(3):
            group = ConditionGroup(LogicOperator.AND, (TRUE,), groups=(group,))

        assert evaluator.evaluate(group, make_context()) is False

        shallow = ConditionGroup(
            LogicOperator.AND, (TRUE,), groups=(ConditionGroup(LogicOperator.AND, (TRUE,)),)
        )
        assert evaluator.evaluate(shallow, make_context()) is True


class TestTimeWindowCondition:
    """Tests for time window conditions."""

    def test_within_normal_window(self, evaluator):
        """Test 12:00 within 09:00-17:00."""
        condition = TimeWindowCondition(9, 0, 17, 0)
        assert evaluator.evaluate_condition(condition, make_context(12, 0)) is True

    def test_outside_normal_window(self, evaluator):
        """Test 08:00 outside 09:00-17:00."""
        condition = TimeWindowCondition(9, 0, 17, 0)
        assert evaluator.evaluate_condition(condition, make_context(8, 0)) is False

    def test_window_start_inclusive_end_exclusive(self, evaluator):
        """Test the non-wrapping window is half-open."""
        condition = TimeWindowCondition(9, 0, 17, 0)
        assert evaluator.evaluate_condition(condition, make_context(9, 0)) is True
        assert evaluator.evaluate_condition(condition, make_context(16, 59)) is True
        assert evaluator.evaluate_condition(condition, make_context(17, 0)) is False

    def test_within_midnight_spanning_window(self, evaluator):
        """Test 23:30 within 22:00-06:00."""
        condition = TimeWindowCondition(22, 0, 6, 0)
        assert evaluator.evaluate_condition(condition, make_context(23, 30)) is True

    def test_early_morning_in_midnight_spanning_window(self, evaluator):
        """Test 04:00 within 22:00-06:00."""
        condition = TimeWindowCondition(22, 0, 6, 0)
        assert evaluator.evaluate_condition(condition, make_context(4, 0)) is True

    def test_outside_midnight_spanning_window(self, evaluator):
        """Test 12:00 outside 22:00-06:00."""
        condition = TimeWindowCondition(22, 0, 6, 0)
        assert evaluator.evaluate_condition(condition, make_context(12, 0)) is False

    def test_minutes_respected(self, evaluator):
        """Test minute precision."""
        condition = TimeWindowCondition(6, 30, 7, 15)
        assert evaluator.evaluate_condition(condition, make_context(6, 29)) is False
        assert evaluator.evaluate_condition(condition, make_context(6, 45)) is True

    @pytest.mark.parametrize(
        "condition",
        [
            TimeWindowCondition(None, 0, 17, 0),
            TimeWindowCondition(25, 0, 17, 0),
            TimeWindowCondition(9, 60, 17, 0),
            TimeWindowCondition("9", 0, 17, 0),
            TimeWindowCondition(True, 0, 17, 0),
        ],
    )
    def test_malformed_window_fails_closed(self, evaluator, condition):
        """Test malformed parameters evaluate false without raising."""
        assert evaluator.evaluate_condition(condition, make_context(12, 0)) is False


class TestGeofenceCondition:
    """Tests for geofence conditions."""

    def test_arriving(self, evaluator):
        """Test previous 150m, current 50m, radius 100m counts as arriving."""
        ctx = make_context(
            location=HOME.offset(north_meters=50),
            previous_location=HOME.offset(north_meters=150),
        )
        arriving = GeofenceCondition(radius_meters=100, trigger=GeofenceTrigger.ARRIVING)
        leaving = GeofenceCondition(radius_meters=100, trigger=GeofenceTrigger.LEAVING)

        assert evaluator.evaluate_condition(arriving, ctx) is True
        assert evaluator.evaluate_condition(leaving, ctx) is False

    def test_arriving_without_previous_location(self, evaluator):
        """Test arriving holds when there is no previous fix."""
        ctx = make_context(location=HOME.offset(north_meters=20))
        condition = GeofenceCondition(radius_meters=100, trigger=GeofenceTrigger.ARRIVING)
        assert evaluator.evaluate_condition(condition, ctx) is True

    def test_already_home_is_not_arriving(self, evaluator):
        """Test staying inside does not count as arriving."""
        ctx = make_context(
            location=HOME.offset(north_meters=20),
            previous_location=HOME.offset(north_meters=30),
        )
        condition = GeofenceCondition(radius_meters=100, trigger=GeofenceTrigger.ARRIVING)
        assert evaluator.evaluate_condition(condition, ctx) is False

    def test_leaving(self, evaluator):
        """Test moving from inside to outside counts as leaving."""
        ctx = make_context(
            location=HOME.offset(east_meters=300),
            previous_location=HOME.offset(east_meters=40),
        )
        condition = GeofenceCondition(radius_meters=100, trigger=GeofenceTrigger.LEAVING)
        assert evaluator.evaluate_condition(condition, ctx) is True

    def test_leaving_without_previous_location(self, evaluator):
        """Test leaving needs a previous fix."""
        ctx = make_context(location=HOME.offset(east_meters=300))
        condition = GeofenceCondition(radius_meters=100, trigger=GeofenceTrigger.LEAVING)
        assert evaluator.evaluate_condition(condition, ctx) is False

    def test_inside(self, evaluator):
        """Test inside only looks at the current location."""
        condition = GeofenceCondition(radius_meters=100)
        assert evaluator.evaluate_condition(
            condition, make_context(location=HOME.offset(north_meters=99))
        ) is True
        assert evaluator.evaluate_condition(
            condition, make_context(location=HOME.offset(north_meters=101))
        ) is False

    def test_missing_location_fails_closed(self, evaluator):
        """Test no current location evaluates false for every trigger."""
        ctx = make_context(previous_location=HOME)
        for trigger in GeofenceTrigger:
            condition = GeofenceCondition(radius_meters=100, trigger=trigger)
            assert evaluator.evaluate_condition(condition, ctx) is False

    def test_invalid_radius_fails_closed(self, evaluator):
        """Test negative or non-numeric radius evaluates false."""
        ctx = make_context(location=HOME)
        assert evaluator.evaluate_condition(GeofenceCondition(radius_meters=-1), ctx) is False
        assert evaluator.evaluate_condition(GeofenceCondition(radius_meters="big"), ctx) is False


class TestSensorThresholdCondition:
    """Tests for sensor threshold conditions."""

    @pytest.fixture
    def ctx(self):
        return make_context(
            sensor_values={
                "thermostat": {"temperature": 21.5, "mode": "heat"},
                "motion": {"detected": True},
                "battery": {"level": 20},
            }
        )

    def test_greater_than(self, evaluator, ctx):
        """Test numeric greater-than."""
        condition = SensorThresholdCondition(
            "thermostat", "temperature", Comparator.GREATER_THAN, 20
        )
        assert evaluator.evaluate_condition(condition, ctx) is True

    def test_less_than(self, evaluator, ctx):
        """Test numeric less-than."""
        condition = SensorThresholdCondition("thermostat", "temperature", Comparator.LESS_THAN, 20)
        assert evaluator.evaluate_condition(condition, ctx) is False

    def test_inclusive_comparators(self, evaluator, ctx):
        """Test >= and <= include the boundary."""
        ge = SensorThresholdCondition("battery", "level", Comparator.GREATER_OR_EQUAL, 20)
        le = SensorThresholdCondition("battery", "level", Comparator.LESS_OR_EQUAL, 20)
        assert evaluator.evaluate_condition(ge, ctx) is True
        assert evaluator.evaluate_condition(le, ctx) is True

    def test_equals_compares_text(self, evaluator, ctx):
        """Test equality on text forms of both sides."""
        assert evaluator.evaluate_condition(
            SensorThresholdCondition("thermostat", "mode", Comparator.EQUALS, "heat"), ctx
        ) is True
        assert evaluator.evaluate_condition(
            SensorThresholdCondition("battery", "level", Comparator.EQUALS, "20"), ctx
        ) is True
        assert evaluator.evaluate_condition(
            SensorThresholdCondition("battery", "level", Comparator.EQUALS, 20.0), ctx
        ) is True
        assert evaluator.evaluate_condition(
            SensorThresholdCondition("motion", "detected", Comparator.EQUALS, "true"), ctx
        ) is True

    def test_not_equals(self, evaluator, ctx):
        """Test inequality on text forms."""
        condition = SensorThresholdCondition("thermostat", "mode", Comparator.NOT_EQUALS, "cool")
        assert evaluator.evaluate_condition(condition, ctx) is True

    def test_ordering_requires_numbers(self, evaluator, ctx):
        """Test ordering against text or booleans evaluates false."""
        assert evaluator.evaluate_condition(
            SensorThresholdCondition("thermostat", "mode", Comparator.GREATER_THAN, 1), ctx
        ) is False
        assert evaluator.evaluate_condition(
            SensorThresholdCondition("battery", "level", Comparator.LESS_THAN, "50"), ctx
        ) is False
        assert evaluator.evaluate_condition(
            SensorThresholdCondition("motion", "detected", Comparator.GREATER_THAN, 0), ctx
        ) is False

    def test_missing_device_or_characteristic(self, evaluator, ctx):
        """Test missing entries evaluate false."""
        assert evaluator.evaluate_condition(
            SensorThresholdCondition("garage", "temperature", Comparator.EQUALS, 1), ctx
        ) is False
        assert evaluator.evaluate_condition(
            SensorThresholdCondition("thermostat", "humidity", Comparator.EQUALS, 1), ctx
        ) is False


class TestDeviceStateCondition:
    """Tests for device state conditions."""

    def test_matches_state(self, evaluator):
        """Test on/off comparison."""
        ctx = make_context(device_states={"lamp": True})
        assert evaluator.evaluate_condition(DeviceStateCondition("lamp", True), ctx) is True
        assert evaluator.evaluate_condition(DeviceStateCondition("lamp", False), ctx) is False

    def test_unknown_device_counts_as_off(self, evaluator):
        """Test missing devices default to off."""
        ctx = make_context()
        assert evaluator.evaluate_condition(DeviceStateCondition("lamp", False), ctx) is True
        assert evaluator.evaluate_condition(DeviceStateCondition("lamp", True), ctx) is False


class TestWeatherCondition:
    """Tests for weather conditions."""

    def test_case_insensitive_substring(self, evaluator):
        """Test substring match ignores case."""
        ctx = make_context(weather="Light Rain Showers")
        assert evaluator.evaluate_condition(WeatherCondition("rain"), ctx) is True
        assert evaluator.evaluate_condition(WeatherCondition("SNOW"), ctx) is False

    def test_missing_weather_fails_closed(self, evaluator):
        """Test unknown weather evaluates false."""
        assert evaluator.evaluate_condition(WeatherCondition("rain"), make_context()) is False

    def test_empty_substring_fails_closed(self, evaluator):
        """Test an empty pattern does not match everything."""
        ctx = make_context(weather="Sunny")
        assert evaluator.evaluate_condition(WeatherCondition(""), ctx) is False


class TestOccupancyCondition:
    """Tests for occupancy conditions."""

    def test_occupancy(self, evaluator):
        """Test equality with the context flag."""
        assert evaluator.evaluate_condition(TRUE, make_context(occupied=True)) is True
        assert evaluator.evaluate_condition(TRUE, make_context(occupied=False)) is False
        assert evaluator.evaluate_condition(FALSE, make_context(occupied=False)) is True


class TestFailClosed:
    """Tests that missing data never raises."""

    def test_unsupported_condition(self, evaluator):
        """Test unknown condition types evaluate false."""
        condition = UnsupportedCondition(kind="sunset", data={"offset": 10})
        assert evaluator.evaluate_condition(condition, make_context()) is False

    def test_non_condition_object(self, evaluator):
        """Test arbitrary objects evaluate false."""
        assert evaluator.evaluate_condition("not a condition", make_context()) is False

    def test_empty_context(self, evaluator):
        """Test every data-dependent condition is false on an empty context."""
        ctx = Context.build(now=datetime(2025, 1, 15, 12, 0, tzinfo=UTC), home=HOME)
        conditions = [
            GeofenceCondition(),
            SensorThresholdCondition("d", "c", Comparator.EQUALS, "x"),
            DeviceStateCondition("d", True),
            WeatherCondition("rain"),
            OccupancyCondition(True),
        ]
        for condition in conditions:
            assert evaluator.evaluate_condition(condition, ctx) is False


class TestContext:
    """Tests for context immutability."""

    def test_context_mappings_are_read_only(self):
        """Test the context copies and freezes caller mappings."""
        sensors = {"thermostat": {"temperature": 20}}
        ctx = make_context(sensor_values=sensors, device_states={"lamp": True})

        sensors["thermostat"]["temperature"] = 30
        assert ctx.sensor_values["thermostat"]["temperature"] == 20

        with pytest.raises(TypeError):
            ctx.device_states["lamp"] = False
        with pytest.raises(TypeError):
            ctx.sensor_values["thermostat"]["temperature"] = 0
