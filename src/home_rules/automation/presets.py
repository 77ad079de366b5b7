"""
Automation templates.

Ready-made automations a user can pick and adjust. Templates are returned
disabled so nothing fires until the user opts in.
"""

from typing import List

from .models import (
    ActivateSceneAction,
    Automation,
    ConditionGroup,
    GeofenceCondition,
    GeofenceTrigger,
    NotifyAction,
    OccupancyCondition,
    TimeWindowCondition,
)


def good_morning(*, enabled: bool = False) -> Automation:
    """
    Morning scene when someone is home between 06:00 and 09:00.

    Example:
        automation = good_morning(enabled=True)
        registry.create(automation)
    """
    return Automation.new(
        name="Good Morning",
        description="Sunrise lighting and temperature adjustment",
        conditions=ConditionGroup.all_of(
            TimeWindowCondition(start_hour=6, start_minute=0, end_hour=9, end_minute=0),
            OccupancyCondition(expected_occupied=True),
        ),
        actions=[
            ActivateSceneAction(scene_id="morning"),
            NotifyAction(message="Good morning! Starting your day."),
        ],
        enabled=enabled,
    )


def security_mode(*, radius_meters: float = 100.0, enabled: bool = False) -> Automation:
    """
    Arm the away scene when leaving home during the day.

    Args:
        radius_meters: Geofence radius around home
        enabled: Whether the automation is active
    """
    return Automation.new(
        name="Security Mode",
        description="Lock doors and arm system when leaving",
        conditions=ConditionGroup.all_of(
            GeofenceCondition(radius_meters=radius_meters, trigger=GeofenceTrigger.LEAVING),
            TimeWindowCondition(start_hour=7, start_minute=0, end_hour=23, end_minute=0),
        ),
        actions=[
            NotifyAction(message="Activating security mode"),
            ActivateSceneAction(scene_id="away"),
        ],
        enabled=enabled,
    )


def energy_saver(*, enabled: bool = False) -> Automation:
    """Turn everything off when nobody is home during working hours."""
    return Automation.new(
        name="Energy Saver",
        description="Turn off devices when nobody is home",
        conditions=ConditionGroup.all_of(
            OccupancyCondition(expected_occupied=False),
            TimeWindowCondition(start_hour=9, start_minute=0, end_hour=18, end_minute=0),
        ),
        actions=[ActivateSceneAction(scene_id="all-off")],
        enabled=enabled,
    )


def all_templates() -> List[Automation]:
    """All built-in templates, each with a fresh id."""
    return [good_morning(), security_mode(), energy_saver()]
