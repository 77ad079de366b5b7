"""
Automation registry - owns automations and drives evaluation cycles.

Handles CRUD, single-flight execution, the execution log and persistence.
"""

import copy
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from home_rules.core.bus import Event, EventBus
from home_rules.core.config import EngineConfig

from .context import Context
from .evaluators import ConditionEvaluator
from .executor import ActionExecutor, ExecutionRun
from .history import ExecutionLog
from .models import Automation, ExecutionLogEntry
from .scheduler import AsyncioScheduler

if TYPE_CHECKING:
    from .adapter import ActuatorAdapter
    from .scheduler import Scheduler

logger = logging.getLogger(__name__)

STATE_VERSION = 1


@dataclass
class CycleResult:
    """Result of one evaluation cycle."""

    evaluated: int = 0
    fired: int = 0
    skipped: int = 0  # Conditions held but the automation was still running
    errors: List[str] = field(default_factory=list)


class AutomationRegistry:
    """
    Owner of the canonical automation list.

    Responsibilities:
    - Create/update/delete/enable automations
    - Evaluate enabled automations against a Context
    - Dispatch fired automations to the executor, one run per automation
    - Record every run in the execution log
    - Export/import state for persistence

    All operations are serialized by a single re-entrant lock. Runs resumed
    by the scheduler re-enter through the same lock when they complete.

    Without an explicit scheduler the registry uses an AsyncioScheduler bound
    to the running loop, so it must then be created inside that loop.
    """

    def __init__(
        self,
        actuator: "ActuatorAdapter",
        scheduler: Optional["Scheduler"] = None,
        config: Optional[EngineConfig] = None,
        bus: Optional[EventBus] = None,
    ) -> None:
        self._config = config or EngineConfig()
        self._evaluator = ConditionEvaluator(self._config.max_condition_depth)
        self._executor = ActionExecutor(
            actuator,
            scheduler or AsyncioScheduler(),
            self._evaluator,
            self._config.max_action_depth,
        )
        self._bus = bus
        self._log = ExecutionLog(self._config.log_capacity)

        # Insertion-ordered; evaluation follows this order
        self._automations: Dict[str, Automation] = {}

        # In-flight marker per automation id
        self._in_flight: Dict[str, ExecutionRun] = {}

        self._lock = threading.RLock()

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def log(self) -> ExecutionLog:
        return self._log

    # =========================================================================
    # Automation Management
    # =========================================================================

    def create(self, automation: Automation) -> None:
        """
        Add an automation.

        Raises:
            ValueError: If an automation with the same id exists
        """
        with self._lock:
            if automation.id in self._automations:
                raise ValueError(f"Automation '{automation.id}' already exists")
            self._automations[automation.id] = copy.deepcopy(automation)
            logger.info(f"Created automation: {automation.name} ({automation.id})")
            self._publish("automation.created", automation.id, {"name": automation.name})

    def update(self, automation: Automation) -> None:
        """
        Replace an automation's definition.

        The stored last_fired is kept; only the registry writes it. A run
        already in flight finishes with the definition it started with,
        unless the update disables the automation.

        Raises:
            ValueError: If the automation does not exist
        """
        with self._lock:
            existing = self._automations.get(automation.id)
            if existing is None:
                raise ValueError(f"Automation '{automation.id}' not found")

            updated = copy.deepcopy(automation)
            updated.last_fired = existing.last_fired
            self._automations[automation.id] = updated

            if not updated.enabled:
                self.cancel(automation.id)

            logger.info(f"Updated automation: {automation.name} ({automation.id})")
            self._publish("automation.updated", automation.id, {"name": automation.name})

    def delete(self, automation_id: str, purge_history: bool = False) -> bool:
        """
        Remove an automation, cancelling any run in flight.

        Args:
            automation_id: Automation to remove
            purge_history: Also drop its execution log entries

        Returns:
            True if removed, False if not found
        """
        with self._lock:
            automation = self._automations.pop(automation_id, None)
            if automation is None:
                return False

            self.cancel(automation_id)
            if purge_history:
                self._log.remove_automation(automation_id)

            logger.info(f"Deleted automation: {automation.name} ({automation_id})")
            self._publish("automation.deleted", automation_id, {"name": automation.name})
            return True

    def set_enabled(self, automation_id: str, enabled: bool) -> None:
        """
        Enable or disable an automation. Disabling cancels a run in flight.

        Raises:
            ValueError: If the automation does not exist
        """
        with self._lock:
            automation = self._automations.get(automation_id)
            if automation is None:
                raise ValueError(f"Automation '{automation_id}' not found")

            automation.enabled = enabled
            if not enabled:
                self.cancel(automation_id)

            logger.info(f"{'Enabled' if enabled else 'Disabled'} automation: {automation.name}")
            self._publish("automation.toggled", automation_id, {"enabled": enabled})

    def get(self, automation_id: str) -> Optional[Automation]:
        """Get a copy of an automation."""
        with self._lock:
            automation = self._automations.get(automation_id)
            return copy.deepcopy(automation) if automation else None

    def list(self) -> List[Automation]:
        """Get copies of all automations, in insertion order."""
        with self._lock:
            return [copy.deepcopy(a) for a in self._automations.values()]

    # =========================================================================
    # Evaluation
    # =========================================================================

    def evaluate_all(self, ctx: Context) -> CycleResult:
        """
        Run one evaluation cycle.

        Every enabled automation whose conditions hold is dispatched, unless
        it is still running from an earlier cycle. Failures are contained to
        the automation that raised them.

        Args:
            ctx: Snapshot for this cycle

        Returns:
            Counts of automations evaluated, fired and skipped
        """
        result = CycleResult()

        with self._lock:
            for automation in list(self._automations.values()):
                if not automation.enabled:
                    continue

                result.evaluated += 1
                try:
                    if not self._evaluator.evaluate(automation.conditions, ctx):
                        continue

                    if self._dispatch(automation, ctx):
                        result.fired += 1
                    else:
                        result.skipped += 1

                except Exception as e:
                    message = f"{automation.name}: {e}"
                    result.errors.append(message)
                    logger.error(f"Error evaluating automation {automation.id}: {e}", exc_info=True)
                    self._log.append(
                        ExecutionLogEntry(
                            automation_id=automation.id,
                            automation_name=automation.name,
                            timestamp=ctx.now,
                            success=False,
                            actions_executed=0,
                            error=str(e),
                        )
                    )

        if result.fired or result.skipped:
            logger.info(
                f"Evaluation cycle: {result.fired}/{result.evaluated} fired, "
                f"{result.skipped} skipped (already running)"
            )
        return result

    def trigger(self, automation_id: str, ctx: Context) -> bool:
        """
        Run an automation now, ignoring its conditions and enabled flag.

        The single-flight rule still applies.

        Returns:
            True if dispatched, False if skipped because it is running

        Raises:
            ValueError: If the automation does not exist
        """
        with self._lock:
            automation = self._automations.get(automation_id)
            if automation is None:
                raise ValueError(f"Automation '{automation_id}' not found")
            return self._dispatch(automation, ctx)

    def _dispatch(self, automation: Automation, ctx: Context) -> bool:
        """Start an automation's actions unless a run is already in flight."""
        if automation.id in self._in_flight:
            logger.info(f"Automation {automation.name} already running, skipping")
            self._log.append(
                ExecutionLogEntry(
                    automation_id=automation.id,
                    automation_name=automation.name,
                    timestamp=ctx.now,
                    success=True,
                    actions_executed=0,
                    skipped=True,
                )
            )
            self._publish("automation.skipped", automation.id, {"name": automation.name})
            return False

        automation.last_fired = ctx.now
        name = automation.name
        started_at = ctx.now
        logger.info(f"Executing automation: {name}")

        def finish(run: ExecutionRun) -> None:
            self._finish(automation.id, name, started_at, run)

        run = self._executor.execute(list(automation.actions), ctx, label=name)
        if not run.done:
            self._in_flight[automation.id] = run
        run.add_done_callback(finish)
        return True

    def _finish(self, automation_id: str, name: str, started_at: datetime, run: ExecutionRun) -> None:
        """Release the in-flight marker and record the run."""
        with self._lock:
            if self._in_flight.get(automation_id) is run:
                del self._in_flight[automation_id]

            result = run.result
            self._log.append(
                ExecutionLogEntry(
                    automation_id=automation_id,
                    automation_name=name,
                    timestamp=started_at,
                    success=result.success,
                    actions_executed=result.executed_count,
                    error=result.error,
                )
            )
            if not result.success:
                logger.warning(f"Automation {name} finished with errors: {result.error}")

            self._publish(
                "automation.executed",
                automation_id,
                {
                    "name": name,
                    "success": result.success,
                    "actions_executed": result.executed_count,
                    "error": result.error,
                    "cancelled": run.cancelled,
                },
            )

    # =========================================================================
    # In-flight Runs
    # =========================================================================

    def is_running(self, automation_id: str) -> bool:
        with self._lock:
            return automation_id in self._in_flight

    def cancel(self, automation_id: str) -> bool:
        """
        Cancel an automation's pending run.

        Returns:
            True if a run was cancelled
        """
        with self._lock:
            run = self._in_flight.get(automation_id)
            if run is None:
                return False
            return run.cancel()

    def cancel_all(self) -> int:
        """Cancel every pending run. Returns the number cancelled."""
        with self._lock:
            return sum(1 for automation_id in list(self._in_flight) if self.cancel(automation_id))

    # =========================================================================
    # History
    # =========================================================================

    def history(
        self,
        automation_id: Optional[str] = None,
        limit: int = 20,
    ) -> List[ExecutionLogEntry]:
        """
        Get execution history.

        Args:
            automation_id: Filter by automation (optional)
            limit: Maximum entries to return

        Returns:
            Entries, newest first
        """
        return self._log.entries(automation_id=automation_id, limit=limit)

    # =========================================================================
    # State Export/Import
    # =========================================================================

    def serialize(self) -> Dict[str, Any]:
        """Export automations and the execution log for persistence."""
        with self._lock:
            return {
                "version": STATE_VERSION,
                "automations": [a.to_dict() for a in self._automations.values()],
                "log": self._log.to_list(),
            }

    def deserialize(self, state: Dict[str, Any]) -> None:
        """
        Replace automations and log from persisted state.

        Interrupted runs are not resumed. Automations and log entries that
        cannot be read are logged and skipped so one bad record does not block
        the rest.

        Raises:
            ValueError: If the state comes from a newer version
        """
        version = state.get("version", STATE_VERSION)
        if version > STATE_VERSION:
            raise ValueError(f"Unsupported state version: {version}")

        with self._lock:
            self.cancel_all()
            self._in_flight.clear()

            automations: Dict[str, Automation] = {}
            for data in state.get("automations") or []:
                try:
                    automation = Automation.from_dict(data)
                except (KeyError, ValueError, TypeError, AttributeError) as e:
                    automation_id = data.get("id") if isinstance(data, dict) else None
                    logger.error(f"Skipping unreadable automation {automation_id!r}: {e}")
                    continue
                automations[automation.id] = automation

            self._log.load(state.get("log") or [])
            self._automations = automations
            logger.info(f"Restored {len(automations)} automations, {len(self._log)} log entries")

    # =========================================================================
    # Events
    # =========================================================================

    def _publish(self, event_type: str, automation_id: str, payload: Dict[str, Any]) -> None:
        if not self._bus:
            return
        self._bus.publish(
            Event(
                type=event_type,
                source="registry",
                automation_id=automation_id,
                payload=payload,
            )
        )
