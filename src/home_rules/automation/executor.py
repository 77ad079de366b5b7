"""
Action executor for the automation engine.

Runs an automation's action list in order against one Context. Device,
scene and notification actions emit requests to the actuator adapter;
Delay actions hand the remainder of the list to the scheduler and return
immediately, so no thread ever waits on a delay.
"""

import logging
import threading
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Callable, Iterator, List, Optional, Sequence, Tuple

from .context import Context
from .evaluators import ConditionEvaluator
from .models import (
    Action,
    ActivateSceneAction,
    ConditionalAction,
    DelayAction,
    NotifyAction,
    SetDeviceAction,
    UnsupportedAction,
)

if TYPE_CHECKING:
    from .adapter import ActuatorAdapter
    from .scheduler import ScheduledCall, Scheduler

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 8

CANCELLED = "cancelled"


@dataclass
class ExecutionResult:
    """Outcome of running an action list."""

    success: bool = True
    executed_count: int = 0
    error: Optional[str] = None  # First failure, if any


DoneCallback = Callable[["ExecutionRun"], None]


class ExecutionRun:
    """
    Handle to one execution of an action list.

    A run without delays completes inside ActionExecutor.execute(). A run
    with delays stays pending until the scheduler resumes it, or until
    cancel() is called.

    The run holds the Context it was started with until it completes.
    Conditional actions reached after a Delay are evaluated against that
    same Context, not the state of the cycle in which the run resumes.
    """

    def __init__(
        self,
        executor: "ActionExecutor",
        actions: Sequence[Action],
        ctx: Context,
        label: str = "",
    ) -> None:
        self._executor = executor
        self._ctx = ctx
        self.label = label
        self._frames: List[Tuple[Iterator[Action], int]] = [(iter(tuple(actions)), 1)]
        self._result = ExecutionResult()
        self._done = False
        self._cancelled = False
        self._pending: Optional["ScheduledCall"] = None
        self._callbacks: List[DoneCallback] = []
        self._lock = threading.RLock()

    @property
    def done(self) -> bool:
        return self._done

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def waiting(self) -> bool:
        """True while suspended on a Delay."""
        return self._pending is not None

    @property
    def result(self) -> ExecutionResult:
        """Snapshot of the result so far (final once done)."""
        return replace(self._result)

    def add_done_callback(self, callback: DoneCallback) -> None:
        """Call callback(run) on completion; immediately if already done."""
        with self._lock:
            if not self._done:
                self._callbacks.append(callback)
                return
        self._invoke(callback)

    def cancel(self) -> bool:
        """
        Cancel a pending run.

        Returns:
            True if the run was cancelled, False if it had already finished
        """
        with self._lock:
            if self._done:
                return False
            if self._pending is not None:
                self._pending.cancel()
                self._pending = None
            self._cancelled = True
            self._fail(CANCELLED)
            callbacks = self._complete()
        logger.info(f"Cancelled execution {self.label}")
        self._fire(callbacks)
        return True

    # =========================================================================
    # Internals (used by ActionExecutor)
    # =========================================================================

    def _start(self) -> None:
        with self._lock:
            callbacks = self._advance()
        self._fire(callbacks)

    def _resume(self) -> None:
        with self._lock:
            self._pending = None
            if self._done:
                return
            callbacks = self._advance()
        self._fire(callbacks)

    def _advance(self) -> List[DoneCallback]:
        """Run actions until the list is exhausted or a delay suspends it."""
        while self._frames:
            actions, depth = self._frames[-1]
            action = next(actions, None)
            if action is None:
                self._frames.pop()
                continue

            delay = self._executor._run_action(self, action, depth)
            if delay is not None:
                try:
                    self._pending = self._executor.scheduler.call_later(delay, self._resume)
                except Exception as e:
                    self._fail(f"Could not schedule delay: {e}")
                    logger.error(
                        f"Scheduler failed for {self.label}, dropping remaining actions: {e}",
                        exc_info=True,
                    )
                    break
                logger.debug(f"Execution {self.label} suspended for {delay}s")
                return []

        return self._complete()

    def _push(self, actions: Sequence[Action], depth: int) -> None:
        self._frames.append((iter(tuple(actions)), depth))

    def _count(self) -> None:
        self._result.executed_count += 1

    def _fail(self, message: str) -> None:
        self._result.success = False
        if self._result.error is None:
            self._result.error = message

    def _complete(self) -> List[DoneCallback]:
        self._done = True
        self._frames.clear()
        callbacks, self._callbacks = self._callbacks, []
        return callbacks

    def _fire(self, callbacks: List[DoneCallback]) -> None:
        for callback in callbacks:
            self._invoke(callback)

    def _invoke(self, callback: DoneCallback) -> None:
        try:
            callback(self)
        except Exception as e:
            logger.error(f"Error in completion callback for {self.label}: {e}", exc_info=True)


class ActionExecutor:
    """
    Interprets action lists.

    Failure policy: each action is independent. A failed request, an
    unsupported action or an over-deep conditional marks the run as failed
    but never stops the actions after it.
    """

    def __init__(
        self,
        actuator: "ActuatorAdapter",
        scheduler: "Scheduler",
        evaluator: Optional[ConditionEvaluator] = None,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ) -> None:
        self.actuator = actuator
        self.scheduler = scheduler
        self._evaluator = evaluator or ConditionEvaluator()
        self._max_depth = max_depth

    def execute(self, actions: Sequence[Action], ctx: Context, label: str = "") -> ExecutionRun:
        """
        Start executing actions.

        Args:
            actions: Ordered actions to run
            ctx: Context the automation fired under (used by conditionals)
            label: Name used in log messages

        Returns:
            Run handle; already done unless a Delay suspended it
        """
        run = ExecutionRun(self, actions, ctx, label=label)
        run._start()
        return run

    def _run_action(self, run: ExecutionRun, action: Action, depth: int) -> Optional[float]:
        """
        Perform one action.

        Returns:
            Seconds to suspend for, or None to continue immediately
        """
        try:
            if isinstance(action, SetDeviceAction):
                run._count()
                logger.info(f"Executing: set {action.device_id} -> {'on' if action.on else 'off'}")
                self.actuator.set_device(action.device_id, bool(action.on))

            elif isinstance(action, ActivateSceneAction):
                run._count()
                logger.info(f"Executing: activate scene {action.scene_id}")
                self.actuator.activate_scene(action.scene_id)

            elif isinstance(action, NotifyAction):
                run._count()
                logger.info(f"Executing: notify {action.message!r}")
                self.actuator.notify(action.message)

            elif isinstance(action, DelayAction):
                run._count()
                seconds = action.seconds
                if isinstance(seconds, bool) or not isinstance(seconds, (int, float)) or seconds < 0:
                    run._fail(f"Invalid delay: {seconds!r}")
                    logger.warning(f"Skipping invalid delay {seconds!r} in {run.label}")
                    return None
                if seconds > 0:
                    return float(seconds)

            elif isinstance(action, ConditionalAction):
                if depth >= self._max_depth:
                    run._fail(f"Conditional actions nested deeper than {self._max_depth}")
                    logger.warning(f"Conditional nesting limit reached in {run.label}")
                    return None
                run._count()
                if self._evaluator.evaluate(action.condition, run._ctx):
                    run._push(action.actions, depth + 1)
                else:
                    logger.debug(f"Conditional not met in {run.label}")

            elif isinstance(action, UnsupportedAction):
                run._fail(f"Unsupported action type: {action.kind}")
                logger.warning(f"Skipping unsupported action {action.kind!r} in {run.label}")

            else:
                run._fail(f"Unknown action: {type(action).__name__}")
                logger.warning(f"Skipping unknown action {action!r} in {run.label}")

        except Exception as e:
            run._fail(str(e))
            logger.error(f"Action {action!r} failed in {run.label}: {e}", exc_info=True)

        return None
