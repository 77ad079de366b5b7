"""
AutomationDriver - connects event sources to the registry.

The registry does not own a clock or an event loop. A host drives it by
calling run_cycle() itself, by attaching the driver to an EventBus, or by
awaiting run_periodic().
"""

import asyncio
import logging
from typing import Iterable, Optional

from home_rules.core.bus import Event, EventBus, EventFilter

from .context import ContextProvider
from .registry import AutomationRegistry, CycleResult

logger = logging.getLogger(__name__)

DEFAULT_TRIGGER_EVENTS = (
    "location.updated",
    "sensor.changed",
    "device.changed",
    "weather.changed",
    "occupancy.changed",
    "timer.tick",
)


class AutomationDriver:
    """
    Runs evaluation cycles against fresh contexts.

    Every cycle asks the provider for a new Context; nothing is cached
    between cycles.
    """

    def __init__(
        self,
        registry: AutomationRegistry,
        provider: Optional[ContextProvider] = None,
    ) -> None:
        self._registry = registry
        self._provider = provider
        self._bus: Optional[EventBus] = None

    def set_provider(self, provider: ContextProvider) -> None:
        """Set the context provider. Required before the first cycle."""
        self._provider = provider

    def run_cycle(self) -> CycleResult:
        """
        Build a Context and evaluate every enabled automation.

        Raises:
            RuntimeError: If no provider has been set
        """
        if not self._provider:
            raise RuntimeError("Context provider not set")

        ctx = self._provider.build_context()
        return self._registry.evaluate_all(ctx)

    def attach(
        self,
        bus: EventBus,
        event_types: Iterable[str] = DEFAULT_TRIGGER_EVENTS,
    ) -> None:
        """
        Run a cycle whenever a matching event is published.

        Args:
            bus: EventBus carrying host events
            event_types: Event types that trigger a cycle
        """
        logger.info("Attaching AutomationDriver")
        self._bus = bus
        for event_type in event_types:
            bus.subscribe(self._on_trigger_event, EventFilter(event_type=event_type))

    def detach(self) -> None:
        """Stop reacting to bus events."""
        if self._bus:
            self._bus.unsubscribe(self._on_trigger_event)
            self._bus = None

    def _on_trigger_event(self, event: Event) -> None:
        """Handle a host event by running a cycle."""
        if not self._provider:
            logger.debug(f"No provider, ignoring {event.type}")
            return

        result = self.run_cycle()
        if result.fired:
            logger.info(
                f"Processed {event.type}: {result.fired}/{result.evaluated} automations fired"
            )

    async def run_periodic(
        self,
        interval_seconds: float,
        stop_event: Optional[asyncio.Event] = None,
    ) -> None:
        """
        Run a cycle every interval until stop_event is set or the task is cancelled.

        Cycles never overlap: the next one starts only after the previous
        evaluate_all() returns.
        """
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be positive, got {interval_seconds}")
        if not self._provider:
            raise RuntimeError("Context provider not set")

        stop_event = stop_event or asyncio.Event()
        logger.info(f"Starting periodic evaluation every {interval_seconds}s")
        while not stop_event.is_set():
            try:
                self.run_cycle()
            except Exception as e:
                logger.error(f"Evaluation cycle failed: {e}", exc_info=True)

            try:
                await asyncio.wait_for(stop_event.wait(), timeout=interval_seconds)
            except asyncio.TimeoutError:
                pass
        logger.info("Periodic evaluation stopped")
