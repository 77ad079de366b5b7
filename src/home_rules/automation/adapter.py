"""
Actuator adapter interface for the automation engine.

The adapter is the engine's only way to affect the home. The integration
layer provides a concrete implementation that forwards requests to the
device framework.

Design Principle:
    Requests are fire-and-forget. The engine records that it emitted a
    request, not whether the device obeyed; delivery and retries belong to
    the integration. An adapter method raising means the request could not
    even be handed over, and the engine counts that action as failed.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Set, Tuple


class ActuatorAdapter(ABC):
    """
    Abstract interface for actuator requests.

    This interface is intentionally minimal:
    - set_device: Switch a device on or off
    - activate_scene: Activate a scene
    - notify: Deliver a user notification
    """

    @abstractmethod
    def set_device(self, device_id: str, on: bool) -> None:
        """
        Request a device power state change.

        Args:
            device_id: Target device
            on: Desired power state
        """
        pass

    @abstractmethod
    def activate_scene(self, scene_id: str) -> None:
        """
        Request a scene activation.

        Args:
            scene_id: Scene to activate
        """
        pass

    @abstractmethod
    def notify(self, message: str) -> None:
        """
        Request a user notification.

        Args:
            message: Notification text
        """
        pass


class ActuatorUnavailableError(RuntimeError):
    """Raised by adapters when a request cannot be handed to the device layer."""


class RecordingActuatorAdapter(ActuatorAdapter):
    """
    Recording adapter for testing.

    Tracks every request in emission order and can be told to refuse
    requests for specific devices or scenes.
    """

    def __init__(self) -> None:
        self._requests: List[Tuple[str, Dict[str, Any]]] = []
        self._unreachable: Set[str] = set()

    def set_unreachable(self, target_id: str) -> None:
        """Make requests for a device or scene raise ActuatorUnavailableError."""
        self._unreachable.add(target_id)

    def get_requests(self) -> List[Tuple[str, Dict[str, Any]]]:
        """Get recorded requests as (kind, payload) tuples."""
        return self._requests.copy()

    def clear_requests(self) -> None:
        """Clear recorded requests."""
        self._requests.clear()

    # ActuatorAdapter implementation

    def set_device(self, device_id: str, on: bool) -> None:
        if device_id in self._unreachable:
            raise ActuatorUnavailableError(f"Device unreachable: {device_id}")
        self._requests.append(("set_device", {"device_id": device_id, "on": on}))

    def activate_scene(self, scene_id: str) -> None:
        if scene_id in self._unreachable:
            raise ActuatorUnavailableError(f"Scene unavailable: {scene_id}")
        self._requests.append(("activate_scene", {"scene_id": scene_id}))

    def notify(self, message: str) -> None:
        self._requests.append(("notify", {"message": message}))
