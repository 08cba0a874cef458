"""
Device gateway interface for Actions.

The gateway is the boundary between the rule engine and the hardware or
messaging services it drives. The host application provides a concrete
implementation; the engine only needs a success/failure signal.

Design Principle:
    The gateway is intentionally minimal. Wire protocols, retries and
    device discovery belong to the host. The engine decides *whether* to
    send a command; the gateway only sends it.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, UTC
from typing import Any, Dict, List, Optional, Tuple, Union


class DeviceGateway(ABC):
    """
    Abstract interface for actuator operations.

    - set_climate_state: Drive an AC unit
    - set_light_state: Switch lights
    - send_notification: Deliver an SMS/WhatsApp style message
    - get_current_time: Clock used for cooldowns and timestamps
    """

    @abstractmethod
    def set_climate_state(self, location: str, state: Dict[str, Any]) -> bool:
        """
        Set the climate unit at a location.

        Args:
            location: Location name (e.g., "living room")
            state: {"on": bool, "temperature": number?, "mode": str?}

        Returns:
            True if the device accepted the command, False otherwise
        """
        pass

    @abstractmethod
    def set_light_state(self, location: str, on: bool) -> bool:
        """
        Switch the lights at a location.

        Returns:
            True if the device accepted the command, False otherwise
        """
        pass

    @abstractmethod
    def send_notification(self, address: str, message: str) -> bool:
        """
        Send a message.

        Args:
            address: Phone number or other recipient address
            message: Message body

        Returns:
            True if the message was accepted for delivery
        """
        pass

    @abstractmethod
    def get_current_time(self) -> datetime:
        """
        Get current time.

        Returns:
            Current datetime (timezone-aware)
        """
        pass


Failure = Union[bool, Exception]


class MockDeviceGateway(DeviceGateway):
    """
    Mock gateway for testing.

    Records every call and can be told to fail a method, either by returning
    False or by raising a given exception:

        gateway.set_fail("set_climate_state", ConnectionError("unreachable"))
    """

    def __init__(self) -> None:
        self._calls: List[Tuple[str, Tuple[Any, ...]]] = []
        self._failures: Dict[str, Failure] = {}
        self._current_time: Optional[datetime] = None

    def set_current_time(self, dt: datetime) -> None:
        """Set current time for testing."""
        self._current_time = dt

    def advance(self, seconds: float) -> datetime:
        """Move the mock clock forward."""
        self._current_time = self.get_current_time() + timedelta(seconds=seconds)
        return self._current_time

    def set_fail(self, method: str, failure: Failure = True) -> None:
        """Make a gateway method fail until clear_failures() is called."""
        self._failures[method] = failure

    def clear_failures(self) -> None:
        self._failures.clear()

    def get_calls(self, method: Optional[str] = None) -> List[Tuple[str, Tuple[Any, ...]]]:
        """Get recorded calls, optionally only those of one method."""
        return [c for c in self._calls if method is None or c[0] == method]

    def clear_calls(self) -> None:
        """Clear recorded calls."""
        self._calls.clear()

    def _call(self, method: str, *args: Any) -> bool:
        self._calls.append((method, args))
        failure = self._failures.get(method)
        if isinstance(failure, Exception):
            raise failure
        return not failure

    # DeviceGateway implementation

    def set_climate_state(self, location: str, state: Dict[str, Any]) -> bool:
        return self._call("set_climate_state", location, dict(state))

    def set_light_state(self, location: str, on: bool) -> bool:
        return self._call("set_light_state", location, on)

    def send_notification(self, address: str, message: str) -> bool:
        return self._call("send_notification", address, message)

    def get_current_time(self) -> datetime:
        if self._current_time:
            return self._current_time
        return datetime.now(UTC)
