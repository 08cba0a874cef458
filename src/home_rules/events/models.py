"""
Event model.

An Event is a named, typed, observable signal with a current value. Rules
subscribe to the Events their clauses name and are re-evaluated on every
update, synchronously and in subscription order.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, UTC
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Type

from home_rules.core.errors import EventValueError
from home_rules.core.observer import Observable, Observer

if TYPE_CHECKING:
    from home_rules.rules.descriptions import AnomalyDescription

logger = logging.getLogger(__name__)


class EventKind(Enum):
    """Kinds of events the engine understands."""

    TEMPERATURE = "temperature"
    HUMIDITY = "humidity"
    MOTION = "motion"
    ANOMALY = "anomaly"


ANOMALY_TYPES = ("pointwise", "seasonality", "trend")
METRIC_TYPES = ("temperature", "humidity")


@dataclass
class AnomalyState:
    """Current value of an anomaly event."""

    detected: bool
    confidence: Optional[float] = None
    metric_type: Optional[str] = None
    anomaly_type: Optional[str] = None
    last_transition_at: Optional[datetime] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict."""
        return {
            "detected": self.detected,
            "confidence": self.confidence,
            "metric_type": self.metric_type,
            "anomaly_type": self.anomaly_type,
            "last_transition_at": (
                self.last_transition_at.isoformat() if self.last_transition_at else None
            ),
            "extra": dict(self.extra),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnomalyState":
        """
        Build a state from a feed entry or a serialized state.

        Keys other than the known fields are kept in extra.
        """
        known = {
            "detected",
            "confidence",
            "metric_type",
            "anomaly_type",
            "last_transition_at",
            "extra",
        }
        extra = dict(data.get("extra") or {})
        extra.update({k: v for k, v in data.items() if k not in known})

        transition = data.get("last_transition_at")
        if isinstance(transition, str):
            transition = datetime.fromisoformat(transition)

        return cls(
            detected=data["detected"],
            confidence=data.get("confidence"),
            metric_type=data.get("metric_type"),
            anomaly_type=data.get("anomaly_type"),
            last_transition_at=transition,
            extra=extra,
        )


class Event(Observable["Event"], ABC):
    """
    Base event.

    Subclasses set kind and implement validate() to enforce the value shape.
    """

    kind: EventKind

    def __init__(self, name: str, location: str = "") -> None:
        super().__init__()
        self.name = name
        self.location = location
        self.current_value: Any = None
        self.updated_at: Optional[datetime] = None

    @abstractmethod
    def validate(self, value: Any) -> Any:
        """
        Check and normalize a new value.

        Raises:
            EventValueError: If the value has the wrong shape for this kind
        """
        pass

    def update(self, value: Any, now: Optional[datetime] = None) -> List[Any]:
        """
        Store a new value and notify every observing Rule.

        Args:
            value: New reading
            now: Current time (for testing)

        Returns:
            Results of the observers, in subscription order

        Raises:
            EventValueError: If the value has the wrong shape
        """
        self.current_value = self.validate(value)
        self.updated_at = now or datetime.now(UTC)
        logger.debug(
            f"Event {self.name} updated to {self.current_value!r}, "
            f"notifying {len(self._observers)} observer(s)"
        )
        return self.notify(self)

    def add_observer(self, rule: Observer["Event"]) -> bool:
        return self.subscribe(rule)

    def remove_observer(self, rule: Observer["Event"]) -> bool:
        return self.unsubscribe(rule)

    @property
    def has_value(self) -> bool:
        return self.current_value is not None

    def comparison_value(self) -> Any:
        """Value that condition clauses compare against."""
        return self.current_value

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "kind": self.kind.value,
            "location": self.location,
            "value": self.current_value,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "observers": len(self._observers),
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"


class NumericEvent(Event):
    """Event whose value is a number (bools are rejected)."""

    def validate(self, value: Any) -> float:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise EventValueError(self.name, self.kind.value, value)
        return float(value)


class TemperatureEvent(NumericEvent):
    kind = EventKind.TEMPERATURE


class HumidityEvent(NumericEvent):
    kind = EventKind.HUMIDITY


class MotionEvent(Event):
    """Motion sensor; value is True while motion is reported."""

    kind = EventKind.MOTION

    def validate(self, value: Any) -> bool:
        if not isinstance(value, bool):
            raise EventValueError(self.name, self.kind.value, value)
        return value


EdgeHandler = Callable[["AnomalyEvent", AnomalyState], None]


class AnomalyEvent(Event):
    """
    Detected/not-detected signal produced by the anomaly detector.

    Clauses compare against the detected flag. A false->true transition is a
    rising edge: it runs the edge handlers (side notification path) and
    refreshes the bound AnomalyDescription. An unset state counts as false.
    """

    kind = EventKind.ANOMALY

    def __init__(
        self,
        name: str,
        location: str = "",
        anomaly_type: Optional[str] = None,
        metric_type: Optional[str] = None,
    ) -> None:
        super().__init__(name, location)
        self.anomaly_type = anomaly_type
        self.metric_type = metric_type
        self.description: Optional["AnomalyDescription"] = None
        self._edge_handlers: List[EdgeHandler] = []

    @property
    def detected(self) -> bool:
        return bool(self.current_value is not None and self.current_value.detected)

    def add_edge_handler(self, handler: EdgeHandler) -> None:
        if handler not in self._edge_handlers:
            self._edge_handlers.append(handler)

    def remove_edge_handler(self, handler: EdgeHandler) -> None:
        if handler in self._edge_handlers:
            self._edge_handlers.remove(handler)

    def validate(self, value: Any) -> AnomalyState:
        if isinstance(value, AnomalyState):
            state = value
        elif isinstance(value, dict) and isinstance(value.get("detected"), bool):
            state = AnomalyState.from_dict(value)
        else:
            raise EventValueError(self.name, self.kind.value, value)

        if state.metric_type is None:
            state.metric_type = self.metric_type
        if state.anomaly_type is None:
            state.anomaly_type = self.anomaly_type
        return state

    def comparison_value(self) -> Optional[bool]:
        if self.current_value is None:
            return None
        return self.current_value.detected

    def update(self, value: Any, now: Optional[datetime] = None) -> List[Any]:
        now = now or datetime.now(UTC)
        previous = self.current_value
        state = self.validate(value)
        was_detected = bool(previous is not None and previous.detected)

        if state.last_transition_at is None:
            if previous is None or previous.detected != state.detected:
                state.last_transition_at = now
            else:
                state.last_transition_at = previous.last_transition_at

        results = super().update(state, now=now)

        if state.detected and not was_detected:
            self._on_rising_edge(state, now)
        return results

    def update_anomaly_state(
        self,
        detected: bool,
        extra: Optional[Dict[str, Any]] = None,
        now: Optional[datetime] = None,
    ) -> bool:
        """
        Set the detected flag.

        Args:
            detected: Whether the anomaly is currently detected
            extra: Additional feed data (confidence is lifted out, the rest kept)
            now: Current time (for testing)

        Returns:
            True if this update was a rising edge
        """
        if not isinstance(detected, bool):
            raise EventValueError(self.name, self.kind.value, detected)

        extra = dict(extra or {})
        extra.pop("detected", None)
        confidence = extra.pop("confidence", None)
        rising = detected and not self.detected

        self.update(
            AnomalyState(
                detected=detected,
                confidence=confidence,
                metric_type=self.metric_type,
                anomaly_type=self.anomaly_type,
                extra=extra,
            ),
            now=now,
        )
        return rising

    def _on_rising_edge(self, state: AnomalyState, now: datetime) -> None:
        logger.info(f"Anomaly {self.name} detected")

        if self.description is not None:
            self.description.last_detected_at = now

        for handler in list(self._edge_handlers):
            try:
                handler(self, state)
            except Exception as e:
                logger.error(f"Error in edge handler for {self.name}: {e}", exc_info=True)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["value"] = self.current_value.to_dict() if self.current_value else None
        data["anomaly_type"] = self.anomaly_type
        data["metric_type"] = self.metric_type
        data["description"] = self.description.description if self.description else None
        return data


EVENT_CLASSES: Dict[EventKind, Type[Event]] = {
    EventKind.TEMPERATURE: TemperatureEvent,
    EventKind.HUMIDITY: HumidityEvent,
    EventKind.MOTION: MotionEvent,
    EventKind.ANOMALY: AnomalyEvent,
}


def create_event(kind: str, name: str, location: str = "") -> Event:
    """
    Instantiate an event of the given kind.

    Raises:
        ValueError: If kind is unknown
    """
    return EVENT_CLASSES[EventKind(kind.lower())](name, location)
