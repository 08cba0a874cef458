"""
Events: named, typed, observable signals and their registry.
"""

from .models import (
    AnomalyEvent,
    AnomalyState,
    EdgeHandler,
    Event,
    EventKind,
    HumidityEvent,
    MotionEvent,
    NumericEvent,
    TemperatureEvent,
    create_event,
)
from .registry import EventRegistry, parse_sensor_name

__all__ = [
    "AnomalyEvent",
    "AnomalyState",
    "EdgeHandler",
    "Event",
    "EventKind",
    "HumidityEvent",
    "MotionEvent",
    "NumericEvent",
    "TemperatureEvent",
    "create_event",
    "EventRegistry",
    "parse_sensor_name",
]
