"""
Actions: actuators driven by fired rules, with idempotency and anti-flap.
"""

from .models import (
    Action,
    ActionCommand,
    ActionKind,
    ActionResult,
    ClimateAction,
    DispatchStatus,
    LightAction,
    NotificationAction,
)
from .gateway import DeviceGateway, MockDeviceGateway
from .arbitration import ArbitrationDecision, ConflictArbiter, IntentRecord
from .registry import ActionRegistry, location_from_name

__all__ = [
    "Action",
    "ActionCommand",
    "ActionKind",
    "ActionResult",
    "ClimateAction",
    "DispatchStatus",
    "LightAction",
    "NotificationAction",
    "DeviceGateway",
    "MockDeviceGateway",
    "ArbitrationDecision",
    "ConflictArbiter",
    "IntentRecord",
    "ActionRegistry",
    "location_from_name",
]
