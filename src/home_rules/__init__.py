"""
home-rules: an Event-Condition-Action rule engine for home automation.

Rules are short sentences such as
"if living room temperature > 25 then living room ac on 21 cool".
The engine provides:
- Rule sentence parsing
- Observable sensor and anomaly Events
- Actions with idempotency and anti-flap protection
- Rule lifecycle management and bulk reload
"""

from home_rules.config import EngineConfig
from home_rules.core.context import EngineContext
from home_rules.core.errors import (
    DispatchError,
    EvaluationTypeError,
    EventValueError,
    ParseError,
    RuleEngineError,
    UnresolvedEventError,
)
from home_rules.actions import DeviceGateway, DispatchStatus, MockDeviceGateway
from home_rules.rules import RuleManager
from home_rules.engine import build_engine

__version__ = "0.1.0"

__all__ = [
    "EngineConfig",
    "EngineContext",
    "DispatchError",
    "EvaluationTypeError",
    "EventValueError",
    "ParseError",
    "RuleEngineError",
    "UnresolvedEventError",
    "DeviceGateway",
    "DispatchStatus",
    "MockDeviceGateway",
    "RuleManager",
    "build_engine",
]
