"""
Exception hierarchy for the rule engine.

Only ParseError and UnresolvedEventError ever reach the caller of
RuleManager.create_rule(). The others are raised and handled internally so
that one bad clause or one failing device never stops the rest of the engine.
"""

from typing import Any, Dict, Optional


class RuleEngineError(Exception):
    """Base exception for all rule engine errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        """
        Initialize rule engine exception.

        Args:
            message: Human-readable error message
            details: Optional dict with additional error context
        """
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ParseError(RuleEngineError):
    """Raised when a rule sentence or an action command cannot be parsed."""

    def __init__(self, message: str, position: Optional[int] = None, text: Optional[str] = None):
        details: Dict[str, Any] = {}
        if position is not None:
            details["position"] = position
        if text is not None:
            details["text"] = text
        super().__init__(message, details)
        self.position = position


class UnresolvedEventError(RuleEngineError):
    """Raised when a condition clause names an event that cannot be resolved."""

    def __init__(self, event_name: str, space_id: Optional[str] = None):
        details: Dict[str, Any] = {"event_name": event_name}
        if space_id:
            details["space_id"] = space_id
        super().__init__(f"Event not found: {event_name}", details)
        self.event_name = event_name


class EvaluationTypeError(RuleEngineError):
    """Raised when a clause compares values of incompatible types."""

    def __init__(self, message: str, left: Any = None, right: Any = None, operator: str = ""):
        super().__init__(
            message,
            {"left": repr(left), "right": repr(right), "operator": operator},
        )


class DispatchError(RuleEngineError):
    """Raised when the device gateway rejects or fails a command."""

    def __init__(self, message: str, action_key: str = "", original_error: Optional[Exception] = None):
        details: Dict[str, Any] = {}
        if action_key:
            details["action_key"] = action_key
        if original_error:
            details["original_error"] = str(original_error)
            details["original_error_type"] = type(original_error).__name__
        super().__init__(message, details)


class EventValueError(TypeError):
    """Raised when an event is updated with a value of the wrong shape."""

    def __init__(self, event_name: str, kind: str, value: Any):
        super().__init__(
            f"Event {event_name} ({kind}) cannot take value {value!r} "
            f"of type {type(value).__name__}"
        )
        self.event_name = event_name
        self.kind = kind
        self.value = value
