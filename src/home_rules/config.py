"""
Engine configuration.

A single EngineConfig is shared by every component through the EngineContext.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

CURRENT_CONFIG_VERSION = 1

DEFAULT_CLIMATE_MODES = ("cool", "heat", "fan", "dry", "auto")


@dataclass
class EngineConfig:
    """Tunables for arbitration, notifications and dispatch."""

    version: int = CURRENT_CONFIG_VERSION
    conflict_cooldown_seconds: float = 10.0  # Different intent blocked this long
    repeat_cooldown_seconds: float = 2.0  # Same intent rate limit
    notification_repeat_seconds: float = 300.0  # Identical notification is a no-op this long
    conflict_kinds: Tuple[str, ...] = ("climate",)
    climate_modes: Tuple[str, ...] = DEFAULT_CLIMATE_MODES
    notification_prefix: str = "ALERT"
    default_notification_address: Optional[str] = None
    anomaly_alert_address: Optional[str] = None  # Rising-edge alerts go here when set
    max_dispatch_workers: int = 4
    history_size: int = 100
    extra: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for name in (
            "conflict_cooldown_seconds",
            "repeat_cooldown_seconds",
            "notification_repeat_seconds",
        ):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0, got {getattr(self, name)}")
        if self.max_dispatch_workers < 1:
            raise ValueError(f"max_dispatch_workers must be >= 1, got {self.max_dispatch_workers}")
        if self.history_size < 1:
            raise ValueError(f"history_size must be >= 1, got {self.history_size}")
        self.conflict_kinds = tuple(k.lower() for k in self.conflict_kinds)
        self.climate_modes = tuple(m.lower() for m in self.climate_modes)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict."""
        return {
            "version": self.version,
            "conflict_cooldown_seconds": self.conflict_cooldown_seconds,
            "repeat_cooldown_seconds": self.repeat_cooldown_seconds,
            "notification_repeat_seconds": self.notification_repeat_seconds,
            "conflict_kinds": list(self.conflict_kinds),
            "climate_modes": list(self.climate_modes),
            "notification_prefix": self.notification_prefix,
            "default_notification_address": self.default_notification_address,
            "anomaly_alert_address": self.anomaly_alert_address,
            "max_dispatch_workers": self.max_dispatch_workers,
            "history_size": self.history_size,
            "extra": dict(self.extra),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EngineConfig":
        """Deserialize from dict."""
        return cls(
            version=data.get("version", CURRENT_CONFIG_VERSION),
            conflict_cooldown_seconds=float(data.get("conflict_cooldown_seconds", 10.0)),
            repeat_cooldown_seconds=float(data.get("repeat_cooldown_seconds", 2.0)),
            notification_repeat_seconds=float(data.get("notification_repeat_seconds", 300.0)),
            conflict_kinds=tuple(data.get("conflict_kinds", ("climate",))),
            climate_modes=tuple(data.get("climate_modes", DEFAULT_CLIMATE_MODES)),
            notification_prefix=data.get("notification_prefix", "ALERT"),
            default_notification_address=data.get("default_notification_address"),
            anomaly_alert_address=data.get("anomaly_alert_address"),
            max_dispatch_workers=int(data.get("max_dispatch_workers", 4)),
            history_size=int(data.get("history_size", 100)),
            extra=data.get("extra", {}),
        )


def config_schema() -> Dict[str, Any]:
    """
    Get configuration schema for the engine.

    Returns a JSON-schema-like structure for UI rendering.
    """
    return {
        "type": "object",
        "properties": {
            "version": {
                "type": "integer",
                "title": "Config Version",
                "readOnly": True,
            },
            "conflict_cooldown_seconds": {
                "type": "number",
                "title": "Conflict Cooldown",
                "description": "Seconds a different command to the same actuator class is suppressed",
                "minimum": 0,
                "default": 10.0,
            },
            "repeat_cooldown_seconds": {
                "type": "number",
                "title": "Repeat Cooldown",
                "description": "Seconds an identical command is rate limited",
                "minimum": 0,
                "default": 2.0,
            },
            "notification_repeat_seconds": {
                "type": "number",
                "title": "Notification Repeat Interval",
                "description": "Identical notifications inside this window are skipped",
                "minimum": 0,
                "default": 300.0,
            },
            "conflict_kinds": {
                "type": "array",
                "title": "Conflict-Arbitrated Actuators",
                "items": {"type": "string", "enum": ["climate", "light", "notification"]},
                "default": ["climate"],
            },
            "climate_modes": {
                "type": "array",
                "title": "Climate Modes",
                "items": {"type": "string"},
                "default": list(DEFAULT_CLIMATE_MODES),
            },
            "notification_prefix": {
                "type": "string",
                "title": "Notification Prefix",
                "default": "ALERT",
            },
            "default_notification_address": {
                "type": ["string", "null"],
                "title": "Default Notification Address",
            },
            "anomaly_alert_address": {
                "type": ["string", "null"],
                "title": "Anomaly Alert Address",
                "description": "Receives a message when an anomaly starts being detected",
            },
            "max_dispatch_workers": {
                "type": "integer",
                "title": "Dispatch Workers",
                "minimum": 1,
                "default": 4,
            },
            "history_size": {
                "type": "integer",
                "title": "History Size",
                "minimum": 1,
                "default": 100,
            },
        },
        "required": ["version"],
    }
