"""
Anomaly descriptions.

Users often write rules against a description they gave an anomaly
("fridge running warm") rather than the machine-generated event name. The
lookup maps such text to the canonical anomaly event name. Storage is the
host's concern; InMemoryDescriptionLookup is enough for tests and demos.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class AnomalyDescription:
    """A user-provided description of an anomaly event."""

    raw_event_name: str
    description: str
    space_id: Optional[str] = None
    room_id: Optional[str] = None
    location: str = ""
    metric_type: Optional[str] = None
    anomaly_type: Optional[str] = None
    active: bool = True
    last_detected_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict."""
        return {
            "raw_event_name": self.raw_event_name,
            "description": self.description,
            "space_id": self.space_id,
            "room_id": self.room_id,
            "location": self.location,
            "metric_type": self.metric_type,
            "anomaly_type": self.anomaly_type,
            "active": self.active,
            "last_detected_at": (
                self.last_detected_at.isoformat() if self.last_detected_at else None
            ),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnomalyDescription":
        """Deserialize from dict."""
        last = data.get("last_detected_at")
        return cls(
            raw_event_name=data["raw_event_name"],
            description=data["description"],
            space_id=data.get("space_id"),
            room_id=data.get("room_id"),
            location=data.get("location", ""),
            metric_type=data.get("metric_type"),
            anomaly_type=data.get("anomaly_type"),
            active=data.get("active", True),
            last_detected_at=datetime.fromisoformat(last) if last else None,
        )


def _normalize(text: str) -> str:
    return " ".join(text.lower().split())


class AnomalyDescriptionLookup(ABC):
    """Resolves free-text descriptions to anomaly descriptions."""

    @abstractmethod
    def resolve_description(
        self, text: str, space_id: Optional[str] = None
    ) -> Optional[AnomalyDescription]:
        """
        Find the active description matching text.

        Args:
            text: Description as written in a rule
            space_id: Restrict to one space (optional)

        Returns:
            The matching description, or None
        """
        pass


class InMemoryDescriptionLookup(AnomalyDescriptionLookup):
    """Description lookup backed by a list."""

    def __init__(self, descriptions: Optional[Iterable[AnomalyDescription]] = None) -> None:
        self._descriptions: List[AnomalyDescription] = list(descriptions or [])

    def add(self, description: AnomalyDescription) -> None:
        self._descriptions.append(description)

    def remove(self, raw_event_name: str, space_id: Optional[str] = None) -> int:
        """
        Remove descriptions of an event.

        Returns:
            Number of descriptions removed
        """
        before = len(self._descriptions)
        self._descriptions = [
            d
            for d in self._descriptions
            if not (d.raw_event_name == raw_event_name and (space_id is None or d.space_id == space_id))
        ]
        return before - len(self._descriptions)

    def get_all(self, space_id: Optional[str] = None) -> List[AnomalyDescription]:
        return [d for d in self._descriptions if space_id is None or d.space_id == space_id]

    def resolve_description(
        self, text: str, space_id: Optional[str] = None
    ) -> Optional[AnomalyDescription]:
        wanted = _normalize(text)
        for description in self._descriptions:
            if not description.active:
                continue
            if space_id is not None and description.space_id not in (None, space_id):
                continue
            if _normalize(description.description) == wanted:
                logger.debug(f"Description '{text}' resolved to {description.raw_event_name}")
                return description
        return None
