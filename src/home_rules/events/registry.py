"""
Event registry.

Events are keyed by name. Besides the generic registry operations it knows
how to create events from sensor names ("Living Room Temperature") and from
the anomaly detector feed, and how to resolve the loosely written event names
found in rule sentences.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from home_rules.core.registry import Registry

from .models import (
    ANOMALY_TYPES,
    METRIC_TYPES,
    AnomalyEvent,
    EdgeHandler,
    Event,
    EventKind,
    EVENT_CLASSES,
)

logger = logging.getLogger(__name__)


def parse_sensor_name(name: str) -> Optional[Tuple[str, EventKind]]:
    """
    Split a sensor name into location and kind.

    "Living Room Temperature" -> ("Living Room", EventKind.TEMPERATURE).
    Returns None when the last word is not a known kind or there is no
    location part. Anomaly names are not handled here.
    """
    location, _, last = name.strip().rpartition(" ")
    if not location or "anomaly" in name.lower():
        return None
    try:
        kind = EventKind(last.lower())
    except ValueError:
        return None
    if kind == EventKind.ANOMALY:
        return None
    return location.strip(), kind


class EventRegistry(Registry[Event]):
    """Canonical store of Events."""

    label = "event"

    def __init__(self) -> None:
        super().__init__()
        self._edge_handler: Optional[EdgeHandler] = None

    def key_of(self, item: Event) -> str:
        return item.name

    def types_of(self, item: Event) -> Iterable[str]:
        return [item.kind.value]

    def locations_of(self, item: Event) -> Iterable[str]:
        return [item.location]

    def register(self, item: Event) -> Event:
        event = super().register(item)
        if event is item and isinstance(event, AnomalyEvent) and self._edge_handler:
            event.add_edge_handler(self._edge_handler)
        return event

    # =========================================================================
    # Lookup
    # =========================================================================

    def get_event(self, name: str) -> Optional[Event]:
        """Exact, then case-insensitive lookup by name."""
        event = self.get(name)
        if event is not None:
            return event

        wanted = name.strip().lower()
        for key, candidate in self._items.items():
            if key.lower() == wanted:
                logger.debug(f"Case-insensitive match for event: {name} -> {key}")
                return candidate
        return None

    def find_anomaly_by_partial_name(self, name: str) -> Optional[AnomalyEvent]:
        """
        Match a loosely written anomaly name against registered anomaly events.

        "living room temperature pointwise anomaly" matches an anomaly event
        whose name contains the location, metric and anomaly type words.
        """
        words = name.strip().lower().split()
        metric = next((w for w in words if w in METRIC_TYPES), "")
        anomaly_type = next((w for w in words if w in ANOMALY_TYPES), "")
        location = " ".join(
            w for w in words if w not in (metric, anomaly_type, "anomaly", "anomalies")
        )

        if not (location or metric or anomaly_type):
            return None

        for key, event in self._items.items():
            if not isinstance(event, AnomalyEvent):
                continue
            haystack = f"{key} {event.location}".lower().replace("_", " ")
            if location and location not in haystack:
                continue
            if metric and metric not in haystack and metric != (event.metric_type or ""):
                continue
            if anomaly_type and anomaly_type not in haystack and anomaly_type != (
                event.anomaly_type or ""
            ):
                continue
            logger.debug(f"Partial anomaly match: {name} -> {key}")
            return event
        return None

    def resolve(self, name: str) -> Optional[Event]:
        """
        Resolve an event name as written in a rule.

        Tries an exact match, then a case-insensitive one, then a partial
        match against anomaly events when the name looks like an anomaly.
        """
        event = self.get_event(name)
        if event is not None:
            return event

        lowered = name.lower()
        if "anomaly" in lowered or any(t in lowered for t in ANOMALY_TYPES):
            return self.find_anomaly_by_partial_name(name)
        return None

    # =========================================================================
    # Ingestion
    # =========================================================================

    def set_edge_handler(self, handler: Optional[EdgeHandler]) -> None:
        """Attach a rising-edge handler to every current and future anomaly event."""
        previous = self._edge_handler
        self._edge_handler = handler
        for event in self._items.values():
            if not isinstance(event, AnomalyEvent):
                continue
            if previous is not None:
                event.remove_edge_handler(previous)
            if handler is not None:
                event.add_edge_handler(handler)

    def ingest_sensor_names(self, names: Iterable[str]) -> List[Event]:
        """
        Create events for sensor names such as "Kitchen Humidity".

        Names that cannot be parsed are skipped with a warning.

        Returns:
            Canonical events for the accepted names
        """
        events = []
        for name in names:
            parts = parse_sensor_name(name)
            if parts is None:
                logger.warning(f"Could not parse event name: {name}")
                continue
            location, kind = parts
            events.append(self.register(EVENT_CLASSES[kind](name, location)))
        return events

    def ingest_anomaly_feed(
        self,
        data: Dict[str, Dict[str, Dict[str, Any]]],
        now: Optional[datetime] = None,
    ) -> List[AnomalyEvent]:
        """
        Create or update anomaly events from the detector feed.

        The feed maps "<location>_<metric>" to anomaly types, each carrying at
        least a name and a detected flag::

            {"living_room_temperature": {"pointwise": {"name": "...", "detected": true}}}

        Returns:
            Events that were created or updated
        """
        touched: List[AnomalyEvent] = []
        for metric_key, anomaly_types in data.items():
            location_part, _, metric_type = metric_key.rpartition("_")
            location = location_part.replace("_", " ")

            for anomaly_type, info in (anomaly_types or {}).items():
                if not info or not info.get("name"):
                    logger.error(
                        f"Missing name in anomaly feed entry: {metric_key}, type: {anomaly_type}"
                    )
                    continue

                event_name = info["name"]
                event = self.get_event(event_name)
                if event is None:
                    event = self.register(
                        AnomalyEvent(event_name, location, anomaly_type, metric_type)
                    )
                    logger.info(f"Created anomaly event: {event_name}")
                elif not isinstance(event, AnomalyEvent):
                    logger.warning(f"Event {event_name} exists and is not an anomaly event")
                    continue

                extra = {k: v for k, v in info.items() if k != "name"}
                event.update_anomaly_state(info.get("detected") is True, extra, now=now)
                touched.append(event)

        detected = sum(1 for e in touched if e.detected)
        logger.info(f"Anomaly feed applied: {len(touched)} events, {detected} detected")
        return touched
