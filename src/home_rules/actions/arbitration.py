"""
Process-wide conflict arbitration for actuator classes.

One last-intent record is kept per actuator class (e.g. "climate"). Checking
and updating a record happens atomically under a single lock, so two rules
racing to drive the same kind of unit cannot both win.
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, Optional, Tuple

logger = logging.getLogger(__name__)


class ArbitrationDecision(Enum):
    """Outcome of asking the arbiter for permission to dispatch."""

    ALLOW = "allow"
    CONFLICT = "conflict"  # Different intent inside the conflict cooldown
    RATE_LIMITED = "rate_limited"  # Same intent inside the repeat cooldown


@dataclass(frozen=True)
class IntentRecord:
    """Last intent dispatched for an actuator class."""

    intent: str
    action_key: str
    timestamp: datetime


@dataclass(frozen=True)
class Reservation:
    """Handle returned by acquire(), used to roll back a failed dispatch."""

    actuator_class: str
    record: IntentRecord
    previous: Optional[IntentRecord]


class ConflictArbiter:
    """
    Guards actuator classes against flapping.

    A different intent less than conflict_cooldown_seconds after the last
    one is a conflict. The same intent less than repeat_cooldown_seconds
    after the last one is rate limited.
    """

    def __init__(
        self,
        conflict_cooldown_seconds: float = 10.0,
        repeat_cooldown_seconds: float = 2.0,
    ) -> None:
        self.conflict_cooldown_seconds = conflict_cooldown_seconds
        self.repeat_cooldown_seconds = repeat_cooldown_seconds
        self._lock = threading.Lock()
        self._records: Dict[str, IntentRecord] = {}

    def acquire(
        self,
        actuator_class: str,
        intent: str,
        action_key: str,
        now: datetime,
    ) -> Tuple[ArbitrationDecision, Optional[Reservation]]:
        """
        Check an intent and record it if allowed.

        Args:
            actuator_class: Class of actuator (e.g. "climate")
            intent: Command signature about to be sent (e.g. "on 21 cool")
            action_key: Key of the requesting Action
            now: Current time

        Returns:
            The decision, and a Reservation when the decision is ALLOW
        """
        with self._lock:
            last = self._records.get(actuator_class)
            if last is not None:
                elapsed = (now - last.timestamp).total_seconds()
                if last.intent != intent and elapsed < self.conflict_cooldown_seconds:
                    logger.warning(
                        f"Conflicting {actuator_class} intent '{intent}' from {action_key}: "
                        f"'{last.intent}' was sent {elapsed:.1f}s ago"
                    )
                    return ArbitrationDecision.CONFLICT, None
                if last.intent == intent and elapsed < self.repeat_cooldown_seconds:
                    logger.debug(
                        f"Repeated {actuator_class} intent '{intent}' from {action_key} "
                        f"after {elapsed:.1f}s"
                    )
                    return ArbitrationDecision.RATE_LIMITED, None

            record = IntentRecord(intent=intent, action_key=action_key, timestamp=now)
            self._records[actuator_class] = record
            return ArbitrationDecision.ALLOW, Reservation(actuator_class, record, last)

    def release(self, reservation: Reservation) -> None:
        """Undo a reservation whose dispatch failed, unless it was superseded."""
        with self._lock:
            current = self._records.get(reservation.actuator_class)
            if current is not reservation.record:
                return
            if reservation.previous is None:
                del self._records[reservation.actuator_class]
            else:
                self._records[reservation.actuator_class] = reservation.previous

    def last_intent(self, actuator_class: str) -> Optional[IntentRecord]:
        with self._lock:
            return self._records.get(actuator_class)

    def clear(self) -> None:
        with self._lock:
            self._records.clear()
