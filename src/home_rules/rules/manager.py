"""
RuleManager - orchestrates rule lifecycle and exposes the engine's API.

Creating a rule parses the sentence, resolves every event it names, parses
the action text for every Action that can handle it, and only then registers
and wires the Rule. Any failure before that point leaves nothing behind.
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional

from home_rules.actions.models import Action, ActionResult
from home_rules.core.errors import RuleEngineError, UnresolvedEventError
from home_rules.events.models import AnomalyEvent, Event
from home_rules.parser import parse_rule

from .descriptions import AnomalyDescription
from .rule import Rule, RuleEvaluation

if TYPE_CHECKING:
    from home_rules.core.context import EngineContext

logger = logging.getLogger(__name__)

STATE_VERSION = 1


@dataclass
class ReloadResult:
    """Outcome of reload_all()."""

    loaded: List[str] = field(default_factory=list)  # Rule ids, in record order
    failed: List[Dict[str, Any]] = field(default_factory=list)  # {"text", "error"}


class RuleManager:
    """
    Entry point for rule CRUD, event injection and introspection.

    All state lives in the EngineContext passed in.
    """

    def __init__(self, context: "EngineContext") -> None:
        self._context = context

    @property
    def context(self) -> "EngineContext":
        return self._context

    # =========================================================================
    # Rule lifecycle
    # =========================================================================

    def create_rule(
        self,
        text: str,
        active: bool = True,
        space_id: Optional[str] = None,
        rule_id: Optional[str] = None,
    ) -> str:
        """
        Create a rule from a sentence.

        Args:
            text: Rule sentence ("if ... then ...")
            active: Start attached to its events
            space_id: Space used to scope description lookups
            rule_id: Id to use instead of a generated one

        Returns:
            The rule id

        Raises:
            ParseError: If the sentence or its action text is malformed
            UnresolvedEventError: If a clause names an unknown event
            ValueError: If rule_id is already taken
        """
        parsed = parse_rule(text)

        events: Dict[str, Event] = {}
        bindings: List[tuple] = []
        for name in parsed.event_names:
            event, description = self._resolve_event(name, space_id)
            events[name] = event
            if description is not None:
                bindings.append((event, description))

        commands = self._context.actions.prepare_commands(parsed.action_text)

        rule_id = rule_id or f"rule_{uuid.uuid4().hex[:12]}"
        if rule_id in self._context.rules:
            raise ValueError(f"Rule {rule_id} already exists")

        for event, description in bindings:
            event.description = description

        rule = Rule(rule_id, text, parsed, events, self._context, space_id=space_id)
        self._context.rules.register(rule)
        self._context.actions.connect_rule(rule, commands)
        if active:
            rule.activate()

        logger.info(f"Created rule {rule_id}: {parsed.to_canonical()}")
        return rule_id

    def _resolve_event(
        self, name: str, space_id: Optional[str]
    ) -> tuple[Event, Optional[AnomalyDescription]]:
        event = self._context.events.resolve(name)
        if event is not None:
            return event, None

        description = self._context.descriptions.resolve_description(name, space_id)
        if description is not None:
            event = self._context.events.resolve(description.raw_event_name)
            if isinstance(event, AnomalyEvent):
                logger.debug(f"Resolved '{name}' via description to {event.name}")
                return event, description
            if event is not None:
                return event, None

        raise UnresolvedEventError(name, space_id)

    def delete_rule(self, rule_id: str) -> bool:
        """
        Delete a rule, detaching it from its Events and Actions.

        Returns:
            True if the rule existed
        """
        rule = self._context.rules.get(rule_id)
        if rule is None:
            logger.warning(f"Rule {rule_id} not found for delete")
            return False

        rule.deactivate()
        self._context.actions.disconnect_rule(rule)
        self._context.rules.unregister(rule_id)
        logger.info(f"Deleted rule {rule_id}")
        return True

    def set_active(self, rule_id: str, active: bool) -> bool:
        """
        Activate or deactivate a rule.

        Returns:
            True if the rule existed
        """
        rule = self._context.rules.get(rule_id)
        if rule is None:
            logger.warning(f"Rule {rule_id} not found for set_active")
            return False

        if active and not rule.active:
            rule.activate()
        elif not active and rule.active:
            rule.deactivate()
        return True

    def get_rule(self, rule_id: str) -> Optional[Rule]:
        return self._context.rules.get(rule_id)

    def reload_all(self, records: Iterable[Dict[str, Any]]) -> ReloadResult:
        """
        Replace every rule with the given authoritative list.

        Each record has a text and optionally active, space_id and id.
        Records that fail to create are reported, not raised.
        """
        for rule in self._context.rules.get_all():
            self.delete_rule(rule.id)

        result = ReloadResult()
        for record in records:
            text = record.get("text", "")
            try:
                rule_id = self.create_rule(
                    text,
                    active=record.get("active", True),
                    space_id=record.get("space_id"),
                    rule_id=record.get("id"),
                )
            except (RuleEngineError, ValueError) as e:
                logger.error(f"Failed to load rule '{text}': {e}")
                result.failed.append({"text": text, "error": str(e)})
                continue
            result.loaded.append(rule_id)

        logger.info(f"Reloaded rules: {len(result.loaded)} loaded, {len(result.failed)} failed")
        return result

    # =========================================================================
    # Event injection
    # =========================================================================

    def _get_event(self, name: str) -> Event:
        event = self._context.events.resolve(name)
        if event is None:
            raise UnresolvedEventError(name)
        return event

    def update_event_value(self, name: str, value: Any) -> List[RuleEvaluation]:
        """
        Push a value into an Event (manual or test injection).

        A bare bool sent to an anomaly event sets its detected flag.

        Returns:
            Evaluations of the rules observing the event

        Raises:
            UnresolvedEventError: If the event does not exist
            EventValueError: If the value has the wrong shape
        """
        event = self._get_event(name)
        if isinstance(event, AnomalyEvent) and isinstance(value, bool):
            value = {"detected": value}
        return event.update(value, now=self._context.now())

    def trigger_anomaly(
        self,
        name: str,
        detected: bool = True,
        extra: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        Set an anomaly event's detected flag.

        Returns:
            True if this was a rising edge

        Raises:
            UnresolvedEventError: If no anomaly event has that name
        """
        event = self._get_event(name)
        if not isinstance(event, AnomalyEvent):
            raise UnresolvedEventError(name)
        return event.update_anomaly_state(detected, extra, now=self._context.now())

    def process_sensor_reading(self, kind: str, location: str, value: Any) -> int:
        """
        Route a reading to the events of one kind at a location.

        Returns:
            Number of events updated
        """
        updated = 0
        for event in self._context.events.get_by_location(location):
            if event.kind.value == kind.lower():
                event.update(value, now=self._context.now())
                updated += 1
        if not updated:
            logger.debug(f"No {kind} event at {location}")
        return updated

    def execute_action_text(self, action_text: str) -> List[ActionResult]:
        """
        Run an action text directly, without a rule.

        Goes through the normal dispatch pipeline synchronously.

        Raises:
            ParseError: If a matching Action rejects the text
        """
        actions = self._context.actions.find_for(action_text)
        if not actions:
            logger.warning(f"No action can handle '{action_text}'")
            return []

        results = []
        for action in actions:
            command = action.parse_command(action_text)
            results.append(action.dispatch(action.build_request(command)))
        return results

    # =========================================================================
    # Introspection
    # =========================================================================

    def list_events(self) -> List[Event]:
        return self._context.events.get_all()

    def list_actions(self) -> List[Action]:
        return self._context.actions.get_all()

    def list_rules(self) -> List[Rule]:
        return self._context.rules.get_all()

    def get_history(
        self,
        rule_id: Optional[str] = None,
        action_key: Optional[str] = None,
        limit: int = 20,
    ) -> List[ActionResult]:
        """Dispatch history, newest first."""
        return self._context.get_history(rule_id=rule_id, action_key=action_key, limit=limit)

    # =========================================================================
    # State Export/Import
    # =========================================================================

    def export_state(self) -> Dict[str, Any]:
        """Export rules, action caches and history for persistence."""
        return {
            "version": STATE_VERSION,
            "rules": [
                {
                    "id": rule.id,
                    "text": rule.text,
                    "active": rule.active,
                    "space_id": rule.space_id,
                }
                for rule in self._context.rules.get_all()
            ],
            "actions": self._context.actions.dump_state(),
            "history": self._context.export_history(),
        }

    def restore_state(self, state: Dict[str, Any]) -> Optional[ReloadResult]:
        """
        Restore state exported by export_state().

        Rules are recreated with reload_all(); action caches and history are
        restored afterwards.
        """
        if state.get("version") != STATE_VERSION:
            logger.warning("Unknown state version, skipping restore")
            return None

        result = self.reload_all(state.get("rules", []))
        self._context.actions.restore_state(state.get("actions", {}))
        self._context.restore_history(state.get("history", []))
        return result
