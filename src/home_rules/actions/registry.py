"""
Action registry.

Actions are keyed by kind_location_command-signature. The registry routes a
rule's action text to every Action that can handle it and wires those
Actions up as observers of the rule.
"""

import logging
import re
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional

from home_rules.core.registry import Registry

from .models import ACTION_CLASSES, KIND_ALIASES, Action, ActionCommand, ActionKind

if TYPE_CHECKING:
    from home_rules.core.context import EngineContext
    from home_rules.rules.rule import Rule

logger = logging.getLogger(__name__)

_KIND_SUFFIX_RE = re.compile(r"\s+(?:ac|air\s+conditioner|lights?)\s*$", re.IGNORECASE)


def location_from_name(name: str) -> str:
    """Derive a location from a device name ("Living Room AC" -> "Living Room")."""
    return _KIND_SUFFIX_RE.sub("", name.strip())


class ActionRegistry(Registry[Action]):
    """Canonical store of Actions, one per physical actuator."""

    label = "action"

    def __init__(self, context: "EngineContext") -> None:
        super().__init__()
        self._context = context

    def key_of(self, item: Action) -> str:
        return item.key

    def types_of(self, item: Action) -> Iterable[str]:
        return [item.kind.value]

    def locations_of(self, item: Action) -> Iterable[str]:
        return [item.location]

    def create(self, kind: str, name: str, location: Optional[str] = None) -> Action:
        """
        Create and register an Action.

        Args:
            kind: Kind or inventory type name ("ac", "light", "sms", ...)
            name: Device name
            location: Location; derived from the name when omitted

        Returns:
            The canonical Action

        Raises:
            ValueError: If kind is unknown
        """
        action_kind = KIND_ALIASES.get(kind.strip().lower())
        if action_kind is None:
            raise ValueError(f"Unknown action type: {kind}")

        if location is None:
            location = "" if action_kind == ActionKind.NOTIFICATION else location_from_name(name)

        action = ACTION_CLASSES[action_kind](name, location, self._context)
        return self.register(action)

    def load_inventory(self, records: Iterable[Dict[str, Any]]) -> List[Action]:
        """
        Create Actions from device inventory records.

        Each record has a name, a type and optionally a location. Records with
        an unknown type are skipped with a warning.
        """
        actions = []
        for record in records:
            try:
                actions.append(
                    self.create(record["type"], record["name"], record.get("location"))
                )
            except (KeyError, ValueError) as e:
                logger.warning(f"Skipping inventory record {record!r}: {e}")
        return actions

    # =========================================================================
    # Rule wiring
    # =========================================================================

    def find_for(self, action_text: str) -> List[Action]:
        """All Actions whose can_handle() accepts the text, in registration order."""
        return [action for action in self._items.values() if action.can_handle(action_text)]

    def prepare_commands(self, action_text: str) -> Dict[str, ActionCommand]:
        """
        Parse the action text for every Action that can handle it.

        Returns:
            Commands by action key

        Raises:
            ParseError: If any matching Action rejects the text
        """
        return {action.key: action.parse_command(action_text) for action in self.find_for(action_text)}

    def connect_rule(
        self,
        rule: "Rule",
        commands: Optional[Dict[str, ActionCommand]] = None,
    ) -> List[Action]:
        """
        Subscribe every matching Action to a rule.

        Returns:
            The connected Actions
        """
        commands = commands or {}
        actions = self.find_for(rule.action_text)
        for action in actions:
            rule.subscribe(action)
            action.attach_rule(rule.id, commands.get(action.key))

        if not actions:
            logger.warning(f"No action can handle '{rule.action_text}' (rule {rule.id})")
        else:
            logger.debug(f"Rule {rule.id} connected to {[a.key for a in actions]}")
        return actions

    def disconnect_rule(self, rule: "Rule") -> None:
        """Unsubscribe every Action from a rule."""
        for action in rule.observers:
            rule.unsubscribe(action)
            if isinstance(action, Action):
                action.detach_rule(rule.id)

    # =========================================================================
    # State
    # =========================================================================

    def dump_state(self) -> Dict[str, Any]:
        """Export every Action's dispatched-state cache."""
        return {
            "version": 1,
            "actions": {key: action.dump_state() for key, action in self._items.items()},
        }

    def restore_state(self, state: Dict[str, Any]) -> None:
        """Restore dispatched-state caches; unknown keys are ignored."""
        if state.get("version") != 1:
            logger.warning("Unknown state version, skipping restore")
            return

        for key, action_state in state.get("actions", {}).items():
            action = self._items.get(key)
            if action is None:
                logger.debug(f"No action {key} to restore")
                continue
            action.restore_state(action_state)
