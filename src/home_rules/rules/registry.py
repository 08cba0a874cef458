"""
Rule registry, keyed by rule id.

Type and location lookups go through the rule's bound Events, so
get_by_type("temperature") returns the rules that watch a temperature.
"""

from typing import Iterable, List

from home_rules.core.registry import Registry

from .rule import Rule


class RuleRegistry(Registry[Rule]):
    """Canonical store of Rules."""

    label = "rule"

    def key_of(self, item: Rule) -> str:
        return item.id

    def types_of(self, item: Rule) -> Iterable[str]:
        return [event.kind.value for event in item.events]

    def locations_of(self, item: Rule) -> Iterable[str]:
        return [event.location for event in item.events]

    def get_active(self) -> List[Rule]:
        return [rule for rule in self._items.values() if rule.active]

    def get_by_event(self, event_name: str) -> List[Rule]:
        """Rules with a clause bound to the named Event."""
        return [
            rule
            for rule in self._items.values()
            if any(event.name == event_name for event in rule.events)
        ]
