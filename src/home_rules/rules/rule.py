"""
Rule: a condition over Events bound to an action text.

A Rule observes every Event its clauses name. When one of them updates, the
Rule re-evaluates; on a true result it hands a RuleTrigger to each observing
Action through the dispatch executor and returns without waiting.
"""

import logging
from concurrent.futures import Future
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from home_rules.core.errors import EvaluationTypeError
from home_rules.core.observer import Observable, Observer
from home_rules.core.values import compare
from home_rules.events.models import Event
from home_rules.parser import ConditionClause, JoinOperator, ParsedRule

if TYPE_CHECKING:
    from home_rules.core.context import EngineContext

logger = logging.getLogger(__name__)


@dataclass
class RuleTrigger:
    """Context handed to Actions when a rule fires."""

    rule_id: str
    rule_text: str
    action_text: str
    condition_text: str
    event_name: Optional[str]
    event_value: Any
    clause_values: Dict[str, Any]
    timestamp: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rule_id": self.rule_id,
            "rule_text": self.rule_text,
            "action_text": self.action_text,
            "condition_text": self.condition_text,
            "event_name": self.event_name,
            "event_value": self.event_value,
            "clause_values": dict(self.clause_values),
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class RuleEvaluation:
    """Result of evaluating a rule once."""

    rule_id: str
    fired: bool = False
    clause_results: List[bool] = field(default_factory=list)
    dispatches: List[Future] = field(default_factory=list)


class Rule(Observable[RuleTrigger], Observer[Event]):
    """
    A parsed rule bound to its Events.

    States: active and inactive. Inactive rules are detached from their
    Events and evaluate() does nothing.
    """

    def __init__(
        self,
        rule_id: str,
        text: str,
        parsed: ParsedRule,
        events: Dict[str, Event],
        context: "EngineContext",
        space_id: Optional[str] = None,
    ) -> None:
        """
        Initialize a rule.

        Args:
            rule_id: Unique id
            text: Original sentence
            parsed: Parsed form of text
            events: Resolved Event for every clause event name
            context: Engine context (executor, clock)
            space_id: Owning space (optional)
        """
        super().__init__()
        self.id = rule_id
        self.text = text
        self.parsed = parsed
        self.space_id = space_id
        self._events = dict(events)
        self._context = context
        self._active = False
        self.created_at = context.now()

    @property
    def clauses(self) -> List[ConditionClause]:
        return list(self.parsed.clauses)

    @property
    def join(self) -> JoinOperator:
        return self.parsed.join

    @property
    def action_text(self) -> str:
        return self.parsed.action_text

    @property
    def condition_text(self) -> str:
        return self.parsed.condition_text

    @property
    def events(self) -> List[Event]:
        """Distinct bound Events in clause order."""
        seen: List[Event] = []
        for clause in self.parsed.clauses:
            event = self._events[clause.event_name]
            if all(e is not event for e in seen):
                seen.append(event)
        return seen

    @property
    def active(self) -> bool:
        return self._active

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def activate(self) -> None:
        """Attach to Events and start evaluating."""
        self._active = True
        for event in self.events:
            event.add_observer(self)
        logger.info(f"Rule {self.id} activated")

    def deactivate(self) -> None:
        """Detach from Events; the rule stays registered."""
        self._active = False
        for event in self.events:
            event.remove_observer(self)
        logger.info(f"Rule {self.id} deactivated")

    # =========================================================================
    # Evaluation
    # =========================================================================

    def on_notify(self, subject: Event) -> RuleEvaluation:
        return self.evaluate(trigger_event=subject)

    def _evaluate_clause(self, clause: ConditionClause) -> bool:
        event = self._events[clause.event_name]
        value = event.comparison_value()
        if value is None:
            return False
        try:
            return compare(value, clause.operator, clause.literal)
        except EvaluationTypeError as e:
            logger.warning(f"Rule {self.id}: clause '{clause.to_text()}' is false: {e.message}")
            return False

    def evaluate(self, trigger_event: Optional[Event] = None) -> RuleEvaluation:
        """
        Evaluate the condition and fire on a true result.

        Args:
            trigger_event: The Event whose update caused this evaluation

        Returns:
            Clause results and the futures of the submitted dispatches
        """
        if not self._active:
            return RuleEvaluation(rule_id=self.id)

        clause_results = [self._evaluate_clause(c) for c in self.parsed.clauses]
        if self.parsed.join == JoinOperator.OR:
            fired = any(clause_results)
        else:
            fired = all(clause_results)

        logger.debug(f"Rule {self.id} evaluated {clause_results} -> {fired}")
        evaluation = RuleEvaluation(rule_id=self.id, fired=fired, clause_results=clause_results)
        if not fired:
            return evaluation

        trigger = RuleTrigger(
            rule_id=self.id,
            rule_text=self.text,
            action_text=self.action_text,
            condition_text=self.condition_text,
            event_name=trigger_event.name if trigger_event else None,
            event_value=trigger_event.comparison_value() if trigger_event else None,
            clause_values={
                c.event_name: self._events[c.event_name].comparison_value()
                for c in self.parsed.clauses
            },
            timestamp=self._context.now(),
        )
        logger.info(f"Rule {self.id} fired: {self.condition_text}")

        for action in self.observers:
            try:
                evaluation.dispatches.append(self._context.executor.submit(action.on_notify, trigger))
            except Exception as e:
                logger.error(f"Rule {self.id}: could not submit {action!r}: {e}", exc_info=True)
        return evaluation

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "canonical": self.parsed.to_canonical(),
            "active": self._active,
            "space_id": self.space_id,
            "events": [e.name for e in self.events],
            "actions": [getattr(a, "key", repr(a)) for a in self.observers],
            "created_at": self.created_at.isoformat(),
        }

    def __repr__(self) -> str:
        return f"Rule({self.id!r})"
