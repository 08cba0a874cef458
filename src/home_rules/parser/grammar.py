"""
Parser for rule sentences.

Grammar (case-insensitive keywords):

    rule      := "if" condition "then" action
    condition := clause (("and" clause)* | ("or" clause)*)
    clause    := event operator value
               | event "detected"
               | event "not" "detected"

AND and OR are never mixed in one rule. "detected" clauses are normalized to
"== true" and "not detected" to "== false". The action segment is returned as
raw text; each actuator kind owns its own command grammar.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from home_rules.core.errors import ParseError

from .tokenizer import Token, TokenKind, tokenize

logger = logging.getLogger(__name__)

OPERATORS = (">", "<", ">=", "<=", "==", "!=")
KEYWORDS = frozenset({"if", "then", "and", "or", "not", "detected"})


class JoinOperator(Enum):
    """How the clauses of a rule are combined."""

    AND = "and"
    OR = "or"
    NONE = "none"  # Single clause


@dataclass(frozen=True)
class ConditionClause:
    """One comparison against a named event."""

    event_name: str
    operator: str
    literal: str

    def to_text(self) -> str:
        return f"{self.event_name} {self.operator} {_quote_literal(self.literal)}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_name": self.event_name,
            "operator": self.operator,
            "literal": self.literal,
        }


@dataclass(frozen=True)
class ParsedRule:
    """Structured form of a rule sentence."""

    clauses: Tuple[ConditionClause, ...]
    join: JoinOperator
    action_text: str

    @property
    def event_names(self) -> List[str]:
        """Distinct event names in clause order."""
        seen: List[str] = []
        for clause in self.clauses:
            if clause.event_name not in seen:
                seen.append(clause.event_name)
        return seen

    @property
    def condition_text(self) -> str:
        """Condition part in canonical form (without "if")."""
        joiner = f" {self.join.value} " if self.join != JoinOperator.NONE else ""
        return joiner.join(c.to_text() for c in self.clauses)

    def to_canonical(self) -> str:
        """Render back to a sentence that parses to an equal ParsedRule."""
        return f"if {self.condition_text} then {self.action_text}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "clauses": [c.to_dict() for c in self.clauses],
            "join": self.join.value,
            "action_text": self.action_text,
        }


def _quote_literal(literal: str) -> str:
    """Quote a literal if re-tokenizing it bare would change its meaning."""
    if literal:
        try:
            tokens = tokenize(literal)
        except ParseError:
            tokens = []
        plain = tokens and all(
            t.kind in (TokenKind.WORD, TokenKind.NUMBER) and t.lower not in KEYWORDS
            for t in tokens
        )
        if plain and " ".join(t.text for t in tokens) == literal:
            return literal
    quote = "'" if '"' in literal else '"'
    return f"{quote}{literal}{quote}"


def _token_text(token: Token) -> str:
    return token.text


def _parse_clause(segment: Sequence[Token]) -> ConditionClause:
    operators = [i for i, t in enumerate(segment) if t.kind == TokenKind.OPERATOR]
    start = segment[0].start

    if len(operators) > 1:
        raise ParseError(
            f"Clause has more than one operator: {' '.join(t.text for t in segment)}",
            position=segment[operators[1]].start,
        )

    if operators:
        index = operators[0]
        name_tokens = segment[:index]
        value_tokens = segment[index + 1 :]
        operator = segment[index].text
        if operator not in OPERATORS:
            raise ParseError(f"Unsupported operator {operator!r}", position=segment[index].start)
        if not name_tokens:
            raise ParseError(f"Missing event name before {operator!r}", position=start)
        if not value_tokens:
            raise ParseError(
                f"Missing comparison value after {operator!r}",
                position=segment[index].end,
            )
        literal = " ".join(_token_text(t) for t in value_tokens)
    else:
        last = segment[-1]
        if not last.is_word("detected"):
            raise ParseError(
                f"No recognizable operator in clause: {' '.join(t.text for t in segment)}",
                position=start,
            )
        if len(segment) >= 2 and segment[-2].is_word("not"):
            name_tokens = segment[:-2]
            literal = "false"
        else:
            name_tokens = segment[:-1]
            literal = "true"
        operator = "=="
        if not name_tokens:
            raise ParseError("Missing event name before 'detected'", position=start)

    for token in name_tokens:
        if token.kind == TokenKind.PUNCT:
            raise ParseError(f"Unexpected {token.text!r} in event name", position=token.start)

    event_name = " ".join(_token_text(t) for t in name_tokens)
    return ConditionClause(event_name=event_name, operator=operator, literal=literal)


def _split_condition(tokens: Sequence[Token]) -> Tuple[List[List[Token]], JoinOperator]:
    segments: List[List[Token]] = [[]]
    joins = set()

    for token in tokens:
        if token.is_word("and", "or"):
            joins.add(token.lower)
            if not segments[-1]:
                raise ParseError(f"Empty clause before {token.text!r}", position=token.start)
            segments.append([])
        else:
            segments[-1].append(token)

    if len(joins) > 1:
        raise ParseError("Cannot mix AND and OR in the same rule")
    if not segments[-1]:
        raise ParseError("Empty clause at end of condition")

    if not joins:
        return segments, JoinOperator.NONE
    return segments, JoinOperator(joins.pop())


def parse(tokens: Sequence[Token], source: Optional[str] = None) -> ParsedRule:
    """
    Parse a token stream into a ParsedRule.

    Args:
        tokens: Tokens from tokenize()
        source: Original sentence, used to keep the action text verbatim

    Returns:
        The parsed rule

    Raises:
        ParseError: If the sentence is not a well-formed rule
    """
    if not tokens:
        raise ParseError("Empty rule")

    if not tokens[0].is_word("if"):
        raise ParseError('Rule must start with "if"', position=tokens[0].start)

    then_index = next((i for i, t in enumerate(tokens) if t.is_word("then")), None)
    if then_index is None:
        raise ParseError('Rule is missing "then"')

    condition_tokens = tokens[1:then_index]
    action_tokens = tokens[then_index + 1 :]
    if not condition_tokens:
        raise ParseError('Missing condition between "if" and "then"', position=tokens[0].end)
    if not action_tokens:
        raise ParseError('Missing action after "then"', position=tokens[then_index].end)

    segments, join = _split_condition(condition_tokens)
    clauses = tuple(_parse_clause(segment) for segment in segments)

    if source is not None:
        action_text = source[action_tokens[0].start :].strip()
    else:
        action_text = " ".join(
            f'"{t.text}"' if t.kind == TokenKind.STRING else t.text for t in action_tokens
        )

    parsed = ParsedRule(clauses=clauses, join=join, action_text=action_text)
    logger.debug(f"Parsed rule: {parsed.to_canonical()}")
    return parsed


def parse_rule(text: str) -> ParsedRule:
    """Tokenize and parse a rule sentence."""
    return parse(tokenize(text), source=text)
