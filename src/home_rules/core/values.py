"""
Tagged values and the single coercion function used by the evaluator.

Both sides of a clause are coerced to a common type before comparing:
- NumberValue if both sides parse as numbers
- BoolValue if both sides parse as booleans
- TextValue otherwise
"""

import operator as _op
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

from home_rules.core.errors import EvaluationTypeError

TRUE_WORDS = frozenset({"true", "on", "yes"})
FALSE_WORDS = frozenset({"false", "off", "no"})


@dataclass(frozen=True)
class NumberValue:
    """A numeric operand."""

    value: float


@dataclass(frozen=True)
class BoolValue:
    """A boolean operand."""

    value: bool


@dataclass(frozen=True)
class TextValue:
    """A free-text operand (compared case-insensitively)."""

    value: str


Value = NumberValue | BoolValue | TextValue


COMPARATORS: Dict[str, Callable[[Any, Any], bool]] = {
    ">": _op.gt,
    "<": _op.lt,
    ">=": _op.ge,
    "<=": _op.le,
    "==": _op.eq,
    "!=": _op.ne,
}

ORDERING_OPERATORS = frozenset({">", "<", ">=", "<="})


def parse_number(raw: Any) -> Optional[float]:
    """Return raw as a float, or None if it is not numeric."""
    if isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        return float(raw)
    if isinstance(raw, str):
        try:
            return float(raw.strip())
        except ValueError:
            return None
    return None


def parse_bool(raw: Any) -> Optional[bool]:
    """Return raw as a bool, or None if it is not boolean-like."""
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, str):
        word = raw.strip().lower()
        if word in TRUE_WORDS:
            return True
        if word in FALSE_WORDS:
            return False
    return None


def to_text(raw: Any) -> str:
    if isinstance(raw, bool):
        return "true" if raw else "false"
    return str(raw).strip().lower()


def coerce_pair(left: Any, right: Any) -> Tuple[Value, Value]:
    """
    Coerce two raw operands to a common tagged type.

    Args:
        left: Raw left operand (usually the event value)
        right: Raw right operand (usually the clause literal)

    Returns:
        Tuple of two values of the same tag
    """
    left_num, right_num = parse_number(left), parse_number(right)
    if left_num is not None and right_num is not None:
        return NumberValue(left_num), NumberValue(right_num)

    left_bool, right_bool = parse_bool(left), parse_bool(right)
    if left_bool is not None and right_bool is not None:
        return BoolValue(left_bool), BoolValue(right_bool)

    return TextValue(to_text(left)), TextValue(to_text(right))


def compare(left: Any, operator: str, right: Any) -> bool:
    """
    Compare two raw operands with a clause operator.

    Raises:
        EvaluationTypeError: If the operator is unknown or the coerced
            operands cannot be ordered
    """
    comparator = COMPARATORS.get(operator)
    if comparator is None:
        raise EvaluationTypeError(f"Unsupported operator: {operator}", left, right, operator)

    a, b = coerce_pair(left, right)
    if operator in ORDERING_OPERATORS and not isinstance(a, NumberValue):
        raise EvaluationTypeError(
            f"Cannot order {type(a).__name__} operands with {operator}",
            left,
            right,
            operator,
        )
    return comparator(a.value, b.value)
