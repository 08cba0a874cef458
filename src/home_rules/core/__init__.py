"""
Core components of the rule engine.

This package contains:
- observer: Observable/Observer abstractions
- values: Tagged values and coercion for condition evaluation
- errors: Exception hierarchy
- registry: Generic keyed registry
- dispatch: Fire-and-forget dispatch executors
- context: EngineContext holding the registries and collaborators
"""

from home_rules.core.errors import (
    DispatchError,
    EvaluationTypeError,
    EventValueError,
    ParseError,
    RuleEngineError,
    UnresolvedEventError,
)
from home_rules.core.observer import Observable, Observer
from home_rules.core.registry import Registry
from home_rules.core.dispatch import (
    DispatchExecutor,
    InlineDispatchExecutor,
    ThreadedDispatchExecutor,
)

__all__ = [
    "DispatchError",
    "EvaluationTypeError",
    "EventValueError",
    "ParseError",
    "RuleEngineError",
    "UnresolvedEventError",
    "Observable",
    "Observer",
    "Registry",
    "DispatchExecutor",
    "InlineDispatchExecutor",
    "ThreadedDispatchExecutor",
]
