"""
Rules: parsed conditions bound to Events and Actions, and their manager.
"""

from .descriptions import AnomalyDescription, AnomalyDescriptionLookup, InMemoryDescriptionLookup
from .rule import Rule, RuleEvaluation, RuleTrigger
from .registry import RuleRegistry
from .manager import ReloadResult, RuleManager

__all__ = [
    "AnomalyDescription",
    "AnomalyDescriptionLookup",
    "InMemoryDescriptionLookup",
    "Rule",
    "RuleEvaluation",
    "RuleTrigger",
    "RuleRegistry",
    "ReloadResult",
    "RuleManager",
]
