"""
Rule sentence parsing.

tokenize() splits a sentence into tokens and parse() turns them into a
ParsedRule. parse_rule() does both.
"""

from .tokenizer import Token, TokenKind, tokenize
from .grammar import (
    ConditionClause,
    JoinOperator,
    OPERATORS,
    ParsedRule,
    parse,
    parse_rule,
)

__all__ = [
    "Token",
    "TokenKind",
    "tokenize",
    "ConditionClause",
    "JoinOperator",
    "OPERATORS",
    "ParsedRule",
    "parse",
    "parse_rule",
]
