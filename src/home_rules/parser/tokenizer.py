"""
Tokenizer for rule sentences.

Splits "if living room temperature > 25 then living room ac on 21 cool" into
a flat stream of words, numbers, operators, quoted strings and punctuation.
Offsets into the source are kept so the parser can hand the untouched action
text to the action layer.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import List

from home_rules.core.errors import ParseError


class TokenKind(Enum):
    """Kinds of tokens produced by tokenize()."""

    WORD = "word"
    NUMBER = "number"
    OPERATOR = "operator"
    STRING = "string"  # Quoted text, quotes stripped
    PUNCT = "punct"


@dataclass(frozen=True)
class Token:
    """A single token with its position in the source sentence."""

    kind: TokenKind
    text: str
    start: int
    end: int

    @property
    def lower(self) -> str:
        return self.text.lower()

    def is_word(self, *words: str) -> bool:
        """True if this is a WORD token matching one of words (case-insensitive)."""
        return self.kind == TokenKind.WORD and self.lower in words


# Order matters: two-char operators before one-char ones, numbers before words.
_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
  | (?P<string>"[^"]*"|'[^']*')
  | (?P<operator>>=|<=|==|!=|=|>|<)
  | (?P<number>[+-]?\d+(?:\.\d+)?(?![\w.]))
  | (?P<word>[^\s<>=!"',;:()?]+(?:'[^\s<>=!"',;:()?]+)*)
  | (?P<punct>[,;:()?!])
    """,
    re.VERBOSE,
)

# "=" is accepted as a synonym of "=="
_OPERATOR_ALIASES = {"=": "=="}

_BARE_RE = re.compile(r"\S+")


def tokenize(text: str) -> List[Token]:
    """
    Split a rule sentence into tokens.

    Once a "then" word has been read the rest is free action text: a stray
    quote there becomes a plain word instead of an error.

    Args:
        text: Rule sentence

    Returns:
        List of tokens (whitespace dropped)

    Raises:
        ParseError: On an unterminated quote or a stray character in the
            condition part
    """
    tokens: List[Token] = []
    pos = 0
    length = len(text)
    in_action = False

    while pos < length:
        match = _TOKEN_RE.match(text, pos)
        if match is None and in_action:
            match = _BARE_RE.match(text, pos)
            tokens.append(Token(TokenKind.WORD, match.group(), pos, match.end()))
            pos = match.end()
            continue
        if match is None:
            if text[pos] in "\"'":
                raise ParseError(f"Unterminated quote at position {pos}", position=pos, text=text)
            raise ParseError(f"Unexpected character {text[pos]!r} at position {pos}", position=pos, text=text)

        group = match.lastgroup
        raw = match.group()
        start, end = match.span()
        pos = end

        if group == "ws":
            continue
        if group == "string":
            tokens.append(Token(TokenKind.STRING, raw[1:-1], start, end))
        elif group == "operator":
            tokens.append(Token(TokenKind.OPERATOR, _OPERATOR_ALIASES.get(raw, raw), start, end))
        elif group == "number":
            tokens.append(Token(TokenKind.NUMBER, raw, start, end))
        elif group == "word":
            tokens.append(Token(TokenKind.WORD, raw, start, end))
            if raw.lower() == "then":
                in_action = True
        else:
            tokens.append(Token(TokenKind.PUNCT, raw, start, end))

    return tokens
