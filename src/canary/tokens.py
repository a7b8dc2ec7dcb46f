"""Token kinds and token representation for the Cy lexer."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import TYPE_CHECKING, Any, Union

if TYPE_CHECKING:
    from canary.ast_nodes import Expr
    from canary.source import Span


class TokenKind(Enum):
    # Keywords
    RETURN = auto()
    SUB = auto()
    MY = auto()
    IF = auto()
    ELSE = auto()
    WHILE = auto()
    ASSERT = auto()
    EQ = auto()
    NE = auto()
    AND = auto()
    OR = auto()

    # Punctuation
    LPAREN = auto()
    RPAREN = auto()
    LBRACKET = auto()
    RBRACKET = auto()
    LBRACE = auto()
    RBRACE = auto()
    COMMA = auto()
    DOT = auto()
    SEMICOLON = auto()

    # Operators
    PLUS = auto()
    MINUS = auto()
    STAR = auto()
    SLASH = auto()
    ASSIGN = auto()
    MATCH = auto()

    # Values
    INT = auto()
    NEAR_WORD = auto()
    FAR_WORD = auto()
    LOCAL = auto()
    GLOBAL = auto()
    GROUP = auto()
    SYM = auto()
    STRING = auto()
    PATTERN = auto()

    # Special
    EOF = auto()


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    value: Any
    span: Span

    def describe(self) -> str:
        """Human-readable form used in parse diagnostics."""
        if self.kind == TokenKind.EOF:
            return "end of input"
        if self.kind in TOKEN_TEXT:
            return f"'{TOKEN_TEXT[self.kind]}'"
        return f"{self.kind.name} ({self.value!r})"


KEYWORDS: dict[str, TokenKind] = {
    "return": TokenKind.RETURN,
    "sub": TokenKind.SUB,
    "my": TokenKind.MY,
    "if": TokenKind.IF,
    "else": TokenKind.ELSE,
    "while": TokenKind.WHILE,
    "assert": TokenKind.ASSERT,
    "eq": TokenKind.EQ,
    "ne": TokenKind.NE,
    "and": TokenKind.AND,
    "or": TokenKind.OR,
}

PUNCTUATION: dict[str, TokenKind] = {
    "(": TokenKind.LPAREN,
    ")": TokenKind.RPAREN,
    "[": TokenKind.LBRACKET,
    "]": TokenKind.RBRACKET,
    "{": TokenKind.LBRACE,
    "}": TokenKind.RBRACE,
    ",": TokenKind.COMMA,
    ".": TokenKind.DOT,
    ";": TokenKind.SEMICOLON,
    "+": TokenKind.PLUS,
    "-": TokenKind.MINUS,
    "*": TokenKind.STAR,
    "/": TokenKind.SLASH,
    "=": TokenKind.ASSIGN,
}

TOKEN_TEXT: dict[TokenKind, str] = {
    **{kind: text for text, kind in KEYWORDS.items()},
    **{kind: text for text, kind in PUNCTUATION.items()},
    TokenKind.MATCH: "=~",
}


# ── String literal segments ──────────────────────────────────────


@dataclass(frozen=True)
class TextSegment:
    text: str
    span: Span


@dataclass(frozen=True)
class LocalSegment:
    name: str
    span: Span


@dataclass(frozen=True)
class GlobalSegment:
    name: str
    span: Span


@dataclass(frozen=True)
class GroupRefSegment:
    index: int
    span: Span


@dataclass(frozen=True)
class ExprSegment:
    """A parenthesized expression embedded in a string, already parsed."""

    expr: Expr
    span: Span


Segment = Union[TextSegment, LocalSegment, GlobalSegment, GroupRefSegment, ExprSegment]
