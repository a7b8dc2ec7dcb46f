"""AST node definitions for the Cy language."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union

from canary.pattern import PatternAst
from canary.source import Span

# ── Literals ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class IntLit:
    value: int
    span: Span


@dataclass(frozen=True)
class SymLit:
    """A bare symbol such as ``:name``; also the key of ``expr.name``."""

    name: str
    span: Span


@dataclass(frozen=True)
class TextLit:
    value: str
    span: Span


@dataclass(frozen=True)
class PatternLit:
    pattern: PatternAst
    span: Span


Literal = Union[IntLit, SymLit, TextLit, PatternLit]


# ── Expressions ──────────────────────────────────────────────────


class Binop(Enum):
    ADD = "+"
    SUB = "-"
    MUL = "*"
    DIV = "/"
    EQUAL = "eq"
    NOT_EQUAL = "ne"
    MATCH = "=~"
    IDX = "[]"

    def apply(self, lhs: Expr, rhs: Expr, span: Span | None = None) -> BinopExpr:
        """Build ``lhs <op> rhs``; the span defaults to cover both operands."""
        return BinopExpr(lhs, self, rhs, span or lhs.span.to(rhs.span))


@dataclass(frozen=True)
class BinopExpr:
    lhs: Expr
    op: Binop
    rhs: Expr
    span: Span


@dataclass(frozen=True)
class Or:
    lhs: Expr
    rhs: Expr
    span: Span


@dataclass(frozen=True)
class And:
    lhs: Expr
    rhs: Expr
    span: Span


@dataclass(frozen=True)
class Str:
    parts: list[Expr]  # TextLit and interpolated exprs, in source order
    span: Span


@dataclass(frozen=True)
class Local:
    name: str
    span: Span


@dataclass(frozen=True)
class Global:
    name: str
    span: Span


@dataclass(frozen=True)
class Group:
    """Reference to a capture group of the most recent match; 0 is the whole match."""

    index: int
    span: Span


@dataclass(frozen=True)
class Call:
    name: str
    args: list[Expr]
    span: Span


@dataclass(frozen=True)
class ListExpr:
    items: list[Expr]
    span: Span


@dataclass(frozen=True)
class Parens:
    expr: Expr
    span: Span


Expr = Union[
    Or, And, BinopExpr,
    IntLit, SymLit, TextLit, PatternLit, Str,
    Local, Global, Group, Call, ListExpr, Parens,
]


# ── Statements ───────────────────────────────────────────────────


@dataclass(frozen=True)
class Let:
    lhs: str
    rhs: Expr | None
    span: Span


@dataclass(frozen=True)
class Assign:
    lhs: Expr
    rhs: Expr
    span: Span


@dataclass(frozen=True)
class Return:
    rhs: Expr | None
    span: Span


@dataclass(frozen=True)
class Assert:
    rhs: Expr
    span: Span


@dataclass(frozen=True)
class Bare:
    rhs: Expr
    span: Span


@dataclass(frozen=True)
class IfClause:
    test: Expr
    body: list[Stmt]
    span: Span


@dataclass(frozen=True)
class If:
    clauses: list[IfClause]
    last: list[Stmt]  # else body, empty when absent
    span: Span


@dataclass(frozen=True)
class While:
    test: Expr
    body: list[Stmt]
    span: Span


Stmt = Union[Let, Assign, Return, Assert, Bare, If, While]


# ── Top level ────────────────────────────────────────────────────


@dataclass(frozen=True)
class Def:
    name: str
    args: list[str]
    body: list[Stmt]
    span: Span


@dataclass(frozen=True)
class Module:
    begin: list[Stmt]
    defs: list[Def]
    span: Span
