"""Shared test helpers for the canary test suite."""

from __future__ import annotations

from dataclasses import fields, is_dataclass
from enum import Enum

from canary.ast_nodes import Bare, Expr, Module
from canary.lexer import Lexer
from canary.parser import Parser
from canary.pattern import PatternAst
from canary.source import Span

SPAN = Span("<test>", 1, 1, 1, 1)


def parse(source: str) -> Module:
    """Lex and parse source into a Module."""
    tokens = Lexer(source, "<test>").lex()
    return Parser(tokens, "<test>").parse()


def parse_expr(source: str) -> Expr:
    """Parse ``source;`` as a single bare statement and return its expression."""
    module = parse(f"{source};")
    assert len(module.begin) == 1, module.begin
    stmt = module.begin[0]
    assert isinstance(stmt, Bare), stmt
    return stmt.rhs


def shape(node: object) -> object:
    """Span-free nested tuples describing an AST node, for comparisons."""
    if isinstance(node, Enum):
        return node.name
    if isinstance(node, PatternAst):
        return str(node)
    if is_dataclass(node) and not isinstance(node, type):
        return (
            type(node).__name__,
            *(shape(getattr(node, f.name)) for f in fields(node) if f.name != "span"),
        )
    if isinstance(node, (list, tuple)):
        return [shape(item) for item in node]
    return node
