"""AST-walking pretty-printer for Cy source code.

Produces canonical formatting for .cy files. Formatting a parsed module
and parsing the result again yields the same tree shape: explicit
parentheses survive as ``Parens`` nodes, and operands that would bind
differently are wrapped.

Limitation: ``#`` comments are discarded by the lexer and not preserved.
"""

from __future__ import annotations

from canary.ast_nodes import (
    And,
    Assert,
    Assign,
    Bare,
    Binop,
    BinopExpr,
    Call,
    Def,
    Expr,
    Global,
    Group,
    If,
    IntLit,
    Let,
    ListExpr,
    Local,
    Module,
    Or,
    Parens,
    PatternLit,
    Return,
    Stmt,
    Str,
    SymLit,
    TextLit,
    While,
)
from canary.tokens import KEYWORDS

# Grammar tier of each node (higher binds tighter)
_OR, _AND, _EQUALITY, _ADDITIVE, _MULTIPLICATIVE, _POSTFIX, _PRIMARY = range(1, 8)

_BINOP_TIER: dict[Binop, int] = {
    Binop.EQUAL: _EQUALITY,
    Binop.NOT_EQUAL: _EQUALITY,
    Binop.ADD: _ADDITIVE,
    Binop.SUB: _ADDITIVE,
    Binop.MUL: _MULTIPLICATIVE,
    Binop.DIV: _MULTIPLICATIVE,
    Binop.MATCH: _MULTIPLICATIVE,
    Binop.IDX: _POSTFIX,
}

_DIGITS = frozenset("0123456789")

_TEXT_ESCAPES = {
    "\\": "\\\\", '"': '\\"', "\n": "\\n", "\t": "\\t", "\r": "\\r", "\0": "\\0",
    "$": "\\$", "@": "\\@", "(": "\\(", ")": "\\)",
}


def _tier(expr: Expr) -> int:
    if isinstance(expr, Or):
        return _OR
    if isinstance(expr, And):
        return _AND
    if isinstance(expr, BinopExpr):
        return _BINOP_TIER[expr.op]
    return _PRIMARY


def _escape_text(text: str) -> str:
    return "".join(_TEXT_ESCAPES.get(ch, ch) for ch in text)


class CyFormatter:
    """Format a parsed Cy Module back to canonical source text."""

    def __init__(self, indent: str = "    ") -> None:
        self.indent = indent

    # ── Public API ─────────────────────────────────────────────

    def format(self, module: Module) -> str:
        """Format a module to canonical source text."""
        parts: list[str] = []
        if module.begin:
            parts.append("\n".join(self.format_stmt(s) for s in module.begin))
        for d in module.defs:
            parts.append(self._format_def(d))
        result = "\n\n".join(parts)
        if not result.endswith("\n"):
            result += "\n"
        return result

    def format_stmt(self, stmt: Stmt, depth: int = 0) -> str:
        pad = self.indent * depth
        if isinstance(stmt, Let):
            if stmt.rhs is None:
                return f"{pad}my ${stmt.lhs};"
            return f"{pad}my ${stmt.lhs} = {self.format_expr(stmt.rhs)};"
        if isinstance(stmt, Assign):
            return f"{pad}{self.format_expr(stmt.lhs)} = {self.format_expr(stmt.rhs)};"
        if isinstance(stmt, Return):
            if stmt.rhs is None:
                return f"{pad}return;"
            return f"{pad}return {self.format_expr(stmt.rhs)};"
        if isinstance(stmt, Assert):
            return f"{pad}assert {self.format_expr(stmt.rhs)};"
        if isinstance(stmt, Bare):
            return f"{pad}{self.format_expr(stmt.rhs)};"
        if isinstance(stmt, If):
            return self._format_if(stmt, depth)
        if isinstance(stmt, While):
            test = self.format_expr(stmt.test)
            return f"{pad}while {test} {self._format_block(stmt.body, depth)}"
        raise TypeError(f"cannot format statement {stmt!r}")

    def format_expr(self, expr: Expr) -> str:
        if isinstance(expr, Or):
            return self._format_infix(expr.lhs, "or", expr.rhs, _OR)
        if isinstance(expr, And):
            return self._format_infix(expr.lhs, "and", expr.rhs, _AND)
        if isinstance(expr, BinopExpr):
            return self._format_binop(expr)
        if isinstance(expr, IntLit):
            return str(expr.value)
        if isinstance(expr, SymLit):
            return f":{expr.name}"
        if isinstance(expr, TextLit):
            return f'"{_escape_text(expr.value)}"'
        if isinstance(expr, PatternLit):
            return str(expr.pattern)
        if isinstance(expr, Str):
            return self._format_str(expr)
        if isinstance(expr, Local):
            return f"${expr.name}"
        if isinstance(expr, Global):
            return f"@{expr.name}"
        if isinstance(expr, Group):
            return f"${expr.index}"
        if isinstance(expr, Call):
            return f"{expr.name}({self._format_list(expr.args)})"
        if isinstance(expr, ListExpr):
            return f"[{self._format_list(expr.items)}]"
        if isinstance(expr, Parens):
            return f"({self.format_expr(expr.expr)})"
        raise TypeError(f"cannot format expression {expr!r}")

    # ── Definitions and blocks ─────────────────────────────────

    def _format_def(self, d: Def) -> str:
        args = ", ".join(f"${a}" for a in d.args)
        return f"sub {d.name}({args}) {self._format_block(d.body, 0)}"

    def _format_block(self, body: list[Stmt], depth: int) -> str:
        if not body:
            return "{}"
        lines = ["{"]
        lines.extend(self.format_stmt(s, depth + 1) for s in body)
        lines.append(f"{self.indent * depth}}}")
        return "\n".join(lines)

    def _format_if(self, stmt: If, depth: int) -> str:
        pad = self.indent * depth
        out = []
        for i, clause in enumerate(stmt.clauses):
            keyword = "if" if i == 0 else " else if"
            test = self.format_expr(clause.test)
            out.append(f"{keyword} {test} {self._format_block(clause.body, depth)}")
        if stmt.last:
            out.append(f" else {self._format_block(stmt.last, depth)}")
        return pad + "".join(out)

    # ── Expressions ────────────────────────────────────────────

    def _format_list(self, items: list[Expr]) -> str:
        return ", ".join(self.format_expr(item) for item in items)

    def _wrap(self, expr: Expr, wrap: bool) -> str:
        text = self.format_expr(expr)
        return f"({text})" if wrap else text

    def _format_infix(self, lhs: Expr, op: str, rhs: Expr, tier: int) -> str:
        # Right-recursive tiers: a same-tier operand only fits on the right.
        left = self._wrap(lhs, _tier(lhs) <= tier)
        right_limit = tier + 1 if tier == _EQUALITY else tier
        right = self._wrap(rhs, _tier(rhs) < right_limit)
        return f"{left} {op} {right}"

    def _format_binop(self, expr: BinopExpr) -> str:
        if expr.op == Binop.IDX:
            target = self._wrap(expr.lhs, _tier(expr.lhs) < _POSTFIX)
            key = expr.rhs
            if isinstance(key, SymLit) and key.name not in KEYWORDS and key.name != "re":
                return f"{target}.{key.name}"
            return f"{target}[{self.format_expr(key)}]"
        return self._format_infix(expr.lhs, expr.op.value, expr.rhs, _BINOP_TIER[expr.op])

    def _format_str(self, expr: Str) -> str:
        out = []
        parts = expr.parts
        for i, part in enumerate(parts):
            nxt = parts[i + 1] if i + 1 < len(parts) else None
            follow = nxt.value[:1] if isinstance(nxt, TextLit) else ""
            if isinstance(part, TextLit):
                out.append(_escape_text(part.value))
            elif isinstance(part, Local) and not (follow.isalnum() or follow == "_"):
                out.append(f"${part.name}")
            elif isinstance(part, Global) and not (follow.isalnum() or follow == "_"):
                out.append(f"@{part.name}")
            elif isinstance(part, Group) and follow not in _DIGITS:
                out.append(f"${part.index}")
            else:
                out.append(f"({self.format_expr(part)})")
        return '"' + "".join(out) + '"'
