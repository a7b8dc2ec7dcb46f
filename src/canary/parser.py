"""Parser for the Cy scripting language.

Transforms a token stream into an AST by recursive descent. Each
precedence tier of the expression grammar is one method, tightest last:

    or  >  and  >  eq/ne  >  + -  >  * / =~  >  [] .  >  primary

``+ - * / =~``, ``and`` and ``or`` are right-associative (``1-2-3`` is
``1-(2-3)``); ``eq``/``ne`` do not chain at all.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable, Iterable, Iterator
from dataclasses import replace

from canary.ast_nodes import (
    And,
    Assert,
    Assign,
    Bare,
    Binop,
    Call,
    Def,
    Expr,
    Global,
    Group,
    If,
    IfClause,
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
from canary.errors import ParseError
from canary.lexer import DEFAULT_MAX_DEPTH, tokenize
from canary.source import Span
from canary.tokens import (
    TOKEN_TEXT,
    ExprSegment,
    GlobalSegment,
    GroupRefSegment,
    LocalSegment,
    Segment,
    TextSegment,
    Token,
    TokenKind,
)

logger = logging.getLogger(__name__)

_ADDITIVE: dict[TokenKind, Binop] = {
    TokenKind.PLUS: Binop.ADD,
    TokenKind.MINUS: Binop.SUB,
}

_MULTIPLICATIVE: dict[TokenKind, Binop] = {
    TokenKind.STAR: Binop.MUL,
    TokenKind.SLASH: Binop.DIV,
    TokenKind.MATCH: Binop.MATCH,
}

_EQUALITY: dict[TokenKind, Binop] = {
    TokenKind.EQ: Binop.EQUAL,
    TokenKind.NE: Binop.NOT_EQUAL,
}

_KIND_NAMES: dict[TokenKind, str] = {
    TokenKind.NEAR_WORD: "function name",
    TokenKind.FAR_WORD: "name",
    TokenKind.LOCAL: "local variable",
    TokenKind.EOF: "end of input",
}


def parse(tokens: Iterable[Token], filename: str = "<stdin>") -> Module:
    """Parse a token stream into a Module."""
    return Parser(tokens, filename).parse()


def parse_source(
    source: str, filename: str = "<stdin>", *, max_depth: int = DEFAULT_MAX_DEPTH,
) -> Module:
    """Lex and parse source text in one pass."""
    tokens = tokenize(source, filename, max_depth=max_depth)
    return Parser(tokens, filename, max_depth=max_depth).parse()


class Parser:
    """Parses a stream of tokens into a Cy AST.

    Tokens are pulled lazily from ``tokens`` and buffered only as far as
    lookahead needs. The first mismatch raises ParseError; there is no
    recovery.
    """

    def __init__(
        self,
        tokens: Iterable[Token],
        filename: str = "<stdin>",
        *,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ) -> None:
        self._tokens: Iterator[Token] = iter(tokens)
        self._buffer: deque[Token] = deque()
        self._eof: Token | None = None
        self.filename = filename
        self.max_depth = max_depth
        self.depth = 0

    # ── Token access ─────────────────────────────────────────────

    def _peek(self, offset: int = 0) -> Token:
        while len(self._buffer) <= offset:
            if self._eof is not None:
                return self._eof
            tok = next(self._tokens, None)
            if tok is None:
                end = self._buffer[-1].span if self._buffer else Span(self.filename, 1, 1, 1, 1)
                tok = Token(TokenKind.EOF, None, end)
            if tok.kind == TokenKind.EOF:
                self._eof = tok
            self._buffer.append(tok)
        return self._buffer[offset]

    def _current(self) -> Token:
        return self._peek()

    def _at(self, kind: TokenKind) -> bool:
        return self._current().kind == kind

    def _at_any(self, *kinds: TokenKind) -> bool:
        return self._current().kind in kinds

    def _advance(self) -> Token:
        tok = self._current()
        if tok.kind != TokenKind.EOF:
            self._buffer.popleft()
        return tok

    def _expect(self, kind: TokenKind) -> Token:
        if self._at(kind):
            return self._advance()
        raise self._error(_describe_kind(kind))

    def _expect_separator(self, close: TokenKind) -> None:
        if not self._at(TokenKind.COMMA):
            raise self._error(f"',' or {_describe_kind(close)}")
        self._advance()

    def _error(self, expected: str) -> ParseError:
        tok = self._current()
        return ParseError(expected, tok.describe(), tok.span)

    def _descend(self) -> None:
        self.depth += 1
        if self.depth > self.max_depth:
            raise ParseError(
                f"at most {self.max_depth} levels of nesting",
                "deeper nesting", self._current().span,
                notes=["the limit is set by [parser] max_depth in cy.toml"],
            )

    def _ascend(self) -> None:
        self.depth -= 1

    # ── Top-level parsing ────────────────────────────────────────

    def parse(self) -> Module:
        """Parse the entire token stream into a Module."""
        begin: list[Stmt] = []
        defs: list[Def] = []

        while not self._at_any(TokenKind.SUB, TokenKind.EOF):
            stmt = self._parse_statement()
            if stmt is not None:
                begin.append(stmt)

        while self._at(TokenKind.SUB):
            defs.append(self._parse_def())

        if not self._at(TokenKind.EOF):
            raise self._error("'sub' or end of input")

        end = self._current().span
        logger.debug(
            "parsed %s: %d top-level statements, %d subs",
            self.filename, len(begin), len(defs),
        )
        span = Span(self.filename, 1, 1, end.end_line, end.end_col, 0, end.end)
        return Module(begin=begin, defs=defs, span=span)

    def parse_interpolation(self) -> Expr:
        """Parse the body of a ``(...)`` embedded in a string literal."""
        expr = self._parse_expr()
        self._expect(TokenKind.EOF)
        return expr

    def _parse_def(self) -> Def:
        start = self._advance().span  # 'sub'
        name_tok = self._expect(TokenKind.NEAR_WORD)
        self._expect(TokenKind.LPAREN)
        args: list[str] = []
        while not self._at(TokenKind.RPAREN):
            if args:
                self._expect_separator(TokenKind.RPAREN)
            args.append(self._expect(TokenKind.LOCAL).value)
        self._expect(TokenKind.RPAREN)
        body, end = self._parse_block()
        return Def(name=name_tok.value, args=args, body=body, span=start.to(end))

    def _parse_block(self) -> tuple[list[Stmt], Span]:
        """Parse ``{ stmt* }``; returns the body and the closing brace's span."""
        self._expect(TokenKind.LBRACE)
        self._descend()
        body: list[Stmt] = []
        while not self._at(TokenKind.RBRACE):
            if self._at(TokenKind.EOF):
                raise self._error("'}'")
            stmt = self._parse_statement()
            if stmt is not None:
                body.append(stmt)
        self._ascend()
        return body, self._advance().span

    # ── Statements ───────────────────────────────────────────────

    def _parse_statement(self) -> Stmt | None:
        """Parse one statement; an empty ``;`` yields None."""
        tok = self._current()

        if tok.kind == TokenKind.IF:
            return self._parse_if()
        if tok.kind == TokenKind.WHILE:
            return self._parse_while()
        if tok.kind == TokenKind.SEMICOLON:
            self._advance()
            return None

        stmt = self._parse_simple_statement()
        end = self._expect(TokenKind.SEMICOLON)
        return replace(stmt, span=stmt.span.to(end.span))

    def _parse_simple_statement(self) -> Stmt:
        tok = self._current()

        if tok.kind == TokenKind.MY:
            self._advance()
            name_tok = self._expect(TokenKind.LOCAL)
            rhs = None
            if self._at(TokenKind.ASSIGN):
                self._advance()
                rhs = self._parse_expr()
            end = rhs.span if rhs is not None else name_tok.span
            return Let(lhs=name_tok.value, rhs=rhs, span=tok.span.to(end))

        if tok.kind == TokenKind.RETURN:
            self._advance()
            if self._at(TokenKind.SEMICOLON):
                return Return(rhs=None, span=tok.span)
            rhs = self._parse_expr()
            return Return(rhs=rhs, span=tok.span.to(rhs.span))

        if tok.kind == TokenKind.ASSERT:
            self._advance()
            rhs = self._parse_expr()
            return Assert(rhs=rhs, span=tok.span.to(rhs.span))

        if tok.kind == TokenKind.FAR_WORD:
            call = self._parse_bare_call()
            return Bare(rhs=call, span=call.span)

        lhs = self._parse_expr()
        if self._at(TokenKind.ASSIGN):
            self._advance()
            rhs = self._parse_expr()
            return Assign(lhs=lhs, rhs=rhs, span=lhs.span.to(rhs.span))
        return Bare(rhs=lhs, span=lhs.span)

    def _parse_bare_call(self) -> Call:
        """Parse ``name(args)`` or the paren-less ``name arg, arg``."""
        name_tok = self._advance()
        if self._at(TokenKind.LPAREN):
            self._advance()
            args, end = self._parse_args(TokenKind.RPAREN)
            return Call(name=name_tok.value, args=args, span=name_tok.span.to(end))

        args: list[Expr] = []
        if not self._at(TokenKind.SEMICOLON):
            args.append(self._parse_expr())
            while self._at(TokenKind.COMMA):
                self._advance()
                args.append(self._parse_expr())
        span = name_tok.span.to(args[-1].span) if args else name_tok.span
        return Call(name=name_tok.value, args=args, span=span)

    def _parse_if(self) -> If:
        start = self._advance().span  # 'if'
        clauses: list[IfClause] = []
        last: list[Stmt] = []

        test = self._parse_expr()
        body, end = self._parse_block()
        clauses.append(IfClause(test=test, body=body, span=start.to(end)))

        while self._at(TokenKind.ELSE):
            else_tok = self._advance()
            if self._at(TokenKind.IF):
                self._advance()
                test = self._parse_expr()
                body, end = self._parse_block()
                clauses.append(IfClause(test=test, body=body, span=else_tok.span.to(end)))
                continue
            last, end = self._parse_block()
            break

        return If(clauses=clauses, last=last, span=start.to(end))

    def _parse_while(self) -> While:
        start = self._advance().span  # 'while'
        test = self._parse_expr()
        body, end = self._parse_block()
        return While(test=test, body=body, span=start.to(end))

    # ── Expressions ──────────────────────────────────────────────

    def _parse_expr(self) -> Expr:
        """expr := expr5 ("or" expr)?"""
        self._descend()
        operands = [self._parse_and()]
        while self._at(TokenKind.OR):
            self._advance()
            operands.append(self._parse_and())
        self._ascend()
        expr = operands.pop()
        while operands:
            lhs = operands.pop()
            expr = Or(lhs, expr, lhs.span.to(expr.span))
        return expr

    def _parse_and(self) -> Expr:
        """expr5 := expr4 ("and" expr5)?"""
        operands = [self._parse_equality()]
        while self._at(TokenKind.AND):
            self._advance()
            operands.append(self._parse_equality())
        expr = operands.pop()
        while operands:
            lhs = operands.pop()
            expr = And(lhs, expr, lhs.span.to(expr.span))
        return expr

    def _parse_equality(self) -> Expr:
        """expr4 := expr3 (("eq"|"ne") expr3)?"""
        lhs = self._parse_additive()
        op = _EQUALITY.get(self._current().kind)
        if op is None:
            return lhs
        self._advance()
        return op.apply(lhs, self._parse_additive())

    def _parse_additive(self) -> Expr:
        """expr3 := expr2 (("+"|"-") expr3)?"""
        return self._parse_right_chain(_ADDITIVE, self._parse_multiplicative)

    def _parse_multiplicative(self) -> Expr:
        """expr2 := expr1 (("*"|"/"|"=~") expr2)?"""
        return self._parse_right_chain(_MULTIPLICATIVE, self._parse_postfix)

    def _parse_right_chain(
        self, ops: dict[TokenKind, Binop], operand: Callable[[], Expr],
    ) -> Expr:
        """Parse ``a op b op c`` and fold it from the right: ``a op (b op c)``."""
        operands = [operand()]
        operators: list[Binop] = []
        while self._current().kind in ops:
            operators.append(ops[self._advance().kind])
            operands.append(operand())
        expr = operands.pop()
        while operators:
            expr = operators.pop().apply(operands.pop(), expr)
        return expr

    def _parse_postfix(self) -> Expr:
        """expr1 := primary ( "[" expr "]" | "." FARWORD )*"""
        expr = self._parse_primary()
        while True:
            if self._at(TokenKind.LBRACKET):
                self._advance()
                index = self._parse_expr()
                end = self._expect(TokenKind.RBRACKET)
                expr = Binop.IDX.apply(expr, index, expr.span.to(end.span))
            elif self._at(TokenKind.DOT):
                self._advance()
                field_tok = self._expect(TokenKind.FAR_WORD)
                key = SymLit(field_tok.value, field_tok.span)
                expr = Binop.IDX.apply(expr, key)
            else:
                return expr

    def _parse_primary(self) -> Expr:
        tok = self._current()

        match tok.kind:
            case TokenKind.INT:
                self._advance()
                return IntLit(tok.value, tok.span)
            case TokenKind.SYM:
                self._advance()
                return SymLit(tok.value, tok.span)
            case TokenKind.LOCAL:
                self._advance()
                return Local(tok.value, tok.span)
            case TokenKind.GLOBAL:
                self._advance()
                return Global(tok.value, tok.span)
            case TokenKind.GROUP:
                self._advance()
                return Group(tok.value, tok.span)
            case TokenKind.PATTERN:
                self._advance()
                return PatternLit(tok.value, tok.span)
            case TokenKind.STRING:
                self._advance()
                return Str([_segment_expr(seg) for seg in tok.value], tok.span)
            case TokenKind.LPAREN:
                self._advance()
                inner = self._parse_expr()
                end = self._expect(TokenKind.RPAREN)
                return Parens(inner, tok.span.to(end.span))
            case TokenKind.NEAR_WORD:
                self._advance()
                self._expect(TokenKind.LPAREN)
                args, end = self._parse_args(TokenKind.RPAREN)
                return Call(tok.value, args, tok.span.to(end))
            case TokenKind.LBRACKET:
                self._advance()
                items, end = self._parse_args(TokenKind.RBRACKET)
                return ListExpr(items, tok.span.to(end))

        raise self._error("expression")

    def _parse_args(self, close: TokenKind) -> tuple[list[Expr], Span]:
        """Parse ``(expr ("," expr)*)? close``, the opener already consumed."""
        args: list[Expr] = []
        while not self._at(close):
            if args:
                self._expect_separator(close)
            args.append(self._parse_expr())
        return args, self._advance().span


def _describe_kind(kind: TokenKind) -> str:
    if kind in TOKEN_TEXT:
        return f"'{TOKEN_TEXT[kind]}'"
    return _KIND_NAMES.get(kind, kind.name.lower())


def _segment_expr(seg: Segment) -> Expr:
    """Map one string-literal segment to the expression it stands for."""
    match seg:
        case TextSegment(text=text, span=span):
            return TextLit(text, span)
        case LocalSegment(name=name, span=span):
            return Local(name, span)
        case GlobalSegment(name=name, span=span):
            return Global(name, span)
        case GroupRefSegment(index=index, span=span):
            return Group(index, span)
        case ExprSegment(expr=expr):
            return expr
    raise TypeError(f"unknown string segment: {seg!r}")
