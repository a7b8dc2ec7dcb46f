"""Lexer for the Cy scripting language.

Produces a lazy stream of tokens from source text. String literals are
split into interpolation segments and pattern literals are compiled while
scanning, so the parser only ever sees finished values.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator

from canary.errors import LEX_ERROR, PATTERN_ERROR, LexError, PatternSyntaxError
from canary.pattern import FLAGS, compile_pattern
from canary.source import Span
from canary.tokens import (
    KEYWORDS,
    PUNCTUATION,
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

DEFAULT_MAX_DEPTH = 64
INT_MAX = 2**63 - 1
GROUP_MAX = 255

_PATTERN_DELIMITERS = {
    "/": "/", "|": "|", '"': '"',
    "(": ")", "[": "]", "{": "}", "<": ">",
}

_STRING_ESCAPES = {
    "n": "\n", "t": "\t", "r": "\r", "0": "\0",
    "\\": "\\", '"': '"',
    "$": "$", "@": "@", "(": "(", ")": ")",
}

# Escapes kept verbatim so strings can carry pattern source.
_REGEX_ESCAPES = frozenset("wds.*+?[]{}|^/")

_GLOBAL_SIGILS = ("@", "%")

_DIGITS = frozenset("0123456789")


def tokenize(
    source: str, filename: str = "<stdin>", *, max_depth: int = DEFAULT_MAX_DEPTH,
) -> Iterator[Token]:
    """Lazily tokenize source. The final token is always EOF."""
    return Lexer(source, filename, max_depth=max_depth).tokens()


class Lexer:
    """Tokenizes Cy source code."""

    def __init__(
        self,
        source: str,
        filename: str = "<stdin>",
        *,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ) -> None:
        self.source = source
        self.filename = filename
        self.max_depth = max_depth
        self.pos = 0
        self.line = 1
        self.col = 1
        # Set on lexers scanning a "(...)" inside a string: stop at the
        # unbalanced ")" and leave it for the string scanner.
        self.depth = 0
        self.nested = False
        self.paren_depth = 0
        self.closed = False

    def lex(self) -> list[Token]:
        """Tokenize the entire source and return the token list."""
        return list(self.tokens())

    def tokens(self) -> Iterator[Token]:
        count = 0
        while True:
            self._skip_whitespace_and_comments()
            if self.pos >= len(self.source):
                break
            ch = self.source[self.pos]
            if self.nested and ch == ")" and self.paren_depth == 0:
                self.closed = True
                break
            if ch == '"':
                tok = self._lex_string()
            elif ch in _DIGITS:
                tok = self._lex_number()
            elif ch.isalpha() or ch == "_":
                tok = self._lex_word()
            elif ch == "$":
                tok = self._lex_dollar()
            elif ch in _GLOBAL_SIGILS:
                tok = self._lex_sigil(TokenKind.GLOBAL)
            elif ch == ":":
                tok = self._lex_sigil(TokenKind.SYM)
            else:
                tok = self._lex_operator_or_punct()
            count += 1
            yield tok

        if not self.nested:
            logger.debug("lexed %d tokens from %s", count, self.filename)
        yield Token(TokenKind.EOF, None, self._span(self.pos, self.line, self.col))

    # ── Helpers ───────────────────────────────────────────────────

    def _peek(self, offset: int = 0) -> str:
        idx = self.pos + offset
        if idx < len(self.source):
            return self.source[idx]
        return "\0"

    def _advance(self) -> str:
        ch = self.source[self.pos]
        self.pos += 1
        if ch == "\n":
            self.line += 1
            self.col = 1
        else:
            self.col += 1
        return ch

    def _is_ident_start(self, offset: int = 0) -> bool:
        ch = self._peek(offset)
        return ch.isalpha() or ch == "_"

    def _is_ident_char(self) -> bool:
        ch = self._peek()
        return ch.isalnum() or ch == "_"

    def _span(self, start: int, start_line: int, start_col: int) -> Span:
        end_col = self.col - 1 if self.col > 1 else 1
        if self.pos == start:
            end_col = start_col
        return Span(
            self.filename, start_line, start_col, self.line, end_col,
            start, self.pos,
        )

    def _point(self, offset: int = 0) -> Span:
        """A one-character span at the current position plus offset."""
        col = self.col + offset
        return Span(
            self.filename, self.line, col, self.line, col,
            self.pos + offset, self.pos + offset + 1,
        )

    def _error(self, reason: str, span: Span, code: str = LEX_ERROR) -> LexError:
        return LexError(reason, span, code=code)

    def _skip_whitespace_and_comments(self) -> None:
        while self.pos < len(self.source):
            ch = self.source[self.pos]
            if ch.isspace():
                self._advance()
            elif ch == "#":
                while self.pos < len(self.source) and self.source[self.pos] != "\n":
                    self._advance()
            else:
                break

    def _read_name(self) -> str:
        start = self.pos
        while self.pos < len(self.source) and self._is_ident_char():
            self._advance()
        return self.source[start:self.pos]

    # ── Numbers ──────────────────────────────────────────────────

    def _lex_number(self) -> Token:
        start, line, col = self.pos, self.line, self.col
        while self.pos < len(self.source) and self._peek() in _DIGITS:
            self._advance()
        if self._is_ident_start():
            while self.pos < len(self.source) and self._is_ident_char():
                self._advance()
            text = self.source[start:self.pos]
            raise self._error(f"invalid numeric literal {text!r}", self._span(start, line, col))
        value = int(self.source[start:self.pos])
        if value > INT_MAX:
            raise self._error("integer literal too large", self._span(start, line, col))
        return Token(TokenKind.INT, value, self._span(start, line, col))

    # ── Identifiers, keywords, patterns ──────────────────────────

    def _lex_word(self) -> Token:
        start, line, col = self.pos, self.line, self.col
        word = self._read_name()

        if word == "re" and self._peek() in _PATTERN_DELIMITERS:
            return self._lex_pattern(start, line, col)

        if word in KEYWORDS:
            return Token(KEYWORDS[word], word, self._span(start, line, col))

        # One character of lookahead: a name glued to "(" starts a call.
        kind = TokenKind.NEAR_WORD if self._peek() == "(" else TokenKind.FAR_WORD
        return Token(kind, word, self._span(start, line, col))

    def _lex_pattern(self, start: int, line: int, col: int) -> Token:
        open_ch = self._advance()
        close_ch = _PATTERN_DELIMITERS[open_ch]
        body_start = self.pos
        body_line, body_col = self.line, self.col
        nesting = 0

        while True:
            if self.pos >= len(self.source):
                raise self._error(
                    "unterminated pattern literal", self._span(start, line, col),
                )
            ch = self.source[self.pos]
            if ch == "\\":
                self._advance()
                if self.pos < len(self.source):
                    self._advance()
                continue
            if ch == close_ch and nesting == 0:
                break
            if open_ch != close_ch:
                if ch == open_ch:
                    nesting += 1
                elif ch == close_ch:
                    nesting -= 1
            self._advance()

        raw = self.source[body_start:self.pos]
        self._advance()  # closing delimiter
        flags_start = self.pos
        while self.pos < len(self.source) and self._peek().isalpha():
            if self._peek() not in FLAGS:
                raise self._error(
                    f"unknown pattern flag {self._peek()!r}", self._point(), PATTERN_ERROR,
                )
            self._advance()
        flags = self.source[flags_start:self.pos]

        try:
            pattern = compile_pattern(raw, flags)
        except PatternSyntaxError as e:
            at = self._offset_span(body_start, body_line, body_col, e.offset)
            raise self._error(f"invalid pattern: {e.reason}", at, PATTERN_ERROR) from e

        return Token(TokenKind.PATTERN, pattern, self._span(start, line, col))

    def _offset_span(self, base: int, line: int, col: int, offset: int) -> Span:
        """One-character span ``offset`` characters after a known position."""
        for ch in self.source[base:base + offset]:
            if ch == "\n":
                line += 1
                col = 1
            else:
                col += 1
        at = base + offset
        return Span(self.filename, line, col, line, col, at, at + 1)

    # ── Sigils ───────────────────────────────────────────────────

    def _lex_dollar(self) -> Token:
        start, line, col = self.pos, self.line, self.col
        self._advance()  # $
        if self._peek() in _DIGITS:
            digits_start = self.pos
            while self.pos < len(self.source) and self._peek() in _DIGITS:
                self._advance()
            index = int(self.source[digits_start:self.pos])
            if index > GROUP_MAX:
                raise self._error(
                    f"capture group ${index} out of range", self._span(start, line, col),
                )
            return Token(TokenKind.GROUP, index, self._span(start, line, col))
        if self._is_ident_start():
            name = self._read_name()
            return Token(TokenKind.LOCAL, name, self._span(start, line, col))
        raise self._error("expected a variable name after '$'", self._span(start, line, col))

    def _lex_sigil(self, kind: TokenKind) -> Token:
        start, line, col = self.pos, self.line, self.col
        sigil = self._advance()
        if not self._is_ident_start():
            if kind == TokenKind.SYM:
                raise self._error("unexpected character ':'", self._span(start, line, col))
            raise self._error(
                f"expected a variable name after {sigil!r}", self._span(start, line, col),
            )
        name = self._read_name()
        return Token(kind, name, self._span(start, line, col))

    # ── Strings ──────────────────────────────────────────────────

    def _lex_string(self) -> Token:
        start, line, col = self.pos, self.line, self.col
        self._advance()  # opening "
        segments: list[Segment] = []
        text: list[str] = []
        text_start = (self.pos, self.line, self.col)

        def flush() -> None:
            if text:
                pos, ln, cl = text_start
                segments.append(TextSegment("".join(text), self._span(pos, ln, cl)))
                text.clear()

        while True:
            if self.pos >= len(self.source):
                raise self._error("unterminated string literal", self._span(start, line, col))
            ch = self.source[self.pos]

            if ch == '"':
                break

            if ch == "\\":
                if not text:
                    text_start = (self.pos, self.line, self.col)
                text.append(self._lex_escape_sequence())
                continue

            interp = self._lex_interpolation()
            if interp is None:
                if not text:
                    text_start = (self.pos, self.line, self.col)
                text.append(self._advance())
                continue
            # The interpolation scanner consumed its own characters, so
            # the pending text ended where it began.
            seg_start = interp.span.start
            if text:
                pos, ln, cl = text_start
                segments.append(TextSegment(
                    "".join(text),
                    Span(self.filename, ln, cl, interp.span.start_line,
                         max(1, interp.span.start_col - 1), pos, seg_start),
                ))
                text.clear()
            segments.append(interp)

        flush()
        self._advance()  # closing "
        return Token(TokenKind.STRING, tuple(segments), self._span(start, line, col))

    def _lex_escape_sequence(self) -> str:
        start, line, col = self.pos, self.line, self.col
        self._advance()  # backslash
        if self.pos >= len(self.source):
            raise self._error("unexpected end of escape sequence", self._span(start, line, col))
        ch = self._advance()
        if ch in _STRING_ESCAPES:
            return _STRING_ESCAPES[ch]
        if ch in _REGEX_ESCAPES:
            return "\\" + ch
        raise self._error(f"unknown escape sequence: \\{ch}", self._span(start, line, col))

    def _lex_interpolation(self) -> Segment | None:
        """Scan one interpolated segment at the cursor, or return None for plain text."""
        start, line, col = self.pos, self.line, self.col
        ch = self.source[self.pos]

        if ch == "$":
            if self._peek(1) in _DIGITS:
                self._advance()
                digits_start = self.pos
                while self.pos < len(self.source) and self._peek() in _DIGITS:
                    self._advance()
                index = int(self.source[digits_start:self.pos])
                if index > GROUP_MAX:
                    raise self._error(
                        f"capture group ${index} out of range",
                        self._span(start, line, col),
                    )
                return GroupRefSegment(index, self._span(start, line, col))
            if self._is_ident_start(1):
                self._advance()
                return LocalSegment(self._read_name(), self._span(start, line, col))
            return None

        if ch == "@":
            if self._is_ident_start(1):
                self._advance()
                return GlobalSegment(self._read_name(), self._span(start, line, col))
            return None

        if ch == "(":
            return self._lex_embedded_expr()

        return None

    def _lex_embedded_expr(self) -> ExprSegment:
        from canary.parser import Parser

        start, line, col = self.pos, self.line, self.col
        if self.depth + 1 > self.max_depth:
            raise self._error("string interpolation nested too deeply", self._point())
        self._advance()  # (

        sub = Lexer(self.source, self.filename, max_depth=self.max_depth)
        sub.pos, sub.line, sub.col = self.pos, self.line, self.col
        sub.depth = self.depth + 1
        sub.nested = True
        tokens = sub.lex()
        if not sub.closed:
            raise self._error("unterminated interpolation in string literal",
                              Span(self.filename, line, col, line, col, start, start + 1))
        self.pos, self.line, self.col = sub.pos, sub.line, sub.col

        parser = Parser(tokens, self.filename, max_depth=max(1, self.max_depth - sub.depth))
        expr = parser.parse_interpolation()
        self._advance()  # )
        return ExprSegment(expr, self._span(start, line, col))

    # ── Operators and Punctuation ────────────────────────────────

    def _lex_operator_or_punct(self) -> Token:
        start, line, col = self.pos, self.line, self.col
        ch = self.source[self.pos]

        if ch == "=" and self._peek(1) == "~":
            self._advance()
            self._advance()
            return Token(TokenKind.MATCH, "=~", self._span(start, line, col))

        kind = PUNCTUATION.get(ch)
        if kind is None:
            raise self._error(f"unexpected character: {ch!r}", self._point())
        self._advance()
        if self.nested:
            if kind == TokenKind.LPAREN:
                self.paren_depth += 1
            elif kind == TokenKind.RPAREN:
                self.paren_depth -= 1
        return Token(kind, ch, self._span(start, line, col))
