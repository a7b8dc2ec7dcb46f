"""Pattern literal compiler.

Turns the body of a ``re/.../flags`` literal into a ``PatternAst``. The
lexer embeds the result in a PATTERN token and the parser carries it
through untouched; executing a pattern against a string happens in the
evaluator, not here.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union

from canary.errors import PatternSyntaxError

FLAGS = frozenset("i")
MAX_GROUPS = 256

# Characters that must be escaped to appear literally.
_MAGIC = "()[]{}|.?+*/^$\\"
_ESCAPABLE = _MAGIC + "\"<>@%"
_DIGITS = frozenset("0123456789")


class ClassKind(Enum):
    DOT = "."
    DIGIT = "\\d"
    WORD = "\\w"
    SPACE = "\\s"


class RepeatKind(Enum):
    ONE_OR_ZERO = "?"
    ZERO_OR_MORE = "*"
    ONE_OR_MORE = "+"
    COUNT = "{}"


@dataclass(frozen=True)
class Raw:
    text: str

    def __str__(self) -> str:
        return "".join(f"\\{ch}" if ch in _MAGIC or ch in "@%" else ch for ch in self.text)


@dataclass(frozen=True)
class CharClass:
    kind: ClassKind

    def __str__(self) -> str:
        return self.kind.value


@dataclass(frozen=True)
class CustomClass:
    invert: bool
    members: frozenset[str]

    def __str__(self) -> str:
        body = "".join(
            f"\\{ch}" if ch in "]\\-^/" else ch for ch in sorted(self.members)
        )
        return f"[^{body}]" if self.invert else f"[{body}]"


@dataclass(frozen=True)
class AnchorStart:
    def __str__(self) -> str:
        return "^"


@dataclass(frozen=True)
class AnchorEnd:
    def __str__(self) -> str:
        return "$"


@dataclass(frozen=True)
class LocalPayload:
    """A ``$name`` inside a pattern, substituted at match time."""

    name: str

    def __str__(self) -> str:
        return f"${self.name}"


@dataclass(frozen=True)
class GlobalPayload:
    name: str

    def __str__(self) -> str:
        return f"@{self.name}"


@dataclass(frozen=True)
class Repeat:
    leaf: Leaf
    times: RepeatKind
    count: int = 0

    def __str__(self) -> str:
        if self.times == RepeatKind.COUNT:
            return f"{self.leaf}{{{self.count}}}"
        return f"{self.leaf}{self.times.value}"


@dataclass(frozen=True)
class Branch:
    leaves: tuple[Leaf, ...]

    def __str__(self) -> str:
        return "".join(str(leaf) for leaf in self.leaves)


@dataclass(frozen=True)
class Group:
    number: int
    branches: tuple[Branch, ...]

    def __str__(self) -> str:
        body = "|".join(str(branch) for branch in self.branches)
        return body if self.number == 0 else f"({body})"


Leaf = Union[
    Raw, CharClass, CustomClass, AnchorStart, AnchorEnd,
    LocalPayload, GlobalPayload, Repeat, Group,
]


@dataclass(frozen=True)
class PatternAst:
    root: Group
    ignore_case: bool = False

    @property
    def group_count(self) -> int:
        """Number of capture groups, including the whole match."""
        return _count_groups(self.root)

    def __str__(self) -> str:
        flags = "i" if self.ignore_case else ""
        return f"re/{self.root}/{flags}"


def _count_groups(group: Group) -> int:
    total = 1
    for branch in group.branches:
        for leaf in branch.leaves:
            while isinstance(leaf, Repeat):
                leaf = leaf.leaf
            if isinstance(leaf, Group):
                total += _count_groups(leaf)
    return total


def compile_pattern(raw: str, flags: str = "") -> PatternAst:
    """Compile a pattern body and its trailing flags into a PatternAst.

    Raises PatternSyntaxError with an offset relative to ``raw``; an
    unknown flag is reported at ``len(raw) + index``.
    """
    for i, flag in enumerate(flags):
        if flag not in FLAGS:
            raise PatternSyntaxError(f"unknown pattern flag {flag!r}", len(raw) + i)
    root = _PatternParser(raw).parse()
    return PatternAst(root=root, ignore_case="i" in flags)


class _PatternParser:
    def __init__(self, raw: str) -> None:
        self.raw = raw
        self.pos = 0
        self.next_group = 0

    def _peek(self) -> str | None:
        if self.pos < len(self.raw):
            return self.raw[self.pos]
        return None

    def _advance(self) -> str:
        if self.pos >= len(self.raw):
            raise PatternSyntaxError("unexpected end of pattern", self.pos)
        ch = self.raw[self.pos]
        self.pos += 1
        return ch

    def _error(self, reason: str, offset: int | None = None) -> PatternSyntaxError:
        return PatternSyntaxError(reason, self.pos if offset is None else offset)

    def parse(self) -> Group:
        group = self._parse_group(None)
        if self.pos != len(self.raw):
            raise self._error("unbalanced ')'")
        return group

    def _parse_group(self, end: str | None) -> Group:
        number = self.next_group
        if number >= MAX_GROUPS:
            raise self._error("too many capture groups")
        self.next_group += 1

        branches: list[Branch] = []
        leaves: list[Leaf] = []

        while True:
            ch = self._peek()
            if ch is None:
                if end is not None:
                    raise self._error(f"missing {end!r}")
                break
            if ch == end:
                self._advance()
                break

            start = self.pos
            self._advance()
            match ch:
                case "|":
                    branches.append(Branch(tuple(leaves)))
                    leaves = []
                case "(":
                    leaves.append(self._parse_group(")"))
                case "[":
                    leaves.append(self._parse_class())
                case ")" | "]" | "}":
                    raise self._error(f"unbalanced {ch!r}", start)
                case "{":
                    self._repeat(leaves, RepeatKind.COUNT, self._parse_count(), start)
                case "?":
                    self._repeat(leaves, RepeatKind.ONE_OR_ZERO, 0, start)
                case "*":
                    self._repeat(leaves, RepeatKind.ZERO_OR_MORE, 0, start)
                case "+":
                    self._repeat(leaves, RepeatKind.ONE_OR_MORE, 0, start)
                case "^":
                    leaves.append(AnchorStart())
                case "$":
                    nxt = self._peek()
                    if nxt is None or nxt == end or nxt in ")|":
                        leaves.append(AnchorEnd())
                    elif nxt.isalpha() or nxt == "_":
                        leaves.append(LocalPayload(self._parse_name()))
                    else:
                        raise self._error("expected a name or the end of a branch after '$'")
                case "@" | "%":
                    nxt = self._peek()
                    if nxt is not None and (nxt.isalpha() or nxt == "_"):
                        leaves.append(GlobalPayload(self._parse_name()))
                    else:
                        self._putchar(leaves, ch)
                case ".":
                    leaves.append(CharClass(ClassKind.DOT))
                case "\\":
                    self._parse_escape(leaves, start)
                case _ if ord(ch) < 0x20:
                    raise self._error("control character in pattern", start)
                case _:
                    self._putchar(leaves, ch)

        branches.append(Branch(tuple(leaves)))
        return Group(number=number, branches=tuple(branches))

    def _parse_escape(self, leaves: list[Leaf], start: int) -> None:
        if self._peek() is None:
            raise self._error("dangling backslash", start)
        ch = self._advance()
        if ch in _ESCAPABLE:
            self._putchar(leaves, ch)
        elif ch == "d":
            leaves.append(CharClass(ClassKind.DIGIT))
        elif ch == "w":
            leaves.append(CharClass(ClassKind.WORD))
        elif ch == "s":
            leaves.append(CharClass(ClassKind.SPACE))
        else:
            raise self._error(f"unknown escape \\{ch}", start)

    def _parse_name(self) -> str:
        start = self.pos
        while (ch := self._peek()) is not None and (ch.isalnum() or ch == "_"):
            self.pos += 1
        return self.raw[start:self.pos]

    def _parse_count(self) -> int:
        start = self.pos
        digits = []
        while True:
            ch = self._advance()
            if ch == "}":
                break
            if ch not in _DIGITS:
                raise self._error("expected digits in repeat count", self.pos - 1)
            digits.append(ch)
        if not digits:
            raise self._error("empty repeat count", start)
        return int("".join(digits))

    def _parse_class(self) -> CustomClass:
        start = self.pos - 1
        invert = False
        members: set[str] = set()
        prev: str | None = None

        if self._peek() == "^":
            self._advance()
            invert = True

        while True:
            if self._peek() is None:
                raise self._error("unterminated character class", start)
            ch = self._advance()
            if ch == "]":
                break
            if ch == "\\":
                ch = self._advance()
            elif ch == "-" and prev is not None and self._peek() not in (None, "]"):
                hi = self._advance()
                if hi == "\\":
                    hi = self._advance()
                if ord(prev) >= ord(hi):
                    raise self._error(f"bad class range {prev}-{hi}", self.pos - 1)
                members.update(chr(c) for c in range(ord(prev), ord(hi) + 1))
                prev = None
                continue
            members.add(ch)
            prev = ch

        return CustomClass(invert=invert, members=frozenset(members))

    def _repeat(self, leaves: list[Leaf], times: RepeatKind, count: int, at: int) -> None:
        if not leaves or isinstance(leaves[-1], (Repeat, AnchorStart, AnchorEnd)):
            raise self._error(f"nothing to repeat before {times.value!r}", at)
        last = leaves.pop()
        # A repeat binds to one character, not the whole literal run.
        if isinstance(last, Raw) and len(last.text) > 1:
            leaves.append(Raw(last.text[:-1]))
            last = Raw(last.text[-1])
        leaves.append(Repeat(leaf=last, times=times, count=count))

    @staticmethod
    def _putchar(leaves: list[Leaf], ch: str) -> None:
        if leaves and isinstance(leaves[-1], Raw):
            leaves[-1] = Raw(leaves[-1].text + ch)
        else:
            leaves.append(Raw(ch))
