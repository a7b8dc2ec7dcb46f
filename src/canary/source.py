"""Source file representation and span tracking for diagnostics."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class Span:
    """A range within a source file.

    Lines and columns are 1-indexed and inclusive; ``start``/``end`` are
    absolute character offsets into the source, half-open.
    """

    file: str
    start_line: int
    start_col: int
    end_line: int
    end_col: int
    start: int = 0
    end: int = 0

    def __str__(self) -> str:
        return f"{self.file}:{self.start_line}:{self.start_col}"

    def to(self, other: Span) -> Span:
        """Return the span running from the start of self to the end of other."""
        return Span(
            self.file,
            self.start_line, self.start_col,
            other.end_line, other.end_col,
            self.start, other.end,
        )


class SourceFile:
    """A loaded source file with line access for diagnostics."""

    def __init__(self, path: Path, content: str | None = None) -> None:
        self.path = path
        self.content = path.read_text() if content is None else content
        self.lines = self.content.splitlines()

    def line_at(self, n: int) -> str:
        """Return the 1-indexed line, or empty string if out of range."""
        if 1 <= n <= len(self.lines):
            return self.lines[n - 1]
        return ""
