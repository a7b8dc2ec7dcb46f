"""Diagnostics, Rust-style rendering, and the front end's error types."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from canary.source import SourceFile, Span


class Severity(Enum):
    ERROR = "error"


# ANSI color codes
_COLORS = {
    Severity.ERROR: "\033[1;31m",  # bold red
}
_BOLD = "\033[1m"
_BLUE = "\033[1;34m"
_RESET = "\033[0m"

LEX_ERROR = "E100"
PATTERN_ERROR = "E101"
PARSE_ERROR = "E200"


@dataclass(frozen=True)
class DiagnosticLabel:
    """Points to a specific source location."""

    span: Span
    message: str


@dataclass
class Diagnostic:
    """A single diagnostic message with optional labels and notes."""

    severity: Severity
    code: str
    message: str
    labels: list[DiagnosticLabel] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)


class DiagnosticRenderer:
    """Renders diagnostics in Rust-style format with colors.

    Source lines are looked up in text registered with :meth:`add_source`
    first, then on disk by the span's file name.
    """

    def __init__(self, *, color: bool = True) -> None:
        self.color = color
        self._file_cache: dict[str, SourceFile] = {}

    def _c(self, code: str) -> str:
        return code if self.color else ""

    def add_source(self, filename: str, text: str) -> None:
        """Register in-memory source text for a file name."""
        self._file_cache[filename] = SourceFile(Path(filename), text)

    def _get_source_line(self, filename: str, line_num: int) -> str | None:
        """Load and cache source file, return the 1-indexed line."""
        if filename not in self._file_cache:
            path = Path(filename)
            try:
                text = path.read_text() if path.is_file() else ""
            except OSError:
                text = ""
            self._file_cache[filename] = SourceFile(path, text)
        source = self._file_cache[filename]
        if 1 <= line_num <= len(source.lines):
            return source.line_at(line_num)
        return None

    def render(self, diag: Diagnostic) -> str:
        lines: list[str] = []
        sev = diag.severity
        color = _COLORS[sev]

        # Header: error[E100]: message
        lines.append(
            f"{self._c(color)}{sev.value}[{diag.code}]{self._c(_RESET)}"
            f"{self._c(_BOLD)}: {diag.message}{self._c(_RESET)}"
        )

        for label in diag.labels:
            span = label.span
            lines.append(
                f"  {self._c(_BLUE)}-->{self._c(_RESET)} {span}"
            )
            gutter = f"{span.start_line:>4}"
            lines.append(f"  {self._c(_BLUE)}   |{self._c(_RESET)}")

            source_line = self._get_source_line(span.file, span.start_line)
            if source_line is not None:
                lines.append(
                    f"  {self._c(_BLUE)}{gutter} |{self._c(_RESET)} {source_line}"
                )

            if span.start_line == span.end_line:
                caret_len = max(1, span.end_col - span.start_col + 1)
                padding = " " * (span.start_col - 1)
                carets = "^" * caret_len
                lines.append(
                    f"  {self._c(_BLUE)}   |{self._c(_RESET)} "
                    f"{padding}{self._c(color)}{carets}{self._c(_RESET)}"
                )
            elif source_line is None:
                lines.append(
                    f"  {self._c(_BLUE)}{gutter} |{self._c(_RESET)}"
                )

            if label.message:
                lines.append(
                    f"  {self._c(_BLUE)}   |{self._c(_RESET)}   "
                    f"{self._c(color)}{label.message}{self._c(_RESET)}"
                )

        for note in diag.notes:
            lines.append(f"  {self._c(_BLUE)}={self._c(_RESET)} note: {note}")

        return "\n".join(lines)


class CompileError(Exception):
    """Compilation error carrying one or more diagnostics."""

    def __init__(self, diagnostics: list[Diagnostic]) -> None:
        self.diagnostics = diagnostics
        messages = [d.message for d in diagnostics]
        super().__init__(f"{len(diagnostics)} error(s): {'; '.join(messages)}")


class LexError(CompileError):
    """Malformed input found while scanning characters into tokens."""

    def __init__(self, reason: str, span: Span, *, code: str = LEX_ERROR) -> None:
        self.reason = reason
        self.span = span
        self.offset = span.start
        super().__init__([
            Diagnostic(
                severity=Severity.ERROR,
                code=code,
                message=reason,
                labels=[DiagnosticLabel(span=span, message="")],
            )
        ])


class ParseError(CompileError):
    """A token that does not fit the grammar at its position."""

    def __init__(
        self, expected: str, found: str, span: Span, *, notes: list[str] | None = None,
    ) -> None:
        self.expected = expected
        self.found = found
        self.span = span
        super().__init__([
            Diagnostic(
                severity=Severity.ERROR,
                code=PARSE_ERROR,
                message=f"expected {expected}, found {found}",
                labels=[DiagnosticLabel(span=span, message=f"expected {expected}")],
                notes=list(notes or []),
            )
        ])


class PatternSyntaxError(Exception):
    """Raised by the pattern compiler; ``offset`` is relative to the pattern body."""

    def __init__(self, reason: str, offset: int) -> None:
        self.reason = reason
        self.offset = offset
        super().__init__(f"{reason} at offset {offset}")
