"""Cy front-end CLI."""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path

import click

from canary import __version__
from canary.ast_nodes import Module
from canary.config import CyConfig, find_config, load_config
from canary.errors import CompileError, DiagnosticRenderer
from canary.formatter import CyFormatter
from canary.lexer import Lexer
from canary.parser import Parser
from canary.pattern import PatternAst
from canary.tokens import (
    ExprSegment,
    GlobalSegment,
    GroupRefSegment,
    LocalSegment,
    TextSegment,
    Token,
    TokenKind,
)

logger = logging.getLogger(__name__)


def _report(error: CompileError, source: str, filename: str) -> None:
    renderer = DiagnosticRenderer(color=True)
    renderer.add_source(filename, source)
    for diag in error.diagnostics:
        click.echo(renderer.render(diag), err=True)


def _load(file: str) -> tuple[str, Module]:
    """Read, lex and parse ``file``; render diagnostics and exit 1 on error."""
    source = Path(file).read_text()
    filename = str(file)
    try:
        tokens = Lexer(source, filename).lex()
        module = Parser(tokens, filename).parse()
    except CompileError as e:
        _report(e, source, filename)
        raise SystemExit(1)
    return source, module


@click.group()
@click.version_option(__version__, prog_name="cy")
@click.option("-v", "--verbose", is_flag=True, help="Log lexer and parser activity.")
def main(verbose: bool) -> None:
    """Front end for the Cy scripting language."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")


@main.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
def tokens(file: str) -> None:
    """Print the tokens of a Cy source file, one per line."""
    source = Path(file).read_text()
    try:
        toks = Lexer(source, str(file)).lex()
    except CompileError as e:
        _report(e, source, str(file))
        raise SystemExit(1)
    for tok in toks:
        click.echo(_format_token(tok))


@main.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
def parse(file: str) -> None:
    """Print the AST of a Cy source file."""
    _, module = _load(file)
    _dump_ast(module, 0)


@main.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--check", is_flag=True, help="Check formatting without printing.")
def fmt(file: str, check: bool) -> None:
    """Print a Cy source file in canonical form."""
    source, module = _load(file)
    formatted = CyFormatter().format(module)
    if check:
        if formatted != source:
            click.echo(f"would reformat {file}")
            raise SystemExit(1)
        return
    click.echo(formatted, nl=False)


@main.command()
@click.argument("path", default=".", type=click.Path(exists=True))
def check(path: str) -> None:
    """Lex and parse every Cy source file under PATH."""
    target = Path(path)
    try:
        config = load_config(find_config(target))
    except FileNotFoundError:
        logger.debug("no cy.toml above %s, using defaults", target)
        config = CyConfig()

    if target.is_dir():
        files = sorted({f for pat in config.check.include for f in target.rglob(pat)})
    else:
        files = [target]
    if not files:
        click.echo("warning: no .cy files found", err=True)
        return

    click.echo(f"checking {config.package.name} {config.package.version}...")
    max_depth = config.parser.max_depth
    had_errors = False
    for cy_file in files:
        source = cy_file.read_text()
        filename = str(cy_file)
        try:
            tokens = Lexer(source, filename, max_depth=max_depth).lex()
            Parser(tokens, filename, max_depth=max_depth).parse()
        except CompileError as e:
            had_errors = True
            _report(e, source, filename)

    if had_errors:
        raise SystemExit(1)
    click.echo(f"checked {len(files)} file(s), no errors")


@main.command()
def repl() -> None:
    """Read lines, printing their tokens and parsed statements."""
    stdin = click.get_text_stream("stdin")
    while True:
        click.echo("> ", nl=False)
        line = stdin.readline()
        if not line.strip():
            break
        try:
            toks = Lexer(line, "<repl>").lex()
            for tok in toks:
                click.echo(_format_token(tok))
            module = Parser(toks, "<repl>").parse()
        except CompileError as e:
            _report(e, line, "<repl>")
            continue
        for stmt in module.begin:
            _dump_ast(stmt, 0)
        for d in module.defs:
            _dump_ast(d, 0)


def _format_token(tok: Token) -> str:
    span = tok.span
    text = f"{span.start_line}:{span.start_col} {tok.kind.name}"
    if tok.kind == TokenKind.STRING:
        parts = ", ".join(_format_segment(seg) for seg in tok.value)
        return f"{text} [{parts}]"
    if isinstance(tok.value, PatternAst):
        return f"{text} {tok.value}"
    if tok.value is not None:
        return f"{text} {tok.value!r}"
    return text


def _format_segment(seg: object) -> str:
    if isinstance(seg, TextSegment):
        return repr(seg.text)
    if isinstance(seg, LocalSegment):
        return f"${seg.name}"
    if isinstance(seg, GlobalSegment):
        return f"@{seg.name}"
    if isinstance(seg, GroupRefSegment):
        return f"${seg.index}"
    if isinstance(seg, ExprSegment):
        return f"({CyFormatter().format_expr(seg.expr)})"
    return repr(seg)


def _dump_ast(node: object, depth: int) -> None:
    """Print a readable AST dump."""
    indent = "  " * depth
    name = type(node).__name__

    if isinstance(node, PatternAst):
        click.echo(f"{indent}{node}")
    elif hasattr(node, "__dataclass_fields__"):
        fields = node.__dataclass_fields__  # type: ignore[union-attr]
        click.echo(f"{indent}{name}")
        for field_name in fields:
            if field_name == "span":
                continue
            value = getattr(node, field_name)
            if isinstance(value, list):
                if value:
                    click.echo(f"{indent}  {field_name}:")
                    for item in value:
                        _dump_ast(item, depth + 2)
                else:
                    click.echo(f"{indent}  {field_name}: []")
            elif isinstance(value, PatternAst):
                click.echo(f"{indent}  {field_name}: {value}")
            elif hasattr(value, "__dataclass_fields__"):
                click.echo(f"{indent}  {field_name}:")
                _dump_ast(value, depth + 2)
            elif isinstance(value, Enum):
                click.echo(f"{indent}  {field_name}: {value.name}")
            elif value is not None:
                click.echo(f"{indent}  {field_name}: {value!r}")
    else:
        click.echo(f"{indent}{name}: {node!r}")
