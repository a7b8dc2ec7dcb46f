"""Tests for the Cy parser."""

from __future__ import annotations

import pytest

from canary.ast_nodes import (
    Assert,
    Assign,
    Bare,
    Call,
    Def,
    If,
    Let,
    Return,
    While,
)
from canary.errors import ParseError
from canary.lexer import tokenize
from canary.parser import Parser, parse_source
from tests.helpers import parse, parse_expr, shape

ONE = ("IntLit", 1)
TWO = ("IntLit", 2)
THREE = ("IntLit", 3)


class TestPrecedence:
    def test_mul_binds_tighter_than_add(self):
        assert shape(parse_expr("1 + 2 * 3")) == (
            "BinopExpr", ONE, "ADD", ("BinopExpr", TWO, "MUL", THREE),
        )

    def test_mul_on_the_left(self):
        assert shape(parse_expr("1 * 2 + 3")) == (
            "BinopExpr", ("BinopExpr", ONE, "MUL", TWO), "ADD", THREE,
        )

    def test_subtraction_is_right_associative(self):
        assert shape(parse_expr("1 - 2 - 3")) == (
            "BinopExpr", ONE, "SUB", ("BinopExpr", TWO, "SUB", THREE),
        )

    def test_division_is_right_associative(self):
        assert shape(parse_expr("1 / 2 / 3")) == (
            "BinopExpr", ONE, "DIV", ("BinopExpr", TWO, "DIV", THREE),
        )

    def test_parens_override(self):
        assert shape(parse_expr("(1 + 2) * 3")) == (
            "BinopExpr",
            ("Parens", ("BinopExpr", ONE, "ADD", TWO)),
            "MUL",
            THREE,
        )

    def test_match_shares_multiplicative_tier(self):
        assert shape(parse_expr("$s =~ re/a/ + 1")) == (
            "BinopExpr",
            ("BinopExpr", ("Local", "s"), "MATCH", ("PatternLit", "re/a/")),
            "ADD",
            ONE,
        )

    def test_equality_below_additive(self):
        assert shape(parse_expr("$a eq 1 + 2")) == (
            "BinopExpr", ("Local", "a"), "EQUAL", ("BinopExpr", ONE, "ADD", TWO),
        )

    def test_not_equal(self):
        assert shape(parse_expr("$a ne $b"))[2] == "NOT_EQUAL"

    def test_equality_does_not_chain(self):
        with pytest.raises(ParseError):
            parse("$a eq $b eq $c;")

    def test_and_binds_tighter_than_or(self):
        assert shape(parse_expr("$a and $b or $c")) == (
            "Or", ("And", ("Local", "a"), ("Local", "b")), ("Local", "c"),
        )

    def test_or_is_right_associative(self):
        assert shape(parse_expr("$a or $b or $c")) == (
            "Or", ("Local", "a"), ("Or", ("Local", "b"), ("Local", "c")),
        )


class TestPrimaries:
    def test_literals(self):
        assert shape(parse_expr("42")) == ("IntLit", 42)
        assert shape(parse_expr(":key")) == ("SymLit", "key")
        assert shape(parse_expr("re/x+/i")) == ("PatternLit", "re/x+/i")

    def test_variables(self):
        assert shape(parse_expr("$x")) == ("Local", "x")
        assert shape(parse_expr("@X")) == ("Global", "X")
        assert shape(parse_expr("%X")) == ("Global", "X")
        assert shape(parse_expr("$2")) == ("Group", 2)

    def test_call(self):
        assert shape(parse_expr("max(1, 2)")) == ("Call", "max", [ONE, TWO])

    def test_call_without_args(self):
        assert shape(parse_expr("now()")) == ("Call", "now", [])

    def test_list(self):
        assert shape(parse_expr("[1, [2], 3]")) == (
            "ListExpr", [ONE, ("ListExpr", [TWO]), THREE],
        )

    def test_empty_list(self):
        assert shape(parse_expr("[]")) == ("ListExpr", [])

    def test_string_parts(self):
        assert shape(parse_expr('"a $b (1 + 2)"')) == (
            "Str",
            [
                ("TextLit", "a "),
                ("Local", "b"),
                ("TextLit", " "),
                ("BinopExpr", ONE, "ADD", TWO),
            ],
        )

    def test_string_group_part(self):
        assert shape(parse_expr('"got $1"')) == (
            "Str", [("TextLit", "got "), ("Group", 1)],
        )

    def test_string_global_part(self):
        assert shape(parse_expr('"home @X"')) == (
            "Str", [("TextLit", "home "), ("Global", "X")],
        )

    def test_index(self):
        assert shape(parse_expr("$m[1][2]")) == (
            "BinopExpr",
            ("BinopExpr", ("Local", "m"), "IDX", ONE),
            "IDX",
            TWO,
        )

    def test_field_sugar(self):
        assert shape(parse_expr("$h.name")) == (
            "BinopExpr", ("Local", "h"), "IDX", ("SymLit", "name"),
        )

    def test_index_binds_tighter_than_mul(self):
        assert shape(parse_expr("$a[0] * 2")) == (
            "BinopExpr", ("BinopExpr", ("Local", "a"), "IDX", ("IntLit", 0)), "MUL", TWO,
        )

    def test_far_word_is_not_an_expression(self):
        with pytest.raises(ParseError, match="expected expression"):
            parse("1 + foo;")


class TestStatements:
    def test_let(self):
        stmt = parse("my $x = [1, 2];").begin[0]
        assert isinstance(stmt, Let)
        assert shape(stmt) == ("Let", "x", ("ListExpr", [ONE, TWO]))

    def test_let_without_value(self):
        stmt = parse("my $x;").begin[0]
        assert isinstance(stmt, Let)
        assert stmt.rhs is None

    def test_index_assignment(self):
        stmt = parse("$a[0] = 3;").begin[0]
        assert isinstance(stmt, Assign)
        assert shape(stmt) == (
            "Assign", ("BinopExpr", ("Local", "a"), "IDX", ("IntLit", 0)), THREE,
        )

    def test_return(self):
        stmt = parse("return 1;").begin[0]
        assert isinstance(stmt, Return)
        assert shape(stmt.rhs) == ONE

    def test_bare_return(self):
        stmt = parse("return;").begin[0]
        assert isinstance(stmt, Return)
        assert stmt.rhs is None

    def test_assert(self):
        stmt = parse("assert $x eq 1;").begin[0]
        assert isinstance(stmt, Assert)

    def test_expression_statement(self):
        stmt = parse("foo(1, 2);").begin[0]
        assert isinstance(stmt, Bare)
        assert isinstance(stmt.rhs, Call)

    def test_paren_less_call(self):
        stmt = parse('print "a", $b;').begin[0]
        assert isinstance(stmt, Bare)
        assert shape(stmt.rhs) == (
            "Call", "print", [("Str", [("TextLit", "a")]), ("Local", "b")],
        )

    def test_far_word_call_with_parens(self):
        stmt = parse("print (1, 2);").begin[0]
        assert shape(stmt.rhs) == ("Call", "print", [ONE, TWO])

    def test_far_word_without_args(self):
        stmt = parse("exit;").begin[0]
        assert shape(stmt.rhs) == ("Call", "exit", [])

    def test_empty_statements(self):
        assert parse(";;;").begin == []

    def test_missing_semicolon(self):
        with pytest.raises(ParseError) as exc:
            parse("1")
        assert exc.value.expected == "';'"
        assert exc.value.found == "end of input"

    def test_unclosed_call_args(self):
        with pytest.raises(ParseError, match="expected ',' or '\\)'") as exc:
            parse("f(1;")
        assert exc.value.found == "';'"

    def test_unclosed_call_at_end_of_input(self):
        with pytest.raises(ParseError) as exc:
            parse("f(1")
        assert exc.value.expected == "',' or ')'"
        assert exc.value.found == "end of input"

    def test_list_missing_comma(self):
        with pytest.raises(ParseError) as exc:
            parse("[1 2];")
        assert exc.value.expected == "',' or ']'"

    def test_my_needs_local(self):
        with pytest.raises(ParseError, match="expected local variable"):
            parse("my 1;")

    def test_statement_span_includes_semicolon(self):
        stmt = parse("my $x = 1;").begin[0]
        assert (stmt.span.start, stmt.span.end) == (0, 10)
        assert (stmt.span.start_col, stmt.span.end_col) == (1, 10)


class TestControlFlow:
    def test_if_with_group_print(self):
        stmt = parse("if 0 { print $1; }").begin[0]
        assert isinstance(stmt, If)
        assert shape(stmt) == (
            "If",
            [("IfClause", ("IntLit", 0), [("Bare", ("Call", "print", [("Group", 1)]))])],
            [],
        )

    def test_else_if_chain(self):
        stmt = parse("if $a { 1; } else if $b { 2; } else { 3; }").begin[0]
        assert isinstance(stmt, If)
        assert len(stmt.clauses) == 2
        assert shape(stmt.clauses[1].test) == ("Local", "b")
        assert shape(stmt.last) == [("Bare", THREE)]

    def test_empty_block(self):
        stmt = parse("if 1 {}").begin[0]
        assert stmt.clauses[0].body == []

    def test_while(self):
        stmt = parse("while $i { $i = $i - 1; }").begin[0]
        assert isinstance(stmt, While)
        assert shape(stmt.body) == [
            ("Assign", ("Local", "i"), ("BinopExpr", ("Local", "i"), "SUB", ONE)),
        ]

    def test_unclosed_block(self):
        with pytest.raises(ParseError, match="expected '}'"):
            parse("while 1 { 2;")


class TestDefinitions:
    def test_sub(self):
        mod = parse("sub f($a, $b) { return $a + $b; }")
        assert mod.begin == []
        d = mod.defs[0]
        assert isinstance(d, Def)
        assert d.name == "f"
        assert d.args == ["a", "b"]
        assert shape(d.body) == [
            ("Return", ("BinopExpr", ("Local", "a"), "ADD", ("Local", "b"))),
        ]

    def test_sub_without_args(self):
        d = parse("sub main() {}").defs[0]
        assert d.args == []
        assert d.body == []

    def test_statements_before_subs(self):
        mod = parse("my $x = 1; sub a() {} sub b() {}")
        assert len(mod.begin) == 1
        assert [d.name for d in mod.defs] == ["a", "b"]

    def test_statement_after_sub_rejected(self):
        with pytest.raises(ParseError, match="'sub' or end of input"):
            parse("sub f() {} 1;")

    def test_sub_name_must_be_near(self):
        with pytest.raises(ParseError):
            parse("sub f ($a) {}")

    def test_sub_args_must_be_locals(self):
        with pytest.raises(ParseError):
            parse("sub f(1) {}")

    def test_sub_args_missing_comma(self):
        with pytest.raises(ParseError) as exc:
            parse("sub f($a $b) {}")
        assert exc.value.expected == "',' or ')'"


class TestParserBehaviour:
    def test_deterministic(self):
        source = 'my $x = "v=$v"; if $x =~ re/(\\d+)/ { print $1; } sub f($a) { return $a; }'
        assert parse(source) == parse(source)

    def test_lazy_token_stream(self):
        mod = Parser(tokenize("1; 2;"), "<test>").parse()
        assert len(mod.begin) == 2

    def test_parse_source(self):
        mod = parse_source("my $x = 1;", "demo.cy")
        assert mod.span.file == "demo.cy"

    def test_nesting_within_limit(self):
        source = "(" * 10 + "1" + ")" * 10 + ";"
        assert len(parse(source).begin) == 1

    def test_expression_depth_limit(self):
        source = "(" * 100 + "1" + ")" * 100 + ";"
        with pytest.raises(ParseError, match="levels of nesting"):
            parse(source)

    def test_depth_limit_names_setting(self):
        with pytest.raises(ParseError) as exc:
            parse_source("((1));", max_depth=2)
        assert any("max_depth" in note for note in exc.value.diagnostics[0].notes)

    def test_block_depth_limit(self):
        source = "if 1 { " * 70 + "}" * 70
        with pytest.raises(ParseError, match="levels of nesting"):
            parse(source)

    def test_custom_depth_limit(self):
        with pytest.raises(ParseError):
            parse_source("((1));", max_depth=2)
