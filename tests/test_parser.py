"""Tests for the expression scanner and parser."""

import pytest

from varstore.errors import (
    InvalidNumberError,
    MissingExpressionError,
    ParseError,
    UnclosedBracketError,
    UnclosedGroupError,
    UnclosedQuoteError,
    UnexpectedTokenError,
)
from varstore.lexer import Scanner
from varstore.parser import (
    ArrayExpression,
    BinaryExpression,
    CallExpression,
    Compound,
    ConditionalExpression,
    Identifier,
    Literal,
    LogicalExpression,
    MemberExpression,
    Parser,
    ThisExpression,
    UnaryExpression,
    collect_identifiers,
    parse,
)


def ast(source):
    return Parser(source).parse()


# =============================================================================
# Scanner
# =============================================================================


class TestScanner:
    @pytest.mark.parametrize(
        "source,expected",
        [
            ("42", 42),
            ("3.14", 3.14),
            (".5", 0.5),
            ("1e3", 1000.0),
            ("2.5E-1", 0.25),
        ],
    )
    def test_numbers(self, source, expected):
        value, raw = Scanner(source).read_number()
        assert value == expected
        assert raw == source

    def test_integer_stays_int(self):
        value, _ = Scanner("10").read_number()
        assert isinstance(value, int)

    def test_strings(self):
        assert Scanner('"hello"').read_string() == ("hello", '"hello"')
        assert Scanner("'it'").read_string() == ("it", "'it'")

    def test_string_escapes(self):
        value, _ = Scanner(r'"a\nb\t\"c\""').read_string()
        assert value == 'a\nb\t"c"'

    def test_operator_longest_match(self):
        scanner = Scanner(">>> 2")
        assert scanner.match_operator({">": 1, ">>": 1, ">>>": 1}, 3) == ">>>"
        assert scanner.position == 3

    def test_name(self):
        scanner = Scanner("$item_2 rest")
        assert scanner.read_name() == "$item_2"
        assert scanner.read_name() is None


# =============================================================================
# Literals and identifiers
# =============================================================================


class TestPrimaries:
    def test_number_literal(self):
        assert ast("42") == Literal(42)

    def test_string_literal(self):
        assert ast("'hello'") == Literal("hello")

    @pytest.mark.parametrize("source,value", [("true", True), ("false", False), ("null", None)])
    def test_keyword_literals(self, source, value):
        node = ast(source)
        assert isinstance(node, Literal)
        assert node.value is value

    def test_keyword_prefix_is_identifier(self):
        assert ast("trueValue") == Identifier("trueValue")

    def test_this(self):
        assert ast("this") == ThisExpression()

    def test_identifier(self):
        assert ast("firstName") == Identifier("firstName")

    def test_non_ascii_identifier(self):
        assert ast("größe") == Identifier("größe")

    def test_raw_not_part_of_equality(self):
        assert Literal(1, "1") == Literal(1, "1.0")


# =============================================================================
# Operators
# =============================================================================


class TestOperators:
    def test_precedence(self):
        assert ast("a * b + c") == BinaryExpression(
            "+",
            BinaryExpression("*", Identifier("a"), Identifier("b")),
            Identifier("c"),
        )
        assert ast("a + b * c") == BinaryExpression(
            "+",
            Identifier("a"),
            BinaryExpression("*", Identifier("b"), Identifier("c")),
        )

    def test_left_associative(self):
        assert ast("a - b - c") == BinaryExpression(
            "-",
            BinaryExpression("-", Identifier("a"), Identifier("b")),
            Identifier("c"),
        )

    def test_grouping(self):
        assert ast("(a + b) * c") == BinaryExpression(
            "*",
            BinaryExpression("+", Identifier("a"), Identifier("b")),
            Identifier("c"),
        )

    def test_logical_nodes(self):
        assert ast("a && b || c") == LogicalExpression(
            "||",
            LogicalExpression("&&", Identifier("a"), Identifier("b")),
            Identifier("c"),
        )

    def test_multi_character_operators(self):
        assert ast("a !== b").operator == "!=="
        assert ast("a >>> b").operator == ">>>"
        assert ast("a <= b").operator == "<="

    def test_unary(self):
        assert ast("-one") == UnaryExpression("-", Identifier("one"))
        assert ast("!!ok") == UnaryExpression("!", UnaryExpression("!", Identifier("ok")))
        assert ast("~15") == UnaryExpression("~", Literal(15))

    def test_unary_binds_tighter_than_binary(self):
        assert ast("-14 >>> 2") == BinaryExpression(
            ">>>", UnaryExpression("-", Literal(14)), Literal(2)
        )

    def test_ternary(self):
        assert ast("a ? b : c") == ConditionalExpression(
            Identifier("a"), Identifier("b"), Identifier("c")
        )

    def test_ternary_test_is_whole_binary(self):
        assert ast("a || b ? c : d") == ConditionalExpression(
            LogicalExpression("||", Identifier("a"), Identifier("b")),
            Identifier("c"),
            Identifier("d"),
        )

    def test_ternary_right_associative(self):
        node = ast("a ? b : c ? d : e")
        assert node.test == Identifier("a")
        assert node.alternate == ConditionalExpression(
            Identifier("c"), Identifier("d"), Identifier("e")
        )


# =============================================================================
# Member access, calls and arrays
# =============================================================================


class TestPostfix:
    def test_dot_member(self):
        assert ast("foo.bar") == MemberExpression(Identifier("foo"), Identifier("bar"))

    def test_computed_member(self):
        assert ast("foo[foo.bar]") == MemberExpression(
            Identifier("foo"),
            MemberExpression(Identifier("foo"), Identifier("bar")),
            computed=True,
        )

    def test_call(self):
        assert ast("func(5)") == CallExpression(Identifier("func"), (Literal(5),))

    def test_call_no_arguments(self):
        assert ast("now()") == CallExpression(Identifier("now"), ())

    def test_method_call(self):
        assert ast('foo.func("bar", 2)') == CallExpression(
            MemberExpression(Identifier("foo"), Identifier("func")),
            (Literal("bar"), Literal(2)),
        )

    def test_chained_postfix(self):
        node = ast("a.b[0](x).c")
        assert isinstance(node, MemberExpression)
        assert isinstance(node.object, CallExpression)

    def test_array_literal(self):
        assert ast("[1, true, 'three']") == ArrayExpression(
            (Literal(1), Literal(True), Literal("three"))
        )

    def test_array_holes(self):
        assert ast("[1,,3]") == ArrayExpression((Literal(1), None, Literal(3)))
        assert ast("[,1]") == ArrayExpression((None, Literal(1)))

    def test_grouped_array_member(self):
        assert ast("([1,2,3])[0]") == MemberExpression(
            ArrayExpression((Literal(1), Literal(2), Literal(3))),
            Literal(0),
            computed=True,
        )


# =============================================================================
# Compound expressions
# =============================================================================


class TestCompound:
    def test_semicolon_separated(self):
        assert ast("a; b") == Compound((Identifier("a"), Identifier("b")))

    def test_comma_separated(self):
        assert ast("a, b, c") == Compound((Identifier("a"), Identifier("b"), Identifier("c")))

    def test_single_expression_is_not_wrapped(self):
        assert ast("a;") == Identifier("a")

    def test_empty_source(self):
        assert ast("") == Compound(())
        assert ast("   ") == Compound(())


# =============================================================================
# Errors
# =============================================================================


class TestErrors:
    def test_missing_right_operand(self):
        with pytest.raises(MissingExpressionError) as exc_info:
            ast("a +")
        assert exc_info.value.position == 3
        assert "position 3" in str(exc_info.value)

    def test_unclosed_group(self):
        with pytest.raises(UnclosedGroupError) as exc_info:
            ast("(a")
        assert exc_info.value.position == 2

    def test_unclosed_member_bracket(self):
        with pytest.raises(UnclosedBracketError):
            ast("a[1")

    def test_unclosed_array(self):
        with pytest.raises(UnclosedBracketError):
            ast("[1, 2")

    def test_unclosed_call(self):
        with pytest.raises(UnclosedGroupError):
            ast("f(1")

    def test_unclosed_quote(self):
        with pytest.raises(UnclosedQuoteError):
            ast("'abc")

    @pytest.mark.parametrize("source", ["1e", "1.2.3", "12abc"])
    def test_invalid_numbers(self, source):
        with pytest.raises(InvalidNumberError):
            ast(source)

    def test_ternary_missing_colon(self):
        with pytest.raises(UnexpectedTokenError, match="Expected :"):
            ast("a ? b")

    def test_ternary_missing_branch(self):
        with pytest.raises(MissingExpressionError):
            ast("a ?")

    @pytest.mark.parametrize("source", ["f(1,)", "f(,1)", "f(1 2)"])
    def test_bad_argument_lists(self, source):
        with pytest.raises(UnexpectedTokenError):
            ast(source)

    def test_stray_character(self):
        with pytest.raises(UnexpectedTokenError):
            ast("a )")

    def test_missing_unary_operand(self):
        with pytest.raises(MissingExpressionError):
            ast("!")

    def test_all_parse_errors_share_base(self):
        with pytest.raises(ParseError):
            ast("(")


# =============================================================================
# parse() and identifiers
# =============================================================================


class TestParse:
    def test_returns_node_and_identifiers(self):
        node, identifiers = parse("price * qty")
        assert node == BinaryExpression("*", Identifier("price"), Identifier("qty"))
        assert identifiers == frozenset({"price", "qty"})

    def test_member_names_are_not_identifiers(self):
        assert collect_identifiers(ast("a.b + c[d] + f(x)")) == {"a", "c", "d", "f", "x"}

    def test_literals_contribute_nothing(self):
        assert parse("1 + 'two'").identifiers == frozenset()

    def test_parses_are_independent(self):
        first = Parser("a + b")
        second = Parser("c")
        assert second.parse() == Identifier("c")
        assert first.parse() == BinaryExpression("+", Identifier("a"), Identifier("b"))

    def test_to_dict(self):
        assert ast("a + 1").to_dict() == {
            "type": "BinaryExpression",
            "operator": "+",
            "left": {"type": "Identifier", "name": "a"},
            "right": {"type": "Literal", "value": 1, "raw": "1"},
        }
