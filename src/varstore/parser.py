"""Parser for the varstore expression language.

Turns an expression string into an Abstract Syntax Tree (AST) in a single
pass over the characters. Binary operators are handled with an operator
precedence stack; everything else is recursive descent.

Operator Precedence (lowest to highest):
1. ||
2. &&
3. |
4. ^
5. &
6. == != === !==
7. < > <= >=
8. << >> >>>
9. + -
10. * / %

Unary - + ~ ! apply to a single token; member access (. and []) and calls
bind tighter still. `a ? b : c` sits above all binary operators and is
right associative. Expressions may be separated by ';' or ','; more than
one yields a Compound node.
"""

from dataclasses import dataclass, field, fields
from typing import Any, Iterator, NamedTuple

from varstore.errors import (
    MissingExpressionError,
    UnclosedBracketError,
    UnclosedGroupError,
    UnexpectedTokenError,
)
from varstore.lexer import (
    BINARY_PRECEDENCE,
    KEYWORD_LITERALS,
    LOGICAL_OPERATORS,
    MAX_BINARY_LEN,
    MAX_UNARY_LEN,
    THIS_KEYWORD,
    UNARY_OPERATORS,
    Scanner,
    is_decimal_digit,
    is_identifier_start,
)


# -----------------------------------------------------------------------------
# AST Node Types
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class ASTNode:
    """Base class for AST nodes. Nodes are immutable and can be shared."""

    def children(self) -> Iterator["ASTNode"]:
        """Yield the direct child nodes in field order."""
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, ASTNode):
                yield value
            elif isinstance(value, tuple):
                yield from (item for item in value if isinstance(item, ASTNode))

    def to_dict(self) -> dict[str, Any]:
        """Serialize the node and its children to plain data."""
        data: dict[str, Any] = {"type": type(self).__name__}
        for f in fields(self):
            data[f.name] = _serialize(getattr(self, f.name))
        return data


def _serialize(value: Any) -> Any:
    if isinstance(value, ASTNode):
        return value.to_dict()
    if isinstance(value, tuple):
        return [_serialize(item) for item in value]
    return value


@dataclass(frozen=True)
class Literal(ASTNode):
    """A literal value (number, string, boolean, null)."""
    value: Any
    raw: str | None = field(default=None, compare=False)


@dataclass(frozen=True)
class Identifier(ASTNode):
    """A variable reference resolved through the store."""
    name: str


@dataclass(frozen=True)
class ThisExpression(ASTNode):
    """The `this` keyword: the store the expression is evaluated against."""
    pass


@dataclass(frozen=True)
class UnaryExpression(ASTNode):
    """Prefix operation (e.g., -x, !ok, ~mask)."""
    operator: str
    operand: ASTNode


@dataclass(frozen=True)
class BinaryExpression(ASTNode):
    """Binary operation (e.g., a + b, x == y, m << 2)."""
    operator: str
    left: ASTNode
    right: ASTNode


@dataclass(frozen=True)
class LogicalExpression(ASTNode):
    """Short-circuiting && or ||."""
    operator: str
    left: ASTNode
    right: ASTNode


@dataclass(frozen=True)
class ConditionalExpression(ASTNode):
    """Ternary test ? consequent : alternate."""
    test: ASTNode
    consequent: ASTNode
    alternate: ASTNode


@dataclass(frozen=True)
class MemberExpression(ASTNode):
    """Member access: a.b (computed=False) or a[expr] (computed=True)."""
    object: ASTNode
    property: ASTNode
    computed: bool = False


@dataclass(frozen=True)
class CallExpression(ASTNode):
    """Call of a bound value (e.g., fn(x), obj.method(a, b))."""
    callee: ASTNode
    arguments: tuple[ASTNode, ...] = ()


@dataclass(frozen=True)
class ArrayExpression(ASTNode):
    """Array literal; skipped positions ([1,,3]) hold None."""
    elements: tuple[ASTNode | None, ...] = ()


@dataclass(frozen=True)
class Compound(ASTNode):
    """Several expressions separated by ';' or ','."""
    body: tuple[ASTNode, ...] = ()


class ParsedExpression(NamedTuple):
    """An AST together with the variable names it reads."""

    node: ASTNode
    identifiers: frozenset[str]


class _Operator(NamedTuple):
    value: str
    precedence: int


def _make_binary(operator: str, left: ASTNode, right: ASTNode) -> ASTNode:
    if operator in LOGICAL_OPERATORS:
        return LogicalExpression(operator, left, right)
    return BinaryExpression(operator, left, right)


# -----------------------------------------------------------------------------
# Parser
# -----------------------------------------------------------------------------


class Parser:
    """Single-pass parser for the expression language.

    Each Parser instance owns its own cursor, so separate parses never
    share state.

    Usage:
        parser = Parser('a * b + c / 16')
        ast = parser.parse()
    """

    def __init__(self, source: str):
        self.source = source
        self.scanner = Scanner(source)

    def parse(self) -> ASTNode:
        """Parse the whole source and return the AST root."""
        scanner = self.scanner
        nodes: list[ASTNode] = []

        while True:
            scanner.skip_spaces()
            if scanner.at_end():
                break

            if scanner.peek() in (";", ","):
                scanner.advance()
                continue

            node = self._parse_expression()
            if node is None:
                raise UnexpectedTokenError(
                    f'Unexpected "{scanner.peek()}"', scanner.position
                )
            nodes.append(node)

        if len(nodes) == 1:
            return nodes[0]
        return Compound(tuple(nodes))

    # -------------------------------------------------------------------------
    # Expressions
    # -------------------------------------------------------------------------

    def _parse_expression(self) -> ASTNode | None:
        """Parse a binary expression with an optional ternary tail."""
        scanner = self.scanner
        test = self._parse_binary()
        if test is None:
            return None

        scanner.skip_spaces()
        if scanner.peek() != "?":
            return test
        scanner.advance()

        consequent = self._parse_expression()
        if consequent is None:
            raise MissingExpressionError("Expected expression", scanner.position)

        scanner.skip_spaces()
        if scanner.peek() != ":":
            raise UnexpectedTokenError("Expected :", scanner.position)
        scanner.advance()

        alternate = self._parse_expression()
        if alternate is None:
            raise MissingExpressionError("Expected expression", scanner.position)

        return ConditionalExpression(test, consequent, alternate)

    def _parse_binary_operator(self) -> str | None:
        self.scanner.skip_spaces()
        return self.scanner.match_operator(BINARY_PRECEDENCE, MAX_BINARY_LEN)

    def _parse_binary(self) -> ASTNode | None:
        """Parse a run of tokens joined by binary operators.

        Operands and operators are shifted onto a stack; whenever the
        incoming operator does not bind tighter than the one on top of the
        stack, the top three entries are reduced into a single node.
        """
        left = self._parse_token()
        if left is None:
            return None

        operator = self._parse_binary_operator()
        if operator is None:
            return left

        right = self._parse_token()
        if right is None:
            raise MissingExpressionError(
                f"Expected expression after {operator}", self.scanner.position
            )

        stack: list[Any] = [left, _Operator(operator, BINARY_PRECEDENCE[operator]), right]

        while True:
            operator = self._parse_binary_operator()
            if operator is None:
                break
            precedence = BINARY_PRECEDENCE[operator]

            while len(stack) > 2 and precedence <= stack[-2].precedence:
                right = stack.pop()
                top = stack.pop()
                left = stack.pop()
                stack.append(_make_binary(top.value, left, right))

            node = self._parse_token()
            if node is None:
                raise MissingExpressionError(
                    f"Expected expression after {operator}", self.scanner.position
                )
            stack.append(_Operator(operator, precedence))
            stack.append(node)

        index = len(stack) - 1
        node = stack[index]
        while index > 1:
            node = _make_binary(stack[index - 1].value, stack[index - 2], node)
            index -= 2
        return node

    def _parse_token(self) -> ASTNode | None:
        """Parse one operand: literal, array, unary expression or variable."""
        scanner = self.scanner
        scanner.skip_spaces()
        ch = scanner.peek()

        if is_decimal_digit(ch) or ch == ".":
            value, raw = scanner.read_number()
            return Literal(value, raw)

        if ch in ("'", '"'):
            value, raw = scanner.read_string()
            return Literal(value, raw)

        if ch == "[":
            return self._parse_array()

        operator = scanner.match_operator(UNARY_OPERATORS, MAX_UNARY_LEN)
        if operator is not None:
            operand = self._parse_token()
            if operand is None:
                raise MissingExpressionError(
                    f"Expected expression after {operator}", scanner.position
                )
            return UnaryExpression(operator, operand)

        if is_identifier_start(ch) or ch == "(":
            return self._parse_variable()

        return None

    # -------------------------------------------------------------------------
    # Variables, groups and argument lists
    # -------------------------------------------------------------------------

    def _parse_identifier(self) -> ASTNode:
        """Parse a name; keywords become literals or ThisExpression."""
        scanner = self.scanner
        start = scanner.position
        name = scanner.read_name()
        if name is None:
            raise UnexpectedTokenError(f"Unexpected {scanner.peek() or 'end of expression'}", start)

        if name in KEYWORD_LITERALS:
            return Literal(KEYWORD_LITERALS[name], name)
        if name == THIS_KEYWORD:
            return ThisExpression()
        return Identifier(name)

    def _parse_variable(self) -> ASTNode:
        """Parse an identifier or group followed by ., [] and () postfixes."""
        scanner = self.scanner
        if scanner.peek() == "(":
            node = self._parse_group()
        else:
            node = self._parse_identifier()

        scanner.skip_spaces()
        while True:
            ch = scanner.peek()

            if ch == ".":
                scanner.advance()
                scanner.skip_spaces()
                start = scanner.position
                name = scanner.read_name()
                if name is None:
                    raise UnexpectedTokenError(
                        f"Unexpected {scanner.peek() or 'end of expression'}", start
                    )
                node = MemberExpression(node, Identifier(name), computed=False)

            elif ch == "[":
                scanner.advance()
                prop = self._parse_expression()
                if prop is None:
                    raise MissingExpressionError("Expected expression", scanner.position)
                scanner.skip_spaces()
                if scanner.peek() != "]":
                    raise UnclosedBracketError("Unclosed [", scanner.position)
                scanner.advance()
                node = MemberExpression(node, prop, computed=True)

            elif ch == "(":
                scanner.advance()
                node = CallExpression(node, tuple(self._parse_arguments(")")))

            else:
                break

            scanner.skip_spaces()

        return node

    def _parse_group(self) -> ASTNode:
        """Parse `( expression )`."""
        scanner = self.scanner
        scanner.advance()
        node = self._parse_expression()
        if node is None:
            raise MissingExpressionError("Expected expression", scanner.position)

        scanner.skip_spaces()
        if scanner.peek() != ")":
            raise UnclosedGroupError("Unclosed (", scanner.position)
        scanner.advance()
        return node

    def _parse_array(self) -> ArrayExpression:
        """Parse `[a, b, c]`; the opening bracket is at the cursor."""
        self.scanner.advance()
        return ArrayExpression(tuple(self._parse_arguments("]")))

    def _parse_arguments(self, terminator: str) -> list[ASTNode | None]:
        """Parse comma separated expressions up to terminator.

        The opening character has already been consumed. In array literals
        a run of commas leaves None in the skipped positions; in call
        argument lists a missing argument is an error.
        """
        scanner = self.scanner
        args: list[ASTNode | None] = []
        separators = 0

        while True:
            scanner.skip_spaces()
            if scanner.at_end():
                break
            ch = scanner.peek()

            if ch == terminator:
                scanner.advance()
                if terminator == ")" and separators and separators >= len(args):
                    raise UnexpectedTokenError(f"Unexpected token {terminator}", scanner.position)
                return args

            if ch == ",":
                scanner.advance()
                separators += 1
                if separators != len(args):
                    if terminator == ")":
                        raise UnexpectedTokenError("Unexpected token ,", scanner.position)
                    args.extend([None] * (separators - len(args)))
                continue

            if len(args) > separators:
                raise UnexpectedTokenError("Expected comma", scanner.position)

            node = self._parse_expression()
            if node is None:
                raise UnexpectedTokenError(f'Unexpected "{ch}"', scanner.position)
            args.append(node)

        if terminator == ")":
            raise UnclosedGroupError("Expected )", scanner.position)
        raise UnclosedBracketError("Expected ]", scanner.position)


# -----------------------------------------------------------------------------
# Convenience functions
# -----------------------------------------------------------------------------


def collect_identifiers(node: ASTNode) -> frozenset[str]:
    """Return the variable names an expression reads.

    Property names of non-computed member access (the `b` in `a.b`) are not
    variables and are left out.
    """
    names: set[str] = set()
    pending: list[ASTNode] = [node]

    while pending:
        current = pending.pop()
        if isinstance(current, Identifier):
            names.add(current.name)
        elif isinstance(current, MemberExpression):
            pending.append(current.object)
            if current.computed:
                pending.append(current.property)
        else:
            pending.extend(current.children())

    return frozenset(names)


def parse(source: str) -> ParsedExpression:
    """Parse an expression string.

    Args:
        source: The expression string

    Returns:
        ParsedExpression(node, identifiers)

    Example:
        node, names = parse("price * qty")
        # names == frozenset({"price", "qty"})
    """
    node = Parser(source).parse()
    return ParsedExpression(node, collect_identifiers(node))
