"""Evaluator for the varstore expression language.

Walks the AST and computes the result against a VarStore. Identifiers and
member paths are resolved through the store; operators follow the dynamic
coercion rules of the scripting languages the grammar comes from (loose
and strict equality, 32-bit bitwise arithmetic, string concatenation with
+).
"""

import logging
import math
import re
from collections.abc import Mapping
from functools import lru_cache
from typing import Any, Callable

from varstore.config import get_settings
from varstore.errors import EvaluationError, InvalidPathError, NullNodeError
from varstore.parser import (
    ArrayExpression,
    ASTNode,
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
)
from varstore.store import VarStore
from varstore.values import UNSET, wants_receiver

logger = logging.getLogger(__name__)

_NUMBER_TYPES = (int, float)

_DECIMAL_TEXT = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_RADIX_TEXT = re.compile(r"0[xX][0-9a-fA-F]+|0[oO][0-7]+|0[bB][01]+")
_INFINITY_TEXT = re.compile(r"[+-]?Infinity")


def _is_number(value: Any) -> bool:
    return isinstance(value, _NUMBER_TYPES) and not isinstance(value, bool)


def _normalize(number: float) -> int | float:
    """Keep integral results of integer arithmetic as int."""
    if isinstance(number, float) and number.is_integer() and abs(number) < 2**53:
        return int(number)
    return number


def _parse_numeric_text(text: str) -> int | float:
    """Convert stripped, non-empty text the way scripting Number() does.

    Decimal, exponent, 0x/0o/0b and Infinity forms are accepted. Anything
    else, including Python-only spellings such as 1_000, inf and nan, is NaN.
    """
    if _INFINITY_TEXT.fullmatch(text):
        return -math.inf if text.startswith("-") else math.inf
    if _RADIX_TEXT.fullmatch(text):
        return int(text, 0)
    if not _DECIMAL_TEXT.fullmatch(text):
        return math.nan
    try:
        return int(text)
    except ValueError:
        return float(text)


class Evaluator:
    """Evaluates an expression AST against a store.

    Usage:
        store = VarStore("vars", {"a": 2, "b": 4})
        evaluator = Evaluator(store)
        result = evaluator.evaluate(Parser("a * b").parse())  # 8
    """

    def __init__(self, store: VarStore):
        self.store = store
        self._operations = self._binary_operations()

    def evaluate(self, node: ASTNode) -> Any:
        """Evaluate an AST node and return the result."""
        if node is None:
            raise NullNodeError()

        method_name = f"_eval_{type(node).__name__.lower()}"
        method = getattr(self, method_name, None)

        if method is None:
            raise EvaluationError(f"Unknown node type: {type(node).__name__}")

        return method(node)

    # -------------------------------------------------------------------------
    # Node type evaluators
    # -------------------------------------------------------------------------

    def _eval_literal(self, node: Literal) -> Any:
        return node.value

    def _eval_identifier(self, node: Identifier) -> Any:
        return self.store.get_value(node.name)

    def _eval_thisexpression(self, node: ThisExpression) -> VarStore:
        return self.store

    def _eval_arrayexpression(self, node: ArrayExpression) -> list[Any]:
        """Evaluate elements left to right; skipped positions become None."""
        return [None if element is None else self.evaluate(element) for element in node.elements]

    def _eval_compound(self, node: Compound) -> Any:
        """Evaluate each expression in order and return the last value."""
        result: Any = UNSET
        for expression in node.body:
            result = self.evaluate(expression)
        return result

    def _eval_conditionalexpression(self, node: ConditionalExpression) -> Any:
        if self._to_bool(self.evaluate(node.test)):
            return self.evaluate(node.consequent)
        return self.evaluate(node.alternate)

    def _eval_logicalexpression(self, node: LogicalExpression) -> Any:
        """Short-circuit && and ||, returning the deciding operand itself."""
        left = self.evaluate(node.left)

        if node.operator == "||":
            return left if self._to_bool(left) else self.evaluate(node.right)
        if node.operator == "&&":
            return self.evaluate(node.right) if self._to_bool(left) else left

        raise EvaluationError(f"Unknown logical operator: {node.operator}")

    def _eval_memberexpression(self, node: MemberExpression) -> Any:
        return self._resolve_member(node)[1]

    def _eval_callexpression(self, node: CallExpression) -> Any:
        """Call a bound value; anything that is not callable yields UNSET."""
        owner: Any = None
        if isinstance(node.callee, MemberExpression):
            owner, fn = self._resolve_member(node.callee)
        else:
            fn = self.evaluate(node.callee)

        if not callable(fn):
            return UNSET

        args = [self.evaluate(arg) for arg in node.arguments]
        if owner is not None and wants_receiver(fn):
            return fn(owner, *args)
        return fn(*args)

    def _eval_unaryexpression(self, node: UnaryExpression) -> Any:
        operand = self.evaluate(node.operand)
        op = node.operator

        if op == "!":
            return not self._to_bool(operand)
        if op == "-":
            return -self._to_number(operand)
        if op == "+":
            return self._to_number(operand)
        if op == "~":
            return ~self._to_int32(operand)

        raise EvaluationError(f"Unknown unary operator: {op}")

    def _eval_binaryexpression(self, node: BinaryExpression) -> Any:
        """Evaluate a binary operation; both operands are always evaluated."""
        op = node.operator
        left = self.evaluate(node.left)
        right = self.evaluate(node.right)

        operation = self._operations.get(op)
        if operation is None:
            raise EvaluationError(f"Unknown operator: {op}")
        return operation(left, right)

    # -------------------------------------------------------------------------
    # Member resolution
    # -------------------------------------------------------------------------

    def _resolve_member(self, node: MemberExpression) -> tuple[Any, Any]:
        """Return (owner, value) for a member expression."""
        owner = self.evaluate(node.object)

        if node.computed:
            key = self.evaluate(node.property)
        else:
            key = node.property.name

        if owner is None or owner is UNSET:
            raise InvalidPathError(
                f"Cannot read property '{self._to_string(key)}' of {self._to_string(owner)}"
            )

        return owner, self._get_member(owner, key)

    def _get_member(self, owner: Any, key: Any) -> Any:
        if isinstance(key, (bool, list, tuple, Mapping)):
            key = self._to_string(key)

        if isinstance(owner, VarStore):
            return owner.get_value(self._to_string(key))

        if isinstance(owner, Mapping):
            if key in owner:
                return owner[key]
            alternate = self._alternate_key(key)
            if alternate is not None and alternate in owner:
                return owner[alternate]
            return UNSET

        if isinstance(owner, (list, tuple, str)):
            if key == "length":
                return len(owner)
            index = key if _is_number(key) else self._alternate_key(key)
            if _is_number(index) and float(index).is_integer() and 0 <= index < len(owner):
                return owner[int(index)]
            return UNSET

        if isinstance(key, str) and not key.startswith("_"):
            return getattr(owner, key, UNSET)
        return UNSET

    @staticmethod
    def _alternate_key(key: Any) -> Any:
        """Integral numbers match their string form and vice versa."""
        if _is_number(key) and float(key).is_integer():
            return str(int(key))
        if isinstance(key, str):
            try:
                return int(key)
            except ValueError:
                return None
        return None

    # -------------------------------------------------------------------------
    # Coercion helpers
    # -------------------------------------------------------------------------

    def _to_bool(self, value: Any) -> bool:
        """Convert a value to boolean; containers are always truthy."""
        if value is None or value is UNSET:
            return False
        if isinstance(value, bool):
            return value
        if _is_number(value):
            return value != 0 and not math.isnan(value)
        if isinstance(value, str):
            return len(value) > 0
        return True

    def _to_number(self, value: Any) -> int | float:
        if value is None:
            return 0
        if value is UNSET:
            return math.nan
        if isinstance(value, bool):
            return 1 if value else 0
        if _is_number(value):
            return value
        if isinstance(value, str):
            text = value.strip()
            if not text:
                return 0
            return _parse_numeric_text(text)
        if isinstance(value, (list, tuple)):
            return self._to_number(self._to_string(value))
        return math.nan

    def _to_int32(self, value: Any) -> int:
        number = self._to_number(value)
        if math.isnan(number) or math.isinf(number):
            return 0
        number = int(number) & 0xFFFFFFFF
        if number >= 0x80000000:
            number -= 0x100000000
        return number

    def _to_uint32(self, value: Any) -> int:
        number = self._to_number(value)
        if math.isnan(number) or math.isinf(number):
            return 0
        return int(number) & 0xFFFFFFFF

    def _to_string(self, value: Any) -> str:
        if value is None:
            return "null"
        if value is UNSET:
            return "undefined"
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, float):
            if math.isnan(value):
                return "NaN"
            if math.isinf(value):
                return "Infinity" if value > 0 else "-Infinity"
            if value.is_integer():
                return str(int(value))
            return repr(value)
        if isinstance(value, str):
            return value
        if isinstance(value, (list, tuple)):
            return ",".join("" if item is None or item is UNSET else self._to_string(item) for item in value)
        if isinstance(value, Mapping):
            return "[object Object]"
        return str(value)

    # -------------------------------------------------------------------------
    # Binary operators
    # -------------------------------------------------------------------------

    def _binary_operations(self) -> dict[str, Callable[[Any, Any], Any]]:
        return {
            "|": lambda a, b: self._to_int32(self._to_int32(a) | self._to_int32(b)),
            "^": lambda a, b: self._to_int32(self._to_int32(a) ^ self._to_int32(b)),
            "&": lambda a, b: self._to_int32(self._to_int32(a) & self._to_int32(b)),
            "==": self._loose_equals,
            "!=": lambda a, b: not self._loose_equals(a, b),
            "===": self._strict_equals,
            "!==": lambda a, b: not self._strict_equals(a, b),
            "<": lambda a, b: self._compare(a, b, lambda x, y: x < y),
            ">": lambda a, b: self._compare(a, b, lambda x, y: x > y),
            "<=": lambda a, b: self._compare(a, b, lambda x, y: x <= y),
            ">=": lambda a, b: self._compare(a, b, lambda x, y: x >= y),
            "<<": lambda a, b: self._to_int32(self._to_int32(a) << (self._to_uint32(b) & 31)),
            ">>": lambda a, b: self._to_int32(a) >> (self._to_uint32(b) & 31),
            ">>>": lambda a, b: self._to_uint32(a) >> (self._to_uint32(b) & 31),
            "+": self._add,
            "-": self._subtract,
            "*": self._multiply,
            "/": self._divide,
            "%": self._modulo,
        }

    def _strict_equals(self, left: Any, right: Any) -> bool:
        if _is_number(left) and _is_number(right):
            return left == right
        if type(left) is not type(right):
            return False
        if isinstance(left, (list, dict)) or callable(left):
            return left is right
        return left == right

    def _loose_equals(self, left: Any, right: Any) -> bool:
        """Equality with type coercion (null == unset, 1 == "1", true == 1)."""
        if (left is None or left is UNSET) and (right is None or right is UNSET):
            return True
        if left is None or left is UNSET or right is None or right is UNSET:
            return False
        if type(left) is type(right) or (_is_number(left) and _is_number(right)):
            return self._strict_equals(left, right)
        if isinstance(left, bool):
            return self._loose_equals(1 if left else 0, right)
        if isinstance(right, bool):
            return self._loose_equals(left, 1 if right else 0)
        if _is_number(left) and isinstance(right, str):
            return left == self._to_number(right)
        if isinstance(left, str) and _is_number(right):
            return self._to_number(left) == right
        if isinstance(left, (list, tuple)) and isinstance(right, (str, int, float)):
            return self._loose_equals(self._to_string(left), right)
        if isinstance(right, (list, tuple)) and isinstance(left, (str, int, float)):
            return self._loose_equals(left, self._to_string(right))
        return False

    def _compare(self, left: Any, right: Any, test: Callable[[Any, Any], bool]) -> bool:
        if isinstance(left, str) and isinstance(right, str):
            return test(left, right)
        a = self._to_number(left)
        b = self._to_number(right)
        if math.isnan(a) or math.isnan(b):
            return False
        return test(a, b)

    def _add(self, left: Any, right: Any) -> Any:
        """Concatenate when either side is a string, otherwise add numbers."""
        if isinstance(left, (list, tuple, Mapping)):
            left = self._to_string(left)
        if isinstance(right, (list, tuple, Mapping)):
            right = self._to_string(right)
        if isinstance(left, str) or isinstance(right, str):
            return self._to_string(left) + self._to_string(right)
        return self._to_number(left) + self._to_number(right)

    def _subtract(self, left: Any, right: Any) -> Any:
        return self._to_number(left) - self._to_number(right)

    def _multiply(self, left: Any, right: Any) -> Any:
        return self._to_number(left) * self._to_number(right)

    def _divide(self, left: Any, right: Any) -> Any:
        dividend = self._to_number(left)
        divisor = self._to_number(right)
        if divisor == 0:
            if dividend == 0 or math.isnan(dividend):
                return math.nan
            negative = (dividend < 0) != (math.copysign(1.0, divisor) < 0)
            return -math.inf if negative else math.inf
        if isinstance(dividend, int) and isinstance(divisor, int):
            return _normalize(dividend / divisor)
        return dividend / divisor

    def _modulo(self, left: Any, right: Any) -> Any:
        """Remainder with the sign of the dividend; NaN for a zero divisor."""
        dividend = self._to_number(left)
        divisor = self._to_number(right)
        if divisor == 0 or math.isnan(divisor) or math.isinf(dividend) or math.isnan(dividend):
            return math.nan
        if isinstance(dividend, int) and isinstance(divisor, int):
            remainder = abs(dividend) % abs(divisor)
            return -remainder if dividend < 0 else remainder
        return math.fmod(dividend, divisor)


# -----------------------------------------------------------------------------
# Convenience functions
# -----------------------------------------------------------------------------


def _parse_uncached(expression: str) -> ASTNode:
    return Parser(expression).parse()


@lru_cache(maxsize=1)
def _cached_parser(size: int) -> Callable[[str], ASTNode]:
    return lru_cache(maxsize=size)(_parse_uncached)


def parse_node(expression: str) -> ASTNode:
    """Parse an expression, reusing earlier ASTs for the same string.

    AST nodes are immutable, so a cached tree can be evaluated against
    any number of stores. The cache size comes from settings.
    """
    size = get_settings().parse_cache_size
    if size <= 0:
        return _parse_uncached(expression)
    return _cached_parser(size)(expression)


def evaluate_node(node: ASTNode, store: VarStore) -> Any:
    """Evaluate a pre-parsed AST against a store.

    Raises:
        NullNodeError: If node is None
    """
    if node is None:
        raise NullNodeError()
    return Evaluator(store).evaluate(node)


def evaluate(expression: str, store: VarStore) -> Any:
    """Evaluate an expression string against a store.

    This is the main entry point for expression evaluation.

    Args:
        expression: The expression string to evaluate
        store: The store identifiers are resolved against

    Returns:
        The result of evaluating the expression

    Example:
        store = VarStore("vars", {"a": 2, "b": 4, "c": 8})
        evaluate("a * b + c / 16", store)  # 8.5
    """
    node = parse_node(expression)
    logger.debug("Parsed %r into %s", expression, type(node).__name__)
    return evaluate_node(node, store)
