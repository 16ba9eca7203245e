"""Scoped variable store and expression engine.

This package provides:
- VarStore: Hierarchically scoped variables with context push/pop and
  change notification
- Path resolution: dotted and bracketed paths into nested data
- Parser: Produces an AST from an expression string
- Evaluator: Evaluates an AST against a VarStore
"""

from varstore.errors import (
    EvaluationError,
    InvalidNumberError,
    InvalidPathError,
    MissingExpressionError,
    MissingHandlerError,
    MissingKeyError,
    NameRequiredError,
    NullNodeError,
    ParseError,
    StateFileError,
    StoreError,
    SuperUndefinedError,
    UnclosedBracketError,
    UnclosedGroupError,
    UnclosedQuoteError,
    UnexpectedTokenError,
    VarStoreError,
)
from varstore.evaluator import Evaluator, evaluate, evaluate_node
from varstore.notify import Notifier
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
    ParsedExpression,
    Parser,
    ThisExpression,
    UnaryExpression,
    collect_identifiers,
    parse,
)
from varstore.store import VarStore
from varstore.values import UNSET, is_unset, receiver

__all__ = [
    # Store
    "Notifier",
    "VarStore",
    # Values
    "UNSET",
    "is_unset",
    "receiver",
    # Evaluator
    "Evaluator",
    "evaluate",
    "evaluate_node",
    # Parser
    "ASTNode",
    "ArrayExpression",
    "BinaryExpression",
    "CallExpression",
    "Compound",
    "ConditionalExpression",
    "Identifier",
    "Literal",
    "LogicalExpression",
    "MemberExpression",
    "ParsedExpression",
    "Parser",
    "ThisExpression",
    "UnaryExpression",
    "collect_identifiers",
    "parse",
    # Errors
    "EvaluationError",
    "InvalidNumberError",
    "InvalidPathError",
    "MissingExpressionError",
    "MissingHandlerError",
    "MissingKeyError",
    "NameRequiredError",
    "NullNodeError",
    "ParseError",
    "StateFileError",
    "StoreError",
    "SuperUndefinedError",
    "UnclosedBracketError",
    "UnclosedGroupError",
    "UnclosedQuoteError",
    "UnexpectedTokenError",
    "VarStoreError",
]
