"""Exception hierarchy for varstore.

All errors raised by the store, the path resolver, the parser and the
evaluator derive from VarStoreError so hosts can catch them in one place.
"""


class VarStoreError(Exception):
    """Base class for all varstore errors."""
    pass


# -----------------------------------------------------------------------------
# Store / path errors
# -----------------------------------------------------------------------------


class StoreError(VarStoreError):
    """Error raised by a VarStore or the path resolver."""
    pass


class NameRequiredError(StoreError):
    """A store was constructed without a usable name."""

    def __init__(self, message: str = "Store name is required"):
        super().__init__(message)


class SuperUndefinedError(StoreError):
    """A parent-relative reference was made on a store with no parent."""

    def __init__(self, store_name: str):
        self.store_name = store_name
        super().__init__(f"Store '{store_name}' has no parent for 'super'")


class MissingKeyError(StoreError):
    """Subscribe/unsubscribe called without a key."""

    def __init__(self, message: str = "Key is required"):
        super().__init__(message)


class MissingHandlerError(StoreError):
    """Subscribe/unsubscribe called without a handler."""

    def __init__(self, message: str = "Handler is required"):
        super().__init__(message)


class InvalidPathError(StoreError):
    """Index or member access applied to an unset, null or non-container value."""

    def __init__(self, message: str, path: str | None = None):
        self.path = path
        if path:
            message = f"{message}: '{path}'"
        super().__init__(message)


class StateFileError(StoreError):
    """A state file could not be turned into a store context."""
    pass


# -----------------------------------------------------------------------------
# Parser errors
# -----------------------------------------------------------------------------


class ParseError(VarStoreError):
    """Error during parsing.

    Attributes:
        description: The message without position information
        position: Character index in the source where the error was detected
    """

    def __init__(self, description: str, position: int):
        self.description = description
        self.position = position
        super().__init__(f"{description} at position {position}")


class UnclosedQuoteError(ParseError):
    """A string literal was never closed."""


class UnclosedBracketError(ParseError):
    """A computed member access or array literal was never closed."""


class UnclosedGroupError(ParseError):
    """A parenthesized group or argument list was never closed."""


class InvalidNumberError(ParseError):
    """A numeric literal is malformed."""


class UnexpectedTokenError(ParseError):
    """A character appeared where the grammar does not allow it."""


class MissingExpressionError(ParseError):
    """An operand or ternary branch is empty."""


# -----------------------------------------------------------------------------
# Evaluator errors
# -----------------------------------------------------------------------------


class EvaluationError(VarStoreError):
    """Error during expression evaluation."""
    pass


class NullNodeError(EvaluationError):
    """evaluate_node was handed no node."""

    def __init__(self, message: str = "Node to evaluate cannot be None"):
        super().__init__(message)
