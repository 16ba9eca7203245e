"""Character scanner for the varstore expression language.

The parser drives a Scanner over the source string one lexeme at a time,
so scanning and parsing happen in a single pass. The scanner knows how to
read numbers, strings, names and operators; it knows nothing about the
grammar.

Operator tables:
- Binary operators with their precedence (higher binds tighter)
- Unary prefix operators: - + ~ !
- Keyword literals: true, false, null
"""

from typing import Any

from varstore.errors import InvalidNumberError, UnclosedQuoteError

BINARY_PRECEDENCE: dict[str, int] = {
    "||": 1,
    "&&": 2,
    "|": 3,
    "^": 4,
    "&": 5,
    "==": 6, "!=": 6, "===": 6, "!==": 6,
    "<": 7, ">": 7, "<=": 7, ">=": 7,
    "<<": 8, ">>": 8, ">>>": 8,
    "+": 9, "-": 9,
    "*": 10, "/": 10, "%": 10,
}

LOGICAL_OPERATORS = frozenset({"||", "&&"})

UNARY_OPERATORS = frozenset({"-", "!", "~", "+"})

KEYWORD_LITERALS: dict[str, Any] = {
    "true": True,
    "false": False,
    "null": None,
}

THIS_KEYWORD = "this"

MAX_BINARY_LEN = max(len(op) for op in BINARY_PRECEDENCE)
MAX_UNARY_LEN = max(len(op) for op in UNARY_OPERATORS)

WHITESPACE = frozenset(" \t\n\r")

ESCAPES = {
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "b": "\b",
    "f": "\f",
    "v": "\x0b",
}


def is_decimal_digit(ch: str) -> bool:
    return "0" <= ch <= "9"


def is_identifier_start(ch: str) -> bool:
    """`$`, `_`, ASCII letters, or any non-ASCII character that is not an operator."""
    if not ch:
        return False
    if ch in "$_" or "a" <= ch <= "z" or "A" <= ch <= "Z":
        return True
    return ord(ch) >= 128 and ch not in BINARY_PRECEDENCE


def is_identifier_part(ch: str) -> bool:
    return is_identifier_start(ch) or is_decimal_digit(ch)


class Scanner:
    """Cursor over an expression string.

    Attributes:
        source: The expression being scanned
        position: Index of the next unread character
    """

    def __init__(self, source: str):
        self.source = source
        self.length = len(source)
        self.position = 0

    def __repr__(self) -> str:
        return f"Scanner(position={self.position}, length={self.length})"

    # -------------------------------------------------------------------------
    # Cursor helpers
    # -------------------------------------------------------------------------

    def at_end(self) -> bool:
        return self.position >= self.length

    def peek(self, offset: int = 0) -> str:
        """Return the character at position + offset, or '' past the end."""
        index = self.position + offset
        if 0 <= index < self.length:
            return self.source[index]
        return ""

    def advance(self, count: int = 1) -> None:
        self.position += count

    def skip_spaces(self) -> None:
        """Move position to the next non-whitespace character."""
        while self.position < self.length and self.source[self.position] in WHITESPACE:
            self.position += 1

    # -------------------------------------------------------------------------
    # Lexemes
    # -------------------------------------------------------------------------

    def match_operator(self, operators: dict[str, Any] | frozenset[str], max_len: int) -> str | None:
        """Consume the longest operator from operators at the cursor.

        An operator that begins with an identifier character is only
        accepted when the character after it cannot continue an identifier.
        """
        candidate = self.source[self.position:self.position + max_len]
        while candidate:
            if candidate in operators:
                end = self.position + len(candidate)
                if not is_identifier_start(candidate[0]) or (
                    end < self.length and not is_identifier_part(self.source[end])
                ):
                    self.position = end
                    return candidate
            candidate = candidate[:-1]
        return None

    def read_number(self) -> tuple[int | float, str]:
        """Read a numeric literal such as `12`, `3.4`, `.5` or `1e-3`.

        Returns:
            The parsed number (int when there is no fraction or exponent)
            and its raw text

        Raises:
            InvalidNumberError: On a missing exponent, a trailing period, or
                identifier characters directly after the digits
        """
        start = self.position
        is_float = False

        while is_decimal_digit(self.peek()):
            self.advance()

        if self.peek() == ".":
            is_float = True
            self.advance()
            while is_decimal_digit(self.peek()):
                self.advance()

        if self.peek() in ("e", "E"):
            is_float = True
            self.advance()
            if self.peek() in ("+", "-"):
                self.advance()
            while is_decimal_digit(self.peek()):
                self.advance()
            if not is_decimal_digit(self.source[self.position - 1]):
                raise InvalidNumberError(
                    f"Expected exponent ({self.source[start:self.position + 1]})",
                    self.position,
                )

        raw = self.source[start:self.position]
        following = self.peek()
        if is_identifier_start(following):
            raise InvalidNumberError(
                f"Variable names cannot start with a number ({raw}{following})",
                self.position,
            )
        if following == ".":
            raise InvalidNumberError("Unexpected period", self.position)
        if not any(is_decimal_digit(ch) for ch in raw):
            raise InvalidNumberError(f"Invalid number ({raw})", start)

        if is_float:
            return float(raw), raw
        return int(raw), raw

    def read_string(self) -> tuple[str, str]:
        """Read a single- or double-quoted string with backslash escapes.

        Returns:
            The unescaped value and the raw text including quotes

        Raises:
            UnclosedQuoteError: If the closing quote is missing
        """
        start = self.position
        quote = self.source[self.position]
        self.advance()
        chars: list[str] = []

        while self.position < self.length:
            ch = self.source[self.position]
            self.advance()
            if ch == quote:
                return "".join(chars), self.source[start:self.position]
            if ch == "\\":
                if self.position >= self.length:
                    break
                escaped = self.source[self.position]
                self.advance()
                chars.append(ESCAPES.get(escaped, escaped))
            else:
                chars.append(ch)

        raise UnclosedQuoteError(f'Unclosed quote after "{"".join(chars)}"', self.position)

    def read_name(self) -> str | None:
        """Read an identifier at the cursor, or return None if there is none."""
        if not is_identifier_start(self.peek()):
            return None
        start = self.position
        self.advance()
        while is_identifier_part(self.peek()):
            self.advance()
        return self.source[start:self.position]
