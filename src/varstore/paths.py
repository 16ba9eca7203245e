"""Path resolution over store contexts.

A path names a value inside a context (a dict). Supported forms:

- plain key:        ``firstName``
- dotted path:      ``employee.name.username``
- bracketed index:  ``list[3]``, ``numMap[ten]``, ``grid[1][2]``
- mixed:            ``data.employees[1].name.first``

Reads never create anything. Writes create missing intermediate
containers, choosing a list when the next segment is bracketed and a dict
otherwise.
"""

import re
from collections.abc import Mapping, MutableMapping
from dataclasses import dataclass
from typing import Any, NamedTuple

from varstore.errors import InvalidPathError
from varstore.values import UNSET

_INDEX_PATTERN = re.compile(r"\[([^\]]*)\]")
_INDEX_RUN = re.compile(r"(?:\[[^\]]*\])+")


class Resolved(NamedTuple):
    """Result of a path lookup: whether it exists and the value found."""

    exists: bool
    value: Any


NOT_FOUND = Resolved(False, UNSET)


@dataclass(frozen=True)
class PathStep:
    """One traversal step: a key, or a bracketed index/key token."""

    token: str
    indexed: bool = False


# -----------------------------------------------------------------------------
# Path parsing
# -----------------------------------------------------------------------------


def split_path(path: str) -> list[PathStep]:
    """Break a path into traversal steps.

    ``a.b[0][k].c`` becomes ``a``, ``b``, ``[0]``, ``[k]``, ``c``.

    Raises:
        InvalidPathError: If a bracket is never closed or text follows a
            closing bracket
    """
    steps: list[PathStep] = []
    for segment in path.split("."):
        start = segment.find("[")
        if start < 0:
            steps.append(PathStep(segment))
            continue

        brackets = segment[start:]
        if not _INDEX_RUN.fullmatch(brackets):
            raise InvalidPathError("Malformed index brackets", path)
        tokens = _INDEX_PATTERN.findall(brackets)

        base = segment[:start]
        if base:
            steps.append(PathStep(base))
        steps.extend(PathStep(_strip_quotes(token), indexed=True) for token in tokens)

    return steps


def _strip_quotes(token: str) -> str:
    token = token.strip()
    if len(token) >= 2 and token[0] == token[-1] and token[0] in ("'", '"'):
        return token[1:-1]
    return token


def _as_index(token: str) -> int | None:
    try:
        return int(token)
    except ValueError:
        return None


# -----------------------------------------------------------------------------
# Reads
# -----------------------------------------------------------------------------


def _lookup(container: Any, step: PathStep) -> Resolved:
    """Look a single step up in a container without raising."""
    token = step.token

    if isinstance(container, Mapping):
        number = _as_index(token)
        candidates = (number, token) if step.indexed else (token, number)
        for key in candidates:
            if key is not None and key in container:
                return Resolved(True, container[key])
        return NOT_FOUND

    if isinstance(container, (list, tuple)):
        number = _as_index(token)
        if number is not None and 0 <= number < len(container):
            return Resolved(True, container[number])
        return NOT_FOUND

    return NOT_FOUND


def _check_indexable(value: Any, path: str) -> None:
    if value is UNSET:
        raise InvalidPathError("Variable not initialized", path)
    if value is None:
        raise InvalidPathError("Variable is null", path)
    if not isinstance(value, (Mapping, list, tuple)):
        raise InvalidPathError("Variable is not an array/object", path)


def resolve(context: Any, path: str) -> Resolved:
    """Find a path in a context.

    Traversal stops with a not-found result at the first missing key, or
    when a plain key is applied to an unset/null value. A bracketed step
    that misses inside an existing list or mapping resolves as existing
    with value UNSET.

    Args:
        context: The mapping to search
        path: Plain key, dotted path and/or bracketed path

    Returns:
        Resolved(exists, value); value is UNSET when nothing was found

    Raises:
        InvalidPathError: If a bracketed segment is applied to an unset,
            null or non-container value
    """
    if not path or context is None:
        return NOT_FOUND

    current = context
    for step in split_path(path):
        if step.indexed:
            _check_indexable(current, path)
        elif current is None or current is UNSET:
            return NOT_FOUND

        found = _lookup(current, step)
        if not found.exists:
            # A miss inside an existing container still resolves here
            return Resolved(True, UNSET) if step.indexed else NOT_FOUND
        current = found.value

    return Resolved(True, current)


# -----------------------------------------------------------------------------
# Writes
# -----------------------------------------------------------------------------


def _put(container: Any, step: PathStep, value: Any, path: str) -> None:
    """Store value under a single step in container."""
    if isinstance(container, MutableMapping):
        key: Any = step.token
        if step.indexed:
            number = _as_index(step.token)
            if number is not None and number in container:
                key = number
        container[key] = value
        return

    if isinstance(container, list):
        index = _as_index(step.token)
        if index is None or index < 0:
            raise InvalidPathError("Array index must be a non-negative integer", path)
        if index >= len(container):
            container.extend([None] * (index - len(container) + 1))
        container[index] = value
        return

    raise InvalidPathError("Cannot assign into a non-container value", path)


def _assign_from(container: Any, steps: list[PathStep], cursor: int, value: Any, path: str) -> None:
    step = steps[cursor]
    if cursor == len(steps) - 1:
        _put(container, step, value, path)
        return

    found = _lookup(container, step)
    if found.exists:
        child = found.value
        if not isinstance(child, (MutableMapping, list)):
            raise InvalidPathError("Cannot assign through a non-container value", path)
    else:
        child = [] if steps[cursor + 1].indexed else {}
        _put(container, step, child, path)

    _assign_from(child, steps, cursor + 1, value, path)


def assign(context: Any, path: str, value: Any) -> bool:
    """Write a value at a path, creating missing intermediate containers.

    A missing intermediate becomes a list when the segment after it is
    bracketed (``a[0]``, ``a.b[2].c``) and a dict otherwise. Lists are
    padded with None when written past their end.

    Args:
        context: The mapping to write into
        path: Plain key, dotted path and/or bracketed path
        value: The value to store

    Returns:
        True if the value was written, False for a missing context or path

    Raises:
        InvalidPathError: If the path runs through an existing null, unset
            or scalar value, or indexes a list with a non-integer
    """
    if context is None or not path:
        return False

    _assign_from(context, split_path(path), 0, value, path)
    return True


def merge(context: Mapping[str, Any] | None, state: Any) -> dict[str, Any] | None:
    """Shallow merge state over context, right side winning.

    Returns None when either side is missing or state is not a mapping.
    """
    if context is None or state is None:
        return None
    if not isinstance(state, Mapping):
        return None
    return {**context, **state}
