"""Scoped variable store.

A VarStore holds a stack of contexts (dicts). The context at index 0 is the
base; contexts pushed on top of it are overlays used for temporary scoping
and are the target of writes. Stores can be forked: a child reads through
its own stack and then through the base context of every ancestor, nearest
first. A parent never sees a child's state.

Example:
    root = VarStore("root", {"user": {"name": "ada"}})
    child = root.fork("request")
    child.set_value("page", 2)

    child.get_value("user.name")   # "ada"
    root.get_value("page")         # UNSET
    child.get_value("super.user")  # {"name": "ada"}

A store is meant to be written by one thread at a time; hosts sharing a
store across threads must serialize access themselves.
"""

import logging
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from varstore.errors import (
    MissingHandlerError,
    MissingKeyError,
    NameRequiredError,
    SuperUndefinedError,
)
from varstore.notify import Handler, Notifier, get_notifier
from varstore.paths import NOT_FOUND, Resolved, assign, merge, resolve
from varstore.values import UNSET

logger = logging.getLogger(__name__)

SUPER = "super"
SUPER_PREFIX = "super."


class VarStore:
    """A named, hierarchically scoped variable container.

    Attributes:
        name: Human readable name of the store
        parent: The store this one was forked from, if any
    """

    def __init__(
        self,
        name: str,
        initial_state: dict[str, Any] | None = None,
        parent: "VarStore | None" = None,
        notifier: Notifier | None = None,
    ):
        if not isinstance(name, str) or not name.strip():
            raise NameRequiredError()

        self._name = name
        self._parent = parent
        self._stack: list[dict[str, Any]] = [initial_state if initial_state is not None else {}]
        self._watchers: dict[str, list[Handler]] = {}
        self._notifier = notifier if notifier is not None else (parent._notifier if parent else None)

    @classmethod
    def from_file(
        cls, name: str, path: str | Path, parent: "VarStore | None" = None
    ) -> "VarStore":
        """Create a store whose base context is loaded from a YAML/JSON file."""
        from varstore.loader import load_state

        return cls(name, load_state(path), parent=parent)

    def __repr__(self) -> str:
        return f"VarStore(name={self._name!r}, depth={len(self._stack)})"

    @property
    def name(self) -> str:
        return self._name

    @property
    def parent(self) -> "VarStore | None":
        return self._parent

    @property
    def depth(self) -> int:
        """Number of contexts on the stack, base included."""
        return len(self._stack)

    @property
    def notifier(self) -> Notifier:
        if self._notifier is None:
            return get_notifier()
        return self._notifier

    def fork(self, name: str, initial_state: dict[str, Any] | None = None) -> "VarStore":
        """Create a child store that can read this store's base context."""
        logger.debug("Forking store '%s' from '%s'", name, self._name)
        return VarStore(name, initial_state, parent=self, notifier=self._notifier)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def _require_parent(self) -> "VarStore":
        if self._parent is None:
            raise SuperUndefinedError(self._name)
        return self._parent

    def _find(self, path: str) -> Resolved:
        for context in reversed(self._stack):
            found = resolve(context, path)
            if found.exists:
                return found

        ancestor = self._parent
        while ancestor is not None:
            found = resolve(ancestor._stack[0], path)
            if found.exists:
                return found
            ancestor = ancestor._parent

        return NOT_FOUND

    def exists(self, path: str) -> bool:
        """Check whether a variable is visible from this store.

        Raises:
            SuperUndefinedError: For a ``super.`` path on a store with no parent
            InvalidPathError: For bracketed access on a non-container value
        """
        if path == SUPER:
            return self._parent is not None
        if path.startswith(SUPER_PREFIX):
            return self._require_parent().exists(path[len(SUPER_PREFIX):])
        return self._find(path).exists

    def get_value(self, path: str) -> Any:
        """Get the value of a variable visible from this store.

        ``super`` returns the parent store and ``super.<path>`` reads
        ``<path>`` from the parent.

        Returns:
            The value, or UNSET if nothing is found

        Raises:
            SuperUndefinedError: For ``super`` on a store with no parent
            InvalidPathError: For bracketed access on a non-container value
        """
        if path == SUPER:
            return self._require_parent()
        if path.startswith(SUPER_PREFIX):
            return self._require_parent().get_value(path[len(SUPER_PREFIX):])
        return self._find(path).value

    def get_store(self) -> dict[str, Any]:
        """Return the base context (never the overlays)."""
        return self._stack[0]

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def set_value(self, path: str, value: Any) -> bool:
        """Write a variable into the topmost context and notify subscribers.

        Missing intermediate containers along a dotted/bracketed path are
        created. ``super.<path>`` writes into the parent instead.

        Returns:
            True if the value was written
        """
        if path.startswith(SUPER_PREFIX):
            return self._require_parent().set_value(path[len(SUPER_PREFIX):], value)

        written = assign(self._stack[-1], path, value)
        self.touch(path, value)
        return written

    def update_state(self, state: Mapping[str, Any]) -> None:
        """Merge state over the base context; ignored if state is not a mapping."""
        merged = merge(self._stack[0], state)
        if merged is not None:
            self._stack[0] = merged

    def push_context(self, context: dict[str, Any] | None = None) -> None:
        """Push a new writable overlay on the stack."""
        self._stack.append(context if context is not None else {})
        logger.debug("Store '%s' pushed context (depth %d)", self._name, len(self._stack))

    def pop_context(self) -> dict[str, Any] | None:
        """Remove and return the topmost overlay.

        The base context is never removed: popping when only the base is
        left logs a warning and returns None.
        """
        if len(self._stack) <= 1:
            logger.warning("Store '%s' has no context to pop above its base", self._name)
            return None
        context = self._stack.pop()
        logger.debug("Store '%s' popped context (depth %d)", self._name, len(self._stack))
        return context

    @contextmanager
    def scoped(self, context: dict[str, Any] | None = None) -> Iterator["VarStore"]:
        """Push an overlay for the duration of a with-block.

        Usage:
            with store.scoped({"item": item}):
                evaluate("item.price * qty", store)
        """
        self.push_context(context)
        try:
            yield self
        finally:
            self.pop_context()

    # -------------------------------------------------------------------------
    # Notifications
    # -------------------------------------------------------------------------

    def subscribe(self, key: str, handler: Handler) -> None:
        """Register handler to be called with (key, value) when key is touched."""
        if not key:
            raise MissingKeyError()
        if handler is None or not callable(handler):
            raise MissingHandlerError()
        self._watchers.setdefault(key, []).append(handler)

    def unsubscribe(self, key: str, handler: Handler) -> bool:
        """Remove a handler registered for key.

        Returns:
            True if the handler was registered and has been removed
        """
        if not key:
            raise MissingKeyError()
        if handler is None or not callable(handler):
            raise MissingHandlerError()

        handlers = self._watchers.get(key)
        if not handlers or handler not in handlers:
            return False
        handlers.remove(handler)
        if not handlers:
            del self._watchers[key]
        return True

    def touch(self, path: str, value: Any = UNSET) -> None:
        """Schedule every handler subscribed to path.

        Handlers run later, in registration order, never inside this call.
        When value is not given the current value of path is sent.
        """
        handlers = self._watchers.get(path)
        if not handlers:
            return

        if value is UNSET:
            value = self.get_value(path)

        notifier = self.notifier
        for handler in list(handlers):
            notifier.schedule(handler, path, value)
