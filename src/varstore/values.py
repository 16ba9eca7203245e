"""Dynamic value helpers.

Values stored in a VarStore are plain Python objects: None (null), bool,
int/float, str, list, dict, callables and VarStore references. The one
addition is UNSET, the marker for "never assigned", which stays distinct
from an explicitly stored None.
"""

from typing import Any, Callable


class _Unset:
    """Singleton for keys that were never assigned."""

    _instance: "_Unset | None" = None

    def __new__(cls) -> "_Unset":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False

    def __reduce__(self) -> str:
        return "UNSET"

    def __copy__(self) -> "_Unset":
        return self

    def __deepcopy__(self, memo: dict) -> "_Unset":
        return self


UNSET = _Unset()


def is_unset(value: Any) -> bool:
    """Return True if value is the UNSET marker."""
    return value is UNSET


RECEIVER_ATTR = "__varstore_receiver__"


def receiver(fn: Callable[..., Any]) -> Callable[..., Any]:
    """Mark a function as wanting its owner passed as the first argument.

    When an expression calls ``obj.fn(x)`` and ``fn`` was bound into a
    mapping or store, the evaluator passes ``obj`` as the first positional
    argument:

        @receiver
        def lookup(owner, key):
            return owner[key]

        store.set_value("foo", {"bar": "baz", "get": lookup})
        evaluate('foo.get("bar")', store)  # "baz"
    """
    setattr(fn, RECEIVER_ATTR, True)
    return fn


def wants_receiver(fn: Any) -> bool:
    """Check whether a callable was decorated with @receiver."""
    return bool(getattr(fn, RECEIVER_ATTR, False))
