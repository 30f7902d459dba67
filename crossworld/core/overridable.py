"""
Overridable — a construction handle that derives new handles from overrides.

    handle = make_overridable(merge, construct, args)
    handle.value                    # construct(args), built once on first use
    handle.override(t)              # new handle over merge(t, args)

A handle never changes after creation.  ``override`` returns an independent
handle with its own lazily built value; earlier handles are untouched and
may still be overridden again.
"""
from typing import Any, Callable, Dict, Generic, Mapping, Optional, TypeVar

A = TypeVar("A")
T = TypeVar("T")

Merge = Callable[[Any, A], A]


def apply_transform(transform: Callable[[A], A], args: A) -> A:
    """Merge where the override is a function of the previous arguments."""
    return transform(args)


def merge_fields(patch: Mapping[str, Any], args: Mapping[str, Any]) -> Dict[str, Any]:
    """Merge where the override is a dict and later fields win."""
    return {**args, **patch}


class Overridable(Generic[A, T]):
    """Immutable (merge, construct, args) triple with a memoized value."""

    def __init__(self, merge: Merge, construct: Callable[[A], T], args: A):
        self._merge = merge
        self._construct = construct
        self._args = args
        self._built = False
        self._value: Optional[T] = None

    @property
    def args(self) -> A:
        return self._args

    @property
    def value(self) -> T:
        if not self._built:
            self._value = self._construct(self._args)
            self._built = True
        return self._value

    def __call__(self) -> T:
        return self.value

    def override(self, transform: Any) -> "Overridable[A, T]":
        return make_overridable(self._merge, self._construct, self._merge(transform, self._args))

    def __getattr__(self, name: str) -> Any:
        # Only reached for names not on the handle itself.
        if name.startswith("_") or name == "value":
            raise AttributeError(name)
        return getattr(self.value, name)

    def __repr__(self) -> str:
        return f"<Overridable construct={getattr(self._construct, '__name__', self._construct)!s} built={self._built}>"


def make_overridable(merge: Merge, construct: Callable[[A], T], args: A) -> Overridable[A, T]:
    return Overridable(merge, construct, args)
