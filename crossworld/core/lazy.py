"""
Lazy — suspended computations and the self-referential record built on them.

A ``LazyRecord`` holds one ``Suspended`` computation per field.  Each field
function receives the record itself, so fields may read each other's
resolved values in any order.  Every suspension of one record shares a
``ResolutionStack``: forcing a computation that is already being forced is a
cycle, reported with the chain of labels that led back to it.
"""
from contextlib import contextmanager
from functools import partial
from typing import Any, Callable, Dict, Generic, Iterator, List, Mapping, Optional, Sequence, TypeVar

T = TypeVar("T")

_UNSET = object()


class ResolutionCycleError(RuntimeError):
    """A suspended computation transitively required its own value."""

    def __init__(self, chain: Sequence[str]):
        self.chain = tuple(chain)
        super().__init__("Cyclic reference while resolving: " + " -> ".join(self.chain))


class ResolutionStack:
    """Suspensions currently being forced, innermost last."""

    def __init__(self):
        self._active: List["Suspended"] = []

    @property
    def labels(self) -> List[str]:
        return [s.label for s in self._active]

    @contextmanager
    def entering(self, suspended: "Suspended"):
        for i, active in enumerate(self._active):
            if active is suspended:
                chain = [s.label for s in self._active[i:]] + [suspended.label]
                raise ResolutionCycleError(chain)
        self._active.append(suspended)
        try:
            yield
        finally:
            self._active.pop()


class Suspended(Generic[T]):
    """A computation forced at most once.

    The outcome is memoized, failures included: a second ``force`` re-raises
    the first error instead of running the computation again.
    """

    __slots__ = ("label", "_compute", "_stack", "_value", "_error")

    def __init__(self, label: str, compute: Callable[[], T], stack: ResolutionStack):
        self.label = label
        self._compute: Optional[Callable[[], T]] = compute
        self._stack = stack
        self._value: Any = _UNSET
        self._error: Optional[BaseException] = None

    @property
    def is_forced(self) -> bool:
        return self._value is not _UNSET or self._error is not None

    def force(self) -> T:
        if self._error is not None:
            raise self._error
        if self._value is _UNSET:
            with self._stack.entering(self):
                try:
                    value = self._compute()
                except Exception as e:
                    self._error = e
                    self._compute = None
                    raise
            self._value = value
            self._compute = None
        return self._value

    def __repr__(self) -> str:
        state = "forced" if self.is_forced else "suspended"
        return f"<Suspended {self.label} ({state})>"


class LazyRecord:
    """Immutable record whose fields are suspended functions of the record.

    ``fields`` maps a name to ``fn(record) -> value``.  Attribute and item
    access force the field; nothing is computed at construction.
    """

    def __init__(
        self,
        fields: Mapping[str, Callable[["LazyRecord"], Any]],
        name: str = "self",
        stack: Optional[ResolutionStack] = None,
    ):
        stack = stack if stack is not None else ResolutionStack()
        object.__setattr__(self, "_name", name)
        object.__setattr__(self, "_stack", stack)
        object.__setattr__(self, "_fields", {
            field: Suspended(f"{name}.{field}", partial(fn, self), stack)
            for field, fn in fields.items()
        })

    @property
    def resolution_stack(self) -> ResolutionStack:
        return self._stack

    def suspend(self, label: str, compute: Callable[[], T]) -> Suspended[T]:
        """Create a suspension tracked on this record's resolution stack."""
        return Suspended(f"{self._name}.{label}", compute, self._stack)

    def is_forced(self, field: str) -> bool:
        return self._fields[field].is_forced

    def __getattr__(self, field: str) -> Any:
        fields: Dict[str, Suspended] = self.__dict__.get("_fields", {})
        if field not in fields:
            raise AttributeError(f"{type(self).__name__} has no field {field!r}")
        return fields[field].force()

    def __getitem__(self, field: str) -> Any:
        if field not in self._fields:
            raise KeyError(field)
        return self._fields[field].force()

    def __contains__(self, field: object) -> bool:
        return field in self._fields

    def __iter__(self) -> Iterator[str]:
        return iter(self._fields)

    def __dir__(self):
        return list(super().__dir__()) + list(self._fields)

    def __setattr__(self, field: str, value: Any) -> None:
        raise AttributeError(f"{type(self).__name__} is immutable; use override()")

    def __delattr__(self, field: str) -> None:
        raise AttributeError(f"{type(self).__name__} is immutable; use override()")

    def __repr__(self) -> str:
        forced = [f for f, s in self._fields.items() if s.is_forced]
        return f"<{type(self).__name__} {self._name} fields={list(self._fields)} forced={forced}>"
