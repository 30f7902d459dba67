"""
Matrix — the cross-target matrix and the host guard.

The matrix is static tree data: a ``build`` leaf (no cross-compilation) and
a ``host`` namespace keyed by architecture, then environment.  Leaf values
are ``TargetDescriptor`` records or ``None`` for native.

A descriptor naming the host's own tuple is canonicalized to ``None`` by the
guard, so a "cross build" that is really native never instantiates a
second toolchain.  The guard reads the host tuple once, lazily; nothing in
this module constructs a package universe.
"""
from typing import Any, Callable, Dict, Optional

from pydantic import BaseModel, ConfigDict

from crossworld.core.tree import Leaf, map_leaves, wrap_leaf

Guard = Callable[[str], Optional[str]]

_UNRESOLVED = object()


class TargetDescriptor(BaseModel):
    """A cross-compilation target: the target tuple plus variant flags."""

    model_config = ConfigDict(frozen=True, extra="allow")

    tuple: str
    none_with_libc: bool = False

    @property
    def arch(self) -> str:
        return self.tuple.split("-", 1)[0]

    @property
    def is_bare_metal(self) -> bool:
        return "linux" not in self.tuple.split("-")

    @property
    def libc(self) -> Optional[str]:
        env = self.tuple.rsplit("-", 1)[-1]
        if env.startswith("musl"):
            return "musl"
        if env.startswith("gnu"):
            return "glibc"
        return "newlib" if self.none_with_libc else None


def guard(tuple_string: str, host_tuple: str) -> Optional[str]:
    """``None`` when *tuple_string* is the host's own tuple, else unchanged."""
    if tuple_string == host_tuple:
        return None
    return tuple_string


class HostGuard:
    """One-argument guard bound to a lazily resolved host tuple.

    *resolve_host_tuple* is called at most once, on the first guarded
    lookup, and typically reads the native package universe.
    """

    def __init__(self, resolve_host_tuple: Callable[[], str]):
        self._resolve_host_tuple = resolve_host_tuple
        self._host_tuple: Any = _UNRESOLVED

    @property
    def host_tuple(self) -> str:
        if self._host_tuple is _UNRESOLVED:
            self._host_tuple = self._resolve_host_tuple()
        return self._host_tuple

    def __call__(self, tuple_string: str) -> Optional[str]:
        return guard(tuple_string, self.host_tuple)


def canonicalize(target: Optional[TargetDescriptor], guard_fn: Guard) -> Optional[TargetDescriptor]:
    """Apply the guard to one matrix leaf value.

    Native leaves never consult the guard, so the build leaf can be resolved
    without knowing the host tuple.
    """
    if target is None:
        return None
    if guard_fn(target.tuple) is None:
        return None
    return target


def resolve_matrix(matrix: Any, guard_fn: Guard) -> Any:
    return map_leaves(lambda target: canonicalize(target, guard_fn), matrix)


def _target(tuple_string: str, **extra: Any) -> Leaf[TargetDescriptor]:
    return wrap_leaf(TargetDescriptor(tuple=tuple_string, **extra))


def cross_systems() -> Dict[str, Any]:
    """Return a fresh copy of the supported build/host matrix."""
    return {
        "build": wrap_leaf(None),
        "host": {
            "aarch64": {
                "none": _target("aarch64-none-elf"),
                "linux": _target("aarch64-unknown-linux-gnu"),
                "linux_musl": _target("aarch64-unknown-linux-musl"),
            },
            "aarch32": {
                "none": _target("arm-none-eabi"),
                "linux": _target("armv7l-unknown-linux-gnueabihf"),
            },
            "riscv64": {
                "none": _target("riscv64-none-elf"),
                "none_with_libc": _target("riscv64-none-elf", none_with_libc=True),
                "linux": _target("riscv64-unknown-linux-gnu"),
            },
            "riscv32": {
                "none": _target("riscv32-none-elf"),
                "none_with_libc": _target("riscv32-none-elf", none_with_libc=True),
                "linux": _target("riscv32-unknown-linux-gnu"),
            },
            "x86_64": {
                "none": _target("x86_64-elf"),
                "linux": _target("x86_64-unknown-linux-gnu"),
            },
            "ia32": {
                "none": _target("i686-elf"),
                "linux": _target("i686-unknown-linux-gnu"),
            },
        },
    }
