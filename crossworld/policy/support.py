"""
Support — which runtime capabilities a host architecture provides.

Instances declare requirements by name; the support record decides whether
an instance is runnable on a given package universe.  Adding an
architecture is a change to this table, not to instance definitions.
"""
from dataclasses import dataclass
from typing import Any, FrozenSet, Iterable

FULL_RUNTIME_ARCHS: FrozenSet[str] = frozenset({"aarch64", "x86_64"})
KERNEL_LOADER_ARCHS: FrozenSet[str] = frozenset({"aarch64"})

REQUIREMENTS: FrozenSet[str] = frozenset({"full_runtime", "minimal_runtime", "kernel_loader"})


@dataclass(frozen=True)
class RuntimeSupport:
    """Capabilities available when running on one host architecture."""

    arch: str
    full_runtime: bool
    minimal_runtime: bool
    kernel_loader: bool

    @classmethod
    def for_arch(cls, arch: str) -> "RuntimeSupport":
        full = arch in FULL_RUNTIME_ARCHS
        return cls(
            arch=arch,
            full_runtime=full,
            minimal_runtime=full,
            kernel_loader=arch in KERNEL_LOADER_ARCHS,
        )

    @classmethod
    def for_universe(cls, universe: Any) -> "RuntimeSupport":
        """Support for a package universe exposing ``host_tuple``."""
        return cls.for_arch(universe.host_tuple.split("-", 1)[0])

    def satisfies(self, requirements: Iterable[str]) -> bool:
        requirements = list(requirements)
        unknown = sorted(set(requirements) - REQUIREMENTS)
        if unknown:
            raise ValueError(f"Unknown runtime requirements: {unknown}")
        return all(getattr(self, r) for r in requirements)
