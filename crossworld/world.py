"""
World — the overridable, self-referential build configuration.

    handle = configure_world()
    handle.package_universes["host.aarch64.none"]     # builds one universe
    handle.override(extend_args(lambda world, prev: {...}))

A world is a ``LazyRecord`` with the fields:

  concrete_args      construction arguments, ``args_fn(world)``
  lib                the tree helpers
  package_universes  matrix path -> package universe, each built on first read
  <extensions>       caller-supplied fields, each ``fn(world)``

Fields may read each other through the world in any order.  A field (or
universe) whose resolution needs its own value raises
``ResolutionCycleError`` naming the chain.
"""
import logging
from functools import partial
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Union

from crossworld.core import tree
from crossworld.core.lazy import LazyRecord, Suspended
from crossworld.core.matrix import Guard, HostGuard, TargetDescriptor, canonicalize, cross_systems
from crossworld.core.overridable import Overridable, apply_transform, make_overridable
from crossworld.core.tree import Path, format_path, leaves
from crossworld.universe import ExtensionPoints, ToolchainUniverse, UniverseArgs

logger = logging.getLogger(__name__)

NATIVE_PATH: Path = ("build",)
CORE_FIELDS = frozenset({"concrete_args", "lib", "package_universes"})

ArgsFn = Callable[["World"], Mapping[str, Any]]
UniverseConstructor = Callable[[UniverseArgs], Any]
Extension = Callable[["World"], Any]
PathLike = Union[str, Path]


def as_path(key: PathLike) -> Path:
    """``"host.aarch64.none"`` or ``("host", "aarch64", "none")`` -> path tuple."""
    if isinstance(key, str):
        return tuple(key.split("."))
    return tuple(key)


class PackageUniverses(Mapping):
    """Read-only mapping of matrix path -> package universe.

    Looking up a path forces that leaf's universe only.  Iteration yields
    paths without constructing anything.
    """

    def __init__(self, suspended: Dict[Path, Suspended]):
        self._suspended = suspended

    def __getitem__(self, key: PathLike) -> Any:
        path = as_path(key)
        if path not in self._suspended:
            raise KeyError(f"No matrix leaf at {format_path(path)}")
        return self._suspended[path].force()

    def __contains__(self, key: object) -> bool:
        try:
            return as_path(key) in self._suspended  # type: ignore[arg-type]
        except TypeError:
            return False

    def __iter__(self) -> Iterator[Path]:
        return iter(self._suspended)

    def __len__(self) -> int:
        return len(self._suspended)

    def is_constructed(self, key: PathLike) -> bool:
        return self._suspended[as_path(key)].is_forced

    def constructed(self) -> List[Path]:
        return [path for path, s in self._suspended.items() if s.is_forced]


class World(LazyRecord):
    """Resolved configuration; see the module docstring."""


def base_args(world: World) -> Dict[str, Any]:
    """Default construction arguments.

    Every universe is handed the world itself and the tree helpers, so code
    deep inside one universe can reach the shared configuration.
    """

    def universe_args_for(target: Optional[TargetDescriptor]) -> UniverseArgs:
        return UniverseArgs(
            target=target,
            extension_points=ExtensionPoints(top_level=world, tree_helpers=tree),
        )

    return {"universe_args_for": universe_args_for}


def _construct_universe(
    world: World,
    constructor: UniverseConstructor,
    host_guard: Guard,
    path: Path,
    target: Optional[TargetDescriptor],
) -> Any:
    resolved = canonicalize(target, host_guard)
    if target is not None and resolved is None:
        logger.info(f"{format_path(path)}: {target.tuple} is the host tuple, building natively")
    logger.debug(f"Constructing package universe {format_path(path)}")
    return constructor(world.concrete_args["universe_args_for"](resolved))


def mk_world(
    args_fn: ArgsFn,
    universe_constructor: UniverseConstructor,
    extensions: Optional[Mapping[str, Extension]] = None,
    matrix: Optional[Mapping[str, Any]] = None,
) -> World:
    """Build a world.  Nothing is evaluated until a field is read."""
    extensions = dict(extensions or {})
    clashes = sorted(CORE_FIELDS & set(extensions))
    if clashes:
        raise ValueError(f"Extension fields collide with core world fields: {clashes}")

    # Validates the whole matrix up front; leaf values stay untouched.
    targets = leaves(cross_systems() if matrix is None else matrix)
    if NATIVE_PATH not in {path for path, _ in targets}:
        raise ValueError(f"Matrix has no native leaf at {format_path(NATIVE_PATH)}")

    def package_universes(world: World) -> PackageUniverses:
        host_guard = HostGuard(lambda: world.package_universes[NATIVE_PATH].host_tuple)
        return PackageUniverses({
            path: world.suspend(
                "package_universes." + format_path(path),
                partial(_construct_universe, world, universe_constructor, host_guard, path, target),
            )
            for path, target in targets
        })

    fields: Dict[str, Extension] = {
        "concrete_args": args_fn,
        "lib": lambda world: tree,
        "package_universes": package_universes,
    }
    fields.update(extensions)
    return World(fields, name="world")


def extend_args(extension: Callable[[World, Mapping[str, Any]], Mapping[str, Any]]):
    """Override transform layering ``extension(world, previous)`` over the previous args."""

    def transform(args_fn: ArgsFn) -> ArgsFn:
        def extended(world: World) -> Dict[str, Any]:
            previous = args_fn(world)
            return {**previous, **extension(world, previous)}
        return extended

    return transform


def configure_world(
    universe_constructor: Optional[UniverseConstructor] = None,
    extensions: Optional[Mapping[str, Extension]] = None,
    matrix: Optional[Mapping[str, Any]] = None,
    merge=apply_transform,
) -> Overridable:
    """Default entry point: an overridable world over ``base_args``."""
    construct = partial(
        mk_world,
        universe_constructor=universe_constructor or ToolchainUniverse,
        extensions=extensions,
        matrix=matrix,
    )
    return make_overridable(merge, construct, base_args)
