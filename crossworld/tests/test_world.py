"""
test_world — the overridable world and its per-target package universes.

Tests verify invariant properties:
  - Reading one universe never constructs another target's universe, even
    one whose constructor would fail.
  - Exactly one universe per leaf path, memoized.
  - A target equal to the host tuple is built as native (descriptor None).
  - Extensions read universes and each other; cycles are reported.
  - override() derives an independent world and leaves the old one intact.
"""
from functools import partial

import pytest

from crossworld.core import tree
from crossworld.core.lazy import ResolutionCycleError
from crossworld.core.tree import MalformedTreeError, wrap_leaf
from crossworld.universe import ToolchainUniverse
from crossworld.world import NATIVE_PATH, configure_world, extend_args, mk_world, base_args

from conftest import HOST_TUPLE, UNSUPPORTED_TUPLE


class TestLaziness:

    def test_reading_one_target_builds_only_it(self, world, recorder):
        universe = world.package_universes[("host", "aarch64", "none")]

        assert universe.target.tuple == "aarch64-none-elf"
        assert recorder.count("aarch64-none-elf") == 1
        assert recorder.count(UNSUPPORTED_TUPLE) == 0
        assert recorder.count("riscv64-unknown-linux-gnu") == 0

    def test_native_read_builds_nothing_else(self, world, recorder):
        world.package_universes["build"]
        assert recorder.calls == [None]

    def test_unsupported_target_fails_only_when_read(self, world, recorder):
        world.package_universes["host.aarch64.linux"]
        assert recorder.count(UNSUPPORTED_TUPLE) == 0

        for _ in range(2):
            with pytest.raises(ValueError, match="unsupported"):
                world.package_universes["host.riscv32.linux"]
        assert recorder.count(UNSUPPORTED_TUPLE) == 1

    def test_iteration_constructs_nothing(self, world, recorder):
        paths = list(world.package_universes)
        assert len(paths) == 16
        assert paths[0] == NATIVE_PATH
        assert ("host", "ia32", "linux") in world.package_universes
        assert recorder.calls == []
        assert world.package_universes.constructed() == []

    def test_one_universe_per_path(self, world, recorder):
        a = world.package_universes["host.x86_64.none"]
        b = world.package_universes[("host", "x86_64", "none")]
        assert a is b
        assert recorder.count("x86_64-elf") == 1
        assert world.package_universes.is_constructed("host.x86_64.none")

    def test_unknown_path(self, world):
        with pytest.raises(KeyError, match="host.mips"):
            world.package_universes["host.mips.linux"]
        assert "host.mips.linux" not in world.package_universes
        assert 42 not in world.package_universes


class TestHostGuard:

    def test_same_as_host_builds_native(self, world, recorder):
        universe = world.package_universes["host.x86_64.linux"]

        assert universe.target is None
        assert universe.host_tuple == HOST_TUPLE
        assert HOST_TUPLE not in recorder.calls
        # The native universe was read once to learn the host tuple.
        assert recorder.calls.count(None) == 2

    def test_host_tuple_read_once(self, world, recorder):
        world.package_universes["host.aarch64.none"]
        world.package_universes["host.aarch32.none"]
        world.package_universes["host.ia32.none"]
        assert recorder.calls.count(None) == 1

    def test_native_build_leaf_needs_no_guard(self, recorder):
        """A world without host leaves never needs the host tuple."""
        handle = configure_world(universe_constructor=recorder, matrix={"build": wrap_leaf(None)})
        assert handle.package_universes["build"].host_tuple == HOST_TUPLE
        assert recorder.calls == [None]


class TestExtensionPoints:

    def test_universe_reaches_world(self, world):
        universe = world.package_universes["host.aarch64.linux"]
        points = universe.extension_points
        assert points.top_level is world.value
        assert points.tree_helpers is tree
        assert world.lib is tree

    def test_universe_can_read_extension(self, recorder):
        def constructor(args):
            universe = recorder(args)
            universe.label = args.extension_points.top_level.label
            return universe

        handle = configure_world(
            universe_constructor=constructor,
            extensions={"label": lambda world: "shared"},
        )
        assert handle.package_universes["host.aarch64.none"].label == "shared"


class TestExtensions:

    def test_extensions_read_universes_and_each_other(self, recorder):
        handle = configure_world(
            universe_constructor=recorder,
            extensions={
                "summary": lambda world: f"{world.arm_tuple} on {world.native_tuple}",
                "arm_tuple": lambda world: world.package_universes["host.aarch64.linux"].host_tuple,
                "native_tuple": lambda world: world.package_universes["build"].host_tuple,
            },
        )
        assert handle.summary == f"aarch64-unknown-linux-gnu on {HOST_TUPLE}"

    def test_extension_cycle_reported(self, recorder):
        handle = configure_world(
            universe_constructor=recorder,
            extensions={
                "a": lambda world: world.b,
                "b": lambda world: world.a,
            },
        )
        with pytest.raises(ResolutionCycleError) as exc_info:
            handle.a
        assert exc_info.value.chain == ("world.a", "world.b", "world.a")

    def test_cycle_through_universe_reported(self):
        def constructor(args):
            # The native universe asking for itself can never resolve.
            return args.extension_points.top_level.package_universes["build"]

        handle = configure_world(universe_constructor=constructor)
        with pytest.raises(ResolutionCycleError) as exc_info:
            handle.package_universes["build"]
        assert exc_info.value.chain == (
            "world.package_universes.build",
            "world.package_universes.build",
        )

    def test_core_field_collision_rejected(self, recorder):
        handle = configure_world(universe_constructor=recorder, extensions={"lib": lambda w: None})
        with pytest.raises(ValueError, match="lib"):
            handle.value


class TestOverride:

    def test_override_derives_independent_world(self, recorder):
        base = configure_world(universe_constructor=recorder)
        seen = []

        def trace_universe_args(world, previous):
            def universe_args_for(target):
                seen.append(target.tuple if target is not None else None)
                return previous["universe_args_for"](target)
            return {"universe_args_for": universe_args_for, "flavour": "debug"}

        derived = base.override(extend_args(trace_universe_args))

        assert derived.concrete_args["flavour"] == "debug"
        assert "flavour" not in base.concrete_args
        assert derived.value is not base.value

        a = base.package_universes["host.aarch64.none"]
        assert seen == []
        b = derived.package_universes["host.aarch64.none"]
        assert "aarch64-none-elf" in seen
        assert a is not b
        assert a.extension_points.top_level is base.value
        assert b.extension_points.top_level is derived.value

    def test_chained_overrides(self, recorder):
        handle = (
            configure_world(universe_constructor=recorder)
            .override(extend_args(lambda w, prev: {"a": 1}))
            .override(extend_args(lambda w, prev: {"a": prev["a"] + 1, "b": 3}))
        )
        assert handle.concrete_args["a"] == 2
        assert handle.concrete_args["b"] == 3
        assert "universe_args_for" in handle.concrete_args


class TestConstruction:

    def test_malformed_matrix_fails_fast(self, recorder):
        matrix = {"build": wrap_leaf(None), "host": {"bad": 42}}
        with pytest.raises(MalformedTreeError) as exc_info:
            mk_world(base_args, recorder, matrix=matrix)
        assert exc_info.value.path == ("host", "bad")

    def test_matrix_without_native_leaf(self, recorder):
        with pytest.raises(ValueError, match="build"):
            mk_world(base_args, recorder, matrix={"host": {}})

    def test_with_toolchain_universes(self):
        handle = configure_world(
            universe_constructor=partial(ToolchainUniverse, native_tuple=HOST_TUPLE),
        )
        arm = handle.package_universes["host.aarch64.linux"]
        native_again = handle.package_universes["host.x86_64.linux"]

        assert arm.is_cross
        assert arm.tool_prefix == "aarch64-unknown-linux-gnu-"
        assert arm.build_tuple == HOST_TUPLE
        assert not native_again.is_cross
        assert native_again.host_tuple == HOST_TUPLE
