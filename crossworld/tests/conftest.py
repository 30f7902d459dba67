"""
Shared pytest fixtures for crossworld tests.

World tests use a recording universe constructor instead of real
toolchains: it remembers every target it was asked to build and can be
told to fail for "unsupported" tuples.  Harness tests drive real child
processes through the running Python interpreter.
"""
import shutil
import sys
import textwrap
from typing import List, Optional

import pytest

from crossworld.world import configure_world

HOST_TUPLE = "x86_64-unknown-linux-gnu"
UNSUPPORTED_TUPLE = "riscv32-unknown-linux-gnu"


class FakeUniverse:
    """Stands in for a package universe; only what the engine reads."""

    def __init__(self, args, native_tuple: str = HOST_TUPLE):
        self.target = args.target
        self.extension_points = args.extension_points
        self.host_tuple = args.target.tuple if args.target is not None else native_tuple


class RecordingConstructor:
    """Universe constructor recording each call by target tuple (None = native)."""

    def __init__(self, unsupported=(), native_tuple: str = HOST_TUPLE):
        self.calls: List[Optional[str]] = []
        self.unsupported = set(unsupported)
        self.native_tuple = native_tuple

    def __call__(self, args) -> FakeUniverse:
        key = args.target.tuple if args.target is not None else None
        self.calls.append(key)
        if key in self.unsupported:
            raise ValueError(f"unsupported target combination: {key}")
        return FakeUniverse(args, self.native_tuple)

    def count(self, tuple_string: Optional[str]) -> int:
        return self.calls.count(tuple_string)


@pytest.fixture
def recorder() -> RecordingConstructor:
    return RecordingConstructor(unsupported={UNSUPPORTED_TUPLE})


@pytest.fixture
def world(recorder):
    """Overridable world handle over the default matrix and the recorder."""
    return configure_world(universe_constructor=recorder)


@pytest.fixture
def python_cmd():
    """Build an argv running *script* in an unbuffered child interpreter."""

    def _cmd(script: str) -> List[str]:
        return [sys.executable, "-u", "-c", textwrap.dedent(script)]

    return _cmd


@pytest.fixture(scope="session")
def gcc_ok():
    """Skip tests if gcc is not available."""
    if shutil.which("gcc") is None:
        pytest.skip("gcc not available - install gcc to run these tests")
