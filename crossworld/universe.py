"""
Universe — the default package-universe constructor.

One ``ToolchainUniverse`` per matrix leaf.  It knows which tuple it builds
for, where that tuple's build tools live, and how to invoke its compiler.
Everything deeper (what gets built, image formats) belongs to callers that
reach the shared world through the injected extension points.

Native detection runs once per process and is cached.
"""
import logging
import platform
import shutil
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from types import ModuleType
from typing import Any, List, Optional, Sequence

from elftools.common.exceptions import ELFError
from elftools.elf.elffile import ELFFile

from crossworld.config import settings
from crossworld.core.matrix import TargetDescriptor
from crossworld.io.schema import CompileFlag, CompileResult, PhaseStatus

logger = logging.getLogger(__name__)

# Leading tuple component -> expected ELF e_machine
ARCH_MACHINES = {
    "aarch64": "EM_AARCH64",
    "arm": "EM_ARM",
    "armv7l": "EM_ARM",
    "riscv64": "EM_RISCV",
    "riscv32": "EM_RISCV",
    "x86_64": "EM_X86_64",
    "i686": "EM_386",
}


@dataclass(frozen=True)
class ExtensionPoints:
    """What every universe gets injected: the world and the tree helpers."""
    top_level: Any
    tree_helpers: ModuleType


@dataclass(frozen=True)
class UniverseArgs:
    """Arguments handed to a package-universe constructor."""
    target: Optional[TargetDescriptor]
    extension_points: ExtensionPoints


# =============================================================================
# Native tuple detection (runs once per process)
# =============================================================================

_cached_native_tuple: Optional[str] = None


def _run_quiet(cmd: List[str], timeout: int = 5) -> str:
    """Run a command and return stdout, or "" if it cannot run."""
    try:
        r = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
    except (OSError, subprocess.TimeoutExpired):
        return ""
    if r.returncode != 0:
        return ""
    return r.stdout.strip()


def normalize_tuple(raw: str) -> str:
    """Spell a tuple the way the matrix does: arch-vendor-os-env.

    ``x86_64-linux-gnu`` and ``x86_64-pc-linux-gnu`` both become
    ``x86_64-unknown-linux-gnu``.
    """
    parts = raw.strip().split("-")
    if len(parts) == 3 and parts[1] == "linux":
        parts.insert(1, "unknown")
    elif len(parts) == 4 and parts[1] == "pc":
        parts[1] = "unknown"
    return "-".join(parts)


def detect_native_tuple() -> str:
    """Tuple of the invoking machine. Cached after first call."""
    global _cached_native_tuple
    if _cached_native_tuple is not None:
        return _cached_native_tuple

    if settings.NATIVE_TUPLE:
        native = settings.NATIVE_TUPLE
    else:
        dumped = _run_quiet(["gcc", "-dumpmachine"], timeout=settings.TOOLCHAIN_PROBE_TIMEOUT)
        if dumped:
            native = normalize_tuple(dumped.splitlines()[0])
        else:
            machine = platform.machine() or "unknown"
            native = f"{machine}-unknown-{platform.system().lower()}-gnu"
            logger.warning(f"gcc not available, guessing native tuple {native}")

    _cached_native_tuple = native
    logger.info(f"Native tuple: {native}")
    return native


# =============================================================================
# ELF check
# =============================================================================

def read_elf_machine(path: Path) -> Optional[str]:
    """e_machine of an ELF file, or None if *path* is not ELF."""
    try:
        with open(path, "rb") as f:
            return ELFFile(f).header["e_machine"]
    except (ELFError, OSError) as e:
        logger.warning(f"ELF check failed for {path}: {e}")
        return None


# =============================================================================
# Universe
# =============================================================================

class ToolchainUniverse:
    """Package universe for one matrix leaf.

    ``target`` is None for a native universe, whose host tuple is the
    native tuple.  Cross universes prefix every tool with ``<tuple>-``.
    """

    def __init__(self, args: UniverseArgs, native_tuple: Optional[str] = None):
        self.target = args.target
        self.extension_points = args.extension_points
        self.build_tuple = native_tuple or detect_native_tuple()
        if self.target is None:
            self.host_tuple = self.build_tuple
        else:
            self.host_tuple = self.target.tuple
        logger.debug(f"Package universe {self.build_tuple} -> {self.host_tuple}")

    @property
    def top_level(self) -> Any:
        return self.extension_points.top_level

    @property
    def tree_helpers(self) -> ModuleType:
        return self.extension_points.tree_helpers

    @property
    def is_cross(self) -> bool:
        return self.target is not None

    @property
    def host_arch(self) -> str:
        return self.host_tuple.split("-", 1)[0]

    @property
    def tool_prefix(self) -> str:
        return f"{self.host_tuple}-" if self.is_cross else ""

    def build_tool(self, name: str) -> Path:
        """Resolve a build tool (gcc, ld, objcopy, ...) for this host."""
        exe = self.tool_prefix + name
        found = shutil.which(exe)
        if found is None:
            raise FileNotFoundError(f"Build tool {exe!r} not found in PATH for {self.host_tuple}")
        return Path(found)

    def compile(
        self,
        sources: Sequence[Path],
        output: Path,
        cflags: Sequence[str] = (),
        timeout: Optional[int] = None,
    ) -> CompileResult:
        """Compile *sources* into *output* and check the result is ELF for this host."""
        if timeout is None:
            timeout = settings.COMPILE_TIMEOUT

        cc = self.build_tool("gcc")
        cmd = [str(cc), *cflags, *[str(s) for s in sources], "-o", str(output)]
        command = " ".join(cmd)
        logger.info(f"[{self.host_tuple}] {command}")

        t0 = time.monotonic()
        try:
            r = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
        except subprocess.TimeoutExpired:
            return CompileResult(
                host_tuple=self.host_tuple,
                command=command,
                exit_code=-1,
                output_path=str(output),
                stderr=f"Command timed out after {timeout}s",
                duration_ms=int((time.monotonic() - t0) * 1000),
                status=PhaseStatus.TIMEOUT,
                flags=[CompileFlag.TIMEOUT],
            )
        duration_ms = int((time.monotonic() - t0) * 1000)

        if r.returncode != 0:
            return CompileResult(
                host_tuple=self.host_tuple,
                command=command,
                exit_code=r.returncode,
                output_path=str(output),
                stdout=r.stdout,
                stderr=r.stderr,
                duration_ms=duration_ms,
                status=PhaseStatus.FAILED,
                flags=[CompileFlag.COMPILE_FAILED],
            )

        flags: List[CompileFlag] = []
        machine = read_elf_machine(Path(output))
        expected = ARCH_MACHINES.get(self.host_arch)
        if machine is None:
            flags.append(CompileFlag.NON_ELF_OUTPUT)
        elif expected is not None and machine != expected:
            flags.append(CompileFlag.ARCH_MISMATCH)

        return CompileResult(
            host_tuple=self.host_tuple,
            command=command,
            exit_code=r.returncode,
            output_path=str(output),
            stdout=r.stdout,
            stderr=r.stderr,
            duration_ms=duration_ms,
            elf_machine=machine,
            status=PhaseStatus.FAILED if flags else PhaseStatus.SUCCESS,
            flags=flags,
        )

    def __repr__(self) -> str:
        return f"<ToolchainUniverse {self.build_tuple} -> {self.host_tuple}>"
