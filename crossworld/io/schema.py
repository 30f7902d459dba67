"""
Schema — Pydantic models for compile results, harness results and reports.

One report per automation run:
  automation_report.json — per-instance outcome + summary counts.

Runtime contract fields (present in every report):
  package_name, package_version, schema_version.
"""
from datetime import datetime, timezone
from enum import Enum, unique
from typing import List, Optional

from pydantic import BaseModel, Field

from crossworld import PACKAGE_NAME, SCHEMA_VERSION, __version__


# ── Compile (default package universe) ───────────────────────────────────────

@unique
class PhaseStatus(str, Enum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    TIMEOUT = "TIMEOUT"


@unique
class CompileFlag(str, Enum):
    COMPILE_FAILED = "COMPILE_FAILED"
    TIMEOUT = "TIMEOUT"
    NON_ELF_OUTPUT = "NON_ELF_OUTPUT"
    ARCH_MISMATCH = "ARCH_MISMATCH"


class CompileResult(BaseModel):
    """One compiler invocation inside a package universe."""
    host_tuple: str
    command: str
    exit_code: int
    output_path: str
    stdout: str = ""
    stderr: str = ""
    duration_ms: int = 0
    elf_machine: Optional[str] = None   # e.g. "EM_AARCH64"; None if not ELF
    status: PhaseStatus = PhaseStatus.SUCCESS
    flags: List[CompileFlag] = Field(default_factory=list)


# ── Harness ──────────────────────────────────────────────────────────────────

class AutomateResult(BaseModel):
    """Outcome of one supervised simulation run."""
    exit_ok: bool
    sentinel: Optional[str] = None      # first sentinel seen, if any
    timed_out: bool = False
    returncode: Optional[int] = None    # after termination; not consulted
    pid: Optional[int] = None
    duration_ms: int = 0


# ── Instances ────────────────────────────────────────────────────────────────

class InstanceSpec(BaseModel):
    """A manifest entry describing one runnable test instance."""
    path: List[str] = Field(min_length=1)
    simulate: List[str] = Field(min_length=1)
    requires: List[str] = Field(default_factory=list)
    can_automate: bool = False
    automate_timeout: Optional[int] = None


@unique
class InstanceStatus(str, Enum):
    PASS = "PASS"
    FAIL = "FAIL"
    SKIPPED = "SKIPPED"


@unique
class SkipReason(str, Enum):
    UNSUPPORTED = "UNSUPPORTED"
    NOT_AUTOMATABLE = "NOT_AUTOMATABLE"


class InstanceReport(BaseModel):
    name: str
    status: InstanceStatus
    skip_reason: Optional[SkipReason] = None
    result: Optional[AutomateResult] = None


class StatusCounts(BaseModel):
    total: int = 0
    passed: int = 0
    failed: int = 0
    skipped: int = 0


class AutomationSummary(BaseModel):
    """Run-level summary — automation_report.json."""

    package_name: str = PACKAGE_NAME
    package_version: str = __version__
    schema_version: str = SCHEMA_VERSION

    instances: List[InstanceReport] = Field(default_factory=list)
    counts: StatusCounts = Field(default_factory=StatusCounts)

    timestamp: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    @property
    def all_passed(self) -> bool:
        return self.counts.failed == 0
