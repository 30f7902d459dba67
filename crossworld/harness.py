"""
Harness — run a simulation command and decide pass/fail from its output.

    result = automate(["./simulate"], timeout_seconds=30)
    result.exit_ok

The child runs with no stdin, stdout and stderr combined, in its own
process group.  Its output fans out to two consumers:

  pump     reads output in chunks, writes each line to the log sink
           immediately (long lines in pieces), and
           queues it for the scanner
  scanner  returns the first line's sentinel (TEST_PASS / TEST_FAIL)

The scanner races a timeout.  Whatever ends the run, the process group is
killed before returning, and the pump drains what is left in the pipe so
the log is complete.  Only the first sentinel counts; the child's exit
code is never consulted.
"""
import asyncio
import logging
import os
import re
import shlex
import signal
import sys
import time
from typing import Optional, Sequence, TextIO

from crossworld.config import settings
from crossworld.io.schema import AutomateResult

logger = logging.getLogger(__name__)

PASS_SENTINEL = "TEST_PASS"
FAIL_SENTINEL = "TEST_FAIL"
SENTINEL_PATTERN = re.compile(r"TEST_(?:PASS|FAIL)")

# Longest partial line the pump buffers before forwarding it
_STREAM_LIMIT = 1 << 20
_READ_SIZE = 1 << 16
# One byte short of a sentinel
_SENTINEL_OVERLAP = len(PASS_SENTINEL) - 1


def match_sentinel(line: str) -> Optional[str]:
    """First sentinel in *line*, or None."""
    m = SENTINEL_PATTERN.search(line)
    return m.group(0) if m else None


async def _pump_output(
    stream: asyncio.StreamReader,
    log_sink: TextIO,
    lines: "asyncio.Queue[Optional[str]]",
) -> None:
    """Forward every line to the log sink and the scanner queue; None marks EOF.

    A line longer than ``_STREAM_LIMIT`` is forwarded in pieces as it
    arrives.  The last ``_SENTINEL_OVERLAP`` bytes of a piece are held back
    from the sink and carried into the next piece, and the scanner sees the
    piece with them, so a sentinel split between pieces is still matched
    exactly once.
    """

    def forward(raw: bytes, scanned: Optional[bytes] = None) -> None:
        log_sink.write(raw.decode("ascii", errors="replace"))
        log_sink.flush()
        lines.put_nowait((raw if scanned is None else scanned).decode("ascii", errors="replace"))

    pending = b""
    try:
        while True:
            chunk = await stream.read(_READ_SIZE)
            if not chunk:
                break
            pending += chunk
            *complete, pending = pending.split(b"\n")
            for raw in complete:
                forward(raw + b"\n")
            if len(pending) > _STREAM_LIMIT:
                forward(pending[:-_SENTINEL_OVERLAP], scanned=pending)
                pending = pending[-_SENTINEL_OVERLAP:]
        if pending:
            # Final line without a trailing newline
            forward(pending)
    finally:
        lines.put_nowait(None)


async def _scan_for_sentinel(lines: "asyncio.Queue[Optional[str]]") -> Optional[str]:
    while True:
        line = await lines.get()
        if line is None:
            return None
        sentinel = match_sentinel(line)
        if sentinel is not None:
            return sentinel


def _terminate(proc: asyncio.subprocess.Process) -> None:
    """Kill the child's process group.  A group with no members left is a no-op.

    The group is signalled even when the leader has already exited, since
    processes it started may still be running in the group.
    """
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except ProcessLookupError:
        logger.debug(f"process group {proc.pid} already gone")


async def _drain(pump: "asyncio.Task[None]", timeout: float) -> None:
    """Let the pump forward the rest of the output, bounded by *timeout*."""
    try:
        await asyncio.wait_for(pump, timeout)
    except asyncio.TimeoutError:
        # A grandchild outside the process group may still hold the pipe.
        logger.warning(f"Output still open {timeout}s after termination, log may be truncated")
    except Exception as e:
        logger.error(f"Output pump failed, log may be truncated: {e}")


async def automate_async(
    simulate_cmd: Sequence[str],
    timeout_seconds: float,
    log_sink: Optional[TextIO] = None,
) -> AutomateResult:
    """Coroutine form of ``automate``."""
    if log_sink is None:
        log_sink = sys.stderr
    cmd = [str(c) for c in simulate_cmd]
    logger.info(f"running '{shlex.join(cmd)}' with timeout {timeout_seconds}s")

    t0 = time.monotonic()
    proc = await asyncio.create_subprocess_exec(
        *cmd,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.STDOUT,
        start_new_session=True,
    )

    lines: "asyncio.Queue[Optional[str]]" = asyncio.Queue()
    pump = asyncio.create_task(_pump_output(proc.stdout, log_sink, lines))

    sentinel: Optional[str] = None
    timed_out = False
    try:
        sentinel = await asyncio.wait_for(_scan_for_sentinel(lines), timeout_seconds)
    except asyncio.TimeoutError:
        timed_out = True
    finally:
        _terminate(proc)
        returncode = await proc.wait()
        await _drain(pump, settings.DRAIN_TIMEOUT)

    logger.info(f"result: '{sentinel or ''}'")
    return AutomateResult(
        exit_ok=(sentinel == PASS_SENTINEL and not timed_out),
        sentinel=sentinel,
        timed_out=timed_out,
        returncode=returncode,
        pid=proc.pid,
        duration_ms=int((time.monotonic() - t0) * 1000),
    )


def automate(
    simulate_cmd: Sequence[str],
    timeout_seconds: float,
    log_sink: Optional[TextIO] = None,
) -> AutomateResult:
    """Run *simulate_cmd* under a deadline; ``exit_ok`` iff TEST_PASS came first."""
    return asyncio.run(automate_async(simulate_cmd, timeout_seconds, log_sink))
