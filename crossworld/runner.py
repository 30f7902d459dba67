"""
Runner — automate every instance in a tree and summarize the outcome.

This module ties instances, the harness and IO together into a single
``run_automation`` function.  Each instance gets exactly one attempt;
unsupported and non-automatable instances are recorded as skipped.
"""
import logging
import sys
from pathlib import Path
from typing import Any, Optional, TextIO

from crossworld.io.schema import (
    AutomationSummary,
    InstanceReport,
    InstanceStatus,
    SkipReason,
    StatusCounts,
)
from crossworld.io.writer import write_report
from crossworld.instances import all_instances

logger = logging.getLogger(__name__)


def run_automation(
    instance_tree: Any,
    output_dir: Optional[Path] = None,
    log_sink: Optional[TextIO] = None,
) -> AutomationSummary:
    """
    Automate every instance leaf of *instance_tree*.

    Parameters
    ----------
    instance_tree : tree of Instance leaves
        Typically ``world.instances``.
    output_dir : Path, optional
        Directory to write automation_report.json.  If None, nothing is
        written to disk.
    log_sink : text stream, optional
        Where simulation output is forwarded.  Defaults to stderr.

    Returns
    -------
    AutomationSummary
    """
    reports = []
    counts = StatusCounts()

    for instance in all_instances(instance_tree):
        counts.total += 1

        if not instance.is_supported:
            logger.info(f"{instance.name}: skipped (unsupported)")
            reports.append(InstanceReport(
                name=instance.name,
                status=InstanceStatus.SKIPPED,
                skip_reason=SkipReason.UNSUPPORTED,
            ))
            counts.skipped += 1
            continue

        if not instance.can_automate:
            logger.info(f"{instance.name}: skipped (cannot automate)")
            reports.append(InstanceReport(
                name=instance.name,
                status=InstanceStatus.SKIPPED,
                skip_reason=SkipReason.NOT_AUTOMATABLE,
            ))
            counts.skipped += 1
            continue

        result = instance.automate(log_sink)
        status = InstanceStatus.PASS if result.exit_ok else InstanceStatus.FAIL
        logger.info(f"{instance.name}: {status.value}")
        reports.append(InstanceReport(name=instance.name, status=status, result=result))
        if result.exit_ok:
            counts.passed += 1
        else:
            counts.failed += 1

    summary = AutomationSummary(instances=reports, counts=counts)

    if output_dir:
        write_report(summary, output_dir)

    return summary


# =============================================================================
# Entry point
# =============================================================================

if __name__ == "__main__":
    from crossworld.config import settings
    from crossworld.instances import instances_extension
    from crossworld.io.loader import load_manifest
    from crossworld.world import configure_world

    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )

    specs = load_manifest(Path(settings.INSTANCES_MANIFEST))
    world = configure_world(extensions={
        "instances": instances_extension(specs, settings.TARGET_PATH),
    })
    summary = run_automation(world.instances, output_dir=Path(settings.REPORTS_PATH))
    logger.info(
        f"Automation complete: {summary.counts.passed} passed, "
        f"{summary.counts.failed} failed, {summary.counts.skipped} skipped"
    )
    sys.exit(0 if summary.all_passed else 1)
