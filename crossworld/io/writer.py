"""
Writer — serialize the automation summary to JSON.

Filesystem layout per run:
    <output_dir>/automation_report.json
"""
import json
from pathlib import Path

from crossworld.io.schema import AutomationSummary

REPORT_FILENAME = "automation_report.json"


def write_report(summary: AutomationSummary, output_dir: Path) -> Path:
    """
    Write automation_report.json into *output_dir*.

    Creates *output_dir* if it does not exist.
    Returns the report path.
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    report_path = output_dir / REPORT_FILENAME
    report_path.write_text(
        json.dumps(
            summary.model_dump(mode="json"),
            indent=2,
            sort_keys=True,
        )
        + "\n"
    )
    return report_path
