"""Run report output."""

from __future__ import annotations

from pathlib import Path

from geolite_import.common.fs import write_json
from geolite_import.common.models import RunResult


def write_run_summary(result: RunResult, summary_path: Path) -> Path:
    totals = {"rows_read": 0, "rows_loaded": 0, "rows_dropped": 0, "failed_batches": 0, "failed_rows": 0}
    for stats in result.loads.values():
        totals["rows_read"] += stats.rows_read
        totals["rows_loaded"] += stats.rows_loaded
        totals["rows_dropped"] += stats.rows_dropped
        totals["failed_batches"] += stats.failed_batches
        totals["failed_rows"] += stats.failed_rows

    status = "success"
    if not result.success:
        status = "error"
    elif result.has_gaps:
        status = "partial"

    payload = result.to_dict()
    payload["status"] = status
    payload["totals"] = totals
    write_json(summary_path, payload)
    return summary_path
