"""Run summary report."""

from __future__ import annotations

from pathlib import Path

from balloon_pipeline.common.fs import write_json


def write_run_summary(data_dir: Path, run_id: str, stages: dict[str, dict]) -> Path:
    failed_stages = sorted(name for name, result in stages.items() if result.get("status") == "error")
    status = "error" if failed_stages else "success"

    summary_path = data_dir / "run_meta" / f"{run_id}.summary.json"
    payload = {
        "run_id": run_id,
        "status": status,
        "failed_stages": failed_stages,
        "stages": stages,
    }
    write_json(summary_path, payload)
    return summary_path
