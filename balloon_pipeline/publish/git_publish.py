"""Publish data files and the trajectory artifact with the git CLI."""

from __future__ import annotations

import logging
import shutil
import subprocess
from pathlib import Path
from typing import Sequence

from balloon_pipeline.common.errors import PublishError
from balloon_pipeline.common.logging import get_logger, log_event
from balloon_pipeline.common.time_utils import utc_timestamp_iso


def _git(repo_dir: Path, *args: str) -> subprocess.CompletedProcess:
    git_path = shutil.which("git")
    if git_path is None:
        raise PublishError("git executable not found on PATH")
    try:
        return subprocess.run(
            [git_path, *args],
            cwd=repo_dir,
            check=True,
            capture_output=True,
            text=True,
        )
    except subprocess.CalledProcessError as exc:
        detail = (exc.stderr or exc.stdout or "").strip()
        raise PublishError(f"git {args[0]} failed: {detail}") from exc
    except OSError as exc:
        raise PublishError(f"git {args[0]} could not run: {exc}") from exc


def publish_outputs(
    repo_dir: Path,
    *,
    message: str,
    remote: str = "origin",
    branch: str = "main",
    paths: Sequence[str] | None = None,
    logger: logging.Logger | None = None,
) -> dict:
    logger = logger or get_logger()

    inside = _git(repo_dir, "rev-parse", "--is-inside-work-tree").stdout.strip()
    if inside != "true":
        raise PublishError(f"{repo_dir} is not a git work tree")

    try:
        _git(repo_dir, "pull", remote, branch)
    except PublishError as exc:
        # A first push to an empty remote has nothing to pull.
        log_event(logger, str(exc), level=logging.WARNING, stage="publish", event="PULL_FAIL", status="warning")

    _git(repo_dir, "add", *(paths or ["."]))

    status = _git(repo_dir, "status", "--porcelain").stdout
    if not status.strip():
        log_event(logger, "no changes to commit", stage="publish", event="PUBLISH_NOOP", status="ok")
        return {"committed": False, "message": "No changes"}

    full_message = f"{message} - {utc_timestamp_iso()}"
    _git(repo_dir, "commit", "-m", full_message)
    _git(repo_dir, "push", remote, branch)

    changed = len(status.strip().splitlines())
    log_event(logger, f"pushed {changed} changed paths", stage="publish", event="PUBLISH_DONE", status="ok", count=changed)
    return {"committed": True, "message": full_message, "changed": changed}
