"""Rotation of a complete working set into timestamped archive buckets."""

from __future__ import annotations

import logging
import shutil
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from pathlib import Path

from balloon_pipeline.common.constants import HOURS_PER_BATCH
from balloon_pipeline.common.errors import ArchiveCopyError
from balloon_pipeline.common.fs import ensure_dir, list_files
from balloon_pipeline.common.logging import get_logger, log_event
from balloon_pipeline.common.models import ArchiveBatch
from balloon_pipeline.common.time_utils import archive_bucket_name

ARCHIVE_COPY_WORKERS = 4


def _copy_one(source: Path, destination_dir: Path) -> ArchiveCopyError | None:
    try:
        shutil.copy2(source, destination_dir / source.name)
    except OSError as exc:
        return ArchiveCopyError(source.name, str(exc))
    return None


def rotate_archive(
    current_dir: Path,
    archive_root: Path,
    *,
    now: datetime | None = None,
    expected_count: int = HOURS_PER_BATCH,
    logger: logging.Logger | None = None,
) -> ArchiveBatch | None:
    """Copy a full working set into ``archive_root/<bucket>``.

    Returns None without touching anything unless ``current_dir`` holds
    exactly ``expected_count`` files. Files are copied, never moved. A failed
    copy is reported in the returned batch and does not undo the others; if
    the bucket itself cannot be created every file is reported as failed.
    """
    logger = logger or get_logger()
    try:
        files = list_files(current_dir)
    except OSError as exc:
        log_event(
            logger,
            f"not archiving: cannot list {current_dir}: {exc}",
            level=logging.ERROR,
            stage="archive",
            event="ARCHIVE_SKIP",
            status="error",
            error_code=ArchiveCopyError.error_code,
        )
        return None
    if len(files) != expected_count:
        log_event(
            logger,
            f"not archiving: found {len(files)} files, expected {expected_count}",
            stage="archive",
            event="ARCHIVE_SKIP",
            status="ok",
            count=len(files),
        )
        return None

    bucket = archive_bucket_name(now)
    bucket_dir = archive_root / bucket
    try:
        ensure_dir(bucket_dir)
    except OSError as exc:
        log_event(
            logger,
            f"cannot create archive bucket {bucket_dir}: {exc}",
            level=logging.ERROR,
            stage="archive",
            event="ARCHIVE_COPY_FAIL",
            status="error",
            count=len(files),
            error_code=ArchiveCopyError.error_code,
        )
        return ArchiveBatch(bucket=bucket, archived=[], failed=[path.name for path in files])

    with ThreadPoolExecutor(max_workers=ARCHIVE_COPY_WORKERS) as pool:
        outcomes = list(pool.map(lambda path: (path.name, _copy_one(path, bucket_dir)), files))

    archived: list[str] = []
    failed: list[str] = []
    for filename, error in outcomes:
        if error is None:
            archived.append(filename)
            continue
        failed.append(filename)
        log_event(
            logger,
            str(error),
            level=logging.ERROR,
            stage="archive",
            filename=filename,
            event="ARCHIVE_COPY_FAIL",
            status="error",
            error_code=error.error_code,
        )

    log_event(
        logger,
        f"archived {len(archived)} files to {bucket}",
        stage="archive",
        event="ARCHIVE_DONE",
        status="ok" if not failed else "partial",
        count=len(archived),
    )
    return ArchiveBatch(bucket=bucket, archived=archived, failed=failed)
