"""UTC-focused helpers for run metadata and archive naming."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from balloon_pipeline.common.constants import ARCHIVE_BUCKET_FORMAT


def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


def utc_timestamp_iso() -> str:
    return utc_now().isoformat(timespec="milliseconds")


def generate_run_id(now: datetime | None = None) -> str:
    moment = now or utc_now()
    return moment.strftime("run-%Y%m%dT%H%M%S%fZ")


def archive_bucket_name(now: datetime | None = None) -> str:
    """Name of the bucket for the batch that completed about an hour before ``now``."""
    moment = now or utc_now()
    return (moment - timedelta(hours=1)).strftime(ARCHIVE_BUCKET_FORMAT)
