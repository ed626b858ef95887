"""Hourly snapshot acquisition with a bounded retry state machine."""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Callable, Sequence

from balloon_pipeline.common.config_loader import PipelineConfig
from balloon_pipeline.common.constants import HOUR_FILENAMES, MAX_RETRY_ATTEMPTS, MIN_PAYLOAD_BYTES, RETRY_DELAY_MS
from balloon_pipeline.common.errors import FetchError
from balloon_pipeline.common.fs import write_json_compact
from balloon_pipeline.common.http import HttpClient, HttpRequestError, RetryConfig, TimeoutConfig
from balloon_pipeline.common.logging import get_logger, log_event
from balloon_pipeline.common.models import ABANDONED, DownloadResult, DownloadTask


def serialized_size(payload) -> int:
    return len(json.dumps(payload, separators=(",", ":")).encode("utf-8"))


class BoundedRetryDownloader:
    """Fetch the hourly roster into ``current_dir``.

    Every file gets one initial attempt. Files that fail are retried in
    passes, at most ``max_retries`` more times each, with a fixed pause after
    every retry attempt. Files that exhaust their retries are abandoned.
    """

    def __init__(
        self,
        client: HttpClient,
        base_url: str,
        current_dir: Path,
        *,
        filenames: Sequence[str] = HOUR_FILENAMES,
        min_payload_bytes: int = MIN_PAYLOAD_BYTES,
        max_retries: int = MAX_RETRY_ATTEMPTS,
        retry_delay_ms: float = RETRY_DELAY_MS,
        sleep: Callable[[float], None] = time.sleep,
        logger: logging.Logger | None = None,
    ) -> None:
        self.client = client
        self.base_url = base_url.rstrip("/")
        self.current_dir = current_dir
        self.filenames = tuple(filenames)
        self.min_payload_bytes = min_payload_bytes
        self.max_retries = max_retries
        self.retry_delay_ms = retry_delay_ms
        self.sleep = sleep
        self.logger = logger or get_logger()

    def fetch_file(self, filename: str) -> int:
        """Fetch, validate and persist one file; returns bytes written."""
        url = f"{self.base_url}/{filename}"
        try:
            payload = self.client.get_json(url)
        except HttpRequestError as exc:
            raise FetchError(f"Download error for {filename}: {exc}") from exc

        size = serialized_size(payload)
        if size < self.min_payload_bytes:
            raise FetchError(f"Invalid payload for {filename}: {size} bytes, expected at least {self.min_payload_bytes}")

        try:
            return write_json_compact(self.current_dir / filename, payload)
        except OSError as exc:
            raise FetchError(f"Could not write {filename}: {exc}") from exc

    def _attempt(self, filename: str, attempt: int) -> FetchError | None:
        try:
            written = self.fetch_file(filename)
        except FetchError as exc:
            log_event(
                self.logger,
                str(exc),
                level=logging.WARNING,
                stage="download",
                filename=filename,
                event="FETCH_FAIL",
                status="error",
                attempt=attempt,
                error_code=exc.error_code,
            )
            return exc
        log_event(
            self.logger,
            f"fetched {filename}",
            stage="download",
            filename=filename,
            event="FETCH_OK",
            status="ok",
            attempt=attempt,
            count=written,
        )
        return None

    def _abandon(self, task: DownloadTask) -> None:
        task.state = ABANDONED
        log_event(
            self.logger,
            f"max retries ({self.max_retries}) reached for {task.filename}",
            level=logging.ERROR,
            stage="download",
            filename=task.filename,
            event="FETCH_ABANDONED",
            status="error",
            attempt=task.attempts,
            error_code=FetchError.error_code,
        )

    def run(self) -> DownloadResult:
        tasks: dict[str, DownloadTask] = {}
        succeeded: list[str] = []

        for filename in self.filenames:
            error = self._attempt(filename, attempt=0)
            if error is None:
                succeeded.append(filename)
            else:
                tasks[filename] = DownloadTask(filename=filename, last_error=str(error))

        pending = dict(tasks)
        while pending:
            for filename, task in list(pending.items()):
                if task.attempts >= self.max_retries:
                    self._abandon(task)
                    del pending[filename]
                    continue
                try:
                    error = self._attempt(filename, attempt=task.attempts + 1)
                finally:
                    self.sleep(self.retry_delay_ms / 1000.0)
                if error is None:
                    task.record_success()
                    succeeded.append(filename)
                    del pending[filename]
                    continue
                task.record_failure(str(error), self.max_retries)
                if task.state == ABANDONED:
                    self._abandon(task)
                    del pending[filename]

        order = {name: index for index, name in enumerate(self.filenames)}
        abandoned = [name for name in self.filenames if name in tasks and tasks[name].state == ABANDONED]
        return DownloadResult(
            succeeded=sorted(succeeded, key=order.__getitem__),
            abandoned=abandoned,
            errors={name: tasks[name].last_error or "" for name in abandoned},
        )


def run_download(
    config: PipelineConfig,
    *,
    client: HttpClient | None = None,
    logger: logging.Logger | None = None,
) -> DownloadResult:
    timeout_seconds = float(config.source["timeout_seconds"])
    owns_client = client is None
    # One HTTP attempt per state machine step; the downloader owns retries.
    client = client or HttpClient(
        timeout=TimeoutConfig(connect=min(timeout_seconds, 10.0), read=timeout_seconds),
        retry=RetryConfig(max_attempts=1),
    )
    try:
        downloader = BoundedRetryDownloader(
            client,
            config.source["base_url"],
            config.current_dir,
            min_payload_bytes=int(config.source["min_payload_bytes"]),
            max_retries=int(config.download["max_retries"]),
            retry_delay_ms=float(config.download["retry_delay_ms"]),
            logger=logger,
        )
        return downloader.run()
    finally:
        if owns_client:
            client.close()
