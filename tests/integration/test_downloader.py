from __future__ import annotations

import json
from pathlib import Path

import pytest

from balloon_pipeline.common.constants import HOUR_FILENAMES
from balloon_pipeline.common.errors import FetchError
from balloon_pipeline.common.http import HttpRequestError
from balloon_pipeline.harvest.downloader import BoundedRetryDownloader, serialized_size

VALID_PAYLOAD = [[1.0, 2.0, 3.0]] * 100


class FakeHttpClient:
    """Serves every file unless a per-file failure budget says otherwise."""

    def __init__(self, failures: dict[str, int] | None = None, payloads: dict[str, object] | None = None):
        self.failures = dict(failures or {})
        self.payloads = payloads or {}
        self.calls: list[str] = []

    def get_json(self, url: str, **_kwargs):
        filename = url.rsplit("/", 1)[-1]
        self.calls.append(filename)
        remaining = self.failures.get(filename, 0)
        if remaining:
            self.failures[filename] = remaining - 1
            raise HttpRequestError("HTTP status: 503")
        return self.payloads.get(filename, VALID_PAYLOAD)

    def close(self):
        return None


class SleepRecorder:
    def __init__(self):
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def _downloader(client, current_dir: Path, sleep, **kwargs) -> BoundedRetryDownloader:
    return BoundedRetryDownloader(client, "https://data.example/treasure/", current_dir, sleep=sleep, **kwargs)


def test_valid_payload_is_over_minimum_size():
    assert serialized_size(VALID_PAYLOAD) >= 1000


@pytest.mark.integration
def test_all_files_downloaded_without_retries(tmp_path: Path):
    client = FakeHttpClient()
    sleep = SleepRecorder()

    result = _downloader(client, tmp_path, sleep).run()

    assert result.ok
    assert result.succeeded == list(HOUR_FILENAMES)
    assert sleep.calls == []
    assert sorted(p.name for p in tmp_path.iterdir()) == list(HOUR_FILENAMES)
    assert json.loads((tmp_path / "00.json").read_text(encoding="utf-8")) == VALID_PAYLOAD


@pytest.mark.integration
def test_always_failing_file_is_abandoned_after_six_attempts(tmp_path: Path):
    client = FakeHttpClient(failures={"03.json": 100})
    sleep = SleepRecorder()

    result = _downloader(client, tmp_path, sleep).run()

    assert not result.ok
    assert result.abandoned == ["03.json"]
    assert "03.json" in result.errors
    assert client.calls.count("03.json") == 6
    assert sleep.calls == [1.0] * 5
    assert len(result.succeeded) == 23
    assert not (tmp_path / "03.json").exists()


@pytest.mark.integration
def test_transient_failure_recovers_on_retry(tmp_path: Path):
    client = FakeHttpClient(failures={"05.json": 2, "17.json": 1})
    sleep = SleepRecorder()

    result = _downloader(client, tmp_path, sleep).run()

    assert result.ok
    assert result.succeeded == list(HOUR_FILENAMES)
    assert client.calls.count("05.json") == 3
    assert client.calls.count("17.json") == 2
    # one pause after every retry attempt, successful or not
    assert len(sleep.calls) == 3


@pytest.mark.integration
def test_undersized_payload_counts_as_failure(tmp_path: Path):
    client = FakeHttpClient(payloads={"11.json": [[1.0, 2.0, 3.0]]})
    sleep = SleepRecorder()

    result = _downloader(client, tmp_path, sleep, max_retries=2).run()

    assert result.abandoned == ["11.json"]
    assert client.calls.count("11.json") == 3
    assert not (tmp_path / "11.json").exists()


@pytest.mark.integration
def test_zero_retries_abandons_after_initial_attempt(tmp_path: Path):
    client = FakeHttpClient(failures={"00.json": 1})
    sleep = SleepRecorder()

    result = _downloader(client, tmp_path, sleep, max_retries=0).run()

    assert result.abandoned == ["00.json"]
    assert client.calls.count("00.json") == 1
    assert sleep.calls == []


def test_fetch_file_builds_url_and_raises_fetch_error(tmp_path: Path):
    client = FakeHttpClient(failures={"09.json": 1})
    downloader = _downloader(client, tmp_path, SleepRecorder())

    with pytest.raises(FetchError):
        downloader.fetch_file("09.json")
    assert downloader.fetch_file("09.json") == serialized_size(VALID_PAYLOAD)
