from __future__ import annotations

import shutil
from datetime import datetime, timezone
from pathlib import Path

import pytest

from balloon_pipeline.common.constants import HOUR_FILENAMES
from balloon_pipeline.harvest import archive
from balloon_pipeline.harvest.archive import rotate_archive

NOW = datetime(2026, 10, 17, 5, 12, tzinfo=timezone.utc)


def _populate(current_dir: Path, count: int) -> list[str]:
    current_dir.mkdir(parents=True, exist_ok=True)
    names = [f"{i:02d}.json" for i in range(count)]
    for name in names:
        (current_dir / name).write_text(f'[["{name}"]]', encoding="utf-8")
    return names


@pytest.mark.integration
@pytest.mark.parametrize("count", [0, 1, 23, 25])
def test_rotation_is_noop_unless_exactly_24_files(tmp_path: Path, count: int):
    current_dir = tmp_path / "current"
    archive_root = tmp_path / "archive"
    _populate(current_dir, count)

    assert rotate_archive(current_dir, archive_root, now=NOW) is None
    assert not archive_root.exists()


@pytest.mark.integration
def test_rotation_copies_full_working_set(tmp_path: Path):
    current_dir = tmp_path / "current"
    archive_root = tmp_path / "archive"
    _populate(current_dir, 24)

    batch = rotate_archive(current_dir, archive_root, now=NOW)

    assert batch is not None
    assert batch.ok
    assert batch.bucket == "2026-10-17-04"
    assert sorted(batch.archived) == list(HOUR_FILENAMES)
    bucket_dir = archive_root / "2026-10-17-04"
    assert sorted(p.name for p in bucket_dir.iterdir()) == list(HOUR_FILENAMES)
    assert (bucket_dir / "07.json").read_text(encoding="utf-8") == '[["07.json"]]'
    # copies, not moves
    assert sorted(p.name for p in current_dir.iterdir()) == list(HOUR_FILENAMES)


@pytest.mark.integration
def test_rotation_missing_current_dir_is_noop(tmp_path: Path):
    assert rotate_archive(tmp_path / "absent", tmp_path / "archive", now=NOW) is None


@pytest.mark.integration
def test_failed_copy_is_reported_without_rolling_back(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    current_dir = tmp_path / "current"
    archive_root = tmp_path / "archive"
    _populate(current_dir, 24)
    real_copy = shutil.copy2

    def flaky_copy(source, destination):
        if Path(source).name == "05.json":
            raise OSError("disk full")
        return real_copy(source, destination)

    monkeypatch.setattr(archive.shutil, "copy2", flaky_copy)

    batch = rotate_archive(current_dir, archive_root, now=NOW)

    assert batch is not None
    assert batch.failed == ["05.json"]
    assert len(batch.archived) == 23
    bucket_dir = archive_root / batch.bucket
    assert not (bucket_dir / "05.json").exists()
    assert (bucket_dir / "04.json").exists()


@pytest.mark.integration
def test_unwritable_archive_root_reports_every_file_failed(tmp_path: Path):
    current_dir = tmp_path / "current"
    archive_root = tmp_path / "archive"
    _populate(current_dir, 24)
    archive_root.write_text("not a directory", encoding="utf-8")

    batch = rotate_archive(current_dir, archive_root, now=NOW)

    assert batch is not None
    assert not batch.ok
    assert batch.archived == []
    assert sorted(batch.failed) == list(HOUR_FILENAMES)
