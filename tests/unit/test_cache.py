import json
from pathlib import Path

import pytest

from balloon_pipeline.common.errors import CacheUnavailable
from balloon_pipeline.common.models import Coordinate, PlaceLabel
from balloon_pipeline.geocode.cache import CoordinateCache


def _memory_cache() -> CoordinateCache:
    return CoordinateCache.from_url("sqlite://")


def test_lookup_miss_returns_none():
    cache = _memory_cache()
    assert cache.lookup(Coordinate(1.0, 2.0)) is None


def test_insert_if_absent_keeps_first_entry_only():
    cache = _memory_cache()

    assert cache.insert_if_absent(Coordinate(10.004, 20.0), PlaceLabel.country("Chad")) is True
    assert cache.insert_if_absent(Coordinate(10.0, 20.001), PlaceLabel.country("Niger")) is False

    assert cache.lookup(Coordinate(10.0, 20.0)) == PlaceLabel.country("Chad")
    assert cache.stats() == {"total": 1, "by_type": {"country": 1}}


def test_entry_round_trips_water_body_category():
    cache = _memory_cache()
    cache.insert_if_absent(Coordinate(-62.93, 75.72), PlaceLabel.water_body("Indian Ocean"))

    entry = cache.get_entry(Coordinate(-62.934, 75.716))

    assert entry is not None
    assert entry.key == "-62.93,75.72"
    assert entry.label == PlaceLabel.water_body("Indian Ocean")
    assert entry.created_at is not None


def test_seed_from_json_skips_duplicates(tmp_path: Path):
    seed = tmp_path / "startingAPIinfo.json"
    seed.write_text(
        json.dumps(
            {
                "-62.93,75.72": {"ocean": "Indian Ocean"},
                "10.00,20.00": {"country": "Chad"},
                "0.00,0.00": {"unknown": "unknown"},
            }
        ),
        encoding="utf-8",
    )
    cache = _memory_cache()

    assert cache.seed_from_json(seed) == (3, 0)
    assert cache.seed_from_json(seed) == (0, 3)
    assert cache.stats() == {"total": 3, "by_type": {"country": 1, "ocean": 1, "unknown": 1}}


def test_file_backed_cache_persists_between_handles(tmp_path: Path):
    url = f"sqlite:///{tmp_path / 'nested' / 'geocache.db'}"
    first = CoordinateCache.from_url(url)
    first.insert_if_absent(Coordinate(48.85, 2.35), PlaceLabel.country("France"))
    first.close()

    second = CoordinateCache.from_url(url)
    assert second.lookup(Coordinate(48.85, 2.35)) == PlaceLabel.country("France")
    second.close()


def test_storage_failure_raises_cache_unavailable():
    cache = _memory_cache()
    # Disposing an in-memory engine drops the database and its table.
    cache.engine.dispose()

    with pytest.raises(CacheUnavailable):
        cache.lookup(Coordinate(1.0, 2.0))
