"""Snapshot reading and start/end trajectory assembly."""

from __future__ import annotations

import json
import math
from numbers import Real
from pathlib import Path
from typing import Any, Iterable, Mapping, Sequence

from balloon_pipeline.common.constants import END_FILENAME, START_FILENAME
from balloon_pipeline.common.errors import AssemblyError
from balloon_pipeline.common.models import Coordinate, PlaceLabel, TrajectoryRecord


def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool) and math.isfinite(value)


def read_snapshot(path: Path) -> list[list[Any]]:
    try:
        with path.open("r", encoding="utf-8") as f:
            payload = json.load(f)
    except FileNotFoundError as exc:
        raise AssemblyError(f"Snapshot not found: {path}") from exc
    except (OSError, ValueError) as exc:
        raise AssemblyError(f"Snapshot unreadable: {path}: {exc}") from exc

    if not isinstance(payload, list):
        raise AssemblyError(f"Snapshot {path.name} is not a JSON array")
    for index, entry in enumerate(payload):
        if not isinstance(entry, list) or len(entry) < 2 or not (_is_number(entry[0]) and _is_number(entry[1])):
            raise AssemblyError(f"Snapshot {path.name} has a malformed entry at index {index}")
    return payload


def unique_coordinates(*snapshots: Iterable[Sequence[Any]]) -> list[Coordinate]:
    """Rounded coordinates across all snapshots, first occurrence order."""
    seen: dict[str, Coordinate] = {}
    for snapshot in snapshots:
        for triple in snapshot:
            rounded = Coordinate.from_triple(triple).rounded()
            seen.setdefault(rounded.key, rounded)
    return list(seen.values())


def assemble_trajectories(
    start: Sequence[Sequence[Any]],
    end: Sequence[Sequence[Any]],
    labels: Mapping[str, PlaceLabel],
) -> list[TrajectoryRecord]:
    # Pairing is positional; entries past the shorter snapshot are dropped.
    count = min(len(start), len(end))
    records: list[TrajectoryRecord] = []
    for i in range(count):
        start_key = Coordinate.from_triple(start[i]).key
        end_key = Coordinate.from_triple(end[i]).key
        records.append(
            TrajectoryRecord(
                start=list(start[i]),
                end=list(end[i]),
                start_label=labels.get(start_key) or PlaceLabel.unknown(),
                end_label=labels.get(end_key) or PlaceLabel.unknown(),
            )
        )
    return records


def serialize_trajectories(records: Iterable[TrajectoryRecord]) -> list[dict]:
    return [
        {
            "start": record.start,
            "end": record.end,
            START_FILENAME: record.start_label.to_dict(),
            END_FILENAME: record.end_label.to_dict(),
        }
        for record in records
    ]


def parse_trajectories(payload: Iterable[Mapping[str, Any]]) -> list[TrajectoryRecord]:
    records: list[TrajectoryRecord] = []
    for index, item in enumerate(payload):
        try:
            records.append(
                TrajectoryRecord(
                    start=list(item["start"]),
                    end=list(item["end"]),
                    start_label=PlaceLabel.from_dict(item[START_FILENAME]),
                    end_label=PlaceLabel.from_dict(item[END_FILENAME]),
                )
            )
        except (KeyError, TypeError) as exc:
            raise AssemblyError(f"Malformed trajectory record at index {index}") from exc
    return records
