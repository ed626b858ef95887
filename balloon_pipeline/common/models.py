"""Data models used across the pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Sequence

from balloon_pipeline.common.constants import COORDINATE_PRECISION

COUNTRY = "country"
UNKNOWN = "unknown"
DEFAULT_WATER_CATEGORY = "ocean"


def _round(value: float) -> float:
    # Adding 0.0 folds -0.0 into 0.0 so both hemispheres of zero share a key.
    return round(float(value), COORDINATE_PRECISION) + 0.0


@dataclass(frozen=True)
class Coordinate:
    lat: float
    lon: float

    @classmethod
    def from_triple(cls, triple: Sequence[Any]) -> "Coordinate":
        return cls(lat=float(triple[0]), lon=float(triple[1]))

    def rounded(self) -> "Coordinate":
        return Coordinate(lat=_round(self.lat), lon=_round(self.lon))

    @property
    def key(self) -> str:
        rounded = self.rounded()
        return f"{rounded.lat:.{COORDINATE_PRECISION}f},{rounded.lon:.{COORDINATE_PRECISION}f}"

    @classmethod
    def from_key(cls, key: str) -> "Coordinate":
        lat, lon = key.split(",")
        return cls(lat=float(lat), lon=float(lon)).rounded()


@dataclass(frozen=True)
class PlaceLabel:
    """Exactly one of country, water body or unknown.

    Use the ``country``, ``water_body`` and ``unknown`` constructors rather
    than building instances by hand.
    """

    kind: str
    name: str
    category: str

    @classmethod
    def country(cls, name: str) -> "PlaceLabel":
        return cls(kind=COUNTRY, name=name, category=COUNTRY)

    @classmethod
    def water_body(cls, name: str, category: str = DEFAULT_WATER_CATEGORY) -> "PlaceLabel":
        if not category or category in (COUNTRY, UNKNOWN):
            category = DEFAULT_WATER_CATEGORY
        return cls(kind="water", name=name, category=category)

    @classmethod
    def unknown(cls) -> "PlaceLabel":
        return cls(kind=UNKNOWN, name=UNKNOWN, category=UNKNOWN)

    @property
    def is_unknown(self) -> bool:
        return self.kind == UNKNOWN

    def to_dict(self) -> dict[str, str]:
        return {self.category: self.name}

    @classmethod
    def from_type_and_name(cls, location_type: str, location_name: str) -> "PlaceLabel":
        if location_type == COUNTRY:
            return cls.country(location_name)
        if location_type == UNKNOWN:
            return cls.unknown()
        return cls.water_body(location_name, category=location_type)

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "PlaceLabel":
        if not isinstance(payload, dict) or len(payload) != 1:
            return cls.unknown()
        ((location_type, location_name),) = payload.items()
        return cls.from_type_and_name(str(location_type), str(location_name))


@dataclass(frozen=True)
class CacheEntry:
    key: str
    label: PlaceLabel
    created_at: datetime | None = None


@dataclass(frozen=True)
class TrajectoryRecord:
    start: list[Any]
    end: list[Any]
    start_label: PlaceLabel
    end_label: PlaceLabel


PENDING = "pending"
SUCCEEDED = "succeeded"
ABANDONED = "abandoned"


@dataclass
class DownloadTask:
    filename: str
    attempts: int = 0
    state: str = PENDING
    last_error: str | None = None

    def record_failure(self, reason: str, max_attempts: int) -> None:
        self.attempts += 1
        self.last_error = reason
        if self.attempts >= max_attempts:
            self.state = ABANDONED

    def record_success(self) -> None:
        self.state = SUCCEEDED
        self.last_error = None


@dataclass(frozen=True)
class DownloadResult:
    succeeded: list[str]
    abandoned: list[str]
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.abandoned


@dataclass(frozen=True)
class ArchiveBatch:
    bucket: str
    archived: list[str]
    failed: list[str]

    @property
    def ok(self) -> bool:
        return not self.failed
