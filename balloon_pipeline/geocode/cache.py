"""Persistent coordinate -> place label cache backed by SQLAlchemy."""

from __future__ import annotations

import json
from pathlib import Path

from sqlalchemy import (
    Column,
    DateTime,
    Float,
    Integer,
    MetaData,
    String,
    Table,
    UniqueConstraint,
    create_engine,
    func,
    select,
)
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError

from balloon_pipeline.common.errors import CacheUnavailable
from balloon_pipeline.common.fs import ensure_dir
from balloon_pipeline.common.models import CacheEntry, Coordinate, PlaceLabel
from balloon_pipeline.common.time_utils import utc_now

metadata = MetaData()

geocache = Table(
    "geocache",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("lat", Float, nullable=False),
    Column("lon", Float, nullable=False),
    Column("location_type", String, nullable=False),
    Column("location_name", String, nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    UniqueConstraint("lat", "lon", name="uq_geocache_lat_lon"),
)


class CoordinateCache:
    """Append-only store keyed by the rounded coordinate.

    Entries are never updated or deleted. ``insert_if_absent`` is a no-op for a
    key that already exists. Every storage failure surfaces as
    ``CacheUnavailable``.
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        try:
            metadata.create_all(engine)
        except SQLAlchemyError as exc:
            raise CacheUnavailable(f"Could not initialise coordinate cache: {exc}") from exc

    @classmethod
    def from_url(cls, url: str) -> "CoordinateCache":
        try:
            parsed = make_url(url)
            if parsed.get_backend_name() == "sqlite" and parsed.database not in (None, "", ":memory:"):
                ensure_dir(Path(parsed.database).parent)
            engine = create_engine(url)
        except (SQLAlchemyError, OSError) as exc:
            raise CacheUnavailable(f"Could not open coordinate cache at {url}: {exc}") from exc
        return cls(engine)

    def close(self) -> None:
        self.engine.dispose()

    def lookup(self, coordinate: Coordinate) -> PlaceLabel | None:
        entry = self.get_entry(coordinate)
        return entry.label if entry is not None else None

    def get_entry(self, coordinate: Coordinate) -> CacheEntry | None:
        rounded = coordinate.rounded()
        stmt = select(geocache.c.location_type, geocache.c.location_name, geocache.c.created_at).where(
            geocache.c.lat == rounded.lat,
            geocache.c.lon == rounded.lon,
        )
        try:
            with self.engine.connect() as conn:
                row = conn.execute(stmt).first()
        except SQLAlchemyError as exc:
            raise CacheUnavailable(f"Cache lookup failed for {coordinate.key}: {exc}") from exc
        if row is None:
            return None
        return CacheEntry(
            key=coordinate.key,
            label=PlaceLabel.from_type_and_name(row.location_type, row.location_name),
            created_at=row.created_at,
        )

    def _insert_stmt(self, coordinate: Coordinate, label: PlaceLabel):
        rounded = coordinate.rounded()
        return (
            sqlite_insert(geocache)
            .values(
                lat=rounded.lat,
                lon=rounded.lon,
                location_type=label.category,
                location_name=label.name,
                created_at=utc_now(),
            )
            .on_conflict_do_nothing(index_elements=["lat", "lon"])
        )

    def insert_if_absent(self, coordinate: Coordinate, label: PlaceLabel) -> bool:
        try:
            with self.engine.begin() as conn:
                result = conn.execute(self._insert_stmt(coordinate, label))
        except SQLAlchemyError as exc:
            raise CacheUnavailable(f"Cache insert failed for {coordinate.key}: {exc}") from exc
        return result.rowcount == 1

    def seed_from_json(self, path: Path) -> tuple[int, int]:
        """Bulk load a ``{"lat,lon": {type: name}}`` file; returns (inserted, skipped)."""
        with path.open("r", encoding="utf-8") as f:
            payload = json.load(f)

        entries = [(Coordinate.from_key(key), PlaceLabel.from_dict(value)) for key, value in payload.items()]
        inserted = 0
        try:
            with self.engine.begin() as conn:
                for coordinate, label in entries:
                    result = conn.execute(self._insert_stmt(coordinate, label))
                    inserted += result.rowcount
        except SQLAlchemyError as exc:
            raise CacheUnavailable(f"Cache seed from {path} failed: {exc}") from exc
        return inserted, len(entries) - inserted

    def stats(self) -> dict:
        by_type_stmt = select(geocache.c.location_type, func.count()).group_by(geocache.c.location_type)
        try:
            with self.engine.connect() as conn:
                by_type = {row[0]: int(row[1]) for row in conn.execute(by_type_stmt)}
        except SQLAlchemyError as exc:
            raise CacheUnavailable(f"Cache stats query failed: {exc}") from exc
        return {"total": sum(by_type.values()), "by_type": by_type}
