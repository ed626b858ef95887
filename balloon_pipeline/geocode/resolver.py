"""Cache-aside place resolution for single coordinates and batches."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Iterable, Protocol

from balloon_pipeline.common.constants import DEFAULT_MIN_INTERVAL_MS
from balloon_pipeline.common.errors import ResolutionError
from balloon_pipeline.common.logging import get_logger, log_event
from balloon_pipeline.common.models import Coordinate, PlaceLabel


class LabelStore(Protocol):
    def lookup(self, coordinate: Coordinate) -> PlaceLabel | None: ...

    def insert_if_absent(self, coordinate: Coordinate, label: PlaceLabel) -> bool: ...


class CountryLookup(Protocol):
    def country(self, coordinate: Coordinate) -> str | None: ...


class WaterBodyLookup(Protocol):
    def water_body(self, coordinate: Coordinate) -> tuple[str, str] | None: ...


@dataclass(frozen=True)
class Resolution:
    label: PlaceLabel
    external_call: bool


class PlaceResolver:
    """Resolve one coordinate, consulting the cache before the external chain.

    Lookup failures downgrade to an unknown label so one bad coordinate never
    aborts a batch. Cache failures propagate.
    """

    def __init__(
        self,
        cache: LabelStore,
        primary: CountryLookup,
        secondary: WaterBodyLookup,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self.cache = cache
        self.primary = primary
        self.secondary = secondary
        self.logger = logger or get_logger()

    def resolve(self, coordinate: Coordinate) -> Resolution:
        rounded = coordinate.rounded()
        cached = self.cache.lookup(rounded)
        if cached is not None:
            log_event(
                self.logger,
                "cache hit",
                level=logging.DEBUG,
                stage="process",
                coordinate=rounded.key,
                event="CACHE_HIT",
                status="ok",
            )
            return Resolution(label=cached, external_call=False)

        label = self._lookup_external(rounded)
        self.cache.insert_if_absent(rounded, label)
        log_event(
            self.logger,
            f"resolved {rounded.key} -> {label.category}: {label.name}",
            stage="process",
            coordinate=rounded.key,
            event="CACHE_MISS",
            status="ok" if not label.is_unknown else "unresolved",
        )
        return Resolution(label=label, external_call=True)

    def _lookup_external(self, coordinate: Coordinate) -> PlaceLabel:
        try:
            country = self.primary.country(coordinate)
            if country is not None:
                return PlaceLabel.country(country)
            feature = self.secondary.water_body(coordinate)
        except ResolutionError as exc:
            log_event(
                self.logger,
                str(exc),
                level=logging.WARNING,
                stage="process",
                coordinate=coordinate.key,
                event="RESOLUTION_FAIL",
                status="error",
                error_code=exc.error_code,
            )
            return PlaceLabel.unknown()
        if feature is None:
            return PlaceLabel.unknown()
        category, name = feature
        return PlaceLabel.water_body(name, category=category)


class BatchResolver:
    """Resolve each unique rounded key once, spacing external calls."""

    def __init__(
        self,
        resolver: PlaceResolver,
        *,
        min_interval_ms: float = DEFAULT_MIN_INTERVAL_MS,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        logger: logging.Logger | None = None,
    ) -> None:
        self.resolver = resolver
        self.min_interval_ms = min_interval_ms
        self.sleep = sleep
        self.clock = clock
        self.logger = logger or get_logger()
        self.external_calls = 0
        self.cache_hits = 0

    def _wait_for_spacing(self, last_external_at: float | None) -> None:
        if last_external_at is None:
            return
        remaining = self.min_interval_ms / 1000.0 - (self.clock() - last_external_at)
        if remaining > 0:
            self.sleep(remaining)

    def resolve_batch(self, coordinates: Iterable[Coordinate]) -> dict[str, PlaceLabel]:
        unique: dict[str, Coordinate] = {}
        for coordinate in coordinates:
            rounded = coordinate.rounded()
            unique.setdefault(rounded.key, rounded)

        log_event(
            self.logger,
            f"starting batch resolution of {len(unique)} coordinates",
            stage="process",
            event="BATCH_START",
            status="ok",
            count=len(unique),
        )

        self.external_calls = 0
        self.cache_hits = 0
        results: dict[str, PlaceLabel] = {}
        last_external_at: float | None = None
        for key, coordinate in unique.items():
            self._wait_for_spacing(last_external_at)
            resolution = self.resolver.resolve(coordinate)
            results[key] = resolution.label
            if resolution.external_call:
                self.external_calls += 1
                last_external_at = self.clock()
            else:
                self.cache_hits += 1
                last_external_at = None

        log_event(
            self.logger,
            f"batch complete: {self.external_calls} external lookups, {self.cache_hits} from cache",
            stage="process",
            event="BATCH_END",
            status="ok",
            count=len(results),
        )
        return results
