"""Enrichment stage: boundary-hour snapshots -> labelled trajectories."""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Callable

from balloon_pipeline.common.config_loader import PipelineConfig
from balloon_pipeline.common.constants import END_FILENAME, START_FILENAME
from balloon_pipeline.common.fs import write_json
from balloon_pipeline.common.logging import get_logger, log_event
from balloon_pipeline.geocode.resolver import BatchResolver, PlaceResolver
from balloon_pipeline.pipeline.assemble import (
    assemble_trajectories,
    read_snapshot,
    serialize_trajectories,
    unique_coordinates,
)


def run_processing(
    current_dir: Path,
    output_path: Path,
    resolver: PlaceResolver,
    *,
    min_interval_ms: float,
    sleep: Callable[[float], None] = time.sleep,
    logger: logging.Logger | None = None,
) -> dict:
    logger = logger or get_logger()
    started = time.monotonic()

    start_snapshot = read_snapshot(current_dir / START_FILENAME)
    end_snapshot = read_snapshot(current_dir / END_FILENAME)
    log_event(
        logger,
        f"read {START_FILENAME} ({len(start_snapshot)}) and {END_FILENAME} ({len(end_snapshot)})",
        stage="process",
        event="SNAPSHOTS_READ",
        status="ok",
    )

    coordinates = unique_coordinates(start_snapshot, end_snapshot)
    batch = BatchResolver(resolver, min_interval_ms=min_interval_ms, sleep=sleep, logger=logger)
    labels = batch.resolve_batch(coordinates)

    records = assemble_trajectories(start_snapshot, end_snapshot, labels)
    write_json(output_path, serialize_trajectories(records), sort_keys=False)

    stats = {
        "trajectories": len(records),
        "unique_coordinates": len(coordinates),
        "external_calls": batch.external_calls,
        "cache_hits": batch.cache_hits,
        "output_path": str(output_path),
        "output_bytes": output_path.stat().st_size,
    }
    log_event(
        logger,
        f"wrote {len(records)} trajectories to {output_path}",
        stage="process",
        event="OUTPUT_WRITTEN",
        status="ok",
        count=len(records),
        duration_ms=int((time.monotonic() - started) * 1000),
    )
    return stats


def run_processing_for_config(
    config: PipelineConfig,
    resolver: PlaceResolver,
    *,
    logger: logging.Logger | None = None,
) -> dict:
    return run_processing(
        config.current_dir,
        config.output_path,
        resolver,
        min_interval_ms=float(config.geocoding["min_interval_ms"]),
        logger=logger,
    )
