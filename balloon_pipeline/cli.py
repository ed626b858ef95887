"""CLI entrypoint for the hourly balloon trajectory pipeline."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from balloon_pipeline.common.config_loader import PipelineConfig, load_config
from balloon_pipeline.common.constants import EXIT_HARD_FAIL, EXIT_SUCCESS, STAGES
from balloon_pipeline.common.errors import PipelineError
from balloon_pipeline.common.logging import build_logger, get_logger, log_event
from balloon_pipeline.common.time_utils import generate_run_id
from balloon_pipeline.geocode.cache import CoordinateCache
from balloon_pipeline.geocode.providers import build_providers
from balloon_pipeline.geocode.resolver import PlaceResolver
from balloon_pipeline.harvest.archive import rotate_archive
from balloon_pipeline.harvest.downloader import run_download
from balloon_pipeline.pipeline.process import run_processing_for_config
from balloon_pipeline.pipeline.reports import write_run_summary
from balloon_pipeline.publish.git_publish import publish_outputs

CACHE_COMMANDS = ("init-cache", "cache-stats")


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("command", choices=[*STAGES, "all", *CACHE_COMMANDS])
    parser.add_argument("--run-id", default=None)
    parser.add_argument("--config-dir", default="./config")
    parser.add_argument("--overlay-config-dir", default=None)
    parser.add_argument("--data-dir", default=None)
    parser.add_argument("--seed-path", default=None)
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return parser.parse_args(argv)


def _run_process(config: PipelineConfig, logger: logging.Logger) -> dict:
    cache = CoordinateCache.from_url(config.cache["url"])
    client, primary, secondary = build_providers(config.geocoding)
    try:
        resolver = PlaceResolver(cache, primary, secondary, logger=logger)
        stats = run_processing_for_config(config, resolver, logger=logger)
    finally:
        client.close()
        cache.close()
    return {"status": "ok", **stats}


def execute_stage(stage: str, config: PipelineConfig, logger: logging.Logger) -> dict:
    if stage == "archive":
        batch = rotate_archive(config.current_dir, config.archive_dir, logger=logger)
        if batch is None:
            return {"status": "skipped"}
        return {
            "status": "ok" if batch.ok else "partial",
            "bucket": batch.bucket,
            "archived": len(batch.archived),
            "failed_files": batch.failed,
        }
    if stage == "download":
        result = run_download(config, logger=logger)
        if not result.ok:
            return {
                "status": "error",
                "error_code": "DOWNLOAD_INCOMPLETE",
                "succeeded": len(result.succeeded),
                "abandoned_files": result.abandoned,
                "errors": result.errors,
            }
        return {"status": "ok", "succeeded": len(result.succeeded)}
    if stage == "process":
        return _run_process(config, logger)
    if stage == "publish":
        publish_cfg = config.publish
        if not publish_cfg["enabled"]:
            return {"status": "skipped"}
        outcome = publish_outputs(
            Path(publish_cfg["repo_dir"]),
            message=publish_cfg["commit_message"],
            remote=publish_cfg["remote"],
            branch=publish_cfg["branch"],
            logger=logger,
        )
        return {"status": "ok", **outcome}
    raise ValueError(f"Unknown stage: {stage}")


def run_cache_command(args: argparse.Namespace, config: PipelineConfig, logger: logging.Logger) -> int:
    cache = CoordinateCache.from_url(config.cache["url"])
    try:
        if args.command == "init-cache":
            seed_path = Path(args.seed_path or config.cache.get("seed_path") or "")
            if seed_path.is_file():
                inserted, skipped = cache.seed_from_json(seed_path)
                log_event(
                    logger,
                    f"seeded {inserted} entries from {seed_path} ({skipped} duplicates skipped)",
                    stage="cache",
                    event="CACHE_SEEDED",
                    status="ok",
                    count=inserted,
                )
            else:
                log_event(logger, f"no seed file at {seed_path}, skipping", stage="cache", event="CACHE_SEED_SKIP", status="ok")
        stats = cache.stats()
        log_event(
            logger,
            f"cache entries: {stats['total']} {stats['by_type']}",
            stage="cache",
            event="CACHE_STATS",
            status="ok",
            count=stats["total"],
        )
    finally:
        cache.close()
    return EXIT_SUCCESS


def run_command(args: argparse.Namespace) -> int:
    run_id = args.run_id or generate_run_id()
    overlay_config_dir = Path(args.overlay_config_dir) if args.overlay_config_dir else None
    config = load_config(Path(args.config_dir), overlay_config_dir=overlay_config_dir)
    if args.data_dir:
        config = config.with_data_dir(Path(args.data_dir))

    logger = build_logger(run_id, data_dir=config.data_dir, level=args.log_level)

    if args.command in CACHE_COMMANDS:
        return run_cache_command(args, config, logger)

    stages = STAGES if args.command == "all" else (args.command,)
    results: dict[str, dict] = {}

    for stage in stages:
        log_event(logger, "stage start", run_id=run_id, stage=stage, event="STAGE_START", status="ok")
        try:
            result = execute_stage(stage, config, logger)
        except PipelineError as exc:
            result = {"status": "error", "error_code": exc.error_code, "error": str(exc)}
        except Exception as exc:
            logger.exception("unexpected failure in stage %s", stage, extra={"run_id": run_id, "stage": stage})
            result = {"status": "error", "error_code": "UNEXPECTED_ERROR", "error": str(exc)}
        results[stage] = result

        if result["status"] == "error":
            detail = result.get("abandoned_files") or result.get("error")
            log_event(
                logger,
                f"stage {stage} failed: {detail}",
                level=logging.ERROR,
                run_id=run_id,
                stage=stage,
                event="STAGE_FAIL",
                status="error",
                error_code=result.get("error_code"),
            )
            break
        log_event(logger, "stage end", run_id=run_id, stage=stage, event="STAGE_END", status=result["status"])

    write_run_summary(config.data_dir, run_id=run_id, stages=results)
    if any(result["status"] == "error" for result in results.values()):
        return EXIT_HARD_FAIL
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv if argv is not None else sys.argv[1:])
    try:
        return run_command(args)
    except PipelineError as exc:
        get_logger().error("run aborted: %s", exc, extra={"error_code": exc.error_code})
        return EXIT_HARD_FAIL
    except Exception:
        get_logger().exception("run aborted by unexpected error")
        return EXIT_HARD_FAIL


if __name__ == "__main__":
    raise SystemExit(main())
