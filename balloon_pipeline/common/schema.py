"""Minimal strict schema for the YAML pipeline config."""

from __future__ import annotations

from balloon_pipeline.common.errors import ConfigError


def _assert_required_keys(obj: dict, required: set[str], ctx: str) -> None:
    if not isinstance(obj, dict):
        raise ConfigError(f"{ctx} must be a mapping")
    missing = required - set(obj)
    if missing:
        missing_str = ", ".join(sorted(missing))
        raise ConfigError(f"Missing keys in {ctx}: {missing_str}")


def _assert_no_unknown_keys(obj: dict, known: set[str], ctx: str, allow_unknown: bool) -> None:
    if allow_unknown:
        return
    unknown = set(obj) - known
    if unknown:
        unknown_str = ", ".join(sorted(unknown))
        raise ConfigError(f"Unknown keys in {ctx}: {unknown_str}")


def _assert_positive_number(value: object, ctx: str, *, allow_zero: bool = False) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"{ctx} must be a number")
    if value < 0 or (value == 0 and not allow_zero):
        raise ConfigError(f"{ctx} must be {'non-negative' if allow_zero else 'positive'}")


def validate_pipeline_config(cfg: dict, *, allow_unknown: bool = False) -> dict:
    top_required = {"source", "paths", "download", "geocoding", "cache", "publish"}
    _assert_required_keys(cfg, top_required, "pipeline config")
    _assert_no_unknown_keys(cfg, top_required, "pipeline config", allow_unknown)

    _assert_required_keys(cfg["source"], {"base_url", "min_payload_bytes", "timeout_seconds"}, "source")
    if not str(cfg["source"]["base_url"]).startswith(("http://", "https://")):
        raise ConfigError("source.base_url must be an http(s) URL")
    _assert_positive_number(cfg["source"]["min_payload_bytes"], "source.min_payload_bytes", allow_zero=True)
    _assert_positive_number(cfg["source"]["timeout_seconds"], "source.timeout_seconds")

    _assert_required_keys(
        cfg["paths"],
        {"data_dir", "current_dir", "archive_dir", "output_filename"},
        "paths",
    )

    _assert_required_keys(cfg["download"], {"max_retries", "retry_delay_ms"}, "download")
    _assert_positive_number(cfg["download"]["max_retries"], "download.max_retries", allow_zero=True)
    _assert_positive_number(cfg["download"]["retry_delay_ms"], "download.retry_delay_ms", allow_zero=True)

    _assert_required_keys(
        cfg["geocoding"],
        {"min_interval_ms", "timeout_seconds", "http_retry_attempts", "nominatim", "geonames"},
        "geocoding",
    )
    _assert_positive_number(cfg["geocoding"]["min_interval_ms"], "geocoding.min_interval_ms", allow_zero=True)
    _assert_positive_number(cfg["geocoding"]["http_retry_attempts"], "geocoding.http_retry_attempts")
    _assert_required_keys(cfg["geocoding"]["nominatim"], {"endpoint", "zoom"}, "geocoding.nominatim")
    _assert_required_keys(cfg["geocoding"]["geonames"], {"endpoint", "username"}, "geocoding.geonames")

    _assert_required_keys(cfg["cache"], {"url"}, "cache")
    # insert-if-absent relies on the SQLite ON CONFLICT clause
    if not str(cfg["cache"]["url"]).startswith("sqlite://"):
        raise ConfigError("cache.url must be a sqlite:// URL")

    _assert_required_keys(
        cfg["publish"],
        {"enabled", "repo_dir", "remote", "branch", "commit_message"},
        "publish",
    )

    return cfg
