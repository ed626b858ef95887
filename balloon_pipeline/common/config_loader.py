"""Configuration loading and validation."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

from balloon_pipeline.common.errors import ConfigError
from balloon_pipeline.common.fs import read_yaml
from balloon_pipeline.common.schema import validate_pipeline_config

CONFIG_FILENAME = "pipeline.yml"

# Deploy-specific values that may come from the environment instead of YAML.
ENV_OVERRIDES = {
    "BASE_URL": ("source", "base_url"),
    "FETCHED_DIR": ("paths", "data_dir"),
    "GEONAMES_USERNAME": ("geocoding", "geonames", "username"),
}


@dataclass(frozen=True)
class PipelineConfig:
    raw: dict
    data_dir: Path

    @property
    def current_dir(self) -> Path:
        return self.data_dir / self.raw["paths"]["current_dir"]

    @property
    def archive_dir(self) -> Path:
        return self.data_dir / self.raw["paths"]["archive_dir"]

    @property
    def output_path(self) -> Path:
        return self.data_dir / self.raw["paths"]["output_filename"]

    @property
    def source(self) -> dict:
        return self.raw["source"]

    @property
    def download(self) -> dict:
        return self.raw["download"]

    @property
    def geocoding(self) -> dict:
        return self.raw["geocoding"]

    @property
    def cache(self) -> dict:
        return self.raw["cache"]

    @property
    def publish(self) -> dict:
        return self.raw["publish"]

    def with_data_dir(self, data_dir: Path) -> "PipelineConfig":
        return PipelineConfig(raw=self.raw, data_dir=data_dir)


def _deep_merge(base: Any, overlay: Any) -> Any:
    if isinstance(base, dict) and isinstance(overlay, dict):
        merged = dict(base)
        for key, value in overlay.items():
            if key in merged:
                merged[key] = _deep_merge(merged[key], value)
            else:
                merged[key] = value
        return merged
    return overlay


def _load_yaml_with_overlay(path: Path, overlay_path: Path | None) -> dict:
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")
    base = read_yaml(path) or {}
    if overlay_path is None or not overlay_path.exists():
        return base
    overlay = read_yaml(overlay_path) or {}
    return _deep_merge(base, overlay)


def _apply_env_overrides(cfg: dict, environ: Mapping[str, str]) -> dict:
    for env_name, path in ENV_OVERRIDES.items():
        value = environ.get(env_name)
        if not value:
            continue
        overlay: dict = {path[-1]: value}
        for key in reversed(path[:-1]):
            overlay = {key: overlay}
        cfg = _deep_merge(cfg, overlay)
    return cfg


def load_config(
    config_dir: Path,
    *,
    overlay_config_dir: Path | None = None,
    allow_unknown: bool = False,
    environ: Mapping[str, str] | None = None,
) -> PipelineConfig:
    overlay_path = overlay_config_dir / CONFIG_FILENAME if overlay_config_dir is not None else None
    cfg = _load_yaml_with_overlay(config_dir / CONFIG_FILENAME, overlay_path)
    cfg = _apply_env_overrides(cfg, os.environ if environ is None else environ)
    cfg = validate_pipeline_config(cfg, allow_unknown=allow_unknown)
    return PipelineConfig(raw=cfg, data_dir=Path(cfg["paths"]["data_dir"]))
