"""Configuration loading and validation."""

from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

from geolite_import.common.errors import ConfigError
from geolite_import.common.fs import read_yaml
from geolite_import.common.schema import validate_import_config, validate_locale

CONFIG_FILENAME = "geoip.yml"


@dataclass(frozen=True)
class ImportConfig:
    download_url: str
    locale: str
    base_dir: Path
    database_url: str
    location_table: str
    block_table: str
    location_batch_size: int
    block_batch_size: int
    connect_timeout: float
    read_timeout: float
    max_attempts: int
    time_limit_seconds: int
    log_path: Path | None

    def with_overrides(
        self,
        *,
        database_url: str | None = None,
        locale: str | None = None,
        download_url: str | None = None,
    ) -> "ImportConfig":
        changes: dict[str, Any] = {}
        if database_url:
            changes["database_url"] = database_url
        if locale:
            changes["locale"] = validate_locale(locale)
        if download_url:
            changes["download_url"] = download_url
        return replace(self, **changes)


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
        raise ConfigError(f"Missing config file: {path}")
    base = read_yaml(path)
    if overlay_path is None or not overlay_path.exists():
        return base
    overlay = read_yaml(overlay_path)
    return _deep_merge(base, overlay)


def build_import_config(cfg: dict) -> ImportConfig:
    log_path = cfg["run"]["log_path"]
    return ImportConfig(
        download_url=str(cfg["source"]["download_url"]).strip(),
        locale=cfg["source"]["locale"],
        base_dir=Path(cfg["workspace"]["base_dir"]),
        database_url=str(cfg["database"]["url"]).strip(),
        location_table=cfg["tables"]["location"],
        block_table=cfg["tables"]["block"],
        location_batch_size=cfg["batch_size"]["location"],
        block_batch_size=cfg["batch_size"]["block"],
        connect_timeout=float(cfg["http"]["connect_timeout"]),
        read_timeout=float(cfg["http"]["read_timeout"]),
        max_attempts=cfg["http"]["max_attempts"],
        time_limit_seconds=cfg["run"]["time_limit_seconds"],
        log_path=Path(log_path) if log_path else None,
    )


def load_import_config(
    config_dir: Path,
    *,
    allow_unknown: bool = False,
    overlay_config_dir: Path | None = None,
) -> ImportConfig:
    overlay_path = overlay_config_dir / CONFIG_FILENAME if overlay_config_dir is not None else None
    raw = _load_yaml_with_overlay(config_dir / CONFIG_FILENAME, overlay_path)
    return build_import_config(validate_import_config(raw, allow_unknown=allow_unknown))
