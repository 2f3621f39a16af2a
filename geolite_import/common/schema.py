"""Minimal strict schemas for YAML config validation."""

from __future__ import annotations

import re

from geolite_import.common.constants import LOCATION_LOCALES
from geolite_import.common.errors import ConfigError

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,63}$")

SECTION_KEYS = {
    "source": {"download_url", "locale"},
    "workspace": {"base_dir"},
    "database": {"url"},
    "tables": {"location", "block"},
    "batch_size": {"location", "block"},
    "http": {"connect_timeout", "read_timeout", "max_attempts"},
    "run": {"time_limit_seconds", "log_path"},
}


def _assert_required_keys(obj: dict, required: set[str], ctx: str) -> None:
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


def _assert_positive_int(value: object, ctx: str, *, allow_zero: bool = False) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{ctx} must be an integer")
    if value < 0 or (value == 0 and not allow_zero):
        raise ConfigError(f"{ctx} must be {'non-negative' if allow_zero else 'positive'}")


def _assert_positive_number(value: object, ctx: str) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ConfigError(f"{ctx} must be a positive number")


def validate_locale(locale: str) -> str:
    if locale not in LOCATION_LOCALES:
        raise ConfigError(f"Unsupported locale {locale!r}; expected one of {', '.join(LOCATION_LOCALES)}")
    return locale


def validate_table_name(name: object, ctx: str) -> str:
    if not isinstance(name, str) or not _IDENTIFIER_RE.match(name):
        raise ConfigError(f"{ctx} must be a plain SQL identifier, got {name!r}")
    return name


def validate_import_config(cfg: dict, *, allow_unknown: bool = False) -> dict:
    if not isinstance(cfg, dict):
        raise ConfigError("import config must be a mapping")

    _assert_required_keys(cfg, set(SECTION_KEYS), "import config")
    _assert_no_unknown_keys(cfg, set(SECTION_KEYS), "import config", allow_unknown)
    for section, keys in SECTION_KEYS.items():
        if not isinstance(cfg[section], dict):
            raise ConfigError(f"{section} must be a mapping")
        _assert_required_keys(cfg[section], keys, section)
        _assert_no_unknown_keys(cfg[section], keys, section, allow_unknown)

    if not str(cfg["source"]["download_url"] or "").strip():
        raise ConfigError("source.download_url must not be empty")
    validate_locale(cfg["source"]["locale"])

    if not str(cfg["workspace"]["base_dir"] or "").strip():
        raise ConfigError("workspace.base_dir must not be empty")
    if not str(cfg["database"]["url"] or "").strip():
        raise ConfigError("database.url must not be empty")

    location = validate_table_name(cfg["tables"]["location"], "tables.location")
    block = validate_table_name(cfg["tables"]["block"], "tables.block")
    if location == block:
        raise ConfigError("tables.location and tables.block must differ")

    _assert_positive_int(cfg["batch_size"]["location"], "batch_size.location")
    _assert_positive_int(cfg["batch_size"]["block"], "batch_size.block")

    _assert_positive_number(cfg["http"]["connect_timeout"], "http.connect_timeout")
    _assert_positive_number(cfg["http"]["read_timeout"], "http.read_timeout")
    _assert_positive_int(cfg["http"]["max_attempts"], "http.max_attempts")

    _assert_positive_int(cfg["run"]["time_limit_seconds"], "run.time_limit_seconds", allow_zero=True)

    return cfg
