"""Run identifier helpers."""

from __future__ import annotations

import re
from datetime import datetime, timezone

from geolite_import.common.errors import ConfigError

_IDENTITY_RE = re.compile(r"^[A-Za-z0-9_.-]+$")


def generate_run_id() -> str:
    now = datetime.now(tz=timezone.utc)
    return now.strftime("run-%Y%m%dT%H%M%S%fZ")


def validate_identity(identity: object) -> str:
    """Return the identity as a path-safe string or raise ConfigError."""
    value = str(identity).strip()
    if not value or value in {".", ".."} or not _IDENTITY_RE.match(value):
        raise ConfigError(f"Invalid identity for working directory: {identity!r}")
    return value
