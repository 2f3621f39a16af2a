"""Data models used across the import."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Any


@dataclass(frozen=True)
class LocationRecord:
    geoname_id: int
    locale_code: str
    continent_code: str
    continent_name: str
    country_iso_code: str
    country_name: str
    subdivision_1_iso_code: str
    subdivision_1_name: str
    subdivision_2_iso_code: str
    subdivision_2_name: str
    city_name: str
    metro_code: int
    time_zone: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class BlockRecord:
    network: str
    range_start: int
    range_end: int
    geoname_id: int
    registered_country_geoname_id: int
    represented_country_geoname_id: int
    is_anonymous_proxy: int
    is_satellite_provider: int
    postal_code: str
    latitude: Decimal
    longitude: Decimal

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class WorkingSet:
    """Scratch state owned by one run."""

    working_dir: Path
    archive_path: Path | None = None
    location_file: Path | None = None
    block_file: Path | None = None


@dataclass
class LoadStats:
    table: str
    rows_read: int = 0
    rows_loaded: int = 0
    rows_dropped: int = 0
    batches: int = 0
    failed_batches: int = 0
    failed_rows: int = 0
    duration_ms: int = 0

    @property
    def has_gaps(self) -> bool:
        return self.failed_batches > 0

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["has_gaps"] = self.has_gaps
        return payload


@dataclass
class RunResult:
    run_id: str
    success: bool
    state: str
    failed_state: str | None = None
    error_code: str | None = None
    message: str | None = None
    loads: dict[str, LoadStats] = field(default_factory=dict)
    duration_ms: int = 0

    @property
    def has_gaps(self) -> bool:
        return any(stats.has_gaps for stats in self.loads.values())

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "success": self.success,
            "state": self.state,
            "failed_state": self.failed_state,
            "error_code": self.error_code,
            "message": self.message,
            "has_gaps": self.has_gaps,
            "duration_ms": self.duration_ms,
            "loads": {name: stats.to_dict() for name, stats in self.loads.items()},
        }
