"""Streaming CSV to table loader with bounded multi-row inserts."""

from __future__ import annotations

import csv
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Iterator

from sqlalchemy import Table
from sqlalchemy.exc import SQLAlchemyError

from geolite_import.common.db import Database
from geolite_import.common.errors import LoadError
from geolite_import.common.logging import log_event, log_failure
from geolite_import.common.models import LoadStats
from geolite_import.common.time_utils import elapsed_ms
from geolite_import.pipeline.transform import transform_block_row, transform_location_row

Transform = Callable[[list[str]], Any]


@dataclass(frozen=True)
class LoadSpec:
    table: Table
    transform: Transform
    batch_size: int


def location_spec(table: Table, batch_size: int = 500) -> LoadSpec:
    return LoadSpec(table=table, transform=transform_location_row, batch_size=batch_size)


def block_spec(table: Table, batch_size: int = 2000) -> LoadSpec:
    return LoadSpec(table=table, transform=transform_block_row, batch_size=batch_size)


def iter_csv_rows(path: Path) -> Iterator[list[str]]:
    """Yield the data rows of a comma separated, double-quoted CSV, skipping its header."""
    with path.open("r", encoding="utf-8", newline="") as f:
        reader = csv.reader(f, delimiter=",", quotechar='"')
        next(reader, None)
        for cells in reader:
            yield cells


def _flush(db: Database, spec: LoadSpec, batch: list[dict], stats: LoadStats, logger: logging.Logger) -> None:
    stats.batches += 1
    try:
        db.insert_rows(spec.table, batch)
    except SQLAlchemyError as exc:
        stats.failed_batches += 1
        stats.failed_rows += len(batch)
        failure = LoadError(f"Batch {stats.batches} insert into {spec.table.name} failed: {exc}")
        log_failure(
            logger,
            str(failure),
            stage="load",
            table=spec.table.name,
            event="BATCH_FAIL",
            status="error",
            batch=stats.batches,
            rows_in=len(batch),
            error_code=failure.error_code,
        )
        return
    stats.rows_loaded += len(batch)


def load_csv(
    db: Database,
    path: Path,
    spec: LoadSpec,
    logger: logging.Logger,
    stats: LoadStats | None = None,
) -> LoadStats:
    """Stream ``path`` into ``spec.table`` one batch at a time.

    A failed batch is logged and counted, then loading carries on with the
    next batch. Only an unreadable file aborts the load. Counters accumulate
    on ``stats`` as batches land, so a caller holding it sees the progress of
    an interrupted load.
    """
    if spec.batch_size <= 0:
        raise ValueError("batch_size must be positive")
    if not path.is_file():
        raise LoadError(f"CSV input not found: {path}")

    if stats is None:
        stats = LoadStats(table=spec.table.name)
    started_at = time.monotonic()
    batch: list[dict] = []

    try:
        try:
            for cells in iter_csv_rows(path):
                stats.rows_read += 1
                record = spec.transform(cells)
                if record is None:
                    stats.rows_dropped += 1
                    continue
                batch.append(record.to_dict())
                if len(batch) >= spec.batch_size:
                    _flush(db, spec, batch, stats, logger)
                    batch = []
        except (OSError, UnicodeDecodeError, csv.Error) as exc:
            raise LoadError(f"Failed reading {path}: {exc}") from exc

        if batch:
            _flush(db, spec, batch, stats, logger)
    finally:
        stats.duration_ms = elapsed_ms(started_at)

    log_event(
        logger,
        f"loaded {path.name} into {spec.table.name}",
        stage="load",
        table=spec.table.name,
        event="LOAD_DONE",
        status="partial" if stats.has_gaps else "ok",
        duration_ms=stats.duration_ms,
        rows_in=stats.rows_read,
        rows_out=stats.rows_loaded,
    )
    return stats
