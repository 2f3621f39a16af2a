from __future__ import annotations

import logging
from pathlib import Path

import pytest
from sqlalchemy.exc import SQLAlchemyError

from geolite_import.common.db import Database
from geolite_import.common.errors import LoadError
from geolite_import.pipeline import load
from geolite_import.pipeline.load import block_spec, iter_csv_rows, load_csv, location_spec
from geolite_import.pipeline.tables import build_tables, prepare_tables

LOCATION_HEADER = (
    "geoname_id,locale_code,continent_code,continent_name,country_iso_code,country_name,"
    "subdivision_1_iso_code,subdivision_1_name,subdivision_2_iso_code,subdivision_2_name,"
    "city_name,metro_code,time_zone\n"
)
BLOCK_HEADER = (
    "network,geoname_id,registered_country_geoname_id,represented_country_geoname_id,"
    "is_anonymous_proxy,is_satellite_provider,postal_code,latitude,longitude\n"
)

logger = logging.getLogger("tests.load")


def _write_locations(path: Path, count: int, extra_lines: str = "") -> Path:
    lines = [LOCATION_HEADER]
    for idx in range(1, count + 1):
        lines.append(f'{idx},en,EU,Europe,GB,"United Kingdom",ENG,England,,,"City {idx}",,Europe/London\n')
    lines.append(extra_lines)
    path.write_text("".join(lines), encoding="utf-8")
    return path


def _db_with_tables(tmp_path: Path):
    db = Database(f"sqlite:///{tmp_path / 'load.db'}")
    tables = build_tables("geoip_location", "geoip_block")
    prepare_tables(db, tables, logger)
    return db, tables


class RecordingInserts:
    def __init__(self, db: Database, fail_on: set[int] | None = None):
        self.db = db
        self.original = db.insert_rows
        self.sizes: list[int] = []
        self.fail_on = fail_on or set()

    def __call__(self, table, rows):
        self.sizes.append(len(rows))
        if len(self.sizes) in self.fail_on:
            raise SQLAlchemyError("simulated insert failure")
        return self.original(table, rows)


def test_iter_csv_rows_skips_header_and_honours_quotes(tmp_path: Path):
    path = tmp_path / "x.csv"
    path.write_text('a,b\n1,"two, with comma"\n', encoding="utf-8")
    assert list(iter_csv_rows(path)) == [["1", "two, with comma"]]


def test_location_load_issues_bounded_batches(tmp_path: Path, monkeypatch):
    db, tables = _db_with_tables(tmp_path)
    path = _write_locations(tmp_path / "locations.csv", 1001)
    recorder = RecordingInserts(db)
    monkeypatch.setattr(db, "insert_rows", recorder)

    stats = load_csv(db, path, location_spec(tables.location, 500), logger)

    assert recorder.sizes == [500, 500, 1]
    assert stats.batches == 3
    assert stats.rows_loaded == 1001
    assert db.count_rows("geoip_location") == 1001


def test_exact_multiple_of_batch_size_issues_no_empty_batch(tmp_path: Path, monkeypatch):
    db, tables = _db_with_tables(tmp_path)
    path = _write_locations(tmp_path / "locations.csv", 10)
    recorder = RecordingInserts(db)
    monkeypatch.setattr(db, "insert_rows", recorder)

    stats = load_csv(db, path, location_spec(tables.location, 5), logger)

    assert recorder.sizes == [5, 5]
    assert stats.rows_loaded == 10


def test_malformed_rows_are_dropped_not_failed(tmp_path: Path):
    db, tables = _db_with_tables(tmp_path)
    path = _write_locations(tmp_path / "locations.csv", 3, extra_lines=",en,EU\nabc,en,EU\n")

    stats = load_csv(db, path, location_spec(tables.location, 500), logger)

    assert stats.rows_loaded == 3
    assert stats.rows_dropped == 2
    assert stats.failed_batches == 0
    assert db.count_rows("geoip_location") == 3


def test_failed_batch_is_logged_and_loading_continues(tmp_path: Path, monkeypatch, caplog):
    db, tables = _db_with_tables(tmp_path)
    path = _write_locations(tmp_path / "locations.csv", 25)
    monkeypatch.setattr(db, "insert_rows", RecordingInserts(db, fail_on={2}))

    with caplog.at_level(logging.ERROR, logger="tests.load"):
        stats = load_csv(db, path, location_spec(tables.location, 10), logger)

    assert stats.batches == 3
    assert stats.failed_batches == 1
    assert stats.failed_rows == 10
    assert stats.rows_loaded == 15
    assert stats.has_gaps
    assert db.count_rows("geoip_location") == 15
    assert any(getattr(record, "error_code", None) == "LOAD_ERROR" for record in caplog.records)


def test_duplicate_keys_fail_only_their_batch(tmp_path: Path):
    db, tables = _db_with_tables(tmp_path)
    path = tmp_path / "locations.csv"
    path.write_text(
        LOCATION_HEADER
        + "1,en,EU,Europe,GB,UK,,,,,A,,\n"
        + "1,en,EU,Europe,GB,UK,,,,,B,,\n"
        + "2,en,EU,Europe,GB,UK,,,,,C,,\n",
        encoding="utf-8",
    )

    stats = load_csv(db, path, location_spec(tables.location, 2), logger)

    assert stats.failed_batches == 1
    assert stats.rows_loaded == 1
    assert db.count_rows("geoip_location") == 1


def test_block_load_persists_derived_ranges(tmp_path: Path):
    db, tables = _db_with_tables(tmp_path)
    path = tmp_path / "blocks.csv"
    path.write_text(BLOCK_HEADER + "1.2.3.0/24,5128581,6252001,,0,0,10001,40.7128,-74.0060\n", encoding="utf-8")

    stats = load_csv(db, path, block_spec(tables.block), logger)

    assert stats.rows_loaded == 1
    with db.engine.connect() as conn:
        row = conn.execute(tables.block.select()).one()
    assert (row.range_start, row.range_end) == (16908288, 16908543)


def test_missing_file_raises_load_error(tmp_path: Path):
    db, tables = _db_with_tables(tmp_path)
    with pytest.raises(LoadError):
        load_csv(db, tmp_path / "absent.csv", location_spec(tables.location), logger)


def test_default_batch_sizes():
    tables = build_tables("geoip_location", "geoip_block")
    assert location_spec(tables.location).batch_size == 500
    assert block_spec(tables.block).batch_size == 2000
    assert location_spec(tables.location).transform is load.transform_location_row
