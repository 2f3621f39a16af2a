from __future__ import annotations

import logging
from pathlib import Path

import pytest
from sqlalchemy import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.schema import CreateTable
from sqlalchemy.dialects import mysql

from geolite_import.common.db import Database
from geolite_import.common.errors import ConfigError, SchemaError
from geolite_import.pipeline.tables import (
    TableStatus,
    build_tables,
    drop_table,
    ensure_table,
    prepare_tables,
    table_exists,
)

logger = logging.getLogger("tests.tables")


@pytest.fixture
def db(tmp_path: Path):
    database = Database(f"sqlite:///{tmp_path / 'tables.db'}")
    yield database
    database.close()


def test_ensure_table_creates_then_truncates(db):
    tables = build_tables("geoip_location", "geoip_block")

    assert ensure_table(db, tables.location, logger) is TableStatus.CREATED
    assert db.count_rows("geoip_location") == 0

    with db.engine.begin() as conn:
        conn.execute(
            insert(tables.location).values(
                geoname_id=1,
                locale_code="en",
                continent_code="EU",
                continent_name="Europe",
                country_iso_code="GB",
                country_name="United Kingdom",
                subdivision_1_iso_code="",
                subdivision_1_name="",
                subdivision_2_iso_code="",
                subdivision_2_name="",
                city_name="London",
                metro_code=0,
                time_zone="Europe/London",
            )
        )
    assert db.count_rows("geoip_location") == 1

    assert ensure_table(db, tables.location, logger) is TableStatus.EXISTED
    assert table_exists(db, "geoip_location")
    assert db.count_rows("geoip_location") == 0


def test_prepare_tables_twice_never_errors(db):
    tables = build_tables("geoip_location", "geoip_block")

    first = prepare_tables(db, tables, logger)
    second = prepare_tables(db, tables, logger)

    assert set(first.values()) == {TableStatus.CREATED}
    assert set(second.values()) == {TableStatus.EXISTED}
    assert db.count_rows("geoip_block") == 0


def test_created_schema_has_expected_columns(db):
    tables = build_tables("geoip_location", "geoip_block")
    prepare_tables(db, tables, logger)

    block_columns = [col["name"] for col in db.table_metadata("geoip_block")]
    assert block_columns == [
        "network",
        "range_start",
        "range_end",
        "geoname_id",
        "registered_country_geoname_id",
        "represented_country_geoname_id",
        "is_anonymous_proxy",
        "is_satellite_provider",
        "postal_code",
        "latitude",
        "longitude",
    ]
    assert len(db.table_metadata("geoip_location")) == 13


def test_mysql_ddl_uses_unsigned_columns_and_innodb():
    tables = build_tables("geoip_location", "geoip_block")
    ddl = str(CreateTable(tables.block).compile(dialect=mysql.dialect()))

    assert "BIGINT UNSIGNED" in ddl
    assert "DECIMAL(7, 4)" in ddl
    assert "ENGINE=InnoDB" in ddl
    assert "PRIMARY KEY (network)" in ddl


def test_table_exists_false_for_missing_table(db):
    assert table_exists(db, "nope") is False


def test_metadata_probe_failure_raises_schema_error(db, monkeypatch):
    def broken(_name):
        raise SQLAlchemyError("connection lost")

    monkeypatch.setattr(db, "table_metadata", broken)
    tables = build_tables("geoip_location", "geoip_block")

    with pytest.raises(SchemaError):
        ensure_table(db, tables.location, logger)


def test_create_failure_raises_schema_error(db, monkeypatch):
    def broken(_statement, params=None):
        raise SQLAlchemyError("permission denied")

    monkeypatch.setattr(db, "execute_statement", broken)
    tables = build_tables("geoip_location", "geoip_block")

    with pytest.raises(SchemaError):
        ensure_table(db, tables.block, logger)


def test_drop_table_removes_existing_table(db):
    tables = build_tables("geoip_location", "geoip_block")
    prepare_tables(db, tables, logger)

    assert drop_table(db, tables.block, logger) is True
    assert table_exists(db, "geoip_block") is False
    assert drop_table(db, tables.block, logger) is False


@pytest.mark.parametrize("name", ["", "geo ip", "1table", "x; DROP TABLE y", "a" * 65])
def test_build_tables_rejects_unsafe_names(name):
    with pytest.raises(ConfigError):
        build_tables(name, "geoip_block")
