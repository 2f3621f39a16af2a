"""Destination table definitions and idempotent schema preparation."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass

from sqlalchemy import DECIMAL, BigInteger, CHAR, Column, Integer, MetaData, SmallInteger, String, Table, text
from sqlalchemy.dialects import mysql
from sqlalchemy.exc import NoSuchTableError, SQLAlchemyError
from sqlalchemy.schema import CreateTable, DropTable

from geolite_import.common.db import Database
from geolite_import.common.errors import SchemaError
from geolite_import.common.logging import log_event
from geolite_import.common.schema import validate_table_name

UnsignedInt = Integer().with_variant(mysql.INTEGER(unsigned=True), "mysql", "mariadb")
UnsignedBigInt = BigInteger().with_variant(mysql.BIGINT(unsigned=True), "mysql", "mariadb")
Flag = SmallInteger().with_variant(mysql.TINYINT(display_width=1, unsigned=True), "mysql", "mariadb")

TABLE_OPTIONS = {"mysql_engine": "InnoDB", "mysql_charset": "utf8mb4"}


class TableStatus(str, enum.Enum):
    CREATED = "created"
    EXISTED = "existed"


@dataclass(frozen=True)
class GeoipTables:
    metadata: MetaData
    location: Table
    block: Table


def build_location_table(name: str, metadata: MetaData) -> Table:
    return Table(
        name,
        metadata,
        Column("geoname_id", UnsignedInt, primary_key=True, autoincrement=False),
        Column("locale_code", CHAR(2), nullable=False),
        Column("continent_code", CHAR(2), nullable=False),
        Column("continent_name", String(24), nullable=False),
        Column("country_iso_code", CHAR(2), nullable=False),
        Column("country_name", String(36), nullable=False),
        Column("subdivision_1_iso_code", CHAR(3), nullable=False),
        Column("subdivision_1_name", String(36), nullable=False),
        Column("subdivision_2_iso_code", CHAR(3), nullable=False),
        Column("subdivision_2_name", String(36), nullable=False),
        Column("city_name", String(50), nullable=False),
        Column("metro_code", Integer, nullable=False),
        Column("time_zone", String(24), nullable=False),
        **TABLE_OPTIONS,
    )


def build_block_table(name: str, metadata: MetaData) -> Table:
    return Table(
        name,
        metadata,
        Column("network", String(20), primary_key=True),
        Column("range_start", UnsignedBigInt, nullable=False),
        Column("range_end", UnsignedBigInt, nullable=False),
        Column("geoname_id", UnsignedInt, nullable=False),
        Column("registered_country_geoname_id", UnsignedInt, nullable=False),
        Column("represented_country_geoname_id", UnsignedInt, nullable=False),
        Column("is_anonymous_proxy", Flag, nullable=False),
        Column("is_satellite_provider", Flag, nullable=False),
        Column("postal_code", String(15), nullable=False),
        Column("latitude", DECIMAL(7, 4), nullable=False),
        Column("longitude", DECIMAL(7, 4), nullable=False),
        **TABLE_OPTIONS,
    )


def build_tables(location_name: str, block_name: str) -> GeoipTables:
    metadata = MetaData()
    return GeoipTables(
        metadata=metadata,
        location=build_location_table(validate_table_name(location_name, "location table"), metadata),
        block=build_block_table(validate_table_name(block_name, "block table"), metadata),
    )


def table_exists(db: Database, name: str) -> bool:
    """Probe the table with a metadata query; success means it exists."""
    try:
        db.table_metadata(name)
    except NoSuchTableError:
        return False
    except SQLAlchemyError as exc:
        raise SchemaError(f"Metadata probe failed for {name}: {exc}") from exc
    return True


def truncate_table(db: Database, table: Table) -> None:
    quoted = db.engine.dialect.identifier_preparer.quote(table.name)
    if db.dialect == "sqlite":
        db.execute_statement(text(f"DELETE FROM {quoted}"))
    else:
        db.execute_statement(text(f"TRUNCATE TABLE {quoted}"))


def ensure_table(db: Database, table: Table, logger: logging.Logger) -> TableStatus:
    """Create ``table`` if absent, otherwise empty it while keeping its schema."""
    if not table_exists(db, table.name):
        try:
            db.execute_statement(CreateTable(table))
        except SQLAlchemyError as exc:
            raise SchemaError(f"Failed to create table {table.name}: {exc}") from exc
        log_event(logger, f"table {table.name} created", stage="schema", table=table.name, event="TABLE_CREATED")
        return TableStatus.CREATED

    try:
        truncate_table(db, table)
    except SQLAlchemyError as exc:
        raise SchemaError(f"Failed to truncate table {table.name}: {exc}") from exc
    log_event(logger, f"table {table.name} truncated", stage="schema", table=table.name, event="TABLE_TRUNCATED")
    return TableStatus.EXISTED


def prepare_tables(db: Database, tables: GeoipTables, logger: logging.Logger) -> dict[str, TableStatus]:
    return {table.name: ensure_table(db, table, logger) for table in (tables.location, tables.block)}


def drop_table(db: Database, table: Table, logger: logging.Logger) -> bool:
    if not table_exists(db, table.name):
        return False
    try:
        db.execute_statement(DropTable(table))
    except SQLAlchemyError as exc:
        raise SchemaError(f"Failed to drop table {table.name}: {exc}") from exc
    log_event(logger, f"table {table.name} dropped", stage="schema", table=table.name, event="TABLE_DROPPED")
    return True
