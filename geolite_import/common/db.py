"""Database access: statement execution, metadata probes and bulk inserts."""

from __future__ import annotations

from typing import Any, Mapping, Sequence

from sqlalchemy import Table, create_engine, func, insert, inspect, select, table, text
from sqlalchemy.engine import Engine


class Database:
    def __init__(self, url: str | None = None, *, engine: Engine | None = None) -> None:
        if engine is None:
            if not url:
                raise ValueError("Database requires a URL or an engine")
            engine = create_engine(url, pool_pre_ping=True)
        self.engine = engine

    @property
    def dialect(self) -> str:
        return self.engine.dialect.name

    def close(self) -> None:
        self.engine.dispose()

    def __enter__(self) -> "Database":
        return self

    def __exit__(self, *_exc) -> None:
        self.close()

    def execute_statement(self, statement: Any, params: Mapping[str, Any] | None = None) -> int:
        """Run one statement in its own transaction and return the affected row count."""
        if isinstance(statement, str):
            statement = text(statement)
        with self.engine.begin() as conn:
            result = conn.execute(statement, params or {})
            return result.rowcount if result.rowcount is not None else 0

    def table_metadata(self, name: str) -> list[dict[str, Any]]:
        """Describe ``name``; raises NoSuchTableError when the table is absent."""
        return inspect(self.engine).get_columns(name)

    def insert_rows(self, table: Table, rows: Sequence[Mapping[str, Any]]) -> int:
        """Insert all ``rows`` with a single multi-row INSERT statement."""
        if not rows:
            return 0
        with self.engine.begin() as conn:
            conn.execute(insert(table).values(list(rows)))
        return len(rows)

    def count_rows(self, name: str) -> int:
        with self.engine.connect() as conn:
            return int(conn.execute(select(func.count()).select_from(table(name))).scalar() or 0)
