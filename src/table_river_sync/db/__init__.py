"""Database utilities and psycopg2 helpers for river table access."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Iterator, Mapping, Optional, Sequence

import psycopg2
from psycopg2 import Error
from psycopg2.extras import RealDictCursor

if TYPE_CHECKING:  # pragma: no cover - import-time helper only
    from table_river_sync.config import Settings


class _DictRowSentinel:
    """Sentinel representing row factory for dictionary rows."""


dict_row = _DictRowSentinel()

_USE_DEFAULT_FACTORY = object()


class _ExecuteResult:
    """Buffered result exposing the DB-API cursor surface used by the river."""

    def __init__(self, cursor):
        self._cursor = cursor
        self.description = cursor.description
        self.rowcount = cursor.rowcount
        self._rows: Optional[list] = None
        self._load_rows()

    def __iter__(self) -> Iterator:
        return iter(self._load_rows())

    def close(self) -> None:
        if not self._cursor.closed:
            self._cursor.close()

    def _load_rows(self) -> list:
        if self._rows is None:
            if self._cursor.description is not None:
                self._rows = list(self._cursor.fetchall())
            else:
                self._rows = []
            self._cursor.close()
        return self._rows


class Connection(psycopg2.extensions.connection):
    """psycopg2 connection subclass providing convenience helpers used by the river."""

    placeholder = "%s"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.autocommit = True
        self._row_factory = None

    def cursor(self, *args, **kwargs):
        row_factory = kwargs.pop("row_factory", _USE_DEFAULT_FACTORY)
        cursor_factory = kwargs.get("cursor_factory")
        if cursor_factory is None:
            if row_factory is dict_row:
                kwargs["cursor_factory"] = RealDictCursor
            elif row_factory is _USE_DEFAULT_FACTORY:
                if self._row_factory is dict_row:
                    kwargs["cursor_factory"] = RealDictCursor
            elif row_factory is not None:
                kwargs["cursor_factory"] = row_factory
        return super().cursor(*args, **kwargs)

    def execute(
        self, query: str, params: Optional[Sequence[Any]] = None
    ) -> _ExecuteResult:
        cursor = self.cursor()
        try:
            cursor.execute(query, params)
        except Error:
            cursor.close()
            raise
        return _ExecuteResult(cursor)

    @property
    def row_factory(self):
        return self._row_factory

    @row_factory.setter
    def row_factory(self, factory) -> None:
        self._row_factory = factory


def connect(*args, **kwargs) -> Connection:
    """Create a Connection instance using psycopg2."""

    kwargs.setdefault("connection_factory", Connection)
    conn = psycopg2.connect(*args, **kwargs)
    conn.row_factory = dict_row
    return conn


def connect_for_reading(settings: "Settings") -> Connection:
    """Open the connection the mouth role polls through."""

    return connect(
        host=settings.db_host,
        port=settings.db_port,
        dbname=settings.db_name,
        user=settings.db_user,
        password=settings.db_password,
        options=f"-c search_path={settings.db_schema},public",
    )


def connect_for_writing(settings: "Settings") -> Connection:
    """Open the connection used for acknowledgments and the target role."""

    return connect(
        host=settings.db_write_host,
        port=settings.db_write_port,
        dbname=settings.db_write_name,
        user=settings.db_write_user,
        password=settings.db_write_password,
        options=f"-c search_path={settings.db_schema},public",
    )


class ConnectionProvider:
    """Lazily opens and caches the reading and writing connections."""

    def __init__(self, reader, writer=None) -> None:
        self._reader_factory = reader
        self._writer_factory = writer or reader
        self._reader = None
        self._writer = None

    @classmethod
    def from_settings(cls, settings: "Settings") -> "ConnectionProvider":
        return cls(
            lambda: connect_for_reading(settings),
            lambda: connect_for_writing(settings),
        )

    def for_reading(self):
        if self._reader is None or getattr(self._reader, "closed", False):
            self._reader = self._reader_factory()
        return self._reader

    def for_writing(self):
        if self._writer is None or getattr(self._writer, "closed", False):
            self._writer = self._writer_factory()
        return self._writer

    def close(self) -> None:
        seen = set()
        for conn in (self._reader, self._writer):
            if conn is None or id(conn) in seen:
                continue
            seen.add(id(conn))
            if not getattr(conn, "closed", False):
                conn.close()
        self._reader = None
        self._writer = None


def placeholder_for(connection: object) -> str:
    """Return the bind placeholder a connection expects (``%s`` unless declared)."""

    return getattr(connection, "placeholder", "%s")


def row_to_mapping(description, row) -> Dict[str, Any]:
    """Normalise a driver row (dict, Row or tuple) into a plain dict."""

    if isinstance(row, Mapping):
        return dict(row)
    if hasattr(row, "keys"):
        return {key: row[key] for key in row.keys()}
    columns = [column[0] for column in description or ()]
    return dict(zip(columns, row))


__all__ = [
    "Connection",
    "ConnectionProvider",
    "Error",
    "connect",
    "connect_for_reading",
    "connect_for_writing",
    "dict_row",
    "placeholder_for",
    "row_to_mapping",
]
