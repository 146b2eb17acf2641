from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timezone
from typing import Any, Iterator, Optional, Sequence, Tuple

import psycopg2
from pydantic import ValidationError as PydanticValidationError

from .config import load_settings
from .errors import StorageError
from .filters import FilterPlan
from .models import LogRecord, format_sortable_timestamp, parse_timestamp

logger = logging.getLogger(__name__)

TABLE = "logdata"
COLUMNS: Tuple[str, ...] = (
  "id",
  "tenant",
  "system",
  "user",
  "module",
  "task",
  "timestamp",
  "msg",
  "level",
  "stack_trace",
)
_INSERT_COLUMNS = COLUMNS[1:]

POSTGRES_DDL = """
CREATE TABLE IF NOT EXISTS "logdata" (
  "id" BIGSERIAL PRIMARY KEY,
  "tenant" TEXT NOT NULL,
  "system" TEXT NOT NULL,
  "user" TEXT NOT NULL,
  "module" TEXT NOT NULL,
  "task" TEXT NOT NULL,
  "timestamp" TIMESTAMPTZ NOT NULL,
  "msg" TEXT NOT NULL,
  "level" BIGINT NOT NULL,
  "stack_trace" TEXT
);

CREATE INDEX IF NOT EXISTS idx_logdata_tenant ON "logdata" ("tenant");
CREATE INDEX IF NOT EXISTS idx_logdata_system ON "logdata" ("system");
CREATE INDEX IF NOT EXISTS idx_logdata_user ON "logdata" ("user");
CREATE INDEX IF NOT EXISTS idx_logdata_tenant_ts ON "logdata" ("tenant", "timestamp" DESC);
"""

SQLITE_DDL = """
CREATE TABLE IF NOT EXISTS "logdata" (
  "id" INTEGER PRIMARY KEY AUTOINCREMENT,
  "tenant" TEXT NOT NULL,
  "system" TEXT NOT NULL,
  "user" TEXT NOT NULL,
  "module" TEXT NOT NULL,
  "task" TEXT NOT NULL,
  "timestamp" TEXT NOT NULL,
  "msg" TEXT NOT NULL,
  "level" INTEGER NOT NULL,
  "stack_trace" TEXT
);

CREATE INDEX IF NOT EXISTS idx_logdata_tenant ON "logdata" ("tenant");
CREATE INDEX IF NOT EXISTS idx_logdata_system ON "logdata" ("system");
CREATE INDEX IF NOT EXISTS idx_logdata_user ON "logdata" ("user");
CREATE INDEX IF NOT EXISTS idx_logdata_tenant_ts ON "logdata" ("tenant", "timestamp" DESC);
"""


class LogStorage:
  """
  Persistence collaborator for log records.

  Backends insert one record per call and stream the rows of one filtered
  select. Tests are expected to monkeypatch get_storage() so they do not
  require a running database.
  """

  def insert(self, record: LogRecord) -> int:  # pragma: no cover - integration concern
    """Persist a validated record and return its assigned identifier."""
    raise NotImplementedError

  def select(self, plan: FilterPlan) -> Iterator[Sequence[Any]]:  # pragma: no cover - integration concern
    """Yield raw rows in COLUMNS order for the given filter plan."""
    raise NotImplementedError

  def init_schema(self) -> None:  # pragma: no cover - integration concern
    raise NotImplementedError


class PostgresLogStorage(LogStorage):
  def __init__(self, dsn: str) -> None:
    self._dsn = dsn

  def init_schema(self) -> None:  # pragma: no cover - integration concern
    try:
      conn = psycopg2.connect(self._dsn)
      try:
        with conn, conn.cursor() as cur:
          cur.execute(POSTGRES_DDL)
      finally:
        conn.close()
    except psycopg2.Error as e:
      raise StorageError("Failed to initialize schema") from e
    logger.info("Initialized PostgreSQL schema for table %s", TABLE)

  def insert(self, record: LogRecord) -> int:  # pragma: no cover - integration concern
    columns = ", ".join(f'"{c}"' for c in _INSERT_COLUMNS)
    placeholders = ", ".join(["%s"] * len(_INSERT_COLUMNS))
    try:
      conn = psycopg2.connect(self._dsn)
      try:
        with conn, conn.cursor() as cur:
          cur.execute(
            f'INSERT INTO "{TABLE}" ({columns}) VALUES ({placeholders}) RETURNING "id"',
            _record_to_row(record),
          )
          (new_id,) = cur.fetchone()
      finally:
        conn.close()
    except psycopg2.Error as e:
      raise StorageError("Failed to save log data") from e
    return int(new_id)

  def select(self, plan: FilterPlan) -> Iterator[Sequence[Any]]:  # pragma: no cover - integration concern
    sql, params = plan.to_sql(TABLE, COLUMNS, paramstyle="format")
    try:
      conn = psycopg2.connect(self._dsn)
      try:
        with conn, conn.cursor() as cur:
          cur.execute(sql, params)
          for row in cur:
            yield row
      finally:
        conn.close()
    except psycopg2.Error as e:
      raise StorageError("Failed to fetch log data") from e


class SQLiteLogStorage(LogStorage):
  """
  SQLite backend. Timestamps are stored as fixed-width UTC text so that
  string comparison matches time order for the range predicates.
  """

  def __init__(self, path: str) -> None:
    self._path = path

  def _connect(self) -> sqlite3.Connection:
    return sqlite3.connect(self._path)

  def init_schema(self) -> None:
    try:
      conn = self._connect()
      try:
        with conn:
          conn.executescript(SQLITE_DDL)
      finally:
        conn.close()
    except sqlite3.Error as e:
      raise StorageError("Failed to initialize schema") from e
    logger.info("Initialized SQLite schema at %s", self._path)

  def insert(self, record: LogRecord) -> int:
    columns = ", ".join(f'"{c}"' for c in _INSERT_COLUMNS)
    placeholders = ", ".join(["?"] * len(_INSERT_COLUMNS))
    row = tuple(_sqlite_value(v) for v in _record_to_row(record))
    try:
      conn = self._connect()
      try:
        with conn:
          cur = conn.execute(
            f'INSERT INTO "{TABLE}" ({columns}) VALUES ({placeholders})',
            row,
          )
          new_id = cur.lastrowid
      finally:
        conn.close()
    except (sqlite3.Error, OverflowError) as e:
      raise StorageError("Failed to save log data") from e
    return int(new_id)

  def select(self, plan: FilterPlan) -> Iterator[Sequence[Any]]:
    sql, params = plan.to_sql(TABLE, COLUMNS, paramstyle="qmark")
    try:
      conn = self._connect()
      try:
        cur = conn.execute(sql, [_sqlite_value(p) for p in params])
        for row in cur:
          yield row
      finally:
        conn.close()
    except (sqlite3.Error, OverflowError) as e:
      raise StorageError("Failed to fetch log data") from e


def row_to_record(row: Sequence[Any]) -> LogRecord:
  """
  Decode one storage row (COLUMNS order) into a LogRecord.

  Raises ValueError for rows that cannot be decoded.
  """
  if len(row) != len(COLUMNS):
    raise ValueError(f"expected {len(COLUMNS)} columns, got {len(row)}")
  data = dict(zip(COLUMNS, row))

  ts = data["timestamp"]
  if isinstance(ts, datetime):
    if ts.tzinfo is None:
      ts = ts.replace(tzinfo=timezone.utc)
  else:
    ts = parse_timestamp(ts)
    if ts is None:
      raise ValueError(f"undecodable timestamp {data['timestamp']!r}")
  data["timestamp"] = ts

  if data["id"] is None:
    raise ValueError("row has no id")

  try:
    return LogRecord(**data)
  except PydanticValidationError as e:
    raise ValueError(str(e)) from e


def _record_to_row(record: LogRecord) -> tuple:
  return (
    record.tenant,
    record.system,
    record.user,
    record.module,
    record.task,
    record.timestamp,
    record.msg,
    record.level,
    record.stack_trace,
  )


def _sqlite_value(value: Any) -> Any:
  if isinstance(value, datetime):
    return format_sortable_timestamp(value)
  return value


def storage_from_url(url: str) -> LogStorage:
  """
  Choose a backend from a database URL: `sqlite:///path/to.db` selects
  SQLite, anything else is handed to psycopg2 as a DSN.
  """
  if url.startswith("sqlite:///"):
    return SQLiteLogStorage(url[len("sqlite:///"):])
  return PostgresLogStorage(url)


_storage: Optional[LogStorage] = None


def get_storage() -> LogStorage:
  """
  Return the global storage instance.

  In tests this can be monkeypatched to avoid real DB access.
  """
  global _storage
  if _storage is None:
    _storage = storage_from_url(load_settings().database_url)
  return _storage
