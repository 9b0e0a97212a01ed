"""Class store: SQLite engine, schema lifecycle and the upsert discipline.

This module provides:
- ClassStore: connection manager with WAL mode so one writer and any number
  of readers can share the file
- Explicit open()/close() lifecycle (close is idempotent)
- Atomic per-archive upserts inside BEGIN IMMEDIATE transactions
- Retry logic for SQLite busy timeout handling

The scanner owns the only writable ClassStore. Query handles are opened
with read_only=True, which sets PRAGMA query_only on every connection.
"""

from __future__ import annotations

import time
from collections.abc import Generator, Iterable
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import event, text
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlmodel import Session, SQLModel, create_engine

from jarplane.core.errors import StorageError
from jarplane.index._internal.db.indexes import create_additional_indexes
from jarplane.index.models import UnitRecord, UpsertResult

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from jarplane.config.models import StoreConfig

logger = structlog.get_logger()

# Retry configuration for SQLite busy handling
DEFAULT_BUSY_TIMEOUT_MS = 30000
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_BASE_DELAY = 0.1  # 100ms base
DEFAULT_RETRY_MAX_DELAY = 2.0  # 2s max

_UPSERT_SQL = """
    INSERT INTO units (
        qualified_name, package_name, archive_path,
        methods_json, fields_json, payload, last_modified, created_at
    )
    VALUES (
        :qualified_name, :package_name, :archive_path,
        :methods_json, :fields_json, :payload, :last_modified, :created_at
    )
    ON CONFLICT (qualified_name, archive_path)
    DO UPDATE SET
        package_name = excluded.package_name,
        methods_json = excluded.methods_json,
        fields_json = excluded.fields_json,
        payload = excluded.payload,
        last_modified = max(units.last_modified, excluded.last_modified)
"""


def _is_database_locked_error(error: Exception) -> bool:
    """Check if error is a SQLite database locked error."""
    error_str = str(error).lower()
    return "database is locked" in error_str or "database is busy" in error_str


class ClassStore:
    """SQLite-backed store of UnitRecords.

    Includes retry logic with exponential backoff for handling
    SQLite busy timeouts while another handle holds the write lock.
    """

    def __init__(
        self,
        db_path: Path,
        *,
        read_only: bool = False,
        busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_base_delay: float = DEFAULT_RETRY_BASE_DELAY,
        retry_max_delay: float = DEFAULT_RETRY_MAX_DELAY,
    ) -> None:
        self.db_path = db_path
        self.read_only = read_only
        self._busy_timeout_ms = busy_timeout_ms
        self._max_retries = max_retries
        self._retry_base_delay = retry_base_delay
        self._retry_max_delay = retry_max_delay
        self._engine: Engine | None = None

    @classmethod
    def from_config(cls, config: StoreConfig, *, read_only: bool = False) -> ClassStore:
        return cls(
            config.path,
            read_only=read_only,
            busy_timeout_ms=config.busy_timeout_ms,
            max_retries=config.max_retries,
            retry_base_delay=config.retry_base_delay_sec,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_open(self) -> bool:
        return self._engine is not None

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise StorageError.not_open(str(self.db_path))
        return self._engine

    def open(self) -> None:
        """Open the engine and, for the writable handle, create the schema.

        Safe to call more than once.
        """
        if self._engine is not None:
            return

        engine = self._create_engine()
        try:
            if self.read_only:
                with engine.connect() as conn:
                    conn.execute(text("SELECT 1"))
            else:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
                SQLModel.metadata.create_all(engine, tables=[UnitRecord.__table__])  # type: ignore[attr-defined]
                create_additional_indexes(engine)
        except (SQLAlchemyError, OSError) as e:
            engine.dispose()
            raise StorageError.open_failed(str(self.db_path), str(e)) from e

        self._engine = engine
        logger.debug("store_opened", path=str(self.db_path), read_only=self.read_only)

    def close(self) -> None:
        """Dispose the engine. No-op when never opened or already closed."""
        if self._engine is None:
            return
        self._engine.dispose()
        self._engine = None
        logger.debug("store_closed", path=str(self.db_path), read_only=self.read_only)

    def _create_engine(self) -> Engine:
        engine = create_engine(
            f"sqlite:///{self.db_path}",
            connect_args={"check_same_thread": False},
            pool_pre_ping=True,
        )
        busy_timeout_ms = self._busy_timeout_ms
        read_only = self.read_only

        def _configure_pragmas(dbapi_conn: Any, _connection_record: Any) -> None:
            cursor = dbapi_conn.cursor()
            cursor.execute(f"PRAGMA busy_timeout={int(busy_timeout_ms)}")
            if read_only:
                cursor.execute("PRAGMA query_only=ON")
            else:
                cursor.execute("PRAGMA journal_mode=WAL")
                cursor.execute("PRAGMA synchronous=NORMAL")  # Safe with WAL
            cursor.execute("PRAGMA cache_size=-16000")  # 16MB cache
            cursor.close()

        event.listen(engine, "connect", _configure_pragmas)
        return engine

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """ORM session for reads."""
        with Session(self.engine) as session:
            yield session

    @contextmanager
    def immediate_transaction(
        self,
        max_retries: int | None = None,
    ) -> Generator[Session, None, None]:
        """
        Session with BEGIN IMMEDIATE for serializable writes.

        BEGIN IMMEDIATE acquires a RESERVED lock immediately, blocking other
        writers but allowing readers. Acquiring the lock is retried with
        exponential backoff when SQLite reports the database as busy.

        The session commits on successful exit and rolls back on exception.
        """
        retries = max_retries if max_retries is not None else self._max_retries
        session = self._begin_immediate(retries)
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def _begin_immediate(self, retries: int) -> Session:
        for attempt in range(retries + 1):  # +1 for initial attempt
            session = Session(self.engine)
            try:
                session.execute(text("BEGIN IMMEDIATE"))
                return session
            except OperationalError as e:
                session.close()
                if _is_database_locked_error(e) and attempt < retries:
                    delay = min(
                        self._retry_base_delay * (2**attempt),
                        self._retry_max_delay,
                    )
                    logger.warning(
                        "sqlite_busy_retry",
                        attempt=attempt + 1,
                        max_retries=retries,
                        delay_sec=delay,
                    )
                    time.sleep(delay)
                    continue
                raise
        raise StorageError.query_failed("begin_immediate", "retries exhausted")

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def upsert(self, record: UnitRecord) -> bool:
        """Insert or update one record. Returns True when it was inserted."""
        result = self.upsert_many(record.archive_path, [record])
        return result.inserted == 1

    def upsert_many(self, archive_path: str, records: Iterable[UnitRecord]) -> UpsertResult:
        """Persist all units of one archive in a single transaction.

        Each row is written with INSERT ... ON CONFLICT DO UPDATE keyed on
        (qualified_name, archive_path). Whether a row was new is decided from
        the keys present when the transaction started, so the counts are
        exact even if an archive lists the same entry twice.
        """
        inserted = 0
        updated = 0
        now = int(time.time())
        try:
            with self.immediate_transaction() as session:
                rows = session.execute(
                    text("SELECT qualified_name FROM units WHERE archive_path = :archive_path"),
                    {"archive_path": archive_path},
                )
                existing = {row[0] for row in rows}

                for record in records:
                    if record.archive_path != archive_path:
                        msg = f"record {record.qualified_name} belongs to {record.archive_path}"
                        raise ValueError(msg)
                    session.execute(
                        text(_UPSERT_SQL),
                        {
                            "qualified_name": record.qualified_name,
                            "package_name": record.package_name,
                            "archive_path": record.archive_path,
                            "methods_json": record.methods_json,
                            "fields_json": record.fields_json,
                            "payload": record.payload,
                            "last_modified": record.last_modified,
                            "created_at": now,
                        },
                    )
                    if record.qualified_name in existing:
                        updated += 1
                    else:
                        inserted += 1
                        existing.add(record.qualified_name)
        except SQLAlchemyError as e:
            raise StorageError.write_failed(archive_path, str(e)) from e

        return UpsertResult(inserted=inserted, updated=updated)

    def purge_missing_archives(self, existing_paths: Iterable[str]) -> int:
        """Delete rows whose archive is not in existing_paths. Returns rows deleted."""
        keep = set(existing_paths)
        deleted = 0
        try:
            with self.immediate_transaction() as session:
                stored = [
                    row[0]
                    for row in session.execute(text("SELECT DISTINCT archive_path FROM units"))
                ]
                for archive_path in stored:
                    if archive_path in keep:
                        continue
                    result = session.execute(
                        text("DELETE FROM units WHERE archive_path = :archive_path"),
                        {"archive_path": archive_path},
                    )
                    deleted += int(result.rowcount)  # type: ignore[attr-defined]
                    logger.info("archive_purged", archive=archive_path)
        except SQLAlchemyError as e:
            raise StorageError.query_failed("purge_missing_archives", str(e)) from e
        return deleted

    # ------------------------------------------------------------------
    # Staleness
    # ------------------------------------------------------------------

    def recorded_mtime(self, archive_path: str) -> int | None:
        """Newest last_modified stored for an archive, or None if unseen.

        A rescan raises every unit it still finds to the archive mtime, so the
        newest value is the mtime of the last successful scan. Units dropped
        from a rebuilt archive keep their older value and must not count.
        """
        try:
            with self.engine.connect() as conn:
                row = conn.execute(
                    text("SELECT MAX(last_modified) FROM units WHERE archive_path = :archive_path"),
                    {"archive_path": archive_path},
                ).fetchone()
        except SQLAlchemyError as e:
            raise StorageError.query_failed("recorded_mtime", str(e)) from e
        if row is None or row[0] is None:
            return None
        return int(row[0])

    def is_stale(self, archive_path: str, mtime: int) -> bool:
        """True if the archive has no records or its last scan predates mtime."""
        recorded = self.recorded_mtime(archive_path)
        return recorded is None or recorded < mtime
