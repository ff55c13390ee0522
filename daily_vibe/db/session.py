"""Storage adapter over the embedded SQLite store and serverless Postgres.

The back-end is chosen once, at construction, from configuration:
``DATABASE_URL`` selects Postgres (psycopg, no connection pooling so that
serverless instances never hold long-lived handles); otherwise an embedded
SQLite file is opened. Callers see one capability set either way.
"""

import logging
import re
import threading
from collections.abc import Generator, Sequence
from concurrent.futures import Future
from contextlib import contextmanager
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any

from sqlalchemy import Connection, Engine, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import NullPool
from sqlmodel import Session, SQLModel, create_engine

from daily_vibe.config import Settings, get_settings
from daily_vibe.errors import (
    AppError,
    QueryError,
    StorageUnavailableError,
    classify_database_error,
)

logger = logging.getLogger(__name__)

PLACEHOLDER_PATTERN = re.compile(r"\$(\d+)")


@dataclass
class QueryResult:
    """Rows returned by a raw query."""

    rows: list[dict[str, Any]] = field(default_factory=list)
    rowcount: int = 0


def rewrite_placeholders(sql: str, params: Sequence[Any]) -> tuple[str, dict[str, Any]]:
    """Rewrite ``$1``-style placeholders into named bind parameters.

    Returns:
        tuple[str, dict]: The rewritten statement and its bound values
    """
    bound: dict[str, Any] = {}

    def _replace(match: re.Match) -> str:
        index = int(match.group(1))
        if index < 1 or index > len(params):
            raise QueryError(f"Query placeholder ${index} has no parameter")
        name = f"p{index}"
        bound[name] = params[index - 1]
        return f":{name}"

    return PLACEHOLDER_PATTERN.sub(_replace, sql), bound


def _postgres_url(url: str) -> str:
    # Convert postgres:// and postgresql:// to postgresql+psycopg:// for psycopg v3 driver
    for prefix in ("postgres://", "postgresql://"):
        if url.startswith(prefix):
            return url.replace(prefix, "postgresql+psycopg://", 1)
    return url


def create_database_engine(settings: Settings) -> Engine:
    """Build the engine for whichever back-end the settings select."""
    if settings.DATABASE_URL:
        connect_args = {} if "sslmode=" in settings.DATABASE_URL else {"sslmode": "require"}
        return create_engine(
            _postgres_url(settings.DATABASE_URL),
            echo=False,
            pool_pre_ping=True,
            poolclass=NullPool,
            connect_args=connect_args,
        )

    db_path = Path(settings.SQLITE_PATH)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    return create_engine(
        f"sqlite:///{db_path}",
        echo=False,
        connect_args={"check_same_thread": False},
    )


class Database:
    """Uniform interface over the configured storage back-end.

    Exposes ``initialize``, ``query``, ``session`` and ``close``. Only this
    class knows which SQL dialect and placeholder style is in use.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()
        self.backend = self.settings.storage_backend
        self.engine = create_database_engine(self.settings)
        self._init_lock = threading.Lock()
        self._init_future: Future | None = None
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    def connect(self) -> Connection:
        """Open a connection, classifying failures as storage unavailability."""
        try:
            return self.engine.connect()
        except SQLAlchemyError as exc:
            logger.error(
                "Database connection failed",
                extra={"backend": self.backend, "error": str(exc)},
            )
            raise StorageUnavailableError() from exc

    def initialize(self) -> bool:
        """Create tables and apply pending migrations, once per process.

        Concurrent callers wait for the attempt in progress and share its
        outcome. A failed attempt is not remembered, so a later call retries.

        Raises:
            StorageUnavailableError: If the schema could not be prepared
        """
        with self._init_lock:
            if self._initialized:
                return True
            future = self._init_future
            owner = future is None
            if owner:
                future = self._init_future = Future()

        if not owner:
            return future.result()

        try:
            self._prepare_schema()
        except Exception as exc:
            logger.error(
                "Database initialization failed",
                extra={"backend": self.backend, "error": str(exc)},
            )
            error = exc if isinstance(exc, StorageUnavailableError) else StorageUnavailableError()
            with self._init_lock:
                self._init_future = None
            future.set_exception(error)
            raise error from exc

        with self._init_lock:
            self._initialized = True
            self._init_future = None
        future.set_result(True)
        logger.info("Database initialized", extra={"backend": self.backend})
        return True

    def _prepare_schema(self) -> None:
        # Import models so SQLModel knows about every table
        import daily_vibe.models  # noqa: F401
        from daily_vibe.db.migrate import upgrade_schema

        with self.connect() as connection:
            with connection.begin():
                SQLModel.metadata.create_all(connection)
            with connection.begin():
                upgrade_schema(connection)

    def query(self, sql: str, params: Sequence[Any] = ()) -> QueryResult:
        """Execute one parameterized statement.

        Args:
            sql: Statement text using ``$1``, ``$2``... placeholders
            params: Positional parameter values

        Returns:
            QueryResult: Result rows as dicts plus the affected row count

        Raises:
            StorageUnavailableError: If no connection could be obtained
            QueryError: If the database rejected the statement
        """
        statement, bound = rewrite_placeholders(sql, params)
        with self.connect() as connection:
            try:
                result = connection.execute(text(statement), bound)
                rows = [dict(row._mapping) for row in result] if result.returns_rows else []
                rowcount = result.rowcount
                connection.commit()
            except SQLAlchemyError as exc:
                error = classify_database_error(exc)
                logger.error(
                    "Query failed",
                    extra={"error_kind": error.kind, "sqlstate": getattr(error, "sqlstate", None)},
                )
                raise error from exc
        return QueryResult(rows=rows, rowcount=rowcount)

    def health_check(self) -> bool:
        """Return True when a trivial query succeeds."""
        try:
            result = self.query("SELECT 1 AS health")
        except AppError:
            return False
        return bool(result.rows) and result.rows[0]["health"] == 1

    def session(self) -> Generator[Session, None, None]:
        """Yield a session on a connection released when the caller is done."""
        connection = self.connect()
        try:
            with Session(bind=connection) as session:
                yield session
        finally:
            connection.close()

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """Context-manager form of :meth:`session` for scripts."""
        yield from self.session()

    def close(self) -> None:
        """Release pooled connections."""
        self.engine.dispose()


@lru_cache
def get_database() -> Database:
    """Get the process-wide database adapter."""
    return Database(get_settings())
