"""
Local database handle.

One ``Database`` is opened at process start, passed explicitly to every
store, and closed once at shutdown. There is no module-level connection.

SQLite's Python driver normally commits implicitly before DDL, which
would let a half-finished table rebuild become visible. The engine is
configured so that SQLAlchemy's ``begin()`` emits a real ``BEGIN`` and
every statement inside it, DDL included, commits or rolls back together.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

import structlog
from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import OperationalError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from pocket_ledger.config import DatabaseSettings, get_settings
from pocket_ledger.services.storage.interface import ConnectionError


logger = structlog.get_logger(__name__)


def _enable_transactional_ddl(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_conn, _record):  # pragma: no cover - driver bridge
        # Hand transaction control to SQLAlchemy; see module docstring
        dbapi_conn.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn):  # pragma: no cover - driver bridge
        conn.exec_driver_sql("BEGIN")


class Database:
    """
    Explicit storage handle shared by the schema manager, the stores and
    the ledger.
    """

    def __init__(self, engine: Engine):
        self._engine = engine
        self._closed = False

    @classmethod
    def open(cls, settings: Optional[DatabaseSettings] = None) -> "Database":
        """
        Create the engine and verify the database can be opened.

        Raises:
            ConnectionError: If the database stays unavailable after the
                             configured number of attempts
        """
        settings = settings or get_settings().database
        url = settings.database_url

        if settings.url is None:
            Path(settings.path).expanduser().parent.mkdir(parents=True, exist_ok=True)

        engine = create_engine(
            url,
            echo=settings.echo_sql,
            connect_args={"timeout": settings.busy_timeout_seconds},
        )
        _enable_transactional_ddl(engine)

        database = cls(engine)
        try:
            database._probe(settings.connect_attempts)
        except OperationalError as e:
            engine.dispose()
            raise ConnectionError(f"Failed to open database at {url}: {e}") from e

        logger.info("database_opened", url=url)
        return database

    def _probe(self, attempts: int) -> None:
        @retry(
            stop=stop_after_attempt(attempts),
            wait=wait_exponential(multiplier=0.5, min=0.5, max=5),
            retry=retry_if_exception_type(OperationalError),
            reraise=True,
        )
        def _check() -> None:
            with self._engine.connect() as conn:
                conn.execute(text("SELECT 1"))

        _check()

    @property
    def engine(self) -> Engine:
        return self._engine

    @property
    def is_closed(self) -> bool:
        return self._closed

    def _ensure_open(self) -> None:
        if self._closed:
            raise ConnectionError("Database handle is closed")

    @contextmanager
    def transaction(self) -> Iterator[Connection]:
        """
        One atomic unit of work.

        Commits when the block exits normally, rolls back everything
        written inside it when the block raises.
        """
        self._ensure_open()
        with self._engine.begin() as conn:
            yield conn

    @contextmanager
    def connect(self) -> Iterator[Connection]:
        """A connection for reads. Nothing written through it is committed."""
        self._ensure_open()
        with self._engine.connect() as conn:
            yield conn

    def close(self) -> None:
        if self._closed:
            return
        self._engine.dispose()
        self._closed = True
        logger.info("database_closed")
