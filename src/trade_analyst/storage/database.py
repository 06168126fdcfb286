"""Database engine and session management."""

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from trade_analyst.exceptions import StorageError
from trade_analyst.storage.models import Base

logger = logging.getLogger(__name__)


class Database:
    """
    Owns the SQLAlchemy engine and hands out short-lived sessions.

    Tables are created on first connect. Usable as a context manager.
    """

    def __init__(self, db_url: str):
        self.db_url = db_url
        self._engine = None
        self._session_factory: sessionmaker | None = None
        self._init_db(db_url)

    def _init_db(self, db_url: str) -> None:
        connect_args = {"check_same_thread": False} if db_url.startswith("sqlite") else {}
        self._engine = create_engine(db_url, connect_args=connect_args)
        Base.metadata.create_all(self._engine)
        self._session_factory = sessionmaker(bind=self._engine, expire_on_commit=False)
        logger.debug(f"Database initialized: {db_url}")

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Transactional session: commits on success, rolls back on error."""
        if self._session_factory is None:
            raise StorageError("Database is closed")
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def ping(self) -> bool:
        """Round-trip a trivial query; raises StorageError when the database is unreachable."""
        try:
            with self.session() as session:
                session.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            raise StorageError(f"Database unreachable: {e}") from e
        return True

    def close(self) -> None:
        if self._engine:
            self._engine.dispose()
            self._engine = None
            self._session_factory = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
