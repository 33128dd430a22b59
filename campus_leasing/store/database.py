"""
Store resource owning the SQLAlchemy engine and session factory.

The store is acquired with ``open()`` and released with ``close()`` (or used as
a context manager) and is passed explicitly to every component that touches
the database.
"""

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..exceptions import StoreError
from .mixins import register_store_listeners
from .models import Base

logger = logging.getLogger(__name__)


def _enable_sqlite_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Store:
    """Owned database resource shared by the lifecycle, termination and audit code.

    Example:
        >>> with Store("sqlite://") as store:
        ...     with store.transaction() as session:
        ...         session.add(Campus(name="North"))
    """

    def __init__(self, database_url: str, echo: bool = False):
        """
        Initialize the store without connecting.

        Args:
            database_url: SQLAlchemy database URL
            echo: Echo SQL statements to the log
        """
        self.database_url = database_url
        self.echo = echo
        self.engine: Optional[Engine] = None
        self.SessionLocal: Optional[sessionmaker] = None  # type: ignore[type-arg]

    @property
    def is_open(self) -> bool:
        return self.engine is not None

    def open(self) -> "Store":
        """Create the engine, register listeners and create missing tables."""
        if self.engine is not None:
            return self

        url = make_url(self.database_url)
        if url.get_backend_name() == "sqlite":
            if url.database in (None, "", ":memory:"):
                # One shared connection so every session sees the same database
                self.engine = create_engine(
                    self.database_url,
                    echo=self.echo,
                    connect_args={"check_same_thread": False},
                    poolclass=StaticPool,
                )
            else:
                Path(url.database).parent.mkdir(parents=True, exist_ok=True)
                self.engine = create_engine(
                    self.database_url,
                    echo=self.echo,
                    connect_args={"check_same_thread": False},
                )
            event.listen(self.engine, "connect", _enable_sqlite_foreign_keys)
        else:
            self.engine = create_engine(
                self.database_url,
                echo=self.echo,
                pool_pre_ping=True,
                pool_size=10,
                max_overflow=20,
            )

        register_store_listeners(Base)
        Base.metadata.create_all(bind=self.engine)

        self.SessionLocal = sessionmaker(
            bind=self.engine, autoflush=False, expire_on_commit=False
        )
        logger.info("Store opened on %s", url.render_as_string(hide_password=True))
        return self

    def close(self) -> None:
        """Dispose of the engine and its pooled connections."""
        if self.engine is not None:
            self.engine.dispose()
            logger.info("Store closed")
        self.engine = None
        self.SessionLocal = None

    def __enter__(self) -> "Store":
        return self.open()

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _factory(self) -> sessionmaker:  # type: ignore[type-arg]
        if self.SessionLocal is None:
            raise RuntimeError("Store not initialized. Call open() first.")
        return self.SessionLocal

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Yield a session for read-only queries outside a transaction."""
        factory = self._factory()
        with factory() as session:
            try:
                yield session
            except SQLAlchemyError as e:
                logger.error("Store query failed", exc_info=True)
                raise StoreError() from e

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """
        Yield a session inside a transaction.

        Commits when the block exits normally and rolls back on any exception.
        SQLAlchemy errors are re-raised as StoreError; other exceptions
        propagate unchanged.

        Raises:
            StoreError: The database rejected a statement or the commit
        """
        factory = self._factory()
        with factory() as session:
            try:
                with session.begin():
                    yield session
            except SQLAlchemyError as e:
                logger.error("Transaction rolled back", exc_info=True)
                raise StoreError() from e
