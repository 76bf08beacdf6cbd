"""
Module: inventory_kernel.db.engine
Responsibility: Engine construction, session factory and transactional scope
    for the inventory ledger.  The ``Database`` handle is created explicitly
    by the application and passed to whatever needs sessions; there is no
    module-level engine.
Architecture position: Kernel > DB.  May import from db/base.py,
    db/triggers.py and models/ (for table creation) only.

Invariants enforced:
    - PostgreSQL sessions run at READ COMMITTED; every quantity change is a
      single guarded UPDATE, so no stronger isolation is needed.
    - SQLite transactions start with BEGIN IMMEDIATE, serializing writers
      and giving SAVEPOINTs real transaction semantics.
    - Foreign keys are enforced on SQLite connections.

Failure modes:
    - OperationalError ("database is locked") if a SQLite writer waits longer
      than ``sqlite_busy_timeout``.
    - Pool exhaustion if pool_size + max_overflow is exceeded.

Audit relevance:
    ``session_scope()`` is the commit-or-rollback boundary: a quantity update
    and its movement row are either both committed or both discarded.
"""

from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager
from typing import TYPE_CHECKING

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from inventory_kernel.logging_config import configure_logging, get_logger

if TYPE_CHECKING:
    from inventory_kernel.config import LedgerConfig

logger = get_logger("db.engine")


def normalize_database_url(database_url: str) -> str:
    """Accept the ``postgres://`` scheme some hosting platforms hand out."""
    if database_url.startswith("postgres://"):
        return database_url.replace("postgres://", "postgresql://", 1)
    return database_url


def _install_sqlite_transaction_hooks(engine: Engine) -> None:
    # pysqlite defers BEGIN until the first DML statement, which breaks
    # SAVEPOINT handling; take over transaction control from the driver.
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


class Database:
    """
    Explicit handle on one ledger database.

    Contract:
        One instance per process and database URL.  Sessions obtained from
        it are not thread-safe; each worker thread opens its own.

    Guarantees:
        - ``session_scope()`` commits on normal exit and rolls back on any
          exception, then closes the session.
        - Sessions are created with ``expire_on_commit=False`` so returned
          rows remain readable after commit.
    """

    def __init__(self, engine: Engine):
        self.engine = engine
        self.session_factory: sessionmaker[Session] = sessionmaker(
            bind=engine, expire_on_commit=False
        )

    @classmethod
    def from_url(
        cls,
        database_url: str,
        *,
        echo: bool = False,
        pool_size: int = 20,
        max_overflow: int = 10,
        pool_timeout: int = 30,
        pool_recycle: int = 3600,
        sqlite_busy_timeout: float = 30.0,
    ) -> Database:
        """
        Build a Database from a URL.

        PostgreSQL URLs get a pooled, pre-pinging engine at READ COMMITTED.
        SQLite URLs get a thread-shareable connection with a busy timeout;
        in-memory SQLite uses a single static connection.
        """
        url = normalize_database_url(database_url)

        if url.startswith("sqlite"):
            in_memory = url in ("sqlite://", "sqlite:///:memory:")
            kwargs: dict = {
                "echo": echo,
                "connect_args": {
                    "check_same_thread": False,
                    "timeout": sqlite_busy_timeout,
                },
            }
            if in_memory:
                kwargs["poolclass"] = StaticPool
            engine = create_engine(url, **kwargs)
            _install_sqlite_transaction_hooks(engine)
        else:
            engine = create_engine(
                url,
                echo=echo,
                pool_size=pool_size,
                max_overflow=max_overflow,
                pool_pre_ping=True,
                pool_timeout=pool_timeout,
                pool_recycle=pool_recycle,
                isolation_level="READ COMMITTED",
            )

        logger.info(
            "engine_initialized",
            extra={
                "dialect": engine.dialect.name,
                "pool_size": pool_size,
                "max_overflow": max_overflow,
                "echo": echo,
            },
        )
        return cls(engine)

    @classmethod
    def from_config(cls, config: LedgerConfig) -> Database:
        """Build a Database from config; also applies ``config.log_level`` to kernel logging."""
        configure_logging(level=config.log_level)
        return cls.from_url(
            config.database_url,
            echo=config.echo,
            pool_size=config.pool_size,
            max_overflow=config.max_overflow,
            pool_timeout=config.pool_timeout,
            pool_recycle=config.pool_recycle,
            sqlite_busy_timeout=config.sqlite_busy_timeout,
        )

    @property
    def dialect_name(self) -> str:
        return self.engine.dialect.name

    @property
    def is_postgres(self) -> bool:
        return self.dialect_name == "postgresql"

    @property
    def is_sqlite(self) -> bool:
        return self.dialect_name == "sqlite"

    def session(self) -> Session:
        """Open a new session; the caller owns commit and close."""
        return self.session_factory()

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """
        Provide a transactional scope around a series of operations.

        Usage:
            with db.session_scope() as session:
                engine = ReservationEngine(session)
                engine.reserve_stock(item_id, 2, reference_id="ORD-1001")
        """
        session = self.session()
        logger.debug("transaction_started")
        try:
            yield session
            session.commit()
            logger.debug("transaction_committed")
        except Exception:
            session.rollback()
            logger.warning("transaction_rolled_back", exc_info=True)
            raise
        finally:
            session.close()

    def create_tables(self, install_triggers: bool = True) -> None:
        """Create all ledger tables and, optionally, the immutability triggers."""
        from inventory_kernel.db.base import Base
        from inventory_kernel.db.triggers import install_immutability_triggers

        import inventory_kernel.models  # noqa: F401  registers tables on Base.metadata

        Base.metadata.create_all(self.engine)
        if install_triggers:
            install_immutability_triggers(self.engine)
        logger.info(
            "tables_created",
            extra={"dialect": self.dialect_name, "triggers": install_triggers},
        )

    def drop_tables(self) -> None:
        """Drop all ledger tables. Use with caution; primarily for tests."""
        from inventory_kernel.db.base import Base
        from inventory_kernel.db.triggers import uninstall_immutability_triggers

        import inventory_kernel.models  # noqa: F401

        uninstall_immutability_triggers(self.engine)
        Base.metadata.drop_all(self.engine)

    def dispose(self) -> None:
        """Release all pooled connections."""
        self.engine.dispose()
