"""
Database session management for SQLAlchemy with async support

Supports both the API (explicit init) and the bot runtime / scripts (lazy init).
"""
import asyncio
import os
from contextlib import asynccontextmanager
from typing import AsyncContextManager, AsyncGenerator, Callable

import structlog
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from salewatch.common.errors import StoreFailure

logger = structlog.get_logger()

# Callable returning a session scope, e.g. `sessionmanager.session`
SessionFactory = Callable[[], AsyncContextManager[AsyncSession]]

# Ledger schema. `date` is a YYYY-MM-DD string in the business timezone.
SALES_SCHEMA_DDL = (
    """
    CREATE TABLE IF NOT EXISTS sales (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT,
        number TEXT,
        date TEXT,
        address TEXT,
        quantity INTEGER DEFAULT 1,
        total_clp INTEGER DEFAULT 0
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_sales_date ON sales (date)",
    "CREATE INDEX IF NOT EXISTS idx_sales_number_date ON sales (number, date)",
)

POSTGRES_SALES_SCHEMA_DDL = (
    """
    CREATE TABLE IF NOT EXISTS sales (
        id SERIAL PRIMARY KEY,
        name TEXT,
        number TEXT,
        date TEXT,
        address TEXT,
        quantity INTEGER DEFAULT 1,
        total_clp INTEGER DEFAULT 0
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_sales_date ON sales (date)",
    "CREATE INDEX IF NOT EXISTS idx_sales_number_date ON sales (number, date)",
)


class DatabaseSessionManager:
    """Manage database connections and sessions"""

    def __init__(self):
        self._engine = None
        self._sessionmaker = None
        self._init_lock = asyncio.Lock()

    @property
    def initialized(self) -> bool:
        """Check if session manager is initialized"""
        return self._sessionmaker is not None

    async def init(self, database_url: str, **engine_kwargs):
        """Initialize database engine and session maker"""
        if self.initialized:
            return

        async with self._init_lock:  # Double-checked locking
            if self.initialized:
                return

            # Convert postgresql:// to postgresql+asyncpg://
            if database_url.startswith("postgresql://"):
                database_url = database_url.replace("postgresql://", "postgresql+asyncpg://", 1)

            default_kwargs = {"echo": engine_kwargs.get("echo", False)}
            if database_url.startswith("sqlite"):
                if ":memory:" in database_url:
                    # One shared connection, otherwise every session sees an empty database
                    default_kwargs["poolclass"] = StaticPool
                    default_kwargs["connect_args"] = {"check_same_thread": False}
                else:
                    _ensure_sqlite_directory(database_url)
            else:
                default_kwargs.update({
                    "pool_size": 20,
                    "max_overflow": 10,
                    "pool_pre_ping": True,
                    "pool_recycle": 3600,
                })
            default_kwargs.update(engine_kwargs)

            self._engine = create_async_engine(database_url, **default_kwargs)

            self._sessionmaker = async_sessionmaker(
                bind=self._engine,
                class_=AsyncSession,
                expire_on_commit=False,
                autocommit=False,
                autoflush=False,
            )

            await self.create_schema()
            logger.info("database_initialized", dialect=self._engine.dialect.name)

    async def create_schema(self):
        """Create the sales table if it does not exist yet"""
        ddl = POSTGRES_SALES_SCHEMA_DDL if self._engine.dialect.name == "postgresql" else SALES_SCHEMA_DDL
        async with self._engine.begin() as conn:
            for statement in ddl:
                await conn.execute(text(statement))

    async def close(self):
        """Close database connections"""
        if self._engine is None:
            return
        await self._engine.dispose()
        self._engine = None
        self._sessionmaker = None

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Context manager for database sessions"""
        if not self.initialized:
            raise RuntimeError("DatabaseSessionManager not initialized")

        async with self._sessionmaker() as session:
            try:
                yield session
                await session.commit()
            except (SQLAlchemyError, OverflowError) as e:
                await session.rollback()
                logger.error("db_session_failed", error=str(e), exc_info=True)
                raise StoreFailure(f"Database session failed: {e}") from e
            except Exception:
                await session.rollback()
                raise


def _ensure_sqlite_directory(database_url: str) -> None:
    """Create the parent directory of a file-backed SQLite database"""
    _, _, path = database_url.partition(":///")
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)


# Global session manager instance
sessionmanager = DatabaseSessionManager()


# ---- Lazy auto-init for standalone scripts ----------------------------------------------

_lazy_lock = asyncio.Lock()


async def _ensure_initialized():
    """
    Ensure database session manager is initialized.

    Reads DATABASE_URL from settings so scripts work without an explicit
    init() call. Can be disabled with DB_LAZY_INIT=0.
    """
    if sessionmanager.initialized:
        return

    if os.getenv("DB_LAZY_INIT", "1") not in {"1", "true", "True"}:
        raise RuntimeError(
            "Database lazy init disabled and session manager not initialized. "
            "Call sessionmanager.init(DATABASE_URL) explicitly in startup."
        )

    from salewatch.common.config import get_settings
    settings = get_settings()

    async with _lazy_lock:
        if not sessionmanager.initialized:
            await sessionmanager.init(settings.database_url, echo=settings.sql_echo)


# Dependency for FastAPI and standalone scripts
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Get database session (works in FastAPI and standalone scripts).

    In FastAPI: Expects sessionmanager.init() called during startup.
    In scripts: Auto-initializes from DATABASE_URL if not already initialized.
    """
    await _ensure_initialized()
    async with sessionmanager.session() as session:
        yield session
