"""Database configuration and engine management.

Features:
- Async SQLAlchemy with connection pooling
- One long-lived source engine owned by DatabaseManager
- Engine factory shared by the source and per-run migration targets
- Explicit TLS policy per connection (disable / relaxed / verify)
- Connection error logging with masked strings
"""

import ssl
from typing import Any

from sqlalchemy import text
from sqlalchemy.engine import URL, make_url
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from app.core.config import TLSMode, get_settings
from app.core.logging import db_logger, get_logger

logger = get_logger(__name__)


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""

    pass


# libpq connection options that asyncpg.connect() does not accept as keywords
LIBPQ_ONLY_PARAMS = (
    "sslmode",
    "sslrootcert",
    "sslcert",
    "sslkey",
    "sslcrl",
    "sslpassword",
    "sslsni",
    "channel_binding",
    "gssencmode",
    "connect_timeout",
    "application_name",
)

SSLMODE_TLS_MODES: dict[str, TLSMode] = {
    "disable": "disable",
    "allow": "relaxed",
    "prefer": "relaxed",
    "require": "relaxed",
    "verify-ca": "verify",
    "verify-full": "verify",
}


def to_async_url(db_url: str) -> URL:
    """Parse a connection string, switching plain Postgres URLs to asyncpg.

    libpq-only query options are dropped from Postgres URLs; TLS is applied
    through ``connect_args`` instead.

    Raises:
        sqlalchemy.exc.ArgumentError: If the string is not a database URL
    """
    db_url = db_url.strip()
    # Convert postgres:// to postgresql+asyncpg:// for async support
    if db_url.startswith("postgres://"):
        db_url = db_url.replace("postgres://", "postgresql+asyncpg://", 1)
    elif db_url.startswith("postgresql://"):
        db_url = db_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    url = make_url(db_url)
    if url.get_backend_name() == "postgresql":
        url = url.difference_update_query(LIBPQ_ONLY_PARAMS)
    return url


def tls_mode_from_url(db_url: str, default: TLSMode) -> TLSMode:
    """Resolve the TLS mode, letting an explicit ``sslmode`` in the URL win.

    Unknown sslmode values fall back to the configured default.
    """
    sslmode = make_url(db_url.strip()).query.get("sslmode")
    if isinstance(sslmode, tuple):
        sslmode = sslmode[-1] if sslmode else None
    if sslmode is None:
        return default
    return SSLMODE_TLS_MODES.get(sslmode.lower(), default)


def build_ssl_context(tls_mode: TLSMode) -> ssl.SSLContext | bool:
    """Build the asyncpg ``ssl`` argument for a TLS mode."""
    if tls_mode == "disable":
        return False
    context = ssl.create_default_context()
    if tls_mode == "relaxed":
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    return context


def create_engine_for_url(
    db_url: str,
    *,
    tls_mode: TLSMode,
    role: str,
    pool_size: int = 5,
    max_overflow: int = 10,
    pool_timeout: int = 30,
    connect_timeout: int = 60,
    command_timeout: int = 60,
    echo: bool = False,
) -> AsyncEngine:
    """Create an async engine for a connection string.

    Postgres URLs get pooling, driver timeouts and the TLS policy.
    An ``sslmode`` in the URL overrides ``tls_mode``.
    Other async URLs (SQLite for local tooling) use the dialect defaults.
    No connection is opened until the engine is first used.
    """
    url = to_async_url(db_url)
    kwargs: dict[str, Any] = {"echo": echo}

    if url.get_backend_name() == "postgresql":
        tls_mode = tls_mode_from_url(db_url, tls_mode)
        if tls_mode == "relaxed":
            db_logger.relaxed_tls(role)
        kwargs.update(
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_timeout=pool_timeout,
            pool_pre_ping=True,  # Verify connections before use
            # asyncpg uses 'ssl' not 'sslmode' (which is libpq/psycopg2)
            connect_args={
                "timeout": connect_timeout,
                "command_timeout": command_timeout,
                "ssl": build_ssl_context(tls_mode),
            },
        )

    return create_async_engine(url, **kwargs)


class DatabaseManager:
    """Manages the source database engine."""

    def __init__(self) -> None:
        self._engine: AsyncEngine | None = None

    @property
    def engine(self) -> AsyncEngine:
        """Get the database engine."""
        if self._engine is None:
            raise RuntimeError("Database not initialized. Call init_db() first.")
        return self._engine

    def init_db(self) -> None:
        """Initialize the source database engine."""
        settings = get_settings()
        db_url = str(settings.database_url)

        try:
            self._engine = create_engine_for_url(
                db_url,
                tls_mode=settings.db_tls_mode,
                role="source",
                pool_size=settings.db_pool_size,
                max_overflow=settings.db_max_overflow,
                pool_timeout=settings.db_pool_timeout,
                connect_timeout=settings.db_connect_timeout,
                command_timeout=settings.db_command_timeout,
                echo=settings.debug,
            )
            logger.info("Database engine initialized successfully")

        except Exception as e:
            db_logger.connection_error(e, db_url)
            raise

    async def close(self) -> None:
        """Close database connections."""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            logger.info("Database connections closed")

    async def check_connection(self) -> bool:
        """Check if database connection is healthy."""
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            settings = get_settings()
            db_logger.connection_error(e, str(settings.database_url))
            return False


# Global database manager instance
db_manager = DatabaseManager()
