"""
Database configuration with SQLAlchemy 2.0 async support.
"""

import asyncio
import logging
import ssl
from typing import Any

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from app.settings import settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


def _get_connect_args(db_url: str) -> dict:
    """Get connection arguments, including SSL for managed databases."""
    if db_url.startswith("sqlite"):
        return {}

    # Skip SSL for local development (localhost, 127.0.0.1, or Docker service names)
    local_hosts = ["localhost", "127.0.0.1", "@db:", "@db/", "@postgres:", "@postgres/"]
    if any(host in db_url for host in local_hosts):
        return {}

    ssl_context = ssl.create_default_context()
    ssl_context.check_hostname = False
    ssl_context.verify_mode = ssl.CERT_NONE  # Managed DBs often use self-signed certs
    return {"ssl": ssl_context}


def build_engine(db_url: str, **overrides: Any) -> AsyncEngine:
    """Create an async engine with pool settings suited to the backend."""
    kwargs: dict[str, Any] = {
        "echo": settings.debug,
        "connect_args": _get_connect_args(db_url),
    }
    if not db_url.startswith("sqlite"):
        kwargs.update(
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
            pool_pre_ping=True,  # Verify connections before using
        )
    kwargs.update(overrides)
    return create_async_engine(db_url, **kwargs)


def build_session_maker(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


engine = build_engine(settings.database_url)
async_session_maker = build_session_maker(engine)


async def init_db(bind: AsyncEngine | None = None, max_retries: int = 10, retry_delay: float = 5) -> None:
    """Create tables if needed, retrying while the database comes up."""
    bind = bind or engine

    for attempt in range(max_retries):
        try:
            async with bind.begin() as conn:
                from app.models import subscription  # noqa: F401

                await conn.run_sync(Base.metadata.create_all)
            logger.info("Database initialized successfully")
            return
        except Exception as e:
            if attempt < max_retries - 1:
                logger.warning(
                    "Database connection attempt %d/%d failed: %s; retrying in %s seconds",
                    attempt + 1, max_retries, e, retry_delay,
                )
                await asyncio.sleep(retry_delay)
            else:
                logger.error("Database connection failed after %d attempts", max_retries)
                raise


async def close_db() -> None:
    """Close database connections."""
    await engine.dispose()
