import logging
from typing import Optional

from sqlmodel import SQLModel
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from config import DATABASE_URL

logger = logging.getLogger(__name__)


def make_engine(url: Optional[str]) -> Optional[AsyncEngine]:
    if not url:
        return None
    return create_async_engine(url, echo=False, future=True)


def make_sessionmaker(engine: AsyncEngine) -> sessionmaker:
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


# Create the Async Engine (None when DATABASE_URL is not configured)
engine = make_engine(DATABASE_URL)


async def init_db(target: Optional[AsyncEngine] = None) -> bool:
    """Create the tables if they don't exist.

    Returns False when no engine is configured or the database is
    unreachable, in which case callers run on the in-memory store.
    """
    target = target or engine
    if target is None:
        logger.warning("[DB CONNECT] DATABASE_URL is not set, using in-memory store")
        return False

    # Import so the table models are registered on SQLModel.metadata
    import models  # noqa: F401

    try:
        async with target.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)
    except Exception as exc:
        logger.error("[DB CONNECT] failed to connect to database: %s", exc)
        logger.warning("[DB CONNECT] Falling back to in-memory store for bookings")
        return False

    logger.info("[DB CONNECT] Connected to database")
    return True
