from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine, AsyncSession
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy import MetaData
from contextlib import asynccontextmanager
from functools import lru_cache
from .config import settings
import logging


logger = logging.getLogger(__name__)

convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}
metadata = MetaData(naming_convention=convention)


class Base(DeclarativeBase):
    metadata = metadata


def _masked_url(url: str) -> str:
    if settings.POSTGRES_PASSWORD:
        return url.replace(settings.POSTGRES_PASSWORD, "***")
    return url


@lru_cache(maxsize=1)
def get_engine() -> AsyncEngine:
    # created on first use so importing models never opens a pool
    logger.info("DB_ENGINE_CREATE url=%s", _masked_url(settings.DATABASE_URL))
    return create_async_engine(settings.DATABASE_URL, echo=False, pool_pre_ping=True)


@lru_cache(maxsize=1)
def get_sessionmaker() -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=get_engine(), expire_on_commit=False, autoflush=False, autocommit=False)


@asynccontextmanager
async def get_async_session() -> AsyncSession:
    """One unit of work: every reconciliation call runs inside a single session.

    Services only flush; the whole call is committed here or rolled back on any error,
    so a failed reconciliation never leaves partial payout or carryover rows behind.
    """
    session = get_sessionmaker()()
    try:
        yield session
        await session.commit()
        logger.debug("db session commit")
    except Exception:
        logger.exception("db session rollback due to error")
        await session.rollback()
        raise
    finally:
        await session.close()
