import logging
from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession

from src.base.db import async_session

logger = logging.getLogger(__name__)


async def get_session() -> AsyncGenerator[AsyncSession]:
    """One session per request: commit when the handler returns, rollback otherwise."""
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            logger.debug("Rolling back request session")
            await session.rollback()
            raise
