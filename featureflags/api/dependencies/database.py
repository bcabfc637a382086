"""
Database session dependency.

One session per request. Flag stores only flush; the request commits
here when the handler returns and rolls back when it raises.
"""

from typing import AsyncGenerator

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from featureflags.models.database import async_session_factory

logger = structlog.get_logger()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield a request-scoped session."""
    async with async_session_factory() as session:
        try:
            yield session
        except Exception as e:
            await session.rollback()
            logger.warning("Request transaction rolled back", error=str(e))
            raise
        else:
            await session.commit()
