"""Schema bootstrap for the relational backend."""

from typing import List

from sqlalchemy.ext.asyncio import AsyncEngine

from database import Base
import models  # noqa: F401


async def create_schema(bind: AsyncEngine) -> List[str]:
    """Create any missing tables and return the table names the app owns."""
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    return sorted(Base.metadata.tables)
