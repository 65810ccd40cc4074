from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import SessionLocal

SessionFactory = Callable[[], AsyncSession]


@asynccontextmanager
async def get_session(factory: SessionFactory = SessionLocal) -> AsyncIterator[AsyncSession]:
    async with factory() as session:
        try:
            yield session
        finally:
            await session.close()
