from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from vpnkeeper.core.config import Config
from vpnkeeper.db.models import Base


class Database:
    """Engine + session factory for one configured database; one per app."""

    def __init__(self, config: Config):
        self.engine: AsyncEngine = create_async_engine(config.db_url, echo=False)
        self.sessionmaker = async_sessionmaker(self.engine, expire_on_commit=False)

    async def create_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self.engine.dispose()

    def session(self) -> AsyncSession:
        return self.sessionmaker()
