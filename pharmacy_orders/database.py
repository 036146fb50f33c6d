from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from pharmacy_orders.config import settings
from pharmacy_orders.infrastructure.db_schema import metadata

DATABASE_URL = settings.DATABASE_URL or "sqlite+aiosqlite:///./pharmacy_orders.db"

engine = create_async_engine(DATABASE_URL, pool_pre_ping=True)
AsyncSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def create_tables(bind=engine):
    async with bind.begin() as conn:
        await conn.run_sync(metadata.create_all)
