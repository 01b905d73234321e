from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from src.base.config import DATABASE_URI

engine = create_async_engine(DATABASE_URI, pool_pre_ping=True)
async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
