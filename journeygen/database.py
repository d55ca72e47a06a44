from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker, declarative_base

from .settings.config import settings

DATABASE_URL = settings.DATABASE_URL
for _sync_prefix in ("postgresql+psycopg2", "postgresql+psycopg"):
    if DATABASE_URL.startswith(_sync_prefix):
        # if someone provided a sync URL by mistake, upgrade it to async
        DATABASE_URL = DATABASE_URL.replace(_sync_prefix, "postgresql+asyncpg", 1)
        break


engine = create_async_engine(DATABASE_URL, echo=False, future=True)
async_session_maker = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
Base = declarative_base()

async def get_db():
    async with async_session_maker() as session:
        yield session

async def init_db():
    # Only run create_all in dev, never in prod with Alembic
    if settings.RUN_DB_CREATE_ALL:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
