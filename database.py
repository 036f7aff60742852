import logging

from sqlmodel import SQLModel
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from config import DATABASE_URL

logger = logging.getLogger(__name__)

# Create the Async Engine
engine = create_async_engine(DATABASE_URL, echo=False, future=True)

async_session = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db():
    # Tables must be registered on the metadata before create_all
    import models  # noqa: F401

    async with engine.begin() as conn:
        # This creates the tables if they don't exist
        await conn.run_sync(SQLModel.metadata.create_all)
    logger.info(f"Database ready ({engine.url.get_backend_name()})")


async def get_session() -> AsyncSession:
    async with async_session() as session:
        yield session
