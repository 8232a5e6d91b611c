from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from . import config
from .config import DATABASE_URL
import logging

logger = logging.getLogger(__name__)

try:
    logger.info(f"Attempting to create engine with URL: {DATABASE_URL.replace(config.DATABASE_PASSWORD, '***')}") # Hide password
    engine = create_async_engine(DATABASE_URL, echo=config.DATABASE_ECHO, pool_pre_ping=True)
    AsyncSessionFactory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    logger.info("Async database engine and session factory created successfully.")
except Exception as e:
    logger.error(f"FATAL: Failed to create database engine or session factory: {e}")
    raise RuntimeError(f"Could not initialize database connection: {e}")

Base = declarative_base()


async def create_tables():
    """Creates the inventory table if it does not exist yet."""
    logger.info("Checking/Creating database tables...")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables check complete.")
