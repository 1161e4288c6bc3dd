import logging
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy import text
from config import settings
from tenacity import retry, stop_after_attempt, wait_fixed, retry_if_exception_type

logger = logging.getLogger(__name__)


def create_engine_for_url(url: str):
    connect_args = {}
    if url.startswith("sqlite"):
        connect_args = {"check_same_thread": False}

    return create_async_engine(
        url,
        echo=settings.DEBUG,
        future=True,
        connect_args=connect_args
    )


engine = create_engine_for_url(settings.database_url_async)
async_session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

Base = declarative_base()


async def get_db():
    """Dependency for getting async database sessions"""
    async with async_session_maker() as session:
        try:
            yield session
        finally:
            await session.close()


@retry(
    retry=retry_if_exception_type((ConnectionRefusedError, OSError)),
    stop=stop_after_attempt(12),  # 60 seconds total (12 attempts * 5 seconds)
    wait=wait_fixed(5),
    reraise=True,
    before_sleep=lambda retry_state: logger.warning(
        f"Database connection attempt {retry_state.attempt_number} failed. "
        f"Retrying in 5 seconds... (Error: {retry_state.outcome.exception()})"
    )
)
async def init_db(target_engine=None):
    """
    Initialize database tables with retry logic.

    Retries up to 12 times (60 seconds total) when the database refuses
    connections, which happens while a managed database proxy is still
    starting up.
    """
    target_engine = target_engine or engine
    logger.info("Attempting to connect to database...")

    try:
        async with target_engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
            logger.info("Database connection successful!")

            # Import here to avoid circular imports
            import models  # noqa: F401
            await conn.run_sync(Base.metadata.create_all)

        logger.info("Database initialization complete!")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise
