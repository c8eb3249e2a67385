from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlmodel.ext.asyncio.session import AsyncSession
from sqlmodel import SQLModel, text
from bookwise.core.config import settings
from loguru import logger

# Create engine
engine: AsyncEngine = create_async_engine(
    settings.POSTGRES_URL,
    echo=settings.DB_ECHO,
    pool_pre_ping=True,
    pool_size=5,
    max_overflow=10,
)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


def build_session_maker(bind: AsyncEngine) -> async_sessionmaker:
    """Session factory with the same options as the application default."""
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


async def create_db_and_tables(bind: AsyncEngine = engine) -> None:
    """Create all tables based on SQLModel metadata.

    Production schemas are managed by Alembic; this is used for local
    development databases and the test suite.
    """
    import bookwise.models  # noqa: F401

    async with bind.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    logger.info("Database tables created successfully")


async def ping_database(bind: AsyncEngine = engine) -> bool:
    try:
        async with bind.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database ping failed: {e}")
        return False


async def get_session():
    async with async_session_maker() as session:
        yield session
