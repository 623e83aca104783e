import logging
import urllib.parse
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import declarative_base

from config import settings

logger = logging.getLogger(__name__)


def async_database_url(database_url: str) -> str:
    """
    Rewrites a plain postgresql:// URL for the asyncpg driver and drops
    the libpq-only sslmode parameter. Other URLs are returned unchanged.
    """
    parsed = urllib.parse.urlparse(database_url)
    if parsed.scheme not in ("postgresql", "postgres"):
        return database_url

    query_params = urllib.parse.parse_qs(parsed.query)
    query_params.pop('sslmode', None)
    new_query = urllib.parse.urlencode(query_params, doseq=True)

    return urllib.parse.urlunparse((
        "postgresql+asyncpg",
        parsed.netloc,
        parsed.path,
        parsed.params,
        new_query,
        parsed.fragment
    ))


engine = create_async_engine(async_database_url(settings.DATABASE_URL), echo=settings.SQL_ECHO)
AsyncSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)
Base = declarative_base()


async def init_db():
    import models  # noqa: F401  registers tables on Base.metadata

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema ready")


async def get_db():
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
