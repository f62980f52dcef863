from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from typing import AsyncGenerator
from urllib.parse import urlparse, parse_qs, urlencode, urlunparse
from app.config import get_settings

settings = get_settings()


def convert_database_url(url: str) -> str:
    """
    Convert a database URL to an async driver URL.
    PostgreSQL URLs are rewritten for asyncpg; sqlite+aiosqlite URLs pass through.
    """
    if not url:
        raise ValueError("DATABASE_URL cannot be empty")

    if url.startswith("sqlite+aiosqlite://"):
        return url
    if url.startswith("sqlite://"):
        return url.replace("sqlite://", "sqlite+aiosqlite://", 1)

    # Replace postgresql:// with postgresql+asyncpg://
    if url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
    elif url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql+asyncpg://", 1)
    elif not url.startswith("postgresql+asyncpg://"):
        raise ValueError(f"Invalid DATABASE_URL format: {url[:50]}...")

    try:
        parsed = urlparse(url)
        query_params = parse_qs(parsed.query)
    except Exception as e:
        raise ValueError(f"Failed to parse DATABASE_URL: {str(e)}")

    # asyncpg uses ssl parameter, not sslmode
    if "sslmode" in query_params:
        sslmode = query_params["sslmode"][0].lower()
        del query_params["sslmode"]
        if sslmode in ["require", "prefer", "allow"]:
            query_params["ssl"] = ["require"]

    # Parameters asyncpg rejects
    for param in ["channel_binding", "connect_timeout", "application_name"]:
        query_params.pop(param, None)

    new_query = urlencode(query_params, doseq=True)
    return urlunparse(parsed._replace(query=new_query))


try:
    db_url = convert_database_url(settings.DATABASE_URL)
except Exception as e:
    raise ValueError(
        f"Failed to convert DATABASE_URL: {str(e)}\n"
        f"Please check your DATABASE_URL in .env file or environment variables."
    ) from e

if db_url.startswith("sqlite"):
    engine = create_async_engine(db_url, echo=False)
else:
    engine = create_async_engine(
        db_url,
        echo=settings.ENVIRONMENT == "development",
        pool_size=10,
        max_overflow=20,
        pool_pre_ping=True,  # Verify connections before using
        pool_recycle=3600,   # Recycle connections after 1 hour
    )

# Create async session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)

# Base class for models
Base = declarative_base()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency to get database session"""
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def init_db():
    """Initialize database tables"""
    async with engine.begin() as conn:
        # Import all models to ensure they're registered
        from app.models import user, fuel_price  # noqa: F401

        await conn.run_sync(Base.metadata.create_all)
