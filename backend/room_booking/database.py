from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from .config import get_settings
from .models import Base


def make_engine(database_url: str, *, echo: bool = False) -> AsyncEngine:
    options: dict[str, object] = {"echo": echo}
    if not database_url.startswith("sqlite"):
        # Reads after the room lock must see rows committed while we waited on it.
        options.update(pool_pre_ping=True, pool_recycle=3600, isolation_level="READ COMMITTED")
    return create_async_engine(database_url, **options)


def make_sessionmaker(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind, expire_on_commit=False, class_=AsyncSession)


async def create_schema(bind: AsyncEngine) -> None:
    """Create missing tables. Intended for local development and tests."""
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


settings = get_settings()

engine = make_engine(settings.database_url, echo=settings.echo_sql)

async_session = make_sessionmaker(engine)
