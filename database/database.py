# QueryGate - async database setup
from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool
from .models import Base

# Default for dev; override via config
DATABASE_URL = "sqlite+aiosqlite:///./querygate.db"


def _make_engine(database_url: str) -> AsyncEngine:
    if database_url.startswith("sqlite") and (":memory:" in database_url or database_url.endswith("://")):
        # one shared connection, otherwise every session sees an empty database
        return create_async_engine(
            database_url,
            echo=False,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    return create_async_engine(database_url, echo=False)


engine = _make_engine(DATABASE_URL)
async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Current session factory (init_db may replace it)."""
    return async_session


async def init_db(database_url: str | None = None) -> async_sessionmaker[AsyncSession]:
    global engine, async_session
    if database_url:
        engine = _make_engine(database_url)
        async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    return async_session
