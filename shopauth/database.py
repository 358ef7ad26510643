from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool
from shopauth.core.config import get_settings

settings = get_settings()


def make_engine(url: str, echo: bool = False) -> AsyncEngine:
    if url.startswith("sqlite") and (url.endswith("://") or ":memory:" in url):
        # in-memory sqlite: every connection must share the one database
        return create_async_engine(
            url, echo=echo, connect_args={"check_same_thread": False}, poolclass=StaticPool
        )
    return create_async_engine(url, echo=echo, pool_pre_ping=not url.startswith("sqlite"))


engine = make_engine(settings.database_url, echo=settings.DEBUG)

async_session = async_sessionmaker(
    bind=engine, class_=AsyncSession, expire_on_commit=False
)

Base = declarative_base()

async def get_db() -> AsyncSession:
    async with async_session() as session:
        yield session
