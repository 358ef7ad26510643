"""Shared fixtures: in-memory SQLite database, settings and a mocked Shopify transport."""

import hashlib
import hmac
import os
import time
from unittest.mock import MagicMock

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-testing-only")
os.environ.setdefault("SHOPIFY_API_KEY", "test-api-key")
os.environ.setdefault("SHOPIFY_API_SECRET", "test-api-secret")
os.environ.setdefault("HOST", "https://app.example.com")
os.environ.setdefault("FRONTEND_URL", "https://frontend.example.com")
os.environ.setdefault("LOG_JSON", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker  # noqa: E402

from shopauth.core.config import get_settings  # noqa: E402
from shopauth.core.deps import get_shopify_client  # noqa: E402
from shopauth.core.security import TokenService  # noqa: E402
from shopauth.database import Base, get_db, make_engine  # noqa: E402
from shopauth.main import app  # noqa: E402
from shopauth.shopify.client import ShopifyClient  # noqa: E402

SHOP = "foo.myshopify.com"


def make_response(json_data=None, status_code=200):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = json_data if json_data is not None else {}
    return response


def signed_query(params: dict, secret: str | None = None) -> dict:
    """Return `params` plus timestamp and the hmac Shopify would attach."""
    secret = secret or get_settings().SHOPIFY_API_SECRET
    query = {"timestamp": str(int(time.time())), **params}
    message = "&".join(f"{k}={v}" for k, v in sorted(query.items()))
    query["hmac"] = hmac.new(secret.encode(), message.encode(), hashlib.sha256).hexdigest()
    return query


def shop_body(email="owner@foo.com", shop_owner="Ada King Lovelace"):
    return {"shop": {"domain": SHOP, "myshopify_domain": SHOP, "email": email, "shop_owner": shop_owner}}


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
def tokens(settings):
    return TokenService(settings)


@pytest.fixture
def http():
    """Stand-in for the requests.Session used to talk to Shopify."""
    return MagicMock()


@pytest.fixture
def shopify_client(settings, http):
    return ShopifyClient(settings, http=http)


@pytest_asyncio.fixture
async def engine():
    engine = make_engine("sqlite+aiosqlite://")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory, shopify_client):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_shopify_client] = lambda: shopify_client
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
