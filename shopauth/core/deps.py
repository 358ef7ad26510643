# shopauth/core/deps.py
from functools import lru_cache

import requests
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from shopauth.core.config import Settings, get_settings
from shopauth.core.errors import InvalidToken
from shopauth.core.security import TokenService
from shopauth.database import get_db
from shopauth.logging import get_logger
from shopauth.models.user import User
from shopauth.services.auth import AuthService
from shopauth.services.shopify_oauth import ShopifyOAuthService
from shopauth.services.shopify_session import ShopifySessionService
from shopauth.services.user import UserService
from shopauth.shopify.client import ShopifyClient

log = get_logger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def get_token_service(settings: Settings = Depends(get_settings)) -> TokenService:
    return TokenService(settings)


@lru_cache()
def get_http_session() -> requests.Session:
    """Process-wide connection pool for calls to Shopify; closed on shutdown."""
    return requests.Session()


def get_shopify_client(
    settings: Settings = Depends(get_settings), http: requests.Session = Depends(get_http_session)
) -> ShopifyClient:
    return ShopifyClient(settings, http=http)


def get_auth_service(
    db: AsyncSession = Depends(get_db), tokens: TokenService = Depends(get_token_service)
) -> AuthService:
    return AuthService(db, tokens)


def get_user_service(db: AsyncSession = Depends(get_db)) -> UserService:
    return UserService(db)


def get_session_service(db: AsyncSession = Depends(get_db)) -> ShopifySessionService:
    return ShopifySessionService(db)


def get_oauth_service(
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
    client: ShopifyClient = Depends(get_shopify_client),
    tokens: TokenService = Depends(get_token_service),
) -> ShopifyOAuthService:
    return ShopifyOAuthService(db, settings, client, tokens)


def get_bearer_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> str:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return credentials.credentials


async def get_current_user(
    token: str = Depends(get_bearer_token),
    auth: AuthService = Depends(get_auth_service),
) -> User:
    try:
        user, _claims = await auth.authenticate(token)
    except InvalidToken as exc:
        log.info("token_rejected", reason=exc.reason)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc
    return user
