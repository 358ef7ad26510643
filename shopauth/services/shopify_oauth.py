# shopauth/services/shopify_oauth.py
from datetime import datetime, timezone
from typing import Mapping
from urllib.parse import urlencode

from fastapi import status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from shopauth.core.config import Settings
from shopauth.core.errors import Conflict, ExternalExchangeFailure, ServiceError
from shopauth.core.security import TokenService
from shopauth.crud.shopify_session import CRUDShopifySession, shopify_session as session_crud
from shopauth.crud.user import CRUDUser, user as user_crud
from shopauth.logging import get_logger
from shopauth.models.user import User
from shopauth.schemas.response import ServiceResponse
from shopauth.shopify.client import AuthRedirect, OAuthSession, ShopifyClient, sanitize_shop

log = get_logger(__name__)

OFFLINE_CALLBACK_PATH = "/api/shopify/auth/tokens"
ONLINE_CALLBACK_PATH = "/api/shopify/auth/callback"
UNINSTALLED_TOPIC = "app/uninstalled"


def split_owner_name(owner: str) -> tuple[str, str]:
    """Split a display name on its first space: ("Ada", "King Lovelace")."""
    first, _, last = owner.strip().partition(" ")
    return first, last.strip()


class ShopifyOAuthService:
    """Drives the install flow: offline grant, then online grant and login.

    Offline sessions are persisted with their access token. Online sessions
    are persisted without it; the online token only lives for the duration
    of the callback. When a later step of a callback fails, the session
    written earlier in that same callback is deleted again.
    """

    def __init__(
        self,
        db: AsyncSession,
        settings: Settings,
        client: ShopifyClient,
        tokens: TokenService,
        sessions: CRUDShopifySession = session_crud,
        users: CRUDUser = user_crud,
    ):
        self.db = db
        self.settings = settings
        self.client = client
        self.tokens = tokens
        self.sessions = sessions
        self.users = users

    def init_redirect(self, query: Mapping[str, str]) -> str:
        sanitize_shop(query.get("shop"))
        return f"/api/shopify/auth?{urlencode(dict(query))}"

    def begin_offline(self, shop: str) -> AuthRedirect:
        return self.client.begin(shop, OFFLINE_CALLBACK_PATH, is_online=False)

    async def complete_offline(self, query: Mapping[str, str], state_cookie: str | None) -> AuthRedirect:
        """Store the shop-level grant, subscribe webhooks, then ask for a per-user grant."""
        session = await self.client.callback(query, state_cookie, is_online=False)
        await self.sessions.upsert(self.db, session.to_record(include_access_token=True))
        log.info("shopify_offline_session_stored", shop=session.shop, session_id=session.id)

        try:
            await self.client.register_webhooks(session)
        except ServiceError:
            await self._discard_session(session)
            raise

        return self.client.begin(session.shop, ONLINE_CALLBACK_PATH, is_online=True)

    async def complete_online(self, query: Mapping[str, str], state_cookie: str | None) -> str:
        """Finish the per-user grant and return the frontend URL carrying a bearer token."""
        session = await self.client.callback(query, state_cookie, is_online=True)
        await self.sessions.upsert(self.db, session.to_record(include_access_token=False))
        log.info("shopify_online_session_stored", shop=session.shop, session_id=session.id)

        try:
            shop_info = await self.client.get_shop(session)
            user = await self.resolve_user(session.shop, shop_info)
        except (ServiceError, SQLAlchemyError):
            await self.db.rollback()
            await self._discard_session(session)
            raise

        token = self.tokens.create_access_token(user)
        return f"{self.settings.FRONTEND_URL.rstrip('/')}/user/verify-token?{urlencode({'token': token})}"

    async def resolve_user(self, shop: str, shop_info: Mapping) -> User:
        """Find the local user owning `shop`, provisioning one on first install."""
        existing = await self.users.get_by_organization(self.db, shop)
        if existing is not None:
            log.info("shopify_user_resolved", shop=shop, user_id=existing.id)
            return existing

        email = shop_info.get("email")
        if not email:
            raise ExternalExchangeFailure(reason="shop record has no email")
        if await self.users.get_by_email(self.db, email) is not None:
            raise Conflict("A user with the shop owner's email already exists")

        first_name, last_name = split_owner_name(shop_info.get("shop_owner") or "")
        user = await self.users.create(
            self.db,
            first_name=first_name or shop_info.get("name") or shop,
            last_name=last_name,
            email=email,
            organization=shop,
            role="user",
            email_verified_at=datetime.now(timezone.utc),
            hashed_password=None,
        )
        log.info("shopify_user_provisioned", shop=shop, user_id=user.id)
        return user

    async def handle_webhook(
        self, topic: str | None, shop: str | None, raw_body: bytes, hmac_header: str | None
    ) -> ServiceResponse:
        if not self.client.verify_webhook(raw_body, hmac_header):
            log.info("shopify_webhook_rejected", topic=topic, shop=shop)
            return ServiceResponse.failure("Unauthorized", status_code=status.HTTP_401_UNAUTHORIZED)

        if topic == UNINSTALLED_TOPIC and shop:
            count = await self.sessions.delete_by_shop(self.db, shop)
            log.info("shopify_app_uninstalled", shop=shop, sessions_deleted=count)
            return ServiceResponse.ok(f"Deleted {count} sessions", count)

        log.info("shopify_webhook_ignored", topic=topic, shop=shop)
        return ServiceResponse.ok("Webhook received")

    async def _discard_session(self, session: OAuthSession) -> None:
        try:
            await self.sessions.delete(self.db, session.id)
        except SQLAlchemyError as exc:
            await self.db.rollback()
            log.error("shopify_session_discard_failed", session_id=session.id, error=str(exc))
        else:
            log.info("shopify_session_discarded", session_id=session.id, shop=session.shop)
