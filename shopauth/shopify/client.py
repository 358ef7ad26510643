# shopauth/shopify/client.py
"""Minimal Shopify OAuth / Admin API client.

Covers the pieces of the authorization-code grant the app needs: building
the consent URL with a signed state nonce, validating the callback, the
code-for-token exchange, reading the shop record and registering webhooks.
"""

import base64
import hashlib
import hmac
import json
import re
import secrets
import time
from dataclasses import dataclass
from typing import Any, Mapping
from urllib.parse import urlencode

import requests
from starlette.concurrency import run_in_threadpool

from shopauth.core.config import Settings
from shopauth.core.errors import ExternalExchangeFailure, InvalidToken, ServiceError
from shopauth.logging import get_logger

log = get_logger(__name__)

STATE_COOKIE = "shopify_app_state"
STATE_COOKIE_MAX_AGE = 60
# callbacks older than this are refused
HMAC_TIMESTAMP_TOLERANCE = 90

_SHOP_RE = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9\-]*\.myshopify\.com$")


class InvalidShopDomain(ServiceError):
    default_message = "Invalid shop domain"


@dataclass
class OAuthSession:
    """Result of a completed token exchange, as returned by Shopify."""

    id: str
    shop: str
    state: str
    is_online: bool
    access_token: str
    scope: str | None = None
    expires: int | None = None
    online_access_info: dict | None = None

    def to_record(self, include_access_token: bool) -> dict[str, Any]:
        return {
            "id": self.id,
            "shop": self.shop,
            "state": self.state,
            "isonline": self.is_online,
            "scope": self.scope,
            "expires": self.expires,
            "onlineaccessinfo": json.dumps(self.online_access_info) if self.online_access_info else None,
            "accesstoken": self.access_token if include_access_token else None,
        }


@dataclass
class AuthRedirect:
    url: str
    state_cookie: str


def _safe_equal(expected: str, received: str) -> bool:
    # request values may carry non-ASCII text, which compare_digest refuses as str
    return hmac.compare_digest(expected.encode("utf-8"), received.encode("utf-8"))


def sanitize_shop(shop: str | None) -> str:
    if not shop or not _SHOP_RE.match(shop.strip()):
        raise InvalidShopDomain(reason=f"rejected shop {shop!r}")
    return shop.strip().lower()


def offline_session_id(shop: str) -> str:
    return f"offline_{shop}"


def online_session_id(shop: str) -> str:
    return f"{shop}_{int(time.time() * 1000)}"


def _already_subscribed(errors: Any) -> bool:
    """True when a 422 from the webhooks endpoint only reports an existing subscription."""
    if isinstance(errors, dict):
        messages = [m for value in errors.values() for m in (value if isinstance(value, list) else [value])]
    elif isinstance(errors, list):
        messages = errors
    else:
        messages = [errors]
    return bool(messages) and all("already been taken" in str(m) for m in messages)

class ShopifyClient:
    def __init__(self, settings: Settings, http: requests.Session | None = None):
        self.settings = settings
        self.http = http or requests.Session()

    # --- signing helpers -------------------------------------------------

    def _sign(self, message: str) -> str:
        secret = self.settings.SHOPIFY_API_SECRET.encode("utf-8")
        return hmac.new(secret, message.encode("utf-8"), hashlib.sha256).hexdigest()

    def validate_query_hmac(self, query: Mapping[str, str]) -> bool:
        received = query.get("hmac")
        if not received:
            return False
        message = "&".join(
            f"{key}={value}"
            for key, value in sorted(query.items())
            if key not in ("hmac", "signature")
        )
        if not _safe_equal(self._sign(message), received):
            return False
        timestamp = query.get("timestamp")
        if timestamp is not None:
            try:
                skew = abs(time.time() - int(timestamp))
            except ValueError:
                return False
            return skew <= HMAC_TIMESTAMP_TOLERANCE
        return True

    def verify_webhook(self, raw_body: bytes, hmac_header: str | None) -> bool:
        if not hmac_header:
            return False
        secret = self.settings.SHOPIFY_API_SECRET.encode("utf-8")
        digest = base64.b64encode(hmac.new(secret, raw_body, hashlib.sha256).digest()).decode("utf-8")
        return _safe_equal(digest, hmac_header)

    def _state_cookie(self, nonce: str) -> str:
        return f"{nonce}.{self._sign(nonce)}"

    def _nonce_from_cookie(self, cookie: str | None) -> str | None:
        if not cookie or "." not in cookie:
            return None
        nonce, signature = cookie.rsplit(".", 1)
        if not _safe_equal(self._sign(nonce), signature):
            return None
        return nonce

    # --- oauth -----------------------------------------------------------

    def begin(self, shop: str, callback_path: str, is_online: bool) -> AuthRedirect:
        """Build the consent-screen URL and the state cookie that goes with it."""
        shop = sanitize_shop(shop)
        nonce = secrets.token_hex(16)
        params = [
            ("client_id", self.settings.SHOPIFY_API_KEY),
            ("scope", ",".join(self.settings.shopify_scopes)),
            ("redirect_uri", f"{self.settings.HOST.rstrip('/')}{callback_path}"),
            ("state", nonce),
        ]
        if is_online:
            params.append(("grant_options[]", "per-user"))
        url = f"https://{shop}/admin/oauth/authorize?{urlencode(params)}"
        return AuthRedirect(url=url, state_cookie=self._state_cookie(nonce))

    async def callback(
        self, query: Mapping[str, str], state_cookie: str | None, is_online: bool
    ) -> OAuthSession:
        """Validate the redirect back from Shopify and exchange the code."""
        shop = sanitize_shop(query.get("shop"))
        if not self.validate_query_hmac(query):
            raise InvalidToken("OAuth callback could not be verified", reason="bad callback hmac")
        nonce = self._nonce_from_cookie(state_cookie)
        state = query.get("state")
        if nonce is None or state is None or not _safe_equal(nonce, state):
            raise InvalidToken("OAuth callback could not be verified", reason="state mismatch")
        code = query.get("code")
        if not code:
            raise InvalidToken("OAuth callback could not be verified", reason="missing code")

        body = await self._request(
            "POST",
            f"https://{shop}/admin/oauth/access_token",
            json={
                "client_id": self.settings.SHOPIFY_API_KEY,
                "client_secret": self.settings.SHOPIFY_API_SECRET,
                "code": code,
            },
        )
        access_token = body.get("access_token")
        if not access_token:
            raise ExternalExchangeFailure(reason="token response without access_token")

        expires = None
        if is_online and body.get("expires_in"):
            expires = int(time.time()) + int(body["expires_in"])

        return OAuthSession(
            id=online_session_id(shop) if is_online else offline_session_id(shop),
            shop=shop,
            state=state,
            is_online=is_online,
            access_token=access_token,
            scope=body.get("scope"),
            expires=expires,
            online_access_info=body.get("associated_user") if is_online else None,
        )

    # --- admin api -------------------------------------------------------

    def _admin_url(self, shop: str, resource: str) -> str:
        return f"https://{shop}/admin/api/{self.settings.SHOPIFY_API_VERSION}/{resource}.json"

    async def get_shop(self, session: OAuthSession) -> dict[str, Any]:
        body = await self._request(
            "GET",
            self._admin_url(session.shop, "shop"),
            headers={"X-Shopify-Access-Token": session.access_token},
        )
        try:
            return body["shop"]
        except KeyError:
            raise ExternalExchangeFailure(reason="shop response without shop object") from None

    async def register_webhooks(self, session: OAuthSession) -> list[str]:
        """Subscribe the shop to every configured topic; returns the topics registered."""
        address = f"{self.settings.HOST.rstrip('/')}/api/shopify/webhooks"
        registered = []
        for topic in self.settings.shopify_webhook_topics:
            body = await self._request(
                "POST",
                self._admin_url(session.shop, "webhooks"),
                headers={"X-Shopify-Access-Token": session.access_token},
                json={"webhook": {"topic": topic, "address": address, "format": "json"}},
                accept=(422,),
            )
            # a 422 is only acceptable when the address is already subscribed
            if "webhook" not in body and not _already_subscribed(body.get("errors")):
                raise ExternalExchangeFailure(reason=f"webhook {topic} rejected: {body.get('errors')}")
            registered.append(topic)
        log.info("shopify_webhooks_registered", shop=session.shop, topics=registered)
        return registered

    async def _request(self, method: str, url: str, accept: tuple[int, ...] = (), **kwargs) -> dict[str, Any]:
        try:
            response = await run_in_threadpool(
                self.http.request, method, url, timeout=self.settings.SHOPIFY_HTTP_TIMEOUT, **kwargs
            )
        except requests.RequestException as exc:
            raise ExternalExchangeFailure(reason=f"{method} {url}: {exc}") from exc

        if response.status_code in accept:
            try:
                return response.json()
            except ValueError:
                return {}
        if response.status_code >= 400:
            raise ExternalExchangeFailure(reason=f"{method} {url}: HTTP {response.status_code}")
        try:
            return response.json()
        except ValueError as exc:
            raise ExternalExchangeFailure(reason=f"{method} {url}: invalid JSON") from exc
