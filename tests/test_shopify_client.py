"""Tests for the Shopify OAuth client with the HTTP transport mocked out."""

import base64
import hashlib
import hmac
import json
import time
from urllib.parse import parse_qs, urlparse

import pytest
import requests

from conftest import SHOP, make_response, shop_body, signed_query
from shopauth.core.deps import get_http_session, get_shopify_client
from shopauth.core.errors import ExternalExchangeFailure, InvalidToken
from shopauth.shopify.client import InvalidShopDomain, OAuthSession, sanitize_shop


def matching_state(client, is_online=False, **extra):
    redirect = client.begin(SHOP, "/api/shopify/auth/tokens", is_online)
    nonce = redirect.state_cookie.rsplit(".", 1)[0]
    query = signed_query({"shop": SHOP, "code": "abc", "state": nonce, **extra})
    return query, redirect.state_cookie


def offline_session():
    return OAuthSession(
        id=f"offline_{SHOP}", shop=SHOP, state="n", is_online=False, access_token="shpat_offline"
    )


class TestSanitizeShop:
    def test_accepts_myshopify_domain(self):
        assert sanitize_shop(" Foo-Bar.myshopify.com ") == "foo-bar.myshopify.com"

    @pytest.mark.parametrize(
        "shop", [None, "", "foo.com", "evil.com/foo.myshopify.com", "foo.myshopify.com.evil.com"]
    )
    def test_rejects_other_hosts(self, shop):
        with pytest.raises(InvalidShopDomain) as exc_info:
            sanitize_shop(shop)
        assert exc_info.value.status_code == 400


class TestBegin:
    def test_consent_url_carries_client_scopes_and_state(self, shopify_client, settings):
        redirect = shopify_client.begin(SHOP, "/api/shopify/auth/tokens", is_online=False)

        url = urlparse(redirect.url)
        params = parse_qs(url.query)
        assert url.netloc == SHOP
        assert url.path == "/admin/oauth/authorize"
        assert params["client_id"] == [settings.SHOPIFY_API_KEY]
        assert params["redirect_uri"] == ["https://app.example.com/api/shopify/auth/tokens"]
        assert params["scope"] == [",".join(settings.shopify_scopes)]
        assert "grant_options[]" not in params
        assert redirect.state_cookie.startswith(params["state"][0] + ".")

    def test_online_grant_requests_per_user_access(self, shopify_client):
        redirect = shopify_client.begin(SHOP, "/api/shopify/auth/callback", is_online=True)

        assert parse_qs(urlparse(redirect.url).query)["grant_options[]"] == ["per-user"]

    def test_each_begin_uses_a_fresh_nonce(self, shopify_client):
        first = shopify_client.begin(SHOP, "/cb", is_online=False)
        second = shopify_client.begin(SHOP, "/cb", is_online=False)

        assert first.state_cookie != second.state_cookie

    def test_invalid_shop_rejected(self, shopify_client):
        with pytest.raises(InvalidShopDomain):
            shopify_client.begin("example.com", "/cb", is_online=False)


class TestQueryHmac:
    def test_valid_signature(self, shopify_client):
        assert shopify_client.validate_query_hmac(signed_query({"shop": SHOP}))

    def test_tampered_parameter(self, shopify_client):
        query = signed_query({"shop": SHOP, "code": "abc"})
        query["code"] = "xyz"

        assert not shopify_client.validate_query_hmac(query)

    def test_stale_timestamp(self, shopify_client):
        old = str(int(time.time()) - 600)

        assert not shopify_client.validate_query_hmac(signed_query({"shop": SHOP, "timestamp": old}))

    def test_missing_hmac(self, shopify_client):
        assert not shopify_client.validate_query_hmac({"shop": SHOP})

    def test_non_ascii_hmac(self, shopify_client):
        query = signed_query({"shop": SHOP})
        query["hmac"] = "\u00e9" * 64

        assert not shopify_client.validate_query_hmac(query)


class TestCallback:
    @pytest.mark.asyncio
    async def test_offline_exchange(self, shopify_client, http):
        http.request.return_value = make_response({"access_token": "shpat_offline", "scope": "read_products"})
        query, cookie = matching_state(shopify_client)

        session = await shopify_client.callback(query, cookie, is_online=False)

        assert session.id == f"offline_{SHOP}"
        assert session.shop == SHOP
        assert session.access_token == "shpat_offline"
        assert session.scope == "read_products"
        assert session.expires is None
        assert session.online_access_info is None

        method, url = http.request.call_args.args
        kwargs = http.request.call_args.kwargs
        assert method == "POST"
        assert url == f"https://{SHOP}/admin/oauth/access_token"
        assert kwargs["json"]["code"] == "abc"
        assert kwargs["timeout"] > 0

    @pytest.mark.asyncio
    async def test_online_exchange(self, shopify_client, http):
        associated = {"id": 42, "email": "staff@foo.com"}
        http.request.return_value = make_response(
            {"access_token": "shpua_online", "scope": "read_products", "expires_in": 86399,
             "associated_user": associated}
        )
        query, cookie = matching_state(shopify_client, is_online=True)

        session = await shopify_client.callback(query, cookie, is_online=True)

        assert session.id.startswith(f"{SHOP}_")
        assert session.is_online
        assert session.expires > int(time.time())
        assert session.online_access_info == associated
        record = session.to_record(include_access_token=False)
        assert record["accesstoken"] is None
        assert json.loads(record["onlineaccessinfo"]) == associated

    @pytest.mark.asyncio
    async def test_bad_hmac_rejected_without_exchange(self, shopify_client, http):
        query, cookie = matching_state(shopify_client)
        query["hmac"] = "0" * 64

        with pytest.raises(InvalidToken) as exc_info:
            await shopify_client.callback(query, cookie, is_online=False)
        assert exc_info.value.reason == "bad callback hmac"
        http.request.assert_not_called()

    @pytest.mark.asyncio
    async def test_state_mismatch_rejected(self, shopify_client, http):
        query, _ = matching_state(shopify_client)
        other_cookie = shopify_client.begin(SHOP, "/cb", is_online=False).state_cookie

        with pytest.raises(InvalidToken) as exc_info:
            await shopify_client.callback(query, other_cookie, is_online=False)
        assert exc_info.value.reason == "state mismatch"
        http.request.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_cookie_rejected(self, shopify_client):
        query, _ = matching_state(shopify_client)

        with pytest.raises(InvalidToken):
            await shopify_client.callback(query, None, is_online=False)

    @pytest.mark.asyncio
    async def test_forged_cookie_rejected(self, shopify_client):
        query, cookie = matching_state(shopify_client)
        nonce = cookie.rsplit(".", 1)[0]

        with pytest.raises(InvalidToken):
            await shopify_client.callback(query, f"{nonce}.forged", is_online=False)

    @pytest.mark.asyncio
    async def test_non_ascii_state_and_cookie_rejected(self, shopify_client, http):
        _, cookie = matching_state(shopify_client)
        query = signed_query({"shop": SHOP, "code": "abc", "state": "été"})

        with pytest.raises(InvalidToken):
            await shopify_client.callback(query, cookie, is_online=False)
        with pytest.raises(InvalidToken):
            await shopify_client.callback(query, "été.é", is_online=False)
        http.request.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_code_rejected(self, shopify_client):
        redirect = shopify_client.begin(SHOP, "/cb", is_online=False)
        nonce = redirect.state_cookie.rsplit(".", 1)[0]
        query = signed_query({"shop": SHOP, "state": nonce})

        with pytest.raises(InvalidToken) as exc_info:
            await shopify_client.callback(query, redirect.state_cookie, is_online=False)
        assert exc_info.value.reason == "missing code"

    @pytest.mark.asyncio
    async def test_http_error_is_external_failure(self, shopify_client, http):
        http.request.return_value = make_response({"error": "invalid_request"}, status_code=400)
        query, cookie = matching_state(shopify_client)

        with pytest.raises(ExternalExchangeFailure) as exc_info:
            await shopify_client.callback(query, cookie, is_online=False)
        assert exc_info.value.status_code == 502

    @pytest.mark.asyncio
    async def test_transport_error_is_external_failure(self, shopify_client, http):
        http.request.side_effect = requests.ConnectionError("unreachable")
        query, cookie = matching_state(shopify_client)

        with pytest.raises(ExternalExchangeFailure):
            await shopify_client.callback(query, cookie, is_online=False)

    @pytest.mark.asyncio
    async def test_response_without_token_is_external_failure(self, shopify_client, http):
        http.request.return_value = make_response({"scope": "read_products"})
        query, cookie = matching_state(shopify_client)

        with pytest.raises(ExternalExchangeFailure):
            await shopify_client.callback(query, cookie, is_online=False)


class TestAdminApi:
    @pytest.mark.asyncio
    async def test_get_shop_uses_session_token(self, shopify_client, http, settings):
        http.request.return_value = make_response(shop_body())

        shop = await shopify_client.get_shop(offline_session())

        assert shop["email"] == "owner@foo.com"
        method, url = http.request.call_args.args
        assert method == "GET"
        assert url == f"https://{SHOP}/admin/api/{settings.SHOPIFY_API_VERSION}/shop.json"
        assert http.request.call_args.kwargs["headers"] == {"X-Shopify-Access-Token": "shpat_offline"}

    @pytest.mark.asyncio
    async def test_get_shop_without_shop_object(self, shopify_client, http):
        http.request.return_value = make_response({"errors": "nope"})

        with pytest.raises(ExternalExchangeFailure):
            await shopify_client.get_shop(offline_session())

    @pytest.mark.asyncio
    async def test_register_webhooks_posts_each_topic(self, shopify_client, http, settings):
        http.request.return_value = make_response({"webhook": {"id": 1}}, status_code=201)

        topics = await shopify_client.register_webhooks(offline_session())

        assert topics == settings.shopify_webhook_topics
        payload = http.request.call_args.kwargs["json"]["webhook"]
        assert payload["address"] == "https://app.example.com/api/shopify/webhooks"

    @pytest.mark.asyncio
    async def test_register_webhooks_tolerates_existing_subscription(self, shopify_client, http):
        http.request.return_value = make_response(
            {"errors": {"address": ["for this topic has already been taken"]}}, status_code=422
        )

        assert await shopify_client.register_webhooks(offline_session())

    @pytest.mark.asyncio
    async def test_register_webhooks_rejects_other_validation_errors(self, shopify_client, http):
        http.request.return_value = make_response(
            {"errors": {"topic": ["Invalid topic specified."]}}, status_code=422
        )

        with pytest.raises(ExternalExchangeFailure):
            await shopify_client.register_webhooks(offline_session())

    @pytest.mark.asyncio
    async def test_register_webhooks_rejects_unexplained_422(self, shopify_client, http):
        http.request.return_value = make_response({}, status_code=422)

        with pytest.raises(ExternalExchangeFailure):
            await shopify_client.register_webhooks(offline_session())

    @pytest.mark.asyncio
    async def test_register_webhooks_failure(self, shopify_client, http):
        http.request.return_value = make_response({}, status_code=500)

        with pytest.raises(ExternalExchangeFailure):
            await shopify_client.register_webhooks(offline_session())


class TestWebhookSignature:
    def test_valid_signature(self, shopify_client, settings):
        body = b'{"id": 1}'
        digest = hmac.new(settings.SHOPIFY_API_SECRET.encode(), body, hashlib.sha256).digest()

        assert shopify_client.verify_webhook(body, base64.b64encode(digest).decode())

    def test_invalid_signature(self, shopify_client):
        assert not shopify_client.verify_webhook(b"{}", "bogus")
        assert not shopify_client.verify_webhook(b"{}", None)

    def test_non_ascii_signature_is_rejected(self, shopify_client):
        assert not shopify_client.verify_webhook(b"{}", "\u00e9")


class TestSharedHttpSession:
    def test_clients_reuse_one_connection_pool(self, settings):
        first = get_shopify_client(settings, get_http_session())
        second = get_shopify_client(settings, get_http_session())

        assert isinstance(first.http, requests.Session)
        assert first.http is second.http
