# shopauth/routes/shopify.py
from typing import Awaitable, Callable

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import RedirectResponse, Response

from shopauth.core.config import Settings, get_settings
from shopauth.core.deps import get_current_user, get_oauth_service, get_session_service
from shopauth.core.errors import ServiceError
from shopauth.logging import get_logger
from shopauth.schemas.response import ServiceResponse
from shopauth.schemas.shopify_session import ShopifySessionCreate, ShopifySessionUpdate
from shopauth.services.shopify_oauth import ShopifyOAuthService
from shopauth.services.shopify_session import ShopifySessionService
from shopauth.shopify.client import STATE_COOKIE, STATE_COOKIE_MAX_AGE, AuthRedirect

log = get_logger(__name__)

router = APIRouter(prefix="/api/shopify", tags=["Shopify"])
sessions_router = APIRouter(
    prefix="/api/shopify/sessions", tags=["Shopify sessions"], dependencies=[Depends(get_current_user)]
)


def _consent_redirect(redirect: AuthRedirect, settings: Settings) -> RedirectResponse:
    response = RedirectResponse(redirect.url, status_code=status.HTTP_302_FOUND)
    response.set_cookie(
        STATE_COOKIE,
        redirect.state_cookie,
        max_age=STATE_COOKIE_MAX_AGE,
        httponly=True,
        secure=settings.HOST.startswith("https://"),
        samesite="lax",
    )
    return response


async def _oauth_step(step: str, handler: Callable[[], Awaitable[Response]]) -> Response:
    """Run one leg of the OAuth flow, turning any failure into an envelope."""
    try:
        return await handler()
    except ServiceError as exc:
        log.warning("shopify_oauth_failed", step=step, error=type(exc).__name__, reason=exc.reason)
        return ServiceResponse.from_error(exc).to_response()
    except Exception:
        log.exception("shopify_oauth_crashed", step=step)
        return ServiceResponse.failure(
            f"An error occurred during {step}", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR
        ).to_response()


@router.get("")
async def shopify_init(request: Request, oauth: ShopifyOAuthService = Depends(get_oauth_service)):
    async def handler():
        return RedirectResponse(oauth.init_redirect(request.query_params), status_code=status.HTTP_302_FOUND)

    return await _oauth_step("shopify init", handler)


@router.get("/auth")
async def auth_redirect(
    shop: str,
    oauth: ShopifyOAuthService = Depends(get_oauth_service),
    settings: Settings = Depends(get_settings),
):
    async def handler():
        return _consent_redirect(oauth.begin_offline(shop), settings)

    return await _oauth_step("auth redirect", handler)


@router.get("/auth/tokens")
async def auth_tokens(
    request: Request,
    oauth: ShopifyOAuthService = Depends(get_oauth_service),
    settings: Settings = Depends(get_settings),
):
    async def handler():
        redirect = await oauth.complete_offline(request.query_params, request.cookies.get(STATE_COOKIE))
        return _consent_redirect(redirect, settings)

    return await _oauth_step("auth tokens", handler)


@router.get("/auth/callback")
async def auth_callback(request: Request, oauth: ShopifyOAuthService = Depends(get_oauth_service)):
    async def handler():
        url = await oauth.complete_online(request.query_params, request.cookies.get(STATE_COOKIE))
        response = RedirectResponse(url, status_code=status.HTTP_302_FOUND)
        response.delete_cookie(STATE_COOKIE)
        return response

    return await _oauth_step("callback handling", handler)


@router.post("/webhooks")
async def webhooks(request: Request, oauth: ShopifyOAuthService = Depends(get_oauth_service)):
    raw_body = await request.body()
    result = await oauth.handle_webhook(
        request.headers.get("X-Shopify-Topic"),
        request.headers.get("X-Shopify-Shop-Domain"),
        raw_body,
        request.headers.get("X-Shopify-Hmac-Sha256"),
    )
    return result.to_response()


# --- session storage ---------------------------------------------------------

@sessions_router.post("")
async def create_session(
    session_in: ShopifySessionCreate, sessions: ShopifySessionService = Depends(get_session_service)
):
    return (await sessions.store_session(session_in)).to_response()


@sessions_router.get("/shop/{shop}")
async def get_sessions_by_shop(shop: str, sessions: ShopifySessionService = Depends(get_session_service)):
    return (await sessions.load_sessions_by_shop(shop)).to_response()


@sessions_router.delete("/shop/{shop}")
async def delete_sessions_by_shop(shop: str, sessions: ShopifySessionService = Depends(get_session_service)):
    return (await sessions.delete_sessions_by_shop(shop)).to_response()


@sessions_router.get("/{session_id}/exists")
async def check_session(session_id: str, sessions: ShopifySessionService = Depends(get_session_service)):
    return (await sessions.session_exists(session_id)).to_response()


@sessions_router.get("/{session_id}")
async def get_session(session_id: str, sessions: ShopifySessionService = Depends(get_session_service)):
    return (await sessions.load_session(session_id)).to_response()


@sessions_router.put("/{session_id}")
async def update_session(
    session_id: str,
    session_in: ShopifySessionUpdate,
    sessions: ShopifySessionService = Depends(get_session_service),
):
    return (await sessions.update_session(session_id, session_in)).to_response()


@sessions_router.delete("/{session_id}")
async def delete_session(session_id: str, sessions: ShopifySessionService = Depends(get_session_service)):
    return (await sessions.delete_session(session_id)).to_response()
