# shopauth/services/shopify_session.py
from fastapi import status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from shopauth.crud.shopify_session import CRUDShopifySession, shopify_session as session_crud
from shopauth.logging import get_logger
from shopauth.schemas.response import ServiceResponse
from shopauth.schemas.shopify_session import (
    ShopifySessionCreate,
    ShopifySessionRead,
    ShopifySessionUpdate,
)

log = get_logger(__name__)


class ShopifySessionService:
    """Envelope-returning operations over stored Shopify OAuth sessions.

    The store itself returns plain rows, lists and counts and lets storage
    errors propagate; this layer is the only place they become envelopes.
    An empty result for a shop is a 404 with ``data == []``, a storage
    failure is a 500 with ``data is None``.
    """

    def __init__(self, db: AsyncSession, store: CRUDShopifySession = session_crud):
        self.db = db
        self.store = store

    async def _storage_failure(self, event: str, message: str, exc: SQLAlchemyError, data=None, **context):
        await self.db.rollback()
        log.error(event, error=str(exc), **context)
        return ServiceResponse.failure(message, data, status.HTTP_500_INTERNAL_SERVER_ERROR)

    async def store_session(self, session_in: ShopifySessionCreate) -> ServiceResponse:
        try:
            row, created = await self.store.upsert(self.db, session_in.model_dump())
        except SQLAlchemyError as exc:
            return await self._storage_failure(
                "store_session_failed", "An error occurred while storing session.", exc, shop=session_in.shop
            )

        data = ShopifySessionRead.model_validate(row)
        if not created:
            log.info("shopify_session_overwritten", session_id=row.id, shop=row.shop)
            return ServiceResponse.ok("Session already exists", data, status.HTTP_200_OK)
        log.info("shopify_session_stored", session_id=row.id, shop=row.shop)
        return ServiceResponse.ok("Session stored successfully", data, status.HTTP_201_CREATED)

    async def load_session(self, session_id: str) -> ServiceResponse:
        try:
            row = await self.store.get(self.db, session_id)
        except SQLAlchemyError as exc:
            return await self._storage_failure(
                "load_session_failed", "An error occurred while loading session.", exc, session_id=session_id
            )
        if row is None:
            return ServiceResponse.failure("Session not found", status_code=status.HTTP_404_NOT_FOUND)
        return ServiceResponse.ok("Session loaded successfully", ShopifySessionRead.model_validate(row))

    async def load_sessions_by_shop(self, shop: str) -> ServiceResponse:
        try:
            rows = await self.store.list_by_shop(self.db, shop)
        except SQLAlchemyError as exc:
            return await self._storage_failure(
                "load_sessions_by_shop_failed", "An error occurred while loading sessions.", exc, shop=shop
            )
        if not rows:
            return ServiceResponse.failure("No sessions found for shop", [], status.HTTP_404_NOT_FOUND)
        return ServiceResponse.ok(
            "Sessions loaded successfully", [ShopifySessionRead.model_validate(r) for r in rows]
        )

    async def update_session(self, session_id: str, session_in: ShopifySessionUpdate) -> ServiceResponse:
        try:
            row = await self.store.update(self.db, session_id, session_in.model_dump(exclude_unset=True))
        except SQLAlchemyError as exc:
            return await self._storage_failure(
                "update_session_failed", "An error occurred while updating session.", exc, session_id=session_id
            )
        if row is None:
            return ServiceResponse.failure("Session not found", status_code=status.HTTP_404_NOT_FOUND)
        log.info("shopify_session_updated", session_id=session_id)
        return ServiceResponse.ok("Session updated successfully", ShopifySessionRead.model_validate(row))

    async def delete_session(self, session_id: str) -> ServiceResponse:
        try:
            deleted = await self.store.delete(self.db, session_id)
        except SQLAlchemyError as exc:
            return await self._storage_failure(
                "delete_session_failed", "An error occurred while deleting session.", exc, False, session_id=session_id
            )
        if not deleted:
            return ServiceResponse.failure("Session not found", False, status.HTTP_404_NOT_FOUND)
        log.info("shopify_session_deleted", session_id=session_id)
        return ServiceResponse.ok("Session deleted successfully", True)

    async def delete_sessions_by_shop(self, shop: str) -> ServiceResponse:
        try:
            count = await self.store.delete_by_shop(self.db, shop)
        except SQLAlchemyError as exc:
            return await self._storage_failure(
                "delete_sessions_by_shop_failed", "An error occurred while deleting sessions.", exc, shop=shop
            )
        log.info("shopify_sessions_deleted", shop=shop, count=count)
        return ServiceResponse.ok(f"Deleted {count} sessions", count)

    async def session_exists(self, session_id: str) -> ServiceResponse:
        try:
            exists = await self.store.exists(self.db, session_id)
        except SQLAlchemyError as exc:
            return await self._storage_failure(
                "session_exists_failed", "An error occurred while checking session.", exc, False, session_id=session_id
            )
        return ServiceResponse.ok("Session check completed", exists)
