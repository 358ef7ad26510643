# shopauth/crud/shopify_session.py
from sqlalchemy import delete, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Any, Optional, Sequence
from shopauth.models.shopify_session import ShopifySession

# columns overwritten when the same session id is stored again
UPSERT_COLUMNS = ("accesstoken", "scope", "shop", "expires", "state", "isonline", "onlineaccessinfo")

_INSERT_BY_DIALECT = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class CRUDShopifySession:
    async def get(self, db: AsyncSession, session_id: str) -> Optional[ShopifySession]:
        q = select(ShopifySession).where(ShopifySession.id == session_id)
        res = await db.execute(q)
        return res.scalars().first()

    async def list_by_shop(self, db: AsyncSession, shop: str) -> Sequence[ShopifySession]:
        q = select(ShopifySession).where(ShopifySession.shop == shop).order_by(ShopifySession.id)
        res = await db.execute(q)
        return res.scalars().all()

    async def exists(self, db: AsyncSession, session_id: str) -> bool:
        q = select(ShopifySession.id).where(ShopifySession.id == session_id)
        res = await db.execute(q)
        return res.first() is not None

    async def upsert(self, db: AsyncSession, values: dict[str, Any]) -> tuple[ShopifySession, bool]:
        """Insert or overwrite a session row in a single statement.

        Returns the stored row and whether it was newly created. Concurrent
        callbacks for the same id are resolved by the database's own
        ON CONFLICT handling.
        """
        dialect = db.get_bind().dialect.name
        try:
            insert = _INSERT_BY_DIALECT[dialect]
        except KeyError:
            raise NotImplementedError(f"session upsert is not supported on {dialect}") from None

        existed = await self.exists(db, values["id"])
        stmt = insert(ShopifySession).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[ShopifySession.id],
            set_={name: stmt.excluded[name] for name in UPSERT_COLUMNS if name in values},
        ).returning(ShopifySession)
        res = await db.execute(stmt, execution_options={"populate_existing": True})
        row = res.scalars().one()
        await db.commit()
        return row, not existed

    async def update(self, db: AsyncSession, session_id: str, values: dict[str, Any]) -> Optional[ShopifySession]:
        if not values:
            return await self.get(db, session_id)
        stmt = (
            update(ShopifySession)
            .where(ShopifySession.id == session_id)
            .values(**values)
            .returning(ShopifySession)
        )
        res = await db.execute(stmt, execution_options={"populate_existing": True})
        row = res.scalars().first()
        await db.commit()
        return row

    async def delete(self, db: AsyncSession, session_id: str) -> bool:
        res = await db.execute(delete(ShopifySession).where(ShopifySession.id == session_id))
        await db.commit()
        return res.rowcount > 0

    async def delete_by_shop(self, db: AsyncSession, shop: str) -> int:
        res = await db.execute(delete(ShopifySession).where(ShopifySession.shop == shop))
        await db.commit()
        return res.rowcount

shopify_session = CRUDShopifySession()
