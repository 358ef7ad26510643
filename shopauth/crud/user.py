# shopauth/crud/user.py
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Any, Optional, Sequence
from shopauth.models.user import User


class CRUDUser:
    async def get_by_id(self, db: AsyncSession, user_id: int) -> Optional[User]:
        q = select(User).where(User.id == user_id)
        res = await db.execute(q)
        return res.scalars().first()

    async def get_by_email(self, db: AsyncSession, email: str) -> Optional[User]:
        q = select(User).where(User.email == email)
        res = await db.execute(q)
        return res.scalars().first()

    async def get_by_organization(self, db: AsyncSession, organization: str) -> Optional[User]:
        q = select(User).where(User.organization == organization).order_by(User.id)
        res = await db.execute(q)
        return res.scalars().first()

    async def list(self, db: AsyncSession, *, offset: int = 0, limit: int = 100) -> Sequence[User]:
        q = select(User).order_by(User.id).offset(offset).limit(limit)
        res = await db.execute(q)
        return res.scalars().all()

    async def create(self, db: AsyncSession, **fields: Any) -> User:
        user = User(**fields)
        db.add(user)
        await db.commit()
        await db.refresh(user)
        return user

    async def update(self, db: AsyncSession, user: User, **fields: Any) -> User:
        for name, value in fields.items():
            setattr(user, name, value)
        await db.commit()
        await db.refresh(user)
        return user

    async def delete(self, db: AsyncSession, user_id: int) -> bool:
        res = await db.execute(delete(User).where(User.id == user_id))
        await db.commit()
        return res.rowcount > 0

user = CRUDUser()
