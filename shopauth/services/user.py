# shopauth/services/user.py
from fastapi import status
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from shopauth.core.security import get_password_hash
from shopauth.crud.user import CRUDUser, user as user_crud
from shopauth.logging import get_logger
from shopauth.schemas.response import ServiceResponse
from shopauth.schemas.user import UserRead, UserUpdate

log = get_logger(__name__)


class UserService:
    def __init__(self, db: AsyncSession, users: CRUDUser = user_crud):
        self.db = db
        self.users = users

    def _server_error(self, message: str) -> ServiceResponse:
        return ServiceResponse.failure(message, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)

    async def find_all(self, offset: int = 0, limit: int = 100) -> ServiceResponse:
        try:
            users = await self.users.list(self.db, offset=offset, limit=limit)
        except SQLAlchemyError as exc:
            log.error("list_users_failed", error=str(exc))
            return self._server_error("An error occurred while retrieving users.")
        return ServiceResponse.ok("Users found", [UserRead.model_validate(u) for u in users])

    async def find_by_id(self, user_id: int) -> ServiceResponse:
        try:
            user = await self.users.get_by_id(self.db, user_id)
        except SQLAlchemyError as exc:
            log.error("find_user_failed", user_id=user_id, error=str(exc))
            return self._server_error("An error occurred while finding user.")
        if user is None:
            return ServiceResponse.failure("User not found", status_code=status.HTTP_404_NOT_FOUND)
        return ServiceResponse.ok("User found", UserRead.model_validate(user))

    async def find_by_email(self, email: str) -> ServiceResponse:
        try:
            user = await self.users.get_by_email(self.db, email)
        except SQLAlchemyError as exc:
            log.error("find_user_by_email_failed", error=str(exc))
            return self._server_error("An error occurred while finding user.")
        if user is None:
            return ServiceResponse.failure("User not found", status_code=status.HTTP_404_NOT_FOUND)
        return ServiceResponse.ok("User found", UserRead.model_validate(user))

    async def find_by_organization(self, organization: str) -> ServiceResponse:
        try:
            user = await self.users.get_by_organization(self.db, organization)
        except SQLAlchemyError as exc:
            log.error("find_user_by_organization_failed", organization=organization, error=str(exc))
            return self._server_error("An error occurred while finding user.")
        if user is None:
            return ServiceResponse.failure("User not found", status_code=status.HTTP_404_NOT_FOUND)
        return ServiceResponse.ok("User found", UserRead.model_validate(user))

    async def update_user(self, user_id: int, user_in: UserUpdate) -> ServiceResponse:
        changes = user_in.model_dump(exclude_unset=True, exclude_none=True)
        try:
            user = await self.users.get_by_id(self.db, user_id)
            if user is None:
                return ServiceResponse.failure("User not found", status_code=status.HTTP_404_NOT_FOUND)

            if "email" in changes:
                other = await self.users.get_by_email(self.db, changes["email"])
                if other is not None and other.id != user_id:
                    return ServiceResponse.failure("Email already taken")

            if "password" in changes:
                changes["hashed_password"] = get_password_hash(changes.pop("password"))

            user = await self.users.update(self.db, user, **changes)
        except IntegrityError:
            await self.db.rollback()
            return ServiceResponse.failure("Email already taken")
        except SQLAlchemyError as exc:
            await self.db.rollback()
            log.error("update_user_failed", user_id=user_id, error=str(exc))
            return self._server_error("An error occurred while updating user.")

        log.info("user_updated", user_id=user_id, fields=sorted(changes))
        return ServiceResponse.ok("User updated successfully", UserRead.model_validate(user))

    async def delete_user(self, user_id: int) -> ServiceResponse:
        try:
            deleted = await self.users.delete(self.db, user_id)
        except SQLAlchemyError as exc:
            await self.db.rollback()
            log.error("delete_user_failed", user_id=user_id, error=str(exc))
            return self._server_error("An error occurred while deleting user.")
        if not deleted:
            return ServiceResponse.failure("User not found", False, status.HTTP_404_NOT_FOUND)
        log.info("user_deleted", user_id=user_id)
        return ServiceResponse.ok("User deleted successfully", True)
