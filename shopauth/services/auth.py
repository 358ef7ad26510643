# shopauth/services/auth.py
from fastapi import status
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from shopauth.core.errors import Conflict, InvalidCredentials, InvalidToken, ServiceError
from shopauth.core.security import TokenService, get_password_hash, verify_password
from shopauth.crud.user import CRUDUser, user as user_crud
from shopauth.logging import get_logger
from shopauth.models.user import User
from shopauth.schemas.response import ServiceResponse
from shopauth.schemas.user import LoginResult, TokenPayload, UserCreate, UserRead, VerifiedToken

log = get_logger(__name__)


class AuthService:
    """Local registration, credential checks and bearer token verification."""

    def __init__(self, db: AsyncSession, tokens: TokenService, users: CRUDUser = user_crud):
        self.db = db
        self.tokens = tokens
        self.users = users

    async def verify_credentials(self, email: str, password: str) -> User:
        """Return the user owning `email` if `password` matches its stored hash.

        Unknown email, wrong password and OAuth-only accounts all raise the
        same InvalidCredentials; only the logged reason differs.
        """
        user = await self.users.get_by_email(self.db, email)
        if user is None:
            verify_password(password, None)
            raise InvalidCredentials(reason="no_such_user")
        if user.hashed_password is None:
            verify_password(password, None)
            raise InvalidCredentials(reason="no_local_password")
        if not verify_password(password, user.hashed_password):
            raise InvalidCredentials(reason="password_mismatch")
        return user

    async def register(self, user_in: UserCreate) -> ServiceResponse:
        try:
            if await self.users.get_by_email(self.db, user_in.email) is not None:
                raise Conflict()
            user = await self.users.create(
                self.db,
                first_name=user_in.first_name,
                last_name=user_in.last_name,
                email=user_in.email,
                organization=user_in.organization,
                hashed_password=get_password_hash(user_in.password),
            )
        except Conflict as exc:
            log.info("register_rejected", reason="email_taken")
            return ServiceResponse.from_error(exc)
        except IntegrityError:
            # lost a race against a concurrent registration for the same email
            await self.db.rollback()
            return ServiceResponse.from_error(Conflict())
        except SQLAlchemyError as exc:
            await self.db.rollback()
            log.error("register_failed", error=str(exc))
            return ServiceResponse.failure(
                "An error occurred while registering user.",
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )

        log.info("user_registered", user_id=user.id)
        return ServiceResponse.ok(
            "User created successfully", UserRead.model_validate(user), status.HTTP_201_CREATED
        )

    async def login(self, email: str, password: str) -> ServiceResponse:
        try:
            user = await self.verify_credentials(email, password)
        except InvalidCredentials as exc:
            log.info("login_rejected", reason=exc.reason)
            return ServiceResponse.from_error(exc)
        except SQLAlchemyError as exc:
            log.error("login_failed", error=str(exc))
            return ServiceResponse.failure(
                "An error occurred while logging in.",
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )

        token = self.tokens.create_access_token(user)
        result = LoginResult(user=UserRead.model_validate(user), token=token)
        return ServiceResponse.ok("User logged in successfully", result)

    async def authenticate(self, token: str) -> tuple[User, TokenPayload]:
        """Decode `token` and load the user it was issued to."""
        claims = self.tokens.decode_access_token(token)
        try:
            user_id = int(claims.sub)
        except ValueError as exc:
            raise InvalidToken(reason="non-numeric subject") from exc
        user = await self.users.get_by_id(self.db, user_id)
        if user is None:
            raise InvalidToken(reason="subject no longer exists")
        return user, claims

    async def verify_token(self, token: str) -> ServiceResponse:
        try:
            user, claims = await self.authenticate(token)
        except ServiceError as exc:
            log.info("token_rejected", reason=exc.reason)
            return ServiceResponse.from_error(exc)
        except SQLAlchemyError as exc:
            log.error("verify_token_failed", error=str(exc))
            return ServiceResponse.failure(
                "An error occurred while verifying token.",
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )
        return ServiceResponse.ok(
            "Token is valid", VerifiedToken(user=UserRead.model_validate(user), claims=claims)
        )
