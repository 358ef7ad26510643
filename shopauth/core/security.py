# shopauth/core/security.py

from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import bcrypt
from jose import JWTError, jwt
from jose.exceptions import ExpiredSignatureError
from pydantic import ValidationError

from shopauth.core.config import Settings
from shopauth.core.errors import InvalidToken
from shopauth.schemas.user import TokenPayload

# checked when the email is unknown so both failure paths cost one bcrypt round
_DUMMY_HASH = bcrypt.hashpw(b"no-such-user-placeholder", bcrypt.gensalt()).decode("utf-8")


def get_password_hash(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=12)).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str | None) -> bool:
    """Constant-time check of a password against a bcrypt hash.

    A missing hash is still compared against a throwaway hash and then
    reported as a mismatch.
    """
    candidate = hashed_password or _DUMMY_HASH
    try:
        matches = bcrypt.checkpw(plain_password.encode("utf-8"), candidate.encode("utf-8"))
    except ValueError:
        # malformed stored hash or a password bcrypt refuses (over 72 bytes)
        return False
    return matches and hashed_password is not None


class TokenService:
    """Issues and validates the bearer tokens handed to API clients.

    The validity window comes from server configuration only; there is no
    way for a caller to mint a token with a longer lifetime.
    """

    def __init__(self, settings: Settings):
        self._secret = settings.JWT_SECRET_KEY
        self._algorithm = settings.JWT_ALGORITHM
        self._lifetime = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    def create_access_token(self, user) -> str:
        now = datetime.now(timezone.utc)
        to_encode: Dict[str, Any] = {
            "sub": str(user.id),
            "iat": int(now.timestamp()),
            "exp": int((now + self._lifetime).timestamp()),
            "email": user.email,
            "role": user.role,
            "organization": user.organization,
        }
        return jwt.encode(to_encode, self._secret, algorithm=self._algorithm)

    def decode_access_token(self, token: str) -> TokenPayload:
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"require_exp": True, "require_sub": True, "require_iat": True},
            )
        except ExpiredSignatureError as exc:
            raise InvalidToken(reason="expired") from exc
        except JWTError as exc:
            raise InvalidToken(reason=f"rejected: {exc}") from exc

        try:
            return TokenPayload.model_validate(payload)
        except ValidationError as exc:
            raise InvalidToken(reason="missing claims") from exc
