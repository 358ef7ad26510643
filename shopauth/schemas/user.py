from datetime import datetime
from pydantic import BaseModel, EmailStr, Field, field_validator

# bcrypt only looks at the first 72 bytes and refuses anything longer
PASSWORD_MAX_BYTES = 72


def _check_password_bytes(value: str | None) -> str | None:
    if value is not None and len(value.encode("utf-8")) > PASSWORD_MAX_BYTES:
        raise ValueError(f"must be at most {PASSWORD_MAX_BYTES} bytes when UTF-8 encoded")
    return value


class UserBase(BaseModel):
    first_name: str = Field(min_length=1, max_length=255)
    last_name: str = Field(min_length=1, max_length=255)
    email: EmailStr

class UserCreate(UserBase):
    password: str = Field(min_length=8, max_length=PASSWORD_MAX_BYTES)
    organization: str | None = Field(default=None, min_length=1, max_length=255)

    @field_validator("password")
    @classmethod
    def _password_fits_bcrypt(cls, value):
        return _check_password_bytes(value)


class UserUpdate(BaseModel):
    first_name: str | None = Field(default=None, min_length=1, max_length=255)
    last_name: str | None = Field(default=None, min_length=1, max_length=255)
    email: EmailStr | None = None
    password: str | None = Field(default=None, min_length=8, max_length=PASSWORD_MAX_BYTES)

    @field_validator("password")
    @classmethod
    def _password_fits_bcrypt(cls, value):
        return _check_password_bytes(value)


class UserRead(BaseModel):
    id: int
    first_name: str
    last_name: str
    email: str
    organization: str | None = None
    role: str
    email_verified_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1, max_length=255)

class TokenPayload(BaseModel):
    sub: str
    email: str
    role: str
    organization: str | None = None
    iat: int
    exp: int

class LoginResult(BaseModel):
    user: UserRead
    token: str

class VerifiedToken(BaseModel):
    user: UserRead
    claims: TokenPayload
