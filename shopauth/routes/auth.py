# shopauth/routes/auth.py
from fastapi import APIRouter, Depends

from shopauth.core.deps import get_auth_service, get_bearer_token
from shopauth.schemas.user import LoginRequest, UserCreate
from shopauth.services.auth import AuthService

router = APIRouter(prefix="/api/auth", tags=["Auth"])


@router.post("/register")
async def register(user_in: UserCreate, auth: AuthService = Depends(get_auth_service)):
    return (await auth.register(user_in)).to_response()


@router.post("/login")
async def login(credentials: LoginRequest, auth: AuthService = Depends(get_auth_service)):
    return (await auth.login(credentials.email, credentials.password)).to_response()


@router.get("/verify-token")
async def verify_token(
    token: str = Depends(get_bearer_token), auth: AuthService = Depends(get_auth_service)
):
    return (await auth.verify_token(token)).to_response()
