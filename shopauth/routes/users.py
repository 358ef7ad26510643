# shopauth/routes/users.py
from fastapi import APIRouter, Depends, HTTPException, Query, status
from shopauth.core.deps import get_current_user, get_user_service
from shopauth.schemas.response import ServiceResponse
from shopauth.schemas.user import UserRead, UserUpdate
from shopauth.services.user import UserService

router = APIRouter(prefix="/api/users", tags=["users"], dependencies=[Depends(get_current_user)])


def _ensure_self_or_admin(user_id: int, current_user) -> None:
    if current_user.id != user_id and current_user.role != "admin":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")

@router.get("/me")
async def read_users_me(current_user = Depends(get_current_user)):
    return ServiceResponse.ok("User found", UserRead.model_validate(current_user)).to_response()

@router.get("")
async def list_users(
    offset: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    users: UserService = Depends(get_user_service),
):
    return (await users.find_all(offset=offset, limit=limit)).to_response()

@router.get("/email/{email}")
async def get_user_by_email(email: str, users: UserService = Depends(get_user_service)):
    return (await users.find_by_email(email)).to_response()

@router.get("/organization/{organization}")
async def get_user_by_organization(organization: str, users: UserService = Depends(get_user_service)):
    return (await users.find_by_organization(organization)).to_response()

@router.get("/{user_id}")
async def get_user(user_id: int, users: UserService = Depends(get_user_service)):
    return (await users.find_by_id(user_id)).to_response()

@router.put("/{user_id}")
async def update_user(
    user_id: int,
    user_in: UserUpdate,
    current_user = Depends(get_current_user),
    users: UserService = Depends(get_user_service),
):
    _ensure_self_or_admin(user_id, current_user)
    return (await users.update_user(user_id, user_in)).to_response()

@router.delete("/{user_id}")
async def delete_user(
    user_id: int,
    current_user = Depends(get_current_user),
    users: UserService = Depends(get_user_service),
):
    _ensure_self_or_admin(user_id, current_user)
    return (await users.delete_user(user_id)).to_response()
