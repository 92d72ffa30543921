"""Self-service profile endpoints."""

from fastapi import APIRouter, Depends

from .. import identity
from ..auth import get_current_user
from ..database import get_session
from ..models import User
from ..schemas import ChangePasswordRequest, MessageResponse, ProfileUpdateRequest, UserPublic

router = APIRouter(prefix="/api/v1/user", tags=["users"])


@router.get("/me", response_model=UserPublic)
async def get_me(user: User = Depends(get_current_user)):
    """The caller's own profile; the password hash is never returned."""
    return UserPublic.model_validate(user)


@router.post("/update", response_model=UserPublic)
async def update_me(
    body: ProfileUpdateRequest,
    user: User = Depends(get_current_user),
    session=Depends(get_session),
):
    updated = await identity.update_profile(
        session,
        user,
        username=body.username,
        email=body.email,
        phone_no=body.phone_no,
        state=body.state,
        district=body.district,
        city=body.city,
    )
    return UserPublic.model_validate(updated)


@router.post("/change-password", response_model=MessageResponse)
async def change_password(
    body: ChangePasswordRequest,
    user: User = Depends(get_current_user),
    session=Depends(get_session),
):
    await identity.change_password(session, user, body.current_password, body.new_password)
    return MessageResponse(message="Password changed successfully")
