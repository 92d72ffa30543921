"""Signup and login endpoints."""

import logging

from fastapi import APIRouter, Depends, status

from .. import identity
from ..auth import create_access_token, get_app_settings
from ..config import Settings
from ..database import get_session
from ..errors import InvalidRequest, Unauthenticated
from ..models import Role, User
from ..schemas import AuthResponse, LoginRequest, SignupRequest, StaffLoginRequest, UserPublic

logger = logging.getLogger("smartcity.routes.auth")

router = APIRouter(prefix="/api/v1", tags=["auth"])


def _auth_response(settings: Settings, user: User) -> AuthResponse:
    token = create_access_token(settings, subject=user.id, role=user.role)
    return AuthResponse(token=token, user=UserPublic.model_validate(user))


@router.post("/signup", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def signup(
    body: SignupRequest,
    settings: Settings = Depends(get_app_settings),
    session=Depends(get_session),
):
    """Create a citizen account and log it in."""
    user = await identity.create_user(
        session,
        username=body.username,
        email=body.email,
        password=body.password,
        state=body.state,
        district=body.district,
        city=body.city,
        phone_no=body.phone_no,
    )
    return _auth_response(settings, user)


@router.post("/login", response_model=AuthResponse)
async def login(
    body: LoginRequest,
    settings: Settings = Depends(get_app_settings),
    session=Depends(get_session),
):
    identifier = body.email or body.phone_no
    if not identifier:
        raise InvalidRequest("Email or phone number is required")
    user = await identity.authenticate(session, identifier, body.password)
    if not user:
        raise Unauthenticated("Invalid credentials")
    logger.info("User %s logged in", user.id)
    return _auth_response(settings, user)


async def _staff_login(body: StaffLoginRequest, role: Role, settings: Settings, session) -> AuthResponse:
    user = await identity.authenticate(session, body.username, body.password, role=role)
    if not user:
        raise Unauthenticated(f"Invalid {role.value} credentials")
    logger.info("%s %s logged in", role.value, user.id)
    return _auth_response(settings, user)


@router.post("/admin/login", response_model=AuthResponse)
async def admin_login(
    body: StaffLoginRequest,
    settings: Settings = Depends(get_app_settings),
    session=Depends(get_session),
):
    return await _staff_login(body, Role.ADMIN, settings, session)


@router.post("/employee/login", response_model=AuthResponse)
async def employee_login(
    body: StaffLoginRequest,
    settings: Settings = Depends(get_app_settings),
    session=Depends(get_session),
):
    return await _staff_login(body, Role.EMPLOYEE, settings, session)
