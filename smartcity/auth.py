from typing import Optional
from datetime import datetime, timedelta, timezone
from pydantic import BaseModel
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from passlib.context import CryptContext
import logging

from .config import Settings
from .database import get_session
from .errors import Unauthenticated, Forbidden
from .models import Role, User

logger = logging.getLogger("smartcity.auth")

# pbkdf2_sha256 avoids requiring a working bcrypt C-extension
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
# auto_error=False so a missing header reaches get_current_user and is
# reported through the same Unauthenticated error as a bad token.
security = HTTPBearer(auto_error=False)


class TokenPayload(BaseModel):
    sub: str
    role: Optional[str] = None
    exp: Optional[int] = None


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def create_access_token(settings: Settings, subject: str, role: Optional[str] = None, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = {"sub": str(subject)}
    if role:
        to_encode["role"] = role
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.jwt_access_minutes))
    to_encode.update({"exp": int(expire.timestamp())})
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(settings: Settings, token: str) -> TokenPayload:
    """Verify signature and expiry; raise Unauthenticated on any failure."""
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
        return TokenPayload(**payload)
    except (JWTError, ValueError) as exc:
        raise Unauthenticated() from exc


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    settings: Settings = Depends(get_app_settings),
    session=Depends(get_session),
) -> User:
    # Every failure below yields the same response; only the log says why.
    if not credentials or not getattr(credentials, "credentials", None):
        logger.info("Rejected request: no bearer credentials")
        raise Unauthenticated()

    try:
        payload = decode_access_token(settings, credentials.credentials)
    except Unauthenticated:
        logger.info("Rejected request: token failed verification")
        raise

    user = await session.get(User, payload.sub)
    if not user:
        logger.info("Rejected request: token subject %r not found", payload.sub)
        raise Unauthenticated()
    if not user.active:
        logger.info("Rejected request: account %s is deactivated", user.id)
        raise Unauthenticated()
    return user


def require_role(*roles: str):
    allowed = {Role(r).value for r in roles}

    async def role_checker(user: User = Depends(get_current_user)) -> User:
        # Role is read from the stored user, not the token claim, so a
        # role change applies to the very next request.
        if user.role not in allowed:
            raise Forbidden()
        return user

    return role_checker
