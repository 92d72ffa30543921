"""Identity store: persistence and self-service operations for users."""

from typing import List, Optional
from datetime import datetime, timezone
import logging

from sqlalchemy.exc import IntegrityError
from sqlmodel import select

from .auth import get_password_hash, verify_password
from .errors import Conflict, InvalidRequest, NotFound
from .models import Case, Role, User, tenancy_key
from .scoping import user_criteria

logger = logging.getLogger("smartcity.identity")

MIN_PASSWORD_LENGTH = 8


def _validate_password(password: str) -> None:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise InvalidRequest(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")


async def _first(session, statement) -> Optional[User]:
    result = await session.exec(statement)
    return result.first()


async def get_user(session, user_id: str) -> Optional[User]:
    return await session.get(User, user_id)


async def get_user_by_email(session, email: str) -> Optional[User]:
    return await _first(session, select(User).where(User.email == email.strip().lower()))


async def get_user_by_username(session, username: str) -> Optional[User]:
    return await _first(session, select(User).where(User.username == username.strip()))


async def list_users_by_phone(session, phone_no: str) -> List[User]:
    result = await session.exec(select(User).where(User.phone_no == phone_no.strip()))
    return result.all()


async def _ensure_unique(session, *, username=None, email=None, exclude_id=None) -> None:
    """Raise Conflict if another user already holds one of the given values."""
    checks = [
        ("Username", username, get_user_by_username),
        ("Email", email, get_user_by_email),
    ]
    for label, value, lookup in checks:
        if value is None:
            continue
        existing = await lookup(session, value)
        if existing and existing.id != exclude_id:
            raise Conflict(f"{label} is already taken")


async def _commit(session, user: User) -> User:
    # The pre-checks above race with concurrent signups; the unique
    # constraints are the final word.
    session.add(user)
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        logger.info("Unique constraint rejected user write: %s", exc.orig)
        raise Conflict("Username or email is already taken") from exc
    await session.refresh(user)
    return user


async def create_user(
    session,
    *,
    username: str,
    email: str,
    password: str,
    state: str,
    district: str,
    city: str,
    phone_no: str,
    role: str = Role.CITIZEN.value,
    admin_id: Optional[str] = None,
) -> User:
    """Create a user with a hashed password. Citizens by default."""
    role = Role(role).value
    if role == Role.EMPLOYEE.value and not admin_id:
        raise InvalidRequest("Employees must belong to an admin")
    if role != Role.EMPLOYEE.value:
        admin_id = None
    _validate_password(password)

    username = username.strip()
    email = email.strip().lower()
    phone_no = phone_no.strip()
    await _ensure_unique(session, username=username, email=email)

    user = User(
        username=username,
        email=email,
        password_hash=get_password_hash(password),
        state=state.strip(),
        district=district.strip(),
        city=city.strip(),
        city_key=tenancy_key(city),
        phone_no=phone_no,
        role=role,
        admin_id=admin_id,
    )
    user = await _commit(session, user)
    logger.info("Created %s account %s", role, user.id)
    return user


async def create_employee(session, admin: User, **fields) -> User:
    """Create an employee owned by ``admin``; location defaults to the admin's."""
    for key in ("state", "district", "city"):
        if not fields.get(key):
            fields[key] = getattr(admin, key)
    fields["role"] = Role.EMPLOYEE.value
    fields["admin_id"] = admin.id
    return await create_user(session, **fields)


async def authenticate(session, identifier: str, password: str, role: Optional[str] = None) -> Optional[User]:
    """Look up by email, then username, then phone and verify the password.

    Returns None for unknown users, wrong passwords, inactive accounts, a
    role mismatch when ``role`` is given, or a phone number shared by
    several accounts.
    """
    identifier = (identifier or "").strip()
    if not identifier:
        return None
    user = await get_user_by_email(session, identifier)
    if not user:
        user = await get_user_by_username(session, identifier)
    if not user:
        matches = await list_users_by_phone(session, identifier)
        if len(matches) > 1:
            logger.info("Login refused: phone number is shared by %d accounts", len(matches))
            return None
        user = matches[0] if matches else None
    if not user or not verify_password(password, user.password_hash):
        return None
    if not user.active:
        logger.info("Login refused for deactivated account %s", user.id)
        return None
    if role and user.role != Role(role).value:
        return None
    return user


async def update_profile(session, user: User, **changes) -> User:
    """Apply self-service profile changes; ``None`` values are ignored."""
    changes = {k: v.strip() for k, v in changes.items() if v is not None}
    for key, value in changes.items():
        if not value:
            raise InvalidRequest(f"{key} must not be empty")
    if "email" in changes:
        changes["email"] = changes["email"].lower()
    await _ensure_unique(
        session,
        username=changes.get("username"),
        email=changes.get("email"),
        exclude_id=user.id,
    )
    for key, value in changes.items():
        setattr(user, key, value)
    if "city" in changes:
        user.city_key = tenancy_key(changes["city"])
    user.updated_at = datetime.now(timezone.utc)
    return await _commit(session, user)


async def change_password(session, user: User, current_password: str, new_password: str) -> None:
    if not verify_password(current_password, user.password_hash):
        raise InvalidRequest("Current password is incorrect")
    _validate_password(new_password)
    if verify_password(new_password, user.password_hash):
        raise InvalidRequest("New password must be different from current password")
    user.password_hash = get_password_hash(new_password)
    user.updated_at = datetime.now(timezone.utc)
    session.add(user)
    await session.commit()
    logger.info("Password changed for user %s", user.id)


async def award_points(session, user_id: str, points: int) -> None:
    """Credit reward points; the caller commits."""
    if points <= 0:
        return
    user = await session.get(User, user_id)
    if user:
        user.points = (user.points or 0) + points
        session.add(user)


async def list_employees(session, admin: User, active_only: bool = False) -> List[User]:
    statement = select(User).where(User.role == Role.EMPLOYEE.value, User.admin_id == admin.id)
    if active_only:
        statement = statement.where(User.active == True)  # noqa: E712
    result = await session.exec(statement.order_by(User.created_at))
    return result.all()


async def list_manageable_users(session, admin: User) -> List[User]:
    """Employees owned by the admin plus citizens in the admin's city."""
    statement = select(User).where(user_criteria(admin)).order_by(User.created_at)
    result = await session.exec(statement)
    return result.all()


async def get_owned_employee(session, admin: User, employee_id: str) -> User:
    """Return an employee owned by ``admin`` or raise NotFound."""
    employee = await session.get(User, employee_id)
    if not employee or employee.role != Role.EMPLOYEE.value or employee.admin_id != admin.id:
        raise NotFound("Employee not found")
    return employee


async def set_active(session, admin: User, employee_id: str, active: bool) -> User:
    employee = await get_owned_employee(session, admin, employee_id)
    employee.active = active
    employee.updated_at = datetime.now(timezone.utc)
    session.add(employee)
    await session.commit()
    await session.refresh(employee)
    logger.info("Admin %s set employee %s active=%s", admin.id, employee.id, active)
    return employee


async def delete_employee(session, admin: User, employee_id: str) -> None:
    employee = await get_owned_employee(session, admin, employee_id)
    # Cases keep a foreign key to their assignee, so only employees who
    # never held a case can be removed outright.
    result = await session.exec(select(Case.id).where(Case.assigned_to == employee.id))
    if result.first() is not None:
        raise Conflict("Employee has assigned cases; deactivate the account instead")
    await session.delete(employee)
    await session.commit()
    logger.info("Admin %s deleted employee %s", admin.id, employee_id)
