from enum import Enum
from typing import Optional
from datetime import datetime, timezone
from sqlmodel import SQLModel, Field
import uuid


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _uuid() -> str:
    return str(uuid.uuid4())


class Role(str, Enum):
    CITIZEN = "citizen"
    EMPLOYEE = "employee"
    ADMIN = "admin"


class CaseStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    RESOLVED = "resolved"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class EventKind(str, Enum):
    CREATED = "created"
    ASSIGNED = "assigned"
    STATUS_CHANGED = "status_changed"


def tenancy_key(city: Optional[str]) -> str:
    """Normalized form of a city name used as the tenancy boundary.

    Admins and citizens are matched on this key, so "Ahmedabad " and
    "ahmedabad" land in the same jurisdiction.
    """
    return " ".join((city or "").split()).casefold()


class User(SQLModel, table=True):
    __tablename__ = "users"
    id: Optional[str] = Field(default_factory=_uuid, primary_key=True)
    username: str = Field(sa_column_kwargs={"unique": True}, index=True)
    email: str = Field(sa_column_kwargs={"unique": True}, index=True)
    # Salted hash only; plaintext passwords are never stored
    password_hash: str
    state: str
    district: str
    city: str
    city_key: str = Field(index=True)
    # Not unique: a household may share one number
    phone_no: str = Field(index=True)
    points: int = Field(default=0, ge=0)
    role: str = Field(default=Role.CITIZEN.value, index=True)
    # Set only for employees: the admin who created and owns them
    admin_id: Optional[str] = Field(default=None, foreign_key="users.id", index=True)
    active: bool = Field(default=True)
    created_at: Optional[datetime] = Field(default_factory=_now)
    updated_at: Optional[datetime] = None


class Case(SQLModel, table=True):
    __tablename__ = "cases"
    id: Optional[str] = Field(default_factory=_uuid, primary_key=True)
    title: str
    description: str
    category: str
    status: str = Field(default=CaseStatus.PENDING.value, index=True)
    priority: str = Field(default=Priority.MEDIUM.value)
    location: str
    # Decimal strings, stored exactly as reported by the client
    latitude: str
    longitude: str
    image_url: Optional[str] = None
    user_id: str = Field(foreign_key="users.id", index=True)
    assigned_to: Optional[str] = Field(default=None, foreign_key="users.id", index=True)
    assigned_by: Optional[str] = Field(default=None, foreign_key="users.id")
    assigned_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    # Bumped on every mutation; callers may echo it back to detect lost updates
    version: int = Field(default=1)
    created_at: Optional[datetime] = Field(default_factory=_now)
    updated_at: Optional[datetime] = Field(default_factory=_now)


class CaseEvent(SQLModel, table=True):
    """Append-only history of case mutations."""
    __tablename__ = "case_events"
    id: Optional[int] = Field(default=None, primary_key=True)
    case_id: str = Field(foreign_key="cases.id", index=True)
    kind: str
    actor_id: str
    from_status: Optional[str] = None
    to_status: Optional[str] = None
    assigned_to: Optional[str] = None
    created_at: Optional[datetime] = Field(default_factory=_now)
