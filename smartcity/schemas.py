"""Request and response bodies shared by the API routers.

Field names go over the wire in camelCase (``phoneNo``, ``assignedTo``)
as the web and mobile clients expect; snake_case is accepted on input too.
"""

from typing import List, Optional
from datetime import datetime

from email_validator import validate_email, EmailNotValidError
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


def _normalize_email(value: str) -> str:
    try:
        return validate_email(value.strip(), check_deliverability=False).normalized.lower()
    except EmailNotValidError as exc:
        raise ValueError(f"Invalid email address: {exc}") from exc


class UserPublic(CamelModel):
    id: str
    username: str
    email: str
    phone_no: str
    role: str
    state: str
    district: str
    city: str
    points: int = 0
    admin_id: Optional[str] = None
    active: bool = True
    created_at: Optional[datetime] = None


class AuthResponse(CamelModel):
    token: str
    token_type: str = "bearer"
    user: UserPublic


class SignupRequest(CamelModel):
    username: str = Field(min_length=1)
    email: str
    password: str = Field(min_length=8)
    state: str = Field(min_length=1)
    district: str = Field(min_length=1)
    city: str = Field(min_length=1)
    phone_no: str = Field(min_length=1)

    @field_validator("email")
    @classmethod
    def check_email(cls, v: str) -> str:
        return _normalize_email(v)


class LoginRequest(CamelModel):
    """Citizen login: email or phone number plus password."""
    email: Optional[str] = None
    phone_no: Optional[str] = None
    password: str


class StaffLoginRequest(CamelModel):
    username: str
    password: str


class ProfileUpdateRequest(CamelModel):
    username: Optional[str] = None
    email: Optional[str] = None
    phone_no: Optional[str] = None
    state: Optional[str] = None
    district: Optional[str] = None
    city: Optional[str] = None

    @field_validator("email")
    @classmethod
    def check_email(cls, v: Optional[str]) -> Optional[str]:
        return _normalize_email(v) if v is not None else v


class ChangePasswordRequest(CamelModel):
    current_password: str
    new_password: str


class EmployeeCreateRequest(CamelModel):
    username: str = Field(min_length=1)
    email: str
    password: str = Field(min_length=8)
    phone_no: str = Field(min_length=1)
    state: Optional[str] = None
    district: Optional[str] = None
    city: Optional[str] = None

    @field_validator("email")
    @classmethod
    def check_email(cls, v: str) -> str:
        return _normalize_email(v)


class ActiveUpdateRequest(CamelModel):
    active: bool


class CasePublic(CamelModel):
    id: str
    title: str
    description: str
    category: str
    status: str
    priority: str
    location: str
    latitude: str
    longitude: str
    image_url: Optional[str] = None
    user_id: str
    assigned_to: Optional[str] = None
    assigned_by: Optional[str] = None
    assigned_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    version: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PaginatedCases(CamelModel):
    items: List[CasePublic]
    total: int
    page: int
    page_size: int
    total_pages: int


class CaseMarker(CamelModel):
    id: str
    title: str
    category: str
    status: str
    priority: str
    latitude: str
    longitude: str


class CaseEventPublic(CamelModel):
    id: int
    case_id: str
    kind: str
    actor_id: str
    from_status: Optional[str] = None
    to_status: Optional[str] = None
    assigned_to: Optional[str] = None
    created_at: Optional[datetime] = None


class StatusUpdateRequest(CamelModel):
    status: str
    version: Optional[int] = None


class AssignRequest(CamelModel):
    employee_id: str = Field(min_length=1)
    version: Optional[int] = None


class MessageResponse(CamelModel):
    message: str
