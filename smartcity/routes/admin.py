"""Admin-only endpoints: case assignment and employee management."""

from typing import List

from fastapi import APIRouter, Depends, Query, status

from .. import identity
from .. import lifecycle
from ..auth import require_role
from ..database import get_session
from ..models import Role, User
from ..schemas import (
    ActiveUpdateRequest,
    AssignRequest,
    CasePublic,
    EmployeeCreateRequest,
    MessageResponse,
    UserPublic,
)

router = APIRouter(prefix="/api/v1/admin", tags=["admin"])

require_admin = require_role(Role.ADMIN)


@router.patch("/cases/{case_id}/assign", response_model=CasePublic)
async def assign_case(
    case_id: str,
    body: AssignRequest,
    admin: User = Depends(require_admin),
    session=Depends(get_session),
):
    """Assign a case in the admin's city to one of the admin's employees."""
    case = await lifecycle.assign_case(
        session, admin, case_id, body.employee_id, expected_version=body.version
    )
    return CasePublic.model_validate(case)


@router.post("/employees", response_model=UserPublic, status_code=status.HTTP_201_CREATED)
async def create_employee(
    body: EmployeeCreateRequest,
    admin: User = Depends(require_admin),
    session=Depends(get_session),
):
    employee = await identity.create_employee(
        session,
        admin,
        username=body.username,
        email=body.email,
        password=body.password,
        phone_no=body.phone_no,
        state=body.state,
        district=body.district,
        city=body.city,
    )
    return UserPublic.model_validate(employee)


@router.get("/employees", response_model=List[UserPublic])
async def list_employees(
    active_only: bool = Query(False, alias="activeOnly"),
    admin: User = Depends(require_admin),
    session=Depends(get_session),
):
    employees = await identity.list_employees(session, admin, active_only=active_only)
    return [UserPublic.model_validate(e) for e in employees]


@router.patch("/employees/{employee_id}/active", response_model=UserPublic)
async def set_employee_active(
    employee_id: str,
    body: ActiveUpdateRequest,
    admin: User = Depends(require_admin),
    session=Depends(get_session),
):
    employee = await identity.set_active(session, admin, employee_id, body.active)
    return UserPublic.model_validate(employee)


@router.delete("/employees/{employee_id}", response_model=MessageResponse)
async def delete_employee(
    employee_id: str,
    admin: User = Depends(require_admin),
    session=Depends(get_session),
):
    await identity.delete_employee(session, admin, employee_id)
    return MessageResponse(message="Employee deleted")


@router.get("/users", response_model=List[UserPublic])
async def list_users(
    admin: User = Depends(require_admin),
    session=Depends(get_session),
):
    """Employees owned by the admin and citizens of the admin's city."""
    users = await identity.list_manageable_users(session, admin)
    return [UserPublic.model_validate(u) for u in users]
