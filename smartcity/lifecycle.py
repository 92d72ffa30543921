"""
Case lifecycle: filing, assignment and status transitions.

Statuses move ``pending -> in-progress -> resolved``. Skips are allowed
(pending straight to resolved) and no transition is blocked; the only hard
rules are who may act and on which cases. Every mutation bumps
``Case.version`` and appends a ``CaseEvent``.
"""

from typing import List, Optional
from datetime import datetime, timezone
import logging

from . import cases as case_store
from . import identity
from .errors import Conflict, Forbidden, InvalidRequest
from .models import Case, CaseEvent, CaseStatus, EventKind, Priority, Role, User
from .observability import case_transitions_total
from .scoping import get_visible_case

logger = logging.getLogger("smartcity.lifecycle")

VALID_STATUSES = {s.value for s in CaseStatus}
VALID_PRIORITIES = {p.value for p in Priority}


def _base_version(case: Case, expected_version: Optional[int]) -> int:
    """Version the write is conditioned on: the caller's, else the one just read."""
    if expected_version is not None and expected_version != case.version:
        raise Conflict(
            f"Case was modified concurrently (current version {case.version}, got {expected_version})"
        )
    return case.version


async def _write(session, case: Case, version: int, **values) -> None:
    if not await case_store.write_if_version(session, case.id, version, **values):
        raise Conflict("Case was modified concurrently; reload it and try again")


def validate_case_fields(
    *,
    title: str,
    description: str,
    category: str,
    latitude: str,
    longitude: str,
    priority: Optional[str] = None,
    location: Optional[str] = None,
) -> dict:
    """Normalize a case report or raise InvalidRequest listing what is wrong."""
    fields = {
        "title": (title or "").strip(),
        "description": (description or "").strip(),
        "category": (category or "").strip(),
        "latitude": (latitude or "").strip(),
        "longitude": (longitude or "").strip(),
    }
    missing = [name for name, value in fields.items() if not value]
    if missing:
        raise InvalidRequest(f"Missing required fields: {', '.join(missing)}", errors={"missingFields": missing})
    for name in ("latitude", "longitude"):
        try:
            float(fields[name])
        except ValueError:
            raise InvalidRequest(f"{name} must be a decimal number")

    priority = (priority or Priority.MEDIUM.value).strip().lower()
    if priority not in VALID_PRIORITIES:
        raise InvalidRequest(f"Invalid priority. Allowed: {', '.join(sorted(VALID_PRIORITIES))}")

    fields["priority"] = priority
    fields["location"] = (location or "").strip() or f"{fields['latitude']}, {fields['longitude']}"
    return fields


async def file_case(
    session,
    reporter: User,
    *,
    image_url: Optional[str] = None,
    report_points: int = 0,
    **report,
) -> Case:
    """Create a pending case for a citizen and credit their reward points.

    ``report`` carries the fields accepted by :func:`validate_case_fields`.
    """
    if reporter.role != Role.CITIZEN.value:
        raise Forbidden("Only citizens can report cases")

    fields = validate_case_fields(**report)
    case = await case_store.create_case(session, reporter, image_url=image_url, **fields)
    await identity.award_points(session, reporter.id, report_points)
    await session.commit()
    await session.refresh(case)
    logger.info("Citizen %s filed case %s (%s)", reporter.id, case.id, case.category)
    return case


async def assign_case(
    session,
    admin: User,
    case_id: str,
    employee_id: str,
    expected_version: Optional[int] = None,
) -> Case:
    """Assign a case in the admin's city to one of the admin's active employees.

    Re-assignment simply overwrites the previous assignee; the event log
    keeps the history. Status is left untouched.
    """
    if admin.role != Role.ADMIN.value:
        raise Forbidden("Only admins can assign cases")

    case = await get_visible_case(session, admin, case_id)

    employee = await identity.get_user(session, employee_id) if employee_id else None
    if employee is None or employee.role != Role.EMPLOYEE.value:
        raise InvalidRequest("Cases can only be assigned to employees")
    if employee.admin_id != admin.id:
        raise InvalidRequest("Employee belongs to a different admin")
    if not employee.active:
        raise InvalidRequest("Employee account is inactive")

    version = _base_version(case, expected_version)
    await _write(
        session,
        case,
        version,
        assigned_to=employee.id,
        assigned_by=admin.id,
        assigned_at=datetime.now(timezone.utc),
    )
    session.add(
        CaseEvent(
            case_id=case.id,
            kind=EventKind.ASSIGNED.value,
            actor_id=admin.id,
            assigned_to=employee.id,
        )
    )
    await session.commit()
    await session.refresh(case)
    logger.info("Admin %s assigned case %s to employee %s", admin.id, case.id, employee.id)
    return case


async def update_case_status(
    session,
    caller: User,
    case_id: str,
    new_status: str,
    expected_version: Optional[int] = None,
    resolution_points: int = 0,
) -> Case:
    """Set a case's status.

    Admins may update any case in their city; employees only cases assigned
    to them. Moving into ``resolved`` stamps ``resolved_at``; other statuses
    leave it as it was.
    """
    if caller.role not in (Role.ADMIN.value, Role.EMPLOYEE.value):
        raise Forbidden("Only admins and employees can update case status")
    if new_status not in VALID_STATUSES:
        raise InvalidRequest(f"Invalid status. Allowed: {', '.join(sorted(VALID_STATUSES))}")

    case = await get_visible_case(session, caller, case_id)
    version = _base_version(case, expected_version)

    old_status = case.status
    first_resolution = new_status == CaseStatus.RESOLVED.value and case.resolved_at is None

    values = {"status": new_status}
    if new_status == CaseStatus.RESOLVED.value:
        values["resolved_at"] = datetime.now(timezone.utc)
    await _write(session, case, version, **values)
    session.add(
        CaseEvent(
            case_id=case.id,
            kind=EventKind.STATUS_CHANGED.value,
            actor_id=caller.id,
            from_status=old_status,
            to_status=new_status,
        )
    )
    if first_resolution:
        await identity.award_points(session, case.user_id, resolution_points)
    await session.commit()
    await session.refresh(case)

    case_transitions_total.labels(status=new_status).inc()
    logger.info("%s %s moved case %s from %s to %s", caller.role, caller.id, case.id, old_status, new_status)
    return case


async def case_history(session, caller: User, case_id: str) -> List[CaseEvent]:
    """Events of a case the caller can see, oldest first."""
    case = await get_visible_case(session, caller, case_id)
    return await case_store.list_events(session, case.id)
