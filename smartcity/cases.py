"""Case store: thin persistence helpers over the ``cases`` table."""

from typing import List, Optional, Sequence, Tuple
from datetime import datetime, timezone

from sqlalchemy import func, or_, update
from sqlmodel import select

from .models import Case, CaseEvent, CaseStatus, EventKind, User


async def create_case(session, reporter: User, **fields) -> Case:
    """Insert a pending, unassigned case and its creation event; caller commits."""
    case = Case(
        **fields,
        user_id=reporter.id,
        status=CaseStatus.PENDING.value,
        assigned_to=None,
        assigned_by=None,
    )
    session.add(case)
    await session.flush()
    session.add(
        CaseEvent(
            case_id=case.id,
            kind=EventKind.CREATED.value,
            actor_id=reporter.id,
            to_status=case.status,
        )
    )
    return case


async def get_case(session, case_id: str) -> Optional[Case]:
    return await session.get(Case, case_id)


def filter_criteria(
    status: Optional[str] = None,
    category: Optional[str] = None,
    priority: Optional[str] = None,
    q: Optional[str] = None,
) -> list:
    """Translate dashboard filters into SQL criteria."""
    criteria = []
    if status:
        criteria.append(Case.status == status)
    if category:
        criteria.append(func.lower(Case.category) == category.strip().lower())
    if priority:
        criteria.append(Case.priority == priority)
    if q:
        pattern = f"%{q.strip().lower()}%"
        criteria.append(
            or_(
                func.lower(Case.title).like(pattern),
                func.lower(Case.description).like(pattern),
                func.lower(Case.location).like(pattern),
            )
        )
    return criteria


async def list_cases(
    session,
    scope,
    criteria: Sequence = (),
    page: int = 1,
    page_size: int = 20,
) -> Tuple[List[Case], int]:
    """Return one page of cases matching ``scope`` and ``criteria`` plus the total.

    ``scope`` is a callable that narrows a select statement (see scoping).
    """
    statement = scope(select(Case))
    count_statement = scope(select(func.count(Case.id)))
    for criterion in criteria:
        statement = statement.where(criterion)
        count_statement = count_statement.where(criterion)

    total_result = await session.exec(count_statement)
    total = total_result.one()

    offset = (page - 1) * page_size
    statement = statement.order_by(Case.created_at.desc()).offset(offset).limit(page_size)
    result = await session.exec(statement)
    return result.all(), total


async def list_all_cases(session, scope, criteria: Sequence = ()) -> List[Case]:
    statement = scope(select(Case))
    for criterion in criteria:
        statement = statement.where(criterion)
    result = await session.exec(statement.order_by(Case.created_at.desc()))
    return result.all()


async def list_events(session, case_id: str) -> List[CaseEvent]:
    result = await session.exec(
        select(CaseEvent).where(CaseEvent.case_id == case_id).order_by(CaseEvent.id)
    )
    return result.all()


async def write_if_version(session, case_id: str, version: int, **values) -> bool:
    """Apply ``values`` and bump the version only if the row is still at ``version``.

    The comparison happens inside the UPDATE, so of two writers that read the
    same version exactly one succeeds. Returns False when nothing was written;
    the caller commits and refreshes.
    """
    statement = (
        update(Case)
        .where(Case.id == case_id, Case.version == version)
        .values(version=Case.version + 1, updated_at=datetime.now(timezone.utc), **values)
    )
    connection = await session.connection()
    result = await connection.execute(statement)
    return result.rowcount == 1
