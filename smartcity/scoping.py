"""
Role-scoped visibility of cases and users.

Scopes are computed from the caller and the current store state on every
request; nothing here is cached, so a reassignment or a city change is seen
by the very next query.

* citizen  - cases they reported
* employee - cases assigned to them
* admin    - cases whose reporter lives in the admin's city
"""

from typing import Callable

from sqlalchemy import false, or_
from sqlmodel import select

from .errors import NotFound
from .models import Case, Role, User

Scope = Callable


def case_scope(caller: User) -> Scope:
    """Return a function that narrows a ``select`` over cases to ``caller``'s set."""
    role = caller.role

    if role == Role.ADMIN.value:
        def admin_scope(statement):
            return statement.join(User, Case.user_id == User.id).where(User.city_key == caller.city_key)
        return admin_scope

    if role == Role.EMPLOYEE.value:
        return lambda statement: statement.where(Case.assigned_to == caller.id)

    if role == Role.CITIZEN.value:
        return lambda statement: statement.where(Case.user_id == caller.id)

    return lambda statement: statement.where(false())


async def get_visible_case(session, caller: User, case_id: str) -> Case:
    """Fetch a case the caller may see.

    Absent and out-of-scope cases are indistinguishable to the caller: both
    raise NotFound so ids from another tenant cannot be probed.
    """
    statement = case_scope(caller)(select(Case).where(Case.id == case_id))
    result = await session.exec(statement)
    case = result.first()
    if case is None:
        raise NotFound("Case not found")
    return case


def user_criteria(caller: User):
    """SQL criterion for the users ``caller`` may read or manage.

    Admins see the employees they own and the citizens of their city;
    everyone else only sees themselves.
    """
    if caller.role == Role.ADMIN.value:
        return or_(
            (User.role == Role.EMPLOYEE.value) & (User.admin_id == caller.id),
            (User.role == Role.CITIZEN.value) & (User.city_key == caller.city_key),
        )
    return User.id == caller.id
