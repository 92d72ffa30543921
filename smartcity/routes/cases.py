"""Case endpoints: reporting, scoped listing, history and status changes."""

from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status

from .. import cases as case_store
from .. import lifecycle
from ..auth import get_app_settings, get_current_user, require_role
from ..config import Settings
from ..database import get_session
from ..errors import Forbidden, InvalidRequest
from ..models import Role, User
from ..schemas import CaseEventPublic, CaseMarker, CasePublic, PaginatedCases, StatusUpdateRequest
from ..scoping import case_scope, get_visible_case
from ..storage import discard_case_image, save_case_image

router = APIRouter(prefix="/api/v1/cases", tags=["cases"])


def _check_filters(status_filter: Optional[str], priority: Optional[str]) -> None:
    if status_filter and status_filter not in lifecycle.VALID_STATUSES:
        raise InvalidRequest(f"Invalid status. Allowed: {', '.join(sorted(lifecycle.VALID_STATUSES))}")
    if priority and priority not in lifecycle.VALID_PRIORITIES:
        raise InvalidRequest(f"Invalid priority. Allowed: {', '.join(sorted(lifecycle.VALID_PRIORITIES))}")


@router.post("", response_model=CasePublic, status_code=status.HTTP_201_CREATED)
async def create_case(
    title: str = Form(""),
    description: str = Form(""),
    category: str = Form(""),
    latitude: str = Form(""),
    longitude: str = Form(""),
    priority: Optional[str] = Form(None),
    location: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    user: User = Depends(get_current_user),
    settings: Settings = Depends(get_app_settings),
    session=Depends(get_session),
):
    """File a complaint as multipart form data with an optional ``image``.

    Missing required fields are all reported in one InvalidRequest.
    """
    if user.role != Role.CITIZEN.value:
        raise Forbidden("Only citizens can report cases")

    report = dict(
        title=title,
        description=description,
        category=category,
        latitude=latitude,
        longitude=longitude,
        priority=priority,
        location=location,
    )
    # Reject bad form fields before anything touches the upload directory
    lifecycle.validate_case_fields(**report)

    image_url = await save_case_image(settings, image)
    try:
        case = await lifecycle.file_case(
            session,
            user,
            image_url=image_url,
            report_points=settings.report_points,
            **report,
        )
    except Exception:
        await discard_case_image(settings, image_url)
        raise
    return CasePublic.model_validate(case)


@router.get("", response_model=PaginatedCases)
async def list_cases(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100, alias="pageSize"),
    status_filter: Optional[str] = Query(None, alias="status"),
    category: Optional[str] = Query(None),
    priority: Optional[str] = Query(None),
    q: Optional[str] = Query(None, description="Search title, description and location"),
    user: User = Depends(get_current_user),
    session=Depends(get_session),
):
    """Cases visible to the caller, newest first."""
    _check_filters(status_filter, priority)
    criteria = case_store.filter_criteria(status=status_filter, category=category, priority=priority, q=q)
    items, total = await case_store.list_cases(
        session, case_scope(user), criteria, page=page, page_size=page_size
    )
    return PaginatedCases(
        items=[CasePublic.model_validate(c) for c in items],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=(total + page_size - 1) // page_size,
    )


@router.get("/map", response_model=List[CaseMarker])
async def map_markers(
    status_filter: Optional[str] = Query(None, alias="status"),
    priority: Optional[str] = Query(None),
    user: User = Depends(get_current_user),
    session=Depends(get_session),
):
    """Lightweight markers for the caller's visible cases."""
    _check_filters(status_filter, priority)
    criteria = case_store.filter_criteria(status=status_filter, priority=priority)
    items = await case_store.list_all_cases(session, case_scope(user), criteria)
    return [CaseMarker.model_validate(c) for c in items]


@router.get("/{case_id}", response_model=CasePublic)
async def get_case(
    case_id: str,
    user: User = Depends(get_current_user),
    session=Depends(get_session),
):
    case = await get_visible_case(session, user, case_id)
    return CasePublic.model_validate(case)


@router.get("/{case_id}/events", response_model=List[CaseEventPublic])
async def get_case_events(
    case_id: str,
    user: User = Depends(get_current_user),
    session=Depends(get_session),
):
    """Assignment and status history of a case, oldest first."""
    events = await lifecycle.case_history(session, user, case_id)
    return [CaseEventPublic.model_validate(e) for e in events]


@router.patch("/{case_id}/status", response_model=CasePublic)
async def update_case_status(
    case_id: str,
    body: StatusUpdateRequest,
    user: User = Depends(require_role(Role.ADMIN, Role.EMPLOYEE)),
    settings: Settings = Depends(get_app_settings),
    session=Depends(get_session),
):
    case = await lifecycle.update_case_status(
        session,
        user,
        case_id,
        body.status,
        expected_version=body.version,
        resolution_points=settings.resolution_points,
    )
    return CasePublic.model_validate(case)
