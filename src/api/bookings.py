"""Booking endpoints: public submission and availability, admin decisions."""

from datetime import datetime
from decimal import Decimal
from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel

from src.api.deps import get_booking_manager, verify_admin_api_key
from src.api.errors import http_error
from src.bookings.errors import BookingError
from src.bookings.service import BookingLifecycleManager
from src.models.project import Project, ProjectStatus

router = APIRouter(prefix="/api/bookings", tags=["bookings"])

Manager = Annotated[BookingLifecycleManager, Depends(get_booking_manager)]


class BookingCreateRequest(BaseModel):
    """Payload submitted by the booking form."""

    client_name: str = ""
    client_email: str = ""
    phone: str | None = None
    project_type: str | None = None
    specifications: str | None = None
    booking_month: str | None = None
    website_type: str | None = None
    primary_color: str | None = None
    secondary_color: str | None = None
    accent_color: str | None = None
    base_price: Decimal | str | None = None
    total_price: Decimal | str | None = None


class BookingDetails(BaseModel):
    project_type: str
    booking_month: str | None
    total_price: Decimal
    status: ProjectStatus


class BookingCreateResponse(BaseModel):
    """Response for a newly submitted booking."""

    success: bool = True
    message: str
    project_id: int
    client_id: int
    booking_details: BookingDetails


class AvailabilityResponse(BaseModel):
    available: bool
    current_bookings: int
    month: str
    max_bookings: int


class BookingResponse(BaseModel):
    """Project as seen by the admin."""

    id: int
    client_id: int
    client_name: str | None
    client_email: str | None
    project_type: str
    specifications: str | None
    website_type: str | None
    primary_color: str | None
    secondary_color: str | None
    accent_color: str | None
    base_price: Decimal
    total_price: Decimal
    booking_month: str | None
    status: ProjectStatus
    created_at: datetime
    updated_at: datetime | None


class BookingListResponse(BaseModel):
    """Paginated booking list response."""

    items: list[BookingResponse]
    total: int
    limit: int
    offset: int


class TransitionResponse(BaseModel):
    project_id: int
    status: ProjectStatus


def to_booking_response(project: Project) -> BookingResponse:
    """Map a Project model to its API representation."""
    client = project.client
    return BookingResponse(
        id=project.id,
        client_id=project.client_id,
        client_name=client.name if client else None,
        client_email=client.email if client else None,
        project_type=project.project_type.value,
        specifications=project.specifications,
        website_type=project.website_type,
        primary_color=project.primary_color,
        secondary_color=project.secondary_color,
        accent_color=project.accent_color,
        base_price=project.base_price,
        total_price=project.total_price,
        booking_month=project.booking_month,
        status=project.status,
        created_at=project.created_at,
        updated_at=project.updated_at,
    )


@router.get("/availability/{month}", response_model=AvailabilityResponse)
async def check_availability(month: str, manager: Manager) -> AvailabilityResponse:
    """Report how many slots ``month`` has left."""
    try:
        availability = await manager.check_availability(month)
    except BookingError as exc:
        raise http_error(exc) from exc
    return AvailabilityResponse(
        available=availability.available,
        current_bookings=availability.current_bookings,
        month=availability.month,
        max_bookings=availability.max_bookings,
    )


@router.post(
    "", response_model=BookingCreateResponse, status_code=status.HTTP_201_CREATED
)
async def create_booking(
    payload: BookingCreateRequest, manager: Manager
) -> BookingCreateResponse:
    """Submit a booking. It starts pending until an admin decides."""
    try:
        result = await manager.create_booking(**payload.model_dump())
    except BookingError as exc:
        raise http_error(exc) from exc

    project = result.project
    return BookingCreateResponse(
        message="Booking submitted successfully",
        project_id=result.project_id,
        client_id=result.client_id,
        booking_details=BookingDetails(
            project_type=project.project_type.value,
            booking_month=project.booking_month,
            total_price=project.total_price,
            status=result.status,
        ),
    )


@router.get(
    "",
    response_model=BookingListResponse,
    dependencies=[Depends(verify_admin_api_key)],
)
async def list_bookings(
    manager: Manager,
    status_filter: ProjectStatus | None = Query(default=None, alias="status"),
    month: str | None = Query(default=None, min_length=1, max_length=50),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
) -> BookingListResponse:
    """List bookings, newest first."""
    try:
        projects, total = await manager.list_bookings(
            status=status_filter, month=month, limit=limit, offset=offset
        )
    except BookingError as exc:
        raise http_error(exc) from exc
    return BookingListResponse(
        items=[to_booking_response(project) for project in projects],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get(
    "/{project_id}",
    response_model=BookingResponse,
    dependencies=[Depends(verify_admin_api_key)],
)
async def get_booking(project_id: int, manager: Manager) -> BookingResponse:
    try:
        project = await manager.get_booking(project_id)
    except BookingError as exc:
        raise http_error(exc) from exc
    return to_booking_response(project)


async def _run_transition(
    manager: BookingLifecycleManager, action: str, project_id: int
) -> TransitionResponse:
    operations = {
        "approve": manager.approve_booking,
        "decline": manager.decline_booking,
        "complete": manager.complete_project,
        "cancel": manager.cancel_booking,
    }
    try:
        project = await operations[action](project_id)
    except BookingError as exc:
        raise http_error(exc) from exc
    return TransitionResponse(project_id=project.id, status=project.status)


@router.post(
    "/{project_id}/approve",
    response_model=TransitionResponse,
    dependencies=[Depends(verify_admin_api_key)],
)
async def approve_booking(project_id: int, manager: Manager) -> TransitionResponse:
    """Approve a pending booking and email the client."""
    return await _run_transition(manager, "approve", project_id)


@router.post(
    "/{project_id}/decline",
    response_model=TransitionResponse,
    dependencies=[Depends(verify_admin_api_key)],
)
async def decline_booking(project_id: int, manager: Manager) -> TransitionResponse:
    """Decline a pending booking and email the client."""
    return await _run_transition(manager, "decline", project_id)


@router.post(
    "/{project_id}/complete",
    response_model=TransitionResponse,
    dependencies=[Depends(verify_admin_api_key)],
)
async def complete_project(project_id: int, manager: Manager) -> TransitionResponse:
    return await _run_transition(manager, "complete", project_id)


@router.post(
    "/{project_id}/cancel",
    response_model=TransitionResponse,
    dependencies=[Depends(verify_admin_api_key)],
)
async def cancel_booking(project_id: int, manager: Manager) -> TransitionResponse:
    return await _run_transition(manager, "cancel", project_id)
