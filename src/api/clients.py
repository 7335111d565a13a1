"""Client endpoints for the admin dashboard."""

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.api.deps import get_db, verify_admin_api_key
from src.models.client import Client
from src.models.project import ProjectStatus

router = APIRouter(
    prefix="/api/clients",
    tags=["clients"],
    dependencies=[Depends(verify_admin_api_key)],
)


class ClientProjectSummary(BaseModel):
    id: int
    project_type: str
    booking_month: str | None
    status: ProjectStatus
    created_at: datetime


class ClientResponse(BaseModel):
    """Client response model."""

    id: int
    name: str
    email: str
    phone: str | None
    created_at: datetime
    updated_at: datetime | None
    projects: list[ClientProjectSummary]


class ClientListResponse(BaseModel):
    """Paginated client list response."""

    items: list[ClientResponse]
    total: int
    limit: int
    offset: int


def _to_client_response(client: Client) -> ClientResponse:
    """Map SQLAlchemy client model to response model."""
    return ClientResponse(
        id=client.id,
        name=client.name,
        email=client.email,
        phone=client.phone,
        created_at=client.created_at,
        updated_at=client.updated_at,
        projects=[
            ClientProjectSummary(
                id=project.id,
                project_type=project.project_type.value,
                booking_month=project.booking_month,
                status=project.status,
                created_at=project.created_at,
            )
            for project in sorted(client.projects, key=lambda p: p.id, reverse=True)
        ],
    )


@router.get("", response_model=ClientListResponse)
async def list_clients(
    search: str | None = Query(default=None, min_length=1),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    db: AsyncSession = Depends(get_db),
) -> ClientListResponse:
    """List clients with their projects, optionally filtered by name or email."""
    filters = []
    if search:
        term = (
            search.strip()
            .lower()
            .replace("\\", "\\\\")
            .replace("%", "\\%")
            .replace("_", "\\_")
        )
        search_pattern = f"%{term}%"
        filters.append(
            or_(
                func.lower(Client.name).like(search_pattern, escape="\\"),
                Client.email.like(search_pattern, escape="\\"),
            )
        )

    count_stmt = select(func.count(Client.id))
    list_stmt = (
        select(Client)
        .options(selectinload(Client.projects))
        .order_by(Client.created_at.desc(), Client.id.desc())
    )
    if filters:
        count_stmt = count_stmt.where(*filters)
        list_stmt = list_stmt.where(*filters)

    total_result = await db.execute(count_stmt)
    total = int(total_result.scalar() or 0)

    clients_result = await db.execute(list_stmt.limit(limit).offset(offset))
    clients = clients_result.scalars().all()

    return ClientListResponse(
        items=[_to_client_response(client) for client in clients],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/{client_id}", response_model=ClientResponse)
async def get_client(
    client_id: int,
    db: AsyncSession = Depends(get_db),
) -> ClientResponse:
    """Get client by ID."""
    result = await db.execute(
        select(Client)
        .where(Client.id == client_id)
        .options(selectinload(Client.projects))
    )
    client = result.scalars().first()
    if client is None:
        raise HTTPException(status_code=404, detail="Client not found")
    return _to_client_response(client)
