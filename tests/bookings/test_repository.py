"""Tests for BookingRepository queries."""

from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from src.bookings.repository import BookingRepository, month_lock_key
from src.bookings.state_machine import TransitionNotAllowed
from src.models import PaymentMethod, PaymentStatus, ProjectStatus, ProjectType


async def _project(
    repo: BookingRepository,
    client_id: int,
    month: str | None = "2025-08",
    project_type: ProjectType = ProjectType.BUSINESS,
):
    return await repo.create_project(
        client_id=client_id,
        project_type=project_type,
        booking_month=month,
        base_price=Decimal("100.00"),
        total_price=Decimal("100.00"),
    )


def test_month_lock_key_is_stable_and_distinct() -> None:
    assert month_lock_key("2025-08") == month_lock_key("2025-08")
    assert month_lock_key("2025-08") != month_lock_key("2025-09")
    assert 0 <= month_lock_key("2025-08") < 2**32


@pytest.mark.asyncio
async def test_find_or_create_client_returns_existing(db_session: AsyncSession) -> None:
    repo = BookingRepository(db_session)

    client, created = await repo.find_or_create_client("Ann", "ann@example.com")
    again, created_again = await repo.find_or_create_client("Annie", "ann@example.com")

    assert created is True
    assert created_again is False
    assert again.id == client.id
    assert again.name == "Ann"


@pytest.mark.asyncio
async def test_count_excludes_cancelled_and_service_only(db_session: AsyncSession) -> None:
    repo = BookingRepository(db_session)
    client = await repo.create_client("Ann", "ann@example.com")
    await _project(repo, client.id)
    cancelled = await _project(repo, client.id)
    cancelled.status = ProjectStatus.CANCELLED
    await _project(repo, client.id, project_type=ProjectType.SERVICE_ONLY)
    await _project(repo, client.id, month="2025-09")
    await repo.flush()

    assert await repo.count_projects_for_month("2025-08") == 1
    assert await repo.count_projects_for_month("2025-08", exclude_statuses=()) == 2
    assert await repo.bookings_by_month() == {"2025-08": 1, "2025-09": 1}


@pytest.mark.asyncio
async def test_update_project_status_uses_state_machine(db_session: AsyncSession) -> None:
    repo = BookingRepository(db_session)
    client = await repo.create_client("Ann", "ann@example.com")
    project = await _project(repo, client.id)

    await repo.update_project_status(project, "approve")
    assert project.status == ProjectStatus.APPROVED

    with pytest.raises(TransitionNotAllowed):
        await repo.update_project_status(project, "decline")
    assert project.status == ProjectStatus.APPROVED


@pytest.mark.asyncio
async def test_list_projects_filters_and_paginates(db_session: AsyncSession) -> None:
    repo = BookingRepository(db_session)
    client = await repo.create_client("Ann", "ann@example.com")
    for _ in range(3):
        await _project(repo, client.id)
    other = await _project(repo, client.id, month="2025-10")
    other.status = ProjectStatus.APPROVED
    await repo.flush()

    items, total = await repo.list_projects(month="2025-08", limit=2)
    assert total == 3
    assert len(items) == 2

    approved, approved_total = await repo.list_projects(status=ProjectStatus.APPROVED)
    assert approved_total == 1
    assert approved[0].id == other.id
    assert approved[0].client.email == "ann@example.com"


@pytest.mark.asyncio
async def test_upsert_payment_updates_existing_row(db_session: AsyncSession) -> None:
    repo = BookingRepository(db_session)
    client = await repo.create_client("Ann", "ann@example.com")
    project = await _project(repo, client.id)

    payment, created = await repo.upsert_payment(
        "pi_1",
        project_id=project.id,
        amount=Decimal("100.00"),
        payment_method=PaymentMethod.STRIPE,
        payment_status=PaymentStatus.PENDING,
    )
    updated, created_again = await repo.upsert_payment(
        "pi_1",
        project_id=project.id,
        amount=Decimal("100.00"),
        payment_method=PaymentMethod.STRIPE,
        payment_status=PaymentStatus.COMPLETED,
    )

    assert created is True
    assert created_again is False
    assert updated.id == payment.id
    assert updated.payment_status == PaymentStatus.COMPLETED


@pytest.mark.asyncio
async def test_stats_totals(db_session: AsyncSession) -> None:
    repo = BookingRepository(db_session)
    client = await repo.create_client("Ann", "ann@example.com")
    project = await _project(repo, client.id)
    await _project(repo, client.id)
    await repo.upsert_payment(
        "pi_paid",
        project_id=project.id,
        amount=Decimal("250.50"),
        payment_method=PaymentMethod.STRIPE,
        payment_status=PaymentStatus.COMPLETED,
    )
    await repo.upsert_payment(
        "pi_failed",
        project_id=project.id,
        amount=Decimal("99.00"),
        payment_method=PaymentMethod.STRIPE,
        payment_status=PaymentStatus.FAILED,
    )

    stats = await repo.stats()

    assert stats["total_clients"] == 1
    assert stats["total_projects"] == 2
    assert stats["projects_by_status"]["pending"] == 2
    assert stats["projects_by_status"]["declined"] == 0
    assert stats["revenue"] == Decimal("250.50")
