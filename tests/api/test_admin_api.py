"""Tests for the admin stats endpoint."""

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_stats_summarizes_bookings(
    api_client: AsyncClient, admin_headers: dict[str, str]
) -> None:
    for i, month in enumerate(["2025-08", "2025-08", "2025-09"]):
        await api_client.post(
            "/api/bookings",
            json={
                "client_name": f"Client {i}",
                "client_email": f"client{i}@example.com",
                "project_type": "custom",
                "booking_month": month,
            },
        )

    response = await api_client.get("/api/admin/stats", headers=admin_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["total_clients"] == 3
    assert data["total_projects"] == 3
    assert data["projects_by_status"]["pending"] == 3
    assert data["bookings_by_month"] == {"2025-08": 2, "2025-09": 1}
    assert data["monthly_capacity"] == 4
    assert data["revenue"] == "0.00"
    assert len(data["recent_projects"]) == 3


@pytest.mark.asyncio
async def test_stats_requires_admin_key(api_client: AsyncClient, admin_headers) -> None:
    response = await api_client.get("/api/admin/stats")

    assert response.status_code == 401
