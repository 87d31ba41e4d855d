"""Unit tests for DashboardService role dispatch."""

from decimal import Decimal
from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from schoolms.models.enums import UserRole
from schoolms.models.user import User
from schoolms.services.dashboard_service import DashboardService


@pytest.mark.parametrize(
    "role",
    [UserRole.ADMIN, UserRole.ACCOUNTANT, UserRole.PARENT, UserRole.STUDENT],
)
def test_roles_with_a_dashboard(role):
    assert DashboardService.builder_for(role) is not None


@pytest.mark.parametrize("role", [UserRole.TEACHER, UserRole.STAFF])
def test_roles_without_a_dashboard(role):
    assert DashboardService.builder_for(role) is None


@pytest.mark.asyncio
async def test_get_stats_rejects_teacher():
    db = AsyncMock(spec=AsyncSession)
    user = User(id=uuid4(), school_id=uuid4(), role=UserRole.TEACHER)

    with pytest.raises(PermissionError):
        await DashboardService.get_stats(db, user)


@pytest.mark.asyncio
async def test_parent_stats_without_children():
    db = AsyncMock(spec=AsyncSession)
    user = User(id=uuid4(), school_id=uuid4(), role=UserRole.PARENT)

    with patch(
        "schoolms.services.dashboard_service.ParentService.financial_overview",
        new_callable=AsyncMock,
        return_value=[],
    ) as mock_overview:
        stats = await DashboardService.get_stats(db, user)

    mock_overview.assert_awaited_once_with(db, user.school_id, parent_id=user.id)
    assert stats["role"] == UserRole.PARENT
    assert stats["stats"] == {"children": [], "children_count": 0, "total_family_due": Decimal("0")}
