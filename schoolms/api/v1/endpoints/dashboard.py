from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from schoolms.api import deps
from schoolms.models.user import User
from schoolms.schemas.responses import SuccessResponse
from schoolms.services.dashboard_service import DashboardService

router = APIRouter()


@router.get("/stats", response_model=SuccessResponse)
async def get_dashboard_stats(
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(deps.get_db)
) -> Any:
    """
    Role-specific dashboard figures (admin, accountant, parent, student).
    """
    try:
        stats = await DashboardService.get_stats(db, current_user)
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    return SuccessResponse(data=stats)
