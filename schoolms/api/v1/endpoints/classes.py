from typing import Any, List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from schoolms.api import deps
from schoolms.core.exceptions import ConflictError
from schoolms.models.user import User
from schoolms.schemas.responses import SuccessResponse
from schoolms.schemas.school import SchoolClassCreate, SchoolClassResponse
from schoolms.services.school_service import SchoolService

router = APIRouter()


@router.get("", response_model=SuccessResponse[List[SchoolClassResponse]])
async def list_classes(
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(deps.get_db)
) -> Any:
    classes = await SchoolService.list_classes(db, current_user.school_id)
    return SuccessResponse(data=[SchoolClassResponse.model_validate(c) for c in classes])


@router.post("", response_model=SuccessResponse[SchoolClassResponse])
async def create_class(
    class_in: SchoolClassCreate,
    current_user: User = Depends(deps.require_admin),
    db: AsyncSession = Depends(deps.get_db)
) -> Any:
    try:
        school_class = await SchoolService.create_class(db, current_user.school_id, class_in.name)
    except ConflictError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return SuccessResponse(data=SchoolClassResponse.model_validate(school_class), message="Class created")
