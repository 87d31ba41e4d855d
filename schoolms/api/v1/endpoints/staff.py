from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from schoolms.api import deps
from schoolms.core.exceptions import ConflictError
from schoolms.models.enums import UserRole
from schoolms.models.user import User
from schoolms.schemas.responses import SuccessResponse
from schoolms.schemas.user import UserCreate, UserResponse
from schoolms.services.user_service import UserService

router = APIRouter()

STAFF_ROLES = (UserRole.ACCOUNTANT, UserRole.TEACHER, UserRole.STAFF)


@router.post("", response_model=SuccessResponse[UserResponse], status_code=201)
async def create_staff(
    user_in: UserCreate,
    current_user: User = Depends(deps.require_admin),
    db: AsyncSession = Depends(deps.get_db)
) -> Any:
    """
    Create an accountant, teacher or staff account in the admin's school.
    Students and parents have their own endpoints.
    """
    if user_in.role not in STAFF_ROLES:
        raise HTTPException(status_code=400, detail=f"Cannot create {user_in.role.value} accounts here")
    try:
        user = await UserService.create_user(
            db,
            email=user_in.email,
            password=user_in.password,
            first_name=user_in.first_name,
            last_name=user_in.last_name,
            school_id=current_user.school_id,
            role=user_in.role,
            phone=user_in.phone,
        )
    except ConflictError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return SuccessResponse(data=UserResponse.model_validate(user), message="Staff member created")
