from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from schoolms.api import deps
from schoolms.core import security
from schoolms.core.exceptions import ConflictError
from schoolms.schemas.auth import LoginRequest, Token, RegisterSchoolRequest
from schoolms.schemas.responses import SuccessResponse
from schoolms.services.school_service import SchoolService
from schoolms.services.user_service import UserService

router = APIRouter()


@router.post("/login", response_model=SuccessResponse[Token])
async def login(
    login_data: LoginRequest,
    db: AsyncSession = Depends(deps.get_db)
) -> Any:
    """
    Unified login for all roles. Returns JWT access and refresh tokens.
    """
    user = await UserService.authenticate_user(db, email=login_data.email, password=login_data.password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
        )

    claims = {"sub": str(user.id), "role": user.role.value, "school_id": str(user.school_id)}
    return SuccessResponse(
        data=Token(
            access_token=security.create_access_token(claims),
            refresh_token=security.create_refresh_token({"sub": str(user.id)}),
            role=user.role.value,
            user_id=str(user.id),
            school_id=str(user.school_id),
        ),
        message="Login successful"
    )


@router.post("/register/school", response_model=SuccessResponse)
async def register_school(
    school_in: RegisterSchoolRequest,
    db: AsyncSession = Depends(deps.get_db)
) -> Any:
    """
    Register a new school tenant and its first admin user.
    """
    try:
        school = await SchoolService.create_school_with_admin(db, school_in)
    except ConflictError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return SuccessResponse(
        data={"school_id": str(school.id)},
        message="School registered successfully"
    )
