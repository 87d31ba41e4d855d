from typing import Any, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from schoolms.api import deps
from schoolms.core.exceptions import ClassRequiredError, ConflictError, FeeStructureMissingError, NotFoundError
from schoolms.models.user import User
from schoolms.models.enums import FeeStructureMode
from schoolms.schemas.finance import (
    DiscountResponse,
    StudentDiscountCreate,
    StudentFeeStructureOverview,
    StudentFeeStructureResponse,
    StudentFeeStructureUpdate,
)
from schoolms.schemas.responses import SuccessResponse, PaginatedResponse
from schoolms.schemas.user import StudentCreate, StudentResponse
from schoolms.services.finance_service import FinanceService
from schoolms.services.user_service import UserService

router = APIRouter()


def _student_response(user: User) -> StudentResponse:
    profile = user.student_profile
    return StudentResponse(
        id=user.id,
        email=user.email,
        full_name=user.full_name,
        admission_number=profile.admission_number if profile else None,
        class_name=profile.school_class.name if profile and profile.school_class else None,
        created_at=user.created_at,
    )


@router.get("", response_model=PaginatedResponse[StudentResponse])
async def list_students(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    current_user: User = Depends(deps.require_finance),
    db: AsyncSession = Depends(deps.get_db)
) -> Any:
    students, total = await UserService.list_students(
        db, current_user.school_id, skip=(page - 1) * limit, limit=limit
    )
    return PaginatedResponse(
        data=[_student_response(s) for s in students],
        meta={
            "page": page,
            "page_size": limit,
            "total": total,
            "total_pages": (total + limit - 1) // limit,
        },
    )


@router.post("", response_model=SuccessResponse[StudentResponse])
async def create_student(
    student_in: StudentCreate,
    current_user: User = Depends(deps.require_admin),
    db: AsyncSession = Depends(deps.get_db)
) -> Any:
    """
    Create a student account with admission number and optional class.
    """
    try:
        user = await UserService.create_student(db, current_user.school_id, student_in)
    except ConflictError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    created = await UserService.get_student(db, current_user.school_id, user.id)
    return SuccessResponse(data=_student_response(created), message="Student created successfully")


@router.get("/{student_id}/discounts", response_model=SuccessResponse[List[DiscountResponse]])
async def list_student_discounts(
    student_id: UUID,
    current_user: User = Depends(deps.require_finance),
    db: AsyncSession = Depends(deps.get_db)
) -> Any:
    try:
        discounts = await FinanceService.list_student_discounts(db, current_user.school_id, student_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return SuccessResponse(data=[DiscountResponse.model_validate(d) for d in discounts])


@router.post("/{student_id}/discounts", response_model=SuccessResponse[DiscountResponse], status_code=201)
async def assign_student_discount(
    student_id: UUID,
    assignment: StudentDiscountCreate,
    current_user: User = Depends(deps.require_finance),
    db: AsyncSession = Depends(deps.get_db)
) -> Any:
    try:
        discount = await FinanceService.assign_student_discount(
            db, current_user.school_id, student_id, assignment.discount_id
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ConflictError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return SuccessResponse(data=DiscountResponse.model_validate(discount), message="Discount assigned")


@router.delete("/{student_id}/discounts/{discount_id}", response_model=SuccessResponse)
async def remove_student_discount(
    student_id: UUID,
    discount_id: UUID,
    current_user: User = Depends(deps.require_finance),
    db: AsyncSession = Depends(deps.get_db)
) -> Any:
    try:
        removed = await FinanceService.remove_student_discount(
            db, current_user.school_id, student_id, discount_id
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    if not removed:
        raise HTTPException(status_code=404, detail="Discount is not assigned to this student")
    return SuccessResponse(message="Discount removed")


@router.get("/{student_id}/fee-structure", response_model=SuccessResponse[StudentFeeStructureOverview])
async def get_student_fee_structure(
    student_id: UUID,
    current_user: User = Depends(deps.require_finance),
    db: AsyncSession = Depends(deps.get_db)
) -> Any:
    """
    The student's fee structure snapshot next to their class defaults.
    """
    try:
        overview = await FinanceService.get_student_fee_structure(db, current_user.school_id, student_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return SuccessResponse(data=StudentFeeStructureOverview.model_validate(overview))


@router.put("/{student_id}/fee-structure", response_model=SuccessResponse[Optional[StudentFeeStructureResponse]])
async def update_student_fee_structure(
    student_id: UUID,
    update_in: StudentFeeStructureUpdate,
    current_user: User = Depends(deps.require_finance),
    db: AsyncSession = Depends(deps.get_db)
) -> Any:
    """
    Keep the current snapshot or replace it with a class's default fee structure.
    """
    try:
        structure = await FinanceService.update_student_fee_structure(
            db, current_user.school_id, student_id, update_in.mode, update_in.class_id
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except (ClassRequiredError, FeeStructureMissingError) as e:
        raise HTTPException(status_code=400, detail=str(e))

    data = StudentFeeStructureResponse.model_validate(structure) if structure else None
    if update_in.mode == FeeStructureMode.KEEP_EXISTING:
        return SuccessResponse(data=data, message="Previous fee structure retained.")
    return SuccessResponse(data=data, message="Student fee structure updated from class defaults.")
