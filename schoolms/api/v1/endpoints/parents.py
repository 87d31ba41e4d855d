from typing import Any, List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from schoolms.api import deps
from schoolms.core.exceptions import ConflictError, InvalidAmountError, NotFoundError
from schoolms.models.user import User
from schoolms.schemas.finance import ParentCollectRequest, CollectResponse, CollectBreakdownItem
from schoolms.schemas.responses import SuccessResponse
from schoolms.schemas.user import (
    ParentCreate,
    KinshipCreate,
    ChildResponse,
    ParentFinancialOverview,
    ParentSearchResult,
    UserResponse,
)
from schoolms.services.finance_service import FinanceService
from schoolms.services.parent_service import ParentService

router = APIRouter()


@router.post("", response_model=SuccessResponse[UserResponse], status_code=201)
async def create_parent(
    parent_in: ParentCreate,
    current_user: User = Depends(deps.require_finance),
    db: AsyncSession = Depends(deps.get_db)
) -> Any:
    """
    Create a parent account, optionally linking a first child.
    """
    try:
        parent = await ParentService.create_parent(db, current_user.school_id, parent_in)
    except ConflictError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return SuccessResponse(data=UserResponse.model_validate(parent), message="Parent created")


@router.get("/financial-overview", response_model=SuccessResponse[List[ParentFinancialOverview]])
async def financial_overview(
    current_user: User = Depends(deps.require_finance),
    db: AsyncSession = Depends(deps.get_db)
) -> Any:
    """
    Every parent with outstanding dues per child and for the family.
    """
    overview = await ParentService.financial_overview(db, current_user.school_id)
    return SuccessResponse(data=overview)


@router.get("/search", response_model=SuccessResponse[List[ParentSearchResult]])
async def search_parents(
    q: str = Query(..., description="Name, email, phone or CNIC fragment"),
    current_user: User = Depends(deps.require_finance),
    db: AsyncSession = Depends(deps.get_db)
) -> Any:
    """
    Quick parent lookup for the collection screen. Fewer than three
    characters returns an empty list.
    """
    query = q.strip()
    if len(query) < 3:
        return SuccessResponse(data=[])
    parents = await ParentService.search_parents(db, current_user.school_id, query)
    return SuccessResponse(
        data=[
            ParentSearchResult(
                id=p.id,
                name=p.full_name,
                email=p.email,
                phone=p.phone,
                cnic=p.parent_profile.cnic if p.parent_profile else None,
            )
            for p in parents
        ]
    )


@router.get("/{parent_id}/students", response_model=SuccessResponse[List[ChildResponse]])
async def list_children(
    parent_id: UUID,
    current_user: User = Depends(deps.require_finance),
    db: AsyncSession = Depends(deps.get_db)
) -> Any:
    try:
        children = await ParentService.list_children(db, current_user.school_id, parent_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return SuccessResponse(data=children)


@router.post("/{parent_id}/students", response_model=SuccessResponse, status_code=201)
async def link_child(
    parent_id: UUID,
    link_in: KinshipCreate,
    current_user: User = Depends(deps.require_finance),
    db: AsyncSession = Depends(deps.get_db)
) -> Any:
    try:
        kinship = await ParentService.link_student(
            db,
            current_user.school_id,
            parent_id,
            link_in.student_id,
            link_in.relationship,
            is_primary=link_in.is_primary,
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ConflictError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return SuccessResponse(data={"id": str(kinship.id)}, message="Student linked")


@router.post("/{parent_id}/collect", response_model=SuccessResponse[CollectResponse])
async def collect_payment(
    parent_id: UUID,
    payment_in: ParentCollectRequest,
    current_user: User = Depends(deps.require_finance),
    db: AsyncSession = Depends(deps.get_db)
) -> Any:
    """
    Take one payment from a parent and spread it over all their children's
    outstanding invoices, oldest due date first. Any excess is returned as
    remaining_balance and is not applied.
    """
    try:
        allocation = await FinanceService.collect_parent_payment(
            db,
            current_user.school_id,
            parent_id,
            amount=payment_in.amount,
            method=payment_in.method,
            remarks=payment_in.remarks,
        )
    except InvalidAmountError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return SuccessResponse(
        data=CollectResponse(
            distributed_amount=allocation.distributed_amount,
            remaining_balance=allocation.remaining_balance,
            breakdown=[
                CollectBreakdownItem(
                    student=a.student_name,
                    invoice_no=a.invoice_no,
                    paid=a.amount_applied,
                    status=a.resulting_status,
                )
                for a in allocation.breakdown
            ],
        ),
        message="Payment distributed",
    )
