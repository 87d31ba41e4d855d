from typing import Any, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from schoolms.api import deps
from schoolms.config import settings
from schoolms.core.exceptions import (
    ConflictError,
    DuplicateInvoiceError,
    FeeStructureMissingError,
    NoStudentsError,
    NotFoundError,
    OverpaymentError,
)
from schoolms.models.enums import InvoiceStatus
from schoolms.models.user import User
from schoolms.schemas.finance import (
    CustomInvoiceRequest,
    DiscountCreate,
    DiscountResponse,
    DuesSearchResult,
    FeeHeadCreate,
    FeeHeadResponse,
    FeeStructureResponse,
    FeeStructureUpsert,
    InvoiceDetailResponse,
    InvoiceGenerateRequest,
    InvoiceListItem,
    InvoicePaymentRequest,
    InvoiceUpdateRequest,
)
from schoolms.schemas.responses import SuccessResponse
from schoolms.services.finance_service import FinanceService
from schoolms.utils.time import get_utc_today

router = APIRouter()


# --- Fee heads ---

@router.get("/fee-heads", response_model=SuccessResponse[List[FeeHeadResponse]])
async def list_fee_heads(
    current_user: User = Depends(deps.require_finance),
    db: AsyncSession = Depends(deps.get_db)
) -> Any:
    fee_heads = await FinanceService.list_fee_heads(db, current_user.school_id)
    return SuccessResponse(data=[FeeHeadResponse.model_validate(f) for f in fee_heads])


@router.post("/fee-heads", response_model=SuccessResponse[FeeHeadResponse], status_code=201)
async def create_fee_head(
    fee_head_in: FeeHeadCreate,
    current_user: User = Depends(deps.require_finance),
    db: AsyncSession = Depends(deps.get_db)
) -> Any:
    try:
        fee_head = await FinanceService.create_fee_head(db, current_user.school_id, fee_head_in)
    except ConflictError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return SuccessResponse(data=FeeHeadResponse.model_validate(fee_head), message="Fee head created")


# --- Fee structures ---

@router.get("/fee-structures", response_model=SuccessResponse[List[FeeStructureResponse]])
async def list_fee_structures(
    class_id: Optional[UUID] = None,
    current_user: User = Depends(deps.require_finance),
    db: AsyncSession = Depends(deps.get_db)
) -> Any:
    """
    Fee structure of one class. Without class_id the list is empty.
    """
    if class_id is None:
        return SuccessResponse(data=[])
    structures = await FinanceService.list_fee_structures(db, current_user.school_id, class_id)
    return SuccessResponse(data=[FeeStructureResponse.model_validate(s) for s in structures])


@router.post("/fee-structures", response_model=SuccessResponse[FeeStructureResponse])
async def upsert_fee_structure(
    structure_in: FeeStructureUpsert,
    current_user: User = Depends(deps.require_finance),
    db: AsyncSession = Depends(deps.get_db)
) -> Any:
    try:
        structure = await FinanceService.upsert_fee_structure(db, current_user.school_id, structure_in)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return SuccessResponse(data=FeeStructureResponse.model_validate(structure), message="Fee structure saved")


# --- Discounts ---

@router.get("/discounts", response_model=SuccessResponse[List[DiscountResponse]])
async def list_discounts(
    current_user: User = Depends(deps.require_finance),
    db: AsyncSession = Depends(deps.get_db)
) -> Any:
    discounts = await FinanceService.list_discounts(db, current_user.school_id)
    return SuccessResponse(data=[DiscountResponse.model_validate(d) for d in discounts])


@router.post("/discounts", response_model=SuccessResponse[DiscountResponse], status_code=201)
async def create_discount(
    discount_in: DiscountCreate,
    current_user: User = Depends(deps.require_finance),
    db: AsyncSession = Depends(deps.get_db)
) -> Any:
    try:
        discount = await FinanceService.create_discount(db, current_user.school_id, discount_in)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return SuccessResponse(data=DiscountResponse.model_validate(discount), message="Discount created")


# --- Invoices ---

@router.get("/invoices", response_model=SuccessResponse[List[InvoiceListItem]])
async def list_invoices(
    status: Optional[InvoiceStatus] = None,
    current_user: User = Depends(deps.require_finance),
    db: AsyncSession = Depends(deps.get_db)
) -> Any:
    """
    Most recent invoices of the school, newest first.
    """
    invoices = await FinanceService.list_invoices(
        db, current_user.school_id, status=status, limit=settings.INVOICE_LIST_LIMIT
    )
    return SuccessResponse(data=[InvoiceListItem.model_validate(inv) for inv in invoices])


@router.post("/invoices/generate", response_model=SuccessResponse)
async def generate_invoices(
    generate_in: InvoiceGenerateRequest,
    current_user: User = Depends(deps.require_finance),
    db: AsyncSession = Depends(deps.get_db)
) -> Any:
    """
    Monthly invoices for every student of a class, discounts applied.
    """
    try:
        count = await FinanceService.generate_invoices(db, current_user.school_id, generate_in)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except (FeeStructureMissingError, NoStudentsError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    except DuplicateInvoiceError as e:
        raise HTTPException(status_code=409, detail=str(e))

    return SuccessResponse(
        data={"generated": count},
        message=f"Successfully generated {count} invoices.",
    )


@router.post("/invoices/custom", response_model=SuccessResponse[InvoiceDetailResponse], status_code=201)
async def create_custom_invoice(
    invoice_in: CustomInvoiceRequest,
    current_user: User = Depends(deps.require_finance),
    db: AsyncSession = Depends(deps.get_db)
) -> Any:
    try:
        invoice = await FinanceService.create_custom_invoice(db, current_user.school_id, invoice_in)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return SuccessResponse(data=InvoiceDetailResponse.model_validate(invoice), message="Invoice created")


@router.post("/invoices/mark-overdue", response_model=SuccessResponse)
async def mark_overdue_invoices(
    current_user: User = Depends(deps.require_finance),
    db: AsyncSession = Depends(deps.get_db)
) -> Any:
    count = await FinanceService.mark_overdue(db, current_user.school_id, get_utc_today())
    return SuccessResponse(data={"updated": count}, message=f"{count} invoices marked overdue")


@router.get("/invoices/{invoice_id}", response_model=SuccessResponse[InvoiceDetailResponse])
async def get_invoice(
    invoice_id: UUID,
    current_user: User = Depends(deps.require_finance),
    db: AsyncSession = Depends(deps.get_db)
) -> Any:
    try:
        invoice = await FinanceService.get_invoice(db, current_user.school_id, invoice_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return SuccessResponse(data=InvoiceDetailResponse.model_validate(invoice))


@router.patch("/invoices/{invoice_id}", response_model=SuccessResponse[InvoiceDetailResponse])
async def update_invoice(
    invoice_id: UUID,
    update_in: InvoiceUpdateRequest,
    current_user: User = Depends(deps.require_finance),
    db: AsyncSession = Depends(deps.get_db)
) -> Any:
    """
    CANCEL, MARK_PAID or MARK_UNPAID an invoice.
    """
    try:
        invoice = await FinanceService.apply_invoice_action(
            db, current_user.school_id, invoice_id, update_in.action
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return SuccessResponse(data=InvoiceDetailResponse.model_validate(invoice), message="Invoice updated")


# --- Payments ---

@router.post("/payments", response_model=SuccessResponse[InvoiceDetailResponse])
async def record_payment(
    payment_in: InvoicePaymentRequest,
    current_user: User = Depends(deps.require_finance),
    db: AsyncSession = Depends(deps.get_db)
) -> Any:
    """
    Pay one invoice. Overpayment is rejected.
    """
    try:
        invoice = await FinanceService.record_payment(db, current_user.school_id, payment_in)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except OverpaymentError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return SuccessResponse(data=InvoiceDetailResponse.model_validate(invoice), message="Payment recorded")


@router.get("/search-dues", response_model=SuccessResponse[DuesSearchResult])
async def search_dues(
    q: str = Query(..., min_length=1, description="Invoice number, admission number or student name"),
    current_user: User = Depends(deps.require_finance),
    db: AsyncSession = Depends(deps.get_db)
) -> Any:
    try:
        found = await FinanceService.search_dues(db, current_user.school_id, q)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    student = found["student"]
    return SuccessResponse(
        data=DuesSearchResult(
            id=student.id,
            name=student.full_name,
            admission_number=found["admission_number"],
            class_name=found["class_name"],
            guardian_name=found["guardian_name"],
            total_due=found["total_due"],
            invoices=[InvoiceDetailResponse.model_validate(inv) for inv in found["invoices"]],
        )
    )
