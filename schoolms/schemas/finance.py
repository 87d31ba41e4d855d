from typing import Optional, List
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID
from pydantic import BaseModel, ConfigDict, Field, model_validator

from schoolms.models.enums import InvoiceStatus, InvoiceAction, PaymentMethod, DiscountType, FeeStructureMode


# --- Fee configuration ---

class FeeHeadCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None


class FeeHeadResponse(BaseModel):
    id: UUID
    name: str
    description: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class FeeStructureUpsert(BaseModel):
    class_id: UUID
    fee_head_id: UUID
    amount: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)


class FeeStructureResponse(BaseModel):
    id: UUID
    school_class_id: UUID
    fee_head_id: UUID
    fee_head: Optional[FeeHeadResponse] = None
    amount: Decimal

    model_config = ConfigDict(from_attributes=True)


class DiscountCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    type: DiscountType
    value: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    fee_head_id: UUID

    @model_validator(mode="after")
    def check_percentage(self):
        if self.type == DiscountType.PERCENTAGE and self.value > 100:
            raise ValueError("Percentage discount cannot exceed 100")
        return self


class DiscountResponse(BaseModel):
    id: UUID
    name: str
    type: DiscountType
    value: Decimal
    fee_head_id: UUID
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class StudentDiscountCreate(BaseModel):
    discount_id: UUID


class StudentFeeStructureUpdate(BaseModel):
    mode: FeeStructureMode
    class_id: Optional[UUID] = None


class StudentFeeStructureItemResponse(BaseModel):
    id: UUID
    fee_head_id: UUID
    fee_head: Optional[FeeHeadResponse] = None
    amount: Decimal

    model_config = ConfigDict(from_attributes=True)


class StudentFeeStructureResponse(BaseModel):
    id: UUID
    student_id: UUID
    school_class_id: Optional[UUID] = None
    items: List[StudentFeeStructureItemResponse] = []
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class StudentFeeStructureOverview(BaseModel):
    """Current snapshot next to the defaults of the student's class"""
    student_id: UUID
    class_id: Optional[UUID] = None
    current_fee_structure: Optional[StudentFeeStructureResponse] = None
    class_defaults: List[FeeStructureResponse] = []

    model_config = ConfigDict(from_attributes=True)


# --- Invoices ---

class InvoiceGenerateRequest(BaseModel):
    class_id: UUID
    month: int = Field(..., ge=1, le=12)
    year: int = Field(..., ge=2000, le=2100)
    due_date: date


class CustomInvoiceItem(BaseModel):
    fee_head_id: UUID
    amount: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)


class CustomInvoiceRequest(BaseModel):
    student_id: UUID
    due_date: date
    month: Optional[int] = Field(None, ge=1, le=12)
    year: Optional[int] = Field(None, ge=2000, le=2100)
    items: List[CustomInvoiceItem] = Field(..., min_length=1)


class InvoiceUpdateRequest(BaseModel):
    action: InvoiceAction


class InvoiceItemResponse(BaseModel):
    id: UUID
    fee_head_id: UUID
    original_amount: Decimal
    discount_amount: Decimal
    amount: Decimal

    model_config = ConfigDict(from_attributes=True)


class PaymentResponse(BaseModel):
    id: UUID
    amount: Decimal
    method: PaymentMethod
    paid_at: datetime
    transaction_id: Optional[str] = None
    remarks: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class InvoiceResponse(BaseModel):
    id: UUID
    invoice_no: str
    student_id: UUID
    month: Optional[int] = None
    year: Optional[int] = None
    due_date: date
    total_amount: Decimal
    paid_amount: Decimal
    status: InvoiceStatus
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class InvoiceListItem(InvoiceResponse):
    student_name: str
    pending_amount: Decimal


class InvoiceDetailResponse(InvoiceListItem):
    items: List[InvoiceItemResponse] = []
    payments: List[PaymentResponse] = []


# --- Payments ---

class InvoicePaymentRequest(BaseModel):
    invoice_id: UUID
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    method: PaymentMethod = PaymentMethod.CASH
    transaction_id: Optional[str] = Field(None, max_length=255)


class ParentCollectRequest(BaseModel):
    """Lump-sum payment from a parent. Positivity is enforced by the allocator."""
    amount: Decimal = Field(..., max_digits=12, decimal_places=2)
    method: PaymentMethod
    remarks: Optional[str] = Field(None, max_length=255)


class CollectBreakdownItem(BaseModel):
    student: str
    invoice_no: str
    paid: Decimal
    status: InvoiceStatus


class CollectResponse(BaseModel):
    distributed_amount: Decimal
    remaining_balance: Decimal
    breakdown: List[CollectBreakdownItem]


# --- Dues search ---

class DuesSearchResult(BaseModel):
    id: UUID
    name: str
    admission_number: Optional[str] = None
    class_name: str
    guardian_name: str = ""
    total_due: Decimal
    invoices: List[InvoiceDetailResponse]
