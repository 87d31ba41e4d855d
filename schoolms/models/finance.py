"""Domain 2: Fees, Invoices and Payments"""

from decimal import Decimal

from sqlalchemy import Column, String, Text, Date, DateTime, Integer, Numeric, ForeignKey, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID, ENUM
from sqlalchemy.orm import relationship

from schoolms.models.base import BaseModel, SchoolScopedMixin
from schoolms.models.enums import InvoiceStatus, PaymentMethod, DiscountType
from schoolms.utils.time import get_utc_now

MONEY = Numeric(12, 2)


class FeeHead(BaseModel, SchoolScopedMixin):
    """A billable line type, e.g. Tuition, Transport"""
    __tablename__ = "fee_heads"
    __table_args__ = (
        UniqueConstraint("school_id", "name", name="uq_fee_heads_school_name"),
    )

    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<FeeHead {self.name}>"


class FeeStructure(BaseModel, SchoolScopedMixin):
    """Default monthly amount of one fee head for one class"""
    __tablename__ = "fee_structures"
    __table_args__ = (
        UniqueConstraint("school_class_id", "fee_head_id", name="uq_fee_structures_class_head"),
    )

    school_class_id = Column(
        UUID(as_uuid=True), ForeignKey("school_classes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    fee_head_id = Column(UUID(as_uuid=True), ForeignKey("fee_heads.id", ondelete="CASCADE"), nullable=False)
    amount = Column(MONEY, nullable=False)

    school_class = relationship("SchoolClass", back_populates="fee_structures")
    fee_head = relationship("FeeHead")


class StudentFeeStructure(BaseModel, SchoolScopedMixin):
    """
    A student's own copy of a class fee structure.

    Snapshotted from the class defaults so later changes to the class do not
    reprice the student until the snapshot is refreshed.
    """
    __tablename__ = "student_fee_structures"

    student_id = Column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True, index=True
    )
    school_class_id = Column(
        UUID(as_uuid=True), ForeignKey("school_classes.id", ondelete="SET NULL"), nullable=True
    )

    items = relationship(
        "StudentFeeStructureItem",
        back_populates="student_fee_structure",
        cascade="all, delete-orphan",
    )


class StudentFeeStructureItem(BaseModel):
    __tablename__ = "student_fee_structure_items"

    student_fee_structure_id = Column(
        UUID(as_uuid=True),
        ForeignKey("student_fee_structures.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    fee_head_id = Column(UUID(as_uuid=True), ForeignKey("fee_heads.id", ondelete="CASCADE"), nullable=False)
    amount = Column(MONEY, nullable=False)

    student_fee_structure = relationship("StudentFeeStructure", back_populates="items")
    fee_head = relationship("FeeHead")


class Discount(BaseModel, SchoolScopedMixin):
    """Named concession on one fee head, percentage or flat"""
    __tablename__ = "discounts"

    name = Column(String(100), nullable=False)
    type = Column(ENUM(DiscountType, name="discount_type"), nullable=False)
    value = Column(MONEY, nullable=False)
    fee_head_id = Column(UUID(as_uuid=True), ForeignKey("fee_heads.id", ondelete="CASCADE"), nullable=False)

    fee_head = relationship("FeeHead")


class StudentDiscount(BaseModel):
    """Discount granted to a student"""
    __tablename__ = "student_discounts"
    __table_args__ = (
        UniqueConstraint("student_id", "discount_id", name="uq_student_discounts_student_discount"),
    )

    student_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    discount_id = Column(UUID(as_uuid=True), ForeignKey("discounts.id", ondelete="CASCADE"), nullable=False)

    discount = relationship("Discount")


class Invoice(BaseModel, SchoolScopedMixin):
    """
    Billing record for one student for one period.

    paid_amount never exceeds total_amount; pending_amount is derived.
    """
    __tablename__ = "invoices"
    __table_args__ = (
        UniqueConstraint("school_id", "invoice_no", name="uq_invoices_school_invoice_no"),
    )

    student_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    invoice_no = Column(String(64), nullable=False, index=True)
    month = Column(Integer, nullable=True)
    year = Column(Integer, nullable=True)
    due_date = Column(Date, nullable=False, index=True)
    total_amount = Column(MONEY, nullable=False, default=Decimal("0"))
    paid_amount = Column(MONEY, nullable=False, default=Decimal("0"))
    status = Column(
        ENUM(InvoiceStatus, name="invoice_status"),
        default=InvoiceStatus.UNPAID,
        nullable=False,
        index=True,
    )

    student = relationship("User", back_populates="invoices")
    items = relationship("InvoiceItem", back_populates="invoice", cascade="all, delete-orphan")
    payments = relationship(
        "Payment",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="Payment.paid_at.desc()",
    )

    @property
    def pending_amount(self) -> Decimal:
        return Decimal(self.total_amount or 0) - Decimal(self.paid_amount or 0)

    @property
    def student_name(self) -> str:
        """Requires the student relationship to be loaded"""
        return self.student.full_name if self.student else ""

    def __repr__(self) -> str:
        return f"<Invoice {self.invoice_no} {self.paid_amount}/{self.total_amount} {self.status}>"


class InvoiceItem(BaseModel):
    """One fee head line on an invoice, with the discount that was applied"""
    __tablename__ = "invoice_items"

    invoice_id = Column(UUID(as_uuid=True), ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)
    fee_head_id = Column(UUID(as_uuid=True), ForeignKey("fee_heads.id", ondelete="RESTRICT"), nullable=False)
    original_amount = Column(MONEY, nullable=False)
    discount_amount = Column(MONEY, nullable=False, default=Decimal("0"))
    amount = Column(MONEY, nullable=False)

    invoice = relationship("Invoice", back_populates="items")
    fee_head = relationship("FeeHead")


class Payment(BaseModel, SchoolScopedMixin):
    """Money received against one invoice"""
    __tablename__ = "payments"

    invoice_id = Column(UUID(as_uuid=True), ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = Column(MONEY, nullable=False)
    method = Column(ENUM(PaymentMethod, name="payment_method"), default=PaymentMethod.CASH, nullable=False)
    paid_at = Column(DateTime, default=get_utc_now, nullable=False, index=True)
    transaction_id = Column(String(255), nullable=True)
    remarks = Column(Text, nullable=True)

    invoice = relationship("Invoice", back_populates="payments")

    def __repr__(self) -> str:
        return f"<Payment {self.amount} {self.method}>"
