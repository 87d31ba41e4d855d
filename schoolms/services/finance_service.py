"""Finance Service - fees, invoices and payments

Methods flush but never commit: the request session (get_db) commits once
the endpoint returns, so every multi-row operation is all-or-nothing.
"""

import secrets
from datetime import date
from decimal import Decimal
from typing import Optional, List, Dict, Any, Iterable, Tuple
from uuid import UUID

from sqlalchemy import select, update, delete, func, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from schoolms.core.exceptions import (
    ClassRequiredError,
    ConflictError,
    DuplicateInvoiceError,
    FeeStructureMissingError,
    NoStudentsError,
    NotFoundError,
    OverpaymentError,
)
from schoolms.core.logging import get_logger
from schoolms.models.enums import (
    DiscountType,
    FeeStructureMode,
    InvoiceAction,
    InvoiceStatus,
    OUTSTANDING_STATUSES,
    PaymentMethod,
    Relationship,
    UserRole,
)
from schoolms.models.finance import (
    Discount,
    FeeHead,
    FeeStructure,
    Invoice,
    InvoiceItem,
    Payment,
    StudentDiscount,
    StudentFeeStructure,
    StudentFeeStructureItem,
)
from schoolms.models.school import SchoolClass
from schoolms.models.user import User, StudentProfile, Kinship
from schoolms.schemas.finance import (
    CustomInvoiceRequest,
    DiscountCreate,
    FeeHeadCreate,
    FeeStructureUpsert,
    InvoiceGenerateRequest,
    InvoicePaymentRequest,
)
from schoolms.services.payment_allocator import AllocationResult, OutstandingInvoice, allocate_payment
from schoolms.utils.money import ZERO, money_sum, quantize, to_decimal
from schoolms.utils.text import LIKE_ESCAPE, contains_pattern
from schoolms.utils.time import get_utc_now

logger = get_logger(__name__)

_ACTION_STATUS = {
    InvoiceAction.CANCEL: InvoiceStatus.CANCELLED,
    InvoiceAction.MARK_PAID: InvoiceStatus.PAID,
    InvoiceAction.MARK_UNPAID: InvoiceStatus.UNPAID,
}


class FinanceService:
    """Service layer for finance operations"""

    # ------------------------------------------------------------------
    # Pure helpers
    # ------------------------------------------------------------------

    @staticmethod
    def calculate_discount(original_amount: Decimal, discount_type: DiscountType, value: Decimal) -> Decimal:
        """
        Discount for one fee line, never more than the line itself.

        PERCENTAGE takes value% of the amount (rounded to the currency's
        minor unit); FLAT takes value as is.
        """
        original_amount = to_decimal(original_amount)
        value = to_decimal(value)
        if discount_type == DiscountType.PERCENTAGE:
            discount = quantize(original_amount * value / Decimal(100))
        else:
            discount = value
        return max(ZERO, min(discount, original_amount))

    @staticmethod
    def build_invoice_items(
        fee_items: Iterable[Tuple[UUID, Decimal]],
        discounts: Iterable[Discount],
    ) -> List[Dict[str, Any]]:
        """
        Turn (fee_head_id, amount) pairs into invoice item values.

        At most one discount applies per fee head: the first one found.
        """
        by_head: Dict[UUID, Discount] = {}
        for discount in discounts:
            by_head.setdefault(discount.fee_head_id, discount)

        items = []
        for fee_head_id, amount in fee_items:
            original = to_decimal(amount)
            discount = by_head.get(fee_head_id)
            discount_amount = (
                FinanceService.calculate_discount(original, discount.type, discount.value)
                if discount
                else ZERO
            )
            items.append(
                {
                    "fee_head_id": fee_head_id,
                    "original_amount": original,
                    "discount_amount": discount_amount,
                    "amount": original - discount_amount,
                }
            )
        return items

    @staticmethod
    def apply_payment(invoice: Invoice, amount: Decimal) -> InvoiceStatus:
        """Add amount to paid_amount and recompute status. Caller checks the bound."""
        invoice.paid_amount = to_decimal(invoice.paid_amount) + to_decimal(amount)
        invoice.status = (
            InvoiceStatus.PAID
            if invoice.paid_amount >= to_decimal(invoice.total_amount)
            else InvoiceStatus.PARTIAL
        )
        return invoice.status

    # ------------------------------------------------------------------
    # Fee heads, structures and discounts
    # ------------------------------------------------------------------

    @staticmethod
    async def list_fee_heads(db: AsyncSession, school_id: UUID) -> List[FeeHead]:
        result = await db.execute(
            select(FeeHead).where(FeeHead.school_id == school_id).order_by(FeeHead.name)
        )
        return list(result.scalars().all())

    @staticmethod
    async def create_fee_head(db: AsyncSession, school_id: UUID, data: FeeHeadCreate) -> FeeHead:
        existing = await db.scalar(
            select(FeeHead.id).where(FeeHead.school_id == school_id, FeeHead.name == data.name)
        )
        if existing:
            raise ConflictError(f"Fee head {data.name} already exists")
        fee_head = FeeHead(school_id=school_id, name=data.name, description=data.description)
        db.add(fee_head)
        await db.flush()
        return fee_head

    @staticmethod
    async def _get_fee_head(db: AsyncSession, school_id: UUID, fee_head_id: UUID) -> FeeHead:
        fee_head = await db.scalar(
            select(FeeHead).where(FeeHead.id == fee_head_id, FeeHead.school_id == school_id)
        )
        if not fee_head:
            raise NotFoundError("Fee head not found")
        return fee_head

    @staticmethod
    async def _get_class(db: AsyncSession, school_id: UUID, class_id: UUID) -> SchoolClass:
        school_class = await db.scalar(
            select(SchoolClass).where(SchoolClass.id == class_id, SchoolClass.school_id == school_id)
        )
        if not school_class:
            raise NotFoundError("Class not found")
        return school_class

    @staticmethod
    async def list_fee_structures(db: AsyncSession, school_id: UUID, class_id: UUID) -> List[FeeStructure]:
        result = await db.execute(
            select(FeeStructure)
            .options(selectinload(FeeStructure.fee_head))
            .where(FeeStructure.school_id == school_id, FeeStructure.school_class_id == class_id)
        )
        return list(result.scalars().all())

    @staticmethod
    async def upsert_fee_structure(db: AsyncSession, school_id: UUID, data: FeeStructureUpsert) -> FeeStructure:
        """Set the amount of a fee head for a class, creating the row if needed"""
        await FinanceService._get_class(db, school_id, data.class_id)
        fee_head = await FinanceService._get_fee_head(db, school_id, data.fee_head_id)

        structure = await db.scalar(
            select(FeeStructure).where(
                FeeStructure.school_class_id == data.class_id,
                FeeStructure.fee_head_id == data.fee_head_id,
            )
        )
        if structure:
            structure.amount = data.amount
        else:
            structure = FeeStructure(
                school_id=school_id,
                school_class_id=data.class_id,
                fee_head_id=data.fee_head_id,
                amount=data.amount,
            )
            db.add(structure)
        await db.flush()
        structure.fee_head = fee_head
        return structure

    @staticmethod
    async def list_discounts(db: AsyncSession, school_id: UUID) -> List[Discount]:
        result = await db.execute(
            select(Discount).where(Discount.school_id == school_id).order_by(Discount.created_at.desc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def create_discount(db: AsyncSession, school_id: UUID, data: DiscountCreate) -> Discount:
        await FinanceService._get_fee_head(db, school_id, data.fee_head_id)
        discount = Discount(
            school_id=school_id,
            name=data.name,
            type=data.type,
            value=data.value,
            fee_head_id=data.fee_head_id,
        )
        db.add(discount)
        await db.flush()
        return discount

    @staticmethod
    async def _get_student(db: AsyncSession, school_id: UUID, student_id: UUID) -> User:
        student = await db.scalar(
            select(User)
            .options(selectinload(User.student_profile))
            .where(
                User.id == student_id,
                User.school_id == school_id,
                User.role == UserRole.STUDENT,
                User.deleted_at.is_(None),
            )
        )
        if not student:
            raise NotFoundError("Student not found")
        return student

    @staticmethod
    async def list_student_discounts(db: AsyncSession, school_id: UUID, student_id: UUID) -> List[Discount]:
        await FinanceService._get_student(db, school_id, student_id)
        result = await db.execute(
            select(Discount)
            .join(StudentDiscount, StudentDiscount.discount_id == Discount.id)
            .where(StudentDiscount.student_id == student_id)
            .order_by(Discount.name)
        )
        return list(result.scalars().all())

    @staticmethod
    async def assign_student_discount(
        db: AsyncSession, school_id: UUID, student_id: UUID, discount_id: UUID
    ) -> Discount:
        await FinanceService._get_student(db, school_id, student_id)
        discount = await db.scalar(
            select(Discount).where(Discount.id == discount_id, Discount.school_id == school_id)
        )
        if not discount:
            raise NotFoundError("Discount not found")

        existing = await db.scalar(
            select(StudentDiscount.id).where(
                StudentDiscount.student_id == student_id,
                StudentDiscount.discount_id == discount_id,
            )
        )
        if existing:
            raise ConflictError("Discount already assigned")

        db.add(StudentDiscount(student_id=student_id, discount_id=discount_id))
        await db.flush()
        return discount

    @staticmethod
    async def remove_student_discount(
        db: AsyncSession, school_id: UUID, student_id: UUID, discount_id: UUID
    ) -> bool:
        await FinanceService._get_student(db, school_id, student_id)
        assignment = await db.scalar(
            select(StudentDiscount).where(
                StudentDiscount.student_id == student_id,
                StudentDiscount.discount_id == discount_id,
            )
        )
        if not assignment:
            return False
        await db.delete(assignment)
        await db.flush()
        return True

    # ------------------------------------------------------------------
    # Student fee structures
    # ------------------------------------------------------------------

    @staticmethod
    def resolve_fee_items(
        student_items: Optional[List[Tuple[UUID, Decimal]]],
        class_items: List[Tuple[UUID, Decimal]],
    ) -> List[Tuple[UUID, Decimal]]:
        """A student's own fee items win over the class defaults when there are any"""
        return list(student_items) if student_items else list(class_items)

    @staticmethod
    async def _load_student_fee_structure(db: AsyncSession, student_id: UUID) -> Optional[StudentFeeStructure]:
        return await db.scalar(
            select(StudentFeeStructure)
            .options(selectinload(StudentFeeStructure.items).selectinload(StudentFeeStructureItem.fee_head))
            .where(StudentFeeStructure.student_id == student_id)
            .execution_options(populate_existing=True)
        )

    @staticmethod
    async def get_student_fee_structure(db: AsyncSession, school_id: UUID, student_id: UUID) -> Dict[str, Any]:
        student = await FinanceService._get_student(db, school_id, student_id)
        class_id = student.student_profile.school_class_id if student.student_profile else None

        current = await FinanceService._load_student_fee_structure(db, student_id)
        defaults = await FinanceService.list_fee_structures(db, school_id, class_id) if class_id else []
        return {
            "student_id": student_id,
            "class_id": class_id,
            "current_fee_structure": current,
            "class_defaults": defaults,
        }

    @staticmethod
    async def update_student_fee_structure(
        db: AsyncSession,
        school_id: UUID,
        student_id: UUID,
        mode: FeeStructureMode,
        class_id: Optional[UUID] = None,
    ) -> Optional[StudentFeeStructure]:
        """
        Keep a student's fee structure or replace it with a class's defaults.

        KEEP_EXISTING changes nothing. SWITCH_TO_CLASS_DEFAULT copies the
        current defaults of class_id (or the student's own class) into the
        student's snapshot, replacing whatever items it had.

        Raises:
            NotFoundError: Unknown student or class
            ClassRequiredError: No class given and the student has none
            FeeStructureMissingError: The target class has no defaults
        """
        student = await FinanceService._get_student(db, school_id, student_id)
        if mode == FeeStructureMode.KEEP_EXISTING:
            return await FinanceService._load_student_fee_structure(db, student_id)

        target_class_id = class_id or (
            student.student_profile.school_class_id if student.student_profile else None
        )
        if not target_class_id:
            raise ClassRequiredError("Student has no class assigned")
        await FinanceService._get_class(db, school_id, target_class_id)

        defaults = await FinanceService.list_fee_structures(db, school_id, target_class_id)
        if not defaults:
            raise FeeStructureMissingError("No default fee structure found for the target class")

        structure = await db.scalar(
            select(StudentFeeStructure).where(StudentFeeStructure.student_id == student_id)
        )
        if structure:
            structure.school_class_id = target_class_id
            await db.execute(
                delete(StudentFeeStructureItem).where(
                    StudentFeeStructureItem.student_fee_structure_id == structure.id
                )
            )
        else:
            structure = StudentFeeStructure(
                school_id=school_id, student_id=student_id, school_class_id=target_class_id
            )
            db.add(structure)
            await db.flush()

        for default in defaults:
            db.add(
                StudentFeeStructureItem(
                    student_fee_structure_id=structure.id,
                    fee_head_id=default.fee_head_id,
                    amount=default.amount,
                )
            )
        await db.flush()

        logger.info(
            "Student fee structure switched to class defaults",
            extra={"student_id": str(student_id), "class_id": str(target_class_id), "items": len(defaults)},
        )
        return await FinanceService._load_student_fee_structure(db, student_id)

    @staticmethod
    async def _fee_items_by_student(
        db: AsyncSession, student_ids: List[UUID]
    ) -> Dict[UUID, List[Tuple[UUID, Decimal]]]:
        result = await db.execute(
            select(
                StudentFeeStructure.student_id,
                StudentFeeStructureItem.fee_head_id,
                StudentFeeStructureItem.amount,
            )
            .join(
                StudentFeeStructureItem,
                StudentFeeStructureItem.student_fee_structure_id == StudentFeeStructure.id,
            )
            .where(StudentFeeStructure.student_id.in_(student_ids))
            .order_by(StudentFeeStructureItem.created_at)
        )
        grouped: Dict[UUID, List[Tuple[UUID, Decimal]]] = {}
        for student_id, fee_head_id, amount in result.all():
            grouped.setdefault(student_id, []).append((fee_head_id, amount))
        return grouped

    # ------------------------------------------------------------------
    # Invoices
    # ------------------------------------------------------------------

    @staticmethod
    async def _discounts_by_student(db: AsyncSession, student_ids: List[UUID]) -> Dict[UUID, List[Discount]]:
        result = await db.execute(
            select(StudentDiscount.student_id, Discount)
            .join(Discount, Discount.id == StudentDiscount.discount_id)
            .where(StudentDiscount.student_id.in_(student_ids))
            .order_by(StudentDiscount.created_at)
        )
        grouped: Dict[UUID, List[Discount]] = {sid: [] for sid in student_ids}
        for student_id, discount in result.all():
            grouped[student_id].append(discount)
        return grouped

    @staticmethod
    def _new_invoice(
        school_id: UUID,
        student_id: UUID,
        invoice_no: str,
        due_date: date,
        items: List[Dict[str, Any]],
        month: Optional[int] = None,
        year: Optional[int] = None,
    ) -> Invoice:
        return Invoice(
            school_id=school_id,
            student_id=student_id,
            invoice_no=invoice_no,
            month=month,
            year=year,
            due_date=due_date,
            total_amount=money_sum(item["amount"] for item in items),
            paid_amount=ZERO,
            status=InvoiceStatus.UNPAID,
            items=[InvoiceItem(**item) for item in items],
        )

    @staticmethod
    async def generate_invoices(db: AsyncSession, school_id: UUID, data: InvoiceGenerateRequest) -> int:
        """
        Bill every student of a class for one month.

        A student with a fee structure snapshot is billed from its items;
        everyone else from the class defaults.

        Raises:
            NotFoundError: Unknown class
            FeeStructureMissingError: Class has no fee structure
            NoStudentsError: Class is empty
            DuplicateInvoiceError: Any student already billed for the period

        Returns:
            Number of invoices created
        """
        await FinanceService._get_class(db, school_id, data.class_id)

        structures = await FinanceService.list_fee_structures(db, school_id, data.class_id)
        if not structures:
            raise FeeStructureMissingError("No fee structure defined for this class")

        result = await db.execute(
            select(StudentProfile)
            .join(User, User.id == StudentProfile.user_id)
            .where(
                StudentProfile.school_id == school_id,
                StudentProfile.school_class_id == data.class_id,
                User.deleted_at.is_(None),
                User.is_active.is_(True),
            )
            .order_by(StudentProfile.admission_number)
        )
        profiles = list(result.scalars().all())
        if not profiles:
            raise NoStudentsError("No students found in this class")

        student_ids = [p.user_id for p in profiles]
        existing = await db.scalar(
            select(func.count(Invoice.id)).where(
                Invoice.school_id == school_id,
                Invoice.month == data.month,
                Invoice.year == data.year,
                Invoice.student_id.in_(student_ids),
            )
        )
        if existing:
            raise DuplicateInvoiceError(
                f"Invoices for {data.month}/{data.year} already exist for some students in this class."
            )

        fee_items = [(s.fee_head_id, s.amount) for s in structures]
        discounts = await FinanceService._discounts_by_student(db, student_ids)
        student_fee_items = await FinanceService._fee_items_by_student(db, student_ids)

        for profile in profiles:
            items = FinanceService.build_invoice_items(
                FinanceService.resolve_fee_items(student_fee_items.get(profile.user_id), fee_items),
                discounts[profile.user_id],
            )
            db.add(
                FinanceService._new_invoice(
                    school_id=school_id,
                    student_id=profile.user_id,
                    invoice_no=f"INV-{data.year}{data.month:02d}-{profile.admission_number}",
                    due_date=data.due_date,
                    items=items,
                    month=data.month,
                    year=data.year,
                )
            )
        await db.flush()

        logger.info(
            "Invoices generated",
            extra={"school_id": str(school_id), "class_id": str(data.class_id), "count": len(profiles)},
        )
        return len(profiles)

    @staticmethod
    async def create_custom_invoice(db: AsyncSession, school_id: UUID, data: CustomInvoiceRequest) -> Invoice:
        """Ad-hoc invoice for one student, with the student's discounts applied"""
        student = await FinanceService._get_student(db, school_id, data.student_id)
        for item in data.items:
            await FinanceService._get_fee_head(db, school_id, item.fee_head_id)

        discounts = await FinanceService._discounts_by_student(db, [student.id])
        items = FinanceService.build_invoice_items(
            ((item.fee_head_id, item.amount) for item in data.items),
            discounts[student.id],
        )

        month = data.month or data.due_date.month
        year = data.year or data.due_date.year
        admission = student.student_profile.admission_number if student.student_profile else "NA"
        invoice_no = f"INV-{year}{month:02d}-{admission}-{secrets.token_hex(3).upper()}"

        invoice = FinanceService._new_invoice(
            school_id=school_id,
            student_id=student.id,
            invoice_no=invoice_no,
            due_date=data.due_date,
            items=items,
            month=month,
            year=year,
        )
        db.add(invoice)
        await db.flush()
        return await FinanceService.get_invoice(db, school_id, invoice.id)

    @staticmethod
    async def list_invoices(
        db: AsyncSession,
        school_id: UUID,
        status: Optional[InvoiceStatus] = None,
        limit: int = 50,
    ) -> List[Invoice]:
        stmt = (
            select(Invoice)
            .options(selectinload(Invoice.student))
            .where(Invoice.school_id == school_id)
            .order_by(Invoice.created_at.desc())
            .limit(limit)
        )
        if status is not None:
            stmt = stmt.where(Invoice.status == status)
        result = await db.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def get_invoice(db: AsyncSession, school_id: UUID, invoice_id: UUID) -> Invoice:
        invoice = await db.scalar(
            select(Invoice)
            .options(
                selectinload(Invoice.student),
                selectinload(Invoice.items),
                selectinload(Invoice.payments),
            )
            .where(Invoice.id == invoice_id, Invoice.school_id == school_id)
            .execution_options(populate_existing=True)
        )
        if not invoice:
            raise NotFoundError("Invoice not found")
        return invoice

    @staticmethod
    async def apply_invoice_action(
        db: AsyncSession, school_id: UUID, invoice_id: UUID, action: InvoiceAction
    ) -> Invoice:
        """Manual override: cancel, force paid, or reset to unpaid"""
        invoice = await FinanceService.get_invoice(db, school_id, invoice_id)
        status = _ACTION_STATUS[action]
        invoice.status = status
        invoice.paid_amount = invoice.total_amount if status == InvoiceStatus.PAID else ZERO
        await db.flush()
        logger.info(
            "Invoice status overridden",
            extra={"invoice_id": str(invoice_id), "action": action.value},
        )
        return invoice

    @staticmethod
    async def mark_overdue(db: AsyncSession, school_id: UUID, today: date) -> int:
        """Flip UNPAID/PARTIAL invoices past their due date to OVERDUE"""
        result = await db.execute(
            update(Invoice)
            .where(
                Invoice.school_id == school_id,
                Invoice.status.in_((InvoiceStatus.UNPAID, InvoiceStatus.PARTIAL)),
                Invoice.due_date < today,
            )
            .values(status=InvoiceStatus.OVERDUE, updated_at=get_utc_now())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------

    @staticmethod
    async def record_payment(db: AsyncSession, school_id: UUID, data: InvoicePaymentRequest) -> Invoice:
        """
        Record one payment against one invoice.

        Raises:
            NotFoundError: Unknown invoice
            OverpaymentError: Amount exceeds what is still pending, or the
                invoice is cancelled
        """
        invoice = await db.scalar(
            select(Invoice)
            .where(Invoice.id == data.invoice_id, Invoice.school_id == school_id)
            .with_for_update()
        )
        if not invoice:
            raise NotFoundError("Invoice not found")
        if invoice.status == InvoiceStatus.CANCELLED:
            raise OverpaymentError("Invoice is cancelled")
        if data.amount > invoice.pending_amount:
            raise OverpaymentError("Amount exceeds pending balance")

        db.add(
            Payment(
                school_id=school_id,
                invoice_id=invoice.id,
                amount=data.amount,
                method=data.method,
                paid_at=get_utc_now(),
                transaction_id=data.transaction_id,
            )
        )
        FinanceService.apply_payment(invoice, data.amount)
        await db.flush()
        return await FinanceService.get_invoice(db, school_id, invoice.id)

    @staticmethod
    async def get_parent_outstanding_invoices(
        db: AsyncSession,
        school_id: UUID,
        parent_id: UUID,
        lock: bool = False,
    ) -> List[Tuple[Invoice, str]]:
        """
        Outstanding invoices of every child linked to the parent, as
        (invoice, student full name), oldest due date first and creation
        order within a date.

        With lock=True the invoice rows are held FOR UPDATE until the
        transaction ends, so two collections cannot both pay the same debt.
        """
        stmt = (
            select(Invoice, User.first_name, User.last_name)
            .join(User, User.id == Invoice.student_id)
            .join(Kinship, Kinship.student_id == Invoice.student_id)
            .where(
                Kinship.parent_id == parent_id,
                Invoice.school_id == school_id,
                Invoice.status.in_(OUTSTANDING_STATUSES),
            )
            .order_by(Invoice.due_date, Invoice.created_at)
        )
        if lock:
            stmt = stmt.with_for_update(of=Invoice)
        result = await db.execute(stmt)
        return [(invoice, f"{first} {last}") for invoice, first, last in result.all()]

    @staticmethod
    async def collect_parent_payment(
        db: AsyncSession,
        school_id: UUID,
        parent_id: UUID,
        amount: Decimal,
        method: PaymentMethod,
        remarks: Optional[str] = None,
    ) -> AllocationResult:
        """
        Spread one parent payment over all their children's dues.

        Raises:
            NotFoundError: parent_id is not a parent of this school
            InvalidAmountError: amount <= 0 (nothing is written)
        """
        parent = await db.scalar(
            select(User.id).where(
                User.id == parent_id,
                User.school_id == school_id,
                User.role == UserRole.PARENT,
                User.deleted_at.is_(None),
            )
        )
        if not parent:
            raise NotFoundError("Parent not found")

        rows = await FinanceService.get_parent_outstanding_invoices(db, school_id, parent_id, lock=True)
        invoices_by_id = {invoice.id: invoice for invoice, _ in rows}

        allocation = allocate_payment(
            amount,
            [OutstandingInvoice.from_invoice(invoice, name) for invoice, name in rows],
        )

        paid_at = get_utc_now()
        for application in allocation.breakdown:
            invoice = invoices_by_id[application.invoice_id]
            db.add(
                Payment(
                    school_id=school_id,
                    invoice_id=invoice.id,
                    amount=application.amount_applied,
                    method=method,
                    paid_at=paid_at,
                    remarks=remarks,
                )
            )
            FinanceService.apply_payment(invoice, application.amount_applied)
        await db.flush()

        logger.info(
            "Parent payment distributed",
            extra={
                "parent_id": str(parent_id),
                "amount": str(allocation.amount),
                "distributed_amount": str(allocation.distributed_amount),
                "remaining_balance": str(allocation.remaining_balance),
                "invoices_touched": len(allocation.breakdown),
            },
        )
        if allocation.remaining_balance > ZERO:
            logger.warning(
                "Parent payment exceeds outstanding dues",
                extra={"parent_id": str(parent_id), "remaining_balance": str(allocation.remaining_balance)},
            )
        return allocation

    # ------------------------------------------------------------------
    # Dues search
    # ------------------------------------------------------------------

    @staticmethod
    async def search_dues(db: AsyncSession, school_id: UUID, query: str) -> Dict[str, Any]:
        """
        Find a student by invoice number, then admission number or name,
        and return their outstanding invoices with payment history.

        Raises:
            NotFoundError: No student matches
        """
        query = query.strip()
        student_id = await db.scalar(
            select(Invoice.student_id).where(Invoice.school_id == school_id, Invoice.invoice_no == query)
        )
        if student_id is None:
            name_pattern = contains_pattern(query)
            student_id = await db.scalar(
                select(User.id)
                .outerjoin(StudentProfile, StudentProfile.user_id == User.id)
                .where(
                    User.school_id == school_id,
                    User.role == UserRole.STUDENT,
                    User.deleted_at.is_(None),
                    or_(
                        func.lower(StudentProfile.admission_number) == query.lower(),
                        func.concat(User.first_name, " ", User.last_name).ilike(name_pattern, escape=LIKE_ESCAPE),
                    ),
                )
                .order_by(User.last_name, User.first_name)
                .limit(1)
            )
        if student_id is None:
            raise NotFoundError("Student not found")

        student = await db.scalar(
            select(User)
            .options(
                selectinload(User.student_profile).selectinload(StudentProfile.school_class),
                selectinload(User.guardians).selectinload(Kinship.parent),
            )
            .where(User.id == student_id)
        )
        result = await db.execute(
            select(Invoice)
            .options(
                selectinload(Invoice.student),
                selectinload(Invoice.items),
                selectinload(Invoice.payments),
            )
            .where(Invoice.student_id == student_id, Invoice.status.in_(OUTSTANDING_STATUSES))
            .order_by(Invoice.due_date, Invoice.created_at)
        )
        invoices = list(result.scalars().all())

        profile = student.student_profile
        class_name = profile.school_class.name if profile and profile.school_class else "No Class"
        return {
            "student": student,
            "admission_number": profile.admission_number if profile else None,
            "class_name": class_name,
            "guardian_name": FinanceService._guardian_name(student.guardians),
            "invoices": invoices,
            "total_due": money_sum(inv.pending_amount for inv in invoices),
        }

    @staticmethod
    def _guardian_name(kinships: List[Kinship]) -> str:
        """Father first, then the primary contact, then whoever is linked"""
        if not kinships:
            return ""
        chosen = (
            next((k for k in kinships if k.relationship_type == Relationship.FATHER), None)
            or next((k for k in kinships if k.is_primary), None)
            or kinships[0]
        )
        return chosen.parent.full_name
