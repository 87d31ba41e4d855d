"""Unit tests for FinanceService helpers and parent payment collection."""

from datetime import date
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest
from sqlalchemy import UniqueConstraint
from sqlalchemy.ext.asyncio import AsyncSession

from schoolms.core.exceptions import (
    ClassRequiredError,
    FeeStructureMissingError,
    InvalidAmountError,
    NotFoundError,
)
from schoolms.models.enums import DiscountType, FeeStructureMode, InvoiceStatus, PaymentMethod, Relationship
from schoolms.models.finance import Discount, FeeStructure, Invoice, Payment, StudentFeeStructure
from schoolms.models.user import Kinship, StudentProfile, User
from schoolms.schemas.finance import InvoiceGenerateRequest
from schoolms.services.finance_service import FinanceService


def make_invoice(invoice_no, due, total, paid="0", status=InvoiceStatus.UNPAID):
    return Invoice(
        id=uuid4(),
        invoice_no=invoice_no,
        due_date=due,
        total_amount=Decimal(total),
        paid_amount=Decimal(paid),
        status=status,
    )


# --- Discounts ---

def test_percentage_discount_rounds_half_up():
    assert FinanceService.calculate_discount(Decimal("333.33"), DiscountType.PERCENTAGE, Decimal("10")) == Decimal("33.33")
    assert FinanceService.calculate_discount(Decimal("0.05"), DiscountType.PERCENTAGE, Decimal("50")) == Decimal("0.03")


def test_flat_discount_capped_at_line_amount():
    assert FinanceService.calculate_discount(Decimal("500"), DiscountType.FLAT, Decimal("200")) == Decimal("200")
    assert FinanceService.calculate_discount(Decimal("150"), DiscountType.FLAT, Decimal("200")) == Decimal("150")


def test_build_invoice_items_applies_first_discount_per_head():
    tuition, transport = uuid4(), uuid4()
    discounts = [
        Discount(fee_head_id=tuition, type=DiscountType.PERCENTAGE, value=Decimal("50")),
        Discount(fee_head_id=tuition, type=DiscountType.FLAT, value=Decimal("999")),
    ]

    items = FinanceService.build_invoice_items(
        [(tuition, Decimal("1000")), (transport, Decimal("300"))], discounts
    )

    assert items[0]["discount_amount"] == Decimal("500.00")
    assert items[0]["amount"] == Decimal("500.00")
    assert items[1]["discount_amount"] == Decimal("0")
    assert items[1]["amount"] == Decimal("300")


# --- Payment bookkeeping ---

def test_apply_payment_partial_then_paid():
    invoice = make_invoice("INV-1", date(2024, 1, 10), "100")

    assert FinanceService.apply_payment(invoice, Decimal("40")) == InvoiceStatus.PARTIAL
    assert invoice.paid_amount == Decimal("40")
    assert FinanceService.apply_payment(invoice, Decimal("60")) == InvoiceStatus.PAID
    assert invoice.pending_amount == Decimal("0")


def test_apply_payment_moves_overdue_to_partial():
    invoice = make_invoice("INV-1", date(2024, 1, 10), "100", status=InvoiceStatus.OVERDUE)

    FinanceService.apply_payment(invoice, Decimal("10"))

    assert invoice.status == InvoiceStatus.PARTIAL


# --- Guardian lookup ---

def _kinship(first_name, relationship, is_primary=False):
    return Kinship(
        relationship_type=relationship,
        is_primary=is_primary,
        parent=User(first_name=first_name, last_name="Khan"),
    )


def test_guardian_name_prefers_father():
    kinships = [
        _kinship("Amina", Relationship.MOTHER, is_primary=True),
        _kinship("Tariq", Relationship.FATHER),
    ]
    assert FinanceService._guardian_name(kinships) == "Tariq Khan"


def test_guardian_name_falls_back_to_primary_then_first():
    assert FinanceService._guardian_name(
        [_kinship("Uncle", Relationship.OTHER), _kinship("Amina", Relationship.MOTHER, is_primary=True)]
    ) == "Amina Khan"
    assert FinanceService._guardian_name([_kinship("Uncle", Relationship.OTHER)]) == "Uncle Khan"
    assert FinanceService._guardian_name([]) == ""


# --- Parent collection ---

@pytest.mark.asyncio
async def test_collect_parent_payment_spreads_over_children():
    db = AsyncMock(spec=AsyncSession)
    school_id, parent_id = uuid4(), uuid4()
    db.scalar.return_value = parent_id

    older = make_invoice("INV-202401-A1", date(2024, 1, 10), "100")
    newer = make_invoice("INV-202402-B1", date(2024, 2, 10), "150", paid="50", status=InvoiceStatus.PARTIAL)
    rows = [(newer, "Sara Khan"), (older, "Ali Khan")]

    with patch(
        "schoolms.services.finance_service.FinanceService.get_parent_outstanding_invoices",
        new_callable=AsyncMock,
    ) as mock_outstanding:
        mock_outstanding.return_value = rows

        result = await FinanceService.collect_parent_payment(
            db, school_id, parent_id, amount=Decimal("150"), method=PaymentMethod.CASH, remarks="Counter 2"
        )

        mock_outstanding.assert_awaited_once_with(db, school_id, parent_id, lock=True)

    assert [(a.student_name, a.amount_applied, a.resulting_status) for a in result.breakdown] == [
        ("Ali Khan", Decimal("100"), InvoiceStatus.PAID),
        ("Sara Khan", Decimal("50"), InvoiceStatus.PARTIAL),
    ]
    assert result.remaining_balance == Decimal("0")

    assert older.status == InvoiceStatus.PAID
    assert older.paid_amount == Decimal("100")
    assert newer.paid_amount == Decimal("100")
    assert newer.status == InvoiceStatus.PARTIAL

    payments = [call.args[0] for call in db.add.call_args_list]
    assert all(isinstance(p, Payment) for p in payments)
    assert [p.invoice_id for p in payments] == [older.id, newer.id]
    assert all(p.remarks == "Counter 2" and p.school_id == school_id for p in payments)
    assert db.flush.await_count == 1
    assert not db.commit.called


@pytest.mark.asyncio
async def test_collect_parent_payment_reports_excess():
    db = AsyncMock(spec=AsyncSession)
    db.scalar.return_value = uuid4()
    invoice = make_invoice("INV-1", date(2024, 1, 10), "100")

    with patch(
        "schoolms.services.finance_service.FinanceService.get_parent_outstanding_invoices",
        new_callable=AsyncMock,
        return_value=[(invoice, "Ali Khan")],
    ):
        result = await FinanceService.collect_parent_payment(
            db, uuid4(), uuid4(), amount=Decimal("130"), method=PaymentMethod.ONLINE
        )

    assert result.distributed_amount == Decimal("100")
    assert result.remaining_balance == Decimal("30")
    assert db.add.call_count == 1


@pytest.mark.asyncio
async def test_collect_parent_payment_invalid_amount_writes_nothing():
    db = AsyncMock(spec=AsyncSession)
    db.scalar.return_value = uuid4()
    invoice = make_invoice("INV-1", date(2024, 1, 10), "100")

    with patch(
        "schoolms.services.finance_service.FinanceService.get_parent_outstanding_invoices",
        new_callable=AsyncMock,
        return_value=[(invoice, "Ali Khan")],
    ):
        with pytest.raises(InvalidAmountError):
            await FinanceService.collect_parent_payment(
                db, uuid4(), uuid4(), amount=Decimal("0"), method=PaymentMethod.CASH
            )

    assert not db.add.called
    assert not db.flush.called
    assert invoice.paid_amount == Decimal("0")


@pytest.mark.asyncio
async def test_collect_parent_payment_unknown_parent():
    db = AsyncMock(spec=AsyncSession)
    db.scalar.return_value = None

    with pytest.raises(NotFoundError):
        await FinanceService.collect_parent_payment(
            db, uuid4(), uuid4(), amount=Decimal("10"), method=PaymentMethod.CASH
        )


# --- Invoice numbering ---

def test_invoice_numbers_are_unique_per_school_only():
    table = Invoice.__table__
    composite = {
        tuple(constraint.columns.keys())
        for constraint in table.constraints
        if isinstance(constraint, UniqueConstraint)
    }

    assert not table.c.invoice_no.unique
    assert ("school_id", "invoice_no") in composite
    assert not any(index.unique for index in table.indexes if "invoice_no" in index.columns)


# --- Student fee structures ---

def test_resolve_fee_items_prefers_student_items():
    tuition, transport = uuid4(), uuid4()
    class_items = [(tuition, Decimal("1000")), (transport, Decimal("300"))]
    student_items = [(tuition, Decimal("800"))]

    assert FinanceService.resolve_fee_items(student_items, class_items) == student_items
    assert FinanceService.resolve_fee_items([], class_items) == class_items
    assert FinanceService.resolve_fee_items(None, class_items) == class_items


@pytest.mark.asyncio
async def test_generate_invoices_bills_from_student_fee_structure():
    db = AsyncMock(spec=AsyncSession)
    school_id, class_id, tuition = uuid4(), uuid4(), uuid4()
    snapshot = StudentProfile(user_id=uuid4(), admission_number="A-001")
    regular = StudentProfile(user_id=uuid4(), admission_number="A-002")

    rows = MagicMock()
    rows.scalars.return_value.all.return_value = [snapshot, regular]
    db.execute.return_value = rows
    db.scalar.return_value = 0

    with patch(
        "schoolms.services.finance_service.FinanceService._get_class", new_callable=AsyncMock
    ), patch(
        "schoolms.services.finance_service.FinanceService.list_fee_structures",
        new_callable=AsyncMock,
        return_value=[FeeStructure(fee_head_id=tuition, amount=Decimal("1000"))],
    ), patch(
        "schoolms.services.finance_service.FinanceService._discounts_by_student",
        new_callable=AsyncMock,
        return_value={snapshot.user_id: [], regular.user_id: []},
    ), patch(
        "schoolms.services.finance_service.FinanceService._fee_items_by_student",
        new_callable=AsyncMock,
        return_value={snapshot.user_id: [(tuition, Decimal("800"))]},
    ):
        count = await FinanceService.generate_invoices(
            db,
            school_id,
            InvoiceGenerateRequest(class_id=class_id, month=3, year=2024, due_date=date(2024, 3, 10)),
        )

    assert count == 2
    invoices = {call.args[0].student_id: call.args[0] for call in db.add.call_args_list}
    assert invoices[snapshot.user_id].total_amount == Decimal("800")
    assert invoices[snapshot.user_id].invoice_no == "INV-202403-A-001"
    assert invoices[regular.user_id].total_amount == Decimal("1000")


@pytest.mark.asyncio
async def test_keep_existing_fee_structure_writes_nothing():
    db = AsyncMock(spec=AsyncSession)
    student = User(id=uuid4(), student_profile=StudentProfile(school_class_id=uuid4()))
    current = StudentFeeStructure(student_id=student.id)

    with patch(
        "schoolms.services.finance_service.FinanceService._get_student",
        new_callable=AsyncMock,
        return_value=student,
    ), patch(
        "schoolms.services.finance_service.FinanceService._load_student_fee_structure",
        new_callable=AsyncMock,
        return_value=current,
    ):
        result = await FinanceService.update_student_fee_structure(
            db, uuid4(), student.id, FeeStructureMode.KEEP_EXISTING
        )

    assert result is current
    assert not db.add.called
    assert not db.execute.called
    assert not db.flush.called


@pytest.mark.asyncio
async def test_switch_fee_structure_without_class():
    db = AsyncMock(spec=AsyncSession)
    student = User(id=uuid4(), student_profile=StudentProfile(school_class_id=None))

    with patch(
        "schoolms.services.finance_service.FinanceService._get_student",
        new_callable=AsyncMock,
        return_value=student,
    ):
        with pytest.raises(ClassRequiredError):
            await FinanceService.update_student_fee_structure(
                db, uuid4(), student.id, FeeStructureMode.SWITCH_TO_CLASS_DEFAULT
            )

    assert not db.add.called


@pytest.mark.asyncio
async def test_switch_fee_structure_to_class_without_defaults():
    db = AsyncMock(spec=AsyncSession)
    student = User(id=uuid4(), student_profile=StudentProfile(school_class_id=uuid4()))

    with patch(
        "schoolms.services.finance_service.FinanceService._get_student",
        new_callable=AsyncMock,
        return_value=student,
    ), patch(
        "schoolms.services.finance_service.FinanceService._get_class", new_callable=AsyncMock
    ), patch(
        "schoolms.services.finance_service.FinanceService.list_fee_structures",
        new_callable=AsyncMock,
        return_value=[],
    ):
        with pytest.raises(FeeStructureMissingError):
            await FinanceService.update_student_fee_structure(
                db, uuid4(), student.id, FeeStructureMode.SWITCH_TO_CLASS_DEFAULT, class_id=uuid4()
            )

    assert not db.add.called
    assert not db.execute.called
