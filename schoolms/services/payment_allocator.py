"""Parent payment distribution.

A parent pays one lump sum; it is spread over the outstanding invoices of all
their children, oldest due date first. This module only computes the
applications. Persisting them is FinanceService's job.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable, List
from uuid import UUID

from schoolms.core.exceptions import InvalidAmountError
from schoolms.models.enums import InvoiceStatus
from schoolms.utils.money import ZERO, to_decimal


@dataclass(frozen=True)
class OutstandingInvoice:
    """Read-only view of an invoice that may still receive money"""

    id: UUID
    invoice_no: str
    student_name: str
    total_amount: Decimal
    paid_amount: Decimal
    due_date: date

    @property
    def pending_amount(self) -> Decimal:
        return self.total_amount - self.paid_amount

    @classmethod
    def from_invoice(cls, invoice, student_name: str) -> "OutstandingInvoice":
        """Build from an Invoice ORM row"""
        return cls(
            id=invoice.id,
            invoice_no=invoice.invoice_no,
            student_name=student_name,
            total_amount=to_decimal(invoice.total_amount),
            paid_amount=to_decimal(invoice.paid_amount),
            due_date=invoice.due_date,
        )


@dataclass(frozen=True)
class PaymentApplication:
    """Money to put on one invoice"""

    invoice_id: UUID
    student_name: str
    invoice_no: str
    amount_applied: Decimal
    resulting_status: InvoiceStatus


@dataclass(frozen=True)
class AllocationResult:
    amount: Decimal
    breakdown: List[PaymentApplication] = field(default_factory=list)
    distributed_amount: Decimal = ZERO
    remaining_balance: Decimal = ZERO


def allocate_payment(amount: Decimal, invoices: Iterable[OutstandingInvoice]) -> AllocationResult:
    """
    Distribute ``amount`` over ``invoices``, oldest due date first.

    Invoices with nothing pending are skipped. Equal due dates keep their
    input order, so callers should pass invoices in creation order.
    Whatever cannot be placed is returned as ``remaining_balance`` and is
    never applied to anything.

    Args:
        amount: Cash received, must be positive
        invoices: Outstanding invoices of every child of the parent

    Returns:
        AllocationResult where distributed_amount + remaining_balance == amount

    Raises:
        InvalidAmountError: If amount <= 0
    """
    amount = to_decimal(amount)
    if amount <= ZERO:
        raise InvalidAmountError(amount)

    payable = [inv for inv in invoices if inv.pending_amount > ZERO]
    # sorted() is stable: ties on due_date keep creation order
    payable = sorted(payable, key=lambda inv: inv.due_date)

    remaining = amount
    breakdown: List[PaymentApplication] = []

    for invoice in payable:
        pending = invoice.pending_amount
        applied = min(remaining, pending)
        if applied > ZERO:
            breakdown.append(
                PaymentApplication(
                    invoice_id=invoice.id,
                    student_name=invoice.student_name,
                    invoice_no=invoice.invoice_no,
                    amount_applied=applied,
                    resulting_status=InvoiceStatus.PAID if applied == pending else InvoiceStatus.PARTIAL,
                )
            )
            remaining -= applied
        if remaining == ZERO:
            break

    return AllocationResult(
        amount=amount,
        breakdown=breakdown,
        distributed_amount=amount - remaining,
        remaining_balance=remaining,
    )
