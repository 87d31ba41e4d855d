"""Dashboard statistics, one builder per role"""

from datetime import datetime, time
from decimal import Decimal
from typing import Any, Awaitable, Callable, Dict, Optional
from uuid import UUID
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from schoolms.models.enums import UserRole, InvoiceStatus, OUTSTANDING_STATUSES
from schoolms.models.finance import Invoice, Payment
from schoolms.models.user import User
from schoolms.services.parent_service import ParentService
from schoolms.utils.time import get_utc_now

StatsBuilder = Callable[[AsyncSession, User], Awaitable[Dict[str, Any]]]


def _as_decimal(value) -> Decimal:
    return Decimal(value or 0)


class DashboardService:

    @staticmethod
    async def _pending_amount(db: AsyncSession, school_id: UUID) -> Decimal:
        total = await db.scalar(
            select(func.sum(Invoice.total_amount - Invoice.paid_amount)).where(
                Invoice.school_id == school_id,
                Invoice.status.in_(OUTSTANDING_STATUSES),
            )
        )
        return _as_decimal(total)

    @staticmethod
    async def admin_stats(db: AsyncSession, user: User) -> Dict[str, Any]:
        result = await db.execute(
            select(User.role, func.count(User.id))
            .where(User.school_id == user.school_id, User.deleted_at.is_(None))
            .group_by(User.role)
        )
        by_role = {role: count for role, count in result.all()}
        staff_roles = (UserRole.TEACHER, UserRole.ACCOUNTANT, UserRole.STAFF)
        return {
            "total_students": by_role.get(UserRole.STUDENT, 0),
            "total_parents": by_role.get(UserRole.PARENT, 0),
            "total_teachers": by_role.get(UserRole.TEACHER, 0),
            "total_staff": sum(by_role.get(r, 0) for r in staff_roles),
            "unpaid_amount": await DashboardService._pending_amount(db, user.school_id),
        }

    @staticmethod
    async def accountant_stats(db: AsyncSession, user: User) -> Dict[str, Any]:
        school_id = user.school_id
        revenue = await db.scalar(
            select(func.sum(Payment.amount)).where(Payment.school_id == school_id)
        )
        overdue_count = await db.scalar(
            select(func.count(Invoice.id)).where(
                Invoice.school_id == school_id,
                Invoice.status == InvoiceStatus.OVERDUE,
            )
        )
        start_of_day = datetime.combine(get_utc_now().date(), time.min)
        collected_today = await db.scalar(
            select(func.sum(Payment.amount)).where(
                Payment.school_id == school_id,
                Payment.paid_at >= start_of_day,
            )
        )
        recent = await db.execute(
            select(Payment, Invoice.invoice_no)
            .join(Invoice, Invoice.id == Payment.invoice_id)
            .where(Payment.school_id == school_id)
            .order_by(Payment.paid_at.desc())
            .limit(5)
        )
        return {
            "total_revenue": _as_decimal(revenue),
            "pending_amount": await DashboardService._pending_amount(db, school_id),
            "overdue_invoices": overdue_count or 0,
            "collected_today": _as_decimal(collected_today),
            "recent_payments": [
                {
                    "id": payment.id,
                    "invoice_no": invoice_no,
                    "amount": payment.amount,
                    "method": payment.method,
                    "paid_at": payment.paid_at,
                }
                for payment, invoice_no in recent.all()
            ],
        }

    @staticmethod
    async def parent_stats(db: AsyncSession, user: User) -> Dict[str, Any]:
        overview = await ParentService.financial_overview(db, user.school_id, parent_id=user.id)
        if not overview:
            return {"children": [], "children_count": 0, "total_family_due": Decimal("0")}
        family = overview[0]
        return {key: family[key] for key in ("children", "children_count", "total_family_due")}

    @staticmethod
    async def student_stats(db: AsyncSession, user: User) -> Dict[str, Any]:
        result = await db.execute(
            select(Invoice)
            .where(Invoice.student_id == user.id, Invoice.status.in_(OUTSTANDING_STATUSES))
            .order_by(Invoice.due_date)
        )
        invoices = list(result.scalars().all())
        return {
            "outstanding_invoices": [
                {
                    "id": inv.id,
                    "invoice_no": inv.invoice_no,
                    "due_date": inv.due_date,
                    "pending_amount": inv.pending_amount,
                    "status": inv.status,
                }
                for inv in invoices
            ],
            "total_due": sum((inv.pending_amount for inv in invoices), Decimal("0")),
        }

    @classmethod
    def builder_for(cls, role: UserRole) -> Optional[StatsBuilder]:
        """Stats builder for a role, or None when the role has no dashboard"""
        builders = {
            UserRole.ADMIN: cls.admin_stats,
            UserRole.ACCOUNTANT: cls.accountant_stats,
            UserRole.PARENT: cls.parent_stats,
            UserRole.STUDENT: cls.student_stats,
        }
        return builders.get(role)

    @classmethod
    async def get_stats(cls, db: AsyncSession, user: User) -> Dict[str, Any]:
        """
        Raises:
            PermissionError: The caller's role has no dashboard
        """
        builder = cls.builder_for(user.role)
        if builder is None:
            raise PermissionError(f"No dashboard for role {user.role}")
        return {"role": user.role, "stats": await builder(db, user)}
