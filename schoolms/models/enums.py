"""Centralized Enum Definitions"""

import enum


# Domain 1: Users
class UserRole(str, enum.Enum):
    """User roles for RBAC"""
    ADMIN = "ADMIN"
    ACCOUNTANT = "ACCOUNTANT"
    TEACHER = "TEACHER"
    STAFF = "STAFF"
    STUDENT = "STUDENT"
    PARENT = "PARENT"


class Relationship(str, enum.Enum):
    """Kinship label between a parent and a student"""
    FATHER = "FATHER"
    MOTHER = "MOTHER"
    GUARDIAN = "GUARDIAN"
    OTHER = "OTHER"


# Domain 2: Finance
class InvoiceStatus(str, enum.Enum):
    """Invoice lifecycle. OUTSTANDING_STATUSES are eligible for payment."""
    UNPAID = "UNPAID"
    PARTIAL = "PARTIAL"
    OVERDUE = "OVERDUE"
    PAID = "PAID"
    CANCELLED = "CANCELLED"


OUTSTANDING_STATUSES = (
    InvoiceStatus.UNPAID,
    InvoiceStatus.PARTIAL,
    InvoiceStatus.OVERDUE,
)


class InvoiceAction(str, enum.Enum):
    """Manual status overrides an accountant may apply"""
    CANCEL = "CANCEL"
    MARK_PAID = "MARK_PAID"
    MARK_UNPAID = "MARK_UNPAID"


class PaymentMethod(str, enum.Enum):
    CASH = "CASH"
    BANK_TRANSFER = "BANK_TRANSFER"
    ONLINE = "ONLINE"
    CHEQUE = "CHEQUE"


class DiscountType(str, enum.Enum):
    PERCENTAGE = "PERCENTAGE"
    FLAT = "FLAT"


class FeeStructureMode(str, enum.Enum):
    """What to do with a student's fee structure when the class changes"""
    KEEP_EXISTING = "KEEP_EXISTING"
    SWITCH_TO_CLASS_DEFAULT = "SWITCH_TO_CLASS_DEFAULT"
