"""Models Package - Export all models for easy imports"""

from schoolms.models.base import BaseModel, SchoolScopedMixin, SoftDeleteMixin, StatusMixin
from schoolms.models.enums import *
from schoolms.models.school import School, SchoolClass
from schoolms.models.user import User, StudentProfile, ParentProfile, Kinship
from schoolms.models.finance import (
    FeeHead,
    FeeStructure,
    StudentFeeStructure,
    StudentFeeStructureItem,
    Discount,
    StudentDiscount,
    Invoice,
    InvoiceItem,
    Payment,
)


__all__ = [
    # Base classes
    "BaseModel",
    "SchoolScopedMixin",
    "SoftDeleteMixin",
    "StatusMixin",

    # Tenant
    "School",
    "SchoolClass",

    # Users
    "User",
    "StudentProfile",
    "ParentProfile",
    "Kinship",

    # Finance
    "FeeHead",
    "FeeStructure",
    "StudentFeeStructure",
    "StudentFeeStructureItem",
    "Discount",
    "StudentDiscount",
    "Invoice",
    "InvoiceItem",
    "Payment",
]
