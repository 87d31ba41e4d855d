from typing import Optional, List
from datetime import datetime
from decimal import Decimal
from uuid import UUID
from pydantic import BaseModel, ConfigDict, EmailStr, Field

from schoolms.models.enums import UserRole, Relationship


class UserResponse(BaseModel):
    id: UUID
    email: str
    first_name: str
    last_name: str
    role: UserRole
    school_id: UUID
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UserCreate(BaseModel):
    """Admin-created staff account (teacher, accountant, staff)"""
    email: EmailStr
    password: str = Field(..., min_length=6)
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    phone: Optional[str] = None
    role: UserRole


class StudentCreate(BaseModel):
    email: EmailStr
    password: str = Field("Student123!", min_length=6)
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    admission_number: str = Field(..., min_length=1, max_length=50)
    class_id: Optional[UUID] = None


class StudentResponse(BaseModel):
    id: UUID
    email: str
    full_name: str
    admission_number: Optional[str] = None
    class_name: Optional[str] = None
    created_at: datetime


class ParentCreate(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6)
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    phone: Optional[str] = None
    occupation: Optional[str] = None
    cnic: Optional[str] = None
    # Optional first child to link
    student_id: Optional[UUID] = None
    relationship: Optional[Relationship] = None


class KinshipCreate(BaseModel):
    student_id: UUID
    relationship: Relationship
    is_primary: bool = False


class ChildResponse(BaseModel):
    student_id: UUID
    name: str
    admission_number: Optional[str] = None
    class_name: Optional[str] = None
    relationship: Relationship
    is_primary: bool


class ChildDues(BaseModel):
    student_id: UUID
    name: str
    class_name: str = "N/A"
    admission_number: str = "-"
    invoice_due: Decimal
    total_due: Decimal


class ParentFinancialOverview(BaseModel):
    id: UUID
    name: str
    email: str
    phone: Optional[str] = None
    cnic: Optional[str] = None
    children_count: int
    total_family_due: Decimal
    children: List[ChildDues]


class ParentSearchResult(BaseModel):
    id: UUID
    name: str
    email: str
    phone: Optional[str] = None
    cnic: Optional[str] = None
