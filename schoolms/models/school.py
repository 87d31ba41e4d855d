"""Domain 1: Tenant Models"""

from sqlalchemy import Column, String, Text, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from schoolms.models.base import BaseModel, SchoolScopedMixin, StatusMixin


class School(BaseModel, StatusMixin):
    """
    Tenant/School model - the multi-tenant anchor.
    Every other business table hangs off a school.
    """
    __tablename__ = "schools"

    name = Column(String(255), nullable=False)
    address = Column(Text, nullable=True)
    phone = Column(String(50), nullable=True)
    email = Column(String(255), nullable=True)

    users = relationship("User", back_populates="school", cascade="all, delete-orphan")
    classes = relationship("SchoolClass", back_populates="school", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<School {self.name}>"


class SchoolClass(BaseModel, SchoolScopedMixin):
    """A grade/class that students belong to and fee structures are set for"""
    __tablename__ = "school_classes"
    __table_args__ = (
        UniqueConstraint("school_id", "name", name="uq_school_classes_school_name"),
    )

    name = Column(String(100), nullable=False)  # e.g. "Grade 5"

    school = relationship("School", back_populates="classes")
    students = relationship("StudentProfile", back_populates="school_class")
    fee_structures = relationship("FeeStructure", back_populates="school_class", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<SchoolClass {self.name}>"
