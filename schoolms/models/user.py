"""Domain 1: Users, Profiles and Kinship"""

from sqlalchemy import Column, String, Boolean, ForeignKey, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID, ENUM
from sqlalchemy.orm import relationship

from schoolms.models.base import BaseModel, SchoolScopedMixin, SoftDeleteMixin
from schoolms.models.enums import UserRole, Relationship


class User(BaseModel, SchoolScopedMixin, SoftDeleteMixin):
    """
    Unified user model for every role.
    Role-specific data lives in StudentProfile / ParentProfile.
    """
    __tablename__ = "users"

    email = Column(String(255), unique=True, nullable=False, index=True)
    hashed_password = Column(String(255), nullable=False)

    first_name = Column(String(255), nullable=False)
    last_name = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=True)

    role = Column(ENUM(UserRole, name="user_role"), nullable=False, index=True)
    is_active = Column(Boolean, default=True, nullable=False, index=True)

    school = relationship("School", back_populates="users")
    student_profile = relationship("StudentProfile", back_populates="user", uselist=False)
    parent_profile = relationship("ParentProfile", back_populates="user", uselist=False)

    # A parent sees children, a student sees guardians
    children = relationship(
        "Kinship",
        foreign_keys="Kinship.parent_id",
        back_populates="parent",
        cascade="all, delete-orphan",
    )
    guardians = relationship(
        "Kinship",
        foreign_keys="Kinship.student_id",
        back_populates="student",
        cascade="all, delete-orphan",
    )
    invoices = relationship("Invoice", back_populates="student")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def __repr__(self) -> str:
        return f"<User {self.email} ({self.role})>"


class StudentProfile(BaseModel, SchoolScopedMixin):
    """Enrollment data for a STUDENT user"""
    __tablename__ = "student_profiles"
    __table_args__ = (
        UniqueConstraint("school_id", "admission_number", name="uq_student_profiles_admission"),
    )

    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    school_class_id = Column(
        UUID(as_uuid=True), ForeignKey("school_classes.id", ondelete="SET NULL"), nullable=True, index=True
    )
    admission_number = Column(String(50), nullable=False)

    user = relationship("User", back_populates="student_profile")
    school_class = relationship("SchoolClass", back_populates="students")

    def __repr__(self) -> str:
        return f"<StudentProfile {self.admission_number}>"


class ParentProfile(BaseModel, SchoolScopedMixin):
    """Extra data for a PARENT user"""
    __tablename__ = "parent_profiles"

    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    occupation = Column(String(255), nullable=True)
    cnic = Column(String(50), nullable=True)  # national ID number

    user = relationship("User", back_populates="parent_profile")


class Kinship(BaseModel):
    """Parent <-> student link with a relationship label"""
    __tablename__ = "kinships"
    __table_args__ = (
        UniqueConstraint("parent_id", "student_id", name="uq_kinships_parent_student"),
    )

    parent_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    relationship_type = Column(
        "relationship",
        ENUM(Relationship, name="kinship_relationship"),
        default=Relationship.GUARDIAN,
        nullable=False,
    )
    is_primary = Column(Boolean, default=False, nullable=False)

    parent = relationship("User", foreign_keys=[parent_id], back_populates="children")
    student = relationship("User", foreign_keys=[student_id], back_populates="guardians")

    def __repr__(self) -> str:
        return f"<Kinship {self.parent_id} -> {self.student_id} ({self.relationship_type})>"
