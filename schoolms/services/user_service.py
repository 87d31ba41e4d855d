"""User Service - accounts, student enrollment and authentication"""

from typing import Optional, List, Tuple
from uuid import UUID
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from schoolms.core.exceptions import ConflictError, NotFoundError
from schoolms.core.logging import get_logger
from schoolms.core.security import get_password_hash, verify_password
from schoolms.models.enums import UserRole
from schoolms.models.school import SchoolClass
from schoolms.models.user import User, StudentProfile
from schoolms.schemas.user import StudentCreate

logger = get_logger(__name__)


class UserService:
    """Service layer for user-related operations"""

    @staticmethod
    async def create_user(
        db: AsyncSession,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        school_id: UUID,
        role: UserRole,
        phone: Optional[str] = None,
        is_active: bool = True,
    ) -> User:
        """
        Create a user in the current transaction.

        Raises:
            ConflictError: If the email is already registered
        """
        if await UserService.get_user_by_email(db, email):
            raise ConflictError(f"A user with email {email} already exists")

        user = User(
            email=email,
            hashed_password=get_password_hash(password),
            first_name=first_name,
            last_name=last_name,
            phone=phone,
            school_id=school_id,
            role=role,
            is_active=is_active,
        )
        db.add(user)
        await db.flush()
        logger.info("User created", extra={"user_id": str(user.id), "role": role.value})
        return user

    @staticmethod
    async def get_user_by_id(db: AsyncSession, user_id: UUID) -> Optional[User]:
        result = await db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    @staticmethod
    async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
        result = await db.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    @staticmethod
    async def get_school_user(
        db: AsyncSession,
        school_id: UUID,
        user_id: UUID,
        role: Optional[UserRole] = None,
    ) -> Optional[User]:
        """Active user of the given school, optionally restricted to one role"""
        stmt = select(User).where(
            User.id == user_id,
            User.school_id == school_id,
            User.deleted_at.is_(None),
        )
        if role is not None:
            stmt = stmt.where(User.role == role)
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def authenticate_user(db: AsyncSession, email: str, password: str) -> Optional[User]:
        """
        Check credentials.

        Returns:
            The user, or None for unknown email, wrong password,
            inactive or deleted accounts
        """
        user = await UserService.get_user_by_email(db, email)
        if not user or not verify_password(password, user.hashed_password):
            return None
        if not user.is_active or user.is_deleted:
            return None
        return user

    @staticmethod
    async def create_student(db: AsyncSession, school_id: UUID, data: StudentCreate) -> User:
        """
        Create a STUDENT user with its enrollment profile.

        Raises:
            ConflictError: Duplicate email or admission number
            NotFoundError: class_id is not a class of this school
        """
        existing = await db.execute(
            select(StudentProfile.id).where(
                StudentProfile.school_id == school_id,
                StudentProfile.admission_number == data.admission_number,
            )
        )
        if existing.first():
            raise ConflictError(f"Admission number {data.admission_number} already exists")

        if data.class_id is not None:
            school_class = await db.scalar(
                select(SchoolClass).where(
                    SchoolClass.id == data.class_id,
                    SchoolClass.school_id == school_id,
                )
            )
            if not school_class:
                raise NotFoundError("Class not found")

        user = await UserService.create_user(
            db,
            email=data.email,
            password=data.password,
            first_name=data.first_name,
            last_name=data.last_name,
            school_id=school_id,
            role=UserRole.STUDENT,
        )
        db.add(
            StudentProfile(
                user_id=user.id,
                school_id=school_id,
                school_class_id=data.class_id,
                admission_number=data.admission_number,
            )
        )
        await db.flush()
        return user

    @staticmethod
    async def list_students(
        db: AsyncSession,
        school_id: UUID,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[User], int]:
        """Paginated students with profile and class loaded"""
        filters = (
            User.school_id == school_id,
            User.role == UserRole.STUDENT,
            User.deleted_at.is_(None),
        )
        total = await db.scalar(select(func.count(User.id)).where(*filters))
        result = await db.execute(
            select(User)
            .where(*filters)
            .options(selectinload(User.student_profile).selectinload(StudentProfile.school_class))
            .order_by(User.last_name, User.first_name)
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all()), total or 0

    @staticmethod
    async def get_student(db: AsyncSession, school_id: UUID, student_id: UUID) -> Optional[User]:
        """Student with profile and class loaded"""
        result = await db.execute(
            select(User)
            .where(
                User.id == student_id,
                User.school_id == school_id,
                User.role == UserRole.STUDENT,
            )
            .options(selectinload(User.student_profile).selectinload(StudentProfile.school_class))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()
