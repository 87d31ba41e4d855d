from typing import List
from uuid import UUID
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from schoolms.core.exceptions import ConflictError
from schoolms.models.enums import UserRole
from schoolms.models.school import School, SchoolClass
from schoolms.schemas.auth import RegisterSchoolRequest
from schoolms.services.user_service import UserService


class SchoolService:
    """Service layer for tenant and class operations"""

    @staticmethod
    async def create_school_with_admin(db: AsyncSession, data: RegisterSchoolRequest) -> School:
        """
        Create a school and its first ADMIN user in one transaction.
        """
        school = School(
            name=data.school_name,
            address=data.address,
            phone=data.phone,
            email=data.email,
            is_active=True,
        )
        db.add(school)
        await db.flush()  # need school.id

        await UserService.create_user(
            db,
            email=data.email,
            password=data.password,
            first_name=data.first_name,
            last_name=data.last_name,
            school_id=school.id,
            role=UserRole.ADMIN,
        )
        return school

    @staticmethod
    async def create_class(db: AsyncSession, school_id: UUID, name: str) -> SchoolClass:
        existing = await db.scalar(
            select(SchoolClass.id).where(SchoolClass.school_id == school_id, SchoolClass.name == name)
        )
        if existing:
            raise ConflictError(f"Class {name} already exists")
        school_class = SchoolClass(school_id=school_id, name=name)
        db.add(school_class)
        await db.flush()
        return school_class

    @staticmethod
    async def list_classes(db: AsyncSession, school_id: UUID) -> List[SchoolClass]:
        result = await db.execute(
            select(SchoolClass).where(SchoolClass.school_id == school_id).order_by(SchoolClass.name)
        )
        return list(result.scalars().all())
