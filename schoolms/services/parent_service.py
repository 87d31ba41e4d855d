"""Parent Service - parent accounts, kinship links and family dues"""

from decimal import Decimal
from typing import Optional, List, Dict, Any
from uuid import UUID
from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from schoolms.core.exceptions import ConflictError, NotFoundError
from schoolms.models.enums import UserRole, Relationship, OUTSTANDING_STATUSES
from schoolms.models.finance import Invoice
from schoolms.models.user import User, ParentProfile, StudentProfile, Kinship
from schoolms.schemas.user import ParentCreate
from schoolms.services.user_service import UserService
from schoolms.utils.money import ZERO, money_sum
from schoolms.utils.text import LIKE_ESCAPE, contains_pattern


class ParentService:

    @staticmethod
    async def get_parent(db: AsyncSession, school_id: UUID, parent_id: UUID) -> User:
        parent = await UserService.get_school_user(db, school_id, parent_id, role=UserRole.PARENT)
        if not parent:
            raise NotFoundError("Parent not found")
        return parent

    @staticmethod
    async def create_parent(db: AsyncSession, school_id: UUID, data: ParentCreate) -> User:
        """
        Create a PARENT user and profile, optionally linking a first child
        as the primary contact.
        """
        parent = await UserService.create_user(
            db,
            email=data.email,
            password=data.password,
            first_name=data.first_name,
            last_name=data.last_name,
            phone=data.phone,
            school_id=school_id,
            role=UserRole.PARENT,
        )
        db.add(
            ParentProfile(
                user_id=parent.id,
                school_id=school_id,
                occupation=data.occupation,
                cnic=data.cnic,
            )
        )
        if data.student_id is not None:
            await ParentService.link_student(
                db,
                school_id,
                parent.id,
                data.student_id,
                data.relationship or Relationship.GUARDIAN,
                is_primary=True,
            )
        await db.flush()
        return parent

    @staticmethod
    async def search_parents(db: AsyncSession, school_id: UUID, query: str, limit: int = 5) -> List[User]:
        """Parents whose name, email, phone or CNIC contains query (case-insensitive)"""
        pattern = contains_pattern(query)
        result = await db.execute(
            select(User)
            .outerjoin(ParentProfile, ParentProfile.user_id == User.id)
            .options(selectinload(User.parent_profile))
            .where(
                User.school_id == school_id,
                User.role == UserRole.PARENT,
                User.deleted_at.is_(None),
                or_(
                    func.concat(User.first_name, " ", User.last_name).ilike(pattern, escape=LIKE_ESCAPE),
                    User.email.ilike(pattern, escape=LIKE_ESCAPE),
                    User.phone.ilike(pattern, escape=LIKE_ESCAPE),
                    ParentProfile.cnic.ilike(pattern, escape=LIKE_ESCAPE),
                ),
            )
            .order_by(User.first_name, User.last_name)
            .limit(limit)
        )
        return list(result.scalars().all())

    @staticmethod
    async def link_student(
        db: AsyncSession,
        school_id: UUID,
        parent_id: UUID,
        student_id: UUID,
        relationship: Relationship,
        is_primary: bool = False,
    ) -> Kinship:
        """
        Raises:
            NotFoundError: Parent or student missing from this school
            ConflictError: Already linked
        """
        await ParentService.get_parent(db, school_id, parent_id)
        student = await UserService.get_school_user(db, school_id, student_id, role=UserRole.STUDENT)
        if not student:
            raise NotFoundError("Student not found")

        existing = await db.scalar(
            select(Kinship.id).where(Kinship.parent_id == parent_id, Kinship.student_id == student_id)
        )
        if existing:
            raise ConflictError("Student is already linked to this parent")

        kinship = Kinship(
            parent_id=parent_id,
            student_id=student_id,
            relationship_type=relationship,
            is_primary=is_primary,
        )
        db.add(kinship)
        await db.flush()
        return kinship

    @staticmethod
    async def list_children(db: AsyncSession, school_id: UUID, parent_id: UUID) -> List[Dict[str, Any]]:
        await ParentService.get_parent(db, school_id, parent_id)
        result = await db.execute(
            select(Kinship)
            .options(
                selectinload(Kinship.student)
                .selectinload(User.student_profile)
                .selectinload(StudentProfile.school_class)
            )
            .where(Kinship.parent_id == parent_id)
            .order_by(Kinship.created_at)
        )
        children = []
        for kinship in result.scalars().all():
            profile = kinship.student.student_profile
            children.append(
                {
                    "student_id": kinship.student_id,
                    "name": kinship.student.full_name,
                    "admission_number": profile.admission_number if profile else None,
                    "class_name": profile.school_class.name if profile and profile.school_class else None,
                    "relationship": kinship.relationship_type,
                    "is_primary": kinship.is_primary,
                }
            )
        return children

    @staticmethod
    async def student_dues(db: AsyncSession, student_ids: List[UUID]) -> Dict[UUID, Decimal]:
        """Pending invoice amount per student (SUM(total - paid) grouped by student)"""
        if not student_ids:
            return {}
        result = await db.execute(
            select(
                Invoice.student_id,
                func.sum(Invoice.total_amount - Invoice.paid_amount),
            )
            .where(
                Invoice.student_id.in_(student_ids),
                Invoice.status.in_(OUTSTANDING_STATUSES),
            )
            .group_by(Invoice.student_id)
        )
        return {student_id: Decimal(total or 0) for student_id, total in result.all()}

    @staticmethod
    def summarize_family(kinships: List[Kinship], dues: Dict[UUID, Decimal]) -> Dict[str, Any]:
        """Per-child dues and the family total for one parent"""
        children = []
        for kinship in kinships:
            student = kinship.student
            profile = student.student_profile
            due = dues.get(student.id, ZERO)
            children.append(
                {
                    "student_id": student.id,
                    "name": student.full_name,
                    "class_name": profile.school_class.name if profile and profile.school_class else "N/A",
                    "admission_number": profile.admission_number if profile else "-",
                    "invoice_due": due,
                    "total_due": due,
                }
            )
        return {
            "children": children,
            "children_count": len(children),
            "total_family_due": money_sum(child["total_due"] for child in children),
        }

    @staticmethod
    async def financial_overview(
        db: AsyncSession,
        school_id: UUID,
        parent_id: Optional[UUID] = None,
    ) -> List[Dict[str, Any]]:
        """All parents of the school (or one) with their family dues, by name"""
        stmt = (
            select(User)
            .options(
                selectinload(User.parent_profile),
                selectinload(User.children)
                .selectinload(Kinship.student)
                .selectinload(User.student_profile)
                .selectinload(StudentProfile.school_class),
            )
            .where(
                User.school_id == school_id,
                User.role == UserRole.PARENT,
                User.deleted_at.is_(None),
            )
            .order_by(User.first_name, User.last_name)
        )
        if parent_id is not None:
            stmt = stmt.where(User.id == parent_id)
        parents = list((await db.execute(stmt)).scalars().all())

        student_ids = list({k.student_id for p in parents for k in p.children})
        dues = await ParentService.student_dues(db, student_ids)

        overview = []
        for parent in parents:
            summary = ParentService.summarize_family(parent.children, dues)
            overview.append(
                {
                    "id": parent.id,
                    "name": parent.full_name,
                    "email": parent.email,
                    "phone": parent.phone,
                    "cnic": parent.parent_profile.cnic if parent.parent_profile else None,
                    **summary,
                }
            )
        return overview
