"""Base Models and Mixins"""

import uuid
from sqlalchemy import Column, DateTime, Boolean, ForeignKey
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import declared_attr

from schoolms.database import Base
from schoolms.utils.time import get_utc_now


class BaseModel(Base):
    """
    Abstract base for every table: UUID primary key plus
    created_at / updated_at timestamps.
    """
    __abstract__ = True

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    created_at = Column(DateTime, default=get_utc_now, nullable=False)
    updated_at = Column(DateTime, default=get_utc_now, onupdate=get_utc_now, nullable=False)


class SchoolScopedMixin:
    """Tenant column. Every query on these tables filters by school_id."""

    @declared_attr
    def school_id(cls):
        return Column(
            UUID(as_uuid=True),
            ForeignKey("schools.id", ondelete="CASCADE"),
            nullable=False,
            index=True
        )


class SoftDeleteMixin:
    """NULL deleted_at = active row"""
    deleted_at = Column(DateTime, nullable=True, index=True)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


class StatusMixin:
    is_active = Column(Boolean, default=True, nullable=False, index=True)
