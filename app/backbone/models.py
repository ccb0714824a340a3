from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, SmallInteger
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from app.backbone.utils import utcnow


class Base(DeclarativeBase):
    pass


class SimpleAuditableMixin:
    """Creation timestamp plus the soft-delete flag."""

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class AuditableMixin(SimpleAuditableMixin):
    created_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    updated_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)


class StatusAuditableMixin:
    """
    Configuration rows (roles, permissions) are switched off via ``status``
    instead of being soft-deleted.
    """

    created_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    updated_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    status: Mapped[int] = mapped_column(SmallInteger, nullable=False, default=1)


STATUS_ENABLED = 1
STATUS_DISABLED = 0

