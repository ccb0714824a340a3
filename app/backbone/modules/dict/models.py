from __future__ import annotations

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.backbone.models import AuditableMixin, Base


class DictType(AuditableMixin, Base):
    __tablename__ = "dict_types"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    dict_code: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    dict_name: Mapped[str] = mapped_column(String(128), nullable=False)
    dict_category: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    value_type: Mapped[str] = mapped_column(String(32), nullable=False, default="STRING")
    validation_rule: Mapped[str | None] = mapped_column(Text, nullable=True)  # JSON, e.g. {"type": "range", "min": 0}
    validation_message: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_tree: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    remark: Mapped[str | None] = mapped_column(String(500), nullable=True)


class DictData(AuditableMixin, Base):
    __tablename__ = "dict_data"
    __table_args__ = (Index("idx_dict_data_code_value", "dict_code", "data_value"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    dict_type_id: Mapped[int] = mapped_column(ForeignKey("dict_types.id", ondelete="CASCADE"), nullable=False, index=True)
    dict_code: Mapped[str] = mapped_column(String(64), nullable=False)
    data_value: Mapped[str] = mapped_column(String(255), nullable=False)
    data_label: Mapped[str] = mapped_column(String(255), nullable=False)
    parent_id: Mapped[int] = mapped_column(Integer, nullable=False, default=0)  # 0 = root
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    status: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    remark: Mapped[str | None] = mapped_column(String(500), nullable=True)
