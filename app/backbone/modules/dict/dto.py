from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from app.backbone.modules.dict.models import DictData, DictType


@dataclass(frozen=True)
class DictTypeDto:
    id: int
    dict_code: str
    dict_name: str
    dict_category: str | None = None
    value_type: str = "STRING"
    validation_rule: str | None = None
    validation_message: str | None = None
    is_tree: bool = False
    description: str | None = None
    status: bool = True
    sort_order: int = 0
    created_by: int | None = None
    created_at: datetime | None = None
    updated_by: int | None = None
    updated_at: datetime | None = None
    remark: str | None = None

    @classmethod
    def from_entity(cls, t: "DictType") -> "DictTypeDto":
        return cls(
            id=t.id,
            dict_code=t.dict_code,
            dict_name=t.dict_name,
            dict_category=t.dict_category,
            value_type=t.value_type,
            validation_rule=t.validation_rule,
            validation_message=t.validation_message,
            is_tree=t.is_tree,
            description=t.description,
            status=t.status,
            sort_order=t.sort_order,
            created_by=t.created_by,
            created_at=t.created_at,
            updated_by=t.updated_by,
            updated_at=t.updated_at,
            remark=t.remark,
        )


@dataclass(frozen=True)
class CreateDictTypeDto:
    dict_code: str
    dict_name: str
    dict_category: str | None = None
    value_type: str = "STRING"
    validation_rule: str | None = None
    validation_message: str | None = None
    is_tree: bool = False
    description: str | None = None
    status: bool = True
    sort_order: int = 0
    remark: str | None = None


@dataclass(frozen=True)
class UpdateDictTypeDto:
    dict_code: str | None = None
    dict_name: str | None = None
    dict_category: str | None = None
    value_type: str | None = None
    validation_rule: str | None = None
    validation_message: str | None = None
    is_tree: bool | None = None
    description: str | None = None
    status: bool | None = None
    sort_order: int | None = None
    remark: str | None = None


@dataclass(frozen=True)
class DictDataDto:
    id: int
    dict_type_id: int
    dict_code: str
    data_value: str
    data_label: str
    parent_id: int = 0
    level: int = 1
    is_default: bool = False
    status: bool = True
    sort_order: int = 0
    created_by: int | None = None
    created_at: datetime | None = None
    updated_by: int | None = None
    updated_at: datetime | None = None
    remark: str | None = None
    children: list["DictDataDto"] = field(default_factory=list)

    @classmethod
    def from_entity(cls, d: "DictData") -> "DictDataDto":
        return cls(
            id=d.id,
            dict_type_id=d.dict_type_id,
            dict_code=d.dict_code,
            data_value=d.data_value,
            data_label=d.data_label,
            parent_id=d.parent_id,
            level=d.level,
            is_default=d.is_default,
            status=d.status,
            sort_order=d.sort_order,
            created_by=d.created_by,
            created_at=d.created_at,
            updated_by=d.updated_by,
            updated_at=d.updated_at,
            remark=d.remark,
        )

    def with_children(self, children: list["DictDataDto"]) -> "DictDataDto":
        return replace(self, children=children)


@dataclass(frozen=True)
class CreateDictDataDto:
    dict_type_id: int
    data_value: str
    data_label: str
    parent_id: int = 0
    level: int = 1
    is_default: bool = False
    status: bool = True
    sort_order: int = 0
    remark: str | None = None


@dataclass(frozen=True)
class UpdateDictDataDto:
    data_value: str | None = None
    data_label: str | None = None
    parent_id: int | None = None
    level: int | None = None
    is_default: bool | None = None
    status: bool | None = None
    sort_order: int | None = None
    remark: str | None = None
