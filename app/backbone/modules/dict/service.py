from __future__ import annotations

import logging

from app.backbone.errors import ConstraintViolation, ValidationException
from app.backbone.modules.dict.dao import DictDataDao, DictTypeDao
from app.backbone.modules.dict.dto import (
    CreateDictDataDto,
    CreateDictTypeDto,
    DictDataDto,
    DictTypeDto,
    UpdateDictDataDto,
    UpdateDictTypeDto,
)
from app.backbone.modules.dict.errors import DictErrorCode
from app.backbone.modules.dict.models import DictData, DictType
from app.backbone.modules.dict.validation import DictValidator, parse_rule
from app.backbone.utils import clean

logger = logging.getLogger(__name__)

VALUE_TYPES = ("STRING", "NUMBER", "BOOLEAN", "DATE")


def validate_dict_type_payload(dto: CreateDictTypeDto | UpdateDictTypeDto, *, creating: bool) -> list[str]:
    """Validate dict type create/update payload. Returns list of errors."""
    errors = []
    if creating or dto.dict_code is not None:
        if not (dto.dict_code or "").strip():
            errors.append("Dictionary code is required.")
    if creating or dto.dict_name is not None:
        if not (dto.dict_name or "").strip():
            errors.append("Dictionary name is required.")
    if dto.value_type is not None and dto.value_type.strip().upper() not in VALUE_TYPES:
        errors.append(f"Invalid value type. Must be one of: {', '.join(VALUE_TYPES)}")
    if dto.validation_rule and dto.validation_rule.strip():
        try:
            parse_rule(dto.validation_rule)
        except ValueError as e:
            errors.append(str(e))
    return errors


def _raise_if_errors(errors: list[str]) -> None:
    if errors:
        raise ValidationException("; ".join(errors), error_code=DictErrorCode.DICT_PARAM_INVALID, details={"errors": errors})


class DictTypeService:
    def __init__(self, dict_type_dao: DictTypeDao) -> None:
        self._types = dict_type_dao

    def create_dict_type(self, dto: CreateDictTypeDto, *, actor_id: int | None = None) -> DictTypeDto | None:
        """None when an enabled type already uses the code."""
        _raise_if_errors(validate_dict_type_payload(dto, creating=True))
        code = dto.dict_code.strip()
        if self._types.find_by_code(code) is not None:
            return None
        dict_type = DictType(
            dict_code=code,
            dict_name=dto.dict_name.strip(),
            dict_category=clean(dto.dict_category),
            value_type=dto.value_type.strip().upper(),
            validation_rule=clean(dto.validation_rule),
            validation_message=clean(dto.validation_message),
            is_tree=dto.is_tree,
            description=clean(dto.description),
            status=dto.status,
            sort_order=dto.sort_order,
            remark=clean(dto.remark),
        )
        self._types.create(dict_type, actor_id=actor_id)
        logger.info("Dict type created: id=%s code=%s", dict_type.id, dict_type.dict_code)
        return DictTypeDto.from_entity(dict_type)

    def update_dict_type(self, dict_type_id: int, dto: UpdateDictTypeDto, *, actor_id: int | None = None) -> bool:
        dict_type = self._types.find_by_id(dict_type_id)
        if dict_type is None:
            return False
        _raise_if_errors(validate_dict_type_payload(dto, creating=False))
        if dto.dict_code is not None:
            code = dto.dict_code.strip()
            clash = self._types.find_by_code(code)
            if clash is not None and clash.id != dict_type.id:
                raise ConstraintViolation(error_code=DictErrorCode.DICT_TYPE_CODE_EXISTS, details={"dict_code": code})
            dict_type.dict_code = code
        if dto.dict_name is not None:
            dict_type.dict_name = dto.dict_name.strip()
        if dto.dict_category is not None:
            dict_type.dict_category = clean(dto.dict_category)
        if dto.value_type is not None:
            dict_type.value_type = dto.value_type.strip().upper()
        if dto.validation_rule is not None:
            dict_type.validation_rule = clean(dto.validation_rule)
        if dto.validation_message is not None:
            dict_type.validation_message = clean(dto.validation_message)
        if dto.is_tree is not None:
            dict_type.is_tree = dto.is_tree
        if dto.description is not None:
            dict_type.description = clean(dto.description)
        if dto.status is not None:
            dict_type.status = dto.status
        if dto.sort_order is not None:
            dict_type.sort_order = dto.sort_order
        if dto.remark is not None:
            dict_type.remark = clean(dto.remark)
        return self._types.update(dict_type, actor_id=actor_id)

    def delete_dict_type(self, dict_type_id: int, *, actor_id: int | None = None) -> bool:
        deleted = self._types.soft_delete(dict_type_id, actor_id=actor_id)
        if deleted:
            logger.info("Dict type soft-deleted: id=%s", dict_type_id)
        return deleted

    def get_dict_type_by_id(self, dict_type_id: int) -> DictTypeDto | None:
        dict_type = self._types.find_one(DictType.id == dict_type_id, DictType.status.is_(True))
        return DictTypeDto.from_entity(dict_type) if dict_type else None

    def get_dict_type_by_code(self, dict_code: str) -> DictTypeDto | None:
        dict_type = self._types.find_by_code(dict_code)
        return DictTypeDto.from_entity(dict_type) if dict_type else None

    def get_all_dict_types(self) -> list[DictTypeDto]:
        return [DictTypeDto.from_entity(t) for t in self._types.find_enabled()]

    def get_dict_types_by_category(self, category: str) -> list[DictTypeDto]:
        return [DictTypeDto.from_entity(t) for t in self._types.find_enabled(DictType.dict_category == category)]

    def get_dict_types_by_status(self, status: bool) -> list[DictTypeDto]:
        types = self._types.find_list(DictType.status.is_(status), order_by=(DictType.sort_order, DictType.id))
        return [DictTypeDto.from_entity(t) for t in types]


class DictDataService:
    def __init__(self, dict_data_dao: DictDataDao, dict_type_dao: DictTypeDao, validator: DictValidator) -> None:
        self._data = dict_data_dao
        self._types = dict_type_dao
        self._validator = validator

    def create_dict_data(self, dto: CreateDictDataDto, *, actor_id: int | None = None) -> DictDataDto | None:
        """
        None when the type is missing or disabled, or when the value already exists under the code.

        Raises DictValidationException when the value breaks the type's rule.
        """
        dict_type = self._types.find_one(DictType.id == dto.dict_type_id, DictType.status.is_(True))
        if dict_type is None:
            return None
        if not (dto.data_label or "").strip():
            raise ValidationException("Label is required.", field="data_label", error_code=DictErrorCode.DICT_PARAM_INVALID)
        self._validator.validate_or_throw(dict_type, dto.data_value)
        if self._data.find_by_code_and_value(dict_type.dict_code, dto.data_value) is not None:
            return None

        data = DictData(
            dict_type_id=dict_type.id,
            dict_code=dict_type.dict_code,
            data_value=dto.data_value,
            data_label=dto.data_label.strip(),
            parent_id=dto.parent_id,
            level=dto.level,
            is_default=dto.is_default,
            status=dto.status,
            sort_order=dto.sort_order,
            remark=clean(dto.remark),
        )
        self._data.create(data, actor_id=actor_id)
        logger.info("Dict data created: id=%s code=%s value=%s", data.id, data.dict_code, data.data_value)
        return DictDataDto.from_entity(data)

    def update_dict_data(self, dict_data_id: int, dto: UpdateDictDataDto, *, actor_id: int | None = None) -> bool:
        data = self._data.find_by_id(dict_data_id)
        if data is None:
            return False
        if dto.data_value is not None and dto.data_value != data.data_value:
            dict_type = self._types.find_by_id(data.dict_type_id)
            if dict_type is not None:
                self._validator.validate_or_throw(dict_type, dto.data_value)
            clash = self._data.find_by_code_and_value(data.dict_code, dto.data_value)
            if clash is not None and clash.id != data.id:
                raise ConstraintViolation(
                    error_code=DictErrorCode.DICT_DATA_VALUE_EXISTS,
                    details={"dict_code": data.dict_code, "data_value": dto.data_value},
                )
            data.data_value = dto.data_value
        if dto.data_label is not None:
            data.data_label = dto.data_label.strip()
        if dto.parent_id is not None:
            data.parent_id = dto.parent_id
        if dto.level is not None:
            data.level = dto.level
        if dto.is_default is not None:
            data.is_default = dto.is_default
        if dto.status is not None:
            data.status = dto.status
        if dto.sort_order is not None:
            data.sort_order = dto.sort_order
        if dto.remark is not None:
            data.remark = clean(dto.remark)
        return self._data.update(data, actor_id=actor_id)

    def delete_dict_data(self, dict_data_id: int, *, actor_id: int | None = None) -> bool:
        return self._data.soft_delete(dict_data_id, actor_id=actor_id)

    def get_dict_data_by_id(self, dict_data_id: int) -> DictDataDto | None:
        data = self._data.find_by_id(dict_data_id)
        return DictDataDto.from_entity(data) if data else None

    def get_dict_data_by_code(self, dict_code: str) -> list[DictDataDto]:
        return [DictDataDto.from_entity(d) for d in self._data.find_by_code(dict_code)]

    def get_active_dict_data_by_code(self, dict_code: str) -> list[DictDataDto]:
        return [DictDataDto.from_entity(d) for d in self._data.find_by_code(dict_code, active_only=True)]

    def get_dict_data_tree_by_code(self, dict_code: str) -> list[DictDataDto]:
        """Active values as a forest rooted at parent_id 0, siblings by sort_order."""
        return build_tree(self.get_active_dict_data_by_code(dict_code), 0)

    def get_dict_data_by_code_and_parent(self, dict_code: str, parent_id: int) -> list[DictDataDto]:
        return [DictDataDto.from_entity(d) for d in self._data.find_by_code_and_parent(dict_code, parent_id)]

    def get_dict_data_by_type_id(self, dict_type_id: int) -> list[DictDataDto]:
        return [DictDataDto.from_entity(d) for d in self._data.find_by_type_id(dict_type_id)]

    def get_dict_data_by_code_and_value(self, dict_code: str, data_value: str) -> DictDataDto | None:
        data = self._data.find_by_code_and_value(dict_code, data_value)
        return DictDataDto.from_entity(data) if data else None

    def get_default_dict_data_by_code(self, dict_code: str) -> DictDataDto | None:
        data = self._data.find_default(dict_code)
        return DictDataDto.from_entity(data) if data else None


def build_tree(nodes: list[DictDataDto], parent_id: int) -> list[DictDataDto]:
    children_of: dict[int, list[DictDataDto]] = {}
    for node in nodes:
        children_of.setdefault(node.parent_id, []).append(node)

    def _build(pid: int, seen: frozenset[int]) -> list[DictDataDto]:
        result = []
        for node in sorted(children_of.get(pid, []), key=lambda n: n.sort_order):
            if node.id in seen:
                # parent cycle in stored data
                continue
            result.append(node.with_children(_build(node.id, seen | {node.id})))
        return result

    return _build(parent_id, frozenset())
