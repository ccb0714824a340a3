from __future__ import annotations

from sqlalchemy.orm import Session, sessionmaker

from app.backbone.dao import BaseDao
from app.backbone.modules.dict.models import DictData, DictType

_DATA_ORDER = (DictData.sort_order, DictData.id)


class DictTypeDao(BaseDao[DictType]):
    def __init__(self, sessions: sessionmaker[Session]) -> None:
        super().__init__(DictType, sessions)

    def find_by_code(self, dict_code: str, *, enabled_only: bool = True) -> DictType | None:
        criteria = [DictType.dict_code == dict_code]
        if enabled_only:
            criteria.append(DictType.status.is_(True))
        return self.find_one(*criteria)

    def find_enabled(self, *criteria) -> list[DictType]:
        return self.find_list(DictType.status.is_(True), *criteria, order_by=(DictType.sort_order, DictType.id))


class DictDataDao(BaseDao[DictData]):
    def __init__(self, sessions: sessionmaker[Session]) -> None:
        super().__init__(DictData, sessions)

    def find_by_code(self, dict_code: str, *, active_only: bool = False) -> list[DictData]:
        criteria = [DictData.dict_code == dict_code]
        if active_only:
            criteria.append(DictData.status.is_(True))
        return self.find_list(*criteria, order_by=_DATA_ORDER)

    def find_by_code_and_value(self, dict_code: str, data_value: str) -> DictData | None:
        return self.find_one(DictData.dict_code == dict_code, DictData.data_value == data_value)

    def find_by_code_and_parent(self, dict_code: str, parent_id: int) -> list[DictData]:
        return self.find_list(DictData.dict_code == dict_code, DictData.parent_id == parent_id, order_by=_DATA_ORDER)

    def find_by_type_id(self, dict_type_id: int) -> list[DictData]:
        return self.find_list(DictData.dict_type_id == dict_type_id, order_by=_DATA_ORDER)

    def find_default(self, dict_code: str) -> DictData | None:
        return self.find_one(DictData.dict_code == dict_code, DictData.is_default.is_(True))
