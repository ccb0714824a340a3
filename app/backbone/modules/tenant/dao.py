from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from app.backbone.dao import BaseDao
from app.backbone.models import STATUS_ENABLED
from app.backbone.modules.tenant.models import Tenant, UserTenant


class TenantDao(BaseDao[Tenant]):
    def __init__(self, sessions: sessionmaker[Session]) -> None:
        super().__init__(Tenant, sessions)

    def find_by_code(self, code: str) -> Tenant | None:
        return self.find_one(Tenant.code == code)

    def find_available(self) -> list[Tenant]:
        return self.find_list(Tenant.status == STATUS_ENABLED)

    def find_by_ids(self, ids: list[int]) -> list[Tenant]:
        if not ids:
            return []
        return self.find_list(Tenant.id.in_(ids))


class UserTenantDao(BaseDao[UserTenant]):
    def __init__(self, sessions: sessionmaker[Session]) -> None:
        super().__init__(UserTenant, sessions)

    def find_by_user_and_tenant(self, user_id: int, tenant_id: int) -> UserTenant | None:
        return self.find_one(UserTenant.user_id == user_id, UserTenant.tenant_id == tenant_id)

    def get_tenant_ids_by_user_id(self, user_id: int) -> list[int]:
        stmt = (
            select(UserTenant.tenant_id)
            .where(*self._where([UserTenant.user_id == user_id]))
            .order_by(UserTenant.id)
        )
        with self._sessions() as s:
            return list(s.scalars(stmt))
