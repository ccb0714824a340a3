from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from app.backbone.dao import BaseDao
from app.backbone.modules.rbac.models import Permission, Role, RolePermission, UserRole


class RoleDao(BaseDao[Role]):
    def __init__(self, sessions: sessionmaker[Session]) -> None:
        super().__init__(Role, sessions)

    def find_by_code(self, code: str) -> Role | None:
        return self.find_one(Role.code == code)

    def find_by_ids(self, ids: list[int]) -> list[Role]:
        return self.find_list(Role.id.in_(ids)) if ids else []


class PermissionDao(BaseDao[Permission]):
    def __init__(self, sessions: sessionmaker[Session]) -> None:
        super().__init__(Permission, sessions)

    def find_by_code(self, code: str) -> Permission | None:
        return self.find_one(Permission.code == code)

    def find_by_ids(self, ids: list[int]) -> list[Permission]:
        return self.find_list(Permission.id.in_(ids)) if ids else []


class UserRoleDao(BaseDao[UserRole]):
    def __init__(self, sessions: sessionmaker[Session]) -> None:
        super().__init__(UserRole, sessions)

    def exists(self, user_id: int, role_id: int) -> bool:
        return self.any_matched(UserRole.user_id == user_id, UserRole.role_id == role_id)

    def delete_link(self, user_id: int, role_id: int) -> int:
        return self.delete_if(UserRole.user_id == user_id, UserRole.role_id == role_id)

    def get_role_ids_by_user_id(self, user_id: int) -> list[int]:
        with self._sessions() as s:
            return list(s.scalars(select(UserRole.role_id).where(UserRole.user_id == user_id).order_by(UserRole.id)))


class RolePermissionDao(BaseDao[RolePermission]):
    def __init__(self, sessions: sessionmaker[Session]) -> None:
        super().__init__(RolePermission, sessions)

    def exists(self, role_id: int, permission_id: int) -> bool:
        return self.any_matched(RolePermission.role_id == role_id, RolePermission.permission_id == permission_id)

    def delete_link(self, role_id: int, permission_id: int) -> int:
        return self.delete_if(RolePermission.role_id == role_id, RolePermission.permission_id == permission_id)

    def get_permission_ids_by_role_ids(self, role_ids: list[int]) -> list[int]:
        if not role_ids:
            return []
        stmt = (
            select(RolePermission.permission_id)
            .where(RolePermission.role_id.in_(role_ids))
            .distinct()
            .order_by(RolePermission.permission_id)
        )
        with self._sessions() as s:
            return list(s.scalars(stmt))
