from __future__ import annotations

import logging

from app.backbone.errors import ConstraintViolation, ValidationException
from app.backbone.models import STATUS_DISABLED, STATUS_ENABLED
from app.backbone.modules.rbac.dao import PermissionDao, RoleDao, RolePermissionDao, UserRoleDao
from app.backbone.modules.rbac.dto import (
    CreatePermissionDto,
    CreateRoleDto,
    PermissionDto,
    RoleDto,
    UpdatePermissionDto,
    UpdateRoleDto,
)
from app.backbone.modules.rbac.errors import AuthorizationErrorCode
from app.backbone.modules.rbac.models import Permission, Role, RolePermission, UserRole
from app.backbone.utils import clean

logger = logging.getLogger(__name__)


def _require(value: str | None, field: str) -> str:
    value = (value or "").strip()
    if not value:
        raise ValidationException(
            f"{field} is required.", field=field, error_code=AuthorizationErrorCode.AUTHORIZATION_PARAM_INVALID
        )
    return value


class RoleService:
    def __init__(self, role_dao: RoleDao, user_role_dao: UserRoleDao, role_permission_dao: RolePermissionDao) -> None:
        self._roles = role_dao
        self._user_roles = user_role_dao
        self._role_permissions = role_permission_dao

    def create_role(self, dto: CreateRoleDto, *, actor_id: int | None = None) -> RoleDto | None:
        """None when the code is already taken."""
        code = _require(dto.code, "code")
        if self._roles.find_by_code(code) is not None:
            return None
        role = Role(code=code, name=_require(dto.name, "name"), description=clean(dto.description), status=STATUS_ENABLED)
        try:
            self._roles.create(role, actor_id=actor_id)
        except ConstraintViolation:
            logger.warning("Role code %r taken concurrently", code)
            return None
        logger.info("Role created: id=%s code=%s", role.id, role.code)
        return RoleDto.from_entity(role)

    def update_role(self, role_id: int, dto: UpdateRoleDto, *, actor_id: int | None = None) -> bool:
        role = self._roles.find_by_id(role_id)
        if role is None:
            return False
        if dto.name is not None:
            role.name = _require(dto.name, "name")
        if dto.code is not None:
            role.code = _require(dto.code, "code")
        if dto.description is not None:
            role.description = clean(dto.description)
        try:
            return self._roles.update(role, actor_id=actor_id)
        except ConstraintViolation as e:
            raise ConstraintViolation(error_code=AuthorizationErrorCode.AUTHORIZATION_ROLE_EXISTS, details={"code": role.code}) from e

    def set_role_status(self, role_id: int, enabled: bool, *, actor_id: int | None = None) -> bool:
        role = self._roles.find_by_id(role_id)
        if role is None:
            return False
        role.status = STATUS_ENABLED if enabled else STATUS_DISABLED
        return self._roles.update(role, actor_id=actor_id)

    def delete_role(self, role_id: int) -> bool:
        """Physically removes the role together with its user and permission links."""
        with self._roles.transaction() as s:
            self._user_roles.delete_if(UserRole.role_id == role_id, session=s)
            self._role_permissions.delete_if(RolePermission.role_id == role_id, session=s)
            deleted = self._roles.delete_by_id(role_id, session=s)
        if deleted:
            logger.info("Role deleted: id=%s", role_id)
        return deleted

    def get_role_by_id(self, role_id: int) -> RoleDto | None:
        role = self._roles.find_by_id(role_id)
        return RoleDto.from_entity(role) if role else None

    def get_role_by_code(self, code: str) -> RoleDto | None:
        role = self._roles.find_by_code(code)
        return RoleDto.from_entity(role) if role else None

    def get_all_roles(self) -> list[RoleDto]:
        return [RoleDto.from_entity(r) for r in self._roles.find_all()]


class PermissionService:
    def __init__(self, permission_dao: PermissionDao, role_permission_dao: RolePermissionDao) -> None:
        self._permissions = permission_dao
        self._role_permissions = role_permission_dao

    def create_permission(self, dto: CreatePermissionDto, *, actor_id: int | None = None) -> PermissionDto | None:
        """None when the code is already taken."""
        code = _require(dto.code, "code")
        if self._permissions.find_by_code(code) is not None:
            return None
        permission = Permission(
            code=code,
            name=_require(dto.name, "name"),
            resource=_require(dto.resource, "resource"),
            action=_require(dto.action, "action"),
            description=clean(dto.description),
            status=STATUS_ENABLED,
        )
        try:
            self._permissions.create(permission, actor_id=actor_id)
        except ConstraintViolation:
            logger.warning("Permission code %r taken concurrently", code)
            return None
        logger.info("Permission created: id=%s code=%s", permission.id, permission.code)
        return PermissionDto.from_entity(permission)

    def update_permission(self, permission_id: int, dto: UpdatePermissionDto, *, actor_id: int | None = None) -> bool:
        permission = self._permissions.find_by_id(permission_id)
        if permission is None:
            return False
        if dto.name is not None:
            permission.name = _require(dto.name, "name")
        if dto.code is not None:
            permission.code = _require(dto.code, "code")
        if dto.resource is not None:
            permission.resource = _require(dto.resource, "resource")
        if dto.action is not None:
            permission.action = _require(dto.action, "action")
        if dto.description is not None:
            permission.description = clean(dto.description)
        try:
            return self._permissions.update(permission, actor_id=actor_id)
        except ConstraintViolation as e:
            raise ConstraintViolation(
                error_code=AuthorizationErrorCode.AUTHORIZATION_PERMISSION_EXISTS, details={"code": permission.code}
            ) from e

    def set_permission_status(self, permission_id: int, enabled: bool, *, actor_id: int | None = None) -> bool:
        permission = self._permissions.find_by_id(permission_id)
        if permission is None:
            return False
        permission.status = STATUS_ENABLED if enabled else STATUS_DISABLED
        return self._permissions.update(permission, actor_id=actor_id)

    def delete_permission(self, permission_id: int) -> bool:
        with self._permissions.transaction() as s:
            self._role_permissions.delete_if(RolePermission.permission_id == permission_id, session=s)
            deleted = self._permissions.delete_by_id(permission_id, session=s)
        if deleted:
            logger.info("Permission deleted: id=%s", permission_id)
        return deleted

    def get_permission_by_id(self, permission_id: int) -> PermissionDto | None:
        permission = self._permissions.find_by_id(permission_id)
        return PermissionDto.from_entity(permission) if permission else None

    def get_permission_by_code(self, code: str) -> PermissionDto | None:
        permission = self._permissions.find_by_code(code)
        return PermissionDto.from_entity(permission) if permission else None

    def get_all_permissions(self) -> list[PermissionDto]:
        return [PermissionDto.from_entity(p) for p in self._permissions.find_all()]


class RbacService:
    """
    User -> role -> permission bindings and the checks built on them.

    Disabled roles grant nothing, and disabled permissions are never granted.
    """

    def __init__(
        self,
        role_dao: RoleDao,
        permission_dao: PermissionDao,
        user_role_dao: UserRoleDao,
        role_permission_dao: RolePermissionDao,
    ) -> None:
        self._roles = role_dao
        self._permissions = permission_dao
        self._user_roles = user_role_dao
        self._role_permissions = role_permission_dao

    def assign_role_to_user(self, user_id: int, role_id: int) -> bool:
        """False when the user already has the role."""
        if self._user_roles.exists(user_id, role_id):
            return False
        try:
            self._user_roles.create(UserRole(user_id=user_id, role_id=role_id))
        except ConstraintViolation:
            if self._user_roles.exists(user_id, role_id):
                return False
            raise
        logger.info("Role %s assigned to user %s", role_id, user_id)
        return True

    def remove_role_from_user(self, user_id: int, role_id: int) -> bool:
        return self._user_roles.delete_link(user_id, role_id) > 0

    def get_user_roles(self, user_id: int) -> list[RoleDto]:
        role_ids = self._user_roles.get_role_ids_by_user_id(user_id)
        return [RoleDto.from_entity(r) for r in self._roles.find_by_ids(role_ids)]

    def get_user_permissions(self, user_id: int) -> list[PermissionDto]:
        """Enabled permissions reachable through the user's enabled roles."""
        roles = self._roles.find_by_ids(self._user_roles.get_role_ids_by_user_id(user_id))
        role_ids = [r.id for r in roles if r.status == STATUS_ENABLED]
        permission_ids = self._role_permissions.get_permission_ids_by_role_ids(role_ids)
        return [
            PermissionDto.from_entity(p)
            for p in self._permissions.find_by_ids(permission_ids)
            if p.status == STATUS_ENABLED
        ]

    def assign_permission_to_role(self, role_id: int, permission_id: int) -> bool:
        """False when the role already has the permission."""
        if self._role_permissions.exists(role_id, permission_id):
            return False
        try:
            self._role_permissions.create(RolePermission(role_id=role_id, permission_id=permission_id))
        except ConstraintViolation:
            if self._role_permissions.exists(role_id, permission_id):
                return False
            raise
        logger.info("Permission %s assigned to role %s", permission_id, role_id)
        return True

    def remove_permission_from_role(self, role_id: int, permission_id: int) -> bool:
        return self._role_permissions.delete_link(role_id, permission_id) > 0

    def get_role_permissions(self, role_id: int) -> list[PermissionDto]:
        permission_ids = self._role_permissions.get_permission_ids_by_role_ids([role_id])
        return [PermissionDto.from_entity(p) for p in self._permissions.find_by_ids(permission_ids)]

    def has_permission(self, user_id: int, permission_code: str) -> bool:
        return any(p.code == permission_code for p in self.get_user_permissions(user_id))

    def has_role(self, user_id: int, role_code: str) -> bool:
        return any(r.code == role_code and r.enabled for r in self.get_user_roles(user_id))
