from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

from app.backbone.models import STATUS_ENABLED

if TYPE_CHECKING:
    from app.backbone.modules.rbac.models import Permission, Role


@dataclass(frozen=True)
class RoleDto:
    id: int
    name: str
    code: str
    description: str | None = None
    enabled: bool = True

    @classmethod
    def from_entity(cls, role: "Role") -> "RoleDto":
        return cls(
            id=role.id,
            name=role.name,
            code=role.code,
            description=role.description,
            enabled=role.status == STATUS_ENABLED,
        )


@dataclass(frozen=True)
class CreateRoleDto:
    name: str
    code: str
    description: str | None = None


@dataclass(frozen=True)
class UpdateRoleDto:
    name: str | None = None
    code: str | None = None
    description: str | None = None


@dataclass(frozen=True)
class PermissionDto:
    id: int
    name: str
    code: str
    resource: str
    action: str
    description: str | None = None
    enabled: bool = True
    created_by: int | None = None
    created_at: datetime | None = None
    updated_by: int | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_entity(cls, permission: "Permission") -> "PermissionDto":
        return cls(
            id=permission.id,
            name=permission.name,
            code=permission.code,
            resource=permission.resource,
            action=permission.action,
            description=permission.description,
            enabled=permission.status == STATUS_ENABLED,
            created_by=permission.created_by,
            created_at=permission.created_at,
            updated_by=permission.updated_by,
            updated_at=permission.updated_at,
        )


@dataclass(frozen=True)
class CreatePermissionDto:
    name: str
    code: str
    resource: str
    action: str
    description: str | None = None


@dataclass(frozen=True)
class UpdatePermissionDto:
    name: str | None = None
    code: str | None = None
    resource: str | None = None
    action: str | None = None
    description: str | None = None
