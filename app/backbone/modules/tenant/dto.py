from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

from app.backbone.email_domains import expand_all

if TYPE_CHECKING:
    from app.backbone.modules.tenant.models import Tenant


class TenantStatus(Enum):
    AVAILABLE = 1
    DISABLED = 0

    @classmethod
    def from_value(cls, status: int) -> "TenantStatus":
        try:
            return cls(status)
        except ValueError:
            raise ValueError(f"Invalid tenant status {status!r}") from None


@dataclass(frozen=True)
class TenantDto:
    id: int
    code: str
    name: str
    description: str | None = None
    email_domains: list[str] = field(default_factory=list)
    status: TenantStatus = TenantStatus.AVAILABLE
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_entity(cls, tenant: "Tenant") -> "TenantDto":
        return cls(
            id=tenant.id,
            code=tenant.code,
            name=tenant.name,
            description=tenant.description,
            email_domains=expand_all(tenant.email_domains),
            status=TenantStatus.from_value(tenant.status),
            created_at=tenant.created_at,
            updated_at=tenant.updated_at,
        )


@dataclass(frozen=True)
class CreateTenantDto:
    code: str
    name: str
    description: str | None = None
    email_domains: str | None = None
