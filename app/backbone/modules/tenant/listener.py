from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from app.backbone.modules.tenant import context
from app.backbone.modules.tenant.service import TenantService
from app.backbone.modules.users.dto import UserCreatedEvent

logger = logging.getLogger(__name__)


class TenantBindingListener:
    """
    Binds every new user to a tenant.

    Tenant choice, in order: the tenant of the current context, the first
    tenant whose email domains accept the user's email, the default tenant.
    The binding is written in the session that created the user, so a
    failure here rolls the user back too.
    """

    def __init__(self, tenant_service: TenantService, default_tenant_code: str) -> None:
        self._tenants = tenant_service
        self._default_code = default_tenant_code

    def __call__(self, event: UserCreatedEvent, session: Session | None = None) -> None:
        code = context.get_tenant_code()
        source = "context"
        if not code:
            matched = self._tenants.find_tenant_by_email(event.email) if event.email else None
            code = matched.code if matched else None
            source = "email"
        if not code:
            code = self._default_code
            source = "default"
            if self._tenants.get_tenant_by_code(code) is None:
                logger.warning("Default tenant %r does not exist; user %s left unassigned", code, event.user_id)
                return

        self._tenants.assign_user_to_tenant(event.user_id, code, session=session)
        logger.info("User %s bound to tenant %s (%s)", event.user_id, code, source)

    def __repr__(self) -> str:
        return f"TenantBindingListener(default={self._default_code!r})"
