from __future__ import annotations

import logging
import re

from sqlalchemy.orm import Session

from app.backbone import email_domains
from app.backbone.errors import ConstraintViolation, NotFoundException, ValidationException
from app.backbone.models import STATUS_DISABLED, STATUS_ENABLED
from app.backbone.modules.tenant.dao import TenantDao, UserTenantDao
from app.backbone.modules.tenant.dto import CreateTenantDto, TenantDto
from app.backbone.modules.tenant.errors import TenantErrorCode
from app.backbone.modules.tenant.models import Tenant, UserTenant
from app.backbone.utils import clean

logger = logging.getLogger(__name__)

TENANT_CODE_RE = re.compile(r"^[A-Za-z][A-Za-z0-9_-]{1,63}$")


class TenantService:
    def __init__(self, tenant_dao: TenantDao, user_tenant_dao: UserTenantDao) -> None:
        self._tenants = tenant_dao
        self._user_tenants = user_tenant_dao

    def create_tenant(self, dto: CreateTenantDto, *, actor_id: int | None = None) -> TenantDto:
        code = (dto.code or "").strip()
        if not TENANT_CODE_RE.match(code):
            raise ValidationException(
                "Tenant code must start with a letter and use letters, digits, '_' or '-'.",
                field="code",
                error_code=TenantErrorCode.TENANT_PARAM_INVALID,
            )
        name = (dto.name or "").strip()
        if not name:
            raise ValidationException("Tenant name is required.", field="name", error_code=TenantErrorCode.TENANT_PARAM_INVALID)

        tenant = Tenant(
            code=code,
            name=name,
            description=clean(dto.description),
            email_domains=",".join(email_domains.split_patterns(dto.email_domains or "")) or None,
            status=STATUS_ENABLED,
        )
        try:
            self._tenants.create(tenant, actor_id=actor_id)
        except ConstraintViolation as e:
            raise ConstraintViolation(error_code=TenantErrorCode.TENANT_CODE_EXISTS, details={"code": code}) from e
        logger.info("Tenant created: id=%s code=%s", tenant.id, tenant.code)
        return TenantDto.from_entity(tenant)

    def get_all_tenants(self) -> list[TenantDto]:
        return [TenantDto.from_entity(t) for t in self._tenants.find_available()]

    def get_tenant_by_id(self, tenant_id: int) -> TenantDto | None:
        tenant = self._tenants.find_by_id(tenant_id)
        return TenantDto.from_entity(tenant) if tenant else None

    def get_tenant_by_code(self, code: str) -> TenantDto | None:
        tenant = self._tenants.find_by_code(code)
        return TenantDto.from_entity(tenant) if tenant else None

    def set_tenant_status(self, tenant_id: int, enabled: bool, *, actor_id: int | None = None) -> bool:
        tenant = self._tenants.find_by_id(tenant_id)
        if not tenant:
            return False
        tenant.status = STATUS_ENABLED if enabled else STATUS_DISABLED
        return self._tenants.update(tenant, actor_id=actor_id)

    def delete_tenant(self, tenant_id: int, *, actor_id: int | None = None) -> bool:
        deleted = self._tenants.soft_delete(tenant_id, actor_id=actor_id)
        if deleted:
            logger.info("Tenant soft-deleted: id=%s", tenant_id)
        return deleted

    def is_user_belongs_to_tenant(self, user_id: int, tenant_id: int) -> bool:
        return self._user_tenants.find_by_user_and_tenant(user_id, tenant_id) is not None

    def assign_user_to_tenant(self, user_id: int, tenant_code: str, *, session: Session | None = None) -> bool:
        """
        Bind a user to the tenant with ``tenant_code``.

        Returns False when the binding already exists; raises when the tenant does not.
        With ``session`` the binding joins the caller's transaction.
        """
        tenant = self._tenants.find_by_code(tenant_code)
        if tenant is None:
            raise NotFoundException(
                f"Tenant not found: {tenant_code}", error_code=TenantErrorCode.TENANT_NOT_FOUND, details={"code": tenant_code}
            )
        return self._assign(user_id, tenant, session)

    def assign_user_to_tenant_by_id(self, user_id: int, tenant_id: int) -> bool:
        tenant = self._tenants.find_by_id(tenant_id)
        if tenant is None:
            raise NotFoundException(
                f"Tenant not found: {tenant_id}", error_code=TenantErrorCode.TENANT_NOT_FOUND, details={"id": tenant_id}
            )
        return self._assign(user_id, tenant)

    def _assign(self, user_id: int, tenant: Tenant, session: Session | None = None) -> bool:
        if self._user_tenants.find_by_user_and_tenant(user_id, tenant.id) is not None:
            logger.warning("User %s is already assigned to tenant %s (id=%s)", user_id, tenant.code, tenant.id)
            return False
        try:
            self._user_tenants.create(UserTenant(user_id=user_id, tenant_id=tenant.id), session=session)
        except ConstraintViolation:
            # lost a race against a concurrent assignment, or the user does not exist;
            # a shared session cannot be reused after a failed flush
            if session is None and self._user_tenants.find_by_user_and_tenant(user_id, tenant.id) is not None:
                return False
            raise
        logger.info("Assigned user %s to tenant %s (id=%s)", user_id, tenant.code, tenant.id)
        return True

    def get_user_tenants(self, user_id: int) -> list[TenantDto]:
        ids = self._user_tenants.get_tenant_ids_by_user_id(user_id)
        return [TenantDto.from_entity(t) for t in self._tenants.find_by_ids(ids)]

    def get_default_tenant_for_user(self, user_id: int) -> TenantDto | None:
        """First tenant the user was bound to."""
        ids = self._user_tenants.get_tenant_ids_by_user_id(user_id)
        for tenant_id in ids:
            tenant = self._tenants.find_by_id(tenant_id)
            if tenant is not None:
                return TenantDto.from_entity(tenant)
        return None

    def find_tenant_by_email(self, email: str) -> TenantDto | None:
        """
        First available tenant, in id order, whose domain patterns accept the email's domain.

        Overlapping patterns are not an error: the oldest tenant wins.
        """
        if not email or not email.strip():
            raise ValidationException(error_code=TenantErrorCode.TENANT_EMAIL_REQUIRED, field="email")
        domain = email_domains.extract_domain(email.strip())
        if domain is None:
            logger.debug("Invalid email format: %s", email)
            return None
        for tenant in self._tenants.find_available():
            if email_domains.matches_domain(domain, tenant.email_domains):
                return TenantDto.from_entity(tenant)
        return None

    def is_email_matches_tenant(self, email: str, tenant_id: int) -> bool:
        tenant = self._tenants.find_by_id(tenant_id)
        if tenant is None:
            return False
        return email_domains.matches(email, tenant.email_domains)
