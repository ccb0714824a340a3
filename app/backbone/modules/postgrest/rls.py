from __future__ import annotations

import logging

from app.backbone.modules.postgrest.dto import RlsCondition
from app.backbone.modules.rbac.service import RbacService

logger = logging.getLogger(__name__)

DENY_ALL = RlsCondition("", "false", None)


def permission_code(table: str, operation: str) -> str:
    return f"{table.lower()}.{operation.lower()}"


class RowLevelSecurityProvider:
    """
    Table-level permission checks and the row filters that go with them.

    A user may run ``<operation>`` on ``<table>`` when one of their enabled roles
    grants ``<table>.<operation>``, ``<table>.*`` or ``*.*``.
    """

    def __init__(self, rbac_service: RbacService) -> None:
        self._rbac = rbac_service

    def has_permission(self, table: str, user_id: int, tenant_id: int | None, operation: str) -> bool:
        granted = {p.code for p in self._rbac.get_user_permissions(user_id)}
        wanted = {permission_code(table, operation), f"{table.lower()}.*", "*.*"}
        return not granted.isdisjoint(wanted)

    def get_rls_conditions(self, table: str, user_id: int, tenant_id: int | None, operation: str) -> list[RlsCondition]:
        if not self.has_permission(table, user_id, tenant_id, operation):
            logger.warning("User %s may not %s on table %s", user_id, operation, table)
            return [DENY_ALL]

        conditions: list[RlsCondition] = []
        op = operation.lower()
        if op == "select":
            if tenant_id is not None:
                conditions.append(RlsCondition("tenant_id", "eq", tenant_id))
        elif op in ("update", "delete"):
            conditions.append(RlsCondition("created_by", "eq", user_id))
        logger.debug("RLS conditions for %s on %s: %s", op, table, conditions)
        return conditions
