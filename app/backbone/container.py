"""
Explicit wiring of every DAO and service.

``build_services`` is the only place objects are constructed and connected;
``create_app()`` calls it once and keeps the result in
``app.extensions["services"]``. Tests and scripts can call it directly.
"""
from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from sqlalchemy import Engine
from sqlalchemy.orm import Session, sessionmaker

from app.backbone.modules.captcha.cache import MemorizedCaptchaCache
from app.backbone.modules.captcha.service import CaptchaService
from app.backbone.modules.dict.dao import DictDataDao, DictTypeDao
from app.backbone.modules.dict.service import DictDataService, DictTypeService
from app.backbone.modules.dict.validation import DictValidator
from app.backbone.modules.dynamic_table.manager import DynamicTableManager
from app.backbone.modules.dynamic_table.service import DynamicTableManagementService
from app.backbone.modules.postgrest.builder import QueryBuilder
from app.backbone.modules.postgrest.registry import TableRegistry
from app.backbone.modules.postgrest.rls import RowLevelSecurityProvider
from app.backbone.modules.postgrest.service import PostgrestQueryService
from app.backbone.modules.rbac.dao import PermissionDao, RoleDao, RolePermissionDao, UserRoleDao
from app.backbone.modules.rbac.service import PermissionService, RbacService, RoleService
from app.backbone.modules.tenant.dao import TenantDao, UserTenantDao
from app.backbone.modules.tenant.listener import TenantBindingListener
from app.backbone.modules.tenant.service import TenantService
from app.backbone.modules.users.dao import UserDao
from app.backbone.modules.users.service import UserService

logger = logging.getLogger(__name__)

# table name -> aliases it can also be queried by
QUERYABLE_MODEL_TABLES: dict[str, tuple[str, ...]] = {
    "users": ("user",),
    "tenants": ("tenant",),
    "user_tenants": ("user_tenant",),
    "roles": ("role",),
    "permissions": ("permission",),
    "user_roles": ("user_role",),
    "role_permissions": ("role_permission",),
    "dict_types": ("dict_type",),
    "dict_data": (),
}


@dataclass(frozen=True)
class Services:
    user_dao: UserDao
    tenant_dao: TenantDao
    user_tenant_dao: UserTenantDao
    role_dao: RoleDao
    permission_dao: PermissionDao
    user_role_dao: UserRoleDao
    role_permission_dao: RolePermissionDao
    dict_type_dao: DictTypeDao
    dict_data_dao: DictDataDao

    users: UserService
    captcha: CaptchaService
    tenants: TenantService
    roles: RoleService
    permissions: PermissionService
    rbac: RbacService
    dict_types: DictTypeService
    dict_data: DictDataService
    table_registry: TableRegistry
    query: PostgrestQueryService
    dynamic_tables: DynamicTableManagementService
    dynamic_table_manager: DynamicTableManager


def register_model_tables(registry: TableRegistry, excluded_columns: tuple[str, ...] = ()) -> None:
    from app.backbone.models import Base

    for name, aliases in QUERYABLE_MODEL_TABLES.items():
        table = Base.metadata.tables.get(name)
        if table is None:
            logger.warning("Model table %s is not defined; not queryable", name)
            continue
        registry.register(name, table, aliases=aliases, excluded_columns=excluded_columns)


def build_services(engine: Engine, sessions: sessionmaker[Session], config: Mapping[str, Any]) -> Services:
    # registers every model on Base.metadata
    import app.backbone.modules  # noqa: F401

    excluded = tuple(config.get("DYNAMIC_TABLE_EXCLUDED_COLUMNS") or ())

    user_dao = UserDao(sessions)
    tenant_dao = TenantDao(sessions)
    user_tenant_dao = UserTenantDao(sessions)
    role_dao = RoleDao(sessions)
    permission_dao = PermissionDao(sessions)
    user_role_dao = UserRoleDao(sessions)
    role_permission_dao = RolePermissionDao(sessions)
    dict_type_dao = DictTypeDao(sessions)
    dict_data_dao = DictDataDao(sessions)

    tenants = TenantService(tenant_dao, user_tenant_dao)
    binding = TenantBindingListener(tenants, config.get("TENANT_DEFAULT_CODE") or "tenant_demo")
    users = UserService(user_dao, listeners=[binding])
    captcha = CaptchaService(MemorizedCaptchaCache(), int(config.get("CAPTCHA_EXPIRES_IN_SECONDS") or 120))

    rbac = RbacService(role_dao, permission_dao, user_role_dao, role_permission_dao)

    registry = TableRegistry()
    register_model_tables(registry, excluded)
    query = PostgrestQueryService(QueryBuilder(sessions, registry), RowLevelSecurityProvider(rbac))
    manager = DynamicTableManager(engine, registry, excluded)

    logger.info("Services built; queryable tables: %s", ", ".join(registry.registered_names()))
    return Services(
        user_dao=user_dao,
        tenant_dao=tenant_dao,
        user_tenant_dao=user_tenant_dao,
        role_dao=role_dao,
        permission_dao=permission_dao,
        user_role_dao=user_role_dao,
        role_permission_dao=role_permission_dao,
        dict_type_dao=dict_type_dao,
        dict_data_dao=dict_data_dao,
        users=users,
        captcha=captcha,
        tenants=tenants,
        roles=RoleService(role_dao, user_role_dao, role_permission_dao),
        permissions=PermissionService(permission_dao, role_permission_dao),
        rbac=rbac,
        dict_types=DictTypeService(dict_type_dao),
        dict_data=DictDataService(dict_data_dao, dict_type_dao, DictValidator()),
        table_registry=registry,
        query=query,
        dynamic_tables=DynamicTableManagementService(manager),
        dynamic_table_manager=manager,
    )
