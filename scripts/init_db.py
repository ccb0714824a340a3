import os
import sys
from pathlib import Path

# Ensure repo root is on sys.path when running as a script.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.backbone.config import load_config
from app.backbone.container import QUERYABLE_MODEL_TABLES, build_services
from app.backbone.db import create_db_engine, create_sessionmaker
from app.backbone.modules.rbac.dto import CreatePermissionDto, CreateRoleDto
from app.backbone.modules.tenant.dto import CreateTenantDto
from app.backbone.modules.users.dto import CreateUserDto

QUERY_OPERATIONS = ("select", "insert", "update", "delete", "upsert")


def seed_only(*, database_url: str | None = None) -> None:
    """
    Seed the default tenant, query permissions, the admin role and the admin user.
    Idempotent; does NOT overwrite an existing admin user's password.
    """
    admin_username = (os.environ.get("ADMIN_USERNAME") or "admin").strip()
    admin_email = (os.environ.get("ADMIN_EMAIL") or "admin@example.com").strip().lower()
    admin_password = os.environ.get("ADMIN_PASSWORD") or "change-me"

    config = load_config()
    db_url = (database_url or config["DATABASE_URL"]).strip()
    engine = create_db_engine(db_url)
    services = build_services(engine, create_sessionmaker(engine), config)

    tenant_code = config["TENANT_DEFAULT_CODE"]
    if services.tenants.get_tenant_by_code(tenant_code) is None:
        services.tenants.create_tenant(CreateTenantDto(code=tenant_code, name="Demo tenant"))

    def ensure_perm(code: str, name: str, resource: str, action: str):
        p = services.permissions.get_permission_by_code(code)
        if p is None:
            p = services.permissions.create_permission(
                CreatePermissionDto(name=name, code=code, resource=resource, action=action)
            )
        return p

    perms = [ensure_perm("*.*", "All tables: all operations", "*", "*")]
    for table in QUERYABLE_MODEL_TABLES:
        for op in QUERY_OPERATIONS:
            perms.append(ensure_perm(f"{table}.{op}", f"{table}: {op}", table, op))

    admin_role = services.roles.get_role_by_code("admin")
    if admin_role is None:
        admin_role = services.roles.create_role(CreateRoleDto(name="Administrator", code="admin"))
    for p in perms:
        services.rbac.assign_permission_to_role(admin_role.id, p.id)

    user = services.users.find_user(admin_username)
    if user is None:
        services.users.create_user(CreateUserDto(username=admin_username, email=admin_email, password=admin_password))
        user = services.users.find_user(admin_username)
    services.rbac.assign_role_to_user(user.id, admin_role.id)

    engine.dispose()


def main() -> None:
    seed_only()
    print("Seed complete.")


if __name__ == "__main__":
    main()
