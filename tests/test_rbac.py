import pytest

from app.backbone import create_app
from app.backbone.errors import ConstraintViolation, ValidationException
from app.backbone.models import Base
from app.backbone.modules.rbac.dto import (
    CreatePermissionDto,
    CreateRoleDto,
    UpdatePermissionDto,
    UpdateRoleDto,
)
from app.backbone.modules.rbac.errors import AuthorizationErrorCode
from app.backbone.modules.users.models import User


@pytest.fixture()
def services(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")

    app = create_app()
    Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])
    return app.extensions["services"]


def _perm(services, code):
    resource, action = code.split(".")
    return services.permissions.create_permission(
        CreatePermissionDto(name=code, code=code, resource=resource, action=action)
    )


def _user(services, name="alice"):
    return services.user_dao.create(User(username=name, email=f"{name}@example.com", password="x"))


def test_create_role(services):
    role = services.roles.create_role(CreateRoleDto(name="Administrator", code="admin"), actor_id=1)
    assert role.enabled is True
    assert services.roles.get_role_by_code("admin").id == role.id
    assert services.roles.create_role(CreateRoleDto(name="Again", code="admin")) is None

    with pytest.raises(ValidationException) as exc:
        services.roles.create_role(CreateRoleDto(name="", code="x"))
    assert exc.value.error_code is AuthorizationErrorCode.AUTHORIZATION_PARAM_INVALID


def test_update_role(services):
    admin = services.roles.create_role(CreateRoleDto(name="Administrator", code="admin"))
    viewer = services.roles.create_role(CreateRoleDto(name="Viewer", code="viewer"))
    assert services.roles.update_role(admin.id, UpdateRoleDto(description="All access")) is True
    assert services.roles.get_role_by_id(admin.id).description == "All access"
    assert services.roles.update_role(999, UpdateRoleDto(name="x")) is False
    assert [r.code for r in services.roles.get_all_roles()] == ["admin", "viewer"]

    with pytest.raises(ConstraintViolation) as exc:
        services.roles.update_role(viewer.id, UpdateRoleDto(code="admin"))
    assert exc.value.error_code is AuthorizationErrorCode.AUTHORIZATION_ROLE_EXISTS


def test_permission_crud(services):
    p = _perm(services, "users.select")
    assert p.resource == "users"
    assert services.permissions.get_permission_by_code("users.select").id == p.id
    assert _perm(services, "users.select") is None

    assert services.permissions.update_permission(p.id, UpdatePermissionDto(name="Read users")) is True
    assert services.permissions.get_permission_by_id(p.id).name == "Read users"
    assert [x.code for x in services.permissions.get_all_permissions()] == ["users.select"]
    assert services.permissions.delete_permission(p.id) is True
    assert services.permissions.get_permission_by_id(p.id) is None


def test_user_permissions_through_roles(services):
    u = _user(services)
    role = services.roles.create_role(CreateRoleDto(name="Reader", code="reader"))
    read = _perm(services, "users.select")
    write = _perm(services, "users.update")

    assert services.rbac.assign_role_to_user(u.id, role.id) is True
    assert services.rbac.assign_role_to_user(u.id, role.id) is False
    assert services.rbac.assign_permission_to_role(role.id, read.id) is True
    assert services.rbac.assign_permission_to_role(role.id, read.id) is False

    assert services.rbac.has_role(u.id, "reader")
    assert services.rbac.has_permission(u.id, "users.select")
    assert not services.rbac.has_permission(u.id, write.code)
    assert [p.code for p in services.rbac.get_role_permissions(role.id)] == ["users.select"]

    assert services.rbac.remove_permission_from_role(role.id, read.id) is True
    assert not services.rbac.has_permission(u.id, "users.select")
    assert services.rbac.remove_role_from_user(u.id, role.id) is True
    assert services.rbac.get_user_roles(u.id) == []


def test_disabled_role_or_permission_grants_nothing(services):
    u = _user(services)
    role = services.roles.create_role(CreateRoleDto(name="Reader", code="reader"))
    read = _perm(services, "users.select")
    services.rbac.assign_role_to_user(u.id, role.id)
    services.rbac.assign_permission_to_role(role.id, read.id)

    services.roles.set_role_status(role.id, False)
    assert not services.rbac.has_role(u.id, "reader")
    assert services.rbac.get_user_permissions(u.id) == []

    services.roles.set_role_status(role.id, True)
    services.permissions.set_permission_status(read.id, False)
    assert services.rbac.get_user_permissions(u.id) == []


def test_delete_role_removes_links(services):
    u = _user(services)
    role = services.roles.create_role(CreateRoleDto(name="Reader", code="reader"))
    read = _perm(services, "users.select")
    services.rbac.assign_role_to_user(u.id, role.id)
    services.rbac.assign_permission_to_role(role.id, read.id)

    assert services.roles.delete_role(role.id) is True
    assert services.roles.get_role_by_id(role.id) is None
    assert services.user_role_dao.count() == 0
    assert services.role_permission_dao.count() == 0
    assert services.permissions.get_permission_by_id(read.id) is not None


def test_failed_role_delete_keeps_links(services, monkeypatch):
    u = _user(services)
    role = services.roles.create_role(CreateRoleDto(name="Reader", code="reader"))
    read = _perm(services, "users.select")
    services.rbac.assign_role_to_user(u.id, role.id)
    services.rbac.assign_permission_to_role(role.id, read.id)

    def fail(role_id, *, session=None):
        raise RuntimeError("store down")

    monkeypatch.setattr(services.role_dao, "delete_by_id", fail)
    with pytest.raises(RuntimeError, match="store down"):
        services.roles.delete_role(role.id)
    monkeypatch.undo()

    assert services.roles.get_role_by_id(role.id) is not None
    assert services.rbac.has_permission(u.id, "users.select")


def test_delete_permission_removes_links(services):
    role = services.roles.create_role(CreateRoleDto(name="Reader", code="reader"))
    read = _perm(services, "users.select")
    services.rbac.assign_permission_to_role(role.id, read.id)

    assert services.permissions.delete_permission(read.id) is True
    assert services.permissions.get_permission_by_id(read.id) is None
    assert services.role_permission_dao.count() == 0
    assert services.permissions.delete_permission(read.id) is False
