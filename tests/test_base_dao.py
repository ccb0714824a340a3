import pytest

from app.backbone import create_app
from app.backbone.dao import BaseDao, SortOrder
from app.backbone.errors import ConstraintViolation
from app.backbone.models import Base
from app.backbone.modules.rbac.dto import CreateRoleDto
from app.backbone.modules.rbac.models import UserRole
from app.backbone.modules.users.models import User


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")

    app = create_app()
    Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])
    return app


@pytest.fixture()
def users(app):
    return app.extensions["services"].user_dao


def _user(i: int) -> User:
    return User(username=f"user{i}", email=f"user{i}@example.com", password="x")


def _seed(dao, n: int) -> list[User]:
    return [dao.create(_user(i)) for i in range(1, n + 1)]


def test_create_assigns_id_and_audit_fields(users):
    u = users.create(_user(1), actor_id=9)
    assert u.id is not None
    assert u.created_at is not None
    assert u.is_deleted is False

    loaded = users.find_by_id(u.id)
    assert loaded.username == "user1"


def test_duplicate_raises_constraint_violation(users):
    users.create(_user(1))
    with pytest.raises(ConstraintViolation) as exc:
        users.create(_user(1))
    assert exc.value.status == 409
    assert exc.value.details["table"] == "users"


def test_soft_delete_hides_row(users):
    a, b = _seed(users, 2)
    assert users.soft_delete(a.id) is True
    assert users.soft_delete(a.id) is False

    assert users.find_by_id(a.id) is None
    assert users.find_by_id(a.id, include_deleted=True).is_deleted is True
    assert [u.id for u in users.find_list()] == [b.id]
    assert users.count() == 1
    assert users.count(include_deleted=True) == 2


def test_update_writes_loaded_columns(users):
    u = users.create(_user(1))
    created_at = u.created_at
    u.phone_number = "13800000000"
    assert users.update(u) is True

    loaded = users.find_by_id(u.id)
    assert loaded.phone_number == "13800000000"
    assert loaded.updated_at is not None
    assert loaded.created_at == created_at


def test_update_of_deleted_row_touches_nothing(users):
    u = users.create(_user(1))
    users.soft_delete(u.id)
    u.phone_number = "123"
    assert users.update(u) is False
    assert users.find_by_id(u.id, include_deleted=True).phone_number is None


def test_update_of_missing_id_touches_nothing(users):
    ghost = User(id=4242, username="ghost", email="ghost@example.com", password="x")
    assert users.update(ghost) is False
    assert users.find_by_id(4242, include_deleted=True) is None
    assert users.count(include_deleted=True) == 0


def test_matching_predicates(users):
    _seed(users, 3)
    assert users.any_matched(User.username == "user2")
    assert users.none_matched(User.username == "nobody")
    assert users.all_matched(User.email.like("%@example.com"))
    assert not users.all_matched(User.username == "user1")
    assert users.all_matched()


def test_paginate(users):
    created = _seed(users, 5)
    page = users.paginate(2, 1)
    assert [u.id for u in page.items] == [created[2].id, created[3].id]
    assert page.total == 5
    assert page.start_index == 2
    assert page.page_count == 3

    last = users.paginate(2, 2)
    assert [u.id for u in last.items] == [created[4].id]
    assert users.paginate(2, 9).items == []

    with pytest.raises(ValueError):
        users.paginate(0, 0)


def test_order_by_direction(users):
    _seed(users, 3)
    names = [u.username for u in users.find_list(order_by=[(User.username, SortOrder.DESC)])]
    assert names == ["user3", "user2", "user1"]
    assert [u.username for u in users.find_list(limit=2)] == ["user1", "user2"]


def test_find_all_is_lazy_and_restartable(users):
    users.create(_user(1))
    seq = users.find_all()
    users.create(_user(2))
    assert [u.username for u in seq] == ["user1", "user2"]
    assert [u.username for u in seq] == ["user1", "user2"]
    assert seq.first().username == "user1"


def test_update_if_and_soft_delete_if(users):
    _seed(users, 3)
    assert users.update_if({"phone_number": "1"}, User.username.in_(["user1", "user2"])) == 2
    assert users.soft_delete_if(User.phone_number == "1", actor_id=5) == 2
    assert users.count() == 1
    with pytest.raises(ValueError):
        users.update_if({"phone_number": "1"})
    with pytest.raises(ValueError):
        users.soft_delete_if()


def test_physical_delete_refused_for_soft_delete_entities(users):
    u = users.create(_user(1))
    with pytest.raises(TypeError):
        users.delete_by_id(u.id)


def test_soft_delete_refused_without_flag(app):
    links = app.extensions["services"].user_role_dao
    assert links.soft_delete_enabled is False
    with pytest.raises(TypeError):
        links.soft_delete_if(UserRole.user_id == 1)


def test_link_rows_are_physically_deleted(app):
    services = app.extensions["services"]
    u = services.user_dao.create(_user(1))
    role = services.roles.create_role(CreateRoleDto(name="Admin", code="admin"))
    services.user_role_dao.create(UserRole(user_id=u.id, role_id=role.id))
    assert services.user_role_dao.delete_if(UserRole.user_id == u.id) == 1
    assert services.user_role_dao.count() == 0


def test_unmapped_class_rejected(app):
    class NotAModel:
        pass

    with pytest.raises(TypeError):
        BaseDao(NotAModel, app.extensions["sqlalchemy_sessionmaker"])
