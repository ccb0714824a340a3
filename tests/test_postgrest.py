import pytest
from sqlalchemy import text

from app.backbone import create_app
from app.backbone.errors import BusinessException, ForbiddenException, ValidationException
from app.backbone.models import Base
from app.backbone.modules.dynamic_table.dto import TableRegistrationRequest
from app.backbone.modules.postgrest.dto import CountType, OrderConfig, QueryOperation, QueryRequest
from app.backbone.modules.postgrest.errors import PostgrestQueryErrorCode
from app.backbone.modules.postgrest.rls import DENY_ALL
from app.backbone.modules.rbac.dto import CreatePermissionDto, CreateRoleDto
from app.backbone.modules.users.models import User


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")

    app = create_app()
    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)
    with engine.begin() as conn:
        conn.execute(
            text(
                "CREATE TABLE notes ("
                "id INTEGER PRIMARY KEY, tenant_id INTEGER, title VARCHAR(64), "
                "body TEXT, created_by INTEGER, secret VARCHAR(64))"
            )
        )
    app.extensions["services"].dynamic_tables.register_table(TableRegistrationRequest(table_name="notes"))
    return app


@pytest.fixture()
def services(app):
    return app.extensions["services"]


def _user(services, name="alice"):
    return services.user_dao.create(User(username=name, email=f"{name}@example.com", password="x"))


def _grant(services, user_id, *codes):
    role = services.roles.create_role(CreateRoleDto(name=f"role-{user_id}", code=f"role-{user_id}"))
    services.rbac.assign_role_to_user(user_id, role.id)
    for code in codes:
        p = services.permissions.get_permission_by_code(code)
        if p is None:
            resource, action = code.split(".")
            p = services.permissions.create_permission(
                CreatePermissionDto(name=code, code=code, resource=resource, action=action)
            )
        services.rbac.assign_permission_to_role(role.id, p.id)


def _insert_notes(services, user_id, rows):
    return services.query.execute_query(
        QueryRequest.from_dict({"from": "notes", "operation": "INSERT", "data": rows, "select": "*"}), user_id
    )


@pytest.fixture()
def alice(services):
    u = _user(services)
    _grant(services, u.id, "notes.*", "dict_types.*")
    _insert_notes(
        services,
        u.id,
        [
            {"tenantId": 1, "title": "a", "createdBy": u.id, "secret": "s1"},
            {"tenantId": 1, "title": "b", "createdBy": u.id},
            {"tenantId": 2, "title": "c", "createdBy": u.id},
        ],
    )
    return u


def test_from_dict():
    req = QueryRequest.from_dict(
        {
            "from": "notes",
            "operation": "select",
            "select": "id, title",
            "where": [["title", "eq", "a"]],
            "order": {"title": {"ascending": False, "nullsFirst": True}},
            "range": [0, 9],
            "count": "EXACT",
            "head": True,
        }
    )
    assert req.from_ == "notes"
    assert req.operation is QueryOperation.SELECT
    assert req.select == ["id", "title"]
    assert req.order == {"title": OrderConfig(ascending=False, nulls_first=True)}
    assert req.range == (0, 9)
    assert req.count is CountType.EXACT
    assert req.head is True

    with pytest.raises(ValidationException):
        QueryRequest.from_dict({"from": ""})
    with pytest.raises(ValidationException):
        QueryRequest.from_dict({"from": "notes", "operation": "merge"})


def test_unregistered_table(services, alice):
    with pytest.raises(BusinessException) as exc:
        services.query.execute_query(QueryRequest(from_="nope"), alice.id)
    assert exc.value.error_code is PostgrestQueryErrorCode.POSTGREST_QUERY_TABLE_NOT_REGISTERED


def test_forbidden_without_permission(services, alice):
    bob = _user(services, "bob")
    with pytest.raises(ForbiddenException) as exc:
        services.query.execute_query(QueryRequest(from_="notes"), bob.id)
    assert exc.value.error_code is PostgrestQueryErrorCode.POSTGREST_QUERY_FORBIDDEN
    assert exc.value.status == 403


def test_insert_echoes_rows(services, alice):
    resp = _insert_notes(services, alice.id, {"title": "d", "createdBy": alice.id, "unknown": 1})
    assert resp.count == 1
    assert resp.data[0]["title"] == "d"
    assert resp.data[0]["id"] is not None
    assert "unknown" not in resp.data[0]


def test_insert_requires_data(services, alice):
    for data, code in (
        (None, PostgrestQueryErrorCode.POSTGREST_QUERY_INSERT_DATA_REQUIRED),
        ([], PostgrestQueryErrorCode.POSTGREST_QUERY_INSERT_DATA_EMPTY),
        ({"unknown": 1}, PostgrestQueryErrorCode.POSTGREST_QUERY_INSERT_DATA_EMPTY),
    ):
        with pytest.raises(BusinessException) as exc:
            services.query.execute_query(QueryRequest(from_="notes", operation=QueryOperation.INSERT, data=data), alice.id)
        assert exc.value.error_code is code


def test_select_hides_excluded_columns(services, alice):
    resp = services.query.execute_query(QueryRequest(from_="notes", select=["*"]), alice.id)
    assert len(resp.data) == 3
    assert "secret" not in resp.data[0]
    assert set(resp.data[0]) == {"id", "tenant_id", "title", "body", "created_by"}

    with pytest.raises(ValidationException) as exc:
        services.query.execute_query(QueryRequest(from_="notes", select=["secret"]), alice.id)
    assert exc.value.error_code is PostgrestQueryErrorCode.POSTGREST_QUERY_COLUMN_NOT_FOUND


def test_select_with_tenant_filter(services, alice):
    resp = services.query.execute_query(QueryRequest(from_="notes", select=["title"]), alice.id, tenant_id=1)
    assert sorted(r["title"] for r in resp.data) == ["a", "b"]
    assert set(resp.data[0]) == {"title"}


def test_select_where_order_range_count(services, alice):
    req = QueryRequest.from_dict(
        {
            "from": "notes",
            "select": ["title"],
            "where": [["title", "eq", "a"], "or", [["title", "eq", "b"], "or", ["title", "eq", "c"]]],
            "order": {"title": {"ascending": False}, "nope": {}},
            "range": [0, 1],
            "count": "exact",
        }
    )
    resp = services.query.execute_query(req, alice.id)
    assert [r["title"] for r in resp.data] == ["c", "b"]
    assert resp.count == 3


def test_where_operators(services, alice):
    def titles(where):
        resp = services.query.execute_query(QueryRequest(from_="notes", where=where, order={"title": OrderConfig()}), alice.id)
        return [r["title"] for r in resp.data]

    assert titles([["title", "in", ["a", "c"]]]) == ["a", "c"]
    assert titles([["title", "neq", "a"], "and", ["tenantId", "gte", 2]]) == ["c"]
    assert titles([["title", "like", "%b%"]]) == ["b"]
    assert titles([["body", "is", None]]) == ["a", "b", "c"]
    assert titles([["title", "is", "not.null"]]) == ["a", "b", "c"]
    assert titles(["title", "eq", "b"]) == ["b"]
    assert titles([["title", "between", "a"]]) == ["a", "b", "c"]

    with pytest.raises(ValidationException):
        titles([["nope", "eq", 1]])


def test_head_returns_no_rows(services, alice):
    resp = services.query.execute_query(QueryRequest(from_="notes", head=True, count=CountType.EXACT), alice.id)
    assert resp.head is True
    assert resp.data == []
    assert resp.count == 3


def test_update_requires_where_and_data(services, alice):
    with pytest.raises(BusinessException) as exc:
        services.query.execute_query(
            QueryRequest(from_="notes", operation=QueryOperation.UPDATE, data={"title": "z"}), alice.id
        )
    assert exc.value.error_code is PostgrestQueryErrorCode.POSTGREST_QUERY_UPDATE_WHERE_REQUIRED

    with pytest.raises(BusinessException) as exc:
        services.query.execute_query(
            QueryRequest(from_="notes", operation=QueryOperation.UPDATE, data=[{"title": "z"}], where=[["id", "eq", 1]]),
            alice.id,
        )
    assert exc.value.error_code is PostgrestQueryErrorCode.POSTGREST_QUERY_UPDATE_DATA_REQUIRED

    with pytest.raises(BusinessException) as exc:
        services.query.execute_query(
            QueryRequest(
                from_="notes", operation=QueryOperation.UPDATE, data={"title": "z"}, where=[["id", "zz", 1]]
            ),
            alice.id,
        )
    assert exc.value.error_code is PostgrestQueryErrorCode.POSTGREST_QUERY_UPDATE_WHERE_REQUIRED


def test_update_only_own_rows(services, alice):
    bob = _user(services, "bob")
    _grant(services, bob.id, "notes.*")
    _insert_notes(services, bob.id, {"title": "bobs", "createdBy": bob.id})

    update_all = QueryRequest(
        from_="notes", operation=QueryOperation.UPDATE, data={"body": "edited"}, where=[["id", "gt", 0]]
    )
    assert services.query.execute_query(update_all, bob.id).count == 1
    resp = services.query.execute_query(QueryRequest(from_="notes", where=[["body", "eq", "edited"]]), alice.id)
    assert [r["title"] for r in resp.data] == ["bobs"]


def test_delete_requires_where(services, alice):
    with pytest.raises(BusinessException) as exc:
        services.query.execute_query(QueryRequest(from_="notes", operation=QueryOperation.DELETE), alice.id)
    assert exc.value.error_code is PostgrestQueryErrorCode.POSTGREST_QUERY_DELETE_WHERE_REQUIRED


def test_delete_physical_on_plain_table(services, alice):
    resp = services.query.execute_query(
        QueryRequest(from_="notes", operation=QueryOperation.DELETE, where=[["title", "eq", "a"]]), alice.id
    )
    assert resp.count == 1
    left = services.query.execute_query(QueryRequest(from_="notes", count=CountType.EXACT, head=True), alice.id)
    assert left.count == 2


def test_delete_is_soft_on_flagged_table(services, alice):
    created = services.query.execute_query(
        QueryRequest.from_dict(
            {
                "from": "dict_type",
                "operation": "insert",
                "data": {"dictCode": "size", "dictName": "Size", "createdBy": alice.id},
                "select": ["id"],
            }
        ),
        alice.id,
    )
    type_id = created.data[0]["id"]

    resp = services.query.execute_query(
        QueryRequest(from_="dict_types", operation=QueryOperation.DELETE, where=[["id", "eq", type_id]]), alice.id
    )
    assert resp.count == 1
    assert services.query.execute_query(QueryRequest(from_="dict_types"), alice.id).data == []
    assert services.dict_type_dao.find_by_id(type_id, include_deleted=True).is_deleted is True


def test_upsert(services, alice):
    def upsert(data, on_conflict="title"):
        return services.query.execute_query(
            QueryRequest(from_="notes", operation=QueryOperation.UPSERT, data=data, on_conflict=on_conflict), alice.id
        )

    assert upsert([{"title": "a", "body": "updated"}, {"title": "new", "body": "inserted"}]).count == 2
    resp = services.query.execute_query(
        QueryRequest(from_="notes", where=[["body", "is", "not.null"]], order={"title": OrderConfig()}), alice.id
    )
    assert [(r["title"], r["body"]) for r in resp.data] == [("a", "updated"), ("new", "inserted")]

    for data, conflict, code in (
        (None, "title", PostgrestQueryErrorCode.POSTGREST_QUERY_UPSERT_DATA_REQUIRED),
        ({"title": "x"}, None, PostgrestQueryErrorCode.POSTGREST_QUERY_UPSERT_CONFLICT_REQUIRED),
        ({"title": "x"}, "nope", PostgrestQueryErrorCode.POSTGREST_QUERY_UPSERT_CONFLICT_FIELD_NOT_FOUND),
        ({"body": "x"}, "title", PostgrestQueryErrorCode.POSTGREST_QUERY_UPSERT_CONFLICT_FIELD_EMPTY),
    ):
        with pytest.raises(BusinessException) as exc:
            upsert(data, conflict)
        assert exc.value.error_code is code


def test_wildcard_permission(services, alice):
    carol = _user(services, "carol")
    _grant(services, carol.id, "*.*")
    resp = services.query.execute_query(QueryRequest(from_="notes"), carol.id)
    assert len(resp.data) == 3


def test_rls_conditions(services, alice):
    rls = services.query._rls
    assert rls.get_rls_conditions("notes", 999, None, "select") == [DENY_ALL]
    update = rls.get_rls_conditions("notes", alice.id, 7, "update")
    assert [(c.column, c.operator, c.value) for c in update] == [("created_by", "eq", alice.id)]
    select = rls.get_rls_conditions("notes", alice.id, 7, "select")
    assert [(c.column, c.value) for c in select] == [("tenant_id", 7)]


def test_deny_condition_matches_nothing(services, alice):
    builder = services.query._builder
    result = builder.build_and_execute(QueryRequest(from_="notes"), [DENY_ALL])
    assert result.data == []
