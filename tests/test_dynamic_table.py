import pytest
from sqlalchemy import text

from app.backbone import create_app
from app.backbone.errors import NotFoundException, ValidationException
from app.backbone.models import Base
from app.backbone.modules.dynamic_table.dto import BatchTableRegistrationRequest, TableRegistrationRequest
from app.backbone.modules.dynamic_table.errors import DynamicTableErrorCode


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("DYNAMIC_TABLE_EXCLUDED_COLUMNS", "password,api_key")

    app = create_app()
    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)
    with engine.begin() as conn:
        conn.execute(text("CREATE TABLE products (id INTEGER PRIMARY KEY, name VARCHAR(64) NOT NULL, api_key TEXT)"))
        conn.execute(text("CREATE TABLE orders (id INTEGER PRIMARY KEY, product_id INTEGER, qty INTEGER DEFAULT 1)"))
    return app


@pytest.fixture()
def tables(app):
    return app.extensions["services"].dynamic_tables


@pytest.fixture()
def registry(app):
    return app.extensions["services"].table_registry


def test_discover_tables(tables):
    found = {t.name: t for t in tables.discover_tables()}
    assert {"products", "orders", "users"} <= set(found)
    assert found["products"].column_count == 3
    assert found["products"].is_registered is False


def test_register_table_publishes_to_query_registry(tables, registry):
    result = tables.register_table(TableRegistrationRequest(table_name="products"))
    assert result.success is True
    assert result.column_count == 3
    assert registry.is_registered("products")
    assert [c.name for c in registry.get_columns("products")] == ["id", "name"]

    info = {t.name: t for t in tables.get_registered_tables()}["products"]
    assert info.primary_keys == ["id"]
    assert info.excluded_columns == frozenset({"password", "api_key"})
    assert {t.name: t for t in tables.discover_tables()}["products"].is_registered is True


def test_register_with_alias_and_table_exclusions(tables, registry):
    tables.register_table(
        TableRegistrationRequest(table_name="orders", alias="purchases", excluded_columns=frozenset({"qty"}))
    )
    assert registry.is_registered("purchases")
    assert not registry.is_registered("orders")
    assert [c.name for c in registry.get_columns("purchases")] == ["id", "product_id"]
    assert tables.get_excluded_columns("purchases") == {"password", "api_key", "qty"}


def test_register_missing_table(tables, registry):
    result = tables.register_table(TableRegistrationRequest(table_name="ghost"))
    assert result.success is False
    assert not registry.is_registered("ghost")
    with pytest.raises(ValidationException):
        tables.register_table(TableRegistrationRequest(table_name=" "))


def test_batch_registration(tables):
    result = tables.register_tables(
        BatchTableRegistrationRequest(
            tables=[TableRegistrationRequest(table_name="products"), TableRegistrationRequest(table_name="ghost")]
        )
    )
    assert (result.total_requested, result.success_count, result.failed_count) == (2, 1, 1)


def test_register_all_skips_registered_and_excluded(tables):
    tables.register_table(TableRegistrationRequest(table_name="products"))
    model_tables = [t.name for t in tables.discover_tables() if t.name not in ("products", "orders")]
    result = tables.register_tables(
        BatchTableRegistrationRequest(register_all=True, exclude_tables=frozenset(model_tables))
    )
    assert [r.table_name for r in result.results] == ["orders"]


def test_unregister_and_refresh(app, tables, registry):
    tables.register_table(TableRegistrationRequest(table_name="products"))
    with app.extensions["sqlalchemy_engine"].begin() as conn:
        conn.execute(text("ALTER TABLE products ADD COLUMN price INTEGER"))
    assert "price" not in [c.name for c in registry.get_columns("products")]
    assert tables.refresh_table("products") is True
    assert "price" in [c.name for c in registry.get_columns("products")]

    assert tables.unregister_table("products") is True
    assert tables.unregister_table("products") is False
    assert not registry.is_registered("products")
    assert tables.refresh_table("products") is False


def test_table_columns(tables):
    columns = {c.name: c for c in tables.get_table_columns("products")}
    assert columns["id"].is_primary_key is True
    assert columns["name"].nullable is False
    assert columns["api_key"].is_excluded is True
    assert columns["name"].is_excluded is False

    with pytest.raises(NotFoundException) as exc:
        tables.get_table_columns("ghost")
    assert exc.value.error_code is DynamicTableErrorCode.DYNAMIC_TABLE_NOT_FOUND


def test_exclusion_changes_republish(tables, registry):
    tables.register_table(TableRegistrationRequest(table_name="products"))
    tables.set_excluded_columns("products", ["name"])
    assert [c.name for c in registry.get_columns("products")] == ["id"]

    tables.set_global_excluded_columns([])
    assert tables.get_global_excluded_columns() == set()
    assert [c.name for c in registry.get_columns("products")] == ["id", "api_key"]


def test_manager_exclusion_ops(app, registry):
    manager = app.extensions["services"].dynamic_table_manager
    manager.register_table("products")

    manager.remove_global_excluded_columns(["API_KEY"])
    assert not manager.is_column_excluded("products", "api_key")
    assert [c.name for c in registry.get_columns("products")] == ["id", "name", "api_key"]

    manager.add_global_excluded_columns(["api_key"])
    manager.add_table_excluded_columns("products", ["name"])
    assert manager.is_column_excluded("products", "Name")
    manager.remove_table_excluded_columns("products", ["name"])
    assert [c.name for c in registry.get_columns("products")] == ["id", "name"]


def test_manager_register_all_and_clear(app, registry):
    manager = app.extensions["services"].dynamic_table_manager
    model_tables = [t.name for t in manager.discover_tables() if t.name not in ("products", "orders")]
    registered = manager.register_all_tables(exclude=["ORDERS", *model_tables])
    assert [t.name for t in registered] == ["products"]
    assert manager.get_table("products").primary_keys == ["id"]

    manager.clear_all()
    assert manager.get_registered_tables() == []
    assert not registry.is_registered("products")
    assert registry.is_registered("users")
