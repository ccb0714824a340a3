import pytest

from app.backbone import create_app
from app.backbone.errors import NotFoundException
from app.backbone.models import Base


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")

    app = create_app()
    Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])
    return app


def test_health_ok(app):
    r = app.test_client().get("/health")
    assert r.status_code == 200
    assert r.json["ok"] is True


def test_healthz_ok(app):
    r = app.test_client().get("/healthz")
    assert r.status_code == 200
    assert r.data == b"ok"


def test_unknown_route_returns_json_404(app):
    r = app.test_client().get("/nope")
    assert r.status_code == 404
    assert r.json["code"] == 100201


def test_business_exception_rendered_as_json(app):
    @app.get("/boom")
    def boom():
        raise NotFoundException("No such widget", details={"id": 7})

    r = app.test_client().get("/boom")
    assert r.status_code == 404
    assert r.json == {"code": 100200, "message": "No such widget", "details": {"id": 7}}


def test_services_are_wired(app):
    services = app.extensions["services"]
    assert services.table_registry.is_registered("users")
    assert services.table_registry.is_registered("User")
    assert services.captcha is not None


def test_production_requires_postgres(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "a-strong-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'prod.db'}")
    monkeypatch.setenv("ENV", "production")
    with pytest.raises(RuntimeError, match="Postgres"):
        create_app()
