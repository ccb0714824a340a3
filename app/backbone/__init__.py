import logging
import os

from dotenv import load_dotenv
from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from app.backbone.config import load_config
from app.backbone.container import build_services
from app.backbone.db import init_db
from app.backbone.errors import BusinessException, CommonErrorCode
from app.backbone.routes import bp as routes_bp

logger = logging.getLogger(__name__)


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__)
    app.config.from_mapping(load_config())

    logging.basicConfig(level=app.config.get("LOG_LEVEL") or "INFO")
    app.logger.setLevel(app.config.get("LOG_LEVEL") or "INFO")

    # Production guardrails (fail fast with clear logs)
    env = (app.config.get("ENV") or "").strip().lower()
    if env in ("prod", "production"):
        if not app.config.get("DATABASE_URL") or str(app.config["DATABASE_URL"]).strip() == "":
            raise RuntimeError("DATABASE_URL is required in production.")
        if str(app.config["DATABASE_URL"]).startswith("sqlite"):
            raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
        if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
            raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")

    init_db(app)

    def _dispose_engine_on_fork() -> None:
        if hasattr(os, "register_at_fork"):
            def _after_fork_child():
                engine = app.extensions.get("sqlalchemy_engine")
                if engine:
                    engine.dispose()
                    app.logger.info("Disposed DB engine after fork (pid=%s)", os.getpid())

            os.register_at_fork(after_in_child=_after_fork_child)

    _dispose_engine_on_fork()

    app.extensions["services"] = build_services(
        app.extensions["sqlalchemy_engine"],
        app.extensions["sqlalchemy_sessionmaker"],
        app.config,
    )

    app.register_blueprint(routes_bp)

    @app.errorhandler(BusinessException)
    def _err_business(e: BusinessException):
        if e.status >= 500:
            app.logger.exception("Business error %s: %s", e.business_code, e.message)
        else:
            app.logger.info("Business error %s: %s", e.business_code, e.message)
        return jsonify(e.to_dict()), e.status

    @app.errorhandler(404)
    def _err_404(e):
        code = CommonErrorCode.COMMON_ENDPOINT_NOT_FOUND
        return jsonify({"code": code.code, "message": code.message, "details": None}), 404

    @app.errorhandler(405)
    def _err_405(e):
        code = CommonErrorCode.COMMON_METHOD_NOT_ALLOWED
        return jsonify({"code": code.code, "message": code.message, "details": None}), 405

    @app.errorhandler(500)
    def _err_500(e):
        app.logger.exception("Unhandled 500")
        code = CommonErrorCode.COMMON_INTERNAL_ERROR
        return jsonify({"code": code.code, "message": code.message, "details": None}), 500

    @app.errorhandler(HTTPException)
    def _err_http(e: HTTPException):
        return jsonify({"code": e.code, "message": e.description, "details": None}), e.code

    logger.info("create_app() complete; app ready to serve")

    return app
