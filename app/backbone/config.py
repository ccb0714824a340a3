import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str
    database_url: str
    log_level: str

    captcha_expires_in_seconds: int
    tenant_default_code: str
    dynamic_table_excluded_columns: tuple[str, ...]


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _getenv_int(name: str, default: int) -> int:
    raw = _getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise RuntimeError(f"{name} must be an integer (got {raw!r}).") from e


def _getenv_list(name: str, default: str) -> tuple[str, ...]:
    return tuple(p.strip().lower() for p in _getenv(name, default).split(",") if p.strip())


def load_settings() -> Settings:
    return Settings(
        secret_key=_getenv("SECRET_KEY", "change-me"),
        env=_getenv("ENV", "development"),
        database_url=_getenv("DATABASE_URL", "sqlite:///backbone.db"),
        log_level=_getenv("LOG_LEVEL", "INFO").upper(),
        captcha_expires_in_seconds=_getenv_int("CAPTCHA_EXPIRES_IN_SECONDS", 120),
        tenant_default_code=_getenv("TENANT_DEFAULT_CODE", "tenant_demo"),
        dynamic_table_excluded_columns=_getenv_list(
            "DYNAMIC_TABLE_EXCLUDED_COLUMNS", "password,secret,token,api_key,private_key"
        ),
    )


def load_config() -> dict:
    s = load_settings()
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "DATABASE_URL": s.database_url,
        "LOG_LEVEL": s.log_level,
        "CAPTCHA_EXPIRES_IN_SECONDS": s.captcha_expires_in_seconds,
        "TENANT_DEFAULT_CODE": s.tenant_default_code,
        "DYNAMIC_TABLE_EXCLUDED_COLUMNS": s.dynamic_table_excluded_columns,
        "JSON_SORT_KEYS": False,
    }
