"""
Tenant of the current request or task.

Backed by a ContextVar, so every thread and every asyncio task sees its own
value and nothing leaks between concurrent requests.
"""
from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass


@dataclass(frozen=True)
class TenantContext:
    tenant_id: int | None = None
    tenant_code: str | None = None
    tenant_name: str | None = None


_current: ContextVar[TenantContext | None] = ContextVar("backbone_tenant_context", default=None)


def set_context(context: TenantContext | None) -> None:
    _current.set(context)


def get_context() -> TenantContext | None:
    return _current.get()


def get_tenant_id() -> int | None:
    ctx = _current.get()
    return ctx.tenant_id if ctx else None


def get_tenant_code() -> str | None:
    ctx = _current.get()
    return ctx.tenant_code if ctx else None


def clear() -> None:
    _current.set(None)


@contextmanager
def tenant_context(
    tenant_id: int | None = None, tenant_code: str | None = None, tenant_name: str | None = None
) -> Generator[TenantContext, None, None]:
    ctx = TenantContext(tenant_id=tenant_id, tenant_code=tenant_code, tenant_name=tenant_name)
    token = _current.set(ctx)
    try:
        yield ctx
    finally:
        _current.reset(token)
