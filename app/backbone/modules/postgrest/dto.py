from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from app.backbone.errors import ValidationException
from app.backbone.modules.postgrest.errors import PostgrestQueryErrorCode


class QueryOperation(Enum):
    SELECT = "select"
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"
    UPSERT = "upsert"


class CountType(Enum):
    EXACT = "exact"
    ESTIMATED = "estimated"


def _enum_value(enum_cls: type[Enum], raw: Any, name: str) -> Any:
    if raw is None or isinstance(raw, enum_cls):
        return raw
    try:
        return enum_cls(str(raw).strip().lower())
    except ValueError:
        raise ValidationException(
            f"Unsupported {name}: {raw}", field=name, error_code=PostgrestQueryErrorCode.POSTGREST_QUERY_PARAM_INVALID
        ) from None


@dataclass(frozen=True)
class OrderConfig:
    ascending: bool = True
    nulls_first: bool | None = None

    @classmethod
    def from_dict(cls, raw: dict[str, Any] | None) -> OrderConfig:
        raw = raw or {}
        return cls(ascending=bool(raw.get("ascending", True)), nulls_first=raw.get("nullsFirst", raw.get("nulls_first")))


@dataclass(frozen=True)
class QueryRequest:
    """
    One PostgREST-style request against a registered table.

    ``where`` is a list of ``[field, op, value]`` triples, the connectives
    ``"and"``/``"or"`` and nested lists. ``range`` is an inclusive ``[from, to]``
    row window and wins over ``limit``.
    """

    from_: str
    operation: QueryOperation = QueryOperation.SELECT
    select: list[str] | None = None
    where: list[Any] | None = None
    order: dict[str, OrderConfig] | None = None
    limit: int | None = None
    range: tuple[int, int] | None = None
    count: CountType | None = None
    head: bool = False
    data: Any = None
    on_conflict: str | None = None

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> QueryRequest:
        table = (payload.get("from") or "").strip()
        if not table:
            raise ValidationException(
                "from is required.", field="from", error_code=PostgrestQueryErrorCode.POSTGREST_QUERY_PARAM_INVALID
            )
        select = payload.get("select")
        if isinstance(select, str):
            select = [c.strip() for c in select.split(",") if c.strip()]
        order = payload.get("order")
        rng = payload.get("range")
        return cls(
            from_=table,
            operation=_enum_value(QueryOperation, payload.get("operation") or "select", "operation"),
            select=select,
            where=payload.get("where"),
            order={k: OrderConfig.from_dict(v) for k, v in order.items()} if order else None,
            limit=payload.get("limit"),
            range=(int(rng[0]), int(rng[1])) if rng and len(rng) == 2 else None,
            count=_enum_value(CountType, payload.get("count"), "count"),
            head=bool(payload.get("head", False)),
            data=payload.get("data"),
            on_conflict=payload.get("onConflict", payload.get("on_conflict")),
        )


@dataclass(frozen=True)
class RlsCondition:
    column: str
    operator: str
    value: Any


@dataclass
class QueryResult:
    data: list[dict[str, Any]] = field(default_factory=list)
    count: int | None = None
    head_only: bool = False


@dataclass(frozen=True)
class QueryResponse:
    data: list[dict[str, Any]]
    count: int | None = None
    head: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {"data": self.data, "count": self.count, "head": self.head}
