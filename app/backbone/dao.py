"""
Generic data-access object.

A ``BaseDao`` is bound once to a mapped entity class; the class's ``__table__``
is the table descriptor and is never swapped per instance. The DAO keeps no
mutable state of its own: every call checks a session out of the factory,
runs in its own transaction and closes it again, so one instance can be
shared by any number of request threads.

Entities carrying an ``is_deleted`` column participate in soft deletion:
``is_deleted = false`` is composed into every read, count, update and soft
delete unless a read passes ``include_deleted=True``.
"""
from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from contextlib import AbstractContextManager, contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar

from sqlalchemy import Select, and_, delete, func, not_, select, update
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from app.backbone.db import transaction
from app.backbone.errors import ConstraintViolation
from app.backbone.models import Base
from app.backbone.utils import utcnow

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Base)

# Never rewritten by update(); soft_delete() owns is_deleted.
_WRITE_ONCE = frozenset({"created_at", "created_by", "is_deleted"})


class SortOrder(Enum):
    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True)
class Pagination(Generic[E]):
    items: list[E]
    total: int
    start_index: int
    page_size: int

    @property
    def page_count(self) -> int:
        if self.page_size <= 0:
            return 0
        return (self.total + self.page_size - 1) // self.page_size


class QuerySequence(Generic[E]):
    """
    Lazy, restartable view over a SELECT.

    Nothing runs until iteration starts; every new iteration executes the
    statement again in a fresh session.
    """

    def __init__(self, sessions: sessionmaker[Session], stmt: Select) -> None:
        self._sessions = sessions
        self._stmt = stmt

    def __iter__(self) -> Iterator[E]:
        s: Session = self._sessions()
        try:
            yield from s.scalars(self._stmt)
        finally:
            s.close()

    def first(self) -> E | None:
        for entity in self:
            return entity
        return None

    def __repr__(self) -> str:
        return f"QuerySequence({self._stmt})"


class BaseDao(Generic[E]):
    def __init__(self, model: type[E], sessions: sessionmaker[Session]) -> None:
        if getattr(model, "__table__", None) is None:
            raise TypeError(f"{model!r} is not a mapped entity")
        mapper = sa_inspect(model)
        if len(mapper.primary_key) != 1:
            raise TypeError(f"{model.__name__} must have a single-column primary key")

        self.model = model
        self.table = model.__table__
        self._sessions = sessions
        self._pk_key = mapper.get_property_by_column(mapper.primary_key[0]).key
        self._pk = getattr(model, self._pk_key)
        self._keys = tuple(prop.key for prop in mapper.column_attrs)
        self.soft_delete_enabled = "is_deleted" in self._keys

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.model.__name__})"

    # -- helpers ---------------------------------------------------------

    def has_attribute(self, key: str) -> bool:
        return key in self._keys

    def transaction(self) -> AbstractContextManager[Session]:
        """One unit of work shared by several DAO writes; see ``session=`` on the write methods."""
        return transaction(self._sessions)

    @contextmanager
    def _writing(self, session: Session | None) -> Iterator[Session]:
        if session is not None:
            yield session
        else:
            with transaction(self._sessions) as s:
                yield s

    def _where(self, criteria: Sequence[Any], include_deleted: bool = False) -> list[Any]:
        clauses = list(criteria)
        if self.soft_delete_enabled and not include_deleted:
            clauses.append(getattr(self.model, "is_deleted").is_(False))
        return clauses

    def _order_clauses(self, order_by: Sequence[Any] | None) -> list[Any]:
        if not order_by:
            return [self._pk.asc()]
        clauses = []
        for item in order_by:
            if isinstance(item, tuple):
                column, direction = item
                clauses.append(column.desc() if direction is SortOrder.DESC else column.asc())
            else:
                clauses.append(item)
        return clauses

    def _select(self, criteria: Sequence[Any], *, include_deleted: bool = False, order_by: Sequence[Any] | None = None) -> Select:
        return select(self.model).where(*self._where(criteria, include_deleted)).order_by(*self._order_clauses(order_by))

    def _constraint_violation(self, e: IntegrityError) -> ConstraintViolation:
        logger.warning("Constraint violation on %s: %s", self.table.name, e.orig)
        return ConstraintViolation(
            f"Constraint violated on {self.table.name}",
            details={"table": self.table.name, "reason": str(e.orig)},
        )

    def _execute_update(self, values: dict[str, Any], criteria: Sequence[Any]) -> int:
        stmt = (
            update(self.model)
            .where(*self._where(criteria))
            .values({getattr(self.model, key): value for key, value in values.items()})
            .execution_options(synchronize_session=False)
        )
        try:
            with transaction(self._sessions) as s:
                return s.execute(stmt).rowcount
        except IntegrityError as e:
            raise self._constraint_violation(e) from e

    # -- reads -----------------------------------------------------------

    def find_by_id(self, id_: Any, *, include_deleted: bool = False) -> E | None:
        return self.find_one(self._pk == id_, include_deleted=include_deleted)

    def find_one(self, *criteria: Any, include_deleted: bool = False) -> E | None:
        stmt = self._select(criteria, include_deleted=include_deleted).limit(1)
        with self._sessions() as s:
            return s.scalars(stmt).first()

    def find_list(
        self,
        *criteria: Any,
        order_by: Sequence[Any] | None = None,
        limit: int | None = None,
        include_deleted: bool = False,
    ) -> list[E]:
        stmt = self._select(criteria, include_deleted=include_deleted, order_by=order_by)
        if limit is not None:
            stmt = stmt.limit(limit)
        with self._sessions() as s:
            return list(s.scalars(stmt))

    def find_all(
        self,
        *criteria: Any,
        order_by: Sequence[Any] | None = None,
        include_deleted: bool = False,
    ) -> QuerySequence[E]:
        """Rows in primary-key (insertion) order unless ``order_by`` says otherwise."""
        return QuerySequence(self._sessions, self._select(criteria, include_deleted=include_deleted, order_by=order_by))

    def count(self, *criteria: Any, include_deleted: bool = False) -> int:
        stmt = select(func.count()).select_from(self.table).where(*self._where(criteria, include_deleted))
        with self._sessions() as s:
            return s.scalar(stmt) or 0

    def any_matched(self, *criteria: Any) -> bool:
        return self.count(*criteria) > 0

    def none_matched(self, *criteria: Any) -> bool:
        return not self.any_matched(*criteria)

    def all_matched(self, *criteria: Any) -> bool:
        if not criteria:
            return True
        return self.count(not_(and_(*criteria))) == 0

    def paginate(
        self,
        page_size: int,
        page_index: int,
        *criteria: Any,
        order_by: Sequence[Any] | None = None,
        include_deleted: bool = False,
    ) -> Pagination[E]:
        """Zero-based ``page_index``; total and page are read in one session."""
        if page_size <= 0:
            raise ValueError("page_size must be positive")
        if page_index < 0:
            raise ValueError("page_index must not be negative")
        start = page_index * page_size
        where = self._where(criteria, include_deleted)
        with self._sessions() as s:
            total = s.scalar(select(func.count()).select_from(self.table).where(*where)) or 0
            stmt = select(self.model).where(*where).order_by(*self._order_clauses(order_by)).offset(start).limit(page_size)
            items = list(s.scalars(stmt))
        return Pagination(items=items, total=total, start_index=start, page_size=page_size)

    # -- writes ----------------------------------------------------------

    def create(self, entity: E, *, actor_id: int | None = None, session: Session | None = None) -> E:
        """Insert ``entity``; with ``session`` the row is only flushed and the caller owns the commit."""
        if self.has_attribute("created_at") and getattr(entity, "created_at", None) is None:
            setattr(entity, "created_at", utcnow())
        if self.soft_delete_enabled:
            setattr(entity, "is_deleted", False)
        if actor_id is not None and self.has_attribute("created_by"):
            setattr(entity, "created_by", actor_id)
        try:
            with self._writing(session) as s:
                s.add(entity)
                s.flush()
        except IntegrityError as e:
            raise self._constraint_violation(e) from e
        return entity

    def update(self, entity: E, *, actor_id: int | None = None) -> bool:
        """
        Write the entity's loaded columns back to its row.

        Returns False, touching nothing, when the row is missing or soft-deleted.
        """
        id_ = getattr(entity, self._pk_key, None)
        if id_ is None:
            return False
        if self.has_attribute("updated_at"):
            setattr(entity, "updated_at", utcnow())
        if actor_id is not None and self.has_attribute("updated_by"):
            setattr(entity, "updated_by", actor_id)

        unloaded = sa_inspect(entity).unloaded
        values = {
            key: getattr(entity, key)
            for key in self._keys
            if key != self._pk_key and key not in _WRITE_ONCE and key not in unloaded
        }
        if not values:
            return self.any_matched(self._pk == id_)
        return self._execute_update(values, [self._pk == id_]) > 0

    def update_if(self, values: dict[str, Any], *criteria: Any) -> int:
        if not criteria:
            raise ValueError("update_if requires at least one criterion")
        return self._execute_update(dict(values), criteria)

    def soft_delete(self, id_: Any, *, actor_id: int | None = None) -> bool:
        """Flag one row deleted. False if it is missing or already deleted."""
        return self.soft_delete_if(self._pk == id_, actor_id=actor_id) > 0

    def soft_delete_if(self, *criteria: Any, actor_id: int | None = None) -> int:
        if not self.soft_delete_enabled:
            raise TypeError(f"{self.model.__name__} does not support soft delete")
        if not criteria:
            raise ValueError("soft_delete_if requires at least one criterion")
        values: dict[str, Any] = {"is_deleted": True}
        if self.has_attribute("updated_at"):
            values["updated_at"] = utcnow()
        if actor_id is not None and self.has_attribute("updated_by"):
            values["updated_by"] = actor_id
        return self._execute_update(values, criteria)

    def delete_by_id(self, id_: Any, *, session: Session | None = None) -> bool:
        return self.delete_if(self._pk == id_, session=session) > 0

    def delete_if(self, *criteria: Any, session: Session | None = None) -> int:
        """Physical delete; only for entities without a soft-delete flag."""
        if self.soft_delete_enabled:
            raise TypeError(f"{self.model.__name__} rows are soft-deleted; use soft_delete_if")
        if not criteria:
            raise ValueError("delete_if requires at least one criterion")
        stmt = delete(self.model).where(*criteria).execution_options(synchronize_session=False)
        try:
            with self._writing(session) as s:
                return s.execute(stmt).rowcount
        except IntegrityError as e:
            raise self._constraint_violation(e) from e
