"""
storage.py — Point-operation storage layer used by the ingestion pipeline.

Every read/write the pipeline makes goes through one of these operations:

  find_one(entity, filters)                 -> id | None
  fetch_one(entity, filters)                -> row dict | None
  insert(entity, attributes)                -> id
  update(entity, id, attributes)            -> None
  upsert(entity, attributes, conflict_key)  -> None
  select(entity, ...)                       -> list of row dicts
  count(entity, ...)                        -> int

`entity` is a table name from models.py. Each call runs in its own
engine.begin() / engine.connect() block; no multi-statement transactions.

The check-then-create sequence in reconcile.py is therefore not atomic. Two
overlapping runs could create the same team twice; we accept that because
only one scheduled run is active at a time.

INSERT ... ON CONFLICT (...) DO UPDATE SET ... = excluded.* is built with the
dialect-specific insert() so the same code runs on SQLite 3.24+ and PG 9.5+.
"""

import logging
from typing import Any, Iterable, Optional

from sqlalchemy import Table, func, insert, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from vlr_ingest.database import Base

logger = logging.getLogger(__name__)


class StorageError(RuntimeError):
    """Raised for any failure of the underlying database."""


class Storage:
    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    @property
    def engine(self) -> Engine:
        return self._engine

    # ------------------------------------------------------------------ #
    # Helpers                                                             #
    # ------------------------------------------------------------------ #

    @staticmethod
    def _table(entity: str) -> Table:
        # Local import so models register with Base before the lookup
        import vlr_ingest.models  # noqa: F401

        try:
            return Base.metadata.tables[entity]
        except KeyError:
            raise StorageError(f"Unknown entity type: {entity!r}") from None

    @staticmethod
    def _where(table: Table, filters: Optional[dict], ci_fields: Iterable[str] = ()):
        clauses = []
        ci = set(ci_fields)
        for column_name, value in (filters or {}).items():
            column = table.c[column_name]
            if value is None:
                clauses.append(column.is_(None))
            elif column_name in ci:
                clauses.append(func.lower(column) == str(value).lower())
            else:
                clauses.append(column == value)
        return clauses

    def _insert_for_dialect(self, table: Table):
        dialect = self._engine.dialect.name
        if dialect == "postgresql":
            return postgresql.insert(table)
        if dialect == "sqlite":
            return sqlite.insert(table)
        raise StorageError(f"upsert is not supported on dialect {dialect!r}")

    # ------------------------------------------------------------------ #
    # Reads                                                               #
    # ------------------------------------------------------------------ #

    def find_one(
        self,
        entity: str,
        filters: dict,
        *,
        ci_fields: Iterable[str] = (),
    ) -> Optional[int]:
        """Returns the id of the first row matching `filters`, or None.

        Columns listed in `ci_fields` are compared case-insensitively.
        """
        row = self.fetch_one(entity, filters, columns=("id",), ci_fields=ci_fields)
        return row["id"] if row else None

    def fetch_one(
        self,
        entity: str,
        filters: dict,
        columns: Optional[Iterable[str]] = None,
        *,
        ci_fields: Iterable[str] = (),
    ) -> Optional[dict]:
        table = self._table(entity)
        cols = [table.c[c] for c in columns] if columns else [table]
        stmt = (
            select(*cols)
            .where(*self._where(table, filters, ci_fields))
            .order_by(table.c.id)
            .limit(1)
        )
        try:
            with self._engine.connect() as conn:
                row = conn.execute(stmt).mappings().first()
        except SQLAlchemyError as exc:
            raise StorageError(f"find in {entity} failed: {exc}") from exc
        return dict(row) if row else None

    def select(
        self,
        entity: str,
        filters: Optional[dict] = None,
        *,
        columns: Optional[Iterable[str]] = None,
        not_null: Iterable[str] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[dict]:
        table = self._table(entity)
        cols = [table.c[c] for c in columns] if columns else [table]
        stmt = select(*cols).where(*self._where(table, filters))
        for column_name in not_null:
            stmt = stmt.where(table.c[column_name].is_not(None))
        if order_by:
            column = table.c[order_by]
            stmt = stmt.order_by(column.desc() if descending else column.asc())
        if limit is not None:
            stmt = stmt.limit(limit)
        try:
            with self._engine.connect() as conn:
                return [dict(r) for r in conn.execute(stmt).mappings().all()]
        except SQLAlchemyError as exc:
            raise StorageError(f"select from {entity} failed: {exc}") from exc

    def count(self, entity: str, filters: Optional[dict] = None) -> int:
        table = self._table(entity)
        stmt = select(func.count()).select_from(table).where(*self._where(table, filters))
        try:
            with self._engine.connect() as conn:
                return conn.execute(stmt).scalar() or 0
        except SQLAlchemyError as exc:
            raise StorageError(f"count on {entity} failed: {exc}") from exc

    # ------------------------------------------------------------------ #
    # Writes                                                              #
    # ------------------------------------------------------------------ #

    def insert(self, entity: str, attributes: dict[str, Any]) -> int:
        table = self._table(entity)
        try:
            with self._engine.begin() as conn:
                result = conn.execute(insert(table).values(**attributes))
        except SQLAlchemyError as exc:
            raise StorageError(f"insert into {entity} failed: {exc}") from exc
        return result.inserted_primary_key[0]

    def update(self, entity: str, identity: int, attributes: dict[str, Any]) -> None:
        table = self._table(entity)
        stmt = update(table).where(table.c.id == identity).values(**attributes)
        try:
            with self._engine.begin() as conn:
                conn.execute(stmt)
        except SQLAlchemyError as exc:
            raise StorageError(f"update of {entity} id={identity} failed: {exc}") from exc

    def upsert(
        self,
        entity: str,
        attributes: dict[str, Any],
        conflict_key: Iterable[str],
    ) -> None:
        """INSERT, or overwrite the non-key columns of the row sharing `conflict_key`.

        The conflict columns must be covered by a unique constraint.
        """
        table = self._table(entity)
        keys = list(conflict_key)
        stmt = self._insert_for_dialect(table).values(**attributes)
        set_ = {name: stmt.excluded[name] for name in attributes if name not in keys}
        if set_:
            stmt = stmt.on_conflict_do_update(index_elements=keys, set_=set_)
        else:
            stmt = stmt.on_conflict_do_nothing(index_elements=keys)
        try:
            with self._engine.begin() as conn:
                conn.execute(stmt)
        except SQLAlchemyError as exc:
            raise StorageError(f"upsert into {entity} failed: {exc}") from exc
