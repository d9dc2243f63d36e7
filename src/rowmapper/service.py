"""Load, find, save and delete entities through a :class:`Database`.

The entity and the executor never reference each other. ``EntityService``
is the persistence flow that joins them: it reads the entity's persistence
intent (delete, insert or update) and its modified columns, and turns them
into statements.

Architecture::

    ┌──────────────────────────────────────────────────────────────────┐
    │                        EntityService                              │
    │                                                                   │
    │   load(User, 5)          SELECT cols FROM `users` WHERE pk → User │
    │   find(User, where_sql)  SELECT cols ... → list[User]             │
    │   save(user)             delete-on-save → DELETE                  │
    │                          should_insert  → INSERT (+ last id)      │
    │                          otherwise      → UPDATE modified columns │
    │   delete(user)           DELETE ... WHERE pk                      │
    └──────────────────────────────────────────────────────────────────┘

Examples:
    >>> service = EntityService(Database(url="memory"))
    >>> user = User()
    >>> user.displayName = "ann"
    >>> service.save(user)
    >>> user.userId
    1

Tags:
    service, persistence, data-mapper, rowmapper
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, TypeVar

from rowmapper.database import Database
from rowmapper.entity import Entity
from rowmapper.errors import LogicError
from rowmapper.logging import get_logger
from rowmapper.schema import ColumnType

logger = get_logger(__name__)

E = TypeVar("E", bound=Entity)


class EntityService:
    """Persistence flow over one :class:`Database`."""

    def __init__(self, db: Database):
        self.db = db

    def primary_where(self, entity: Entity) -> tuple[str, list[Any]]:
        """WHERE fragment and parameters locating *entity*'s row.

        ``("`some_id` = ? AND `some_other_id` = ?", [5, 2])`` for a composite key.
        """
        schema = entity.schema()
        dialect = self.db.dialect
        values = entity.row_data()

        clauses = []
        params = []
        for index, part in enumerate(schema.primary_key):
            field_name = schema.field_name_for(part)
            clauses.append(f"{dialect.quote_identifier(field_name)} = {dialect.placeholder(index)}")
            params.append(values[field_name])
        return " AND ".join(clauses), params

    def _select(self, entity_cls: type[Entity]) -> str:
        quote = self.db.dialect.quote_identifier
        columns = ", ".join(quote(field_name) for field_name in entity_cls.field_names())
        return f"SELECT {columns} FROM {quote(entity_cls.table_name())}"

    def load(self, entity_cls: type[E], primary: Any) -> E | None:
        """Entity with primary key *primary*, or ``None`` when no row matches."""
        where_sql, params = self.primary_where(entity_cls(primary))
        row = self.db.fetch_row(f"{self._select(entity_cls)} WHERE {where_sql}", params)
        if row is None:
            return None
        return entity_cls(row)

    def find(
        self,
        entity_cls: type[E],
        where_sql: str | None = None,
        params: Sequence[Any] | None = None,
        order_by: str | None = None,
    ) -> list[E]:
        """Entities whose rows match *where_sql* (all rows when omitted)."""
        sql = self._select(entity_cls)
        if where_sql:
            sql += f" WHERE {where_sql}"
        if order_by:
            sql += f" ORDER BY {order_by}"
        return [entity_cls(row) for row in self.db.fetch_all(sql, params)]

    def save(self, entity: Entity) -> None:
        """Write *entity* according to its persistence intent.

        Flagged entities are deleted; new or force-inserted ones are inserted;
        everything else has its modified columns updated. A new entity with an
        integer key receives the generated id. Modified state is cleared once
        the statement succeeded.

        Raises:
            LogicError: If a primary-key property of a stored entity was
                modified. The row to update is addressed by its key.
        """
        if entity.should_delete_on_save():
            self.delete(entity)
            return

        schema = entity.schema()
        table = schema.table_name
        if not entity.should_insert_on_save():
            changed_keys = [p for p in schema.primary_key if entity.is_modified(p)]
            if changed_keys:
                raise LogicError(
                    f"Cannot update {type(entity).__name__}: primary key modified"
                ).with_context(entity=type(entity).__name__, table=table, properties=changed_keys)

        with self.db.transaction(only_if_none=True):
            if entity.should_insert_on_save():
                row = entity.row_data()
                generated_key = self._generated_key(entity)
                if generated_key is not None:
                    del row[schema.field_name_for(generated_key)]
                self.db.insert(table, row)
                if generated_key is not None:
                    entity.set_primary_value(self.db.last_insert_id(), track_modification=False)
                logger.debug("entity_inserted", entity=type(entity).__name__, table=table)
            elif entity.has_modified():
                where_sql, params = self.primary_where(entity)
                self.db.update(table, entity.modified_row_data(), where_sql, params)
                logger.debug(
                    "entity_updated",
                    entity=type(entity).__name__,
                    table=table,
                    columns=list(entity.modified_data()),
                )

        entity.clear_all_modified()
        entity.set_force_insert_on_save(False)

    @staticmethod
    def _generated_key(entity: Entity) -> str | None:
        # Single empty integer key: let the database assign it.
        schema = entity.schema()
        if schema.is_composite:
            return None
        key = schema.primary_key[0]
        if schema.column(key).type is not ColumnType.INT or not entity.is_new():
            return None
        return key

    def delete(self, entity: Entity) -> int:
        """Delete *entity*'s row and mark it deleted. Returns affected rows."""
        where_sql, params = self.primary_where(entity)
        count = self.db.delete(entity.table_name(), where_sql, params)
        entity.set_deleted(True)
        entity.set_delete_on_save(False)
        entity.clear_all_modified()
        logger.debug("entity_deleted", entity=type(entity).__name__, rows=count)
        return count


__all__ = [
    "EntityService",
]
