"""Effective create-queries permissions for one principal over one data source.

Resolution is an explicit fold over scopes (database -> schema -> table),
most specific entry wins, followed by a blocked-dominance check: if any
applicable entry is ``blocked`` the table is blocked whatever the other
scopes say.
"""
import logging
from typing import Any, Iterable, Optional

from tablegate.governance.errors import MalformedPermissionEntry
from tablegate.governance.models import (
    CREATE_QUERIES,
    PermissionEntry,
    PermValue,
    ScopeLevel,
    Table,
    TableId,
)

logger = logging.getLogger(__name__)


def _table_key(table_id: TableId) -> str:
    """Catalog ids and stored targets compare as text (`2` matches `"2"`)."""
    return str(table_id)


def _validate(entry: PermissionEntry) -> tuple[ScopeLevel, Optional[TableId], PermValue]:
    try:
        level = ScopeLevel(entry.scope_level)
    except ValueError:
        raise MalformedPermissionEntry(
            f"Unknown scope level '{entry.scope_level}'", entry
        ) from None
    try:
        value = PermValue(entry.perm_value)
    except ValueError:
        raise MalformedPermissionEntry(
            f"Unknown permission value '{entry.perm_value}'", entry
        ) from None

    target = entry.scope_target
    if level is ScopeLevel.DATABASE and target is not None:
        raise MalformedPermissionEntry(
            "Database-level entry must not name a scope target", entry
        )
    if level is ScopeLevel.SCHEMA and not (isinstance(target, str) and target):
        raise MalformedPermissionEntry(
            "Schema-level entry must name a schema", entry
        )
    if level is ScopeLevel.TABLE:
        valid_id = (isinstance(target, int) and not isinstance(target, bool)) or (
            isinstance(target, str) and target
        )
        if not valid_id:
            raise MalformedPermissionEntry(
                "Table-level entry must name a table id", entry
            )
    return level, target, value


class PermissionIndex:
    """Immutable, queryable view of resolved permissions.

    Built from the PermissionEntry rows of a single ``(principal,
    data_source)`` pair and the data source catalog. Construction fails
    with ``MalformedPermissionEntry`` rather than defaulting a bad row.
    """

    def __init__(
        self,
        principal: Any,
        data_source_id: Any,
        entries: Iterable[PermissionEntry],
        catalog: Iterable[Table],
    ):
        self.principal = principal
        self.data_source_id = data_source_id
        self._catalog = tuple(catalog)

        database, schemas, tables = self._collect(entries)
        self._database_value = database
        self._by_key = {_table_key(t.id): t for t in self._catalog}
        self._resolved: dict[str, PermValue] = {
            key: self._fold(t, database, schemas, tables) for key, t in self._by_key.items()
        }
        for target in tables.keys() - self._by_key.keys():
            logger.warning(
                f"Table-level permission for ({principal!r}, {data_source_id!r}) names "
                f"table {target!r}, which is not in the catalog"
            )
        self._known_identifiers = frozenset(
            name.casefold()
            for t in self._catalog
            for name in (t.name, t.schema)
            if name
        )

    def _collect(self, entries: Iterable[PermissionEntry]):
        database: Optional[PermValue] = None
        schemas: dict[str, PermValue] = {}
        tables: dict[str, PermValue] = {}
        seen: set[tuple[ScopeLevel, Optional[TableId]]] = set()

        for entry in entries:
            if entry.perm_type != CREATE_QUERIES:
                logger.debug(f"Skipping non-applicable perm_type '{entry.perm_type}'")
                continue
            if (entry.principal, entry.data_source_id) != (
                self.principal,
                self.data_source_id,
            ):
                raise MalformedPermissionEntry(
                    f"Entry for ({entry.principal}, {entry.data_source_id}) passed to "
                    f"index for ({self.principal}, {self.data_source_id})",
                    entry,
                )
            level, target, value = _validate(entry)
            if level is ScopeLevel.TABLE:
                target = _table_key(target)
            if (level, target) in seen:
                raise MalformedPermissionEntry(
                    f"Duplicate {level.value}-level entry for target {target!r}", entry
                )
            seen.add((level, target))

            if level is ScopeLevel.DATABASE:
                database = value
            elif level is ScopeLevel.SCHEMA:
                schemas[target] = value
            else:
                tables[target] = value

        return database, schemas, tables

    @staticmethod
    def _fold(
        table: Table,
        database: Optional[PermValue],
        schemas: dict[str, PermValue],
        tables: dict[str, PermValue],
    ) -> PermValue:
        applicable = [
            database,
            schemas.get(table.schema) if table.schema is not None else None,
            tables.get(_table_key(table.id)),
        ]
        value = PermValue.NO
        for scoped in applicable:
            if scoped is not None:
                value = scoped
        if PermValue.BLOCKED in applicable:
            return PermValue.BLOCKED
        return value

    @property
    def catalog(self) -> tuple[Table, ...]:
        return self._catalog

    @property
    def known_identifiers(self) -> frozenset[str]:
        """Casefolded table and schema names of the catalog."""
        return self._known_identifiers

    def resolve(self, table_id: TableId) -> PermValue:
        try:
            return self._resolved[_table_key(table_id)]
        except KeyError:
            raise KeyError(
                f"Table {table_id!r} is not in the catalog of data source "
                f"{self.data_source_id!r}"
            ) from None

    def has_database_level(self, minimum: PermValue) -> bool:
        """True if the database-level grant meets ``minimum`` for every table.

        A narrower override that drops any table below ``minimum`` (blocked
        included) disqualifies the database-level grant.
        """
        if self._database_value is None or not self._database_value.meets(minimum):
            return False
        return all(value.meets(minimum) for value in self._resolved.values())

    def tables_with_at_least(self, minimum: PermValue) -> frozenset[Table]:
        return frozenset(
            self._by_key[key]
            for key, value in self._resolved.items()
            if value.meets(minimum)
        )

    def effective_permissions(self) -> dict[Table, PermValue]:
        return {self._by_key[key]: value for key, value in self._resolved.items()}

    def __repr__(self) -> str:
        return (
            f"PermissionIndex(principal={self.principal!r}, "
            f"data_source_id={self.data_source_id!r}, tables={len(self._catalog)})"
        )
