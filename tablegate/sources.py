"""Permission and catalog sources consumed by the native query service.

The engine never persists permissions; it reads a snapshot of rows through
a PermissionSource and the table list through a CatalogSource.

YAML layout (TABLEGATE_GOVERNANCE_CONFIG):

    permissions:
      - principal: analysts
        data_source: warehouse
        scope: schema            # database | schema | table
        target: sales            # null | schema name | table id
        perm_type: create-queries
        value: query-builder-and-native
    catalogs:                    # optional static catalog
      warehouse:
        - {id: 12, schema: sales, name: orders}
"""
import logging
from typing import Any, Iterable, Optional

from tablegate.governance.errors import UnknownDataSource, UnknownPrincipal
from tablegate.governance.models import CREATE_QUERIES, PermissionEntry, Table
from tablegate.governance.policy import load_yaml_config

logger = logging.getLogger(__name__)


class PermissionSource:
    """Reads the PermissionEntry rows of one (principal, data_source) pair."""

    async def load_entries(self, principal: Any, data_source_id: Any) -> list[PermissionEntry]:
        raise NotImplementedError


class CatalogSource:
    """Reads the known tables of a data source."""

    async def load_catalog(self, data_source_id: Any) -> list[Table]:
        raise NotImplementedError


class InMemoryPermissionSource(PermissionSource):

    def __init__(self, entries: Iterable[PermissionEntry] = ()):
        self.entries = list(entries)

    async def load_entries(self, principal, data_source_id) -> list[PermissionEntry]:
        return [
            e for e in self.entries
            if e.principal == principal and e.data_source_id == data_source_id
        ]


class StaticCatalogSource(CatalogSource):

    def __init__(self, catalogs: dict[Any, Iterable[Table]]):
        self.catalogs = {ds: list(tables) for ds, tables in catalogs.items()}

    async def load_catalog(self, data_source_id) -> list[Table]:
        if data_source_id not in self.catalogs:
            raise UnknownDataSource(f"No catalog for data source {data_source_id!r}")
        return list(self.catalogs[data_source_id])


def _entry_from_row(row: dict) -> PermissionEntry:
    value = row.get("value")
    # YAML 1.1 reads a bare `no` as false
    if value is False:
        value = "no"
    return PermissionEntry(
        principal=row.get("principal"),
        data_source_id=row.get("data_source"),
        scope_level=row.get("scope"),
        scope_target=row.get("target"),
        perm_type=row.get("perm_type", CREATE_QUERIES),
        perm_value=value,
    )


class YamlPermissionSource(PermissionSource):
    """Permission rows from the governance YAML file.

    The file is re-read on every load, so an invalidation picks up edits.
    """

    def __init__(self, path: str):
        self.path = path

    async def load_entries(self, principal, data_source_id) -> list[PermissionEntry]:
        rows = load_yaml_config(self.path).get("permissions") or []
        entries = [_entry_from_row(row) for row in rows]
        if not any(e.principal == principal for e in entries):
            raise UnknownPrincipal(f"No permission rows for principal {principal!r}")
        return [
            e for e in entries
            if e.principal == principal and e.data_source_id == data_source_id
        ]


def load_static_catalog(path: str) -> Optional[StaticCatalogSource]:
    """Static catalogs from the governance YAML, or None if it has none."""
    catalogs = load_yaml_config(path).get("catalogs")
    if not catalogs:
        return None
    return StaticCatalogSource({
        ds: [
            Table(id=t["id"], name=t["name"], schema=t.get("schema"), data_source_id=ds)
            for t in tables or []
        ]
        for ds, tables in catalogs.items()
    })


CATALOG_SQL = """SELECT c.oid AS table_id, n.nspname AS schema_name, c.relname AS table_name
FROM pg_class c
JOIN pg_namespace n ON n.oid = c.relnamespace
WHERE c.relkind IN ('r', 'v', 'm', 'p', 'f')
  AND n.nspname NOT IN ('pg_catalog', 'information_schema')
  AND n.nspname NOT LIKE 'pg_toast%%'
  AND n.nspname NOT LIKE 'pg_temp%%'
ORDER BY n.nspname, c.relname"""


class PostgresCatalogSource(CatalogSource):
    """Catalog of the governed PostgreSQL database (table id = pg_class oid)."""

    def __init__(self, pool, data_source_id: Any):
        self._pool = pool
        self.data_source_id = data_source_id

    async def load_catalog(self, data_source_id) -> list[Table]:
        if data_source_id != self.data_source_id:
            raise UnknownDataSource(f"No catalog for data source {data_source_id!r}")
        rows = await self._pool.execute_readonly(
            CATALOG_SQL, params=(), max_rows=1_000_000, tool_name="catalog"
        )
        logger.debug(f"Loaded {len(rows)} catalog tables for {data_source_id!r}")
        return [
            Table(
                id=int(row["table_id"]),
                name=row["table_name"],
                schema=row["schema_name"],
                data_source_id=data_source_id,
            )
            for row in rows
        ]
