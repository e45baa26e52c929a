"""Tablegate MCP Server: main entry point.

Table-granular native query authorization in front of a PostgreSQL database:
5 tools, 1 resource.
"""
import os
import logging
from contextlib import asynccontextmanager

from mcp.server.fastmcp import FastMCP

from tablegate.audit import AuditSink
from tablegate.config import config
from tablegate.db import pool
from tablegate.governance.policy import build_policy_evaluator
from tablegate.service import NativeQueryService
from tablegate.sources import (
    InMemoryPermissionSource,
    PostgresCatalogSource,
    YamlPermissionSource,
    load_static_catalog,
)

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def _build_conninfo(host: str, port: int) -> str:
    """Build psycopg conninfo string.

    Credentials come from .pgpass / PGPASSWORD or the
    TABLEGATE_PG_USER / TABLEGATE_PG_PASSWORD env vars.
    """
    parts = [
        f"host={host}",
        f"port={port}",
        f"dbname={config.db_name}",
        f"sslmode={os.environ.get('TABLEGATE_PG_SSLMODE', 'prefer')}",
        f"connect_timeout={config.query_timeout_seconds}",
    ]

    pg_user = os.environ.get("TABLEGATE_PG_USER", "")
    pg_password = os.environ.get("TABLEGATE_PG_PASSWORD", "")

    if pg_user:
        parts.append(f"user={pg_user}")
    if pg_password:
        parts.append(f"password={pg_password}")

    return " ".join(parts)


def build_service() -> NativeQueryService:
    """Wire permission source, catalog source, evaluator and audit sink."""
    path = config.governance_config_path
    if path:
        permissions = YamlPermissionSource(path)
        catalog = load_static_catalog(path)
    else:
        logger.warning(
            "No TABLEGATE_GOVERNANCE_CONFIG set: no permission rows, "
            "every native query will be denied"
        )
        permissions = InMemoryPermissionSource()
        catalog = None

    if catalog is None:
        catalog = PostgresCatalogSource(pool, config.data_source_id)

    return NativeQueryService(
        permissions,
        catalog,
        evaluator=build_policy_evaluator(),
        audit=AuditSink(config.audit_history_size),
    )


@asynccontextmanager
async def app_lifespan(server: FastMCP):
    """Initialize and tear down resources."""
    if config.db_host:
        try:
            await pool.initialize(_build_conninfo(config.db_host, config.db_port))
            logger.info("Tablegate MCP Server started (pool connected)")
        except Exception as e:
            logger.warning(
                f"Pool initialization failed (tools will retry on first call): {e}"
            )
    else:
        logger.info(
            "Tablegate MCP Server started (no TABLEGATE_DB_HOST set — "
            "permission checks available, execution will fail until configured)"
        )

    yield {"pool": pool}

    try:
        await pool.close()
    except Exception as e:
        logger.warning(f"Pool close failed: {e}")
    logger.info("Tablegate MCP Server stopped")


_port = int(os.environ.get("APP_PORT", "8000"))

mcp = FastMCP(
    "tablegate_mcp",
    lifespan=app_lifespan,
    stateless_http=True,
    host="0.0.0.0",
    port=_port,
)

service = build_service()

from tablegate.tools.native_query import register_native_query_tools
from tablegate.tools.permissions import register_permission_tools
from tablegate.resources.audit_log import register_audit_resources

register_native_query_tools(mcp, service)
register_permission_tools(mcp, service)
register_audit_resources(mcp, service.audit)


def main():
    mcp.run(transport="streamable-http")


if __name__ == "__main__":
    main()
