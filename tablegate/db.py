"""Async PostgreSQL connection pool for the governed database."""
import logging
import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional

import psycopg
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool

from tablegate.config import config

logger = logging.getLogger(__name__)


class TablegatePool:
    """Manages the async connection pool to the governed database.

    - Exponential backoff retry while the database is unreachable
    - Connection health checks before checkout
    - Native queries run inside READ ONLY transactions
    """

    def __init__(self):
        self._pool: Optional[AsyncConnectionPool] = None

    @property
    def initialized(self) -> bool:
        return self._pool is not None

    async def initialize(self, conninfo: str):
        self._pool = AsyncConnectionPool(
            conninfo=conninfo,
            min_size=config.pool_min_size,
            max_size=config.pool_max_size,
            open=False,
            kwargs={"row_factory": dict_row, "autocommit": True},
            check=AsyncConnectionPool.check_connection,
            max_lifetime=config.pool_max_lifetime,
            max_idle=config.pool_max_idle,
            reconnect_timeout=30,
        )
        await self._pool.open()
        logger.info("Governed database connection pool initialized")

    async def close(self):
        if self._pool:
            await self._pool.close()
            logger.info("Governed database pool closed")

    @asynccontextmanager
    async def connection(self) -> AsyncGenerator[psycopg.AsyncConnection, None]:
        """Get a connection, retrying with exponential backoff."""
        if not self._pool:
            raise RuntimeError("Pool not initialized. Call initialize() first.")

        last_error = None
        for attempt in range(config.connect_retry_attempts):
            try:
                async with self._pool.connection() as conn:
                    yield conn
                    return
            except (
                psycopg.OperationalError,
                psycopg.errors.ConnectionException,
                ConnectionRefusedError,
                OSError,
            ) as e:
                last_error = e
                delay = min(
                    config.connect_retry_base_delay * (2**attempt),
                    config.connect_retry_max_delay,
                )
                logger.warning(
                    f"Connection attempt {attempt + 1}/{config.connect_retry_attempts} "
                    f"failed. Retrying in {delay:.1f}s..."
                )
                await asyncio.sleep(delay)

        raise ConnectionError(
            f"Failed to connect after {config.connect_retry_attempts} attempts. "
            f"Last error: {last_error}"
        )

    async def execute_readonly(
        self, sql: str, params: tuple = None, max_rows: int = None,
        tool_name: str = None,
    ) -> list[dict[str, Any]]:
        """Execute a query in a read-only transaction and return rows as dicts."""
        effective_max = max_rows or config.max_rows
        tagged_sql = f"/* tablegate:{tool_name} */ {sql}" if tool_name else sql
        async with self.connection() as conn:
            async with conn.transaction():
                await conn.execute("SET TRANSACTION READ ONLY")
                async with conn.cursor() as cur:
                    await cur.execute(tagged_sql, params)
                    if cur.description:
                        rows = await cur.fetchmany(effective_max)
                        return [dict(row) for row in rows]
                    return []


pool = TablegatePool()
