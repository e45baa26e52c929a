"""Integration tests against a live governed database."""
import pytest
import os

LIVE_TEST = os.environ.get("TABLEGATE_LIVE_TEST", "false").lower() == "true"


@pytest.mark.skipif(not LIVE_TEST, reason="Live database tests disabled")
class TestLiveConnection:

    @pytest.fixture(autouse=True)
    async def setup_pool(self):
        from tablegate.db import pool
        from tablegate.config import config

        conninfo = (
            f"host={config.db_host} port={config.db_port} "
            f"dbname={config.db_name}"
        )
        await pool.initialize(conninfo)
        yield
        await pool.close()

    async def test_simple_query(self):
        from tablegate.db import pool

        result = await pool.execute_readonly("SELECT 1 as test_value")
        assert result[0]["test_value"] == 1

    async def test_readonly_blocks_writes(self):
        from tablegate.db import pool
        import psycopg

        with pytest.raises(psycopg.errors.ReadOnlySqlTransaction):
            await pool.execute_readonly("CREATE TABLE test_should_fail (id int)")

    async def test_catalog_lists_tables(self):
        from tablegate.db import pool
        from tablegate.sources import PostgresCatalogSource

        source = PostgresCatalogSource(pool, "live")
        tables = await source.load_catalog("live")
        assert all(isinstance(t.id, int) for t in tables)
        assert not any(t.schema in ("pg_catalog", "information_schema") for t in tables)

    async def test_checked_query_runs(self):
        from tablegate.db import pool
        from tablegate.governance.evaluator import PolicyEvaluator
        from tablegate.governance.models import NativeQueryRequest, PermissionEntry
        from tablegate.governance.permission_index import PermissionIndex
        from tablegate.sources import PostgresCatalogSource

        tables = await PostgresCatalogSource(pool, "live").load_catalog("live")
        if not tables:
            pytest.skip("Database has no user tables")
        table = tables[0]
        entries = [
            PermissionEntry("tester", "live", "table", table.id,
                            "create-queries", "query-builder-and-native"),
        ]
        index = PermissionIndex("tester", "live", entries, tables)
        sql = f'SELECT * FROM "{table.schema}"."{table.name}" LIMIT 1'
        decision = PolicyEvaluator().can_execute_native(
            NativeQueryRequest("tester", "live", sql), index
        )
        assert decision.allowed
        await pool.execute_readonly(sql)
