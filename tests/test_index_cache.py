"""Test PermissionIndexCache — invalidation-driven caching of indexes."""
import threading

import pytest

from tablegate.governance.models import InvalidationSignal, PermValue
from tablegate.governance.index_cache import PermissionIndexCache
from tablegate.governance.permission_index import PermissionIndex
from conftest import DATA_SOURCE, PRINCIPAL, make_entry


@pytest.fixture
def cache():
    return PermissionIndexCache()


def index_for(catalog, principal=PRINCIPAL, data_source_id=DATA_SOURCE, value="query-builder"):
    return PermissionIndex(
        principal,
        data_source_id,
        [make_entry("database", None, value, principal=principal, data_source_id=data_source_id)],
        catalog,
    )


class TestGetPut:

    def test_miss(self, cache):
        assert cache.get(PRINCIPAL, DATA_SOURCE) is None

    def test_put_then_get_returns_same_instance(self, cache, catalog):
        index = index_for(catalog)
        assert cache.put(index, cache.generation(DATA_SOURCE))
        assert cache.get(PRINCIPAL, DATA_SOURCE) is index
        assert len(cache) == 1

    def test_stale_generation_not_stored(self, cache, catalog):
        generation = cache.generation(DATA_SOURCE)
        cache.invalidate(DATA_SOURCE)
        assert cache.put(index_for(catalog), generation) is False
        assert cache.get(PRINCIPAL, DATA_SOURCE) is None

    def test_put_after_new_generation_is_stored(self, cache, catalog):
        cache.invalidate(DATA_SOURCE)
        index = index_for(catalog)
        assert cache.put(index, cache.generation(DATA_SOURCE))
        assert cache.get(PRINCIPAL, DATA_SOURCE) is index


class TestInvalidation:

    def test_invalidate_one_principal(self, cache, catalog):
        cache.put(index_for(catalog), 0)
        cache.put(index_for(catalog, principal="finance"), 0)
        assert cache.invalidate(DATA_SOURCE, PRINCIPAL) == 1
        assert cache.get(PRINCIPAL, DATA_SOURCE) is None
        assert cache.get("finance", DATA_SOURCE) is not None

    def test_invalidate_whole_data_source(self, cache, catalog):
        cache.put(index_for(catalog), 0)
        cache.put(index_for(catalog, principal="finance"), 0)
        cache.put(index_for(catalog, data_source_id="lake"), 0)
        assert cache.invalidate(DATA_SOURCE) == 2
        assert len(cache) == 1
        assert cache.get(PRINCIPAL, "lake") is not None

    def test_invalidate_bumps_generation(self, cache):
        before = cache.generation(DATA_SOURCE)
        cache.invalidate(DATA_SOURCE)
        assert cache.generation(DATA_SOURCE) == before + 1
        assert cache.generation("lake") == 0

    def test_apply_signal(self, cache, catalog):
        cache.put(index_for(catalog), 0)
        assert cache.apply(InvalidationSignal(DATA_SOURCE, PRINCIPAL)) == 1
        assert len(cache) == 0

    def test_rebuilt_index_reflects_new_permissions(self, cache, catalog, orders):
        cache.put(index_for(catalog, value="query-builder"), 0)
        cache.apply(InvalidationSignal(DATA_SOURCE))
        rebuilt = index_for(catalog, value="query-builder-and-native")
        assert cache.put(rebuilt, cache.generation(DATA_SOURCE))
        assert rebuilt.resolve(orders.id) is PermValue.QUERY_BUILDER_AND_NATIVE
        assert cache.get(PRINCIPAL, DATA_SOURCE) is rebuilt

    def test_clear(self, cache, catalog):
        cache.put(index_for(catalog), 0)
        cache.clear()
        assert len(cache) == 0
        assert cache.generation(DATA_SOURCE) == 1


class TestConcurrency:

    def test_concurrent_readers_share_one_index(self, cache, catalog):
        index = index_for(catalog)
        cache.put(index, 0)
        seen = []

        def reader():
            for _ in range(100):
                seen.append(cache.get(PRINCIPAL, DATA_SOURCE))

        threads = [threading.Thread(target=reader) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(seen) == 800
        assert all(s is index for s in seen)
