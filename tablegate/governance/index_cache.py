"""Invalidation-driven cache of PermissionIndex snapshots.

Keyed by ``(principal, data_source_id)``. Indexes are immutable, so
concurrent requests for one key share an instance. Every invalidation bumps
a per-data-source generation; an index built from a read that started before
the bump is returned to its caller but never stored.
"""
import logging
import threading
from typing import Any, Optional

from tablegate.governance.models import InvalidationSignal
from tablegate.governance.permission_index import PermissionIndex

logger = logging.getLogger(__name__)


class PermissionIndexCache:

    def __init__(self):
        self._indexes: dict[tuple[Any, Any], PermissionIndex] = {}
        self._generations: dict[Any, int] = {}
        self._lock = threading.Lock()

    def get(self, principal: Any, data_source_id: Any) -> Optional[PermissionIndex]:
        with self._lock:
            return self._indexes.get((principal, data_source_id))

    def generation(self, data_source_id: Any) -> int:
        with self._lock:
            return self._generations.get(data_source_id, 0)

    def put(self, index: PermissionIndex, generation: int) -> bool:
        """Store ``index`` unless its data source was invalidated since ``generation``."""
        key = (index.principal, index.data_source_id)
        with self._lock:
            if self._generations.get(index.data_source_id, 0) != generation:
                logger.debug(f"Discarding stale permission index for {key}")
                return False
            self._indexes[key] = index
            return True

    def invalidate(self, data_source_id: Any, principal: Any = None) -> int:
        """Evict one principal's index, or every index of the data source.

        Returns the number of evicted entries.
        """
        with self._lock:
            self._generations[data_source_id] = self._generations.get(data_source_id, 0) + 1
            if principal is not None:
                key = (principal, data_source_id)
                keys = [key] if key in self._indexes else []
            else:
                keys = [k for k in self._indexes if k[1] == data_source_id]
            for key in keys:
                del self._indexes[key]
        logger.info(
            f"Invalidated {len(keys)} permission index(es) for data source "
            f"{data_source_id!r} (principal={principal!r})"
        )
        return len(keys)

    def apply(self, signal: InvalidationSignal) -> int:
        return self.invalidate(signal.data_source_id, signal.principal)

    def clear(self) -> None:
        with self._lock:
            for data_source_id in {k[1] for k in self._indexes} | set(self._generations):
                self._generations[data_source_id] = self._generations.get(data_source_id, 0) + 1
            self._indexes.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._indexes)
