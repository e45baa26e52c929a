"""Native query service: cached permission indexes + policy evaluation + audit."""
import logging
from typing import Any, Optional

from tablegate.audit import AuditRecord, AuditSink
from tablegate.governance.errors import (
    MalformedPermissionEntry,
    UnknownDataSource,
    UnknownPrincipal,
)
from tablegate.governance.evaluator import PolicyEvaluator
from tablegate.governance.index_cache import PermissionIndexCache
from tablegate.governance.models import (
    Decision,
    InvalidationSignal,
    NativeQueryRequest,
    PermValue,
    Table,
)
from tablegate.governance.permission_index import PermissionIndex
from tablegate.sources import CatalogSource, PermissionSource

logger = logging.getLogger(__name__)

REASON_UNKNOWN_DATA_SOURCE = "unknown data source"
REASON_UNKNOWN_PRINCIPAL = "unknown principal"


class NativeQueryService:
    """Entry point for the query-execution and editor paths.

    Deny decisions are always audited; executions are audited by the caller
    through ``record_execution`` once the query has run.
    """

    def __init__(
        self,
        permissions: PermissionSource,
        catalog: CatalogSource,
        evaluator: Optional[PolicyEvaluator] = None,
        cache: Optional[PermissionIndexCache] = None,
        audit: Optional[AuditSink] = None,
    ):
        self.permissions = permissions
        self.catalog = catalog
        self.evaluator = evaluator or PolicyEvaluator()
        self.cache = cache if cache is not None else PermissionIndexCache()
        self.audit = audit if audit is not None else AuditSink()

    async def index_for(self, principal: Any, data_source_id: Any) -> PermissionIndex:
        """Cached index, built from fresh source reads on a miss.

        Raises UnknownDataSource / UnknownPrincipal from the sources and
        MalformedPermissionEntry for bad permission rows.
        """
        index = self.cache.get(principal, data_source_id)
        if index is not None:
            return index

        generation = self.cache.generation(data_source_id)
        tables = await self.catalog.load_catalog(data_source_id)
        entries = await self.permissions.load_entries(principal, data_source_id)
        try:
            index = PermissionIndex(principal, data_source_id, entries, tables)
        except MalformedPermissionEntry as e:
            logger.error(
                f"Malformed permission data for ({principal!r}, {data_source_id!r}): "
                f"{e} [entry={e.entry!r}]"
            )
            raise
        self.cache.put(index, generation)
        return index

    async def can_execute_native(self, request: NativeQueryRequest) -> Decision:
        try:
            index = await self.index_for(request.principal, request.data_source_id)
        except UnknownDataSource:
            decision = Decision.deny(REASON_UNKNOWN_DATA_SOURCE)
        except UnknownPrincipal:
            decision = Decision.deny(REASON_UNKNOWN_PRINCIPAL)
        else:
            decision = self.evaluator.can_execute_native(request, index)

        if not decision.allowed:
            self.audit.record(
                AuditRecord.from_decision(request.principal, request.data_source_id, decision)
            )
        return decision

    async def can_open_native_editor(self, principal: Any, data_source_id: Any) -> bool:
        try:
            index = await self.index_for(principal, data_source_id)
        except (UnknownDataSource, UnknownPrincipal) as e:
            logger.info(f"Native editor closed for ({principal!r}, {data_source_id!r}): {e}")
            return False
        return self.evaluator.can_open_native_editor(index)

    async def effective_permissions(
        self, principal: Any, data_source_id: Any
    ) -> dict[Table, PermValue]:
        index = await self.index_for(principal, data_source_id)
        return index.effective_permissions()

    def record_execution(
        self, request: NativeQueryRequest, decision: Decision, row_count: Optional[int]
    ) -> None:
        self.audit.record(
            AuditRecord.from_decision(
                request.principal,
                request.data_source_id,
                decision,
                executed=True,
                row_count=row_count,
            )
        )

    def invalidate(self, signal: InvalidationSignal) -> int:
        return self.cache.apply(signal)
