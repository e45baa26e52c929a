"""Fail-closed Allow/Deny decisions for native query execution."""
from typing import Optional

from tablegate.governance.models import Decision, NativeQueryRequest, PermValue
from tablegate.governance.name_resolver import NameResolver
from tablegate.governance.permission_index import PermissionIndex
from tablegate.governance.table_extractor import TableReferenceExtractor

NATIVE = PermValue.QUERY_BUILDER_AND_NATIVE

REASON_DATABASE_NATIVE = "database-level native access"
REASON_NO_NATIVE = "no native access granted"
REASON_UNVERIFIABLE = "could not verify referenced tables"
REASON_UNAUTHORIZED = "query references tables without native access"
REASON_CONTAINED = "all referenced tables have native access"


class PolicyEvaluator:
    """Combines a PermissionIndex with table extraction and name resolution.

    Pure: no I/O, no logging, no caching of decisions. The same index and
    query text always produce the same Decision.
    """

    def __init__(
        self,
        extractor: Optional[TableReferenceExtractor] = None,
        resolver: Optional[NameResolver] = None,
    ):
        self.extractor = extractor or TableReferenceExtractor()
        self.resolver = resolver or NameResolver()

    def can_execute_native(
        self, request: NativeQueryRequest, index: PermissionIndex
    ) -> Decision:
        self._check_scope(request.principal, request.data_source_id, index)

        if index.has_database_level(NATIVE):
            return Decision.allow(REASON_DATABASE_NATIVE)

        allowed = index.tables_with_at_least(NATIVE)
        if not allowed:
            return Decision.deny(REASON_NO_NATIVE)

        extraction = self.extractor.extract(request.query_text, index.known_identifiers)
        resolution = self.resolver.resolve(extraction.references, index.catalog)
        unresolved = tuple(str(span) for span in extraction.ambiguous) + tuple(
            str(ref) for ref in resolution.unresolved
        )
        if unresolved:
            return Decision.deny(
                REASON_UNVERIFIABLE,
                referenced=resolution.tables,
                unresolved=unresolved,
            )

        referenced = resolution.tables
        unauthorized = referenced - allowed
        if unauthorized:
            return Decision.deny(
                REASON_UNAUTHORIZED, unauthorized=unauthorized, referenced=referenced
            )
        return Decision.allow(REASON_CONTAINED, referenced)

    def can_open_native_editor(self, index: PermissionIndex) -> bool:
        return index.has_database_level(NATIVE) or bool(index.tables_with_at_least(NATIVE))

    @staticmethod
    def _check_scope(principal, data_source_id, index: PermissionIndex) -> None:
        if (principal, data_source_id) != (index.principal, index.data_source_id):
            raise ValueError(
                f"Request for ({principal}, {data_source_id}) evaluated against index "
                f"for ({index.principal}, {index.data_source_id})"
            )
