"""Maps lexical table references onto catalog tables."""
import logging
from collections import defaultdict
from typing import Iterable, Optional, Sequence

from tablegate.governance.models import (
    RawReference,
    ResolutionResult,
    Table,
    UnresolvedReference,
)

logger = logging.getLogger(__name__)


class NameResolver:
    """Case-insensitive lookup of references in a data source catalog.

    Unqualified names are searched in ``search_path`` (every schema when
    unset). Zero or several matches leave the reference unresolved; a
    reference is never dropped silently. References only come from table
    positions, so a name that equals an alias is still a relation.
    """

    def __init__(self, search_path: Optional[Sequence[str]] = None):
        self.search_path = (
            tuple(s.casefold() for s in search_path) if search_path else None
        )

    def resolve(
        self, raw_references: Iterable[RawReference], catalog: Iterable[Table]
    ) -> ResolutionResult:
        by_name: dict[str, list[Table]] = defaultdict(list)
        for table in catalog:
            by_name[table.name.casefold()].append(table)

        references = sorted(
            raw_references, key=lambda r: (r.schema or "", r.name, r.alias or "")
        )

        tables: set[Table] = set()
        unresolved: list[UnresolvedReference] = []
        for ref in references:
            candidates = by_name.get(ref.name.casefold(), [])
            if ref.schema is not None:
                schema = ref.schema.casefold()
                matches = [
                    t for t in candidates
                    if t.schema is not None and t.schema.casefold() == schema
                ]
            else:
                matches = [t for t in candidates if self._on_search_path(t)]

            if len(matches) == 1:
                tables.add(matches[0])
            elif len(matches) > 1:
                unresolved.append(
                    UnresolvedReference(ref, f"ambiguous: matches {len(matches)} tables")
                )
            else:
                logger.debug(f"No catalog table matches '{ref}'")
                unresolved.append(UnresolvedReference(ref, "unknown table"))

        return ResolutionResult(frozenset(tables), tuple(unresolved))

    def _on_search_path(self, table: Table) -> bool:
        if self.search_path is None or table.schema is None:
            return True
        return table.schema.casefold() in self.search_path
