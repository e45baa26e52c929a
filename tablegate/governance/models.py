"""Data model for native query permission checks."""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Union


CREATE_QUERIES = "create-queries"

TableId = Union[int, str]


class PermValue(str, Enum):
    """Values of the create-queries permission."""

    NO = "no"
    QUERY_BUILDER = "query-builder"
    QUERY_BUILDER_AND_NATIVE = "query-builder-and-native"
    BLOCKED = "blocked"

    def meets(self, minimum: "PermValue") -> bool:
        """True if this value grants at least ``minimum``. Blocked never does."""
        if self is PermValue.BLOCKED or minimum is PermValue.BLOCKED:
            return False
        return _RANK[self] >= _RANK[minimum]


_RANK: dict[PermValue, int] = {
    PermValue.NO: 0,
    PermValue.QUERY_BUILDER: 1,
    PermValue.QUERY_BUILDER_AND_NATIVE: 2,
}


class ScopeLevel(str, Enum):
    DATABASE = "database"
    SCHEMA = "schema"
    TABLE = "table"


@dataclass(frozen=True)
class Table:
    """A catalog table. Read-only for the lifetime of an evaluation."""

    id: TableId
    name: str
    schema: Optional[str] = None
    data_source_id: Any = None

    @property
    def qualified_name(self) -> str:
        return f"{self.schema}.{self.name}" if self.schema else self.name


@dataclass(frozen=True)
class PermissionEntry:
    """One row of the sparse permission override map, as read from storage."""

    principal: Any
    data_source_id: Any
    scope_level: str
    scope_target: Optional[TableId]
    perm_type: str
    perm_value: str


@dataclass(frozen=True)
class NativeQueryRequest:
    principal: Any
    data_source_id: Any
    query_text: str


class Outcome(str, Enum):
    ALLOW = "allow"
    DENY = "deny"


@dataclass(frozen=True)
class RawReference:
    """A table reference as written in the query text."""

    name: str
    schema: Optional[str] = None
    alias: Optional[str] = None

    def __str__(self) -> str:
        return f"{self.schema}.{self.name}" if self.schema else self.name


@dataclass(frozen=True)
class AmbiguousSpan:
    """A construct the extractor could not classify."""

    reason: str
    text: str = ""
    line: Optional[int] = None

    def __str__(self) -> str:
        where = f" (line {self.line})" if self.line else ""
        return f"{self.reason}: '{self.text}'{where}" if self.text else self.reason


@dataclass(frozen=True)
class ExtractionResult:
    references: frozenset[RawReference] = frozenset()
    ambiguous: tuple[AmbiguousSpan, ...] = ()

    @property
    def is_ambiguous(self) -> bool:
        return bool(self.ambiguous)


@dataclass(frozen=True)
class UnresolvedReference:
    reference: RawReference
    reason: str

    def __str__(self) -> str:
        return f"{self.reference}: {self.reason}"


@dataclass(frozen=True)
class ResolutionResult:
    tables: frozenset[Table] = frozenset()
    unresolved: tuple[UnresolvedReference, ...] = ()


@dataclass(frozen=True)
class Decision:
    """Outcome of a native query permission check."""

    outcome: Outcome
    reason: str
    unauthorized_tables: frozenset[Table] = frozenset()
    referenced_tables: frozenset[Table] = frozenset()
    unresolved: tuple[str, ...] = ()

    @property
    def allowed(self) -> bool:
        return self.outcome is Outcome.ALLOW

    @classmethod
    def allow(cls, reason: str, referenced: frozenset[Table] = frozenset()) -> "Decision":
        return cls(Outcome.ALLOW, reason, referenced_tables=referenced)

    @classmethod
    def deny(
        cls,
        reason: str,
        unauthorized: frozenset[Table] = frozenset(),
        referenced: frozenset[Table] = frozenset(),
        unresolved: tuple[str, ...] = (),
    ) -> "Decision":
        return cls(Outcome.DENY, reason, unauthorized, referenced, unresolved)

    def as_dict(self) -> dict[str, Any]:
        return {
            "outcome": self.outcome.value,
            "reason": self.reason,
            "unauthorized_tables": sorted(t.qualified_name for t in self.unauthorized_tables),
            "referenced_tables": sorted(t.qualified_name for t in self.referenced_tables),
            "unresolved": list(self.unresolved),
        }


@dataclass(frozen=True)
class InvalidationSignal:
    """Permission change notice. ``principal=None`` covers every principal."""

    data_source_id: Any
    principal: Any = None

