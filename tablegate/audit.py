"""Audit trail for native query decisions and executions."""
import json
import logging
from collections import deque
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from tablegate.governance.models import Decision

audit_logger = logging.getLogger("tablegate.audit")


@dataclass
class AuditRecord:
    principal: Any
    data_source_id: Any
    outcome: str
    reason: str
    unauthorized_tables: list[str] = field(default_factory=list)
    unresolved: list[str] = field(default_factory=list)
    executed: bool = False
    row_count: Optional[int] = None
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    @classmethod
    def from_decision(
        cls,
        principal: Any,
        data_source_id: Any,
        decision: Decision,
        executed: bool = False,
        row_count: Optional[int] = None,
    ) -> "AuditRecord":
        shape = decision.as_dict()
        return cls(
            principal=principal,
            data_source_id=data_source_id,
            outcome=shape["outcome"],
            reason=shape["reason"],
            unauthorized_tables=shape["unauthorized_tables"],
            unresolved=shape["unresolved"],
            executed=executed,
            row_count=row_count,
        )


class AuditSink:
    """Writes one JSON line per record and remembers the most recent ones."""

    def __init__(self, history_size: int = 200):
        self._recent: deque[AuditRecord] = deque(maxlen=history_size)

    def record(self, record: AuditRecord) -> None:
        self._recent.append(record)
        audit_logger.info(json.dumps(asdict(record), default=str))

    def recent(self, limit: Optional[int] = None) -> list[AuditRecord]:
        records = list(self._recent)
        return records[-limit:] if limit else records
