"""Recent native query audit records, exposed as audit://native-queries."""
import json

from mcp.server.fastmcp import FastMCP

from tablegate.audit import AuditSink


def render_audit_log(audit: AuditSink, limit: int = 50) -> str:
    records = audit.recent(limit)
    if not records:
        return "No native query decisions recorded yet."
    lines = []
    for r in records:
        status = "executed" if r.executed else r.outcome
        detail = f" unauthorized={json.dumps(r.unauthorized_tables)}" if r.unauthorized_tables else ""
        lines.append(f"- {r.timestamp} {r.principal}@{r.data_source_id}: {status} ({r.reason}){detail}")
    return "\n".join(lines)


def register_audit_resources(mcp: FastMCP, audit: AuditSink):

    @mcp.resource("audit://native-queries")
    async def get_native_query_audit() -> str:
        """Most recent denied and executed native queries."""
        return render_audit_log(audit)
