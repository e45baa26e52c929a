"""Response formatting helpers."""
import json
from enum import Enum
from typing import Any

from tablegate.governance.models import Decision, PermValue, Table


class ResponseFormat(str, Enum):
    MARKDOWN = "markdown"
    JSON = "json"


def format_query_results(
    rows: list[dict],
    columns: list[str] = None,
    fmt: ResponseFormat = ResponseFormat.MARKDOWN,
) -> str:
    if fmt == ResponseFormat.JSON:
        return json.dumps(
            {"row_count": len(rows), "rows": rows}, indent=2, default=str
        )
    if not rows:
        return "_No results returned._"
    cols = columns or list(rows[0].keys())
    lines = [f"**{len(rows)} row(s) returned**\n"]
    lines.append("| " + " | ".join(cols) + " |")
    lines.append("| " + " | ".join(["---"] * len(cols)) + " |")
    for row in rows[:50]:
        vals = [str(row.get(c, "")) for c in cols]
        lines.append("| " + " | ".join(vals) + " |")
    if len(rows) > 50:
        lines.append(f"\n_...and {len(rows) - 50} more rows (use LIMIT to control)_")
    return "\n".join(lines)


def format_decision(
    decision: Decision, fmt: ResponseFormat = ResponseFormat.MARKDOWN
) -> str:
    if fmt == ResponseFormat.JSON:
        return json.dumps(decision.as_dict(), indent=2)
    shape = decision.as_dict()
    lines = [f"**{shape['outcome'].upper()}** — {shape['reason']}"]
    if shape["unauthorized_tables"]:
        lines.append("\nTables without native access:")
        lines.extend(f"- `{t}`" for t in shape["unauthorized_tables"])
    if shape["unresolved"]:
        lines.append("\nCould not verify:")
        lines.extend(f"- {u}" for u in shape["unresolved"])
    if decision.allowed and shape["referenced_tables"]:
        lines.append("\nReferenced tables: " + ", ".join(f"`{t}`" for t in shape["referenced_tables"]))
    return "\n".join(lines)


def format_permission_table(
    permissions: dict[Table, PermValue], fmt: ResponseFormat = ResponseFormat.MARKDOWN
) -> str:
    ordered = sorted(permissions.items(), key=lambda kv: (kv[0].schema or "", kv[0].name))
    if fmt == ResponseFormat.JSON:
        data: list[dict[str, Any]] = [
            {"table_id": t.id, "schema": t.schema, "table": t.name, "permission": v.value}
            for t, v in ordered
        ]
        return json.dumps(data, indent=2, default=str)
    if not ordered:
        return "_No tables found._"
    lines = ["| Table | Permission |", "| --- | --- |"]
    for table, value in ordered:
        lines.append(f"| {table.qualified_name} | {value.value} |")
    return "\n".join(lines)
