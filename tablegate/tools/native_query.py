"""Native query tools: permission check, governed execution, editor gate.

Every execution is preceded by a table-granular permission check; a Deny
is a hard stop and nothing is sent to the database.
"""
from typing import Optional

from mcp.server.fastmcp import FastMCP
from pydantic import BaseModel, ConfigDict, Field

from tablegate.config import config
from tablegate.db import pool
from tablegate.governance.models import NativeQueryRequest
from tablegate.service import NativeQueryService
from tablegate.utils.errors import handle_error
from tablegate.utils.formatting import (
    ResponseFormat,
    format_decision,
    format_query_results,
)


class NativeQueryInput(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)
    principal: str = Field(
        ..., description="Principal (user or group key) the query runs for", min_length=1
    )
    sql: str = Field(
        ...,
        description="Native SQL query text",
        max_length=50000,
    )
    data_source_id: Optional[str] = Field(
        default=None,
        description="Data source to check against (defaults to the governed database)",
    )
    response_format: ResponseFormat = Field(default=ResponseFormat.MARKDOWN)

    def to_request(self) -> NativeQueryRequest:
        return NativeQueryRequest(
            principal=self.principal,
            data_source_id=self.data_source_id or config.data_source_id,
            query_text=self.sql,
        )


class ExecuteNativeQueryInput(NativeQueryInput):
    sql: str = Field(
        ...,
        description="Native SQL query to run against the governed database",
        min_length=1,
        max_length=50000,
    )
    max_rows: Optional[int] = Field(
        default=100, description="Maximum rows to return (1-1000)", ge=1, le=1000
    )


class EditorAccessInput(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)
    principal: str = Field(..., min_length=1)
    data_source_id: Optional[str] = Field(default=None)


def register_native_query_tools(mcp: FastMCP, service: NativeQueryService):

    @mcp.tool(
        name="tablegate_check_native_query",
        annotations={
            "title": "Check Native Query Permission",
            "readOnlyHint": True,
            "destructiveHint": False,
            "idempotentHint": True,
            "openWorldHint": False,
        },
    )
    async def tablegate_check_native_query(params: NativeQueryInput) -> str:
        """Decide whether a principal may run a native SQL query.

        Allowed when the principal has database-level native access, or when
        every table the query references has native access. Queries the
        checker cannot fully understand (CTEs, subqueries in FROM, dynamic
        SQL) are denied.
        """
        try:
            decision = await service.can_execute_native(params.to_request())
            return format_decision(decision, fmt=params.response_format)
        except Exception as e:
            return handle_error(e)

    @mcp.tool(
        name="tablegate_execute_native_query",
        annotations={
            "title": "Execute Governed Native Query",
            "readOnlyHint": True,
            "destructiveHint": False,
            "idempotentHint": True,
            "openWorldHint": False,
        },
    )
    async def tablegate_execute_native_query(params: ExecuteNativeQueryInput) -> str:
        """Run a native SQL query on behalf of a principal.

        The query is checked first and only dispatched when allowed. It runs
        inside a READ ONLY transaction on the governed data source only.
        Every execution is audited.
        """
        try:
            request = params.to_request()
            if request.data_source_id != config.data_source_id:
                return (
                    f"Error: Only the governed data source '{config.data_source_id}' "
                    f"can execute native queries (got '{request.data_source_id}'). "
                    "Use tablegate_check_native_query for other data sources."
                )
            decision = await service.can_execute_native(request)
            if not decision.allowed:
                return "Error: Native query denied.\n\n" + format_decision(decision)
            rows = await pool.execute_readonly(
                request.query_text,
                max_rows=params.max_rows,
                tool_name="execute_native_query",
            )
            service.record_execution(request, decision, row_count=len(rows))
            return format_query_results(rows, fmt=params.response_format)
        except Exception as e:
            return handle_error(e)

    @mcp.tool(
        name="tablegate_native_editor_access",
        annotations={
            "title": "Check Native Editor Access",
            "readOnlyHint": True,
            "destructiveHint": False,
            "idempotentHint": True,
            "openWorldHint": False,
        },
    )
    async def tablegate_native_editor_access(params: EditorAccessInput) -> str:
        """Whether the principal may open the native query editor at all:
        true with database-level native access or native access to at least
        one table."""
        try:
            data_source_id = params.data_source_id or config.data_source_id
            allowed = await service.can_open_native_editor(params.principal, data_source_id)
            if allowed:
                return f"Native editor: available for '{params.principal}'."
            return f"Native editor: not available for '{params.principal}'."
        except Exception as e:
            return handle_error(e)
