"""Permission inspection and cache invalidation tools."""
from typing import Optional

from mcp.server.fastmcp import FastMCP
from pydantic import BaseModel, ConfigDict, Field

from tablegate.config import config
from tablegate.governance.models import InvalidationSignal
from tablegate.service import NativeQueryService
from tablegate.utils.errors import handle_error
from tablegate.utils.formatting import ResponseFormat, format_permission_table


class EffectivePermissionsInput(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)
    principal: str = Field(..., min_length=1)
    data_source_id: Optional[str] = Field(default=None)
    response_format: ResponseFormat = Field(default=ResponseFormat.MARKDOWN)


class InvalidatePermissionsInput(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)
    data_source_id: Optional[str] = Field(
        default=None, description="Data source whose permissions changed"
    )
    principal: Optional[str] = Field(
        default=None,
        description="Principal whose permissions changed (omit for every principal)",
    )


def register_permission_tools(mcp: FastMCP, service: NativeQueryService):

    @mcp.tool(
        name="tablegate_effective_permissions",
        annotations={
            "title": "Show Effective Query Permissions",
            "readOnlyHint": True,
            "destructiveHint": False,
            "idempotentHint": True,
            "openWorldHint": False,
        },
    )
    async def tablegate_effective_permissions(params: EffectivePermissionsInput) -> str:
        """List every table of the data source with the principal's resolved
        create-queries permission (no, query-builder, query-builder-and-native,
        blocked)."""
        try:
            permissions = await service.effective_permissions(
                params.principal, params.data_source_id or config.data_source_id
            )
            return format_permission_table(permissions, fmt=params.response_format)
        except Exception as e:
            return handle_error(e)

    @mcp.tool(
        name="tablegate_invalidate_permissions",
        annotations={
            "title": "Invalidate Cached Permissions",
            "readOnlyHint": False,
            "destructiveHint": False,
            "idempotentHint": True,
            "openWorldHint": False,
        },
    )
    async def tablegate_invalidate_permissions(params: InvalidatePermissionsInput) -> str:
        """Signal a permission change. Cached permissions for the principal (or
        all principals) of the data source are rebuilt on the next check."""
        try:
            signal = InvalidationSignal(
                data_source_id=params.data_source_id or config.data_source_id,
                principal=params.principal,
            )
            evicted = service.invalidate(signal)
            return f"Invalidated {evicted} cached permission index(es)."
        except Exception as e:
            return handle_error(e)
