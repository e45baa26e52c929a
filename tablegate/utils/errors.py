"""Centralized error handling with actionable messages."""
import psycopg

from tablegate.governance.errors import (
    MalformedPermissionEntry,
    UnknownDataSource,
    UnknownPrincipal,
)


def handle_error(e: Exception) -> str:
    """Return a human-readable, actionable error message.

    Distinguishes between:
    - Permission data integrity faults (malformed rows, unknown scopes)
    - Connection problems (transient, retry)
    - Database-side permission / syntax / timeout errors
    """
    # --- Governance errors ---

    if isinstance(e, MalformedPermissionEntry):
        return (
            f"Error: Stored permission data is malformed ({e}). "
            "Native query checks are disabled for this principal until an "
            "administrator fixes the permission rows."
        )

    if isinstance(e, UnknownDataSource):
        return f"Error: Unknown data source. {e}"

    if isinstance(e, UnknownPrincipal):
        return f"Error: No permissions are configured for this principal. {e}"

    # --- Connection errors ---

    if isinstance(e, ConnectionError):
        return (
            "Error: Cannot reach the governed database. Retries exhausted. "
            "Try your request again shortly."
        )

    if isinstance(e, psycopg.OperationalError):
        msg = str(e).lower()
        if "connection refused" in msg or "could not connect" in msg:
            return (
                "Error: Cannot connect to the governed database. Possible causes:\n"
                "- The database is restarting\n"
                "- Network or credential misconfiguration (check TABLEGATE_DB_* settings)"
            )
        if "terminating connection" in msg or "server closed" in msg:
            return (
                "Error: Connection was terminated. "
                "Retry your query — the connection pool will reconnect automatically."
            )

    # --- Standard Postgres errors ---

    if isinstance(e, psycopg.errors.InsufficientPrivilege):
        return (
            "Error: Permission denied by the database. The database role used by "
            "tablegate cannot read this object."
        )

    if isinstance(e, psycopg.errors.UndefinedTable):
        table = str(e).split('"')[1] if '"' in str(e) else "unknown"
        return (
            f"Error: Table '{table}' does not exist. "
            "Use tablegate_effective_permissions to list the known tables."
        )

    if isinstance(e, psycopg.errors.SyntaxError):
        return f"Error: SQL syntax error — {str(e).strip()}. Check your query and try again."

    if isinstance(e, psycopg.errors.QueryCanceled):
        return "Error: Query timed out. Try limiting rows with LIMIT or simplifying the query."

    if isinstance(e, psycopg.errors.ReadOnlySqlTransaction):
        return "Error: Native queries run read-only; the statement tried to write."

    if isinstance(e, TimeoutError):
        return "Error: Connection timed out. Retry shortly."

    return f"Error: {type(e).__name__} — {str(e)}"
