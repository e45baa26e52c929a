"""Table-granular native query authorization for PostgreSQL, served over MCP."""

__version__ = "0.3.0"
