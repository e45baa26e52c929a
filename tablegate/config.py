"""Configuration for the tablegate MCP server."""
import os
from dataclasses import dataclass, field


@dataclass
class TablegateConfig:
    """Server configuration loaded from environment variables."""

    # Governed database (the data source native queries run against)
    db_host: str = field(
        default_factory=lambda: os.environ.get("TABLEGATE_DB_HOST", "")
    )
    db_port: int = field(
        default_factory=lambda: int(os.environ.get("TABLEGATE_DB_PORT", "5432"))
    )
    db_name: str = field(
        default_factory=lambda: os.environ.get("TABLEGATE_DB_NAME", "")
    )
    data_source_id: str = field(
        default_factory=lambda: os.environ.get("TABLEGATE_DATA_SOURCE_ID", "default")
    )

    # Governance (see tablegate/governance/policy.py)
    governance_config_path: str = field(
        default_factory=lambda: os.environ.get("TABLEGATE_GOVERNANCE_CONFIG", "")
    )

    # Query execution
    max_rows: int = field(
        default_factory=lambda: int(os.environ.get("TABLEGATE_MAX_ROWS", "1000"))
    )
    query_timeout_seconds: int = field(
        default_factory=lambda: int(os.environ.get("TABLEGATE_QUERY_TIMEOUT", "30"))
    )

    # Audit
    audit_history_size: int = field(
        default_factory=lambda: int(os.environ.get("TABLEGATE_AUDIT_HISTORY", "200"))
    )

    # Pool settings
    pool_min_size: int = field(
        default_factory=lambda: int(os.environ.get("TABLEGATE_POOL_MIN", "1"))
    )
    pool_max_size: int = field(
        default_factory=lambda: int(os.environ.get("TABLEGATE_POOL_MAX", "10"))
    )
    pool_max_lifetime: int = field(
        default_factory=lambda: int(
            os.environ.get("TABLEGATE_POOL_MAX_LIFETIME", "300")
        )
    )
    pool_max_idle: int = field(
        default_factory=lambda: int(os.environ.get("TABLEGATE_POOL_MAX_IDLE", "60"))
    )

    # Connection retry (database restarting or waking up)
    connect_retry_attempts: int = field(
        default_factory=lambda: int(
            os.environ.get("TABLEGATE_CONNECT_RETRY_ATTEMPTS", "5")
        )
    )
    connect_retry_base_delay: float = field(
        default_factory=lambda: float(
            os.environ.get("TABLEGATE_CONNECT_RETRY_DELAY", "0.5")
        )
    )
    connect_retry_max_delay: float = field(
        default_factory=lambda: float(
            os.environ.get("TABLEGATE_CONNECT_MAX_DELAY", "10.0")
        )
    )


config = TablegateConfig()
