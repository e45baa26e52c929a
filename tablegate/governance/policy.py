"""Governance configuration and PolicyEvaluator construction.

Loads engine settings from env vars (primary) and the optional YAML
governance file, which may also carry permission rows and static catalogs
(see tablegate/sources.py).
"""
import os
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml
from sqlglot.dialects.dialect import Dialect

from tablegate.governance.evaluator import PolicyEvaluator
from tablegate.governance.name_resolver import NameResolver
from tablegate.governance.table_extractor import TableReferenceExtractor

logger = logging.getLogger(__name__)

DEFAULT_DIALECT = "postgres"


@dataclass
class GovernanceConfig:
    """Parsed governance configuration."""

    config_path: Optional[str] = None
    dialect: str = DEFAULT_DIALECT
    # None searches every schema for unqualified table names
    search_path: Optional[list[str]] = None


def load_yaml_config(path: str) -> dict:
    """Load the governance YAML file. A missing file yields an empty config."""
    config_path = Path(path)
    if not config_path.exists():
        logger.warning(f"Governance config file not found: {path}")
        return {}

    with open(config_path) as f:
        return yaml.safe_load(f) or {}


def _parse_env_list(env_var: str) -> Optional[list[str]]:
    """Parse comma-separated env var into list. Returns None if unset."""
    val = os.environ.get(env_var, "").strip()
    if not val:
        return None
    return [item.strip() for item in val.split(",") if item.strip()]


def load_governance_config() -> GovernanceConfig:
    """Load governance config from env vars + optional YAML.

    Env vars take precedence over YAML for all settings.
    """
    config = GovernanceConfig()

    yaml_path = os.environ.get("TABLEGATE_GOVERNANCE_CONFIG", "")
    yaml_data = {}
    if yaml_path:
        config.config_path = yaml_path
        yaml_data = load_yaml_config(yaml_path)

    engine_section = yaml_data.get("engine", {}) or {}
    config.dialect = (
        os.environ.get("TABLEGATE_SQL_DIALECT", engine_section.get("dialect"))
        or DEFAULT_DIALECT
    )
    config.search_path = _parse_env_list("TABLEGATE_SEARCH_PATH") or (
        engine_section.get("search_path")
    )
    return config


def build_policy_evaluator(config: GovernanceConfig = None) -> PolicyEvaluator:
    """Build the runtime evaluator from config.

    An unknown SQL dialect is a configuration error and raises ValueError.
    """
    if config is None:
        config = load_governance_config()

    Dialect.get_or_raise(config.dialect)

    logger.info(
        f"Governance: native query checks active (dialect={config.dialect}, "
        f"search_path={config.search_path or 'all schemas'})"
    )
    return PolicyEvaluator(
        extractor=TableReferenceExtractor(dialect=config.dialect),
        resolver=NameResolver(search_path=config.search_path),
    )
