"""Test governance configuration — env vars, YAML, evaluator construction."""
import os
import tempfile

import pytest
from unittest.mock import patch

from tablegate.governance.policy import (
    GovernanceConfig,
    _parse_env_list,
    build_policy_evaluator,
    load_governance_config,
    load_yaml_config,
)


# ── Helper ────────────────────────────────────────────────────────────

def _clear_governance_env():
    """Remove all governance env vars for clean test state."""
    vars_to_clear = [
        "TABLEGATE_GOVERNANCE_CONFIG",
        "TABLEGATE_SQL_DIALECT",
        "TABLEGATE_SEARCH_PATH",
    ]
    return {k: v for k, v in os.environ.items() if k not in vars_to_clear}


def _write_yaml(content: str) -> str:
    f = tempfile.NamedTemporaryFile("w", suffix=".yaml", delete=False)
    f.write(content)
    f.close()
    return f.name


# ── _parse_env_list Tests ─────────────────────────────────────────────

class TestParseEnvList:

    def test_unset_var(self):
        assert _parse_env_list("NONEXISTENT_VAR_XYZ") is None

    def test_empty_string(self):
        with patch.dict(os.environ, {"TEST_VAR": ""}, clear=False):
            assert _parse_env_list("TEST_VAR") is None

    def test_whitespace_and_trailing_comma(self):
        with patch.dict(os.environ, {"TEST_VAR": " public , sales ,"}, clear=False):
            assert _parse_env_list("TEST_VAR") == ["public", "sales"]


# ── Config loading ────────────────────────────────────────────────────

class TestLoadGovernanceConfig:

    def test_defaults(self):
        with patch.dict(os.environ, _clear_governance_env(), clear=True):
            config = load_governance_config()
        assert config.dialect == "postgres"
        assert config.search_path is None
        assert config.config_path is None

    def test_env_vars(self):
        env = _clear_governance_env()
        env.update({"TABLEGATE_SQL_DIALECT": "mysql", "TABLEGATE_SEARCH_PATH": "public,sales"})
        with patch.dict(os.environ, env, clear=True):
            config = load_governance_config()
        assert config.dialect == "mysql"
        assert config.search_path == ["public", "sales"]

    def test_yaml_engine_section(self):
        path = _write_yaml("engine:\n  dialect: duckdb\n  search_path: [analytics]\n")
        try:
            env = _clear_governance_env()
            env["TABLEGATE_GOVERNANCE_CONFIG"] = path
            with patch.dict(os.environ, env, clear=True):
                config = load_governance_config()
            assert config.config_path == path
            assert config.dialect == "duckdb"
            assert config.search_path == ["analytics"]
        finally:
            os.unlink(path)

    def test_env_overrides_yaml(self):
        path = _write_yaml("engine:\n  dialect: duckdb\n  search_path: [analytics]\n")
        try:
            env = _clear_governance_env()
            env.update({
                "TABLEGATE_GOVERNANCE_CONFIG": path,
                "TABLEGATE_SQL_DIALECT": "postgres",
                "TABLEGATE_SEARCH_PATH": "public",
            })
            with patch.dict(os.environ, env, clear=True):
                config = load_governance_config()
            assert config.dialect == "postgres"
            assert config.search_path == ["public"]
        finally:
            os.unlink(path)

    def test_missing_yaml_file(self):
        assert load_yaml_config("/nonexistent/governance.yaml") == {}

    def test_empty_yaml_file(self):
        path = _write_yaml("")
        try:
            assert load_yaml_config(path) == {}
        finally:
            os.unlink(path)


# ── Evaluator construction ────────────────────────────────────────────

class TestBuildPolicyEvaluator:

    def test_uses_config(self):
        evaluator = build_policy_evaluator(
            GovernanceConfig(dialect="postgres", search_path=["Public"])
        )
        assert evaluator.extractor.dialect == "postgres"
        assert evaluator.resolver.search_path == ("public",)

    def test_unknown_dialect_rejected(self):
        with pytest.raises(ValueError):
            build_policy_evaluator(GovernanceConfig(dialect="not-a-dialect"))

    def test_default_config_from_env(self):
        with patch.dict(os.environ, _clear_governance_env(), clear=True):
            evaluator = build_policy_evaluator()
        assert evaluator.resolver.search_path is None
