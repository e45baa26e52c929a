"""Unit tests for response formatting."""
import json

from tablegate.governance.models import Decision, PermValue, Table
from tablegate.utils.formatting import (
    ResponseFormat,
    format_decision,
    format_permission_table,
    format_query_results,
)


class TestQueryResultFormatting:
    def test_empty_results_markdown(self):
        result = format_query_results([], fmt=ResponseFormat.MARKDOWN)
        assert "No results" in result

    def test_results_markdown_table(self, sample_rows):
        result = format_query_results(sample_rows)
        assert "2 row(s)" in result
        assert "| customer_id |" in result

    def test_results_json(self, sample_rows):
        result = format_query_results(sample_rows, fmt=ResponseFormat.JSON)
        data = json.loads(result)
        assert data["row_count"] == 2
        assert len(data["rows"]) == 2

    def test_truncation_at_50(self):
        rows = [{"id": i} for i in range(100)]
        result = format_query_results(rows)
        assert "...and 50 more rows" in result


class TestDecisionFormatting:
    def test_deny_markdown(self, orders, customers):
        decision = Decision.deny(
            "query references tables without native access",
            unauthorized=frozenset({customers}),
            referenced=frozenset({orders, customers}),
        )
        result = format_decision(decision)
        assert result.startswith("**DENY**")
        assert "`public.customers`" in result
        assert "public.orders" not in result

    def test_unresolved_listed(self):
        decision = Decision.deny(
            "could not verify referenced tables",
            unresolved=("common table expression: 'WITH' (line 1)",),
        )
        assert "Could not verify" in format_decision(decision)

    def test_allow_lists_referenced(self, orders):
        decision = Decision.allow("all referenced tables have native access", frozenset({orders}))
        result = format_decision(decision)
        assert result.startswith("**ALLOW**")
        assert "`public.orders`" in result

    def test_json(self, customers):
        decision = Decision.deny("x", unauthorized=frozenset({customers}))
        data = json.loads(format_decision(decision, fmt=ResponseFormat.JSON))
        assert data["outcome"] == "deny"
        assert data["unauthorized_tables"] == ["public.customers"]


class TestPermissionTableFormatting:
    def test_markdown_sorted_by_schema(self, orders, payments):
        result = format_permission_table({orders: PermValue.BLOCKED, payments: PermValue.NO})
        lines = result.splitlines()
        assert lines[2] == "| finance.payments | no |"
        assert lines[3] == "| public.orders | blocked |"

    def test_json(self, orders):
        data = json.loads(
            format_permission_table(
                {orders: PermValue.QUERY_BUILDER_AND_NATIVE}, fmt=ResponseFormat.JSON
            )
        )
        assert data == [{
            "table_id": 1,
            "schema": "public",
            "table": "orders",
            "permission": "query-builder-and-native",
        }]

    def test_empty(self):
        assert "No tables" in format_permission_table({})
