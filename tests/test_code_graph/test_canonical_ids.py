"""Tests for stable node identifiers."""
from __future__ import annotations

import pytest

from src.code_graph.services import canonical_ids


class TestMethodId:
    def test_parameter_types_are_simplified(self):
        assert canonical_ids.method_id(
            "com.acme.OrderService", "place", ["java.lang.String", "List<Order>"],
        ) == "method:com.acme.OrderService.place(String,List)"

    def test_falls_back_to_signature(self):
        assert canonical_ids.method_id(
            "com.acme.OrderService", "place", None,
            "void place(final Map<String, Order> orders, int count)",
        ) == "method:com.acme.OrderService.place(Map,int)"

    def test_no_parameters(self):
        assert canonical_ids.method_id("a.B", "run") == "method:a.B.run()"
        assert canonical_ids.method_id("a.B", "run", [], "void run()") == "method:a.B.run()"

    def test_overloads_get_distinct_ids(self):
        one = canonical_ids.method_id("a.B", "find", ["Long"])
        two = canonical_ids.method_id("a.B", "find", ["String"])
        assert one != two


class TestPaths:
    @pytest.mark.parametrize(
        "path, expected",
        [
            ("/api/orders/{id}", "/api/orders/{*}"),
            ("/api/orders/42", "/api/orders/{*}"),
            ("/api/orders/123e4567-e89b-12d3-a456-426614174000/items", "/api/orders/{*}/items"),
            ("/api/orders/", "/api/orders"),
            ("/", "/"),
            (None, ""),
        ],
    )
    def test_normalize_id_path(self, path, expected):
        assert canonical_ids.normalize_id_path(path) == expected

    def test_endpoint_id_ignores_variable_names(self):
        assert canonical_ids.endpoint_id("get", "/orders/{orderId}") == canonical_ids.endpoint_id(
            "GET", "/orders/{id}",
        )

    def test_endpoint_id_without_verb(self):
        assert canonical_ids.endpoint_id(None, "/x") == "endpoint:ANY:/x"


class TestExternalCallId:
    def test_strips_host_query_and_dynamic_parts(self):
        call_id = canonical_ids.external_call_id(
            "get", "http://inventory/api/items/<dynamic>?full=true", "method:a.B.run()",
        )
        assert call_id == "external:GET:/api/items/{*}:method:a.B.run()"

    def test_host_only_url(self):
        assert canonical_ids.normalize_external_url("https://example.com") == "/"

    def test_missing_verb_and_url(self):
        assert canonical_ids.external_call_id(None, None, "m") == "external:UNKNOWN::m"


class TestOtherIds:
    def test_table_id_is_case_insensitive(self):
        assert canonical_ids.table_id("ORDERS") == canonical_ids.table_id("orders") == "table:orders"

    def test_component_and_topic(self):
        assert canonical_ids.component_id("a.B") == "component:a.B"
        assert canonical_ids.topic_id("order-events") == "topic:order-events"

    def test_relationship_id(self):
        assert canonical_ids.relationship_id("CALLS", "x", "y") == "calls:x->y"
