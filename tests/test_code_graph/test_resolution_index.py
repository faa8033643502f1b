"""Tests for the first-writer-wins resolution index."""
from __future__ import annotations

from src.code_graph.services.resolution_index import ResolutionIndex, method_key
from src.shared.models.graph import MethodKind, MethodNode


def _node(qualified_class: str, method: str, kind: MethodKind = MethodKind.SERVICE_METHOD,
          signature: str | None = None) -> MethodNode:
    simple = qualified_class.rsplit(".", 1)[-1]
    return MethodNode(
        id=f"method:{qualified_class}.{method}()",
        class_name=simple,
        qualified_class=qualified_class,
        component_id=f"component:{qualified_class}",
        method_name=method,
        signature=signature,
        kind=kind,
    )


class TestRegister:
    def test_registers_four_keys(self):
        index = ResolutionIndex()
        node = _node("x.Foo", "bar", signature="x.Foo#bar(String)")
        index.register(node)
        assert index.get("Foo#bar") is node
        assert index.get("x.Foo#bar") is node
        assert index.get("x.Foo#bar(String)") is node
        assert index.get("bar") is node
        assert len(index) == 1

    def test_first_writer_wins_on_shared_keys(self):
        index = ResolutionIndex()
        first = _node("a.First", "save")
        second = _node("b.Second", "save")
        index.register(first)
        index.register(second)
        assert index.get("save") is first
        assert index.get("Second#save") is second
        assert index.registration_order == [first.id, second.id]

    def test_entry_kinds_are_not_targets(self):
        index = ResolutionIndex()
        handler = _node("x.Controller", "list", kind=MethodKind.ENDPOINT_HANDLER)
        index.register(handler)
        assert index.get("Controller#list") is None
        assert index.get("Controller#list", kinds=(MethodKind.ENDPOINT_HANDLER,)) is handler

    def test_alias_does_not_overwrite(self):
        index = ResolutionIndex()
        impl = _node("x.Impl", "run")
        other = _node("x.Other", "run")
        index.register(impl)
        index.register(other)
        assert index.register_alias(method_key("IRunner", "run"), impl) is True
        assert index.register_alias(method_key("IRunner", "run"), other) is False
        assert index.get("IRunner#run", kinds=(MethodKind.SERVICE_METHOD,)) is impl


class TestProbe:
    def test_probe_order_and_none_entries(self):
        index = ResolutionIndex()
        node = _node("x.Foo", "bar")
        index.register(node)
        assert index.probe([None, "Missing", "Foo"], "bar") is node
        assert index.probe(["Missing"], "bar") is None

    def test_probe_respects_kind_scope(self):
        index = ResolutionIndex()
        repo = _node("x.Repo", "find", kind=MethodKind.REPOSITORY_METHOD)
        index.register(repo)
        assert index.probe(["Repo"], "find", kinds=(MethodKind.SERVICE_METHOD,)) is None
        assert index.probe(["Repo"], "find") is repo
