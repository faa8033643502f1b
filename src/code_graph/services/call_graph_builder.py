"""Multi-pass resolution of extractor facts into a call graph."""
from __future__ import annotations

import logging

from src.code_graph.services import canonical_ids
from src.code_graph.services.resolution_index import (
    TARGET_KINDS,
    ResolutionIndex,
    method_key,
)
from src.shared.errors import BindingIncompleteError
from src.shared.models.facts import Component, ComponentKind, FactSet, Method, RawInvocation
from src.shared.models.graph import (
    ComponentNode,
    DatabaseTableNode,
    EndpointNode,
    ExternalCallNode,
    MethodKind,
    MethodNode,
    ResolvedGraph,
    SkippedInvocation,
)
from src.shared.utils import simple_name

logger = logging.getLogger(__name__)

# Registration order: data accessors first, entry points last.
KIND_ORDER: dict[ComponentKind, int] = {
    ComponentKind.DATA_ACCESSOR: 0,
    ComponentKind.BUSINESS_SERVICE: 1,
    ComponentKind.MESSAGE_LISTENER: 2,
    ComponentKind.ENTRY_POINT_HANDLER: 3,
    ComponentKind.CONFIGURATION: 4,
}

METHOD_KINDS: dict[ComponentKind, MethodKind] = {
    ComponentKind.DATA_ACCESSOR: MethodKind.REPOSITORY_METHOD,
    ComponentKind.BUSINESS_SERVICE: MethodKind.SERVICE_METHOD,
    ComponentKind.MESSAGE_LISTENER: MethodKind.LISTENER_METHOD,
    ComponentKind.ENTRY_POINT_HANDLER: MethodKind.ENDPOINT_HANDLER,
}

Visited = frozenset[tuple[str, str]]


def canonical_order(components: list[Component]) -> list[Component]:
    """Sort components into registration order (kind, then qualified name)."""
    return sorted(components, key=lambda c: (KIND_ORDER[c.kind], c.qualified_name))


def join_paths(base_path: str | None, path: str | None) -> str:
    parts = [p.strip("/") for p in (base_path, path) if p and p.strip("/")]
    return "/" + "/".join(parts)


class CallGraphBuilder:
    """Builds a :class:`ResolvedGraph` from a bound :class:`FactSet`.

    Every call to :meth:`build` works on its own index and graph, so one
    builder can serve concurrent runs for different projects.
    """

    def build(self, fact_set: FactSet) -> ResolvedGraph:
        if not fact_set.binding_complete:
            raise BindingIncompleteError(
                f"Refusing to resolve calls for project {fact_set.project_id}: "
                "interface binding pass has not run over the full component set"
            )
        return _GraphBuild(fact_set).run()


class _GraphBuild:
    """State of a single build: index, graph and expansion memo."""

    def __init__(self, fact_set: FactSet) -> None:
        self.fact_set = fact_set
        self.graph = ResolvedGraph(project_id=fact_set.project_id)
        self.index = ResolutionIndex()
        self.components: list[Component] = []
        self.owner_of: dict[str, Component] = {}
        self.fact_of: dict[str, Method] = {}
        self.nodes_of: dict[str, list[MethodNode]] = {}
        self.expanded: set[str] = set()

    def run(self) -> ResolvedGraph:
        seen: set[str] = set()
        for component in canonical_order(self.fact_set.components):
            if component.qualified_name in seen:
                logger.warning(
                    "Duplicate component %s ignored", component.qualified_name
                )
                continue
            seen.add(component.qualified_name)
            self.components.append(component)
            self._register_component(component)

        for component in self.components:
            for node in self.nodes_of.get(component.qualified_name, []):
                if node.kind in TARGET_KINDS:
                    self._expand(node, frozenset())
                else:
                    self._resolve_entry(node)

        logger.info(
            "Call graph built: project=%s components=%d methods=%d calls=%d "
            "endpoints=%d external_calls=%d skipped=%d",
            self.graph.project_id,
            len(self.graph.components),
            len(self.graph.methods),
            len(self.graph.call_edges()),
            len(self.graph.endpoints),
            len(self.graph.external_calls),
            len(self.graph.skipped),
        )
        return self.graph

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def _register_component(self, component: Component) -> None:
        comp_id = canonical_ids.component_id(component.qualified_name)
        comp_node = ComponentNode(
            id=comp_id,
            name=component.name,
            qualified_name=component.qualified_name,
            package=component.package,
            kind=component.kind,
            base_path=component.base_path,
            line_start=component.line_start,
            line_end=component.line_end,
        )
        if component.table_access is not None:
            comp_node.table_id = self._register_table(component)
        self.graph.components[comp_id] = comp_node

        if component.kind == ComponentKind.CONFIGURATION:
            return

        kind = METHOD_KINDS[component.kind]
        for method in component.methods:
            if kind == MethodKind.ENDPOINT_HANDLER and not method.http_method:
                continue
            node_id = canonical_ids.method_id(
                component.qualified_name,
                method.name,
                method.parameter_types,
                method.signature,
            )
            if node_id in self.graph.methods:
                logger.debug("Duplicate method id %s ignored", node_id)
                continue
            node = MethodNode(
                id=node_id,
                class_name=component.name,
                qualified_class=component.qualified_name,
                component_id=comp_id,
                method_name=method.name,
                signature=method.signature,
                kind=kind,
                line_start=method.line_start,
                line_end=method.line_end,
            )
            self.graph.methods[node_id] = node
            self.owner_of[node_id] = component
            self.fact_of[node_id] = method
            self.nodes_of.setdefault(component.qualified_name, []).append(node)
            self.index.register(node)

            if kind == MethodKind.SERVICE_METHOD:
                for interface in component.implemented_interfaces:
                    for alias in dict.fromkeys((interface, simple_name(interface) or interface)):
                        self.index.register_alias(method_key(alias, method.name), node)
            if kind == MethodKind.ENDPOINT_HANDLER:
                self._register_endpoint(component, method, node)
            self._register_external_calls(method, node)

    def _register_table(self, component: Component) -> str:
        access = component.table_access
        table_id = canonical_ids.table_id(access.table_name)
        existing = self.graph.tables.get(table_id)
        if existing is None:
            self.graph.tables[table_id] = DatabaseTableNode(
                id=table_id,
                name=access.table_name,
                entity_class=access.entity_class,
                database_type=access.database_type,
                operations=list(dict.fromkeys(access.operations)),
            )
        else:
            for op in access.operations:
                if op not in existing.operations:
                    existing.operations.append(op)
        return table_id

    def _register_endpoint(
        self, component: Component, method: Method, node: MethodNode
    ) -> None:
        path = join_paths(component.base_path, method.path)
        verb = method.http_method.upper()
        ep_id = canonical_ids.endpoint_id(verb, path)
        if ep_id in self.graph.endpoints:
            logger.debug("Endpoint %s already handled elsewhere, keeping first", ep_id)
            return
        self.graph.endpoints[ep_id] = EndpointNode(
            id=ep_id,
            http_method=verb,
            path=path,
            component_name=component.name,
            handler_method_id=node.id,
            handler_method_name=method.name,
        )

    def _register_external_calls(self, method: Method, node: MethodNode) -> None:
        for call in method.external_calls:
            call_id = canonical_ids.external_call_id(call.http_method, call.url, node.id)
            if call_id in self.graph.external_calls:
                continue
            self.graph.external_calls[call_id] = ExternalCallNode(
                id=call_id,
                source_method_id=node.id,
                client_kind=call.client_kind,
                http_method=call.http_method.upper() if call.http_method else None,
                url=call.url,
                line=call.line,
            )
            node.link("external_call_ids", call_id)

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def _expand(self, node: MethodNode, visited: Visited) -> None:
        """Resolve *node*'s invocations and recurse into new targets.

        *visited* is the path from the top-level method to *node*; each
        branch extends its own copy, so only a target already on the
        current path stops recursion. The edge to it is still recorded.
        """
        if node.id in self.expanded:
            return
        path = visited | {node.key}
        for target in self._resolve_calls(node):
            if target.key in path or target.kind not in TARGET_KINDS:
                continue
            self._expand(target, path)
        self.expanded.add(node.id)

    def _resolve_entry(self, node: MethodNode) -> None:
        """Endpoint handlers and listener methods: resolve calls, no recursion."""
        if node.id in self.expanded:
            return
        self._resolve_calls(node)
        self.expanded.add(node.id)

    def _resolve_calls(self, node: MethodNode) -> list[MethodNode]:
        owner = self.owner_of[node.id]
        resolved: list[MethodNode] = []
        for raw in self.fact_of[node.id].invocations:
            target, step = self.resolve_invocation(raw, owner, node)
            if target is None:
                self._skip(node, raw, "no index entry matched")
                continue
            if target.id == node.id and not raw.self_call:
                self._skip(node, raw, f"false self-loop via {step}")
                continue
            node.add_call(target.id)
            resolved.append(target)
        return resolved

    def resolve_invocation(
        self, raw: RawInvocation, owner: Component, source: MethodNode
    ) -> tuple[MethodNode | None, str | None]:
        """Apply the five resolution steps in order; first hit wins.

        Returns the target and the name of the step that matched.
        """
        name = raw.method_name
        index = self.index

        if raw.self_call:
            target = index.probe(
                [owner.name, owner.qualified_name], name, kinds=(source.kind,)
            )
            if target is not None:
                return target, "self"

        if raw.target_field_name:
            dep = owner.dependencies.get(raw.target_field_name)
            if dep is not None and dep.resolved_type:
                target = index.probe(
                    [simple_name(dep.resolved_type), dep.resolved_type], name
                )
                if target is not None:
                    return target, "field"

        declared_simple = raw.declared_type_simple or simple_name(raw.declared_type_qualified)
        declared = [declared_simple, raw.declared_type_qualified]
        if declared_simple or raw.declared_type_qualified:
            target = index.probe(declared, name, kinds=(MethodKind.SERVICE_METHOD,))
            if target is not None:
                return target, "interface"
            interface_map = self.fact_set.interface_map
            implementations = (
                interface_map.get(raw.declared_type_qualified or "")
                or interface_map.get(declared_simple or "")
                or []
            )
            for implementation in implementations:
                target = index.probe([simple_name(implementation), implementation], name)
                if target is not None:
                    return target, "interface"

            target = index.probe(declared, name)
            if target is not None:
                return target, "direct"

        # Ambiguity-prone: the first method registered under the bare name wins.
        target = index.get(name)
        if target is not None:
            return target, "method-name"
        return None, None

    def _skip(self, node: MethodNode, raw: RawInvocation, reason: str) -> None:
        declared = raw.declared_type_qualified or raw.declared_type_simple
        self.graph.skipped.append(SkippedInvocation(
            source_method_id=node.id,
            method_name=raw.method_name,
            declared_type=declared,
            line=raw.line,
            reason=reason,
        ))
        logger.debug(
            "Skipped invocation %s.%s from %s: %s",
            declared or "?", raw.method_name, node.id, reason,
        )
