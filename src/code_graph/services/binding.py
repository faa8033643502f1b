"""Interface-to-implementation binding pass over a whole fact set."""
from __future__ import annotations

import logging

from src.shared.models.facts import Component, FactSet, InjectedDependency
from src.shared.utils import simple_name

logger = logging.getLogger(__name__)


def _strip_generics(type_name: str) -> str:
    bracket = type_name.find("<")
    return type_name[:bracket].strip() if bracket != -1 else type_name.strip()


class DependencyBinder:
    """Fills in ``InjectedDependency.resolved_type`` for every component.

    The pass needs the complete component set: an injected interface can
    only be bound once every implementation in the run is known. Call
    resolution therefore refuses fact sets this pass has not processed.
    """

    def bind(self, fact_set: FactSet) -> FactSet:
        """Return a copy of *fact_set* with bound dependencies and
        ``binding_complete=True``. The input is not modified."""
        by_qualified = {c.qualified_name: c for c in fact_set.components}
        by_simple: dict[str, str] = {}
        for qualified in sorted(by_qualified):
            by_simple.setdefault(by_qualified[qualified].name, qualified)

        interface_map = self.build_interface_map(fact_set)

        bound_count = 0
        unresolved_count = 0
        components: list[Component] = []
        for component in fact_set.components:
            dependencies: dict[str, InjectedDependency] = {}
            for field_name, dep in component.dependencies.items():
                resolved = self._resolve(
                    dep, by_qualified, by_simple, interface_map, component
                )
                if resolved is None:
                    unresolved_count += 1
                else:
                    bound_count += 1
                dependencies[field_name] = dep.model_copy(
                    update={"resolved_type": resolved}
                )
            components.append(
                component.model_copy(update={"dependencies": dependencies})
            )

        logger.info(
            "Binding pass complete: project=%s components=%d bound=%d unresolved=%d",
            fact_set.project_id, len(components), bound_count, unresolved_count,
        )
        return fact_set.model_copy(update={
            "components": components,
            "interface_map": interface_map,
            "binding_complete": True,
        })

    def build_interface_map(self, fact_set: FactSet) -> dict[str, list[str]]:
        """Merge extractor-supplied bindings with ``implemented_interfaces``.

        Each interface is reachable under both its qualified and its simple
        name. Implementation lists keep first-seen order without duplicates.
        """
        merged: dict[str, list[str]] = {}

        def _add(interface: str, implementation: str) -> None:
            keys = [interface]
            short = simple_name(interface)
            if short and short != interface:
                keys.append(short)
            for key in keys:
                impls = merged.setdefault(key, [])
                if implementation not in impls:
                    impls.append(implementation)

        for interface, implementations in fact_set.interface_map.items():
            for implementation in implementations:
                _add(_strip_generics(interface), implementation)

        for component in sorted(fact_set.components, key=lambda c: c.qualified_name):
            for interface in component.implemented_interfaces:
                _add(_strip_generics(interface), component.qualified_name)
        return merged

    def _resolve(
        self,
        dep: InjectedDependency,
        by_qualified: dict[str, Component],
        by_simple: dict[str, str],
        interface_map: dict[str, list[str]],
        owner: Component,
    ) -> str | None:
        if dep.resolved_type:
            known = self._known_component(dep.resolved_type, by_qualified, by_simple)
            if known is not None:
                return known
            logger.debug(
                "Clearing resolved type %s of %s.%s: not a component in this run",
                dep.resolved_type, owner.name, dep.field_name,
            )

        declared = _strip_generics(dep.declared_type)
        known = self._known_component(declared, by_qualified, by_simple)
        if known is not None:
            return known

        implementations = interface_map.get(declared) or interface_map.get(
            simple_name(declared) or declared, []
        )
        for implementation in implementations:
            if implementation in by_qualified:
                return implementation

        logger.debug(
            "Unbound dependency %s.%s of declared type %s",
            owner.name, dep.field_name, dep.declared_type,
        )
        return None

    @staticmethod
    def _known_component(
        type_name: str,
        by_qualified: dict[str, Component],
        by_simple: dict[str, str],
    ) -> str | None:
        if type_name in by_qualified:
            return type_name
        if "." not in type_name:
            return by_simple.get(type_name)
        return None
