"""Per-run lookup from call-target keys to resolved method nodes."""
from __future__ import annotations

import logging
from typing import Iterable

from src.shared.models.graph import MethodKind, MethodNode

logger = logging.getLogger(__name__)

# Kinds that can be the target of a resolved call, in registration order.
TARGET_KINDS: tuple[MethodKind, ...] = (
    MethodKind.REPOSITORY_METHOD,
    MethodKind.SERVICE_METHOD,
)


def method_key(class_name: str, method_name: str) -> str:
    return f"{class_name}#{method_name}"


class ResolutionIndex:
    """Method lookup owned by exactly one analysis run.

    Every method is registered under four keys: ``SimpleClass#method``,
    ``qualified.Class#method``, its signature string and the bare method
    name. Registration never overwrites: the first method registered under
    a key keeps it. Weak keys (bare name, shared signatures) therefore
    resolve to whichever method the builder registered first, which makes
    registration order part of the resolution contract.

    Each method kind has its own scope. The combined *target* scope holds
    repository and service methods and follows the same first-writer rule
    in registration order.
    """

    def __init__(self) -> None:
        self._scopes: dict[MethodKind, dict[str, MethodNode]] = {
            kind: {} for kind in MethodKind
        }
        self._targets: dict[str, MethodNode] = {}
        self._registered: list[str] = []

    def __len__(self) -> int:
        return len(self._registered)

    @property
    def registration_order(self) -> list[str]:
        """Method ids in the order they were registered."""
        return list(self._registered)

    def register(self, node: MethodNode) -> None:
        """Index *node* under its four keys without replacing earlier entries."""
        keys = [
            method_key(node.class_name, node.method_name),
            method_key(node.qualified_class, node.method_name),
        ]
        if node.signature:
            keys.append(node.signature)
        keys.append(node.method_name)

        scope = self._scopes[node.kind]
        for key in keys:
            scope.setdefault(key, node)
            if node.kind in TARGET_KINDS:
                self._targets.setdefault(key, node)
        self._registered.append(node.id)

    def register_alias(self, key: str, node: MethodNode) -> bool:
        """Add an extra key (``Interface#method``) for *node* in its own scope.

        Returns False when another method already owns the key.
        """
        scope = self._scopes[node.kind]
        if key in scope:
            return False
        scope[key] = node
        return True

    def get(self, key: str | None, kinds: Iterable[MethodKind] | None = None) -> MethodNode | None:
        """Probe *key* in the given scopes (in order), or the target scope."""
        if not key:
            return None
        if kinds is None:
            return self._targets.get(key)
        for kind in kinds:
            node = self._scopes[kind].get(key)
            if node is not None:
                return node
        return None

    def probe(
        self,
        class_names: Iterable[str | None],
        method_name: str,
        kinds: Iterable[MethodKind] | None = None,
    ) -> MethodNode | None:
        """Probe ``Class#method`` for each class name in order; first hit wins."""
        kinds = tuple(kinds) if kinds is not None else None
        for class_name in class_names:
            if not class_name:
                continue
            node = self.get(method_key(class_name, method_name), kinds)
            if node is not None:
                return node
        return None
