"""Stable node identifiers that survive line-number churn between branches.

Ids are what the snapshot diff compares, so two analyses of the same code
must always produce the same id for the same element.
"""
from __future__ import annotations

import re

_PATH_VARIABLE = re.compile(r"\{[^}]+\}")
_NUMERIC_SEGMENT = re.compile(r"/\d+(?=/|$)")
_UUID_SEGMENT = re.compile(
    r"/[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}(?=/|$)"
)
_SCHEME = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://")


def component_id(qualified_name: str) -> str:
    return f"component:{qualified_name}"


def method_id(
    qualified_class: str,
    method_name: str,
    parameter_types: list[str] | None = None,
    signature: str | None = None,
) -> str:
    """``method:com.acme.OrderService.place(String,int)``.

    Explicit parameter types win; otherwise they are read from the
    parenthesised part of *signature*.
    """
    if parameter_types:
        params = ",".join(_simple_type(p) for p in parameter_types)
    else:
        params = _params_from_signature(signature)
    return f"method:{qualified_class}.{method_name}({params})"


def endpoint_id(http_method: str | None, path: str) -> str:
    verb = (http_method or "ANY").upper()
    return f"endpoint:{verb}:{normalize_id_path(path)}"


def external_call_id(
    http_method: str | None, url: str | None, source_method_id: str
) -> str:
    verb = (http_method or "UNKNOWN").upper()
    return f"external:{verb}:{normalize_external_url(url)}:{source_method_id}"


def topic_id(name: str) -> str:
    return f"topic:{name}"


def table_id(name: str) -> str:
    return f"table:{name.lower()}"


def relationship_id(edge_type: str, source: str, target: str) -> str:
    return f"{edge_type.lower()}:{source}->{target}"


def normalize_id_path(path: str | None) -> str:
    """Replace path variables, numeric ids and UUIDs with ``{*}``."""
    if not path:
        return ""
    normalized = _PATH_VARIABLE.sub("{*}", path)
    normalized = _NUMERIC_SEGMENT.sub("/{*}", normalized)
    normalized = _UUID_SEGMENT.sub("/{*}", normalized)
    if len(normalized) > 1 and normalized.endswith("/"):
        normalized = normalized[:-1]
    return normalized


def normalize_external_url(url: str | None) -> str:
    if not url:
        return ""
    path = url
    if _SCHEME.match(path):
        path = _SCHEME.sub("", path, count=1)
        slash = path.find("/")
        path = path[slash:] if slash != -1 else "/"
    path = path.split("?", 1)[0].split("#", 1)[0]
    path = path.replace("<dynamic>", "{*}")
    return normalize_id_path(path)


def _simple_type(type_name: str) -> str:
    base = type_name.strip()
    generic = base.find("<")
    if generic != -1:
        base = base[:generic]
    return base.rsplit(".", 1)[-1]


def _params_from_signature(signature: str | None) -> str:
    if not signature or "(" not in signature:
        return ""
    start = signature.find("(")
    end = signature.rfind(")")
    if end <= start:
        return ""
    params = signature[start + 1:end].strip()
    if not params:
        return ""
    types = []
    for param in _split_params(params):
        # "String name" -> "String"; "final List<Order> orders" -> "List"
        tokens = [t for t in param.split() if t != "final"]
        if tokens:
            types.append(_simple_type(tokens[0]))
    return ",".join(types)


def _split_params(params: str) -> list[str]:
    """Split on commas that are not inside generic brackets."""
    parts: list[str] = []
    depth = 0
    current = []
    for char in params:
        if char == "<":
            depth += 1
        elif char == ">":
            depth -= 1
        elif char == "," and depth == 0:
            parts.append("".join(current))
            current = []
            continue
        current.append(char)
    if current:
        parts.append("".join(current))
    return [p.strip() for p in parts if p.strip()]
