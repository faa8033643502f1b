"""Heuristic linking of outbound HTTP calls to endpoints of the same project.

Only the URL string and the HTTP verb are available, so matching is a
scored best-effort: exact path, path pattern, suffix in either direction,
and finally a count of agreeing trailing segments.
"""
from __future__ import annotations

import logging
import re
from typing import Iterable, Protocol

from src.shared.constants import (
    DYNAMIC_PLACEHOLDER,
    KNOWN_HTTP_METHODS,
    MIN_MATCH_SCORE,
    SCORE_CANDIDATE_SUFFIX,
    SCORE_ENDPOINT_SUFFIX,
    SCORE_EXACT,
    SCORE_PATTERN,
)
from src.shared.models.analysis import MatchResult
from src.shared.models.graph import EndpointNode, ExternalCallNode, ResolvedGraph

logger = logging.getLogger(__name__)

RESOLUTION_REASON = "Matched endpoint in project graph"

_SCHEME = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://")
_HOST = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://([^:/?#]+)")
_IPV4 = re.compile(r"^\d{1,3}(\.\d{1,3}){3}$")
_MULTI_SLASH = re.compile(r"/{2,}")
_PARAM = re.compile(r"\{[^}]+\}")
_LOOPBACK = frozenset({"localhost", "127.0.0.1", "0.0.0.0"})


class _CallSite(Protocol):
    http_method: str | None
    url: str | None


def normalize_url(url: str | None) -> str:
    """Reduce *url* to a comparable path: ``""`` or ``/a/b``.

    A URL with a host but no path after it cannot be normalized.
    """
    if not url:
        return ""
    path = url.strip()
    if _SCHEME.match(path):
        rest = _SCHEME.sub("", path, count=1)
        slash = rest.find("/")
        if slash == -1:
            return ""
        path = rest[slash:]
    path = path.split("?", 1)[0].split("#", 1)[0]
    path = path.replace(DYNAMIC_PLACEHOLDER, "")
    path = _MULTI_SLASH.sub("/", path)
    if path.endswith("/"):
        path = path[:-1]
    if path and not path.startswith("/"):
        path = "/" + path
    return path


def expand_candidates(path: str) -> list[str]:
    """The path itself, then with one and two leading segments removed.

    Callers going through a gateway often prefix the service name, which
    the target endpoint does not declare.
    """
    segments = _segments(path)
    candidates = [path]
    if len(segments) >= 2:
        candidates.append("/" + "/".join(segments[1:]))
    if len(segments) >= 3:
        candidates.append("/" + "/".join(segments[2:]))
    return candidates


def matches_pattern(path: str, pattern: str) -> bool:
    """``{param}`` matches one segment; a trailing ``*``/``**`` any suffix."""
    wildcard_tail = False
    body = pattern
    for tail in ("/**", "/*"):
        if body.endswith(tail):
            body = body[: -len(tail)]
            wildcard_tail = True
            break
    regex = ""
    last = 0
    for match in _PARAM.finditer(body):
        regex += re.escape(body[last:match.start()]) + "[^/]+"
        last = match.end()
    regex += re.escape(body[last:])
    if wildcard_tail:
        regex += "(/.*)?"
    return re.fullmatch(regex, path) is not None


def score_path(candidate: str, endpoint_path: str) -> int:
    """Score *candidate* against one normalized endpoint path; 0 is no match."""
    if candidate == endpoint_path:
        return SCORE_EXACT
    if matches_pattern(candidate, endpoint_path):
        return SCORE_PATTERN
    if candidate.endswith(endpoint_path):
        return SCORE_CANDIDATE_SUFFIX
    if endpoint_path.endswith(candidate):
        return SCORE_ENDPOINT_SUFFIX

    matching = 0
    for ours, theirs in zip(reversed(_segments(candidate)), reversed(_segments(endpoint_path))):
        if ours == theirs or _is_param(theirs):
            matching += 1
        else:
            break
    if matching >= 2:
        return matching + 1
    return 0


def is_known_verb(verb: str | None) -> bool:
    return bool(verb) and verb.upper() in KNOWN_HTTP_METHODS


def extract_target_service(url: str | None) -> str | None:
    """Guess the called service from the host: ``http://user-service.ns.svc`` -> ``user-service``."""
    if not url:
        return None
    match = _HOST.match(url.strip())
    if match is None:
        return None
    host = match.group(1).lower()
    if host in _LOOPBACK or _IPV4.match(host):
        return None
    return host.split(".", 1)[0] or None


def _segments(path: str) -> list[str]:
    return [s for s in path.split("/") if s]


def _is_param(segment: str) -> bool:
    return segment.startswith("{") and segment.endswith("}")


class ExternalCallMatcher:
    """Scores outbound calls against a set of endpoints.

    Matching is deterministic for a fixed endpoint list: ties keep the
    endpoint seen first, so callers pass endpoints in a stable order.
    """

    def __init__(self, min_score: int = MIN_MATCH_SCORE) -> None:
        self._min_score = min_score

    def match(self, call: _CallSite, endpoints: Iterable[EndpointNode]) -> MatchResult:
        """Find the best endpoint for *call*. Never raises."""
        target_service = extract_target_service(call.url)
        normalized = normalize_url(call.url)
        if not normalized:
            return MatchResult(target_service=target_service, reason="URL could not be normalized")

        candidates = expand_candidates(normalized)
        best: EndpointNode | None = None
        best_score = 0
        best_path: str | None = None
        for endpoint in endpoints:
            if not self._verbs_agree(call.http_method, endpoint.http_method):
                continue
            endpoint_path = normalize_url(endpoint.path)
            if not endpoint_path:
                continue
            for candidate in candidates:
                score = score_path(candidate, endpoint_path)
                if score > best_score:
                    best, best_score, best_path = endpoint, score, candidate

        if best is None or best_score < self._min_score:
            return MatchResult(
                score=best_score,
                target_service=target_service,
                reason="No endpoint scored above the acceptance threshold",
            )
        return MatchResult(
            resolved=True,
            score=best_score,
            endpoint_id=best.id,
            matched_path=best_path,
            target_service=target_service,
            reason=RESOLUTION_REASON,
        )

    def resolve(self, call: ExternalCallNode, endpoints: Iterable[EndpointNode]) -> MatchResult | None:
        """Match *call* and record the outcome on it.

        Already-resolved calls are left untouched and return ``None``.
        """
        if call.resolved:
            return None
        endpoints = list(endpoints)
        result = self.match(call, endpoints)
        if result.target_service and call.target_service is None:
            call.target_service = result.target_service
        if not result.resolved:
            logger.debug(
                "Unmatched external call %s %s (best score %d)",
                call.http_method, call.url, result.score,
            )
            return result

        endpoint = next(e for e in endpoints if e.id == result.endpoint_id)
        call.resolved = True
        call.target_endpoint_id = endpoint.id
        call.target_component = endpoint.component_name
        call.target_handler_method = endpoint.handler_method_name
        call.resolution_reason = result.reason
        call.match_score = result.score
        logger.debug(
            "Resolved external call %s %s -> %s.%s (score %d)",
            call.http_method, call.url, endpoint.component_name,
            endpoint.handler_method_name, result.score,
        )
        return result

    def resolve_all(self, graph: ResolvedGraph) -> int:
        """Resolve every external call of *graph* against its own endpoints."""
        endpoints = [graph.endpoints[key] for key in sorted(graph.endpoints)]
        resolved = 0
        for call_id in sorted(graph.external_calls):
            result = self.resolve(graph.external_calls[call_id], endpoints)
            if result is not None and result.resolved:
                resolved += 1
        logger.info(
            "Resolved %d of %d external calls for project %s",
            resolved, len(graph.external_calls), graph.project_id,
        )
        return resolved

    @staticmethod
    def _verbs_agree(call_verb: str | None, endpoint_verb: str | None) -> bool:
        if not is_known_verb(call_verb) or not is_known_verb(endpoint_verb):
            return True
        return call_verb.upper() == endpoint_verb.upper()
