# gremlin_proxy/graph/graph_base.py
# SPDX-License-Identifier: Apache-2.0
"""
Gremlin Proxy: graph model, dialects and error taxonomy

Purpose
-------
Shared vocabulary for the expansion pipeline:

- Canonical Vertex / Edge shapes returned to callers, independent of
  which backend answered.
- Dialect selection (generic Gremlin Server vs. Amazon Neptune).
- Structured, normalized error taxonomy (SIEM-safe, machine-actionable).
- Metrics extension point (no-op by default).

Canonical JSON
--------------

    Vertex:
        {
            "id": "<string>",
            "label": "<string>",
            "properties": { "<name>": [ ... ] },
            "edges": [ <Edge>, ... ]
        }

    Edge:
        {
            "id": "<string>",
            "from": "<vertex id>",
            "to": "<vertex id>",
            "label": "<string>",
            "properties": { "<name>": [ ... ] }
        }

Ids are always strings. A backend-native id that is not already a string
is JSON-encoded, so numeric and string ids stay distinguishable
downstream: the number 42 becomes "42", the string "abc" stays "abc",
and the string "42" would have been sent as "42" by the backend itself.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Protocol


MANAGED_HOST_SUFFIX = "neptune.amazonaws.com"
DEFAULT_VERTEX_LIMIT = 100


# =============================================================================
# Dialects
# =============================================================================

class Dialect(str, Enum):
    """Backend wire/optimizer convention in effect for one request."""
    GENERIC = "generic"
    MANAGED = "managed"


def dialect_for_host(host: str, managed_suffix: str = MANAGED_HOST_SUFFIX) -> Dialect:
    """Select the dialect from the backend host name."""
    normalized = (host or "").strip().lower().rstrip(".")
    suffix = (managed_suffix or MANAGED_HOST_SUFFIX).strip().lower()
    if normalized.endswith(suffix):
        return Dialect.MANAGED
    return Dialect.GENERIC


def stringify_id(value: Any) -> str:
    """Canonical string form of a backend-native id."""
    if isinstance(value, str):
        return value
    return json.dumps(value)


# =============================================================================
# Core Model Types
# =============================================================================

@dataclass(frozen=True)
class Edge:
    """
    Canonical edge representation.

    Attributes:
        id: Stringified edge id.
        src: Stringified id of the out-vertex (wire key "from").
        dst: Stringified id of the in-vertex (wire key "to").
        label: Edge label.
        properties: Property name -> list of values.
    """
    id: str
    src: str
    dst: str
    label: str
    properties: Mapping[str, List[Any]] = field(default_factory=dict)

    def touches(self, vertex_id: str) -> bool:
        return vertex_id in (self.src, self.dst)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "from": self.src,
            "to": self.dst,
            "label": self.label,
            "properties": {k: list(v) for k, v in self.properties.items()},
        }


@dataclass
class Vertex:
    """
    Canonical vertex representation.

    Created with an empty edge list by a result mapper; only the
    expansion orchestrator appends to ``edges``.

    Attributes:
        id: Stringified vertex id.
        label: Vertex label.
        properties: Property name -> list of values.
        edges: Resolved incident edges, in fetch completion order.
        native_id: The id exactly as the backend returned it. Used to
            address the vertex in follow-up queries; never serialized.
    """
    id: str
    label: str
    properties: Mapping[str, List[Any]] = field(default_factory=dict)
    edges: List[Edge] = field(default_factory=list)
    native_id: Any = field(default=None, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.native_id is None:
            self.native_id = self.id

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "properties": {k: list(v) for k, v in self.properties.items()},
            "edges": [e.to_dict() for e in self.edges],
        }


# =============================================================================
# Normalized Errors
# =============================================================================

class GraphProxyError(Exception):
    """
    Base exception for proxy errors.

    Attributes:
        message: Human-readable description.
        code: Machine-readable, UPPER_SNAKE_CASE error code.
        details: Additional, SIEM-safe machine context (no credentials).
    """
    def __init__(
        self,
        message: str = "",
        *,
        code: Optional[str] = None,
        details: Optional[Mapping[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = dict(details or {})

    def __str__(self) -> str:
        base = self.message or self.__class__.__name__
        if self.code:
            base += f" [code={self.code}]"
        if self.details:
            base += f" details={self.details}"
        return base


class BadRequest(GraphProxyError):
    """Client error: malformed request body."""
    def __init__(self, message: str, **kw: Any):
        kw.setdefault("code", "BAD_REQUEST")
        super().__init__(message, **kw)


class AuthError(GraphProxyError):
    """Caller rejected by the authentication predicate."""
    def __init__(self, message: str, **kw: Any):
        kw.setdefault("code", "AUTH_ERROR")
        super().__init__(message, **kw)


class TransportError(GraphProxyError):
    """Connect or submit failure against either backend. Never retried."""
    def __init__(self, message: str, **kw: Any):
        kw.setdefault("code", "TRANSPORT_ERROR")
        super().__init__(message, **kw)


class MappingError(GraphProxyError):
    """A raw backend record is missing an expected field."""
    def __init__(self, message: str, **kw: Any):
        kw.setdefault("code", "MAPPING_ERROR")
        super().__init__(message, **kw)


class DriverInternalFault(GraphProxyError):
    """
    Fault raised by the managed driver while handling a prior error.

    Only ever constructed for logging; never propagated.
    """
    def __init__(self, message: str, **kw: Any):
        kw.setdefault("code", "DRIVER_INTERNAL_FAULT")
        super().__init__(message, **kw)


# =============================================================================
# Metrics
# =============================================================================

class MetricsSink(Protocol):
    """
    Metrics collection protocol (low-cardinality; SIEM-safe).
    """
    def observe(
        self,
        *,
        component: str,
        op: str,
        ms: float,
        ok: bool,
        code: str = "OK",
        extra: Optional[Mapping[str, Any]] = None,
    ) -> None:
        ...


class NoopMetrics:
    def observe(self, **_: Any) -> None:
        ...


__all__ = [
    "MANAGED_HOST_SUFFIX",
    "DEFAULT_VERTEX_LIMIT",
    "Dialect",
    "dialect_for_host",
    "stringify_id",
    "Vertex",
    "Edge",
    "GraphProxyError",
    "BadRequest",
    "AuthError",
    "TransportError",
    "MappingError",
    "DriverInternalFault",
    "MetricsSink",
    "NoopMetrics",
]
