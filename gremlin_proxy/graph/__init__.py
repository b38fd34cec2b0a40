# gremlin_proxy/graph/__init__.py
# SPDX-License-Identifier: Apache-2.0
"""
Graph fetch-and-expansion pipeline.

Public types of the pipeline, re-exported for clean imports. The wire
handler lives in ``gremlin_proxy.graph.wire``.
"""

from gremlin_proxy.graph.graph_base import (
    DEFAULT_VERTEX_LIMIT,
    MANAGED_HOST_SUFFIX,
    AuthError,
    BadRequest,
    Dialect,
    DriverInternalFault,
    Edge,
    GraphProxyError,
    MappingError,
    MetricsSink,
    NoopMetrics,
    TransportError,
    Vertex,
    dialect_for_host,
    stringify_id,
)
from gremlin_proxy.graph.context import RequestContext, coerce_vertex_limit
from gremlin_proxy.graph.connection import (
    BackendConnection,
    FaultKind,
    GenericGremlinConnection,
    ManagedGremlinConnection,
    classify_fault,
    open_connection,
)
from gremlin_proxy.graph.expansion import (
    ExpansionOrchestrator,
    ExpansionResult,
    ExpansionState,
    expand,
)
from gremlin_proxy.graph.result_mapper import (
    GenericResultMapper,
    ManagedResultMapper,
    ResultMapper,
    mapper_for,
)
from gremlin_proxy.graph.signing import SigV4Signer

__all__ = [
    "DEFAULT_VERTEX_LIMIT",
    "MANAGED_HOST_SUFFIX",
    "AuthError",
    "BadRequest",
    "Dialect",
    "DriverInternalFault",
    "Edge",
    "GraphProxyError",
    "MappingError",
    "MetricsSink",
    "NoopMetrics",
    "TransportError",
    "Vertex",
    "dialect_for_host",
    "stringify_id",
    "RequestContext",
    "coerce_vertex_limit",
    "BackendConnection",
    "FaultKind",
    "GenericGremlinConnection",
    "ManagedGremlinConnection",
    "classify_fault",
    "open_connection",
    "ExpansionOrchestrator",
    "ExpansionResult",
    "ExpansionState",
    "expand",
    "GenericResultMapper",
    "ManagedResultMapper",
    "ResultMapper",
    "mapper_for",
    "SigV4Signer",
]
