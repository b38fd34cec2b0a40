# gremlin_proxy/graph/context.py
# SPDX-License-Identifier: Apache-2.0
"""
Request-scoped state for one expansion.

A RequestContext is created per inbound call and discarded when the call
completes. It fixes the dialect once, from the backend host, and carries the
dialect-selected mapper so the orchestrator never branches on the dialect
itself. Warnings accumulate here in the order they were produced.
"""

from __future__ import annotations

import math
import uuid
from dataclasses import dataclass, field
from typing import Any, List, Optional

from gremlin_proxy.graph.graph_base import (
    DEFAULT_VERTEX_LIMIT,
    MANAGED_HOST_SUFFIX,
    Dialect,
    dialect_for_host,
)
from gremlin_proxy.graph.result_mapper import ResultMapper, mapper_for


def coerce_vertex_limit(value: Any, default: int = DEFAULT_VERTEX_LIMIT) -> int:
    """
    Normalize a caller-supplied node limit.

    Integers and numeric strings are accepted, fractional values are floored.
    Booleans, non-numeric input and anything that does not come out positive
    fall back to ``default``.
    """
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, str):
        text = value.strip()
        try:
            value = int(text)
        except ValueError:
            try:
                value = float(text)
            except ValueError:
                return default
    if isinstance(value, float):
        if not math.isfinite(value):
            return default
        value = math.floor(value)
    if not isinstance(value, int) or value <= 0:
        return default
    return value


@dataclass
class RequestContext:
    request_id: str
    backend_host: str
    backend_port: int
    dialect: Dialect
    traversal_fragment: str
    vertex_limit: int = DEFAULT_VERTEX_LIMIT
    warnings: List[str] = field(default_factory=list)
    mapper: ResultMapper = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if self.vertex_limit <= 0:
            self.vertex_limit = DEFAULT_VERTEX_LIMIT
        if self.mapper is None:
            self.mapper = mapper_for(self.dialect)

    @classmethod
    def create(
        cls,
        host: str,
        port: int,
        fragment: str,
        *,
        node_limit: Any = None,
        request_id: Optional[str] = None,
        managed_suffix: str = MANAGED_HOST_SUFFIX,
        default_limit: int = DEFAULT_VERTEX_LIMIT,
    ) -> "RequestContext":
        return cls(
            request_id=request_id or str(uuid.uuid4()),
            backend_host=host,
            backend_port=port,
            dialect=dialect_for_host(host, managed_suffix),
            traversal_fragment=fragment,
            vertex_limit=coerce_vertex_limit(node_limit, default_limit),
        )

    def warn(self, message: str) -> None:
        self.warnings.append(message)


__all__ = ["RequestContext", "coerce_vertex_limit"]
