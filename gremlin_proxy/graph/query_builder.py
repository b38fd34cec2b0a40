# gremlin_proxy/graph/query_builder.py
# SPDX-License-Identifier: Apache-2.0
"""
Gremlin query construction for the expansion pipeline.

Every function here is pure: the same inputs always produce the same text.
The traversal fragment supplied by the caller is trusted, backend-native
Gremlin; ids embedded by this module are always emitted as literals so an
id containing quotes or backslashes cannot change the shape of the query.

Managed (Neptune) queries carry the DFE engine hint, see
https://docs.aws.amazon.com/neptune/latest/userguide/gremlin-query-hints-useDFE.html
"""

from __future__ import annotations

import json
from typing import Any

from gremlin_proxy.graph.graph_base import Dialect

TRAVERSAL_SOURCE = "g"
OPTIMIZER_HINT_SOURCE = "g.withSideEffect('Neptune#useDFE', true)"

_VERTEX_PROJECTION = (
    ".dedup().project('id', 'label', 'properties')"
    ".by(__.id()).by(__.label()).by(__.valueMap())"
)

_EDGE_PROJECTION = (
    ".project('id', 'from', 'to', 'label', 'properties')"
    ".by(__.id()).by(__.outV().id()).by(__.inV().id())"
    ".by(__.label()).by(__.valueMap())"
)


def literal(value: Any) -> str:
    """
    Render an id as a Gremlin literal.

    Strings become single-quoted literals (no GString interpolation);
    numbers and booleans use their literal form; anything else is
    JSON-encoded and quoted as a string.
    """
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return repr(value)
    if not isinstance(value, str):
        value = json.dumps(value, sort_keys=True)
    escaped = value.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


def with_optimizer_hint(query: str) -> str:
    """Replace the first dot-delimited segment with the hinted source."""
    segments = query.split(".")
    segments[0] = OPTIMIZER_HINT_SOURCE
    return ".".join(segments)


def _source(dialect: Dialect) -> str:
    if dialect is Dialect.MANAGED:
        return with_optimizer_hint(TRAVERSAL_SOURCE)
    return TRAVERSAL_SOURCE


def build_vertex_query(fragment: str, dialect: Dialect) -> str:
    if dialect is Dialect.MANAGED:
        fragment = with_optimizer_hint(fragment)
    return f"{fragment}{_VERTEX_PROJECTION}"


def build_vertex_edge_ids_query(vertex_id: Any, dialect: Dialect) -> str:
    return f"{_source(dialect)}.V({literal(vertex_id)}).bothE().id()"


def build_edge_detail_query(edge_id: Any, dialect: Dialect) -> str:
    return f"{_source(dialect)}.E({literal(edge_id)}){_EDGE_PROJECTION}"


__all__ = [
    "TRAVERSAL_SOURCE",
    "OPTIMIZER_HINT_SOURCE",
    "literal",
    "with_optimizer_hint",
    "build_vertex_query",
    "build_vertex_edge_ids_query",
    "build_edge_detail_query",
]
