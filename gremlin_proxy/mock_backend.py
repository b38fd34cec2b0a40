# gremlin_proxy/mock_backend.py
# SPDX-License-Identifier: Apache-2.0
"""
In-memory backend used by tests and the demo below.

MockGremlinConnection answers the three query shapes the pipeline generates
(vertex projection, incident edge ids, edge details) from a small graph
held in memory, and shapes records the way the real driver would decode
them for the connection's dialect: mappings for GENERIC, association lists
for MANAGED. Every submitted query is recorded; failures and latency can be
injected per query.
"""

from __future__ import annotations

import asyncio
import json
import re
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from gremlin_proxy.graph.connection import AssociationList
from gremlin_proxy.graph.graph_base import Dialect, TransportError

_HAS_LABEL = re.compile(r"hasLabel\('([^']*)'\)")
_EDGE_IDS = re.compile(r"\.V\((?P<id>.+)\)\.bothE\(\)\.id\(\)$")
_EDGE_DETAIL = re.compile(r"\.E\((?P<id>.+?)\)\.project\('id', 'from'")
_VERTEX_PROJECTION = ".project('id', 'label', 'properties')"


def parse_literal(text: str) -> Any:
    """Inverse of ``query_builder.literal`` for the values the mock stores."""
    text = text.strip()
    if len(text) >= 2 and text[0] == text[-1] == "'":
        return re.sub(r"\\(.)", r"\1", text[1:-1])
    if text in ("true", "false"):
        return text == "true"
    try:
        return int(text)
    except ValueError:
        return float(text)


class MockGremlinConnection:
    """
    Fake BackendConnection over an in-memory graph.

    Args:
        dialect: Record shape and connect semantics to imitate.
        vertices: ``{"id", "label", "properties"}`` mappings; property values
            are lists, as ``valueMap()`` returns them.
        edges: ``{"id", "from", "to", "label", "properties"}`` mappings; edge
            property values are scalars.
        failures: Query substring -> exception raised when a submitted query
            contains the substring.
        delays: Query substring -> seconds to sleep before answering.
        connect_error: Raised by ``connect()`` when set.
    """

    def __init__(
        self,
        dialect: Dialect = Dialect.GENERIC,
        *,
        vertices: Iterable[Mapping[str, Any]] = (),
        edges: Iterable[Mapping[str, Any]] = (),
        failures: Optional[Mapping[str, BaseException]] = None,
        delays: Optional[Mapping[str, float]] = None,
        connect_error: Optional[BaseException] = None,
    ) -> None:
        self.dialect = dialect
        self.vertices: List[Dict[str, Any]] = [dict(v) for v in vertices]
        self.edges: List[Dict[str, Any]] = [dict(e) for e in edges]
        self.failures: Dict[str, BaseException] = dict(failures or {})
        self.delays: Dict[str, float] = dict(delays or {})
        self.connect_error = connect_error
        self.submitted: List[str] = []
        self.connected = dialect is Dialect.GENERIC
        self.closed = False

    # ---- BackendConnection ----------------------------------------------

    async def connect(self) -> "MockGremlinConnection":
        await asyncio.sleep(0)
        if self.connect_error is not None:
            raise self.connect_error
        self.connected = True
        return self

    async def submit(self, text: str) -> List[Any]:
        if self.closed:
            raise TransportError("connection is closed", details={"op": "submit"})
        if not self.connected:
            raise TransportError("submit before connect completed", details={"op": "submit"})
        self.submitted.append(text)

        for needle, seconds in self.delays.items():
            if needle in text:
                await asyncio.sleep(seconds)
        await asyncio.sleep(0)
        for needle, exc in self.failures.items():
            if needle in text:
                raise exc

        return self._answer(text)

    async def close(self) -> None:
        self.closed = True

    # ---- query answering --------------------------------------------------

    def queries_matching(self, needle: str) -> List[str]:
        return [q for q in self.submitted if needle in q]

    def _answer(self, text: str) -> List[Any]:
        match = _EDGE_IDS.search(text)
        if match:
            vid = parse_literal(match.group("id"))
            return [e["id"] for e in self.edges if vid in (e["from"], e["to"])]

        match = _EDGE_DETAIL.search(text)
        if match:
            eid = parse_literal(match.group("id"))
            return [
                self._shape(self._record_pairs(e, ("id", "from", "to", "label")))
                for e in self.edges
                if e["id"] == eid
            ]

        if _VERTEX_PROJECTION in text:
            labels = _HAS_LABEL.findall(text)
            return [
                self._shape(self._record_pairs(v, ("id", "label")))
                for v in self.vertices
                if not labels or v.get("label") in labels
            ]

        raise TransportError("mock backend cannot answer query", details={"query": text})

    def _record_pairs(self, entity: Mapping[str, Any], keys: Sequence[str]) -> List[Tuple[str, Any]]:
        # keys absent from the stored entity are left out of the record
        pairs = [(k, entity[k]) for k in keys if k in entity]
        if "properties" in entity:
            pairs.append(("properties", self._shape(list(entity["properties"].items()))))
        return pairs

    def _shape(self, pairs: Sequence[Tuple[str, Any]]) -> Any:
        if self.dialect is Dialect.MANAGED:
            return AssociationList(pairs)
        return dict(pairs)


def sample_graph(people: int = 3, *, knows: bool = True) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]]]:
    """A ring of ``person`` vertices with numeric ids joined by ``knows`` edges."""
    vertices = [
        {"id": i, "label": "person", "properties": {"name": [f"person-{i}"]}}
        for i in range(1, people + 1)
    ]
    edges: List[Dict[str, Any]] = []
    if knows and people > 1:
        for i in range(1, people + 1):
            dst = i % people + 1
            edges.append(
                {
                    "id": f"e{i}-{dst}",
                    "from": i,
                    "to": dst,
                    "label": "knows",
                    "properties": {"weight": 0.5},
                }
            )
    return vertices, edges


if __name__ == "__main__":
    """Run this module directly to see an expansion against the mock backend."""

    from gremlin_proxy.graph.wire import WireExpansionHandler

    async def _demo() -> None:
        vertices, edges = sample_graph(4)
        for dialect, host in ((Dialect.GENERIC, "localhost"), (Dialect.MANAGED, "db.cluster.neptune.amazonaws.com")):
            handler = WireExpansionHandler(
                connection_factory=lambda ctx: MockGremlinConnection(
                    ctx.dialect, vertices=vertices, edges=edges
                ),
            )
            envelope = await handler.handle(
                {"host": host, "port": 8182, "query": "g.V().hasLabel('person')", "nodeLimit": 2}
            )
            print(f"\n=== {dialect.value.upper()} ===")
            print(json.dumps(envelope, indent=2, sort_keys=True))

    asyncio.run(_demo())
