# gremlin_proxy/graph/expansion.py
# SPDX-License-Identifier: Apache-2.0
"""
Fetch-and-expand pipeline.

One run turns a traversal fragment into a bounded subgraph:

    connect
      -> vertex query, mapped                 (one round trip)
      -> vertex sampling                      (warning if truncated)
      -> per vertex: incident edge ids        (concurrent)
           -> edge id sampling                (warning if truncated)
           -> per edge id: edge details       (concurrent)
                -> mapped, appended to the vertex in completion order
      -> result

The first transport or mapping failure fails the whole run; there is no
partial result and nothing is retried. Fetches still in flight at that
point are left to finish and their outcomes are ignored. The connection is
closed when the run ends either way.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from gremlin_proxy.core.error_context import attach_context
from gremlin_proxy.graph import query_builder, sampling
from gremlin_proxy.graph.connection import BackendConnection
from gremlin_proxy.graph.context import RequestContext
from gremlin_proxy.graph.graph_base import GraphProxyError, MetricsSink, NoopMetrics, Vertex

LOG = logging.getLogger(__name__)

NO_VERTICES_MESSAGE = "No vertices found for this query"


class ExpansionState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    FETCHING_VERTICES = "fetching_vertices"
    SAMPLING_VERTICES = "sampling_vertices"
    FETCHING_EDGE_IDS = "fetching_edge_ids"
    SAMPLING_EDGE_IDS = "sampling_edge_ids"
    FETCHING_EDGE_DETAILS = "fetching_edge_details"
    MERGING = "merging"
    DONE = "done"
    FAILED = "failed"


@dataclass
class ExpansionResult:
    vertices: List[Vertex] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def to_wire(self) -> Dict[str, Any]:
        return {
            "result": [v.to_dict() for v in self.vertices],
            "warnings": list(self.warnings),
        }


class ExpansionOrchestrator:
    """
    Drive one expansion over a single backend connection.

    The orchestrator owns ``connection`` for the duration of :meth:`run`
    and closes it before returning. Dialect differences are carried by the
    context (query dialect, mapper) and the connection; nothing here
    branches on the dialect.
    """

    _component = "expansion"

    def __init__(
        self,
        ctx: RequestContext,
        connection: BackendConnection,
        *,
        metrics: Optional[MetricsSink] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._ctx = ctx
        self._conn = connection
        self._metrics: MetricsSink = metrics or NoopMetrics()
        self._rng = rng
        self._state = ExpansionState.IDLE
        self.history: List[ExpansionState] = [ExpansionState.IDLE]
        self._edge_id_queries = 0
        self._edge_detail_queries = 0

    @property
    def state(self) -> ExpansionState:
        return self._state

    def _enter(self, state: ExpansionState) -> None:
        if self._state is not state:
            self._state = state
            self.history.append(state)

    def _record(self, t0: float, ok: bool, *, code: str = "OK", **extra: Any) -> None:
        try:
            self._metrics.observe(
                component=self._component,
                op="expand",
                ms=(time.monotonic() - t0) * 1000.0,
                ok=ok,
                code=code,
                extra={"dialect": self._ctx.dialect.value, **extra},
            )
        except Exception:
            # never let metrics break caller
            pass

    # ------------------------------------------------------------------ run

    async def run(self) -> ExpansionResult:
        ctx = self._ctx
        t0 = time.monotonic()
        try:
            vertices = await self._expand()
        except Exception as e:
            self._enter(ExpansionState.FAILED)
            code = e.code if isinstance(e, GraphProxyError) and e.code else type(e).__name__
            self._record(t0, False, code=code)
            raise
        finally:
            await self._conn.close()

        self._enter(ExpansionState.DONE)
        self._record(
            t0,
            True,
            vertices=len(vertices),
            edge_id_queries=self._edge_id_queries,
            edge_detail_queries=self._edge_detail_queries,
        )
        return ExpansionResult(vertices=vertices, warnings=list(ctx.warnings))

    async def _expand(self) -> List[Vertex]:
        ctx = self._ctx

        self._enter(ExpansionState.CONNECTING)
        try:
            await self._conn.connect()
        except GraphProxyError as e:
            self._attach(e, "connect")
            raise

        self._enter(ExpansionState.FETCHING_VERTICES)
        query = query_builder.build_vertex_query(ctx.traversal_fragment, ctx.dialect)
        try:
            records = await self._conn.submit(query)
            fetched = ctx.mapper.map_vertices(records)
        except GraphProxyError as e:
            self._attach(e, "fetch_vertices")
            raise
        LOG.info("[%s] Performed query: %d vertices fetched", ctx.request_id, len(fetched))

        self._enter(ExpansionState.SAMPLING_VERTICES)
        vertices, truncated = sampling.limit(fetched, ctx.vertex_limit, self._rng)
        if truncated:
            message = sampling.truncation_warning("vertices", len(fetched), ctx.vertex_limit)
            LOG.warning("[%s] %s", ctx.request_id, message)
            ctx.warn(message)

        if not vertices:
            LOG.info("[%s] %s", ctx.request_id, NO_VERTICES_MESSAGE)
            return []

        self._enter(ExpansionState.FETCHING_EDGE_IDS)
        await asyncio.gather(*(self._expand_vertex(v) for v in vertices))

        self._enter(ExpansionState.MERGING)
        LOG.info(
            "[%s] Expanded %d vertices with %d edges",
            ctx.request_id,
            len(vertices),
            sum(len(v.edges) for v in vertices),
        )
        return vertices

    # ------------------------------------------------------------- per vertex

    async def _expand_vertex(self, vertex: Vertex) -> None:
        ctx = self._ctx
        query = query_builder.build_vertex_edge_ids_query(vertex.native_id, ctx.dialect)
        self._edge_id_queries += 1
        try:
            edge_ids = await self._conn.submit(query)
        except GraphProxyError as e:
            self._attach(e, "fetch_edge_ids", vertex_id=vertex.id)
            raise

        self._enter(ExpansionState.SAMPLING_EDGE_IDS)
        sampled, truncated = sampling.limit(edge_ids, ctx.vertex_limit, self._rng)
        if truncated:
            message = sampling.truncation_warning(
                "edges", len(edge_ids), ctx.vertex_limit, vertex_id=vertex.id
            )
            LOG.warning("[%s] %s", ctx.request_id, message)
            ctx.warn(message)

        if not sampled:
            return
        self._enter(ExpansionState.FETCHING_EDGE_DETAILS)
        await asyncio.gather(*(self._fetch_edge(vertex, edge_id) for edge_id in sampled))

    async def _fetch_edge(self, vertex: Vertex, edge_id: Any) -> None:
        ctx = self._ctx
        query = query_builder.build_edge_detail_query(edge_id, ctx.dialect)
        self._edge_detail_queries += 1
        try:
            records = await self._conn.submit(query)
            edges = ctx.mapper.map_edges(records)
        except GraphProxyError as e:
            self._attach(e, "fetch_edge_details", vertex_id=vertex.id, edge_id=str(edge_id))
            raise
        vertex.edges.extend(edges)

    def _attach(self, exc: BaseException, stage: str, **extra: Any) -> None:
        attach_context(
            exc,
            component=self._component,
            stage=stage,
            request_id=self._ctx.request_id,
            dialect=self._ctx.dialect.value,
            **extra,
        )


async def expand(
    ctx: RequestContext,
    connection: BackendConnection,
    *,
    metrics: Optional[MetricsSink] = None,
    rng: Optional[random.Random] = None,
) -> ExpansionResult:
    """Run a single expansion; see :class:`ExpansionOrchestrator`."""
    return await ExpansionOrchestrator(ctx, connection, metrics=metrics, rng=rng).run()


__all__ = [
    "NO_VERTICES_MESSAGE",
    "ExpansionState",
    "ExpansionResult",
    "ExpansionOrchestrator",
    "expand",
]
