# tests/conftest.py
# SPDX-License-Identifier: Apache-2.0
"""
Shared fixtures for the expansion test-suite.

Nothing here touches the network: backends are MockGremlinConnection
instances or fake driver clients.
"""

from __future__ import annotations

import random
from typing import Any, Callable, Dict, List

import pytest

from gremlin_proxy.graph.context import RequestContext
from gremlin_proxy.graph.graph_base import Dialect
from gremlin_proxy.mock_backend import MockGremlinConnection, sample_graph

GENERIC_HOST = "gremlin.internal"
MANAGED_HOST = "db-1.cluster-abc.us-east-1.neptune.amazonaws.com"


@pytest.fixture(params=[Dialect.GENERIC, Dialect.MANAGED], ids=lambda d: d.value)
def dialect(request) -> Dialect:
    return request.param


@pytest.fixture
def host_for() -> Callable[[Dialect], str]:
    def _host(d: Dialect) -> str:
        return MANAGED_HOST if d is Dialect.MANAGED else GENERIC_HOST
    return _host


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture
def make_ctx(host_for) -> Callable[..., RequestContext]:
    def _make(d: Dialect, fragment: str = "g.V()", node_limit: Any = None) -> RequestContext:
        return RequestContext.create(
            host_for(d),
            8182,
            fragment,
            node_limit=node_limit,
            request_id="req-test",
        )
    return _make


@pytest.fixture
def make_backend() -> Callable[..., MockGremlinConnection]:
    def _make(
        d: Dialect,
        vertices: List[Dict[str, Any]] = (),
        edges: List[Dict[str, Any]] = (),
        **kwargs: Any,
    ) -> MockGremlinConnection:
        return MockGremlinConnection(d, vertices=vertices, edges=edges, **kwargs)
    return _make


@pytest.fixture
def ring_graph():
    return sample_graph(3)
