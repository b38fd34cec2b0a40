# tests/graph/test_context.py
# SPDX-License-Identifier: Apache-2.0
"""
Request context creation and dialect selection.
"""

import pytest

from gremlin_proxy.graph.context import RequestContext, coerce_vertex_limit
from gremlin_proxy.graph.graph_base import (
    DEFAULT_VERTEX_LIMIT,
    Dialect,
    Edge,
    Vertex,
    dialect_for_host,
    stringify_id,
)
from gremlin_proxy.graph.result_mapper import GenericResultMapper, ManagedResultMapper


@pytest.mark.parametrize(
    "host, expected",
    [
        ("db-1.cluster-abc.us-east-1.neptune.amazonaws.com", Dialect.MANAGED),
        ("DB.NEPTUNE.AMAZONAWS.COM.", Dialect.MANAGED),
        ("localhost", Dialect.GENERIC),
        ("neptune.amazonaws.com.evil.example", Dialect.GENERIC),
        ("", Dialect.GENERIC),
    ],
)
def test_dialect_for_host(host, expected):
    assert dialect_for_host(host) is expected


@pytest.mark.parametrize(
    "value, expected",
    [
        (None, DEFAULT_VERTEX_LIMIT),
        (10, 10),
        (" 12 ", 12),
        ("3.7", 3),
        (0.4, DEFAULT_VERTEX_LIMIT),
        (float("inf"), DEFAULT_VERTEX_LIMIT),
        (False, DEFAULT_VERTEX_LIMIT),
        ([5], DEFAULT_VERTEX_LIMIT),
        ("-1", DEFAULT_VERTEX_LIMIT),
    ],
)
def test_coerce_vertex_limit(value, expected):
    assert coerce_vertex_limit(value) == expected


def test_create_selects_mapper_and_request_id():
    managed = RequestContext.create("x.neptune.amazonaws.com", 8182, "g.V()")
    assert managed.dialect is Dialect.MANAGED
    assert isinstance(managed.mapper, ManagedResultMapper)
    assert managed.request_id
    assert managed.warnings == []

    generic = RequestContext.create("localhost", 8182, "g.V()", node_limit=5, request_id="r")
    assert isinstance(generic.mapper, GenericResultMapper)
    assert generic.vertex_limit == 5
    assert generic.request_id == "r"


def test_non_positive_limit_falls_back():
    ctx = RequestContext("r", "h", 1, Dialect.GENERIC, "g.V()", vertex_limit=0)
    assert ctx.vertex_limit == DEFAULT_VERTEX_LIMIT


def test_stringify_id():
    assert stringify_id(42) == "42"
    assert stringify_id("abc") == "abc"
    assert stringify_id({"relationId": "x"}) == '{"relationId": "x"}'


def test_vertex_and_edge_dicts():
    e = Edge(id="e", src="1", dst="2", label="knows")
    v = Vertex(id="1", label="person", properties={"name": ["Ada"]}, edges=[e])
    assert v.native_id == "1"
    assert e.touches("1") and e.touches("2") and not e.touches("3")
    assert v.to_dict()["edges"] == [
        {"id": "e", "from": "1", "to": "2", "label": "knows", "properties": {}}
    ]


def test_default_properties_are_fresh_empty_mappings():
    a, b = Edge(id="a", src="1", dst="2", label="knows"), Edge(id="b", src="2", dst="1", label="knows")
    assert a.properties == {} and a.properties is not b.properties
    v, w = Vertex(id="1", label="person"), Vertex(id="2", label="person")
    assert v.properties == {} and v.properties is not w.properties
    assert v.to_dict()["properties"] == {}
