# tests/graph/test_connection.py
# SPDX-License-Identifier: Apache-2.0
"""
Backend connections over fake driver clients.

Asserts:
  • Generic connections are usable without connect() and open lazily
  • Managed connections complete a round trip in connect(); submitting
    earlier fails with TransportError, and so does connect() against an
    unreachable backend
  • Driver faults surface as TransportError; managed connections discard
    internal double faults and report the transport error being handled
  • close() never raises
"""

import asyncio
import concurrent.futures
import json
import logging
import socket
from typing import Any, Dict, List

import pytest
from gremlin_python.driver import client as gremlin_client
from gremlin_python.driver import serializer
from gremlin_python.driver.protocol import GremlinServerError
from gremlin_python.structure.io import graphsonV3d0

from gremlin_proxy.graph.connection import (
    HANDSHAKE_QUERY,
    AssociationList,
    FaultKind,
    GenericGremlinConnection,
    GremlinConnection,
    ManagedGremlinConnection,
    _AssociationListMap,
    classify_fault,
    open_connection,
)
from gremlin_proxy.graph.graph_base import Dialect, TransportError
from gremlin_proxy.graph.result_mapper import ManagedResultMapper


def _double_fault() -> None:
    try:
        raise ConnectionResetError("peer reset")
    except ConnectionResetError:
        raise RuntimeError("Event loop is closed")


class FakeResultSet:
    def __init__(self, outcome: Any) -> None:
        self._outcome = outcome

    def all(self) -> concurrent.futures.Future:
        fut: concurrent.futures.Future = concurrent.futures.Future()
        if isinstance(self._outcome, BaseException):
            fut.set_exception(self._outcome)
        else:
            fut.set_result(self._outcome)
        return fut


class FakeClient:
    """Stands in for gremlin_python.driver.client.Client."""

    def __init__(self, url: str, traversal_source: str, **kwargs: Any) -> None:
        self.url = url
        self.traversal_source = traversal_source
        self.kwargs = kwargs
        self.responses: Dict[str, Any] = {}
        self.submitted: List[str] = []
        self.close_calls = 0
        self.close_error: Any = None

    def submit(self, text: str) -> FakeResultSet:
        self.submitted.append(text)
        outcome = self.responses.get(text, [])
        if callable(outcome):
            outcome()
        return FakeResultSet(outcome)

    def close(self) -> None:
        self.close_calls += 1
        if self.close_error is not None:
            raise self.close_error


class ClientFactory:
    def __init__(self, error: Any = None, responses: Dict[str, Any] = None) -> None:
        self.error = error
        self.responses = responses or {}
        self.clients: List[FakeClient] = []

    def __call__(self, url: str, traversal_source: str, **kwargs: Any) -> FakeClient:
        if self.error is not None:
            raise self.error
        client = FakeClient(url, traversal_source, **kwargs)
        client.responses = dict(self.responses)
        self.clients.append(client)
        return client


# --------------------------------------------------------------------------- #
# Fault classification
# --------------------------------------------------------------------------- #

def test_plain_transport_error_is_transport():
    assert classify_fault(ConnectionRefusedError("refused")) is FaultKind.TRANSPORT


def test_fault_raised_while_handling_transport_error_is_internal_double():
    with pytest.raises(RuntimeError) as ei:
        _double_fault()
    assert classify_fault(ei.value) is FaultKind.INTERNAL_DOUBLE


def test_explicit_chaining_is_not_a_double_fault():
    try:
        try:
            raise OSError("io")
        except OSError as e:
            raise RuntimeError("wrapped") from e
    except RuntimeError as exc:
        assert classify_fault(exc) is FaultKind.TRANSPORT


def test_transport_error_during_transport_error_is_transport():
    try:
        try:
            raise OSError("first")
        except OSError:
            raise TimeoutError("second")
    except TimeoutError as exc:
        assert classify_fault(exc) is FaultKind.TRANSPORT


def test_server_error_counts_as_transport():
    err = GremlinServerError({"code": 500, "message": "boom", "attributes": {}})
    assert classify_fault(err) is FaultKind.TRANSPORT


# --------------------------------------------------------------------------- #
# Managed response decoding
# --------------------------------------------------------------------------- #

_RECORD = {
    "@type": "g:Map",
    "@value": [
        "id", {"@type": "g:Int64", "@value": 1},
        "label", "person",
        "properties", {
            "@type": "g:Map",
            "@value": ["name", {"@type": "g:List", "@value": ["Ada"]}],
        },
    ],
}


def test_association_list_decoding_keeps_wire_order():
    reader = graphsonV3d0.GraphSONReader({"g:Map": _AssociationListMap})
    decoded = reader.read_object(json.dumps(_RECORD))
    assert isinstance(decoded, AssociationList)
    assert decoded.keys() == ["id", "label", "properties"]
    assert decoded.get("label") == "person"
    assert decoded["id"] == 1
    assert decoded[1] == ("label", "person")

    vertex = ManagedResultMapper().map_vertex(decoded)
    assert vertex.to_dict() == {
        "id": "1",
        "label": "person",
        "properties": {"name": ["Ada"]},
        "edges": [],
    }


def test_default_reader_still_decodes_maps_as_dicts():
    decoded = graphsonV3d0.GraphSONReader().read_object(json.dumps(_RECORD))
    assert isinstance(decoded, dict)
    assert decoded["label"] == "person"


def test_association_list_missing_key():
    pairs = AssociationList([("a", 1)])
    assert pairs.get("b") is None
    with pytest.raises(KeyError):
        pairs["b"]


# --------------------------------------------------------------------------- #
# Generic connection
# --------------------------------------------------------------------------- #

@pytest.mark.asyncio
async def test_generic_ready_without_connect_and_opens_lazily():
    factory = ClientFactory(responses={"g.V().count()": [3]})
    conn = GenericGremlinConnection("localhost", 8182, client_factory=factory)
    assert conn.url == "ws://localhost:8182/gremlin"
    assert factory.clients == []

    assert await conn.submit("g.V().count()") == [3]
    assert len(factory.clients) == 1
    client = factory.clients[0]
    assert client.traversal_source == "g"
    assert isinstance(client.kwargs["message_serializer"], serializer.GraphSONSerializersV3d0)

    await conn.submit("g.V().count()")
    assert len(factory.clients) == 1


@pytest.mark.asyncio
async def test_generic_submit_failure_is_transport_error():
    boom = ConnectionResetError("reset")
    factory = ClientFactory(responses={"g.V()": boom})
    conn = GenericGremlinConnection("localhost", 8182, client_factory=factory)
    with pytest.raises(TransportError) as ei:
        await conn.submit("g.V()")
    assert ei.value.__cause__ is boom
    assert ei.value.details["op"] == "submit"


@pytest.mark.asyncio
async def test_generic_open_failure_is_transport_error():
    conn = GenericGremlinConnection(
        "localhost", 8182, client_factory=ClientFactory(error=OSError("no route"))
    )
    await conn.connect()
    with pytest.raises(TransportError) as ei:
        await conn.submit("g.V()")
    assert ei.value.details["op"] == "connect"


@pytest.mark.asyncio
async def test_generic_propagates_internal_double_fault_as_transport_error():
    factory = ClientFactory(responses={"g.V()": _double_fault})
    conn = GenericGremlinConnection("localhost", 8182, client_factory=factory)
    with pytest.raises(TransportError) as ei:
        await conn.submit("g.V()")
    assert isinstance(ei.value.__cause__, RuntimeError)


# --------------------------------------------------------------------------- #
# Managed connection
# --------------------------------------------------------------------------- #

@pytest.mark.asyncio
async def test_managed_submit_before_connect_fails():
    factory = ClientFactory()
    conn = ManagedGremlinConnection("db.neptune.amazonaws.com", 8182, client_factory=factory)
    with pytest.raises(TransportError):
        await conn.submit("g.V()")
    assert factory.clients == []


@pytest.mark.asyncio
async def test_managed_connect_performs_handshake():
    factory = ClientFactory(responses={"g.V()": [["x"]]})
    conn = ManagedGremlinConnection("db.neptune.amazonaws.com", 8182, client_factory=factory)
    assert conn.connected is False
    assert await conn.connect() is conn
    assert conn.connected is True
    client = factory.clients[0]
    assert client.url == "wss://db.neptune.amazonaws.com:8182/gremlin"
    assert isinstance(client.kwargs["message_serializer"], serializer.GraphSONMessageSerializer)
    assert client.submitted == [HANDSHAKE_QUERY]
    assert await conn.submit("g.V()") == [["x"]]
    assert client.submitted == [HANDSHAKE_QUERY, "g.V()"]


@pytest.mark.asyncio
async def test_managed_handshake_failure_is_transport_error():
    conn = ManagedGremlinConnection(
        "db.neptune.amazonaws.com", 8182, client_factory=ClientFactory(error=ConnectionRefusedError())
    )
    with pytest.raises(TransportError) as ei:
        await conn.connect()
    assert ei.value.details["op"] == "connect"


@pytest.mark.asyncio
async def test_managed_failed_round_trip_fails_connect_and_closes_client():
    factory = ClientFactory(responses={HANDSHAKE_QUERY: ConnectionRefusedError("refused")})
    conn = ManagedGremlinConnection("db.neptune.amazonaws.com", 8182, client_factory=factory)
    with pytest.raises(TransportError) as ei:
        await conn.connect()
    assert ei.value.details["op"] == "connect"
    assert isinstance(ei.value.__cause__, ConnectionRefusedError)
    assert conn.connected is False
    assert factory.clients[0].close_calls == 1

    with pytest.raises(TransportError) as ei:
        await conn.submit("g.V()")
    assert ei.value.details["op"] == "submit"


def _closed_local_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


@pytest.mark.asyncio
async def test_managed_connect_against_unreachable_backend_fails_with_real_driver():
    conn = ManagedGremlinConnection(
        "127.0.0.1", _closed_local_port(), client_factory=gremlin_client.Client, pool_size=1
    )
    with pytest.raises(TransportError) as ei:
        await asyncio.wait_for(conn.connect(), timeout=30)
    assert ei.value.details["op"] == "connect"
    assert conn.connected is False
    await conn.close()


@pytest.mark.asyncio
async def test_managed_discards_internal_double_fault(caplog):
    factory = ClientFactory(responses={"g.V()": _double_fault})
    conn = ManagedGremlinConnection("db.neptune.amazonaws.com", 8182, client_factory=factory)
    await conn.connect()
    with caplog.at_level(logging.WARNING, logger="gremlin_proxy.graph.connection"):
        with pytest.raises(TransportError) as ei:
            await conn.submit("g.V()")
    assert isinstance(ei.value.__cause__, ConnectionResetError)
    assert ei.value.details["error"] == "ConnectionResetError"
    assert "DRIVER_INTERNAL_FAULT" in caplog.text


@pytest.mark.asyncio
async def test_managed_double_fault_does_not_affect_other_submissions():
    factory = ClientFactory(responses={"bad": _double_fault, "good": [1, 2]})
    conn = ManagedGremlinConnection("db.neptune.amazonaws.com", 8182, client_factory=factory)
    await conn.connect()
    bad, good = await asyncio.gather(conn.submit("bad"), conn.submit("good"), return_exceptions=True)
    assert isinstance(bad, TransportError)
    assert good == [1, 2]


# --------------------------------------------------------------------------- #
# Lifecycle
# --------------------------------------------------------------------------- #

@pytest.mark.asyncio
async def test_close_is_quiet_and_final():
    factory = ClientFactory()
    conn = GenericGremlinConnection("localhost", 8182, client_factory=factory)
    await conn.submit("g.V()")
    factory.clients[0].close_error = RuntimeError("close failed")

    await conn.close()
    await conn.close()
    assert factory.clients[0].close_calls == 1

    with pytest.raises(TransportError):
        await conn.submit("g.V()")


@pytest.mark.asyncio
async def test_async_context_manager_closes():
    factory = ClientFactory()
    async with ManagedGremlinConnection("db.neptune.amazonaws.com", 8182, client_factory=factory) as conn:
        await conn.submit("g.V()")
    assert factory.clients[0].close_calls == 1


def test_open_connection_selects_by_dialect():
    assert isinstance(open_connection(Dialect.GENERIC, "h", 1), GenericGremlinConnection)
    managed = open_connection(Dialect.MANAGED, "h", 1, traversal_source="g")
    assert isinstance(managed, ManagedGremlinConnection)
    assert managed.dialect is Dialect.MANAGED


def test_base_connection_is_abstract():
    with pytest.raises(TypeError):
        GremlinConnection("h", 1)
