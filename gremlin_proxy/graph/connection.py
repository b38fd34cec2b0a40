# gremlin_proxy/graph/connection.py
# SPDX-License-Identifier: Apache-2.0
"""
Backend connections for the expansion pipeline.

This module wraps the gremlinpython driver behind a small async capability
set used by the orchestrator:

    await conn.connect()             # ready to submit
    records = await conn.submit(q)   # list of raw records
    await conn.close()

Design notes
------------
- gremlinpython drives its own event loop, so every driver call runs on a
  worker thread via `asyncio.to_thread`.
- One connection object per request. Nothing here is pooled or shared
  across requests; the driver's own socket pool belongs to the connection.
- Generic (Gremlin Server): ``ws://host:port/gremlin``, traversal source
  ``g``, GraphSON 3.0. Ready immediately after construction; the driver
  client is opened by the first submit.
- Managed (Neptune): ``wss://host:port/gremlin``. ``connect()`` returns only
  after the websocket handshake completed; submitting before that fails.
  Maps in responses are decoded as ordered association lists. IAM-enabled
  clusters need a SigV4 signer (see `gremlin_proxy.graph.signing`).

Fault classification
--------------------
Every driver fault is classified before it leaves this module:

    TRANSPORT        the request failed; raised as TransportError.
    INTERNAL_DOUBLE  the driver raised while it was already handling a
                     transport error (for example closing a socket on an
                     event loop that is gone).

Managed connections log and discard INTERNAL_DOUBLE faults and fail the
submission with the transport error that was being handled. Generic
connections propagate every fault as TransportError.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple

import aiohttp
from gremlin_python.driver import client as gremlin_client
from gremlin_python.driver import serializer
from gremlin_python.driver.protocol import GremlinServerError
from gremlin_python.structure.io import graphsonV3d0

from gremlin_proxy.graph.graph_base import Dialect, DriverInternalFault, TransportError
from gremlin_proxy.graph.signing import SigV4Signer

LOG = logging.getLogger(__name__)

TRAVERSAL_SOURCE = "g"
HANDSHAKE_QUERY = "g.inject(0)"

DRIVER_TRANSPORT_ERRORS: Tuple[type, ...] = (
    GremlinServerError,
    aiohttp.ClientError,
    asyncio.TimeoutError,
    OSError,
)


# =============================================================================
# Capability
# =============================================================================

class BackendConnection(Protocol):
    dialect: Dialect

    async def connect(self) -> "BackendConnection":
        ...

    async def submit(self, text: str) -> List[Any]:
        ...

    async def close(self) -> None:
        ...


# =============================================================================
# Fault classification
# =============================================================================

class FaultKind(str, Enum):
    TRANSPORT = "transport"
    INTERNAL_DOUBLE = "internal_double"


def classify_fault(exc: BaseException) -> FaultKind:
    """
    Classify a driver fault.

    A fault is an internal double fault when it is not itself a transport
    error but was raised while a transport error was being handled
    (implicit exception context, not an explicit ``raise ... from``).
    """
    prior = exc.__context__
    if (
        prior is not None
        and not exc.__suppress_context__
        and isinstance(prior, DRIVER_TRANSPORT_ERRORS)
        and not isinstance(exc, DRIVER_TRANSPORT_ERRORS)
    ):
        return FaultKind.INTERNAL_DOUBLE
    return FaultKind.TRANSPORT


# =============================================================================
# Managed response decoding
# =============================================================================

class AssociationList(list):
    """
    Ordered ``(key, value)`` pairs decoded from a GraphSON ``g:Map``.

    Keys are not required to be hashable. Lookup by key is supported for
    the driver's own use of response envelopes (``meta.get(...)``).
    """

    def get(self, key: Any, default: Any = None) -> Any:
        for k, v in self:
            if k == key:
                return v
        return default

    def keys(self) -> List[Any]:
        return [k for k, _ in self]

    def items(self) -> List[Tuple[Any, Any]]:
        return list(self)

    def __getitem__(self, index):
        if isinstance(index, (int, slice)):
            return super().__getitem__(index)
        for k, v in self:
            if k == index:
                return v
        raise KeyError(index)


# Underscore-prefixed: the driver's type metaclass registers public
# subclasses globally, which would change decoding for every client.
class _AssociationListMap(graphsonV3d0.MapType):
    @classmethod
    def objectify(cls, l, reader):
        return AssociationList(
            (reader.to_object(l[i]), reader.to_object(l[i + 1]))
            for i in range(0, len(l), 2)
        )


def association_list_serializer() -> serializer.GraphSONMessageSerializer:
    """GraphSON 3.0 serializer that keeps maps as association lists."""
    return serializer.GraphSONMessageSerializer(
        reader=graphsonV3d0.GraphSONReader({"g:Map": _AssociationListMap}),
        writer=graphsonV3d0.GraphSONWriter(),
        version=b"application/vnd.gremlin-v3.0+json",
    )


# =============================================================================
# Connections
# =============================================================================

ClientFactory = Callable[..., Any]


class GremlinConnection(ABC):
    """
    Shared driver plumbing for both dialects.

    Subclasses choose the URL scheme, the response serializer, when the
    driver client is opened and whether internal double faults are
    suppressed.
    """

    dialect: Dialect
    scheme = "ws"
    suppress_internal_faults = False

    def __init__(
        self,
        host: str,
        port: int,
        *,
        traversal_source: str = TRAVERSAL_SOURCE,
        request_id: Optional[str] = None,
        client_factory: Optional[ClientFactory] = None,
        pool_size: Optional[int] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        self._url = f"{self.scheme}://{host}:{port}/gremlin"
        self._traversal_source = traversal_source or TRAVERSAL_SOURCE
        self._request_id = request_id
        self._client_factory = client_factory or gremlin_client.Client
        self._pool_size = pool_size
        self._headers = dict(headers or {})
        self._client: Any = None
        self._lock = threading.Lock()
        self._closed = False

    @property
    def url(self) -> str:
        return self._url

    @property
    def connected(self) -> bool:
        return self._client is not None

    # ---- lifecycle helpers --------------------------------------------------

    async def __aenter__(self) -> "GremlinConnection":
        return await self.connect()

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    @abstractmethod
    async def connect(self) -> "GremlinConnection":
        ...

    async def close(self) -> None:
        """Close the driver client; cleanup failures are logged, never raised."""
        self._closed = True
        client, self._client = self._client, None
        if client is None:
            return
        await asyncio.to_thread(self._close_client, client)

    # ---- internal helpers ---------------------------------------------------

    def _serializer(self) -> Any:
        return serializer.GraphSONSerializersV3d0()

    def _client_kwargs(self) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {"message_serializer": self._serializer()}
        if self._pool_size is not None:
            kwargs["pool_size"] = self._pool_size
        if self._headers:
            kwargs["headers"] = self._headers
        return kwargs

    def _new_client(self) -> Any:
        # The driver opens its websocket on the first write, not here.
        return self._client_factory(self._url, self._traversal_source, **self._client_kwargs())

    def _open_client(self) -> Any:
        with self._lock:
            if self._client is None:
                self._client = self._new_client()
            return self._client

    def _close_client(self, client: Any) -> None:
        try:
            client.close()
        except Exception as exc:  # noqa: BLE001
            LOG.debug("[%s] error while closing %s: %r", self._request_id, self._url, exc)

    @abstractmethod
    async def _client_for_submit(self) -> Any:
        ...

    @staticmethod
    def _submit_blocking(client: Any, text: str) -> List[Any]:
        return list(client.submit(text).all().result())

    def _effective_fault(self, exc: BaseException, *, op: str) -> BaseException:
        """Apply the dialect's classification rule; return the fault to report."""
        if not self.suppress_internal_faults:
            return exc
        if classify_fault(exc) is not FaultKind.INTERNAL_DOUBLE:
            return exc
        prior = exc.__context__
        fault = DriverInternalFault(
            "driver raised while handling a transport error",
            details={"op": op, "fault": type(exc).__name__, "while_handling": type(prior).__name__},
        )
        LOG.warning("[%s] suppressed %s: %r", self._request_id, fault, exc)
        return prior

    def _transport_error(self, fault: BaseException, *, op: str) -> TransportError:
        if isinstance(fault, TransportError):
            return fault
        details: Dict[str, Any] = {"op": op, "url": self._url, "error": type(fault).__name__}
        status = getattr(fault, "status_code", None)
        if status is not None:
            details["status_code"] = status
        return TransportError(f"gremlin {op} failed: {fault}", details=details)

    def _fail(self, exc: BaseException, *, op: str) -> TransportError:
        fault = self._effective_fault(exc, op=op)
        error = self._transport_error(fault, op=op)
        if error is not fault:
            error.__cause__ = fault
            error.__suppress_context__ = True
        return error

    # ---- public API ---------------------------------------------------------

    async def submit(self, text: str) -> List[Any]:
        if self._closed:
            raise TransportError("connection is closed", details={"op": "submit", "url": self._url})
        client = await self._client_for_submit()
        LOG.debug("[%s] submit: %s", self._request_id, text)
        try:
            return await asyncio.to_thread(self._submit_blocking, client, text)
        except Exception as exc:  # noqa: BLE001
            raise self._fail(exc, op="submit")


class GenericGremlinConnection(GremlinConnection):
    """Gremlin Server connection; usable right after construction."""

    dialect = Dialect.GENERIC
    scheme = "ws"

    async def connect(self) -> "GenericGremlinConnection":
        return self

    async def _client_for_submit(self) -> Any:
        if self._client is not None:
            return self._client
        try:
            return await asyncio.to_thread(self._open_client)
        except Exception as exc:  # noqa: BLE001
            raise self._fail(exc, op="connect")


class ManagedGremlinConnection(GremlinConnection):
    """
    Neptune connection; ``connect()`` completes the handshake.

    The driver only opens its websocket on the first write, so ``connect()``
    runs one trivial round trip before it reports the connection ready.
    With a ``signer`` the upgrade request carries SigV4 headers, signed
    when the driver client is built.
    """

    dialect = Dialect.MANAGED
    scheme = "wss"
    suppress_internal_faults = True

    def __init__(self, host: str, port: int, *, signer: Optional[SigV4Signer] = None, **kwargs: Any) -> None:
        super().__init__(host, port, **kwargs)
        self._signer = signer

    def _serializer(self) -> Any:
        return association_list_serializer()

    def _client_kwargs(self) -> Dict[str, Any]:
        kwargs = super()._client_kwargs()
        if self._signer is not None:
            kwargs["headers"] = {**kwargs.get("headers", {}), **self._signer.headers_for(self._url)}
        return kwargs

    def _handshake(self) -> Any:
        client = self._new_client()
        try:
            self._submit_blocking(client, HANDSHAKE_QUERY)
        except Exception:
            self._close_client(client)
            raise
        return client

    async def connect(self) -> "ManagedGremlinConnection":
        if self._closed:
            raise TransportError("connection is closed", details={"op": "connect", "url": self._url})
        if self._client is not None:
            return self
        try:
            client = await asyncio.to_thread(self._handshake)
        except Exception as exc:  # noqa: BLE001
            raise self._fail(exc, op="connect")
        if self._closed:
            await asyncio.to_thread(self._close_client, client)
            raise TransportError("connection is closed", details={"op": "connect", "url": self._url})
        self._client = client
        LOG.info("[%s] connected to %s", self._request_id, self._url)
        return self

    async def _client_for_submit(self) -> Any:
        if self._client is None:
            raise TransportError(
                "submit before connect completed",
                details={"op": "submit", "url": self._url},
            )
        return self._client


def open_connection(
    dialect: Dialect,
    host: str,
    port: int,
    *,
    request_id: Optional[str] = None,
    traversal_source: str = TRAVERSAL_SOURCE,
    **kwargs: Any,
) -> GremlinConnection:
    """Construct (not connect) the connection for ``dialect``."""
    cls = ManagedGremlinConnection if dialect is Dialect.MANAGED else GenericGremlinConnection
    return cls(
        host,
        port,
        traversal_source=traversal_source,
        request_id=request_id,
        **kwargs,
    )


__all__ = [
    "TRAVERSAL_SOURCE",
    "HANDSHAKE_QUERY",
    "DRIVER_TRANSPORT_ERRORS",
    "BackendConnection",
    "FaultKind",
    "classify_fault",
    "AssociationList",
    "association_list_serializer",
    "GremlinConnection",
    "GenericGremlinConnection",
    "ManagedGremlinConnection",
    "open_connection",
]
