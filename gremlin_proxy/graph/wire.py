# gremlin_proxy/graph/wire.py
# SPDX-License-Identifier: Apache-2.0
"""
Transport-agnostic wire handler for expansion requests.

Plug into HTTP, WebSocket, a CLI, etc. The handler accepts the decoded JSON
body of one request and always returns an envelope; it never raises.

Request body
------------

    {
        "host": "<backend host>",
        "port": 8182,
        "query": "g.V().hasLabel('person')",
        "nodeLimit": 100,          # optional
        "auth": <opaque>           # optional, handed to the authenticator
    }

Success envelope
----------------

    {"ok": true, "code": "OK", "ms": 12.3,
     "result": [<Vertex>, ...], "warnings": ["...", ...]}

Error envelope
--------------

    {"ok": false, "code": "TRANSPORT_ERROR", "error": "TransportError",
     "message": "...", "details": {...} | null, "ms": 4.5}

Error envelopes never carry a partial result. ``status_for_code`` maps an
envelope code to the HTTP status a transport collaborator should use.
"""

from __future__ import annotations

import logging
import time
import uuid
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

from gremlin_proxy.config import ProxySettings
from gremlin_proxy.core.error_context import get_context
from gremlin_proxy.graph.connection import BackendConnection, open_connection
from gremlin_proxy.graph.context import RequestContext
from gremlin_proxy.graph.expansion import ExpansionOrchestrator, ExpansionResult
from gremlin_proxy.graph.graph_base import (
    AuthError,
    BadRequest,
    Dialect,
    GraphProxyError,
    MetricsSink,
    NoopMetrics,
)
from gremlin_proxy.graph.signing import SigV4Signer

LOG = logging.getLogger(__name__)

Authenticator = Callable[[Any], Awaitable[bool]]
ConnectionFactory = Callable[[RequestContext], BackendConnection]

_STATUS_BY_CODE = {
    "OK": 200,
    "BAD_REQUEST": 400,
    "AUTH_ERROR": 401,
    "TRANSPORT_ERROR": 502,
    "MAPPING_ERROR": 502,
}


def status_for_code(code: Optional[str]) -> int:
    return _STATUS_BY_CODE.get(code or "", 500)


async def allow_all(credential: Any) -> bool:
    return True


def _error_to_wire(e: Exception, ms: float) -> Dict[str, Any]:
    """
    Map GraphProxyError (or unexpected Exception) to the error envelope.
    """
    if isinstance(e, GraphProxyError):
        return {
            "ok": False,
            "code": e.code or type(e).__name__.upper(),
            "error": type(e).__name__,
            "message": e.message,
            "details": e.details or None,
            "ms": ms,
        }
    return {
        "ok": False,
        "code": "UNAVAILABLE",
        "error": type(e).__name__,
        "message": str(e) or "internal error",
        "details": None,
        "ms": ms,
    }


def _success_to_wire(result: ExpansionResult, ms: float) -> Dict[str, Any]:
    return {
        "ok": True,
        "code": "OK",
        "ms": ms,
        **result.to_wire(),
    }


def _parse_port(value: Any) -> int:
    if isinstance(value, bool):
        raise BadRequest("'port' must be an integer", details={"field": "port"})
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    if not isinstance(value, int) or not 0 < value < 65536:
        raise BadRequest("'port' must be an integer in 1..65535", details={"field": "port"})
    return value


def _require_text(body: Mapping[str, Any], name: str) -> str:
    value = body.get(name)
    if not isinstance(value, str) or not value.strip():
        raise BadRequest(f"missing or invalid '{name}'", details={"field": name})
    return value.strip()


def default_connection_factory(
    ctx: RequestContext,
    *,
    traversal_source: str = "g",
    signer: Optional[SigV4Signer] = None,
) -> BackendConnection:
    kwargs: Dict[str, Any] = {}
    if signer is not None and ctx.dialect is Dialect.MANAGED:
        kwargs["signer"] = signer
    return open_connection(
        ctx.dialect,
        ctx.backend_host,
        ctx.backend_port,
        request_id=ctx.request_id,
        traversal_source=traversal_source,
        **kwargs,
    )


class WireExpansionHandler:
    """
    Reference wire adapter for the expansion pipeline.

    Collaborators are injected: the authentication predicate, the
    connection factory (one fresh connection per request), a metrics sink
    and the request id source. With ``settings.iam_auth`` the default
    factory signs Neptune handshakes with SigV4.
    """

    def __init__(
        self,
        settings: Optional[ProxySettings] = None,
        *,
        authenticator: Optional[Authenticator] = None,
        connection_factory: Optional[ConnectionFactory] = None,
        metrics: Optional[MetricsSink] = None,
        request_id_factory: Callable[[], Any] = uuid.uuid4,
    ) -> None:
        self._settings = settings or ProxySettings()
        self._authenticator = authenticator or allow_all
        self._connection_factory = connection_factory or self._open
        self._metrics = metrics or NoopMetrics()
        self._request_id_factory = request_id_factory
        self._signer = SigV4Signer(self._settings.aws_region) if self._settings.iam_auth else None

    def _open(self, ctx: RequestContext) -> BackendConnection:
        return default_connection_factory(
            ctx, traversal_source=self._settings.traversal_source, signer=self._signer
        )

    def _context_from_wire(self, body: Any) -> RequestContext:
        if not isinstance(body, Mapping):
            raise BadRequest("request body must be a JSON object")
        host = _require_text(body, "host")
        port = _parse_port(body.get("port"))
        fragment = _require_text(body, "query")
        return RequestContext.create(
            host,
            port,
            fragment,
            node_limit=body.get("nodeLimit"),
            request_id=str(self._request_id_factory()),
            managed_suffix=self._settings.managed_host_suffix,
            default_limit=self._settings.default_node_limit,
        )

    async def handle(self, body: Mapping[str, Any]) -> Dict[str, Any]:
        """Run one expansion request and return its envelope."""
        t0 = time.monotonic()
        try:
            credential = body.get("auth") if isinstance(body, Mapping) else None
            if not await self._authenticator(credential):
                raise AuthError("caller is not authenticated")

            ctx = self._context_from_wire(body)
            LOG.info(
                "[%s] expand on %s:%s (%s), nodeLimit=%d",
                ctx.request_id,
                ctx.backend_host,
                ctx.backend_port,
                ctx.dialect.value,
                ctx.vertex_limit,
            )
            connection = self._connection_factory(ctx)
            orchestrator = ExpansionOrchestrator(ctx, connection, metrics=self._metrics)
            result = await orchestrator.run()
            return _success_to_wire(result, (time.monotonic() - t0) * 1000.0)
        except Exception as e:
            ms = (time.monotonic() - t0) * 1000.0
            context = get_context(e)
            if isinstance(e, (BadRequest, AuthError)):
                LOG.info("rejected request: %s", e)
            else:
                LOG.error(
                    "[%s] expansion failed at %s: %s",
                    context.get("request_id", "-"),
                    context.get("stage", "-"),
                    e,
                )
            return _error_to_wire(e, ms)


__all__ = [
    "Authenticator",
    "ConnectionFactory",
    "status_for_code",
    "allow_all",
    "default_connection_factory",
    "WireExpansionHandler",
]
