# gremlin_proxy/core/error_context.py
# SPDX-License-Identifier: Apache-2.0

"""
Error context for failures leaving the expansion pipeline.

Failures are enriched with pipeline metadata (stage, request id, the vertex
or edge being fetched) as exception attributes, so the original type and
message propagate unchanged while handlers and logs can still tell where a
request broke.

Typical usage
-------------

    try:
        records = await conn.submit(query)
    except GraphProxyError as exc:
        attach_context(
            exc,
            component="expansion",
            stage="fetch_edge_details",
            request_id=ctx.request_id,
            edge_id=edge_id,
        )
        raise

Later, in the wire handler:

    context = get_context(exc)
    LOG.error("expansion failed at %s", context.get("stage"))

Two attributes are set:

* ``__proxy_context__``: canonical, merged across every layer that attached.
* ``__<component>_context__``: same mapping under a component-specific name.

Repeated calls merge; the first ``component`` recorded is kept. Attachment
is best-effort and never masks the original exception. Keep credentials
and raw property values out of the context.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, MutableMapping, Optional

LOG = logging.getLogger(__name__)

_CANONICAL_ATTR = "__proxy_context__"


def _component_attr(component: str) -> str:
    return f"__{component}_context__"


def attach_context(
    exc: BaseException,
    component: str,
    **context: Any,
) -> None:
    """Merge ``context`` into the debugging context carried by ``exc``."""
    try:
        merged: MutableMapping[str, Any] = {}

        existing = getattr(exc, _CANONICAL_ATTR, None)
        if isinstance(existing, Mapping):
            merged.update(existing)

        merged.setdefault("component", component)
        merged.update(context)

        setattr(exc, _CANONICAL_ATTR, merged)
        setattr(exc, _component_attr(component), merged)
    except Exception as attachment_error:  # noqa: BLE001
        LOG.debug(
            "Failed to attach error context to %s: %s",
            type(exc).__name__,
            attachment_error,
            extra={"component": component},
        )


def get_context(
    exc: BaseException,
    *,
    component: Optional[str] = None,
) -> Mapping[str, Any]:
    """
    Return the context attached to ``exc``, or an empty mapping.

    With ``component`` the component-specific attribute is tried first,
    falling back to the canonical one.
    """
    try:
        if component:
            ctx = getattr(exc, _component_attr(component), None)
            if isinstance(ctx, Mapping):
                return ctx

        ctx = getattr(exc, _CANONICAL_ATTR, None)
        if isinstance(ctx, Mapping):
            return ctx
    except Exception as retrieval_error:  # noqa: BLE001
        LOG.debug(
            "Failed to retrieve error context from %s: %s",
            type(exc).__name__,
            retrieval_error,
        )

    return {}


def has_context(
    exc: BaseException,
    *,
    component: Optional[str] = None,
) -> bool:
    return len(get_context(exc, component=component)) > 0


__all__ = ["attach_context", "get_context", "has_context"]
