# gremlin_proxy/config.py
# SPDX-License-Identifier: Apache-2.0
"""
Process-level settings.

Every value has a built-in default and can be overridden from the
environment; explicit constructor arguments win over both.

    GREMLIN_PROXY_NODE_LIMIT        default node limit (100)
    GREMLIN_PROXY_MANAGED_SUFFIX    host suffix selecting Neptune
    GREMLIN_PROXY_TRAVERSAL_SOURCE  traversal source name ("g")
    GREMLIN_PROXY_LOG_LEVEL         CLI log level ("INFO")
    GREMLIN_PROXY_IAM_AUTH          sign Neptune handshakes with SigV4 (off)
    GREMLIN_PROXY_AWS_REGION        signing region (botocore default, then host)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, Optional

from gremlin_proxy.graph.context import coerce_vertex_limit
from gremlin_proxy.graph.graph_base import DEFAULT_VERTEX_LIMIT, MANAGED_HOST_SUFFIX

LOG = logging.getLogger(__name__)

_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}
_TRUE_VALUES = {"1", "true", "yes", "on"}


def _env_str(name: str, default: str) -> str:
    val = os.getenv(name)
    if val is None or not val.strip():
        return default
    return val.strip()


def _env_flag(name: str) -> bool:
    return (os.getenv(name) or "").strip().lower() in _TRUE_VALUES


@dataclass(frozen=True)
class ProxySettings:
    default_node_limit: int = DEFAULT_VERTEX_LIMIT
    managed_host_suffix: str = MANAGED_HOST_SUFFIX
    traversal_source: str = "g"
    log_level: str = "INFO"
    iam_auth: bool = False
    aws_region: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "default_node_limit", coerce_vertex_limit(self.default_node_limit)
        )
        suffix = (self.managed_host_suffix or MANAGED_HOST_SUFFIX).strip().lower()
        object.__setattr__(self, "managed_host_suffix", suffix)
        object.__setattr__(self, "traversal_source", (self.traversal_source or "g").strip())
        level = (self.log_level or "INFO").strip().upper()
        if level not in _LOG_LEVELS:
            LOG.warning("unknown log level %r, using INFO", self.log_level)
            level = "INFO"
        object.__setattr__(self, "log_level", level)
        object.__setattr__(self, "iam_auth", bool(self.iam_auth))
        object.__setattr__(self, "aws_region", (self.aws_region or "").strip() or None)

    @classmethod
    def from_env(cls, **overrides: Optional[Any]) -> "ProxySettings":
        """Build settings from the environment; non-None ``overrides`` win."""
        values = {
            "default_node_limit": os.getenv("GREMLIN_PROXY_NODE_LIMIT"),
            "managed_host_suffix": _env_str("GREMLIN_PROXY_MANAGED_SUFFIX", MANAGED_HOST_SUFFIX),
            "traversal_source": _env_str("GREMLIN_PROXY_TRAVERSAL_SOURCE", "g"),
            "log_level": _env_str("GREMLIN_PROXY_LOG_LEVEL", "INFO"),
            "iam_auth": _env_flag("GREMLIN_PROXY_IAM_AUTH"),
            "aws_region": os.getenv("GREMLIN_PROXY_AWS_REGION"),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


__all__ = ["ProxySettings"]
