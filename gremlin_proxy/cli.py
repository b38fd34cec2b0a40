# gremlin_proxy/cli.py
# SPDX-License-Identifier: Apache-2.0
"""
gremlin-proxy CLI

Run a single expansion against a backend and print the wire envelope.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Dict, List, Optional

from gremlin_proxy.config import ProxySettings
from gremlin_proxy.graph.wire import WireExpansionHandler

LOG = logging.getLogger(__name__)


# --------------------------------------------------------------------------- #
# Internal helpers
# --------------------------------------------------------------------------- #

def _build_handler(settings: ProxySettings) -> WireExpansionHandler:
    return WireExpansionHandler(settings)


def _body_from_args(args: argparse.Namespace) -> Dict[str, Any]:
    body: Dict[str, Any] = {"host": args.host, "port": args.port, "query": args.query}
    if args.node_limit is not None:
        body["nodeLimit"] = args.node_limit
    return body


def _run_expand(args: argparse.Namespace) -> int:
    settings = ProxySettings.from_env(
        log_level=args.log_level,
        iam_auth=args.iam_auth or None,
        aws_region=args.aws_region,
    )
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    handler = _build_handler(settings)
    envelope = asyncio.run(handler.handle(_body_from_args(args)))
    print(json.dumps(envelope, indent=None if args.compact else 2, default=str))
    return 0 if envelope.get("ok") else 1


# --------------------------------------------------------------------------- #
# Entrypoint
# --------------------------------------------------------------------------- #

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gremlin-proxy",
        description="gremlin-proxy - bounded subgraph expansion over Gremlin",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  gremlin-proxy expand --host localhost --port 8182 --query "g.V().limit(5)"
  gremlin-proxy expand --host db.cluster-xyz.neptune.amazonaws.com --port 8182 \\
      --query "g.V().hasLabel('person')" --node-limit 50

Configuration (environment variables):
  GREMLIN_PROXY_NODE_LIMIT=100        Default node limit
  GREMLIN_PROXY_MANAGED_SUFFIX=...    Host suffix selecting Neptune
  GREMLIN_PROXY_TRAVERSAL_SOURCE=g    Traversal source alias
  GREMLIN_PROXY_LOG_LEVEL=INFO        Log level
  GREMLIN_PROXY_IAM_AUTH=1            Sign Neptune handshakes with SigV4
  GREMLIN_PROXY_AWS_REGION=...        Signing region
        """.strip(),
    )
    subparsers = parser.add_subparsers(
        dest="command",
        required=True,
        help="command to execute",
        metavar="COMMAND",
    )

    expand_parser = subparsers.add_parser("expand", help="Run one expansion and print the envelope")
    expand_parser.add_argument("--host", required=True, help="Backend host name")
    expand_parser.add_argument("--port", required=True, type=int, help="Backend port")
    expand_parser.add_argument("--query", required=True, help="Gremlin traversal fragment")
    expand_parser.add_argument(
        "--node-limit",
        type=int,
        default=None,
        help="Maximum vertices (and edges per vertex) to return",
    )
    expand_parser.add_argument(
        "--log-level",
        default=None,
        choices=["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"],
        type=str.upper,
        help="Log level (default from GREMLIN_PROXY_LOG_LEVEL or INFO)",
    )
    expand_parser.add_argument(
        "--iam-auth",
        action="store_true",
        help="Sign the Neptune websocket handshake with SigV4 (default credential chain)",
    )
    expand_parser.add_argument("--aws-region", default=None, help="Region used for SigV4 signing")
    expand_parser.add_argument("--compact", action="store_true", help="Print the envelope on one line")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as e:
        return e.code

    if args.command == "expand":
        return _run_expand(args)

    parser.error(f"Unknown command: {args.command}")  # pragma: no cover
    return 2  # pragma: no cover


if __name__ == "__main__":
    sys.exit(main())
