# SPDX-License-Identifier: Apache-2.0
"""
gremlin-proxy test-suite.

Covers the expansion pipeline (query building, record mapping, sampling,
connections, orchestration, wire envelopes) and the CLI and settings around it.
"""
