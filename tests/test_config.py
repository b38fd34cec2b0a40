# tests/test_config.py
# SPDX-License-Identifier: Apache-2.0
"""
Environment-backed settings.
"""

from gremlin_proxy.config import ProxySettings

_VARS = (
    "GREMLIN_PROXY_NODE_LIMIT",
    "GREMLIN_PROXY_MANAGED_SUFFIX",
    "GREMLIN_PROXY_TRAVERSAL_SOURCE",
    "GREMLIN_PROXY_LOG_LEVEL",
    "GREMLIN_PROXY_IAM_AUTH",
    "GREMLIN_PROXY_AWS_REGION",
)


def _clear(monkeypatch):
    for name in _VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults(monkeypatch):
    _clear(monkeypatch)
    s = ProxySettings.from_env()
    assert s == ProxySettings()
    assert s.default_node_limit == 100
    assert s.managed_host_suffix == "neptune.amazonaws.com"
    assert s.traversal_source == "g"
    assert s.log_level == "INFO"
    assert s.iam_auth is False
    assert s.aws_region is None


def test_environment_values(monkeypatch):
    _clear(monkeypatch)
    monkeypatch.setenv("GREMLIN_PROXY_NODE_LIMIT", "25")
    monkeypatch.setenv("GREMLIN_PROXY_MANAGED_SUFFIX", " Graph.Example.NET ")
    monkeypatch.setenv("GREMLIN_PROXY_TRAVERSAL_SOURCE", "g2")
    monkeypatch.setenv("GREMLIN_PROXY_LOG_LEVEL", "debug")
    s = ProxySettings.from_env()
    assert s.default_node_limit == 25
    assert s.managed_host_suffix == "graph.example.net"
    assert s.traversal_source == "g2"
    assert s.log_level == "DEBUG"


def test_invalid_environment_values_fall_back(monkeypatch):
    _clear(monkeypatch)
    monkeypatch.setenv("GREMLIN_PROXY_NODE_LIMIT", "zero")
    monkeypatch.setenv("GREMLIN_PROXY_LOG_LEVEL", "chatty")
    s = ProxySettings.from_env()
    assert s.default_node_limit == 100
    assert s.log_level == "INFO"


def test_overrides_win(monkeypatch):
    _clear(monkeypatch)
    monkeypatch.setenv("GREMLIN_PROXY_NODE_LIMIT", "25")
    s = ProxySettings.from_env(default_node_limit=7, log_level=None)
    assert s.default_node_limit == 7
    assert s.log_level == "INFO"


def test_iam_signing_settings(monkeypatch):
    _clear(monkeypatch)
    monkeypatch.setenv("GREMLIN_PROXY_IAM_AUTH", "Yes")
    monkeypatch.setenv("GREMLIN_PROXY_AWS_REGION", " us-west-2 ")
    s = ProxySettings.from_env()
    assert s.iam_auth is True
    assert s.aws_region == "us-west-2"

    monkeypatch.setenv("GREMLIN_PROXY_IAM_AUTH", "off")
    monkeypatch.setenv("GREMLIN_PROXY_AWS_REGION", "  ")
    s = ProxySettings.from_env()
    assert s.iam_auth is False
    assert s.aws_region is None
