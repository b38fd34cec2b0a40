# gremlin_proxy/graph/signing.py
# SPDX-License-Identifier: Apache-2.0
"""
SigV4 signing for the Neptune websocket handshake.

IAM-enabled Neptune clusters reject the ``/gremlin`` upgrade request unless
it carries a SigV4 signature for the ``neptune-db`` service. The signature
covers ``GET https://host:port/gremlin``; the resulting headers are handed
to the driver, which sends them with the websocket upgrade.

Credentials come from botocore's default chain (environment, shared config,
instance/container roles) unless given explicitly. The region is taken from
the signer argument, then the botocore configuration, then the cluster host
name (``<cluster>.<region>.neptune.amazonaws.com``).
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Optional
from urllib.parse import urlsplit, urlunsplit

from botocore.auth import SigV4Auth
from botocore.awsrequest import AWSRequest
from botocore.exceptions import NoCredentialsError, NoRegionError
from botocore.session import get_session

LOG = logging.getLogger(__name__)

NEPTUNE_SERVICE = "neptune-db"

_REGION_IN_HOST = re.compile(
    r"\.([a-z]{2}(?:-[a-z]+)+-\d+)\.neptune\.amazonaws\.com\.?$", re.IGNORECASE
)


def region_from_host(host: Optional[str]) -> Optional[str]:
    match = _REGION_IN_HOST.search(host or "")
    return match.group(1).lower() if match else None


class SigV4Signer:
    """
    Produce signed handshake headers for one websocket URL at a time.

    Headers are computed per call; a signature is only valid for a few
    minutes, so sign right before opening the driver client.
    """

    def __init__(
        self,
        region: Optional[str] = None,
        *,
        credentials: Any = None,
        session: Any = None,
        service: str = NEPTUNE_SERVICE,
    ) -> None:
        self._region = region
        self._credentials = credentials
        self._session = session
        self._service = service

    def _botocore_session(self) -> Any:
        if self._session is None:
            self._session = get_session()
        return self._session

    def _frozen_credentials(self) -> Any:
        credentials = self._credentials
        if credentials is None:
            credentials = self._botocore_session().get_credentials()
        if credentials is None:
            raise NoCredentialsError()
        return credentials.get_frozen_credentials()

    def region_for(self, host: Optional[str]) -> str:
        region = (
            self._region
            or self._botocore_session().get_config_variable("region")
            or region_from_host(host)
        )
        if not region:
            raise NoRegionError()
        return region

    def headers_for(self, url: str) -> Dict[str, str]:
        parts = urlsplit(url)
        request = AWSRequest(
            method="GET",
            url=urlunsplit(("https", parts.netloc, parts.path, parts.query, "")),
        )
        region = self.region_for(parts.hostname)
        SigV4Auth(self._frozen_credentials(), self._service, region).add_auth(request)
        LOG.debug("signed handshake for %s (%s, %s)", parts.netloc, self._service, region)
        return dict(request.headers.items())


__all__ = ["NEPTUNE_SERVICE", "region_from_host", "SigV4Signer"]
