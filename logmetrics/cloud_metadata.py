#
# Copyright (C) 2022 Intel Corporation
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#    http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#
import time
from typing import Dict, Optional, Tuple

import requests
from requests import Response

from logmetrics.exceptions import BadResponseCode
from logmetrics.log import get_logger_adapter

logger = get_logger_adapter(__name__)

METADATA_TIMEOUT = 5
GCP_METADATA_URL = "http://metadata.google.internal/computeMetadata/v1"
GCP_METADATA_HEADERS = {"Metadata-Flavor": "Google"}
# tokens are refetched this many seconds before the expiry reported by the metadata server.
TOKEN_REFRESH_MARGIN = 60


def send_request(url: str, headers: Dict[str, str] = None) -> Response:
    response = requests.get(url, headers=headers or {}, timeout=METADATA_TIMEOUT)
    if not response.ok:
        raise BadResponseCode(response.status_code)
    return response


def get_gcp_access_token() -> Tuple[str, int]:
    """
    Fetches an OAuth2 access token of the instance's default service account from the GCE metadata server.
    Returns the token and its lifetime in seconds.
    """
    response = send_request(
        f"{GCP_METADATA_URL}/instance/service-accounts/default/token",
        headers=GCP_METADATA_HEADERS,
    )
    data = response.json()
    return str(data["access_token"]), int(data["expires_in"])


def get_gcp_project_id() -> str:
    response = send_request(f"{GCP_METADATA_URL}/project/project-id", headers=GCP_METADATA_HEADERS)
    return response.text.strip()


class MetadataServerToken:
    """
    A callable token source for MonitoringAPIClient.

    Metadata server tokens live for about an hour, so the token is cached and refetched once it gets
    within TOKEN_REFRESH_MARGIN seconds of its expiry.
    """

    def __init__(self) -> None:
        self._token: Optional[str] = None
        self._expires_at = 0.0

    def __call__(self) -> str:
        if self._token is None or time.monotonic() >= self._expires_at - TOKEN_REFRESH_MARGIN:
            self._token, expires_in = get_gcp_access_token()
            self._expires_at = time.monotonic() + expires_in
            logger.debug("Fetched an access token from the metadata server", expires_in=expires_in)
        return self._token
