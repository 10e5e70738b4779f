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
import json
from typing import Any, Callable, Dict, Optional, Sequence, Union, cast
from urllib.parse import quote

import requests
from requests import Session

from logmetrics import __version__
from logmetrics.exceptions import APIError
from logmetrics.log import get_logger_adapter
from logmetrics.metrics_types import MetricDescriptor, TimeSeries, metric_descriptor_path, project_path

logger = get_logger_adapter(__name__)

DEFAULT_API_SERVER_ADDRESS = "https://monitoring.googleapis.com"
DEFAULT_REQUEST_TIMEOUT = 5
DEFAULT_RESOURCE_TYPE = "global"

# Either a fixed access token, or a callable returning a currently valid one.
TokenSource = Union[str, Callable[[], str]]


class BaseAPIClient:
    def __init__(
        self,
        curlify_requests: bool,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
    ):
        self._curlify = curlify_requests
        self._timeout = timeout
        self._init_session()

    def _init_session(self) -> None:
        self._session: Session = requests.Session()

    def _get_request_headers(self) -> Dict[str, str]:
        return {}

    def _request_url(
        self,
        method: str,
        url: str,
        data: Any = None,
        params: Dict[str, str] = None,
    ) -> Dict:
        opts: dict = {"headers": self._get_request_headers(), "timeout": self._timeout, "params": params or {}}

        if method.upper() != "GET" and data is not None:
            opts["headers"]["Content-type"] = "application/json"
            try:
                opts["data"] = json.dumps(data, allow_nan=False).encode("utf-8")
            except (TypeError, ValueError):
                # This should only happen while in development, and is used to get a more indicative error.
                bad_json = str(data)
                logger.exception("Given data is not a valid JSON!", bad_json=bad_json)
                raise

        resp = self._session.request(method, url, **opts)
        if self._curlify:
            import curlify  # type: ignore  # import here as it's not always required.

            logger.debug(
                "API request",
                curl_command=curlify.to_curl(resp.request),
                status_code=resp.status_code,
            )

        if 400 <= resp.status_code < 500:
            try:
                response_data = resp.json()
            except ValueError:
                raise APIError(resp.text, status_code=resp.status_code)
            error = response_data.get("error", {}) if isinstance(response_data, dict) else {}
            raise APIError(
                error.get("message", "(no message in response)"), response_data, status_code=resp.status_code
            )
        else:
            resp.raise_for_status()
        if not resp.content:
            return {}
        return cast(dict, resp.json())


class MonitoringAPIClient(BaseAPIClient):
    """
    A thin client of the Cloud Monitoring v3 REST API, covering the three calls the sink needs.
    """

    API_VERSION = "v3"

    def __init__(
        self,
        *,
        project: str,
        token: TokenSource,
        server_address: str = DEFAULT_API_SERVER_ADDRESS,
        curlify_requests: bool = False,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        resource_type: str = DEFAULT_RESOURCE_TYPE,
    ):
        self._project = project
        self._token = token
        self._server_address = server_address.rstrip("/")
        self._resource_type = resource_type
        super().__init__(curlify_requests, timeout)

    def _init_session(self) -> None:
        self._session = requests.Session()
        self._session.headers.update({"User-Agent": f"logmetrics/{__version__}"})

    def _get_request_headers(self) -> Dict[str, str]:
        # resolved per request, a callable token source may have refreshed it.
        token = self._token() if callable(self._token) else self._token
        return {"Authorization": f"Bearer {token}"}

    @property
    def project_path(self) -> str:
        return project_path(self._project)

    def get_base_url(self) -> str:
        return "{}/{}".format(self._server_address, self.API_VERSION)

    def _url(self, resource_path: str) -> str:
        # metric types contain slashes which are part of the resource path, so they're kept as-is.
        return "{}/{}".format(self.get_base_url(), quote(resource_path, safe="/"))

    def get_metric_descriptor(self, metric_type: str) -> Optional[MetricDescriptor]:
        """
        Returns None if the descriptor doesn't exist.
        """
        try:
            data = self._request_url("GET", self._url(metric_descriptor_path(self._project, metric_type)))
        except APIError as e:
            if e.status_code == 404:
                return None
            raise
        return MetricDescriptor.from_dict(data)

    def create_metric_descriptor(self, descriptor_body: Dict[str, str]) -> MetricDescriptor:
        data = self._request_url("POST", self._url(f"{self.project_path}/metricDescriptors"), descriptor_body)
        return MetricDescriptor.from_dict(data)

    def create_time_series(self, time_series: Sequence[TimeSeries]) -> None:
        # Only one point can be written per TimeSeries per request.
        assert len(time_series) == 1, "exactly one time series is written per request"
        assert all(len(series.points) == 1 for series in time_series), "a time series carries exactly one point"
        self._request_url(
            "POST",
            self._url(f"{self.project_path}/timeSeries"),
            {"timeSeries": [self._bake_time_series(series) for series in time_series]},
        )

    def _bake_time_series(self, series: TimeSeries) -> Dict[str, Any]:
        resource: Dict[str, Any] = {"type": self._resource_type, "labels": {"project_id": self._project}}
        return {**series.to_dict(), "resource": resource}

    def close(self) -> None:
        self._session.close()
