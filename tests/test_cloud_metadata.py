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
from unittest.mock import Mock, patch

import pytest

from logmetrics.cloud_metadata import TOKEN_REFRESH_MARGIN, MetadataServerToken, get_gcp_access_token, get_gcp_project_id
from logmetrics.exceptions import BadResponseCode


def metadata_response(ok: bool = True, status_code: int = 200, json_data: dict = None, text: str = "") -> Mock:
    response = Mock()
    response.ok = ok
    response.status_code = status_code
    response.json.return_value = json_data
    response.text = text
    return response


def test_get_gcp_access_token() -> None:
    response = metadata_response(json_data={"access_token": "ya29.token", "expires_in": 3599, "token_type": "Bearer"})
    with patch("logmetrics.cloud_metadata.requests.get", return_value=response) as get:
        assert get_gcp_access_token() == ("ya29.token", 3599)
    url = get.call_args.args[0]
    assert url.endswith("/instance/service-accounts/default/token")
    assert get.call_args.kwargs["headers"] == {"Metadata-Flavor": "Google"}


def test_get_gcp_project_id() -> None:
    with patch("logmetrics.cloud_metadata.requests.get", return_value=metadata_response(text="my-project\n")):
        assert get_gcp_project_id() == "my-project"


def test_bad_response_code() -> None:
    with patch("logmetrics.cloud_metadata.requests.get", return_value=metadata_response(ok=False, status_code=404)):
        with pytest.raises(BadResponseCode):
            get_gcp_project_id()


def test_metadata_server_token_is_cached() -> None:
    response = metadata_response(json_data={"access_token": "ya29.token", "expires_in": 3599})
    with patch("logmetrics.cloud_metadata.requests.get", return_value=response) as get:
        token = MetadataServerToken()
        assert token() == "ya29.token"
        assert token() == "ya29.token"
    assert get.call_count == 1


def test_metadata_server_token_is_refreshed_before_expiry() -> None:
    responses = [
        metadata_response(json_data={"access_token": "ya29.first", "expires_in": 3599}),
        metadata_response(json_data={"access_token": "ya29.second", "expires_in": 3599}),
    ]
    now = [1000.0]
    with patch("logmetrics.cloud_metadata.requests.get", side_effect=responses), patch(
        "logmetrics.cloud_metadata.time.monotonic", side_effect=lambda: now[0]
    ):
        token = MetadataServerToken()
        assert token() == "ya29.first"
        now[0] += 3599 - TOKEN_REFRESH_MARGIN - 1
        assert token() == "ya29.first"
        now[0] += 1
        assert token() == "ya29.second"


def test_metadata_server_token_refresh_failure() -> None:
    responses = [
        metadata_response(json_data={"access_token": "ya29.first", "expires_in": 0}),
        metadata_response(ok=False, status_code=500),
    ]
    with patch("logmetrics.cloud_metadata.requests.get", side_effect=responses):
        token = MetadataServerToken()
        assert token() == "ya29.first"
        with pytest.raises(BadResponseCode):
            token()
