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
from typing import Optional

from requests import RequestException

from logmetrics.client import MonitoringAPIClient
from logmetrics.exceptions import APIError, BadResponseCode, DescriptorResolutionError
from logmetrics.log import get_logger_adapter
from logmetrics.metrics_types import MetricDescriptor, MetricSchema

logger = get_logger_adapter(__name__)


class MetricDescriptorResolver:
    """
    Looks up the metric descriptor of a custom metric, creating it if the backend doesn't know it yet.

    An existing descriptor is adopted as-is, even if its kind or value type differ from the local schema
    (a warning is logged in that case).
    """

    def __init__(self, client: MonitoringAPIClient):
        self._client = client

    def resolve(self, metric_type: str, schema: MetricSchema) -> MetricDescriptor:
        try:
            descriptor = self._get_or_create(metric_type, schema)
        except (APIError, BadResponseCode, RequestException, KeyError, ValueError) as e:
            # KeyError / ValueError: a descriptor the backend returned in an unexpected shape
            raise DescriptorResolutionError(f"Failed to resolve the metric descriptor of {metric_type!r}: {e}") from e

        if not descriptor.matches(schema):
            logger.warning(
                "Existing metric descriptor differs from the configured schema, using the existing one",
                metric_type=metric_type,
                remote_kind=descriptor.metric_kind.value,
                remote_value_type=descriptor.value_type.value,
                local_kind=schema.metric_kind.value,
                local_value_type=schema.value_type.value,
            )
        return descriptor

    def _get_or_create(self, metric_type: str, schema: MetricSchema) -> MetricDescriptor:
        existing: Optional[MetricDescriptor] = self._client.get_metric_descriptor(metric_type)
        if existing is not None:
            logger.info("Succeeded to get metric descriptor", name=existing.name)
            return existing

        body = schema.to_descriptor_body()
        body["type"] = metric_type
        descriptor = self._client.create_metric_descriptor(body)
        logger.info("Succeeded to create metric descriptor", name=descriptor.name)
        return descriptor
