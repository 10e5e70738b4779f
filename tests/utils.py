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
from typing import Dict, List, Optional, Sequence

from logmetrics.exceptions import APIError
from logmetrics.metrics_types import MetricDescriptor, TimeSeries, metric_descriptor_path


class FakeMonitoringClient:
    """
    In-memory stand-in for MonitoringAPIClient, recording every call made by the sink.
    """

    def __init__(self, project: str, descriptors: Dict[str, MetricDescriptor] = None, fail_on_write: int = None):
        self.project = project
        self.descriptors: Dict[str, MetricDescriptor] = dict(descriptors or {})
        self.get_calls: List[str] = []
        self.create_descriptor_calls: List[Dict[str, str]] = []
        self.written: List[Sequence[TimeSeries]] = []
        self.write_attempts = 0
        self.closed = False
        # 1-based index of the write call that should be rejected
        self._fail_on_write = fail_on_write

    def get_metric_descriptor(self, metric_type: str) -> Optional[MetricDescriptor]:
        self.get_calls.append(metric_type)
        return self.descriptors.get(metric_type)

    def create_metric_descriptor(self, descriptor_body: Dict[str, str]) -> MetricDescriptor:
        self.create_descriptor_calls.append(descriptor_body)
        descriptor = MetricDescriptor.from_dict(
            {**descriptor_body, "name": metric_descriptor_path(self.project, descriptor_body["type"])}
        )
        self.descriptors[descriptor.type] = descriptor
        return descriptor

    def create_time_series(self, time_series: Sequence[TimeSeries]) -> None:
        self.write_attempts += 1
        if self._fail_on_write == self.write_attempts:
            raise APIError("Points must be written in order", status_code=400)
        self.written.append(list(time_series))

    def close(self) -> None:
        self.closed = True
