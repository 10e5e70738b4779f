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
from typing import Callable

from pytest import fixture

from logmetrics.metrics_types import MetricDescriptor, MetricKind, MetricSchema, ValueType, metric_descriptor_path
from logmetrics.sink import MetricsSink
from tests.utils import FakeMonitoringClient

PROJECT = "my-project"
METRIC_TYPE = "custom.googleapis.com/foo"


@fixture
def value_type() -> ValueType:
    """
    Parametrize this to change the value type of the schema & descriptor.
    """
    return ValueType.INT64


@fixture
def schema(value_type: ValueType) -> MetricSchema:
    return MetricSchema(METRIC_TYPE, MetricKind.GAUGE, value_type)


@fixture
def descriptor(schema: MetricSchema) -> MetricDescriptor:
    return MetricDescriptor(
        name=metric_descriptor_path(PROJECT, schema.metric_type),
        type=schema.metric_type,
        metric_kind=schema.metric_kind,
        value_type=schema.value_type,
    )


@fixture
def fake_client() -> FakeMonitoringClient:
    return FakeMonitoringClient(PROJECT)


@fixture
def make_sink(fake_client: FakeMonitoringClient) -> Callable[[MetricSchema], MetricsSink]:
    def _make_sink(schema: MetricSchema, key: str = "value") -> MetricsSink:
        sink = MetricsSink(lambda project: fake_client)  # type: ignore
        sink.configure(PROJECT, schema, key)
        sink.start()
        return sink

    return _make_sink


@fixture
def sink(make_sink: Callable[[MetricSchema], MetricsSink], schema: MetricSchema) -> MetricsSink:
    return make_sink(schema)

