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
from logmetrics.exceptions import ValueTypeMismatchError
from logmetrics.metrics_types import MetricDescriptor, Point, TimeInterval, TimeSeries, TypedValue


def build_time_series(descriptor: MetricDescriptor, timestamp: int, typed_value: TypedValue) -> TimeSeries:
    """
    Builds a single-point time series of the descriptor's metric, sampled at "timestamp" (epoch seconds).
    The metric identity is always taken from the descriptor, records only supply the point.
    """
    if typed_value.value_type != descriptor.value_type:
        raise ValueTypeMismatchError(descriptor.value_type, typed_value.value_type)

    point = Point(interval=TimeInterval(start_time=timestamp, end_time=timestamp), value=typed_value)
    return TimeSeries(
        metric_type=descriptor.type,
        metric_kind=descriptor.metric_kind,
        value_type=descriptor.value_type,
        points=(point,),
    )
