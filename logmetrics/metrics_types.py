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
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Tuple, Union

import configargparse

from logmetrics.utils import get_rfc3339_format_time_from_epoch_time

CUSTOM_METRIC_TYPE_PREFIX = "custom.googleapis.com/"

ScalarValue = Union[bool, int, float, str]


class MetricKind(str, Enum):
    GAUGE = "GAUGE"
    DELTA = "DELTA"
    CUMULATIVE = "CUMULATIVE"


class ValueType(str, Enum):
    BOOL = "BOOL"
    INT64 = "INT64"
    DOUBLE = "DOUBLE"
    STRING = "STRING"
    # Known to the backend, but not publishable by this sink.
    DISTRIBUTION = "DISTRIBUTION"
    MONEY = "MONEY"
    VALUE_TYPE_UNSPECIFIED = "VALUE_TYPE_UNSPECIFIED"


SUPPORTED_VALUE_TYPES = frozenset({ValueType.BOOL, ValueType.INT64, ValueType.DOUBLE, ValueType.STRING})

# JSON field of the TypedValue oneof, per value type.
TYPED_VALUE_FIELDS = {
    ValueType.BOOL: "boolValue",
    ValueType.INT64: "int64Value",
    ValueType.DOUBLE: "doubleValue",
    ValueType.STRING: "stringValue",
}


def project_path(project: str) -> str:
    return f"projects/{project}"


def metric_descriptor_path(project: str, metric_type: str) -> str:
    return f"{project_path(project)}/metricDescriptors/{metric_type}"


@dataclass(frozen=True)
class MetricSchema:
    """
    The locally configured shape of a custom metric.
    """

    metric_type: str
    metric_kind: MetricKind
    value_type: ValueType

    def to_descriptor_body(self) -> Dict[str, str]:
        return {
            "type": self.metric_type,
            "metricKind": self.metric_kind.value,
            "valueType": self.value_type.value,
        }


@dataclass(frozen=True)
class MetricDescriptor:
    """
    A metric descriptor as acknowledged by the backend. "name" is the full resource path.
    """

    name: str
    type: str
    metric_kind: MetricKind
    value_type: ValueType
    description: str = ""
    display_name: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "MetricDescriptor":
        return cls(
            name=data["name"],
            type=data["type"],
            metric_kind=MetricKind(data["metricKind"]),
            value_type=ValueType(data["valueType"]),
            description=data.get("description", ""),
            display_name=data.get("displayName", ""),
        )

    def matches(self, schema: MetricSchema) -> bool:
        return (
            self.type == schema.metric_type
            and self.metric_kind == schema.metric_kind
            and self.value_type == schema.value_type
        )


@dataclass(frozen=True)
class Record:
    tag: str
    timestamp: int
    fields: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class TimeInterval:
    start_time: int
    end_time: int

    def to_dict(self) -> Dict[str, str]:
        return {
            "startTime": get_rfc3339_format_time_from_epoch_time(self.start_time),
            "endTime": get_rfc3339_format_time_from_epoch_time(self.end_time),
        }


@dataclass(frozen=True)
class TypedValue:
    value_type: ValueType
    value: ScalarValue

    def to_dict(self) -> Dict[str, Any]:
        # int64 travels as a decimal string in the JSON mapping of protobuf.
        value = str(self.value) if self.value_type == ValueType.INT64 else self.value
        return {TYPED_VALUE_FIELDS[self.value_type]: value}


@dataclass(frozen=True)
class Point:
    interval: TimeInterval
    value: TypedValue

    def to_dict(self) -> Dict[str, Any]:
        return {"interval": self.interval.to_dict(), "value": self.value.to_dict()}


@dataclass(frozen=True)
class TimeSeries:
    metric_type: str
    metric_kind: MetricKind
    value_type: ValueType
    points: Tuple[Point, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "metric": {"type": self.metric_type},
            "metricKind": self.metric_kind.value,
            "valueType": self.value_type.value,
            "points": [point.to_dict() for point in self.points],
        }


def custom_metric_type(value_str: str) -> str:
    if not value_str.startswith(CUSTOM_METRIC_TYPE_PREFIX) or value_str == CUSTOM_METRIC_TYPE_PREFIX:
        raise configargparse.ArgumentTypeError(
            f"metric type must start with {CUSTOM_METRIC_TYPE_PREFIX!r}, got {value_str!r}"
        )
    return value_str


def positive_integer(value_str: str) -> int:
    value = int(value_str)
    if value <= 0:
        raise configargparse.ArgumentTypeError("invalid positive integer value: {!r}".format(value))
    return value


def positive_float(value_str: str) -> float:
    value = float(value_str)
    if value <= 0:
        raise configargparse.ArgumentTypeError("invalid positive value: {!r}".format(value))
    return value
