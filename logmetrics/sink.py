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
from typing import Any, Callable, Iterable, Mapping, Optional, Tuple, Union

from requests import RequestException

from logmetrics.client import MonitoringAPIClient
from logmetrics.coercion import coerce
from logmetrics.descriptors import MetricDescriptorResolver
from logmetrics.exceptions import APIError, CoercionError, ConfigurationError, SinkStateError, UnsupportedValueTypeError
from logmetrics.log import get_logger_adapter
from logmetrics.metrics_types import (
    CUSTOM_METRIC_TYPE_PREFIX,
    SUPPORTED_VALUE_TYPES,
    MetricDescriptor,
    MetricKind,
    MetricSchema,
    Record,
    ValueType,
    project_path,
)
from logmetrics.state import State
from logmetrics.time_series import build_time_series
from logmetrics.utils import get_rfc3339_format_time_from_epoch_time

logger = get_logger_adapter(__name__)

ClientFactory = Callable[[str], MonitoringAPIClient]
RawRecord = Union[Record, Tuple[str, float, Mapping[str, Any]]]


def _to_record(raw: RawRecord) -> Record:
    if isinstance(raw, Record):
        return raw
    tag, time, fields = raw
    return Record(tag=tag, timestamp=int(time), fields=fields if fields is not None else {})


class MetricsSink:
    """
    Buffered output which publishes one field of every record as a point of a Cloud Monitoring custom metric.

    Lifecycle: configure() validates the parameters, start() resolves the metric descriptor (once), and then
    every chunk handed over by the host through accept_chunk() / write() is published record by record.
    """

    def __init__(self, client_factory: ClientFactory):
        self._client_factory = client_factory
        self._state = State()
        self._project: Optional[str] = None
        self._schema: Optional[MetricSchema] = None
        self._key: Optional[str] = None
        self._client: Optional[MonitoringAPIClient] = None
        self._descriptor: Optional[MetricDescriptor] = None
        self._started = False

    @property
    def descriptor(self) -> Optional[MetricDescriptor]:
        return self._descriptor

    @property
    def is_running(self) -> bool:
        return self._descriptor is not None

    def configure(self, project: str, schema: MetricSchema, key: str) -> None:
        if self._started:
            raise SinkStateError("Cannot reconfigure a started sink")
        if not project:
            raise ConfigurationError("project must not be empty")
        if not key:
            raise ConfigurationError("key must not be empty")
        if not schema.metric_type.startswith(CUSTOM_METRIC_TYPE_PREFIX):
            raise ConfigurationError(f"metric type must start with {CUSTOM_METRIC_TYPE_PREFIX!r}")

        try:
            metric_kind = MetricKind(schema.metric_kind)
        except ValueError:
            raise ConfigurationError(f"Unknown metric kind {schema.metric_kind!r}")
        try:
            value_type = ValueType(schema.value_type)
        except ValueError:
            raise UnsupportedValueTypeError(schema.value_type)
        if value_type not in SUPPORTED_VALUE_TYPES:
            raise UnsupportedValueTypeError(value_type)

        self._project = project
        self._schema = MetricSchema(schema.metric_type, metric_kind, value_type)
        self._key = key

    def start(self) -> None:
        if self._schema is None or self._project is None:
            raise SinkStateError("The sink must be configured before it is started")
        if self._started:
            raise SinkStateError("The sink was already started")
        self._started = True

        logger.info(
            "Starting metrics sink",
            project=project_path(self._project),
            metric_type=self._schema.metric_type,
            run_id=self._state.run_id,
        )
        self._client = self._client_factory(self._project)
        try:
            self._descriptor = MetricDescriptorResolver(self._client).resolve(self._schema.metric_type, self._schema)
        except Exception:
            self._client.close()
            self._client = None
            raise

    def shutdown(self) -> None:
        if self._client is not None:
            self._client.close()
        self._descriptor = None

    def format(self, tag: str, time: float, record: Mapping[str, Any]) -> bytes:
        """
        Serializes one event into the buffer format read back by write(): a JSON array per line.
        """
        return (json.dumps([tag, int(time), record], default=str) + "\n").encode("utf-8")

    def write(self, chunk: bytes) -> int:
        records = [json.loads(line) for line in chunk.decode("utf-8").splitlines() if line.strip()]
        return self.accept_chunk([(tag, time, fields) for tag, time, fields in records])

    def accept_chunk(self, records: Iterable[RawRecord]) -> int:
        if self._descriptor is None:
            raise SinkStateError("The sink is not running, start() must succeed before chunks are accepted")

        self._state.init_new_chunk()
        try:
            return self.publish(records)
        finally:
            self._state.set_chunk_id(None)

    def publish(self, records: Iterable[RawRecord]) -> int:
        """
        Writes one time series per record, strictly in order and one request at a time.

        The first failing record (a value that can't be coerced, or a rejected write) aborts the rest of the
        chunk: the error propagates to the host, which decides whether to redeliver the chunk.
        Returns the number of written points.
        """
        assert self._descriptor is not None and self._client is not None and self._key is not None
        chunk_logger = logger.bind(chunk_id=self._state.chunk_id)

        written = 0
        for raw in records:
            record = _to_record(raw)
            value = record.fields.get(self._key)
            try:
                typed_value = coerce(value, self._descriptor.value_type)
            except CoercionError as e:
                chunk_logger.error(
                    "Failed to convert record value, aborting the rest of the chunk",
                    tag=record.tag,
                    key=self._key,
                    error=str(e),
                    written=written,
                )
                raise

            time_series = build_time_series(self._descriptor, record.timestamp, typed_value)
            chunk_logger.debug(
                "Create time series", time=get_rfc3339_format_time_from_epoch_time(record.timestamp), value=value
            )
            try:
                self._client.create_time_series([time_series])
            except (APIError, RequestException) as e:
                chunk_logger.error(
                    "Failed to write time series, aborting the rest of the chunk",
                    tag=record.tag,
                    error=str(e),
                    written=written,
                )
                raise
            written += 1

        chunk_logger.debug("Chunk published", written=written)
        return written
