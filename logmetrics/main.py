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
import logging
import signal
import sys
import time
from types import FrameType
from typing import IO, Any, Iterator, Mapping, Optional, Tuple

import configargparse
import humanfriendly
from requests import RequestException

from logmetrics import __version__
from logmetrics.client import (
    DEFAULT_API_SERVER_ADDRESS,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_RESOURCE_TYPE,
    MonitoringAPIClient,
    TokenSource,
)
from logmetrics.cloud_metadata import MetadataServerToken, get_gcp_project_id
from logmetrics.exceptions import (
    APIError,
    BadResponseCode,
    CoercionError,
    ConfigurationError,
    DescriptorResolutionError,
)
from logmetrics.log import get_logger_adapter, initial_root_logger_setup
from logmetrics.metrics_types import (
    SUPPORTED_VALUE_TYPES,
    MetricKind,
    MetricSchema,
    ValueType,
    custom_metric_type,
    positive_float,
    positive_integer,
)
from logmetrics.sink import ClientFactory, MetricsSink

logger = get_logger_adapter("logmetrics")

DEFAULT_LOG_FILE = None
DEFAULT_LOG_MAX_SIZE = "5mb"
DEFAULT_LOG_BACKUP_COUNT = 1
DEFAULT_CHUNK_SIZE = 100
DEFAULT_TAG = "logmetrics"

Event = Tuple[str, float, Mapping[str, Any]]


def sigterm_handler(sig: int, frame: Optional[FrameType]) -> None:
    # the pending chunk is flushed on the way out, same as with Ctrl-C.
    raise KeyboardInterrupt


def setup_signals() -> None:
    signal.signal(signal.SIGTERM, sigterm_handler)


def parse_event(line: str, default_tag: str) -> Event:
    """
    Accepts either {"tag": ..., "time": ..., "record": {...}} or [tag, time, record]. A missing time is "now",
    a missing tag is default_tag.
    """
    data = json.loads(line)
    if isinstance(data, list):
        if len(data) != 3:
            raise ValueError(f"expected [tag, time, record], got {len(data)} elements")
        tag, event_time, record = data
    elif isinstance(data, dict):
        tag = data.get("tag", default_tag)
        event_time = data.get("time")
        record = data.get("record", {})
    else:
        raise ValueError(f"expected a JSON object or array, got {type(data).__name__}")

    if not isinstance(record, dict):
        raise ValueError("record must be a JSON object")
    return tag or default_tag, time.time() if event_time is None else float(event_time), record


def iter_events(stream: IO[str], default_tag: str) -> Iterator[Event]:
    for lineno, line in enumerate(stream, start=1):
        if not line.strip():
            continue
        try:
            yield parse_event(line, default_tag)
        except (ValueError, TypeError) as e:
            # json.JSONDecodeError is a ValueError as well
            logger.warning("Skipping malformed input line", lineno=lineno, error=str(e))


def run_sink(sink: MetricsSink, stream: IO[str], default_tag: str, chunk_size: int) -> int:
    """
    Buffers events from stream and hands them to the sink every chunk_size events, and once more at EOF
    (or on interruption). Returns the number of written points.
    """
    buffer = bytearray()
    buffered = 0
    written = 0

    def flush() -> int:
        nonlocal buffered
        chunk = bytes(buffer)
        # a chunk is handed over once; a failed write is not redelivered.
        buffer.clear()
        buffered = 0
        return sink.write(chunk)

    try:
        for tag, event_time, record in iter_events(stream, default_tag):
            buffer += sink.format(tag, event_time, record)
            buffered += 1
            if buffered >= chunk_size:
                written += flush()
    except KeyboardInterrupt:
        logger.info("Interrupted, flushing the pending chunk", pending=buffered)

    if buffered:
        written += flush()
    return written


def parse_cmd_args() -> configargparse.Namespace:
    parser = configargparse.ArgumentParser(
        description="Publishes a field of JSON log records as a Cloud Monitoring custom metric.",
        auto_env_var_prefix="logmetrics_",
        add_config_file_help=True,
        add_env_var_help=False,
        default_config_files=["/etc/logmetrics/config.ini"],
    )
    parser.add_argument("--config", is_config_file=True, help="Config file path")
    parser.add_argument(
        "--project", type=str, help="Google Cloud project ID (default: read from the GCE metadata server)"
    )

    metric_options = parser.add_argument_group("custom metric")
    metric_options.add_argument(
        "--metric-type",
        type=custom_metric_type,
        required=True,
        help="Metric type, for example custom.googleapis.com/my_app/latency",
    )
    metric_options.add_argument(
        "--metric-kind",
        choices=[kind.value for kind in MetricKind],
        default=MetricKind.GAUGE.value,
        help="Metric kind (default: %(default)s)",
    )
    metric_options.add_argument(
        "--value-type",
        choices=[value_type.value for value_type in ValueType if value_type in SUPPORTED_VALUE_TYPES],
        default=ValueType.DOUBLE.value,
        help="Value type (default: %(default)s)",
    )
    metric_options.add_argument("--key", type=str, required=True, help="The record field holding the metric value")

    input_options = parser.add_argument_group("input")
    input_options.add_argument(
        "-i",
        "--input",
        type=str,
        default="-",
        help="JSON lines file to read events from, - for stdin (default: %(default)s)",
    )
    input_options.add_argument("--tag", type=str, default=DEFAULT_TAG, help="Tag of events which carry none")
    input_options.add_argument(
        "--chunk-size",
        type=positive_integer,
        default=DEFAULT_CHUNK_SIZE,
        help="Number of events per flushed chunk (default: %(default)s)",
    )

    connectivity = parser.add_argument_group("connectivity")
    connectivity.add_argument(
        "--api-server",
        type=str,
        default=DEFAULT_API_SERVER_ADDRESS,
        help="Cloud Monitoring API address (default: %(default)s)",
    )
    connectivity.add_argument(
        "--token",
        type=str,
        help="OAuth2 access token (default: the service account token from the GCE metadata server)",
    )
    connectivity.add_argument(
        "--request-timeout",
        type=positive_float,
        default=DEFAULT_REQUEST_TIMEOUT,
        help="Timeout of each API call in seconds (default: %(default)s)",
    )
    connectivity.add_argument(
        "--resource-type",
        type=str,
        default=DEFAULT_RESOURCE_TYPE,
        help="Monitored resource type the points are attributed to (default: %(default)s)",
    )
    connectivity.add_argument(
        "--curlify-requests",
        action="store_true",
        default=False,
        help="Log cURL commands of the API requests (requires the curlify package)",
    )

    parser.add_argument("--version", action="version", version=__version__)
    parser.add_argument("-v", "--verbose", action="store_true", default=False, dest="verbose")

    logging_options = parser.add_argument_group("logging")
    logging_options.add_argument("--log-file", action="store", type=str, dest="log_file", default=DEFAULT_LOG_FILE)
    logging_options.add_argument(
        "--log-rotate-max-size",
        action="store",
        type=str,
        dest="log_rotate_max_size",
        default=DEFAULT_LOG_MAX_SIZE,
        help="Rotate the log file at this size, human friendly sizes are supported (default: %(default)s)",
    )
    logging_options.add_argument(
        "--log-rotate-backup-count",
        action="store",
        type=positive_integer,
        dest="log_rotate_backup_count",
        default=DEFAULT_LOG_BACKUP_COUNT,
    )

    args = parser.parse_args()

    try:
        args.log_rotate_max_size = humanfriendly.parse_size(args.log_rotate_max_size, binary=True)
    except humanfriendly.InvalidSize as e:
        parser.error(f"--log-rotate-max-size: {e}")

    return args


def create_client_factory(args: configargparse.Namespace, token: TokenSource) -> ClientFactory:
    def client_factory(project: str) -> MonitoringAPIClient:
        return MonitoringAPIClient(
            project=project,
            token=token,
            server_address=args.api_server,
            curlify_requests=args.curlify_requests,
            timeout=args.request_timeout,
            resource_type=args.resource_type,
        )

    return client_factory


def main() -> None:
    args = parse_cmd_args()

    global logger
    logger = initial_root_logger_setup(
        logging.DEBUG if args.verbose else logging.INFO,
        args.log_file,
        args.log_rotate_max_size,
        args.log_rotate_backup_count,
    )
    setup_signals()
    logger.info("Running logmetrics", version=__version__, commandline=" ".join(sys.argv[1:]))

    try:
        project = args.project if args.project is not None else get_gcp_project_id()
        token: TokenSource
        if args.token is not None:
            token = args.token
        else:
            token = MetadataServerToken()
            # fetched once up front so a missing metadata server fails before anything is read.
            token()
    except (RequestException, BadResponseCode) as e:
        logger.error(
            "Could not read the project / access token from the GCE metadata server,"
            f" please pass --project and --token explicitly. Error: {e}"
        )
        sys.exit(1)

    sink = MetricsSink(create_client_factory(args, token))
    try:
        sink.configure(
            project,
            MetricSchema(args.metric_type, MetricKind(args.metric_kind), ValueType(args.value_type)),
            args.key,
        )
        sink.start()
    except ConfigurationError as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)
    except DescriptorResolutionError as e:
        logger.error(f"Could not start: {e}")
        sys.exit(1)

    try:
        if args.input == "-":
            written = run_sink(sink, sys.stdin, args.tag, args.chunk_size)
        else:
            with open(args.input, "r", encoding="utf-8") as stream:
                written = run_sink(sink, stream, args.tag, args.chunk_size)
        logger.info("Input exhausted", written=written)
    except KeyboardInterrupt:
        pass
    except (CoercionError, APIError, BadResponseCode, RequestException) as e:
        # already logged with the record context by the sink.
        logger.error(f"Publishing stopped: {e}")
        sys.exit(1)
    except Exception:
        logger.exception("Unexpected error occurred")
        sys.exit(1)
    finally:
        sink.shutdown()


if __name__ == "__main__":
    main()
