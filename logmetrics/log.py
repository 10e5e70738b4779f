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
import logging
import logging.handlers
import os
import re
import sys
import time
from logging import LogRecord
from typing import Any, Dict, MutableMapping, Optional

import structlog

RUN_ID_KEY = "run_id"
CHUNK_ID_KEY = "chunk_id"
LOGGER_NAME_RE = re.compile(r"logmetrics(?:\..+)?")


def _render_to_extra(logger: logging.Logger, method_name: str, event_dict: MutableMapping[str, Any]) -> Dict[str, Any]:
    # Hand the bound key/values to the stdlib record as a single "extra" attribute, so our formatters can
    # print them after the message.
    event = event_dict.pop("event")
    exc_info = event_dict.pop("exc_info", False)
    return {"msg": event, "exc_info": exc_info, "extra": {"extra": dict(event_dict)}}


def get_logger_adapter(logger_name: str) -> structlog.stdlib.BoundLogger:
    # Validate the name starts with logmetrics (the root logger name), so logging parent logger propagation will work.
    assert LOGGER_NAME_RE.match(logger_name) is not None, "logger name must start with 'logmetrics'"
    return structlog.wrap_logger(
        logging.getLogger(logger_name),
        processors=[structlog.stdlib.filter_by_level, _render_to_extra],
        wrapper_class=structlog.stdlib.BoundLogger,
    )


class _ExtraFormatter(logging.Formatter):
    FILTERED_EXTRA_KEYS = [RUN_ID_KEY]  # don't print those fields locally

    def format(self, record: LogRecord) -> str:
        formatted = super().format(record)

        formatted_extra = ", ".join(
            f"{k}={v}" for k, v in record.__dict__.get("extra", {}).items() if k not in self.FILTERED_EXTRA_KEYS
        )
        if formatted_extra:
            formatted = f"{formatted} ({formatted_extra})"

        return formatted


class _UTCFormatter(logging.Formatter):
    # Patch formatTime to be GMT (UTC) for all formatters,
    # see https://docs.python.org/3/library/logging.html?highlight=formattime#logging.Formatter.formatTime
    converter = time.gmtime


class LogMetricsFormatter(_ExtraFormatter, _UTCFormatter):
    pass


def initial_root_logger_setup(
    stream_level: int,
    log_file_path: Optional[str],
    rotate_max_bytes: int,
    rotate_backup_count: int,
) -> structlog.stdlib.BoundLogger:
    root_logger = logging.getLogger("logmetrics")
    root_logger.setLevel(logging.DEBUG)

    # stdin carries the events in the CLI; keep logs off stdout as well.
    stream_handler = logging.StreamHandler(stream=sys.stderr)
    stream_handler.setLevel(stream_level)
    if stream_level < logging.INFO:
        stream_handler.setFormatter(LogMetricsFormatter("[%(asctime)s] %(levelname)s: %(name)s: %(message)s"))
    else:
        stream_handler.setFormatter(LogMetricsFormatter("[%(asctime)s] %(message)s", "%H:%M:%S"))
    root_logger.addHandler(stream_handler)

    if log_file_path:
        os.makedirs(os.path.dirname(log_file_path) or ".", exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file_path,
            maxBytes=rotate_max_bytes,
            backupCount=rotate_backup_count,
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(LogMetricsFormatter("[%(asctime)s] %(levelname)s: %(name)s: %(message)s"))
        root_logger.addHandler(file_handler)

    return get_logger_adapter("logmetrics")
