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


class ConfigurationError(Exception):
    pass


class UnsupportedValueTypeError(ConfigurationError):
    def __init__(self, value_type: object):
        super().__init__(f"Unsupported value type {value_type!r}, expected one of BOOL, INT64, DOUBLE, STRING")
        self.value_type = value_type


class ValueTypeMismatchError(ConfigurationError):
    def __init__(self, expected: object, actual: object):
        super().__init__(f"Typed value is {actual!r} but the metric descriptor declares {expected!r}")
        self.expected = expected
        self.actual = actual


class CoercionError(ValueError):
    def __init__(self, raw_value: object, value_type: object, reason: Optional[str] = None):
        message = f"Cannot coerce {raw_value!r} to {value_type!r}"
        if reason is not None:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.raw_value = raw_value
        self.value_type = value_type


class DescriptorResolutionError(Exception):
    pass


class SinkStateError(Exception):
    pass


class APIError(Exception):
    def __init__(self, message: str, full_data: dict = None, status_code: Optional[int] = None):
        self.message = message
        self.full_data = full_data
        self.status_code = status_code

    def __str__(self) -> str:
        return self.message


class BadResponseCode(Exception):
    def __init__(self, response_code: int):
        super().__init__(f"Got a bad HTTP response code {response_code}")
