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
"""
Conversion of arbitrary record values into the typed scalars accepted by Cloud Monitoring.
"""
import math
import re
from typing import Any, Callable, Dict

from logmetrics.exceptions import CoercionError, UnsupportedValueTypeError
from logmetrics.metrics_types import TypedValue, ValueType

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1

TRUE_STRINGS = frozenset({"true", "yes", "on", "1"})
FALSE_STRINGS = frozenset({"false", "no", "off", "0"})

# Plain ASCII decimal notation only: no digit separators, no other scripts' digits, no nan / inf spellings.
INTEGER_RE = re.compile(r"[+-]?[0-9]+")
DECIMAL_RE = re.compile(r"[+-]?(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)(?:[eE][+-]?[0-9]+)?")


def _to_bool(raw_value: Any) -> bool:
    if isinstance(raw_value, bool):
        return raw_value
    if isinstance(raw_value, (int, float)):
        return raw_value != 0
    if isinstance(raw_value, str):
        lowered = raw_value.strip().lower()
        if lowered in TRUE_STRINGS:
            return True
        if lowered in FALSE_STRINGS:
            return False
        raise CoercionError(raw_value, ValueType.BOOL, "not a boolean literal")
    raise CoercionError(raw_value, ValueType.BOOL)


def _to_double(raw_value: Any) -> float:
    if isinstance(raw_value, bool):
        raise CoercionError(raw_value, ValueType.DOUBLE, "booleans are not numbers")
    if isinstance(raw_value, (int, float)):
        try:
            value = float(raw_value)
        except OverflowError:
            raise CoercionError(raw_value, ValueType.DOUBLE, "out of the double range")
    elif isinstance(raw_value, str):
        stripped = raw_value.strip()
        if DECIMAL_RE.fullmatch(stripped) is None:
            raise CoercionError(raw_value, ValueType.DOUBLE, "not a number")
        value = float(stripped)
    else:
        raise CoercionError(raw_value, ValueType.DOUBLE)

    # NaN and infinities have no JSON representation
    if not math.isfinite(value):
        raise CoercionError(raw_value, ValueType.DOUBLE, "not a finite number")
    return value


def _to_int64(raw_value: Any) -> int:
    if isinstance(raw_value, bool):
        raise CoercionError(raw_value, ValueType.INT64, "booleans are not numbers")
    if isinstance(raw_value, int):
        value = int(raw_value)
    elif isinstance(raw_value, float):
        value = _truncate(raw_value, raw_value)
    elif isinstance(raw_value, str):
        stripped = raw_value.strip()
        if INTEGER_RE.fullmatch(stripped) is not None:
            value = int(stripped)
        elif DECIMAL_RE.fullmatch(stripped) is not None:
            value = _truncate(float(stripped), raw_value)
        else:
            raise CoercionError(raw_value, ValueType.INT64, "not a number")
    else:
        raise CoercionError(raw_value, ValueType.INT64)

    if not INT64_MIN <= value <= INT64_MAX:
        raise CoercionError(raw_value, ValueType.INT64, "out of the 64-bit integer range")
    return value


def _truncate(value: float, raw_value: Any) -> int:
    if not math.isfinite(value):
        raise CoercionError(raw_value, ValueType.INT64, "not a finite number")
    return int(value)


def _to_string(raw_value: Any) -> str:
    if raw_value is None:
        return ""
    return raw_value if isinstance(raw_value, str) else str(raw_value)


_COERCERS: Dict[ValueType, Callable[[Any], Any]] = {
    ValueType.BOOL: _to_bool,
    ValueType.INT64: _to_int64,
    ValueType.DOUBLE: _to_double,
    ValueType.STRING: _to_string,
}


def coerce(raw_value: Any, value_type: ValueType) -> TypedValue:
    """
    Converts raw_value to a TypedValue of value_type.

    A value that can't be represented raises CoercionError, it is never replaced by a zero value.
    Value types outside BOOL / INT64 / DOUBLE / STRING raise UnsupportedValueTypeError.
    """
    try:
        coercer = _COERCERS[value_type]
    except (KeyError, TypeError):
        raise UnsupportedValueTypeError(value_type)
    return TypedValue(value_type, coercer(raw_value))
