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
import datetime


def get_rfc3339_format_time_from_epoch_time(time: float) -> str:
    return get_rfc3339_format_time(datetime.datetime.fromtimestamp(time, tz=datetime.timezone.utc))


def get_rfc3339_format_time(time: datetime.datetime) -> str:
    # Cloud Monitoring wants "Z" rather than the "+00:00" offset isoformat() produces.
    return time.astimezone(datetime.timezone.utc).replace(microsecond=0, tzinfo=None).isoformat() + "Z"
