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
import uuid
from typing import Optional


def generate_random_id() -> str:
    return str(uuid.uuid4())


class State:
    """
    Identifiers attached to the log lines of a single sink: one run id for the sink's lifetime, and one
    chunk id per delivered chunk.
    """

    def __init__(self, run_id: str = None) -> None:
        self._run_id: str = run_id or generate_random_id()
        self._chunk_id: Optional[str] = None

    def set_chunk_id(self, chunk_id: Optional[str]) -> None:
        self._chunk_id = chunk_id

    def init_new_chunk(self) -> None:
        self.set_chunk_id(generate_random_id())

    @property
    def run_id(self) -> str:
        return self._run_id

    @property
    def chunk_id(self) -> Optional[str]:
        return self._chunk_id
