#
# Copyright (c) Granulate. All rights reserved.
# Licensed under the AGPL3 License. See LICENSE.md in the project root for license information.
#
import time
from typing import Callable, List, NamedTuple, Optional, Sequence, Tuple, Union

from sysflux.exceptions import SendError
from sysflux.system_metrics import SamplerBase


class FakeSampler(SamplerBase):
    def __init__(
        self,
        load_averages: Union[Tuple[float, float, float], Exception],
        memory: Union[float, Exception],
    ):
        self.load_averages = load_averages
        self.memory = memory

    def _get_load_averages(self) -> Tuple[float, float, float]:
        if isinstance(self.load_averages, Exception):
            raise self.load_averages
        return self.load_averages

    def _get_memory_utilization(self) -> float:
        if isinstance(self.memory, Exception):
            raise self.memory
        return self.memory


class Write(NamedTuple):
    url: str
    payload: str
    host_header: Optional[str]


class FakeClient:
    """
    Stands in for InfluxWriteClient. Each write pops the next scripted outcome: None succeeds, a SendError is raised.
    When the script runs out, writes succeed.
    """

    def __init__(self, outcomes: Sequence[Optional[SendError]] = (), on_write: Optional[Callable[[], None]] = None):
        self.outcomes: List[Optional[SendError]] = list(outcomes)
        self.on_write = on_write
        self.writes: List[Write] = []
        self.closed = False

    def write(self, url: str, payload: str, host_header: Optional[str] = None) -> None:
        self.writes.append(Write(url, payload, host_header))
        if self.on_write is not None:
            self.on_write()
        outcome = self.outcomes.pop(0) if self.outcomes else None
        if outcome is not None:
            raise outcome

    def close(self) -> None:
        self.closed = True


def wait_for(condition: Callable[[], bool], timeout: float = 5.0) -> None:
    deadline = time.monotonic() + timeout
    while not condition():
        if time.monotonic() > deadline:
            raise TimeoutError("condition was not met in time")
        time.sleep(0.01)
