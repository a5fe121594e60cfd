#
# Copyright (c) Granulate. All rights reserved.
# Licensed under the AGPL3 License. See LICENSE.md in the project root for license information.
#
from abc import ABCMeta, abstractmethod
from typing import List, Tuple

import psutil

from sysflux.exceptions import SampleError
from sysflux.log import get_logger_adapter

logger = get_logger_adapter(__name__)

CPU_LOAD_SHORT = "cpu_load_short"
CPU_LOAD_MEDIUM = "cpu_load_medium"
CPU_LOAD_LONG = "cpu_load_long"
MEM_USAGE = "mem_usage"

# load averages are reported as percent of a single CPU
LOAD_AVERAGE_SCALE = 100

Sample = Tuple[str, float]


class SamplerBase(metaclass=ABCMeta):
    @abstractmethod
    def _get_load_averages(self) -> Tuple[float, float, float]:
        raise NotImplementedError

    @abstractmethod
    def _get_memory_utilization(self) -> float:
        raise NotImplementedError

    def _sample_load_averages(self) -> List[Sample]:
        try:
            load1, load5, load15 = self._get_load_averages()
            return [
                (CPU_LOAD_SHORT, float(load1) * LOAD_AVERAGE_SCALE),
                (CPU_LOAD_MEDIUM, float(load5) * LOAD_AVERAGE_SCALE),
                (CPU_LOAD_LONG, float(load15) * LOAD_AVERAGE_SCALE),
            ]
        except Exception as e:
            raise SampleError("load averages", e) from e

    def _sample_memory(self) -> List[Sample]:
        try:
            return [(MEM_USAGE, self._get_memory_utilization())]
        except Exception as e:
            raise SampleError("memory usage", e) from e

    def sample(self) -> List[Sample]:
        """
        Returns (metric name, value) pairs for every metric source that could be read right now.
        Sources are independent: a failing one is skipped, the others are still reported.
        """
        samples: List[Sample] = []
        for source in (self._sample_load_averages, self._sample_memory):
            try:
                samples.extend(source())
            except SampleError as e:
                logger.warning(f"Skipping metric source for this tick: {e}")
        return samples


class SystemSampler(SamplerBase):
    def _get_load_averages(self) -> Tuple[float, float, float]:
        return psutil.getloadavg()

    def _get_memory_utilization(self) -> float:
        return float(psutil.virtual_memory().percent)
