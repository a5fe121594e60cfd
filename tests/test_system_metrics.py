#
# Copyright (c) Granulate. All rights reserved.
# Licensed under the AGPL3 License. See LICENSE.md in the project root for license information.
#
from threading import Event
from types import SimpleNamespace

import psutil
import pytest
from pytest import MonkeyPatch

from sysflux.buffer import EntryBuffer
from sysflux.reporter import Reporter
from sysflux.system_metrics import SystemSampler
from tests.utils import FakeSampler


def test_all_sources() -> None:
    sampler = FakeSampler(load_averages=(1.0, 0.5, 0.2), memory=42.5)
    assert sampler.sample() == [
        ("cpu_load_short", 100.0),
        ("cpu_load_medium", 50.0),
        ("cpu_load_long", 20.0),
        ("mem_usage", 42.5),
    ]


@pytest.mark.parametrize("error", [OSError("no /proc/loadavg"), AttributeError("getloadavg"), psutil.Error()])
def test_failing_load_averages_are_skipped(error: Exception) -> None:
    sampler = FakeSampler(load_averages=error, memory=42.5)
    assert sampler.sample() == [("mem_usage", 42.5)]


def test_failing_memory_is_skipped() -> None:
    sampler = FakeSampler(load_averages=(2.0, 1.0, 0.5), memory=OSError("no /proc/meminfo"))
    assert [name for name, _ in sampler.sample()] == ["cpu_load_short", "cpu_load_medium", "cpu_load_long"]


def test_all_sources_failing() -> None:
    sampler = FakeSampler(load_averages=OSError(), memory=OSError())
    assert sampler.sample() == []


def test_any_failing_source_is_skipped() -> None:
    sampler = FakeSampler(load_averages=ValueError("not enough values to unpack"), memory=1.0)
    assert sampler.sample() == [("mem_usage", 1.0)]

    sampler = FakeSampler(load_averages=(1.0, 0.5, 0.2), memory=RuntimeError("sysctl failed"))
    assert [name for name, _ in sampler.sample()] == ["cpu_load_short", "cpu_load_medium", "cpu_load_long"]


def test_malformed_load_averages_are_skipped(monkeypatch: MonkeyPatch) -> None:
    monkeypatch.setattr(psutil, "getloadavg", lambda: (1.0, 0.5))
    monkeypatch.setattr(psutil, "virtual_memory", lambda: SimpleNamespace(percent=12.5))
    assert SystemSampler().sample() == [("mem_usage", 12.5)]


def test_failing_memory_keeps_load_averages_in_tick(monkeypatch: MonkeyPatch) -> None:
    def failing_virtual_memory() -> None:
        raise RuntimeError("host_statistics(HOST_VM_INFO) syscall failed")

    monkeypatch.setattr(psutil, "getloadavg", lambda: (1.0, 0.5, 0.2))
    monkeypatch.setattr(psutil, "virtual_memory", failing_virtual_memory)
    buffer = EntryBuffer()

    entries = Reporter(buffer, SystemSampler(), Event(), tags=",host=a").tick()

    assert len(entries) == 3
    assert buffer.entries() == tuple(entries)
    assert all(entry.startswith("cpu_load_") for entry in entries)


def test_system_sampler_reads_psutil(monkeypatch: MonkeyPatch) -> None:
    monkeypatch.setattr(psutil, "getloadavg", lambda: (0.25, 0.5, 0.75))
    monkeypatch.setattr(psutil, "virtual_memory", lambda: SimpleNamespace(percent=12.5))
    assert dict(SystemSampler().sample()) == {
        "cpu_load_short": 25.0,
        "cpu_load_medium": 50.0,
        "cpu_load_long": 75.0,
        "mem_usage": 12.5,
    }


def test_system_sampler_real_host() -> None:
    names = [name for name, _ in SystemSampler().sample()]
    assert "mem_usage" in names
