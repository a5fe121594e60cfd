#
# Copyright (c) Granulate. All rights reserved.
# Licensed under the AGPL3 License. See LICENSE.md in the project root for license information.
#
import time
from threading import Event

from pytest import LogCaptureFixture, MonkeyPatch

from sysflux.buffer import EntryBuffer
from sysflux.reporter import Reporter, format_entry
from tests.utils import FakeSampler, wait_for

TICK_NS = 1_700_000_000_000_000_000


class SingleMetricSampler(FakeSampler):
    def sample(self):  # type: ignore[no-untyped-def]
        return [("mem_usage", 1.0)]


def test_format_entry() -> None:
    assert format_entry("mem_usage", ",host=a", 42.5, TICK_NS) == f"mem_usage,host=a value=42.500000 {TICK_NS}"
    assert format_entry("cpu_load_short", "", 3.0, 1) == "cpu_load_short value=3.000000 1"


def test_tick_formats_every_sample(
    monkeypatch: MonkeyPatch, buffer: EntryBuffer, sampler: FakeSampler, stop_event: Event
) -> None:
    monkeypatch.setattr(time, "time_ns", lambda: TICK_NS)
    reporter = Reporter(buffer, sampler, stop_event, tags=",host=a", interval=300)

    reporter.tick()

    assert buffer.entries() == (
        f"cpu_load_short,host=a value=100.000000 {TICK_NS}",
        f"cpu_load_medium,host=a value=50.000000 {TICK_NS}",
        f"cpu_load_long,host=a value=20.000000 {TICK_NS}",
        f"mem_usage,host=a value=42.500000 {TICK_NS}",
    )


def test_tick_with_failed_source(buffer: EntryBuffer, stop_event: Event) -> None:
    reporter = Reporter(buffer, FakeSampler(load_averages=OSError(), memory=10.0), stop_event)
    entries = reporter.tick()
    assert len(entries) == 1
    assert entries[0].startswith("mem_usage value=10.000000 ")


def test_ticks_accumulate_without_sends(stop_event: Event) -> None:
    buffer = EntryBuffer(max_entries=10)
    reporter = Reporter(buffer, SingleMetricSampler(load_averages=(0, 0, 0), memory=1.0), stop_event)
    for n in range(1, 11):
        reporter.tick()
        assert len(buffer) == n
    for _ in range(5):
        reporter.tick()
        assert len(buffer) == 10


def test_overflow_is_logged(caplog: LogCaptureFixture, sampler: FakeSampler, stop_event: Event) -> None:
    buffer = EntryBuffer(max_entries=6)
    reporter = Reporter(buffer, sampler, stop_event)
    reporter.tick()
    reporter.tick()

    assert len(buffer) == 6
    assert "dropped 2 oldest entries" in caplog.text


def test_loop_ticks_immediately_and_stops(buffer: EntryBuffer, sampler: FakeSampler, stop_event: Event) -> None:
    reporter = Reporter(buffer, sampler, stop_event, interval=300)
    reporter.start()
    try:
        wait_for(lambda: len(buffer) == 4)
        assert reporter.is_running()
    finally:
        reporter.stop()
    assert not reporter.is_running()
    assert len(buffer) == 4


class FlakySampler(FakeSampler):
    def __init__(self) -> None:
        super().__init__(load_averages=(1.0, 1.0, 1.0), memory=1.0)
        self.broken = True

    def sample(self):  # type: ignore[no-untyped-def]
        if self.broken:
            raise RuntimeError("sampler is broken")
        return super().sample()


def test_loop_survives_failing_tick(buffer: EntryBuffer, stop_event: Event) -> None:
    sampler = FlakySampler()
    reporter = Reporter(buffer, sampler, stop_event, interval=0.01)
    reporter.start()
    try:
        time.sleep(0.05)
        assert len(buffer) == 0
        assert reporter.is_running()
        sampler.broken = False
        wait_for(lambda: len(buffer) > 0)
    finally:
        reporter.stop()
