#
# Copyright (c) Granulate. All rights reserved.
# Licensed under the AGPL3 License. See LICENSE.md in the project root for license information.
#
import time
from threading import Event, Thread
from typing import List, Optional

from sysflux.buffer import EntryBuffer
from sysflux.exceptions import ThreadStopTimeoutError
from sysflux.log import get_logger_adapter
from sysflux.system_metrics import SamplerBase

logger = get_logger_adapter(__name__)

DEFAULT_REPORT_INTERVAL_SECONDS = 5 * 60
STOP_TIMEOUT_SECONDS = 30


def format_entry(name: str, tags: str, value: float, timestamp_ns: int) -> str:
    return f"{name}{tags} value={value:f} {timestamp_ns}"


class Reporter:
    """
    Producer loop: samples the system every interval and appends the formatted entries to the buffer.
    """

    def __init__(
        self,
        buffer: EntryBuffer,
        sampler: SamplerBase,
        stop_event: Event,
        tags: str = "",
        interval: float = DEFAULT_REPORT_INTERVAL_SECONDS,
    ):
        self._buffer = buffer
        self._sampler = sampler
        self._stop_event = stop_event
        self._tags = tags
        self._interval = interval
        self._thread: Optional[Thread] = None

    def tick(self) -> List[str]:
        timestamp_ns = time.time_ns()
        entries = [format_entry(name, self._tags, value, timestamp_ns) for name, value in self._sampler.sample()]
        dropped = self._buffer.append(entries)
        if dropped:
            logger.warning(
                f"Entry buffer is full ({self._buffer.max_entries} entries), dropped {dropped} oldest entries"
            )
        logger.debug(f"Reported {len(entries)} entries, {len(self._buffer)} pending")
        return entries

    def _report_loop(self) -> None:
        while not self._stop_event.is_set():
            tick_start = time.monotonic()
            try:
                self.tick()
            except Exception:
                logger.exception("Reporting tick failed!")
            self._stop_event.wait(max(self._interval - (time.monotonic() - tick_start), 0))

    def start(self) -> None:
        assert self._thread is None, "Reporter is already running"
        self._thread = Thread(target=self._report_loop, name="sysflux-reporter")
        self._thread.start()

    def stop(self) -> None:
        self._stop_event.set()
        assert self._thread is not None, "Reporter is not running"
        self._thread.join(STOP_TIMEOUT_SECONDS)
        if self._thread.is_alive():
            raise ThreadStopTimeoutError("Timed out while waiting for the Reporter thread to stop")
        self._thread = None

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
