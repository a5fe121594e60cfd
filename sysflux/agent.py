#
# Copyright (c) Granulate. All rights reserved.
# Licensed under the AGPL3 License. See LICENSE.md in the project root for license information.
#
from threading import Event
from types import TracebackType
from typing import Optional, Type

from sysflux.backoff import DEFAULT_MIN_BACKOFF_SECONDS, Backoff
from sysflux.buffer import DEFAULT_MAX_ENTRIES, EntryBuffer
from sysflux.client import InfluxWriteClient
from sysflux.endpoint import EndpointConfig
from sysflux.log import get_logger_adapter
from sysflux.reporter import DEFAULT_REPORT_INTERVAL_SECONDS, Reporter
from sysflux.resolver import make_resolver
from sysflux.sender import DEFAULT_POLL_INTERVAL_SECONDS, Sender
from sysflux.system_metrics import SamplerBase, SystemSampler

logger = get_logger_adapter(__name__)


class Agent:
    """
    Owns the entry buffer and the stop event shared by the Reporter and the Sender, and runs both of them.
    """

    def __init__(
        self,
        *,
        endpoint: EndpointConfig,
        client: InfluxWriteClient,
        interval: float = DEFAULT_REPORT_INTERVAL_SECONDS,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
        backoff_jitter: bool = False,
        sampler: Optional[SamplerBase] = None,
        stop_event: Optional[Event] = None,
    ):
        self._endpoint = endpoint
        self._client = client
        self.stop_event = stop_event if stop_event is not None else Event()
        self.buffer = EntryBuffer(max_entries)
        self.reporter = Reporter(
            self.buffer,
            sampler if sampler is not None else SystemSampler(),
            self.stop_event,
            tags=endpoint.tags,
            interval=interval,
        )
        self.sender = Sender(
            self.buffer,
            endpoint,
            client,
            Backoff(
                max_delay=2 * interval,
                min_delay=min(DEFAULT_MIN_BACKOFF_SECONDS, 2 * interval),
                jitter=backoff_jitter,
            ),
            self.stop_event,
            resolver=make_resolver(endpoint.dns_server),
            poll_interval=poll_interval,
        )

    def __enter__(self) -> "Agent":
        self.start()
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_val: Optional[BaseException],
        exc_ctb: Optional[TracebackType],
    ) -> None:
        self.stop()

    def start(self) -> None:
        self.stop_event.clear()
        self.reporter.start()
        self.sender.start()

    def stop(self) -> None:
        logger.info("Stopping ...")
        self.stop_event.set()
        try:
            self.reporter.stop()
        finally:
            try:
                self.sender.stop()
            finally:
                self._client.close()
        pending = len(self.buffer)
        if pending:
            logger.warning(f"Stopped with {pending} unsent entries")

    def run(self) -> None:
        with self:
            logger.info(f"Reporting to {self._endpoint.url}")
            # the main thread only waits; both loops observe the same event.
            while not self.stop_event.wait(1):
                pass
