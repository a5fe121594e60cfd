#
# Copyright (c) Granulate. All rights reserved.
# Licensed under the AGPL3 License. See LICENSE.md in the project root for license information.
#
import enum
from threading import Event, Thread
from typing import Optional

from sysflux.backoff import Backoff
from sysflux.buffer import EntryBuffer
from sysflux.client import InfluxWriteClient
from sysflux.endpoint import EndpointConfig
from sysflux.exceptions import SendError, ThreadStopTimeoutError
from sysflux.log import get_logger_adapter
from sysflux.resolver import Resolver

logger = get_logger_adapter(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 1.0
STOP_TIMEOUT_SECONDS = 30


class SenderState(enum.Enum):
    IDLE = "idle"
    SENDING = "sending"
    BACKOFF_WAIT = "backoff_wait"


class Sender:
    """
    Consumer loop: polls the buffer and delivers everything pending in a single write.

    The buffer lock is held only to snapshot and to remove delivered entries, never across the network call, so the
    Reporter is never blocked by a slow endpoint. Entries appended while a write is in flight stay queued for the next
    cycle.
    """

    def __init__(
        self,
        buffer: EntryBuffer,
        endpoint: EndpointConfig,
        client: InfluxWriteClient,
        backoff: Backoff,
        stop_event: Event,
        resolver: Optional[Resolver] = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
    ):
        self._buffer = buffer
        self._endpoint = endpoint
        self._client = client
        self._backoff = backoff
        self._stop_event = stop_event
        self._resolver = resolver
        self._poll_interval = poll_interval
        self._thread: Optional[Thread] = None
        self.state = SenderState.IDLE

    @property
    def backoff(self) -> Backoff:
        return self._backoff

    def _write(self, payload: str) -> None:
        if self._resolver is None:
            self._client.write(self._endpoint.url, payload)
            return

        # resolved on every attempt, the endpoint address may change between sends
        address = self._resolver.resolve_first(self._endpoint.hostname)
        self._client.write(
            self._endpoint.url_with_host(address), payload, host_header=self._endpoint.host_header
        )

    def send_once(self) -> Optional[float]:
        """
        Performs at most one delivery attempt.
        Returns None if the buffer was empty or the write succeeded, else the backoff delay to wait before retrying.
        """
        snapshot = self._buffer.snapshot()
        if not snapshot.entries:
            return None

        self.state = SenderState.SENDING
        try:
            self._write(snapshot.payload())
        except SendError as e:
            delay = self._backoff.duration()
            logger.error(
                f"Sending {len(snapshot.entries)} entries failed: {e}; retrying in {delay:.1f} seconds"
            )
            self.state = SenderState.BACKOFF_WAIT
            return delay

        removed = self._buffer.remove_sent(snapshot)
        self._backoff.reset()
        logger.info(f"Successfully sent {len(snapshot.entries)} entries ({removed} removed from buffer)")
        self.state = SenderState.IDLE
        return None

    def _send_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                delay = self.send_once()
            except Exception:
                logger.exception("Unexpected error while sending entries")
                delay = self._backoff.duration()
            self._stop_event.wait(self._poll_interval if delay is None else delay)
            self.state = SenderState.IDLE

    def start(self) -> None:
        assert self._thread is None, "Sender is already running"
        self._thread = Thread(target=self._send_loop, name="sysflux-sender")
        self._thread.start()

    def stop(self) -> None:
        self._stop_event.set()
        assert self._thread is not None, "Sender is not running"
        self._thread.join(STOP_TIMEOUT_SECONDS)
        if self._thread.is_alive():
            raise ThreadStopTimeoutError("Timed out while waiting for the Sender thread to stop")
        self._thread = None

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
