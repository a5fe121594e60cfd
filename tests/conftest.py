#
# Copyright (c) Granulate. All rights reserved.
# Licensed under the AGPL3 License. See LICENSE.md in the project root for license information.
#
import logging
from threading import Event
from typing import Iterator, List

from pytest import fixture

from sysflux.backoff import Backoff
from sysflux.buffer import EntryBuffer
from sysflux.endpoint import EndpointConfig, build_endpoint
from tests.utils import FakeClient, FakeSampler


@fixture
def stop_event() -> Event:
    return Event()


@fixture
def buffer() -> EntryBuffer:
    return EntryBuffer(max_entries=100)


@fixture
def endpoint() -> EndpointConfig:
    return build_endpoint("http://influx.local:8086", "metrics", "host=a")


@fixture
def client() -> FakeClient:
    return FakeClient()


@fixture
def sampler() -> FakeSampler:
    return FakeSampler(load_averages=(1.0, 0.5, 0.2), memory=42.5)


@fixture
def backoff() -> Backoff:
    return Backoff(max_delay=600, min_delay=1)


@fixture
def restore_sysflux_logger() -> Iterator[None]:
    """
    main() installs handlers on the "sysflux" logger; remove them so later tests don't log to closed streams.
    """
    sysflux_logger = logging.getLogger("sysflux")
    handlers: List[logging.Handler] = list(sysflux_logger.handlers)
    level = sysflux_logger.level
    try:
        yield
    finally:
        for handler in sysflux_logger.handlers:
            if handler not in handlers:
                handler.close()
        sysflux_logger.handlers = handlers
        sysflux_logger.setLevel(level)
