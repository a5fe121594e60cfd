#
# Copyright (c) Granulate. All rights reserved.
# Licensed under the AGPL3 License. See LICENSE.md in the project root for license information.
#
from typing import Optional


class ConfigError(Exception):
    pass


class SampleError(Exception):
    def __init__(self, metric_source: str, reason: Exception):
        super().__init__(f"Failed to sample {metric_source}: {reason!r}")
        self.metric_source = metric_source
        self.reason = reason


class SendError(Exception):
    """
    Base class for everything that can fail a single delivery attempt.
    The Sender catches these and converts them into a backoff wait.
    """

    pass


class DNSLookupError(SendError, LookupError):
    def __init__(self, hostname: str, dns_server: str, reason: Optional[str] = None):
        message = f"Could not resolve {hostname!r} via DNS server {dns_server!r}"
        if reason is not None:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.hostname = hostname
        self.dns_server = dns_server


class TransportError(SendError):
    pass


class UnexpectedStatusError(SendError):
    # Enough characters for a typical InfluxDB error body
    MAX_BODY_LENGTH = 1024

    def __init__(self, status_code: int, body: str):
        self.status_code = status_code
        self.body = body
        super().__init__(status_code, body)

    def __str__(self) -> str:
        body = self.body
        if len(body) > self.MAX_BODY_LENGTH:
            body = body[: self.MAX_BODY_LENGTH - 3] + "..."
        return f"Unexpected response status {self.status_code}: {body}"


class ThreadStopTimeoutError(Exception):
    pass
