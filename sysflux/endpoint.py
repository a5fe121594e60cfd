#
# Copyright (c) Granulate. All rights reserved.
# Licensed under the AGPL3 License. See LICENSE.md in the project root for license information.
#
from dataclasses import dataclass
from typing import Optional
from urllib.parse import SplitResult, urlencode, urlsplit, urlunsplit

from sysflux.exceptions import ConfigError
from sysflux.resolver import parse_dns_server

DEFAULT_URL = "http://localhost:8086"
DEFAULT_DATABASE = "test"
DEFAULT_WRITE_PATH = "/write"
SUPPORTED_SCHEMES = ("http", "https")


@dataclass(frozen=True)
class EndpointConfig:
    url: str
    tags: str = ""
    dns_server: Optional[str] = None

    @property
    def hostname(self) -> str:
        hostname = urlsplit(self.url).hostname
        assert hostname is not None
        return hostname

    def url_with_host(self, address: str) -> str:
        """
        Returns the delivery URL with its host replaced by address (keeping the port).
        """
        parts = urlsplit(self.url)
        host = f"[{address}]" if ":" in address else address
        netloc = host if parts.port is None else f"{host}:{parts.port}"
        return urlunsplit(parts._replace(netloc=netloc))

    @property
    def host_header(self) -> str:
        parts = urlsplit(self.url)
        return parts.netloc.rpartition("@")[2]


def format_tags(tags: Optional[str]) -> str:
    return f",{tags}" if tags else ""


def build_endpoint(
    url: str = DEFAULT_URL,
    database: str = DEFAULT_DATABASE,
    tags: Optional[str] = None,
    dns_server: Optional[str] = None,
) -> EndpointConfig:
    try:
        parts: SplitResult = urlsplit(url)
        hostname = parts.hostname
        # accessing the port validates it
        parts.port
    except ValueError as e:
        raise ConfigError(f"Invalid URL {url!r}: {e}") from e
    if not hostname:
        raise ConfigError(f"Invalid URL {url!r}: missing host")
    if parts.scheme not in SUPPORTED_SCHEMES:
        raise ConfigError(f"Invalid URL {url!r}: scheme must be one of {', '.join(SUPPORTED_SCHEMES)}")

    path = parts.path or DEFAULT_WRITE_PATH
    query = urlencode({"db": database})
    endpoint_url = urlunsplit((parts.scheme, parts.netloc, path, query, ""))

    if dns_server:
        parse_dns_server(dns_server)
    return EndpointConfig(url=endpoint_url, tags=format_tags(tags), dns_server=dns_server or None)
