#
# Copyright (c) Granulate. All rights reserved.
# Licensed under the AGPL3 License. See LICENSE.md in the project root for license information.
#
import ipaddress
from typing import List, Optional, Tuple

import dns.exception
import dns.resolver

from sysflux.exceptions import ConfigError, DNSLookupError
from sysflux.log import get_logger_adapter

logger = get_logger_adapter(__name__)

DNS_PORT = 53
DEFAULT_DNS_LIFETIME = 5.0


def _is_ip_address(value: str) -> bool:
    try:
        ipaddress.ip_address(value)
    except ValueError:
        return False
    return True


def parse_dns_server(dns_server: str) -> Tuple[str, int]:
    """
    Accepts "host", "host:port", "[ipv6]" and "[ipv6]:port".
    """
    dns_server = dns_server.strip()
    if dns_server.startswith("["):
        host, sep, rest = dns_server[1:].partition("]")
        if not sep:
            raise ConfigError(f"Invalid DNS server address {dns_server!r}")
        port_str = rest[1:] if rest.startswith(":") else rest
    elif dns_server.count(":") == 1:
        host, _, port_str = dns_server.partition(":")
    else:
        # a bare host, or an IPv6 address without brackets
        host, port_str = dns_server, ""

    if not host or not _is_ip_address(host):
        raise ConfigError(f"Invalid DNS server address {dns_server!r}, expected an IP address")
    if not port_str:
        return host, DNS_PORT
    try:
        port = int(port_str)
    except ValueError:
        raise ConfigError(f"Invalid DNS server port in {dns_server!r}") from None
    if not 0 < port < 65536:
        raise ConfigError(f"Invalid DNS server port in {dns_server!r}")
    return host, port


def resolve(hostname: str, dns_server: str, lifetime: float = DEFAULT_DNS_LIFETIME) -> List[str]:
    """
    Resolves hostname to its IPv4 addresses by querying dns_server directly, bypassing the system resolver.
    Raises DNSLookupError if the query fails or yields no addresses; never returns an empty list.
    """
    if _is_ip_address(hostname):
        return [hostname]

    try:
        host, port = parse_dns_server(dns_server)
    except ConfigError as e:
        raise DNSLookupError(hostname, dns_server, str(e)) from e

    resolver = dns.resolver.Resolver(configure=False)
    resolver.port = port
    resolver.nameservers = [host]
    resolver.lifetime = lifetime

    try:
        answer = resolver.resolve(hostname, "A")
    except dns.exception.DNSException as e:
        raise DNSLookupError(hostname, dns_server, str(e) or e.__class__.__name__) from e

    addresses = [rdata.address for rdata in answer]
    if not addresses:
        raise DNSLookupError(hostname, dns_server, "no answers")
    logger.debug(f"Resolved {hostname!r} via {dns_server!r} to {addresses}")
    return addresses


class Resolver:
    """
    Resolves the endpoint host via a fixed DNS server. No caching: every call queries the server again.
    """

    def __init__(self, dns_server: str, lifetime: float = DEFAULT_DNS_LIFETIME):
        # validate eagerly so a bad address fails at startup rather than on every send
        parse_dns_server(dns_server)
        self.dns_server = dns_server
        self._lifetime = lifetime

    def resolve(self, hostname: str) -> List[str]:
        return resolve(hostname, self.dns_server, self._lifetime)

    def resolve_first(self, hostname: str) -> str:
        return self.resolve(hostname)[0]


def make_resolver(dns_server: Optional[str], lifetime: float = DEFAULT_DNS_LIFETIME) -> Optional[Resolver]:
    if not dns_server:
        return None
    return Resolver(dns_server, lifetime)
