"""Refuse connections from listed addresses and networks."""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass, field
from typing import Any, Union

_Network = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]


def _remote_host(conn: Any) -> str | None:
    try:
        peer = conn.getpeername()
    except (OSError, AttributeError):
        return None
    if isinstance(peer, tuple) and peer:
        return str(peer[0])
    if isinstance(peer, str):
        host, sep, _ = peer.rpartition(":")
        return host.strip("[]") if sep else None
    return None


def _in_networks(host: str, networks: list[_Network]) -> bool:
    try:
        ip = ipaddress.ip_address(host)
    except ValueError:
        return False
    if ip.version == 6 and ip.ipv4_mapped is not None:
        ip = ip.ipv4_mapped
    return any(ip in network for network in networks)


@dataclass
class BlacklistPlugin:
    """Accepts every connection except those from listed IPs or networks."""

    blacklist: set[str] = field(default_factory=set)
    blacklist_mask: list[_Network] = field(default_factory=list)

    def handle_conn_accept(self, conn: Any) -> tuple[Any, bool]:
        """Return ``(conn, accepted)``; an unknown peer address is accepted."""
        host = _remote_host(conn)
        if host is None:
            return conn, True
        if host in self.blacklist:
            return conn, False
        if _in_networks(host, self.blacklist_mask):
            return conn, False
        return conn, True