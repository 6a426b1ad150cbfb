"""Network helpers: free ports, service addresses, metadata strings, local IPs."""

from __future__ import annotations

import ipaddress
import re
import socket
from urllib.parse import quote_plus, unquote_to_bytes

import psutil

_BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")
_PORT = re.compile(r"[+-]?[0-9]+")


def get_free_port() -> int:
    """Return a TCP port on 127.0.0.1 that is free right now."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def _split_host_port(hostport: str) -> tuple[str, str]:
    if hostport.startswith("["):
        end = hostport.find("]")
        if end < 0:
            raise ValueError(f"address {hostport}: missing ']' in address")
        host = hostport[1:end]
        rest = hostport[end + 1 :]
        if not rest:
            raise ValueError(f"address {hostport}: missing port in address")
        if not rest.startswith(":") or ":" in rest[1:]:
            raise ValueError(f"address {hostport}: unexpected text after host")
        return host, rest[1:]
    if ":" not in hostport:
        raise ValueError(f"address {hostport}: missing port in address")
    host, port = hostport.rsplit(":", 1)
    if ":" in host:
        raise ValueError(f"address {hostport}: too many colons in address")
    if "[" in host or "]" in host:
        raise ValueError(f"address {hostport}: unexpected bracket in address")
    return host, port


def parse_rpcx_address(addr: str) -> tuple[str, str, int]:
    """Split an address such as ``tcp@127.0.0.1:8972`` into (network, ip, port)."""
    at = addr.find("@")
    if at <= 0:
        raise ValueError(f"invalid rpcx address: {addr}")
    network = addr[:at]
    host, port = _split_host_port(addr[at + 1 :])
    if not _PORT.fullmatch(port):
        raise ValueError(f"invalid port {port!r} in {addr}")
    return network, host, int(port)


def _query_unescape(text: str) -> str:
    if _BAD_ESCAPE.search(text):
        raise ValueError(f"invalid URL escape in {text!r}")
    return unquote_to_bytes(text.replace("+", " ")).decode("utf-8", "surrogateescape")


def convert_meta_to_map(meta: str) -> dict[str, str]:
    """Parse a query-encoded metadata string; any malformed part yields ``{}``."""
    result: dict[str, str] = {}
    if not meta:
        return result
    try:
        for part in meta.split("&"):
            if ";" in part:
                raise ValueError("invalid semicolon separator in query")
            if not part:
                continue
            key, _, value = part.partition("=")
            result.setdefault(_query_unescape(key), _query_unescape(value))
    except ValueError:
        return {}
    return result


def convert_map_to_string(meta: dict[str, str]) -> str:
    """Encode metadata as a query string with keys in sorted order."""
    return "&".join(
        f"{quote_plus(key, safe='')}={quote_plus(meta[key], safe='')}"
        for key in sorted(meta)
    )


def _is_loopback_interface(stats) -> bool:
    flags = getattr(stats, "flags", "") or ""
    return "loopback" in flags.split(",")


def _first_external_address(ipv4_only: bool) -> str:
    stats = psutil.net_if_stats()
    for name, addrs in psutil.net_if_addrs().items():
        iface = stats.get(name)
        if iface is None or not iface.isup:
            continue
        if _is_loopback_interface(iface):
            continue
        for addr in addrs:
            if addr.family not in (socket.AF_INET, socket.AF_INET6):
                continue
            try:
                ip = ipaddress.ip_address(addr.address.split("%", 1)[0])
            except ValueError:
                continue
            if ip.version == 6 and ip.ipv4_mapped is not None:
                ip = ip.ipv4_mapped
            if ip.is_loopback:
                continue
            if ipv4_only and ip.version != 4:
                continue
            return str(ip)
    raise OSError("are you connected to the network?")


def external_ipv4() -> str:
    """Return the first IPv4 address of an interface that is up and not loopback."""
    return _first_external_address(ipv4_only=True)


def external_ipv6() -> str:
    """Return the first address of either family on an up, non-loopback interface."""
    return _first_external_address(ipv4_only=False)