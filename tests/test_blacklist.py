from __future__ import annotations

import ipaddress

from rpcplug.serverplugin.blacklist import BlacklistPlugin


class FakeConn:
    def __init__(self, peer):
        self.peer = peer

    def getpeername(self):
        if isinstance(self.peer, Exception):
            raise self.peer
        return self.peer


def _plugin() -> BlacklistPlugin:
    return BlacklistPlugin(
        blacklist={"10.0.0.5"},
        blacklist_mask=[ipaddress.ip_network("172.17.0.0/16")],
    )


def test_listed_ip_is_refused():
    conn = FakeConn(("10.0.0.5", 4000))
    result, accepted = _plugin().handle_conn_accept(conn)
    assert result is conn
    assert accepted is False


def test_ip_in_masked_network_is_refused():
    _, accepted = _plugin().handle_conn_accept(FakeConn(("172.17.3.4", 4000)))
    assert accepted is False


def test_other_ip_is_accepted():
    _, accepted = _plugin().handle_conn_accept(FakeConn(("192.168.1.9", 4000)))
    assert accepted is True


def test_ipv6_peer_outside_networks_is_accepted():
    _, accepted = _plugin().handle_conn_accept(FakeConn(("::1", 4000, 0, 0)))
    assert accepted is True


def test_unknown_peer_is_accepted():
    _, accepted = _plugin().handle_conn_accept(FakeConn(OSError("not connected")))
    assert accepted is True


def test_string_peer_address_is_parsed():
    _, accepted = _plugin().handle_conn_accept(FakeConn("10.0.0.5:4000"))
    assert accepted is False