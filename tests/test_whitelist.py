from __future__ import annotations

import ipaddress

from rpcplug.serverplugin.whitelist import WhitelistPlugin


class FakeConn:
    def __init__(self, peer):
        self.peer = peer

    def getpeername(self):
        if isinstance(self.peer, Exception):
            raise self.peer
        return self.peer


def _plugin() -> WhitelistPlugin:
    return WhitelistPlugin(
        whitelist={"10.0.0.5"},
        whitelist_mask=[ipaddress.ip_network("172.17.0.0/16")],
    )


def test_listed_ip_is_accepted():
    conn = FakeConn(("10.0.0.5", 4000))
    result, accepted = _plugin().handle_conn_accept(conn)
    assert result is conn
    assert accepted is True


def test_ip_in_masked_network_is_accepted():
    _, accepted = _plugin().handle_conn_accept(FakeConn(("172.17.3.4", 4000)))
    assert accepted is True


def test_ipv4_mapped_address_matches_network():
    _, accepted = _plugin().handle_conn_accept(FakeConn(("::ffff:172.17.3.4", 4000, 0, 0)))
    assert accepted is True


def test_other_ip_is_refused():
    _, accepted = _plugin().handle_conn_accept(FakeConn(("192.168.1.9", 4000)))
    assert accepted is False


def test_unknown_peer_is_refused():
    _, accepted = _plugin().handle_conn_accept(FakeConn(OSError("not connected")))
    assert accepted is False


def test_empty_plugin_refuses_everyone():
    _, accepted = WhitelistPlugin().handle_conn_accept(FakeConn(("10.0.0.5", 4000)))
    assert accepted is False