from __future__ import annotations

import io
import socket

from rpcplug.serverplugin.tee import TeeConn, TeeConnPlugin


class FakeConn:
    def __init__(self, data: bytes):
        self._stream = io.BytesIO(data)
        self.closed = False

    def read(self, size):
        return self._stream.read(size)

    def close(self):
        self.closed = True


class BrokenWriter:
    def write(self, data):
        raise OSError("disk full")


def test_reads_are_copied_to_writer():
    sink = io.BytesIO()
    plugin = TeeConnPlugin(sink)
    conn, accepted = plugin.handle_conn_accept(FakeConn(b"hello world"))
    assert accepted is True
    assert isinstance(conn, TeeConn)
    assert conn.read(5) == b"hello"
    assert conn.read(100) == b" world"
    assert sink.getvalue() == b"hello world"


def test_update_none_stops_copying_for_new_connections():
    sink = io.BytesIO()
    plugin = TeeConnPlugin(sink)
    plugin.update(None)
    conn, _ = plugin.handle_conn_accept(FakeConn(b"data"))
    assert conn.read(4) == b"data"
    assert sink.getvalue() == b""


def test_writer_errors_are_ignored():
    conn, _ = TeeConnPlugin(BrokenWriter()).handle_conn_accept(FakeConn(b"abc"))
    assert conn.read(3) == b"abc"


def test_other_attributes_pass_through():
    inner = FakeConn(b"")
    conn, _ = TeeConnPlugin(io.BytesIO()).handle_conn_accept(inner)
    conn.close()
    assert inner.closed is True


def test_socket_connection_is_copied():
    left, right = socket.socketpair()
    with left, right:
        sink = io.BytesIO()
        conn, _ = TeeConnPlugin(sink).handle_conn_accept(right)
        left.sendall(b"ping")
        assert conn.recv(4) == b"ping"
        assert sink.getvalue() == b"ping"