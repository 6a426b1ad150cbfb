"""Copy everything read from client connections into a writer."""

from __future__ import annotations

from typing import Any


class TeeConn:
    """Wraps a connection and copies the bytes it reads into ``writer``.

    Everything other than reading is passed through to the wrapped connection.
    """

    def __init__(self, conn: Any, writer: Any) -> None:
        self._conn = conn
        self.writer = writer

    def read(self, size: int) -> bytes:
        reader = getattr(self._conn, "read", None)
        data = reader(size) if reader is not None else self._conn.recv(size)
        if data and self.writer is not None:
            try:
                self.writer.write(data)
            except (OSError, ValueError):
                pass  # a failing copy must not break the connection
        return data

    def recv(self, bufsize: int) -> bytes:
        return self.read(bufsize)

    def __getattr__(self, name: str) -> Any:
        return getattr(self._conn, name)


class TeeConnPlugin:
    """Wraps accepted connections so that what clients send is copied."""

    def __init__(self, writer: Any = None) -> None:
        self.writer = writer

    def update(self, writer: Any) -> None:
        """Set the writer for later connections; None stops copying."""
        self.writer = writer

    def handle_conn_accept(self, conn: Any) -> tuple[TeeConn, bool]:
        return TeeConn(conn, self.writer), True