"""Shared constants, codec registry, context keys and service payloads."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

DEFAULT_RPC_PATH = "/_rpcx_"
AUTH_KEY = "__AUTH"
SERVER_ADDRESS = "__ServerAddress"
SERVER_TIMEOUT = "__ServerTimeout"
SEND_FILE_SERVICE_NAME = "_filetransfer"
STREAM_SERVICE_NAME = "_streamservice"

# Enables trace logging; meant for testing, not production.
TRACE = False


class _Codec(Protocol):
    def encode(self, obj: Any) -> bytes: ...

    def decode(self, data: bytes, obj: Any) -> Any: ...


# Codecs by serialize type; callers register the ones they support.
CODECS: dict[int, _Codec] = {}


def register_codec(serialize_type: int, codec: _Codec) -> None:
    """Register (or replace) the codec for a serialize type."""
    CODECS[serialize_type] = codec


@dataclass(frozen=True)
class ContextKey:
    """A context key that never collides with plain string keys."""

    name: str

    def __str__(self) -> str:
        return self.name


REQ_METADATA_KEY = ContextKey("__req_metadata")
RES_METADATA_KEY = ContextKey("__res_metadata")


@dataclass
class FileTransferArgs:
    file_name: str = ""
    file_size: int = 0
    meta: dict[str, str] = field(default_factory=dict)


@dataclass
class FileTransferReply:
    token: bytes = b""
    addr: str = ""


@dataclass
class DownloadFileArgs:
    file_name: str = ""
    meta: dict[str, str] = field(default_factory=dict)


@dataclass
class StreamServiceArgs:
    meta: dict[str, str] = field(default_factory=dict)


@dataclass
class StreamServiceReply:
    token: bytes = b""
    addr: str = ""