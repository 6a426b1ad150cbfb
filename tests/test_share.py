import pytest

from rpcplug.share import share
from rpcplug.share.share import (
    CODECS,
    REQ_METADATA_KEY,
    RES_METADATA_KEY,
    ContextKey,
    FileTransferArgs,
    StreamServiceArgs,
    register_codec,
)


class MockCodec:
    def encode(self, obj):
        return b""

    def decode(self, data, obj):
        return None


@pytest.fixture
def restore_codecs():
    saved = dict(CODECS)
    yield
    CODECS.clear()
    CODECS.update(saved)


def test_register_codec(restore_codecs):
    registered = len(share.CODECS)
    codec = MockCodec()
    register_codec(127, codec)
    assert len(share.CODECS) == registered + 1
    assert share.CODECS[127] is codec


def test_register_codec_replaces(restore_codecs):
    register_codec(126, MockCodec())
    count = len(share.CODECS)
    replacement = MockCodec()
    register_codec(126, replacement)
    assert len(share.CODECS) == count
    assert share.CODECS[126] is replacement


def test_context_keys_do_not_collide_with_strings():
    table = {REQ_METADATA_KEY: "req"}
    assert table.get("__req_metadata") is None
    assert table[ContextKey("__req_metadata")] == "req"
    assert str(RES_METADATA_KEY) == "__res_metadata"


def test_payload_defaults_are_independent():
    first = FileTransferArgs(file_name="a.txt")
    second = FileTransferArgs()
    first.meta["k"] = "v"
    assert second.meta == {}
    assert StreamServiceArgs().meta == {}