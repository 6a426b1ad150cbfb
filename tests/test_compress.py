import pytest

from rpcplug.util.compress import unzip_bytes, zip_bytes

SAMPLE = (
    "%5B%7B%22service%22%3A%22AttrDict%22%2C%22service_address%22%3A%22udp%40127.0.0.1"
    "%3A5353%22%7D%2C%7B%22service%22%3A%22BrasInfo%22%2C%22service_address%22%3A%22udp"
    "%40127.0.0.1%3A5353%22%7D%5D"
)


def test_zip_round_trip():
    data = zip_bytes(SAMPLE.encode())
    assert unzip_bytes(data).decode() == SAMPLE


def test_zip_produces_gzip_header():
    assert zip_bytes(SAMPLE.encode())[:2] == b"\x1f\x8b"


def test_empty_round_trip():
    assert unzip_bytes(zip_bytes(b"")) == b""


def test_unzip_rejects_garbage():
    with pytest.raises(ValueError):
        unzip_bytes(b"definitely not gzip")


def test_unzip_rejects_truncated():
    data = zip_bytes(SAMPLE.encode())
    with pytest.raises(ValueError):
        unzip_bytes(data[: len(data) // 2])