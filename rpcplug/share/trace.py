"""Carry trace propagation headers in request metadata."""

from __future__ import annotations

import enum
from typing import Any, Protocol

from rpcplug.share.context import Context
from rpcplug.share.share import REQ_METADATA_KEY


class _OpenTelemetryKeyType(enum.Enum):
    SPAN = 0


# Context key under which a server span is stored.
OPEN_TELEMETRY_KEY = _OpenTelemetryKeyType.SPAN


class MetadataSupplier:
    """A text-map carrier backed by a request metadata dict."""

    def __init__(self, metadata: dict[str, str]) -> None:
        self.metadata = metadata

    def get(self, key: str) -> str:
        return self.metadata.get(key, "")

    def set(self, key: str, value: str) -> None:
        self.metadata[key] = value

    def keys(self) -> list[str]:
        return list(self.metadata)


class _TextMapPropagator(Protocol):
    def inject(self, ctx: Any, carrier: MetadataSupplier) -> None: ...

    def extract(self, ctx: Any, carrier: MetadataSupplier) -> Any: ...


def _request_metadata(ctx: Any) -> dict[str, str]:
    meta = ctx.value(REQ_METADATA_KEY)
    if meta is None:
        meta = {}
        if isinstance(ctx, Context):
            ctx.set_value(REQ_METADATA_KEY, meta)
    return meta


def inject(ctx: Any, propagator: _TextMapPropagator) -> None:
    """Let ``propagator`` write its headers into the request metadata of ``ctx``."""
    propagator.inject(ctx, MetadataSupplier(_request_metadata(ctx)))


def extract(ctx: Any, propagator: _TextMapPropagator) -> Any:
    """Return the span context ``propagator`` reads from the request metadata."""
    return propagator.extract(ctx, MetadataSupplier(_request_metadata(ctx)))