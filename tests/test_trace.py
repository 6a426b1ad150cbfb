from rpcplug.share.context import Context
from rpcplug.share.share import REQ_METADATA_KEY
from rpcplug.share.trace import MetadataSupplier, extract, inject


class HeaderPropagator:
    def __init__(self, header, value):
        self.header = header
        self.value = value
        self.seen = []

    def inject(self, ctx, carrier):
        self.seen.append(carrier)
        carrier.set(self.header, self.value)

    def extract(self, ctx, carrier):
        self.seen.append(carrier)
        return carrier.get(self.header)


class PlainContext:
    def value(self, key):
        return None


def test_supplier_get_set_keys():
    meta = {"a": "1"}
    supplier = MetadataSupplier(meta)
    supplier.set("b", "2")
    assert supplier.get("b") == "2"
    assert supplier.get("missing") == ""
    assert sorted(supplier.keys()) == ["a", "b"]
    assert meta == {"a": "1", "b": "2"}


def test_inject_creates_metadata_on_context():
    ctx = Context(None)
    inject(ctx, HeaderPropagator("traceparent", "span-1"))
    assert ctx.value(REQ_METADATA_KEY) == {"traceparent": "span-1"}


def test_inject_then_extract_round_trip():
    ctx = Context(None)
    inject(ctx, HeaderPropagator("traceparent", "span-2"))
    assert extract(ctx, HeaderPropagator("traceparent", "ignored")) == "span-2"


def test_extract_uses_existing_metadata():
    ctx = Context(None)
    ctx.set_value(REQ_METADATA_KEY, {"traceparent": "span-3"})
    assert extract(ctx, HeaderPropagator("traceparent", "x")) == "span-3"


def test_extract_without_metadata_stores_empty_dict():
    ctx = Context(None)
    result = extract(ctx, HeaderPropagator("traceparent", "x"))
    assert result == ""
    assert ctx.value(REQ_METADATA_KEY) == {}


def test_inject_on_plain_context_uses_fresh_metadata():
    propagator = HeaderPropagator("traceparent", "span-4")
    inject(PlainContext(), propagator)
    assert len(propagator.seen) == 1
    assert propagator.seen[0].metadata == {"traceparent": "span-4"}