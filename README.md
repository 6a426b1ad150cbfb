# rpcplug

Building blocks for the server side of an RPC framework: plugins that hook
into connection accepting, request reading and service registration, a shared
request context, and small utilities.

## Installation

```
pip install rpcplug
```

To run the test suite:

```
pip install "rpcplug[test]"
pytest
```

## `rpcplug.util`

- `buffer_pool.LimitedPool(min_size, max_size)`: byte buffers pooled in
  size levels `min_size, 2*min_size, ..., max_size`. `get(size)` returns a
  writable `memoryview` of exactly `size` bytes (a fresh, unpooled buffer
  above `max_size`); `put(buf)` returns a buffer to its level, dropping
  buffers outside the bounds.
- `compress.zip_bytes(data)` / `compress.unzip_bytes(data)`: gzip
  compression; `unzip_bytes` raises `ValueError` on data that is not gzip.
- `converter.slice_byte_to_string`, `converter.string_to_slice_byte`: UTF-8
  conversion that keeps invalid bytes (surrogate escapes), and `copy_meta(src,
  dst)`, which copies one metadata dict into another.
- `net`:
  - `get_free_port()`: a TCP port on 127.0.0.1 that is free right now.
  - `parse_rpcx_address(addr)`: splits `tcp@127.0.0.1:8972` into
    `(network, ip, port)`; raises `ValueError` on malformed addresses.
  - `convert_meta_to_map(meta)`: parses a query-encoded string into a dict,
    returning `{}` if any part is malformed.
  - `convert_map_to_string(meta)`: encodes a dict as a query string with
    sorted keys.
  - `external_ipv4()` / `external_ipv6()`: the first address of an interface
    that is up and not loopback (IPv4 only, or either family); raise
    `OSError` when none is found.

```python
from rpcplug.util.net import parse_rpcx_address, convert_map_to_string

network, ip, port = parse_rpcx_address("tcp@127.0.0.1:8972")
convert_map_to_string({"weight": "10", "group": "a b"})  # 'group=a+b&weight=10'
```

## `rpcplug.share`

- `context.Context(parent=None)`: holds values of its own (`value`,
  `set_value`, `delete_key`) and falls back to its parent's `value(key)`.
  `with_value(parent, key, val)` makes a new context; `with_local_value(ctx,
  key, val)` sets the value on `ctx` itself. Both reject a `None` key with
  `ValueError` and an unhashable key with `TypeError`.
- `share`: protocol constants (`DEFAULT_RPC_PATH`, `AUTH_KEY`, ...),
  `ContextKey`, the context keys `REQ_METADATA_KEY` and `RES_METADATA_KEY`,
  the codec table `CODECS` with `register_codec(serialize_type, codec)`, and
  the dataclasses `FileTransferArgs`, `FileTransferReply`, `DownloadFileArgs`,
  `StreamServiceArgs`, `StreamServiceReply`.
- `trace`: `MetadataSupplier` is a text-map carrier over a metadata dict;
  `inject(ctx, propagator)` and `extract(ctx, propagator)` hand the request
  metadata of a context to any propagator object with `inject` / `extract`
  methods, creating that metadata on a `Context` if it is missing.

## `rpcplug.serverplugin`

Plugins work on plain objects: a connection is anything with `getpeername()`
(and `read` or `recv` for the tee plugin); a request or response is anything
with `service_path`, `service_method` and `metadata` attributes. Intervals
are in seconds.

- `alias.AliasPlugin`: `alias(alias_path, alias_method, path, method)` maps
  an alias to a real service; `post_read_request` rewrites requests and marks
  them, `pre_write_response` restores the alias names on the request and the
  response.
- `blacklist.BlacklistPlugin(blacklist, blacklist_mask)` and
  `whitelist.WhitelistPlugin(whitelist, whitelist_mask)`: decide on a
  connection by IP string or `ipaddress` network. `handle_conn_accept(conn)`
  returns `(conn, accepted)`.
- `rate_limiting`: `TokenBucket(fill_interval, capacity)` with
  `take_available(count)` and `wait(count)`; `RateLimitingPlugin` refuses
  connections when no token is available; `ReqRateLimitingPlugin(...,
  block=False)` either waits for a token or raises `ReqReachLimitError`.
- `tee.TeeConnPlugin(writer)`: wraps accepted connections in `TeeConn`, which
  copies every byte read into `writer`; `update(writer)` changes it, `None`
  stops copying.
- `metrics`: `MetricsRegistry` with `Counter`, `Meter` and `Histogram`
  (exponentially decaying sample), and `MetricsPlugin(registry, prefix)` that
  counts registered services, connections, reads and writes per method, and
  call times taken from the start time stored under
  `START_REQUEST_CONTEXT_KEY`. `log(freq, logger)` logs every metric
  periodically in a daemon thread and returns an event that stops it.
- `registry`: `KVRegisterPlugin` and its kinds `ConsulRegisterPlugin`,
  `ZooKeeperRegisterPlugin` and `RedisRegisterPlugin` publish each service at
  `<base_path>/<service>/<service_address>` in a key/value store. `start()`
  begins a background refresh every `update_interval` seconds that renews the
  entries' time to live and adds `calls` and `connections` rates from
  `metrics`; `stop()` removes the entries. Stores provided: `MemoryStore`
  (in-process, with time to live) and `RedisStore` (one Redis server); store
  failures raise `StoreError`.

```python
from rpcplug.serverplugin.alias import AliasPlugin
from rpcplug.serverplugin.registry import MemoryStore, ConsulRegisterPlugin

plugin = AliasPlugin()
plugin.alias("a.b.c.D", "Times", "Arith", "Mul")

registry = ConsulRegisterPlugin(
    service_address="tcp@127.0.0.1:8972",
    base_path="/rpcx_test",
    store=MemoryStore(),
)
registry.start()
registry.register("Arith", None, "")
registry.stop()
```

## What this package does not do

- It has no RPC server, client or wire protocol; the plugins are called by
  whatever server uses them.
- The codec table `CODECS` starts empty; no serializers are included.
- There is no Consul or ZooKeeper client. `ConsulRegisterPlugin` and
  `ZooKeeperRegisterPlugin` need a store passed as `store=` (for example a
  `MemoryStore`); only `RedisRegisterPlugin` creates its own store.
- Metrics stay in process; there is no exporter besides `MetricsPlugin.log`.
- There is no command-line tool.