"""Register services in a key/value store and keep their entries fresh."""

from __future__ import annotations

import logging
import threading
import time
from typing import Any
from urllib.parse import parse_qs, urlencode

import redis

from rpcplug.serverplugin.metrics import MetricsRegistry

log = logging.getLogger(__name__)


class StoreError(Exception):
    """Raised when a key/value store operation fails."""


def _as_bytes(value: bytes | str) -> bytes:
    return value.encode("utf-8") if isinstance(value, str) else bytes(value)


def _merge_query(raw: str, extra: dict[str, str]) -> str:
    values = parse_qs(raw, keep_blank_values=True)
    for key, value in extra.items():
        values[key] = [value]
    return urlencode(sorted(values.items()), doseq=True)


class MemoryStore:
    """An in-process key/value store with per-key time to live.

    After ``close`` the store refuses writes but stays readable.
    """

    def __init__(self) -> None:
        self._data: dict[str, tuple[bytes, float | None]] = {}
        self._lock = threading.Lock()
        self.closed = False

    def _live(self, key: str) -> bytes | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires = entry
        if expires is not None and time.monotonic() >= expires:
            del self._data[key]
            return None
        return value

    def _check_open(self) -> None:
        if self.closed:
            raise StoreError("store is closed")

    @staticmethod
    def _expiry(ttl: float | None) -> float | None:
        return time.monotonic() + ttl if ttl is not None and ttl > 0 else None

    def put(
        self, key: str, value: bytes | str, is_dir: bool = False, ttl: float | None = None
    ) -> None:
        with self._lock:
            self._check_open()
            self._data[key] = (_as_bytes(value), self._expiry(ttl))

    def get(self, key: str) -> bytes:
        with self._lock:
            value = self._live(key)
        if value is None:
            raise StoreError(f"key not found in store: {key}")
        return value

    def exists(self, key: str) -> bool:
        with self._lock:
            return self._live(key) is not None

    def delete(self, key: str) -> None:
        with self._lock:
            if self._live(key) is None:
                raise StoreError(f"key not found in store: {key}")
            del self._data[key]

    def atomic_put(
        self,
        key: str,
        value: bytes | str,
        previous: bytes | str | None = None,
        ttl: float | None = None,
    ) -> bool:
        """Write ``key`` only if it is absent (``previous`` None) or holds ``previous``."""
        with self._lock:
            self._check_open()
            current = self._live(key)
            if previous is None:
                if current is not None:
                    raise StoreError(f"key already exists: {key}")
            elif current != _as_bytes(previous):
                raise StoreError(f"key was modified: {key}")
            self._data[key] = (_as_bytes(value), self._expiry(ttl))
        return True

    def close(self) -> None:
        self.closed = True


class RedisStore:
    """A key/value store kept in a single Redis server."""

    def __init__(self, servers: list[str] | None) -> None:
        endpoints = list(servers or [])
        if not endpoints:
            raise StoreError("no redis endpoint given")
        if len(endpoints) > 1:
            raise StoreError("multiple endpoints are not supported by redis")
        host, sep, port = endpoints[0].rpartition(":")
        if not sep:
            host, port = endpoints[0], "6379"
        try:
            port_number = int(port)
        except ValueError as exc:
            raise StoreError(f"invalid redis endpoint: {endpoints[0]}") from exc
        self._client = redis.Redis(host=host or "localhost", port=port_number)

    @staticmethod
    def _px(ttl: float | None) -> int | None:
        if ttl is None or ttl <= 0:
            return None
        return max(1, int(ttl * 1000))

    def put(
        self, key: str, value: bytes | str, is_dir: bool = False, ttl: float | None = None
    ) -> None:
        try:
            self._client.set(key, _as_bytes(value), px=self._px(ttl))
        except redis.RedisError as exc:
            raise StoreError(str(exc)) from exc

    def get(self, key: str) -> bytes:
        try:
            value = self._client.get(key)
        except redis.RedisError as exc:
            raise StoreError(str(exc)) from exc
        if value is None:
            raise StoreError(f"key not found in store: {key}")
        return value

    def exists(self, key: str) -> bool:
        try:
            return bool(self._client.exists(key))
        except redis.RedisError as exc:
            raise StoreError(str(exc)) from exc

    def delete(self, key: str) -> None:
        try:
            removed = self._client.delete(key)
        except redis.RedisError as exc:
            raise StoreError(str(exc)) from exc
        if not removed:
            raise StoreError(f"key not found in store: {key}")

    def atomic_put(
        self,
        key: str,
        value: bytes | str,
        previous: bytes | str | None = None,
        ttl: float | None = None,
    ) -> bool:
        """Write ``key`` only if it is absent (``previous`` None) or holds ``previous``."""
        data = _as_bytes(value)
        try:
            if previous is None:
                if not self._client.set(key, data, px=self._px(ttl), nx=True):
                    raise StoreError(f"key already exists: {key}")
                return True
            with self._client.pipeline() as pipe:
                pipe.watch(key)
                if pipe.get(key) != _as_bytes(previous):
                    raise StoreError(f"key was modified: {key}")
                pipe.multi()
                pipe.set(key, data, px=self._px(ttl))
                pipe.execute()
            return True
        except redis.WatchError as exc:
            raise StoreError(f"key was modified: {key}") from exc
        except redis.RedisError as exc:
            raise StoreError(str(exc)) from exc

    def close(self) -> None:
        self._client.close()


class KVRegisterPlugin:
    """Registers services under ``base_path/name/service_address`` in a store.

    While started with a positive ``update_interval`` (seconds), a background
    thread refreshes each entry's time to live and adds call and connection
    rates from ``metrics`` to its metadata.
    """

    _registry_name = "kv"
    _strip_leading_slash = True
    _tolerated_dir_error: str | None = None
    _unregister_empty_message = "Register service `name` can't be empty"

    def __init__(
        self,
        service_address: str = "",
        servers: list[str] | None = None,
        base_path: str = "",
        metrics: MetricsRegistry | None = None,
        update_interval: float = 0.0,
        store: Any = None,
    ) -> None:
        self.service_address = service_address
        self.servers = list(servers or [])
        self.base_path = base_path
        self.metrics = metrics
        self.update_interval = update_interval
        self.store = store
        self.services: list[str] = []
        self._metas: dict[str, str] = {}
        self._metas_lock = threading.Lock()
        self._dying: threading.Event | None = None
        self._done: threading.Event | None = None
        self._worker: threading.Thread | None = None

    def _create_store(self) -> Any:
        raise StoreError(f"cannot create {self._registry_name} registry: no store configured")

    def _ensure_store(self) -> Any:
        if self.store is None:
            try:
                self.store = self._create_store()
            except StoreError as exc:
                log.error("cannot create %s registry: %s", self._registry_name, exc)
                raise
        return self.store

    def _normalize_base_path(self) -> None:
        if self._strip_leading_slash and self.base_path.startswith("/"):
            self.base_path = self.base_path[1:]

    @property
    def _ttl(self) -> float:
        return self.update_interval * 2

    def _node_path(self, name: str) -> str:
        return f"{self.base_path}/{name}/{self.service_address}"

    def _put_dir(self, store: Any, path: str, value: str) -> None:
        try:
            store.put(path, value.encode("utf-8"), is_dir=True)
        except StoreError as exc:
            if self._tolerated_dir_error and self._tolerated_dir_error in str(exc):
                return
            log.error("cannot create %s path %s: %s", self._registry_name, path, exc)
            raise

    def _prepare_service(self, name: str, empty_message: str) -> Any:
        if not name.strip():
            raise ValueError(empty_message)
        store = self._ensure_store()
        self._normalize_base_path()
        self._put_dir(store, self.base_path, "rpcx_path")
        self._put_dir(store, f"{self.base_path}/{name}", name)
        return store

    def _remember(self, name: str, metadata: str) -> None:
        self.services.append(name)
        with self._metas_lock:
            self._metas[name] = metadata

    def start(self) -> None:
        """Connect to the store, create the base path and start refreshing."""
        if self._done is None:
            self._done = threading.Event()
        if self._dying is None:
            self._dying = threading.Event()
        try:
            store = self._ensure_store()
            self._normalize_base_path()
            self._put_dir(store, self.base_path, "rpcx_path")
        except StoreError:
            self._done.set()
            raise
        if self.update_interval > 0:
            self._worker = threading.Thread(
                target=self._refresh_loop,
                args=(store, self._dying, self._done),
                name=f"{self._registry_name}-register",
                daemon=True,
            )
            self._worker.start()

    def _refresh_loop(
        self, store: Any, dying: threading.Event, done: threading.Event
    ) -> None:
        try:
            while not dying.wait(self.update_interval):
                self._refresh(store)
        finally:
            store.close()
            done.set()

    def _refresh(self, store: Any) -> None:
        extra: dict[str, str] = {}
        if self.metrics is not None:
            calls = self.metrics.get_or_register_meter("calls").rate_mean()
            conns = self.metrics.get_or_register_meter("connections").rate_mean()
            extra["calls"] = f"{calls:.2f}"
            extra["connections"] = f"{conns:.2f}"
        for name in list(self.services):
            path = self._node_path(name)
            try:
                raw = store.get(path)
            except StoreError as exc:
                log.warning("can't get data of node: %s, will re-create, because of %s", path, exc)
                with self._metas_lock:
                    meta = self._metas.get(name, "")
                try:
                    store.put(path, meta.encode("utf-8"), ttl=self._ttl)
                except StoreError as put_exc:
                    log.error("cannot re-create %s path %s: %s", self._registry_name, path, put_exc)
                continue
            merged = _merge_query(raw.decode("utf-8", "surrogateescape"), extra)
            try:
                store.put(path, merged.encode("utf-8"), ttl=self._ttl)
            except StoreError:
                pass  # the next tick re-creates the node

    def stop(self) -> None:
        """Remove every registered node and stop the refresh thread."""
        store = self._ensure_store()
        self._normalize_base_path()
        for name in list(self.services):
            path = self._node_path(name)
            try:
                exists = store.exists(path)
            except StoreError as exc:
                log.error("cannot delete path %s: %s", path, exc)
                continue
            if exists:
                try:
                    store.delete(path)
                except StoreError:
                    pass
                log.info("delete path %s", path)
        if self._dying is not None:
            self._dying.set()
        if self._worker is not None and self._done is not None:
            self._done.wait()
            self._worker = None

    def handle_conn_accept(self, conn: Any) -> tuple[Any, bool]:
        if self.metrics is not None:
            self.metrics.get_or_register_meter("connections").mark(1)
        return conn, True

    def pre_call(self, ctx: Any, service_path: str, service_method: str, args: Any) -> Any:
        if self.metrics is not None:
            self.metrics.get_or_register_meter("calls").mark(1)
        return args

    def register(self, name: str, rcvr: Any, metadata: str) -> None:
        """Create the node ``base_path/name/service_address`` holding ``metadata``."""
        store = self._prepare_service(name, "Register service `name` can't be empty")
        path = self._node_path(name)
        try:
            store.put(path, metadata.encode("utf-8"), ttl=self._ttl)
        except StoreError as exc:
            log.error("cannot create %s path %s: %s", self._registry_name, path, exc)
            raise
        self._remember(name, metadata)

    def register_function(self, service_name: str, fname: str, fn: Any, metadata: str) -> None:
        self.register(service_name, fn, metadata)

    def unregister(self, name: str) -> None:
        """Remove the node of service ``name`` and forget it."""
        if not self.services:
            return
        store = self._prepare_service(name, self._unregister_empty_message)
        path = self._node_path(name)
        try:
            store.delete(path)
        except StoreError as exc:
            log.error("cannot remove %s path %s: %s", self._registry_name, path, exc)
            raise
        self.services = [service for service in self.services if service != name]
        with self._metas_lock:
            self._metas.pop(name, None)


class ConsulRegisterPlugin(KVRegisterPlugin):
    """Service registry kept in Consul; the store must be supplied."""

    _registry_name = "consul"
    _unregister_empty_message = "Unregister service `name` can't be empty"


class ZooKeeperRegisterPlugin(KVRegisterPlugin):
    """Service registry kept in ZooKeeper; the store must be supplied."""

    _registry_name = "zk"

    def register(self, name: str, rcvr: Any, metadata: str) -> None:
        """Replace any existing node, then create it atomically."""
        store = self._prepare_service(name, "Register service `name` can't be empty")
        path = self._node_path(name)
        try:
            store.delete(path)
        except StoreError:
            pass  # a missing node is what we want
        try:
            store.atomic_put(path, metadata.encode("utf-8"), None, self._ttl)
        except StoreError as exc:
            log.error("cannot create zk path %s: %s", path, exc)
            raise
        self._remember(name, metadata)


class RedisRegisterPlugin(KVRegisterPlugin):
    """Service registry kept in Redis."""

    _registry_name = "redis"
    _strip_leading_slash = False
    _tolerated_dir_error = "Not a file"

    def _create_store(self) -> Any:
        return RedisStore(self.servers)