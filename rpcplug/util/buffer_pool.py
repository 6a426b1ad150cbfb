"""A byte-buffer pool with power-of-two size levels between two bounds."""

from __future__ import annotations

import math
import threading


class _LevelPool:
    """Free list of buffers that hold at least ``size`` bytes."""

    def __init__(self, size: int) -> None:
        self.size = size
        self._free: list[bytearray] = []
        self._lock = threading.Lock()

    def take(self) -> bytearray:
        with self._lock:
            if self._free:
                return self._free.pop()
        return bytearray(self.size)

    def give(self, backing: bytearray) -> None:
        with self._lock:
            self._free.append(backing)


class LimitedPool:
    """Hands out buffers from size levels ``min_size, 2*min_size, ... max_size``.

    ``get`` returns a memoryview of the requested length over a pooled
    bytearray; the bytearray's own length is the buffer's capacity.
    Requests above ``max_size`` get a fresh, unpooled buffer.
    """

    def __init__(self, min_size: int, max_size: int) -> None:
        if max_size < min_size:
            raise ValueError("max_size can't be less than min_size")
        if min_size <= 0:
            raise ValueError("min_size must be positive")
        self.min_size = min_size
        self.max_size = max_size
        sizes = []
        current = min_size
        while current < max_size:
            sizes.append(current)
            current *= 2
        sizes.append(max_size)
        self._pools = [_LevelPool(size) for size in sizes]

    def _level(self, index: int) -> _LevelPool | None:
        index = max(index, 0)
        if index >= len(self._pools):
            return None
        return self._pools[index]

    def _find_pool(self, size: int) -> _LevelPool | None:
        if size > self.max_size:
            return None
        if size <= 0:
            return self._level(0)
        return self._level(math.ceil(math.log2(size / self.min_size)))

    def _find_put_pool(self, size: int) -> _LevelPool | None:
        if size > self.max_size or size < self.min_size:
            return None
        return self._level(math.floor(math.log2(size / self.min_size)))

    def get(self, size: int) -> memoryview:
        """Return a writable buffer of exactly ``size`` bytes."""
        if size < 0:
            raise ValueError("size must not be negative")
        level = self._find_pool(size)
        if level is None:
            return memoryview(bytearray(size))
        return memoryview(level.take())[:size]

    def put(self, buf: memoryview | bytearray) -> None:
        """Give a buffer back; buffers outside the pool's bounds are dropped."""
        backing = buf.obj if isinstance(buf, memoryview) else buf
        if not isinstance(backing, bytearray):
            raise TypeError("only bytearray-backed buffers can be pooled")
        level = self._find_put_pool(len(backing))
        if level is None:
            return
        level.give(backing)