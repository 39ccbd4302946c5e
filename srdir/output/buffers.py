"""Fixed-capacity sample buffers that absorb packets and emit whole chunks."""

from __future__ import annotations

from typing import Callable

import numpy as np

from .errors import AllocationError

CHUNK_SIZE = 4 * 1024 * 1024
FLOAT_SIZE = np.dtype(np.float32).itemsize

ChunkSink = Callable[["SampleBuffer"], None]


def _allocate(length: int, dtype) -> np.ndarray:
    # Never allocate zero items; an unused buffer is harmless.
    try:
        return np.zeros(max(length, 1), dtype=dtype)
    except MemoryError as exc:
        raise AllocationError(f"No se pudo reservar el buffer de {length} elementos") from exc


class SampleBuffer:
    """Common fill/flush bookkeeping for logic and analog buffers.

    ``capacity`` and ``fill`` count samples; a sample occupies ``width``
    items of the backing array (bytes for logic, one float for analog).
    """

    basename: str = ""

    def __init__(self, storage: np.ndarray, capacity: int, width: int) -> None:
        self._storage = storage
        self.capacity = capacity
        self.width = width
        self.fill = 0
        self.next_chunk_number = 1

    @property
    def remaining(self) -> int:
        return self.capacity - self.fill

    def chunk_name(self) -> str:
        return f"{self.basename}-{self.next_chunk_number}"

    def contents(self) -> bytes:
        return self._storage[: self.fill * self.width].tobytes()

    def _absorb(self, values: np.ndarray, start: int, count: int) -> int:
        copy = min(count, self.remaining)
        if copy:
            dst = self.fill * self.width
            src = start * self.width
            self._storage[dst : dst + copy * self.width] = values[src : src + copy * self.width]
            self.fill += copy
        return copy

    def queue(self, values: np.ndarray, count: int, write_chunk: ChunkSink, flush: bool) -> None:
        """Copy ``count`` samples from ``values``, writing a chunk whenever full.

        A full buffer is only written once more samples are waiting, so the
        final (possibly partial) chunk is left for an explicit ``flush``.
        """

        done = 0
        while done < count:
            done += self._absorb(values, done, count - done)
            if done < count and not self.remaining:
                write_chunk(self)
                self.fill = 0
        if flush:
            self.flush(write_chunk)

    def flush(self, write_chunk: ChunkSink) -> bool:
        if not self.fill:
            return False
        write_chunk(self)
        self.fill = 0
        return True


class LogicBuffer(SampleBuffer):
    """One buffer of packed multi-channel logic samples."""

    basename = "logic-1"

    def __init__(self, unit_size: int, byte_budget: int = CHUNK_SIZE) -> None:
        storage = _allocate(byte_budget, np.uint8)
        capacity = byte_budget // unit_size if unit_size else byte_budget
        super().__init__(storage, capacity, unit_size)
        self.unit_size = unit_size


class AnalogBuffer(SampleBuffer):
    """Float samples of one enabled analog channel."""

    def __init__(self, channel_number: int, byte_budget: int = CHUNK_SIZE) -> None:
        capacity = byte_budget // FLOAT_SIZE
        storage = _allocate(capacity, np.float32)
        super().__init__(storage, capacity, 1)
        self.channel_number = channel_number
        self.basename = f"analog-1-{channel_number}"
