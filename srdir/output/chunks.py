"""Writes buffer contents into sequentially numbered chunk files."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Optional

from .buffers import SampleBuffer
from .errors import ArchiveIOError, ArgumentError

logger = logging.getLogger(__name__)


def write_file(path: Path, payload: bytes, what: str) -> None:
    """Write ``payload`` to ``path`` in one go; any failure is fatal."""

    try:
        with path.open("wb") as fh:
            written = fh.write(payload)
    except OSError as exc:
        logger.error("Error al guardar %s en el directorio: %s", what, exc.strerror or exc)
        raise ArchiveIOError(f"Error al guardar {what}: {exc.strerror or exc}") from exc
    if written != len(payload):
        logger.error("Escritura incompleta de %s (%d de %d bytes)", what, written, len(payload))
        raise ArchiveIOError(f"Escritura incompleta de {what}: {written} de {len(payload)} bytes")


class ChunkWriter:
    """Turns a full (or final) buffer into the next chunk file of its series."""

    def __init__(
        self,
        directory: Path,
        *,
        on_chunk: Optional[Callable[[str, int], None]] = None,
    ) -> None:
        self.directory = Path(directory)
        self._on_chunk = on_chunk
        self.count = 0

    def write_chunk(self, buffer: SampleBuffer) -> Path:
        payload = buffer.contents()
        if not payload:
            raise ArgumentError(f"Chunk vacío para {buffer.basename}; no se escribe")
        name = buffer.chunk_name()
        path = self.directory / name
        try:
            write_file(path, payload, f"chunk '{name}'")
        finally:
            # A name is consumed once attempted, even if the write failed.
            buffer.next_chunk_number += 1
        self.count += 1
        logger.info("Chunk %s escrito (%d bytes)", name, len(payload))
        if self._on_chunk is not None:
            self._on_chunk(name, len(payload))
        return path

    __call__ = write_chunk
