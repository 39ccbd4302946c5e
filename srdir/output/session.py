"""Archive session: lazy directory creation plus the logic/analog queues."""

from __future__ import annotations

from enum import Enum
import logging
from pathlib import Path
from typing import List, Optional, Protocol, Sequence, runtime_checkable

import numpy as np

from srdir.config.schema import DEFAULT_SIGROK_VERSION

from .buffers import CHUNK_SIZE, AnalogBuffer, LogicBuffer
from .channels import Channel, ChannelLayout, resolve_layout
from .chunks import ChunkWriter, write_file
from .errors import ArchiveIOError, ArgumentError, UnsupportedError
from .metadata import ARCHIVE_VERSION, build_metadata, render_metadata
from .metrics import ArchiveMetrics
from .packets import AnalogPacket, analog_to_float

logger = logging.getLogger(__name__)


@runtime_checkable
class DeviceInfo(Protocol):
    """What the session needs to know about the capturing device."""

    channels: Sequence[Channel]

    def samplerate(self) -> Optional[int]:  # pragma: no cover - Protocol signature
        """Return the configured sample rate in Hz, if the device knows it."""


class SessionState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    FAILED = "failed"


class ArchiveSession:
    """Owns the buffers, chunk counters and directory of one archive.

    The directory is only created when the first sample block arrives, so a
    stream without samples never touches the filesystem. Once ``READY`` the
    layout and sample rate are frozen for the rest of the session.
    """

    def __init__(
        self,
        directory: Path,
        device: DeviceInfo,
        *,
        chunk_size_bytes: int = CHUNK_SIZE,
        sigrok_version: str = DEFAULT_SIGROK_VERSION,
        metrics: ArchiveMetrics | None = None,
    ) -> None:
        self.directory = Path(directory)
        self.device = device
        self.chunk_size_bytes = chunk_size_bytes
        self.sigrok_version = sigrok_version
        self.metrics = metrics or ArchiveMetrics()
        self.samplerate = 0
        self.state = SessionState.UNINITIALIZED
        self.layout: ChannelLayout | None = None
        self.logic_buffer: LogicBuffer | None = None
        self.analog_buffers: List[AnalogBuffer] = []
        self._failure: BaseException | None = None
        self._writer = ChunkWriter(self.directory, on_chunk=self.metrics.record_chunk)

    @property
    def directory_initialized(self) -> bool:
        return self.state is SessionState.READY

    @property
    def chunk_count(self) -> int:
        return self._writer.count

    # Lifecycle ---------------------------------------------------------------
    def update_samplerate(self, samplerate: int | None) -> None:
        if samplerate is None:
            return
        if self.directory_initialized:
            logger.debug(
                "Samplerate %d recibido tras crear el directorio; se conserva %d",
                samplerate,
                self.samplerate,
            )
            return
        self.samplerate = int(samplerate)

    def ensure_initialized(self) -> None:
        if self.state is SessionState.READY:
            return
        if self.state is SessionState.FAILED:
            failure = self._failure
            if failure is None:
                raise ArgumentError("La sesión falló sin registrar la causa")
            raise failure.with_traceback(None)
        self.state = SessionState.INITIALIZING
        try:
            self._create_directory()
        except Exception as exc:
            self.state = SessionState.FAILED
            self._failure = exc
            raise
        self.state = SessionState.READY

    def end(self) -> None:
        """Flush every buffer once; a session without samples does nothing."""

        if not self.directory_initialized:
            logger.debug("Fin de flujo sin muestras; no se crea el directorio %s", self.directory)
            return
        self.queue_logic(b"", 0, flush=True)
        self.queue_analog(None, flush=True)
        self.metrics.maybe_log(force=True)
        logger.info(
            "Archivo %s completo (%d chunks)", self.directory, self._writer.count
        )

    def close(self) -> None:
        self.logic_buffer = None
        self.analog_buffers = []

    def _create_directory(self) -> None:
        logger.debug("Creando directorio de archivo %s", self.directory)
        if self.samplerate == 0:
            queried = self.device.samplerate()
            if queried:
                self.samplerate = int(queried)

        layout = resolve_layout(list(self.device.channels))

        try:
            self.directory.mkdir()
        except OSError as exc:
            logger.error("No se pudo crear el directorio: %s", exc.strerror or exc)
            raise ArchiveIOError(
                f"No se pudo crear el directorio {self.directory}: {exc.strerror or exc}"
            ) from exc

        write_file(self.directory / "version", ARCHIVE_VERSION, "version")
        meta = build_metadata(layout, self.samplerate, sigrok_version=self.sigrok_version)

        self.logic_buffer = LogicBuffer(layout.unit_size, self.chunk_size_bytes)
        self.analog_buffers = [
            AnalogBuffer(layout.analog_number(slot), self.chunk_size_bytes)
            for slot in range(layout.enabled_analog_channel_count)
        ]
        self.layout = layout

        write_file(self.directory / "metadata", render_metadata(meta), "metadata")
        logger.info(
            "Directorio %s creado: %d canales lógicos (unitsize=%d), %d analógicos",
            self.directory,
            layout.logic_channel_count,
            layout.unit_size,
            layout.enabled_analog_channel_count,
        )

    # Queues -----------------------------------------------------------------
    def queue_logic(self, data: bytes, unit_size: int, flush: bool = False) -> None:
        """Queue packed logic samples, writing ``logic-1-<n>`` chunks as buffers fill."""

        buff = self._require_logic_buffer()
        length = len(data)
        logger.debug("queue_logic unitsize=%d length=%d flush=%s", unit_size, length, flush)

        if length and unit_size != buff.unit_size:
            logger.warning(
                "Unitsize inesperado (%d != %d); se descartan datos lógicos.",
                unit_size,
                buff.unit_size,
            )
            raise ArgumentError(
                f"Unitsize {unit_size} no coincide con el configurado {buff.unit_size}"
            )

        count = 0
        if length and buff.unit_size:
            if length % buff.unit_size:
                self.metrics.increment_warnings()
                logger.warning(
                    "Bloque de %d bytes no es múltiplo del unitsize %d.", length, buff.unit_size
                )
            count = length // buff.unit_size
            self.metrics.record_logic_block(count)

        values = np.frombuffer(data, dtype=np.uint8) if length else np.empty(0, dtype=np.uint8)
        buff.queue(values, count, self._writer, flush)

    def queue_analog(self, packet: AnalogPacket | None, flush: bool = False) -> None:
        """Queue one channel's analog samples; ``None`` with ``flush`` drains all buffers."""

        logger.debug("queue_analog packet=%r flush=%s", packet is not None, flush)
        layout = self._require_layout()

        if packet is None:
            if flush:
                for buff in self.analog_buffers:
                    buff.flush(self._writer)
            return

        if len(packet.channels) != 1:
            logger.error("Paquetes analógicos con múltiples canales no soportados")
            raise UnsupportedError("Paquetes analógicos con múltiples canales no soportados")
        channel = packet.channels[0]
        slot = layout.analog_slot(channel.index)
        if slot is None:
            raise ArgumentError(f"Canal {channel.index} no es un canal analógico habilitado")
        buff = self.analog_buffers[slot]

        values = analog_to_float(packet)
        self.metrics.record_analog_block(int(values.size))
        buff.queue(values, int(values.size), self._writer, flush)

    def _require_layout(self) -> ChannelLayout:
        if self.layout is None:
            raise ArgumentError("La sesión aún no ha creado el directorio de archivo")
        return self.layout

    def _require_logic_buffer(self) -> LogicBuffer:
        self._require_layout()
        if self.logic_buffer is None:
            raise ArgumentError("Los buffers de la sesión ya fueron liberados")
        return self.logic_buffer
