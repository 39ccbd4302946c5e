"""srdir output module: routes datafeed packets into an archive session."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from srdir.config.schema import ArchiveSettings, DeviceConfig

from .channels import Channel, channels_from_config
from .errors import ArgumentError
from .metrics import ArchiveMetrics
from .packets import AnalogPacket, EndPacket, LogicPacket, MetaPacket, Packet
from .session import ArchiveSession, DeviceInfo

logger = logging.getLogger(__name__)


@dataclass
class ConfiguredDevice:
    """DeviceInfo backed by a ``DeviceConfig`` loaded from device.yaml."""

    config: DeviceConfig
    channels: List[Channel] = field(init=False)

    def __post_init__(self) -> None:
        self.channels = channels_from_config(self.config.channels)

    def samplerate(self) -> Optional[int]:
        return self.config.samplerate_hz

    def channel(self, index: int) -> Channel:
        for channel in self.channels:
            if channel.index == index:
                return channel
        raise ArgumentError(f"Canal {index} no está configurado en el dispositivo")


class SrdirOutput:
    """Write a datafeed into a session directory archive."""

    id = "srdir"
    name = "srdir"
    description = (
        "Session file format data stored in a directory."
        " Convert to srzip by 'cd <dir> ; zip -9 data.sr *'"
    )
    extensions: Tuple[str, ...] = ("",)

    def __init__(
        self,
        filename: str | Path | None,
        device: DeviceInfo,
        *,
        settings: ArchiveSettings | None = None,
        metrics: ArchiveMetrics | None = None,
    ) -> None:
        if not filename or not str(filename).strip():
            logger.info("El módulo srdir requiere un nombre de archivo; no se puede guardar.")
            raise ArgumentError("El módulo srdir requiere un nombre de archivo")
        self.filename = Path(filename)
        self.settings = settings or ArchiveSettings()
        self.session: ArchiveSession | None = ArchiveSession(
            self.filename,
            device,
            chunk_size_bytes=self.settings.chunk_size_bytes,
            sigrok_version=self.settings.sigrok_version,
            metrics=metrics,
        )

    @staticmethod
    def options() -> Sequence[object]:
        return ()

    def receive(self, packet: Packet) -> None:
        session = self.session
        if session is None:
            raise ArgumentError("El módulo srdir ya fue liberado")

        if isinstance(packet, MetaPacket):
            session.update_samplerate(packet.samplerate)
        elif isinstance(packet, LogicPacket):
            session.ensure_initialized()
            session.queue_logic(packet.data, packet.unit_size, flush=False)
        elif isinstance(packet, AnalogPacket):
            session.ensure_initialized()
            session.queue_analog(packet, flush=False)
        elif isinstance(packet, EndPacket):
            session.end()
        else:
            raise ArgumentError(f"Tipo de paquete desconocido: {type(packet).__name__}")

    def cleanup(self) -> None:
        if self.session is not None:
            self.session.close()
        self.session = None

    def __enter__(self) -> "SrdirOutput":
        return self

    def __exit__(self, *exc_info) -> None:
        self.cleanup()
