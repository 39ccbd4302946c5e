"""High-level runner replaying recorded captures into an srdir archive."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from pathlib import Path
from typing import Callable, Dict, Mapping, Optional

import numpy as np

from srdir.config.schema import ArchiveSettings, DeviceConfig

from .channels import resolve_layout
from .metrics import ArchiveMetrics
from .module import ConfiguredDevice, SrdirOutput
from .packets import AnalogPacket, EndPacket, LogicPacket, MetaPacket
from .srzip import check_archive_name, pack_srzip

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CaptureSources:
    """Recorded inputs: one packed logic file and per-channel analog files."""

    logic: Optional[Path] = None
    analog: Mapping[int, Path] = field(default_factory=dict)


@dataclass(frozen=True)
class CaptureResult:
    directory: Path
    chunk_count: int = 0
    srzip: Optional[Path] = None
    stopped: bool = False


def load_analog_source(path: Path) -> np.ndarray:
    """Load ``.npy`` arrays with numpy; anything else is raw little-endian float32."""

    path = Path(path)
    if path.suffix == ".npy":
        return np.asarray(np.load(path), dtype=np.float32).ravel()
    return np.fromfile(path, dtype="<f4").astype(np.float32)


OutputFactory = Callable[..., SrdirOutput]


class CaptureRunner:
    """Feed recorded samples through the srdir output module in fixed blocks."""

    def __init__(
        self,
        device: DeviceConfig,
        archive: ArchiveSettings,
        *,
        output_factory: OutputFactory = SrdirOutput,
        metrics: ArchiveMetrics | None = None,
    ) -> None:
        self.device = device
        self.archive = archive
        self._output_factory = output_factory
        self.metrics = metrics or ArchiveMetrics()
        self._stop_requested = False

    def request_stop(self) -> None:
        """Signal the runner to stop after completing the current iteration."""

        self._stop_requested = True

    def run(self, sources: CaptureSources, output_name: str) -> CaptureResult:
        output_root = Path(self.archive.output_dir)
        directory = output_root / check_archive_name(output_name)
        output_root.mkdir(parents=True, exist_ok=True)
        device = ConfiguredDevice(self.device)
        unit_size = resolve_layout(device.channels).unit_size

        logic = b""
        if sources.logic is not None:
            if unit_size:
                logic = Path(sources.logic).read_bytes()
            else:
                logger.warning("Archivo lógico %s ignorado: no hay canales lógicos.", sources.logic)
        analog: Dict[int, np.ndarray] = {
            index: load_analog_source(path) for index, path in sources.analog.items()
        }
        analog_channels = {index: device.channel(index) for index in analog}

        output = self._output_factory(
            directory, device, settings=self.archive, metrics=self.metrics
        )
        logic_step = self.archive.logic_block_size * unit_size
        analog_step = self.archive.analog_block_size
        logic_pos = 0
        analog_pos = {index: 0 for index in analog}
        completed = False
        stopped = False
        try:
            samplerate = device.samplerate()
            if samplerate:
                output.receive(MetaPacket(samplerate=samplerate))

            while True:
                if self._stop_requested:
                    logger.info("Stop requested; ending capture replay.")
                    stopped = True
                    break
                progressed = False
                if logic_pos < len(logic):
                    block = logic[logic_pos : logic_pos + logic_step]
                    output.receive(LogicPacket(data=block, unit_size=unit_size))
                    logic_pos += len(block)
                    progressed = True
                for index, values in analog.items():
                    start = analog_pos[index]
                    if start >= values.size:
                        continue
                    block_values = values[start : start + analog_step]
                    output.receive(AnalogPacket.from_floats(analog_channels[index], block_values))
                    analog_pos[index] = start + block_values.size
                    progressed = True
                if not progressed:
                    break

            output.receive(EndPacket())
            completed = True
        finally:
            session = output.session
            chunk_count = session.chunk_count if session is not None else 0
            output.cleanup()

        srzip_path: Optional[Path] = None
        if completed and self.archive.zip_on_finish and directory.is_dir():
            srzip_path = pack_srzip(directory, remove_directory=not self.archive.keep_directory)
        logger.info(
            "Captura reproducida en %s: %d chunks%s",
            directory,
            chunk_count,
            " (detenida)" if stopped else "",
        )
        return CaptureResult(
            directory=directory, chunk_count=chunk_count, srzip=srzip_path, stopped=stopped
        )
