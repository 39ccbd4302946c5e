"""Pack and inspect finished srdir archives."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
import re
import shutil
import zipfile
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import numpy as np

from .errors import ArchiveIOError, ArgumentError
from .metadata import parse_metadata

logger = logging.getLogger(__name__)

LOGIC_CHUNK_PATTERN = re.compile(r"^logic-1-(?P<chunk>\d+)$")
ANALOG_CHUNK_PATTERN = re.compile(r"^analog-1-(?P<channel>\d+)-(?P<chunk>\d+)$")


@dataclass
class ArchiveContents:
    """Chunk listing and concatenated payloads of one archive directory."""

    directory: Path
    metadata: Dict[str, Dict[str, str]]
    logic_chunks: List[str] = field(default_factory=list)
    analog_chunks: Dict[int, List[str]] = field(default_factory=dict)
    logic: bytes = b""
    analog: Dict[int, np.ndarray] = field(default_factory=dict)

    @property
    def chunk_count(self) -> int:
        return len(self.logic_chunks) + sum(len(names) for names in self.analog_chunks.values())


def check_archive_name(name: str) -> str:
    """Return ``name`` if it is a plain directory name inside the output root."""

    if (
        not name
        or name.startswith(".")
        or "/" in name
        or "\\" in name
        or Path(name).is_absolute()
    ):
        raise ArgumentError(f"Nombre de archivo inválido: {name!r}")
    return name


def _require_archive(directory: Path) -> None:
    if not directory.is_dir():
        raise ArgumentError(f"{directory} no es un directorio")
    for name in ("version", "metadata"):
        if not (directory / name).is_file():
            raise ArgumentError(f"{directory} no es un archivo srdir: falta '{name}'")


def list_chunks(directory: Path) -> Tuple[List[str], Dict[int, List[str]]]:
    """Return logic and per-channel analog chunk names in chunk-number order."""

    logic: List[Tuple[int, str]] = []
    analog: Dict[int, List[Tuple[int, str]]] = {}
    for path in Path(directory).iterdir():
        match = LOGIC_CHUNK_PATTERN.match(path.name)
        if match:
            logic.append((int(match.group("chunk")), path.name))
            continue
        match = ANALOG_CHUNK_PATTERN.match(path.name)
        if match:
            channel = int(match.group("channel"))
            analog.setdefault(channel, []).append((int(match.group("chunk")), path.name))
    logic_names = [name for _, name in sorted(logic)]
    analog_names = {ch: [name for _, name in sorted(items)] for ch, items in sorted(analog.items())}
    return logic_names, analog_names


def read_archive(directory: Path) -> ArchiveContents:
    directory = Path(directory)
    _require_archive(directory)
    metadata = parse_metadata((directory / "metadata").read_bytes())
    logic_names, analog_names = list_chunks(directory)
    logic = b"".join((directory / name).read_bytes() for name in logic_names)
    analog = {
        channel: np.concatenate(
            [np.fromfile(directory / name, dtype=np.float32) for name in names]
        )
        for channel, names in analog_names.items()
    }
    return ArchiveContents(
        directory=directory,
        metadata=metadata,
        logic_chunks=logic_names,
        analog_chunks=analog_names,
        logic=logic,
        analog=analog,
    )


def pack_srzip(
    directory: Path,
    target: Optional[Path] = None,
    *,
    remove_directory: bool = False,
) -> Path:
    """Zip an archive directory into a ``.sr`` session file.

    ``version`` goes first, then ``metadata``, then the chunks in order.
    """

    directory = Path(directory)
    _require_archive(directory)
    target = Path(target) if target is not None else directory.with_name(directory.name + ".sr")
    logic_names, analog_names = list_chunks(directory)
    members = ["version", "metadata", *logic_names]
    for names in analog_names.values():
        members.extend(names)

    try:
        with zipfile.ZipFile(target, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=9) as zf:
            for name in members:
                zf.write(directory / name, arcname=name)
    except OSError as exc:
        logger.error("No se pudo crear %s: %s", target, exc)
        raise ArchiveIOError(f"No se pudo crear {target}: {exc}") from exc

    logger.info("Archivo %s empaquetado en %s (%d miembros)", directory, target, len(members))
    if remove_directory:
        shutil.rmtree(directory)
        logger.info("Directorio %s eliminado tras empaquetar", directory)
    return target
