"""Endpoints to browse finished archives and download them as .sr files."""

from __future__ import annotations

from pathlib import Path
import tempfile
from typing import Any, Dict, List

import anyio
from fastapi import APIRouter, HTTPException, status
from fastapi.responses import Response
from pydantic import BaseModel, Field

from srdir.output import ArgumentError, pack_srzip, read_archive
from srdir.output.srzip import check_archive_name, list_chunks

from .configuration import load_archive_or_default

router = APIRouter(prefix="/archives", tags=["archives"])


class ArchiveSummary(BaseModel):
    name: str = Field(description="Nombre del directorio dentro de output_dir")
    logic_chunks: int = Field(description="Cantidad de chunks logic-1-*")
    analog_channels: List[int] = Field(
        default_factory=list, description="Números de canal analógico con datos"
    )
    analog_chunks: int = Field(description="Cantidad total de chunks analog-1-*")


def _archive_root() -> Path:
    return Path(load_archive_or_default().output_dir)


def _resolve_archive(name: str) -> Path:
    try:
        path = _archive_root() / check_archive_name(name)
    except ArgumentError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    if not (path / "version").is_file() or not (path / "metadata").is_file():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Archivo {name} no encontrado")
    return path


def _summaries() -> List[ArchiveSummary]:
    root = _archive_root()
    if not root.is_dir():
        return []
    summaries: List[ArchiveSummary] = []
    for path in sorted(root.iterdir()):
        if not path.is_dir() or not (path / "metadata").is_file():
            continue
        logic, analog = list_chunks(path)
        summaries.append(
            ArchiveSummary(
                name=path.name,
                logic_chunks=len(logic),
                analog_channels=sorted(analog),
                analog_chunks=sum(len(names) for names in analog.values()),
            )
        )
    return summaries


def _describe(path: Path) -> Dict[str, Any]:
    contents = read_archive(path)
    return {
        "name": path.name,
        "metadata": contents.metadata,
        "logic_chunks": contents.logic_chunks,
        "logic_bytes": len(contents.logic),
        "analog_chunks": {str(ch): names for ch, names in contents.analog_chunks.items()},
        "analog_samples": {str(ch): int(values.size) for ch, values in contents.analog.items()},
    }


def _zip_bytes(path: Path) -> bytes:
    with tempfile.TemporaryDirectory() as tmp:
        target = pack_srzip(path, Path(tmp) / f"{path.name}.sr")
        return target.read_bytes()


@router.get("", response_model=List[ArchiveSummary])
async def list_archives() -> List[ArchiveSummary]:
    """List archive directories found under output_dir."""

    return await anyio.to_thread.run_sync(_summaries)


@router.get("/{name}")
async def get_archive(name: str) -> Dict[str, Any]:
    """Return the parsed metadata and chunk listing of one archive."""

    path = _resolve_archive(name)
    try:
        return await anyio.to_thread.run_sync(_describe, path)
    except ArgumentError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@router.get("/{name}/srzip")
async def download_srzip(name: str) -> Response:
    """Pack the archive into a .sr container and return it."""

    path = _resolve_archive(name)
    payload = await anyio.to_thread.run_sync(_zip_bytes, path)
    return Response(
        content=payload,
        media_type="application/zip",
        headers={"Content-Disposition": f'attachment; filename="{name}.sr"'},
    )
