"""Conversion job endpoints running a CaptureRunner in the background."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, replace
from datetime import datetime, timezone
import logging
from pathlib import Path
from threading import Event, Thread
from typing import Callable, Dict, Optional

import anyio
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from srdir.config import ArchiveSettings, DeviceConfig, load_device_config
from srdir.convert import default_output_name
from srdir.output import ArgumentError, CaptureResult, CaptureRunner, CaptureSources
from srdir.output.srzip import check_archive_name

from .auth import require_write_token
from .configuration import load_archive_or_default

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/conversion", tags=["conversion"])


class StartConversionRequest(BaseModel):
    """Payload used to start a conversion job."""

    output: Optional[str] = Field(None, description="Nombre del directorio de salida")
    logic: Optional[str] = Field(None, description="Archivo lógico empaquetado, relativo a input_dir")
    analog: Dict[int, str] = Field(
        default_factory=dict,
        description="Índice de canal analógico -> archivo float32/.npy relativo a input_dir",
    )
    zip: bool = Field(False, description="Empaquetar el resultado como .sr al terminar")


class JobSummary(BaseModel):
    """Metadata describing a conversion job lifecycle."""

    output: str
    status: str
    started_at: datetime
    finished_at: datetime | None = None
    device_id: str
    chunks: int = 0
    srzip: str | None = None
    error: str | None = None


class StopResponse(BaseModel):
    message: str
    job: JobSummary


@dataclass
class ConversionJob:
    """Track a running conversion in a background thread."""

    runner: CaptureRunner
    device: DeviceConfig
    sources: CaptureSources
    output: str

    def __post_init__(self) -> None:
        self._thread: Thread | None = None
        self._stop_event = Event()
        self._status = "starting"
        self._error: str | None = None
        self._result: CaptureResult | None = None
        self.started_at = datetime.now(timezone.utc)
        self.finished_at: datetime | None = None

    def start(self) -> None:
        def _run() -> None:
            logger.info("Iniciando conversión hacia %s", self.output)
            self._status = "running"
            try:
                self._result = self.runner.run(self.sources, self.output)
                if self._status == "running":
                    self._status = "stopped" if self._result.stopped else "finished"
            except Exception as exc:
                self._status = "failed"
                self._error = str(exc)
                logger.exception("La conversión falló")
            finally:
                self.finished_at = datetime.now(timezone.utc)
                self._stop_event.set()
                logger.info("Conversión finalizada (status=%s)", self._status)

        self._thread = Thread(target=_run, daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 10.0) -> None:
        self.runner.request_stop()
        if not self._stop_event.wait(timeout):
            logger.warning("Timeout esperando el cierre de la conversión")
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        if self.finished_at is None:
            self.finished_at = datetime.now(timezone.utc)

    @property
    def is_active(self) -> bool:
        if self._stop_event.is_set():
            return False
        thread = self._thread
        if thread and not thread.is_alive():
            self._stop_event.set()
            return False
        return True

    def info(self) -> Dict[str, object]:
        result = self._result
        return {
            "output": self.output,
            "status": self._status,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "device_id": self.device.device_id,
            "chunks": result.chunk_count if result is not None else 0,
            "srzip": str(result.srzip) if result is not None and result.srzip else None,
            "error": self._error,
        }


def _bad_request(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


def _resolve_source(root: Path, value: str) -> Path:
    """Resolve a request path inside ``input_dir``; anything outside is rejected."""

    base = root.resolve()
    candidate = (base / value).resolve()
    if Path(value).is_absolute() or not candidate.is_relative_to(base):
        raise _bad_request(f"La fuente {value!r} debe estar dentro de input_dir")
    return candidate


RunnerFactory = Callable[[DeviceConfig, ArchiveSettings], CaptureRunner]


class ConversionManager:
    """Coordinate job lifecycle and prevent concurrent conversions."""

    def __init__(self, *, runner_factory: RunnerFactory | None = None) -> None:
        self._runner_factory = runner_factory or (
            lambda device, archive: CaptureRunner(device=device, archive=archive)
        )
        self._lock = asyncio.Lock()
        self._job: ConversionJob | None = None
        self._last_summary: Dict[str, object] | None = None

    async def _cleanup_finished_job_locked(self) -> None:
        job = self._job
        if job and not job.is_active:
            self._last_summary = job.info()
            self._job = None

    async def start_job(self, request: StartConversionRequest) -> Dict[str, object]:
        async with self._lock:
            await self._cleanup_finished_job_locked()
            if self._job is not None:
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail="Ya existe una conversión en ejecución",
                )
            output = request.output or default_output_name()
            try:
                check_archive_name(output)
            except ArgumentError as exc:
                raise _bad_request(str(exc)) from exc
            device = await anyio.to_thread.run_sync(load_device_config)
            archive = await anyio.to_thread.run_sync(load_archive_or_default)
            if request.zip:
                archive = replace(archive, zip_on_finish=True)
            input_root = Path(archive.input_dir)
            sources = CaptureSources(
                logic=_resolve_source(input_root, request.logic) if request.logic else None,
                analog={
                    index: _resolve_source(input_root, path)
                    for index, path in request.analog.items()
                },
            )
            job = ConversionJob(
                runner=self._runner_factory(device, archive),
                device=device,
                sources=sources,
                output=output,
            )
            job.start()
            self._job = job
            self._last_summary = None
            return job.info()

    async def stop_job(self) -> Dict[str, object]:
        async with self._lock:
            await self._cleanup_finished_job_locked()
            job = self._job
            if job is None:
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail="No hay conversiones activas",
                )
            await anyio.to_thread.run_sync(job.stop)
            summary = job.info()
            self._last_summary = summary
            self._job = None
            return summary

    async def current_job(self) -> Dict[str, object] | None:
        async with self._lock:
            await self._cleanup_finished_job_locked()
            job = self._job
            if job is None:
                return None
            return job.info()

    async def last_job(self) -> Dict[str, object] | None:
        async with self._lock:
            await self._cleanup_finished_job_locked()
            if self._job is not None:
                return None
            return self._last_summary


conversion_manager = ConversionManager()


@router.post("/start", response_model=JobSummary, status_code=status.HTTP_202_ACCEPTED)
async def start_conversion(
    request: StartConversionRequest,
    _: None = Depends(require_write_token),
) -> Dict[str, object]:
    """Start a new conversion job."""

    return await conversion_manager.start_job(request)


@router.post("/stop", response_model=StopResponse)
async def stop_conversion(_: None = Depends(require_write_token)) -> Dict[str, object]:
    """Stop the active job if present."""

    summary = await conversion_manager.stop_job()
    return {"message": "Conversión detenida", "job": summary}


@router.get("/session", response_model=Dict[str, object])
async def conversion_status() -> Dict[str, object]:
    """Return the active job metadata or the last finished job."""

    current = await conversion_manager.current_job()
    if current is not None:
        return {"active": True, "job": current}
    last = await conversion_manager.last_job()
    return {"active": False, "last_job": last}
