"""Configuration endpoints exposing the typed schemas."""

from __future__ import annotations

import asyncio
from typing import Any, Dict, Mapping

import anyio
from fastapi import APIRouter, Body, Depends, HTTPException, status

from srdir.config import (
    ArchiveSettings,
    DeviceConfig,
    load_archive_settings,
    load_device_config,
    save_archive_settings,
    save_device_config,
)
from srdir.config import store as config_store

from .auth import require_write_token

router = APIRouter(prefix="/config", tags=["config"])

_device_lock = asyncio.Lock()
_archive_lock = asyncio.Lock()


def load_archive_or_default() -> ArchiveSettings:
    """archive.yaml is optional; fall back to the built-in defaults."""

    try:
        return load_archive_settings()
    except FileNotFoundError:
        return config_store.default_archive_settings()


async def _load_device() -> DeviceConfig:
    try:
        return await anyio.to_thread.run_sync(load_device_config)
    except FileNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="device.yaml no existe",
        ) from exc


async def _load_archive() -> ArchiveSettings:
    return await anyio.to_thread.run_sync(load_archive_or_default)


@router.get("/device")
async def get_device_config() -> Dict[str, Any]:
    """Return the channel layout used for new archives."""

    config = await _load_device()
    return config.to_dict()


@router.put("/device")
async def update_device_config(
    payload: Mapping[str, Any] = Body(..., description="Payload completo de device.yaml"),
    _: None = Depends(require_write_token),
) -> Dict[str, Any]:
    """Persist a new device configuration after validation."""

    try:
        candidate = DeviceConfig.from_mapping(dict(payload))
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))

    async with _device_lock:
        await anyio.to_thread.run_sync(save_device_config, candidate)
    return candidate.to_dict()


@router.get("/archive")
async def get_archive_settings() -> Dict[str, Any]:
    settings = await _load_archive()
    return settings.to_dict()


@router.put("/archive")
async def update_archive_settings(
    payload: Mapping[str, Any] = Body(..., description="Payload completo de archive.yaml"),
    _: None = Depends(require_write_token),
) -> Dict[str, Any]:
    try:
        candidate = ArchiveSettings.from_mapping(dict(payload))
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))

    async with _archive_lock:
        await anyio.to_thread.run_sync(save_archive_settings, candidate)
    return candidate.to_dict()
