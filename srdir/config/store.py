"""Helpers to load, validate and persist configuration files."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from dotenv import dotenv_values

from .schema import ArchiveSettings, DeviceConfig, WebApiSettings

CONFIG_DIR = Path(__file__).resolve().parent


def _read_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(path)
    with path.open("r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Expected a mapping at {path}, found {type(data).__name__}")
    return data


def _write_yaml(path: Path, payload: Mapping[str, Any]):
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as fh:
        yaml.safe_dump(dict(payload), fh, sort_keys=False, allow_unicode=True)


def load_device_config(path: Optional[Path] = None) -> DeviceConfig:
    """Read and validate the device channel layout from device.yaml."""

    cfg_path = path or CONFIG_DIR / "device.yaml"
    return DeviceConfig.from_mapping(_read_yaml(cfg_path))


def save_device_config(config: DeviceConfig, path: Optional[Path] = None):
    """Persist the device configuration using the canonical schema."""

    cfg_path = path or CONFIG_DIR / "device.yaml"
    _write_yaml(cfg_path, config.to_dict())


def load_archive_settings(path: Optional[Path] = None) -> ArchiveSettings:
    """Read and validate archive settings from archive.yaml."""

    cfg_path = path or CONFIG_DIR / "archive.yaml"
    return ArchiveSettings.from_mapping(_read_yaml(cfg_path))


def save_archive_settings(settings: ArchiveSettings, path: Optional[Path] = None):
    """Persist the archive settings to archive.yaml."""

    cfg_path = path or CONFIG_DIR / "archive.yaml"
    _write_yaml(cfg_path, settings.to_dict())


def archive_settings_from_env(
    env: Mapping[str, Any], base: Optional[ArchiveSettings] = None
) -> ArchiveSettings:
    """Overlay SRDIR_* environment variables on top of ``base``."""

    payload = (base or ArchiveSettings()).to_dict()
    overrides = {
        "output_dir": env.get("SRDIR_OUTPUT_DIR"),
        "input_dir": env.get("SRDIR_INPUT_DIR"),
        "chunk_size_bytes": env.get("SRDIR_CHUNK_SIZE_BYTES"),
        "sigrok_version": env.get("SRDIR_SIGROK_VERSION"),
        "zip_on_finish": env.get("SRDIR_ZIP_ON_FINISH"),
    }
    payload.update({key: value for key, value in overrides.items() if value not in (None, "")})
    return ArchiveSettings.from_mapping(payload)


def webapi_settings_from_env(env: Mapping[str, Any]) -> WebApiSettings:
    """Build web API settings from SRDIR_WEBAPI_* variables.

    ``SRDIR_WEBAPI_TOKEN`` wins over ``SRDIR_WEBAPI_TOKEN_FILE``; a token file
    that is configured but unreadable is a configuration error.
    """

    token = env.get("SRDIR_WEBAPI_TOKEN") or None
    token_file = env.get("SRDIR_WEBAPI_TOKEN_FILE")
    if token is None and token_file:
        try:
            token = Path(token_file).read_text(encoding="utf-8").strip() or None
        except OSError as exc:
            raise ValueError(f"No se pudo leer el token desde {token_file}: {exc}") from exc
    payload = {
        "host": env.get("SRDIR_WEBAPI_HOST"),
        "port": env.get("SRDIR_WEBAPI_PORT"),
        "log_level": env.get("SRDIR_WEBAPI_LOG_LEVEL"),
        "token": token,
    }
    return WebApiSettings.from_mapping(
        {key: value for key, value in payload.items() if value not in (None, "")}
    )


def default_archive_settings() -> ArchiveSettings:
    """Return the archive settings used when no archive.yaml is present."""

    return ArchiveSettings()


def load_env_file(path: Path) -> Mapping[str, str]:
    """Load key/value pairs from a dotenv file."""

    values = dotenv_values(str(path))
    return {k: v for k, v in values.items() if v is not None}
