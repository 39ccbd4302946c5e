"""Configuration schemas and persistence helpers for the archive writer."""

from .schema import ArchiveSettings, ChannelConfig, DeviceConfig, WebApiSettings
from .store import (
    archive_settings_from_env,
    default_archive_settings,
    load_archive_settings,
    load_device_config,
    load_env_file,
    save_archive_settings,
    save_device_config,
    webapi_settings_from_env,
)

__all__ = [
    "ArchiveSettings",
    "ChannelConfig",
    "DeviceConfig",
    "WebApiSettings",
    "archive_settings_from_env",
    "default_archive_settings",
    "load_archive_settings",
    "load_device_config",
    "load_env_file",
    "save_archive_settings",
    "save_device_config",
    "webapi_settings_from_env",
]
