"""Typed configuration models implemented with dataclasses."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

DEFAULT_CHUNK_SIZE_BYTES = 4 * 1024 * 1024
DEFAULT_SIGROK_VERSION = "0.6.0"
CHANNEL_TYPES = ("logic", "analog")


def _as_str(value: Any, field_name: str, *, optional: bool = False) -> Optional[str]:
    if value is None:
        if optional:
            return None
        raise ValueError(f"'{field_name}' es obligatorio")
    text = str(value).strip()
    if not text and not optional:
        raise ValueError(f"'{field_name}' no puede estar vacío")
    return text or None


def _as_int(value: Any, field_name: str) -> int:
    if value is None:
        raise ValueError(f"'{field_name}' es obligatorio")
    if isinstance(value, bool):
        raise ValueError(f"'{field_name}' debe ser un entero válido")
    try:
        result = int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"'{field_name}' debe ser un entero válido") from exc
    return result


def _as_optional_int(value: Any, field_name: str) -> Optional[int]:
    if value is None or value == "":
        return None
    return _as_int(value, field_name)


def _as_bool(value: Any, default: bool = True) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in {"1", "true", "yes", "si", "sí"}:
        return True
    if text in {"0", "false", "no"}:
        return False
    return default


@dataclass
class ChannelConfig:
    index: int
    name: str
    type: str = "logic"
    enabled: bool = True

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ChannelConfig":
        index = _as_int(data.get("index"), "channels[].index")
        if index < 0:
            raise ValueError("channels[].index debe ser >= 0")
        name = _as_str(data.get("name"), "channels[].name")
        kind = (_as_str(data.get("type", "logic"), "channels[].type") or "logic").lower()
        if kind not in CHANNEL_TYPES:
            raise ValueError("channels[].type debe ser 'logic' o 'analog'")
        enabled = _as_bool(data.get("enabled"), True)
        return cls(index=index, name=name, type=kind, enabled=enabled)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "name": self.name,
            "type": self.type,
            "enabled": self.enabled,
        }


@dataclass
class DeviceConfig:
    device_id: str
    channels: List[ChannelConfig] = field(default_factory=list)
    samplerate_hz: Optional[int] = None
    description: Optional[str] = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "DeviceConfig":
        device_id = _as_str(data.get("device_id"), "device_id")
        description = _as_str(data.get("description"), "description", optional=True)
        samplerate = _as_optional_int(data.get("samplerate_hz"), "samplerate_hz")
        if samplerate is not None and samplerate < 0:
            raise ValueError("samplerate_hz debe ser >= 0")
        channels_payload = data.get("channels") or []
        if isinstance(channels_payload, (str, bytes)) or not isinstance(channels_payload, Iterable):
            raise ValueError("channels debe ser una lista")
        channels = [ChannelConfig.from_mapping(ch) for ch in channels_payload]
        seen = set()
        for channel in channels:
            if channel.index in seen:
                raise ValueError(f"canal duplicado: {channel.index}")
            seen.add(channel.index)
        return cls(
            device_id=device_id,
            channels=channels,
            samplerate_hz=samplerate,
            description=description,
        )

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "device_id": self.device_id,
            "samplerate_hz": self.samplerate_hz,
            "channels": [ch.to_dict() for ch in self.channels],
        }
        if self.description:
            payload["description"] = self.description
        return payload


@dataclass
class ArchiveSettings:
    output_dir: str = "./archives"
    input_dir: str = "./captures"
    chunk_size_bytes: int = DEFAULT_CHUNK_SIZE_BYTES
    sigrok_version: str = DEFAULT_SIGROK_VERSION
    zip_on_finish: bool = False
    keep_directory: bool = True
    logic_block_size: int = 65536
    analog_block_size: int = 4096

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "ArchiveSettings":
        if not data:
            return cls()
        output_dir = _as_str(data.get("output_dir", "./archives"), "output_dir") or "./archives"
        input_dir = _as_str(data.get("input_dir", "./captures"), "input_dir") or "./captures"
        chunk_size = _as_int(
            data.get("chunk_size_bytes", DEFAULT_CHUNK_SIZE_BYTES), "chunk_size_bytes"
        )
        if chunk_size <= 0:
            raise ValueError("chunk_size_bytes debe ser > 0")
        if chunk_size % 4:
            raise ValueError("chunk_size_bytes debe ser múltiplo de 4")
        version = _as_str(
            data.get("sigrok_version", DEFAULT_SIGROK_VERSION), "sigrok_version"
        ) or DEFAULT_SIGROK_VERSION
        zip_on_finish = _as_bool(data.get("zip_on_finish"), False)
        keep_directory = _as_bool(data.get("keep_directory"), True)
        logic_block = _as_int(data.get("logic_block_size", 65536), "logic_block_size")
        if logic_block <= 0:
            raise ValueError("logic_block_size debe ser > 0")
        analog_block = _as_int(data.get("analog_block_size", 4096), "analog_block_size")
        if analog_block <= 0:
            raise ValueError("analog_block_size debe ser > 0")
        return cls(
            output_dir=output_dir,
            input_dir=input_dir,
            chunk_size_bytes=chunk_size,
            sigrok_version=version,
            zip_on_finish=zip_on_finish,
            keep_directory=keep_directory,
            logic_block_size=logic_block,
            analog_block_size=analog_block,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "output_dir": self.output_dir,
            "input_dir": self.input_dir,
            "chunk_size_bytes": self.chunk_size_bytes,
            "sigrok_version": self.sigrok_version,
            "zip_on_finish": self.zip_on_finish,
            "keep_directory": self.keep_directory,
            "logic_block_size": self.logic_block_size,
            "analog_block_size": self.analog_block_size,
        }


LOG_LEVELS = ("critical", "error", "warning", "info", "debug", "trace")


@dataclass
class WebApiSettings:
    """Bind address and write token of the web API."""

    host: str = "127.0.0.1"
    port: int = 8000
    token: Optional[str] = None
    log_level: str = "info"

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "WebApiSettings":
        if not data:
            return cls()
        host = _as_str(data.get("host", "127.0.0.1"), "host") or "127.0.0.1"
        port = _as_int(data.get("port", 8000), "port")
        if not 0 < port < 65536:
            raise ValueError("port debe estar entre 1 y 65535")
        token = _as_str(data.get("token"), "token", optional=True)
        log_level = (_as_str(data.get("log_level", "info"), "log_level") or "info").lower()
        if log_level not in LOG_LEVELS:
            raise ValueError(f"log_level debe ser uno de {', '.join(LOG_LEVELS)}")
        return cls(host=host, port=port, token=token, log_level=log_level)
