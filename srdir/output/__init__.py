"""Buffering and chunked writing of sigrok session directory archives."""

from .buffers import CHUNK_SIZE, AnalogBuffer, LogicBuffer
from .capture import CaptureResult, CaptureRunner, CaptureSources
from .channels import Channel, ChannelLayout, ChannelType, resolve_layout
from .chunks import ChunkWriter
from .errors import (
    AllocationError,
    ArchiveIOError,
    ArgumentError,
    ResultCode,
    SrdirError,
    UnsupportedError,
)
from .metadata import build_metadata, samplerate_string
from .module import ConfiguredDevice, SrdirOutput
from .packets import AnalogEncoding, AnalogPacket, EndPacket, LogicPacket, MetaPacket, Packet
from .session import ArchiveSession, SessionState
from .srzip import pack_srzip, read_archive

__all__ = [
    "CHUNK_SIZE",
    "AllocationError",
    "AnalogBuffer",
    "AnalogEncoding",
    "AnalogPacket",
    "ArchiveIOError",
    "ArchiveSession",
    "ArgumentError",
    "CaptureResult",
    "CaptureRunner",
    "CaptureSources",
    "Channel",
    "ChannelLayout",
    "ChannelType",
    "ChunkWriter",
    "ConfiguredDevice",
    "EndPacket",
    "LogicBuffer",
    "LogicPacket",
    "MetaPacket",
    "Packet",
    "ResultCode",
    "SessionState",
    "SrdirError",
    "SrdirOutput",
    "UnsupportedError",
    "build_metadata",
    "pack_srzip",
    "read_archive",
    "resolve_layout",
    "samplerate_string",
]
