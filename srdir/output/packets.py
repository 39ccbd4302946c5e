"""Datafeed packets routed to the output module.

A packet is one of :class:`MetaPacket`, :class:`LogicPacket`,
:class:`AnalogPacket` or :class:`EndPacket`; the dispatcher matches on the
concrete type.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence, Union

import numpy as np

from .channels import Channel
from .errors import ArgumentError

_INT_SIZES = (1, 2, 4, 8)
_FLOAT_SIZES = (4, 8)


@dataclass(frozen=True)
class MetaPacket:
    """Stream metadata; only the sample rate is of interest here."""

    samplerate: int | None = None


@dataclass(frozen=True)
class LogicPacket:
    data: bytes
    unit_size: int

    @property
    def length(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class AnalogEncoding:
    """How the raw analog payload is laid out and scaled.

    Converted value = raw * ``scale`` + ``offset``.
    """

    unit_size: int = 4
    is_float: bool = True
    is_signed: bool = True
    is_bigendian: bool = False
    scale: float = 1.0
    offset: float = 0.0

    def dtype(self) -> np.dtype:
        order = ">" if self.is_bigendian else "<"
        if self.is_float:
            if self.unit_size not in _FLOAT_SIZES:
                raise ArgumentError(f"Tamaño de float no soportado: {self.unit_size}")
            return np.dtype(f"{order}f{self.unit_size}")
        if self.unit_size not in _INT_SIZES:
            raise ArgumentError(f"Tamaño de entero no soportado: {self.unit_size}")
        kind = "i" if self.is_signed else "u"
        return np.dtype(f"{order}{kind}{self.unit_size}")


@dataclass(frozen=True)
class AnalogPacket:
    channels: Sequence[Channel]
    data: bytes
    num_samples: int
    encoding: AnalogEncoding = field(default_factory=AnalogEncoding)

    @classmethod
    def from_floats(cls, channel: Channel, values: Sequence[float]) -> "AnalogPacket":
        array = np.asarray(values, dtype="<f4")
        return cls(channels=(channel,), data=array.tobytes(), num_samples=int(array.size))


@dataclass(frozen=True)
class EndPacket:
    """End of stream; every buffer gets its final flush."""


Packet = Union[MetaPacket, LogicPacket, AnalogPacket, EndPacket]


def analog_to_float(packet: AnalogPacket) -> np.ndarray:
    """Convert the packet payload into native float32 values."""

    dtype = packet.encoding.dtype()
    expected = packet.num_samples * dtype.itemsize
    if packet.num_samples < 0 or len(packet.data) < expected:
        raise ArgumentError(
            f"Paquete analógico incompleto: {len(packet.data)} bytes para "
            f"{packet.num_samples} muestras de {dtype.itemsize} bytes"
        )
    raw = np.frombuffer(packet.data, dtype=dtype, count=packet.num_samples)
    values = raw.astype(np.float32)
    encoding = packet.encoding
    if encoding.scale != 1.0 or encoding.offset != 0.0:
        values = (raw.astype(np.float64) * encoding.scale + encoding.offset).astype(np.float32)
    return values
