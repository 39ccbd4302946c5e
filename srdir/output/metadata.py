"""Builds the ``metadata`` key/value file describing an srdir archive."""

from __future__ import annotations

import configparser
import io
from typing import Dict

from .channels import ChannelLayout

ARCHIVE_VERSION = b"2"
GLOBAL_GROUP = "global"
DEVICE_GROUP = "device 1"
LOGIC_CAPTURE_NAME = "logic-1"

_SI_PREFIXES = (
    (10**18, "E"),
    (10**15, "P"),
    (10**12, "T"),
    (10**9, "G"),
    (10**6, "M"),
    (10**3, "k"),
)


def samplerate_string(samplerate: int) -> str:
    """Render a rate in Hz the way sigrok does, e.g. ``1 MHz`` or ``1.5 kHz``."""

    rate = int(samplerate)
    divisor, prefix = 1, ""
    for candidate, candidate_prefix in _SI_PREFIXES:
        if rate >= candidate:
            divisor, prefix = candidate, candidate_prefix
            break
    quot, remainder = divmod(rate, divisor)
    if not remainder:
        return f"{quot} {prefix}Hz"
    digits = len(str(divisor)) - 1
    fraction = f"{remainder:0{digits}d}".rstrip("0")
    return f"{quot}.{fraction} {prefix}Hz"


def _new_keyfile() -> configparser.ConfigParser:
    parser = configparser.ConfigParser(interpolation=None, delimiters=("=",))
    parser.optionxform = str  # type: ignore[assignment]
    return parser


def build_metadata(
    layout: ChannelLayout,
    samplerate: int,
    *,
    sigrok_version: str,
) -> configparser.ConfigParser:
    """Return the archive description for ``layout``.

    ``capturefile`` and ``total probes`` are only present when at least one
    logic channel is enabled; readers take their absence as "no logic data".
    """

    meta = _new_keyfile()
    meta[GLOBAL_GROUP] = {"sigrok version": sigrok_version}
    meta.add_section(DEVICE_GROUP)
    device = meta[DEVICE_GROUP]

    if layout.has_logic:
        device["capturefile"] = LOGIC_CAPTURE_NAME
        device["total probes"] = str(layout.logic_channel_count)
    device["samplerate"] = samplerate_string(samplerate)
    device["total analog"] = str(layout.enabled_analog_channel_count)

    for key, name in layout.channel_keys:
        device[key] = name

    if layout.unit_size > 0:
        device["unitsize"] = str(layout.unit_size)
    return meta


def render_metadata(meta: configparser.ConfigParser) -> bytes:
    buffer = io.StringIO()
    meta.write(buffer, space_around_delimiters=False)
    return buffer.getvalue().encode("utf-8")


def parse_metadata(payload: bytes | str) -> Dict[str, Dict[str, str]]:
    text = payload.decode("utf-8") if isinstance(payload, bytes) else payload
    meta = _new_keyfile()
    meta.read_string(text)
    return {section: dict(meta[section]) for section in meta.sections()}
