"""Channel model and the layout resolver shared by metadata and buffers."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Sequence, Tuple

from srdir.config.schema import ChannelConfig


class ChannelType(str, Enum):
    LOGIC = "logic"
    ANALOG = "analog"


@dataclass(frozen=True)
class Channel:
    """A configured capture channel; immutable for one archive session."""

    index: int
    name: str
    type: ChannelType
    enabled: bool = True

    @classmethod
    def from_config(cls, config: ChannelConfig) -> "Channel":
        return cls(
            index=config.index,
            name=config.name,
            type=ChannelType(config.type),
            enabled=config.enabled,
        )


@dataclass(frozen=True)
class ChannelLayout:
    """Counts and numbering derived once from the channel list.

    ``analog_index_map[slot]`` is the stable index of the channel whose data
    lands in analog buffer ``slot``; its archive number is
    ``first_analog_number + slot``. ``channel_keys`` holds the metadata
    ``probe<N>`` / ``analog<N>`` keys of enabled channels in declaration
    order.
    """

    logic_channel_count: int
    enabled_logic_channel_count: int
    enabled_analog_channel_count: int
    first_analog_number: int
    analog_index_map: Tuple[int, ...]
    channel_keys: Tuple[Tuple[str, str], ...]

    @property
    def unit_size(self) -> int:
        """Bytes per packed logic sample covering every logic channel."""

        return (self.logic_channel_count + 7) // 8

    @property
    def has_logic(self) -> bool:
        return self.enabled_logic_channel_count > 0

    def analog_slot(self, channel_index: int) -> int | None:
        try:
            return self.analog_index_map.index(channel_index)
        except ValueError:
            return None

    def analog_number(self, slot: int) -> int:
        return self.first_analog_number + slot


def channels_from_config(configs: Iterable[ChannelConfig]) -> List[Channel]:
    return [Channel.from_config(config) for config in configs]


def resolve_layout(channels: Sequence[Channel]) -> ChannelLayout:
    """Compute channel counts, analog numbering and metadata names.

    Readers can only find the first analog number through the "total
    probes" count, so it follows the last logic channel whether that one is
    enabled or not.
    """

    logic_channels = 0
    enabled_logic = 0
    enabled_analog = 0
    for channel in channels:
        if channel.type is ChannelType.LOGIC:
            logic_channels += 1
            if channel.enabled:
                enabled_logic += 1
        elif channel.type is ChannelType.ANALOG and channel.enabled:
            enabled_analog += 1

    first_analog = logic_channels + 1 if enabled_logic > 0 else 1

    index_map: List[int] = []
    keys: List[Tuple[str, str]] = []
    for channel in channels:
        if not channel.enabled:
            continue
        if channel.type is ChannelType.LOGIC:
            keys.append((f"probe{channel.index + 1}", channel.name))
        else:
            keys.append((f"analog{first_analog + len(index_map)}", channel.name))
            index_map.append(channel.index)

    return ChannelLayout(
        logic_channel_count=logic_channels,
        enabled_logic_channel_count=enabled_logic,
        enabled_analog_channel_count=enabled_analog,
        first_analog_number=first_analog,
        analog_index_map=tuple(index_map),
        channel_keys=tuple(keys),
    )
