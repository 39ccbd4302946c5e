"""Unit tests for the channel layout resolver."""

from __future__ import annotations

import pytest

from srdir.output.channels import Channel, ChannelType, resolve_layout


def logic(index: int, enabled: bool = True) -> Channel:
    return Channel(index=index, name=f"D{index}", type=ChannelType.LOGIC, enabled=enabled)


def analog(index: int, enabled: bool = True) -> Channel:
    return Channel(index=index, name=f"A{index}", type=ChannelType.ANALOG, enabled=enabled)


def test_empty_channel_list_yields_zero_counts():
    layout = resolve_layout([])

    assert layout.logic_channel_count == 0
    assert layout.enabled_logic_channel_count == 0
    assert layout.enabled_analog_channel_count == 0
    assert layout.first_analog_number == 1
    assert layout.analog_index_map == ()
    assert layout.unit_size == 0


@pytest.mark.parametrize(
    "logic_enabled, analog_count, expected_first",
    [
        ([True, True, False], 1, 4),
        ([False, False, False], 2, 1),
        ([True] * 8, 3, 9),
        ([False] * 7 + [True], 1, 9),
        ([], 2, 1),
    ],
)
def test_first_analog_number_follows_total_logic_count(logic_enabled, analog_count, expected_first):
    channels = [logic(i, enabled) for i, enabled in enumerate(logic_enabled)]
    base = len(channels)
    channels += [analog(base + i) for i in range(analog_count)]

    layout = resolve_layout(channels)

    assert layout.first_analog_number == expected_first
    numbers = [layout.analog_number(slot) for slot in range(analog_count)]
    assert numbers == list(range(expected_first, expected_first + analog_count))


def test_analog_index_map_keeps_declaration_order_of_enabled_channels():
    channels = [
        analog(10),
        logic(0),
        analog(11, enabled=False),
        logic(1, enabled=False),
        analog(7),
        analog(12),
    ]

    layout = resolve_layout(channels)

    assert layout.logic_channel_count == 2
    assert layout.enabled_logic_channel_count == 1
    assert layout.enabled_analog_channel_count == 3
    assert layout.analog_index_map == (10, 7, 12)
    assert layout.analog_slot(7) == 1
    assert layout.analog_slot(11) is None
    assert layout.channel_keys == (
        ("analog3", "A10"),
        ("probe1", "D0"),
        ("analog4", "A7"),
        ("analog5", "A12"),
    )


@pytest.mark.parametrize("count, unit_size", [(1, 1), (8, 1), (9, 2), (16, 2), (17, 3)])
def test_unit_size_covers_every_logic_channel(count, unit_size):
    layout = resolve_layout([logic(i, enabled=i == 0) for i in range(count)])

    assert layout.unit_size == unit_size


def test_probe_keys_use_stable_channel_index():
    layout = resolve_layout([logic(0, enabled=False), logic(1), logic(2, enabled=False), logic(3)])

    assert layout.channel_keys == (("probe2", "D1"), ("probe4", "D3"))
