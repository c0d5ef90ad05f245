"""Tests for readout address resolution (fibre tracker and muon filter)."""

from __future__ import annotations

import pytest

from conftest import MAPPING_DOC, tofpet_maps

from snd_raw_converter.analysis.channel_map import (
    FIBRE,
    MUON,
    SENTINEL_SIPM_CHANNEL,
    ChannelMap,
    fibre_channel,
    resolve_fibre,
)
from snd_raw_converter.ingest.board_mapping import parse_board_mapping_json
from snd_raw_converter.models.mapping import (
    SYSTEM_DOWNSTREAM,
    SYSTEM_UPSTREAM,
    SYSTEM_VETO,
    BoardMapping,
    build_plane_offsets,
    board_number,
    system_of_plane,
)


# -----------------------------------------------------------------------
# Fibre tracker
# -----------------------------------------------------------------------


def test_fibre_channel_formula():
    assert fibre_channel(0, 63, 0) == 0
    assert fibre_channel(2, 10, 1) == 693


def test_fibre_id_horizontal_station():
    assert resolve_fibre(2, 10, 1, "M2X") == 2_011_053


def test_fibre_id_vertical_station():
    assert resolve_fibre(0, 63, 0, "M1Y") == 1_100_000
    assert resolve_fibre(0, 62, 0, "M1Y") == 1_100_001
    assert resolve_fibre(0, 61, 0, "M1Y") == 1_100_002


def test_fibre_id_crosses_128_channel_block():
    # channel 128 of the mat starts the second block of 128
    assert resolve_fibre(2, 63, 0, "M3X") == 3_001_000
    assert resolve_fibre(1, 0, 0, "M3X") == 3_000_127


def test_fibre_id_last_channel_of_mat():
    assert resolve_fibre(7, 0, 2, "M5Y") == 5_123_127


# -----------------------------------------------------------------------
# Muon filter
# -----------------------------------------------------------------------


def test_board_kind(channel_map: ChannelMap):
    assert channel_map.board_kind("board_11") == FIBRE
    assert channel_map.board_kind("board_7") == MUON
    assert channel_map.board_kind("board_99") is None
    assert channel_map.fibre_station("board_12") == ("M2X", 1)


def test_muon_systems_by_tofpet(channel_map: ChannelMap):
    assert channel_map.muon_system[7][0] == SYSTEM_UPSTREAM
    assert channel_map.muon_system[7][3] == SYSTEM_UPSTREAM
    assert channel_map.muon_system[7][5] == SYSTEM_DOWNSTREAM
    assert channel_map.muon_system[7][7] == SYSTEM_VETO


def test_upstream_left(channel_map: ChannelMap):
    addr = channel_map.resolve_muon_filter("board_7", 0, 3)
    assert addr.plane == "US_1Left"
    assert addr.detector_id == 20009
    assert addr.slot == 3
    assert (addr.n_sipms, addr.n_sides) == (8, 2)
    assert not addr.is_sentinel


def test_upstream_right_side_slot_offset(channel_map: ChannelMap):
    addr = channel_map.resolve_muon_filter("board_7", 2, 3)
    assert addr.plane == "US_1Right"
    assert addr.detector_id == 20009
    assert addr.slot == 11


def test_odd_tofpet_uses_second_key_block(channel_map: ChannelMap):
    addr = channel_map.resolve_muon_filter("board_7", 1, 3)
    assert addr.key == 1003
    assert addr.sipm_channel == 67
    assert addr.detector_id == 20001
    assert addr.slot == 3


def test_downstream_vertical(channel_map: ChannelMap):
    addr = channel_map.resolve_muon_filter("board_7", 4, 5)
    assert addr.plane == "DS_1Vert"
    assert addr.detector_id == 30114
    assert addr.slot == 0
    assert (addr.n_sipms, addr.n_sides) == (1, 1)


def test_veto(channel_map: ChannelMap):
    addr = channel_map.resolve_muon_filter("board_7", 6, 0)
    assert addr.system == SYSTEM_VETO
    assert addr.detector_id == 10006
    assert addr.slot == 0


def test_unmapped_key_gives_sentinel_and_warning(channel_map: ChannelMap):
    warnings = []
    addr = channel_map.resolve_muon_filter("board_7", 4, 60, warnings)
    assert addr.sipm_channel == SENTINEL_SIPM_CHANNEL
    assert addr.is_sentinel
    assert addr.detector_id == 30020
    assert len(warnings) == 1
    assert "key 60" in warnings[0]


def test_sipm_channel_is_zero_based(channel_map: ChannelMap):
    assert channel_map.sipm_channel(SYSTEM_UPSTREAM, 0) == 0
    assert channel_map.sipm_channel(SYSTEM_DOWNSTREAM, 40) is None


def test_unknown_slot_raises():
    doc = {"MuFilter": {"board_8": {"A": "US_2Left"}}}
    cmap = ChannelMap.load(parse_board_mapping_json(doc), tofpet_maps())
    with pytest.raises(KeyError):
        cmap.resolve_muon_filter("board_8", 2, 0)


def test_unknown_board_raises(channel_map: ChannelMap):
    with pytest.raises(KeyError):
        channel_map.resolve_muon_filter("board_9", 0, 3)


def test_empty_mapping_rejected():
    with pytest.raises(ValueError):
        ChannelMap.load(BoardMapping(fibre={}, muon={}), tofpet_maps())


# -----------------------------------------------------------------------
# Wiring tables
# -----------------------------------------------------------------------


def test_plane_offsets():
    off = build_plane_offsets()
    assert len(off) == 2 * 2 + 5 * 2 + 3 * 2 + 4
    assert off["Veto_2Right"].first_id == 11006
    assert off["US_5Left"].first_id == 24009
    assert off["DS_3Left"].first_id == 32059
    assert off["DS_4Vert"].first_id == 33119
    assert off["DS_4Vert"].n_sides == 1
    assert off["US_1Left"].direction == -1
    assert "DS_4Left" not in off


def test_system_of_plane_and_board_number():
    assert system_of_plane("Veto_1Left") == SYSTEM_VETO
    assert system_of_plane("US_3Right") == SYSTEM_UPSTREAM
    assert system_of_plane("DS_2Vert") == SYSTEM_DOWNSTREAM
    assert board_number("board_12") == 12


def test_board_in_both_detectors_rejected():
    doc = dict(MAPPING_DOC)
    doc["MuFilter"] = {"board_11": {"A": "US_1Left"}}
    with pytest.raises(ValueError):
        parse_board_mapping_json(doc)
