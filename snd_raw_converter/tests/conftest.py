"""Shared synthetic run configuration for the converter tests.

Layout
------
- board_11: fibre station M1Y, mat 0
- board_12: fibre station M2X, mat 1
- board_7:  muon filter, A -> US_1Left, B -> US_1Right, C -> DS_1Vert, D -> Veto_1Left

Calibration ("good" channels)
-----------------------------
charge: a=0, b=0, c=20, d=100, e=0  ->  charge = v_fine - 100 + 20*ln(2)
time:   a=1, b=-6, c=5, d=0.25      ->  t_fine=5 gives timestamp = t_coarse + 0.25
both fits chi2/ndof = 2.
"""

from __future__ import annotations

import math
from pathlib import Path
from typing import Dict, Iterable, List, Tuple

import pytest

from snd_raw_converter.analysis.calibration import CalibrationStore
from snd_raw_converter.analysis.channel_map import ChannelMap
from snd_raw_converter.analysis.digitizer import Digitizer
from snd_raw_converter.ingest.board_mapping import parse_board_mapping_json, write_board_mapping_json
from snd_raw_converter.ingest.calibration_tables import write_calibration_rows
from snd_raw_converter.ingest.sipm_mapping import SIPM_SYSTEM_FILES, write_sipm_mapping
from snd_raw_converter.models.hits import RawHit
from snd_raw_converter.models.mapping import SYSTEM_DOWNSTREAM, SYSTEM_NAMES, SYSTEM_UPSTREAM, SYSTEM_VETO
from snd_raw_converter.models.profile import ConverterProfile


GOOD_CHARGE = (0.0, 0.0, 20.0, 10.0, 100.0, 5.0, 0.0)  # a, b, c, sum_sq, d, ndof, e
GOOD_TIME = (1.0, -6.0, 5.0, 10.0, 0.25, 5.0)  # a, b, c, sum_sq, d, ndof

CHARGE_OFFSET = 100.0 - 20.0 * math.log(2.0)

MAPPING_DOC = {
    "Scifi": {"board_11": {"M1Y": 0}, "board_12": {"M2X": 1}},
    "MuFilter": {"board_7": {"A": "US_1Left", "B": "US_1Right", "C": "DS_1Vert", "D": "Veto_1Left"}},
}

Key = Tuple[int, int, int, int]


def charge_row(key: Key, params=GOOD_CHARGE) -> List[float]:
    return [float(v) for v in key] + [float(v) for v in params]


def time_row(key: Key, params=GOOD_TIME, tdc_slot: int = 0) -> List[float]:
    return [float(v) for v in key] + [float(tdc_slot)] + [float(v) for v in params]


def all_keys() -> Iterable[Key]:
    for board in (7, 11, 12):
        for tofpet in range(8):
            for channel in range(64):
                yield (board, tofpet, channel, 0)


def good_rows(extra_charge=(), extra_time=()) -> Tuple[List[List[float]], List[List[float]]]:
    q = [charge_row(k) for k in all_keys()] + [list(r) for r in extra_charge]
    t = [time_row(k) for k in all_keys()] + [list(r) for r in extra_time]
    return q, t


def tofpet_maps() -> Dict[int, Dict[int, int]]:
    # US and Veto: both tofpets of a slot, 64 channels each; DS: only channels 0..31 of even tofpets.
    full = {p * 1000 + c: p * 64 + c + 1 for p in (0, 1) for c in range(64)}
    ds = {c: c + 1 for c in range(32)}
    return {SYSTEM_VETO: dict(full), SYSTEM_UPSTREAM: dict(full), SYSTEM_DOWNSTREAM: ds}


def raw(tofpet_id: int, tofpet_channel: int, *, v_fine: int = 90, t_fine: int = 5,
        t_coarse: int = 123456789, v_coarse: int = 10, tac: int = 0) -> RawHit:
    return RawHit(tofpet_id, tofpet_channel, tac, t_coarse, t_fine, v_coarse, v_fine)


@pytest.fixture
def store() -> CalibrationStore:
    q, t = good_rows()
    return CalibrationStore.from_rows(q, t)


@pytest.fixture
def channel_map() -> ChannelMap:
    return ChannelMap.load(parse_board_mapping_json(MAPPING_DOC), tofpet_maps())


@pytest.fixture
def digitizer(store: CalibrationStore, channel_map: ChannelMap) -> Digitizer:
    return Digitizer(calibration=store, channel_map=channel_map, profile=ConverterProfile())


LEGACY_MAPPING_CSV = """detector,board,key,value
Scifi,board_11,M1Y,0
Scifi,board_12,M2X,1
MuFilter,board_7,A,US_1Left
MuFilter,board_7,B,US_1Right
MuFilter,board_7,C,DS_1Vert
MuFilter,board_7,D,Veto_1Left
"""


def write_run_folder(root: Path, *, json_mapping: bool = True, legacy_mapping: bool = False, sipm: bool = True) -> Path:
    """Write a complete synthetic run configuration into ``root``."""
    q, t = good_rows()
    write_calibration_rows(root / "qdc_cal.csv", "board,tofpet,channel,tac,a,b,c,chi2,d,ndof,e", q)
    write_calibration_rows(root / "tdc_cal.csv", "board,tofpet,channel,tac,tdc,a,b,c,chi2,d,ndof", t)
    if json_mapping:
        write_board_mapping_json(parse_board_mapping_json(MAPPING_DOC), root / "board_mapping.json")
    if legacy_mapping:
        (root / "board_mapping.csv").write_text(LEGACY_MAPPING_CSV, encoding="utf-8")
    if sipm:
        maps = tofpet_maps()
        for system, name in SYSTEM_NAMES.items():
            write_sipm_mapping(maps[system], root / SIPM_SYSTEM_FILES[name])
    return root
