from __future__ import annotations

from snd_raw_converter.models.hits import FibreHit, MuonHit
from snd_raw_converter.models.mapping import SYSTEM_DOWNSTREAM, SYSTEM_UPSTREAM, SYSTEM_VETO


def test_fibre_hit_address_fields():
    h = FibreHit(2_011_053)
    assert h.station == 2
    assert not h.is_vertical
    assert h.mat == 1

    v = FibreHit(1_100_002)
    assert v.station == 1
    assert v.is_vertical
    assert v.mat == 0


def test_fibre_hit_set_digi_and_invalid():
    h = FibreHit(1_100_000)
    assert h.valid
    h.set_digi(12.5, 3.0)
    h.set_invalid()
    assert (h.charge, h.time, h.valid) == (12.5, 3.0, False)


def test_muon_hit_address_fields():
    us = MuonHit(20009, n_sipms=8, n_sides=2)
    assert us.system == SYSTEM_UPSTREAM
    assert us.plane == 0
    assert us.bar == 9
    assert us.n_slots == 16

    veto = MuonHit(11006, n_sipms=8, n_sides=2)
    assert veto.system == SYSTEM_VETO
    assert veto.plane == 1
    assert veto.bar == 6

    ds = MuonHit(33119, n_sipms=1, n_sides=1)
    assert ds.system == SYSTEM_DOWNSTREAM
    assert ds.plane == 3
    assert ds.bar == 119


def test_muon_hit_slots():
    h = MuonHit(20009, n_sipms=8, n_sides=2)
    assert h.has_slot(0) and h.has_slot(15)
    assert not h.has_slot(16) and not h.has_slot(-1)
    assert not h.valid

    h.set_digi(4.0, 1.0, 3)
    h.set_digi(-2.0, 1.5, 11)
    h.set_masked(11)
    assert h.valid
    assert h.time(3) == 1.0
    assert h.signal(7) == 0.0
    assert h.all_signals() == {3: 4.0}
    assert h.all_signals(include_masked=True) == {3: 4.0, 11: -2.0}

    ds = MuonHit(30114, n_sipms=1, n_sides=1)
    assert ds.has_slot(0)
    assert not ds.has_slot(1)
