from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple


@dataclass(frozen=True)
class RawHit:
    """
    One front-end (TOFPET) reading as stored per board and event.

    Notes
    - tac: 0-3, which of the channel's four time-to-analogue converters fired.
    - t_coarse: coarse clock count (wide integer).
    - t_fine, v_coarse, v_fine: 0-1023 raw ADC values, calibrated downstream.
    """
    tofpet_id: int
    tofpet_channel: int
    tac: int
    t_coarse: int
    t_fine: int
    v_coarse: int
    v_fine: int


@dataclass(frozen=True)
class RawEvent:
    """All raw hits of one event, grouped by board name (e.g. ``board_12``)."""
    event_number: int
    hits_by_board: Mapping[str, Tuple[RawHit, ...]]
    timestamp: float = 0.0

    @property
    def n_hits(self) -> int:
        return int(sum(len(v) for v in self.hits_by_board.values()))


@dataclass
class FibreHit:
    """Fibre-tracker digitized hit: one SiPM channel, one (charge, time) slot."""
    detector_id: int
    charge: float = 0.0
    time: float = 0.0
    valid: bool = True

    def set_digi(self, charge: float, time: float) -> None:
        self.charge = float(charge)
        self.time = float(time)

    def set_invalid(self) -> None:
        self.valid = False

    @property
    def station(self) -> int:
        return self.detector_id // 1_000_000

    @property
    def is_vertical(self) -> bool:
        return (self.detector_id // 100_000) % 10 == 1

    @property
    def mat(self) -> int:
        return (self.detector_id // 10_000) % 10


@dataclass
class MuonHit:
    """
    Muon-filter digitized hit: one bar read out by ``n_sipms`` SiPMs on each of ``n_sides`` sides.

    Slots are numbered 0..n_sipms-1 on the left (or only) side and n_sipms..2*n_sipms-1 on the right.
    Unfilled slots report a zero signal.
    """
    detector_id: int
    n_sipms: int
    n_sides: int
    charges: Dict[int, float] = field(default_factory=dict)
    times: Dict[int, float] = field(default_factory=dict)
    masked: Dict[int, bool] = field(default_factory=dict)

    @property
    def n_slots(self) -> int:
        return int(self.n_sipms * self.n_sides)

    @property
    def system(self) -> int:
        """0 veto, 1 upstream, 2 downstream (leading digit of the id)."""
        return self.detector_id // 10_000 - 1

    @property
    def plane(self) -> int:
        return (self.detector_id // 1_000) % 10

    @property
    def bar(self) -> int:
        return self.detector_id % 1_000

    def signal(self, slot: int) -> float:
        return self.charges.get(int(slot), 0.0)

    def time(self, slot: int) -> float:
        return self.times.get(int(slot), 0.0)

    def is_masked(self, slot: int) -> bool:
        return self.masked.get(int(slot), False)

    def set_digi(self, charge: float, time: float, slot: int) -> None:
        self.charges[int(slot)] = float(charge)
        self.times[int(slot)] = float(time)
        self.masked.setdefault(int(slot), False)

    def set_masked(self, slot: int) -> None:
        self.masked[int(slot)] = True

    def has_slot(self, slot: int) -> bool:
        return 0 <= int(slot) < self.n_slots

    @property
    def valid(self) -> bool:
        """True if at least one filled slot is not masked."""
        return any(not m for m in self.masked.values())

    def all_signals(self, *, include_masked: bool = False) -> Dict[int, float]:
        return {
            s: q for s, q in sorted(self.charges.items())
            if include_masked or not self.masked.get(s, False)
        }


@dataclass(frozen=True)
class Cluster:
    """Run of adjacent fibre channels: first id, length and member hits (ascending id)."""
    first: int
    n: int
    hits: Tuple[FibreHit, ...]
    geometry: Optional[Any] = None

    @property
    def detector_ids(self) -> List[int]:
        return [h.detector_id for h in self.hits]

    @property
    def charge(self) -> float:
        return float(sum(h.charge for h in self.hits))
