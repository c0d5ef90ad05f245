from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Mapping, Tuple


SYSTEM_VETO = 0
SYSTEM_UPSTREAM = 1
SYSTEM_DOWNSTREAM = 2

SYSTEM_NAMES: Dict[int, str] = {
    SYSTEM_VETO: "Veto",
    SYSTEM_UPSTREAM: "US",
    SYSTEM_DOWNSTREAM: "DS",
}

# Each TOFPET slot letter on a muon-filter board serves two consecutive tofpet ids.
TOFPET_SLOTS: Dict[int, str] = {0: "A", 1: "A", 2: "B", 3: "B", 4: "C", 5: "C", 6: "D", 7: "D"}


@dataclass(frozen=True)
class PlaneOffset:
    """
    Wiring offset of one muon-filter plane side.

    first_id: global id reached by SiPM channel 0
    signed_n_sipms: SiPMs per bar side; the sign is the direction in which the
                    global id moves when the SiPM channel increases
    n_sides: 1 (vertical DS planes) or 2
    """
    first_id: int
    signed_n_sipms: int
    n_sides: int

    @property
    def n_sipms(self) -> int:
        return abs(int(self.signed_n_sipms))

    @property
    def direction(self) -> int:
        return int(self.signed_n_sipms / self.n_sipms)


def build_plane_offsets() -> Dict[str, PlaneOffset]:
    """Fixed wiring table: 2 veto, 5 upstream, 3 horizontal + 4 vertical downstream planes."""
    off: Dict[str, PlaneOffset] = {}
    for i in range(1, 6):
        if i < 3:
            for side in ("Left", "Right"):
                off[f"Veto_{i}{side}"] = PlaneOffset(10000 + (i - 1) * 1000 + 6, -8, 2)
        if i < 4:
            for side in ("Left", "Right"):
                off[f"DS_{i}{side}"] = PlaneOffset(30000 + (i - 1) * 1000 + 59, -1, 2)
        if i < 5:
            off[f"DS_{i}Vert"] = PlaneOffset(30000 + (i - 1) * 1000 + 119, -1, 1)
        for side in ("Left", "Right"):
            off[f"US_{i}{side}"] = PlaneOffset(20000 + (i - 1) * 1000 + 9, -8, 2)
    return off


def system_of_plane(plane: str) -> int:
    """Veto_* -> 0, US_* -> 1, DS_* -> 2."""
    prefix = plane.split("_", 1)[0]
    if prefix == "US":
        return SYSTEM_UPSTREAM
    if prefix == "DS":
        return SYSTEM_DOWNSTREAM
    return SYSTEM_VETO


def board_number(board: str) -> int:
    """'board_12' -> 12."""
    return int(board[board.find("_") + 1:])


@dataclass(frozen=True)
class BoardMapping:
    """
    Static readout tables of one run.

    fibre: board name -> (station, mat); station names look like 'M1Y'
    muon: board name -> slot letter ('A'..'D') -> plane name (e.g. 'US_3Left')
    """
    fibre: Mapping[str, Tuple[str, int]]
    muon: Mapping[str, Mapping[str, str]]

    @property
    def boards(self) -> Tuple[str, ...]:
        return tuple(sorted(set(self.fibre) | set(self.muon)))

    def __post_init__(self) -> None:
        both = set(self.fibre) & set(self.muon)
        if both:
            raise ValueError(f"Boards mapped to both detectors: {sorted(both)}")
