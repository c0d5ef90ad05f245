from __future__ import annotations

"""Raw readout address -> global detector element id.

Fibre tracker
-------------
One TOFPET channel reads one SiPM channel. With 512 channels per mat::

    channel = 64*tofpet_id + 63 - tofpet_channel + 512*mat
    id = 1_000_000*station + 100_000*vertical + 10_000*mat + 1_000*((channel - 512*mat)//128) + channel%128

Muon filter
-----------
Each board slot ('A'..'D', two tofpets each) feeds one plane side. The
system's wiring file maps ``(tofpet_id % 2)*1000 + tofpet_channel`` to a SiPM
channel; the plane's :class:`~snd_raw_converter.models.mapping.PlaneOffset`
turns that into a bar id and a slot within the bar.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple

from snd_raw_converter.ingest.sipm_mapping import tofpet_key
from snd_raw_converter.models.mapping import (
    SYSTEM_NAMES,
    TOFPET_SLOTS,
    BoardMapping,
    PlaneOffset,
    board_number,
    build_plane_offsets,
    system_of_plane,
)


FIBRE = "fibre"
MUON = "muon"

# SiPM channel used when the wiring map has no entry for a tofpet key.
SENTINEL_SIPM_CHANNEL = 99

CHANNELS_PER_MAT = 512


def fibre_channel(tofpet_id: int, tofpet_channel: int, mat: int) -> int:
    return 64 * int(tofpet_id) + 63 - int(tofpet_channel) + CHANNELS_PER_MAT * int(mat)


def resolve_fibre(tofpet_id: int, tofpet_channel: int, mat: int, station: str) -> int:
    """Global SiPM channel id of a fibre-tracker hit (station names like 'M1Y')."""
    chan = fibre_channel(tofpet_id, tofpet_channel, mat)
    orientation = 1 if station[2] == "Y" else 0
    local = chan - int(mat) * CHANNELS_PER_MAT
    return (
        1_000_000 * int(station[1])
        + 100_000 * orientation
        + 10_000 * int(mat)
        + 1_000 * (local // 128)
        + chan % 128
    )


@dataclass(frozen=True)
class MuonAddress:
    """Resolved muon-filter address of one raw hit."""

    detector_id: int
    slot: int
    n_sipms: int
    n_sides: int
    system: int
    key: int
    plane: str
    sipm_channel: int

    @property
    def is_sentinel(self) -> bool:
        return self.sipm_channel == SENTINEL_SIPM_CHANNEL


@dataclass(frozen=True)
class ChannelMap:
    """
    Read-only readout tables of one run.

    mapping: board tables (see BoardMapping)
    tofpet_maps: system (0 veto, 1 US, 2 DS) -> tofpet key -> SiPM index (1-based, as in the wiring files)
    plane_offsets: plane name -> PlaneOffset
    muon_system: board id -> tofpet id -> system
    """

    mapping: BoardMapping
    tofpet_maps: Mapping[int, Mapping[int, int]]
    plane_offsets: Mapping[str, PlaneOffset] = field(default_factory=lambda: MappingProxyType(build_plane_offsets()))
    muon_system: Mapping[int, Mapping[int, int]] = field(default_factory=dict)

    @classmethod
    def load(cls, mapping: BoardMapping, tofpet_maps: Mapping[int, Mapping[int, int]]) -> ChannelMap:
        """Build derived tables (board -> tofpet -> system) and the fixed wiring offsets."""
        if not mapping.fibre and not mapping.muon:
            raise ValueError("Board mapping is empty.")
        muon_system: Dict[int, Dict[int, int]] = {}
        for board, slots in mapping.muon.items():
            per_tofpet = muon_system.setdefault(board_number(board), {})
            for tofpet_id, letter in TOFPET_SLOTS.items():
                if letter in slots:
                    per_tofpet[tofpet_id] = system_of_plane(slots[letter])
        return cls(
            mapping=mapping,
            tofpet_maps=MappingProxyType({int(s): MappingProxyType(dict(m)) for s, m in tofpet_maps.items()}),
            plane_offsets=MappingProxyType(build_plane_offsets()),
            muon_system=MappingProxyType({b: MappingProxyType(t) for b, t in muon_system.items()}),
        )

    @classmethod
    def from_files(cls, mapping_path, sipm_paths: Mapping[str, object], *, is_json: bool = True) -> ChannelMap:
        """Load board mapping and the per-system SiPM wiring files (keyed 'Veto', 'US', 'DS')."""
        from snd_raw_converter.ingest.board_mapping import read_board_mapping_json, read_legacy_board_mapping
        from snd_raw_converter.ingest.sipm_mapping import read_sipm_mapping

        mapping = read_board_mapping_json(mapping_path) if is_json else read_legacy_board_mapping(mapping_path)
        by_name = {name: s for s, name in SYSTEM_NAMES.items()}
        tofpet_maps: Dict[int, Dict[int, int]] = {}
        for name, path in sipm_paths.items():
            if name not in by_name:
                raise ValueError(f"Unknown muon-filter system '{name}' (expected one of {sorted(by_name)})")
            tofpet_maps[by_name[name]] = read_sipm_mapping(path)
        return cls.load(mapping, tofpet_maps)

    # ------------------------------------------------------------------
    # Board level
    # ------------------------------------------------------------------

    def board_kind(self, board: str) -> Optional[str]:
        """FIBRE, MUON, or None for a board absent from the mapping."""
        if board in self.mapping.fibre:
            return FIBRE
        if board in self.mapping.muon:
            return MUON
        return None

    def fibre_station(self, board: str) -> Tuple[str, int]:
        return self.mapping.fibre[board]

    # ------------------------------------------------------------------
    # Hit level
    # ------------------------------------------------------------------

    def resolve_fibre(self, tofpet_id: int, tofpet_channel: int, mat: int, station: str) -> int:
        return resolve_fibre(tofpet_id, tofpet_channel, mat, station)

    def sipm_channel(self, system: int, key: int) -> Optional[int]:
        """0-based SiPM channel for a tofpet key, or None if the wiring map lacks it."""
        sipm = self.tofpet_maps.get(system, {}).get(key)
        if sipm is None:
            return None
        return int(sipm) - 1

    def plane_of(self, board: str, tofpet_id: int) -> str:
        slots = self.mapping.muon[board]
        letter = TOFPET_SLOTS.get(int(tofpet_id))
        if letter is None or letter not in slots:
            raise KeyError(f"{board}: no plane for tofpet {tofpet_id} (slot {letter})")
        return slots[letter]

    def resolve_muon_filter(
        self,
        board: str,
        tofpet_id: int,
        tofpet_channel: int,
        warnings: Optional[List[str]] = None,
    ) -> MuonAddress:
        """
        Address of a muon-filter hit.

        An unknown tofpet key does not fail: the SiPM channel becomes
        SENTINEL_SIPM_CHANNEL and a message is appended to ``warnings``.
        An unknown board or slot raises KeyError (mapping error, not data).
        """
        plane = self.plane_of(board, tofpet_id)
        system = self.muon_system[board_number(board)][int(tofpet_id)]
        key = tofpet_key(int(tofpet_id) % 2, tofpet_channel)

        sipm_channel = self.sipm_channel(system, key)
        if sipm_channel is None:
            sipm_channel = SENTINEL_SIPM_CHANNEL
            if warnings is not None:
                known = len(self.tofpet_maps.get(system, {}))
                warnings.append(
                    f"key {key} does not exist in system {system} tofpet map "
                    f"({known} entries); board={board} tofpet={tofpet_id} channel={tofpet_channel}"
                )

        off = self.plane_offsets[plane]
        n_sipms = off.n_sipms
        detector_id = off.first_id + off.direction * (sipm_channel // n_sipms)
        slot = sipm_channel % n_sipms
        if "Right" in plane:
            slot += n_sipms
        return MuonAddress(
            detector_id=int(detector_id),
            slot=int(slot),
            n_sipms=n_sipms,
            n_sides=off.n_sides,
            system=int(system),
            key=int(key),
            plane=plane,
            sipm_channel=int(sipm_channel),
        )
