from __future__ import annotations

"""Per-event conversion of raw TOFPET hits into digitized detector hits.

Stages per raw hit (each one is a plain function or method that can be tested alone):

1) calibrate  -- time and charge inversion, chi2 and saturation
2) classify   -- validity + charge sentinel encoding (see :mod:`.quality`)
3) resolve    -- board/tofpet address -> detector element id (+ SiPM slot)
4) aggregate  -- one FibreHit / MuonHit per element id and event

:meth:`Digitizer.process_event` only sequences these stages and collects
diagnostics. All per-event containers are created inside the call; nothing
from one event is visible in the next.
"""

from dataclasses import dataclass, field
import logging
from typing import Dict, List, Mapping, NamedTuple, Sequence, Tuple, Union

from snd_raw_converter.analysis.calibration import CalibratedHit, CalibrationStore
from snd_raw_converter.analysis.channel_map import FIBRE, MUON, ChannelMap, MuonAddress
from snd_raw_converter.analysis.quality import Quality, classify
from snd_raw_converter.models.calibration import ChargeKey
from snd_raw_converter.models.hits import Cluster, FibreHit, MuonHit, RawEvent, RawHit
from snd_raw_converter.models.mapping import board_number
from snd_raw_converter.models.profile import ConverterProfile


logger = logging.getLogger(__name__)

# Muon-filter bars per plane never exceed this; larger local ids point at a mapping error.
MAX_BAR_INDEX = 200


class DigitizedHit(NamedTuple):
    """One raw hit after calibration and classification (before addressing)."""

    raw: RawHit
    key: ChargeKey
    calibrated: CalibratedHit
    quality: Quality

    @property
    def charge(self) -> float:
        return self.quality.charge

    @property
    def time(self) -> float:
        return self.calibrated.time


@dataclass(frozen=True)
class MuonAnomaly:
    """Suspicious muon-filter hit; recorded, never fatal."""

    detector_id: int
    slot: int
    board: str
    tofpet_id: int
    tofpet_channel: int
    system: int
    key: int
    previous_signal: float
    reasons: Tuple[str, ...]


@dataclass(frozen=True)
class EventDigits:
    """Digitized output of one event. Hit dicts iterate in ascending detector id."""

    event_number: int
    timestamp: float
    fibre_hits: Dict[int, FibreHit]
    muon_hits: Dict[int, MuonHit]
    clusters: Tuple[Cluster, ...] = ()
    warnings: Tuple[str, ...] = ()
    anomalies: Tuple[MuonAnomaly, ...] = ()
    n_raw_hits: int = 0

    @property
    def n_masked(self) -> int:
        n = sum(1 for h in self.fibre_hits.values() if not h.valid)
        n += sum(sum(1 for m in h.masked.values() if m) for h in self.muon_hits.values())
        return int(n)


def muon_anomaly_reasons(address: MuonAddress, previous_signal: float) -> Tuple[str, ...]:
    """Reasons a resolved muon-filter hit looks wrong (empty tuple if none)."""
    reasons: List[str] = []
    if previous_signal > 0:
        reasons.append("slot already filled")
    if address.detector_id % 1000 > MAX_BAR_INDEX:
        reasons.append("bar index out of range")
    if not 0 <= address.slot < address.n_sipms * address.n_sides:
        reasons.append("slot out of range")
    if address.is_sentinel:
        reasons.append("unmapped channel")
    return tuple(reasons)


@dataclass
class _EventState:
    """Mutable aggregates owned by a single process_event call."""

    fibre: Dict[int, FibreHit] = field(default_factory=dict)
    muon: Dict[int, MuonHit] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)
    anomalies: List[MuonAnomaly] = field(default_factory=list)
    n_raw: int = 0


@dataclass(frozen=True)
class Digitizer:
    """
    Converts the raw hits of one event into FibreHit / MuonHit collections.

    The calibration store and channel map are read-only inputs; a Digitizer
    may be reused for any number of events.
    """

    calibration: CalibrationStore
    channel_map: ChannelMap
    profile: ConverterProfile = field(default_factory=ConverterProfile)

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def calibrate(self, board_id: int, hit: RawHit) -> Tuple[ChargeKey, CalibratedHit]:
        key = ChargeKey(int(board_id), int(hit.tofpet_id), int(hit.tofpet_channel), int(hit.tac))
        cal = self.calibration.calibrate(
            key,
            t_coarse=hit.t_coarse,
            t_fine=hit.t_fine,
            v_coarse=hit.v_coarse,
            v_fine=hit.v_fine,
            tdc_slot=self.profile.tdc_slot,
        )
        return key, cal

    def classify(self, cal: CalibratedHit) -> Quality:
        return classify(
            cal.charge,
            cal.chi2,
            cal.saturation,
            chi2_max=self.profile.chi2_max,
            saturation_limit=self.profile.saturation_limit,
        )

    def digitize(self, board_id: int, hit: RawHit) -> DigitizedHit:
        key, cal = self.calibrate(board_id, hit)
        return DigitizedHit(raw=hit, key=key, calibrated=cal, quality=self.classify(cal))

    # ------------------------------------------------------------------
    # Aggregation
    # ------------------------------------------------------------------

    def _add_fibre(self, state: _EventState, board: str, d: DigitizedHit) -> None:
        station, mat = self.channel_map.fibre_station(board)
        sipm_id = self.channel_map.resolve_fibre(d.raw.tofpet_id, d.raw.tofpet_channel, mat, station)
        hit = state.fibre.get(sipm_id)
        if hit is None:
            hit = state.fibre[sipm_id] = FibreHit(sipm_id)
        hit.set_digi(d.charge, d.time)
        if not d.quality.valid:
            hit.set_invalid()
        if self.profile.debug:
            logger.debug("create scifi hit: %s %d %r %r", board, sipm_id, d.charge, d.time)

    def _add_muon(self, state: _EventState, board: str, d: DigitizedHit) -> None:
        raw = d.raw
        try:
            address = self.channel_map.resolve_muon_filter(board, raw.tofpet_id, raw.tofpet_channel, state.warnings)
        except KeyError as e:
            self._warn(state, f"{board}: cannot address tofpet {raw.tofpet_id} channel {raw.tofpet_channel}: {e}")
            return

        hit = state.muon.get(address.detector_id)
        if hit is None:
            hit = state.muon[address.detector_id] = MuonHit(address.detector_id, address.n_sipms, address.n_sides)
        previous = hit.signal(address.slot)
        hit.set_digi(d.charge, d.time, address.slot)
        if not d.quality.valid:
            hit.set_masked(address.slot)

        reasons = muon_anomaly_reasons(address, previous)
        if reasons:
            state.anomalies.append(
                MuonAnomaly(
                    detector_id=address.detector_id,
                    slot=address.slot,
                    board=board,
                    tofpet_id=int(raw.tofpet_id),
                    tofpet_channel=int(raw.tofpet_channel),
                    system=address.system,
                    key=address.key,
                    previous_signal=float(previous),
                    reasons=reasons,
                )
            )
            self._warn(
                state,
                f"muon hit {address.detector_id} SiPM {address.slot} system {address.system} key {address.key} "
                f"{board} tofpet {raw.tofpet_id} channel {raw.tofpet_channel}: {', '.join(reasons)}",
            )
        if self.profile.debug:
            logger.debug("create mu hit: %d %s slot %d %r %r", address.detector_id, address.plane, address.slot, d.charge, d.time)

    def _report_quality(self, state: _EventState, board: str, d: DigitizedHit) -> None:
        cal = d.calibrated
        if not cal.has_charge or not cal.has_time:
            missing = "charge" if not cal.has_charge else "time"
            if not cal.has_charge and not cal.has_time:
                missing = "charge+time"
            self._warn(state, f"{board}: no {missing} calibration for {d.key}; zero coefficients used")
        if d.quality.reported is not None:
            self._warn(
                state,
                f"{board}: {d.quality.reason} charge ({d.quality.reported:g}) tofpet {d.raw.tofpet_id} "
                f"channel {d.raw.tofpet_channel} tac {d.raw.tac} v_coarse {d.raw.v_coarse} v_fine {d.raw.v_fine} "
                f"dt {cal.time - d.raw.t_coarse!r} chi2 {cal.chi2:g}",
            )

    @staticmethod
    def _warn(state: _EventState, msg: str) -> None:
        state.warnings.append(msg)
        logger.warning(msg)

    # ------------------------------------------------------------------
    # Event
    # ------------------------------------------------------------------

    def process_event(
        self,
        raw_hits_by_board: Union[RawEvent, Mapping[str, Sequence[RawHit]]],
        *,
        event_number: int = 0,
        timestamp: float = 0.0,
    ) -> EventDigits:
        """
        Digitize one event.

        Boards are visited in name order. A board missing from the mapping stops
        the board loop for this event (legacy behaviour); hits already
        digitized are kept and a warning is recorded.
        """
        if isinstance(raw_hits_by_board, RawEvent):
            event_number = raw_hits_by_board.event_number
            timestamp = raw_hits_by_board.timestamp
            hits_by_board = raw_hits_by_board.hits_by_board
        else:
            hits_by_board = raw_hits_by_board

        state = _EventState()

        for board in sorted(hits_by_board):
            kind = self.channel_map.board_kind(board)
            if kind is None:
                self._warn(state, f"{board} not known in board mapping; remaining boards of event {event_number} skipped")
                break
            board_id = board_number(board)
            for raw in hits_by_board[board]:
                state.n_raw += 1
                d = self.digitize(board_id, raw)
                if self.profile.debug:
                    logger.debug("calibrated: %s %s tdc=%r qdc=%r", board, raw, d.time, d.charge)
                self._report_quality(state, board, d)
                if kind == FIBRE:
                    self._add_fibre(state, board, d)
                elif kind == MUON:
                    self._add_muon(state, board, d)

        return EventDigits(
            event_number=int(event_number),
            timestamp=float(timestamp),
            fibre_hits=dict(sorted(state.fibre.items())),
            muon_hits=dict(sorted(state.muon.items())),
            warnings=tuple(state.warnings),
            anomalies=tuple(state.anomalies),
            n_raw_hits=state.n_raw,
        )
