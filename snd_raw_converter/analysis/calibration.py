from __future__ import annotations

"""Per-channel TOFPET calibration: TDC time and QDC charge inversion.

Time fit (per channel, TAC and TDC slot)::

    t_fine = a*x**2 + b*x + c          ->   x = (-b - sqrt(b**2 - 4a(c - t_fine))) / 2a + d
    timestamp = t_coarse + x

Charge fit (per channel and TAC)::

    x = v_coarse - (timestamp - t_coarse)
    f = -c * ln(1 + exp(a*(x-e)**2 - b*(x-e))) + d
    charge = (v_fine - f) / gain

Arithmetic policy
-----------------
All arithmetic follows IEEE-754: a negative discriminant gives NaN, a zero
``a`` or ``d`` gives inf/NaN. These values are *returned*, never raised;
the quality classifier downstream decides what to do with them.

Channels without a table entry calibrate with all-zero coefficients (legacy
behaviour). :meth:`CalibrationStore.has_charge_key` and
:meth:`CalibrationStore.has_time_key` let callers report the substitution.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, NamedTuple, Sequence, Tuple

import numpy as np
import pandas as pd

from snd_raw_converter.models.calibration import (
    ZERO_PARAMS,
    CalibrationParams,
    ChargeKey,
    TimeKey,
    chi2_per_ndof,
)


# Minimum populated columns per row (rows with fewer are skipped).
QDC_MIN_FIELDS = 10
TDC_MIN_FIELDS = 9

# Column layout of qdc_cal.csv
_Q_A, _Q_B, _Q_C, _Q_SUMSQ, _Q_D, _Q_NDOF, _Q_E = 4, 5, 6, 7, 8, 9, 10
# Column layout of tdc_cal.csv
_T_A, _T_B, _T_C, _T_SUMSQ, _T_D, _T_NDOF = 5, 6, 7, 8, 9, 10


class CalibratedHit(NamedTuple):
    """Output of :meth:`CalibrationStore.calibrate`."""

    time: float
    charge: float
    chi2: float
    saturation: float
    has_charge: bool
    has_time: bool


def _get(row: Sequence[float], i: int, default: float = 0.0) -> float:
    return float(row[i]) if i < len(row) else default


def parse_charge_rows(rows: Iterable[Sequence[float]]) -> Dict[ChargeKey, CalibrationParams]:
    """Charge rows -> params; short rows skipped, last duplicate wins."""
    out: Dict[ChargeKey, CalibrationParams] = {}
    for row in rows:
        if len(row) < QDC_MIN_FIELDS:
            continue
        key = ChargeKey(int(row[0]), int(row[1]), int(row[2]), int(row[3]))
        out[key] = CalibrationParams(
            a=float(row[_Q_A]),
            b=float(row[_Q_B]),
            c=float(row[_Q_C]),
            d=float(row[_Q_D]),
            e=_get(row, _Q_E),
            chi2_per_ndof=chi2_per_ndof(row[_Q_SUMSQ], row[_Q_NDOF]),
        )
    return out


def parse_time_rows(rows: Iterable[Sequence[float]]) -> Dict[TimeKey, CalibrationParams]:
    """Time rows -> params; short rows skipped, last duplicate wins.

    A row without the ndof column counts as an ndof < 2 fit.
    """
    out: Dict[TimeKey, CalibrationParams] = {}
    for row in rows:
        if len(row) < TDC_MIN_FIELDS:
            continue
        key = TimeKey(int(row[0]), int(row[1]), int(row[2]), int(row[3]), int(row[4]))
        out[key] = CalibrationParams(
            a=float(row[_T_A]),
            b=float(row[_T_B]),
            c=float(row[_T_C]),
            d=_get(row, _T_D),
            chi2_per_ndof=chi2_per_ndof(row[_T_SUMSQ], _get(row, _T_NDOF)),
        )
    return out


def invert_time_params(p: CalibrationParams, t_coarse: float, t_fine: float) -> float:
    """Pure time inversion for one parameter set."""
    a, b, c, d = np.float64(p.a), np.float64(p.b), np.float64(p.c), np.float64(p.d)
    with np.errstate(all="ignore"):
        x = (-b - np.sqrt(b * b - 4.0 * a * (c - np.float64(t_fine)))) / (2.0 * a) + d
        return float(np.float64(t_coarse) + x)


def invert_charge_params(
    p: CalibrationParams,
    v_coarse: float,
    v_fine: float,
    timestamp: float,
    t_coarse: float,
    gain: float = 1.0,
) -> float:
    """Pure charge inversion for one parameter set."""
    a, b, c, d, e = (np.float64(v) for v in (p.a, p.b, p.c, p.d, p.e))
    with np.errstate(all="ignore"):
        tf = np.float64(timestamp) - np.float64(t_coarse)
        x = np.float64(v_coarse) - tf
        u = x - e
        f = -c * np.log(1.0 + np.exp(a * (u * u) - b * u)) + d
        return float((np.float64(v_fine) - f) / np.float64(gain))


@dataclass(frozen=True)
class CalibrationStore:
    """
    Read-only snapshot of the charge and time calibration of one run.

    Build it once with :meth:`from_rows` (or :meth:`load` for the csv files)
    and share it; nothing mutates it afterwards.
    """

    charge: Mapping[ChargeKey, CalibrationParams]
    time: Mapping[TimeKey, CalibrationParams]
    gain: float = 1.0
    source: Tuple[str, ...] = field(default=())

    @classmethod
    def from_rows(
        cls,
        charge_rows: Iterable[Sequence[float]],
        time_rows: Iterable[Sequence[float]],
        *,
        gain: float = 1.0,
        source: Tuple[str, ...] = (),
    ) -> CalibrationStore:
        charge = parse_charge_rows(charge_rows)
        time = parse_time_rows(time_rows)
        if not charge and not time:
            raise ValueError("No usable calibration rows (both tables empty after skipping short rows).")
        return cls(
            charge=MappingProxyType(charge),
            time=MappingProxyType(time),
            gain=float(gain),
            source=tuple(source),
        )

    @classmethod
    def load(cls, qdc_path, tdc_path, *, gain: float = 1.0) -> CalibrationStore:
        """Load ``qdc_cal.csv`` and ``tdc_cal.csv`` (header line skipped)."""
        from snd_raw_converter.ingest.calibration_tables import read_calibration_rows

        _, q_rows = read_calibration_rows(qdc_path)
        _, t_rows = read_calibration_rows(tdc_path)
        return cls.from_rows(q_rows, t_rows, gain=gain, source=(str(qdc_path), str(tdc_path)))

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def charge_params(self, key: ChargeKey) -> CalibrationParams:
        return self.charge.get(key, ZERO_PARAMS)

    def time_params(self, key: TimeKey) -> CalibrationParams:
        return self.time.get(key, ZERO_PARAMS)

    def has_charge_key(self, key: ChargeKey) -> bool:
        return key in self.charge

    def has_time_key(self, key: TimeKey) -> bool:
        return key in self.time

    # ------------------------------------------------------------------
    # Calibration functions
    # ------------------------------------------------------------------

    def invert_time(self, key: TimeKey, t_coarse: float, t_fine: float) -> float:
        return invert_time_params(self.time_params(key), t_coarse, t_fine)

    def invert_charge(
        self,
        key: ChargeKey,
        v_coarse: float,
        v_fine: float,
        timestamp: float,
        t_coarse: float,
    ) -> float:
        return invert_charge_params(self.charge_params(key), v_coarse, v_fine, timestamp, t_coarse, self.gain)

    def chi2(self, key: ChargeKey, tdc_slot: int = 0) -> float:
        """Worse (larger) chi2/ndof of the charge and the time fit."""
        return max(self.charge_params(key).chi2_per_ndof, self.time_params(key.time_key(tdc_slot)).chi2_per_ndof)

    def saturation(self, key: ChargeKey, v_fine: float) -> float:
        """Fraction of the charge range used: ``v_fine / d``."""
        with np.errstate(all="ignore"):
            return float(np.float64(v_fine) / np.float64(self.charge_params(key).d))

    def calibrate(
        self,
        key: ChargeKey,
        *,
        t_coarse: int,
        t_fine: int,
        v_coarse: int,
        v_fine: int,
        tdc_slot: int = 0,
    ) -> CalibratedHit:
        """Time, charge, chi2 and saturation of one raw reading."""
        tkey = key.time_key(tdc_slot)
        timestamp = self.invert_time(tkey, t_coarse, t_fine)
        charge = self.invert_charge(key, v_coarse, v_fine, timestamp, t_coarse)
        return CalibratedHit(
            time=timestamp,
            charge=charge,
            chi2=self.chi2(key, tdc_slot),
            saturation=self.saturation(key, v_fine),
            has_charge=self.has_charge_key(key),
            has_time=self.has_time_key(tkey),
        )

    # ------------------------------------------------------------------
    # Report
    # ------------------------------------------------------------------

    def report(self, tdc_slot: int = 0) -> pd.DataFrame:
        """
        Fit quality per charge key.

        Columns: board_id, tofpet_id, channel, tac, chi2_qdc, chi2_tdc, code.
        A zero or missing chi2/ndof is reported as -1. ``code`` packs the key
        as ``tac + 10*channel + 1000*tofpet + 100000*board``.
        """
        rows = []
        for k in sorted(self.charge, key=lambda k: (k.board_id, k.tofpet_id, k.channel, k.tac)):
            chi2_q = self.charge[k].chi2_per_ndof or -1.0
            chi2_t = self.time_params(k.time_key(tdc_slot)).chi2_per_ndof or -1.0
            code = k.tac + 10 * k.channel + 1000 * k.tofpet_id + 100_000 * k.board_id
            rows.append((k.board_id, k.tofpet_id, k.channel, k.tac, chi2_q, chi2_t, code))
        df = pd.DataFrame(rows, columns=["board_id", "tofpet_id", "channel", "tac", "chi2_qdc", "chi2_tdc", "code"])
        return df.drop_duplicates(subset="code", keep="first").reset_index(drop=True)
