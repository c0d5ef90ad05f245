from __future__ import annotations

from dataclasses import dataclass


# chi2/ndof reported for fits with fewer than 2 degrees of freedom.
UNTRUSTED_CHI2 = 999999.0


@dataclass(frozen=True)
class ChargeKey:
    """Identifies one physical channel's charge (QDC) fit.

    Boards are numbered as in the raw file (``board_12`` -> 12).
    """
    board_id: int
    tofpet_id: int
    channel: int
    tac: int

    def time_key(self, tdc_slot: int = 0) -> "TimeKey":
        return TimeKey(self.board_id, self.tofpet_id, self.channel, self.tac, int(tdc_slot))


@dataclass(frozen=True)
class TimeKey:
    """Identifies one physical channel's time (TDC) fit; ``tdc_slot`` selects the TDC."""
    board_id: int
    tofpet_id: int
    channel: int
    tac: int
    tdc_slot: int = 0

    @property
    def charge_key(self) -> ChargeKey:
        return ChargeKey(self.board_id, self.tofpet_id, self.channel, self.tac)


@dataclass(frozen=True)
class CalibrationParams:
    """Coefficients of one fitted response curve.

    Charge fits use ``a..e``; time fits use ``a..d`` and keep ``e = 0``.
    ``chi2_per_ndof`` is :data:`UNTRUSTED_CHI2` when the fit had ndof < 2.
    """
    a: float = 0.0
    b: float = 0.0
    c: float = 0.0
    d: float = 0.0
    e: float = 0.0
    chi2_per_ndof: float = 0.0


# Substitute for channels without a calibration entry.
ZERO_PARAMS = CalibrationParams()


def chi2_per_ndof(sum_sq: float, ndof: float) -> float:
    if ndof < 2:
        return UNTRUSTED_CHI2
    return float(sum_sq) / float(ndof)
