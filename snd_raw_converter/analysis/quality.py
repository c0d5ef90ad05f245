from __future__ import annotations

"""Hit quality classification and charge sentinel encoding.

Applied in this order:

1. ``chi2 > chi2_max``  -> invalid; +inf becomes 997 and NaN 998, then a
   positive charge is negated.
2. ``saturation > saturation_limit`` or charge is +inf or NaN -> invalid; the
   charge is replaced by ``A + B`` with ``A = floor(min(charge, 1000))``
   and ``B = min(saturation, 999) / 1000``.
   For +inf ``A = 1000``; for NaN ``A = 988``; for -inf ``A = -1000``.
3. otherwise valid, charge unchanged.

Diagnostic literals
-------------------
The literals 997 / 998 (chi2 branch) and 987 / 988 (saturation branch) mark
+inf / NaN charges. :class:`Quality.reported` carries them for diagnostics.
The chi2 branch stores them negated; the saturation branch stores the packed
value (987 is reported, A = 1000 is stored).
"""

from dataclasses import dataclass
import math
from typing import Optional


REASON_OK = "ok"
REASON_CHI2 = "chi2"
REASON_SATURATION = "saturation"
REASON_INF = "inf"
REASON_NAN = "nan"

CHI2_INF_LITERAL = 997.0
CHI2_NAN_LITERAL = 998.0
SAT_INF_LITERAL = 987.0
SAT_NAN_LITERAL = 988.0

CHARGE_CLAMP = 1000.0
SATURATION_CLAMP = 999.0


@dataclass(frozen=True)
class Quality:
    """Result of :func:`classify`.

    charge: value to store
    valid: False if the hit must be masked
    reason: one of the REASON_* tokens
    reported: legacy diagnostic literal for +inf/NaN charges, else None
    """

    charge: float
    valid: bool
    reason: str
    reported: Optional[float] = None


def pack_saturated(a: float, saturation: float) -> float:
    """``A + B``: clamped integer magnitude plus saturation fraction in the decimals."""
    return float(a) + min(float(saturation), SATURATION_CLAMP) / 1000.0


def unpack_saturated(value: float) -> tuple[int, float]:
    """Inverse of :func:`pack_saturated` for non-negative packed values: ``(A, B)``."""
    a = math.floor(value)
    return int(a), float(value - a)


def classify(charge: float, chi2: float, saturation: float, *, chi2_max: float, saturation_limit: float) -> Quality:
    q = float(charge)
    is_inf = q == math.inf
    is_nan = math.isnan(q)

    if chi2 > chi2_max:
        reported = CHI2_INF_LITERAL if is_inf else (CHI2_NAN_LITERAL if is_nan else None)
        if reported is not None:
            q = reported
        if q > 0:
            q = -q
        return Quality(charge=q, valid=False, reason=REASON_CHI2, reported=reported)

    if saturation > saturation_limit or is_inf or is_nan:
        if is_inf:
            a, reason, reported = CHARGE_CLAMP, REASON_INF, SAT_INF_LITERAL
        elif is_nan:
            a, reason, reported = SAT_NAN_LITERAL, REASON_NAN, SAT_NAN_LITERAL
        elif q == -math.inf:
            a, reason, reported = -CHARGE_CLAMP, REASON_SATURATION, None
        else:
            a, reason, reported = float(math.floor(min(q, CHARGE_CLAMP))), REASON_SATURATION, None
        return Quality(charge=pack_saturated(a, saturation), valid=False, reason=reason, reported=reported)

    return Quality(charge=q, valid=True, reason=REASON_OK)
