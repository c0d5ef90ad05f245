"""Converter profile -- bundles all run-level configuration.

A ConverterProfile groups every parameter that affects the digitized output
into one frozen dataclass.  It can be:

- Constructed with defaults matching the legacy converter
- Overridden field-by-field via ``dataclasses.replace()``
- Serialized to/from a dict for JSON provenance
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from typing import Any, Dict


@dataclass(frozen=True)
class ConverterProfile:
    """Frozen configuration for the raw-data conversion.

    Quality cuts
    ------------
    chi2_max : float
        Hits whose calibration chi2/ndof exceeds this are masked and their
        charge is sign-flipped.
    saturation_limit : float
        Hits with ``v_fine / d`` above this are masked and charge-packed.

    Calibration
    -----------
    qdc_gain : float
        Divisor applied to the calibrated charge (1.0, or 3.6 for max gain).
    tdc_slot : int
        TDC slot used for time calibration lookups.

    Event loop
    ----------
    n_start : int
        First event number to process.
    n_events : int
        Number of events to process; negative means "until the source ends".
    heartbeat : int
        Emit a progress message every ``heartbeat`` events (0 disables).
    with_clusters : bool
        Build fibre-tracker clusters after each event.
    debug : bool
        Record per-hit trace messages.
    """

    chi2_max: float = 2_000_000.0
    saturation_limit: float = 0.95
    qdc_gain: float = 1.0
    tdc_slot: int = 0

    n_start: int = 0
    n_events: int = -1
    heartbeat: int = 10_000
    with_clusters: bool = False
    debug: bool = False

    def __post_init__(self) -> None:
        if self.qdc_gain == 0:
            raise ValueError("qdc_gain must be non-zero")
        if self.n_start < 0:
            raise ValueError("n_start must be >= 0")
        if self.heartbeat < 0:
            raise ValueError("heartbeat must be >= 0")

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Return a JSON-friendly dict."""
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> ConverterProfile:
        """Reconstruct from a dict (e.g. loaded from JSON); unknown keys are rejected."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(d) - known)
        if unknown:
            raise ValueError(f"Unknown ConverterProfile keys: {unknown}")
        return cls(**dict(d))
