from __future__ import annotations

from pathlib import Path
from typing import Dict, Mapping

import numpy as np
import pandas as pd


SIPM_SYSTEM_FILES: Dict[str, str] = {
    "Veto": "Veto_SiPM_mapping.csv",
    "US": "US_SiPM_mapping.csv",
    "DS": "DS_SiPM_mapping.csv",
}


def tofpet_key(tofpet_parity: int, tofpet_channel: int) -> int:
    """Lookup key of a TOFPET channel inside one system's wiring map."""
    return int(tofpet_parity) * 1000 + int(tofpet_channel)


def read_sipm_mapping(path: str | Path) -> Dict[int, int]:
    """
    Read one system's SiPM wiring file into a ``tofpet key -> SiPM index`` map.

    File layout: one header row, then ``SiPM, f1, f2, f3, f4[, ...]``.
    Fields f3 and f4 are the TOFPET parity and channel. Later rows win on
    duplicated keys.
    """
    df = pd.read_csv(path, header=0, skipinitialspace=True)
    if df.shape[1] < 5:
        raise ValueError(f"SiPM mapping {Path(path).name}: need >=5 columns, got {df.shape[1]}")

    mat = df.iloc[:, :5].to_numpy(dtype=np.float64)
    if not np.all(np.isfinite(mat)):
        bad = np.where(~np.all(np.isfinite(mat), axis=1))[0][:10].tolist()
        raise ValueError(f"SiPM mapping {Path(path).name}: non-numeric entries in rows {bad}")

    out: Dict[int, int] = {}
    for sipm, _f1, _f2, parity, channel in mat.astype(np.int64):
        out[tofpet_key(parity, channel)] = int(sipm)
    return out


def write_sipm_mapping(mapping: Mapping[int, int], path: str | Path) -> None:
    """Inverse of :func:`read_sipm_mapping` (f1/f2 are written as zeros)."""
    rows = []
    for key, sipm in sorted(mapping.items(), key=lambda kv: kv[1]):
        rows.append((int(sipm), 0, 0, key // 1000, key % 1000))
    df = pd.DataFrame(rows, columns=["SiPM", "f1", "f2", "tofpet_parity", "tofpet_channel"])
    df.to_csv(path, index=False)
