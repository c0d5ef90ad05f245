from __future__ import annotations

"""Readers for the per-channel calibration tables (``qdc_cal.csv``, ``tdc_cal.csv``).

Both files are comma-separated with one header line. Rows may be ragged; the
reader keeps every row exactly as long as it is so that
:class:`~snd_raw_converter.analysis.calibration.CalibrationStore` can apply its
"too few fields -> skip" rule.
"""

from pathlib import Path
from typing import List, Sequence, Tuple


def read_calibration_rows(path: str | Path) -> Tuple[str, List[List[float]]]:
    """Read a calibration CSV.

    Returns
    -------
    (header, rows)
        ``header`` is the raw first line; ``rows`` are lists of floats.
    """
    p = Path(path)
    rows: List[List[float]] = []
    with open(p, "r", encoding="utf-8") as f:
        header = f.readline().strip()
        for line in f:
            s = line.strip()
            if not s:
                continue
            parts = [x.strip() for x in s.split(",")]
            # trailing separators produce empty fields; they are not populated columns
            while parts and parts[-1] == "":
                parts.pop()
            try:
                vals = [float(x) for x in parts]
            except ValueError as e:
                raise ValueError(f"Invalid numeric row in calibration file {str(p)!r}: {line!r}") from e
            rows.append(vals)
    return header, rows


def write_calibration_rows(path: str | Path, header: str, rows: Sequence[Sequence[float]]) -> None:
    """Write rows in the same layout (used to build fixtures and exports)."""
    lines = [header]
    for r in rows:
        lines.append(",".join(repr(float(v)) for v in r))
    Path(path).write_text("\n".join(lines) + "\n", encoding="utf-8")
