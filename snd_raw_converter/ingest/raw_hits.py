from __future__ import annotations

"""Flat raw-hit tables -> per-event, per-board :class:`RawEvent` records.

The converter itself never opens the raw-data store; this module is the small
adapter for data that has already been exported to one row per hit::

    event, board, tofpet_id, tofpet_channel, tac, t_coarse, t_fine, v_coarse, v_fine[, timestamp]

Hit order within a board is preserved.
"""

from pathlib import Path
from typing import Dict, Iterator, List, Sequence, Tuple

import numpy as np
import pandas as pd

from snd_raw_converter.models.hits import RawEvent, RawHit


RAW_HIT_COLUMNS: Tuple[str, ...] = (
    "event",
    "board",
    "tofpet_id",
    "tofpet_channel",
    "tac",
    "t_coarse",
    "t_fine",
    "v_coarse",
    "v_fine",
)

_INT_COLUMNS = RAW_HIT_COLUMNS[2:]


def events_from_frame(df: pd.DataFrame) -> Iterator[RawEvent]:
    """Yield RawEvents in increasing event number."""
    missing = [c for c in RAW_HIT_COLUMNS if c not in df.columns]
    if missing:
        raise KeyError(f"Missing required raw-hit columns: {missing}")
    if df.empty:
        return

    ints = {c: df[c].to_numpy(dtype=np.int64) for c in _INT_COLUMNS}
    boards = df["board"].astype(str).to_numpy()
    events = df["event"].to_numpy(dtype=np.int64)
    stamps = df["timestamp"].to_numpy(dtype=np.float64) if "timestamp" in df.columns else None

    # stable sort keeps the in-board hit order
    order = np.argsort(events, kind="stable")
    cut = np.flatnonzero(np.diff(events[order])) + 1
    for idx in np.split(order, cut):
        per_board: Dict[str, List[RawHit]] = {}
        for i in idx:
            per_board.setdefault(boards[i], []).append(
                RawHit(*(int(ints[c][i]) for c in _INT_COLUMNS))
            )
        yield RawEvent(
            event_number=int(events[idx[0]]),
            hits_by_board={b: tuple(h) for b, h in per_board.items()},
            timestamp=float(stamps[idx[0]]) if stamps is not None else 0.0,
        )


def read_raw_hits_csv(path: str | Path) -> List[RawEvent]:
    df = pd.read_csv(path, skipinitialspace=True)
    return list(events_from_frame(df))


def events_to_frame(events: Sequence[RawEvent]) -> pd.DataFrame:
    """Flatten RawEvents back into the one-row-per-hit layout."""
    rows = []
    for ev in events:
        for board, hits in ev.hits_by_board.items():
            for h in hits:
                rows.append((ev.event_number, board, h.tofpet_id, h.tofpet_channel, h.tac,
                             h.t_coarse, h.t_fine, h.v_coarse, h.v_fine, ev.timestamp))
    return pd.DataFrame(rows, columns=list(RAW_HIT_COLUMNS) + ["timestamp"])
