from __future__ import annotations

"""Board mapping readers.

Two input flavours produce the same :class:`~snd_raw_converter.models.mapping.BoardMapping`:

* ``board_mapping.json``::

      {
        "Scifi":    {"board_11": {"M1Y": 0}, "board_17": {"M1Y": 1}, ...},
        "MuFilter": {"board_7":  {"A": "DS_1Left", "B": "DS_1Right", ...}, ...}
      }

  (each fibre board carries exactly one ``station: mat`` pair; each muon-filter
  board maps TOFPET slot letters to plane names).

* legacy ``board_mapping.csv`` with header ``detector,board,key,value``::

      Scifi,board_11,M1Y,0
      MuFilter,board_7,A,DS_1Left
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Mapping, Tuple

import pandas as pd

from snd_raw_converter.models.mapping import BoardMapping


FIBRE_KEY = "Scifi"
MUON_KEY = "MuFilter"

LEGACY_HEADER: Tuple[str, ...] = ("detector", "board", "key", "value")


def _check_station(station: str) -> str:
    s = str(station).strip()
    if len(s) < 3 or not s[1].isdigit():
        raise ValueError(f"Malformed fibre station name '{station}' (expected e.g. 'M1Y').")
    return s


def parse_board_mapping_json(doc: Mapping[str, Any]) -> BoardMapping:
    """Build a BoardMapping from an already-decoded JSON document."""
    if FIBRE_KEY not in doc and MUON_KEY not in doc:
        raise ValueError(f"Board mapping has neither '{FIBRE_KEY}' nor '{MUON_KEY}' section.")

    fibre: Dict[str, Tuple[str, int]] = {}
    for board, entry in (doc.get(FIBRE_KEY) or {}).items():
        if not isinstance(entry, Mapping) or not entry:
            raise ValueError(f"Fibre board '{board}' must map a station name to a mat number.")
        # Legacy semantics: a board feeds one (station, mat); the last pair wins.
        for station, mat in entry.items():
            fibre[str(board)] = (_check_station(station), int(mat))

    muon: Dict[str, Dict[str, str]] = {}
    for board, entry in (doc.get(MUON_KEY) or {}).items():
        if not isinstance(entry, Mapping):
            raise ValueError(f"Muon-filter board '{board}' must map slot letters to plane names.")
        muon[str(board)] = {str(slot): str(plane) for slot, plane in entry.items()}

    return BoardMapping(fibre=fibre, muon=muon)


def read_board_mapping_json(path: str | Path) -> BoardMapping:
    with open(path, "r", encoding="utf-8") as f:
        doc = json.load(f)
    return parse_board_mapping_json(doc)


def read_legacy_board_mapping(path: str | Path) -> BoardMapping:
    """Read the legacy tabular mapping (``detector,board,key,value``)."""
    # dtype=str keeps slot letters and mats as written.
    df = pd.read_csv(path, dtype=str, skipinitialspace=True)
    got = tuple(c.strip().lower() for c in df.columns)
    if got[: len(LEGACY_HEADER)] != LEGACY_HEADER:
        raise ValueError(f"Legacy board mapping header mismatch: {list(df.columns)}")
    df.columns = list(LEGACY_HEADER) + list(df.columns[len(LEGACY_HEADER):])

    doc: Dict[str, Dict[str, Dict[str, Any]]] = {FIBRE_KEY: {}, MUON_KEY: {}}
    bad: List[str] = []
    for row in df.itertuples(index=False):
        det = str(row.detector).strip()
        board = str(row.board).strip()
        key = str(row.key).strip()
        value = str(row.value).strip()
        if det == FIBRE_KEY:
            doc[FIBRE_KEY].setdefault(board, {})[key] = int(float(value))
        elif det == MUON_KEY:
            doc[MUON_KEY].setdefault(board, {})[key] = value
        else:
            bad.append(det)
    if bad:
        raise ValueError(f"Unknown detector names in legacy board mapping: {sorted(set(bad))}")
    return parse_board_mapping_json(doc)


def write_board_mapping_json(mapping: BoardMapping, path: str | Path) -> None:
    doc = {
        FIBRE_KEY: {b: {station: mat} for b, (station, mat) in sorted(mapping.fibre.items())},
        MUON_KEY: {b: dict(sorted(slots.items())) for b, slots in sorted(mapping.muon.items())},
    }
    Path(path).write_text(json.dumps(doc, indent=2), encoding="utf-8")
