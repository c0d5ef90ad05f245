from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from snd_raw_converter.ingest.sipm_mapping import SIPM_SYSTEM_FILES
from snd_raw_converter.models.catalog import RunConfigCatalog


QDC_FILE = "qdc_cal.csv"
TDC_FILE = "tdc_cal.csv"
MAPPING_JSON = "board_mapping.json"
MAPPING_LEGACY = "board_mapping.csv"
RAW_HIT_FILES = ("raw_hits.csv",)


def find_run_config_dir(selected_dir: Path, max_up: int = 2) -> Path:
    """
    Search qdc_cal.csv in selected_dir or up to max_up parent levels.
    Returns the first matching directory (nearest to selected_dir).
    """
    p = Path(selected_dir).expanduser().resolve()
    for k in range(max_up + 1):
        cand = p / QDC_FILE
        if cand.exists() and cand.is_file():
            return p
        if p.parent == p:
            break
        p = p.parent
    raise FileNotFoundError(f"{QDC_FILE} not found in '{selected_dir}' or up to {max_up} parent levels.")


def _require_file(p: Path, what: str) -> Path:
    if not p.exists() or not p.is_file():
        raise FileNotFoundError(f"Missing {what}: {p}")
    return p


@dataclass
class RunConfigDiscovery:
    """
    Locate the configuration files needed before any event can be converted.

    STRICT POLICY: no degraded mode
      - qdc_cal.csv and tdc_cal.csv must both exist next to each other
      - a board mapping must exist (board_mapping.json preferred, legacy csv otherwise)
      - all three SiPM wiring files must exist (run folder or sipm_dir)
    prefer_json=False selects the legacy csv even when the json is present.
    """
    strict: bool = True
    prefer_json: bool = True

    def build_catalog(self, selected_dir: str | Path, sipm_dir: Optional[str | Path] = None) -> RunConfigCatalog:
        selected = Path(selected_dir).expanduser().resolve()
        if not selected.exists() or not selected.is_dir():
            raise FileNotFoundError(f"Not a directory: {selected}")

        root = find_run_config_dir(selected, max_up=2)
        warnings: List[str] = []

        qdc_path = _require_file(root / QDC_FILE, "charge calibration table")
        tdc_path = _require_file(root / TDC_FILE, "time calibration table")

        json_path = root / MAPPING_JSON
        legacy_path = root / MAPPING_LEGACY
        if json_path.is_file() and (self.prefer_json or not legacy_path.is_file()):
            mapping_path, is_json = json_path, True
            if legacy_path.is_file():
                warnings.append(f"both {MAPPING_JSON} and {MAPPING_LEGACY} present; using {MAPPING_JSON}")
        elif legacy_path.is_file():
            mapping_path, is_json = legacy_path, False
        else:
            raise FileNotFoundError(f"No board mapping ({MAPPING_JSON} or {MAPPING_LEGACY}) in {root}")

        sipm_root = Path(sipm_dir).expanduser().resolve() if sipm_dir is not None else root
        sipm_paths: Dict[str, Path] = {}
        for system, name in SIPM_SYSTEM_FILES.items():
            cand = sipm_root / name
            if cand.is_file():
                sipm_paths[system] = cand
            elif self.strict:
                raise FileNotFoundError(f"Missing SiPM mapping for {system}: {cand}")
            else:
                warnings.append(f"no SiPM mapping for {system} ({cand}); its hits will get sentinel channels")

        raw_data_path: Optional[Path] = None
        for name in RAW_HIT_FILES:
            cand = selected / name
            if cand.is_file():
                raw_data_path = cand
                break

        return RunConfigCatalog(
            root_dir=root,
            qdc_path=qdc_path,
            tdc_path=tdc_path,
            board_mapping_path=mapping_path,
            is_json=is_json,
            sipm_mapping_paths=sipm_paths,
            raw_data_path=raw_data_path,
            warnings=tuple(warnings),
        )
