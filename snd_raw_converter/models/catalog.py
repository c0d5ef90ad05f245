from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Tuple


@dataclass(frozen=True)
class RunConfigCatalog:
    """
    Configuration files of one run, as located by discovery.

    Notes
    - board_mapping_path is either board_mapping.json or the legacy board_mapping.csv;
      is_json tells which parser applies.
    - sipm_mapping_paths is keyed by system name ('Veto', 'US', 'DS').
    """
    root_dir: Path
    qdc_path: Path
    tdc_path: Path
    board_mapping_path: Path
    is_json: bool
    sipm_mapping_paths: Dict[str, Path]
    raw_data_path: Optional[Path] = None
    warnings: Tuple[str, ...] = ()

    def get_sipm_mapping(self, system_name: str) -> Path:
        if system_name not in self.sipm_mapping_paths:
            raise FileNotFoundError(f"No SiPM mapping file for system '{system_name}'.")
        return self.sipm_mapping_paths[system_name]
