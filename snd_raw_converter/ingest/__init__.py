"""Ingest package - configuration discovery and table readers.

This package handles:
- Discovery of the run folder (calibration tables, board mapping, SiPM wiring)
- Reading the charge/time calibration CSVs
- Reading board mappings (json or legacy csv) and SiPM wiring files
- Grouping flat raw-hit tables into per-event, per-board records

Key entry points:
- RunConfigDiscovery: locates the files and builds a RunConfigCatalog
- read_calibration_rows: header-skipped numeric rows
- read_board_mapping_json / read_legacy_board_mapping: BoardMapping
- read_sipm_mapping: tofpet key -> SiPM index
- events_from_frame: RawEvent records

Design principle:
- Missing configuration is fatal here, before any event is touched
- Nothing in this package is used inside the per-hit path
"""
