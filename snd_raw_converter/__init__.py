"""SND raw converter -- Python tooling to digitize raw TOFPET readout of the fibre tracker and muon filter.

This package provides tools for:
- Locating a run's calibration tables, board mapping and SiPM wiring files
- Inverting the per-channel TDC (time) and QDC (charge) calibration fits
- Classifying hit quality with the legacy sentinel charge encodings
- Addressing fibre-tracker SiPM channels and muon-filter bars/SiPMs
- Aggregating raw hits into per-event digitized hit collections
- Grouping adjacent fibre-tracker channels into clusters

Key principles:
- Configuration is loaded once and read-only afterwards
- Per-hit problems are masked and reported, never fatal
- No state survives from one event to the next

Main subpackages:
- analysis: Calibration, channel map, quality, digitizer, clustering, event loop
- ingest: Discovery and readers for the configuration tables and raw-hit tables
- models: Data models (keys, params, raw/digitized hits, mappings, profile)
"""

__all__ = []
