"""Conversion pipeline package.

Design principle:
  - Ingest produces read-only configuration (calibration rows, board and SiPM maps).
  - Analysis consumes raw hits event by event and produces digitized hits.

Project-wide hard constraint:
  - A single bad channel never stops a run: it is masked, encoded and reported.

Stages are kept separate (calibrate -> classify -> resolve -> aggregate ->
cluster) so that each can be exercised without the others.
"""

from .calibration import CalibratedHit, CalibrationStore
from .channel_map import FIBRE, MUON, SENTINEL_SIPM_CHANNEL, ChannelMap, MuonAddress, resolve_fibre
from .clustering import cluster_hits, consecutive_runs
from .digitizer import Digitizer, EventDigits, MuonAnomaly
from .quality import Quality, classify, pack_saturated, unpack_saturated
from .run import RunConverter, build_digitizer, digits_to_frames

__all__ = [
    "CalibratedHit",
    "CalibrationStore",
    "FIBRE",
    "MUON",
    "SENTINEL_SIPM_CHANNEL",
    "ChannelMap",
    "MuonAddress",
    "resolve_fibre",
    "cluster_hits",
    "consecutive_runs",
    "Digitizer",
    "EventDigits",
    "MuonAnomaly",
    "Quality",
    "classify",
    "pack_saturated",
    "unpack_saturated",
    "RunConverter",
    "build_digitizer",
    "digits_to_frames",
]
