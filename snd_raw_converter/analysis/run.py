"""Run-level conversion API.

This module provides a reusable API for:
1. Building the calibration store, channel map and digitizer from a run folder
2. Converting a stream of raw events in increasing event order
3. Flattening the digitized output into pandas tables for export

Event loop rules
----------------
- Events outside ``[n_start, n_start + n_events)`` are skipped (``n_events < 0``: no upper bound).
- Event numbers must increase; an out-of-order event is an input error.
- ``should_stop`` is polled between events only: the current event always completes.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
import logging
from pathlib import Path
from typing import Callable, Iterable, Iterator, List, Optional, Tuple

import pandas as pd

from snd_raw_converter.analysis.calibration import CalibrationStore
from snd_raw_converter.analysis.channel_map import ChannelMap
from snd_raw_converter.analysis.clustering import GeometryFn, cluster_hits
from snd_raw_converter.analysis.digitizer import Digitizer, EventDigits
from snd_raw_converter.ingest.discovery import RunConfigDiscovery
from snd_raw_converter.ingest.raw_hits import read_raw_hits_csv
from snd_raw_converter.models.catalog import RunConfigCatalog
from snd_raw_converter.models.hits import RawEvent
from snd_raw_converter.models.profile import ConverterProfile


logger = logging.getLogger(__name__)


FIBRE_COLUMNS = ["event", "detector_id", "charge", "time", "valid"]
MUON_COLUMNS = ["event", "detector_id", "slot", "charge", "time", "masked"]
CLUSTER_COLUMNS = ["event", "first", "n", "charge"]


def build_digitizer(catalog: RunConfigCatalog, profile: Optional[ConverterProfile] = None) -> Digitizer:
    """Load every configuration table named in the catalog. Raises on missing or empty inputs."""
    profile = profile or ConverterProfile()
    calibration = CalibrationStore.load(catalog.qdc_path, catalog.tdc_path, gain=profile.qdc_gain)
    channel_map = ChannelMap.from_files(
        catalog.board_mapping_path,
        catalog.sipm_mapping_paths,
        is_json=catalog.is_json,
    )
    logger.info(
        "calibration: %d charge / %d time fits; mapping: %d fibre + %d muon boards",
        len(calibration.charge),
        len(calibration.time),
        len(channel_map.mapping.fibre),
        len(channel_map.mapping.muon),
    )
    return Digitizer(calibration=calibration, channel_map=channel_map, profile=profile)


@dataclass
class RunConverter:
    """
    Sequential event loop around a :class:`Digitizer`.

    geometry: optional ``(first, n) -> object`` attached to each cluster
    should_stop: optional callable polled between events
    catalog: configuration files the converter was built from (set by from_folder)
    """

    digitizer: Digitizer
    geometry: Optional[GeometryFn] = None
    should_stop: Optional[Callable[[], bool]] = None
    catalog: Optional[RunConfigCatalog] = None
    n_processed: int = field(default=0, init=False)

    @property
    def profile(self) -> ConverterProfile:
        return self.digitizer.profile

    @classmethod
    def from_folder(
        cls,
        selected_dir: str | Path,
        profile: Optional[ConverterProfile] = None,
        *,
        sipm_dir: Optional[str | Path] = None,
        prefer_json: bool = True,
    ) -> RunConverter:
        catalog = RunConfigDiscovery(strict=True, prefer_json=prefer_json).build_catalog(selected_dir, sipm_dir=sipm_dir)
        for w in catalog.warnings:
            logger.warning(w)
        return cls(digitizer=build_digitizer(catalog, profile), catalog=catalog)

    def convert_event(self, event: RawEvent) -> EventDigits:
        digits = self.digitizer.process_event(event)
        if self.profile.with_clusters:
            clusters = cluster_hits(digits.fibre_hits, geometry=self.geometry)
            digits = replace(digits, clusters=tuple(clusters))
        return digits

    def run(self, events: Iterable[RawEvent]) -> Iterator[EventDigits]:
        p = self.profile
        stop_at = p.n_start + p.n_events if p.n_events >= 0 else None
        last: Optional[int] = None
        for ev in events:
            if ev.event_number < p.n_start:
                continue
            if stop_at is not None and ev.event_number >= stop_at:
                break
            if last is not None and ev.event_number <= last:
                raise ValueError(f"Events out of order: {ev.event_number} after {last}")
            last = ev.event_number

            if p.heartbeat and ev.event_number % p.heartbeat == 0:
                logger.info("event %d timestamp %r", ev.event_number, ev.timestamp)

            yield self.convert_event(ev)
            self.n_processed += 1

            if self.should_stop is not None and self.should_stop():
                logger.info("stop requested after event %d", ev.event_number)
                break

    def run_folder(self) -> Iterator[EventDigits]:
        """Convert the raw-hit table found next to the configuration by discovery."""
        if self.catalog is None or self.catalog.raw_data_path is None:
            raise FileNotFoundError("No raw-hit table discovered for this converter.")
        logger.info("reading raw hits from %s", self.catalog.raw_data_path)
        return self.run(read_raw_hits_csv(self.catalog.raw_data_path))


def digits_to_frames(results: Iterable[EventDigits]) -> Tuple[pd.DataFrame, pd.DataFrame, pd.DataFrame]:
    """Flatten digitized events into (fibre, muon, cluster) tables; muon hits get one row per filled slot."""
    fibre: List[tuple] = []
    muon: List[tuple] = []
    clusters: List[tuple] = []
    for r in results:
        for det_id, h in r.fibre_hits.items():
            fibre.append((r.event_number, det_id, h.charge, h.time, h.valid))
        for det_id, h in r.muon_hits.items():
            for slot in sorted(h.charges):
                muon.append((r.event_number, det_id, slot, h.charges[slot], h.times[slot], h.is_masked(slot)))
        for c in r.clusters:
            clusters.append((r.event_number, c.first, c.n, c.charge))
    return (
        pd.DataFrame(fibre, columns=FIBRE_COLUMNS),
        pd.DataFrame(muon, columns=MUON_COLUMNS),
        pd.DataFrame(clusters, columns=CLUSTER_COLUMNS),
    )
