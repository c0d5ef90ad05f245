from __future__ import annotations

"""Fibre-tracker clustering: runs of consecutive SiPM channel ids.

Only hits flagged valid take part. Adjacency is purely numeric (``id + 1``);
ids on both sides of a mat or plane boundary are not told apart, so a run
may bridge such a boundary. Callers needing physical clusters must split on
``id // 1000`` themselves.

Geometry (cluster position) is not computed here: pass a ``geometry``
callable ``(first, n) -> object`` and its result is attached to each cluster.
"""

from typing import Any, Callable, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from snd_raw_converter.models.hits import Cluster, FibreHit


GeometryFn = Callable[[int, int], Any]


def consecutive_runs(ids: Sequence[int]) -> List[Tuple[int, int]]:
    """Maximal runs of consecutive integers in ``ids`` as ``(first, n)``, ascending.

    >>> consecutive_runs([5, 6, 7, 10, 11, 15])
    [(5, 3), (10, 2), (15, 1)]
    """
    arr = np.unique(np.asarray(list(ids), dtype=np.int64))
    if arr.size == 0:
        return []
    breaks = np.flatnonzero(np.diff(arr) != 1) + 1
    starts = np.concatenate(([0], breaks))
    ends = np.concatenate((breaks, [arr.size]))
    return [(int(arr[s]), int(e - s)) for s, e in zip(starts, ends)]


def cluster_hits(
    hits: Union[Mapping[int, FibreHit], Iterable[FibreHit]],
    geometry: Optional[GeometryFn] = None,
) -> List[Cluster]:
    """Group valid fibre hits into clusters of adjacent channel ids (ascending by first id)."""
    values = hits.values() if isinstance(hits, Mapping) else hits
    by_id = {h.detector_id: h for h in values if h.valid}

    clusters: List[Cluster] = []
    for first, n in consecutive_runs(list(by_id)):
        members = tuple(by_id[first + i] for i in range(n))
        geo = geometry(first, n) if geometry is not None else None
        clusters.append(Cluster(first=first, n=n, hits=members, geometry=geo))
    return clusters
