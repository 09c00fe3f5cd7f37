"""Density clustering of gaze points for heatmap colouring.

Every point is compared with every other point: its nearest-neighbour
distance and the number of neighbours strictly closer than
``max_point_distance`` decide whether it belongs to a cluster and how intense
it is drawn. The exact scan is O(n^2) in time; it runs in row blocks so memory
stays O(block * n). ``method="kdtree"`` gives the same counts through
``scipy.spatial.cKDTree`` for large sessions.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import List, Sequence, Tuple

import numpy as np
from matplotlib.colors import to_rgba
from scipy.spatial import cKDTree
from tqdm import tqdm

from .dataset import GAZE_COLUMNS, Dataset, PointColumns, points
from .spatial_filter import CullConfig

logger = logging.getLogger("gazetrace.core.clustering")

BELOW_THRESHOLD_SCORE = -1.0
NEIGHBOR_COUNT_COLUMN = "neighbor_count"
INTENSITY_COLUMN = "intensity"

# distance cells per block in the exact scan
_BLOCK_CELLS = 4_000_000
_METHODS = ("exact", "kdtree")


@dataclass(frozen=True)
class HeatmapConfig:
    """Every option of the heatmap clustering and its drawing.

    Attributes:
        max_point_distance: Neighbour radius; distances must be strictly below it.
        min_cluster_size: Minimum neighbour count of an in-cluster point.
        color_low: Colour of intensity 0.
        color_high: Colour of intensity 1.
        failed_color: Colour of points below threshold.
        point_size: Marker size in scene units.
        draw_trail: Connect consecutive points.
        draw_close_trail_only: Omit trail segments longer than ``trail_max_distance``.
        trail_color: Colour of the trail.
        trail_max_distance: Longest trail segment drawn when close-only is set.
        columns: Columns holding the point coordinates.
        cull: Range / box culling applied before clustering.
        method: ``"exact"`` pairwise scan or ``"kdtree"``.
        workers: Threads scoring blocks of the exact scan.
        progress: Show a progress bar over blocks.
    """

    max_point_distance: float = 0.05
    min_cluster_size: int = 5
    color_low: str = "white"
    color_high: str = "red"
    failed_color: str = "gray"
    point_size: float = 0.075
    draw_trail: bool = False
    draw_close_trail_only: bool = False
    trail_color: str = "white"
    trail_max_distance: float = 1.0
    columns: PointColumns = GAZE_COLUMNS
    cull: CullConfig = field(default_factory=CullConfig)
    method: str = "exact"
    workers: int = 1
    progress: bool = False

    def __post_init__(self) -> None:
        if self.max_point_distance <= 0:
            raise ValueError("max_point_distance must be positive")
        if self.min_cluster_size < 0:
            raise ValueError("min_cluster_size must not be negative")
        if self.method not in _METHODS:
            raise ValueError(f"unknown clustering method: {self.method}")
        if self.workers < 1:
            raise ValueError("workers must be >= 1")


@dataclass(frozen=True, eq=False)
class ClusterResult:
    """Per-point clustering output, aligned by index with the input rows."""

    nearest_distance: np.ndarray
    neighbor_count: np.ndarray
    max_neighbor_count: int
    scores: np.ndarray
    colors: np.ndarray
    below_threshold: np.ndarray

    def __len__(self) -> int:
        return len(self.scores)

    @property
    def in_cluster(self) -> np.ndarray:
        return ~self.below_threshold

    @classmethod
    def empty(cls) -> "ClusterResult":
        return cls(
            nearest_distance=np.empty(0, dtype=float),
            neighbor_count=np.empty(0, dtype=int),
            max_neighbor_count=0,
            scores=np.empty(0, dtype=float),
            colors=np.empty((0, 4), dtype=float),
            below_threshold=np.empty(0, dtype=bool),
        )


def pairwise_distance(a: Sequence[float], b: Sequence[float]) -> float:
    """Euclidean distance between two 3D points."""
    diff = np.asarray(a, dtype=float) - np.asarray(b, dtype=float)
    return float(np.sqrt(np.sum(diff * diff)))


def _block_stats(pts: np.ndarray, start: int, stop: int, max_distance: float) -> Tuple[np.ndarray, np.ndarray]:
    block = pts[start:stop]
    diff = block[:, None, :] - pts[None, :, :]
    dist = np.sqrt(np.sum(diff * diff, axis=-1))
    # a point is never its own neighbour; duplicates of it are
    dist[np.arange(stop - start), np.arange(start, stop)] = np.inf
    return dist.min(axis=1), np.count_nonzero(dist < max_distance, axis=1)


def _exact_stats(pts: np.ndarray, config: HeatmapConfig) -> Tuple[np.ndarray, np.ndarray]:
    n = len(pts)
    nearest = np.empty(n, dtype=float)
    counts = np.empty(n, dtype=int)
    block = max(1, _BLOCK_CELLS // max(n, 1))
    bounds = [(s, min(s + block, n)) for s in range(0, n, block)]

    def _run(span: Tuple[int, int]) -> None:
        start, stop = span
        nearest[start:stop], counts[start:stop] = _block_stats(pts, start, stop, config.max_point_distance)

    bar = tqdm(total=len(bounds), desc="Clustering", unit="block", disable=not config.progress)
    with bar:
        if config.workers == 1 or len(bounds) == 1:
            for span in bounds:
                _run(span)
                bar.update(1)
        else:
            with ThreadPoolExecutor(max_workers=config.workers, thread_name_prefix="cluster") as pool:
                futures = [pool.submit(_run, span) for span in bounds]
                for future in as_completed(futures):
                    future.result()
                    bar.update(1)
    return nearest, counts


def _kdtree_stats(pts: np.ndarray, config: HeatmapConfig) -> Tuple[np.ndarray, np.ndarray]:
    tree = cKDTree(pts)
    dist, _ = tree.query(pts, k=2, workers=config.workers)
    # query_ball_point is inclusive; shrink the radius by one ulp for a strict bound
    radius = np.nextafter(config.max_point_distance, 0.0)
    counts = tree.query_ball_point(pts, r=radius, return_length=True, workers=config.workers) - 1
    return dist[:, 1].astype(float), np.asarray(counts, dtype=int)


def score_points(pts: np.ndarray, config: HeatmapConfig = HeatmapConfig()) -> ClusterResult:
    """Cluster an ``(n, 3)`` array of points.

    Args:
        pts: Point coordinates in row order.
        config: Thresholds, colours and scan method.

    Returns:
        The per-point result. A point is below threshold when its nearest
        neighbour is farther than ``max_point_distance`` or it has fewer than
        ``min_cluster_size`` neighbours; it then scores
        ``BELOW_THRESHOLD_SCORE`` and takes ``failed_color``. Other points
        score ``neighbor_count / max_neighbor_count`` and take the linear
        blend of ``color_low`` and ``color_high``.
    """
    pts = np.asarray(pts, dtype=float).reshape(-1, 3)
    n = len(pts)
    if n == 0:
        logger.info("clustering skipped: no points")
        return ClusterResult.empty()

    if config.method == "kdtree":
        nearest, counts = _kdtree_stats(pts, config)
    else:
        nearest, counts = _exact_stats(pts, config)

    max_count = int(counts.max())
    below = (nearest > config.max_point_distance) | (counts < config.min_cluster_size)
    if max_count > 0:
        intensity = counts / float(max_count)
    else:
        intensity = np.zeros(n, dtype=float)
    scores = np.where(below, BELOW_THRESHOLD_SCORE, intensity)

    low = np.asarray(to_rgba(config.color_low))
    high = np.asarray(to_rgba(config.color_high))
    colors = low + (high - low) * np.clip(scores, 0.0, 1.0)[:, None]
    colors[below] = to_rgba(config.failed_color)

    logger.info(
        "clustered %d point(s): %d in cluster, max neighbour count %d",
        n, int(np.count_nonzero(~below)), max_count,
    )
    return ClusterResult(
        nearest_distance=nearest,
        neighbor_count=counts,
        max_neighbor_count=max_count,
        scores=scores,
        colors=colors,
        below_threshold=below,
    )


def cluster(dataset: Dataset, config: HeatmapConfig = HeatmapConfig()) -> ClusterResult:
    """Cluster the points of ``dataset`` read from ``config.columns``.

    An empty dataset gives an empty result rather than an error.
    """
    if len(dataset) == 0:
        logger.info("clustering skipped: empty dataset")
        return ClusterResult.empty()
    return score_points(points(dataset, config.columns), config)


def annotate(dataset: Dataset, result: ClusterResult) -> Dataset:
    """Return ``dataset`` with ``neighbor_count`` and ``intensity`` columns added."""
    if len(dataset) != len(result):
        raise ValueError(f"result has {len(result)} scores for {len(dataset)} rows")
    out = dataset.with_column(NEIGHBOR_COUNT_COLUMN, [int(c) for c in result.neighbor_count])
    return out.with_column(INTENSITY_COLUMN, [float(s) for s in result.scores])


def trail_segments(
    pts: np.ndarray,
    draw_close_only: bool = False,
    max_distance: float = 1.0,
) -> List[Tuple[int, int]]:
    """Return the ``(i - 1, i)`` index pairs of the trail that are drawn.

    With ``draw_close_only`` a segment longer than ``max_distance`` is left
    out; its end points stay.
    """
    pts = np.asarray(pts, dtype=float).reshape(-1, 3)
    if len(pts) < 2:
        return []
    lengths = np.sqrt(np.sum(np.diff(pts, axis=0) ** 2, axis=1))
    keep = np.ones(len(lengths), dtype=bool)
    if draw_close_only:
        keep = lengths <= max_distance
    return [(int(i), int(i) + 1) for i in np.flatnonzero(keep)]


def trail_polylines(
    pts: np.ndarray,
    draw_close_only: bool = False,
    max_distance: float = 1.0,
) -> List[np.ndarray]:
    """Split the drawn trail into continuous runs of points."""
    pts = np.asarray(pts, dtype=float).reshape(-1, 3)
    runs: List[List[int]] = []
    for start, stop in trail_segments(pts, draw_close_only, max_distance):
        if runs and runs[-1][-1] == start:
            runs[-1].append(stop)
        else:
            runs.append([start, stop])
    return [pts[run] for run in runs]


__all__ = [
    "BELOW_THRESHOLD_SCORE",
    "NEIGHBOR_COUNT_COLUMN",
    "INTENSITY_COLUMN",
    "HeatmapConfig",
    "ClusterResult",
    "pairwise_distance",
    "score_points",
    "cluster",
    "annotate",
    "trail_segments",
    "trail_polylines",
]
