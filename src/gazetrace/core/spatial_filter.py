"""Range and bounding-box culling of datasets before clustering."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Tuple

import numpy as np

from .dataset import GAZE_COLUMNS, Dataset, Point3, PointColumns, points

logger = logging.getLogger("gazetrace.core.spatial_filter")


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned box; both corners are inclusive."""

    min: Tuple[float, float, float] = (-1.0, -1.0, -1.0)
    max: Tuple[float, float, float] = (1.0, 1.0, 1.0)

    @classmethod
    def from_center_size(cls, center: Tuple[float, float, float], size: Tuple[float, float, float]) -> "BoundingBox":
        half = [s / 2.0 for s in size]
        return cls(
            tuple(c - h for c, h in zip(center, half)),
            tuple(c + h for c, h in zip(center, half)),
        )

    def contains(self, point: Point3) -> bool:
        return all(lo <= v <= hi for lo, v, hi in zip(self.min, point, self.max))

    def mask(self, pts: np.ndarray) -> np.ndarray:
        """Vectorised :meth:`contains` over an ``(n, 3)`` array."""
        lo = np.asarray(self.min, dtype=float)
        hi = np.asarray(self.max, dtype=float)
        return np.all((pts >= lo) & (pts <= hi), axis=1)


@dataclass(frozen=True)
class CullConfig:
    by_range: bool = False
    cull_from: int = 0
    cull_to: int = 0
    by_box: bool = False
    box: BoundingBox = field(default_factory=BoundingBox)


def cull_by_range(dataset: Dataset, cull_from: int, cull_to: int) -> Dataset:
    """Keep the records whose index lies in ``[cull_from, cull_to]``.

    Bounds outside ``0 <= cull_from < cull_to <= len(dataset)`` leave the
    dataset untouched; the no-op is logged, never raised. ``cull_to`` equal
    to the length keeps everything up to the last row.
    """
    n = len(dataset)
    if not (0 <= cull_from < cull_to <= n):
        logger.warning("cull range [%d, %d] invalid for %d rows; skipped", cull_from, cull_to, n)
        return dataset
    return dataset[cull_from:min(cull_to, n - 1) + 1]


def cull_by_box(dataset: Dataset, box: BoundingBox, columns: PointColumns = GAZE_COLUMNS) -> Dataset:
    """Keep the records whose point lies inside ``box`` (boundary included)."""
    if len(dataset) == 0:
        return dataset
    keep = np.flatnonzero(box.mask(points(dataset, columns)))
    if len(keep) < len(dataset):
        logger.info("box cull kept %d/%d rows", len(keep), len(dataset))
    return dataset.take(keep.tolist())


def cull(dataset: Dataset, config: CullConfig, columns: PointColumns = GAZE_COLUMNS) -> Dataset:
    """Apply the configured range cull, then the box cull on its result."""
    if config.by_range:
        dataset = cull_by_range(dataset, config.cull_from, config.cull_to)
    if config.by_box:
        dataset = cull_by_box(dataset, config.box, columns)
    return dataset


__all__ = ["BoundingBox", "CullConfig", "cull_by_range", "cull_by_box", "cull"]
