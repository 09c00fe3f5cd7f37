"""2D PNG projections of clustered gaze points and movement paths."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

import numpy as np
import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
from matplotlib.collections import EllipseCollection, LineCollection

from .clustering import ClusterResult, HeatmapConfig, trail_polylines

logger = logging.getLogger("gazetrace.core.render")

_AXIS_INDEX = {"x": 0, "y": 1, "z": 2}


@dataclass(frozen=True)
class Theme:
    image_size_px: Tuple[int, int] = (1280, 720)
    dpi: int = 144
    bg_color: str = "#222222"

    @property
    def size(self) -> Tuple[float, float]:
        return self.image_size_px[0] / self.dpi, self.image_size_px[1] / self.dpi


def _axes_indices(axes: Tuple[str, str]) -> Tuple[int, int]:
    try:
        first, second = (_AXIS_INDEX[a.lower()] for a in axes)
    except KeyError as exc:
        raise ValueError(f"unknown axis in {axes!r}") from exc
    if first == second:
        raise ValueError("projection axes must differ")
    return first, second


class _Renderer:
    def __init__(self, theme: Optional[Theme] = None, axes: Tuple[str, str] = ("x", "z"), overwrite: bool = False):
        self.theme = Theme() if theme is None else theme
        self.axes = axes
        self._ix = _axes_indices(axes)
        self.overwrite = overwrite

    def _figure(self, title: str):
        fig, ax = plt.subplots(figsize=self.theme.size, dpi=self.theme.dpi)
        ax.set_facecolor(self.theme.bg_color)
        ax.set_aspect("equal", adjustable="datalim")
        ax.set_xlabel(f"{self.axes[0].upper()} [m]")
        ax.set_ylabel(f"{self.axes[1].upper()} [m]")
        ax.set_title(title)
        return fig, ax

    def project(self, pts: np.ndarray) -> np.ndarray:
        pts = np.asarray(pts, dtype=float).reshape(-1, 3)
        return pts[:, list(self._ix)]

    def save_png(self, fig: plt.Figure, path: str | Path) -> str:
        """Save ``fig`` as PNG and close it.

        Raises:
            FileExistsError: If ``path`` exists and ``overwrite`` is off.
        """
        out_path = Path(path)
        try:
            if out_path.exists() and not self.overwrite:
                raise FileExistsError(f"already exists: {out_path}")
            out_path.parent.mkdir(parents=True, exist_ok=True)
            fig.savefig(out_path, dpi=self.theme.dpi, facecolor=fig.get_facecolor())
            logger.info("saved: %s", out_path)
            return str(out_path)
        finally:
            plt.close(fig)


class HeatmapRenderer(_Renderer):
    """Draw clustered points coloured by intensity, optionally with their trail."""

    def __init__(
        self,
        config: Optional[HeatmapConfig] = None,
        theme: Optional[Theme] = None,
        axes: Tuple[str, str] = ("x", "z"),
        overwrite: bool = False,
    ) -> None:
        super().__init__(theme, axes, overwrite)
        self.config = HeatmapConfig() if config is None else config

    def plot(self, pts: np.ndarray, result: ClusterResult) -> plt.Figure:
        xy = self.project(pts)
        if len(xy) != len(result):
            raise ValueError(f"{len(result)} scores for {len(xy)} points")
        fig, ax = self._figure("Gaze heatmap")
        cfg = self.config

        if cfg.draw_trail and len(xy) > 1:
            runs = trail_polylines(pts, cfg.draw_close_trail_only, cfg.trail_max_distance)
            segments = [run[:, list(self._ix)] for run in runs]
            ax.add_collection(LineCollection(segments, colors=cfg.trail_color, linewidths=0.6, alpha=0.7, zorder=1))

        if len(xy):
            # point_size is a diameter in scene units
            dots = EllipseCollection(
                widths=cfg.point_size,
                heights=cfg.point_size,
                angles=0.0,
                units="xy",
                offsets=xy,
                offset_transform=ax.transData,
                facecolors=result.colors,
                edgecolors="none",
                zorder=2,
            )
            ax.add_collection(dots)
            pad = cfg.point_size
            ax.set_xlim(xy[:, 0].min() - pad, xy[:, 0].max() + pad)
            ax.set_ylim(xy[:, 1].min() - pad, xy[:, 1].max() + pad)
        else:
            ax.text(0.5, 0.5, "no data", transform=ax.transAxes, ha="center", va="center", color="white")

        fig.tight_layout()
        return fig


class PathRenderer(_Renderer):
    """Draw the movement path: every position joined to the next."""

    def __init__(
        self,
        theme: Optional[Theme] = None,
        axes: Tuple[str, str] = ("x", "z"),
        point_color: str = "tab:orange",
        line_color: str = "tab:blue",
        overwrite: bool = False,
    ) -> None:
        super().__init__(theme, axes, overwrite)
        self.point_color = point_color
        self.line_color = line_color

    def plot(self, pts: np.ndarray) -> plt.Figure:
        xy = self.project(pts)
        fig, ax = self._figure("Movement path")
        if len(xy):
            ax.plot(xy[:, 0], xy[:, 1], color=self.line_color, linewidth=1.0, zorder=1)
            ax.scatter(xy[:, 0], xy[:, 1], s=6, color=self.point_color, zorder=2)
            ax.scatter(xy[:1, 0], xy[:1, 1], s=40, marker="o", color="lime", label="start", zorder=3)
            ax.scatter(xy[-1:, 0], xy[-1:, 1], s=40, marker="s", color="red", label="end", zorder=3)
            ax.legend(loc="upper right")
        else:
            ax.text(0.5, 0.5, "no data", transform=ax.transAxes, ha="center", va="center", color="white")
        fig.tight_layout()
        return fig


__all__ = ["Theme", "HeatmapRenderer", "PathRenderer"]
