import os

import numpy as np
import pytest

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt

from gazetrace.core.clustering import ClusterResult, HeatmapConfig, cluster
from gazetrace.core.dataset import points
from gazetrace.core.render import HeatmapRenderer, PathRenderer, Theme


def test_theme_size():
    assert Theme(image_size_px=(1280, 720), dpi=160).size == (8.0, 4.5)


def test_heatmap_png_written(tmp_path, make_session):
    ds = make_session(rows=40)
    config = HeatmapConfig(max_point_distance=0.02, min_cluster_size=2, draw_trail=True, draw_close_trail_only=True)
    result = cluster(ds, config)
    renderer = HeatmapRenderer(config)
    fig = renderer.plot(points(ds), result)
    ax = fig.axes[0]
    assert ax.get_xlabel().startswith("X")
    assert ax.get_ylabel().startswith("Z")
    # trail and points
    assert len(ax.collections) == 2
    path = renderer.save_png(fig, tmp_path / "img" / "heat.png")
    assert os.path.isfile(path)


def test_heatmap_refuses_overwrite(tmp_path, four_points):
    result = cluster(four_points, HeatmapConfig(min_cluster_size=2))
    renderer = HeatmapRenderer()
    target = tmp_path / "heat.png"
    renderer.save_png(renderer.plot(points(four_points), result), target)
    with pytest.raises(FileExistsError):
        renderer.save_png(renderer.plot(points(four_points), result), target)
    assert not plt.get_fignums()

    HeatmapRenderer(overwrite=True).save_png(renderer.plot(points(four_points), result), target)


def test_heatmap_empty():
    fig = HeatmapRenderer().plot(np.empty((0, 3)), ClusterResult.empty())
    assert fig.axes[0].texts[0].get_text() == "no data"
    plt.close(fig)


def test_mismatched_result_rejected(four_points):
    with pytest.raises(ValueError):
        HeatmapRenderer().plot(points(four_points), ClusterResult.empty())


def test_bad_axes_rejected():
    with pytest.raises(ValueError):
        PathRenderer(axes=("x", "x"))
    with pytest.raises(ValueError):
        PathRenderer(axes=("x", "q"))


def test_path_png(tmp_path, make_session):
    from gazetrace.core.dataset import MOVE_COLUMNS

    renderer = PathRenderer(axes=("x", "y"))
    fig = renderer.plot(points(make_session(rows=20), MOVE_COLUMNS))
    assert fig.axes[0].get_ylabel().startswith("Y")
    assert os.path.isfile(renderer.save_png(fig, tmp_path / "path.png"))
