import pytest

from gazetrace.core.naming import build_basename, meta_paths, result_path, result_root


def test_basename_is_sanitised():
    assert build_basename("s 01", "gaze/heat", "20240101_000000", "v1.0") == "s-01-gaze-heat-20240101_000000_v1.0"


def test_result_path_kinds(tmp_path):
    image = result_path("image", "b")
    table = result_path("table", "b")
    assert image == tmp_path / "results" / "images" / "b.png"
    assert table == tmp_path / "results" / "tables" / "b.csv"
    assert image.parent.is_dir()


def test_unknown_kind_rejected():
    with pytest.raises(ValueError):
        result_path("log", "b")


def test_meta_paths_follow_env(tmp_path, monkeypatch):
    assert meta_paths("run 1")["log_path"] == tmp_path / "meta" / "logs" / "run_run-1.log"
    monkeypatch.delenv("GAZETRACE_META_ROOT")
    assert meta_paths("x")["log_path"].parent == result_root() / "meta" / "logs"
