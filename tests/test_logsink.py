from datetime import datetime, timedelta

import pytest

from gazetrace.core.dataset import Point3
from gazetrace.core.ingest import read_csv
from gazetrace.core.logsink import (
    POSE_COLUMNS,
    PREFIX_COLUMNS,
    LogFormat,
    LoggerConfig,
    Pose,
    RowFormatter,
    SessionLogger,
)

T0 = datetime(2024, 5, 1, 9, 30, 15, 250_000)


class FakeClock:
    def __init__(self, start=T0):
        self.now = start

    def __call__(self):
        return self.now

    def tick(self, seconds):
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock():
    return FakeClock()


def _sink(tmp_path, clock, **kwargs):
    return SessionLogger(LoggerConfig(save_location=tmp_path / "logs", dataset_prefix="exp", **kwargs), clock=clock)


def test_file_name_and_header(tmp_path, clock):
    with _sink(tmp_path, clock) as sink:
        assert sink.create_log("HtcEtLog", ["EtPositionX", "FixatedObjectName"], caller="tracker")
        path = sink.logs["HtcEtLog"].path
    assert path.name == "exp_HtcEtLog_20240501_093015.txt"
    header = path.read_text(encoding="utf-8").splitlines()[0]
    assert header.split(";") == [*PREFIX_COLUMNS, *POSE_COLUMNS, "EtPositionX", "FixatedObjectName"]


def test_rows_carry_prefix_and_pose(tmp_path, clock):
    with _sink(tmp_path, clock) as sink:
        sink.create_log("custom", "a;b")
        pose = Pose(position=Point3(1.0, 2.0, 3.0), rotation=Point3(0.0, 90.0, 0.0))
        assert sink.log("custom", [0.5, "door"], origin=pose)
        clock.tick(1.5)
        assert sink.log("custom", "7;raw")
        path = sink.file_path("custom")

    ds = read_csv(path, delimiter=";")
    first, second = ds
    assert first["userId"] == "20240501_093015"
    assert first["logId"] == 1 and second["logId"] == 2
    assert first["timestamp"] == int(T0.timestamp())
    assert (first["hour"], first["min"], first["sec"], first["ms"]) == (9, 30, 15, 250)
    assert (first["xpos"], first["ypos"], first["zpos"]) == (1.0, 2.0, 3.0)
    assert first["vMousePos"] == 90.0
    assert (first["a"], first["b"]) == (0.5, "door")
    assert second["sec"] == 16 and second["ms"] == 750
    assert (second["a"], second["b"]) == (7, "raw")


def test_buffering_flushes_every_n_rows(tmp_path, clock):
    sink = _sink(tmp_path, clock, buffer_size=3)
    sink.create_log("buf", ["v"])
    path = sink.file_path("buf")
    sink.log("buf", [1])
    sink.log("buf", [2])
    assert len(path.read_text(encoding="utf-8").splitlines()) == 1
    sink.log("buf", [3])
    assert len(path.read_text(encoding="utf-8").splitlines()) == 4
    sink.log("buf", [4])
    sink.close()
    assert len(path.read_text(encoding="utf-8").splitlines()) == 5


def test_decimal_separator_from_format(tmp_path, clock):
    fmt = LogFormat(decimal_separator=",", field_separator=";")
    with _sink(tmp_path, clock, log_format=fmt) as sink:
        formatter = RowFormatter.from_sink(sink)
        assert formatter.log_format == fmt
        assert formatter.row([1.25, 3, "x"]) == "1,25;3;x"
        sink.create_log("dec", ["v"])
        sink.log("dec", [0.75])
        path = sink.file_path("dec")
    ds = read_csv(path, delimiter=";", decimal=",")
    assert ds[0]["v"] == 0.75


def test_rejected_logs(tmp_path, clock, caplog):
    sink = _sink(tmp_path, clock)
    assert not sink.create_log("", ["v"], caller="x")
    assert sink.create_log("once", ["v"])
    assert not sink.create_log("once", ["v"])
    assert not sink.log("missing", [1])
    assert "non-existent" in caplog.text
    sink.close()
    assert not sink.log("once", [1])

    disabled = _sink(tmp_path / "other", clock, allow_custom_logs=False)
    assert not disabled.create_log("custom", ["v"], caller="tracker")
    assert "disabled" in caplog.text


def test_event_log(tmp_path, clock):
    with _sink(tmp_path, clock) as sink:
        assert sink.log_event("trial 1 start")
        assert sink.log_event("trial 1 end")
        path = sink.file_path("eventlog")
    ds = read_csv(path, delimiter=";")
    assert ds.columns == (*PREFIX_COLUMNS, "eventInfo")
    assert [r["logId"] for r in ds] == [0, 1]
    assert ds[1]["eventInfo"] == "trial 1 end"


def test_event_log_disabled(tmp_path, clock):
    sink = _sink(tmp_path, clock, event_log=False)
    assert not sink.log_event("ignored")
    assert not sink.file_path("eventlog").exists()


def test_buffer_size_is_clamped(tmp_path, clock):
    assert _sink(tmp_path, clock, buffer_size=0).buffer_size == 1
    assert _sink(tmp_path, clock, buffer_size=5000).buffer_size == 1000


def test_same_separators_rejected():
    with pytest.raises(ValueError):
        LogFormat(decimal_separator=";", field_separator=";")
