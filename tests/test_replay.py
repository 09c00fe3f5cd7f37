import pytest

from gazetrace.core.dataset import Dataset, Point3
from gazetrace.core.errors import EmptyDatasetError, MissingColumnError
from gazetrace.core.replay import DEFAULT_TRAIL_LENGTH, ReplayConfig, ReplayState, TrajectoryReplay

COLS = ("timestamp", "xpos", "ypos", "zpos", "upos", "vpos", "wpos", "EtPositionX", "EtPositionY", "EtPositionZ")


def _session(timestamps):
    return Dataset(COLS, [(t, float(i), 0.0, 0.0, 0.0, 10.0 * i, 0.0, float(i), 1.0, 2.0) for i, t in enumerate(timestamps)])


@pytest.fixture
def replay():
    return TrajectoryReplay(_session([100, 101, 102, 103]))


def test_cursor_moves_only_when_time_reached(replay):
    replay.play()
    replay.advance(0.5)
    assert replay.cursor == 0
    replay.advance(0.5)
    assert replay.cursor == 1
    replay.advance(0.5)
    assert replay.cursor == 1
    assert replay.current_time == pytest.approx(1.5)


def test_reaching_the_end_pauses(replay):
    replay.play()
    frame = replay.advance(10.0)
    assert frame.index == 3
    assert replay.state is ReplayState.PAUSED
    # further ticks are ignored while paused
    replay.advance(1.0)
    assert replay.current_time == pytest.approx(10.0)


def test_not_playing_ignores_ticks(replay):
    replay.advance(5.0)
    assert replay.cursor == 0
    assert replay.state is ReplayState.STOPPED


def test_negative_tick_rejected(replay):
    with pytest.raises(ValueError):
        replay.advance(-0.1)


def test_toggle_and_reset(replay):
    assert replay.toggle() is ReplayState.PLAYING
    replay.advance(1.2)
    assert replay.toggle() is ReplayState.PAUSED
    assert replay.cursor == 1
    assert replay.toggle() is ReplayState.PLAYING
    replay.reset()
    assert replay.state is ReplayState.STOPPED
    assert replay.cursor == 0
    assert replay.current_time == 0.0


def test_speed_steps(replay):
    replay.speed_up()
    assert replay.speed == pytest.approx(1.1)
    for _ in range(50):
        replay.speed_down()
    assert replay.speed == pytest.approx(0.1)
    replay.play()
    replay.advance(10.0)  # 1 s of replay time at the floor speed
    assert replay.cursor == 1


def test_frame_contents(replay):
    replay.play()
    frame = replay.advance(2.0)
    assert frame.timestamp == pytest.approx(2.0)
    assert frame.position == Point3(2.0, 0.0, 0.0)
    assert frame.rotation == Point3(0.0, 20.0, 0.0)
    assert frame.gaze == Point3(2.0, 1.0, 2.0)
    assert [p.x for p in frame.trail] == [0.0, 1.0, 2.0]


def test_trail_keeps_last_k():
    rp = TrajectoryReplay(_session(list(range(10))), ReplayConfig(trail_length=3))
    rp.play()
    frame = rp.advance(6.0)
    assert [p.x for p in frame.trail] == [4.0, 5.0, 6.0]


def test_trail_length_out_of_range_falls_back(caplog):
    rp = TrajectoryReplay(_session([0, 1]), ReplayConfig(trail_length=500))
    assert rp.trail_length == DEFAULT_TRAIL_LENGTH
    assert "trail_length" in caplog.text


def test_interpolated_position():
    rp = TrajectoryReplay(_session([0, 2]), ReplayConfig(interpolate=True))
    rp.play()
    frame = rp.advance(0.5)
    assert frame.index == 0
    assert frame.position.x == pytest.approx(0.25)


def test_skips_and_move_to_end(replay):
    replay.skip_forward(2.0)
    assert replay.cursor == 2
    replay.skip_backward(1.5)
    assert replay.cursor == 0
    assert replay.current_time == pytest.approx(0.5)
    replay.move_to_end()
    assert replay.at_end


def test_frames_generator_plays_to_the_end(replay):
    indices = [f.index for f in replay.frames(step=0.5)]
    assert indices == sorted(indices)
    assert indices[-1] == 3
    assert replay.state is ReplayState.PAUSED


def test_milliseconds_column():
    cols = COLS + ("ms",)
    rows = [r.values_tuple + (ms,) for r, ms in zip(_session([5, 5, 6]), [0, 500, 0])]
    rp = TrajectoryReplay(Dataset(cols, rows), ReplayConfig(milliseconds_column="ms"))
    rp.play()
    assert rp.advance(0.5).index == 1
    assert rp.advance(0.25).index == 1
    assert rp.advance(0.25).index == 2


def test_empty_dataset_stays_stopped():
    rp = TrajectoryReplay(Dataset(()))
    rp.play()
    assert rp.state is ReplayState.STOPPED
    assert rp.advance(1.0) is None
    with pytest.raises(EmptyDatasetError):
        rp.frame()


def test_missing_columns_fail_at_construction():
    with pytest.raises(MissingColumnError):
        TrajectoryReplay(Dataset(("timestamp",), [(0,)]))


def test_toggle_at_the_end_restarts(replay):
    replay.play()
    replay.advance(5.0)
    assert replay.state is ReplayState.PAUSED
    assert replay.toggle() is ReplayState.PLAYING
    assert replay.cursor == 0
    assert replay.current_time == 0.0
    assert replay.advance(1.0).index == 1


def test_toggle_on_single_row_stays_paused():
    rp = TrajectoryReplay(_session([0]))
    assert rp.toggle() is ReplayState.PAUSED
