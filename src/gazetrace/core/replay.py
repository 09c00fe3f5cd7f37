"""Timestamp-indexed playback of a recorded session.

The replay owns no clock: a driver (a test, a wall clock, a render loop)
calls :meth:`TrajectoryReplay.advance` with the elapsed seconds and reads the
resulting :class:`ReplayFrame`.
"""

from __future__ import annotations

import bisect
import enum
import logging
from collections import deque
from dataclasses import dataclass
from typing import Deque, Iterator, List, Optional, Tuple

from .dataset import GAZE_COLUMNS, MOVE_COLUMNS, ROTATE_COLUMNS, Dataset, Point3, PointColumns, point_of
from .errors import EmptyDatasetError, MalformedRowError

logger = logging.getLogger("gazetrace.core.replay")

DEFAULT_TRAIL_LENGTH = 10
TRAIL_LENGTH_RANGE = (2, 100)
MIN_SPEED = 0.1


class ReplayState(enum.Enum):
    STOPPED = "stopped"
    PLAYING = "playing"
    PAUSED = "paused"


@dataclass(frozen=True)
class ReplayConfig:
    timestamp_column: str = "timestamp"
    milliseconds_column: Optional[str] = None
    move_columns: PointColumns = MOVE_COLUMNS
    rotate_columns: PointColumns = ROTATE_COLUMNS
    gaze_columns: PointColumns = GAZE_COLUMNS
    display_gaze: bool = True
    display_trail: bool = True
    trail_length: int = DEFAULT_TRAIL_LENGTH
    speed_step: float = 0.1
    move_step: float = 5.0
    interpolate: bool = False


@dataclass(frozen=True)
class ReplayFrame:
    """What a viewer shows at one instant of the replay."""

    timestamp: float
    index: int
    state: ReplayState
    position: Point3
    rotation: Point3
    gaze: Optional[Point3] = None
    trail: Tuple[Point3, ...] = ()


class TrajectoryReplay:
    """Playback cursor over a dataset ordered by time.

    Timestamps are relative to the first row. While playing, the cursor moves
    forward to the last row whose relative timestamp is not later than the
    current replay time; reaching the last row pauses playback.
    """

    def __init__(self, dataset: Dataset, config: ReplayConfig = ReplayConfig()) -> None:
        self.dataset = dataset
        self.config = config

        # trail_length: 2-100, out of range falls back to the default
        lo, hi = TRAIL_LENGTH_RANGE
        if lo <= config.trail_length <= hi:
            self.trail_length = config.trail_length
            self._trail_length_adjusted = False
        else:
            logger.warning(
                "trail_length %d outside [%d, %d]; using %d",
                config.trail_length, lo, hi, DEFAULT_TRAIL_LENGTH,
            )
            self.trail_length = DEFAULT_TRAIL_LENGTH
            self._trail_length_adjusted = True

        if len(dataset) > 0:
            names = [config.timestamp_column, *config.move_columns.names(), *config.rotate_columns.names()]
            if config.milliseconds_column:
                names.append(config.milliseconds_column)
            if config.display_gaze:
                names.extend(config.gaze_columns.names())
            dataset.require(*names)

        self._timestamps = self._relative_timestamps()
        self.speed = 1.0
        self.state = ReplayState.STOPPED
        self.current_time = 0.0
        self.cursor = 0
        self._trail: Deque[Point3] = deque(maxlen=self.trail_length)
        self._rebuild_trail()

    def _relative_timestamps(self) -> List[float]:
        ms_col = self.config.milliseconds_column
        out = []
        for number, record in enumerate(self.dataset):
            value = record[self.config.timestamp_column]
            if isinstance(value, str):
                raise MalformedRowError(f"non-numeric timestamp {value!r}", row=number)
            t = float(value)
            if ms_col:
                ms = record[ms_col]
                if isinstance(ms, str):
                    raise MalformedRowError(f"non-numeric milliseconds {ms!r}", row=number)
                t += float(ms) / 1000.0
            out.append(t)
        if not out:
            return out
        t0 = out[0]
        return [t - t0 for t in out]

    def __len__(self) -> int:
        return len(self.dataset)

    @property
    def duration(self) -> float:
        return self._timestamps[-1] if self._timestamps else 0.0

    @property
    def at_end(self) -> bool:
        return len(self.dataset) > 0 and self.cursor == len(self.dataset) - 1

    # --- transitions ---
    def play(self) -> None:
        if len(self.dataset) == 0:
            logger.warning("replay has no rows; staying stopped")
            return
        if self.at_end:
            logger.info("replay already at the last row")
            self.state = ReplayState.PAUSED
            return
        self.state = ReplayState.PLAYING

    def pause(self) -> None:
        if self.state is ReplayState.PLAYING:
            self.state = ReplayState.PAUSED

    def toggle(self) -> ReplayState:
        """Flip between playing and paused; from stopped, start playing.

        At the last row the replay restarts from the first one.
        """
        if self.state is ReplayState.PLAYING:
            self.pause()
            return self.state
        if self.at_end and len(self.dataset) > 1:
            logger.info("replay restarted from the first row")
            self.reset()
        self.play()
        return self.state

    def reset(self) -> None:
        self.state = ReplayState.STOPPED
        self.current_time = 0.0
        self.cursor = 0
        self._rebuild_trail()

    # --- speed ---
    def speed_up(self) -> float:
        self.speed *= 1.0 + self.config.speed_step
        return self.speed

    def speed_down(self) -> float:
        self.speed = max(MIN_SPEED, self.speed * (1.0 - self.config.speed_step))
        return self.speed

    # --- time ---
    def advance(self, elapsed: float) -> ReplayFrame | None:
        """Move replay time forward by ``elapsed * speed`` seconds.

        Does nothing unless playing. Returns the new frame, or ``None`` when
        the dataset is empty.

        Raises:
            ValueError: If ``elapsed`` is negative.
        """
        if elapsed < 0:
            raise ValueError("elapsed time must not be negative")
        if self.state is ReplayState.PLAYING:
            self._seek_forward(self.current_time + elapsed * self.speed)
            if self.at_end:
                self.state = ReplayState.PAUSED
                logger.info("replay reached the last row at %.3fs", self.current_time)
        return self.frame() if len(self.dataset) else None

    def skip_forward(self, seconds: Optional[float] = None) -> None:
        if not len(self.dataset):
            return
        step = self.config.move_step if seconds is None else seconds
        if step < 0:
            raise ValueError("skip distance must not be negative")
        self._seek_forward(self.current_time + step)
        if self.at_end and self.state is ReplayState.PLAYING:
            self.state = ReplayState.PAUSED

    def skip_backward(self, seconds: Optional[float] = None) -> None:
        if not len(self.dataset):
            return
        step = self.config.move_step if seconds is None else seconds
        if step < 0:
            raise ValueError("skip distance must not be negative")
        self.current_time = max(0.0, self.current_time - step)
        self.cursor = max(0, bisect.bisect_right(self._timestamps, self.current_time) - 1)
        self._rebuild_trail()

    def move_to_end(self) -> None:
        if not len(self.dataset):
            return
        self._seek_forward(max(self.current_time, self.duration))
        if self.state is ReplayState.PLAYING:
            self.state = ReplayState.PAUSED

    def _seek_forward(self, target: float) -> None:
        self.current_time = target
        last = len(self._timestamps) - 1
        while self.cursor < last and self._timestamps[self.cursor + 1] <= self.current_time:
            self.cursor += 1
            self._push_trail(self.cursor)

    def frames(self, step: float) -> Iterator[ReplayFrame]:
        """Play from the current position to the end in ticks of ``step`` seconds."""
        if step <= 0:
            raise ValueError("step must be positive")
        self.play()
        while self.state is ReplayState.PLAYING:
            yield self.advance(step)

    # --- frame ---
    def _gaze(self, index: int) -> Point3:
        return point_of(self.dataset[index], self.config.gaze_columns)

    def _push_trail(self, index: int) -> None:
        if self.config.display_gaze:
            self._trail.append(self._gaze(index))

    def _rebuild_trail(self) -> None:
        self._trail.clear()
        if not len(self.dataset):
            return
        for index in range(max(0, self.cursor - self.trail_length + 1), self.cursor + 1):
            self._push_trail(index)

    def _position(self) -> Point3:
        record = self.dataset[self.cursor]
        position = point_of(record, self.config.move_columns)
        if not self.config.interpolate or self.at_end:
            return position
        t0 = self._timestamps[self.cursor]
        t1 = self._timestamps[self.cursor + 1]
        if t1 <= t0:
            return position
        alpha = min(1.0, max(0.0, (self.current_time - t0) / (t1 - t0)))
        following = point_of(self.dataset[self.cursor + 1], self.config.move_columns)
        return Point3(*(a + (b - a) * alpha for a, b in zip(position, following)))

    def frame(self) -> ReplayFrame:
        """Return the frame at the current cursor.

        Raises:
            EmptyDatasetError: If there are no rows to show.
        """
        if not len(self.dataset):
            raise EmptyDatasetError("replay has no rows")
        record = self.dataset[self.cursor]
        gaze = None
        trail: Tuple[Point3, ...] = ()
        if self.config.display_gaze:
            gaze = self._gaze(self.cursor)
            if self.config.display_trail:
                trail = tuple(self._trail)
        return ReplayFrame(
            timestamp=self.current_time,
            index=self.cursor,
            state=self.state,
            position=self._position(),
            rotation=point_of(record, self.config.rotate_columns),
            gaze=gaze,
            trail=trail,
        )


__all__ = [
    "DEFAULT_TRAIL_LENGTH",
    "ReplayState",
    "ReplayConfig",
    "ReplayFrame",
    "TrajectoryReplay",
]
