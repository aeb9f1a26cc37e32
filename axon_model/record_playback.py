"""
Time control for a steppable model: run live, record every frame into a
bounded history, or play the history back without running any physics.
"""

import bisect
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, List

logger = logging.getLogger(__name__)


class HistoryOverflowPolicy(Enum):
    """What Record does once the history holds max_record_points entries."""
    STOP_RECORDING = 'stop'
    DISCARD_OLDEST = 'discard_oldest'


class EndOfPlaybackBehavior(Enum):
    """What Playback does on reaching the last recorded point."""
    PAUSE = 'pause'
    RECORD = 'record'


@dataclass(frozen=True)
class DataPoint:
    time: float
    state: Any


class Mode:
    """Base class for the three operating modes."""

    name = 'mode'

    def __init__(self, model: 'RecordAndPlaybackModel'):
        self.model = model

    def step(self, dt: float) -> None:
        raise NotImplementedError

    def __repr__(self):
        return f"{type(self).__name__}()"


class Live(Mode):
    """Run the physics, keep nothing."""

    name = 'live'

    def step(self, dt: float) -> None:
        self.model.time += dt
        self.model.step_in_time(dt)


class Record(Mode):
    """Run the physics and append a DataPoint per frame while there is room."""

    name = 'record'

    def step(self, dt: float) -> None:
        self.model.time += dt
        state = self.model.step_in_time(dt)
        self.model.add_recorded_point(DataPoint(self.model.time, state))


class Playback(Mode):
    """
    Move through the recorded range at `speed` times the frame time. No
    physics runs; the model is shown at the recorded point nearest the
    current time. Each step advances by speed * dt, the frame time, not
    by the mean recorded spacing from get_playback_dt().
    """

    name = 'playback'

    def __init__(self, model: 'RecordAndPlaybackModel', speed: float = 1.0):
        super().__init__(model)
        self.speed = speed

    def step(self, dt: float) -> None:
        model = self.model
        delta = self.speed * dt
        if delta > 0:
            if model.time < model.get_max_recorded_time():
                model.set_time(min(model.time + delta, model.get_max_recorded_time()))
            else:
                model.handle_end_of_playback()
        elif delta < 0:
            if model.time > model.get_min_recorded_time():
                model.set_time(max(model.time + delta, model.get_min_recorded_time()))


class RecordAndPlaybackModel:
    """
    Base class for models with Live, Record and Playback modes sharing a
    time-ordered history of DataPoints.

    Subclasses implement step_in_time(dt), returning the state to record,
    and set_playback_state(state), which shows a recorded state.

    Args:
        max_record_points: History capacity
        overflow_policy: Behaviour of Record when the history is full
        end_of_playback: Behaviour of Playback at the end of the history
    """

    def __init__(self, max_record_points: int = 5000,
                 overflow_policy: HistoryOverflowPolicy = HistoryOverflowPolicy.STOP_RECORDING,
                 end_of_playback: EndOfPlaybackBehavior = EndOfPlaybackBehavior.PAUSE):
        if max_record_points <= 0:
            raise ValueError(f"max_record_points must be positive, got {max_record_points}")
        self.max_record_points = max_record_points
        self.overflow_policy = HistoryOverflowPolicy(overflow_policy)
        self.end_of_playback = EndOfPlaybackBehavior(end_of_playback)

        self.time = 0.0
        self.paused = False
        self.record_history: List[DataPoint] = []
        self._recorded_times: List[float] = []

        self.live_mode = Live(self)
        self.record_mode = Record(self)
        self.playback_mode = Playback(self)
        self.mode: Mode = self.live_mode

    # ------------------------------------------------------------------
    # Members each model provides
    # ------------------------------------------------------------------

    def step_in_time(self, dt: float):
        """Advance the physics by dt and return the state to record."""
        raise NotImplementedError

    def set_playback_state(self, state) -> None:
        raise NotImplementedError

    def handle_record_started_during_playback(self) -> None:
        """Hook run when recording resumes from a point in the history."""

    # ------------------------------------------------------------------
    # Stepping
    # ------------------------------------------------------------------

    def step(self, dt: float) -> None:
        if not self.paused:
            self.mode.step(dt)

    def add_recorded_point(self, point: DataPoint) -> None:
        if self.is_recording_full():
            if self.overflow_policy is HistoryOverflowPolicy.STOP_RECORDING:
                return
            self.record_history.pop(0)
            self._recorded_times.pop(0)
        self.record_history.append(point)
        self._recorded_times.append(point.time)
        if self.is_recording_full() and self.overflow_policy is HistoryOverflowPolicy.STOP_RECORDING:
            logger.info("recording history full at %d points", len(self.record_history))

    def handle_end_of_playback(self) -> None:
        if self.end_of_playback is EndOfPlaybackBehavior.RECORD:
            self.set_mode_record()
        else:
            self.set_paused(True)

    # ------------------------------------------------------------------
    # Modes
    # ------------------------------------------------------------------

    def is_live(self) -> bool:
        return self.mode is self.live_mode

    def is_record(self) -> bool:
        return self.mode is self.record_mode

    def is_playback(self) -> bool:
        return self.mode is self.playback_mode

    def set_mode_live(self) -> None:
        self._set_mode(self.live_mode)

    def set_mode_record(self) -> None:
        """
        Switch to recording. From playback this discards the history after
        the current time and resumes the physics from the point shown.
        """
        if self.is_record():
            return
        if self.is_playback():
            self.clear_history_remainder()
            self.handle_record_started_during_playback()
        self._set_mode(self.record_mode)

    def set_playback(self, speed: float) -> None:
        self.playback_mode.speed = speed
        self._set_mode(self.playback_mode)

    def get_playback_speed(self) -> float:
        return self.playback_mode.speed

    def start_recording(self) -> None:
        self.set_mode_record()
        self.set_paused(False)

    def _set_mode(self, mode: Mode) -> None:
        if mode is not self.mode:
            logger.info("mode %s -> %s", self.mode.name, mode.name)
            self.mode = mode

    def set_paused(self, paused: bool) -> None:
        self.paused = paused

    def is_paused(self) -> bool:
        return self.paused

    # ------------------------------------------------------------------
    # Time and history
    # ------------------------------------------------------------------

    def get_time(self) -> float:
        return self.time

    def set_time(self, t: float) -> None:
        """Move to time t; in playback, show the recorded point nearest t."""
        self.time = t
        if self.is_playback() and self.record_history:
            self.set_playback_state(self.get_playback_point().state)

    def get_playback_point(self) -> DataPoint:
        """Recorded point nearest the current time."""
        if not self.record_history:
            raise IndexError("no recorded points")
        i = bisect.bisect_left(self._recorded_times, self.time)
        if i == 0:
            return self.record_history[0]
        if i == len(self._recorded_times):
            return self.record_history[-1]
        before, after = self._recorded_times[i - 1], self._recorded_times[i]
        return self.record_history[i - 1] if self.time - before <= after - self.time else self.record_history[i]

    def get_num_recorded_points(self) -> int:
        return len(self.record_history)

    def is_recording_full(self) -> bool:
        return len(self.record_history) >= self.max_record_points

    def get_min_recorded_time(self) -> float:
        return self._recorded_times[0] if self._recorded_times else 0.0

    def get_max_recorded_time(self) -> float:
        return self._recorded_times[-1] if self._recorded_times else 0.0

    def get_recorded_time_range(self) -> float:
        return self.get_max_recorded_time() - self.get_min_recorded_time()

    def get_playback_dt(self) -> float:
        """Mean time between recorded points."""
        n = len(self.record_history)
        if n == 0:
            return 0.0
        if n == 1:
            return self._recorded_times[0]
        return self.get_recorded_time_range() / n

    def rewind(self) -> None:
        self.set_time(self.get_min_recorded_time())

    def clear_history(self) -> None:
        self.record_history = []
        self._recorded_times = []
        self.set_time(0.0)

    def clear_history_remainder(self) -> None:
        """Drop every recorded point after the current time."""
        keep = bisect.bisect_right(self._recorded_times, self.time)
        del self.record_history[keep:]
        del self._recorded_times[keep:]

    def reset_all(self) -> None:
        self.playback_mode.speed = 1.0
        self.clear_history()
        self.set_mode_live()
        self.set_paused(False)
