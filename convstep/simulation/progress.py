"""Step / play / reset state machine shared by every stage."""

from __future__ import annotations

import logging
from typing import Dict, Hashable, Optional, Sequence

from ..core.types import StageProgress
from .gate import PhaseGate
from .scheduler import ManualScheduler, Scheduler, TimerHandle
from .stages import Stage

logger = logging.getLogger(__name__)

DEFAULT_TICK_INTERVAL = 0.05


class StageController:
    """Drive one stage through ``idle -> running -> complete``.

    Calls made while the phase gate is closed are ignored. ``step`` on a
    complete stage is a no-op. Auto-play owns a single scheduler handle that
    is cancelled on pause, reset, completion and :meth:`close`.
    """

    def __init__(
        self,
        stage: Stage,
        gate: PhaseGate,
        scheduler: Scheduler | None = None,
        *,
        tick_interval: float = DEFAULT_TICK_INTERVAL,
        callbacks: Sequence[object] | None = None,
    ) -> None:
        self.stage = stage
        self.gate = gate
        self.scheduler: Scheduler = scheduler or ManualScheduler()
        self.tick_interval = tick_interval
        self.callbacks = list(callbacks or [])
        self._cursors: Dict[Hashable, int] = {}
        self._started = False
        self._playing = False
        self._handle: Optional[TimerHandle] = None
        self._in_step = False

    # ------------------------------------------------------------------
    # State

    @property
    def name(self) -> str:
        return self.stage.name

    @property
    def total_steps(self) -> int:
        return self.stage.total_steps()

    @property
    def step_index(self) -> int:
        self.sync()
        return self._cursors.get(self.stage.current_track(), 0)

    @property
    def is_started(self) -> bool:
        self.sync()
        return self._started

    @property
    def is_playing(self) -> bool:
        return self._playing

    @property
    def is_complete(self) -> bool:
        """Completion of the current track (the selected neuron for the dense stage)."""

        return self.step_index == self.total_steps

    @property
    def is_fully_complete(self) -> bool:
        """Completion of every track; this is what the phase gate consults."""

        self.sync()
        total = self.total_steps
        return all(self._cursors.get(track, 0) == total for track in self.stage.tracks())

    @property
    def state(self) -> str:
        if self.is_complete and (self._started or self.total_steps == 0):
            return "complete"
        if self.step_index > 0:
            return "running"
        if self._started or self.gate.is_open(self.name):
            return "idle"
        return "unreachable"

    def progress(self) -> StageProgress:
        return StageProgress(
            stage=self.name,
            step_index=self.step_index,
            total_steps=self.total_steps,
            is_playing=self._playing,
            is_started=self.is_started,
            all_tracks_complete=self.is_fully_complete,
        )

    # ------------------------------------------------------------------
    # Control

    def start(self) -> bool:
        """Make a gated stage reachable; returns whether the stage is started."""

        self.sync()
        if self._started:
            return True
        blocked_by = self.gate.blocked_by(self.name)
        if blocked_by is not None:
            logger.debug("%s is waiting for %s", self.name, blocked_by)
            return False
        self.stage.begin()
        self._cursors = {track: 0 for track in self.stage.tracks()}
        self._started = True
        return True

    def step(self) -> object | None:
        """Execute one step and return its record, or ``None`` if nothing ran."""

        if self._in_step or not self._gate_open():
            return None
        if not self.start():
            return None
        track = self.stage.current_track()
        index = self._cursors.get(track, 0)
        if index >= self.total_steps:
            return None
        self._in_step = True
        try:
            record = self.stage.execute(track, index)
            self._cursors[track] = index + 1
        finally:
            self._in_step = False
        self._emit(index, record)
        if self._playing and self.is_complete:
            self._stop_playing()
        return record

    def toggle_play(self) -> bool:
        """Flip auto-advance; returns whether the stage is now playing."""

        if self._playing:
            self._stop_playing()
            return False
        if not self._gate_open() or not self.start() or self.is_complete:
            return False
        self._playing = True
        self._schedule()
        return True

    def reset(self) -> None:
        """Discard this stage's outputs only and return to idle."""

        if not self._gate_open():
            return
        self.invalidate()

    def run(self) -> int:
        """Step until the current track completes; returns the steps executed."""

        executed = 0
        while not self.is_complete:
            if self.step() is None:
                break
            executed += 1
        return executed

    def sync(self) -> None:
        """Reset if the stage was built for an older configuration."""

        if self._started and self.stage.is_stale():
            logger.debug("%s invalidated by a configuration change", self.name)
            self.invalidate()

    def close(self) -> None:
        self._stop_playing()

    def invalidate(self) -> None:
        """Ungated reset used by cascading invalidation."""

        self._stop_playing()
        self.stage.clear()
        self._cursors = {}
        self._started = False

    # ------------------------------------------------------------------
    # Internal helpers

    def _gate_open(self) -> bool:
        blocked_by = self.gate.blocked_by(self.name)
        if blocked_by is not None:
            logger.debug("ignoring %s control call, waiting for %s", self.name, blocked_by)
            return False
        return True

    def _schedule(self) -> None:
        self._handle = self.scheduler.call_later(self.tick_interval, self._tick)

    def _tick(self) -> None:
        self._handle = None
        if not self._playing:
            return
        self.sync()
        if not self._playing:
            return
        if not self._gate_open():
            self._stop_playing()
            return
        self.step()
        if self._playing and not self.is_complete:
            self._schedule()
        else:
            self._stop_playing()

    def _stop_playing(self) -> None:
        self._playing = False
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _emit(self, index: int, record: object) -> None:
        for callback in self.callbacks:
            if hasattr(callback, "on_step"):
                callback.on_step(self.name, index, record)  # type: ignore[attr-defined]
            elif callable(callback):
                callback(self.name, index, record)


__all__ = ["DEFAULT_TICK_INTERVAL", "StageController"]
