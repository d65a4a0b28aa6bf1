"""Generation progress state machine for background content jobs.

The displayed percentage creeps toward the upper bound of the current stage
in fixed ticks. Ticks are applied lazily from the elapsed clock time whenever
the state is read, so no timer thread is needed per job.
"""

import math
import threading
import time

STAGE_RANGES = {
    'idle': (0, 0),
    'prep': (0, 70),
    'processing': (70, 85),
    'handling': (85, 90),
    'complete': (90, 100),
}
TICK_INTERVAL_SECONDS = 0.15
TICK_RANGE_FRACTION = 0.02
MIN_TICK_STEP = 0.5
AUTO_RESET_SECONDS = 2.0


class GenerationProgress:
    def __init__(self, clock=time.monotonic, auto_reset=True):
        self._clock = clock
        self._auto_reset = auto_reset
        self._lock = threading.Lock()
        self.stage = 'idle'
        self.progress = 0.0
        self.active = False
        self._last_tick_at = clock()
        self._finished_at = None

    def start(self):
        with self._lock:
            self.active = True
            self._enter('prep')
            self.progress = 0.0

    def advance(self, stage):
        with self._lock:
            self._catch_up()
            if stage not in STAGE_RANGES:
                return False
            self._enter(stage)
            return True

    def finish(self):
        with self._lock:
            self.stage = 'complete'
            self.progress = 100.0
            self.active = False
            self._finished_at = self._clock()

    def reset(self):
        with self._lock:
            self._reset()

    def tick(self):
        """Apply a single interpolation step."""
        with self._lock:
            self._tick_once()

    def snapshot(self):
        with self._lock:
            self._catch_up()
            return {
                'stage': self.stage,
                'progress': int(math.floor(self.progress + 0.5)),
                'active': self.active,
            }

    def _enter(self, stage):
        self.stage = stage
        self.progress = float(STAGE_RANGES[stage][0])
        self._last_tick_at = self._clock()
        self._finished_at = None

    def _reset(self):
        self.stage = 'idle'
        self.progress = 0.0
        self.active = False
        self._finished_at = None
        self._last_tick_at = self._clock()

    def _is_ticking(self):
        return self.active and self.stage not in ('idle', 'complete')

    def _tick_once(self):
        if not self._is_ticking():
            return
        start, end = STAGE_RANGES[self.stage]
        if self.progress >= end:
            return
        step = max(MIN_TICK_STEP, (end - start) * TICK_RANGE_FRACTION)
        self.progress = min(self.progress + step, float(end))

    def _catch_up(self):
        now = self._clock()
        if self.stage == 'complete' and self._finished_at is not None:
            if not self._auto_reset:
                return
            if now - self._finished_at >= AUTO_RESET_SECONDS:
                self._reset()
            return
        if not self._is_ticking():
            self._last_tick_at = now
            return
        pending = int((now - self._last_tick_at) / TICK_INTERVAL_SECONDS)
        for _ in range(pending):
            self._tick_once()
        self._last_tick_at += pending * TICK_INTERVAL_SECONDS
