"""
Fling driver — the per-gesture state machine.

    IDLE ──start()──► RUNNING ──tick()──► FINISHED   (decay reached its target)
                         │
                         └──tick()/cancel()──► CANCELLED  (boundary hit, host abort)

Each tick samples the trajectory, asks the host to consume the delta since the
previous tick and compares what was requested with what was applied. Ticks
never raise: the new state is the return value. Only `run_fling`, which owns
the frame loop, converts a failing host callback into a cancellation.
"""

import enum
import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional, Tuple

from decay_spec import DecayFrame, decay_frames, DEFAULT_FRAME_MS
from fling_calculator import Trajectory

logger = logging.getLogger(__name__)

# Below this |v| the spline's log term is unusable; treat as already at rest.
MIN_FLING_VELOCITY: float = 1.0
# Requested-vs-consumed slack that still counts as fully consumed (rounding).
CONSUME_EPSILON: float = 0.5
# Initial velocities at or below this report progress 1.
PROGRESS_VELOCITY_EPSILON: float = 0.1

ConsumeFn = Callable[[float], float]


class FlingState(enum.Enum):
    IDLE = 0
    RUNNING = 1
    FINISHED = 2
    CANCELLED = 3

    @property
    def is_terminal(self) -> bool:
        return self in (FlingState.FINISHED, FlingState.CANCELLED)


@dataclass(frozen=True)
class FlingCallbacks:
    """Optional lifecycle hooks.

    on_start(initial_velocity)            once, when motion begins
    on_progress(progress, velocity)       once per tick, progress in [0, 1]
    on_end(total_consumed, cancelled)     exactly once, at termination
    """
    on_start: Optional[Callable[[float], None]] = None
    on_progress: Optional[Callable[[float, float], None]] = None
    on_end: Optional[Callable[[float, bool], None]] = None

    def notify_start(self, initial_velocity: float) -> None:
        if self.on_start is not None:
            self.on_start(initial_velocity)

    def notify_progress(self, progress: float, velocity: float) -> None:
        if self.on_progress is not None:
            self.on_progress(progress, velocity)

    def notify_end(self, total_consumed: float, cancelled: bool) -> None:
        if self.on_end is not None:
            self.on_end(total_consumed, cancelled)

    def progress_only(self) -> "FlingCallbacks":
        return FlingCallbacks(on_progress=self.on_progress)


NO_CALLBACKS = FlingCallbacks()


def clamp01(value: float) -> float:
    return min(max(value, 0.0), 1.0)


def velocity_progress(initial_velocity: float, current_velocity: float) -> float:
    """1 - |current| / |initial|, clamped to [0, 1]."""
    if abs(initial_velocity) > PROGRESS_VELOCITY_EPSILON:
        return clamp01(1.0 - abs(current_velocity) / abs(initial_velocity))
    return 1.0


def is_boundary_hit(delta: float, consumed: float) -> bool:
    return abs(delta - consumed) > CONSUME_EPSILON


@dataclass
class FlingSession:
    """State of one fling gesture. Drive with start() then tick() per frame.

    `progress_range` remaps reported progress into a sub-range, for callers
    that run the fling as one phase of a longer motion.
    """
    trajectory: Trajectory
    consume: ConsumeFn
    callbacks: FlingCallbacks = NO_CALLBACKS
    progress_range: Tuple[float, float] = (0.0, 1.0)

    state: FlingState = field(default=FlingState.IDLE, init=False)
    velocity_remaining: float = field(default=0.0, init=False)
    last_value: float = field(default=0.0, init=False)
    total_consumed: float = field(default=0.0, init=False)
    cancelled: bool = field(default=False, init=False)
    ticks: int = field(default=0, init=False)
    last_elapsed_ms: float = field(default=0.0, init=False)

    @property
    def initial_velocity(self) -> float:
        return self.trajectory.initial_velocity

    def start(self) -> FlingState:
        """Begin the fling.

        Velocities with |v| <= 1 finish immediately with no hooks and no
        motion; velocity_remaining keeps the initial velocity.
        """
        if self.state is not FlingState.IDLE:
            raise RuntimeError(f"fling session already started (state={self.state.name})")
        self.velocity_remaining = self.initial_velocity
        if abs(self.initial_velocity) <= MIN_FLING_VELOCITY:
            self.state = FlingState.FINISHED
            return self.state
        self.state = FlingState.RUNNING
        self.callbacks.notify_start(self.initial_velocity)
        logger.debug("fling start v=%.1f distance=%.1f duration=%dms",
                     self.initial_velocity, self.trajectory.distance,
                     self.trajectory.duration_ms)
        return self.state

    def frame_at(self, elapsed_ms: float) -> DecayFrame:
        return DecayFrame(elapsed_ms,
                          self.trajectory.position(elapsed_ms),
                          self.trajectory.velocity_at(elapsed_ms),
                          elapsed_ms >= self.trajectory.duration_ms)

    def tick(self, frame: DecayFrame) -> FlingState:
        """Apply one frame: consume the delta, report progress, detect the end."""
        if self.state is not FlingState.RUNNING:
            return self.state
        self.ticks += 1
        self.last_elapsed_ms = frame.elapsed_ms

        delta = frame.value - self.last_value
        consumed = self.consume(delta)
        self.last_value = frame.value
        self.total_consumed += abs(consumed)
        self.velocity_remaining = frame.velocity

        lo, hi = self.progress_range
        progress = velocity_progress(self.initial_velocity, self.velocity_remaining)
        self.callbacks.notify_progress(lo + progress * (hi - lo), self.velocity_remaining)

        if is_boundary_hit(delta, consumed):
            self._terminate(cancelled=True)
        elif frame.finished:
            self._terminate(cancelled=False)
        return self.state

    def advance(self, elapsed_ms: float) -> FlingState:
        """tick() with the frame sampled from the trajectory at `elapsed_ms`."""
        return self.tick(self.frame_at(elapsed_ms))

    def cancel(self) -> FlingState:
        """Stop the fling from outside (host abort or a phase handover)."""
        if self.state is FlingState.RUNNING:
            self._terminate(cancelled=True)
        return self.state

    def complete(self) -> FlingState:
        """Mark a running fling as naturally finished."""
        if self.state is FlingState.RUNNING:
            self._terminate(cancelled=False)
        return self.state

    def _terminate(self, cancelled: bool) -> None:
        self.cancelled = cancelled
        self.state = FlingState.CANCELLED if cancelled else FlingState.FINISHED
        self.callbacks.notify_end(self.total_consumed, cancelled)
        logger.debug("fling end state=%s consumed=%.1f residual=%.1f ticks=%d",
                     self.state.name, self.total_consumed, self.velocity_remaining, self.ticks)


def run_fling(trajectory: Trajectory, consume: ConsumeFn,
              callbacks: FlingCallbacks = NO_CALLBACKS, *,
              frames: Optional[Iterable[DecayFrame]] = None,
              frame_ms: float = DEFAULT_FRAME_MS) -> float:
    """Run a whole fling and return the residual (unconsumed) velocity.

    Args:
        trajectory: The fling to play.
        consume:    Host callback; applies a delta and returns what it applied.
        callbacks:  Lifecycle hooks.
        frames:     Host decay stepper. Defaults to `decay_frames` at `frame_ms`.
        frame_ms:   Frame interval for the default stepper.

    Returns:
        0 for a fully absorbed fling, the velocity at the stopping tick when
        cancelled, or the initial velocity when |v| <= 1.
    """
    session = FlingSession(trajectory, consume, callbacks)
    if session.start() is not FlingState.RUNNING:
        return session.velocity_remaining

    if frames is None:
        frames = decay_frames(trajectory, frame_ms, trajectory.abs_velocity_threshold)
    try:
        for frame in frames:
            if session.tick(frame).is_terminal:
                break
    except Exception:
        logger.warning("fling aborted by host error after %d ticks", session.ticks,
                       exc_info=True)
        session.cancel()

    if not session.state.is_terminal:
        # stepper ran dry without flagging the last frame
        if session.last_elapsed_ms >= trajectory.duration_ms:
            session.complete()
        else:
            session.cancel()
    return session.velocity_remaining
