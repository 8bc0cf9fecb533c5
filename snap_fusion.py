"""
Snap fusion — a fling that comes to rest on an item boundary.

Two phases share one gesture:

  FREE      the spline fling from fling_driver, consumed frame by frame.
  SETTLING  a bounded settle motion (spring or tween) from the position the
            free phase left off to the nearest snap point.

STANDARD mode lets the free phase run to completion (or a boundary hit) and
carries a small share of any leftover velocity into the settle.
SMOOTH_FUSION mode hands over early, as soon as |velocity| drops below a
threshold derived from the release velocity, and seeds the settle with most
of the live velocity so the two motions join without a visible kink.

All velocity shares and thresholds are feel constants, exposed on SnapConfig.
"""

import enum
import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional, Tuple, Union

from decay_spec import DecayFrame, decay_frames, DEFAULT_FRAME_MS
from fling_calculator import Trajectory
from fling_driver import (
    FlingSession, FlingCallbacks, NO_CALLBACKS, ConsumeFn,
    MIN_FLING_VELOCITY, is_boundary_hit, clamp01,
)
from settle_motion import (
    SpringMotion, SpringSpec, TweenMotion, TweenSpec, SMOOTH_SPRING, settle_frames,
)

logger = logging.getLogger(__name__)


class SnapPosition(enum.Enum):
    START = "start"
    CENTER = "center"
    END = "end"


class SnapMode(enum.Enum):
    STANDARD = "standard"
    SMOOTH_FUSION = "smooth_fusion"


class SnapPhase(enum.Enum):
    IDLE = 0
    FREE = 1
    SETTLING = 2
    DONE = 3


# ──────────────────────────────────────────────
# Snap geometry
# ──────────────────────────────────────────────
@dataclass(frozen=True)
class SnapItem:
    offset: float  # leading edge, in viewport coordinates
    size: float


@dataclass(frozen=True)
class Viewport:
    start: float
    end: float

    @property
    def size(self) -> float:
        return self.end - self.start


@dataclass(frozen=True)
class SnapLayout:
    """Visible items and the viewport they are measured against."""
    items: Tuple[SnapItem, ...]
    viewport: Viewport


SnapProvider = Callable[[], SnapLayout]


def item_snap_point(item: SnapItem, position: SnapPosition) -> float:
    if position is SnapPosition.START:
        return item.offset
    if position is SnapPosition.CENTER:
        return item.offset + item.size / 2
    return item.offset + item.size


def viewport_snap_point(viewport: Viewport, position: SnapPosition) -> float:
    if position is SnapPosition.START:
        return viewport.start
    if position is SnapPosition.CENTER:
        return viewport.start + viewport.size / 2
    return viewport.end


def calculate_snap_offset(layout: SnapLayout, position: SnapPosition) -> float:
    """Signed scroll delta that aligns the nearest item with the viewport.

    Returns 0 when no items are visible.
    """
    if not layout.items:
        return 0.0
    target = viewport_snap_point(layout.viewport, position)
    closest = min(layout.items, key=lambda item: abs(item_snap_point(item, position) - target))
    return float(item_snap_point(closest, position) - target)


# ──────────────────────────────────────────────
# Configuration
# ──────────────────────────────────────────────
@dataclass(frozen=True)
class SnapConfig:
    """Snap behaviour and the tuned (not derived) constants of the handover."""
    snap_position: SnapPosition = SnapPosition.START
    snap_animation: Union[SpringSpec, TweenSpec] = SMOOTH_SPRING

    # SMOOTH_FUSION: hand over once |v| < clamp(|v0| * ratio, min, max)
    fusion_velocity_ratio: float = 0.15
    min_fusion_threshold: float = 100.0
    max_fusion_threshold: float = 800.0

    # settle seeding
    standard_carry_ratio: float = 0.3
    standard_carry_min_velocity: float = 100.0
    fusion_carry_ratio: float = 0.8
    fusion_carry_min_velocity: float = 50.0
    residual_carry_ratio: float = 0.5
    residual_carry_min_velocity: float = 30.0
    approach_velocity_factor: float = 2.0

    min_snap_offset: float = 0.5  # smaller offsets are left as they are
    standard_progress_split: float = 0.7
    fusion_progress_split: float = 0.75

    @property
    def effective_fusion_ratio(self) -> float:
        return min(max(self.fusion_velocity_ratio, 0.05), 0.5)

    def fusion_threshold(self, initial_velocity: float) -> float:
        threshold = abs(initial_velocity) * self.effective_fusion_ratio
        return min(max(threshold, self.min_fusion_threshold), self.max_fusion_threshold)

    def progress_split(self, mode: SnapMode) -> float:
        if mode is SnapMode.SMOOTH_FUSION:
            return self.fusion_progress_split
        return self.standard_progress_split

    def seed_velocity(self, mode: SnapMode, residual_velocity: float,
                      snap_offset: float, transitioned: bool) -> float:
        """Initial velocity of the settle motion."""
        speed = abs(residual_velocity)
        if mode is SnapMode.STANDARD:
            if speed > self.standard_carry_min_velocity:
                return residual_velocity * self.standard_carry_ratio
            return 0.0
        if transitioned and speed > self.fusion_carry_min_velocity:
            return residual_velocity * self.fusion_carry_ratio
        if speed > self.residual_carry_min_velocity:
            return residual_velocity * self.residual_carry_ratio
        # no usable momentum left: approach at a speed proportional to the gap
        direction = 1.0 if snap_offset > 0 else -1.0
        return direction * abs(snap_offset) * self.approach_velocity_factor


DEFAULT_SNAP_CONFIG = SnapConfig()


# ──────────────────────────────────────────────
# Session
# ──────────────────────────────────────────────
@dataclass
class SnapFusionSession:
    """One snapping gesture: start(), tick_free() per frame, then tick_settle()."""
    trajectory: Trajectory
    consume: ConsumeFn
    snap_provider: SnapProvider
    mode: SnapMode = SnapMode.STANDARD
    config: SnapConfig = DEFAULT_SNAP_CONFIG
    callbacks: FlingCallbacks = NO_CALLBACKS

    phase: SnapPhase = field(default=SnapPhase.IDLE, init=False)
    fling: Optional[FlingSession] = field(default=None, init=False)
    motion: Optional[Union[SpringMotion, TweenMotion]] = field(default=None, init=False)
    velocity_remaining: float = field(default=0.0, init=False)
    fusion_threshold: float = field(default=0.0, init=False)
    transitioned: bool = field(default=False, init=False)
    target_offset: float = field(default=0.0, init=False)
    fusion_velocity: float = field(default=0.0, init=False)
    settled: float = field(default=0.0, init=False)
    settle_consumed: float = field(default=0.0, init=False)
    cancelled: bool = field(default=False, init=False)

    @property
    def initial_velocity(self) -> float:
        return self.trajectory.initial_velocity

    @property
    def total_consumed(self) -> float:
        free = self.fling.total_consumed if self.fling is not None else 0.0
        return free + self.settle_consumed

    def start(self) -> SnapPhase:
        if self.phase is not SnapPhase.IDLE:
            raise RuntimeError(f"snap session already started (phase={self.phase.name})")
        self.callbacks.notify_start(self.initial_velocity)
        self.velocity_remaining = self.initial_velocity
        self.fusion_threshold = self.config.fusion_threshold(self.initial_velocity)

        if abs(self.initial_velocity) > MIN_FLING_VELOCITY:
            split = self.config.progress_split(self.mode)
            self.fling = FlingSession(self.trajectory, self.consume,
                                      self.callbacks.progress_only(), (0.0, split))
            self.fling.start()
            self.phase = SnapPhase.FREE
        else:
            self.begin_settle()
        return self.phase

    def tick_free(self, frame: DecayFrame) -> SnapPhase:
        if self.phase is not SnapPhase.FREE:
            return self.phase
        self.fling.tick(frame)
        self.velocity_remaining = self.fling.velocity_remaining

        # a frame below the threshold hands over even if it also hit a boundary
        if (self.mode is SnapMode.SMOOTH_FUSION
                and abs(self.velocity_remaining) < self.fusion_threshold):
            self.transitioned = True
            self.fling.cancel()
            logger.debug("fusion threshold %.1f reached at v=%.1f",
                         self.fusion_threshold, self.velocity_remaining)

        if self.fling.state.is_terminal:
            self.begin_settle()
        return self.phase

    def end_free(self) -> SnapPhase:
        """Close the free phase when the host stepper stops delivering frames."""
        if self.phase is SnapPhase.FREE:
            self.fling.cancel()
            self.begin_settle()
        return self.phase

    def begin_settle(self) -> SnapPhase:
        offset = calculate_snap_offset(self.snap_provider(), self.config.snap_position)
        self.target_offset = offset
        if abs(offset) <= self.config.min_snap_offset:
            self.finish()
            return self.phase

        self.fusion_velocity = self.config.seed_velocity(
            self.mode, self.velocity_remaining, offset, self.transitioned)
        self.motion = self.config.snap_animation.motion(offset, self.fusion_velocity)
        self.settled = 0.0
        self.phase = SnapPhase.SETTLING
        logger.debug("settle start offset=%.1f seed=%.1f (%s)",
                     offset, self.fusion_velocity, self.mode.value)
        return self.phase

    def tick_settle(self, frame: DecayFrame) -> SnapPhase:
        if self.phase is not SnapPhase.SETTLING:
            return self.phase
        delta = frame.value - self.settled
        consumed = self.consume(delta)
        self.settled = frame.value
        self.settle_consumed += abs(consumed)

        split = self.config.progress_split(self.mode)
        abs_offset = abs(self.target_offset)
        if abs_offset > 0.1:
            snap_progress = clamp01(abs(self.settled) / abs_offset)
        else:
            snap_progress = 1.0
        self.callbacks.notify_progress(split + snap_progress * (1.0 - split), frame.velocity)

        if is_boundary_hit(delta, consumed):
            self.cancelled = True
            self.finish()
        elif frame.finished:
            self.finish()
        return self.phase

    def abort(self) -> SnapPhase:
        """Cancel whatever phase is running."""
        if self.phase is SnapPhase.DONE:
            return self.phase
        if self.fling is not None:
            self.fling.cancel()
        self.cancelled = True
        self.finish()
        return self.phase

    def finish(self) -> None:
        if self.phase is SnapPhase.DONE:
            return
        self.phase = SnapPhase.DONE
        self.callbacks.notify_end(self.total_consumed, self.cancelled)
        logger.debug("snap end consumed=%.1f cancelled=%s", self.total_consumed, self.cancelled)


def run_snap_fusion(trajectory: Trajectory, consume: ConsumeFn, snap_provider: SnapProvider,
                    mode: SnapMode = SnapMode.STANDARD,
                    callbacks: FlingCallbacks = NO_CALLBACKS, *,
                    config: SnapConfig = DEFAULT_SNAP_CONFIG,
                    frames: Optional[Iterable[DecayFrame]] = None,
                    frame_ms: float = DEFAULT_FRAME_MS) -> float:
    """Run a snapping fling to rest. Always returns 0.0 (settled on a boundary).

    Args:
        trajectory:    The free fling.
        consume:       Host callback; applies a delta and returns what it applied.
        snap_provider: Returns the current SnapLayout; called once, at handover.
        mode:          STANDARD or SMOOTH_FUSION.
        callbacks:     Lifecycle hooks (on_start always fires, on_end exactly once).
        config:        Snap position, settle animation and handover constants.
        frames:        Host decay stepper for the free phase.
        frame_ms:      Frame interval for the default steppers.
    """
    session = SnapFusionSession(trajectory, consume, snap_provider, mode, config, callbacks)
    try:
        if session.start() is SnapPhase.FREE:
            if frames is None:
                frames = decay_frames(trajectory, frame_ms, trajectory.abs_velocity_threshold)
            for frame in frames:
                if session.tick_free(frame) is not SnapPhase.FREE:
                    break
            session.end_free()

        if session.phase is SnapPhase.SETTLING:
            for frame in settle_frames(session.motion, frame_ms):
                if session.tick_settle(frame) is SnapPhase.DONE:
                    break
            session.finish()
    except Exception:
        logger.warning("snap fling aborted by host error in phase %s", session.phase.name,
                       exc_info=True)
        session.abort()
    return 0.0
