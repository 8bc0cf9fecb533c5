"""
Settle motions — bounded animations from 0 to a target offset.

Used for the second phase of a snap (and for pager settles). Two families:

  SpringSpec   damped harmonic spring (unit mass), closed-form for the
               under-, critically- and over-damped cases; honours the
               initial velocity.
  TweenSpec    fixed duration with a cubic-Bezier easing curve; starts
               from rest regardless of the initial velocity.

Times are milliseconds, velocities are units per second.
"""

import math
from dataclasses import dataclass
from typing import Iterator

import numpy as np

from decay_spec import DecayFrame, DEFAULT_FRAME_MS
from fling_spline import bezier_segment

MAX_SETTLE_MS: float = 10_000.0
EASING_TOLERANCE: float = 1e-6
MAX_EASING_STEPS: int = 60


# ──────────────────────────────────────────────
# Easing
# ──────────────────────────────────────────────
@dataclass(frozen=True)
class CubicBezierEasing:
    """Easing through (0,0), (a,b), (c,d), (1,1); a and c must lie in [0, 1]."""
    a: float
    b: float
    c: float
    d: float

    def __post_init__(self):
        if not (0.0 <= self.a <= 1.0 and 0.0 <= self.c <= 1.0):
            raise ValueError(f"x control points must be in [0, 1], got a={self.a}, c={self.c}")

    def transform(self, fraction: float) -> float:
        if fraction <= 0.0:
            return 0.0
        if fraction >= 1.0:
            return 1.0
        lo, hi = 0.0, 1.0
        s = fraction
        for _ in range(MAX_EASING_STEPS):
            s = lo + (hi - lo) / 2.0
            x = bezier_segment(s, self.a, self.c)
            if abs(x - fraction) < EASING_TOLERANCE:
                break
            if x > fraction:
                hi = s
            else:
                lo = s
        return bezier_segment(s, self.b, self.d)

    def __call__(self, fraction: float) -> float:
        return self.transform(fraction)


FAST_OUT_SLOW_IN = CubicBezierEasing(0.4, 0.0, 0.2, 1.0)
LINEAR_OUT_SLOW_IN = CubicBezierEasing(0.0, 0.0, 0.2, 1.0)
LINEAR = CubicBezierEasing(0.0, 0.0, 1.0, 1.0)


# ──────────────────────────────────────────────
# Motions
# ──────────────────────────────────────────────
class SpringMotion:
    """Spring from 0 toward `target` released with `initial_velocity`."""

    def __init__(self, target: float, initial_velocity: float, stiffness: float,
                 damping_ratio: float, visibility_threshold: float):
        self.target = float(target)
        self.initial_velocity = float(initial_velocity)
        self.stiffness = float(stiffness)
        self.damping_ratio = float(damping_ratio)
        self.visibility_threshold = float(visibility_threshold)
        self._omega = math.sqrt(self.stiffness)
        self.duration_ms = self._estimate_duration()

    def _state(self, t: np.ndarray):
        """Displacement from target and velocity at times `t` (seconds)."""
        x0 = -self.target
        v0 = self.initial_velocity
        w = self._omega
        z = self.damping_ratio

        if z > 1.0:
            root = math.sqrt(z * z - 1.0)
            g_plus = w * (-z + root)
            g_minus = w * (-z - root)
            coef_b = (g_minus * x0 - v0) / (g_minus - g_plus)
            coef_a = x0 - coef_b
            x = coef_a * np.exp(g_minus * t) + coef_b * np.exp(g_plus * t)
            v = coef_a * g_minus * np.exp(g_minus * t) + coef_b * g_plus * np.exp(g_plus * t)
        elif z == 1.0:
            coef_a = x0
            coef_b = v0 + w * x0
            decay = np.exp(-w * t)
            x = (coef_a + coef_b * t) * decay
            v = (coef_a + coef_b * t) * decay * -w + coef_b * decay
        else:
            damped = w * math.sqrt(1.0 - z * z)
            cos_c = x0
            sin_c = (z * w * x0 + v0) / damped
            decay = np.exp(-z * w * t)
            x = decay * (cos_c * np.cos(damped * t) + sin_c * np.sin(damped * t))
            v = (x * -z * w
                 + decay * (-damped * cos_c * np.sin(damped * t)
                            + damped * sin_c * np.cos(damped * t)))
        return x, v

    def _estimate_duration(self) -> float:
        # first millisecond after which the spring stays within the threshold
        t_ms = np.arange(0.0, MAX_SETTLE_MS + 1.0, 1.0)
        x, v = self._state(t_ms / 1000.0)
        settled = ((np.abs(x) < self.visibility_threshold)
                   & (np.abs(v) / 1000.0 < self.visibility_threshold))
        stays = np.logical_and.accumulate(settled[::-1])[::-1]
        hits = np.flatnonzero(stays)
        if hits.size == 0:
            return MAX_SETTLE_MS
        return float(t_ms[hits[0]])

    def value_at(self, elapsed_ms: float) -> float:
        if elapsed_ms >= self.duration_ms:
            return self.target
        x, _ = self._state(np.float64(elapsed_ms / 1000.0))
        return self.target + float(x)

    def velocity_at(self, elapsed_ms: float) -> float:
        if elapsed_ms >= self.duration_ms:
            return 0.0
        _, v = self._state(np.float64(elapsed_ms / 1000.0))
        return float(v)


class TweenMotion:
    """Eased move from 0 to `target` over a fixed duration."""

    def __init__(self, target: float, duration_ms: float, delay_ms: float,
                 easing: CubicBezierEasing):
        self.target = float(target)
        self.tween_ms = float(duration_ms)
        self.delay_ms = float(delay_ms)
        self.easing = easing
        self.duration_ms = self.delay_ms + self.tween_ms

    def _fraction(self, elapsed_ms: float) -> float:
        if self.tween_ms <= 0:
            return 1.0 if elapsed_ms >= self.delay_ms else 0.0
        return min(max((elapsed_ms - self.delay_ms) / self.tween_ms, 0.0), 1.0)

    def value_at(self, elapsed_ms: float) -> float:
        return self.target * self.easing(self._fraction(elapsed_ms))

    def velocity_at(self, elapsed_ms: float) -> float:
        if elapsed_ms >= self.duration_ms:
            return 0.0
        h = 0.5
        before = self.value_at(max(elapsed_ms - h, 0.0))
        after = self.value_at(elapsed_ms + h)
        step = (elapsed_ms + h) - max(elapsed_ms - h, 0.0)
        return (after - before) / step * 1000.0


# ──────────────────────────────────────────────
# Specs (what a caller configures)
# ──────────────────────────────────────────────
@dataclass(frozen=True)
class SpringSpec:
    stiffness: float = 200.0
    damping_ratio: float = 1.0  # 1 = critically damped, < 1 overshoots
    visibility_threshold: float = 0.1

    def __post_init__(self):
        if self.stiffness <= 0:
            raise ValueError(f"stiffness must be > 0, got {self.stiffness!r}")
        if self.damping_ratio < 0:
            raise ValueError(f"damping_ratio must be >= 0, got {self.damping_ratio!r}")
        if self.visibility_threshold <= 0:
            raise ValueError(
                f"visibility_threshold must be > 0, got {self.visibility_threshold!r}")

    def motion(self, target: float, initial_velocity: float = 0.0) -> SpringMotion:
        return SpringMotion(target, initial_velocity, self.stiffness,
                            self.damping_ratio, self.visibility_threshold)


@dataclass(frozen=True)
class TweenSpec:
    duration_ms: float = 300.0
    delay_ms: float = 0.0
    easing: CubicBezierEasing = FAST_OUT_SLOW_IN

    def __post_init__(self):
        if self.duration_ms < 0 or self.delay_ms < 0:
            raise ValueError("duration_ms and delay_ms must be >= 0")

    def motion(self, target: float, initial_velocity: float = 0.0) -> TweenMotion:
        return TweenMotion(target, self.duration_ms, self.delay_ms, self.easing)


SMOOTH_SPRING = SpringSpec(stiffness=200.0, damping_ratio=1.0)


def settle_frames(motion, frame_ms: float = DEFAULT_FRAME_MS) -> Iterator[DecayFrame]:
    """Yield frames of a settle motion; the last one lands exactly on the target."""
    if frame_ms <= 0:
        raise ValueError(f"frame_ms must be > 0, got {frame_ms!r}")
    tick = 0
    while True:
        elapsed = min(tick * frame_ms, motion.duration_ms)
        finished = elapsed >= motion.duration_ms
        yield DecayFrame(elapsed, motion.value_at(elapsed), motion.velocity_at(elapsed), finished)
        if finished:
            return
        tick += 1
