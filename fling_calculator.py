"""
Fling calculator — deceleration model and per-gesture trajectories.

Physical model (android.widget.Scroller):

    physical = g * inches_per_meter * density * 160 * deceleration_friction
    l        = ln(inflection * |v| / (scroll_friction * physical))
    distance = scroll_friction * physical * exp(rate / (rate - 1) * l)
    duration = 1000 * exp(l / (rate - 1))                       [ms]

`l` is computed once per trajectory so distance and duration always agree.
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional

import numpy as np

from fling_config import FlingConfiguration, InvalidSplineParameters, DEFAULT_CONFIGURATION
from fling_spline import SplineCurveTable, SplineTableCache, build_table

logger = logging.getLogger(__name__)

# Baseline screen density (dpi) the physical coefficient is expressed against.
BASELINE_DPI: float = 160.0


def compute_deceleration(config: FlingConfiguration, friction: float, density: float) -> float:
    """Deceleration in pixels for the given friction coefficient and display density."""
    return (config.gravitational_force * config.inches_per_meter
            * density * BASELINE_DPI * friction)


def physical_scale(config: FlingConfiguration, density: float) -> float:
    return compute_deceleration(config, config.deceleration_friction, density)


@dataclass(frozen=True)
class Trajectory:
    """A fling started with `initial_velocity` (units/s).

    `distance` is unsigned; `position` and `velocity_at` carry the sign of
    the initial velocity. Times are milliseconds since release.
    `abs_velocity_threshold` is the speed below which the fling counts as
    finished (0 runs it to the full duration).
    """
    initial_velocity: float
    distance: float
    duration_ms: int
    table: SplineCurveTable
    abs_velocity_threshold: float = 0.0

    @property
    def direction(self) -> float:
        return float(np.sign(self.initial_velocity))

    @property
    def target_value(self) -> float:
        """Signed resting offset relative to the start."""
        return self.distance * self.direction

    def _spline_time(self, elapsed_ms: float) -> float:
        if self.duration_ms > 0:
            return elapsed_ms / self.duration_ms
        return 1.0

    def position(self, elapsed_ms: float) -> float:
        t = self._spline_time(elapsed_ms)
        return self.distance * self.direction * self.table.sample(t).distance_coefficient

    def velocity_at(self, elapsed_ms: float) -> float:
        if self.duration_ms <= 0:
            return 0.0
        t = self._spline_time(elapsed_ms)
        return (self.table.sample(t).velocity_coefficient * self.direction
                * self.distance / self.duration_ms * 1000.0)

    def positions(self, elapsed_ms) -> np.ndarray:
        """Vectorised `position` over an array of elapsed times."""
        elapsed_ms = np.asarray(elapsed_ms, dtype=float)
        if self.duration_ms > 0:
            ts = elapsed_ms / self.duration_ms
        else:
            ts = np.ones_like(elapsed_ms)
        distance_coefs, _ = self.table.sample_many(ts)
        return self.distance * self.direction * distance_coefs


class FlingCalculator:
    """Deceleration model for one configuration at one display density."""

    def __init__(self, config: FlingConfiguration = DEFAULT_CONFIGURATION,
                 density: float = 1.0,
                 table: Optional[SplineCurveTable] = None,
                 cache: Optional[SplineTableCache] = None):
        self.config = config
        self.density = float(density)
        if table is None:
            table = cache.get(config) if cache is not None else build_table(config)
        self.table = table
        self.physical_coefficient = physical_scale(config, self.density)

    def spline_deceleration(self, velocity: float) -> float:
        return self.table.deceleration(
            velocity, self.config.scroll_friction * self.physical_coefficient)

    def _distance_from(self, l: float) -> float:
        rate = self.config.deceleration_rate
        return float(self.config.scroll_friction * self.physical_coefficient
                     * np.exp(rate / (rate - 1.0) * l))

    def _duration_from(self, l: float) -> int:
        millis = float(1000.0 * np.exp(l / (self.config.deceleration_rate - 1.0)))
        if not math.isfinite(millis):
            raise InvalidSplineParameters(
                f"fling duration is not finite (deceleration term l={l!r})")
        return int(millis)

    def fling_distance(self, velocity: float) -> float:
        """Unsigned distance travelled by a fling released at `velocity`."""
        return self._distance_from(self.spline_deceleration(velocity))

    def fling_duration(self, velocity: float) -> int:
        """Duration in milliseconds of a fling released at `velocity`."""
        return self._duration_from(self.spline_deceleration(velocity))

    def fling_info(self, velocity: float) -> Trajectory:
        l = self.spline_deceleration(velocity)
        trajectory = Trajectory(
            initial_velocity=float(velocity),
            distance=self._distance_from(l),
            duration_ms=self._duration_from(l),
            table=self.table,
            abs_velocity_threshold=self.config.abs_velocity_threshold,
        )
        logger.debug("trajectory v=%.1f distance=%.2f duration=%dms",
                     velocity, trajectory.distance, trajectory.duration_ms)
        return trajectory


def compute_trajectory(config: FlingConfiguration, density: float, velocity: float,
                       cache: Optional[SplineTableCache] = None) -> Trajectory:
    return FlingCalculator(config, density, cache=cache).fling_info(velocity)
