"""
Fling spline: the normalised time → (distance, velocity) lookup table.

The motion curve is two cubic Bezier-like segments joined at the configured
inflection point. The table is built once per configuration by bisection and
then sampled with linear interpolation; it is immutable and can be shared by
any number of trajectories.
"""

import logging
from typing import NamedTuple

import numpy as np

from fling_config import FlingConfiguration, InvalidSplineParameters

logger = logging.getLogger(__name__)

BISECTION_TOLERANCE: float = 1e-5
MAX_BISECTION_STEPS: int = 60


class FlingResult(NamedTuple):
    """Coefficients of a spline sample."""
    distance_coefficient: float  # 0 at the start of the fling, 1 at the end
    velocity_coefficient: float  # total distance per unit of normalised time


def bezier_segment(x: float, a: float, b: float) -> float:
    """3x(1-x)((1-x)a + xb) + x^3"""
    return 3.0 * x * (1.0 - x) * ((1.0 - x) * a + x * b) + x * x * x


def _bisect(a: float, b: float, alpha: float, lo: float):
    """Solve bezier_segment(x, a, b) == alpha for x in [lo, 1].

    The lower bound is carried over between consecutive (increasing) alphas.

    Returns:
        (x, new_lo)
    """
    hi = 1.0
    for _ in range(MAX_BISECTION_STEPS):
        x = lo + (hi - lo) / 2.0
        value = bezier_segment(x, a, b)
        if abs(value - alpha) < BISECTION_TOLERANCE:
            return x, lo
        if value > alpha:
            hi = x
        else:
            lo = x
    raise InvalidSplineParameters(
        f"spline bisection did not converge for alpha={alpha:.6f} "
        f"(control points {a:.6f}, {b:.6f}) within {MAX_BISECTION_STEPS} steps")


class SplineCurveTable:
    """Fixed-resolution fling spline built from a FlingConfiguration."""

    def __init__(self, positions: np.ndarray, times: np.ndarray, inflection: float):
        if len(positions) != len(times) or len(positions) < 2:
            raise ValueError("positions and times must be parallel arrays of length >= 2")
        self._positions = np.array(positions, dtype=float)
        self._times = np.array(times, dtype=float)
        self._positions.flags.writeable = False
        self._times.flags.writeable = False
        self.inflection = float(inflection)

    @classmethod
    def build(cls, config: FlingConfiguration) -> "SplineCurveTable":
        """Compute the table for `config`.

        Raises:
            InvalidSplineParameters: if a root cannot be bracketed to 1e-5.
        """
        n = config.spline_sample_count
        p1, p2 = config.spline_p1, config.spline_p2
        start_tension = config.spline_start_tension

        positions = np.zeros(n + 1)
        times = np.zeros(n + 1)
        x_min = 0.0
        y_min = 0.0
        for i in range(n):
            alpha = i / n
            x, x_min = _bisect(p1, p2, alpha, x_min)
            positions[i] = bezier_segment(x, start_tension, 1.0)
            y, y_min = _bisect(start_tension, 1.0, alpha, y_min)
            times[i] = bezier_segment(y, p1, p2)
        times[n] = 1.0
        positions[n] = times[n]

        logger.debug("built spline table: samples=%d p1=%.4f p2=%.4f", n, p1, p2)
        return cls(positions, times, config.spline_inflection)

    @property
    def sample_count(self) -> int:
        return len(self._positions) - 1

    @property
    def positions(self) -> np.ndarray:
        return self._positions

    @property
    def times(self) -> np.ndarray:
        return self._times

    def sample(self, t: float) -> FlingResult:
        """Sample the spline at normalised time `t` (0 = release, 1 = rest)."""
        n = self.sample_count
        if t >= 1.0:
            return FlingResult(1.0, 0.0)
        index = max(int(n * t), 0)
        t_inf = index / n
        t_sup = (index + 1) / n
        d_inf = float(self._positions[index])
        d_sup = float(self._positions[index + 1])
        velocity_coef = (d_sup - d_inf) / (t_sup - t_inf)
        distance_coef = d_inf + (t - t_inf) * velocity_coef
        return FlingResult(distance_coef, velocity_coef)

    def distance_coefficient(self, t: float) -> float:
        return self.sample(t).distance_coefficient

    def velocity_coefficient(self, t: float) -> float:
        return self.sample(t).velocity_coefficient

    def sample_many(self, ts) -> tuple:
        """Vectorised `sample` over an array of normalised times.

        Returns:
            (distance_coefficients, velocity_coefficients) as numpy arrays.
        """
        ts = np.asarray(ts, dtype=float)
        n = self.sample_count
        grid = np.arange(n + 1) / n
        slopes = np.diff(self._positions) * n
        index = np.clip(np.floor(ts * n).astype(int), 0, n - 1)

        done = ts >= 1.0
        distance = np.where(done, 1.0, np.interp(ts, grid, self._positions))
        # np.interp clamps below 0; the scalar path extrapolates the first segment
        below = ts < 0.0
        if np.any(below):
            distance = np.where(below, self._positions[0] + ts * slopes[0], distance)
        velocity = np.where(done, 0.0, slopes[index])
        return distance, velocity

    def deceleration(self, velocity: float, friction: float) -> float:
        """ln(inflection * |velocity| / friction).

        Zero velocity gives -inf and a non-positive friction gives nan or
        +/-inf; these are returned rather than clamped.
        """
        with np.errstate(divide="ignore", invalid="ignore"):
            ratio = np.float64(self.inflection) * abs(velocity) / np.float64(friction)
            return float(np.log(ratio))


def build_table(config: FlingConfiguration) -> SplineCurveTable:
    return SplineCurveTable.build(config)


class SplineTableCache:
    """Explicit cache of spline tables keyed by configuration value.

    The host owns the cache and decides its lifetime (e.g. one per screen or
    per density change).
    """

    def __init__(self):
        self._tables: dict = {}

    def get(self, config: FlingConfiguration) -> SplineCurveTable:
        table = self._tables.get(config)
        if table is None:
            table = build_table(config)
            self._tables[config] = table
        else:
            logger.debug("spline table cache hit (%d cached)", len(self._tables))
        return table

    def clear(self) -> None:
        self._tables.clear()

    def __contains__(self, config) -> bool:
        return config in self._tables

    def __len__(self) -> int:
        return len(self._tables)
