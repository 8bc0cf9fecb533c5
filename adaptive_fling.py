"""
Pick the fling configuration from the release velocity.

Slow flicks use a "gentle" configuration (short, controlled travel), fast
flings an "aggressive" one (long, free travel). Both spline tables come from
the caller's SplineTableCache.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Optional

from decay_spec import DEFAULT_FRAME_MS
from fling_config import FlingConfiguration
from fling_calculator import compute_trajectory, Trajectory
from fling_driver import run_fling, FlingCallbacks, NO_CALLBACKS, ConsumeFn, MIN_FLING_VELOCITY
from fling_spline import SplineTableCache

logger = logging.getLogger(__name__)


def _friction(deceleration: float, scroll: float) -> FlingConfiguration:
    return FlingConfiguration(deceleration_friction=deceleration, scroll_friction=scroll)


@dataclass(frozen=True)
class AdaptiveFling:
    gentle: FlingConfiguration
    aggressive: FlingConfiguration
    velocity_threshold: float = 1500.0

    def select_configuration(self, velocity: float) -> FlingConfiguration:
        if abs(velocity) < self.velocity_threshold:
            return self.gentle
        return self.aggressive

    def trajectory(self, velocity: float, density: float = 1.0,
                   cache: Optional[SplineTableCache] = None) -> Trajectory:
        return compute_trajectory(self.select_configuration(velocity), density, velocity, cache)


CUSTOM_DEFAULT = AdaptiveFling(gentle=_friction(0.4, 0.02), aggressive=_friction(0.05, 0.006))


class AdaptiveMode(enum.Enum):
    BALANCED = AdaptiveFling(_friction(0.3, 0.015), _friction(0.06, 0.006), 1500.0)
    PRECISION = AdaptiveFling(_friction(0.5, 0.03), _friction(0.15, 0.01), 2000.0)
    MOMENTUM = AdaptiveFling(_friction(0.1, 0.008), _friction(0.02, 0.003), 1000.0)

    @property
    def gentle(self) -> FlingConfiguration:
        return self.value.gentle

    @property
    def aggressive(self) -> FlingConfiguration:
        return self.value.aggressive

    @property
    def threshold(self) -> float:
        return self.value.velocity_threshold

    def select_configuration(self, velocity: float) -> FlingConfiguration:
        return self.value.select_configuration(velocity)


def select_configuration(mode, velocity: float) -> FlingConfiguration:
    """Gentle configuration below the mode's threshold, aggressive at or above it.

    `mode` is an AdaptiveMode or a custom AdaptiveFling.
    """
    if isinstance(mode, AdaptiveMode):
        mode = mode.value
    return mode.select_configuration(velocity)


def run_adaptive_fling(velocity: float, consume: ConsumeFn,
                       mode=AdaptiveMode.BALANCED,
                       callbacks: FlingCallbacks = NO_CALLBACKS, *,
                       density: float = 1.0,
                       cache: Optional[SplineTableCache] = None,
                       frame_ms: float = DEFAULT_FRAME_MS) -> float:
    """Run a plain fling with the configuration chosen for `velocity`.

    Returns the residual velocity, as `run_fling` does.
    """
    if abs(velocity) <= MIN_FLING_VELOCITY:
        return velocity
    if isinstance(mode, AdaptiveMode):
        mode = mode.value
    config = mode.select_configuration(velocity)
    logger.debug("adaptive fling v=%.1f -> %s configuration",
                 velocity, "gentle" if config is mode.gentle else "aggressive")
    trajectory = compute_trajectory(config, density, velocity, cache)
    return run_fling(trajectory, consume, callbacks, frame_ms=frame_ms)
