"""
Fling configuration: physical constants and spline tuning for the
deceleration engine.

A FlingConfiguration is an immutable value: two configurations with the same
fields compare (and hash) equal, so the spline table cache can key on it.
"""

import math
from dataclasses import dataclass, asdict, fields, replace

# ──────────────────────────────────────────────
# Defaults (android.widget.Scroller values)
# ──────────────────────────────────────────────
SCROLL_FRICTION: float = 0.008  # governs total travel distance
ABS_VELOCITY_THRESHOLD: float = 0.0  # |v| below which a decay counts as finished
GRAVITATIONAL_FORCE: float = 9.80665  # m/s^2
INCHES_PER_METER: float = 39.37
DECELERATION_FRICTION: float = 0.09  # governs how fast velocity decays
DECELERATION_RATE: float = math.log(0.78) / math.log(0.9)  # ~2.358
SPLINE_INFLECTION: float = 0.1  # x where the two cubic segments join
SPLINE_START_TENSION: float = 0.1
SPLINE_END_TENSION: float = 1.0
SPLINE_SAMPLE_COUNT: int = 100


class InvalidFlingConfiguration(ValueError):
    """A configuration value that the deceleration model cannot work with."""


class InvalidSplineParameters(InvalidFlingConfiguration):
    """Spline parameters that defeat the table builder or the duration term."""


@dataclass(frozen=True)
class FlingConfiguration:
    """Tuning constants for one fling feel."""
    scroll_friction: float = SCROLL_FRICTION
    abs_velocity_threshold: float = ABS_VELOCITY_THRESHOLD
    gravitational_force: float = GRAVITATIONAL_FORCE
    inches_per_meter: float = INCHES_PER_METER
    deceleration_friction: float = DECELERATION_FRICTION
    deceleration_rate: float = DECELERATION_RATE
    spline_inflection: float = SPLINE_INFLECTION
    spline_start_tension: float = SPLINE_START_TENSION
    spline_end_tension: float = SPLINE_END_TENSION
    spline_sample_count: int = SPLINE_SAMPLE_COUNT

    def __post_init__(self):
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise InvalidFlingConfiguration(
                    f"{f.name} must be a number, got {value!r}")
            if not math.isfinite(value):
                raise InvalidFlingConfiguration(f"{f.name} must be finite, got {value!r}")

        positive = ("scroll_friction", "gravitational_force", "inches_per_meter",
                    "deceleration_friction", "spline_start_tension", "spline_end_tension")
        for name in positive:
            if getattr(self, name) <= 0:
                raise InvalidFlingConfiguration(
                    f"{name} must be > 0, got {getattr(self, name)!r}")

        if self.abs_velocity_threshold < 0:
            raise InvalidFlingConfiguration(
                f"abs_velocity_threshold must be >= 0, got {self.abs_velocity_threshold!r}")
        # rate - 1 divides both exponents
        if self.deceleration_rate <= 1.0:
            raise InvalidFlingConfiguration(
                f"deceleration_rate must be > 1, got {self.deceleration_rate!r}")
        if not 0.0 < self.spline_inflection < 1.0:
            raise InvalidFlingConfiguration(
                f"spline_inflection must be in (0, 1), got {self.spline_inflection!r}")
        if not isinstance(self.spline_sample_count, int) or self.spline_sample_count < 1:
            raise InvalidFlingConfiguration(
                f"spline_sample_count must be an integer >= 1, got {self.spline_sample_count!r}")

    @property
    def spline_p1(self) -> float:
        return self.spline_start_tension * self.spline_inflection

    @property
    def spline_p2(self) -> float:
        return 1.0 - self.spline_end_tension * (1.0 - self.spline_inflection)

    def with_overrides(self, **changes) -> "FlingConfiguration":
        """Return a copy with the given fields replaced (validated again)."""
        return replace(self, **changes)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "FlingConfiguration":
        """Build a configuration from a plain dict; missing keys use the defaults.

        Raises:
            InvalidFlingConfiguration: on unknown keys or invalid values.
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise InvalidFlingConfiguration(f"unknown configuration keys: {unknown}")
        return cls(**data)


DEFAULT_CONFIGURATION = FlingConfiguration()
