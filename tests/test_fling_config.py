"""
Configuration validation and dict round-trips.
"""

import sys
import os
import math
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from fling_config import (
    FlingConfiguration, InvalidFlingConfiguration, InvalidSplineParameters,
    DEFAULT_CONFIGURATION, DECELERATION_RATE,
)


class TestDefaults:

    def test_scroller_constants(self):
        c = DEFAULT_CONFIGURATION
        assert c.scroll_friction == 0.008
        assert c.deceleration_friction == 0.09
        assert c.gravitational_force == 9.80665
        assert c.inches_per_meter == 39.37
        assert c.spline_inflection == 0.1
        assert c.spline_sample_count == 100
        assert c.deceleration_rate == pytest.approx(math.log(0.78) / math.log(0.9))
        assert DECELERATION_RATE == pytest.approx(2.3582, abs=1e-4)

    def test_control_points(self):
        assert DEFAULT_CONFIGURATION.spline_p1 == pytest.approx(0.01)
        assert DEFAULT_CONFIGURATION.spline_p2 == pytest.approx(0.1)

    def test_value_semantics(self):
        assert FlingConfiguration() == DEFAULT_CONFIGURATION
        assert hash(FlingConfiguration()) == hash(DEFAULT_CONFIGURATION)
        assert FlingConfiguration(scroll_friction=0.02) != DEFAULT_CONFIGURATION


class TestValidation:

    @pytest.mark.parametrize("field,value", [
        ("scroll_friction", 0.0),
        ("scroll_friction", -0.01),
        ("deceleration_friction", 0.0),
        ("gravitational_force", -9.8),
        ("spline_start_tension", 0.0),
        ("abs_velocity_threshold", -1.0),
        ("deceleration_rate", 1.0),
        ("spline_inflection", 0.0),
        ("spline_inflection", 1.0),
        ("spline_sample_count", 0),
        ("spline_sample_count", 2.5),
        ("scroll_friction", math.nan),
        ("inches_per_meter", math.inf),
        ("scroll_friction", "0.008"),
        ("spline_sample_count", True),
    ])
    def test_invalid_values_rejected(self, field, value):
        with pytest.raises(InvalidFlingConfiguration):
            FlingConfiguration(**{field: value})

    def test_errors_are_value_errors(self):
        assert issubclass(InvalidFlingConfiguration, ValueError)
        assert issubclass(InvalidSplineParameters, InvalidFlingConfiguration)

    def test_with_overrides_revalidates(self):
        with pytest.raises(InvalidFlingConfiguration):
            DEFAULT_CONFIGURATION.with_overrides(scroll_friction=0.0)

    def test_with_overrides_leaves_original(self):
        changed = DEFAULT_CONFIGURATION.with_overrides(deceleration_friction=0.2)
        assert changed.deceleration_friction == 0.2
        assert DEFAULT_CONFIGURATION.deceleration_friction == 0.09


class TestDictRoundTrip:

    def test_round_trip(self):
        config = FlingConfiguration(scroll_friction=0.015, deceleration_friction=0.12)
        assert FlingConfiguration.from_dict(config.to_dict()) == config

    def test_partial_dict_uses_defaults(self):
        config = FlingConfiguration.from_dict({"scroll_friction": 0.02})
        assert config.scroll_friction == 0.02
        assert config.spline_inflection == DEFAULT_CONFIGURATION.spline_inflection

    def test_unknown_keys_rejected(self):
        with pytest.raises(InvalidFlingConfiguration, match="friction_typo"):
            FlingConfiguration.from_dict({"friction_typo": 0.1})
