"""
Pager settle tests.
"""

import sys
import os
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from fling_driver import FlingCallbacks
from pager_settle import (
    PagerLayout, PagerConfig, STANDARD_PAGER, LOW_VELOCITY_SPRING, HIGH_VELOCITY_SPRING,
    target_page, page_settle_offset, run_pager_fling,
)


def _layout(page=3, fraction=0.0, size=500.0, count=10):
    return PagerLayout(page, fraction, size, count)


def _recording_callbacks(events):
    return FlingCallbacks(
        on_start=lambda v: events.append(("start", v)),
        on_progress=lambda p, v: events.append(("progress", p)),
        on_end=lambda total, cancelled: events.append(("end", total, cancelled)),
    )


class TestTargetPage:

    def test_fast_positive_velocity_goes_back(self):
        assert target_page(_layout(), 1000.0) == 2

    def test_fast_negative_velocity_goes_forward(self):
        assert target_page(_layout(), -1000.0) == 4

    def test_threshold_is_inclusive(self):
        assert target_page(_layout(), -400.0) == 4
        assert target_page(_layout(), -399.0) == 3

    def test_clamped_to_page_range(self):
        assert target_page(_layout(page=0), 1000.0) == 0
        assert target_page(_layout(page=9), -1000.0) == 9

    @pytest.mark.parametrize("fraction,expected", [(0.6, 4), (-0.6, 2), (0.3, 3), (-0.5, 3)])
    def test_slow_fling_follows_drag(self, fraction, expected):
        assert target_page(_layout(fraction=fraction), 100.0) == expected


class TestSettleOffset:

    def test_forward(self):
        assert page_settle_offset(_layout(fraction=0.2), 4) == pytest.approx(400.0)

    def test_backward(self):
        assert page_settle_offset(_layout(fraction=0.2), 2) == pytest.approx(-600.0)

    def test_same_page(self):
        assert page_settle_offset(_layout(fraction=0.2), 3) == pytest.approx(-100.0)
        assert page_settle_offset(_layout(fraction=-0.3), 3) == pytest.approx(150.0)


class TestConfig:

    def test_defaults(self):
        config = PagerConfig()
        assert config.fling_configuration.scroll_friction == 0.015
        assert config.fling_configuration.deceleration_friction == 0.12
        assert config.snap_velocity_threshold == 400.0
        assert config == STANDARD_PAGER

    def test_springs(self):
        assert LOW_VELOCITY_SPRING.stiffness == 1500.0 and LOW_VELOCITY_SPRING.damping_ratio == 1.0
        assert HIGH_VELOCITY_SPRING.stiffness == 400.0 and HIGH_VELOCITY_SPRING.damping_ratio == 0.75
        assert STANDARD_PAGER.spring_for(-400.0) is HIGH_VELOCITY_SPRING
        assert STANDARD_PAGER.spring_for(399.0) is LOW_VELOCITY_SPRING


class TestRunPagerFling:

    def test_settles_on_next_page(self):
        applied = []
        events = []
        residual = run_pager_fling(_layout(fraction=0.2), -1000.0,
                                   lambda d: applied.append(d) or d,
                                   _recording_callbacks(events))
        assert residual == 0.0
        assert sum(applied) == pytest.approx(400.0)
        kind, total, cancelled = events[-1]
        assert cancelled is False
        assert total >= 400.0 - 1e-6

    def test_drag_velocity_sign_is_opposite_to_scroll_delta(self):
        applied = []
        run_pager_fling(_layout(), 5000.0, lambda d: applied.append(d) or d)
        first_move = next(d for d in applied if abs(d) > 1e-9)
        assert first_move > 0.0, "spring starts with the release velocity"
        assert sum(applied) == pytest.approx(-500.0)

    def test_hooks(self):
        events = []
        run_pager_fling(_layout(fraction=0.3), 0.0, lambda d: d, _recording_callbacks(events))
        kinds = [e[0] for e in events]
        assert kinds[0] == "start" and kinds[-1] == "end"
        assert kinds.count("end") == 1
        progress = [e[1] for e in events if e[0] == "progress"]
        assert all(0.0 <= p <= 1.0 for p in progress)
        assert progress[-1] == pytest.approx(1.0)

    def test_blocked_pager_cancels(self):
        events = []
        residual = run_pager_fling(_layout(fraction=0.3), 0.0, lambda d: 0.0,
                                   _recording_callbacks(events))
        assert residual == 0.0
        assert events[-1] == ("end", 0.0, True)

    def test_empty_pager_returns_velocity(self):
        events = []
        residual = run_pager_fling(_layout(size=0.0), 750.0, lambda d: d,
                                   _recording_callbacks(events))
        assert residual == 750.0
        assert events == []

    def test_host_error_cancels(self):
        events = []

        def broken(delta):
            raise RuntimeError("pager detached")

        assert run_pager_fling(_layout(fraction=0.3), 0.0, broken,
                               _recording_callbacks(events)) == 0.0
        assert events[-1] == ("end", 0.0, True)
