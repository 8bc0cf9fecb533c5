"""
Controller tests: headless gesture determinism and the scroll surface.
"""

import sys
import os
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from adaptive_fling import AdaptiveMode
from fling_config import DEFAULT_CONFIGURATION
from fling_spline import SplineTableCache
from pager_settle import STANDARD_PAGER
from scroll_controller import ScrollController, ScrollSurface
from snap_fusion import SnapConfig, SnapMode, SnapPosition


def _surface(offset=0.0):
    return ScrollSurface(5000.0, 800.0, item_sizes=(200.0,) * 25, offset=offset)


def _controller(offset=0.0, cache=None):
    return ScrollController(DEFAULT_CONFIGURATION, 1.0, cache, _surface(offset))


class TestDeterminism:

    @pytest.mark.parametrize("snap,mode", [
        (None, SnapMode.STANDARD),
        (SnapConfig(), SnapMode.STANDARD),
        (SnapConfig(snap_position=SnapPosition.CENTER), SnapMode.SMOOTH_FUSION),
    ])
    def test_identical_inputs_identical_results(self, snap, mode):
        res1 = _controller(1000.0).simulate_fling(2200.0, snap=snap, mode=mode)
        res2 = _controller(1000.0).simulate_fling(2200.0, snap=snap, mode=mode)
        assert res1 == res2

    def test_repeated_gestures_on_one_controller(self):
        ctrl = _controller(1000.0)
        assert ctrl.simulate_fling(-1500.0) == ctrl.simulate_fling(-1500.0)

    def test_shared_cache_does_not_change_results(self):
        cache = SplineTableCache()
        shared = _controller(cache=cache).simulate_fling(1800.0)
        private = _controller().simulate_fling(1800.0)
        assert shared == private


class TestSimulateFling:

    def test_result_keys(self):
        result = _controller().simulate_fling(1000.0)
        assert set(result) == {
            "residual_velocity", "offset", "total_consumed", "cancelled", "ticks", "progress",
        }
        assert result["ticks"] == len(result["progress"])

    def test_non_destructive(self):
        ctrl = _controller(300.0)
        ctrl.simulate_fling(3000.0, snap=SnapConfig())
        assert ctrl.surface.offset == 300.0

    def test_plain_fling_travels_its_distance(self):
        ctrl = _controller(1000.0)
        result = ctrl.simulate_fling(2000.0)
        distance = ctrl.calculator.fling_distance(2000.0)
        assert result["offset"] == pytest.approx(1000.0 + distance)
        assert result["total_consumed"] == pytest.approx(distance)
        assert result["residual_velocity"] == 0.0
        assert result["cancelled"] is False

    def test_velocity_threshold_stops_fling_short(self):
        full = _controller(1000.0).simulate_fling(2000.0)
        config = DEFAULT_CONFIGURATION.with_overrides(abs_velocity_threshold=800.0)
        early = ScrollController(config, 1.0, None, _surface(1000.0)).simulate_fling(2000.0)
        assert early["ticks"] < full["ticks"]
        assert 1000.0 < early["offset"] < full["offset"]
        assert early["cancelled"] is False

    def test_fling_into_end_of_content(self):
        result = _controller(4100.0).simulate_fling(3000.0)
        assert result["offset"] == 4200.0
        assert result["cancelled"] is True
        assert result["residual_velocity"] > 0.0

    @pytest.mark.parametrize("mode", [SnapMode.STANDARD, SnapMode.SMOOTH_FUSION])
    def test_snapping_fling_lands_on_item(self, mode):
        result = _controller(1000.0).simulate_fling(2600.0, snap=SnapConfig(), mode=mode)
        rem = result["offset"] % 200.0
        assert min(rem, 200.0 - rem) < 1e-6, f"offset={result['offset']}"
        assert result["residual_velocity"] == 0.0

    def test_set_offset_clamps(self):
        ctrl = _controller()
        assert ctrl.set_offset(99999.0).surface.offset == 4200.0
        assert ctrl.set_offset(-5.0).surface.offset == 0.0


class TestOtherGestures:

    def test_adaptive_fling(self):
        ctrl = _controller(1000.0)
        gentle = ctrl.simulate_adaptive_fling(1400.0, AdaptiveMode.BALANCED)
        aggressive = ctrl.simulate_adaptive_fling(1600.0, AdaptiveMode.BALANCED)
        assert gentle["offset"] - 1000.0 < aggressive["offset"] - 1000.0
        assert len(ctrl.cache) == 3  # default + gentle + aggressive

    def test_page_fling_turns_one_page(self):
        ctrl = ScrollController(surface=ScrollSurface(8000.0, 800.0, offset=1600.0))
        result = ctrl.simulate_page_fling(-2000.0, STANDARD_PAGER)
        assert result["page"] == 3
        assert result["offset"] == pytest.approx(2400.0)
        assert result["residual_velocity"] == 0.0

    def test_slow_page_fling_snaps_back(self):
        ctrl = ScrollController(surface=ScrollSurface(8000.0, 800.0, offset=1750.0))
        result = ctrl.simulate_page_fling(50.0)
        assert result["page"] == 2
        assert result["offset"] == pytest.approx(1600.0)


class TestScrollSurface:

    def test_consume_clamps(self):
        surface = _surface(4150.0)
        assert surface.consume(100.0) == pytest.approx(50.0)
        assert surface.offset == 4200.0
        assert surface.consume(-5000.0) == pytest.approx(-4200.0)
        assert surface.offset == 0.0

    def test_initial_offset_clamped(self):
        assert _surface(-10.0).offset == 0.0

    def test_snap_layout_in_viewport_coordinates(self):
        layout = _surface(250.0).snap_layout()
        assert layout.viewport.start == 0.0 and layout.viewport.end == 800.0
        offsets = [item.offset for item in layout.items]
        assert offsets == [-50.0, 150.0, 350.0, 550.0, 750.0]

    def test_no_items(self):
        assert ScrollSurface(3000.0, 800.0).snap_layout().items == ()

    def test_pager_layout(self):
        layout = ScrollSurface(8000.0, 800.0, offset=1750.0).pager_layout()
        assert layout.current_page == 2
        assert layout.page_offset_fraction == pytest.approx(150.0 / 800.0)
        assert layout.page_count == 10

    def test_invalid_viewport(self):
        with pytest.raises(ValueError):
            ScrollSurface(1000.0, 0.0)
