"""
ScrollController — headless host for fling gestures.

Owns a fling configuration, a display density, a spline table cache and a
ScrollSurface (the scrollable content). Every simulate_* call runs one whole
gesture against a copy of the surface and reports what happened:

  ctrl = ScrollController(surface=ScrollSurface(5000, 800, item_sizes=(200,) * 25))
  result = ctrl.simulate_fling(2400.0, snap=SnapConfig(), mode=SnapMode.SMOOTH_FUSION)
  ctrl.set_offset(result["offset"])

Results are plain dicts and depend only on the inputs.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import List, Optional, Tuple

import numpy as np

from adaptive_fling import AdaptiveMode, run_adaptive_fling
from fling_calculator import FlingCalculator
from fling_config import FlingConfiguration, DEFAULT_CONFIGURATION
from fling_driver import FlingCallbacks, run_fling
from fling_spline import SplineTableCache
from pager_settle import PagerConfig, PagerLayout, STANDARD_PAGER, run_pager_fling
from snap_fusion import SnapConfig, SnapItem, SnapLayout, SnapMode, Viewport, run_snap_fusion

logger = logging.getLogger(__name__)


# ──────────────────────────────────────────────
# Scroll surface
# ──────────────────────────────────────────────
@dataclass
class ScrollSurface:
    """Scrollable content of `content_length` seen through a `viewport_size` window.

    Items (optional) are laid out back to back from offset 0. A positive
    delta scrolls content forward (increases `offset`).
    """
    content_length: float
    viewport_size: float
    item_sizes: Tuple[float, ...] = ()
    offset: float = 0.0

    def __post_init__(self):
        if self.viewport_size <= 0:
            raise ValueError(f"viewport_size must be > 0, got {self.viewport_size!r}")
        if self.content_length < 0:
            raise ValueError(f"content_length must be >= 0, got {self.content_length!r}")
        self.item_sizes = tuple(float(s) for s in self.item_sizes)
        self.offset = self._clamp(self.offset)

    @property
    def max_offset(self) -> float:
        return max(self.content_length - self.viewport_size, 0.0)

    def _clamp(self, offset: float) -> float:
        return min(max(float(offset), 0.0), self.max_offset)

    def consume(self, delta: float) -> float:
        """Scroll by `delta`; returns the part that fit inside the content bounds."""
        new_offset = self._clamp(self.offset + delta)
        applied = new_offset - self.offset
        self.offset = new_offset
        return applied

    def item_offsets(self) -> np.ndarray:
        sizes = np.asarray(self.item_sizes, dtype=float)
        return np.concatenate(([0.0], np.cumsum(sizes)[:-1])) if sizes.size else sizes

    def snap_layout(self) -> SnapLayout:
        """Items intersecting the viewport, in viewport coordinates."""
        items = []
        for start, size in zip(self.item_offsets(), self.item_sizes):
            relative = float(start) - self.offset
            if relative + size > 0.0 and relative < self.viewport_size:
                items.append(SnapItem(relative, size))
        return SnapLayout(tuple(items), Viewport(0.0, self.viewport_size))

    def pager_layout(self) -> PagerLayout:
        """The surface as a pager with one page per viewport."""
        page_size = self.viewport_size
        page_count = max(int(np.ceil(self.content_length / page_size)), 1)
        page = min(int(round(self.offset / page_size)), page_count - 1)
        fraction = (self.offset - page * page_size) / page_size
        return PagerLayout(page, fraction, page_size, page_count)

    def copy(self) -> "ScrollSurface":
        return replace(self)


# ──────────────────────────────────────────────
# Recording hooks
# ──────────────────────────────────────────────
@dataclass
class _Recorder:
    started: bool = False
    progress: List[float] = field(default_factory=list)
    velocities: List[float] = field(default_factory=list)
    ended: int = 0
    total_consumed: float = 0.0
    cancelled: bool = False

    def _on_start(self, velocity: float) -> None:
        self.started = True

    def _on_progress(self, progress: float, velocity: float) -> None:
        self.progress.append(progress)
        self.velocities.append(velocity)

    def _on_end(self, total_consumed: float, cancelled: bool) -> None:
        self.ended += 1
        self.total_consumed = total_consumed
        self.cancelled = cancelled

    def callbacks(self) -> FlingCallbacks:
        return FlingCallbacks(self._on_start, self._on_progress, self._on_end)


class ScrollController:
    """Runs fling gestures headlessly against a ScrollSurface."""

    DEFAULT_FRAME_MS = 16.0

    def __init__(self, config: FlingConfiguration = DEFAULT_CONFIGURATION,
                 density: float = 1.0,
                 cache: Optional[SplineTableCache] = None,
                 surface: Optional[ScrollSurface] = None):
        self.config = config
        self.density = float(density)
        self.cache = cache if cache is not None else SplineTableCache()
        self.surface = surface if surface is not None else ScrollSurface(10_000.0, 1_000.0)
        self.calculator = FlingCalculator(config, self.density, cache=self.cache)

    # ──────────────────────────────────────────────────────────────────────────
    # Gestures
    # ──────────────────────────────────────────────────────────────────────────

    def simulate_fling(self, velocity: float, *,
                       snap: Optional[SnapConfig] = None,
                       mode: SnapMode = SnapMode.STANDARD,
                       frame_ms: float = DEFAULT_FRAME_MS) -> dict:
        """Fling the surface and report the outcome.

        Non-destructive: runs on a copy, ``self.surface`` is not moved.

        Args:
            velocity: Release velocity in units per second.
            snap:     Snap configuration; ``None`` runs a plain fling.
            mode:     Snap handover mode (ignored for plain flings).
            frame_ms: Frame interval of the simulated animation clock.

        Returns:
            ``dict`` with keys:

            residual_velocity (float)
                Unconsumed velocity (always 0 for snapping flings).
            offset (float)
                Final scroll offset of the surface copy.
            total_consumed (float)
                Absolute distance actually scrolled.
            cancelled (bool)
                True if the gesture stopped at a content boundary.
            ticks (int)
                Number of progress reports.
            progress (list[float])
                Progress values in report order.
        """
        surface = self.surface.copy()
        recorder = _Recorder()
        trajectory = self.calculator.fling_info(velocity)

        if snap is None:
            residual = run_fling(trajectory, surface.consume, recorder.callbacks(),
                                 frame_ms=frame_ms)
        else:
            residual = run_snap_fusion(trajectory, surface.consume, surface.snap_layout,
                                       mode, recorder.callbacks(),
                                       config=snap, frame_ms=frame_ms)
        return self._result(residual, surface, recorder)

    def simulate_adaptive_fling(self, velocity: float, mode: AdaptiveMode = AdaptiveMode.BALANCED,
                                *, frame_ms: float = DEFAULT_FRAME_MS) -> dict:
        """Like simulate_fling, with the configuration picked by `mode`."""
        surface = self.surface.copy()
        recorder = _Recorder()
        residual = run_adaptive_fling(velocity, surface.consume, mode, recorder.callbacks(),
                                      density=self.density, cache=self.cache,
                                      frame_ms=frame_ms)
        return self._result(residual, surface, recorder)

    def simulate_page_fling(self, velocity: float, config: PagerConfig = STANDARD_PAGER,
                            *, frame_ms: float = DEFAULT_FRAME_MS) -> dict:
        """Settle the surface, treated as a pager, on a page boundary.

        `velocity` uses the drag convention of `run_pager_fling`: positive
        turns back a page, negative turns forward, the opposite sign of
        `simulate_fling`.
        """
        surface = self.surface.copy()
        recorder = _Recorder()
        layout = surface.pager_layout()
        residual = run_pager_fling(layout, velocity, surface.consume, recorder.callbacks(),
                                   config=config, frame_ms=frame_ms)
        result = self._result(residual, surface, recorder)
        result["page"] = surface.pager_layout().current_page
        return result

    # ──────────────────────────────────────────────────────────────────────────
    # Surface state
    # ──────────────────────────────────────────────────────────────────────────

    def set_offset(self, offset: float) -> "ScrollController":
        """Move the real surface (clamped). Returns ``self`` for chaining."""
        self.surface.offset = self.surface._clamp(offset)
        return self

    def _result(self, residual: float, surface: ScrollSurface, recorder: _Recorder) -> dict:
        result = {
            "residual_velocity": float(residual),
            "offset":            surface.offset,
            "total_consumed":    recorder.total_consumed,
            "cancelled":         recorder.cancelled,
            "ticks":             len(recorder.progress),
            "progress":          list(recorder.progress),
        }
        logger.debug("gesture result offset=%.1f residual=%.1f ticks=%d cancelled=%s",
                     result["offset"], result["residual_velocity"], result["ticks"],
                     result["cancelled"])
        return result
