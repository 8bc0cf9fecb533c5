"""
Pager settle: fling a paged surface to a page boundary.

The release velocity only picks the target page and seeds the spring; the
motion itself is always a spring settle, so a pager fling returns 0.
"""

import logging
from dataclasses import dataclass, field

from decay_spec import DEFAULT_FRAME_MS
from fling_config import FlingConfiguration
from fling_driver import FlingCallbacks, NO_CALLBACKS, ConsumeFn, clamp01
from settle_motion import SpringSpec, settle_frames

logger = logging.getLogger(__name__)

SNAP_VELOCITY_THRESHOLD: float = 400.0
PAGE_TURN_FRACTION: float = 0.5
# Deltas at or below this never count as blocked.
MIN_BLOCKED_DELTA: float = 0.1
BLOCKED_EPSILON: float = 0.5

LOW_VELOCITY_SPRING = SpringSpec(stiffness=1500.0, damping_ratio=1.0)
HIGH_VELOCITY_SPRING = SpringSpec(stiffness=400.0, damping_ratio=0.75)


@dataclass(frozen=True)
class PagerLayout:
    current_page: int
    page_offset_fraction: float  # -0.5..0.5 normally; sign follows the scroll direction
    page_size: float
    page_count: int


@dataclass(frozen=True)
class PagerConfig:
    """Page-turn feel: fling friction, turn threshold and settle springs."""
    fling_configuration: FlingConfiguration = field(
        default_factory=lambda: FlingConfiguration(scroll_friction=0.015,
                                                   deceleration_friction=0.12))
    snap_velocity_threshold: float = SNAP_VELOCITY_THRESHOLD
    low_velocity_spring: SpringSpec = LOW_VELOCITY_SPRING
    high_velocity_spring: SpringSpec = HIGH_VELOCITY_SPRING

    def spring_for(self, velocity: float) -> SpringSpec:
        if abs(velocity) >= self.snap_velocity_threshold:
            return self.high_velocity_spring
        return self.low_velocity_spring


STANDARD_PAGER = PagerConfig()


def target_page(layout: PagerLayout, velocity: float,
                threshold: float = SNAP_VELOCITY_THRESHOLD) -> int:
    """Page the fling settles on.

    A fast fling turns one page against the velocity sign (positive velocity
    goes back a page); a slow one turns only if the page is dragged past its
    midpoint.
    """
    last_page = layout.page_count - 1
    page = layout.current_page
    if abs(velocity) >= threshold:
        if velocity > 0:
            return max(page - 1, 0)
        return min(page + 1, last_page)
    fraction = layout.page_offset_fraction
    if abs(fraction) > PAGE_TURN_FRACTION:
        if fraction > 0:
            return min(page + 1, last_page)
        return max(page - 1, 0)
    return page


def page_settle_offset(layout: PagerLayout, page: int) -> float:
    """Scroll delta from the current position to the leading edge of `page`."""
    fraction = layout.page_offset_fraction
    if page > layout.current_page:
        return (1.0 - fraction) * layout.page_size
    if page < layout.current_page:
        return (-1.0 - fraction) * layout.page_size
    return -fraction * layout.page_size


def run_pager_fling(layout: PagerLayout, velocity: float, consume: ConsumeFn,
                    callbacks: FlingCallbacks = NO_CALLBACKS, *,
                    config: PagerConfig = STANDARD_PAGER,
                    frame_ms: float = DEFAULT_FRAME_MS) -> float:
    """Settle a pager onto the page chosen by `target_page`.

    `velocity` is the drag velocity of the gesture, not a scroll velocity:
    positive velocity turns back a page, so its sign is opposite to the
    deltas handed to `consume` (positive delta scrolls forward). The settle
    spring is still seeded with `velocity` as given, so after a fast fling
    the first frames move against the target before the spring turns round.

    Returns:
        0, or `velocity` unchanged (and no hooks) when the page size is not
        positive.
    """
    if layout.page_size <= 0:
        return velocity

    callbacks.notify_start(velocity)
    page = target_page(layout, velocity, config.snap_velocity_threshold)
    offset = page_settle_offset(layout, page)
    motion = config.spring_for(velocity).motion(offset, velocity)
    logger.debug("pager settle page %d -> %d offset=%.1f v=%.1f",
                 layout.current_page, page, offset, velocity)

    last_value = 0.0
    total_consumed = 0.0
    cancelled = False
    try:
        for frame in settle_frames(motion, frame_ms):
            delta = frame.value - last_value
            consumed = consume(delta)
            last_value = frame.value
            total_consumed += abs(consumed)

            if abs(offset) > MIN_BLOCKED_DELTA:
                progress = clamp01(abs(last_value) / abs(offset))
            else:
                progress = 1.0
            callbacks.notify_progress(progress, frame.velocity)

            if abs(delta) > MIN_BLOCKED_DELTA and abs(delta - consumed) > BLOCKED_EPSILON:
                cancelled = True
                break
    except Exception:
        logger.warning("pager settle aborted by host error", exc_info=True)
        cancelled = True

    callbacks.notify_end(total_consumed, cancelled)
    return 0.0
