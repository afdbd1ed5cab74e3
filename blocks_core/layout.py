"""Region layout and focus order.

Below the breakpoint the three regions stack vertically (top, middle,
bottom). At or above it they split into a narrow left column (top and
bottom halves) and a wide right pane. The preview slot is ``right`` or
``bottom``; which window fills it depends on the mode.
"""

from typing import NamedTuple

from blocks_core.config import (
    MODAL_MAX_HEIGHT,
    MODAL_MAX_WIDTH,
    MODAL_PADDING,
    REGION_BOTTOM,
    REGION_LEFT_BOTTOM,
    REGION_LEFT_TOP,
    REGION_MIDDLE,
    REGION_RIGHT,
    REGION_TOP,
    WINDOW_COMMIT_LIST,
    WINDOW_DIFF_VIEW,
    WINDOW_FILE_LIST,
)

STATUS_BAR_HEIGHT = 1

# Commit list shows at most 8 commits plus its border
COMMIT_REGION_MAX_HEIGHT = 10


class Rect(NamedTuple):
    x: int
    y: int
    width: int
    height: int


class LayoutComposer:
    """Tracks terminal size, the region set and region-to-window assignment."""

    def __init__(self, breakpoint: int = 80, left_ratio: int = 30):
        self.breakpoint = breakpoint
        self.left_ratio = left_ratio
        self.width = 0
        self.height = 0
        self.preview_window = WINDOW_DIFF_VIEW

    @property
    def stacked(self) -> bool:
        return self.width < self.breakpoint

    @property
    def preview_region(self) -> str:
        return REGION_BOTTOM if self.stacked else REGION_RIGHT

    def resize(self, width: int, height: int) -> bool:
        """Record a new size. Returns True if the breakpoint was crossed."""
        was_stacked = self.stacked
        self.width = width
        self.height = height
        return was_stacked != self.stacked

    def set_preview(self, window_id: str) -> None:
        self.preview_window = window_id

    def assignments(self) -> dict[str, str]:
        if self.stacked:
            return {
                REGION_TOP: WINDOW_FILE_LIST,
                REGION_MIDDLE: WINDOW_COMMIT_LIST,
                REGION_BOTTOM: self.preview_window,
            }
        return {
            REGION_LEFT_TOP: WINDOW_FILE_LIST,
            REGION_LEFT_BOTTOM: WINDOW_COMMIT_LIST,
            REGION_RIGHT: self.preview_window,
        }

    def assigned_windows(self) -> set[str]:
        return set(self.assignments().values())

    def focus_order(self) -> list[str]:
        """Live focus cycle: file list, commit list, current preview."""
        return [WINDOW_FILE_LIST, WINDOW_COMMIT_LIST, self.preview_window]

    def regions(self) -> dict[str, Rect]:
        """Geometry of each region in the current region set."""
        w = max(0, self.width)
        avail = max(0, self.height - STATUS_BAR_HEIGHT)
        if self.stacked:
            middle_h = min(COMMIT_REGION_MAX_HEIGHT, avail // 4)
            top_h = (avail - middle_h) * 2 // 5
            bottom_h = avail - top_h - middle_h
            return {
                REGION_TOP: Rect(0, 0, w, top_h),
                REGION_MIDDLE: Rect(0, top_h, w, middle_h),
                REGION_BOTTOM: Rect(0, top_h + middle_h, w, bottom_h),
            }
        left_w = w * self.left_ratio // 100
        bottom_h = min(COMMIT_REGION_MAX_HEIGHT, avail // 3)
        top_h = avail - bottom_h
        return {
            REGION_LEFT_TOP: Rect(0, 0, left_w, top_h),
            REGION_LEFT_BOTTOM: Rect(0, top_h, left_w, bottom_h),
            REGION_RIGHT: Rect(left_w, 0, w - left_w, avail),
        }

    def window_rects(self) -> dict[str, Rect]:
        regions = self.regions()
        return {window: regions[region] for region, window in self.assignments().items()}

    def modal_rect(self) -> Rect:
        mw = max(0, min(MODAL_MAX_WIDTH, self.width - MODAL_PADDING))
        mh = max(0, min(MODAL_MAX_HEIGHT, self.height - MODAL_PADDING))
        return Rect((self.width - mw) // 2, (self.height - mh) // 2, mw, mh)

    def too_small(self, min_sizes: dict[str, tuple[int, int]]) -> list[str]:
        """Windows whose assigned rect is below their declared minimum size."""
        rects = self.window_rects()
        small = []
        for window, rect in rects.items():
            min_w, min_h = min_sizes.get(window, (0, 0))
            if rect.width < min_w or rect.height < min_h:
                small.append(window)
        return small
