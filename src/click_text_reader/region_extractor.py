"""Find text-line rectangles in a binary mask.

Pipeline:
1. Horizontal dilation bridges gaps between glyphs of one word
2. External contours -> bounding boxes
3. Size / aspect filtering
4. Row-aware sort (top-to-bottom, left-to-right)
5. Merge boxes that share a line and sit close together
"""

from __future__ import annotations

import functools
import logging
from dataclasses import dataclass

import cv2
import numpy as np

from click_text_reader.errors import ConfigurationError
from click_text_reader.geometry import Rect

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

@dataclass
class ExtractorConfig:
    """Tunable parameters for region extraction.

    Two presets exist because cropped search windows show glyphs that are
    proportionally larger and noisier than a full frame:
    ``full_frame()`` and ``jittered_roi()``.
    """

    # -- Box filters --
    # Minimum bounding-box area in pixels (inclusive).
    min_area: float = 100.0
    # Maximum bounding-box area as fraction of the searched image area (inclusive).
    max_area_ratio: float = 0.85
    # Width / height bounds (inclusive).
    min_aspect_ratio: float = 0.05
    max_aspect_ratio: float = 20.0
    # Outlines with fewer points are degenerate.
    min_contour_points: int = 3

    # -- Dilation --
    # Estimated character height = max(min_char_height, rows / char_height_divisor).
    char_height_divisor: int = 60
    min_char_height: int = 12
    # Kernel width = max(char_height // 2, min_kernel_width).
    min_kernel_width: int = 8
    # Explicit kernel width; overrides the estimate. 1 disables dilation.
    dilation_width: int | None = None

    # -- Sorting / line merge --
    # Boxes whose tops differ by less than this are on the same row for sorting.
    row_tolerance: int = 10
    # Vertical overlap / min height needed to share a line.
    y_overlap_threshold: float = 0.5
    # Adjacent boxes merge when gap <= x_gap_factor * min height.
    x_gap_factor: float = 0.6

    @classmethod
    def full_frame(cls) -> ExtractorConfig:
        return cls(
            min_area=120.0,
            max_area_ratio=0.85,
            min_aspect_ratio=0.05,
            max_aspect_ratio=20.0,
            char_height_divisor=60,
            y_overlap_threshold=0.5,
            x_gap_factor=0.6,
        )

    @classmethod
    def jittered_roi(cls) -> ExtractorConfig:
        return cls(
            min_area=60.0,
            max_area_ratio=0.75,
            min_aspect_ratio=0.08,
            max_aspect_ratio=15.0,
            char_height_divisor=20,
            y_overlap_threshold=1.0,
            x_gap_factor=0.5,
        )

    def validate(self) -> None:
        if self.min_area < 0:
            raise ConfigurationError(f"min_area must be >= 0, got {self.min_area}")
        if not 0 < self.max_area_ratio <= 1:
            raise ConfigurationError(
                f"max_area_ratio must be in (0, 1], got {self.max_area_ratio}"
            )
        if self.min_aspect_ratio < 0 or self.min_aspect_ratio > self.max_aspect_ratio:
            raise ConfigurationError(
                "aspect bounds must satisfy 0 <= min_aspect_ratio <= max_aspect_ratio"
            )
        if self.char_height_divisor <= 0 or self.min_char_height <= 0:
            raise ConfigurationError("character height estimate must be positive")
        if self.min_kernel_width < 1:
            raise ConfigurationError("min_kernel_width must be >= 1")
        if self.dilation_width is not None and self.dilation_width < 1:
            raise ConfigurationError(
                f"dilation_width must be >= 1, got {self.dilation_width}"
            )
        if self.row_tolerance < 0:
            raise ConfigurationError("row_tolerance must be >= 0")
        if not 0 < self.y_overlap_threshold <= 1:
            raise ConfigurationError(
                f"y_overlap_threshold must be in (0, 1], got {self.y_overlap_threshold}"
            )
        if self.x_gap_factor < 0:
            raise ConfigurationError("x_gap_factor must be >= 0")


# ---------------------------------------------------------------------------
# Filtering
# ---------------------------------------------------------------------------

def dilation_kernel_width(rows: int, cfg: ExtractorConfig) -> int:
    if cfg.dilation_width is not None:
        return cfg.dilation_width
    char_h = max(cfg.min_char_height, rows // cfg.char_height_divisor)
    return max(char_h // 2, cfg.min_kernel_width)


def passes_filters(rect: Rect, image_area: float, cfg: ExtractorConfig) -> bool:
    """Area and aspect-ratio filters. All bounds are inclusive."""
    area = rect.area
    if area < cfg.min_area:
        return False
    if area > image_area * cfg.max_area_ratio:
        return False
    ar = rect.aspect_ratio
    return cfg.min_aspect_ratio <= ar <= cfg.max_aspect_ratio


# ---------------------------------------------------------------------------
# Sorting and line merge
# ---------------------------------------------------------------------------

def sort_reading_order(rects: list[Rect], row_tolerance: int = 10) -> list[Rect]:
    """Sort by top edge; boxes on roughly the same row go left-to-right."""

    def compare(a: Rect, b: Rect) -> int:
        if abs(a.y - b.y) < row_tolerance:
            return (a.x > b.x) - (a.x < b.x)
        return (a.y > b.y) - (a.y < b.y)

    return sorted(rects, key=functools.cmp_to_key(compare))


def _merge_line(line: list[Rect], x_gap_factor: float) -> list[Rect]:
    line = sorted(line, key=lambda r: r.x)
    merged: list[Rect] = []
    cur = line[0]
    for nxt in line[1:]:
        gap = nxt.x - cur.right
        h = min(cur.height, nxt.height)
        if gap <= h * x_gap_factor:
            cur = cur.union(nxt)
        else:
            merged.append(cur)
            cur = nxt
    merged.append(cur)
    return merged


def _merge_pass(
    rects: list[Rect], y_overlap_threshold: float, x_gap_factor: float
) -> list[Rect]:
    """One sweep: group consecutive boxes (by top edge) into lines, then merge."""
    ordered = sorted(rects, key=lambda r: (r.y, r.x, r.height, r.width))
    merged: list[Rect] = []
    line: list[Rect] = []

    for r in ordered:
        if not line:
            line.append(r)
            continue
        # Same line if it overlaps the first box of the current line enough.
        if line[0].vertical_overlap_ratio(r) >= y_overlap_threshold:
            line.append(r)
        else:
            merged.extend(_merge_line(line, x_gap_factor))
            line = [r]

    if line:
        merged.extend(_merge_line(line, x_gap_factor))
    return merged


def merge_line_groups(
    rects: list[Rect],
    y_overlap_threshold: float = 0.5,
    x_gap_factor: float = 0.6,
    row_tolerance: int = 10,
) -> list[Rect]:
    """Merge boxes into line-level rectangles.

    Sweeps repeat until nothing merges, so feeding the output back in
    returns the same set.
    """
    current = list(rects)
    while current:
        nxt = _merge_pass(current, y_overlap_threshold, x_gap_factor)
        if len(nxt) == len(current):
            break
        current = nxt
    return sort_reading_order(current, row_tolerance)


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------

def extract_regions(
    mask: np.ndarray,
    image_area: float,
    config: ExtractorConfig | None = None,
) -> list[Rect]:
    """Return merged line rectangles found in ``mask`` (foreground = 255).

    Args:
        mask: Single-channel binary mask. Not modified.
        image_area: Area the ``max_area_ratio`` filter is relative to.
        config: Extraction parameters. ``ExtractorConfig.full_frame()`` if omitted.
    """
    cfg = config or ExtractorConfig.full_frame()
    if mask is None or mask.size == 0:
        return []

    rows, cols = mask.shape[:2]

    kernel_w = dilation_kernel_width(rows, cfg)
    if kernel_w > 1:
        kernel = cv2.getStructuringElement(cv2.MORPH_RECT, (kernel_w, 1))
        dilated = cv2.dilate(mask, kernel, iterations=1)
    else:
        dilated = mask.copy()

    contours, _ = cv2.findContours(
        dilated, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE
    )

    rects: list[Rect] = []
    for cnt in contours:
        if len(cnt) < cfg.min_contour_points:
            continue
        rect = Rect(*cv2.boundingRect(cnt))
        if not passes_filters(rect, image_area, cfg):
            continue
        rects.append(rect)

    rects = sort_reading_order(rects, cfg.row_tolerance)
    merged = merge_line_groups(
        rects, cfg.y_overlap_threshold, cfg.x_gap_factor, cfg.row_tolerance
    )

    result = []
    for r in merged:
        clipped = r.clipped(cols, rows)
        if clipped.width > 0 and clipped.height > 0:
            result.append(clipped)

    logger.debug(
        "extract_regions: %d contours, %d boxes, %d lines (kernel=%d)",
        len(contours), len(rects), len(result), kernel_w,
    )
    return result
