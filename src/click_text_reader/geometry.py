"""Integer rectangles in image coordinates."""

from __future__ import annotations

import math
from typing import Iterable, NamedTuple


class Rect(NamedTuple):
    x: int
    y: int
    width: int
    height: int

    @property
    def area(self) -> int:
        return self.width * self.height

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    @property
    def center(self) -> tuple[float, float]:
        return self.x + self.width / 2.0, self.y + self.height / 2.0

    @property
    def aspect_ratio(self) -> float:
        return self.width / max(1, self.height)

    def translated(self, dx: int, dy: int) -> Rect:
        return Rect(self.x + dx, self.y + dy, self.width, self.height)

    def union(self, other: Rect) -> Rect:
        x1 = min(self.x, other.x)
        y1 = min(self.y, other.y)
        x2 = max(self.right, other.right)
        y2 = max(self.bottom, other.bottom)
        return Rect(x1, y1, x2 - x1, y2 - y1)

    def clipped(self, width: int, height: int) -> Rect:
        """Intersect with ``(0, 0, width, height)``.

        A rectangle fully outside the bounds collapses to zero width/height
        at the nearest edge.
        """
        x1 = min(max(self.x, 0), width)
        y1 = min(max(self.y, 0), height)
        x2 = min(max(self.right, 0), width)
        y2 = min(max(self.bottom, 0), height)
        return Rect(x1, y1, max(0, x2 - x1), max(0, y2 - y1))

    def vertical_overlap_ratio(self, other: Rect) -> float:
        """Shared height divided by the smaller of the two heights."""
        top = max(self.y, other.y)
        bottom = min(self.bottom, other.bottom)
        overlap = max(0, bottom - top)
        return overlap / max(1, min(self.height, other.height))


def nearest_to_point(rects: Iterable[Rect], px: float, py: float) -> Rect | None:
    """Return the rectangle whose center is closest to ``(px, py)``."""
    best: Rect | None = None
    best_dist = math.inf
    for r in rects:
        cx, cy = r.center
        dist = math.hypot(cx - px, cy - py)
        if dist < best_dist:
            best_dist = dist
            best = r
    return best
