"""Letterboxed screen capture around a point.

The requested rectangle is always returned as a fixed-size canvas. Parts of
it that fall outside the virtual desktop are filled with a pad color, so the
canvas center stays on the requested point even at screen edges.
``CanvasTransform`` maps canvas pixels back to screen pixels.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from click_text_reader.errors import ConfigurationError
from click_text_reader.geometry import Rect


@dataclass(frozen=True)
class CanvasTransform:
    """Canvas -> source (screen) coordinates: ``src = offset + canvas * scale``."""

    offset_x: float = 0.0
    offset_y: float = 0.0
    scale_x: float = 1.0
    scale_y: float = 1.0

    def to_source(self, x: float, y: float) -> tuple[float, float]:
        return self.offset_x + x * self.scale_x, self.offset_y + y * self.scale_y

    def rect_to_source(self, rect: Rect) -> Rect:
        x1, y1 = self.to_source(rect.x, rect.y)
        x2, y2 = self.to_source(rect.right, rect.bottom)
        return Rect(round(x1), round(y1), round(x2 - x1), round(y2 - y1))


@dataclass
class CapturedFrame:
    image: np.ndarray  # BGR, (height, width, 3)
    transform: CanvasTransform


@dataclass(frozen=True)
class CapturePlan:
    """Where the on-screen part of a request lands in the canvas."""

    request: Rect  # requested rectangle, screen coordinates
    source: Rect  # part of the request that is on screen
    dest_x: int  # canvas position of ``source``
    dest_y: int


def plan_capture(
    center_x: int,
    center_y: int,
    width: int,
    height: int,
    screen: Rect,
) -> CapturePlan:
    """Intersect the requested rectangle with the virtual desktop."""
    if width <= 0 or height <= 0:
        raise ConfigurationError(f"capture size must be positive, got {width}x{height}")

    left = center_x - width // 2
    top = center_y - height // 2
    request = Rect(left, top, width, height)

    src_left = max(left, screen.x)
    src_top = max(top, screen.y)
    src_right = min(request.right, screen.right)
    src_bottom = min(request.bottom, screen.bottom)

    source = Rect(
        src_left, src_top,
        max(0, src_right - src_left), max(0, src_bottom - src_top),
    )
    return CapturePlan(
        request=request,
        source=source,
        dest_x=src_left - left,
        dest_y=src_top - top,
    )


def virtual_screen(sct) -> Rect:
    """Bounds of the whole virtual desktop (mss monitor 0)."""
    mon = sct.monitors[0]
    return Rect(int(mon["left"]), int(mon["top"]), int(mon["width"]), int(mon["height"]))


def capture_around(
    sct,
    center_x: int,
    center_y: int,
    width: int = 300,
    height: int = 150,
    pad: tuple[int, int, int] = (0, 0, 0),
) -> CapturedFrame:
    """Grab a ``width`` x ``height`` BGR canvas centered on ``(center_x, center_y)``.

    Args:
        sct: An open ``mss.mss()`` instance.
        pad: BGR color for canvas pixels outside the virtual desktop.
    """
    plan = plan_capture(center_x, center_y, width, height, virtual_screen(sct))

    canvas = np.empty((height, width, 3), dtype=np.uint8)
    canvas[:, :] = pad

    src = plan.source
    if src.width > 0 and src.height > 0:
        monitor = {
            "left": src.x,
            "top": src.y,
            "width": src.width,
            "height": src.height,
        }
        shot = np.array(sct.grab(monitor), dtype=np.uint8)
        # BGRA -> BGR
        canvas[
            plan.dest_y : plan.dest_y + src.height,
            plan.dest_x : plan.dest_x + src.width,
        ] = shot[:, :, :3]

    transform = CanvasTransform(offset_x=plan.request.x, offset_y=plan.request.y)
    return CapturedFrame(image=canvas, transform=transform)
