"""Shared synthetic frames.

Frames are drawn with OpenCV's Hershey font so no system fonts are needed.
"""

from __future__ import annotations

import cv2
import numpy as np
import pytest

from click_text_reader.geometry import Rect
from click_text_reader.selector import Recognition


def make_text_frame(
    text: str,
    width: int = 300,
    height: int = 100,
    bg: int = 255,
    fg: int = 0,
    scale: float = 1.5,
    thickness: int = 3,
) -> tuple[np.ndarray, Rect]:
    """BGR frame with ``text`` centered. Returns (frame, glyph bounding box)."""
    frame = np.full((height, width, 3), bg, dtype=np.uint8)
    font = cv2.FONT_HERSHEY_SIMPLEX
    (tw, th), _ = cv2.getTextSize(text, font, scale, thickness)
    org = ((width - tw) // 2, (height + th) // 2)
    cv2.putText(frame, text, org, font, scale, (fg, fg, fg), thickness, cv2.LINE_8)

    ys, xs = np.where(frame[:, :, 0] != bg)
    glyphs = Rect(int(xs.min()), int(ys.min()),
                  int(xs.max() - xs.min() + 1), int(ys.max() - ys.min() + 1))
    return frame, glyphs


class FakeRecognizer:
    """Returns a fixed recognition and counts calls."""

    def __init__(self, text: str = "OK", confidence: float = 91.0) -> None:
        self.text = text
        self.confidence = confidence
        self.calls = 0

    def recognize(self, image: np.ndarray) -> Recognition:
        self.calls += 1
        return Recognition(self.text, self.confidence)


@pytest.fixture
def ok_frame() -> tuple[np.ndarray, Rect]:
    return make_text_frame("OK")


@pytest.fixture
def blank_frame() -> np.ndarray:
    return np.full((100, 300, 3), 200, dtype=np.uint8)


@pytest.fixture
def text_frame():
    return make_text_frame


@pytest.fixture
def fake_recognizer():
    return FakeRecognizer
