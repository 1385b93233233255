"""Generate candidate text regions around the point of interest.

The capture is centered on the click, but the click is rarely centered on
the text. Two kinds of passes compensate:

- jittered ROI passes: half-size windows around the frame center, shifted
  by small offsets, each thresholded with every mask variant;
- one full-frame pass with the auto-selected polarity.

All rectangles are pooled in pass order (jittered first, full frame last)
and NOT deduplicated; the selector resolves overlaps by confidence.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Protocol, Sequence

import cv2
import numpy as np

from click_text_reader.errors import ConfigurationError, InputError
from click_text_reader.geometry import Rect
from click_text_reader.region_extractor import ExtractorConfig, extract_regions
from click_text_reader.thresholder import (
    MASK_VARIANT_ORDER,
    MaskVariant,
    ThresholdConfig,
    mask_for_variant,
    select_best_mask,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Candidate origin
# ---------------------------------------------------------------------------

class OriginKind(enum.Enum):
    FULL_FRAME = "full_frame"
    JITTERED_ROI = "jittered_roi"


@dataclass(frozen=True)
class CandidateOrigin:
    """Which pass produced a region, and with which mask."""

    kind: OriginKind
    variant: MaskVariant
    offset: tuple[int, int] | None = None  # (dx, dy) for jittered passes

    def label(self) -> str:
        if self.kind is OriginKind.JITTERED_ROI and self.offset is not None:
            dx, dy = self.offset
            return f"roi({dx:+d},{dy:+d})/{self.variant.value}"
        return f"full/{self.variant.value}"


@dataclass
class SampledRegion:
    rect: Rect  # frame coordinates
    mask: np.ndarray  # mask the rect was found in (window or full frame)
    origin: CandidateOrigin


# ---------------------------------------------------------------------------
# Offset generators
# ---------------------------------------------------------------------------

class OffsetGenerator(Protocol):
    """Source of jitter offsets, each bounded by ``(max_dx, max_dy)``."""

    def offsets(self, count: int, max_dx: int, max_dy: int) -> list[tuple[int, int]]:
        ...


class RandomOffsets:
    """Uniform integer offsets from a (optionally seeded) numpy Generator."""

    def __init__(self, seed: int | None = None) -> None:
        self._rng = np.random.default_rng(seed)

    def offsets(self, count: int, max_dx: int, max_dy: int) -> list[tuple[int, int]]:
        dxs = self._rng.integers(-max_dx, max_dx, size=count, endpoint=True)
        dys = self._rng.integers(-max_dy, max_dy, size=count, endpoint=True)
        return [(int(dx), int(dy)) for dx, dy in zip(dxs, dys)]


class FixedOffsets:
    """Replays a fixed sequence of offsets, cycling when it runs short."""

    def __init__(self, pairs: Sequence[tuple[int, int]]) -> None:
        if not pairs:
            raise ConfigurationError("FixedOffsets needs at least one (dx, dy) pair")
        self._pairs = [(int(dx), int(dy)) for dx, dy in pairs]

    def offsets(self, count: int, max_dx: int, max_dy: int) -> list[tuple[int, int]]:
        out = []
        for i in range(count):
            dx, dy = self._pairs[i % len(self._pairs)]
            out.append((
                max(-max_dx, min(max_dx, dx)),
                max(-max_dy, min(max_dy, dy)),
            ))
        return out


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

@dataclass
class SamplerConfig:
    # Number of jittered ROI passes.
    jitter_count: int = 4
    # Search window size as fraction of the frame.
    window_ratio: float = 0.5
    # Maximum jitter per axis as fraction of frame width / height.
    jitter_ratio: float = 0.05
    # Skip the full-frame pass (jittered passes only).
    full_frame_pass: bool = True

    threshold: ThresholdConfig = field(default_factory=ThresholdConfig)
    roi_extractor: ExtractorConfig = field(default_factory=ExtractorConfig.jittered_roi)
    full_extractor: ExtractorConfig = field(default_factory=ExtractorConfig.full_frame)

    def validate(self) -> None:
        if self.jitter_count < 0:
            raise ConfigurationError(f"jitter_count must be >= 0, got {self.jitter_count}")
        if not 0 < self.window_ratio <= 1:
            raise ConfigurationError(
                f"window_ratio must be in (0, 1], got {self.window_ratio}"
            )
        if not 0 <= self.jitter_ratio <= 0.5:
            raise ConfigurationError(
                f"jitter_ratio must be in [0, 0.5], got {self.jitter_ratio}"
            )
        self.threshold.validate()
        self.roi_extractor.validate()
        self.full_extractor.validate()


# ---------------------------------------------------------------------------
# Sampler
# ---------------------------------------------------------------------------

def jitter_window(
    frame_w: int, frame_h: int, dx: int, dy: int, window_ratio: float = 0.5
) -> Rect:
    """Window of ``window_ratio`` of the frame, centered on center + offset.

    The window is shifted (not shrunk) to stay inside the frame.
    """
    win_w = max(1, int(frame_w * window_ratio))
    win_h = max(1, int(frame_h * window_ratio))
    cx = frame_w // 2 + dx
    cy = frame_h // 2 + dy
    x = min(max(cx - win_w // 2, 0), frame_w - win_w)
    y = min(max(cy - win_h // 2, 0), frame_h - win_h)
    return Rect(x, y, win_w, win_h)


def to_gray(frame: np.ndarray) -> np.ndarray:
    if frame.ndim == 2:
        return frame
    if frame.shape[2] == 4:
        return cv2.cvtColor(frame, cv2.COLOR_BGRA2GRAY)
    return cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY)


class CandidateSampler:
    def __init__(
        self,
        config: SamplerConfig | None = None,
        offsets: OffsetGenerator | None = None,
    ) -> None:
        self._cfg = config or SamplerConfig()
        self._cfg.validate()
        self._offsets = offsets or RandomOffsets()

    @property
    def config(self) -> SamplerConfig:
        return self._cfg

    def sample(self, frame: np.ndarray) -> list[SampledRegion]:
        """Pool candidate regions from all passes, in pass order.

        Raises:
            InputError: if the frame is empty.
        """
        if frame is None or frame.size == 0 or frame.shape[0] == 0 or frame.shape[1] == 0:
            raise InputError("empty frame")

        gray = to_gray(frame)
        pooled: list[SampledRegion] = []

        if self._cfg.jitter_count > 0:
            pooled.extend(self._jittered_passes(gray))

        if self._cfg.full_frame_pass:
            pooled.extend(self._full_frame_pass(gray))

        logger.debug("Sampler pooled %d regions", len(pooled))
        return pooled

    def _jittered_passes(self, gray: np.ndarray) -> list[SampledRegion]:
        cfg = self._cfg
        h, w = gray.shape
        max_dx = int(w * cfg.jitter_ratio)
        max_dy = int(h * cfg.jitter_ratio)

        regions: list[SampledRegion] = []
        for dx, dy in self._offsets.offsets(cfg.jitter_count, max_dx, max_dy):
            win = jitter_window(w, h, dx, dy, cfg.window_ratio)
            roi = gray[win.y : win.bottom, win.x : win.right]
            win_area = float(win.area)

            for variant in MASK_VARIANT_ORDER:
                mask = mask_for_variant(roi, variant, cfg.threshold)
                origin = CandidateOrigin(OriginKind.JITTERED_ROI, variant, (dx, dy))
                for rect in extract_regions(mask, win_area, cfg.roi_extractor):
                    regions.append(SampledRegion(
                        rect=rect.translated(win.x, win.y),
                        mask=mask,
                        origin=origin,
                    ))

        return regions

    def _full_frame_pass(self, gray: np.ndarray) -> list[SampledRegion]:
        cfg = self._cfg
        h, w = gray.shape
        k = cfg.threshold.blur_kernel
        blurred = cv2.GaussianBlur(gray, (k, k), 0) if k > 1 else gray

        mask, variant = select_best_mask(blurred, cfg.threshold)
        origin = CandidateOrigin(OriginKind.FULL_FRAME, variant)
        rects = extract_regions(mask, float(w * h), cfg.full_extractor)
        logger.debug("Full-frame pass: %s mask, %d regions", variant.value, len(rects))
        return [SampledRegion(rect=r, mask=mask, origin=origin) for r in rects]
