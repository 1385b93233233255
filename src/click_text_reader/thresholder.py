"""Binary foreground masks from a grayscale image.

Three strategies are applied in a fixed order (see ``MASK_VARIANT_ORDER``):

1. POSITIVE    -- mean adaptive threshold, bright pixels are foreground
2. INVERTED    -- the same threshold, dark pixels are foreground
3. LOCAL_STATS -- Sauvola-style threshold from local mean and stddev,
                  robust to uneven illumination

Text can be dark-on-light or light-on-dark, so callers either run every
variant or let ``select_best_mask`` pick a polarity via the mask quality
score.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

import cv2
import numpy as np

from click_text_reader.errors import ConfigurationError


class MaskVariant(enum.Enum):
    POSITIVE = "positive"
    INVERTED = "inverted"
    LOCAL_STATS = "local_stats"


MASK_VARIANT_ORDER: tuple[MaskVariant, ...] = (
    MaskVariant.POSITIVE,
    MaskVariant.INVERTED,
    MaskVariant.LOCAL_STATS,
)


@dataclass
class ThresholdConfig:
    """Parameters shared by all thresholding strategies."""

    # Neighbourhood size (odd, >= 3) for adaptive and local-statistics thresholds.
    block_size: int = 21
    # Constant subtracted from the local mean in the adaptive threshold.
    c: float = 10.0
    # Sauvola text sensitivity.
    sauvola_k: float = 0.2
    # Sauvola expected dynamic range of the standard deviation.
    sauvola_r: float = 128.0
    # Gaussian blur kernel applied before the full-frame threshold (odd, 1 = off).
    blur_kernel: int = 3

    # Components counted by the quality score must be at least this big.
    score_min_side: int = 2
    score_min_aspect: float = 0.15
    score_max_aspect: float = 15.0

    def validate(self) -> None:
        if self.block_size < 3 or self.block_size % 2 == 0:
            raise ConfigurationError(
                f"block_size must be odd and >= 3, got {self.block_size}"
            )
        if self.sauvola_r <= 0:
            raise ConfigurationError(f"sauvola_r must be positive, got {self.sauvola_r}")
        if self.blur_kernel < 1 or self.blur_kernel % 2 == 0:
            raise ConfigurationError(
                f"blur_kernel must be odd and >= 1, got {self.blur_kernel}"
            )
        if self.score_min_aspect > self.score_max_aspect:
            raise ConfigurationError("score_min_aspect must not exceed score_max_aspect")


@dataclass(frozen=True)
class BinaryMasks:
    positive: np.ndarray
    inverted: np.ndarray


def _check_block_size(block_size: int) -> None:
    if block_size < 3 or block_size % 2 == 0:
        raise ConfigurationError(f"block_size must be odd and >= 3, got {block_size}")


def binarize(gray: np.ndarray, block_size: int = 21, c: float = 10.0) -> BinaryMasks:
    """Mean adaptive threshold in both polarities.

    ``positive`` marks pixels brighter than ``local_mean - c``;
    ``inverted`` is its exact complement (dark text becomes foreground).
    """
    _check_block_size(block_size)
    positive = cv2.adaptiveThreshold(
        gray, 255, cv2.ADAPTIVE_THRESH_MEAN_C, cv2.THRESH_BINARY, block_size, c
    )
    inverted = cv2.adaptiveThreshold(
        gray, 255, cv2.ADAPTIVE_THRESH_MEAN_C, cv2.THRESH_BINARY_INV, block_size, c
    )
    return BinaryMasks(positive=positive, inverted=inverted)


def local_stats_threshold(
    gray: np.ndarray,
    block_size: int = 21,
    k: float = 0.2,
    r: float = 128.0,
) -> np.ndarray:
    """Sauvola threshold: foreground where ``pixel > mean * (1 + k * (std / r - 1))``."""
    _check_block_size(block_size)
    if r <= 0:
        raise ConfigurationError(f"r must be positive, got {r}")

    f = gray.astype(np.float32)
    win = (block_size, block_size)
    mean = cv2.boxFilter(f, cv2.CV_32F, win, normalize=True)
    sq_mean = cv2.boxFilter(f * f, cv2.CV_32F, win, normalize=True)
    std = np.sqrt(np.maximum(sq_mean - mean * mean, 0.0))
    thresh = mean * (1.0 + k * (std / r - 1.0))
    return (f > thresh).astype(np.uint8) * 255


def mask_for_variant(
    gray: np.ndarray, variant: MaskVariant, cfg: ThresholdConfig
) -> np.ndarray:
    if variant is MaskVariant.LOCAL_STATS:
        return local_stats_threshold(gray, cfg.block_size, cfg.sauvola_k, cfg.sauvola_r)
    masks = binarize(gray, cfg.block_size, cfg.c)
    return masks.positive if variant is MaskVariant.POSITIVE else masks.inverted


def mask_quality_score(mask: np.ndarray, cfg: ThresholdConfig | None = None) -> float:
    """Score how text-like a mask looks.

    10 points per plausibly glyph-shaped component plus a brightness-balance
    term that peaks when half of the mask is foreground.
    """
    cfg = cfg or ThresholdConfig()
    num_labels, _, stats, _ = cv2.connectedComponentsWithStats(mask, connectivity=8)

    count = 0
    for i in range(1, num_labels):
        w = int(stats[i, cv2.CC_STAT_WIDTH])
        h = int(stats[i, cv2.CC_STAT_HEIGHT])
        if w < cfg.score_min_side or h < cfg.score_min_side:
            continue
        aspect = w / h
        if cfg.score_min_aspect <= aspect <= cfg.score_max_aspect:
            count += 1

    mean_val = float(np.mean(mask)) if mask.size else 0.0
    balance = max(0.0, 255.0 - 2.0 * abs(mean_val - 127.5))
    return 10.0 * count + balance


def select_best_mask(
    gray: np.ndarray, cfg: ThresholdConfig | None = None
) -> tuple[np.ndarray, MaskVariant]:
    """Pick the better of the two adaptive-threshold polarities.

    INVERTED is scored first, so on a tie dark-on-light text wins.
    """
    cfg = cfg or ThresholdConfig()
    masks = binarize(gray, cfg.block_size, cfg.c)

    best_mask = masks.inverted
    best_variant = MaskVariant.INVERTED
    best_score = mask_quality_score(masks.inverted, cfg)

    pos_score = mask_quality_score(masks.positive, cfg)
    if pos_score > best_score:
        best_mask = masks.positive
        best_variant = MaskVariant.POSITIVE

    return best_mask, best_variant
