"""Turn a cropped candidate region into a recognition-ready binary image.

Stages (each switchable, order fixed):
1. Lanczos upscale -- thin glyphs must be magnified before any morphology
2. L channel of CIE Lab -- separates text from tinted backgrounds better
   than plain grayscale
3. Top-hat / black-hat contrast boost, then CLAHE
4. Mild Gaussian denoise, skipped when strokes are too thin to survive it
5. Mean adaptive binarization, normalized to dark text on white
6. Thin-stroke boost: 1-px-tall dilation of the text + small opening
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

import cv2
import numpy as np

from click_text_reader.errors import ConfigurationError, InputError

if TYPE_CHECKING:
    from click_text_reader.debug_service import DiagnosticsSink

logger = logging.getLogger(__name__)


@dataclass
class NormalizerConfig:
    """Tunable parameters for candidate normalization."""

    # -- Upscale --
    upscale: float = 2.0
    boost_thin_text: bool = True
    # Extra magnification applied when boost_thin_text is on.
    boost_scale: int = 2

    # -- Contrast --
    # enhanced = L + tophat_weight * TopHat(L) - blackhat_weight * BlackHat(L)
    tophat_weight: float = 1.0
    blackhat_weight: float = 1.0
    # Structuring element side as fraction of the shorter image side.
    morph_size_ratio: float = 0.01
    clahe_clip_limit: float = 2.0
    clahe_tile_size: int = 8

    # -- Denoise --
    apply_denoise: bool = True
    denoise_kernel: int = 3
    # Estimated stroke width (px) below which the blur is skipped.
    min_stroke_for_denoise: float = 2.0

    # -- Binarization --
    apply_binarize: bool = True
    binarize_block_size: int = 21
    binarize_c: float = 5.0

    # -- Thin-stroke boost --
    # Dilation half-width = max(1, rows // boost_dilate_divisor).
    boost_dilate_divisor: int = 200
    open_kernel_size: int = 2

    def validate(self) -> None:
        if self.upscale <= 0:
            raise ConfigurationError(f"upscale must be positive, got {self.upscale}")
        if self.boost_scale < 1:
            raise ConfigurationError(f"boost_scale must be >= 1, got {self.boost_scale}")
        if self.morph_size_ratio < 0:
            raise ConfigurationError("morph_size_ratio must be >= 0")
        if self.clahe_clip_limit <= 0 or self.clahe_tile_size < 1:
            raise ConfigurationError("CLAHE clip limit and tile size must be positive")
        if self.denoise_kernel < 1 or self.denoise_kernel % 2 == 0:
            raise ConfigurationError(
                f"denoise_kernel must be odd and >= 1, got {self.denoise_kernel}"
            )
        if self.binarize_block_size < 3 or self.binarize_block_size % 2 == 0:
            raise ConfigurationError(
                f"binarize_block_size must be odd and >= 3, got {self.binarize_block_size}"
            )
        if self.boost_dilate_divisor < 1 or self.open_kernel_size < 1:
            raise ConfigurationError("boost kernel parameters must be positive")

    @property
    def scale(self) -> float:
        return max(1.0, self.upscale * (self.boost_scale if self.boost_thin_text else 1))


# ---------------------------------------------------------------------------
# Stages
# ---------------------------------------------------------------------------

def _odd_at_least(value: float, minimum: int = 3) -> int:
    n = max(minimum, int(round(value)))
    return n if n % 2 == 1 else n + 1


def upscale(image: np.ndarray, scale: float) -> np.ndarray:
    if scale <= 1.0:
        return image.copy()
    return cv2.resize(
        image, None, fx=scale, fy=scale, interpolation=cv2.INTER_LANCZOS4
    )


def lightness(image: np.ndarray) -> np.ndarray:
    """L channel of CIE Lab (8-bit, 0..255)."""
    if image.ndim == 2:
        image = cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
    elif image.shape[2] == 4:
        image = cv2.cvtColor(image, cv2.COLOR_BGRA2BGR)
    lab = cv2.cvtColor(image, cv2.COLOR_BGR2LAB)
    return lab[:, :, 0].copy()


def boost_contrast(l_chan: np.ndarray, cfg: NormalizerConfig) -> np.ndarray:
    """``L + a*TopHat(L) - b*BlackHat(L)`` followed by CLAHE."""
    size = _odd_at_least(min(l_chan.shape[:2]) * cfg.morph_size_ratio)
    kernel = cv2.getStructuringElement(cv2.MORPH_RECT, (size, size))
    tophat = cv2.morphologyEx(l_chan, cv2.MORPH_TOPHAT, kernel)
    blackhat = cv2.morphologyEx(l_chan, cv2.MORPH_BLACKHAT, kernel)

    enhanced = (
        l_chan.astype(np.float32)
        + cfg.tophat_weight * tophat.astype(np.float32)
        - cfg.blackhat_weight * blackhat.astype(np.float32)
    )
    enhanced = np.clip(enhanced, 0, 255).astype(np.uint8)

    tile = (cfg.clahe_tile_size, cfg.clahe_tile_size)
    clahe = cv2.createCLAHE(clipLimit=cfg.clahe_clip_limit, tileGridSize=tile)
    return clahe.apply(enhanced)


def estimate_stroke_width(gray: np.ndarray) -> float:
    """Rough stroke width: twice the mean distance-to-background of text pixels.

    Text polarity is guessed from the Otsu split (minority class = text).
    """
    _, otsu = cv2.threshold(gray, 0, 255, cv2.THRESH_BINARY + cv2.THRESH_OTSU)
    if float(np.mean(otsu == 255)) > 0.5:
        otsu = cv2.bitwise_not(otsu)
    if not np.any(otsu):
        return 0.0
    dist = cv2.distanceTransform(otsu, cv2.DIST_L2, 3)
    return 2.0 * float(np.mean(dist[otsu > 0]))


def binarize_for_recognition(gray: np.ndarray, cfg: NormalizerConfig) -> np.ndarray:
    """Local mean threshold, then flip so the majority (background) is white."""
    bw = cv2.adaptiveThreshold(
        gray, 255, cv2.ADAPTIVE_THRESH_MEAN_C, cv2.THRESH_BINARY,
        cfg.binarize_block_size, cfg.binarize_c,
    )
    if float(np.mean(bw == 255)) < 0.5:
        bw = cv2.bitwise_not(bw)
    return bw


def boost_thin_strokes(bw: np.ndarray, cfg: NormalizerConfig) -> np.ndarray:
    """Thicken dark strokes horizontally, then drop isolated speckles."""
    text = cv2.bitwise_not(bw)
    k = max(1, bw.shape[0] // cfg.boost_dilate_divisor)
    kernel = cv2.getStructuringElement(cv2.MORPH_RECT, (1 + 2 * k, 1))
    text = cv2.dilate(text, kernel, iterations=1)

    n = cfg.open_kernel_size
    small = cv2.getStructuringElement(cv2.MORPH_RECT, (n, n))
    text = cv2.morphologyEx(text, cv2.MORPH_OPEN, small, iterations=1)
    return cv2.bitwise_not(text)


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------

def normalize(
    region: np.ndarray,
    config: NormalizerConfig | None = None,
    sink: DiagnosticsSink | None = None,
    tag: str = "",
) -> np.ndarray:
    """Normalize a cropped BGR region for recognition.

    Args:
        region: Cropped BGR (or gray) image. Not modified.
        config: Normalization parameters.
        sink: Optional diagnostics sink; every stage is saved through it.
        tag: Prefix for saved stage names (e.g. candidate index).

    Returns:
        Single-channel 8-bit image, dark text on white when binarization is on.

    Raises:
        InputError: if ``region`` is empty.
    """
    cfg = config or NormalizerConfig()
    if region is None or region.size == 0:
        raise InputError("empty candidate region")

    def save(stage: str, img: np.ndarray) -> None:
        if sink is not None:
            sink.save(f"{tag}{stage}", img)

    up = upscale(region, cfg.scale)
    save("up", up)

    l_chan = lightness(up)
    save("lab_l", l_chan)

    out = boost_contrast(l_chan, cfg)
    save("enhanced", out)

    if cfg.apply_denoise:
        stroke = estimate_stroke_width(out)
        if stroke >= cfg.min_stroke_for_denoise:
            k = cfg.denoise_kernel
            out = cv2.GaussianBlur(out, (k, k), 0)
            save("denoised", out)
        else:
            logger.debug("Denoise skipped: stroke width %.2f px", stroke)

    if cfg.apply_binarize:
        out = binarize_for_recognition(out, cfg)
        save("binary", out)

        if cfg.boost_thin_text:
            out = boost_thin_strokes(out, cfg)
            save("boosted", out)

    return out
