"""Pick the best recognition among normalized candidates.

Candidates are recognized in pool order. An outcome replaces the current
best only when its confidence is strictly higher, so the first candidate to
reach the maximum wins ties.
"""

from __future__ import annotations

import logging
import math
import numbers
import re
from dataclasses import dataclass, field
from typing import Iterable, Protocol

import cv2
import numpy as np
from PIL import Image, ImageDraw, ImageFont

from click_text_reader.candidate_sampler import CandidateOrigin
from click_text_reader.errors import ConfigurationError, RecognizerError
from click_text_reader.geometry import Rect

logger = logging.getLogger(__name__)

# Internal "no result yet" confidence. Callers see 0.
NO_RESULT_CONFIDENCE = -1.0

# At least one Latin letter or one precomposed Hangul syllable.
_VALID_TEXT_RE = re.compile(r"[A-Za-z가-힣]")


# ---------------------------------------------------------------------------
# Types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Recognition:
    """What a recognizer returns for one image."""
    text: str
    confidence: float  # mean confidence, 0..100


class Recognizer(Protocol):
    """Text recognition capability injected into the selector.

    Called once per surviving candidate, many times per run. Must not keep
    a reference to ``image`` after returning.
    """

    def recognize(self, image: np.ndarray) -> Recognition:
        ...


@dataclass
class Candidate:
    source_region: Rect
    normalized_image: np.ndarray
    origin: CandidateOrigin


@dataclass
class RecognitionOutcome:
    text: str
    confidence: float
    candidate: Candidate


@dataclass
class Selection:
    best: RecognitionOutcome | None
    # Every clipped region that was submitted for recognition, in order.
    regions: list[Rect] = field(default_factory=list)

    @property
    def confidence(self) -> float:
        return self.best.confidence if self.best else 0.0


@dataclass
class SelectorConfig:
    # Regions with clipped width or height <= this are skipped.
    min_side: int = 10

    def validate(self) -> None:
        if self.min_side < 0:
            raise ConfigurationError(f"min_side must be >= 0, got {self.min_side}")


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------

def is_valid_text(text: str) -> bool:
    """Non-empty after trimming and contains a Latin letter or Hangul syllable."""
    stripped = text.strip()
    return bool(stripped) and _VALID_TEXT_RE.search(stripped) is not None


def _checked(recognition: object) -> Recognition:
    """Reject malformed recognizer output."""
    text = getattr(recognition, "text", None)
    confidence = getattr(recognition, "confidence", None)
    if not isinstance(text, str):
        raise RecognizerError(f"text is not a string: {text!r}")
    if isinstance(confidence, (bool, np.bool_)) or not isinstance(confidence, numbers.Real):
        raise RecognizerError(f"confidence is not a number: {confidence!r}")
    confidence = float(confidence)
    if not math.isfinite(confidence) or not 0.0 <= confidence <= 100.0:
        raise RecognizerError(f"confidence out of range: {confidence!r}")
    return Recognition(text=text, confidence=confidence)


# ---------------------------------------------------------------------------
# Selection
# ---------------------------------------------------------------------------

def select(
    candidates: Iterable[Candidate],
    recognizer: Recognizer,
    frame_shape: tuple[int, ...],
    config: SelectorConfig | None = None,
) -> Selection:
    """Recognize every candidate and keep the highest-confidence valid one.

    A recognizer failure only discards that candidate.
    """
    cfg = config or SelectorConfig()
    frame_h, frame_w = frame_shape[:2]

    best: RecognitionOutcome | None = None
    best_conf = NO_RESULT_CONFIDENCE
    regions: list[Rect] = []

    for idx, cand in enumerate(candidates):
        rect = cand.source_region.clipped(frame_w, frame_h)
        if rect.width <= cfg.min_side or rect.height <= cfg.min_side:
            logger.debug("Candidate %d skipped: clipped region %s too small", idx, rect)
            continue
        regions.append(rect)

        try:
            rec = _checked(recognizer.recognize(cand.normalized_image))
        except RecognizerError as e:
            logger.warning("Candidate %d: malformed recognizer output: %s", idx, e)
            continue
        except Exception as e:
            logger.warning("Candidate %d: recognizer failed: %s", idx, e, exc_info=True)
            continue

        text = rec.text.strip()
        logger.debug(
            "Candidate %d [%s] %s -> %r (%.1f)",
            idx, cand.origin.label(), rect, text, rec.confidence,
        )

        if not is_valid_text(text):
            continue
        if rec.confidence > best_conf:
            best_conf = rec.confidence
            best = RecognitionOutcome(
                text=text,
                confidence=rec.confidence,
                candidate=Candidate(rect, cand.normalized_image, cand.origin),
            )

    return Selection(best=best, regions=regions)


# ---------------------------------------------------------------------------
# Overview image
# ---------------------------------------------------------------------------

_FONT_PATHS = (
    "/usr/share/fonts/truetype/nanum/NanumGothic.ttf",
    "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
    "malgun.ttf",
    "arial.ttf",
)

REGION_COLOR = (0, 200, 0)  # BGR
BEST_COLOR = (0, 0, 255)


def _load_font(size: int) -> ImageFont.ImageFont:
    for path in _FONT_PATHS:
        try:
            return ImageFont.truetype(path, size)
        except (OSError, IOError):
            continue
    return ImageFont.load_default()


def draw_overview(
    frame: np.ndarray,
    regions: Iterable[Rect],
    best: RecognitionOutcome | None,
) -> np.ndarray:
    """Copy of ``frame`` with every region outlined thinly and the winner in red."""
    if frame.ndim == 2:
        overview = cv2.cvtColor(frame, cv2.COLOR_GRAY2BGR)
    else:
        overview = frame[:, :, :3].copy()

    for r in regions:
        cv2.rectangle(overview, (r.x, r.y), (r.right - 1, r.bottom - 1), REGION_COLOR, 1)

    if best is None:
        return overview

    r = best.candidate.source_region
    cv2.rectangle(overview, (r.x, r.y), (r.right - 1, r.bottom - 1), BEST_COLOR, 2)

    # PIL draws non-Latin glyphs (Hangul) that cv2.putText cannot.
    label = f"{best.text} ({best.confidence:.1f})"
    pil = Image.fromarray(cv2.cvtColor(overview, cv2.COLOR_BGR2RGB))
    draw = ImageDraw.Draw(pil)
    font = _load_font(14)
    ty = r.y - 16 if r.y >= 16 else r.bottom + 2
    draw.text((r.x, ty), label, fill=BEST_COLOR[::-1], font=font)
    return cv2.cvtColor(np.array(pil), cv2.COLOR_RGB2BGR)
