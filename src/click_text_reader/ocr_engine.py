"""Tesseract-backed recognizer.

``TesseractRecognizer`` implements the ``Recognizer`` protocol used by the
selector: one normalized image in, text plus mean word confidence (0..100)
out. Missing Tesseract resources are reported once, at construction, as
``ResourceError``.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass

import numpy as np
import pytesseract
from PIL import Image
from pytesseract import Output

from click_text_reader.errors import ConfigurationError, ResourceError
from click_text_reader.selector import Recognition

logger = logging.getLogger(__name__)

# Allow overriding the binary location (Windows installs are not on PATH).
_TESSERACT_CMD = os.environ.get("TESSERACT_CMD")
if _TESSERACT_CMD and os.path.exists(_TESSERACT_CMD):
    pytesseract.pytesseract.tesseract_cmd = _TESSERACT_CMD


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

@dataclass
class TesseractConfig:
    # Language codes joined by "+", e.g. "kor+eng".
    languages: str = "kor+eng"
    # Page segmentation mode. 7 = single text line, 3 = fully automatic.
    psm: int = 7
    # OCR engine mode. 1 = LSTM only.
    oem: int = 1
    # Optional character whitelist, e.g. "0123456789-:()".
    char_whitelist: str | None = None
    # Directory holding *.traineddata; None uses Tesseract's default.
    tessdata_dir: str | None = None
    # DPI hint; screenshots carry no resolution metadata.
    dpi: int = 300

    def validate(self) -> None:
        if not self.languages or any(not part for part in self.languages.split("+")):
            raise ConfigurationError(f"invalid languages: {self.languages!r}")
        if not 0 <= self.psm <= 13:
            raise ConfigurationError(f"psm must be in 0..13, got {self.psm}")
        if not 0 <= self.oem <= 3:
            raise ConfigurationError(f"oem must be in 0..3, got {self.oem}")
        if self.dpi <= 0:
            raise ConfigurationError(f"dpi must be positive, got {self.dpi}")

    def cli_config(self) -> str:
        parts = [
            f"--oem {self.oem}",
            f"--psm {self.psm}",
            f"-c user_defined_dpi={self.dpi}",
        ]
        if self.tessdata_dir:
            parts.append(f'--tessdata-dir "{self.tessdata_dir}"')
        if self.char_whitelist:
            parts.append(f"-c tessedit_char_whitelist={self.char_whitelist}")
        return " ".join(parts)


# ---------------------------------------------------------------------------
# Token grouping
# ---------------------------------------------------------------------------

def _safe_float(x) -> float:
    try:
        return float(x)
    except (TypeError, ValueError):
        return float("nan")


def text_from_data(data: dict[str, list]) -> Recognition:
    """Rebuild text and mean word confidence from ``image_to_data`` output.

    Tokens are grouped by (block, paragraph, line) and joined left to right;
    lines are joined with newlines. Tokens with negative confidence (layout
    rows) are ignored.
    """
    n = len(data.get("text", []))
    lines: dict[tuple[int, int, int], list[tuple[int, str]]] = {}
    confs: list[float] = []

    for i in range(n):
        txt = str(data["text"][i] or "").strip()
        if not txt:
            continue
        conf = _safe_float(data.get("conf", ["-1"] * n)[i])
        if np.isnan(conf) or conf < 0:
            continue
        key = (
            int(data.get("block_num", [0] * n)[i]),
            int(data.get("par_num", [0] * n)[i]),
            int(data.get("line_num", [0] * n)[i]),
        )
        left = int(data.get("left", [0] * n)[i])
        lines.setdefault(key, []).append((left, txt))
        confs.append(conf)

    if not confs:
        return Recognition(text="", confidence=0.0)

    text = "\n".join(
        " ".join(tok for _, tok in sorted(tokens))
        for _, tokens in sorted(lines.items())
    )
    mean_conf = float(np.mean(confs))
    return Recognition(text=text, confidence=min(100.0, max(0.0, mean_conf)))


_COMPACT_STRIP_RE = re.compile(r"[^가-힣a-zA-Z0-9]")


def compact_text(text: str) -> str:
    """Drop whitespace and everything except Hangul, Latin letters and digits."""
    if not text or not text.strip():
        return ""
    return _COMPACT_STRIP_RE.sub("", re.sub(r"\s+", "", text))


# ---------------------------------------------------------------------------
# Recognizer
# ---------------------------------------------------------------------------

class TesseractRecognizer:
    """Recognizer backed by the Tesseract CLI via pytesseract.

    Raises:
        ConfigurationError: malformed config values.
        ResourceError: Tesseract binary, tessdata directory or a requested
            language pack is missing.
    """

    def __init__(self, config: TesseractConfig | None = None) -> None:
        self._cfg = config or TesseractConfig()
        self._cfg.validate()
        self._cli_config = self._cfg.cli_config()
        self._check_resources()
        logger.info(
            "TesseractRecognizer initialized (lang=%s, psm=%d, tessdata=%s)",
            self._cfg.languages, self._cfg.psm, self._cfg.tessdata_dir or "<default>",
        )

    @property
    def config(self) -> TesseractConfig:
        return self._cfg

    def _check_resources(self) -> None:
        try:
            version = pytesseract.get_tesseract_version()
        except pytesseract.TesseractNotFoundError as e:
            raise ResourceError(f"tesseract binary not found: {e}") from e
        logger.debug("Tesseract version %s", version)

        lang_config = ""
        if self._cfg.tessdata_dir:
            if not os.path.isdir(self._cfg.tessdata_dir):
                raise ResourceError(f"tessdata not found: {self._cfg.tessdata_dir}")
            lang_config = f'--tessdata-dir "{self._cfg.tessdata_dir}"'

        try:
            available = set(pytesseract.get_languages(config=lang_config))
        except pytesseract.TesseractError as e:
            raise ResourceError(f"cannot list tesseract languages: {e}") from e

        missing = [lang for lang in self._cfg.languages.split("+") if lang not in available]
        if missing:
            raise ResourceError(
                f"tesseract language data missing: {', '.join(missing)}"
            )

    def recognize(self, image: np.ndarray) -> Recognition:
        if image.ndim == 3:
            # BGR -> RGB
            image = np.ascontiguousarray(image[:, :, 2::-1])
        pil = Image.fromarray(image)
        data = pytesseract.image_to_data(
            pil,
            lang=self._cfg.languages,
            config=self._cli_config,
            output_type=Output.DICT,
        )
        return text_from_data(data)
