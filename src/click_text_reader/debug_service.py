"""Diagnostics sink: per-run artifact saving and pipeline logging.

When an output root is configured (or ``CTR_DEBUG=1`` is set), every
pipeline run gets its own folder and each intermediate image is written
there::

    outputs/
        run_YYYYMMDD_HHMMSS_fff/
            pipeline.log
            raw_HHMMSS_fff.png          # captured frame
            c003_up_HHMMSS_fff.png      # candidate 3, upscale stage
            ...
            overview_HHMMSS_fff.png     # all regions + winner

Writing artifacts never changes recognition results; without a sink
nothing is written.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime

import cv2
import numpy as np

logger = logging.getLogger(__name__)

DEFAULT_OUTPUT_ROOT = "outputs"


def is_debug_enabled() -> bool:
    return os.environ.get("CTR_DEBUG", "0") == "1"


class DiagnosticsSink:
    def __init__(self, output_root: str = DEFAULT_OUTPUT_ROOT) -> None:
        ts = datetime.now().strftime("%Y%m%d_%H%M%S_%f")[:-3]
        self._run_dir = self._make_run_dir(os.path.join(output_root, f"run_{ts}"))

        log_path = os.path.join(self._run_dir, "pipeline.log")
        self._log_file = open(log_path, "w", encoding="utf-8")  # noqa: SIM115
        self._paths: list[str] = []

        self.log("RUN", f"started at {ts}")
        logger.debug("Diagnostics dir: %s", self._run_dir)

    @staticmethod
    def _make_run_dir(base: str) -> str:
        """Create a fresh run folder; runs started in the same millisecond get a suffix."""
        path = base
        n = 1
        while True:
            try:
                os.makedirs(path)
                return path
            except FileExistsError:
                n += 1
                path = f"{base}_{n}"

    @property
    def run_dir(self) -> str:
        return self._run_dir

    @property
    def paths(self) -> list[str]:
        return list(self._paths)

    # ------------------------------------------------------------------
    # Pipeline logging
    # ------------------------------------------------------------------

    def log(self, tag: str, text: str) -> None:
        if self._log_file.closed:
            return
        ts = datetime.now().strftime("%H:%M:%S.%f")[:-3]
        self._log_file.write(f"{ts}  [{tag}]  {text}\n")
        self._log_file.flush()

    # ------------------------------------------------------------------
    # Artifact saving
    # ------------------------------------------------------------------

    def save(self, stage: str, image: np.ndarray) -> str | None:
        """Write ``image`` (BGR or gray) as ``<stage>_<time>.png``.

        Returns the written path, or None when the write failed. A failed
        write is logged and never interrupts the run.
        """
        if image is None or image.size == 0:
            return None
        ts = datetime.now().strftime("%H%M%S_%f")[:-3]
        path = os.path.join(self._run_dir, f"{stage}_{ts}.png")
        try:
            ok = cv2.imwrite(path, image)
        except cv2.error as e:
            logger.warning("Failed to save artifact %s: %s", path, e)
            return None
        if not ok:
            logger.warning("Failed to save artifact %s", path)
            return None
        self._paths.append(path)
        return path

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        if self._log_file.closed:
            return
        self.log("RUN", "ended")
        self._log_file.close()

    def __enter__(self) -> DiagnosticsSink:
        return self

    def __exit__(self, *exc) -> None:
        self.close()
