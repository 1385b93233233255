"""Click worker thread: captures around a click, runs the pipeline, emits the result.

Runs are single-flight: a click that arrives while a run is in progress is
dropped (``trigger`` returns False) instead of being queued.
"""

from __future__ import annotations

import logging

from mss import mss
from PyQt6.QtCore import QThread, pyqtSignal

from click_text_reader.pipeline import TextPipeline
from click_text_reader.run_gate import RunGate
from click_text_reader.screen_capture import capture_around

logger = logging.getLogger(__name__)


class ClickWorker(QThread):
    """One-shot worker, restarted for every accepted click.

    Signals:
    - result_ready(PipelineResult): run finished (possibly with empty text)
    - error_occurred(str): capture or pipeline raised unexpectedly
    - trigger_dropped(int, int): a click arrived while busy
    """

    result_ready = pyqtSignal(object)
    error_occurred = pyqtSignal(str)
    trigger_dropped = pyqtSignal(int, int)

    def __init__(
        self,
        pipeline: TextPipeline,
        capture_size: tuple[int, int] = (300, 150),
        pad_color: tuple[int, int, int] = (0, 0, 0),
    ) -> None:
        super().__init__()
        self._pipeline = pipeline
        self._capture_size = capture_size
        self._pad_color = pad_color
        self._gate = RunGate()
        self._point: tuple[int, int] | None = None

    @property
    def busy(self) -> bool:
        return self._gate.busy

    def trigger(self, x: int, y: int) -> bool:
        """Start a run at screen point ``(x, y)`` unless one is in progress."""
        if not self._gate.try_acquire():
            logger.debug("Click at (%d,%d) dropped: run in progress", x, y)
            self.trigger_dropped.emit(x, y)
            return False

        # The previous run releases the gate just before its thread exits.
        self.wait()
        self._point = (x, y)
        self.start()
        return True

    def run(self) -> None:
        try:
            x, y = self._point
            width, height = self._capture_size
            with mss() as sct:
                captured = capture_around(sct, x, y, width, height, self._pad_color)
            logger.info("Captured %dx%d around (%d,%d)", width, height, x, y)

            result = self._pipeline.run(captured.image, captured.transform)
            self.result_ready.emit(result)
        except Exception as e:
            logger.error("Click run failed: %s", e, exc_info=True)
            self.error_occurred.emit(str(e))
        finally:
            self._gate.release()
