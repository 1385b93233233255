from __future__ import annotations

import argparse
import logging
import signal
import sys

import cv2
from PyQt6.QtCore import QCoreApplication

from click_text_reader.candidate_sampler import RandomOffsets
from click_text_reader.click_worker import ClickWorker
from click_text_reader.debug_service import DiagnosticsSink, is_debug_enabled
from click_text_reader.errors import ConfigurationError, ResourceError
from click_text_reader.input_listener import InputListener
from click_text_reader.ocr_engine import TesseractRecognizer
from click_text_reader.pipeline import PipelineResult, TextPipeline
from click_text_reader.settings import AppSettings

logger = logging.getLogger(__name__)


def build_pipeline(settings: AppSettings, save_artifacts: bool) -> TextPipeline:
    """Create the recognizer and pipeline. Raises on bad config or missing resources."""
    recognizer = TesseractRecognizer(settings.tesseract_config())

    sink_factory = None
    if save_artifacts:
        root = settings.output_root
        sink_factory = lambda: DiagnosticsSink(root)  # noqa: E731

    return TextPipeline(
        recognizer,
        settings.pipeline_config(),
        offsets=RandomOffsets(settings.jitter_seed),
        sink_factory=sink_factory,
    )


def format_result(result: PipelineResult) -> str:
    if not result.found:
        return "✗ No text found"
    src = result.best_region_source or result.best_region
    return (
        f"✓ OCR: {result.best_text} -> {result.compact_text} "
        f"(conf {result.best_confidence:.1f}, region {tuple(src)})"
    )


class App:
    def __init__(self, settings: AppSettings, save_artifacts: bool) -> None:
        self._qt_app = QCoreApplication(sys.argv)
        self._qt_app.setApplicationName("ClickTextReader")
        self._qt_app.setOrganizationName("ClickTextReader")

        self._settings = settings
        self._pipeline = build_pipeline(settings, save_artifacts)

        self._worker = ClickWorker(
            self._pipeline,
            capture_size=(settings.capture_width, settings.capture_height),
            pad_color=settings.pad_color,
        )
        self._listener = InputListener()
        self._connect_signals()

    def _connect_signals(self) -> None:
        self._listener.clicked.connect(self._worker.trigger)
        self._listener.quit_requested.connect(self._qt_app.quit)

        self._worker.result_ready.connect(self._on_result)
        self._worker.error_occurred.connect(self._on_error)

    def _on_result(self, result: PipelineResult) -> None:
        print(format_result(result), flush=True)
        if result.artifact_paths:
            logger.info("%d artifacts written", len(result.artifact_paths))

    def _on_error(self, message: str) -> None:
        print(f"✗ Pipeline error: {message}", flush=True)

    def run(self) -> int:
        self._listener.start()
        print("▶ Listening: left click = read text around the cursor, Esc = quit", flush=True)
        exit_code = self._qt_app.exec()

        # Cleanup
        self._listener.stop()
        self._worker.wait(3000)
        print("▶ Stopped", flush=True)
        return exit_code


def run_on_image(settings: AppSettings, path: str, save_artifacts: bool) -> int:
    """Run the pipeline once on an image file (treated as a captured frame)."""
    frame = cv2.imread(path, cv2.IMREAD_COLOR)
    if frame is None:
        print(f"✗ Cannot read image: {path}", file=sys.stderr)
        return 1
    pipeline = build_pipeline(settings, save_artifacts)
    result = pipeline.run(frame)
    print(format_result(result))
    return 0 if result.found else 2


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="click-text-reader",
        description="Read the text under a mouse click with OpenCV + Tesseract.",
    )
    parser.add_argument("--image", help="process an image file once instead of listening")
    parser.add_argument("--debug", action="store_true",
                        help="write intermediate images (same as CTR_DEBUG=1)")
    parser.add_argument("--output", help="artifact output root (default from settings)")
    parser.add_argument("--lang", help="tesseract languages, e.g. kor+eng")
    parser.add_argument("--seed", type=int, help="fixed jitter seed for reproducible runs")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )

    settings = AppSettings.load()
    # Materialize defaults so they can be edited in the settings store.
    settings.save()
    if args.output:
        settings.output_root = args.output
    if args.lang:
        settings.language = args.lang
    if args.seed is not None:
        settings.jitter_seed = args.seed
    save_artifacts = args.debug or settings.save_artifacts or is_debug_enabled()

    try:
        if args.image:
            sys.exit(run_on_image(settings, args.image, save_artifacts))

        signal.signal(signal.SIGINT, signal.SIG_DFL)
        app = App(settings, save_artifacts)
        exit_code = app.run()
    except (ConfigurationError, ResourceError) as e:
        logger.error("%s", e)
        print(f"✗ {e}", file=sys.stderr)
        sys.exit(1)

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
