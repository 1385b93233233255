"""Candidate generation and selection pipeline.

    frame -> CandidateSampler -> clip / crop -> normalize -> select -> overview

``TextPipeline.run`` always returns a ``PipelineResult``. Per-candidate
problems (collapsed regions, recognizer failures) are logged and skipped;
only configuration errors raised at construction reach the caller.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Iterator

import numpy as np

from click_text_reader.candidate_normalizer import NormalizerConfig, normalize
from click_text_reader.candidate_sampler import (
    CandidateSampler,
    OffsetGenerator,
    SampledRegion,
    SamplerConfig,
)
from click_text_reader.debug_service import DiagnosticsSink
from click_text_reader.errors import InputError
from click_text_reader.geometry import Rect, nearest_to_point
from click_text_reader.ocr_engine import compact_text
from click_text_reader.screen_capture import CanvasTransform
from click_text_reader.selector import (
    Candidate,
    Recognizer,
    SelectorConfig,
    draw_overview,
    select,
)

logger = logging.getLogger(__name__)


@dataclass
class PipelineConfig:
    sampler: SamplerConfig = field(default_factory=SamplerConfig)
    normalizer: NormalizerConfig = field(default_factory=NormalizerConfig)
    selector: SelectorConfig = field(default_factory=SelectorConfig)

    def validate(self) -> None:
        self.sampler.validate()
        self.normalizer.validate()
        self.selector.validate()


@dataclass
class PipelineResult:
    best_text: str = ""
    best_confidence: float = 0.0
    best_region: Rect | None = None
    annotated_overview: np.ndarray | None = None
    artifact_paths: list[str] = field(default_factory=list)

    # Diagnostics
    candidate_regions: list[Rect] = field(default_factory=list)
    best_region_source: Rect | None = None  # best_region in screen coordinates
    best_image: np.ndarray | None = None  # winner's normalized image
    nearest_region: Rect | None = None  # pooled region closest to the frame center
    elapsed_ms: float = 0.0

    @property
    def found(self) -> bool:
        return self.best_region is not None

    @property
    def compact_text(self) -> str:
        return compact_text(self.best_text)


SinkFactory = Callable[[], "DiagnosticsSink | None"]


class TextPipeline:
    """Runs one capture frame through sampling, normalization and selection.

    Args:
        recognizer: Text recognizer capability (``Recognizer`` protocol).
        config: Pipeline parameters; validated here.
        offsets: Jitter offset source. Random when omitted.
        sink_factory: Called once per run to create a diagnostics sink, or
            None to skip artifact writing.
    """

    def __init__(
        self,
        recognizer: Recognizer,
        config: PipelineConfig | None = None,
        offsets: OffsetGenerator | None = None,
        sink_factory: SinkFactory | None = None,
    ) -> None:
        self._cfg = config or PipelineConfig()
        self._cfg.validate()
        self._recognizer = recognizer
        self._sampler = CandidateSampler(self._cfg.sampler, offsets)
        self._sink_factory = sink_factory

    @property
    def config(self) -> PipelineConfig:
        return self._cfg

    def run(
        self,
        frame: np.ndarray,
        transform: CanvasTransform | None = None,
    ) -> PipelineResult:
        t0 = time.monotonic()
        sink = self._open_sink()
        try:
            result = self._run(frame, transform, sink)
        finally:
            if sink is not None:
                sink.close()
        result.elapsed_ms = (time.monotonic() - t0) * 1000
        logger.info(
            "Pipeline: %r conf=%.1f region=%s (%d candidates, %dms)",
            result.best_text, result.best_confidence, result.best_region,
            len(result.candidate_regions), int(result.elapsed_ms),
        )
        return result

    def _open_sink(self) -> DiagnosticsSink | None:
        """Create this run's sink; artifacts are skipped if that fails."""
        if self._sink_factory is None:
            return None
        try:
            return self._sink_factory()
        except OSError as e:
            logger.warning("Diagnostics disabled for this run: %s", e)
            return None

    def _run(
        self,
        frame: np.ndarray,
        transform: CanvasTransform | None,
        sink: DiagnosticsSink | None,
    ) -> PipelineResult:
        try:
            sampled = self._sampler.sample(frame)
        except InputError as e:
            logger.warning("Frame skipped: %s", e)
            if sink is not None:
                sink.log("INPUT", str(e))
            return PipelineResult(artifact_paths=sink.paths if sink else [])

        if sink is not None:
            sink.save("raw", frame)
            sink.log("SAMPLE", f"{len(sampled)} regions")

        frame_h, frame_w = frame.shape[:2]
        selection = select(
            self._candidates(frame, sampled, sink),
            self._recognizer,
            frame.shape,
            self._cfg.selector,
        )

        overview = draw_overview(frame, selection.regions, selection.best)
        if sink is not None:
            sink.save("overview", overview)

        nearest = nearest_to_point(
            (s.rect for s in sampled), frame_w / 2.0, frame_h / 2.0
        )
        result = PipelineResult(
            annotated_overview=overview,
            candidate_regions=selection.regions,
            nearest_region=nearest,
        )

        best = selection.best
        if best is not None:
            result.best_text = best.text
            result.best_confidence = best.confidence
            result.best_region = best.candidate.source_region
            result.best_image = best.candidate.normalized_image
            if transform is not None:
                result.best_region_source = transform.rect_to_source(result.best_region)
            if sink is not None:
                sink.save("best", best.candidate.normalized_image)
                sink.log(
                    "BEST",
                    f"{best.text!r} conf={best.confidence:.1f} "
                    f"region={tuple(result.best_region)} "
                    f"origin={best.candidate.origin.label()}",
                )
        elif sink is not None:
            sink.log("BEST", "no candidate produced valid text")

        if sink is not None:
            result.artifact_paths = sink.paths
        return result

    def _candidates(
        self,
        frame: np.ndarray,
        sampled: list[SampledRegion],
        sink: DiagnosticsSink | None,
    ) -> Iterator[Candidate]:
        """Lazily crop and normalize each pooled region.

        Each normalized image is dropped once the selector moves on, unless
        it becomes the winner.
        """
        frame_h, frame_w = frame.shape[:2]
        min_side = self._cfg.selector.min_side

        for idx, region in enumerate(sampled):
            rect = region.rect.clipped(frame_w, frame_h)
            if rect.width <= min_side or rect.height <= min_side:
                logger.debug("Region %d %s collapsed after clipping", idx, rect)
                continue

            crop = frame[rect.y : rect.bottom, rect.x : rect.right]
            try:
                normalized = normalize(crop, self._cfg.normalizer, sink, tag=f"c{idx:03d}_")
            except InputError as e:
                logger.warning("Region %d skipped: %s", idx, e)
                continue

            yield Candidate(
                source_region=rect,
                normalized_image=normalized,
                origin=region.origin,
            )
