from __future__ import annotations

from dataclasses import dataclass

from PyQt6.QtCore import QSettings

from click_text_reader.ocr_engine import TesseractConfig
from click_text_reader.pipeline import PipelineConfig


def _to_bool(value) -> bool:
    return str(value).lower() in ("true", "1", "yes")


@dataclass
class AppSettings:
    capture_width: int = 300
    capture_height: int = 150
    pad_color: tuple[int, int, int] = (0, 0, 0)  # BGR outside the desktop
    language: str = "kor+eng"
    psm: int = 7  # single text line
    char_whitelist: str = ""
    tessdata_path: str = ""  # empty = tesseract default
    output_root: str = "outputs"
    save_artifacts: bool = False
    jitter_count: int = 4
    jitter_seed: int | None = None  # None = fresh random offsets every run

    @staticmethod
    def _store() -> QSettings:
        return QSettings("ClickTextReader", "ClickTextReader")

    def save(self, store: QSettings | None = None) -> None:
        s = store or self._store()
        s.setValue("capture/width", self.capture_width)
        s.setValue("capture/height", self.capture_height)
        s.setValue("capture/pad_b", self.pad_color[0])
        s.setValue("capture/pad_g", self.pad_color[1])
        s.setValue("capture/pad_r", self.pad_color[2])
        s.setValue("ocr/language", self.language)
        s.setValue("ocr/psm", self.psm)
        s.setValue("ocr/char_whitelist", self.char_whitelist)
        s.setValue("ocr/tessdata_path", self.tessdata_path)
        s.setValue("output/root", self.output_root)
        s.setValue("output/save_artifacts", self.save_artifacts)
        s.setValue("sampler/jitter_count", self.jitter_count)
        if self.jitter_seed is not None:
            s.setValue("sampler/jitter_seed", self.jitter_seed)
        else:
            s.remove("sampler/jitter_seed")
        s.sync()

    @classmethod
    def load(cls, store: QSettings | None = None) -> AppSettings:
        s = store or cls._store()
        d = cls()

        jitter_seed = None
        if s.contains("sampler/jitter_seed"):
            jitter_seed = int(s.value("sampler/jitter_seed", 0))

        return cls(
            capture_width=int(s.value("capture/width", d.capture_width)),
            capture_height=int(s.value("capture/height", d.capture_height)),
            pad_color=(
                int(s.value("capture/pad_b", d.pad_color[0])),
                int(s.value("capture/pad_g", d.pad_color[1])),
                int(s.value("capture/pad_r", d.pad_color[2])),
            ),
            language=str(s.value("ocr/language", d.language)),
            psm=int(s.value("ocr/psm", d.psm)),
            char_whitelist=str(s.value("ocr/char_whitelist", d.char_whitelist)),
            tessdata_path=str(s.value("ocr/tessdata_path", d.tessdata_path)),
            output_root=str(s.value("output/root", d.output_root)),
            save_artifacts=_to_bool(s.value("output/save_artifacts", d.save_artifacts)),
            jitter_count=int(s.value("sampler/jitter_count", d.jitter_count)),
            jitter_seed=jitter_seed,
        )

    def tesseract_config(self) -> TesseractConfig:
        return TesseractConfig(
            languages=self.language,
            psm=self.psm,
            char_whitelist=self.char_whitelist or None,
            tessdata_dir=self.tessdata_path or None,
        )

    def pipeline_config(self) -> PipelineConfig:
        cfg = PipelineConfig()
        cfg.sampler.jitter_count = self.jitter_count
        return cfg
