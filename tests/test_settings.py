import pytest
from PyQt6.QtCore import QSettings

from click_text_reader.settings import AppSettings


@pytest.fixture
def store(tmp_path):
    return QSettings(str(tmp_path / "settings.ini"), QSettings.Format.IniFormat)


def test_defaults_when_store_is_empty(store):
    assert AppSettings.load(store) == AppSettings()


def test_round_trip(store):
    original = AppSettings(
        capture_width=640,
        capture_height=200,
        pad_color=(10, 20, 30),
        language="eng",
        psm=6,
        char_whitelist="0123456789",
        tessdata_path="/opt/tessdata",
        output_root="/tmp/out",
        save_artifacts=True,
        jitter_count=2,
        jitter_seed=42,
    )
    original.save(store)
    assert AppSettings.load(store) == original


def test_clearing_the_seed(store):
    AppSettings(jitter_seed=5).save(store)
    AppSettings(jitter_seed=None).save(store)
    assert AppSettings.load(store).jitter_seed is None


def test_tesseract_config_mapping():
    cfg = AppSettings(language="eng", psm=6).tesseract_config()
    assert cfg.languages == "eng" and cfg.psm == 6
    assert cfg.char_whitelist is None
    assert cfg.tessdata_dir is None

    cfg = AppSettings(char_whitelist="AB", tessdata_path="/t").tesseract_config()
    assert cfg.char_whitelist == "AB" and cfg.tessdata_dir == "/t"


def test_pipeline_config_uses_jitter_count():
    assert AppSettings(jitter_count=0).pipeline_config().sampler.jitter_count == 0
