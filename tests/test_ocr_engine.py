import numpy as np
import pytest
import pytesseract

from click_text_reader.errors import ConfigurationError, ResourceError
from click_text_reader.ocr_engine import (
    TesseractConfig,
    TesseractRecognizer,
    compact_text,
    text_from_data,
)


def _data(*tokens):
    """``image_to_data`` dict from (text, conf, block, par, line, left) tuples."""
    keys = ("text", "conf", "block_num", "par_num", "line_num", "left")
    return {k: [t[i] for t in tokens] for i, k in enumerate(keys)}


@pytest.fixture
def tesseract_ok(monkeypatch):
    """Pretend Tesseract 5 is installed with Korean and English data."""
    monkeypatch.setattr(pytesseract, "get_tesseract_version", lambda: "5.3.0")
    monkeypatch.setattr(
        pytesseract, "get_languages", lambda config="": ["eng", "kor", "osd"]
    )


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def test_text_from_data_orders_tokens():
    data = _data(
        ("", -1, 1, 1, 1, 0),
        ("World", 80, 1, 1, 1, 60),
        ("Hello", 90, 1, 1, 1, 5),
        ("again", 70, 1, 1, 2, 5),
    )
    rec = text_from_data(data)
    assert rec.text == "Hello World\nagain"
    assert rec.confidence == pytest.approx(80.0)


def test_text_from_data_skips_layout_rows_and_junk_conf():
    data = _data(
        ("ghost", "-1", 1, 1, 1, 0),
        ("bad", "n/a", 1, 1, 1, 10),
        ("ok", "95.5", 1, 1, 1, 20),
    )
    rec = text_from_data(data)
    assert rec.text == "ok"
    assert rec.confidence == pytest.approx(95.5)


def test_text_from_data_empty():
    rec = text_from_data({"text": [], "conf": []})
    assert rec.text == "" and rec.confidence == 0.0
    assert text_from_data({}).text == ""


@pytest.mark.parametrize("raw,expected", [
    ("Hello, World!", "HelloWorld"),
    ("  안녕 하세요 ", "안녕하세요"),
    ("v1.2-beta", "v12beta"),
    ("   ", ""),
    ("", ""),
])
def test_compact_text(raw, expected):
    assert compact_text(raw) == expected


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

def test_cli_config():
    cfg = TesseractConfig(psm=6, char_whitelist="0123456789", tessdata_dir="/data/tess")
    cli = cfg.cli_config()
    assert "--oem 1" in cli
    assert "--psm 6" in cli
    assert "-c user_defined_dpi=300" in cli
    assert '--tessdata-dir "/data/tess"' in cli
    assert "-c tessedit_char_whitelist=0123456789" in cli


@pytest.mark.parametrize("kwargs", [
    {"languages": ""},
    {"languages": "kor++eng"},
    {"psm": 14},
    {"oem": 4},
    {"dpi": 0},
])
def test_config_validate(kwargs):
    with pytest.raises(ConfigurationError):
        TesseractConfig(**kwargs).validate()


# ---------------------------------------------------------------------------
# Resource checks
# ---------------------------------------------------------------------------

def test_missing_binary(monkeypatch):
    def not_found():
        raise pytesseract.TesseractNotFoundError()

    monkeypatch.setattr(pytesseract, "get_tesseract_version", not_found)
    with pytest.raises(ResourceError):
        TesseractRecognizer()


def test_missing_language(monkeypatch, tesseract_ok):
    monkeypatch.setattr(pytesseract, "get_languages", lambda config="": ["eng"])
    with pytest.raises(ResourceError, match="kor"):
        TesseractRecognizer(TesseractConfig(languages="kor+eng"))


def test_missing_tessdata_dir(tmp_path, tesseract_ok):
    with pytest.raises(ResourceError):
        TesseractRecognizer(TesseractConfig(tessdata_dir=str(tmp_path / "nope")))


def test_language_listing_failure(monkeypatch, tesseract_ok):
    def broken(config=""):
        raise pytesseract.TesseractError(1, "cannot open tessdata")

    monkeypatch.setattr(pytesseract, "get_languages", broken)
    with pytest.raises(ResourceError):
        TesseractRecognizer()


def test_bad_config_is_reported_before_resources(monkeypatch):
    def must_not_run():
        raise AssertionError("resource check ran")

    monkeypatch.setattr(pytesseract, "get_tesseract_version", must_not_run)
    with pytest.raises(ConfigurationError):
        TesseractRecognizer(TesseractConfig(psm=99))


# ---------------------------------------------------------------------------
# Recognition
# ---------------------------------------------------------------------------

def test_recognize_passes_image_and_options(monkeypatch, tesseract_ok):
    seen = {}

    def fake_image_to_data(image, lang, config, output_type):
        seen["pixel"] = image.getpixel((0, 0))
        seen["lang"] = lang
        seen["config"] = config
        return _data(("OK", 91, 1, 1, 1, 0))

    monkeypatch.setattr(pytesseract, "image_to_data", fake_image_to_data)
    rec = TesseractRecognizer(TesseractConfig(languages="kor+eng", psm=7))

    bgr = np.zeros((8, 8, 3), dtype=np.uint8)
    bgr[:, :, 0] = 255  # blue
    result = rec.recognize(bgr)

    assert result.text == "OK" and result.confidence == 91.0
    assert seen["pixel"] == (0, 0, 255)
    assert seen["lang"] == "kor+eng"
    assert "--psm 7" in seen["config"]


def test_recognize_gray(monkeypatch, tesseract_ok):
    monkeypatch.setattr(
        pytesseract, "image_to_data",
        lambda image, lang, config, output_type: _data(),
    )
    result = TesseractRecognizer().recognize(np.full((8, 8), 255, dtype=np.uint8))
    assert result.text == "" and result.confidence == 0.0
