import numpy as np
import pytest

from click_text_reader.errors import ConfigurationError
from click_text_reader.thresholder import (
    MASK_VARIANT_ORDER,
    MaskVariant,
    ThresholdConfig,
    binarize,
    local_stats_threshold,
    mask_for_variant,
    mask_quality_score,
    select_best_mask,
)


def _stroke_image() -> np.ndarray:
    """White 100x100 image with one dark vertical bar (x 45..54)."""
    gray = np.full((100, 100), 255, dtype=np.uint8)
    gray[20:80, 45:55] = 0
    return gray


def test_variant_order_is_fixed():
    assert MASK_VARIANT_ORDER == (
        MaskVariant.POSITIVE, MaskVariant.INVERTED, MaskVariant.LOCAL_STATS,
    )


def test_binarize_polarities_are_complementary():
    masks = binarize(_stroke_image(), 21, 10)
    assert np.array_equal(masks.positive, 255 - masks.inverted)


def test_binarize_inverted_marks_dark_text():
    masks = binarize(_stroke_image(), 21, 10)
    assert masks.inverted[50, 45] == 255
    assert masks.inverted[50, 5] == 0
    assert masks.positive[50, 5] == 255


@pytest.mark.parametrize("block_size", [0, 1, 4, 20])
def test_binarize_rejects_bad_block_size(block_size):
    with pytest.raises(ConfigurationError):
        binarize(_stroke_image(), block_size, 10)


def test_local_stats_threshold():
    mask = local_stats_threshold(_stroke_image(), 21, k=0.2, r=128)
    # Dark stroke in a bright neighbourhood is background, bright paper is foreground.
    assert mask[50, 50] == 0
    assert mask[50, 5] == 255


def test_local_stats_threshold_rejects_bad_range():
    with pytest.raises(ConfigurationError):
        local_stats_threshold(_stroke_image(), 21, k=0.2, r=0)


def test_mask_for_variant_matches_direct_calls():
    gray = _stroke_image()
    cfg = ThresholdConfig()
    masks = binarize(gray, cfg.block_size, cfg.c)
    assert np.array_equal(mask_for_variant(gray, MaskVariant.POSITIVE, cfg), masks.positive)
    assert np.array_equal(mask_for_variant(gray, MaskVariant.INVERTED, cfg), masks.inverted)
    assert np.array_equal(
        mask_for_variant(gray, MaskVariant.LOCAL_STATS, cfg),
        local_stats_threshold(gray, cfg.block_size, cfg.sauvola_k, cfg.sauvola_r),
    )


def test_quality_score_empty_mask_is_zero():
    assert mask_quality_score(np.zeros((100, 100), dtype=np.uint8)) == 0.0


def test_quality_score_half_mask():
    mask = np.zeros((100, 100), dtype=np.uint8)
    mask[:, :50] = 255
    # One 50x100 component (aspect 0.5) and a perfectly balanced mask.
    assert mask_quality_score(mask) == pytest.approx(10 + 255)


def test_quality_score_ignores_specks_and_slivers():
    mask = np.zeros((100, 100), dtype=np.uint8)
    mask[10, 10] = 255
    mask[30, 30] = 255
    mask[50:52, 0:40] = 255  # aspect 20, outside [0.15, 15]
    assert mask_quality_score(mask) < 10


def test_select_best_mask_prefers_dark_text_on_light(text_frame):
    frame, _ = text_frame("OK")
    gray = frame[:, :, 0]
    _, variant = select_best_mask(gray)
    assert variant is MaskVariant.INVERTED


def test_threshold_config_validate():
    ThresholdConfig().validate()
    with pytest.raises(ConfigurationError):
        ThresholdConfig(block_size=8).validate()
    with pytest.raises(ConfigurationError):
        ThresholdConfig(blur_kernel=2).validate()
    with pytest.raises(ConfigurationError):
        ThresholdConfig(sauvola_r=-1).validate()
