import numpy as np
import pytest

from click_text_reader.candidate_sampler import (
    CandidateOrigin,
    CandidateSampler,
    FixedOffsets,
    OriginKind,
    RandomOffsets,
    SamplerConfig,
    jitter_window,
    to_gray,
)
from click_text_reader.errors import ConfigurationError, InputError
from click_text_reader.geometry import Rect
from click_text_reader.thresholder import MaskVariant


def _overlaps(a: Rect, b: Rect) -> bool:
    return a.x < b.right and b.x < a.right and a.y < b.bottom and b.y < a.bottom


# ---------------------------------------------------------------------------
# Offsets and windows
# ---------------------------------------------------------------------------

def test_fixed_offsets_cycle_and_clamp():
    gen = FixedOffsets([(3, -2), (40, -40)])
    assert gen.offsets(3, 15, 5) == [(3, -2), (15, -5), (3, -2)]


def test_fixed_offsets_need_pairs():
    with pytest.raises(ConfigurationError):
        FixedOffsets([])


def test_random_offsets_bounded_and_seeded():
    a = RandomOffsets(seed=7).offsets(50, 15, 5)
    b = RandomOffsets(seed=7).offsets(50, 15, 5)
    assert a == b
    assert len(a) == 50
    assert all(-15 <= dx <= 15 and -5 <= dy <= 5 for dx, dy in a)


def test_random_offsets_zero_range():
    assert RandomOffsets(seed=1).offsets(3, 0, 0) == [(0, 0)] * 3


def test_jitter_window_centered():
    assert jitter_window(300, 100, 0, 0) == Rect(75, 25, 150, 50)
    assert jitter_window(300, 100, 10, -4) == Rect(85, 21, 150, 50)


def test_jitter_window_stays_inside_frame():
    win = jitter_window(300, 100, 200, 200)
    assert win == Rect(150, 50, 150, 50)
    win = jitter_window(300, 100, -200, -200)
    assert win == Rect(0, 0, 150, 50)


def test_to_gray_accepts_all_layouts(ok_frame):
    frame, _ = ok_frame
    gray = to_gray(frame)
    assert gray.shape == frame.shape[:2]
    assert to_gray(gray) is gray
    bgra = np.dstack([frame, np.full(frame.shape[:2], 255, dtype=np.uint8)])
    assert np.array_equal(to_gray(bgra), gray)


def test_origin_label():
    roi = CandidateOrigin(OriginKind.JITTERED_ROI, MaskVariant.LOCAL_STATS, (3, -2))
    assert roi.label() == "roi(+3,-2)/local_stats"
    assert CandidateOrigin(OriginKind.FULL_FRAME, MaskVariant.INVERTED).label() == "full/inverted"


# ---------------------------------------------------------------------------
# Sampling
# ---------------------------------------------------------------------------

def test_empty_frame_is_rejected():
    sampler = CandidateSampler(offsets=FixedOffsets([(0, 0)]))
    with pytest.raises(InputError):
        sampler.sample(np.zeros((0, 0, 3), dtype=np.uint8))


def test_blank_frame_yields_nothing(blank_frame):
    sampler = CandidateSampler(offsets=RandomOffsets(seed=3))
    assert sampler.sample(blank_frame) == []


def test_full_frame_pass_finds_single_tight_region(ok_frame):
    frame, glyphs = ok_frame
    cfg = SamplerConfig(jitter_count=0)
    regions = CandidateSampler(cfg).sample(frame)

    assert len(regions) == 1
    found = regions[0]
    assert found.origin == CandidateOrigin(OriginKind.FULL_FRAME, MaskVariant.INVERTED)
    assert _overlaps(found.rect, glyphs)
    tol = 6
    assert abs(found.rect.x - glyphs.x) <= tol
    assert abs(found.rect.y - glyphs.y) <= tol
    assert abs(found.rect.right - glyphs.right) <= tol
    assert abs(found.rect.bottom - glyphs.bottom) <= tol


def test_pool_keeps_pass_order(ok_frame):
    frame, glyphs = ok_frame
    sampler = CandidateSampler(
        SamplerConfig(jitter_count=2), offsets=FixedOffsets([(0, 0), (5, 2)])
    )
    regions = sampler.sample(frame)

    kinds = [r.origin.kind for r in regions]
    assert kinds[-1] is OriginKind.FULL_FRAME
    first_full = kinds.index(OriginKind.FULL_FRAME)
    assert all(k is OriginKind.JITTERED_ROI for k in kinds[:first_full])
    assert all(k is OriginKind.FULL_FRAME for k in kinds[first_full:])

    # Jittered rectangles are reported in frame coordinates.
    jittered = [r for r in regions if r.origin.kind is OriginKind.JITTERED_ROI]
    assert jittered
    assert any(_overlaps(r.rect, glyphs) for r in jittered)
    h, w = frame.shape[:2]
    for r in regions:
        assert 0 <= r.rect.x and 0 <= r.rect.y
        assert r.rect.right <= w and r.rect.bottom <= h


def test_jittered_only(ok_frame):
    frame, _ = ok_frame
    cfg = SamplerConfig(jitter_count=1, full_frame_pass=False)
    regions = CandidateSampler(cfg, FixedOffsets([(0, 0)])).sample(frame)
    assert regions
    assert {r.origin.kind for r in regions} == {OriginKind.JITTERED_ROI}
    assert {r.origin.offset for r in regions} == {(0, 0)}


def test_sampler_validates_config():
    with pytest.raises(ConfigurationError):
        CandidateSampler(SamplerConfig(jitter_count=-1))
    with pytest.raises(ConfigurationError):
        CandidateSampler(SamplerConfig(window_ratio=0))
    with pytest.raises(ConfigurationError):
        CandidateSampler(SamplerConfig(jitter_ratio=0.8))
