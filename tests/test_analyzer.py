"""Tests for rxprep.preprocessing.analyzer."""

import numpy as np
import pytest

from conftest import encode, save_array
from rxprep.preprocessing import ImageHandle, ImageQualityAnalyzer
from rxprep.preprocessing.analyzer import (
    FALLBACK_SCORE,
    histogram_statistics,
    laplacian_sharpness,
    recommend,
    score_metrics,
)
from rxprep.schemas.quality import QualityMetrics, Recommendation


def _metrics(**overrides) -> QualityMetrics:
    values = dict(
        width=800,
        height=600,
        resolution_pixels=480_000,
        aspect_ratio=800 / 600,
        format="png",
        file_size_bytes=1000,
        brightness_mean=128.0,
        contrast_std_dev=60.0,
        sharpness_score=40.0,
        histogram=[0] * 256,
    )
    values.update(overrides)
    return QualityMetrics(**values)


@pytest.fixture
def analyzer() -> ImageQualityAnalyzer:
    return ImageQualityAnalyzer()


# ── Scoring ────────────────────────────────────────────────────────────────


class TestScore:
    def test_uniform_gray_jpeg_scores_point_nine(self, tmp_path, analyzer):
        """1.2MP, aspect 1.2, JPEG, no contrast, no sharpness."""
        path = save_array(np.full((1000, 1200, 3), 128, dtype=np.uint8), tmp_path / "gray.jpg", "JPEG")

        assessment = analyzer.analyze(path)

        assert assessment.score == pytest.approx(0.9, abs=0.01)
        assert assessment.metrics.contrast_std_dev == pytest.approx(0.0, abs=1.0)
        assert Recommendation.INCREASE_CONTRAST in assessment.recommendations
        assert Recommendation.APPLY_SHARPENING in assessment.recommendations

    def test_large_image_gets_both_resolution_bonuses(self, tmp_path, analyzer):
        path = save_array(np.full((1500, 2000, 3), 128, dtype=np.uint8), tmp_path / "big.jpg", "JPEG")

        assessment = analyzer.analyze(path)

        assert assessment.score == pytest.approx(1.0, abs=0.01)
        assert assessment.metrics.resolution_pixels == 3_000_000

    @pytest.mark.parametrize("image_format", ["PNG", "JPEG", "WEBP", "TIFF", "BMP"])
    def test_score_always_in_unit_interval(self, tmp_path, analyzer, image_format):
        rng = np.random.default_rng(7)
        pixels = rng.integers(0, 256, size=(120, 90, 3), dtype=np.uint8)
        path = save_array(pixels, tmp_path / f"noise.{image_format.lower()}", image_format)

        assessment = analyzer.analyze(path)

        assert 0.0 <= assessment.score <= 1.0
        assert assessment.error is None

    def test_contributions_are_capped(self):
        huge = _metrics(
            width=3000,
            height=2500,
            resolution_pixels=7_500_000,
            aspect_ratio=1.2,
            contrast_std_dev=120.0,
            sharpness_score=500.0,
        )
        assert score_metrics(huge) == pytest.approx(1.0)

    def test_non_document_aspect_ratio_gets_no_bonus(self):
        wide = _metrics(width=1000, height=200, resolution_pixels=200_000, aspect_ratio=5.0,
                        contrast_std_dev=0.0, sharpness_score=0.0)
        assert score_metrics(wide) == pytest.approx(0.6)

    def test_non_preferred_format_gets_no_bonus(self):
        base = _metrics(contrast_std_dev=0.0, sharpness_score=0.0)
        webp = _metrics(format="webp", contrast_std_dev=0.0, sharpness_score=0.0)
        assert score_metrics(base) - score_metrics(webp) == pytest.approx(0.1)

    def test_same_pixels_score_the_same(self, analyzer):
        rng = np.random.default_rng(3)
        pixels = rng.integers(0, 256, size=(60, 80), dtype=np.uint8)
        first = analyzer.analyze(ImageHandle(pixels=pixels, format="png"))
        second = analyzer.analyze(ImageHandle(pixels=pixels.copy(), format="png"))
        assert first.score == second.score


# ── Inputs ─────────────────────────────────────────────────────────────────


class TestInputs:
    def test_accepts_bytes(self, analyzer):
        data = encode(np.full((40, 50), 200, dtype=np.uint8))

        assessment = analyzer.analyze(data)

        assert assessment.metrics.format == "png"
        assert assessment.metrics.file_size_bytes == len(data)
        assert (assessment.metrics.width, assessment.metrics.height) == (50, 40)

    def test_accepts_handle(self, analyzer):
        handle = ImageHandle(pixels=np.zeros((10, 20, 3), dtype=np.uint8), format="jpeg")

        assessment = analyzer.analyze(handle)

        assert assessment.metrics.format == "jpeg"
        assert assessment.metrics.aspect_ratio == pytest.approx(2.0)
        assert Recommendation.ADJUST_BRIGHTNESS in assessment.recommendations

    def test_histogram_counts_every_pixel(self, analyzer):
        handle = ImageHandle(pixels=np.full((7, 9), 42, dtype=np.uint8), format="png")

        metrics = analyzer.analyze(handle).metrics

        assert len(metrics.histogram) == 256
        assert sum(metrics.histogram) == 63
        assert metrics.histogram[42] == 63


# ── Fallback ───────────────────────────────────────────────────────────────


class TestFallback:
    def test_missing_file(self, tmp_path, analyzer):
        assessment = analyzer.analyze(tmp_path / "missing.png")

        assert assessment.score == FALLBACK_SCORE
        assert assessment.recommendations == [Recommendation.MANUAL_REVIEW]
        assert assessment.metrics is None
        assert assessment.error
        assert assessment.is_fallback

    def test_garbage_bytes(self, analyzer):
        assessment = analyzer.analyze(b"definitely not an image")

        assert assessment.score == 0.5
        assert assessment.recommendations == [Recommendation.MANUAL_REVIEW]

    def test_text_file(self, not_an_image, analyzer):
        assert analyzer.analyze(not_an_image).is_fallback

    def test_empty_pixels(self, analyzer):
        handle = ImageHandle(pixels=np.zeros((0, 0), dtype=np.uint8), format="png")
        assert analyzer.analyze(handle).is_fallback


# ── Metric helpers ─────────────────────────────────────────────────────────


class TestHistogramStatistics:
    def test_half_black_half_white(self):
        histogram = np.zeros(256, dtype=np.int64)
        histogram[0] = 50
        histogram[255] = 50

        mean, std = histogram_statistics(histogram)

        assert mean == pytest.approx(127.5)
        assert std == pytest.approx(127.5)

    def test_single_value(self):
        histogram = np.zeros(256, dtype=np.int64)
        histogram[90] = 10
        assert histogram_statistics(histogram) == (pytest.approx(90.0), pytest.approx(0.0))

    def test_empty_histogram_raises(self):
        with pytest.raises(ValueError):
            histogram_statistics(np.zeros(256, dtype=np.int64))


class TestLaplacianSharpness:
    def test_flat_image_is_zero(self):
        assert laplacian_sharpness(np.full((20, 20), 77, dtype=np.uint8)) == 0.0

    def test_single_bright_pixel(self):
        gray = np.zeros((5, 5), dtype=np.uint8)
        gray[2, 2] = 10
        # Interior 3x3: centre |40|, four neighbours |-10|, corners 0
        assert laplacian_sharpness(gray) == pytest.approx(80 / 9)

    def test_border_is_excluded(self):
        gray = np.zeros((5, 5), dtype=np.uint8)
        gray[0, 0] = 255
        assert laplacian_sharpness(gray) == 0.0

    def test_tiny_image_is_zero(self):
        assert laplacian_sharpness(np.full((2, 2), 255, dtype=np.uint8)) == 0.0

    def test_edges_score_higher_than_blur(self):
        sharp = np.zeros((40, 40), dtype=np.uint8)
        sharp[:, 20:] = 255
        soft = np.tile(np.linspace(0, 255, 40).astype(np.uint8), (40, 1))
        assert laplacian_sharpness(sharp) > laplacian_sharpness(soft)


class TestRecommend:
    def test_good_image_needs_minimal_processing(self):
        assert recommend(0.9, _metrics()) == [Recommendation.MINIMAL_PROCESSING]

    def test_low_score_comes_first(self):
        result = recommend(0.4, _metrics(contrast_std_dev=10.0))
        assert result == [Recommendation.AGGRESSIVE_ENHANCEMENT, Recommendation.INCREASE_CONTRAST]

    @pytest.mark.parametrize("brightness", [30.0, 220.0])
    def test_brightness_out_of_range(self, brightness):
        result = recommend(0.8, _metrics(brightness_mean=brightness))
        assert result == [Recommendation.ADJUST_BRIGHTNESS]

    def test_blurry(self):
        assert recommend(0.8, _metrics(sharpness_score=5.0)) == [Recommendation.APPLY_SHARPENING]

    def test_all_issues_in_order(self):
        metrics = _metrics(contrast_std_dev=5.0, brightness_mean=20.0, sharpness_score=1.0)
        assert recommend(0.3, metrics) == [
            Recommendation.AGGRESSIVE_ENHANCEMENT,
            Recommendation.INCREASE_CONTRAST,
            Recommendation.ADJUST_BRIGHTNESS,
            Recommendation.APPLY_SHARPENING,
        ]
