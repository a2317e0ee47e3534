"""Tests for rxprep.preprocessing.skew."""

import numpy as np
import pytest

from conftest import make_document
from rxprep.preprocessing.skew import (
    HoughSkewEstimator,
    ProjectionProfileSkewEstimator,
    create_skew_estimator,
)


def _lines_page(size: int = 400) -> np.ndarray:
    page = np.full((size, size), 255, dtype=np.uint8)
    for top in range(40, size - 40, 20):
        page[top : top + 3, 40 : size - 40] = 0
    return page


class TestProjectionProfile:
    def test_straight_text_is_not_skewed(self):
        assert ProjectionProfileSkewEstimator().estimate(_lines_page()) == 0.0

    @pytest.mark.parametrize("angle", [3.0, -2.0])
    def test_recovers_rotation(self, codec, angle):
        rotated = codec.rotate(_lines_page(), angle, background=255)

        estimate = ProjectionProfileSkewEstimator().estimate(rotated)

        assert estimate == pytest.approx(angle, abs=0.5)

    def test_blank_page(self):
        blank = np.full((100, 100), 255, dtype=np.uint8)
        assert ProjectionProfileSkewEstimator().estimate(blank) == 0.0

    def test_large_pages_are_downscaled(self):
        page = make_document(2400, 1800)
        assert ProjectionProfileSkewEstimator(max_dimension=600).estimate(page) == 0.0

    def test_stays_within_max_angle(self, codec):
        rotated = codec.rotate(_lines_page(), 10.0, background=255)
        estimate = ProjectionProfileSkewEstimator(max_angle=5.0).estimate(rotated)
        assert abs(estimate) <= 5.0


class TestHough:
    def test_blank_page(self):
        blank = np.full((100, 100), 255, dtype=np.uint8)
        assert HoughSkewEstimator().estimate(blank) == 0.0

    @pytest.mark.parametrize("angle", [3.0, -2.0])
    def test_recovers_rotation(self, codec, angle):
        rotated = codec.rotate(_lines_page(), angle, background=255)

        estimate = HoughSkewEstimator().estimate(rotated)

        assert estimate == pytest.approx(angle, abs=1.0)

    def test_result_is_bounded(self, codec):
        rotated = codec.rotate(_lines_page(), 2.0, background=255)
        assert abs(HoughSkewEstimator(max_angle=5.0).estimate(rotated)) <= 5.0


class TestFactory:
    def test_projection(self):
        estimator = create_skew_estimator("projection", max_angle=3.0)
        assert isinstance(estimator, ProjectionProfileSkewEstimator)
        assert estimator.max_angle == 3.0

    def test_hough(self):
        assert isinstance(create_skew_estimator("hough"), HoughSkewEstimator)

    def test_unknown(self):
        with pytest.raises(ValueError):
            create_skew_estimator("random")
