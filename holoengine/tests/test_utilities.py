import logging
from datetime import timedelta

import numpy as np
import pytest

from holoengine.utilities import (
    Timer,
    create_grid,
    estimate_fresnel_cost,
    normalized_cross_correlation,
)


@pytest.mark.parametrize("width, height", [(16, 16), (15, 9), (64, 32)])
def test_grid_shape(width, height):
    X, Y = create_grid(width, height, 10e-6)
    assert X.shape == (height, width), f"Unexpected X shape {X.shape}"
    assert Y.shape == (height, width), f"Unexpected Y shape {Y.shape}"


@pytest.mark.parametrize("pixel_size", [8e-6, 10e-6])
def test_grid_spacing_consistency(pixel_size):
    X, Y = create_grid(32, 24, pixel_size)

    # Calculate grid spacings
    dx = np.diff(X[0, :])
    dy = np.diff(Y[:, 0])

    assert np.allclose(dx, pixel_size), "Grid spacing along X-axis is inconsistent."
    assert np.allclose(dy, pixel_size), "Grid spacing along Y-axis is inconsistent."


def test_grid_origin_is_field_centre():
    X, Y = create_grid(16, 8, 1.0)
    # Sample (width / 2, height / 2) maps to zero
    assert X[4, 8] == 0.0
    assert Y[4, 8] == 0.0
    assert X[0, 0] == -8.0
    assert Y[0, 0] == -4.0


def test_grid_custom_origin():
    X, Y = create_grid(4, 4, 2.0, origin=(0, 0))
    assert X[0, 0] == 0.0 and Y[0, 0] == 0.0
    assert X[0, -1] == 6.0
    assert Y[-1, 0] == 6.0


def test_grid_is_read_only():
    X, _ = create_grid(8, 8, 1.0)
    with pytest.raises(ValueError):
        X[0, 0] = 1.0


def test_timer_records_duration(caplog):
    with caplog.at_level(logging.INFO, logger="holoengine.utilities"):
        with Timer("Work took", level=logging.INFO) as timer:
            sum(range(1000))
    assert isinstance(timer.duration, timedelta)
    assert timer.duration >= timedelta(0)
    assert "Work took" in caplog.text


def test_timer_without_message_is_silent(caplog):
    with caplog.at_level(logging.DEBUG, logger="holoengine.utilities"):
        with Timer():
            pass
    assert caplog.records == []


def test_fresnel_cost_grows_with_square_of_samples():
    small = estimate_fresnel_cost(8, 8)
    large = estimate_fresnel_cost(16, 16)
    assert small["samples"] == 64
    assert small["operations"] == 64 * 64
    assert large["operations"] == 16 * small["operations"]


class TestNormalizedCrossCorrelation:

    def test_identical(self):
        a = np.arange(20, dtype=float)
        assert normalized_cross_correlation(a, a) == pytest.approx(1.0)

    def test_scale_and_offset_invariant(self):
        a = np.random.default_rng(1).random((8, 8))
        assert normalized_cross_correlation(a, 3 * a + 2) == pytest.approx(1.0)

    def test_anticorrelated(self):
        a = np.arange(10, dtype=float)
        assert normalized_cross_correlation(a, -a) == pytest.approx(-1.0)

    def test_constant_input(self):
        a = np.ones(10)
        b = np.arange(10, dtype=float)
        assert normalized_cross_correlation(a, b) == 0.0
