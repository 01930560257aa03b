"""
Tests for hue composition H and its inverse.
"""

from __future__ import annotations

import numpy as np
import pytest

from lumen_cam02 import hue_angle_from_quadrature, hue_quadrature
from lumen_errors import CAMDomainError, HueRangeError


def _angle_diff(a, b):
    return np.abs((np.asarray(a) - np.asarray(b) + 180.0) % 360.0 - 180.0)


@pytest.mark.parametrize("h, H", [
    (20.14, 0.0),     # unique red
    (90.0, 100.0),    # unique yellow
    (164.25, 200.0),  # unique green
    (237.53, 300.0),  # unique blue
])
def test_unique_hues(h, H):
    assert hue_quadrature(h) == pytest.approx(H, abs=1e-9)
    assert hue_angle_from_quadrature(H) == pytest.approx(h, abs=1e-9)


def test_composition_of_four_hundred_is_reported_as_zero():
    assert hue_quadrature(380.14) == 0.0
    assert hue_quadrature(380.1399) == 0.0


def test_hue_below_unique_red_wraps_into_last_quadrant():
    # 0 degrees lies between unique blue and unique red (one turn later)
    assert 300.0 < hue_quadrature(0.0) < 400.0
    assert 300.0 < hue_quadrature(20.0) < 400.0


def test_hue_composition_is_monotone_between_unique_hues():
    h = np.linspace(20.14, 380.0, 2000)
    H = hue_quadrature(h)
    assert np.all(np.diff(H) > 0.0)


def test_continuous_across_quadrant_boundaries():
    for edge, H in [(90.0, 100.0), (164.25, 200.0), (237.53, 300.0)]:
        assert hue_quadrature(edge - 1e-9) == pytest.approx(H, abs=1e-6)
        assert hue_quadrature(edge + 1e-9) == pytest.approx(H, abs=1e-6)


def test_round_trip_over_full_turn():
    h = np.linspace(0.0, 360.0, 3601, endpoint=False)
    back = hue_angle_from_quadrature(hue_quadrature(h))
    assert np.all((back >= 0.0) & (back < 360.0))
    assert np.all(_angle_diff(back, h) < 1e-9)


def test_inverse_snaps_full_turn_to_zero():
    assert hue_angle_from_quadrature(hue_quadrature(0.0)) == pytest.approx(0.0, abs=1e-9)
    assert hue_angle_from_quadrature(400.0) == pytest.approx(20.14, abs=1e-9)


def test_array_shape_preserved():
    h = np.array([[30.0, 120.0], [200.0, 300.0]])
    H = hue_quadrature(h)
    assert H.shape == h.shape
    assert isinstance(hue_quadrature(30.0), float)


@pytest.mark.parametrize("h", [-0.5, 380.15, 720.0, float("nan")])
def test_hue_angle_out_of_range(h):
    with pytest.raises(HueRangeError) as exc:
        hue_quadrature(h)
    assert isinstance(exc.value, CAMDomainError)
    if not np.isnan(h):
        assert exc.value.value == h


@pytest.mark.parametrize("H", [-0.1, 400.5])
def test_hue_composition_out_of_range(H):
    with pytest.raises(HueRangeError) as exc:
        hue_angle_from_quadrature(H)
    assert exc.value.value == H
    assert "H" in exc.value.precondition


def test_range_error_reports_first_offender():
    with pytest.raises(HueRangeError) as exc:
        hue_quadrature(np.array([10.0, 500.0, -3.0]))
    assert exc.value.value == 500.0
