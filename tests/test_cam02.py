"""
Tests for the CIECAM02 forward and reverse transforms.
"""

from __future__ import annotations

import warnings

import numpy as np
import pytest

import lumen_cam02
from lumen_cam02 import CIECAM02, default_engine
from lumen_correlates import Correlate, Correlates
from lumen_errors import CAMDomainError, HueRangeError, InsufficientCorrelatesError
from lumen_kernels import REF_WHITE_D65
from lumen_viewing import Surround, ViewingConditions, default_viewing_conditions

D65_100 = REF_WHITE_D65 * 100.0

# Linear sRGB -> XYZ (D65), used only to draw physically realisable samples
M_SRGB_TO_XYZ = np.array([
    [0.4124564, 0.3575761, 0.1804375],
    [0.2126729, 0.7151522, 0.0721750],
    [0.0193339, 0.1191920, 0.9503041],
])


def _samples(n=64, seed=7):
    rng = np.random.default_rng(seed)
    rgb = rng.uniform(0.02, 1.0, size=(n, 3))
    return rgb @ M_SRGB_TO_XYZ.T * 100.0


@pytest.fixture
def engine():
    return CIECAM02(ViewingConditions.create(D65_100, 20.0, 20.0, Surround.AVERAGE))


class TestReferenceValues:
    """Published worked example (CIE 159:2004 test conditions)."""

    def setup_method(self):
        vc = ViewingConditions.create((95.05, 100.0, 108.88), 318.31, 20.0, Surround.AVERAGE)
        self.engine = CIECAM02(vc)
        self.xyz = np.array([19.01, 20.00, 21.78])

    def test_forward(self):
        corr = self.engine.forward(self.xyz)
        assert corr.J == pytest.approx(41.7310911, rel=1e-5)
        assert corr.Q == pytest.approx(195.3713259, rel=1e-5)
        assert corr.h == pytest.approx(219.0484326, rel=1e-4)
        assert corr.H == pytest.approx(278.0607358, rel=1e-4)
        assert corr.C == pytest.approx(0.1047077, rel=1e-3)
        assert corr.M == pytest.approx(0.1088421, rel=1e-3)
        assert corr.s == pytest.approx(2.3603053, rel=1e-3)

    def test_reverse(self):
        corr = self.engine.forward(self.xyz)
        np.testing.assert_allclose(self.engine.reverse(corr), self.xyz, rtol=1e-6)


class TestWhitePoint:
    def test_white_forward(self, engine):
        corr = engine.forward(D65_100)
        assert corr.J == pytest.approx(100.0, rel=1e-12)
        # partial adaptation (D < 1) leaves the white slightly chromatic
        assert 0.0 <= corr.C < 6.0

    def test_white_forward_discounted(self):
        vc = ViewingConditions.create(D65_100, 20.0, 20.0, Surround.AVERAGE, discounting=True)
        corr = CIECAM02(vc).forward(D65_100)
        assert corr.J == pytest.approx(100.0, rel=1e-12)
        assert corr.C < 0.05

    def test_achromatic_reverse_recovers_white(self, engine):
        xyz = engine.reverse(Correlates(J=100.0, C=0.0, h=0.0))
        np.testing.assert_allclose(xyz, D65_100, rtol=0.03)

    def test_achromatic_reverse_recovers_white_discounted(self):
        vc = ViewingConditions.create(D65_100, 20.0, 20.0, Surround.AVERAGE, discounting=True)
        xyz = CIECAM02(vc).reverse(Correlates(J=100.0, C=0.0, h=0.0))
        np.testing.assert_allclose(xyz, D65_100, rtol=1e-3)

    def test_black(self, engine):
        corr = engine.forward(np.zeros(3))
        assert corr.J == pytest.approx(0.0, abs=1e-9)
        assert corr.Q == pytest.approx(0.0, abs=1e-3)
        np.testing.assert_allclose(engine.reverse(corr), np.zeros(3), atol=1e-6)


class TestRoundTrip:
    @pytest.mark.parametrize("surround", list(Surround))
    def test_xyz_round_trip(self, surround):
        engine = CIECAM02(ViewingConditions.create(D65_100, 20.0, 20.0, surround))
        for xyz in _samples(32):
            corr = engine.forward(xyz)
            np.testing.assert_allclose(engine.reverse(corr), xyz, rtol=1e-4)

    @pytest.mark.parametrize("keep", [
        ("J", "C", "h"),
        ("Q", "C", "h"),
        ("J", "M", "h"),
        ("Q", "M", "H"),
        ("J", "C", "H"),
        ("Q", "s", "h"),
        ("Q", "s", "H"),
    ])
    def test_partial_correlates(self, engine, keep):
        for xyz in _samples(8, seed=11):
            full = engine.forward(xyz)
            partial = Correlates(**{name: getattr(full, name) for name in keep})
            np.testing.assert_allclose(engine.reverse(partial), xyz, rtol=1e-4)

    # |sin h| == |cos h| at these angles selects the boundary branch of the opponent solve
    @pytest.mark.parametrize("h", [45.0, 135.0, 225.0, 315.0])
    def test_diagonal_hues(self, engine, h):
        xyz = engine.jch_to_xyz(np.array([50.0, 20.0, h]))
        corr = engine.forward(xyz)
        assert corr.J == pytest.approx(50.0, rel=1e-9)
        assert corr.C == pytest.approx(20.0, rel=1e-9)
        assert abs((corr.h - h + 180.0) % 360.0 - 180.0) < 1e-6
        np.testing.assert_allclose(engine.reverse(Correlates(J=50.0, C=20.0, h=h)), xyz, rtol=1e-12)
        for eps in (-1e-9, 1e-9):
            near = engine.jch_to_xyz(np.array([50.0, 20.0, h + eps]))
            np.testing.assert_allclose(near, xyz, rtol=1e-6)

    def test_other_white_point(self):
        vc = ViewingConditions.create((96.422, 100.0, 82.521), 64.0, 20.0, Surround.DIM)
        engine = CIECAM02(vc)
        for xyz in _samples(16, seed=3):
            np.testing.assert_allclose(engine.reverse(engine.forward(xyz)), xyz, rtol=1e-4)


class TestCompletion:
    def test_forward_is_fully_populated(self, engine):
        corr = engine.forward(np.array([30.0, 25.0, 10.0]))
        assert len(corr.present) == len(Correlate)

    def test_completion_is_idempotent(self, engine):
        corr = engine.forward(np.array([30.0, 25.0, 10.0]))
        before = corr.as_tuple()
        engine.complete_forward(corr)
        engine.complete_reverse(corr)
        assert corr.as_tuple() == before

    def test_supplied_values_are_kept(self, engine):
        corr = Correlates(J=50.0, Q=1.0, C=10.0, h=30.0)
        engine.complete_reverse(corr)
        assert corr.Q == 1.0
        assert corr.M == pytest.approx(engine.calculate_M(10.0))
        assert corr.s == pytest.approx(100.0 * np.sqrt(corr.M / 1.0))

    def test_lightness_from_brightness(self, engine):
        corr = engine.complete_forward(Correlates(Q=engine.calculate_Q(42.0)))
        assert corr.J == pytest.approx(42.0, rel=1e-12)

    def test_saturation_is_zero_at_zero_brightness(self, engine):
        assert engine.calculate_s(5.0, 0.0) == 0.0

    def test_missing_lightness(self, engine):
        with pytest.raises(InsufficientCorrelatesError, match="J or Q"):
            engine.complete_reverse(Correlates(C=10.0, h=20.0))

    @pytest.mark.parametrize("corr", [
        Correlates(J=50.0, h=20.0),
        Correlates(J=50.0, C=20.0),
        Correlates(Q=50.0, H=20.0),
        Correlates(C=10.0, h=20.0),
    ])
    def test_reverse_insufficient(self, engine, corr):
        with pytest.raises(InsufficientCorrelatesError) as exc:
            engine.reverse(corr)
        assert isinstance(exc.value, CAMDomainError)

    def test_reverse_leaves_caller_vector_untouched(self, engine):
        corr = Correlates(Q=80.0, s=30.0, H=150.0)
        before = corr.as_tuple()
        engine.reverse(corr)
        assert corr.as_tuple() == before

    def test_non_finite_correlate(self, engine):
        with pytest.raises(CAMDomainError):
            engine.complete_forward(Correlates(J=float("nan"), C=1.0, h=1.0))


class TestDomain:
    def test_non_finite_input(self, engine):
        with pytest.raises(CAMDomainError):
            engine.forward(np.array([np.nan, 20.0, 20.0]))

    def test_negative_achromatic_response(self, engine):
        with pytest.raises(CAMDomainError) as exc:
            engine.forward(np.array([-50.0, -50.0, -50.0]))
        assert exc.value.precondition

    def test_negative_lightness(self, engine):
        with pytest.raises(CAMDomainError):
            engine.reverse(Correlates(J=-10.0, C=5.0, h=30.0))

    def test_negative_chroma(self, engine):
        with pytest.raises(CAMDomainError):
            engine.reverse(Correlates(J=50.0, C=-5.0, h=30.0))

    def test_chroma_discarded_at_zero_lightness(self, engine):
        with pytest.warns(UserWarning, match="chroma discarded"):
            xyz = engine.reverse(Correlates(J=0.0, C=10.0, h=30.0))
        np.testing.assert_allclose(xyz, np.zeros(3), atol=1e-6)

    def test_no_warning_for_achromatic_black(self, engine):
        with warnings.catch_warnings():
            warnings.simplefilter("error", UserWarning)
            engine.reverse(Correlates(J=0.0, C=0.0, h=0.0))

    def test_wrong_shape(self, engine):
        with pytest.raises(ValueError):
            engine.forward(np.ones(4))
        with pytest.raises(ValueError):
            engine.xyz_to_correlates(np.ones((5, 4)))


class TestLightness:
    def test_monotone_in_luminance(self, engine):
        grey = np.outer(np.linspace(1.0, 100.0, 50), REF_WHITE_D65)
        J = engine.lightness(grey)
        assert J.shape == (50,)
        assert np.all(np.diff(J) > 0.0)

    def test_matches_full_forward(self, engine):
        for xyz in _samples(8):
            assert engine.lightness(xyz) == pytest.approx(engine.forward(xyz).J, rel=1e-12)


class TestBatch:
    def test_batch_matches_single(self, engine):
        xyz = _samples(16)
        batch = engine.xyz_to_correlates(xyz)
        assert batch.shape == (16, 7)
        for row, expected in zip(batch, xyz):
            single = engine.forward(expected).to_array()
            np.testing.assert_allclose(row, single, rtol=1e-12, atol=1e-12)

    def test_single_row_shape(self, engine):
        out = engine.xyz_to_correlates(D65_100)
        assert out.shape == (7,)
        assert out[Correlate.J] == pytest.approx(100.0)

    def test_jch_round_trip(self, engine):
        xyz = _samples(16)
        corr = engine.xyz_to_correlates(xyz)
        jch = corr[:, [Correlate.J, Correlate.C, Correlate.h]]
        np.testing.assert_allclose(engine.jch_to_xyz(jch), xyz, rtol=1e-4)

    # negative opponent denominator: C < 0 and s is undefined
    @pytest.mark.parametrize("xyz", [[54.65, -11.44, -52.62], [63.92, 10.01, -35.68]])
    def test_batch_rejects_what_single_rejects(self, engine, xyz):
        with pytest.raises(CAMDomainError):
            engine.forward(np.array(xyz))
        with pytest.raises(CAMDomainError):
            engine.xyz_to_correlates(np.array([[30.0, 25.0, 20.0], xyz]))

    @pytest.mark.parametrize("h", [385.0, -5.0])
    def test_batch_and_single_reject_same_hue(self, engine, h):
        with pytest.raises(HueRangeError):
            engine.reverse(Correlates(J=50.0, C=20.0, h=h))
        with pytest.raises(HueRangeError) as exc:
            engine.jch_to_xyz(np.array([50.0, 20.0, h]))
        assert exc.value.value == h


class TestEngine:
    def test_equality_follows_context(self):
        a = CIECAM02(ViewingConditions.create(D65_100, 20.0, 20.0))
        b = CIECAM02(ViewingConditions.create(tuple(D65_100), 20.0, 20.0))
        c = CIECAM02(ViewingConditions.create(D65_100, 40.0, 20.0))
        assert a == b and hash(a) == hash(b)
        assert a != c

    def test_default_engine(self):
        assert default_engine() is default_engine()
        assert default_engine().viewing_conditions is default_viewing_conditions()
        assert CIECAM02() == default_engine()

    def test_module_level_functions(self, engine):
        xyz = np.array([40.0, 35.0, 20.0])
        corr = lumen_cam02.forward(engine.viewing_conditions, xyz)
        assert corr == engine.forward(xyz)
        np.testing.assert_allclose(lumen_cam02.reverse(None, lumen_cam02.forward(None, xyz)), xyz, rtol=1e-4)
