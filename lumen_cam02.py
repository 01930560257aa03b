# -*- coding: utf-8 -*-
"""
Lumen: Colour appearance under viewing conditions
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

CIECAM02 Appearance Engine
==========================
Forward (XYZ -> correlates) and reverse (correlates -> XYZ) CIECAM02
transforms bound to a ``ViewingConditions`` context.

Scales:
    Tristimulus values are on the Y=100 scale used by the model itself
    (a perfect white has Y = 100).  The ``CIECAM02Space`` adapter in
    ``lumen_colorspace`` bridges from the Y=1 scale used by other colour spaces.

Architecture Note:
    Every transform has an internal ``_raw`` variant on pre-validated
    (N, 3) float64 rows and a public wrapper.
    The single-colour API (``forward``/``reverse``) and the batch API
    (``xyz_to_correlates``/``jch_to_xyz``) run the same ``_raw`` code, so
    they agree up to floating-point rounding.

Correlate Completion:
    Any slot that can be derived from slots already present is filled by
    ``complete_forward`` / ``complete_reverse``.  Supplied values are never
    overwritten.  J/Q is resolved first because the chroma rules may need Q.
"""

from __future__ import annotations

import functools
import threading
import warnings
from typing import Any, Callable, Final, Optional, Tuple, Union

import numpy as np

from lumen_correlates import Correlate, Correlates
from lumen_errors import CAMDomainError, HueRangeError, InsufficientCorrelatesError
from lumen_kernels import (
    HUE_BREAKPOINTS,
    HUE_QUADRATURES,
    ArrayFloat,
    _hue_angle_from_quadrature_kernel,
    _hue_quadrature_kernel,
    achromatic_response,
    cat02_to_hpe,
    cat02_to_xyz,
    compress_response,
    decompress_response,
    eccentricity,
    hpe_to_cat02,
    hue_angle,
    opponent_ab,
    opponent_to_compressed,
    solve_opponent_ab,
    xyz_to_cat02,
)
from lumen_viewing import ViewingConditions, default_viewing_conditions

__all__ = [
    "handle_shapes",
    "hue_quadrature",
    "hue_angle_from_quadrature",
    "CIECAM02",
    "default_engine",
    "forward",
    "reverse",
]

Scalar = Union[float, ArrayFloat]

_H_MIN: Final[float] = 0.0
_H_MAX: Final[float] = HUE_BREAKPOINTS[-1]
_HQ_MAX: Final[float] = HUE_QUADRATURES[-1]


# =============================================================================
# 1. SHAPE HANDLING
# =============================================================================

def handle_shapes(width: int = 3) -> Callable[[Callable[..., ArrayFloat]], Callable[..., ArrayFloat]]:
    """
    Decorator factory normalising the array argument of a method to (N, width).

    Shape contract:
        - If input is (width,), returns the first row of the result
        - If input is (N, width), returns the full result
    """
    def decorator(func: Callable[..., ArrayFloat]) -> Callable[..., ArrayFloat]:
        @functools.wraps(func)
        def wrapper(self: Any, arr: ArrayFloat, *args: Any, **kwargs: Any) -> ArrayFloat:
            arr = np.asarray(arr, dtype=np.float64)
            arr_in = np.ascontiguousarray(np.atleast_2d(arr))

            if arr_in.ndim != 2 or arr_in.shape[-1] != width:
                raise ValueError(f"Expected last dimension size {width}, got shape {arr.shape}")

            res = func(self, arr_in, *args, **kwargs)

            if arr.ndim == 1:
                return res[0]
            return res
        return wrapper
    return decorator


def _require_finite(values: ArrayFloat, what: str, source: Any = None) -> None:
    """Raise ``CAMDomainError`` if any entry of *values* is NaN or inf."""
    values = np.asarray(values)
    if not np.all(np.isfinite(values)):
        bad = values[~np.isfinite(values)]
        raise CAMDomainError(
            f"{what} is not finite ({bad.ravel()[0]!r})",
            value=source if source is not None else values,
            precondition=f"{what} finite",
        )


# =============================================================================
# 2. HUE COMPOSITION
# =============================================================================

def _check_hue_angle(arr: ArrayFloat) -> None:
    """Raise ``HueRangeError`` for the first angle outside 0..380.14."""
    bad = ~((arr >= _H_MIN) & (arr <= _H_MAX))
    if np.any(bad):
        value = float(arr[bad][0])
        raise HueRangeError(
            f"Hue angle outside assumed range 0..{_H_MAX}: {value!r}",
            value=value,
            precondition=f"0 <= h <= {_H_MAX}",
        )


def hue_quadrature(h: Scalar) -> Scalar:
    """
    Hue angle (degrees) -> hue composition H on the 0..400 scale.

    Angles below unique red (20.14°) are taken one turn later.  Accepts
    0 <= h <= 380.14; a result within 1e-3 of 400 is reported as 0.
    """
    arr = np.atleast_1d(np.asarray(h, dtype=np.float64)).ravel()
    _check_hue_angle(arr)
    res = _hue_quadrature_kernel(np.ascontiguousarray(arr))
    if np.ndim(h) == 0:
        return float(res[0])
    return res.reshape(np.shape(h))


def hue_angle_from_quadrature(H: Scalar) -> Scalar:
    """
    Hue composition H (0..400) -> hue angle in degrees, [0, 360).

    A result within 1e-4 of 360 is reported as 0.
    """
    arr = np.atleast_1d(np.asarray(H, dtype=np.float64)).ravel()
    bad = ~((arr >= 0.0) & (arr <= _HQ_MAX))
    if np.any(bad):
        value = float(arr[bad][0])
        raise HueRangeError(
            f"Hue composition outside 0..{_HQ_MAX:g}: {value!r}",
            value=value,
            precondition=f"0 <= H <= {_HQ_MAX:g}",
        )
    res = _hue_angle_from_quadrature_kernel(np.ascontiguousarray(arr))
    if np.ndim(H) == 0:
        return float(res[0])
    return res.reshape(np.shape(H))


# =============================================================================
# 3. ENGINE
# =============================================================================

class CIECAM02:
    """
    CIECAM02 colour appearance model under one set of viewing conditions.

    Engines are cheap: all heavy lifting happens once in the
    ``ViewingConditions`` they wrap.  Two engines are equal when their
    contexts are equal.
    """
    __slots__ = ("_vc",)

    def __init__(self, viewing_conditions: Optional[ViewingConditions] = None) -> None:
        self._vc = viewing_conditions if viewing_conditions is not None else default_viewing_conditions()

    @property
    def viewing_conditions(self) -> ViewingConditions:
        return self._vc

    def __eq__(self, other: object) -> bool:
        if self is other:
            return True
        if other is None or type(other) is not type(self):
            return NotImplemented
        return self._vc == other._vc  # type: ignore[attr-defined]

    def __hash__(self) -> int:
        return hash(self._vc)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._vc!r})"

    # =====================================================================
    #  Correlate formulas (scalar or array)
    # =====================================================================

    def calculate_Q(self, J: Scalar) -> Scalar:
        """Brightness from lightness."""
        vc = self._vc
        with np.errstate(invalid="ignore"):
            return (4.0 / vc.c) * np.sqrt(np.divide(J, 100.0)) * (vc.A_w + 4.0) * vc.F_L_4

    def calculate_J(self, Q: Scalar) -> Scalar:
        """Lightness from brightness."""
        vc = self._vc
        return 6.25 * np.power(vc.c * np.asarray(Q, dtype=np.float64) / ((vc.A_w + 4.0) * vc.F_L_4), 2.0)

    def calculate_M(self, C: Scalar) -> Scalar:
        """Colourfulness from chroma."""
        return np.multiply(C, self._vc.F_L_4)

    def calculate_C(self, M: Scalar) -> Scalar:
        """Chroma from colourfulness."""
        return np.divide(M, self._vc.F_L_4)

    def calculate_C_from_saturation(self, s: Scalar, Q: Scalar) -> Scalar:
        """Chroma from saturation and brightness."""
        return np.power(np.divide(s, 100.0), 2.0) * np.asarray(Q, dtype=np.float64) / self._vc.F_L_4

    @staticmethod
    def calculate_s(M: Scalar, Q: Scalar) -> Scalar:
        """Saturation from colourfulness and brightness; 0 where Q == 0."""
        M = np.asarray(M, dtype=np.float64)
        Q = np.asarray(Q, dtype=np.float64)
        with np.errstate(invalid="ignore", divide="ignore"):
            return np.where(Q == 0.0, 0.0, 100.0 * np.sqrt(M / Q))

    # =====================================================================
    #  Internal _raw stages  (assume validated (N, 3) float64)
    # =====================================================================

    def _compressed_raw(self, xyz: ArrayFloat) -> ArrayFloat:
        """Stages 1-4: XYZ -> compressed post-adaptation HPE response."""
        vc = self._vc
        rgb = xyz_to_cat02(xyz)
        rgb_c = rgb * vc.D_RGB
        rgb_p = cat02_to_hpe(rgb_c)
        return compress_response(rgb_p, vc.F_L)

    def _lightness_raw(self, A: ArrayFloat, source: Any = None) -> ArrayFloat:
        """Stage 6: J from the achromatic response."""
        vc = self._vc
        with np.errstate(invalid="ignore"):
            J = 100.0 * np.power(A / vc.A_w, vc.c * vc.z)
        _require_finite(J, "Lightness J (achromatic response A must be >= 0)", source)
        return J

    def _forward_raw(self, xyz: ArrayFloat) -> Tuple[ArrayFloat, ArrayFloat, ArrayFloat]:
        """Stages 1-11: XYZ rows -> (J, C, h)."""
        vc = self._vc
        _require_finite(xyz, "XYZ input")
        rgb_a = self._compressed_raw(xyz)

        A = achromatic_response(rgb_a, vc.N_bb)
        J = self._lightness_raw(A, xyz)

        a, b = opponent_ab(rgb_a)
        h = hue_angle(a, b)
        e = eccentricity(h, vc.N_c, vc.N_cb)

        with np.errstate(invalid="ignore", divide="ignore"):
            t = e * np.sqrt(a * a + b * b) / (rgb_a[:, 0] + rgb_a[:, 1] + 1.05 * rgb_a[:, 2])
            C = np.sign(t) * np.power(np.abs(t), 0.9) * np.sqrt(J / 100.0) \
                * np.power(1.64 - np.power(0.29, vc.n), 0.73)
        _require_finite(C, "Chroma C", xyz)
        return J, C, h

    def _reverse_raw(self, J: ArrayFloat, C: ArrayFloat, h: ArrayFloat) -> ArrayFloat:
        """(J, C, h) columns -> XYZ rows."""
        vc = self._vc
        e = eccentricity(h, vc.N_c, vc.N_cb)

        with np.errstate(invalid="ignore", divide="ignore"):
            A = vc.A_w * np.power(J / 100.0, 1.0 / (vc.c * vc.z))
            denom = np.sqrt(J / 100.0) * np.power(1.64 - np.power(0.29, vc.n), 0.73)
            zero = denom == 0.0
            t = np.where(zero, 0.0, np.power(C / np.where(zero, 1.0, denom), 1.0 / 0.9))
        _require_finite(A, "Achromatic response A (J must be >= 0)", J)
        _require_finite(t, "Preliminary magnitude t (C must be >= 0)", C)
        if np.any(zero & (C > 0.0)):
            warnings.warn(
                "CIECAM02.reverse: chroma discarded for J = 0 (black has no chroma).",
                stacklevel=3,
            )

        p2 = A / vc.N_bb + 0.305
        a, b = solve_opponent_ab(h, e, t, p2)
        _require_finite(np.stack((a, b)), "Opponent values a, b")

        rgb_a = opponent_to_compressed(a, b, p2)
        rgb_p = decompress_response(rgb_a, vc.F_L)
        _require_finite(rgb_p, "HPE cone response")

        rgb = hpe_to_cat02(rgb_p) / vc.D_RGB
        xyz = cat02_to_xyz(rgb)
        _require_finite(xyz, "XYZ result")
        return xyz

    # =====================================================================
    #  Correlate completion
    # =====================================================================

    @staticmethod
    def _check_present(corr: Correlates) -> None:
        for idx in corr.present:
            v = corr[idx]
            if not np.isfinite(v):
                raise CAMDomainError(
                    f"Correlate {idx.name} is not finite ({v!r})",
                    value=v,
                    precondition=f"{idx.name} finite",
                )

    @staticmethod
    def _fill(corr: Correlates, idx: Correlate, value: Scalar) -> None:
        value = float(value)
        if not np.isfinite(value):
            raise CAMDomainError(
                f"Derived correlate {idx.name} is not finite",
                value=corr.as_tuple(),
                precondition=f"{idx.name} derivable from the supplied correlates",
            )
        corr[idx] = value

    def _complete_lightness(self, corr: Correlates) -> None:
        if corr.J is not None and corr.Q is None:
            self._fill(corr, Correlate.Q, self.calculate_Q(corr.J))
        elif corr.Q is not None and corr.J is None:
            self._fill(corr, Correlate.J, self.calculate_J(corr.Q))
        elif corr.J is None and corr.Q is None:
            raise InsufficientCorrelatesError(
                "J or Q have to be given.",
                value=corr.as_tuple(),
                precondition="J or Q present",
            )

    def _complete_colourfulness(self, corr: Correlates) -> None:
        if corr.C is not None and corr.M is None:
            self._fill(corr, Correlate.M, self.calculate_M(corr.C))
        if corr.Q is not None and corr.M is not None and corr.s is None:
            self._fill(corr, Correlate.s, self.calculate_s(corr.M, corr.Q))
        if corr.h is not None and corr.H is None:
            self._fill(corr, Correlate.H, hue_quadrature(corr.h))

    def complete_forward(self, corr: Correlates) -> Correlates:
        """
        Fill Q, M, s and H (and J from Q) where they can be derived.

        Works in place and returns *corr*.  Idempotent.
        """
        self._check_present(corr)
        self._complete_lightness(corr)
        self._complete_colourfulness(corr)
        return corr

    def complete_reverse(self, corr: Correlates) -> Correlates:
        """
        Fill J/Q, C (from M, or from s and Q) and h (from H) where possible,
        then the forward-derivable slots.

        Works in place and returns *corr*.  Idempotent.
        """
        self._check_present(corr)
        self._complete_lightness(corr)

        if corr.M is not None and corr.C is None:
            self._fill(corr, Correlate.C, self.calculate_C(corr.M))
        if corr.s is not None and corr.C is None and corr.Q is not None:
            self._fill(corr, Correlate.C, self.calculate_C_from_saturation(corr.s, corr.Q))
        if corr.H is not None and corr.h is None:
            self._fill(corr, Correlate.h, hue_angle_from_quadrature(corr.H))

        self._complete_colourfulness(corr)
        return corr

    # =====================================================================
    #  Public single-colour API
    # =====================================================================

    def forward(self, xyz: ArrayFloat) -> Correlates:
        """
        XYZ (Y=100 scale, shape (3,)) -> fully populated ``Correlates``.
        """
        xyz_arr = np.asarray(xyz, dtype=np.float64)
        if xyz_arr.shape != (3,):
            raise ValueError(f"Expected a single XYZ triple, got shape {xyz_arr.shape}")
        J, C, h = self._forward_raw(xyz_arr[np.newaxis, :])
        corr = Correlates(J=float(J[0]), C=float(C[0]), h=float(h[0]))
        return self.complete_forward(corr)

    def reverse(self, correlates: Correlates) -> ArrayFloat:
        """
        ``Correlates`` (possibly partial) -> XYZ on the Y=100 scale, shape (3,).

        The caller's vector is left untouched; completion runs on a copy.
        """
        corr = self.complete_reverse(correlates.copy())
        if corr.J is None or corr.C is None or corr.h is None:
            raise InsufficientCorrelatesError(
                "Insufficient correlates were present.",
                value=correlates.as_tuple(),
                precondition="J, C and h derivable",
            )
        xyz = self._reverse_raw(
            np.array([corr.J], dtype=np.float64),
            np.array([corr.C], dtype=np.float64),
            np.array([corr.h], dtype=np.float64),
        )
        return xyz[0]

    def lightness(self, xyz: ArrayFloat) -> Scalar:
        """
        Lightness J only; skips the opponent and chroma stages.

        Accepts (3,) or (N, 3); returns a float or an (N,) array.
        """
        arr = np.asarray(xyz, dtype=np.float64)
        rows = np.ascontiguousarray(np.atleast_2d(arr))
        if rows.ndim != 2 or rows.shape[-1] != 3:
            raise ValueError(f"Expected last dimension size 3, got shape {arr.shape}")
        _require_finite(rows, "XYZ input")
        A = achromatic_response(self._compressed_raw(rows), self._vc.N_bb)
        J = self._lightness_raw(A, rows)
        if arr.ndim == 1:
            return float(J[0])
        return J

    # =====================================================================
    #  Public batch API
    # =====================================================================

    @handle_shapes(3)
    def xyz_to_correlates(self, xyz: ArrayFloat) -> ArrayFloat:
        """
        XYZ rows (Y=100 scale) -> (N, 7) correlates in ``Correlate`` order.

        Every column is populated: forward output is always complete.
        """
        J, C, h = self._forward_raw(xyz)
        out = np.empty((xyz.shape[0], len(Correlate)), dtype=np.float64)
        out[:, Correlate.J] = J
        out[:, Correlate.C] = C
        out[:, Correlate.h] = h
        out[:, Correlate.Q] = self.calculate_Q(J)
        out[:, Correlate.M] = self.calculate_M(C)
        out[:, Correlate.s] = self.calculate_s(out[:, Correlate.M], out[:, Correlate.Q])
        out[:, Correlate.H] = hue_quadrature(h)
        _require_finite(out, "Correlates", xyz)
        return out

    @handle_shapes(3)
    def jch_to_xyz(self, jch: ArrayFloat) -> ArrayFloat:
        """
        (J, C, h) rows -> XYZ rows on the Y=100 scale.

        Hue angles outside 0..380.14 are rejected, as in ``reverse``.
        """
        _require_finite(jch, "JCh input")
        _check_hue_angle(jch[:, 2])
        return self._reverse_raw(jch[:, 0].copy(), jch[:, 1].copy(), jch[:, 2].copy())


# =============================================================================
# 4. MODULE-LEVEL API
# =============================================================================

_ENGINE_LOCK = threading.Lock()
_default_engine: Optional[CIECAM02] = None


def default_engine() -> CIECAM02:
    """Engine over ``default_viewing_conditions()``, built once on first use."""
    global _default_engine
    engine = _default_engine
    if engine is None:
        with _ENGINE_LOCK:
            if _default_engine is None:
                _default_engine = CIECAM02(default_viewing_conditions())
            engine = _default_engine
    return engine


def _engine_for(context: Optional[ViewingConditions]) -> CIECAM02:
    if context is None:
        return default_engine()
    return CIECAM02(context)


def forward(context: Optional[ViewingConditions], xyz: ArrayFloat) -> Correlates:
    """XYZ (Y=100 scale) -> correlates; ``None`` selects the default context."""
    return _engine_for(context).forward(xyz)


def reverse(context: Optional[ViewingConditions], correlates: Correlates) -> ArrayFloat:
    """Correlates -> XYZ (Y=100 scale); ``None`` selects the default context."""
    return _engine_for(context).reverse(correlates)
