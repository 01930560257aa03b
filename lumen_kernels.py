# -*- coding: utf-8 -*-
"""
Lumen: Colour appearance under viewing conditions
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

CIECAM02 Stage Kernels
======================
Fixed linear bases and the per-element stages of the CIECAM02 model.

Everything in this module is context-free: stages that depend on viewing
conditions take the relevant scalars (``F_L``, ``N_bb``, ...) as plain
arguments, so that ``lumen_viewing`` can run the forward stages on the
adapting white while the context is still under construction.

Array Convention:
    All tristimulus-like arrays are row vectors of shape (N, 3) float64.
    Matrices are stored pre-transposed (suffix ``_T``) so that a basis change
    is a single ``np.dot(arr, M_T)``.

Kernel Note:
    The piecewise stages (response compression, its inverse, the opponent
    solve and both hue-composition directions) are Numba kernels compiled
    with ``fastmath=False``.  Branch selection in these kernels relies on
    exact IEEE comparisons (``>=`` on |sin h| vs |cos h|, ``== 0`` on the
    compressed response) and must not be reassociated.

References:
    - CIE 159:2004 "A colour appearance model for colour management systems: CIECAM02"
    - Moroney, N. et al. (2002). "The CIECAM02 color appearance model".
"""

from __future__ import annotations

from typing import Final, Tuple, TypeAlias

import numpy as np
import numpy.typing as npt
from numba import njit

__all__ = [
    # --- Type Aliases ---
    "ArrayFloat",

    # --- Constants ---
    "REF_WHITE_D65",
    "REF_WHITE_D50",
    "DEG2RAD",
    "RAD2DEG",
    "HUE_BREAKPOINTS",
    "HUE_ECCENTRICITIES",
    "HUE_QUADRATURES",

    # --- Matrices ---
    "M_CAT02_T",
    "M_CAT02_INV_T",
    "M_CAT02_TO_HPE_T",
    "M_HPE_TO_CAT02_T",

    # --- Stages ---
    "xyz_to_cat02",
    "cat02_to_xyz",
    "cat02_to_hpe",
    "hpe_to_cat02",
    "compress_response",
    "decompress_response",
    "achromatic_response",
    "opponent_ab",
    "hue_angle",
    "eccentricity",
    "solve_opponent_ab",
    "opponent_to_compressed",
]

# --- Type Aliases ---
ArrayFloat: TypeAlias = npt.NDArray[np.floating]

# --- Constants ---

# Standard Illuminants (Y=1.0)
# D65: Average daylight (approx 6500K)
REF_WHITE_D65: Final[ArrayFloat] = np.array([0.95047, 1.00000, 1.08883], dtype=np.float64)
# D50: Horizon daylight (approx 5000K), standard for printing (ICC)
REF_WHITE_D50: Final[ArrayFloat] = np.array([0.96422, 1.00000, 0.82521], dtype=np.float64)

DEG2RAD: Final[float] = np.pi / 180.0
RAD2DEG: Final[float] = 180.0 / np.pi

# Unique hue data (CIE 159:2004, Table 2).  The fifth entry repeats unique
# red one turn later so that every quadrant has an upper neighbour.
HUE_BREAKPOINTS: Final[Tuple[float, ...]] = (20.14, 90.0, 164.25, 237.53, 380.14)
HUE_ECCENTRICITIES: Final[Tuple[float, ...]] = (0.8, 0.7, 1.0, 1.2, 0.8)
HUE_QUADRATURES: Final[Tuple[float, ...]] = (0.0, 100.0, 200.0, 300.0, 400.0)

# CAT02 chromatic adaptation matrix.
# Transforms XYZ to "sharpened" cone responses for the von Kries gain.
_M_CAT02 = np.array([
    [ 0.7328,  0.4296, -0.1624],
    [-0.7036,  1.6975,  0.0061],
    [ 0.0030,  0.0136,  0.9834]
], dtype=np.float64)
M_CAT02_T: Final[ArrayFloat] = _M_CAT02.T.copy()
M_CAT02_INV_T: Final[ArrayFloat] = np.linalg.inv(_M_CAT02).T.copy()

# Hunt-Pointer-Estevez cone fundamentals (equal-energy normalised).
_M_HPE = np.array([
    [ 0.38971,  0.68898, -0.07868],
    [-0.22981,  1.18340,  0.04641],
    [ 0.00000,  0.00000,  1.00000]
], dtype=np.float64)

# Composite CAT02 -> HPE: M_HPE @ M_CAT02^-1 (column-vector form).
_M_CAT02_TO_HPE = _M_HPE @ np.linalg.inv(_M_CAT02)
M_CAT02_TO_HPE_T: Final[ArrayFloat] = _M_CAT02_TO_HPE.T.copy()
M_HPE_TO_CAT02_T: Final[ArrayFloat] = np.linalg.inv(_M_CAT02_TO_HPE).T.copy()

# Opponent inversion coefficients (CIE 159:2004, step 8.11).
_P3: Final[float] = 1.05


# =============================================================================
# 1. LINEAR BASES
# =============================================================================

def xyz_to_cat02(xyz: ArrayFloat) -> ArrayFloat:
    """XYZ -> sharpened cone response (stage 1)."""
    return np.dot(xyz, M_CAT02_T)

def cat02_to_xyz(rgb: ArrayFloat) -> ArrayFloat:
    """Sharpened cone response -> XYZ."""
    return np.dot(rgb, M_CAT02_INV_T)

def cat02_to_hpe(rgb_c: ArrayFloat) -> ArrayFloat:
    """Adapted sharpened response -> HPE cone fundamentals (stage 3)."""
    return np.dot(rgb_c, M_CAT02_TO_HPE_T)

def hpe_to_cat02(rgb_p: ArrayFloat) -> ArrayFloat:
    """HPE cone fundamentals -> adapted sharpened response."""
    return np.dot(rgb_p, M_HPE_TO_CAT02_T)


# =============================================================================
# 2. NUMBA KERNELS
# =============================================================================

@njit(cache=True, fastmath=False)
def _compress_kernel(rgb_p: ArrayFloat, F_L: float) -> ArrayFloat:
    """
    Post-adaptation non-linear response compression.

    The sign split is at 0 on the input while the output is centred on 0.1,
    so the function is odd about (0, 0.1), not about the origin.
    """
    out = np.empty_like(rgb_p)
    src = rgb_p.ravel()
    dst = out.ravel()

    for i in range(rgb_p.size):
        v = src[i]
        if v >= 0.0:
            n = (F_L * v / 100.0) ** 0.42
            dst[i] = 400.0 * n / (n + 27.13) + 0.1
        else:
            n = (-F_L * v / 100.0) ** 0.42
            dst[i] = -400.0 * n / (n + 27.13) + 0.1
    return out

@njit(cache=True, fastmath=False)
def _decompress_kernel(rgb_a: ArrayFloat, F_L: float) -> ArrayFloat:
    """
    Inverse of ``_compress_kernel``.

    A compressed value of exactly 0.1 maps to 0; anything else goes through
    the positive or negative branch according to its offset from 0.1.
    """
    out = np.empty_like(rgb_a)
    src = rgb_a.ravel()
    dst = out.ravel()

    for i in range(rgb_a.size):
        x = src[i] - 0.1
        if x == 0.0:
            dst[i] = 0.0
        else:
            k = abs(x)
            v = 100.0 / F_L * ((27.13 * k) / (400.0 - k)) ** (1.0 / 0.42)
            if x < 0.0:
                v = -v
            dst[i] = v
    return out

@njit(cache=True, fastmath=False)
def _opponent_solve_kernel(h: ArrayFloat, e: ArrayFloat, t: ArrayFloat, p2: ArrayFloat) -> ArrayFloat:
    """
    Recovers the opponent pair (a, b) from hue, eccentricity, t and p2.

    Divides by whichever of sin(h), cos(h) has the larger magnitude so the
    denominator never approaches zero near the axes.  Input shape (N,),
    output shape (N, 2).
    """
    n = h.shape[0]
    out = np.zeros((n, 2), dtype=np.float64)

    for i in range(n):
        ti = t[i]
        if ti <= 0.0:
            continue
        h_rad = h[i] * DEG2RAD
        sin_h = np.sin(h_rad)
        cos_h = np.cos(h_rad)
        p1 = e[i] * (1.0 / ti)
        if abs(sin_h) >= abs(cos_h):
            ratio = cos_h / sin_h
            p4 = p1 / sin_h
            b = (p2[i] * (2.0 + _P3) * (460.0 / 1403.0)) / (
                p4 + (2.0 + _P3) * (220.0 / 1403.0) * ratio
                - (27.0 / 1403.0) + _P3 * (6300.0 / 1403.0))
            a = b * ratio
        else:
            ratio = sin_h / cos_h
            p5 = p1 / cos_h
            a = (p2[i] * (2.0 + _P3) * (460.0 / 1403.0)) / (
                p5 + (2.0 + _P3) * (220.0 / 1403.0)
                - (27.0 / 1403.0 - _P3 * 6300.0 / 1403.0) * ratio)
            b = a * ratio
        out[i, 0] = a
        out[i, 1] = b
    return out

@njit(cache=True, fastmath=False)
def _hue_quadrature_kernel(h: ArrayFloat) -> ArrayFloat:
    """
    Hue angle (degrees) -> hue composition H on the 0..400 scale.

    Expects pre-validated input in [0, 380.14].
    """
    out = np.empty_like(h)
    for k in range(h.shape[0]):
        hv = h[k]
        if hv < 20.14:
            hv += 360.0
        if hv < 90.0:
            i = (hv - 20.14) / 0.8
            H = 100.0 * i / (i + (90.0 - hv) / 0.7)
        elif hv < 164.25:
            i = (hv - 90.0) / 0.7
            H = 100.0 + 100.0 * i / (i + (164.25 - hv) / 1.0)
        elif hv < 237.53:
            i = (hv - 164.25) / 1.0
            H = 200.0 + 100.0 * i / (i + (237.53 - hv) / 1.2)
        else:
            i = (hv - 237.53) / 1.2
            H = 300.0 + 100.0 * i / (i + (380.14 - hv) / 0.8)
            # 400 and 0 are the same hue; report 0
            if H <= 400.0 and H >= 400.0 - 1e-3:
                H = 0.0
        out[k] = H
    return out

@njit(cache=True, fastmath=False)
def _hue_angle_from_quadrature_kernel(H: ArrayFloat) -> ArrayFloat:
    """
    Hue composition H -> hue angle (degrees) in [0, 360).

    Expects pre-validated input in [0, 400].
    """
    out = np.empty_like(H)
    for k in range(H.shape[0]):
        Hv = H[k]
        if Hv < 100.0:
            i = Hv
            h = (i * -57.902 - 1409.8) / (i * -0.1 - 70.0)
        elif Hv < 200.0:
            i = Hv - 100.0
            h = (i * -24.975 - 9000.0) / (i * 0.3 - 100.0)
        elif Hv < 300.0:
            i = Hv - 200.0
            h = (i * -40.43 - 19710.0) / (i * 0.2 - 120.0)
        else:
            i = Hv - 300.0
            h = (i * -266.144 - 19002.4) / (i * -0.4 - 80.0)
        if h > 360.0:
            h -= 360.0
        if h > 360.0 - 1e-4:
            h = 0.0
        out[k] = h
    return out


# =============================================================================
# 3. STAGES
# =============================================================================

def compress_response(rgb_p: ArrayFloat, F_L: float) -> ArrayFloat:
    """HPE response -> compressed post-adaptation response (stage 4)."""
    return _compress_kernel(np.ascontiguousarray(rgb_p, dtype=np.float64), float(F_L))

def decompress_response(rgb_a: ArrayFloat, F_L: float) -> ArrayFloat:
    """Compressed post-adaptation response -> HPE response."""
    return _decompress_kernel(np.ascontiguousarray(rgb_a, dtype=np.float64), float(F_L))

def achromatic_response(rgb_a: ArrayFloat, N_bb: float) -> ArrayFloat:
    """A = (2R'a + G'a + B'a/20 - 0.305) * N_bb  (stage 5)."""
    return (2.0 * rgb_a[:, 0] + rgb_a[:, 1] + rgb_a[:, 2] / 20.0 - 0.305) * N_bb

def opponent_ab(rgb_a: ArrayFloat) -> Tuple[ArrayFloat, ArrayFloat]:
    """Redness-greenness a and yellowness-blueness b (stage 7)."""
    a = rgb_a[:, 0] + (-12.0 * rgb_a[:, 1] + rgb_a[:, 2]) / 11.0
    b = (rgb_a[:, 0] + rgb_a[:, 1] - 2.0 * rgb_a[:, 2]) / 9.0
    return a, b

def hue_angle(a: ArrayFloat, b: ArrayFloat) -> ArrayFloat:
    """atan2(b, a) in degrees, normalised to [0, 360)."""
    h = np.arctan2(b, a) * RAD2DEG
    h = np.where(h < 0.0, h + 360.0, h)
    # -tiny + 360 rounds to 360.0
    return np.where(h >= 360.0, 0.0, h)

def eccentricity(h: ArrayFloat, N_c: float, N_cb: float) -> ArrayFloat:
    """Eccentricity factor e(h) scaled by the chromatic induction factors."""
    return ((12500.0 / 13.0) * N_c * N_cb) * (np.cos(np.asarray(h, dtype=np.float64) * DEG2RAD + 2.0) + 3.8)

def solve_opponent_ab(h: ArrayFloat, e: ArrayFloat, t: ArrayFloat, p2: ArrayFloat) -> Tuple[ArrayFloat, ArrayFloat]:
    """Vectorised opponent solve; rows with t <= 0 give a = b = 0."""
    ab = _opponent_solve_kernel(
        np.ascontiguousarray(h, dtype=np.float64),
        np.ascontiguousarray(e, dtype=np.float64),
        np.ascontiguousarray(t, dtype=np.float64),
        np.ascontiguousarray(p2, dtype=np.float64),
    )
    return ab[:, 0], ab[:, 1]

def opponent_to_compressed(a: ArrayFloat, b: ArrayFloat, p2: ArrayFloat) -> ArrayFloat:
    """(a, b, p2) -> compressed post-adaptation response, shape (N, 3)."""
    j = 460.0 / 1403.0 * p2
    out = np.empty((np.shape(p2)[0], 3), dtype=np.float64)
    out[:, 0] = j + 451.0 / 1403.0 * a + 288.0 / 1403.0 * b
    out[:, 1] = j - 891.0 / 1403.0 * a - 261.0 / 1403.0 * b
    out[:, 2] = j - 220.0 / 1403.0 * a - 6300.0 / 1403.0 * b
    return out
