# -*- coding: utf-8 -*-
"""
Lumen: Colour appearance under viewing conditions
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Module: lumen_viewing.py — Surround presets and the viewing-conditions context.

A ``ViewingConditions`` instance bundles every constant of the CIECAM02
model that depends only on the viewing environment.  It is built once per
environment and then shared, read-only, by any number of transforms.

Construction order matters: ``A_w`` is obtained by running the forward
stages on the adapting white with the final ``D_RGB``, ``F_L`` and ``N_bb``
of the very context being built.
"""

from __future__ import annotations

import math
import threading
import warnings
from dataclasses import dataclass, field
from enum import Enum
from typing import Final, Optional, Sequence, Tuple, Union

import numpy as np

from lumen_errors import ViewingConditionsError
from lumen_kernels import (
    REF_WHITE_D65,
    ArrayFloat,
    achromatic_response,
    cat02_to_hpe,
    compress_response,
    xyz_to_cat02,
)

__all__ = [
    "Surround",
    "ViewingConditions",
    "degree_of_adaptation",
    "luminance_adaptation_factor",
    "default_viewing_conditions",
    "DEFAULT_WHITE",
    "DEFAULT_L_A",
    "DEFAULT_Y_B",
    "DEFAULT_SURROUND",
]


# ---------------------------------------------------------------------------
# 1.  Surround presets
# ---------------------------------------------------------------------------
class Surround(Enum):
    """
    CIE surround categories as (F, c, N_c).

    F   : factor for the degree of adaptation
    c   : impact of surround
    N_c : chromatic induction factor
    """
    AVERAGE = (1.0, 0.69, 1.0)
    DIM = (0.9, 0.59, 0.9)
    DARK = (0.8, 0.525, 0.8)

    @property
    def F(self) -> float:
        return self.value[0]

    @property
    def c(self) -> float:
        return self.value[1]

    @property
    def N_c(self) -> float:
        return self.value[2]

    @classmethod
    def from_name(cls, name: str) -> "Surround":
        """Case-insensitive lookup, e.g. ``Surround.from_name("dim")``."""
        try:
            return cls[name.strip().upper()]
        except KeyError:
            raise KeyError(
                f"Unknown surround '{name}'. "
                f"Expected one of: {', '.join(m.name.lower() for m in cls)}"
            ) from None


# ---------------------------------------------------------------------------
# 2.  Scalar adaptation formulas
# ---------------------------------------------------------------------------
def degree_of_adaptation(F: float, L_A: float) -> float:
    """D = F * (1 - exp((-L_A - 42) / 92) / 3.6), clamped to [0, 1]."""
    D = F * (1.0 - (1.0 / 3.6) * math.exp((-L_A - 42.0) / 92.0))
    return min(1.0, max(0.0, D))


def luminance_adaptation_factor(L_A: float) -> float:
    """Luminance-level adaptation factor F_L."""
    k = 1.0 / (5.0 * L_A + 1.0)
    k4 = k ** 4
    return 0.2 * k4 * (5.0 * L_A) + 0.1 * (1.0 - k4) ** 2 * (5.0 * L_A) ** (1.0 / 3.0)


def _check_positive(name: str, value: float) -> float:
    value = float(value)
    if not math.isfinite(value) or value <= 0.0:
        raise ViewingConditionsError(
            f"{name} must be a positive, finite luminance; got {value!r}",
            value=value,
            precondition=f"{name} > 0",
        )
    return value


def _to_hashable(obj: Union[ArrayFloat, Sequence[float]]) -> Tuple[float, ...]:
    """Helper to ensure inputs are hashable float tuples."""
    if isinstance(obj, np.ndarray):
        return tuple(float(v) for v in obj.ravel())
    return tuple(float(v) for v in obj)


def _frozen(arr: ArrayFloat) -> ArrayFloat:
    arr = np.ascontiguousarray(arr, dtype=np.float64)
    arr.setflags(write=False)
    return arr


# ---------------------------------------------------------------------------
# 3.  ViewingConditions
# ---------------------------------------------------------------------------
@dataclass(slots=True, frozen=True)
class ViewingConditions:
    """
    Immutable CIECAM02 viewing-conditions context.

    Parameters
    ----------
    white_point : sequence of 3 floats
        Adapting white in XYZ on the Y=100 scale (e.g. ``REF_WHITE_D65 * 100``).
    L_A : float
        Adapting field luminance in cd/m².
    Y_b : float
        Relative luminance of the background (same scale as ``white_point``).
    surround : Surround
        Surround category.
    discounting : bool
        Illuminant discounted by the observer; forces D = 1.

    Equality and hashing use only these inputs.  The derived constants are
    functions of them, and comparing floats that went through several
    transcendental evaluations would only add rounding noise.
    """
    white_point: Tuple[float, float, float]
    L_A: float
    Y_b: float
    surround: Surround = Surround.AVERAGE
    discounting: bool = False

    # Derived, computed once in __post_init__
    D: float = field(init=False, compare=False, repr=False)
    D_RGB: ArrayFloat = field(init=False, compare=False, repr=False)
    F_L: float = field(init=False, compare=False, repr=False)
    n: float = field(init=False, compare=False, repr=False)
    N_bb: float = field(init=False, compare=False, repr=False)
    N_cb: float = field(init=False, compare=False, repr=False)
    z: float = field(init=False, compare=False, repr=False)
    A_w: float = field(init=False, compare=False, repr=False)

    def __post_init__(self) -> None:
        white = _to_hashable(self.white_point)
        if len(white) != 3 or not all(math.isfinite(v) for v in white):
            raise ViewingConditionsError(
                f"white_point must be three finite XYZ values; got {white!r}",
                value=white,
                precondition="white_point in R^3",
            )
        if not isinstance(self.surround, Surround):
            raise TypeError(f"surround must be a Surround, got {type(self.surround).__name__}")

        Y_w = _check_positive("Y_w", white[1])
        L_A = _check_positive("L_A", self.L_A)
        Y_b = _check_positive("Y_b", self.Y_b)
        if Y_b > Y_w:
            warnings.warn(
                f"ViewingConditions: background luminance Y_b={Y_b:g} exceeds "
                f"the white point luminance Y_w={Y_w:g}.",
                stacklevel=3,
            )

        _set = object.__setattr__
        _set(self, "white_point", white)
        _set(self, "L_A", L_A)
        _set(self, "Y_b", Y_b)
        _set(self, "discounting", bool(self.discounting))

        # 1. Degree of adaptation and per-channel von Kries gains
        D = 1.0 if self.discounting else degree_of_adaptation(self.surround.F, L_A)
        xyz_w = np.array([white], dtype=np.float64)
        rgb_w = xyz_to_cat02(xyz_w)[0]
        D_RGB = D * Y_w / rgb_w + 1.0 - D

        # 2. Luminance level adaptation
        F_L = luminance_adaptation_factor(L_A)

        # 3. Background induction
        n = Y_b / Y_w
        N_bb = 0.725 * (1.0 / n) ** 0.2
        z = 1.48 + math.sqrt(n)

        _set(self, "D", D)
        _set(self, "D_RGB", _frozen(D_RGB))
        _set(self, "F_L", F_L)
        _set(self, "n", n)
        _set(self, "N_bb", N_bb)
        _set(self, "N_cb", N_bb)
        _set(self, "z", z)

        # 4. Achromatic response of the white, through the final constants
        rgb_p = cat02_to_hpe(rgb_w[np.newaxis, :] * D_RGB)
        rgb_a = compress_response(rgb_p, F_L)
        A_w = float(achromatic_response(rgb_a, N_bb)[0])
        if not math.isfinite(A_w) or A_w <= 0.0:
            raise ViewingConditionsError(
                f"Achromatic response of the white point is not positive ({A_w!r})",
                value=white,
                precondition="A_w > 0",
            )
        _set(self, "A_w", A_w)

    # -- convenience --
    @property
    def c(self) -> float:
        return self.surround.c

    @property
    def N_c(self) -> float:
        return self.surround.N_c

    @property
    def F(self) -> float:
        return self.surround.F

    @property
    def F_L_4(self) -> float:
        """F_L ** 0.25, shared by every brightness and colourfulness formula."""
        return self.F_L ** 0.25

    @property
    def white_point_array(self) -> ArrayFloat:
        return np.array(self.white_point, dtype=np.float64)

    @classmethod
    def create(
        cls,
        white_point: Union[ArrayFloat, Sequence[float]],
        L_A: float,
        Y_b: float,
        surround: Union[Surround, str] = Surround.AVERAGE,
        discounting: bool = False,
    ) -> "ViewingConditions":
        """Factory accepting arrays for the white and a surround name."""
        if isinstance(surround, str):
            surround = Surround.from_name(surround)
        return cls(_to_hashable(white_point), L_A, Y_b, surround, discounting)


# ---------------------------------------------------------------------------
# 4.  Default context
# ---------------------------------------------------------------------------
# D65 on the Y=100 scale, 64 cd/m² adapting luminance, 20 % background.
DEFAULT_WHITE: Final[Tuple[float, float, float]] = _to_hashable(REF_WHITE_D65 * 100.0)  # type: ignore[assignment]
DEFAULT_L_A: Final[float] = 64.0
DEFAULT_Y_B: Final[float] = 20.0
DEFAULT_SURROUND: Final[Surround] = Surround.AVERAGE

_DEFAULT_LOCK = threading.Lock()
_default_vc: Optional[ViewingConditions] = None


def default_viewing_conditions() -> ViewingConditions:
    """
    Process-wide default context, built on first use.

    Construction happens at most once; afterwards the instance is only read,
    so callers on any thread can share it without further locking.
    """
    global _default_vc
    vc = _default_vc
    if vc is None:
        with _DEFAULT_LOCK:
            if _default_vc is None:
                _default_vc = ViewingConditions(
                    DEFAULT_WHITE, DEFAULT_L_A, DEFAULT_Y_B, DEFAULT_SURROUND
                )
            vc = _default_vc
    return vc
