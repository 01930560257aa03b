# -*- coding: utf-8 -*-
"""
Lumen: Colour appearance under viewing conditions
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Module: lumen_colorspace.py — Colour-space adapter and range checks.

Design notes:
  1.  ColorSpace protocol decouples callers from a specific colour-space
      class.  Anything with ``to_xyz`` / ``from_xyz`` on the Y=1 scale
      qualifies.
  2.  CIECAM02Space adapts the appearance engine (Y=100 scale internally)
      to that protocol and carries the per-channel metadata.
  3.  GamutCheck holds the tolerance-aware range helpers used by adapters;
      the transform itself never consults them.
"""

from __future__ import annotations

from typing import (
    Any,
    Optional,
    Protocol,
    Sequence,
    Union,
    runtime_checkable,
)

import numpy as np

from lumen_cam02 import CIECAM02
from lumen_correlates import CHANNELS, Correlate, Correlates
from lumen_kernels import ArrayFloat
from lumen_viewing import ViewingConditions

__all__ = [
    "ColorSpace",
    "GamutCheck",
    "CIECAM02Space",
]

_CORR_MIN = np.array([CHANNELS[c].min_value for c in Correlate], dtype=np.float64)
_CORR_MAX = np.array([CHANNELS[c].max_value for c in Correlate], dtype=np.float64)


# ═══════════════════════════════════════════════════════════════════════════════
# 1.  ColorSpace — pluggable tristimulus bridge
# ═══════════════════════════════════════════════════════════════════════════════
@runtime_checkable
class ColorSpace(Protocol):
    """
    Minimal interface a colour space must satisfy.

    from_xyz(xyz) → component array, xyz on the Y=1 scale
    to_xyz(values) → XYZ on the Y=1 scale
    """
    def from_xyz(self, xyz: ArrayFloat) -> ArrayFloat: ...
    def to_xyz(self, values: Any) -> ArrayFloat: ...


# ═══════════════════════════════════════════════════════════════════════════════
# 2.  GamutCheck
# ═══════════════════════════════════════════════════════════════════════════════
class GamutCheck:
    """Range checks with separate tolerances below and above the nominal range."""

    @staticmethod
    def is_in_range(
        values: ArrayFloat,
        lo: Union[float, ArrayFloat] = 0.0,
        hi: Union[float, ArrayFloat] = 1.0,
        tol_low: float = 0.0,
        tol_high: float = 0.0,
    ) -> Union[bool, ArrayFloat]:
        """
        True when every component lies in [lo - tol_low, hi + tol_high].

        For (N, k) input one flag per row is returned.
        """
        v = np.asarray(values, dtype=np.float64)
        ok = (v >= np.subtract(lo, tol_low)) & (v <= np.add(hi, tol_high))
        if v.ndim <= 1:
            return bool(np.all(ok))
        return np.all(ok, axis=-1)

    @staticmethod
    def out_of_space(
        values: ArrayFloat,
        lo: Union[float, ArrayFloat] = 0.0,
        hi: Union[float, ArrayFloat] = 1.0,
        tol_low: float = 0.0,
        tol_high: float = 0.0,
    ) -> ArrayFloat:
        """
        Signed excursion of each component past its nominal bound.

        Components inside the tolerated band report 0.  Outside it, the
        distance to the violated nominal bound is returned (negative below
        ``lo``, positive above ``hi``).
        """
        v = np.asarray(values, dtype=np.float64)
        lo_arr = np.broadcast_to(lo, v.shape)
        hi_arr = np.broadcast_to(hi, v.shape)
        out = np.zeros_like(v)
        below = v < lo_arr - tol_low
        above = v > hi_arr + tol_high
        out[below] = v[below] - lo_arr[below]
        out[above] = v[above] - hi_arr[above]
        return out

    @staticmethod
    def correlates_in_range(
        correlates: Union[Correlates, ArrayFloat],
        tol_low: float = 0.0,
        tol_high: float = 0.0,
    ) -> Union[bool, ArrayFloat]:
        """
        Range check against the nominal correlate channel ranges.

        Absent slots of a ``Correlates`` are not checked.
        """
        if isinstance(correlates, Correlates):
            idx = [int(c) for c in correlates.present]
            vals = np.array([correlates[i] for i in idx], dtype=np.float64)
            return GamutCheck.is_in_range(vals, _CORR_MIN[idx], _CORR_MAX[idx], tol_low, tol_high)
        return GamutCheck.is_in_range(correlates, _CORR_MIN, _CORR_MAX, tol_low, tol_high)


# ═══════════════════════════════════════════════════════════════════════════════
# 3.  CIECAM02Space
# ═══════════════════════════════════════════════════════════════════════════════
class CIECAM02Space:
    """
    CIECAM02 as a seven-component colour space on the Y=1 XYZ scale.

    Components follow ``Correlate`` order (J, Q, C, M, s, H, h).  Partially
    specified inputs to ``to_xyz`` may mark absent slots with ``None`` or
    NaN; they are completed from the present ones before the reverse
    transform runs.
    """
    __slots__ = ("_engine",)

    name = "CIECAM02"
    n_components = len(Correlate)

    def __init__(self, viewing_conditions: Optional[ViewingConditions] = None) -> None:
        self._engine = CIECAM02(viewing_conditions)

    @property
    def engine(self) -> CIECAM02:
        return self._engine

    @property
    def viewing_conditions(self) -> ViewingConditions:
        return self._engine.viewing_conditions

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CIECAM02Space):
            return NotImplemented
        return self._engine == other._engine

    def __hash__(self) -> int:
        return hash(self._engine)

    # -- channel metadata --
    @staticmethod
    def get_name(component: int) -> str:
        return CHANNELS[Correlate(component)].name

    @staticmethod
    def get_min_value(component: int) -> float:
        return CHANNELS[Correlate(component)].min_value

    @staticmethod
    def get_max_value(component: int) -> float:
        return CHANNELS[Correlate(component)].max_value

    # -- transforms --
    def from_xyz(self, xyz: ArrayFloat) -> ArrayFloat:
        """XYZ (Y=1) of shape (3,) or (N, 3) -> correlates (7,) or (N, 7)."""
        return self._engine.xyz_to_correlates(np.asarray(xyz, dtype=np.float64) * 100.0)

    def to_xyz(self, values: Union[Correlates, Sequence[Optional[float]], ArrayFloat]) -> ArrayFloat:
        """
        Correlates (single or (N, 7)) -> XYZ on the Y=1 scale.

        Absent slots may be ``None`` or NaN in both 1-D and nested input.
        """
        if isinstance(values, Correlates):
            return self._engine.reverse(values) / 100.0

        if isinstance(values, np.ndarray):
            arr = values.astype(np.float64)
        elif np.ndim(values) == 1:
            arr = np.array([np.nan if v is None else v for v in values], dtype=np.float64)
        else:
            arr = np.array(
                [[np.nan if v is None else v for v in row] for row in values], dtype=np.float64
            )
        if arr.ndim == 1:
            return self._engine.reverse(Correlates.from_array(arr)) / 100.0
        if arr.ndim != 2 or arr.shape[-1] != self.n_components:
            raise ValueError(f"Expected last dimension size {self.n_components}, got shape {arr.shape}")
        out = np.empty((arr.shape[0], 3), dtype=np.float64)
        for i, row in enumerate(arr):
            out[i] = self._engine.reverse(Correlates.from_array(row))
        return out / 100.0

    def lightness(self, xyz: ArrayFloat) -> Union[float, ArrayFloat]:
        """Lightness J of XYZ on the Y=1 scale."""
        return self._engine.lightness(np.asarray(xyz, dtype=np.float64) * 100.0)

    def is_in_range(self, values: ArrayFloat, tol_low: float = 0.0, tol_high: float = 0.0) -> Union[bool, ArrayFloat]:
        return GamutCheck.correlates_in_range(values, tol_low, tol_high)
