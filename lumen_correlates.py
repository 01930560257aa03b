# -*- coding: utf-8 -*-
"""
Lumen: Colour appearance under viewing conditions
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Module: lumen_correlates.py — The seven-slot CIECAM02 correlate vector.

Slots are addressed either by attribute (``corr.J``) or by ``Correlate``
index (``corr[Correlate.J]``).  An absent slot holds ``None``; it is never
zero and never NaN, so an unfilled slot cannot leak into arithmetic.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, fields, replace
from enum import IntEnum
from typing import Dict, Final, Iterator, NamedTuple, Optional, Sequence, Tuple

import numpy as np

from lumen_kernels import ArrayFloat

__all__ = [
    "Correlate",
    "ChannelInfo",
    "CHANNELS",
    "channel_name",
    "channel_min",
    "channel_max",
    "Correlates",
]


class Correlate(IntEnum):
    """Slot index of each correlate, in canonical order."""
    J = 0  # lightness
    Q = 1  # brightness
    C = 2  # chroma
    M = 3  # colourfulness
    s = 4  # saturation
    H = 5  # hue composition
    h = 6  # hue angle


class ChannelInfo(NamedTuple):
    """Per-channel metadata: symbol, description and nominal range."""
    name: str
    description: str
    min_value: float
    max_value: float


# C, M and s have no hard upper bound; 120 covers practical surface colours.
CHANNELS: Final[Dict[Correlate, ChannelInfo]] = {
    Correlate.J: ChannelInfo("J", "lightness", 0.0, 100.0),
    Correlate.Q: ChannelInfo("Q", "brightness", 0.0, 100.0),
    Correlate.C: ChannelInfo("C", "chroma", 0.0, 120.0),
    Correlate.M: ChannelInfo("M", "colourfulness", 0.0, 120.0),
    Correlate.s: ChannelInfo("s", "saturation", 0.0, 120.0),
    Correlate.H: ChannelInfo("H", "hue composition", 0.0, 400.0),
    Correlate.h: ChannelInfo("h", "hue angle", 0.0, 360.0),
}


def _channel(index: int) -> ChannelInfo:
    try:
        return CHANNELS[Correlate(index)]
    except ValueError:
        raise IndexError(f"Correlate index out of range: {index}") from None


def channel_name(index: int) -> str:
    return _channel(index).name


def channel_min(index: int) -> float:
    return _channel(index).min_value


def channel_max(index: int) -> float:
    return _channel(index).max_value


@dataclass(slots=True)
class Correlates:
    """
    CIECAM02 appearance correlates.

    J lightness, Q brightness, C chroma, M colourfulness, s saturation,
    H hue composition (0..400), h hue angle in degrees (0..360).
    """
    J: Optional[float] = None
    Q: Optional[float] = None
    C: Optional[float] = None
    M: Optional[float] = None
    s: Optional[float] = None
    H: Optional[float] = None
    h: Optional[float] = None

    def __getitem__(self, index: int) -> Optional[float]:
        return getattr(self, Correlate(index).name)

    def __setitem__(self, index: int, value: Optional[float]) -> None:
        setattr(self, Correlate(index).name, None if value is None else float(value))

    def __iter__(self) -> Iterator[Optional[float]]:
        for f in fields(self):
            yield getattr(self, f.name)

    def __len__(self) -> int:
        return len(Correlate)

    def has(self, index: int) -> bool:
        """True when the slot holds a value."""
        return self[index] is not None

    @property
    def present(self) -> Tuple[Correlate, ...]:
        return tuple(c for c in Correlate if self[c] is not None)

    def copy(self) -> "Correlates":
        return replace(self)

    def as_tuple(self) -> Tuple[Optional[float], ...]:
        return tuple(self)

    def to_array(self) -> ArrayFloat:
        """Dense (7,) float64 view.  Requires every slot to be present."""
        missing = [Correlate(i).name for i, v in enumerate(self) if v is None]
        if missing:
            raise ValueError(f"Cannot densify correlates; absent slots: {', '.join(missing)}")
        return np.array(self.as_tuple(), dtype=np.float64)

    @classmethod
    def from_array(cls, values: Sequence[Optional[float]]) -> "Correlates":
        """
        Build from a length-7 sequence in ``Correlate`` order.

        ``None`` and NaN entries both become absent slots.
        """
        if len(values) != len(Correlate):
            raise ValueError(f"Expected {len(Correlate)} correlates, got {len(values)}")
        out = cls()
        for i, v in enumerate(values):
            if v is not None and not math.isnan(float(v)):
                out[i] = float(v)
        return out
