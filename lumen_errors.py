# -*- coding: utf-8 -*-
"""
Lumen: Colour appearance under viewing conditions
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Module: lumen_errors.py — Domain errors raised by the appearance engine.

Every error is a ``ValueError`` so that callers written against plain
``except ValueError`` keep working.  Each instance carries the offending
value and a short statement of the precondition it violated.
"""

from __future__ import annotations

from typing import Any

__all__ = [
    "CAMDomainError",
    "InsufficientCorrelatesError",
    "HueRangeError",
    "ViewingConditionsError",
]


class CAMDomainError(ValueError):
    """Base class: an input or intermediate left the model's domain."""

    def __init__(self, message: str, value: Any = None, precondition: str = "") -> None:
        super().__init__(message)
        self.value = value
        self.precondition = precondition


class InsufficientCorrelatesError(CAMDomainError):
    """J, C and h could not be derived from the supplied correlates."""


class HueRangeError(CAMDomainError):
    """Hue angle or hue composition outside its admissible range."""


class ViewingConditionsError(CAMDomainError):
    """Luminance inputs that the adaptation formulas cannot take."""
