"""Typed output contracts for stable payload schemas."""

from .schemas import (
    Bar,
    CalibratedProbability,
    Calibration,
    CalibrationUnavailable,
    Pick,
    PriceTargets,
    Suggestion,
)

__all__ = [
    "Bar",
    "CalibratedProbability",
    "Calibration",
    "CalibrationUnavailable",
    "Pick",
    "PriceTargets",
    "Suggestion",
]
