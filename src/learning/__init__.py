"""Self-calibration of TP1 probabilities from recorded trade outcomes."""

from src.contracts.schemas import CalibratedProbability, Calibration, CalibrationUnavailable
from .experiments import (
    Experiment,
    LearningStore,
    Outcome,
    score_bin,
)
from .stores import ExperimentStore, InMemoryExperimentStore, KeyValueExperimentStore

__all__ = [
    "CalibratedProbability",
    "Calibration",
    "CalibrationUnavailable",
    "Experiment",
    "LearningStore",
    "Outcome",
    "score_bin",
    "ExperimentStore",
    "InMemoryExperimentStore",
    "KeyValueExperimentStore",
]
