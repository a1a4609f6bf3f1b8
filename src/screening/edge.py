"""Edge evaluation: probability, risk/reward and expected value of a setup.

Maps a bullishness score to the probability of reaching TP1 before the stop.
Learned per-bin win rates take precedence when the learning store has enough
resolved samples; otherwise a logistic prior centred on score 60 is used.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List, Optional

import numpy as np
import pandas as pd

from src.contracts.schemas import CalibratedProbability

if TYPE_CHECKING:
    from src.learning.experiments import LearningStore

logger = logging.getLogger(__name__)

LOGISTIC_SLOPE = 0.09
LOGISTIC_MIDPOINT = 60.0
PRIOR_FLOOR = 0.25
PRIOR_CAP = 0.85
MIN_RISK = 0.0001
MIN_RR = 1.2
MIN_PROB = 0.5
MIN_FORECAST_BARS = 5


@dataclass(frozen=True)
class TradeEdge:
    """Gate result for a setup: ``ok`` plus the inputs that decided it."""
    ok: bool
    rr: float
    p: float
    ev: float

    def to_dict(self) -> dict:
        return {'ok': self.ok, 'rr': self.rr, 'p': self.p, 'ev': self.ev}


@dataclass(frozen=True)
class LinearForecast:
    next: List[float] = field(default_factory=list)
    slope: float = 0.0


def logistic_prob(score: float) -> float:
    """Logistic prior: 50% at score 60, capped to [0.25, 0.85]."""
    p = 1.0 / (1.0 + math.exp(-LOGISTIC_SLOPE * (score - LOGISTIC_MIDPOINT)))
    return max(PRIOR_FLOOR, min(PRIOR_CAP, p))


def prob_hit_tp1_from_score(score: float, learning: Optional["LearningStore"] = None) -> float:
    """Probability of hitting TP1 before the stop for a given score.

    Args:
        score: Bullishness score (0-100).
        learning: Optional learning store consulted for a calibrated rate.

    Returns:
        Calibrated win rate when available, else the logistic prior.
    """
    if learning is not None:
        calibration = learning.get_calibrated_prob(score)
        if isinstance(calibration, CalibratedProbability) and math.isfinite(calibration.value):
            return calibration.value
        logger.debug(f"No calibration for score {score}: {calibration}")
    return logistic_prob(score)


def risk_reward(entry: float, stop: float, t1: float) -> float:
    risk = max(MIN_RISK, entry - stop)
    reward = max(0.0, t1 - entry)
    return reward / risk


def expected_value_per_share(entry: float, stop: float, t1: float, prob_tp1: float) -> float:
    risk = max(MIN_RISK, entry - stop)
    reward = max(0.0, t1 - entry)
    return prob_tp1 * reward - (1 - prob_tp1) * risk


def worth_taking(
    score: float,
    entry: float,
    stop: float,
    t1: float,
    learning: Optional["LearningStore"] = None
) -> TradeEdge:
    """Decide whether a setup has enough edge to show or alert on.

    A setup is worth taking when its expected value per share is positive,
    risk/reward is at least 1.2 and the TP1 probability is at least 0.5.
    """
    rr = risk_reward(entry, stop, t1)
    p = prob_hit_tp1_from_score(score, learning)
    ev = expected_value_per_share(entry, stop, t1, p)
    ok = ev > 0 and rr >= MIN_RR and p >= MIN_PROB
    return TradeEdge(ok=ok, rr=rr, p=p, ev=ev)


def forecast_linear(series: pd.DataFrame, steps: int = 3) -> LinearForecast:
    """Least-squares line through closes, extrapolated ``steps`` bars ahead.

    Needs at least 5 bars; shorter series give an empty forecast and slope 0.
    """
    if series is None or len(series) < MIN_FORECAST_BARS:
        return LinearForecast()

    closes = series['close'].astype(float).values
    xs = np.arange(1, len(closes) + 1, dtype=float)
    slope, intercept = np.polyfit(xs, closes, 1)

    future_x = xs[-1] + np.arange(1, steps + 1, dtype=float)
    projected = intercept + slope * future_x
    return LinearForecast(next=[float(v) for v in projected], slope=float(slope))
