"""Outcome tracking and probability calibration for bullish setups.

Each time a ticker turns strong, the setup is recorded as an experiment
(entry, stop, first target). Later series for the same ticker resolve the
experiment to ``tp1`` or ``stop``. Resolved experiments are grouped into
10-point score bins and the per-bin win rate replaces the logistic prior
once enough samples exist.
"""

import logging
import math
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional

import pandas as pd

from src.contracts.schemas import CalibratedProbability, Calibration, CalibrationUnavailable
from src.screening.signal_engine import score_bullish

if TYPE_CHECKING:
    from .stores import ExperimentStore

logger = logging.getLogger(__name__)

MAX_EXPERIMENTS = 500
DEDUP_WINDOW_MS = 2 * 60 * 60 * 1000
MIN_TOTAL_RESOLVED = 20
MIN_BIN_SAMPLES = 8
BIN_COUNT = 10
CALIBRATION_FLOOR = 0.25
CALIBRATION_CAP = 0.9


class Outcome(Enum):
    """How an experiment resolved."""
    TP1 = "tp1"
    STOP = "stop"


@dataclass
class Experiment:
    """A bullish setup observed at ``started_at`` (epoch ms), tracked until resolved."""
    id: str
    ticker: str
    started_at: int
    score: int
    entry: float
    stop: float
    t1: float
    resolved: Optional[Outcome] = None
    resolved_at: Optional[int] = None

    @property
    def is_resolved(self) -> bool:
        return self.resolved is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'ticker': self.ticker,
            'started_at': self.started_at,
            'score': self.score,
            'entry': self.entry,
            'stop': self.stop,
            't1': self.t1,
            'resolved': self.resolved.value if self.resolved else None,
            'resolved_at': self.resolved_at,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "Experiment":
        resolved = payload.get('resolved')
        resolved_at = payload.get('resolved_at')
        return cls(
            id=str(payload['id']),
            ticker=str(payload['ticker']),
            started_at=int(payload['started_at']),
            score=int(payload['score']),
            entry=float(payload['entry']),
            stop=float(payload['stop']),
            t1=float(payload['t1']),
            resolved=Outcome(resolved) if resolved else None,
            resolved_at=int(resolved_at) if resolved_at is not None else None,
        )


def score_bin(score: float) -> int:
    """Map a 0-100 score to one of ten equal-width bins."""
    return max(0, min(BIN_COUNT - 1, int(math.floor(score / 10))))


def resolve_outcome(experiment: Experiment, series: pd.DataFrame) -> Optional[Outcome]:
    """Walk bars from the experiment start and return the first stop/target touch.

    When a single bar touches both the stop and the target the intrabar path
    is unknown: the bar counts as a win only if it closed above its open.

    Returns:
        The outcome, or None when no bar since the start touched either level.
    """
    bars = series[series['timestamp'] >= experiment.started_at]
    for bar in bars.itertuples(index=False):
        hit_stop = bar.low <= experiment.stop
        hit_tp1 = bar.high >= experiment.t1
        if hit_stop and hit_tp1:
            return Outcome.TP1 if bar.close > bar.open else Outcome.STOP
        if hit_stop:
            return Outcome.STOP
        if hit_tp1:
            return Outcome.TP1
    return None


def _wall_clock_ms() -> int:
    return int(time.time() * 1000)


class LearningStore:
    """Records experiments and turns resolved outcomes into calibrated probabilities.

    Every public call loads the full experiment list, mutates it and saves it
    back under a lock, so concurrent callers in one process cannot lose
    updates.

    Attributes:
        store: Persistence backend (see ``src.learning.stores``).
        clock: Callable returning the current time in epoch milliseconds.
        capacity: Number of most recent experiments retained.

    Example:
        >>> learning = LearningStore(InMemoryExperimentStore())
        >>> learning.start_experiment("AAPL", series)
        >>> learning.update_with_series("AAPL", newer_series)
        >>> learning.get_calibrated_prob(78)
    """

    def __init__(
        self,
        store: "ExperimentStore",
        clock: Optional[Callable[[], int]] = None,
        capacity: int = MAX_EXPERIMENTS,
        dedup_window_ms: int = DEDUP_WINDOW_MS
    ) -> None:
        self.store = store
        self.clock = clock or _wall_clock_ms
        self.capacity = capacity
        self.dedup_window_ms = dedup_window_ms
        self._lock = threading.Lock()

    def _save(self, experiments: List[Experiment]) -> None:
        self.store.save(experiments[-self.capacity:])

    def experiments(self) -> List[Experiment]:
        """Snapshot of the stored experiments, oldest first."""
        with self._lock:
            return self.store.load()

    def start_experiment(self, ticker: str, series: pd.DataFrame) -> Optional[Experiment]:
        """Record the current setup for ``ticker`` as a new experiment.

        Skipped when the series is empty or when an unresolved experiment for
        the same ticker started within the de-dup window.

        Returns:
            The new experiment, or None when nothing was recorded.
        """
        if series is None or len(series) == 0:
            logger.debug(f"{ticker}: empty series, no experiment recorded")
            return None

        with self._lock:
            experiments = self.store.load()
            now = int(self.clock())

            for existing in experiments:
                if (existing.ticker == ticker and not existing.is_resolved
                        and now - existing.started_at < self.dedup_window_ms):
                    logger.debug(f"{ticker}: open experiment {existing.id} still in de-dup window")
                    return None

            signal = score_bullish(series)
            experiment = Experiment(
                id=f"{ticker}-{now}",
                ticker=ticker,
                started_at=now,
                score=signal.score,
                entry=signal.targets.entry,
                stop=signal.targets.stop,
                t1=signal.targets.t1,
            )
            experiments.append(experiment)
            self._save(experiments)

        logger.info(
            f"Started experiment {experiment.id}: score={experiment.score} "
            f"entry={experiment.entry:.2f} stop={experiment.stop:.2f} t1={experiment.t1:.2f}"
        )
        return experiment

    def update_with_series(self, ticker: str, series: pd.DataFrame) -> List[Experiment]:
        """Resolve open experiments for ``ticker`` against a fresh series.

        Resolved experiments are never touched again.

        Returns:
            Experiments resolved by this call.
        """
        if series is None or len(series) == 0:
            return []

        with self._lock:
            experiments = self.store.load()
            open_experiments = [e for e in experiments if e.ticker == ticker and not e.is_resolved]
            if not open_experiments:
                return []

            resolved_now = []
            for experiment in open_experiments:
                outcome = resolve_outcome(experiment, series)
                if outcome is None:
                    continue
                experiment.resolved = outcome
                experiment.resolved_at = int(self.clock())
                resolved_now.append(experiment)

            if resolved_now:
                self._save(experiments)

        for experiment in resolved_now:
            logger.info(f"Experiment {experiment.id} resolved: {experiment.resolved.value}")
        return resolved_now

    def get_calibrated_prob(self, score: float) -> Calibration:
        """Empirical probability of reaching TP1 for setups scoring like ``score``.

        Requires at least 20 resolved experiments overall and 8 in the score's
        bin. The win rate is clamped to [0.25, 0.9].
        """
        with self._lock:
            resolved = [e for e in self.store.load() if e.is_resolved]

        if len(resolved) < MIN_TOTAL_RESOLVED:
            return CalibrationUnavailable(
                reason=f"{len(resolved)} resolved experiments, need {MIN_TOTAL_RESOLVED}"
            )

        target_bin = score_bin(score)
        in_bin = [e for e in resolved if score_bin(e.score) == target_bin]
        if len(in_bin) < MIN_BIN_SAMPLES:
            return CalibrationUnavailable(
                reason=f"bin {target_bin} has {len(in_bin)} samples, need {MIN_BIN_SAMPLES}"
            )

        wins = sum(1 for e in in_bin if e.resolved is Outcome.TP1)
        rate = wins / len(in_bin)
        return CalibratedProbability(
            value=max(CALIBRATION_FLOOR, min(CALIBRATION_CAP, rate)),
            samples=len(in_bin),
        )

    def calibration_table(self) -> List[Dict[str, Any]]:
        """Per-bin resolved counts and raw win rates for display."""
        with self._lock:
            resolved = [e for e in self.store.load() if e.is_resolved]

        rows = []
        for b in range(BIN_COUNT):
            in_bin = [e for e in resolved if score_bin(e.score) == b]
            wins = sum(1 for e in in_bin if e.resolved is Outcome.TP1)
            rows.append({
                'bin': f"{b * 10}-{b * 10 + 9}",
                'samples': len(in_bin),
                'wins': wins,
                'win_rate': round(wins / len(in_bin), 3) if in_bin else None,
            })
        return rows
