"""Watchlist refresh ticks: alerts, breakouts and outcome tracking.

Each tick refetches every watched ticker, rescores it, raises an alert when
the score crosses into the strong zone, records that setup as a learning
experiment, resolves open experiments against the new bars and flags
volume-confirmed breakouts. Timing is left to the caller.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

import pandas as pd

from src.contracts.schemas import Pick, Suggestion
from src.data.providers import DataProvider
from src.data.storage import MAX_WATCHLIST, AppStateRepository
from src.learning.experiments import LearningStore
from src.observability.provider_metrics import ProviderMetrics
from src.screening.edge import prob_hit_tp1_from_score
from src.screening.scanner import fetch_many
from src.screening.signal_engine import STRONG_THRESHOLD, score_bullish
from src.screening.universe import detect_kind

logger = logging.getLogger(__name__)

BREAKOUT_MIN_BARS = 23
BREAKOUT_WINDOW = 20
BREAKOUT_VOLUME_RATIO = 1.3
BREAKOUT_FIELDS = frozenset({'high', 'close', 'volume'})


@dataclass
class RefreshResult:
    """Outcome of one refresh tick."""
    series: Dict[str, pd.DataFrame] = field(default_factory=dict)
    scores: Dict[str, int] = field(default_factory=dict)
    alerts: List[str] = field(default_factory=list)
    suggestions: List[Suggestion] = field(default_factory=list)
    resolved: int = 0


def is_breakout(series: pd.DataFrame) -> bool:
    """Last close above the prior 20-bar high on at least 1.3x average volume."""
    if series is None or len(series) < BREAKOUT_MIN_BARS:
        return False
    if not BREAKOUT_FIELDS.issubset(series.columns):
        return False
    highs = series['high'].astype(float).values
    closes = series['close'].astype(float).values
    volumes = series['volume'].fillna(0.0).astype(float).values

    prior_high = highs[-BREAKOUT_WINDOW - 1:-1].max()
    vol_avg = volumes[-BREAKOUT_WINDOW:].mean()
    impulse = volumes[-1] / vol_avg if vol_avg > 0 else 0.0
    return closes[-1] > prior_high and impulse >= BREAKOUT_VOLUME_RATIO


class WatchlistMonitor:
    """Drives refresh ticks for a persisted watchlist.

    Attributes:
        provider: Data provider for every fetch.
        learning: Learning store receiving new experiments and new bars.
        state: Persisted app state (watchlist and suggestions).
        interval: Bar interval requested from the provider.
        lookback: Number of bars requested per ticker.
    """

    def __init__(
        self,
        provider: DataProvider,
        learning: LearningStore,
        state: AppStateRepository,
        interval: str = '5m',
        lookback: int = 180,
        max_workers: int = 4,
        clock: Optional[Callable[[], int]] = None,
        metrics: Optional[ProviderMetrics] = None
    ) -> None:
        self.provider = provider
        self.learning = learning
        self.state = state
        self.interval = interval
        self.lookback = lookback
        self.max_workers = max_workers
        self.clock = clock or (lambda: int(time.time() * 1000))
        self.metrics = metrics
        self.prev_scores: Dict[str, int] = {}

    # ------------------------------------------------------------------ watchlist

    def watchlist(self) -> List[Dict[str, str]]:
        return self.state.get_watchlist()

    def add_ticker(self, symbol: str) -> bool:
        """Add a ticker to the watchlist. False when full, blank or already present."""
        ticker = (symbol or '').upper().strip()
        items = self.state.get_watchlist()
        if not ticker or len(items) >= MAX_WATCHLIST:
            return False
        if any(item['ticker'] == ticker for item in items):
            return False
        kind = detect_kind(ticker)
        items.append({'ticker': ticker, 'kind': kind})
        self.state.set_watchlist(items)
        self.state.set_last_input(ticker, kind)
        logger.info(f"Added {ticker} ({kind}) to watchlist")
        return True

    def remove_ticker(self, symbol: str) -> bool:
        ticker = (symbol or '').upper().strip()
        items = self.state.get_watchlist()
        remaining = [item for item in items if item['ticker'] != ticker]
        if len(remaining) == len(items):
            return False
        self.state.set_watchlist(remaining)
        self.prev_scores.pop(ticker, None)
        return True

    # ------------------------------------------------------------------ ticks

    def _fetch_watchlist(self) -> Dict[str, pd.DataFrame]:
        requests = [(item['ticker'], item['kind']) for item in self.state.get_watchlist()]
        return fetch_many(
            self.provider,
            requests,
            self.interval,
            self.lookback,
            max_workers=self.max_workers,
            metrics=self.metrics,
        )

    def seed_scores(self) -> Dict[str, int]:
        """Record current scores without alerts so already-strong tickers stay quiet."""
        for ticker, series in self._fetch_watchlist().items():
            try:
                self.prev_scores[ticker] = score_bullish(series).score
            except Exception as e:
                logger.warning(f"Could not seed score for {ticker}: {e}")
        return dict(self.prev_scores)

    def _push(self, ticker: str, score: int, source: str) -> Optional[Suggestion]:
        suggestion = Suggestion(
            ticker=ticker,
            score=score,
            prob=prob_hit_tp1_from_score(score, self.learning),
            at=int(self.clock()),
            source=source,
        )
        if self.state.push_suggestion(suggestion):
            return suggestion
        return None

    def refresh(self) -> RefreshResult:
        """Run one refresh tick over the watchlist.

        A ticker whose scoring or bookkeeping fails is logged and skipped for
        this tick; the others are still processed.
        """
        result = RefreshResult()
        fetched = self._fetch_watchlist()
        if not fetched:
            return result

        for ticker, series in fetched.items():
            try:
                self._refresh_ticker(ticker, series, result)
            except Exception as e:
                logger.warning(f"Skipping {ticker} this tick: {e}")

        if result.alerts:
            logger.info(f"Bullish alert: {', '.join(sorted(result.alerts))}")
        return result

    def _refresh_ticker(self, ticker: str, series: pd.DataFrame, result: RefreshResult) -> None:
        previous = self.prev_scores.get(ticker, 0)
        signal = score_bullish(series)
        score = signal.score

        if signal.is_strong and previous < STRONG_THRESHOLD:
            result.alerts.append(ticker)
            self.learning.start_experiment(ticker, series)
            pushed = self._push(ticker, score, 'alert')
            if pushed:
                result.suggestions.append(pushed)

        result.resolved += len(self.learning.update_with_series(ticker, series))

        if is_breakout(series):
            pushed = self._push(ticker, score, 'breakout')
            if pushed:
                result.suggestions.append(pushed)

        result.series[ticker] = series
        result.scores[ticker] = score
        self.prev_scores[ticker] = score

    def record_scan(self, picks: List[Pick]) -> List[Suggestion]:
        """Store scan picks as 'scan' suggestions."""
        stored = []
        for pick in picks:
            suggestion = Suggestion(
                ticker=pick.ticker,
                score=pick.score,
                prob=pick.prob,
                at=int(self.clock()),
                source='scan',
            )
            if self.state.push_suggestion(suggestion):
                stored.append(suggestion)
        return stored
