"""Market-wide scanner for high-probability bullish setups.

Fetches a series for every ticker in the selected sectors, scores each one,
maps the score to a TP1 probability and returns the best candidates. One
failing ticker never aborts the scan: it is logged and left out.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import TYPE_CHECKING, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

import pandas as pd

from src.contracts.schemas import Pick
from src.data.providers import DataProvider
from src.observability.provider_metrics import ProviderMetrics
from .edge import prob_hit_tp1_from_score
from .signal_engine import score_bullish
from .universe import detect_kind, get_universe

if TYPE_CHECKING:
    from src.learning.experiments import LearningStore

logger = logging.getLogger(__name__)


def fetch_many(
    provider: DataProvider,
    requests: Iterable[Tuple[str, str]],
    interval: str,
    lookback: int,
    max_workers: int = 4,
    metrics: Optional[ProviderMetrics] = None
) -> Dict[str, pd.DataFrame]:
    """Fetch series for (ticker, kind) pairs in parallel.

    Tickers whose fetch raises or returns no bars are dropped.

    Returns:
        Mapping of ticker to series for every successful fetch.
    """
    requests = list(requests)
    if not requests:
        return {}

    provider_name = getattr(provider, 'name', type(provider).__name__)

    def fetch_one(ticker: str, kind: str) -> pd.DataFrame:
        if metrics is None:
            return provider.fetch_series(ticker, kind, interval, lookback)
        with metrics.track(provider_name, ticker):
            return provider.fetch_series(ticker, kind, interval, lookback)

    results: Dict[str, pd.DataFrame] = {}
    with ThreadPoolExecutor(max_workers=max(1, max_workers)) as executor:
        future_to_ticker = {
            executor.submit(fetch_one, ticker, kind): ticker
            for ticker, kind in requests
        }
        for future in as_completed(future_to_ticker):
            ticker = future_to_ticker[future]
            try:
                series = future.result()
            except Exception as e:
                logger.warning(f"Skipping {ticker}: fetch failed ({e})")
                continue
            if series is None or len(series) == 0:
                logger.warning(f"Skipping {ticker}: provider returned no bars")
                continue
            results[ticker] = series
    return results


def scan_top_picks(
    provider: DataProvider,
    limit: int = 5,
    min_prob: float = 0.9,
    interval: str = '5m',
    lookback: int = 180,
    sectors: Optional[Iterable[str]] = None,
    universe: Optional[Mapping[str, List[str]]] = None,
    learning: Optional["LearningStore"] = None,
    score_fn: Optional[Callable[[pd.DataFrame], int]] = None,
    prob_fn: Optional[Callable[[int], float]] = None,
    max_workers: int = 4,
    metrics: Optional[ProviderMetrics] = None
) -> List[Pick]:
    """Scan the universe and return the top candidates by probability.

    Args:
        provider: Data provider used for every fetch.
        limit: Maximum number of picks returned.
        min_prob: Minimum TP1 probability for a ticker to qualify.
        interval: Bar interval passed to the provider.
        lookback: Number of bars requested per ticker.
        sectors: Sector filter; None or empty scans every sector.
        universe: Sector -> tickers table (defaults to SECTOR_TICKERS).
        learning: Learning store used for calibrated probabilities.
        score_fn: Series -> score override (defaults to score_bullish).
        prob_fn: Score -> probability override.
        max_workers: Parallel fetches.
        metrics: Optional fetch telemetry sink.

    Returns:
        Picks sorted by probability, then score, highest first.
    """
    if score_fn is None:
        score_fn = lambda series: score_bullish(series).score  # noqa: E731
    if prob_fn is None:
        prob_fn = lambda score: prob_hit_tp1_from_score(score, learning)  # noqa: E731

    pool = get_universe(sectors, universe)
    logger.info(f"Scanning {len(pool)} tickers ({interval}, {lookback} bars, min_prob={min_prob})")
    start_time = time.time()

    series_by_ticker = fetch_many(
        provider,
        [(ticker, detect_kind(ticker)) for ticker in pool],
        interval,
        lookback,
        max_workers=max_workers,
        metrics=metrics,
    )

    picks: List[Pick] = []
    for ticker in pool:
        series = series_by_ticker.get(ticker)
        if series is None:
            continue
        try:
            score = score_fn(series)
            prob = prob_fn(score)
        except Exception as e:
            logger.warning(f"Skipping {ticker}: scoring failed ({e})")
            continue
        if prob >= min_prob:
            picks.append(Pick(ticker=ticker, series=series, score=score, prob=prob))

    picks.sort(key=lambda p: (p.prob, p.score), reverse=True)
    elapsed = time.time() - start_time
    logger.info(
        f"Scan complete in {elapsed:.1f}s: {len(series_by_ticker)}/{len(pool)} fetched, "
        f"{len(picks)} above threshold"
    )
    return picks[:limit]
