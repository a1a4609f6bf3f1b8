"""Price series construction and validation.

A series is a pandas DataFrame with one row per bar, oldest first, and the
columns ``timestamp`` (epoch ms), ``open``, ``high``, ``low``, ``close`` and
``volume``. Providers produce series through these helpers so the signal
engine can rely on a single layout.
"""

import logging
from typing import Any, Iterable, List, Mapping, Union

import numpy as np
import pandas as pd

from src.contracts.schemas import Bar

logger = logging.getLogger(__name__)

SERIES_COLUMNS = ['timestamp', 'open', 'high', 'low', 'close', 'volume']
PRICE_COLUMNS = ['open', 'high', 'low', 'close']


def empty_series() -> pd.DataFrame:
    """Return a series with the canonical columns and no rows."""
    frame = pd.DataFrame({col: pd.Series(dtype=float) for col in SERIES_COLUMNS})
    frame['timestamp'] = frame['timestamp'].astype('int64')
    return frame


def make_series(bars: Iterable[Union[Bar, Mapping[str, Any]]]) -> pd.DataFrame:
    """Build a canonical series from Bar objects or bar dicts.

    Args:
        bars: Bars in any order. Dicts may use long (``close``) or short
            (``c``) key names.

    Returns:
        DataFrame sorted by timestamp with duplicate timestamps dropped.
    """
    rows = []
    for bar in bars:
        if not isinstance(bar, Bar):
            bar = Bar.from_dict(dict(bar))
        rows.append(bar.to_dict())

    if not rows:
        return empty_series()

    frame = pd.DataFrame(rows, columns=SERIES_COLUMNS)
    return _finalize(frame)


def normalize_series(df: pd.DataFrame) -> pd.DataFrame:
    """Convert a yfinance-style frame into the canonical series layout.

    Accepts capitalised OHLCV columns and a DatetimeIndex (as returned by
    ``yf.Ticker.history``) or frames already in canonical form.
    """
    if df is None or df.empty:
        return empty_series()

    frame = df.copy()
    frame.columns = [str(col).lower() for col in frame.columns]

    if 'timestamp' not in frame.columns:
        if not isinstance(frame.index, pd.DatetimeIndex):
            raise ValueError("series needs a 'timestamp' column or a DatetimeIndex")
        index = frame.index
        if index.tz is not None:
            index = index.tz_convert('UTC').tz_localize(None)
        epoch_ms = (index - pd.Timestamp('1970-01-01')) // pd.Timedelta(milliseconds=1)
        frame['timestamp'] = np.asarray(epoch_ms, dtype='int64')

    missing = [col for col in PRICE_COLUMNS if col not in frame.columns]
    if missing:
        raise ValueError(f"series is missing columns: {', '.join(missing)}")

    if 'volume' not in frame.columns:
        frame['volume'] = 0.0

    frame = frame[SERIES_COLUMNS].dropna(subset=PRICE_COLUMNS)
    return _finalize(frame)


def _finalize(frame: pd.DataFrame) -> pd.DataFrame:
    frame = frame.copy()
    frame['timestamp'] = frame['timestamp'].astype('int64')
    for col in PRICE_COLUMNS:
        frame[col] = frame[col].astype(float)
    frame['volume'] = frame['volume'].fillna(0.0).astype(float)
    frame = frame.sort_values('timestamp', kind='mergesort')
    frame = frame.drop_duplicates(subset='timestamp', keep='last')
    return frame.reset_index(drop=True)


def validate_series(series: pd.DataFrame) -> List[str]:
    """Check the OHLC invariants of a series.

    Returns:
        Human-readable descriptions of every violation. Empty when valid.
    """
    issues: List[str] = []
    if series is None or series.empty:
        return issues

    body_high = np.maximum(series['open'].values, series['close'].values)
    body_low = np.minimum(series['open'].values, series['close'].values)

    bad_high = np.flatnonzero(series['high'].values < body_high)
    if len(bad_high):
        issues.append(f"high below open/close at {len(bad_high)} bar(s), first index {bad_high[0]}")

    bad_low = np.flatnonzero(series['low'].values > body_low)
    if len(bad_low):
        issues.append(f"low above open/close at {len(bad_low)} bar(s), first index {bad_low[0]}")

    steps = np.diff(series['timestamp'].values)
    if len(steps) and (steps <= 0).any():
        issues.append("timestamps are not strictly increasing")

    if issues:
        logger.debug(f"Series validation found {len(issues)} issue(s)")
    return issues
