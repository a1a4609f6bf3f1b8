"""Technical indicators used by the bullish signal engine.

Pure transforms over a price sequence: exponential moving average (EMA),
relative strength index (RSI) and average true range (ATR). Every function
returns a ``pd.Series`` with the same length as its input so values line up
bar-for-bar with the source series.
"""

import logging
from typing import Sequence, Union

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

NEUTRAL_RSI = 50.0
LOSS_FLOOR = 1e-9

Values = Union[Sequence[float], np.ndarray, pd.Series]


def _as_float_series(values: Values) -> pd.Series:
    if isinstance(values, pd.Series):
        return values.astype(float).reset_index(drop=True)
    return pd.Series(np.asarray(values, dtype=float))


def _clamp_period(period: int) -> int:
    if period <= 0:
        logger.warning(f"Non-positive indicator period {period}, clamping to 1")
        return 1
    return int(period)


def ema(values: Values, period: int) -> pd.Series:
    """Calculate the Exponential Moving Average (EMA).

    The EMA is seeded with the first value, so the first output equals the
    first input and there is no warm-up gap. Each later point is
    ``value * k + prev * (1 - k)`` with ``k = 2 / (period + 1)``.

    Args:
        values: Sequence of prices.
        period: Smoothing period. Values <= 0 are clamped to 1.

    Returns:
        Series of EMA values, same length as ``values``.

    Example:
        >>> ema([100, 102, 101, 103, 105], period=3).iloc[-1]
        103.5
    """
    prices = _as_float_series(values)
    if prices.empty:
        return prices
    period = _clamp_period(period)
    return prices.ewm(span=period, adjust=False).mean()


def rsi(values: Values, period: int = 14) -> pd.Series:
    """Calculate the Relative Strength Index with Wilder smoothing.

    Average gain and loss are seeded over the first ``period`` price changes,
    then updated with ``avg = (avg * (period - 1) + value) / period``. The
    loss average is floored at 1e-9 so a run of pure gains reads close to 100.

    Args:
        values: Sequence of closing prices.
        period: Lookback period (default: 14).

    Returns:
        Series of RSI values in [0, 100], same length as ``values``. The
        bars before the first computed value repeat it. When fewer than
        ``period + 1`` prices are available the result is a flat 50.
    """
    prices = _as_float_series(values)
    n = len(prices)
    period = _clamp_period(period)

    if n < period + 1:
        return pd.Series([NEUTRAL_RSI] * n, dtype=float)

    deltas = np.diff(prices.values)
    gains = np.clip(deltas, 0, None)
    losses = np.clip(-deltas, 0, None)

    avg_gain = gains[:period].sum() / period
    avg_loss = losses[:period].sum() / period

    out = np.empty(n, dtype=float)
    out[period] = _rsi_value(avg_gain, avg_loss)
    for i in range(period, len(deltas)):
        avg_gain = (avg_gain * (period - 1) + gains[i]) / period
        avg_loss = (avg_loss * (period - 1) + losses[i]) / period
        out[i + 1] = _rsi_value(avg_gain, avg_loss)

    out[:period] = out[period]
    return pd.Series(out)


def _rsi_value(avg_gain: float, avg_loss: float) -> float:
    rs = avg_gain / max(avg_loss, LOSS_FLOOR)
    return 100.0 - 100.0 / (1.0 + rs)


def true_range(series: pd.DataFrame) -> pd.Series:
    """True range per bar. The first bar has no previous close, so TR = high - low."""
    high = series['high'].astype(float).reset_index(drop=True)
    low = series['low'].astype(float).reset_index(drop=True)
    prev_close = series['close'].astype(float).reset_index(drop=True).shift(1)

    ranges = pd.concat(
        [high - low, (high - prev_close).abs(), (low - prev_close).abs()],
        axis=1,
    )
    return ranges.max(axis=1, skipna=True)


def atr(series: pd.DataFrame, period: int = 14) -> pd.Series:
    """Calculate the Average True Range with Wilder's running average.

    The average is seeded with the simple mean of the first ``period`` true
    ranges and then updated with ``rma = (rma * (period - 1) + tr) / period``.

    Args:
        series: OHLCV frame with ``high``, ``low`` and ``close`` columns.
        period: Lookback period (default: 14).

    Returns:
        Series of ATR values, same length as ``series``. Bars before the
        seed repeat the seed value. An empty frame gives an empty series.
    """
    if series is None or len(series) == 0:
        return pd.Series(dtype=float)

    period = _clamp_period(period)
    tr = true_range(series).values
    n = len(tr)

    seed_count = min(period, n)
    rma = tr[:seed_count].sum() / seed_count

    out = np.empty(n, dtype=float)
    out[:seed_count] = rma
    for i in range(seed_count, n):
        rma = (rma * (period - 1) + tr[i]) / period
        out[i] = rma
    return pd.Series(out)
