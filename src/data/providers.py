"""Price-series providers consumed by the scanner and the watchlist monitor.

This module defines the provider interface plus two implementations:
- MockProvider: reproducible random-walk bars for demos and tests
- YahooFinanceProvider: intraday/daily bars from Yahoo Finance via yfinance
"""

import logging
import time
import zlib
from abc import ABC, abstractmethod
from typing import Callable, Optional

import numpy as np
import pandas as pd
import yfinance as yf

from .series import make_series, normalize_series, validate_series

logger = logging.getLogger(__name__)

INTERVAL_MS = {
    '1m': 60_000,
    '5m': 5 * 60_000,
    '1h': 60 * 60_000,
    '1d': 24 * 60 * 60_000,
}

# Shortest yfinance period that covers a typical lookback for each interval
YAHOO_PERIODS = {
    '1m': '5d',
    '5m': '1mo',
    '1h': '6mo',
    '1d': '2y',
}


class DataProvider(ABC):
    """Source of OHLCV series. Each call is independent and may run in parallel."""

    name = 'base'

    @abstractmethod
    def fetch_series(self, ticker: str, kind: str, interval: str, lookback: int) -> pd.DataFrame:
        """Return the last ``lookback`` bars for ``ticker`` as a canonical series.

        Raises:
            Exception: any failure; callers treat it as "no data for this ticker".
        """
        raise NotImplementedError


class MockProvider(DataProvider):
    """Generates vaguely realistic trending bars, reproducible per ticker and seed.

    Example:
        >>> provider = MockProvider(seed=7)
        >>> series = provider.fetch_series("AAPL", "stock", "5m", 180)
    """

    name = 'mock'

    def __init__(self, seed: int = 0, clock: Optional[Callable[[], int]] = None) -> None:
        self.seed = seed
        self.clock = clock or (lambda: int(time.time() * 1000))

    def fetch_series(self, ticker: str, kind: str, interval: str, lookback: int) -> pd.DataFrame:
        step_ms = INTERVAL_MS.get(interval, INTERVAL_MS['1m'])
        rng = np.random.default_rng(zlib.crc32(f"{ticker}:{self.seed}".encode()))
        now = int(self.clock())
        now -= now % step_ms

        price = max(5.0, rng.random() * 150)
        bars = []
        for i in range(lookback, 0, -1):
            drift = (np.sin(i / 20) + rng.random() * 0.4 - 0.2) * (price * 0.002)
            price = max(0.5, price + drift)
            open_ = price * (1 - rng.random() * 0.01)
            close = price * (1 + rng.random() * 0.01)
            high = max(open_, close) * (1 + rng.random() * 0.01)
            low = min(open_, close) * (1 - rng.random() * 0.01)
            bars.append({
                'timestamp': now - i * step_ms,
                'open': open_,
                'high': high,
                'low': low,
                'close': close,
                'volume': rng.random() * 1e6,
            })
        return make_series(bars)


class YahooFinanceProvider(DataProvider):
    """Fetches bars from Yahoo Finance with retry and exponential backoff.

    Attributes:
        max_retries: Maximum number of attempts per ticker (default: 3).
        retry_delay: Base delay in seconds between attempts (default: 2).
    """

    name = 'yahoo'

    def __init__(self, max_retries: int = 3, retry_delay: float = 2) -> None:
        self.max_retries = max_retries
        self.retry_delay = retry_delay

    @staticmethod
    def to_yahoo_symbol(ticker: str, kind: str) -> str:
        """BTCUSD / BTCUSDT / BTC -> BTC-USD for crypto; stocks pass through."""
        symbol = ticker.upper().strip()
        if kind != 'crypto' or '-' in symbol:
            return symbol
        for suffix in ('USDT', 'USD'):
            if symbol.endswith(suffix) and len(symbol) > len(suffix):
                return f"{symbol[:-len(suffix)]}-USD"
        return f"{symbol}-USD"

    def fetch_series(self, ticker: str, kind: str, interval: str, lookback: int) -> pd.DataFrame:
        if interval not in YAHOO_PERIODS:
            raise ValueError(f"Unsupported interval: {interval}")

        symbol = self.to_yahoo_symbol(ticker, kind)
        period = YAHOO_PERIODS[interval]
        last_error: Optional[Exception] = None

        for attempt in range(self.max_retries):
            try:
                hist = yf.Ticker(symbol).history(period=period, interval=interval)
                if hist is None or hist.empty:
                    raise RuntimeError(f"No price data returned for {symbol}")
                series = normalize_series(hist)
                for issue in validate_series(series):
                    logger.warning(f"{symbol}: {issue}")
                logger.info(f"Fetched {len(series)} {interval} bars for {symbol}")
                return series.tail(lookback).reset_index(drop=True)
            except Exception as e:
                last_error = e
                delay = self.retry_delay * (2 ** attempt)
                logger.warning(
                    f"Attempt {attempt + 1}/{self.max_retries} failed for {symbol}: {e}"
                )
                if attempt < self.max_retries - 1:
                    time.sleep(delay)

        raise RuntimeError(f"Failed to fetch {symbol} after {self.max_retries} attempts: {last_error}")


def get_provider(name: str = 'mock', **kwargs) -> DataProvider:
    """Build a provider by name ('mock' or 'yahoo')."""
    key = (name or 'mock').lower()
    if key == 'mock':
        return MockProvider(**kwargs)
    if key in ('yahoo', 'yfinance'):
        return YahooFinanceProvider(**kwargs)
    raise ValueError(f"Unknown data provider: {name}")
