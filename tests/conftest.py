"""Shared fixtures and synthetic series builders for the test suite."""

from typing import List, Optional

import numpy as np
import pandas as pd
import pytest

from src.data.series import make_series

MINUTE_MS = 60_000
BASE_TS = 1_700_000_000_000


def build_series(
    closes: List[float],
    start_ts: int = BASE_TS,
    step_ms: int = MINUTE_MS,
    spread: float = 0.05,
    volumes: Optional[List[float]] = None
) -> pd.DataFrame:
    """Series whose bars open at the previous close and wick ``spread`` beyond the body."""
    bars = []
    prev = closes[0]
    for i, close in enumerate(closes):
        open_ = prev
        bars.append({
            'timestamp': start_ts + i * step_ms,
            'open': open_,
            'high': max(open_, close) + spread,
            'low': min(open_, close) - spread,
            'close': close,
            'volume': volumes[i] if volumes is not None else 1000.0,
        })
        prev = close
    return make_series(bars)


def linear_closes(start: float, end: float, n: int) -> List[float]:
    return list(np.linspace(start, end, n))


def compounding_closes(start: float, pct: float, n: int) -> List[float]:
    return [start * (1 + pct) ** i for i in range(n)]


class FakeClock:
    """Manually advanced epoch-ms clock."""

    def __init__(self, now: int = BASE_TS) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def uptrend_series():
    """180 one-minute bars trending from 100.00 to 110.00."""
    return build_series(linear_closes(100.0, 110.0, 180))


@pytest.fixture
def downtrend_series():
    """180 one-minute bars falling from 110.00 to 95.00."""
    return build_series(linear_closes(110.0, 95.0, 180))


@pytest.fixture
def compounding_series():
    """200 bars with the close rising 0.1% per bar."""
    return build_series(compounding_closes(50.0, 0.001, 200))


@pytest.fixture
def clock():
    return FakeClock()
