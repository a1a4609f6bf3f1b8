"""Bullish signal scoring engine.

Combines EMA confluence, RSI regime, short-term slope, volume impulse and a
volatility penalty into a deterministic 0-100 bullishness score, a verdict,
display details and swing-based price targets.

Scoring Components (weights sum to 100):
- EMA(9) above EMA(21): 30
- EMA(21) above EMA(50): 15
- EMA(50) above the higher-timeframe EMA: 10
- RSI(14) at or above 50: 18
- Positive 20-bar slope: 17
- Volume impulse over the 20-bar average: up to 10
- Volatility penalty: ATR% of price (capped at 15) * 0.25
"""

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Tuple

import pandas as pd

from src.contracts.schemas import PriceTargets
from .indicators import atr, ema, rsi

logger = logging.getLogger(__name__)

STRONG_THRESHOLD = 75
MODERATE_THRESHOLD = 60
WEAK_THRESHOLD = 50

WEIGHTS = {
    'ema_cross': 0.30,
    'ema_regime': 0.15,
    'htf_regime': 0.10,
    'rsi_bull': 0.18,
    'slope_pos': 0.17,
    'volume_impulse': 0.10,
}

SLOPE_LOOKBACK = 20
SWING_LOOKBACK = 20
VOLUME_LOOKBACK = 20
MAX_ATR_PCT_PENALTY = 15.0
ATR_PENALTY_FACTOR = 0.25
MIN_STOP_PRICE = 0.01
MIN_RISK = 0.0001
PRICE_FIELDS = ('high', 'low', 'close')


class Verdict(Enum):
    """Qualitative reading of a bullishness score."""
    STRONG = "Strong"
    MODERATE = "Moderate"
    WEAK = "Weak"
    AVOID = "Avoid"

    @classmethod
    def from_score(cls, score: int) -> "Verdict":
        if score >= STRONG_THRESHOLD:
            return cls.STRONG
        if score >= MODERATE_THRESHOLD:
            return cls.MODERATE
        if score >= WEAK_THRESHOLD:
            return cls.WEAK
        return cls.AVOID


@dataclass(frozen=True)
class SignalExplanation:
    """Scorer output. Recomputed on every call and never persisted."""
    score: int
    verdict: Verdict
    details: List[Tuple[str, str]] = field(default_factory=list)
    targets: PriceTargets = field(default_factory=PriceTargets)

    @property
    def is_strong(self) -> bool:
        return self.score >= STRONG_THRESHOLD

    def to_dict(self) -> dict:
        return {
            'score': self.score,
            'verdict': self.verdict.value,
            'details': [{'label': label, 'value': value} for label, value in self.details],
            'targets': self.targets.to_dict(),
        }


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values (74.5 -> 75), unlike round()."""
    return int(math.floor(value + 0.5))


def higher_timeframe_period(length: int) -> int:
    """Period of the higher-timeframe EMA: 60% of the series, kept within 50..200."""
    return min(200, max(50, round_half_up(length * 0.6)))


def score_bullish(series: pd.DataFrame) -> SignalExplanation:
    """Score how bullish the latest bar of a series looks.

    Args:
        series: OHLCV frame (oldest bar first) with ``open``, ``high``,
            ``low``, ``close`` and ``volume`` columns.

    Returns:
        SignalExplanation with score, verdict, details and price targets.
        An empty series, or one missing ``high``, ``low`` or ``close``,
        gives score 0, ``Verdict.AVOID``, no details and zero targets. A
        missing ``volume`` column counts as zero volume.
    """
    if series is None or len(series) == 0:
        return SignalExplanation(score=0, verdict=Verdict.AVOID)

    missing = [col for col in PRICE_FIELDS if col not in series.columns]
    if missing:
        logger.warning(f"Cannot score series missing columns: {', '.join(missing)}")
        return SignalExplanation(score=0, verdict=Verdict.AVOID)

    closes = series['close'].astype(float).reset_index(drop=True)
    if 'volume' in series.columns:
        volumes = series['volume'].fillna(0.0).astype(float).reset_index(drop=True)
    else:
        volumes = pd.Series(0.0, index=closes.index)
    n = len(closes)

    last = float(closes.iloc[-1])
    last9 = float(ema(closes, 9).iloc[-1])
    last21 = float(ema(closes, 21).iloc[-1])
    last50 = float(ema(closes, 50).iloc[-1])
    last_htf = float(ema(closes, higher_timeframe_period(n)).iloc[-1])
    last_rsi = float(rsi(closes, 14).iloc[-1])
    last_atr = float(atr(series, 14).iloc[-1])
    if not math.isfinite(last_atr):
        last_atr = 0.0

    lookback = min(SLOPE_LOOKBACK, n - 1)
    slope = (last - float(closes.iloc[-1 - lookback])) / lookback if lookback > 0 else 0.0

    vol_avg = float(volumes.iloc[-VOLUME_LOOKBACK:].mean())
    if vol_avg > 0:
        volume_impulse = min(2.0, float(volumes.iloc[-1]) / vol_avg) - 1.0
    else:
        volume_impulse = 0.0

    raw = 100 * (
        WEIGHTS['ema_cross'] * (last9 > last21)
        + WEIGHTS['ema_regime'] * (last21 > last50)
        + WEIGHTS['htf_regime'] * (last50 > last_htf)
        + WEIGHTS['rsi_bull'] * (last_rsi >= 50)
        + WEIGHTS['slope_pos'] * (slope > 0)
        + WEIGHTS['volume_impulse'] * max(0.0, volume_impulse)
    )

    # High relative volatility lowers confidence
    atr_pct = last_atr / last if last else 0.0
    raw -= min(MAX_ATR_PCT_PENALTY, atr_pct * 100) * ATR_PENALTY_FACTOR

    score = round_half_up(min(100.0, max(0.0, raw)))

    targets = derive_targets(series, last, last_atr)

    details = [
        ('EMA(9) > EMA(21)', f"{last9 > last21} ({last9:.2f}/{last21:.2f})"),
        ('EMA(21) > EMA(50)', f"{last21 > last50} ({last21:.2f}/{last50:.2f})"),
        ('EMA(50) > EMA(HTF)', f"{last50 > last_htf} ({last50:.2f}/{last_htf:.2f})"),
        ('RSI(14)', f"{last_rsi:.1f}"),
        ('Slope(20)', f"{slope:.3f}"),
        ('ATR(14)/Price', f"{atr_pct * 100:.2f}%"),
    ]

    logger.debug(f"Scored {n} bars: raw={raw:.2f} score={score}")
    return SignalExplanation(
        score=score,
        verdict=Verdict.from_score(score),
        details=details,
        targets=targets,
    )


def derive_targets(series: pd.DataFrame, entry: float, last_atr: float) -> PriceTargets:
    """Swing-based stop below the recent low, targets as R-multiples or ATR steps.

    Args:
        series: OHLCV frame used for the recent swing low.
        entry: Entry price (last close).
        last_atr: Latest ATR value.

    Returns:
        PriceTargets with entry, stop, t1 and t2.
    """
    recent_low = float(series['low'].iloc[-SWING_LOOKBACK:].min())
    stop_buffer = max(entry * 0.005, last_atr * 0.6)
    raw_stop = min(entry - stop_buffer, recent_low - last_atr * 0.2)
    stop = max(MIN_STOP_PRICE, raw_stop)
    risk = max(MIN_RISK, entry - stop)
    t1 = entry + max(risk, last_atr * 0.8)
    t2 = entry + max(2 * risk, last_atr * 1.5)
    return PriceTargets(entry=entry, stop=stop, t1=t1, t2=t2)


def format_signal_output(ticker: str, signal: SignalExplanation) -> str:
    """Format a scored signal for human-readable output.

    Args:
        ticker: Ticker symbol.
        signal: Result of score_bullish.

    Returns:
        Formatted string
    """
    output = f"\n{'=' * 60}\n"
    output += f"{ticker} | Score: {signal.score}/100 | {signal.verdict.value}\n"
    output += f"{'=' * 60}\n"

    for label, value in signal.details:
        output += f"  {label:<20} {value}\n"

    t = signal.targets
    if t.entry:
        output += f"\nEntry: ${t.entry:.2f}  Stop: ${t.stop:.2f}  TP1: ${t.t1:.2f}  TP2: ${t.t2:.2f}\n"

    return output
