"""Bullish signal engine: indicators, scoring, edge evaluation and scanning."""

from .indicators import atr, ema, rsi
from .signal_engine import SignalExplanation, Verdict, score_bullish
from .edge import (
    LinearForecast,
    TradeEdge,
    expected_value_per_share,
    forecast_linear,
    prob_hit_tp1_from_score,
    risk_reward,
    worth_taking,
)
from .universe import SECTOR_TICKERS, detect_kind, get_universe
from .scanner import scan_top_picks

__all__ = [
    "atr",
    "ema",
    "rsi",
    "SignalExplanation",
    "Verdict",
    "score_bullish",
    "LinearForecast",
    "TradeEdge",
    "expected_value_per_share",
    "forecast_linear",
    "prob_hit_tp1_from_score",
    "risk_reward",
    "worth_taking",
    "SECTOR_TICKERS",
    "detect_kind",
    "get_universe",
    "scan_top_picks",
]
