"""Stable payload schemas for bars, price targets, scan picks and suggestions."""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

import pandas as pd


@dataclass(frozen=True)
class Bar:
    """Normalized OHLCV bar contract used by providers and the signal engine.

    ``timestamp`` is epoch milliseconds at the start of the sampling interval.
    """

    timestamp: int
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "Bar":
        """Build a bar from long (``open``) or short (``o``) key names."""
        def pick(long_key: str, short_key: str, default: Any = None) -> Any:
            if long_key in payload:
                return payload[long_key]
            if short_key in payload:
                return payload[short_key]
            if default is None:
                raise KeyError(long_key)
            return default

        return cls(
            timestamp=int(pick("timestamp", "t")),
            open=float(pick("open", "o")),
            high=float(pick("high", "h")),
            low=float(pick("low", "l")),
            close=float(pick("close", "c")),
            volume=float(pick("volume", "v", 0.0) or 0.0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
            "volume": self.volume,
        }


@dataclass(frozen=True)
class PriceTargets:
    """Trade guidance derived from the latest bar: entry, stop and two targets."""

    entry: float = 0.0
    stop: float = 0.0
    t1: float = 0.0
    t2: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return {"entry": self.entry, "stop": self.stop, "t1": self.t1, "t2": self.t2}


@dataclass
class Pick:
    """Scanner output row. Transient; never persisted by the engine."""

    ticker: str
    series: pd.DataFrame = field(repr=False)
    score: int
    prob: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ticker": self.ticker,
            "score": self.score,
            "prob": self.prob,
            "bars": len(self.series),
        }


@dataclass
class Suggestion:
    """A ticker surfaced to the user by a scan, an alert or a breakout."""

    ticker: str
    score: int
    prob: float
    at: int
    source: str = "scan"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ticker": self.ticker,
            "score": self.score,
            "prob": self.prob,
            "at": self.at,
            "source": self.source,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> Optional["Suggestion"]:
        try:
            return cls(
                ticker=str(payload["ticker"]),
                score=int(payload["score"]),
                prob=float(payload["prob"]),
                at=int(payload["at"]),
                source=str(payload.get("source", "scan")),
            )
        except (KeyError, TypeError, ValueError):
            return None


@dataclass(frozen=True)
class CalibratedProbability:
    """Empirical TP1 hit rate for a score bin."""

    value: float
    samples: int


@dataclass(frozen=True)
class CalibrationUnavailable:
    """Not enough resolved experiments to trust an empirical rate."""

    reason: str


Calibration = Union[CalibratedProbability, CalibrationUnavailable]
