"""Per-provider fetch telemetry for scans and refresh ticks."""

import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from time import perf_counter
from typing import Dict, Iterator, List


@dataclass
class ProviderStats:
    attempts: int = 0
    successes: int = 0
    failures: int = 0
    total_latency_ms: float = 0.0
    failed_tickers: List[str] = field(default_factory=list)

    def record(self, ticker: str, success: bool, latency_ms: float) -> None:
        self.attempts += 1
        self.total_latency_ms += latency_ms
        if success:
            self.successes += 1
        else:
            self.failures += 1
            self.failed_tickers.append(ticker)

    @property
    def avg_latency_ms(self) -> float:
        return self.total_latency_ms / self.attempts if self.attempts else 0.0


class ProviderMetrics:
    """Tracks fetch attempts, failures and latency per provider. Thread-safe."""

    def __init__(self) -> None:
        self._stats: Dict[str, ProviderStats] = {}
        self._lock = threading.Lock()

    def record(self, provider: str, ticker: str, success: bool, started_at: float) -> None:
        latency_ms = (perf_counter() - started_at) * 1000.0
        with self._lock:
            stats = self._stats.setdefault(provider, ProviderStats())
            stats.record(ticker, success, latency_ms)

    @contextmanager
    def track(self, provider: str, ticker: str) -> Iterator[None]:
        """Time a fetch; an exception escaping the block counts as a failure."""
        started_at = perf_counter()
        try:
            yield
        except Exception:
            self.record(provider, ticker, False, started_at)
            raise
        self.record(provider, ticker, True, started_at)

    def summary(self) -> Dict[str, Dict[str, float]]:
        payload: Dict[str, Dict[str, float]] = {}
        with self._lock:
            for provider, st in self._stats.items():
                payload[provider] = {
                    "attempts": st.attempts,
                    "successes": st.successes,
                    "failures": st.failures,
                    "avg_latency_ms": round(st.avg_latency_ms, 2),
                    "success_rate": round((st.successes / st.attempts) * 100.0, 2) if st.attempts else 0.0,
                    "failed_tickers": list(st.failed_tickers),
                }
        return payload
