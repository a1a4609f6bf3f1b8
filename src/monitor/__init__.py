"""Watchlist refresh driver."""

from .watchlist_monitor import RefreshResult, WatchlistMonitor, is_breakout

__all__ = ["RefreshResult", "WatchlistMonitor", "is_breakout"]
