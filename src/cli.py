"""Unified CLI entrypoint for the bullish scanner."""

from __future__ import annotations

import argparse
import logging
import time

from src.config import ScannerConfig, load_config
from src.data.providers import get_provider
from src.data.storage import AppStateRepository, JsonKeyValueStore
from src.learning.experiments import LearningStore
from src.learning.stores import KeyValueExperimentStore
from src.monitor.watchlist_monitor import WatchlistMonitor
from src.observability.provider_metrics import ProviderMetrics
from src.screening.edge import forecast_linear, worth_taking
from src.screening.scanner import scan_top_picks
from src.screening.signal_engine import format_signal_output, score_bullish
from src.screening.universe import SECTOR_TICKERS, detect_kind

logger = logging.getLogger(__name__)


class App:
    """Wires config, storage, learning and provider for one CLI invocation."""

    def __init__(self, config: ScannerConfig) -> None:
        self.config = config
        self.kv = JsonKeyValueStore(config.state_path)
        self.state = AppStateRepository(self.kv)
        self.learning = LearningStore(KeyValueExperimentStore(self.kv))
        self.provider = get_provider(config.provider)
        self.metrics = ProviderMetrics()

    def monitor(self) -> WatchlistMonitor:
        return WatchlistMonitor(
            self.provider,
            self.learning,
            self.state,
            interval=self.state.get_interval(self.config.interval),
            lookback=self.state.get_lookback(self.config.lookback),
            max_workers=self.config.max_workers,
            metrics=self.metrics,
        )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="bullscan", description="Bullish watchlist scanner")
    parser.add_argument("--config", default="config.yaml", help="Path to config YAML")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command")

    scan = sub.add_parser("scan", help="Scan the sector universe for top picks")
    scan.add_argument("--limit", type=int)
    scan.add_argument("--min-prob", type=float)
    scan.add_argument("--sector", action="append", choices=sorted(SECTOR_TICKERS), dest="sectors")
    scan.add_argument("--interval", choices=["1m", "5m", "1h", "1d"])
    scan.add_argument("--lookback", type=int)

    score = sub.add_parser("score", help="Score a single ticker")
    score.add_argument("ticker")

    watch = sub.add_parser("watch", help="Manage the watchlist")
    watch.add_argument("action", choices=["add", "remove", "list"])
    watch.add_argument("ticker", nargs="?")

    refresh = sub.add_parser("refresh", help="Run watchlist refresh ticks")
    refresh.add_argument("--ticks", type=int, default=1)

    sub.add_parser("calibration", help="Show learned win rates by score bin")
    sub.add_parser("suggestions", help="Show stored suggestions")

    return parser


def _cmd_scan(app: App, args: argparse.Namespace) -> int:
    cfg = app.config
    sectors = args.sectors or app.state.get_sectors(known=list(SECTOR_TICKERS)) or cfg.sectors
    picks = scan_top_picks(
        app.provider,
        limit=args.limit or cfg.scan_limit,
        min_prob=args.min_prob if args.min_prob is not None else cfg.min_prob,
        interval=args.interval or cfg.interval,
        lookback=args.lookback or cfg.lookback,
        sectors=sectors,
        learning=app.learning,
        max_workers=cfg.max_workers,
        metrics=app.metrics,
    )
    if args.sectors:
        app.state.set_sectors(args.sectors)
    app.monitor().record_scan(picks)

    if not picks:
        print("No tickers cleared the probability threshold.")
        return 0
    for pick in picks:
        print(f"{pick.ticker:<8} score={pick.score:>3}  p(TP1)={pick.prob:.2f}")
    return 0


def _cmd_score(app: App, args: argparse.Namespace) -> int:
    ticker = args.ticker.upper()
    kind = detect_kind(ticker)
    try:
        series = app.provider.fetch_series(ticker, kind, app.config.interval, app.config.lookback)
    except Exception as e:
        print(f"Could not fetch {ticker}: {e}")
        return 2

    signal = score_bullish(series)
    print(format_signal_output(ticker, signal))
    t = signal.targets
    if t.entry:
        edge = worth_taking(signal.score, t.entry, t.stop, t.t1, app.learning)
        print(f"R/R: {edge.rr:.2f}  p(TP1): {edge.p:.2f}  EV/share: {edge.ev:.3f}  "
              f"{'WORTH TAKING' if edge.ok else 'pass'}")
    forecast = forecast_linear(series)
    if forecast.next:
        print("Forecast: " + ", ".join(f"{v:.2f}" for v in forecast.next) + f" (slope {forecast.slope:.4f})")
    return 0


def _cmd_watch(app: App, args: argparse.Namespace) -> int:
    monitor = app.monitor()
    if args.action == "list":
        for item in monitor.watchlist():
            print(f"{item['ticker']:<8} {item['kind']}")
        return 0
    if not args.ticker:
        print("A ticker is required")
        return 2
    if args.action == "add":
        ok = monitor.add_ticker(args.ticker)
    else:
        ok = monitor.remove_ticker(args.ticker)
    print("OK" if ok else "No change")
    return 0 if ok else 1


def _cmd_refresh(app: App, args: argparse.Namespace) -> int:
    monitor = app.monitor()
    monitor.seed_scores()
    for tick in range(args.ticks):
        if tick:
            time.sleep(app.config.refresh_seconds)
        result = monitor.refresh()
        for ticker, score in sorted(result.scores.items()):
            print(f"{ticker:<8} score={score:>3}")
        for ticker in result.alerts:
            print(f"ALERT: {ticker} turned strong")
        for suggestion in result.suggestions:
            print(f"Suggestion [{suggestion.source}]: {suggestion.ticker} p={suggestion.prob:.2f}")
    return 0


def _cmd_calibration(app: App, args: argparse.Namespace) -> int:
    for row in app.learning.calibration_table():
        rate = "-" if row['win_rate'] is None else f"{row['win_rate']:.3f}"
        print(f"{row['bin']:>6}  n={row['samples']:<4} wins={row['wins']:<4} rate={rate}")
    return 0


def _cmd_suggestions(app: App, args: argparse.Namespace) -> int:
    for s in app.state.get_suggestions():
        stamp = time.strftime('%Y-%m-%d %H:%M', time.localtime(s.at / 1000))
        print(f"{stamp}  {s.ticker:<8} {s.source:<8} score={s.score:>3} p={s.prob:.2f}")
    return 0


COMMANDS = {
    "scan": _cmd_scan,
    "score": _cmd_score,
    "watch": _cmd_watch,
    "refresh": _cmd_refresh,
    "calibration": _cmd_calibration,
    "suggestions": _cmd_suggestions,
}


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    handler = COMMANDS.get(args.command)
    if handler is None:
        parser.print_help()
        return 1

    app = App(load_config(args.config))
    code = handler(app, args)
    summary = app.metrics.summary()
    if summary:
        logger.info(f"Provider stats: {summary}")
    return code


if __name__ == "__main__":
    raise SystemExit(main())
