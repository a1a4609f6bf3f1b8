"""Tests for watchlist refresh ticks, alerts and breakout detection."""

import pytest

from src.contracts.schemas import Pick
from src.data.providers import DataProvider
from src.data.storage import AppStateRepository, JsonKeyValueStore
from src.learning.experiments import LearningStore, Outcome
from src.learning.stores import InMemoryExperimentStore
from src.monitor.watchlist_monitor import WatchlistMonitor, is_breakout

from conftest import BASE_TS, MINUTE_MS, FakeClock, build_series, linear_closes

UPTREND = linear_closes(100.0, 110.0, 180)
DOWNTREND = linear_closes(110.0, 95.0, 180)


class MappedProvider(DataProvider):
    """Returns a preset series per ticker; unknown tickers raise."""

    name = 'mapped'

    def __init__(self, series_by_ticker):
        self.series_by_ticker = dict(series_by_ticker)

    def fetch_series(self, ticker, kind, interval, lookback):
        if ticker not in self.series_by_ticker:
            raise RuntimeError(f"unknown ticker {ticker}")
        return self.series_by_ticker[ticker]


@pytest.fixture
def monitor_clock():
    """Clock one minute after the last bar of a 180-bar fixture series."""
    return FakeClock(BASE_TS + 180 * MINUTE_MS)


@pytest.fixture
def state(tmp_path):
    return AppStateRepository(JsonKeyValueStore(str(tmp_path / 'state.json')))


def make_monitor(provider, state, clock):
    learning = LearningStore(InMemoryExperimentStore(), clock=clock)
    return WatchlistMonitor(provider, learning, state, clock=clock)


class TestBreakout:
    """Test suite for is_breakout."""

    def test_breakout_with_volume(self):
        """Test a close above the prior 20-bar high on heavy volume is a breakout."""
        series = build_series([100.0] * 30 + [102.0], volumes=[1000.0] * 30 + [2000.0])

        assert is_breakout(series)

    def test_no_volume_confirmation(self):
        """Test the same price move on average volume is not a breakout."""
        series = build_series([100.0] * 30 + [102.0])

        assert not is_breakout(series)

    def test_close_inside_range(self):
        """Test a volume spike without a new high is not a breakout."""
        series = build_series([100.0] * 30 + [99.0], volumes=[1000.0] * 30 + [5000.0])

        assert not is_breakout(series)

    def test_short_series(self):
        """Test fewer than 23 bars never breaks out."""
        series = build_series([100.0] * 21 + [102.0], volumes=[1000.0] * 21 + [5000.0])

        assert not is_breakout(series)


class TestWatchlistEditing:
    """Test suite for adding and removing watchlist tickers."""

    def test_add_detects_kind_and_remembers_input(self, state, monitor_clock):
        """Test added tickers are upper-cased, classified and saved as last input."""
        monitor = make_monitor(MappedProvider({}), state, monitor_clock)

        assert monitor.add_ticker(' btcusd ')

        assert monitor.watchlist() == [{'ticker': 'BTCUSD', 'kind': 'crypto'}]
        assert state.get_last_input() == {'ticker': 'BTCUSD', 'kind': 'crypto'}

    def test_add_rejects_duplicates_and_blank(self, state, monitor_clock):
        """Test the same ticker or an empty string is not added."""
        monitor = make_monitor(MappedProvider({}), state, monitor_clock)
        monitor.add_ticker('AAPL')

        assert not monitor.add_ticker('aapl')
        assert not monitor.add_ticker('   ')
        assert len(monitor.watchlist()) == 1

    def test_add_rejects_when_full(self, state, monitor_clock):
        """Test an eleventh ticker is refused."""
        monitor = make_monitor(MappedProvider({}), state, monitor_clock)
        for i in range(10):
            assert monitor.add_ticker(f"T{i}")

        assert not monitor.add_ticker('ONEMORE')
        assert len(monitor.watchlist()) == 10

    def test_remove(self, state, monitor_clock):
        """Test remove drops the ticker and reports whether it was present."""
        monitor = make_monitor(MappedProvider({}), state, monitor_clock)
        monitor.add_ticker('AAPL')

        assert monitor.remove_ticker('aapl')
        assert not monitor.remove_ticker('AAPL')
        assert monitor.watchlist() == []


class TestRefresh:
    """Test suite for refresh ticks."""

    def test_alert_on_crossing_into_strong(self, state, monitor_clock):
        """Test the first strong reading alerts, records an experiment and a suggestion."""
        provider = MappedProvider({'AAPL': build_series(UPTREND)})
        monitor = make_monitor(provider, state, monitor_clock)
        monitor.add_ticker('AAPL')

        result = monitor.refresh()

        assert result.alerts == ['AAPL']
        assert result.scores['AAPL'] >= 75
        experiments = monitor.learning.experiments()
        assert len(experiments) == 1
        assert experiments[0].started_at == monitor_clock.now
        assert [s.source for s in state.get_suggestions()] == ['alert']

    def test_no_repeat_alert_while_strong(self, state, monitor_clock):
        """Test a ticker that stays strong alerts only once."""
        provider = MappedProvider({'AAPL': build_series(UPTREND)})
        monitor = make_monitor(provider, state, monitor_clock)
        monitor.add_ticker('AAPL')

        monitor.refresh()
        monitor_clock.advance(5 * MINUTE_MS)
        second = monitor.refresh()

        assert second.alerts == []
        assert len(monitor.learning.experiments()) == 1

    def test_seed_scores_suppresses_alert(self, state, monitor_clock):
        """Test seeding treats already-strong tickers as previously strong."""
        provider = MappedProvider({'AAPL': build_series(UPTREND)})
        monitor = make_monitor(provider, state, monitor_clock)
        monitor.add_ticker('AAPL')

        seeded = monitor.seed_scores()
        result = monitor.refresh()

        assert seeded['AAPL'] >= 75
        assert result.alerts == []
        assert monitor.learning.experiments() == []

    def test_weak_ticker_does_not_alert(self, state, monitor_clock):
        """Test a downtrend produces no alert and no experiment."""
        provider = MappedProvider({'XOM': build_series(DOWNTREND)})
        monitor = make_monitor(provider, state, monitor_clock)
        monitor.add_ticker('XOM')

        result = monitor.refresh()

        assert result.alerts == []
        assert result.scores['XOM'] < 75

    def test_failed_fetch_skips_only_that_ticker(self, state, monitor_clock):
        """Test a provider error drops one ticker for the tick and keeps the rest."""
        provider = MappedProvider({'AAPL': build_series(UPTREND)})
        monitor = make_monitor(provider, state, monitor_clock)
        monitor.add_ticker('AAPL')
        monitor.add_ticker('GONE')

        result = monitor.refresh()

        assert set(result.scores) == {'AAPL'}
        assert monitor.watchlist()[1]['ticker'] == 'GONE'

    def test_processing_error_skips_only_that_ticker(self, state, monitor_clock, monkeypatch):
        """Test an exception while handling one ticker does not abort the tick."""
        provider = MappedProvider({'AAPL': build_series(UPTREND), 'BAD': build_series(UPTREND)})
        monitor = make_monitor(provider, state, monitor_clock)
        monitor.add_ticker('AAPL')
        monitor.add_ticker('BAD')
        original = monitor.learning.update_with_series

        def update_with_series(ticker, series):
            if ticker == 'BAD':
                raise ValueError('corrupt bars')
            return original(ticker, series)

        monkeypatch.setattr(monitor.learning, 'update_with_series', update_with_series)

        result = monitor.refresh()

        assert set(result.scores) == {'AAPL'}
        assert 'AAPL' in result.alerts

    def test_series_without_volume_is_scored(self, state, monitor_clock):
        """Test a frame lacking volume is scored and never flagged as a breakout."""
        series = build_series(UPTREND).drop(columns=['volume'])
        monitor = make_monitor(MappedProvider({'AAPL': series}), state, monitor_clock)
        monitor.add_ticker('AAPL')

        result = monitor.refresh()

        assert result.scores['AAPL'] >= 75
        assert [s.source for s in result.suggestions] == ['alert']
        assert not is_breakout(series)

    def test_new_bars_resolve_experiment(self, state, monitor_clock):
        """Test a later bar through the first target resolves the open experiment."""
        provider = MappedProvider({'AAPL': build_series(UPTREND)})
        monitor = make_monitor(provider, state, monitor_clock)
        monitor.add_ticker('AAPL')
        monitor.refresh()

        provider.series_by_ticker['AAPL'] = build_series(UPTREND + [130.0])
        monitor_clock.advance(MINUTE_MS)
        result = monitor.refresh()

        assert result.resolved == 1
        assert monitor.learning.experiments()[0].resolved is Outcome.TP1

    def test_breakout_suggestion(self, state, monitor_clock):
        """Test a volume-confirmed breakout is pushed as a breakout suggestion."""
        series = build_series([100.0] * 30 + [102.0], volumes=[1000.0] * 30 + [2000.0])
        monitor = make_monitor(MappedProvider({'KO': series}), state, monitor_clock)
        monitor.add_ticker('KO')
        monitor.seed_scores()

        result = monitor.refresh()

        assert [s.source for s in result.suggestions] == ['breakout']
        assert state.get_suggestions()[0].ticker == 'KO'

    def test_empty_watchlist(self, state, monitor_clock):
        """Test a tick with nothing to watch is a no-op."""
        monitor = make_monitor(MappedProvider({}), state, monitor_clock)

        result = monitor.refresh()

        assert result.scores == {} and result.alerts == []


class TestRecordScan:
    """Test suite for storing scan picks as suggestions."""

    def test_picks_become_scan_suggestions(self, state, monitor_clock):
        """Test each pick is stored once with its score and probability."""
        monitor = make_monitor(MappedProvider({}), state, monitor_clock)
        picks = [
            Pick('AAPL', build_series(UPTREND), 90, 0.92),
            Pick('MSFT', build_series(UPTREND), 85, 0.91),
        ]

        stored = monitor.record_scan(picks)
        again = monitor.record_scan(picks)

        assert [s.ticker for s in stored] == ['AAPL', 'MSFT']
        assert again == []
        assert all(s.source == 'scan' and s.at == monitor_clock.now for s in state.get_suggestions())
