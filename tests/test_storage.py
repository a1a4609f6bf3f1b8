"""Tests for the JSON key-value store and the app state repository."""

import json

import pytest

from src.contracts.schemas import Suggestion
from src.data.storage import (
    MAX_SUGGESTIONS,
    MAX_WATCHLIST,
    AppStateRepository,
    JsonKeyValueStore,
)

from conftest import BASE_TS


@pytest.fixture
def kv(tmp_path):
    return JsonKeyValueStore(str(tmp_path / 'state' / 'bullscan.json'))


@pytest.fixture
def state(kv):
    return AppStateRepository(kv)


class TestJsonKeyValueStore:
    """Test suite for JsonKeyValueStore."""

    def test_round_trip_across_instances(self, tmp_path):
        """Test values written by one instance are read by the next."""
        path = str(tmp_path / 'state' / 'bullscan.json')
        JsonKeyValueStore(path).set('interval', '1h')

        assert JsonKeyValueStore(path).get('interval') == '1h'

    def test_missing_key_default(self, kv):
        """Test absent keys return the supplied default."""
        assert kv.get('nope') is None
        assert kv.get('nope', 42) == 42

    def test_delete_and_keys(self, kv):
        """Test delete removes the key and keys lists the rest."""
        kv.set('a', 1)
        kv.set('b', 2)
        kv.delete('a')
        kv.delete('missing')

        assert kv.keys() == ['b']

    def test_corrupt_file_reads_as_empty(self, tmp_path):
        """Test invalid JSON degrades to an empty store."""
        path = tmp_path / 'bullscan.json'
        path.write_text('{not json', encoding='utf-8')

        assert JsonKeyValueStore(str(path)).keys() == []

    def test_non_object_file_reads_as_empty(self, tmp_path):
        """Test a JSON array at the top level is ignored."""
        path = tmp_path / 'bullscan.json'
        path.write_text(json.dumps([1, 2, 3]), encoding='utf-8')

        assert JsonKeyValueStore(str(path)).keys() == []

    def test_write_failure_keeps_memory_value(self, tmp_path):
        """Test an unwritable location logs and keeps the value in memory."""
        blocker = tmp_path / 'blocker'
        blocker.write_text('', encoding='utf-8')
        kv = JsonKeyValueStore(str(blocker / 'bullscan.json'))

        kv.set('interval', '1d')

        assert kv.get('interval') == '1d'


class TestWatchlist:
    """Test suite for watchlist persistence."""

    def test_empty_by_default(self, state):
        """Test a fresh store has an empty watchlist."""
        assert state.get_watchlist() == []

    def test_round_trip(self, state):
        """Test stored entries are returned as minimal dicts."""
        state.set_watchlist([{'ticker': 'AAPL', 'kind': 'stock', 'extra': 1},
                             {'ticker': 'BTCUSD', 'kind': 'crypto'}])

        assert state.get_watchlist() == [
            {'ticker': 'AAPL', 'kind': 'stock'},
            {'ticker': 'BTCUSD', 'kind': 'crypto'},
        ]

    def test_capped_at_ten(self, state):
        """Test only the first ten entries are kept."""
        state.set_watchlist([{'ticker': f"T{i}", 'kind': 'stock'} for i in range(15)])

        assert len(state.get_watchlist()) == MAX_WATCHLIST

    def test_malformed_entries_dropped(self, kv, state):
        """Test duplicates, bad kinds and non-dicts are filtered on read."""
        kv.set('watchlist', [
            {'ticker': 'aapl', 'kind': 'stock'},
            {'ticker': 'AAPL', 'kind': 'stock'},
            {'ticker': 'XOM', 'kind': 'bond'},
            'junk',
            {'kind': 'stock'},
        ])

        assert state.get_watchlist() == [{'ticker': 'AAPL', 'kind': 'stock'}]

    def test_non_list_value(self, kv, state):
        """Test a corrupt watchlist value reads as empty."""
        kv.set('watchlist', 'AAPL')

        assert state.get_watchlist() == []


class TestSuggestions:
    """Test suite for suggestion history."""

    def test_newest_first(self, state):
        """Test pushed suggestions are prepended."""
        state.push_suggestion(Suggestion('AAPL', 80, 0.8, BASE_TS))
        state.push_suggestion(Suggestion('MSFT', 78, 0.7, BASE_TS + 1000))

        assert [s.ticker for s in state.get_suggestions()] == ['MSFT', 'AAPL']

    def test_dedup_within_sixty_seconds(self, state):
        """Test the same ticker is suppressed within 60s and allowed after."""
        assert state.push_suggestion(Suggestion('AAPL', 80, 0.8, BASE_TS))
        assert not state.push_suggestion(Suggestion('AAPL', 82, 0.8, BASE_TS + 59_999))
        assert state.push_suggestion(Suggestion('AAPL', 82, 0.8, BASE_TS + 60_000))

        assert len(state.get_suggestions()) == 2

    def test_capped_at_thirty(self, state):
        """Test the oldest suggestions fall off past the cap."""
        for i in range(35):
            state.push_suggestion(Suggestion(f"T{i}", 70, 0.6, BASE_TS + i))

        suggestions = state.get_suggestions()
        assert len(suggestions) == MAX_SUGGESTIONS
        assert suggestions[0].ticker == 'T34'
        assert suggestions[-1].ticker == 'T5'

    def test_dismiss(self, state):
        """Test dismiss removes only the matching ticker and timestamp."""
        state.push_suggestion(Suggestion('AAPL', 80, 0.8, BASE_TS))
        state.push_suggestion(Suggestion('MSFT', 80, 0.8, BASE_TS))

        state.dismiss_suggestion('AAPL', BASE_TS)

        assert [s.ticker for s in state.get_suggestions()] == ['MSFT']

    def test_source_round_trips(self, state):
        """Test the suggestion source survives persistence."""
        state.push_suggestion(Suggestion('AAPL', 80, 0.8, BASE_TS, source='breakout'))

        assert state.get_suggestions()[0].source == 'breakout'

    def test_malformed_entries_skipped(self, kv, state):
        """Test unparseable suggestion records are ignored."""
        kv.set('suggestions', [{'ticker': 'AAPL'}, {'ticker': 'KO', 'score': 70, 'prob': 0.6, 'at': 1}])

        assert [s.ticker for s in state.get_suggestions()] == ['KO']


class TestPreferences:
    """Test suite for input, sector, interval and lookback preferences."""

    def test_last_input_default(self, state):
        """Test missing input returns an empty stock entry."""
        assert state.get_last_input() == {'ticker': '', 'kind': 'stock'}

    def test_last_input_round_trip(self, state):
        """Test the last typed ticker is remembered."""
        state.set_last_input('ETHUSD', 'crypto')

        assert state.get_last_input() == {'ticker': 'ETHUSD', 'kind': 'crypto'}

    def test_sectors_filtered_to_known(self, state):
        """Test stale sector names are dropped when a known list is given."""
        state.set_sectors(['Tech', 'Retired'])

        assert state.get_sectors() == ['Tech', 'Retired']
        assert state.get_sectors(known=['Tech', 'Energy']) == ['Tech']

    def test_interval_round_trip_and_validation(self, kv, state):
        """Test supported intervals persist and others are rejected or ignored."""
        state.set_interval('1h')
        assert state.get_interval() == '1h'

        with pytest.raises(ValueError):
            state.set_interval('3m')

        kv.set('interval', '3m')
        assert state.get_interval() == '5m'

    @pytest.mark.parametrize('stored,expected', [(240, 240), (0, 180), (-5, 180), ('abc', 180), (None, 180)])
    def test_lookback_falls_back(self, kv, state, stored, expected):
        """Test non-positive or non-numeric lookbacks use the default."""
        kv.set('lookback', stored)

        assert state.get_lookback() == expected
