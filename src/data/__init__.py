"""Price-series providers, series helpers and key-value storage."""

from .providers import DataProvider, MockProvider, YahooFinanceProvider, get_provider
from .series import SERIES_COLUMNS, empty_series, make_series, normalize_series, validate_series
from .storage import AppStateRepository, JsonKeyValueStore

__all__ = [
    "DataProvider",
    "MockProvider",
    "YahooFinanceProvider",
    "get_provider",
    "SERIES_COLUMNS",
    "empty_series",
    "make_series",
    "normalize_series",
    "validate_series",
    "AppStateRepository",
    "JsonKeyValueStore",
]
