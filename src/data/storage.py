"""Key-value storage for scanner state.

This module provides a small JSON-file backed key-value store plus a
repository for the app-level state the scanner keeps between runs
(watchlist, last input, suggestions, sector filter and preferences).

Read failures degrade to "value absent" and write failures are logged and
skipped, so the scanner keeps working in memory for the current tick.
"""

import json
import logging
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

from src.contracts.schemas import Suggestion

logger = logging.getLogger(__name__)

WATCHLIST_KEY = 'watchlist'
INPUT_KEY = 'input'
SUGGESTIONS_KEY = 'suggestions'
SECTORS_KEY = 'sectors'
INTERVAL_KEY = 'interval'
LOOKBACK_KEY = 'lookback'

MAX_WATCHLIST = 10
MAX_SUGGESTIONS = 30
SUGGESTION_DEDUP_MS = 60_000
VALID_KINDS = ('stock', 'crypto')
VALID_INTERVALS = ('1m', '5m', '1h', '1d')


class JsonKeyValueStore:
    """String-keyed store persisted as a single JSON object on disk.

    Attributes:
        path: Location of the JSON file. Parent directories are created on
            first write.

    Example:
        >>> kv = JsonKeyValueStore("./data/state/bullscan.json")
        >>> kv.set("interval", "5m")
        >>> kv.get("interval")
        '5m'
    """

    def __init__(self, path: str) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()
        self._data: Dict[str, Any] = self._read()
        logger.debug(f"JsonKeyValueStore opened at {self.path} ({len(self._data)} keys)")

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                payload = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Could not read state file {self.path}: {e}")
            return {}
        if not isinstance(payload, dict):
            logger.warning(f"State file {self.path} is not a JSON object, ignoring it")
            return {}
        return payload

    def _write(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.path.with_suffix(self.path.suffix + '.tmp')
            with open(tmp_path, 'w', encoding='utf-8') as f:
                json.dump(self._data, f, indent=2)
            tmp_path.replace(self.path)
        except (OSError, TypeError, ValueError) as e:
            logger.warning(f"Could not write state file {self.path}: {e}")

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            value = self._data.get(key, default)
        return value

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = value
            self._write()

    def delete(self, key: str) -> None:
        with self._lock:
            if key in self._data:
                del self._data[key]
                self._write()

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._data.keys())


class AppStateRepository:
    """Typed access to the scanner's persisted app state.

    Every getter tolerates missing or malformed values and returns a default.
    """

    def __init__(self, kv: JsonKeyValueStore) -> None:
        self.kv = kv

    # ------------------------------------------------------------------ watchlist

    def get_watchlist(self) -> List[Dict[str, str]]:
        raw = self.kv.get(WATCHLIST_KEY)
        if not isinstance(raw, list):
            return []
        items: List[Dict[str, str]] = []
        seen = set()
        for entry in raw:
            if not isinstance(entry, dict):
                continue
            ticker = str(entry.get('ticker', '')).upper().strip()
            kind = entry.get('kind', 'stock')
            if not ticker or ticker in seen or kind not in VALID_KINDS:
                continue
            seen.add(ticker)
            items.append({'ticker': ticker, 'kind': kind})
        return items[:MAX_WATCHLIST]

    def set_watchlist(self, items: List[Dict[str, str]]) -> None:
        minimal = [{'ticker': i['ticker'], 'kind': i['kind']} for i in items[:MAX_WATCHLIST]]
        self.kv.set(WATCHLIST_KEY, minimal)

    # ------------------------------------------------------------------ input

    def get_last_input(self) -> Dict[str, str]:
        raw = self.kv.get(INPUT_KEY)
        if isinstance(raw, dict) and raw.get('kind') in VALID_KINDS:
            return {'ticker': str(raw.get('ticker', '')), 'kind': raw['kind']}
        return {'ticker': '', 'kind': 'stock'}

    def set_last_input(self, ticker: str, kind: str) -> None:
        self.kv.set(INPUT_KEY, {'ticker': ticker, 'kind': kind})

    # ------------------------------------------------------------------ suggestions

    def get_suggestions(self) -> List[Suggestion]:
        raw = self.kv.get(SUGGESTIONS_KEY)
        if not isinstance(raw, list):
            return []
        parsed = [Suggestion.from_dict(s) for s in raw if isinstance(s, dict)]
        return [s for s in parsed if s is not None][:MAX_SUGGESTIONS]

    def push_suggestion(self, suggestion: Suggestion) -> bool:
        """Add a suggestion to the front of the list.

        Returns:
            False when the same ticker already has a suggestion within 60
            seconds of this one, True when it was stored.
        """
        current = self.get_suggestions()
        for existing in current:
            if existing.ticker == suggestion.ticker and abs(existing.at - suggestion.at) < SUGGESTION_DEDUP_MS:
                return False
        updated = [suggestion] + current
        self.kv.set(SUGGESTIONS_KEY, [s.to_dict() for s in updated[:MAX_SUGGESTIONS]])
        return True

    def dismiss_suggestion(self, ticker: str, at: int) -> None:
        remaining = [s for s in self.get_suggestions() if not (s.ticker == ticker and s.at == at)]
        self.kv.set(SUGGESTIONS_KEY, [s.to_dict() for s in remaining])

    # ------------------------------------------------------------------ preferences

    def get_sectors(self, known: Optional[List[str]] = None) -> List[str]:
        raw = self.kv.get(SECTORS_KEY)
        if not isinstance(raw, list):
            return []
        sectors = [str(s) for s in raw]
        if known is not None:
            sectors = [s for s in sectors if s in known]
        return sectors

    def set_sectors(self, sectors: List[str]) -> None:
        self.kv.set(SECTORS_KEY, list(sectors))

    def get_interval(self, default: str = '5m') -> str:
        value = self.kv.get(INTERVAL_KEY)
        return value if value in VALID_INTERVALS else default

    def set_interval(self, interval: str) -> None:
        if interval not in VALID_INTERVALS:
            raise ValueError(f"Unsupported interval: {interval}")
        self.kv.set(INTERVAL_KEY, interval)

    def get_lookback(self, default: int = 180) -> int:
        try:
            value = int(self.kv.get(LOOKBACK_KEY, default))
        except (TypeError, ValueError):
            return default
        return value if value > 0 else default

    def set_lookback(self, lookback: int) -> None:
        self.kv.set(LOOKBACK_KEY, int(lookback))
