"""Persistence backends for recorded trade-outcome experiments."""

import logging
import threading
from abc import ABC, abstractmethod
from typing import List, Optional

from src.data.storage import JsonKeyValueStore
from .experiments import Experiment

logger = logging.getLogger(__name__)

EXPERIMENTS_KEY = 'learn.experiments'


class ExperimentStore(ABC):
    """Loads and saves the whole experiment list at once."""

    @abstractmethod
    def load(self) -> List[Experiment]:
        """Return stored experiments, oldest first. Never raises."""
        raise NotImplementedError

    @abstractmethod
    def save(self, experiments: List[Experiment]) -> None:
        """Replace the stored experiments. Failures are logged, not raised."""
        raise NotImplementedError


class InMemoryExperimentStore(ExperimentStore):
    """Process-local store, mainly for tests and dry runs."""

    def __init__(self, experiments: Optional[List[Experiment]] = None) -> None:
        self._lock = threading.Lock()
        self._items = [e.to_dict() for e in (experiments or [])]

    def load(self) -> List[Experiment]:
        with self._lock:
            return [Experiment.from_dict(item) for item in self._items]

    def save(self, experiments: List[Experiment]) -> None:
        with self._lock:
            self._items = [e.to_dict() for e in experiments]


class KeyValueExperimentStore(ExperimentStore):
    """Stores experiments as a JSON list under one key of a JsonKeyValueStore."""

    def __init__(self, kv: JsonKeyValueStore, key: str = EXPERIMENTS_KEY) -> None:
        self.kv = kv
        self.key = key

    def load(self) -> List[Experiment]:
        raw = self.kv.get(self.key)
        if raw is None:
            return []
        if not isinstance(raw, list):
            logger.warning(f"Stored experiments under '{self.key}' are not a list, ignoring them")
            return []

        experiments = []
        skipped = 0
        for item in raw:
            try:
                experiments.append(Experiment.from_dict(item))
            except (AttributeError, KeyError, TypeError, ValueError):
                skipped += 1
        if skipped:
            logger.warning(f"Skipped {skipped} malformed experiment record(s)")
        return experiments

    def save(self, experiments: List[Experiment]) -> None:
        self.kv.set(self.key, [e.to_dict() for e in experiments])
