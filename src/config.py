"""Scanner configuration loaded from config.yaml with environment overrides.

Values come from three layers, later ones winning:
1. ScannerConfig defaults
2. The ``scanner`` section of config.yaml
3. BULLSCAN_* environment variables (a .env file is loaded first)
"""

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

VALID_INTERVALS = ('1m', '5m', '1h', '1d')

ENV_OVERRIDES = {
    'provider': 'BULLSCAN_PROVIDER',
    'interval': 'BULLSCAN_INTERVAL',
    'lookback': 'BULLSCAN_LOOKBACK',
    'min_prob': 'BULLSCAN_MIN_PROB',
    'state_path': 'BULLSCAN_STATE_PATH',
    'refresh_seconds': 'BULLSCAN_REFRESH_SECONDS',
}


@dataclass
class ScannerConfig:
    provider: str = 'mock'
    interval: str = '5m'
    lookback: int = 180
    scan_limit: int = 5
    min_prob: float = 0.9
    sectors: List[str] = field(default_factory=list)
    state_path: str = './data/state/bullscan.json'
    refresh_seconds: int = 60
    max_workers: int = 4


def _coerce(name: str, value: Any, default: Any) -> Any:
    """Convert a raw config value to the type of its default, or fall back."""
    try:
        if isinstance(default, bool):
            if isinstance(value, str):
                return value.strip().lower() not in ('0', 'false', 'no', 'off')
            return bool(value)
        if isinstance(default, int):
            return int(value)
        if isinstance(default, float):
            return float(value)
        if isinstance(default, list):
            if isinstance(value, str):
                return [v.strip() for v in value.split(',') if v.strip()]
            return [str(v) for v in value]
        return str(value)
    except (TypeError, ValueError):
        logger.warning(f"Invalid value for {name}: {value!r}, using default {default!r}")
        return default


def _read_yaml(config_path: Path) -> Dict[str, Any]:
    if not config_path.exists():
        logger.debug(f"Config path {config_path} not found, using defaults")
        return {}
    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            payload = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.error(f"Failed to parse {config_path}: {e}")
        return {}
    if not isinstance(payload, dict):
        logger.error(f"Config file {config_path} must contain a mapping")
        return {}
    section = payload.get('scanner', payload)
    return section if isinstance(section, dict) else {}


def load_config(config_path: Optional[str] = 'config.yaml') -> ScannerConfig:
    """Load scanner settings.

    Args:
        config_path: YAML file with an optional ``scanner`` section. Missing
            or unreadable files give the defaults.

    Returns:
        ScannerConfig with file values and environment overrides applied.
    """
    load_dotenv()
    defaults = ScannerConfig()
    raw = _read_yaml(Path(config_path)) if config_path else {}

    for name, env_key in ENV_OVERRIDES.items():
        env_value = os.getenv(env_key)
        if env_value not in (None, ''):
            raw[name] = env_value

    values = {}
    for f in fields(ScannerConfig):
        default = getattr(defaults, f.name)
        values[f.name] = _coerce(f.name, raw[f.name], default) if f.name in raw else default

    config = ScannerConfig(**values)

    if config.interval not in VALID_INTERVALS:
        logger.warning(f"Unsupported interval {config.interval!r}, using 5m")
        config.interval = '5m'
    if config.lookback <= 0:
        config.lookback = defaults.lookback
    if config.refresh_seconds <= 0:
        config.refresh_seconds = defaults.refresh_seconds

    return config
