"""Tests for config.yaml loading and environment overrides."""

import pytest

from src.config import ENV_OVERRIDES, ScannerConfig, load_config


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for env_key in ENV_OVERRIDES.values():
        monkeypatch.delenv(env_key, raising=False)


def write_config(tmp_path, text):
    path = tmp_path / 'config.yaml'
    path.write_text(text, encoding='utf-8')
    return str(path)


class TestLoadConfig:
    """Test suite for load_config."""

    def test_missing_file_gives_defaults(self, tmp_path):
        """Test a nonexistent path falls back to the defaults."""
        assert load_config(str(tmp_path / 'nope.yaml')) == ScannerConfig()

    def test_scanner_section(self, tmp_path):
        """Test values are read from the scanner section."""
        path = write_config(tmp_path, (
            "scanner:\n"
            "  provider: yahoo\n"
            "  interval: 1h\n"
            "  lookback: 240\n"
            "  min_prob: 0.8\n"
            "  sectors: [Tech, Energy]\n"
        ))

        config = load_config(path)

        assert config.provider == 'yahoo'
        assert config.interval == '1h'
        assert config.lookback == 240
        assert config.min_prob == pytest.approx(0.8)
        assert config.sectors == ['Tech', 'Energy']
        assert config.scan_limit == 5

    def test_flat_mapping_accepted(self, tmp_path):
        """Test a file without a scanner section is read as the section itself."""
        path = write_config(tmp_path, "scan_limit: 12\n")

        assert load_config(path).scan_limit == 12

    def test_env_overrides_file(self, tmp_path, monkeypatch):
        """Test BULLSCAN_* variables win over file values."""
        path = write_config(tmp_path, "scanner:\n  interval: 1h\n  lookback: 240\n")
        monkeypatch.setenv('BULLSCAN_INTERVAL', '1d')
        monkeypatch.setenv('BULLSCAN_LOOKBACK', '90')
        monkeypatch.setenv('BULLSCAN_MIN_PROB', '0.75')

        config = load_config(path)

        assert config.interval == '1d'
        assert config.lookback == 90
        assert config.min_prob == pytest.approx(0.75)

    def test_invalid_values_fall_back(self, tmp_path):
        """Test bad types, unsupported intervals and non-positive sizes use defaults."""
        path = write_config(tmp_path, (
            "scanner:\n"
            "  interval: 3m\n"
            "  lookback: -10\n"
            "  refresh_seconds: soon\n"
            "  min_prob: high\n"
        ))

        config = load_config(path)

        assert config.interval == '5m'
        assert config.lookback == 180
        assert config.refresh_seconds == 60
        assert config.min_prob == pytest.approx(0.9)

    def test_malformed_yaml(self, tmp_path):
        """Test unparsable YAML gives the defaults."""
        path = write_config(tmp_path, "scanner: [unclosed\n")

        assert load_config(path) == ScannerConfig()

    def test_sectors_from_string(self, tmp_path):
        """Test list settings accept a comma-separated string."""
        path = write_config(tmp_path, "scanner:\n  sectors: 'Tech, Semis'\n")

        assert load_config(path).sectors == ['Tech', 'Semis']
