"""
Tests for configuration management.
"""

import json
import os
import tempfile
from unittest.mock import patch

import pytest
import yaml

from sopr_tracker.config.manager import ConfigManager
from sopr_tracker.config.models import (
    AnalysisConfig, APIConfig, RateLimitConfig, TrackerConfig
)


def test_tracker_config_defaults():
    """Test TrackerConfig with default values."""
    config = TrackerConfig()

    assert config.api.network == "solana"
    assert config.rate_limiting.max_requests == 10
    assert config.rate_limiting.window_seconds == 1.0
    assert config.analysis.history_size == 14
    assert config.analysis.trend_window == 5
    assert config.analysis.price_match_tolerance == 3600
    assert config.analysis.use_event_price_fallback is False
    assert config.analysis.ohlcv_timeframe == "1h"


def test_tracker_config_validation_success():
    """Test successful configuration validation."""
    assert TrackerConfig().validate() == []


def test_tracker_config_validation_bad_rate_limit():
    """Test configuration validation with a non-positive quota."""
    config = TrackerConfig(rate_limiting=RateLimitConfig(max_requests=0))

    errors = config.validate()
    assert len(errors) == 1
    assert "max_requests must be positive" in errors[0]


def test_tracker_config_validation_bad_analysis():
    """Test configuration validation with an unusable trend window."""
    config = TrackerConfig(analysis=AnalysisConfig(trend_window=1, break_even=0))

    errors = config.validate()
    assert any("Trend window" in e for e in errors)
    assert any("Break-even" in e for e in errors)


def test_config_manager_create_default():
    """Test ConfigManager creates default config file."""
    with tempfile.TemporaryDirectory() as temp_dir:
        config_path = os.path.join(temp_dir, "test_config.yaml")
        manager = ConfigManager(config_path)

        config = manager.load_config()

        assert os.path.exists(config_path)
        assert config.api.network == "solana"
        assert config.analysis.history_size == 14
        assert manager.is_config_valid()


def test_config_manager_create_default_json():
    """Test a .json path gets a JSON default config."""
    with tempfile.TemporaryDirectory() as temp_dir:
        config_path = os.path.join(temp_dir, "config.json")
        ConfigManager(config_path).create_default_config()

        with open(config_path) as f:
            data = json.load(f)
        assert data["rate_limiting"]["max_requests"] == 10


def test_config_manager_load_existing():
    """Test ConfigManager loads existing config file."""
    with tempfile.TemporaryDirectory() as temp_dir:
        config_path = os.path.join(temp_dir, "test_config.yaml")

        test_config = {
            'rate_limiting': {'max_requests': 5, 'window_seconds': 2.5},
            'analysis': {'history_size': 30, 'price_match_tolerance': 900}
        }
        with open(config_path, 'w') as f:
            yaml.dump(test_config, f)

        config = ConfigManager(config_path).load_config()

        assert config.rate_limiting.max_requests == 5
        assert config.rate_limiting.window_seconds == 2.5
        assert config.analysis.history_size == 30
        assert config.analysis.price_match_tolerance == 900
        # Unspecified sections keep their defaults
        assert config.api.dexscreener_url == APIConfig().dexscreener_url


def test_config_manager_env_overrides():
    """Test ConfigManager applies environment variable overrides."""
    with tempfile.TemporaryDirectory() as temp_dir:
        config_path = os.path.join(temp_dir, "test_config.yaml")

        env = {
            'SOPR_RATE_LIMIT_MAX_REQUESTS': '3',
            'SOPR_RATE_LIMIT_WINDOW': '0.5',
            'SOPR_DATA_API_KEY': 'secret',
            'SOPR_EVENT_PRICE_FALLBACK': 'true',
        }
        with patch.dict(os.environ, env):
            config = ConfigManager(config_path).load_config()

        assert config.rate_limiting.max_requests == 3
        assert config.rate_limiting.window_seconds == 0.5
        assert config.api.data_api_key == "secret"
        assert config.analysis.use_event_price_fallback is True


def test_config_manager_invalid_config():
    """Test an invalid file without an earlier good config raises."""
    with tempfile.TemporaryDirectory() as temp_dir:
        config_path = os.path.join(temp_dir, "test_config.yaml")
        with open(config_path, 'w') as f:
            yaml.dump({'rate_limiting': {'max_requests': -1}}, f)

        manager = ConfigManager(config_path)
        with pytest.raises(ValueError, match="Configuration validation failed"):
            manager.load_config()
        assert not manager.is_config_valid()
        assert manager.get_validation_errors()


def test_config_manager_keeps_last_good_config():
    """Test a broken reload falls back to the last valid configuration."""
    with tempfile.TemporaryDirectory() as temp_dir:
        config_path = os.path.join(temp_dir, "test_config.yaml")
        with open(config_path, 'w') as f:
            yaml.dump({'analysis': {'max_holders': 25}}, f)

        manager = ConfigManager(config_path)
        assert manager.load_config().analysis.max_holders == 25

        with open(config_path, 'w') as f:
            yaml.dump({'analysis': {'max_holders': 0}}, f)

        config = manager.load_config()
        assert config.analysis.max_holders == 25
        assert not manager.is_config_valid()


def test_config_manager_caches_unchanged_file():
    """Test an unchanged file is not parsed again."""
    with tempfile.TemporaryDirectory() as temp_dir:
        config_path = os.path.join(temp_dir, "test_config.yaml")
        manager = ConfigManager(config_path)
        first = manager.load_config()

        with patch.object(manager, '_load_config_file') as load_file:
            second = manager.load_config()
            load_file.assert_not_called()

        assert first is second


def test_validate_config_file():
    """Test validate_config_file reports missing and broken files."""
    with tempfile.TemporaryDirectory() as temp_dir:
        config_path = os.path.join(temp_dir, "test_config.yaml")
        manager = ConfigManager(config_path)

        is_valid, errors = manager.validate_config_file()
        assert not is_valid
        assert "does not exist" in errors[0]

        manager.create_default_config()
        assert manager.validate_config_file() == (True, [])

        with open(config_path, 'w') as f:
            yaml.dump({'unknown_section': {}}, f)
        is_valid, errors = manager.validate_config_file()
        assert not is_valid


def test_unsupported_config_format():
    """Test an unknown file extension is rejected."""
    with tempfile.TemporaryDirectory() as temp_dir:
        config_path = os.path.join(temp_dir, "config.ini")
        with open(config_path, 'w') as f:
            f.write("[api]\n")

        with pytest.raises(ValueError, match="Unsupported config file format"):
            ConfigManager(config_path).load_config()
