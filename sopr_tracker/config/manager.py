"""
Configuration manager for YAML/JSON files with environment overrides.
"""

import hashlib
import json
import logging
import os
import threading
from typing import Any, Dict, Optional

import yaml

from sopr_tracker.config.models import TrackerConfig
from sopr_tracker.config.validation import validate_config_dict, get_env_var_mappings

logger = logging.getLogger(__name__)

INT_ENV_VARS = {
    'SOPR_API_TIMEOUT', 'SOPR_RATE_LIMIT_MAX_REQUESTS', 'SOPR_HISTORY_SIZE',
    'SOPR_TREND_WINDOW', 'SOPR_PRICE_TOLERANCE', 'SOPR_MAX_HOLDERS',
    'SOPR_MAX_TRADE_PAGES'
}
FLOAT_ENV_VARS = {'SOPR_RATE_LIMIT_WINDOW', 'SOPR_RATE_LIMIT_DELAY', 'SOPR_REQUEST_TIMEOUT'}
BOOL_ENV_VARS = {'SOPR_EVENT_PRICE_FALLBACK', 'SOPR_LOG_STRUCTURED'}


class ConfigManager:
    """
    Configuration manager.

    Supports YAML and JSON configuration files with environment variable
    overrides. A failed reload keeps serving the last configuration that
    validated.
    """

    def __init__(self, config_file_path: str = "config.yaml"):
        """
        Initialize configuration manager.

        Args:
            config_file_path: Path to the configuration file
        """
        self.config_file_path = os.path.abspath(config_file_path)
        self._config: Optional[TrackerConfig] = None
        self._config_hash: Optional[str] = None
        self._lock = threading.Lock()
        self._validation_errors: list[str] = []
        self._last_successful_config: Optional[TrackerConfig] = None

    def load_config(self) -> TrackerConfig:
        """
        Load configuration from file with environment variable overrides.

        Returns:
            Loaded and validated configuration

        Raises:
            ValueError: If configuration is invalid and no earlier config exists
        """
        with self._lock:
            if not os.path.exists(self.config_file_path):
                self.create_default_config()

            current_hash = self._calculate_config_hash()
            if self._config_hash == current_hash and self._config is not None:
                return self._config

            try:
                config_data = self._load_config_file()
                config_data = self._apply_env_overrides(config_data)

                validated = validate_config_dict(config_data)
                config = validated.to_tracker_config()

                self._config = config
                self._config_hash = current_hash
                self._validation_errors = []
                self._last_successful_config = config
                return config

            except Exception as e:
                self._validation_errors = [str(e)]

                if self._last_successful_config is not None:
                    logger.warning(f"Config validation failed, using last known good config: {e}")
                    return self._last_successful_config

                raise ValueError(f"Configuration validation failed: {e}") from e

    def get_config(self) -> TrackerConfig:
        """Get current configuration, loading if necessary."""
        if self._config is None:
            return self.load_config()
        return self._config

    def get_validation_errors(self) -> list[str]:
        return self._validation_errors.copy()

    def is_config_valid(self) -> bool:
        return len(self._validation_errors) == 0

    def validate_config_file(self) -> tuple[bool, list[str]]:
        """
        Validate configuration file without loading it.

        Returns:
            Tuple of (is_valid, error_messages)
        """
        try:
            if not os.path.exists(self.config_file_path):
                return False, ["Configuration file does not exist"]

            config_data = self._load_config_file()
            config_data = self._apply_env_overrides(config_data)
            config = validate_config_dict(config_data).to_tracker_config()

            errors = config.validate()
            return len(errors) == 0, errors

        except Exception as e:
            return False, [str(e)]

    def create_default_config(self) -> None:
        """Write a default configuration file."""
        default_config = {
            'api': {
                'dexscreener_url': 'https://api.dexscreener.com/latest/dex/tokens',
                'geckoterminal_url': 'https://api.geckoterminal.com/api/v2',
                'data_api_url': 'https://data.solanatracker.io',
                'data_api_key': None,
                'network': 'solana',
                'timeout': 30
            },
            'rate_limiting': {
                'max_requests': 10,
                'window_seconds': 1.0,
                'inter_request_delay': 0.1,
                'request_timeout': 30.0
            },
            'analysis': {
                'history_size': 14,
                'trend_window': 5,
                'min_trend_samples': 2,
                'price_match_tolerance': 3600,
                'max_holders': 100,
                'break_even': 1.0,
                'use_event_price_fallback': False,
                'ohlcv_timeframe': '1h',
                'ohlcv_limit': 1000,
                'max_trade_pages': 5
            },
            'logging': {
                'level': 'INFO',
                'file': None,
                'structured': False
            }
        }

        config_dir = os.path.dirname(self.config_file_path)
        if config_dir:
            os.makedirs(config_dir, exist_ok=True)

        with open(self.config_file_path, 'w') as f:
            if self.config_file_path.endswith('.json'):
                json.dump(default_config, f, indent=2)
            else:
                yaml.dump(default_config, f, default_flow_style=False, indent=2, sort_keys=False)

        logger.info(f"Created default configuration at {self.config_file_path}")

    def _load_config_file(self) -> Dict[str, Any]:
        """Load configuration data from file."""
        with open(self.config_file_path, 'r') as f:
            if self.config_file_path.endswith(('.yaml', '.yml')):
                return yaml.safe_load(f) or {}
            elif self.config_file_path.endswith('.json'):
                return json.load(f)
            else:
                raise ValueError(f"Unsupported config file format: {self.config_file_path}")

    def _apply_env_overrides(self, config_data: Dict[str, Any]) -> Dict[str, Any]:
        """Apply environment variable overrides to configuration."""
        for env_var, config_path_str in get_env_var_mappings().items():
            env_value = os.getenv(env_var)
            if env_value is None:
                continue

            # "rate_limiting.max_requests" -> ["rate_limiting", "max_requests"]
            config_path = config_path_str.split('.')
            current = config_data
            for key in config_path[:-1]:
                if not isinstance(current.get(key), dict):
                    current[key] = {}
                current = current[key]

            current[config_path[-1]] = self._convert_env_value(env_var, env_value)

        return config_data

    def _convert_env_value(self, env_var: str, env_value: str) -> Any:
        """Convert environment variable value to appropriate type."""
        if env_var in INT_ENV_VARS:
            return int(env_value)
        elif env_var in FLOAT_ENV_VARS:
            return float(env_value)
        elif env_var in BOOL_ENV_VARS:
            return env_value.lower() in ('true', '1', 'yes', 'on')
        return env_value

    def _calculate_config_hash(self) -> str:
        """Hash the configuration file content together with overriding env vars."""
        if not os.path.exists(self.config_file_path):
            return ""

        with open(self.config_file_path, 'rb') as f:
            content = f.read()

        env_vars = []
        for env_var in get_env_var_mappings():
            env_value = os.getenv(env_var)
            if env_value is not None:
                env_vars.append(f"{env_var}={env_value}")

        combined_content = content + "|".join(sorted(env_vars)).encode()
        return hashlib.sha256(combined_content).hexdigest()
