"""
Configuration management for the SOPR tracker.
"""

from .models import (
    TrackerConfig,
    APIConfig,
    RateLimitConfig,
    AnalysisConfig,
    LoggingConfig
)
from .manager import ConfigManager
from .validation import (
    TrackerConfigValidator,
    validate_config_dict,
    get_env_var_mappings,
    NetworkEnum,
    OHLCVTimeframeEnum
)

__all__ = [
    # Models
    'TrackerConfig',
    'APIConfig',
    'RateLimitConfig',
    'AnalysisConfig',
    'LoggingConfig',

    # Manager
    'ConfigManager',

    # Validation
    'TrackerConfigValidator',
    'validate_config_dict',
    'get_env_var_mappings',
    'NetworkEnum',
    'OHLCVTimeframeEnum',
]
