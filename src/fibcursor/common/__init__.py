"""
共通モジュールパッケージ
"""

from .config import ConfigManager, get_config, reset_config, setup_logging
from .error_handler import (
    FibCursorError,
    ConfigError,
    CacheConfigError,
    CacheBackendError,
    JournalError,
    HealthMonitor,
    retry_on_failure,
)

__all__ = [
    'ConfigManager', 'get_config', 'reset_config', 'setup_logging',
    'FibCursorError', 'ConfigError', 'CacheConfigError', 'CacheBackendError',
    'JournalError', 'HealthMonitor', 'retry_on_failure',
]
