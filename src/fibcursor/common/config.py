#!/usr/bin/env python3
"""
中央設定管理モジュール
System-wide configuration management for fibcursor
"""

import copy
import os
import re
import json
import logging
from logging import Formatter
from typing import Dict, Any, Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def _fibcursor_home() -> str:
    return os.environ.get('FIBCURSOR_HOME', os.path.expanduser('~/.fibcursor'))


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """overrideの値でbaseを再帰的に上書きした新しい辞書を返す"""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class ConfigManager:
    """中央設定を管理するクラス"""

    def __init__(self, config_path: Optional[str] = None):
        """設定マネージャーの初期化"""
        self.config_path = config_path
        self._config = None
        self.reload()

    def _resolve_path(self) -> str:
        if self.config_path:
            return self.config_path
        env_path = os.environ.get('FIBCURSOR_CONFIG')
        if env_path:
            return env_path
        return os.path.join(_fibcursor_home(), 'config', 'system.yaml')

    def reload(self):
        """設定ファイルを再読み込み"""
        config_path = self._resolve_path()
        defaults = self._get_default_config()

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                loaded = yaml.safe_load(f) or {}
            if not isinstance(loaded, dict):
                raise ValueError(f"top-level YAML value must be a mapping, got {type(loaded).__name__}")

            # 環境変数の展開
            self._config = _deep_merge(defaults, self._expand_env_vars(loaded))

            logger.info(f"Configuration loaded from {config_path}")
        except FileNotFoundError:
            logger.warning(f"Config file not found: {config_path}, using defaults")
            self._config = defaults
        except (OSError, ValueError, yaml.YAMLError) as e:
            logger.error(f"Error loading config: {e}, using defaults", exc_info=True)
            self._config = defaults

    def _expand_env_vars(self, config: Any) -> Any:
        """設定値内の環境変数を展開"""
        if isinstance(config, dict):
            return {k: self._expand_env_vars(v) for k, v in config.items()}
        elif isinstance(config, list):
            return [self._expand_env_vars(item) for item in config]
        elif isinstance(config, str):
            # ${VAR:-default}形式の環境変数を展開
            pattern = r'\$\{([^:}]+)(?::-([^}]*))?\}'

            def replacer(match):
                var_name = match.group(1)
                default_value = match.group(2) or ''
                return os.environ.get(var_name, default_value)

            return re.sub(pattern, replacer, config)
        else:
            return config

    def _get_default_config(self) -> Dict[str, Any]:
        """デフォルト設定を返す"""
        return {
            'system': {
                'name': 'fibcursor',
                'environment': 'production'
            },
            'sequence': {
                'tracker': 'sparse',
                'cache_pad': 10,
                'probe_limit': 10,
                'initial_fill': 0,
                'cache': {
                    'backend': 'slice',
                    'capacity': 100000
                },
                'dense': {
                    'capacity': 100000,
                    'growth_factor': 2,
                    'block_on_grow': False
                }
            },
            'api': {
                'host': '0.0.0.0',
                'port': 80,
                'debug': True
            },
            'journal': {
                'path': 'fibapi_backup',
                'interval_seconds': 3,
                'max_failures': 3
            },
            'logging': {
                'level': 'INFO',
                'json': False,
                'file': {
                    'enabled': False,
                    'path': os.path.join(_fibcursor_home(), 'logs', 'fibcursor.log'),
                    'max_size': 10485760,
                    'backup_count': 5
                }
            }
        }

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        ドット記法でネストされた設定値を取得

        Args:
            key_path: 設定キーのパス（例: "sequence.cache.capacity"）
            default: キーが存在しない場合のデフォルト値

        Returns:
            設定値またはデフォルト値
        """
        keys = key_path.split('.')
        value = self._config

        try:
            for key in keys:
                value = value[key]
            return value
        except (KeyError, TypeError):
            return default

    def get_sequence_config(self) -> Dict[str, Any]:
        """トラッカー・キャッシュ設定を取得"""
        return self.get('sequence', {})

    def get_api_config(self) -> Dict[str, Any]:
        """APIサーバー設定を取得"""
        return self.get('api', {})

    def get_journal_config(self) -> Dict[str, Any]:
        """ジャーナル設定を取得"""
        return self.get('journal', {})

    def get_logging_config(self) -> Dict[str, Any]:
        """ロギング設定を取得"""
        return self.get('logging', {})

    def update_runtime(self, key_path: str, value: Any):
        """
        実行時に設定を一時的に更新（ファイルには保存しない）

        Args:
            key_path: 設定キーのパス
            value: 新しい値
        """
        keys = key_path.split('.')
        config = self._config

        # 最後のキー以外をたどる
        for key in keys[:-1]:
            if not isinstance(config.get(key), dict):
                config[key] = {}
            config = config[key]

        # 最後のキーに値を設定
        config[keys[-1]] = value
        logger.info(f"Updated runtime config: {key_path} = {value}")

    @property
    def config(self) -> Dict[str, Any]:
        """設定全体を取得（読み取り専用）"""
        return copy.deepcopy(self._config)


# グローバルインスタンス
_config_manager = None

def get_config(config_path: Optional[str] = None) -> ConfigManager:
    """設定マネージャーのグローバルインスタンスを取得"""
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager(config_path)
    return _config_manager


def reset_config():
    """グローバルインスタンスを破棄（テスト用）"""
    global _config_manager
    _config_manager = None


class JsonFormatter(Formatter):
    """
    Formats log records as JSON strings (JSONL format - one JSON object per line).
    """
    def format(self, record):
        log_record = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "name": record.name,
        }
        # If the log message is a dictionary, merge it
        if isinstance(record.msg, dict):
            log_record.update(record.msg)
        else:
            log_record["message"] = record.getMessage()

        if record.exc_info:
            log_record['exception'] = self.formatException(record.exc_info).replace('\n', '\\n')
        if record.stack_info:
            log_record['stack_info'] = self.formatStack(record.stack_info).replace('\n', '\\n')

        return json.dumps(log_record, default=str)


def setup_logging(config: Optional[ConfigManager] = None, debug: bool = False, json_format: Optional[bool] = None):
    """設定に基づいてロギングをセットアップ"""
    config = config or get_config()
    log_config = config.get_logging_config()

    # ログレベルの設定
    if debug:
        log_level = logging.DEBUG
    else:
        log_level = getattr(logging, str(log_config.get('level', 'INFO')).upper(), logging.INFO)

    if json_format is None:
        json_format = bool(log_config.get('json', False))

    # ログフォーマットの設定
    if json_format:
        formatter = JsonFormatter(datefmt='%Y-%m-%dT%H:%M:%S%z')
    else:
        formatter = Formatter(log_config.get('format', DEFAULT_FORMAT))

    # ファイルハンドラーの設定
    handlers = []
    file_config = log_config.get('file', {})
    if file_config.get('enabled', False):
        log_path = file_config.get('path', '/tmp/fibcursor.log')
        os.makedirs(os.path.dirname(log_path) or '.', exist_ok=True)

        from logging.handlers import RotatingFileHandler
        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=file_config.get('max_size', 10485760),
            backupCount=file_config.get('backup_count', 5)
        )
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    # コンソールハンドラー
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    handlers.append(console_handler)

    # ルートロガーの設定
    root = logging.getLogger()
    if root.hasHandlers():
        root.handlers.clear()
    root.setLevel(log_level)
    for handler in handlers:
        root.addHandler(handler)

    logging.getLogger('werkzeug').setLevel(logging.INFO if debug else logging.WARNING)
    logging.getLogger('urllib3').setLevel(logging.WARNING)

    logger.info("Logging configured successfully")
