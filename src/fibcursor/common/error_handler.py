#!/usr/bin/env python3
"""
エラーハンドリングとヘルスチェックモジュール
"""

import logging
import time
from typing import Callable, Any, Dict
from functools import wraps
from datetime import datetime

logger = logging.getLogger(__name__)


# 共通エラークラス
class FibCursorError(Exception):
    """fibcursor共通の基底エラー"""
    pass

class ConfigError(FibCursorError):
    """設定エラー（起動時に致命的）"""
    pass

class CacheConfigError(FibCursorError, ValueError):
    """キャッシュ・トラッカーの構築パラメータが不正"""
    pass

class CacheBackendError(FibCursorError):
    """キャッシュバックエンドの読み書き失敗"""
    pass

class JournalError(FibCursorError):
    """インデックスジャーナルの書き込み失敗"""
    pass


def retry_on_failure(max_retries: int = 3,
                     delay: float = 1.0,
                     backoff: float = 2.0,
                     exceptions: tuple = (Exception,)):
    """
    失敗時にリトライするデコレーター

    Args:
        max_retries: 最大リトライ回数
        delay: 初回リトライまでの遅延（秒）
        backoff: リトライごとの遅延倍率
        exceptions: リトライ対象の例外タプル
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs):
            retry_count = 0
            current_delay = delay

            while True:
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    retry_count += 1

                    if retry_count > max_retries:
                        logger.error(f"{func.__name__} failed after {max_retries} retries")
                        raise

                    logger.warning(
                        f"{func.__name__} failed (attempt {retry_count}/{max_retries}): {e}"
                        f" Retrying in {current_delay:.1f}s..."
                    )

                    time.sleep(current_delay)
                    current_delay *= backoff
        return wrapper
    return decorator


class HealthMonitor:
    """システムヘルスモニタリング"""

    def __init__(self):
        self.health_checks = {}
        self.check_results = {}

    def register_check(self, name: str, check_func: Callable[[], bool]):
        """ヘルスチェック関数を登録"""
        self.health_checks[name] = check_func

    def run_checks(self) -> Dict[str, Any]:
        """全ヘルスチェックを実行"""
        results = {
            'timestamp': datetime.now().isoformat(),
            'overall_health': 'healthy',
            'checks': {}
        }

        for name, check_func in self.health_checks.items():
            try:
                is_healthy = check_func()
                results['checks'][name] = {
                    'status': 'healthy' if is_healthy else 'unhealthy',
                    'checked_at': datetime.now().isoformat()
                }

                if not is_healthy and results['overall_health'] == 'healthy':
                    results['overall_health'] = 'degraded'

            except Exception as e:
                logger.warning(f"Health check {name} raised: {e}")
                results['checks'][name] = {
                    'status': 'error',
                    'error': str(e),
                    'checked_at': datetime.now().isoformat()
                }
                results['overall_health'] = 'unhealthy'

        self.check_results = results
        return results

    def get_status(self) -> Dict[str, Any]:
        """最新のヘルスステータスを取得"""
        return self.check_results
