#!/usr/bin/env python3
"""カーソルAPI クライアント"""

import logging
from typing import Dict, Any

import requests

from ..common.error_handler import retry_on_failure

logger = logging.getLogger(__name__)


class CursorClient:
    """fibcursor サーバーのHTTPクライアント"""

    def __init__(self, base_url: str = 'http://localhost:80', timeout: float = 10):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = requests.Session()

    @retry_on_failure(max_retries=2, delay=0.2, exceptions=(requests.ConnectionError, requests.Timeout))
    def _get(self, path: str) -> Dict[str, Any]:
        response = self.session.get(f"{self.base_url}{path}", timeout=self.timeout)
        response.raise_for_status()
        return response.json()

    def current(self) -> Dict[str, Any]:
        """現在位置の値"""
        return self._get('/current')

    def next(self) -> Dict[str, Any]:
        """1つ進めて値を取得"""
        return self._get('/next')

    def previous(self) -> Dict[str, Any]:
        """1つ戻して値を取得"""
        return self._get('/previous')

    def cache_stats(self) -> Dict[str, int]:
        """キャッシュのヒット/ミス回数（debugルートが有効な場合のみ）"""
        return self._get('/debug/cache')

    def close(self):
        self.session.close()
