#!/usr/bin/env python3
"""
フィボナッチカーソルAPI - 現在位置の値を返し、前後に1つずつ移動する
"""

import os
import threading
import logging
from typing import Optional

import psutil
from flask import Flask, jsonify
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from .journal import IndexJournal
from ..common.error_handler import HealthMonitor

logger = logging.getLogger(__name__)

# カーソルは符号なし32bitの範囲で動く
MAX_INDEX = 2 ** 32 - 1

# トラッカーのヘルスチェックに使う既知の値
SANITY_INDEX = 100
SANITY_VALUE = 354224848179261915075


class CursorServer:
    """現在のインデックスを保持し、値の取得をトラッカーに委譲する"""

    def __init__(self, tracker, journal: Optional[IndexJournal] = None,
                 debug: bool = False, start_index: int = 0):
        if not 0 <= start_index <= MAX_INDEX:
            raise ValueError(f"start_index out of range: {start_index}")
        self.tracker = tracker
        self.journal = journal
        self.debug = debug
        self._current_index = start_index
        self._lock = threading.Lock()
        self._process = psutil.Process(os.getpid())

        self.health_monitor = HealthMonitor()
        self.health_monitor.register_check('tracker', self._check_tracker)
        if journal is not None:
            self.health_monitor.register_check('journal', journal.is_writable)

    @property
    def current_index(self) -> int:
        return self._current_index

    def _check_tracker(self) -> bool:
        """稼働中のトラッカーで既知の値を引く（統計には1回の参照として数えられる）"""
        return self.tracker.get(SANITY_INDEX) == SANITY_VALUE

    def advance(self) -> int:
        """1つ進める（上限で止まる）"""
        with self._lock:
            if self._current_index < MAX_INDEX:
                self._current_index += 1
            else:
                logger.warning({"event": "cursor_saturated", "index": self._current_index})
            return self._current_index

    def retreat(self) -> int:
        """1つ戻す（0で止まる）"""
        with self._lock:
            if self._current_index > 0:
                self._current_index -= 1
            return self._current_index

    def _respond(self, idx: int):
        return jsonify({'index': idx, 'value': str(self.tracker.get(idx))})

    def handle_get_current(self):
        return self._respond(self._current_index)

    def handle_set_next(self):
        return self._respond(self.advance())

    def handle_set_previous(self):
        return self._respond(self.retreat())

    def handle_get_cache_stats(self):
        return jsonify(self.tracker.cache_stats.as_dict())

    def handle_get_process_stats(self):
        """プロセスのメモリ・スレッド状況"""
        with self._process.oneshot():
            memory = self._process.memory_info()
            stats = {
                'pid': self._process.pid,
                'rss_bytes': memory.rss,
                'vms_bytes': memory.vms,
                'num_threads': self._process.num_threads(),
                'cpu_percent': self._process.cpu_percent(interval=None),
            }
        return jsonify(stats)

    def handle_health(self):
        results = self.health_monitor.run_checks()
        status_code = 200 if results['overall_health'] == 'healthy' else 503
        return jsonify(results), status_code

    def make_router(self) -> Flask:
        """Flaskアプリを作成してルートを登録"""
        app = Flask(__name__)
        CORS(app)

        app.add_url_rule('/current', 'current', self.handle_get_current, methods=['GET'])
        app.add_url_rule('/next', 'next', self.handle_set_next, methods=['GET'])
        app.add_url_rule('/previous', 'previous', self.handle_set_previous, methods=['GET'])

        if self.debug:
            app.add_url_rule('/debug/cache', 'debug_cache', self.handle_get_cache_stats, methods=['GET'])
            app.add_url_rule('/debug/process', 'debug_process', self.handle_get_process_stats, methods=['GET'])
            app.add_url_rule('/health', 'health', self.handle_health, methods=['GET'])

        @app.errorhandler(HTTPException)
        def handle_http_error(e):
            return jsonify({'success': False, 'error': e.description}), e.code

        @app.errorhandler(Exception)
        def handle_unexpected_error(e):
            logger.exception({"event": "request_failed", "error": str(e)})
            return jsonify({'success': False, 'error': 'Server error'}), 500

        return app
