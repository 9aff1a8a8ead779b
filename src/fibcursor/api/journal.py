#!/usr/bin/env python3
"""
カーソル位置のジャーナル - クラッシュ後に現在位置を復元する

ファイル先頭の4バイトにリトルエンディアンの符号なし32bit整数として書き込む。
キャッシュの中身は保存しない。
"""

import os
import struct
import threading
import logging
from typing import Callable, Optional

from ..common.error_handler import JournalError

logger = logging.getLogger(__name__)

INDEX_FORMAT = '<I'
INDEX_SIZE = struct.calcsize(INDEX_FORMAT)


class IndexJournal:
    """現在のインデックスを定期的にファイルへ書き込む"""

    def __init__(self, path: str, interval_seconds: float = 3, max_failures: int = 3,
                 on_fatal: Optional[Callable[[], None]] = None):
        self.path = path
        self.interval_seconds = interval_seconds
        self.remaining_failures = max_failures
        self.on_fatal = on_fatal
        self.failed = False
        self._get_index: Optional[Callable[[], int]] = None
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._file_lock = threading.Lock()

        # 既存ファイルは読み書きで開き、無ければ作成
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        mode = 'r+b' if os.path.exists(path) else 'w+b'
        self._file = open(path, mode)
        logger.info(f"Journal opened: {path}")

    def read_index(self) -> Optional[int]:
        """保存されたインデックスを読む（読めなければNone）"""
        try:
            with self._file_lock:
                self._file.seek(0)
                data = self._file.read(INDEX_SIZE)
        except (OSError, ValueError) as e:
            logger.warning(f"Failed reading backup: {e}")
            return None
        if len(data) != INDEX_SIZE:
            logger.warning(f"Failed reading backup: expected {INDEX_SIZE} bytes, got {len(data)}")
            return None
        return struct.unpack(INDEX_FORMAT, data)[0]

    def write_index(self, idx: int):
        """インデックスをファイル先頭に書き込む"""
        try:
            data = struct.pack(INDEX_FORMAT, idx)
            with self._file_lock:
                self._file.seek(0)
                self._file.write(data)
                self._file.flush()
        except (OSError, ValueError, struct.error) as e:
            raise JournalError(f"Failed to write backup: {e}") from e

    def is_writable(self) -> bool:
        """ヘルスチェック用"""
        return not self.failed and not self._file.closed and os.access(self.path, os.W_OK)

    def record(self) -> bool:
        """現在のインデックスを1回書き込む（失敗回数を管理）"""
        if self._get_index is None:
            return False
        try:
            self.write_index(self._get_index())
            return True
        except JournalError as e:
            self.remaining_failures -= 1
            if self.remaining_failures <= 0:
                logger.critical(f"{e} (exiting)")
                self.failed = True
                self._stop_event.set()
                if self.on_fatal is not None:
                    self.on_fatal()
            else:
                logger.warning(f"{e} ({self.remaining_failures} fails remaining)")
            return False

    def _run(self):
        while not self._stop_event.wait(self.interval_seconds):
            self.record()

    def start(self, get_index: Callable[[], int]):
        """バックグラウンドでジャーナリングを開始"""
        self._get_index = get_index
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="index-journal", daemon=True)
        self._thread.start()
        logger.info(f"Journaling index to {self.path} every {self.interval_seconds}s")

    def stop(self):
        """ジャーナリングを停止"""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=max(1.0, float(self.interval_seconds)))
            self._thread = None

    def close(self):
        """停止して最後の位置を書き込み、ファイルを閉じる"""
        self.stop()
        if not self.failed and not self._file.closed:
            self.record()
        with self._file_lock:
            self._file.close()
