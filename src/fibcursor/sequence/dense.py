#!/usr/bin/env python3
"""
GrowableTracker - 先頭からの連続したフィボナッチ値を保持する密なストア

インデックスが小さく連続したアクセスが多い場合に FibTracker の代わりに使う。
ストアは固定長で事前確保し、last_index を超える要求があったときに
バックグラウンドスレッドでまとめて（幾何級数的に）拡張する。

状態遷移: Idle -> Growing -> Idle
  - 拡張スレッドは同時に1つだけ（_lock で判定）
  - 拡張中に到着した要求は、既定では最後に公開された値からその場で再計算する
  - block_on_grow=True の場合は拡張完了を待ってからストアを読む
"""

import threading
import logging
from typing import Optional

from .tracker import CacheStats
from ..common.error_handler import CacheConfigError

logger = logging.getLogger(__name__)

DEFAULT_GROWTH_FACTOR = 2


class GrowableTracker:
    """拡張可能な密ストアを持つトラッカー"""

    def __init__(self, capacity: int, growth_factor: float = DEFAULT_GROWTH_FACTOR,
                 initial_fill: int = 0, block_on_grow: bool = False):
        """
        Args:
            capacity: ストアのスロット数（保持できる最大インデックスは capacity - 1）
            growth_factor: 拡張目標 = 要求インデックス * growth_factor
            initial_fill: 構築時に同期的に計算しておく値の数
            block_on_grow: 拡張中の要求を待たせるか（False ならその場で再計算）
        """
        if isinstance(capacity, bool) or not isinstance(capacity, int) or capacity < 2:
            raise CacheConfigError(f"dense store capacity must be an integer >= 2, got {capacity!r}")
        if isinstance(growth_factor, bool) or not isinstance(growth_factor, (int, float)) or growth_factor < 1:
            raise CacheConfigError(f"growth_factor must be >= 1, got {growth_factor!r}")

        self._capacity = capacity
        self._growth_factor = growth_factor
        self._block_on_grow = block_on_grow

        self._store = [0] * capacity
        self._store[1] = 1

        # _last_index と _updating は _lock で保護する
        self._lock = threading.Lock()
        self._grown = threading.Condition(self._lock)
        self._last_index = 1
        self._target = 1
        self._updating = False
        self._grow_thread: Optional[threading.Thread] = None

        self.cache_stats = CacheStats()

        if initial_fill > 2:
            fill_to = min(initial_fill, capacity) - 1
            self._fill(self._last_index, fill_to)
            self._last_index = fill_to
            self._target = fill_to

        logger.info(
            f"GrowableTracker created: capacity={capacity}, growth_factor={growth_factor}, "
            f"last_index={self._last_index}, block_on_grow={block_on_grow}"
        )

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def last_index(self) -> int:
        return self._last_index

    @property
    def updating(self) -> bool:
        return self._updating

    def _fill(self, start: int, target: int):
        """store[start+1..target] を計算（未公開の領域のみ書き込む）"""
        store = self._store
        a, b = store[start - 1], store[start]
        for i in range(start + 1, target + 1):
            a, b = b, a + b
            store[i] = b

    def _grow(self, start: int, target: int):
        logger.debug(f"Growing dense store from {start} to {target}")
        grown = False
        try:
            self._fill(start, target)
            grown = True
        finally:
            with self._grown:
                if grown:
                    self._last_index = target
                self._updating = False
                self._grown.notify_all()
        logger.info(f"Dense store grown to last_index={target}")

    def _maybe_start_grow(self, idx: int) -> bool:
        """拡張が必要かつ他に拡張中でなければ拡張スレッドを起動"""
        with self._lock:
            if self._updating or self._last_index >= self._capacity - 1:
                return False
            target = min(max(self._target, int(idx * self._growth_factor)), self._capacity - 1)
            if target <= self._last_index:
                return False
            self._target = target
            self._updating = True
            thread = threading.Thread(
                target=self._grow,
                args=(self._last_index, target),
                name=f"dense-grow-{target}",
                daemon=True
            )
            self._grow_thread = thread
        try:
            thread.start()
        except RuntimeError as e:
            # 起動に失敗したら Idle に戻し、待機中の呼び出しを起こす
            logger.error(f"Failed to start dense store grow to {target}: {e}")
            with self._grown:
                self._updating = False
                self._target = self._last_index
                self._grow_thread = None
                self._grown.notify_all()
            return False
        return True

    def _wait_for_index(self, idx: int) -> int:
        with self._grown:
            while self._updating and idx > self._last_index:
                self._grown.wait()
            return self._last_index

    def wait_for_growth(self, timeout: Optional[float] = None) -> bool:
        """実行中の拡張が終わるまで待つ（終わっていれば True）"""
        thread = self._grow_thread
        if thread is not None:
            thread.join(timeout)
        return not self._updating

    def _calc_from_last(self, last: int, idx: int) -> int:
        a, b = self._store[last - 1], self._store[last]
        for _ in range(idx - last):
            a, b = b, a + b
        return b

    def get(self, idx: int) -> int:
        """フィボナッチ数列の idx 番目の値を取得"""
        if idx < 0:
            raise ValueError(f"index must be non-negative, got {idx}")

        # 公開済みの領域はロックなしで読める
        last = self._last_index
        if idx <= last:
            self.cache_stats.count_hit()
            return self._store[idx]

        self._maybe_start_grow(idx)

        if self._block_on_grow:
            last = self._wait_for_index(idx)
            if idx <= last:
                self.cache_stats.count_hit()
                return self._store[idx]
            # 完了した拡張の目標より先: 次の拡張を予約してから再計算
            self._maybe_start_grow(idx)

        # 拡張中または容量超過: 最後に公開された値から計算
        self.cache_stats.count_close()
        return self._calc_from_last(last, idx)
