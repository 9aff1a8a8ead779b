#!/usr/bin/env python3
"""
FibTracker - ペアキャッシュを使ったフィボナッチ数の取得

cache_pad の倍数のインデックスだけをキャッシュし、要求されたインデックスに
最も近いキャッシュ済みアンカーから前方に再計算する。
"""

import threading
import logging
from typing import Dict, Optional

from .cache import FibPair, ORIGIN_PAIR, SequenceCache
from ..common.error_handler import CacheBackendError, CacheConfigError

logger = logging.getLogger(__name__)

# 近傍アンカー探索で試すキャッシュの数
DEFAULT_PROBE_LIMIT = 10


def _check_positive(name: str, value) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise CacheConfigError(f"{name} must be a positive integer, got {value!r}")
    return value


class CacheStats:
    """キャッシュのヒット/ミス回数（スレッドセーフ）"""

    def __init__(self):
        self._lock = threading.Lock()
        self._direct = 0
        self._close = 0
        self._miss = 0

    def count_hit(self):
        with self._lock:
            self._direct += 1

    def count_close(self):
        with self._lock:
            self._close += 1

    def count_miss(self):
        with self._lock:
            self._miss += 1

    @property
    def n_direct_hit(self) -> int:
        return self._direct

    @property
    def n_close_hit(self) -> int:
        return self._close

    @property
    def n_miss(self) -> int:
        return self._miss

    @property
    def total(self) -> int:
        with self._lock:
            return self._direct + self._close + self._miss

    def as_dict(self) -> Dict[str, int]:
        with self._lock:
            return {'direct': self._direct, 'close': self._close, 'miss': self._miss}


class FibTracker:
    """フィボナッチ数列のスパースキャッシュ"""

    def __init__(self, cache_pad: int, cache: SequenceCache, probe_limit: int = DEFAULT_PROBE_LIMIT):
        """
        Args:
            cache_pad: キャッシュ間隔（cache_pad の倍数のインデックスのみ保存）
            cache: ペアを保存するキャッシュバックエンド
            probe_limit: 近傍アンカー探索で遡るキャッシュエントリ数
        """
        if cache is None:
            raise CacheConfigError("FibTracker requires a cache backend")
        self.cache_pad = _check_positive('cache_pad', cache_pad)
        self.probe_limit = _check_positive('probe_limit', probe_limit)
        self.cache = cache
        self.cache_stats = CacheStats()

        # インデックス0は常にアンカーとして使える
        self._cache_set(0, ORIGIN_PAIR)
        logger.info(
            f"FibTracker created: cache_pad={self.cache_pad}, probe_limit={self.probe_limit}, "
            f"backend={type(cache).__name__}"
        )

    def with_initialized_store(self, n_init: int) -> "FibTracker":
        """最初の n_init 個（最低2個）を計算してキャッシュに載せる"""
        n_init = max(2, n_init)
        self.get(n_init)
        return self

    def _cache_get(self, idx: int) -> Optional[FibPair]:
        try:
            return self.cache.get(idx)
        except CacheBackendError as e:
            logger.warning(f"Cache read failed for index {idx}: {e}")
            return None

    def _cache_set(self, idx: int, pair: FibPair):
        try:
            if not self.cache.set(idx, pair):
                logger.warning(f"Cache rejected write for index {idx}")
        except CacheBackendError as e:
            logger.warning(f"Cache write failed for index {idx}: {e}")

    def round_down_to_pad(self, idx: int) -> int:
        """idx を cache_pad の倍数に切り下げる（0未満にはならない）"""
        rounded = idx - (idx % self.cache_pad)
        if rounded < 0 or rounded > idx:
            return 0
        return rounded

    def calc_from_zero(self, idx: int) -> int:
        """0と1から計算"""
        self._cache_set(0, ORIGIN_PAIR)
        return self.calc_from_pair(0, ORIGIN_PAIR, idx)

    def calc_from_pair(self, pair_idx: int, pair: FibPair, idx: int) -> int:
        """pair_idx のペアから idx まで前方に計算し、途中の cache_pad の倍数をキャッシュする"""
        if pair_idx == idx:
            return pair.i
        elif pair_idx - 1 == idx:
            return pair.j
        elif idx < pair_idx:
            raise ValueError(f"cannot calculate index {idx} backwards from pair at {pair_idx}")

        # n1 = F(i), n2 = F(i-1)
        n1, n2 = pair.i, pair.j
        for i in range(pair_idx + 1, idx + 1):
            n1, n2 = n1 + n2, n1
            if i % self.cache_pad == 0:
                self._cache_set(i, FibPair(n1, n2))
        return n1

    def get(self, idx: int) -> int:
        """フィボナッチ数列の idx 番目の値を取得"""
        if idx < 0:
            raise ValueError(f"index must be non-negative, got {idx}")

        # キャッシュ済みペア（idx または idx+1）を探す
        if idx % self.cache_pad == 0:
            pair = self._cache_get(idx)
            if pair is not None:
                self.cache_stats.count_hit()
                return pair.i
        elif (idx + 1) % self.cache_pad == 0:
            pair = self._cache_get(idx + 1)
            if pair is not None:
                self.cache_stats.count_hit()
                return pair.j

        # 近いアンカーを探してそこから計算
        close_idx = self.round_down_to_pad(idx)
        for _ in range(self.probe_limit):
            if close_idx < 0:
                break
            pair = self._cache_get(close_idx)
            if pair is not None:
                self.cache_stats.count_close()
                return self.calc_from_pair(close_idx, pair, idx)
            close_idx -= self.cache_pad

        # キャッシュが使えない場合は0から計算
        self.cache_stats.count_miss()
        logger.debug(f"Cache miss for index {idx}, calculating from zero")
        return self.calc_from_zero(idx)
