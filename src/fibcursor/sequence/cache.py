#!/usr/bin/env python3
"""
フィボナッチペアキャッシュ - FibTracker用のキャッシュバックエンド

インデックス i に対して (F(i), F(i-1)) のペアを保持する。
1つのペアで i と i-1 の2つの問い合わせに答えられる。
バックエンドは SequenceCache インターフェースを実装していれば差し替え可能。
"""

from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import NamedTuple, Optional, List, Tuple
import threading
import logging

from ..common.error_handler import CacheConfigError, ConfigError

logger = logging.getLogger(__name__)


class FibPair(NamedTuple):
    """インデックス i と i-1 のフィボナッチ値"""
    i: int  # i番目の値
    j: int  # i-1番目の値


# F(-1) = 1 として起点を表す
ORIGIN_PAIR = FibPair(0, 1)


def _check_capacity(capacity) -> int:
    if isinstance(capacity, bool) or not isinstance(capacity, int):
        raise CacheConfigError(f"cache capacity must be an integer, got {capacity!r}")
    if capacity <= 0:
        raise CacheConfigError(f"cache capacity must be positive, got {capacity}")
    return capacity


class SequenceCache(ABC):
    """FibTrackerが使用するキャッシュの抽象インターフェース"""

    @abstractmethod
    def get(self, idx: int) -> Optional[FibPair]:
        """idxのペアを取得（存在しなければNone）"""
        pass

    @abstractmethod
    def set(self, idx: int, pair: FibPair) -> bool:
        """idxにペアを保存（成功時True）"""
        pass

    @property
    @abstractmethod
    def capacity(self) -> int:
        """保持できるペアの最大数"""
        pass


class SliceCache(SequenceCache):
    """
    固定長リングストア

    スロットは idx % capacity。set は無条件に上書きし（後勝ち）、
    get はスロットに記録されたインデックスが一致する場合のみヒットとする。
    """

    def __init__(self, capacity: int):
        self._capacity = _check_capacity(capacity)
        # (idx, pair) のスロット。空スロットは (0, (0, 0)) で初期化
        self._slots: List[Tuple[int, FibPair]] = [(0, FibPair(0, 0))] * self._capacity
        self._slots[0] = (0, ORIGIN_PAIR)
        self._lock = threading.Lock()
        logger.debug(f"SliceCache created with {self._capacity} slots")

    @property
    def capacity(self) -> int:
        return self._capacity

    def get(self, idx: int) -> Optional[FibPair]:
        with self._lock:
            stored_idx, pair = self._slots[idx % self._capacity]
        if stored_idx == idx:
            return pair
        return None

    def set(self, idx: int, pair: FibPair) -> bool:
        entry = (idx, FibPair(*pair))
        with self._lock:
            self._slots[idx % self._capacity] = entry
        return True

    def entries(self) -> List[Tuple[int, int, FibPair]]:
        """(スロット, インデックス, ペア) の一覧（デバッグ用）"""
        with self._lock:
            return [(slot, stored_idx, pair) for slot, (stored_idx, pair) in enumerate(self._slots)]


class LRUCache(SequenceCache):
    """容量制限付きLRUストア"""

    def __init__(self, capacity: int):
        self._capacity = _check_capacity(capacity)
        self._entries: "OrderedDict[int, FibPair]" = OrderedDict()
        self._lock = threading.Lock()
        self.evictions = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(self, idx: int) -> Optional[FibPair]:
        with self._lock:
            pair = self._entries.get(idx)
            if pair is not None:
                self._entries.move_to_end(idx)
            return pair

    def set(self, idx: int, pair: FibPair) -> bool:
        with self._lock:
            if idx in self._entries:
                self._entries.move_to_end(idx)
            elif len(self._entries) >= self._capacity:
                evicted, _ = self._entries.popitem(last=False)
                self.evictions += 1
                logger.debug(f"LRUCache evicted index {evicted}")
            self._entries[idx] = FibPair(*pair)
        return True


CACHE_BACKENDS = {
    'slice': SliceCache,
    'lru': LRUCache,
}


def make_cache(backend: str, capacity: int) -> SequenceCache:
    """名前からキャッシュバックエンドを生成"""
    try:
        cache_cls = CACHE_BACKENDS[backend]
    except KeyError:
        raise ConfigError(
            f"Unknown cache backend: {backend} (available: {', '.join(sorted(CACHE_BACKENDS))})"
        )
    return cache_cls(capacity)
