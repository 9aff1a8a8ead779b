"""
フィボナッチ数列のキャッシュとトラッカー
"""

from .cache import FibPair, SequenceCache, SliceCache, LRUCache, make_cache
from .tracker import FibTracker, CacheStats, DEFAULT_PROBE_LIMIT
from .dense import GrowableTracker
from .builder import build_tracker

__all__ = [
    'FibPair', 'SequenceCache', 'SliceCache', 'LRUCache', 'make_cache',
    'FibTracker', 'CacheStats', 'DEFAULT_PROBE_LIMIT',
    'GrowableTracker', 'build_tracker',
]
