"""fibcursor - Fibonacci cursor API backed by a sparse pair cache."""

from .sequence import (
    FibPair,
    SequenceCache,
    SliceCache,
    LRUCache,
    FibTracker,
    GrowableTracker,
    CacheStats,
    build_tracker,
)

__version__ = '0.3.0'

__all__ = [
    "FibPair",
    "SequenceCache",
    "SliceCache",
    "LRUCache",
    "FibTracker",
    "GrowableTracker",
    "CacheStats",
    "build_tracker",
]
