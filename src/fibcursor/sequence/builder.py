#!/usr/bin/env python3
"""
設定からトラッカーを組み立てる
"""

import logging
from typing import Any, Dict, Union

from .cache import make_cache
from .dense import GrowableTracker, DEFAULT_GROWTH_FACTOR
from .tracker import FibTracker, DEFAULT_PROBE_LIMIT
from ..common.error_handler import ConfigError

logger = logging.getLogger(__name__)

Tracker = Union[FibTracker, GrowableTracker]


def _section(sequence_config: Dict[str, Any], name: str) -> Dict[str, Any]:
    """サブセクションを取得（空なら既定値）"""
    section = sequence_config.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"sequence.{name} must be a mapping, got {section!r}")
    return section


def build_tracker(sequence_config: Dict[str, Any]) -> Tracker:
    """
    sequence 設定セクションからトラッカーを生成

    Raises:
        ConfigError: 未知のトラッカー/バックエンド名
        CacheConfigError: 容量や間隔などの数値が不正
    """
    kind = sequence_config.get('tracker', 'sparse')
    initial_fill = sequence_config.get('initial_fill', 0) or 0

    if kind == 'sparse':
        cache_config = _section(sequence_config, 'cache')
        cache = make_cache(
            cache_config.get('backend', 'slice'),
            cache_config.get('capacity', 100000)
        )
        tracker = FibTracker(
            sequence_config.get('cache_pad', 10),
            cache,
            probe_limit=sequence_config.get('probe_limit', DEFAULT_PROBE_LIMIT)
        )
        if initial_fill:
            tracker.with_initialized_store(initial_fill)
        return tracker

    if kind == 'dense':
        dense_config = _section(sequence_config, 'dense')
        return GrowableTracker(
            dense_config.get('capacity', 100000),
            growth_factor=dense_config.get('growth_factor', DEFAULT_GROWTH_FACTOR),
            initial_fill=initial_fill,
            block_on_grow=bool(dense_config.get('block_on_grow', False))
        )

    raise ConfigError(f"Unknown tracker type: {kind} (available: dense, sparse)")
