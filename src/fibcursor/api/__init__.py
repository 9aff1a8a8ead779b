"""
HTTP API（カーソルサーバー、ジャーナル、クライアント）
"""

from .server import CursorServer, MAX_INDEX
from .journal import IndexJournal
from .client import CursorClient

__all__ = ['CursorServer', 'MAX_INDEX', 'IndexJournal', 'CursorClient']
