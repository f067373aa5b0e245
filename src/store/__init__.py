"""
Relational store adapters (Supabase in production, SQLite locally).
"""

from .errors import StoreError
from .base import RelationalStore
from .sqlite_store import SQLiteStore
from .supabase_store import SupabaseStore

__all__ = [
    "StoreError",
    "RelationalStore",
    "SQLiteStore",
    "SupabaseStore",
]
