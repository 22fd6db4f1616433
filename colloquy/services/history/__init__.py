"""
Colloquy - History Service

Append-only per-session turn log with in-memory and Redis backends.
"""
from .store import HistoryStore, InMemoryHistoryStore, RedisHistoryStore, create_history_store

__all__ = ["HistoryStore", "InMemoryHistoryStore", "RedisHistoryStore", "create_history_store"]
