#!/usr/bin/env python3
"""
Colloquy - Conversation History Store
Append-only turn log keyed by session.

Backends:
- InMemoryHistoryStore: process-local dict of lists (default, tests)
- RedisHistoryStore: one Redis list per session, JSON entries

Turns are returned in insertion order, which is chronological order.
"""

import json
from abc import ABC, abstractmethod
from collections import defaultdict
from datetime import datetime, timezone
from typing import Dict, List, Optional

import redis.asyncio as redis

from colloquy.common.errors import StoreError
from colloquy.common.logging import setup_logging
from colloquy.config.models import ColloquyConfig, RedisConfig
from colloquy.services.agent.models import Role, Turn

logger = setup_logging("history")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class HistoryStore(ABC):
    """Append-only log of turns per session."""

    @abstractmethod
    async def append(self, session_id: str, role: Role, content: str) -> Turn:
        """Record a turn and return it with its timestamp."""

    @abstractmethod
    async def list(self, session_id: str) -> List[Turn]:
        """All turns for a session, oldest first."""

    @abstractmethod
    async def delete_all(self, session_id: str) -> None:
        """Remove every turn of a session."""

    async def connect(self):
        pass

    async def disconnect(self):
        pass


class InMemoryHistoryStore(HistoryStore):
    """History kept in process memory. Lost on restart."""

    def __init__(self):
        self._sessions: Dict[str, List[Turn]] = defaultdict(list)

    async def append(self, session_id: str, role: Role, content: str) -> Turn:
        turn = Turn(role=role, content=content, timestamp=_now_iso())
        self._sessions[session_id].append(turn)
        return turn

    async def list(self, session_id: str) -> List[Turn]:
        return list(self._sessions.get(session_id, ()))

    async def delete_all(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)


class RedisHistoryStore(HistoryStore):
    """
    History stored in Redis.

    Layout: ``{key_prefix}:{session_id}`` is a list of JSON objects
    ``{"role", "content", "timestamp"}`` appended with RPUSH.
    """

    def __init__(self, config: Optional[RedisConfig] = None, client: Optional[redis.Redis] = None):
        self.config = config or RedisConfig()
        self.redis_client: Optional[redis.Redis] = client

    def _key(self, session_id: str) -> str:
        return f"{self.config.key_prefix}:{session_id}"

    async def connect(self):
        """Connect to Redis."""
        if self.redis_client is None:
            self.redis_client = redis.Redis(
                host=self.config.host,
                port=self.config.port,
                db=self.config.db,
                decode_responses=True,
            )
        try:
            await self.redis_client.ping()
            logger.info(f"Connected to Redis at {self.config.host}:{self.config.port}")
        except redis.RedisError as e:
            logger.error(f"Failed to connect to Redis: {e}")
            raise StoreError(f"Redis unavailable: {e}") from e

    async def disconnect(self):
        """Close Redis connection."""
        if self.redis_client:
            await self.redis_client.aclose()
            logger.info("Redis disconnected")

    def _client(self) -> redis.Redis:
        if self.redis_client is None:
            raise StoreError("RedisHistoryStore is not connected")
        return self.redis_client

    async def append(self, session_id: str, role: Role, content: str) -> Turn:
        turn = Turn(role=role, content=content, timestamp=_now_iso())
        try:
            await self._client().rpush(self._key(session_id), json.dumps(turn.to_dict()))
        except redis.RedisError as e:
            raise StoreError(f"Failed to append turn: {e}") from e
        return turn

    async def list(self, session_id: str) -> List[Turn]:
        try:
            raw_turns = await self._client().lrange(self._key(session_id), 0, -1)
        except redis.RedisError as e:
            raise StoreError(f"Failed to read history: {e}") from e

        turns = []
        for raw in raw_turns:
            try:
                data = json.loads(raw)
                if not isinstance(data, dict):
                    raise ValueError(f"expected an object, got {type(data).__name__}")
                turns.append(Turn.from_dict(data))
            except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed turn in {self._key(session_id)}: {e}")
        return turns

    async def delete_all(self, session_id: str) -> None:
        try:
            await self._client().delete(self._key(session_id))
        except redis.RedisError as e:
            raise StoreError(f"Failed to delete history: {e}") from e


def create_history_store(config: ColloquyConfig) -> HistoryStore:
    """Pick the configured history backend."""
    backend = config.history.backend.lower()
    if backend == "redis":
        return RedisHistoryStore(config.redis)
    if backend == "memory":
        return InMemoryHistoryStore()
    raise ValueError(f"Unknown history backend: {config.history.backend!r}")
