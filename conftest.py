"""Shared fixtures: a scripted completion provider and a failing history store."""

from typing import Any, Dict, List

import pytest

from colloquy.common.errors import ProviderError, StoreError
from colloquy.services.agent.provider import CompletionProvider
from colloquy.services.history.store import InMemoryHistoryStore


class RecordingProvider(CompletionProvider):
    """Returns a fixed payload and remembers every call it received."""

    def __init__(self, payload: Any = None):
        self.payload = {"response": "Sure."} if payload is None else payload
        self.calls: List[Dict[str, Any]] = []
        self.closed = False

    async def run(self, model: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        self.calls.append({"model": model, **payload})
        return self.payload

    async def close(self):
        self.closed = True


class FailingProvider(CompletionProvider):
    async def run(self, model: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        raise ProviderError("backend down")


class BrokenWriteStore(InMemoryHistoryStore):
    """Reads work, writes fail."""

    async def append(self, session_id, role, content):
        raise StoreError("disk full")


class BrokenReadStore(InMemoryHistoryStore):
    async def list(self, session_id):
        raise StoreError("connection reset")


@pytest.fixture
def provider():
    return RecordingProvider()


@pytest.fixture
def make_provider():
    return RecordingProvider


@pytest.fixture
def failing_provider():
    return FailingProvider()


@pytest.fixture
def store():
    return InMemoryHistoryStore()


@pytest.fixture
def broken_write_store():
    return BrokenWriteStore()


@pytest.fixture
def broken_read_store():
    return BrokenReadStore()
