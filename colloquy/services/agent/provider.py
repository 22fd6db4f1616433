#!/usr/bin/env python3
"""
Colloquy - Completion Provider
Async access to the text-generation backend.

The orchestrator only depends on ``CompletionProvider.run``. ``WorkersAIClient``
is the production implementation, talking to the Cloudflare Workers AI REST
API over aiohttp.

Response payloads come in two shapes:
- ``{"response": "..."}`` (binding style)
- ``{"result": {"response": "..."}}`` (REST envelope)
``CompletionResult.from_payload`` decodes them in that precedence order.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import aiohttp

from colloquy.common.errors import ProviderError
from colloquy.common.logging import setup_logging

logger = setup_logging("provider")

NO_RESPONSE = "No response generated"


class CompletionProvider(ABC):
    """Anything that turns a role-tagged message list into generated text."""

    @abstractmethod
    async def run(self, model: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Run a non-streaming completion.

        Args:
            model: Model identifier
            payload: ``{"messages": [...], "stream": False, "max_tokens": int, "temperature": float}``

        Returns:
            Raw response mapping with ``response`` and/or ``result.response``.

        Raises:
            ProviderError: the backend failed or was unreachable
        """

    async def close(self):
        """Release any held connections."""


@dataclass(frozen=True)
class CompletionResult:
    """Decoded completion payload.

    ``source`` records which branch produced ``content``:
    ``"response"``, ``"result"`` or ``"fallback"``.
    """
    content: str
    source: str

    @classmethod
    def from_payload(cls, payload: Any) -> "CompletionResult":
        if not isinstance(payload, dict):
            payload = {}

        direct = payload.get("response")
        if isinstance(direct, str) and direct:
            return cls(content=direct, source="response")

        envelope = payload.get("result")
        if isinstance(envelope, dict):
            nested = envelope.get("response")
            if isinstance(nested, str) and nested:
                return cls(content=nested, source="result")

        return cls(content=NO_RESPONSE, source="fallback")


def build_payload(messages: List[Dict[str, str]], max_tokens: int, temperature: float) -> Dict[str, Any]:
    """Request body shared by every completion call. Streaming is always off."""
    return {
        "messages": messages,
        "stream": False,
        "max_tokens": max_tokens,
        "temperature": temperature,
    }


class WorkersAIClient(CompletionProvider):
    """Async client for the Cloudflare Workers AI REST API"""

    def __init__(
        self,
        account_id: str,
        api_token: str,
        base_url: str = "https://api.cloudflare.com/client/v4",
        timeout: float = 120.0,
    ):
        self.account_id = account_id
        self.api_token = api_token
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self._session: Optional[aiohttp.ClientSession] = None
        self._session_lock = asyncio.Lock()

    async def _get_session(self) -> aiohttp.ClientSession:
        async with self._session_lock:
            if self._session is None or self._session.closed:
                self._session = aiohttp.ClientSession(
                    timeout=aiohttp.ClientTimeout(total=self.timeout),
                    headers={"Authorization": f"Bearer {self.api_token}"},
                )
            return self._session

    def _url(self, model: str) -> str:
        return f"{self.base_url}/accounts/{self.account_id}/ai/run/{model}"

    async def run(self, model: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Run a completion against Workers AI"""
        session = await self._get_session()

        try:
            async with session.post(self._url(model), json=payload) as response:
                if response.status != 200:
                    text = await response.text()
                    logger.error(f"Workers AI error {response.status}: {text}")
                    raise ProviderError(f"Workers AI returned HTTP {response.status}")

                return await response.json()

        except asyncio.TimeoutError as e:
            logger.warning(f"Workers AI request timed out after {self.timeout}s")
            raise ProviderError(f"Workers AI request timed out after {self.timeout}s") from e
        except aiohttp.ClientError as e:
            logger.error(f"Workers AI request failed: {e}")
            raise ProviderError(f"Workers AI request failed: {e}") from e

    async def close(self):
        if self._session and not self._session.closed:
            await self._session.close()
