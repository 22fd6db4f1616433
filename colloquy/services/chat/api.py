#!/usr/bin/env python3
"""
Colloquy - Chat HTTP API
FastAPI boundary around the conversation orchestrator and history store.

Endpoints:
- POST /api/chat: Generate an assistant reply and persist the exchange
- GET /api/history: List a session's turns
- DELETE /api/history: Delete a session's turns
- POST /api/summary: Summarize a session
- GET /health: Health check
- GET /: Chat page

Every JSON error body has the shape {"success": false, "error": "..."}.
"""

import time
from datetime import datetime, timezone
from typing import List, Literal, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import HTMLResponse, JSONResponse
from pydantic import BaseModel, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

from colloquy.common.errors import ColloquyError, StoreError, ValidationError
from colloquy.common.service_base import ColloquyService
from colloquy.config.models import ColloquyConfig
from colloquy.services.agent import (
    CompletionProvider,
    ConversationContext,
    ConversationOrchestrator,
    Role,
    Turn,
    WorkersAIClient,
    create_agent,
)
from colloquy.services.history import HistoryStore, create_history_store


# Request/Response Models
class ChatMessage(BaseModel):
    """A single turn as exchanged with clients."""
    role: Literal["user", "assistant"]
    content: str
    timestamp: Optional[str] = None


class ChatRequest(BaseModel):
    """Request model for a chat exchange."""
    message: Optional[str] = Field(None, description="User's message")
    sessionId: Optional[str] = Field(None, description="Opaque session key")
    conversationHistory: Optional[List[ChatMessage]] = Field(
        None, description="Prior turns; read from the history store when omitted"
    )


class SummaryRequest(BaseModel):
    """Request model for summarizing a session."""
    sessionId: Optional[str] = Field(None, description="Opaque session key")


INDEX_HTML = """<!DOCTYPE html>
<html lang="en">
<head><meta charset="utf-8"><title>Colloquy</title></head>
<body>
<h1>Colloquy</h1>
<p>POST /api/chat with {"message": "...", "sessionId": "..."} to start talking.</p>
</body>
</html>
"""


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({"success": False, "error": message}, status_code=status_code)


def _status_for(error: ColloquyError) -> int:
    return 400 if isinstance(error, ValidationError) else 500


class ChatService(ColloquyService):
    """Chat service with FastAPI HTTP interface."""

    def __init__(
        self,
        config: Optional[ColloquyConfig] = None,
        provider: Optional[CompletionProvider] = None,
        store: Optional[HistoryStore] = None,
    ):
        super().__init__(name="chat", config=config)
        self.http_port = self.config.web_chat.port
        self.provider = provider
        self.store = store

        app = self.get_app()
        self._register_error_handlers(app)
        self._register_routes(app)

    async def setup(self):
        """Create the completion client and connect the history store."""
        if self.provider is None:
            cfg = self.config.provider
            self.provider = WorkersAIClient(
                account_id=cfg.account_id,
                api_token=cfg.api_token,
                base_url=cfg.base_url,
                timeout=cfg.timeout,
            )
        if self.store is None:
            self.store = create_history_store(self.config)
        await self.store.connect()
        self.logger.info(
            f"Chat service ready (model={self.config.agent.model}, "
            f"history={type(self.store).__name__})"
        )

    async def teardown(self):
        """Close provider session and history store."""
        if self.provider:
            await self.provider.close()
        if self.store:
            await self.store.disconnect()

    def agent_for(self, context: ConversationContext) -> ConversationOrchestrator:
        """Orchestrator for one request, with a contextual prompt when enabled."""
        agent = create_agent(self.provider, self.config.agent)
        if self.config.web_chat.contextual_prompts:
            agent = agent.with_system_prompt(agent.generate_contextual_prompt(context))
        return agent

    async def _save_turn(self, session_id: str, role: Role, content: str):
        """Persist a turn. Write failures are logged and dropped unless configured otherwise."""
        try:
            await self.store.append(session_id, role, content)
        except StoreError as e:
            if not self.config.history.swallow_write_errors:
                raise
            self.logger.error(
                f"Failed to save {role.value} turn: {e}",
                extra={"session_id": session_id},
            )

    def _register_error_handlers(self, app: FastAPI):

        @app.exception_handler(RequestValidationError)
        async def invalid_body(request: Request, exc: RequestValidationError):
            self.logger.warning(f"Invalid request to {request.url.path}: {exc.errors()}")
            return _error(400, "Invalid request body")

        @app.exception_handler(StarletteHTTPException)
        async def http_error(request: Request, exc: StarletteHTTPException):
            return JSONResponse({"error": exc.detail}, status_code=exc.status_code)

    def _register_routes(self, app: FastAPI):
        """Register all FastAPI routes."""

        @app.get("/", response_class=HTMLResponse)
        @app.get("/index.html", response_class=HTMLResponse)
        async def index():
            return HTMLResponse(INDEX_HTML)

        @app.post("/api/chat")
        async def chat(request: ChatRequest):
            """
            Generate a reply and persist the exchange.

            Prior turns come from ``conversationHistory`` when supplied,
            otherwise from the history store. Both turns are saved only after
            the completion succeeds.
            """
            if not request.message or not request.sessionId:
                return _error(400, "Missing required fields")

            started = time.monotonic()
            try:
                if request.conversationHistory is not None:
                    history = [
                        Turn(role=m.role, content=m.content, timestamp=m.timestamp)
                        for m in request.conversationHistory
                    ]
                else:
                    history = await self.store.list(request.sessionId)

                context = ConversationContext.build(
                    session_id=request.sessionId,
                    user_message=request.message,
                    history=history,
                )
                agent_response = await self.agent_for(context).process_message(context)

                await self._save_turn(request.sessionId, Role.USER, request.message)
                await self._save_turn(request.sessionId, Role.ASSISTANT, agent_response.content)

            except ColloquyError as e:
                self.logger.error(f"Chat error: {e}", extra={"session_id": request.sessionId})
                return _error(_status_for(e), str(e))
            except Exception:
                self.logger.exception("Chat error", extra={"session_id": request.sessionId})
                return _error(500, "Internal Server Error")

            self.logger.info(
                f"Chat reply generated (continue={agent_response.should_continue})",
                extra={
                    "session_id": request.sessionId,
                    "endpoint": "/api/chat",
                    "duration_ms": round((time.monotonic() - started) * 1000, 1),
                },
            )
            return {
                "success": True,
                "message": {
                    "role": Role.ASSISTANT.value,
                    "content": agent_response.content,
                    "timestamp": _now_iso(),
                },
            }

        @app.get("/api/history")
        async def get_history(sessionId: Optional[str] = None):
            """List a session's turns, oldest first."""
            if not sessionId:
                return _error(400, "Missing sessionId")

            try:
                turns = await self.store.list(sessionId)
            except ColloquyError as e:
                self.logger.error(f"History retrieval error: {e}", extra={"session_id": sessionId})
                return _error(_status_for(e), str(e))
            except Exception:
                self.logger.exception("History retrieval error", extra={"session_id": sessionId})
                return _error(500, "Internal Server Error")

            return {"success": True, "messages": [turn.to_dict() for turn in turns]}

        @app.delete("/api/history")
        async def delete_history(sessionId: Optional[str] = None):
            """Delete every turn of a session."""
            if not sessionId:
                return _error(400, "Missing sessionId")

            try:
                await self.store.delete_all(sessionId)
            except ColloquyError as e:
                self.logger.error(f"Delete error: {e}", extra={"session_id": sessionId})
                return _error(_status_for(e), str(e))
            except Exception:
                self.logger.exception("Delete error", extra={"session_id": sessionId})
                return _error(500, "Internal Server Error")

            return {"success": True, "message": "History deleted"}

        @app.post("/api/summary")
        async def summarize(request: SummaryRequest):
            """Summarize a stored session in 2-3 sentences."""
            if not request.sessionId:
                return _error(400, "Missing sessionId")

            try:
                turns = await self.store.list(request.sessionId)
                agent = create_agent(self.provider, self.config.agent)
                summary = await agent.summarize_conversation(turns)
            except ColloquyError as e:
                self.logger.error(f"Summarize error: {e}", extra={"session_id": request.sessionId})
                return _error(_status_for(e), str(e))
            except Exception:
                self.logger.exception("Summarize error", extra={"session_id": request.sessionId})
                return _error(500, "Internal Server Error")

            return {"success": True, "summary": summary}
