"""Base class for Colloquy HTTP services.

Provides:
- FastAPI app with CORS and a /health endpoint
- setup/teardown hooks bound to the app lifespan
- Structured logging
- Graceful shutdown on SIGTERM/SIGINT
- Central config loading
"""

import asyncio
import signal
from typing import Optional, List
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import uvicorn

from colloquy.config import get_config, ColloquyConfig
from colloquy.common.logging import apply_logging_config, setup_logging


class ColloquyService:
    """Base class for Colloquy services served over HTTP."""

    def __init__(
        self,
        name: str,
        http_port: Optional[int] = None,
        config: Optional[ColloquyConfig] = None,
    ):
        self.name = name
        self.config: ColloquyConfig = config or get_config()
        self.http_port = http_port
        self.logger = setup_logging(
            name,
            level=self.config.logging.level,
            json_output=self.config.logging.json_output,
        )
        apply_logging_config(self.config.logging.level, self.config.logging.json_output)
        self._running = False
        self._tasks: List[asyncio.Task] = []
        self._app: Optional[FastAPI] = None

    # --- HTTP ---

    def get_app(self) -> FastAPI:
        """Get or create the FastAPI app."""
        if self._app is None:
            @asynccontextmanager
            async def lifespan(app):
                await self.setup()
                try:
                    yield
                finally:
                    await self.teardown()

            self._app = FastAPI(
                title=f"Colloquy - {self.name.title()} Service",
                lifespan=lifespan,
            )
            self._app.add_middleware(
                CORSMiddleware,
                allow_origins=["*"],
                allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
                allow_headers=["Content-Type"],
            )

            @self._app.get("/health")
            async def health():
                return {
                    "service": self.name,
                    "status": "ok",
                }
        return self._app

    async def _run_http(self):
        """Run the FastAPI HTTP server."""
        if self.http_port:
            app = self.get_app()
            config = uvicorn.Config(
                app,
                host=self.config.web_chat.host,
                port=self.http_port,
                log_level="warning",
            )
            server = uvicorn.Server(config)
            await server.serve()

    # --- Lifecycle ---

    async def setup(self):
        """Override in subclass for service-specific initialization."""
        pass

    async def teardown(self):
        """Override in subclass for service-specific cleanup."""
        pass

    async def run(self):
        """Main entry point. Serves HTTP until shutdown."""
        self._running = True
        self.logger.info(f"Starting {self.name} service...")

        # Register signal handlers
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, lambda: asyncio.create_task(self.shutdown()))

        if self.http_port:
            self._tasks.append(asyncio.create_task(self._run_http()))

        self.logger.info(f"{self.name} service started on port {self.http_port}")

        # Wait until shutdown
        try:
            await asyncio.gather(*self._tasks)
        except asyncio.CancelledError:
            pass
        finally:
            self.logger.info(f"{self.name} service stopped")

    async def shutdown(self):
        """Graceful shutdown."""
        self.logger.info(f"Shutting down {self.name}...")
        self._running = False
        for task in self._tasks:
            task.cancel()
