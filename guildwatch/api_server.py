"""HTTP listener for one agent.

Every agent serves ``GET /`` and ``GET /health``. The Notifier additionally
serves ``POST /send-notification``, the relay endpoint Observers call.
"""

from __future__ import annotations

import asyncio
import time
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

import uvicorn
from fastapi import FastAPI

from guildwatch import __version__
from guildwatch.api_models import (
    AgentStatusDTO,
    HealthDTO,
    NotificationRecordDTO,
    RelayResponseDTO,
    StatusDTO,
)
from guildwatch.constants import (
    API_START_MAX_POLLS,
    API_START_POLL_INTERVAL_S,
    API_STOP_TIMEOUT_S,
    API_TIMEOUT_KEEP_ALIVE_S,
    RELAY_PATH,
)
from guildwatch.logging_config import get_logger

if TYPE_CHECKING:
    from guildwatch.config.schema import DeploymentConfig
    from guildwatch.core.agent import Agent
    from guildwatch.notifications.relay_link import RelayLink

logger = get_logger(__name__)

PROCESS_STARTED_AT = time.monotonic()


def _uptime() -> float:
    return round(time.monotonic() - PROCESS_STARTED_AT, 3)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class APIServer:
    """Status and relay endpoints served by uvicorn inside the daemon's loop."""

    def __init__(
        self,
        agent: "Agent",
        *,
        host: str,
        port: int,
        deployment: "DeploymentConfig",
        relay_link: "Optional[RelayLink]" = None,
    ) -> None:
        self.agent = agent
        self.host = host
        self.port = port
        self.deployment = deployment
        self.relay_link = relay_link
        self.app = FastAPI(title=f"guildwatch {agent.label}", version=__version__)
        self.server: uvicorn.Server | None = None
        self.server_task: asyncio.Task[object] | None = None
        self._setup_routes()

    def _setup_routes(self) -> None:
        """Set up all HTTP endpoints."""

        @self.app.get("/")
        async def status() -> StatusDTO:  # pyright: ignore
            dto = StatusDTO(
                status=f"{self.agent.label} is running",
                uptime=_uptime(),
                timestamp=_now_iso(),
                environment=self.deployment.environment,
                public_url=self.deployment.public_url,
                agent=AgentStatusDTO.model_validate(self.agent.status()),
            )
            return dto

        @self.app.get("/health")
        async def health() -> HealthDTO:  # pyright: ignore
            return HealthDTO(timestamp=_now_iso(), uptime=_uptime())

        if self.relay_link is None:
            return
        relay_link = self.relay_link

        @self.app.post(RELAY_PATH)
        async def send_notification(body: NotificationRecordDTO) -> RelayResponseDTO:  # pyright: ignore
            result = await relay_link.forward(body.to_record())
            return RelayResponseDTO(status=result.status.value, message=result.message)

    async def start(self) -> None:
        """Start uvicorn in a background task and wait until it is listening.

        Raises:
            RuntimeError: If the server exits during startup.
            TimeoutError: If the server does not start listening in time.
        """
        if self.server_task and not self.server_task.done():
            logger.warning("API server already running; skipping start", agent=self.agent.label)
            return

        config = uvicorn.Config(
            self.app,
            host=self.host,
            port=self.port,
            log_level="warning",
            timeout_keep_alive=API_TIMEOUT_KEEP_ALIVE_S,
        )
        self.server = uvicorn.Server(config)
        server = self.server

        # Run server in background task. Avoid uvicorn's signal handling to keep daemon in control.
        serve_coro = server._serve() if hasattr(server, "_serve") else server.serve()
        self.server_task = asyncio.create_task(serve_coro, name=f"{self.agent.role.value}-api")

        for _ in range(API_START_MAX_POLLS):
            if server.started:
                break
            if self.server_task.done():
                exc = self.server_task.exception()
                raise RuntimeError(f"API server for {self.agent.label} exited during startup") from exc
            await asyncio.sleep(API_START_POLL_INTERVAL_S)
        if not server.started:
            raise TimeoutError(f"API server for {self.agent.label} failed to start within timeout")

        logger.info("Web server running on %s:%d", self.host, self.port, agent=self.agent.label)

    async def stop(self) -> None:
        server = self.server
        if server is not None:
            if server.started:
                server.should_exit = True
            elif self.server_task:
                self.server_task.cancel()

        if self.server_task:
            try:
                await asyncio.wait_for(self.server_task, timeout=API_STOP_TIMEOUT_S)
            except asyncio.TimeoutError:
                logger.warning("Timed out stopping API server; cancelling task", agent=self.agent.label)
                self.server_task.cancel()
                try:
                    await self.server_task
                except asyncio.CancelledError:
                    pass
            except asyncio.CancelledError:
                pass
        self.server_task = None
        self.server = None
