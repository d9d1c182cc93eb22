"""guildwatch daemon: hosts the Notifier and/or Observer agents in one process."""

from __future__ import annotations

import argparse
import asyncio
import os
import signal
import sys
from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo

from guildwatch.adapters.discord_gateway import DiscordGateway
from guildwatch.api_server import APIServer
from guildwatch.config import GuildwatchConfig, load_config
from guildwatch.config.schema import AgentConfig
from guildwatch.core.agent import Agent
from guildwatch.core.delivery_queue import DeliveryQueue
from guildwatch.core.errors import AgentLoginError
from guildwatch.core.models import AgentRole
from guildwatch.core.protocols import CommunityGateway, DeliveryStrategy
from guildwatch.core.scope_store import CommunityScope, ScopeStore
from guildwatch.core.task_registry import TaskRegistry
from guildwatch.core.translator import EventTranslator
from guildwatch.logging_config import DEFAULT_LOG_LEVEL, get_logger, setup_logging
from guildwatch.notifications.relay_link import LocalDelivery, RelayLink
from guildwatch.notifications.sender import NotificationSender
from guildwatch.transport.relay_client import RemoteRelay

logger = get_logger(__name__)

ROLES = ("both", "notifier", "observer")


class GuildwatchDaemon:
    """Build, start and stop the configured agents.

    The Notifier starts first so its relay endpoint is listening before the
    Observer begins forwarding.
    """

    def __init__(self, config: GuildwatchConfig, *, role: str = "both") -> None:
        if role not in ROLES:
            raise ValueError(f"Unknown role {role!r}; expected one of {', '.join(ROLES)}")
        if config.relay.mode == "in_process" and role != "both":
            raise ValueError("relay.mode 'in_process' requires --role both")
        if role in ("both", "notifier") and not config.notifier.recipient_id:
            raise ValueError("notifier.recipient_id (RECIPIENT_USER_ID) is required to run the Notifier")

        self.config = config
        self.role = role
        self.shutdown_event = asyncio.Event()
        self.task_registry = TaskRegistry()
        self.agents: list[Agent] = []
        self.api_servers: list[APIServer] = []
        self.notifier: Optional[Agent] = None
        self.observer: Optional[Agent] = None
        self.relay_link: Optional[RelayLink] = None
        self._remote_relay: Optional[RemoteRelay] = None

        tz_name = config.deployment.display_timezone
        self.translator = EventTranslator(display_tz=ZoneInfo(tz_name) if tz_name else None)

        if role in ("both", "notifier"):
            self.notifier = self._build_notifier()
        if role in ("both", "observer"):
            self.observer = self._build_observer()

    def _build_gateway(self, agent_cfg: AgentConfig) -> CommunityGateway:
        return DiscordGateway(
            agent_cfg.token,
            label=agent_cfg.label,
            login_timeout_s=self.config.startup.login_timeout_s,
        )

    def _build_scope(self, agent_cfg: AgentConfig) -> CommunityScope:
        return CommunityScope(ScopeStore(Path(agent_cfg.scope_file)), label=agent_cfg.label)

    def _build_notifier(self) -> Agent:
        cfg = self.config.notifier
        gateway = self._build_gateway(cfg)
        queue = DeliveryQueue(
            max_size=self.config.queue.max_size,
            overflow=self.config.queue.overflow,
            label=cfg.label,
        )
        sender = NotificationSender(
            gateway,
            cfg.recipient_id,
            queue,
            label=cfg.label,
            drain_interval_s=self.config.queue.drain_interval_s,
        )
        self.relay_link = RelayLink(sender, queue)
        agent = self._build_agent(AgentRole.NOTIFIER, cfg, gateway, LocalDelivery(self.relay_link), sender=sender)
        self.api_servers.append(
            APIServer(
                agent,
                host=self.config.api.host,
                port=cfg.port,
                deployment=self.config.deployment,
                relay_link=self.relay_link,
            )
        )
        return agent

    def _build_observer(self) -> Agent:
        cfg = self.config.observer
        strategy: DeliveryStrategy
        if self.config.relay.mode == "in_process" and self.relay_link is not None:
            strategy = LocalDelivery(self.relay_link)
        else:
            self._remote_relay = RemoteRelay(
                self.config.relay.url,
                timeout_s=self.config.relay.timeout_s,
                label=cfg.label,
            )
            strategy = self._remote_relay
        agent = self._build_agent(AgentRole.OBSERVER, cfg, self._build_gateway(cfg), strategy)
        self.api_servers.append(
            APIServer(agent, host=self.config.api.host, port=cfg.port, deployment=self.config.deployment)
        )
        return agent

    def _build_agent(
        self,
        role: AgentRole,
        cfg: AgentConfig,
        gateway: CommunityGateway,
        strategy: DeliveryStrategy,
        *,
        sender: Optional[NotificationSender] = None,
    ) -> Agent:
        agent = Agent(
            role=role,
            label=cfg.label,
            gateway=gateway,
            scope=self._build_scope(cfg),
            translator=self.translator,
            strategy=strategy,
            task_registry=self.task_registry,
            sender=sender,
            settle_delay_s=self.config.startup.settle_delay_s,
        )
        self.agents.append(agent)
        return agent

    async def start(self) -> None:
        """Start HTTP listeners, then agents (Notifier first).

        Raises:
            AgentLoginError: If any agent fails to authenticate.
        """
        for server in self.api_servers:
            await server.start()

        if self.notifier is not None:
            await self.notifier.start()
            if self.observer is not None:
                await asyncio.sleep(self.config.startup.notifier_head_start_s)
        if self.observer is not None:
            await self.observer.start()

        logger.info(
            "guildwatch fully operational",
            role=self.role,
            recipient=self.config.notifier.recipient_id if self.notifier else None,
            environment=self.config.deployment.environment,
            public_url=self.config.deployment.public_url or "localhost",
        )

    async def stop(self) -> None:
        for agent in reversed(self.agents):
            try:
                await agent.stop()
            except Exception as e:  # pylint: disable=broad-exception-caught
                logger.error("Error stopping %s: %s", agent.label, e)
        for server in self.api_servers:
            await server.stop()
        if self._remote_relay is not None:
            await self._remote_relay.close()
        await self.task_registry.shutdown()


def _parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="guildwatch", description="Relay Discord member joins to one recipient.")
    parser.add_argument("--role", choices=ROLES, default=os.getenv("GUILDWATCH_ROLE", "both"))
    parser.add_argument("--config", type=Path, default=None, help="Path to config.yml")
    parser.add_argument("--log-level", default=None, help=f"Override GUILDWATCH_LOG_LEVEL (default {DEFAULT_LOG_LEVEL})")
    return parser.parse_args(argv)


async def main(argv: Optional[list[str]] = None) -> None:
    """Main entry point."""
    args = _parse_args(argv)
    setup_logging(level=args.log_level)

    try:
        config = load_config(args.config)
        daemon = GuildwatchDaemon(config, role=args.role)
    except Exception as e:  # pylint: disable=broad-exception-caught
        logger.error("Invalid configuration: %s", e)
        sys.exit(1)

    loop = asyncio.get_running_loop()

    def signal_handler(signum: int) -> None:
        logger.info("Received %s signal, shutting down gracefully...", signal.Signals(signum).name)
        daemon.shutdown_event.set()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, signal_handler, sig)

    exit_code = 0
    try:
        await daemon.start()
        await daemon.shutdown_event.wait()
    except AgentLoginError as e:
        logger.error("FATAL: %s", e)
        exit_code = 1
    except Exception as e:  # pylint: disable=broad-exception-caught
        logger.error("Unexpected error: %s", e, exc_info=True)
        exit_code = 1
    finally:
        try:
            await daemon.stop()
        except Exception as e:  # pylint: disable=broad-exception-caught
            logger.error("Error during daemon stop: %s", e)

    if exit_code:
        sys.exit(exit_code)


def run() -> None:
    """Console-script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
