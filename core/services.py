"""
Service wiring — builds every component with its dependencies injected.

One ``Services`` instance is created per process (by ``main.create_app``
or the operator CLI) and passed down explicitly; nothing below reaches
for a module-level storage client.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from config.settings import Settings
from connectors.discord import DiscordConnector
from connectors.encryption import TokenCipher
from connectors.fitbit import FitbitConnector
from connectors.token_manager import RefreshLocks, TokenVault
from core.link_registry import LinkRegistry
from core.linking import LinkFlow
from core.orchestrator import SyncOrchestrator
from core.state_guard import CallbackStateGuard
from core.webhook import WebhookIngestor
from database.base import StorageProvider
from database.kv_store import SqlStorage
from database.memory import InMemoryStorage
from database.session import build_engine

logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    storage: StorageProvider
    http_client: httpx.AsyncClient
    vault: TokenVault
    discord: DiscordConnector
    fitbit: FitbitConnector
    state_guard: CallbackStateGuard
    link_registry: LinkRegistry
    orchestrator: SyncOrchestrator
    webhook: WebhookIngestor
    link_flow: LinkFlow

    async def startup(self) -> None:
        await self.storage.init()
        for connector in (self.discord, self.fitbit):
            if not connector.is_configured():
                logger.warning(
                    "Connector %s not configured (missing client_id/secret)",
                    connector.provider_name,
                )

    async def shutdown(self) -> None:
        await self.http_client.aclose()
        await self.storage.close()


def build_storage(settings: Settings) -> StorageProvider:
    if settings.database_url:
        logger.info("Using SQL storage")
        return SqlStorage(build_engine(settings.database_url))
    logger.warning("DATABASE_URL not set — using in-memory storage (data is lost on restart)")
    return InMemoryStorage()


def build_services(
    settings: Settings,
    *,
    storage: Optional[StorageProvider] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> Services:
    storage = storage or build_storage(settings)
    http_client = http_client or httpx.AsyncClient(timeout=settings.http_timeout_seconds)
    vault = TokenVault(storage, TokenCipher(settings.token_encryption_key))
    locks = RefreshLocks()

    discord = DiscordConnector(settings, http_client, vault, locks)
    fitbit = FitbitConnector(settings, http_client, vault, locks)
    state_guard = CallbackStateGuard(storage, settings.state_ttl_seconds)
    link_registry = LinkRegistry(storage)
    orchestrator = SyncOrchestrator(vault, discord, fitbit)
    webhook = WebhookIngestor(orchestrator, settings.fitbit_subscriber_verify)
    link_flow = LinkFlow(vault, state_guard, link_registry, orchestrator, discord, fitbit)

    return Services(
        settings=settings,
        storage=storage,
        http_client=http_client,
        vault=vault,
        discord=discord,
        fitbit=fitbit,
        state_guard=state_guard,
        link_registry=link_registry,
        orchestrator=orchestrator,
        webhook=webhook,
        link_flow=link_flow,
    )
