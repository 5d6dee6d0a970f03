from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Any, Optional

import structlog

from cloudasset.modules.inventory.domain.plugin import (
    AssetCollectorPlugin,
    CollectionContext,
)
from cloudasset.modules.inventory.domain.registry import registry
from cloudasset.shared.assets.publisher import Publisher
from cloudasset.shared.core.async_utils import maybe_await
from cloudasset.shared.core.config import CollectorSettings
from cloudasset.shared.core.tasks import BestEffortTaskGroup

logger = structlog.get_logger()


class BaseProviderCollector(ABC):
    """
    Abstract Base Class for provider inventory collectors.
    - Base class handles plugin selection, fan-out and cancellation.
    - Subclasses handle provider-specific clients, targets and caches.

    A pass is fire-and-forget: every (target, asset type) pair runs as its
    own task, so a failing or slow type never holds back the others or the
    next pass.
    """

    def __init__(self, config: CollectorSettings, publisher: Publisher):
        self.config = config
        self.publisher = publisher
        self.tasks = BestEffortTaskGroup(self.provider_name)
        self.plugins: list[AssetCollectorPlugin] = []
        self._initialize_plugins()

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Name of the provider (e.g., 'aws', 'gcp', 'kubernetes')."""
        pass

    @property
    def period(self) -> timedelta:
        return self.config.period

    @property
    def initial_delay(self) -> timedelta:
        return timedelta(0)

    def _initialize_plugins(self) -> None:
        plugins = registry.get_plugins_for_provider(self.provider_name)
        self.plugins = [p for p in plugins if self.config.is_type_enabled(p.asset_type)]
        skipped = sorted(
            p.asset_type for p in plugins if not self.config.is_type_enabled(p.asset_type)
        )
        if skipped:
            logger.info(
                "collector_asset_types_disabled",
                provider=self.provider_name,
                asset_types=skipped,
            )

    async def start(self) -> None:
        """Provider setup (credentials, watchers). Called once before the first pass."""
        return None

    @abstractmethod
    async def targets(self) -> list[Any]:
        """Regions, projects, subscriptions... one context is built per target."""
        pass

    @abstractmethod
    def _build_context(self, target: Any) -> CollectionContext:
        pass

    def _context_kwargs(self) -> dict[str, Any]:
        return {
            "publisher": self.publisher,
            "index_namespace": self.config.index_namespace,
            "cache_ttl": self.config.cache_ttl,
        }

    def start_pass(self) -> asyncio.Task[Any]:
        """Dispatch one pass and return without waiting for it."""
        return self.tasks.spawn(
            self.collect_all(), name=f"{self.provider_name}.pass", provider=self.provider_name
        )

    async def collect_all(self) -> list[asyncio.Task[Any]]:
        if not self.plugins:
            logger.warning("collector_no_enabled_plugins", provider=self.provider_name)
            return []

        spawned: list[asyncio.Task[Any]] = []
        for target in await self.targets():
            context = await maybe_await(self._build_context(target))
            for plugin in self.plugins:
                spawned.append(
                    self.tasks.spawn(
                        self._run_plugin(plugin, context),
                        name=plugin.asset_type,
                        provider=self.provider_name,
                        **context.log_context,
                    )
                )

        logger.info(
            "collection_pass_dispatched",
            provider=self.provider_name,
            tasks=len(spawned),
        )
        return spawned

    async def _run_plugin(self, plugin: AssetCollectorPlugin, context: CollectionContext) -> int:
        count = await plugin.collect(context)
        logger.info(
            "asset_type_collected",
            provider=self.provider_name,
            asset_type=plugin.asset_type,
            count=count,
            **context.log_context,
        )
        return count

    async def close(self) -> None:
        """Release provider clients. Subclasses override as needed."""
        return None

    async def shutdown(self, timeout: Optional[float] = None) -> None:
        await self.tasks.cancel()
        try:
            await asyncio.wait_for(self.close(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("collector_close_timeout", provider=self.provider_name)
        logger.info("collector_shutdown", provider=self.provider_name)
