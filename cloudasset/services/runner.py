from __future__ import annotations

import asyncio
import signal
from typing import Any, Optional

import structlog
from prometheus_client import start_http_server

from cloudasset.core.exceptions import ConfigurationError
from cloudasset.modules.inventory.domain.collector import BaseProviderCollector
from cloudasset.services.scheduler import CollectionScheduler
from cloudasset.shared.assets.publisher import JsonLinesPublisher, Publisher
from cloudasset.shared.core.config import Settings

logger = structlog.get_logger()

SHUTDOWN_TIMEOUT_SECONDS = 10.0


def create_collector(
    provider: str, settings: Settings, publisher: Publisher
) -> BaseProviderCollector:
    """Build the collector for one configured provider section."""
    # Provider SDKs are imported only for the providers that are configured
    if provider == "aws" and settings.aws is not None:
        from cloudasset.modules.inventory.adapters.aws.collector import AWSCollector

        return AWSCollector(settings.aws, publisher)
    if provider == "gcp" and settings.gcp is not None:
        from cloudasset.modules.inventory.adapters.gcp.collector import GCPCollector

        return GCPCollector(settings.gcp, publisher, cache_max_size=settings.CACHE_MAX_SIZE)
    if provider == "azure" and settings.azure is not None:
        from cloudasset.modules.inventory.adapters.azure.collector import AzureCollector

        return AzureCollector(settings.azure, publisher)
    if provider == "kubernetes" and settings.kubernetes is not None:
        from cloudasset.modules.inventory.adapters.kubernetes.collector import (
            KubernetesCollector,
        )

        return KubernetesCollector(settings.kubernetes, publisher)
    if provider == "hostdata" and settings.hostdata is not None:
        from cloudasset.modules.inventory.adapters.hostdata.collector import HostdataCollector

        return HostdataCollector(settings.hostdata, publisher)
    raise ConfigurationError(f"Provider {provider!r} is not configured")


class InventoryRunner:
    """
    Runs one scheduler per configured provider until asked to stop.

    SIGINT/SIGTERM set the stop event; schedulers then return and every
    collector cancels its in-flight work and closes its clients.
    """

    def __init__(self, settings: Settings, publisher: Optional[Publisher] = None):
        self.settings = settings
        self.publisher = publisher or JsonLinesPublisher()
        self.collectors: list[BaseProviderCollector] = []
        self.schedulers: list[CollectionScheduler] = []
        self.stop_event = asyncio.Event()
        self._metrics_server: Any = None

    def build_collectors(self) -> list[BaseProviderCollector]:
        providers = self.settings.configured_providers
        if not providers:
            raise ConfigurationError(
                "No provider configured; add at least one of aws, gcp, azure, kubernetes, hostdata"
            )
        return [create_collector(p, self.settings, self.publisher) for p in providers]

    def start_metrics_server(self) -> None:
        """Serve the Prometheus registry on METRICS_PORT (disabled when 0)."""
        port = self.settings.METRICS_PORT
        if not port or self._metrics_server is not None:
            return
        try:
            self._metrics_server, _ = start_http_server(port, addr=self.settings.METRICS_ADDR)
        except OSError as exc:
            raise ConfigurationError(
                f"Unable to serve metrics on {self.settings.METRICS_ADDR}:{port}: {exc}"
            ) from exc
        logger.info("metrics_server_started", addr=self.settings.METRICS_ADDR, port=port)

    def stop_metrics_server(self) -> None:
        if self._metrics_server is None:
            return
        self._metrics_server.shutdown()
        self._metrics_server.server_close()
        self._metrics_server = None
        logger.info("metrics_server_stopped")

    def request_stop(self) -> None:
        if not self.stop_event.is_set():
            logger.info("inventory_stop_requested")
            self.stop_event.set()

    def _install_signal_handlers(self) -> list[signal.Signals]:
        loop = asyncio.get_running_loop()
        installed = []
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.request_stop)
                installed.append(sig)
            except (NotImplementedError, RuntimeError):
                # Not supported on this platform or outside the main thread
                logger.debug("signal_handler_unavailable", signal=sig.name)
        return installed

    async def run(self) -> None:
        self.collectors = self.build_collectors()
        self.start_metrics_server()
        installed = self._install_signal_handlers()
        try:
            for collector in self.collectors:
                await collector.start()
            self.schedulers = [
                CollectionScheduler(
                    collector.provider_name,
                    collector.period,
                    collector.start_pass,
                    initial_delay=collector.initial_delay,
                )
                for collector in self.collectors
            ]
            logger.info(
                "inventory_started",
                providers=[c.provider_name for c in self.collectors],
            )
            await asyncio.gather(*(s.run(self.stop_event) for s in self.schedulers))
        finally:
            loop = asyncio.get_running_loop()
            for sig in installed:
                loop.remove_signal_handler(sig)
            await self.shutdown()
            self.stop_metrics_server()

    async def shutdown(self) -> None:
        results = await asyncio.gather(
            *(c.shutdown(timeout=SHUTDOWN_TIMEOUT_SECONDS) for c in self.collectors),
            return_exceptions=True,
        )
        for collector, result in zip(self.collectors, results):
            if isinstance(result, Exception):
                logger.error(
                    "collector_shutdown_failed",
                    provider=collector.provider_name,
                    error=str(result),
                )
        logger.info("inventory_stopped")
