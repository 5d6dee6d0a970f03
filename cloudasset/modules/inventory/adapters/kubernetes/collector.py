from __future__ import annotations

from datetime import timedelta
from typing import Any, Optional

import structlog
from kubernetes_asyncio import client
from kubernetes_asyncio import config as k8s_config

from cloudasset.core.exceptions import AdapterError, ConfigurationError
from cloudasset.modules.inventory.adapters.kubernetes.context import KubernetesContext
from cloudasset.modules.inventory.adapters.kubernetes.metadata import GKEMetadataClient
from cloudasset.modules.inventory.adapters.kubernetes.watchers import (
    ResourceWatcher,
    WatchedKind,
)
from cloudasset.modules.inventory.domain.collector import BaseProviderCollector
from cloudasset.shared.assets.publisher import Publisher
from cloudasset.shared.core.config import KubernetesSettings

# Import Kubernetes plugins to trigger registration
import cloudasset.modules.inventory.adapters.kubernetes.plugins  # noqa

logger = structlog.get_logger()

CLUSTER_TARGET = "cluster"


class KubernetesCollector(BaseProviderCollector):
    """
    Publishes nodes, pods and containers from the node and pod watcher
    stores. The first pass waits for the watchers to fill their stores.
    """

    def __init__(self, config: KubernetesSettings, publisher: Publisher):
        self.config: KubernetesSettings = config
        super().__init__(config, publisher)
        self.api_client: Optional[Any] = None
        self.node_watcher: Optional[ResourceWatcher[Any]] = None
        self.pod_watcher: Optional[ResourceWatcher[Any]] = None
        self.metadata_client = GKEMetadataClient()

    @property
    def provider_name(self) -> str:
        return "kubernetes"

    @property
    def initial_delay(self) -> timedelta:
        return self.config.initial_sync_delay

    async def _load_config(self) -> None:
        try:
            if self.config.kube_config:
                await k8s_config.load_kube_config(config_file=self.config.kube_config)
            else:
                k8s_config.load_incluster_config()
        except k8s_config.ConfigException as exc:
            raise ConfigurationError(f"Unable to load Kubernetes configuration: {exc}") from exc

    async def start(self) -> None:
        await self._load_config()
        self.api_client = client.ApiClient()
        core_v1 = client.CoreV1Api(self.api_client)
        timeout = int(self.config.watch_timeout.total_seconds())
        self.node_watcher = ResourceWatcher(WatchedKind.NODE, core_v1, timeout_seconds=timeout)
        self.pod_watcher = ResourceWatcher(WatchedKind.POD, core_v1, timeout_seconds=timeout)
        self.node_watcher.start()
        self.pod_watcher.start()
        logger.info("k8s_watchers_started", in_cluster=self.config.in_cluster)

    async def targets(self) -> list[str]:
        return [CLUSTER_TARGET]

    def _build_context(self, target: str) -> KubernetesContext:
        if self.node_watcher is None or self.pod_watcher is None:
            raise AdapterError(
                "KubernetesCollector.start() must be called before collecting",
                code="collector_not_started",
            )
        return KubernetesContext(
            **self._context_kwargs(),
            node_watcher=self.node_watcher,
            pod_watcher=self.pod_watcher,
            in_cluster=self.config.in_cluster,
            metadata_client=self.metadata_client,
            log_context={"target": target},
        )

    async def close(self) -> None:
        for watcher in (self.node_watcher, self.pod_watcher):
            if watcher is not None:
                await watcher.stop()
        if self.api_client is not None:
            await self.api_client.close()
            self.api_client = None
