from __future__ import annotations

from typing import Any, Optional

import structlog
from google.cloud import compute_v1, container_v1
from google.oauth2 import service_account

from cloudasset.core.exceptions import AdapterError, ConfigurationError
from cloudasset.modules.inventory.adapters.gcp.context import GCPCaches, GCPContext
from cloudasset.modules.inventory.domain.collector import BaseProviderCollector
from cloudasset.shared.assets.publisher import Publisher
from cloudasset.shared.core.cache import DEFAULT_MAX_SIZE, LinkCache
from cloudasset.shared.core.config import GCPSettings

# Import GCP plugins to trigger registration
import cloudasset.modules.inventory.adapters.gcp.plugins  # noqa

logger = structlog.get_logger()


class GCPCollector(BaseProviderCollector):
    """
    Collects compute instances, VPCs, subnets and GKE clusters per project.
    Owns the cross-reference caches the GCP plugins correlate through.
    """

    def __init__(
        self,
        config: GCPSettings,
        publisher: Publisher,
        cache_max_size: int = DEFAULT_MAX_SIZE,
    ):
        self.config: GCPSettings = config
        super().__init__(config, publisher)
        self.caches = GCPCaches(
            vpcs=LinkCache("gcp_vpcs", max_size=cache_max_size),
            subnets=LinkCache("gcp_subnets", max_size=cache_max_size),
            instances=LinkCache("gcp_instances", max_size=cache_max_size),
        )
        self._clients: Optional[dict[str, Any]] = None

    @property
    def provider_name(self) -> str:
        return "gcp"

    def _load_credentials(self) -> Any:
        """Service account file when configured, otherwise application default credentials."""
        if not self.config.credentials_file_path:
            return None
        try:
            return service_account.Credentials.from_service_account_file(  # type: ignore[no-untyped-call]
                self.config.credentials_file_path
            )
        except (OSError, ValueError) as exc:
            raise ConfigurationError(
                f"Unable to load GCP credentials from {self.config.credentials_file_path}: {exc}"
            ) from exc

    async def start(self) -> None:
        credentials = self._load_credentials()
        self._clients = {
            "instances_client": compute_v1.InstancesClient(credentials=credentials),
            "networks_client": compute_v1.NetworksClient(credentials=credentials),
            "subnetworks_client": compute_v1.SubnetworksClient(credentials=credentials),
            "cluster_client": container_v1.ClusterManagerClient(credentials=credentials),
        }
        logger.info("gcp_collector_started", projects=self.config.projects)

    async def targets(self) -> list[str]:
        return list(self.config.projects)

    def _build_context(self, project: str) -> GCPContext:
        if self._clients is None:
            raise AdapterError(
                "GCPCollector.start() must be called before collecting",
                code="collector_not_started",
            )
        return GCPContext(
            **self._context_kwargs(),
            **self._clients,
            project=project,
            caches=self.caches,
            regions=list(self.config.regions),
            log_context={"project": project},
        )

    async def close(self) -> None:
        for client in (self._clients or {}).values():
            transport = getattr(client, "transport", None)
            if transport is not None:
                transport.close()
        self._clients = None
