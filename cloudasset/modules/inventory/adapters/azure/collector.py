from __future__ import annotations

from typing import Any, Optional

import structlog
from azure.identity.aio import ClientSecretCredential, DefaultAzureCredential
from azure.mgmt.compute.aio import ComputeManagementClient
from azure.mgmt.resource.subscriptions.aio import SubscriptionClient

from cloudasset.modules.inventory.adapters.azure.context import AzureContext
from cloudasset.modules.inventory.domain.collector import BaseProviderCollector
from cloudasset.shared.assets.publisher import Publisher
from cloudasset.shared.core.config import AzureSettings

# Import Azure plugins to trigger registration
import cloudasset.modules.inventory.adapters.azure.plugins  # noqa

logger = structlog.get_logger()


class AzureCollector(BaseProviderCollector):
    """
    Collects virtual machines for the configured subscription, or for every
    subscription the credential can see.
    """

    def __init__(self, config: AzureSettings, publisher: Publisher):
        self.config: AzureSettings = config
        super().__init__(config, publisher)
        self._credential: Optional[Any] = None
        self._compute_clients: dict[str, Any] = {}

    @property
    def provider_name(self) -> str:
        return "azure"

    def _create_credential(self) -> Any:
        if self.config.has_client_secret_credentials:
            secret = self.config.client_secret
            return ClientSecretCredential(
                tenant_id=self.config.tenant_id,
                client_id=self.config.client_id,
                client_secret=secret.get_secret_value() if secret else "",
            )
        return DefaultAzureCredential()

    async def start(self) -> None:
        self._credential = self._create_credential()
        logger.info(
            "azure_collector_started",
            subscription_id=self.config.subscription_id,
            auth="client_secret" if self.config.has_client_secret_credentials else "default",
        )

    @property
    def credential(self) -> Any:
        if self._credential is None:
            self._credential = self._create_credential()
        return self._credential

    async def targets(self) -> list[str]:
        if self.config.subscription_id:
            return [self.config.subscription_id]

        subscriptions: list[str] = []
        async with SubscriptionClient(self.credential) as client:
            async for subscription in client.subscriptions.list():
                if subscription.subscription_id:
                    subscriptions.append(subscription.subscription_id)
        logger.info("azure_subscriptions_discovered", count=len(subscriptions))
        return subscriptions

    def _compute_client(self, subscription_id: str) -> Any:
        client = self._compute_clients.get(subscription_id)
        if client is None:
            client = ComputeManagementClient(self.credential, subscription_id)
            self._compute_clients[subscription_id] = client
        return client

    def _build_context(self, subscription_id: str) -> AzureContext:
        return AzureContext(
            **self._context_kwargs(),
            subscription_id=subscription_id,
            compute_client=self._compute_client(subscription_id),
            regions=list(self.config.regions),
            resource_group=self.config.resource_group,
            log_context={"subscription_id": subscription_id},
        )

    async def close(self) -> None:
        for client in self._compute_clients.values():
            await client.close()
        self._compute_clients.clear()
        if self._credential is not None:
            await self._credential.close()
            self._credential = None
