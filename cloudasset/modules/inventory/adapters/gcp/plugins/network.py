from __future__ import annotations

from cloudasset.modules.inventory.adapters.gcp.context import GCPContext, iter_aggregated
from cloudasset.modules.inventory.domain.correlation import (
    KIND_NETWORK,
    NetworkSummary,
    get_resource_name_from_url,
    network_parents,
    resolve_link_id,
)
from cloudasset.modules.inventory.domain.plugin import AssetCollectorPlugin
from cloudasset.modules.inventory.domain.registry import registry
from cloudasset.shared.assets import publish as asset
from cloudasset.shared.assets.record import CloudProvider
from cloudasset.shared.core.async_utils import run_blocking


@registry.register("gcp")
class VpcsPlugin(AssetCollectorPlugin):
    """VPC networks are global; each one is cached by selfLink for subnets and clusters."""

    @property
    def asset_type(self) -> str:
        return "gcp.vpc"

    async def collect(self, context: GCPContext) -> int:
        networks = await run_blocking(
            lambda: list(context.networks_client.list(project=context.project))
        )

        count = 0
        for network in networks:
            if not network.id:
                self._skip_item("missing_network_id", project=context.project)
                continue
            network_id = str(network.id)
            context.caches.vpcs.put(
                network.self_link,
                NetworkSummary(id=network_id, name=network.name, account=context.project),
                context.cache_ttl,
            )
            asset.publish(
                context.publisher,
                asset.with_cloud_provider(CloudProvider.GCP),
                asset.with_account_id(context.project),
                asset.with_kind_and_id(KIND_NETWORK, network_id),
                asset.with_type(self.asset_type),
                asset.with_name(network.name),
                asset.with_index(self.asset_type, context.index_namespace),
            )
            count += 1
        return count


@registry.register("gcp")
class SubnetsPlugin(AssetCollectorPlugin):
    @property
    def asset_type(self) -> str:
        return "gcp.subnet"

    async def collect(self, context: GCPContext) -> int:
        pages = await run_blocking(
            lambda: list(context.subnetworks_client.aggregated_list(project=context.project))
        )

        count = 0
        for subnet in iter_aggregated(pages, "subnetworks"):
            if not subnet.id:
                self._skip_item("missing_subnet_id", project=context.project)
                continue
            region = get_resource_name_from_url(subnet.region)
            if not context.wants_region(region):
                continue

            subnet_id = str(subnet.id)
            context.caches.subnets.put(
                subnet.self_link,
                NetworkSummary(
                    id=subnet_id, name=subnet.name, account=context.project, region=region
                ),
                context.cache_ttl,
            )

            options = [
                asset.with_cloud_provider(CloudProvider.GCP),
                asset.with_region(region),
                asset.with_account_id(context.project),
                asset.with_kind_and_id(KIND_NETWORK, subnet_id),
                asset.with_type(self.asset_type),
                asset.with_name(subnet.name),
                asset.with_index(self.asset_type, context.index_namespace),
            ]
            parents = network_parents([resolve_link_id(context.caches.vpcs, subnet.network)])
            if parents:
                options.append(asset.with_parents(parents))
            asset.publish(context.publisher, *options)
            count += 1
        return count
